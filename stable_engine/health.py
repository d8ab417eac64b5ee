"""
health.py - Health factor calculation

Pure functions, no state. Every mutating engine entry point runs
is_healthy() as a post-condition on the accounts it touched.

Key Formula:
    adjusted_collateral = collateral_value * liquidation_threshold // liquidation_precision
    health_factor       = adjusted_collateral * precision // debt

An account with no debt has MAX_HEALTH_FACTOR regardless of collateral.
"""

from __future__ import annotations
from typing import Optional

from .core import EngineParameters, MAX_HEALTH_FACTOR


_DEFAULT_PARAMETERS = EngineParameters()


def calculate_health_factor(
    debt: int,
    collateral_value: int,
    parameters: Optional[EngineParameters] = None,
) -> int:
    """
    Compute the solvency ratio of an account.

    Args:
        debt: Minted stable units (reference base units)
        collateral_value: Total collateral value (reference base units)
        parameters: Engine parameters (defaults to the module constants)

    Returns:
        Health factor in the parameters' fixed-point scale

    Example:
        calculate_health_factor(400 * 10**18, 1000 * 10**18) == 1_250_000_000_000_000_000
    """
    params = parameters or _DEFAULT_PARAMETERS
    if debt == 0:
        return MAX_HEALTH_FACTOR
    adjusted = collateral_value * params.liquidation_threshold // params.liquidation_precision
    return adjusted * params.precision // debt


def is_healthy(
    debt: int,
    collateral_value: int,
    parameters: Optional[EngineParameters] = None,
) -> bool:
    """Return True if the health factor is at or above the minimum."""
    params = parameters or _DEFAULT_PARAMETERS
    return calculate_health_factor(debt, collateral_value, params) >= params.min_health_factor


def max_mintable(collateral_value: int, parameters: Optional[EngineParameters] = None) -> int:
    """
    Largest total debt that keeps an account at the minimum health factor.

    Convenience for callers sizing a mint; the engine never relies on it.
    """
    params = parameters or _DEFAULT_PARAMETERS
    adjusted = collateral_value * params.liquidation_threshold // params.liquidation_precision
    return adjusted * params.precision // params.min_health_factor
