"""
liquidation.py - Partial liquidation of undercollateralized accounts

A liquidator repays part of another account's debt with their own stable
units and is paid in that account's collateral, plus a bonus.

Sequence (all inside the caller's atomic unit of work):
    1. debt_to_cover > 0, asset registered
    2. target's health factor must be below the minimum     (HealthFactorOk)
    3. seize = from_reference_value(debt_to_cover) * (1 + bonus)
    4. redeem seize from target to liquidator                (BalanceUnderflow)
    5. burn debt_to_cover of target's debt, paid by liquidator
    6. target's health factor must strictly improve          (HealthFactorNotImproved)
    7. liquidator's own health factor must stay at minimum   (BreaksHealthFactor)

Known boundary: once an account's collateral is worth no more than its debt
plus the bonus, step 4 cannot be satisfied and the liquidation fails. This is
accepted, not patched.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Callable

from .collateral import CollateralLedger
from .core import (
    EngineParameters,
    HealthFactorNotImproved, HealthFactorOk,
    require_positive,
)
from .debt import DebtLedger
from .valuation import ValuationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LiquidationResult:
    """
    Immutable record of a completed liquidation.

    Attributes:
        account: Liquidated account
        liquidator: Account that repaid the debt and received collateral
        asset: Collateral asset seized
        debt_covered: Stable units burned on the account's behalf
        collateral_seized: Asset amount equivalent to debt_covered
        bonus_collateral: Extra asset amount paid as incentive
        starting_health_factor: Account's health factor before
        ending_health_factor: Account's health factor after
    """
    account: str
    liquidator: str
    asset: str
    debt_covered: int
    collateral_seized: int
    bonus_collateral: int
    starting_health_factor: int
    ending_health_factor: int

    @property
    def total_collateral_redeemed(self) -> int:
        return self.collateral_seized + self.bonus_collateral


def calculate_liquidation_bonus(asset_amount: int, parameters: EngineParameters) -> int:
    """Bonus collateral for a seized amount, rounded down."""
    return asset_amount * parameters.liquidation_bonus // parameters.liquidation_precision


class LiquidationEngine:
    """
    Orchestrates a liquidation over the collateral and debt ledgers.

    Health factors are obtained from health_factor_of; the post-condition on
    the liquidator is enforced by check_health.
    """

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: DebtLedger,
        valuation: ValuationService,
        health_factor_of: Callable[[str], int],
        check_health: Callable[[str], None],
        parameters: EngineParameters,
    ):
        self.collateral = collateral
        self.debt = debt
        self.valuation = valuation
        self.health_factor_of = health_factor_of
        self.check_health = check_health
        self.parameters = parameters

    def liquidate(self, liquidator: str, asset: str, account: str, debt_to_cover: int) -> LiquidationResult:
        """
        Repay debt_to_cover of account's debt and seize collateral for it.

        Args:
            liquidator: Caller paying the debt
            asset: Collateral asset to seize
            account: Account being liquidated
            debt_to_cover: Stable units to burn on account's behalf

        Returns:
            LiquidationResult describing the liquidation

        Raises:
            NeedsMoreThanZero: If debt_to_cover <= 0
            TokenNotAllowed: If asset is not registered
            HealthFactorOk: If account is not below the minimum health factor
            BalanceUnderflow: If account holds too little of asset, or owes
                less than debt_to_cover
            HealthFactorNotImproved: If account's health factor does not rise
            BreaksHealthFactor: If the liquidator ends below the minimum
        """
        require_positive(debt_to_cover)
        self.collateral.registry.require(asset)

        starting = self.health_factor_of(account)
        if starting >= self.parameters.min_health_factor:
            raise HealthFactorOk(account, starting)

        seized = self.valuation.from_reference_value(asset, debt_to_cover)
        bonus = calculate_liquidation_bonus(seized, self.parameters)

        self.collateral.redeem(asset, seized + bonus, account, liquidator)
        self.debt.burn(debt_to_cover, account, liquidator)

        ending = self.health_factor_of(account)
        if ending <= starting:
            raise HealthFactorNotImproved(account, starting, ending)

        self.check_health(liquidator)

        logger.info(
            "Liquidated %s: %s covered %d, seized %d+%d %s, health factor %d -> %d",
            account, liquidator, debt_to_cover, seized, bonus, asset, starting, ending,
        )
        return LiquidationResult(
            account=account,
            liquidator=liquidator,
            asset=asset,
            debt_covered=debt_to_cover,
            collateral_seized=seized,
            bonus_collateral=bonus,
            starting_health_factor=starting,
            ending_health_factor=ending,
        )
