"""
config.py - Engine configuration from YAML

An engine deployment is described by one YAML file: the engine's account
identity, its parameters, the collateral assets with their price feeds, and
the oracle staleness timeout. load_config() reads the file after loading a
.env file, replaces ${VAR} references with environment values, builds frozen
config objects and validates them.

configure_logging() sets the root log level named in the configuration.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import re
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from dotenv import load_dotenv

from .core import EngineParameters
from .oracle import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "engine"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TIMEOUT_SECONDS = int(DEFAULT_TIMEOUT.total_seconds())

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")

_PARAMETER_FIELDS = (
    "precision",
    "additional_feed_precision",
    "feed_decimals",
    "liquidation_threshold",
    "liquidation_precision",
    "liquidation_bonus",
    "min_health_factor",
)


# ============================================================================
# CONFIG TYPES
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralConfig:
    """
    One configured collateral asset.

    Attributes:
        asset: Asset id used in engine calls (e.g. "WETH")
        feed_id: Price feed valuing the asset (e.g. "ETH/USD")
    """
    asset: str = ""
    feed_id: str = ""


@dataclass(frozen=True, slots=True)
class OracleConfig:
    """Staleness timeout applied to every price feed."""
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    A complete engine deployment.

    Attributes:
        address: Account identity the engine takes custody under
        parameters: Solvency and liquidation parameters
        collateral: Accepted collateral assets, in registration order
        oracle: Price staleness settings
        log_level: Root logging level name
    """
    address: str = DEFAULT_ADDRESS
    parameters: EngineParameters = field(default_factory=EngineParameters)
    collateral: Tuple[CollateralConfig, ...] = ()
    oracle: OracleConfig = field(default_factory=OracleConfig)
    log_level: str = DEFAULT_LOG_LEVEL


# ============================================================================
# BUILDERS
# ============================================================================

def _interpolate_env(value: Any) -> Any:
    """Replace ${VAR} references with environment values, recursively."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


def _build_parameters(raw: Dict[str, Any]) -> EngineParameters:
    unknown = set(raw) - set(_PARAMETER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown engine parameters: {', '.join(sorted(unknown))}")
    return EngineParameters(**{name: int(value) for name, value in raw.items()})


def _build_collateral(raw: List[Dict[str, Any]]) -> Tuple[CollateralConfig, ...]:
    return tuple(
        CollateralConfig(asset=str(c.get("asset", "")), feed_id=str(c.get("feed_id", "")))
        for c in raw
    )


def _build_oracle(raw: Dict[str, Any]) -> OracleConfig:
    return OracleConfig(timeout_seconds=int(raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)))


# ============================================================================
# LOADING AND VALIDATION
# ============================================================================

def load_config(config_path: Union[str, Path]) -> EngineConfig:
    """
    Load and validate an engine configuration.

    Args:
        config_path: Path to the YAML file

    Returns:
        The validated EngineConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the configuration is invalid
    """
    load_dotenv()

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = EngineConfig(
        address=raw.get("address") or DEFAULT_ADDRESS,
        parameters=_build_parameters(raw.get("parameters") or {}),
        collateral=_build_collateral(raw.get("collateral") or []),
        oracle=_build_oracle(raw.get("oracle") or {}),
        log_level=raw.get("log_level") or DEFAULT_LOG_LEVEL,
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: EngineConfig) -> None:
    if not cfg.collateral:
        raise ValueError("At least one collateral asset must be configured")

    seen = set()
    for entry in cfg.collateral:
        if not entry.asset:
            raise ValueError("Collateral entry has no asset")
        if not entry.feed_id:
            raise ValueError(f"Collateral '{entry.asset}' has no feed_id")
        if entry.asset in seen:
            raise ValueError(f"Collateral '{entry.asset}' configured more than once")
        seen.add(entry.asset)

    if cfg.oracle.timeout_seconds <= 0:
        raise ValueError(
            f"oracle.timeout_seconds must be positive, got {cfg.oracle.timeout_seconds}"
        )


# ============================================================================
# LOGGING
# ============================================================================

def configure_logging(level: Optional[str] = DEFAULT_LOG_LEVEL) -> None:
    """
    Set the root log level, installing a console handler if none exists.

    Unknown level names fall back to INFO.
    """
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        )
    root.setLevel(resolved)
