"""
valuation.py - Conversions between collateral amounts and reference-currency value

Two layers, following the pure-function pattern used across the package:

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take price and amount explicitly
   - No oracle, no registry, no hidden state

2. ValuationService:
   - Resolves an asset to its feed, reads the price once, validates it,
     then calls the pure function

Key Formulas:
    reference_value = price * additional_feed_precision * amount // precision
    asset_amount    = reference_value * precision // (price * additional_feed_precision)

to_reference_value() rejects stale readings. from_reference_value() reads the
price without the staleness gate; it is only used to size a liquidation
seizure, and the liquidation's own health checks go through the gated path.
"""

from __future__ import annotations
import logging

from .core import (
    EngineParameters,
    InvalidPrice, StalePrice,
    require_amount,
)
from .oracle import PriceOracleAdapter
from .registry import AssetRegistry

logger = logging.getLogger(__name__)


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_reference_value(price: int, amount: int, parameters: EngineParameters) -> int:
    """
    Value an asset amount in reference-currency base units.

    Args:
        price: Feed answer (feed_decimals decimals)
        amount: Asset amount in base units
        parameters: Engine parameters providing the scales

    Returns:
        Reference value, rounded down

    Example:
        1 WETH at $2000.00000000 -> 2000 * 10**18
    """
    return price * parameters.additional_feed_precision * amount // parameters.precision


def calculate_asset_amount(price: int, reference_value: int, parameters: EngineParameters) -> int:
    """
    Convert a reference-currency value to an asset amount at a given price.

    Inverse of calculate_reference_value(), rounded down.
    """
    return reference_value * parameters.precision // (price * parameters.additional_feed_precision)


def validate_price(price: object, feed_id: str) -> int:
    """
    Check that a feed answer is a positive integer.

    Raises:
        InvalidPrice: If the answer is not an int or is not positive
    """
    if isinstance(price, bool) or not isinstance(price, int):
        raise InvalidPrice(f"Feed {feed_id} returned non-integer price {price!r}")
    if price <= 0:
        raise InvalidPrice(f"Feed {feed_id} returned non-positive price {price}")
    return price


# ============================================================================
# VALUATION SERVICE
# ============================================================================

class ValuationService:
    """Price-backed conversions for registered collateral assets. Holds no state of its own."""

    def __init__(
        self,
        registry: AssetRegistry,
        oracle: PriceOracleAdapter,
        parameters: EngineParameters,
    ):
        self.registry = registry
        self.oracle = oracle
        self.parameters = parameters

    def price(self, asset: str) -> int:
        """
        Return the staleness-checked price of a registered asset.

        Raises:
            TokenNotAllowed: If the asset is not registered
            StalePrice: If the feed's latest round is stale
            InvalidPrice: If the price is not a positive integer
        """
        feed_id = self.registry.feed_id(asset)
        reading = self.oracle.get_latest_price(feed_id)
        if reading.is_stale:
            raise StalePrice(f"Price feed {feed_id} for {asset} is stale (updated {reading.updated_at})")
        return validate_price(reading.price, feed_id)

    def unchecked_price(self, asset: str) -> int:
        """
        Return the latest price of a registered asset without the staleness gate.

        Non-positive prices are still rejected.
        """
        feed_id = self.registry.feed_id(asset)
        reading = self.oracle.get_latest_price(feed_id)
        if reading.is_stale:
            logger.debug("Using stale price from %s for %s", feed_id, asset)
        return validate_price(reading.price, feed_id)

    def to_reference_value(self, asset: str, amount: int) -> int:
        """Value an amount of a registered asset using the staleness-checked price."""
        require_amount(amount)
        return calculate_reference_value(self.price(asset), amount, self.parameters)

    def from_reference_value(self, asset: str, reference_value: int) -> int:
        """Convert a reference value to an amount of a registered asset (unchecked price)."""
        require_amount(reference_value)
        return calculate_asset_amount(self.unchecked_price(asset), reference_value, self.parameters)
