"""
Core types and pure helpers for the stable-unit engine.

This module provides the foundational pieces shared by every component:
1. Constants: fixed-point scales, liquidation parameters, sentinel values
2. EngineParameters: the immutable parameter set an engine is built with
3. Exceptions: EngineError and the domain-specific failure taxonomy
4. Events and read models: CollateralDeposited, CollateralRedeemed, AccountInformation
5. Checked arithmetic: require_positive and checked_sub

All amounts are integers in fixed-point base units. A balance decrement that
would go below zero raises BalanceUnderflow; nothing in the engine wraps or
saturates.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Union


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed-point scale for reference-currency values and health factors (18 decimals).
PRECISION = 10 ** 18

# Price feeds report 8 decimals; this lifts a feed answer to PRECISION.
FEED_DECIMALS = 8
FEED_PRECISION = 10 ** FEED_DECIMALS
ADDITIONAL_FEED_PRECISION = PRECISION // FEED_PRECISION

# Collateral amounts are valued as 18-decimal base units.
COLLATERAL_DECIMALS = 18

# Only LIQUIDATION_THRESHOLD / LIQUIDATION_PRECISION of collateral value counts
# toward solvency (50% -> 200% overcollateralization).
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100

# Extra collateral paid to a liquidator, as a percentage of the covered debt.
LIQUIDATION_BONUS = 10

MIN_HEALTH_FACTOR = PRECISION

# Health factor of an account with no debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from asset id to deposited amount for a single account.
CollateralPositions = Dict[str, int]

# Opaque snapshot taken by a journaled component and handed back to restore().
Snapshot = Any


# ============================================================================
# PARAMETERS
# ============================================================================

@dataclass(frozen=True, slots=True)
class EngineParameters:
    """
    Immutable solvency and liquidation parameters of an engine.

    Set once at construction and never changed. The defaults are the
    module-level constants.

    Attributes:
        precision: Fixed-point scale of values and health factors
        additional_feed_precision: Multiplier lifting a feed answer to precision
        feed_decimals: Decimals every registered price feed must report
        liquidation_threshold: Percentage of collateral value counted toward solvency
        liquidation_precision: Denominator of threshold and bonus percentages
        liquidation_bonus: Liquidator incentive as a percentage of covered debt
        min_health_factor: Health factor below which an account is liquidatable
    """
    precision: int = PRECISION
    additional_feed_precision: int = ADDITIONAL_FEED_PRECISION
    feed_decimals: int = FEED_DECIMALS
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_precision: int = LIQUIDATION_PRECISION
    liquidation_bonus: int = LIQUIDATION_BONUS
    min_health_factor: int = MIN_HEALTH_FACTOR

    def __post_init__(self):
        for name in (
            'precision', 'additional_feed_precision', 'feed_decimals',
            'liquidation_threshold', 'liquidation_precision',
            'liquidation_bonus', 'min_health_factor',
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an int, got {type(value).__name__}")
        if self.precision <= 0:
            raise ValueError(f"precision must be positive, got {self.precision}")
        if self.feed_decimals < 0:
            raise ValueError(f"feed_decimals cannot be negative, got {self.feed_decimals}")
        if self.additional_feed_precision * 10 ** self.feed_decimals != self.precision:
            raise ValueError(
                f"additional_feed_precision ({self.additional_feed_precision}) does not lift "
                f"{self.feed_decimals}-decimal prices to precision {self.precision}"
            )
        if self.liquidation_precision <= 0:
            raise ValueError(
                f"liquidation_precision must be positive, got {self.liquidation_precision}"
            )
        if not 0 < self.liquidation_threshold <= self.liquidation_precision:
            raise ValueError(
                f"liquidation_threshold must be in (0, {self.liquidation_precision}], "
                f"got {self.liquidation_threshold}"
            )
        if self.liquidation_bonus < 0:
            raise ValueError(f"liquidation_bonus cannot be negative, got {self.liquidation_bonus}")
        if self.min_health_factor <= 0:
            raise ValueError(f"min_health_factor must be positive, got {self.min_health_factor}")


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine-related errors."""
    pass


# --- Input validation: raised before any state change -----------------------

class InputError(EngineError):
    """Raised when caller-supplied arguments are rejected."""
    pass


class NeedsMoreThanZero(InputError):
    """Raised when an amount is zero or negative."""
    pass


class InvalidAmount(InputError):
    """Raised when an amount is not an integer number of base units."""
    pass


class TokenNotAllowed(InputError):
    """Raised when an asset is not in the engine's registered collateral set."""

    def __init__(self, asset: str):
        super().__init__(f"Asset {asset!r} is not registered as collateral")
        self.asset = asset


class ZeroAddress(InputError):
    """Raised when the zero address is used as a recipient."""
    pass


# --- Underflow: checked subtraction failures --------------------------------

class BalanceUnderflow(EngineError):
    """Raised when a balance decrement exceeds the balance."""
    pass


class BurnAmountExceedsBalance(BalanceUnderflow):
    """Raised when burning more stable units than the burner holds."""
    pass


class InsufficientBalance(BalanceUnderflow):
    """Raised when a token transfer exceeds the sender's balance."""
    pass


class InsufficientAllowance(BalanceUnderflow):
    """Raised when transfer_from exceeds the spender's allowance."""
    pass


# --- Solvency ---------------------------------------------------------------

class SolvencyError(EngineError):
    """Raised when a post-condition health check fails."""
    pass


class BreaksHealthFactor(SolvencyError):
    """Raised when an operation would leave an account below the minimum health factor."""

    def __init__(self, account: str, health_factor: int):
        super().__init__(f"Health factor of {account} would be {health_factor}")
        self.account = account
        self.health_factor = health_factor


# --- External dependencies --------------------------------------------------

class ExternalCallError(EngineError):
    """Raised when a collaborator (price feed, token ledger) fails."""
    pass


class StalePrice(ExternalCallError):
    """Raised when a price reading is flagged stale."""
    pass


class InvalidPrice(ExternalCallError):
    """Raised when a price is not a positive integer."""
    pass


class PriceUnavailable(ExternalCallError):
    """Raised when a feed has no observation to report."""
    pass


class TransferFailed(ExternalCallError):
    """Raised when a token transfer reports failure."""
    pass


class MintFailed(ExternalCallError):
    """Raised when the stable-unit ledger reports a failed mint."""
    pass


# --- Liquidation ------------------------------------------------------------

class LiquidationError(EngineError):
    """Base exception for liquidation-specific rejections."""
    pass


class HealthFactorOk(LiquidationError):
    """Raised when the liquidation target is not below the minimum health factor."""

    def __init__(self, account: str, health_factor: int):
        super().__init__(f"{account} is not liquidatable (health factor {health_factor})")
        self.account = account
        self.health_factor = health_factor


class HealthFactorNotImproved(LiquidationError):
    """Raised when a liquidation does not strictly raise the target's health factor."""

    def __init__(self, account: str, starting: int, ending: int):
        super().__init__(
            f"Liquidation of {account} did not improve health factor ({starting} -> {ending})"
        )
        self.account = account
        self.starting = starting
        self.ending = ending


# --- Guards -----------------------------------------------------------------

class ReentrantCall(EngineError):
    """Raised when a call re-enters the engine while another entry point is running."""
    pass


class NotOwner(EngineError):
    """Raised when a caller other than the stored owner invokes an owner-gated operation."""
    pass


# ============================================================================
# EVENTS AND READ MODELS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    """Collateral credited to an account."""
    account: str
    asset: str
    amount: int

    def __repr__(self) -> str:
        return f"CollateralDeposited({self.amount} {self.asset} by {self.account})"


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """Collateral debited from one account and paid out to another (or the same) account."""
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int

    def __repr__(self) -> str:
        return (
            f"CollateralRedeemed({self.amount} {self.asset}: "
            f"{self.redeemed_from}→{self.redeemed_to})"
        )


@dataclass(frozen=True, slots=True)
class AccountInformation:
    """Debt and collateral value of an account at one instant."""
    total_minted: int
    collateral_value: int


EngineEvent = Union[CollateralDeposited, CollateralRedeemed]


class EventLog:
    """
    Append-only record of engine events.

    Journaled: events recorded by an operation that is later rolled back are
    discarded with it.
    """

    def __init__(self):
        self._events: List[EngineEvent] = []

    def record(self, event: EngineEvent) -> None:
        self._events.append(event)

    def __iter__(self) -> Iterator[EngineEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def __getitem__(self, index):
        return self._events[index]

    def snapshot(self) -> Snapshot:
        return len(self._events)

    def restore(self, snapshot: Snapshot) -> None:
        del self._events[snapshot:]

    def __repr__(self) -> str:
        return f"EventLog({len(self._events)} events)"


# ============================================================================
# CHECKED ARITHMETIC
# ============================================================================

def _require_int(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an int, got {type(amount).__name__}")
    return amount


def require_amount(amount: Any) -> int:
    """
    Validate that amount is a non-negative integer number of base units.

    Raises:
        InvalidAmount: If amount is not an int (bools are rejected) or is negative
    """
    _require_int(amount)
    if amount < 0:
        raise InvalidAmount(f"Amount cannot be negative, got {amount}")
    return amount


def require_positive(amount: Any) -> int:
    """
    Validate that amount is a strictly positive integer.

    Raises:
        InvalidAmount: If amount is not an int
        NeedsMoreThanZero: If amount <= 0
    """
    _require_int(amount)
    if amount <= 0:
        raise NeedsMoreThanZero(f"Amount must be more than zero, got {amount}")
    return amount


def checked_sub(balance: int, amount: int, what: str, error: type = BalanceUnderflow) -> int:
    """
    Subtract amount from balance, failing instead of going negative.

    Args:
        balance: Current balance
        amount: Amount to remove
        what: Description used in the error message
        error: BalanceUnderflow subclass to raise

    Raises:
        error: If amount exceeds balance
    """
    if amount > balance:
        raise error(f"{what}: cannot remove {amount} from balance {balance}")
    return balance - amount
