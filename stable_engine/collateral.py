"""
collateral.py - Per-account, per-asset collateral positions

CollateralLedger owns the mapping account -> asset -> deposited amount and
moves the underlying tokens in and out of engine custody. Every mutation
commits to the ledger and records its event before the token call is made,
so a reentrant caller always observes the updated position.
"""

from __future__ import annotations
import copy
import logging
from typing import Dict

from .core import (
    CollateralDeposited, CollateralRedeemed, CollateralPositions, EventLog,
    Snapshot, TransferFailed,
    checked_sub, require_positive,
)
from .registry import AssetRegistry
from .valuation import ValuationService

logger = logging.getLogger(__name__)


class CollateralLedger:
    """
    Collateral positions held in custody by a single engine.

    Positions are created implicitly on first deposit and never go below
    zero: a debit larger than the position raises BalanceUnderflow.
    """

    def __init__(
        self,
        registry: AssetRegistry,
        valuation: ValuationService,
        custodian: str,
        events: EventLog,
    ):
        """
        Args:
            registry: Accepted collateral assets
            valuation: Price-backed conversions
            custodian: Account that holds deposited tokens (the engine)
            events: Log receiving deposit and redemption events
        """
        self.registry = registry
        self.valuation = valuation
        self.custodian = custodian
        self.events = events
        self._positions: Dict[str, Dict[str, int]] = {}

    # ========================================================================
    # QUERIES
    # ========================================================================

    def balance_of(self, account: str, asset: str) -> int:
        """Deposited amount of an asset (0 if the account never deposited it)."""
        return self._positions.get(account, {}).get(asset, 0)

    def positions(self, account: str) -> CollateralPositions:
        """All non-zero positions of an account."""
        return {
            asset: amount
            for asset, amount in self._positions.get(account, {}).items()
            if amount
        }

    def total_deposited(self, asset: str) -> int:
        """Sum of every account's position in an asset."""
        return sum(held.get(asset, 0) for held in self._positions.values())

    def account_collateral_value(self, account: str) -> int:
        """
        Total reference value of an account's collateral.

        Every registered asset is priced, including those the account does
        not hold, so any stale feed fails the valuation.
        """
        return sum(
            self.valuation.to_reference_value(entry.asset_id, self.balance_of(account, entry.asset_id))
            for entry in self.registry
        )

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def _credit(self, account: str, asset: str, amount: int) -> None:
        held = self._positions.setdefault(account, {})
        held[asset] = held.get(asset, 0) + amount
        logger.debug("Collateral %s/%s +%d -> %d", account, asset, amount, held[asset])

    def _debit(self, account: str, asset: str, amount: int) -> None:
        held = self._positions.setdefault(account, {})
        held[asset] = checked_sub(
            held.get(asset, 0), amount, f"collateral {asset} of {account}"
        )
        logger.debug("Collateral %s/%s -%d -> %d", account, asset, amount, held[asset])

    def deposit(self, account: str, asset: str, amount: int) -> None:
        """
        Credit an account and pull the tokens into custody.

        The token must already allow the custodian to spend amount on the
        account's behalf.

        Raises:
            NeedsMoreThanZero: If amount <= 0
            TokenNotAllowed: If the asset is not registered
            TransferFailed: If the token reports a failed transfer
        """
        require_positive(amount)
        token = self.registry.token(asset)

        self._credit(account, asset, amount)
        self.events.record(CollateralDeposited(account, asset, amount))

        if not token.transfer_from(self.custodian, account, self.custodian, amount):
            raise TransferFailed(f"Transfer of {amount} {asset} from {account} failed")

    def redeem(self, asset: str, amount: int, from_account: str, to_account: str) -> None:
        """
        Debit from_account and pay the tokens out of custody to to_account.

        Used for self-redemption (from_account == to_account) and for
        liquidation seizure (from_account is the liquidated account).

        Raises:
            NeedsMoreThanZero: If amount <= 0
            TokenNotAllowed: If the asset is not registered
            BalanceUnderflow: If amount exceeds from_account's position
            TransferFailed: If the token reports a failed transfer
        """
        require_positive(amount)
        token = self.registry.token(asset)

        self._debit(from_account, asset, amount)
        self.events.record(CollateralRedeemed(from_account, to_account, asset, amount))

        if not token.transfer(self.custodian, to_account, amount):
            raise TransferFailed(f"Transfer of {amount} {asset} to {to_account} failed")

    # ========================================================================
    # JOURNAL
    # ========================================================================

    def snapshot(self) -> Snapshot:
        return copy.deepcopy(self._positions)

    def restore(self, snapshot: Snapshot) -> None:
        self._positions = copy.deepcopy(snapshot)

    def __repr__(self):
        return f"CollateralLedger({len(self._positions)} accounts, {len(self.registry)} assets)"
