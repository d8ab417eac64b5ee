"""
token.py - Fungible token ledgers

TokenLedger is an in-memory fungible-balance ledger used both for the stable
unit and for collateral assets. Minting and burning are gated by a single
stored owner identity: every gated call compares the caller with it. The
engine receives ownership of the stable unit at deployment and is then the
only account that can change its supply.

Protocols:
- CollateralAsset: what the engine needs from a collateral token
- StableUnitLedger: what the engine needs from the stable unit

Every mutating method takes the calling account explicitly as its first
argument.
"""

from __future__ import annotations
from collections import defaultdict
import logging
from typing import Dict, Protocol, Tuple, runtime_checkable

from .core import (
    ZERO_ADDRESS,
    BurnAmountExceedsBalance, InsufficientAllowance, InsufficientBalance,
    NotOwner, ZeroAddress,
    Snapshot, checked_sub, require_amount, require_positive,
)

logger = logging.getLogger(__name__)

# An allowance of this size is never decremented.
UNLIMITED_ALLOWANCE = 2 ** 256 - 1


@runtime_checkable
class CollateralAsset(Protocol):
    """Protocol for a collateral token the engine custodies."""

    def transfer_from(self, caller: str, sender: str, recipient: str, amount: int) -> bool:
        ...

    def transfer(self, caller: str, recipient: str, amount: int) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...


@runtime_checkable
class StableUnitLedger(Protocol):
    """Protocol for the stable-unit ledger; mint and burn are owner-gated."""

    def mint(self, caller: str, to: str, amount: int) -> bool:
        ...

    def burn(self, caller: str, amount: int) -> None:
        ...

    def transfer_from(self, caller: str, sender: str, recipient: str, amount: int) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...


class TokenLedger:
    """
    Fungible-balance ledger with owner-gated supply changes.

    Attributes:
        symbol: Ticker, also used as the asset id when registered as collateral
        name: Human-readable name
        decimals: Display decimals of base units
        owner: The only account allowed to mint and burn

    Example:
        dsc = TokenLedger("DSC", "Decentralized Stable Coin", owner="deployer")
        dsc.transfer_ownership("deployer", "engine")
    """

    def __init__(self, symbol: str, name: str, owner: str, decimals: int = 18):
        if not symbol or not symbol.strip():
            raise ValueError("symbol cannot be empty")
        if not owner or owner == ZERO_ADDRESS:
            raise ZeroAddress("Token owner cannot be the zero address")
        self.symbol = symbol
        self.name = name
        self.decimals = decimals
        self.owner = owner
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str], int] = defaultdict(int)
        self._total_supply = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def total_supply(self) -> int:
        return self._total_supply

    def allowance(self, holder: str, spender: str) -> int:
        return self._allowances.get((holder, spender), 0)

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner of {self.symbol}")

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Hand the mint/burn capability to another account."""
        self._only_owner(caller)
        if not new_owner or new_owner == ZERO_ADDRESS:
            raise ZeroAddress("New owner cannot be the zero address")
        logger.info("%s ownership: %s -> %s", self.symbol, self.owner, new_owner)
        self.owner = new_owner

    # ------------------------------------------------------------------
    # Movement
    # ------------------------------------------------------------------

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if not recipient or recipient == ZERO_ADDRESS:
            raise ZeroAddress(f"Cannot transfer {self.symbol} to the zero address")
        self._balances[sender] = checked_sub(
            self.balance_of(sender), amount, f"{self.symbol} balance of {sender}",
            InsufficientBalance,
        )
        self._balances[recipient] += amount

    def approve(self, caller: str, spender: str, amount: int) -> bool:
        require_amount(amount)
        self._allowances[(caller, spender)] = amount
        return True

    def transfer(self, caller: str, recipient: str, amount: int) -> bool:
        require_amount(amount)
        self._move(caller, recipient, amount)
        return True

    def transfer_from(self, caller: str, sender: str, recipient: str, amount: int) -> bool:
        """
        Move tokens on behalf of sender, spending caller's allowance.

        Raises:
            InsufficientAllowance: If caller's allowance from sender is too small
            InsufficientBalance: If sender's balance is too small
        """
        require_amount(amount)
        current = self.allowance(sender, caller)
        if current != UNLIMITED_ALLOWANCE:
            self._allowances[(sender, caller)] = checked_sub(
                current, amount, f"{self.symbol} allowance {sender}->{caller}",
                InsufficientAllowance,
            )
        self._move(sender, recipient, amount)
        return True

    # ------------------------------------------------------------------
    # Supply (owner only)
    # ------------------------------------------------------------------

    def mint(self, caller: str, to: str, amount: int) -> bool:
        self._only_owner(caller)
        if not to or to == ZERO_ADDRESS:
            raise ZeroAddress(f"Cannot mint {self.symbol} to the zero address")
        require_positive(amount)
        self._balances[to] += amount
        self._total_supply += amount
        return True

    def burn(self, caller: str, amount: int) -> None:
        """
        Destroy amount of the caller's own balance.

        Raises:
            NotOwner: If caller is not the owner
            NeedsMoreThanZero: If amount <= 0
            BurnAmountExceedsBalance: If amount exceeds caller's balance
        """
        self._only_owner(caller)
        require_positive(amount)
        self._balances[caller] = checked_sub(
            self.balance_of(caller), amount, f"{self.symbol} burn by {caller}",
            BurnAmountExceedsBalance,
        )
        self._total_supply -= amount

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    def snapshot(self) -> Snapshot:
        return (dict(self._balances), dict(self._allowances), self._total_supply, self.owner)

    def restore(self, snapshot: Snapshot) -> None:
        balances, allowances, total_supply, owner = snapshot
        self._balances = defaultdict(int, balances)
        self._allowances = defaultdict(int, allowances)
        self._total_supply = total_supply
        self.owner = owner

    def __repr__(self):
        return f"TokenLedger({self.symbol}, supply={self._total_supply}, owner={self.owner})"
