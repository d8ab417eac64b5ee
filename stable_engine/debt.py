"""
debt.py - Per-account minted debt

DebtLedger records how many stable units each account has minted. One unit of
debt is one reference-currency unit. The ledger issues and retires stable
units through the StableUnitLedger, which it can do only because the engine
owns the stable unit's mint/burn capability.
"""

from __future__ import annotations
import logging
from typing import Callable, Dict

from .core import (
    MintFailed, Snapshot, TransferFailed,
    checked_sub, require_positive,
)
from .token import StableUnitLedger

logger = logging.getLogger(__name__)

# Called with an account between the debt increase and the mint; raises to abort.
HealthCheck = Callable[[str], None]


class DebtLedger:
    """Minted-debt balances, one per account."""

    def __init__(self, stable_unit: StableUnitLedger, custodian: str):
        """
        Args:
            stable_unit: Ledger of the stable unit (owned by custodian)
            custodian: Account that mints and burns (the engine)
        """
        self.stable_unit = stable_unit
        self.custodian = custodian
        self._minted: Dict[str, int] = {}

    def debt_of(self, account: str) -> int:
        return self._minted.get(account, 0)

    def total_debt(self) -> int:
        return sum(self._minted.values())

    def mint(self, account: str, amount: int, health_check: HealthCheck) -> None:
        """
        Increase an account's debt and issue the stable units to it.

        The health check runs after the debt is recorded and before the
        stable units are issued.

        Raises:
            NeedsMoreThanZero: If amount <= 0
            MintFailed: If the stable-unit ledger reports failure
        """
        require_positive(amount)
        self._minted[account] = self.debt_of(account) + amount
        logger.debug("Debt %s +%d -> %d", account, amount, self._minted[account])

        health_check(account)

        if not self.stable_unit.mint(self.custodian, account, amount):
            raise MintFailed(f"Minting {amount} to {account} failed")

    def burn(self, amount: int, on_behalf_of: str, payer: str) -> None:
        """
        Reduce on_behalf_of's debt, paid with payer's stable units.

        The units are pulled from payer into custody and destroyed. payer must
        have approved the custodian for amount.

        Raises:
            NeedsMoreThanZero: If amount <= 0
            BalanceUnderflow: If amount exceeds on_behalf_of's debt
            TransferFailed: If the stable-unit transfer reports failure
        """
        require_positive(amount)
        self._minted[on_behalf_of] = checked_sub(
            self.debt_of(on_behalf_of), amount, f"debt of {on_behalf_of}"
        )
        logger.debug("Debt %s -%d -> %d (paid by %s)",
                     on_behalf_of, amount, self._minted[on_behalf_of], payer)

        if not self.stable_unit.transfer_from(self.custodian, payer, self.custodian, amount):
            raise TransferFailed(f"Transfer of {amount} stable units from {payer} failed")
        self.stable_unit.burn(self.custodian, amount)

    def snapshot(self) -> Snapshot:
        return dict(self._minted)

    def restore(self, snapshot: Snapshot) -> None:
        self._minted = dict(snapshot)

    def __repr__(self):
        return f"DebtLedger({len(self._minted)} accounts, total={self.total_debt()})"
