"""
engine.py - The overcollateralized stable-unit engine

StableEngine is the externally reachable surface of the system. It is the only
component that mutates collateral and debt, and the sole owner of the stable
unit's mint/burn capability.

Key responsibilities:
    - Deposit and redeem collateral, mint and burn stable units
    - Enforce the minimum health factor after every mutating entry point
    - Liquidate undercollateralized accounts
    - Run every entry point under a reentrancy guard, all-or-nothing across
      the engine's ledgers, its event log and every journaled collaborator
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import timedelta
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, TYPE_CHECKING

from .collateral import CollateralLedger
from .core import (
    AccountInformation, EngineParameters, EventLog,
    BreaksHealthFactor,
    require_positive,
)
from .debt import DebtLedger
from .guards import ReentrancyGuard, atomic
from .health import calculate_health_factor
from .liquidation import LiquidationEngine, LiquidationResult
from .oracle import Clock, PriceFeed, PriceOracleAdapter, StalenessCheckedOracle
from .registry import AssetRegistry
from .token import CollateralAsset, StableUnitLedger
from .valuation import ValuationService

if TYPE_CHECKING:
    from .config import EngineConfig

logger = logging.getLogger(__name__)


class StableEngine:
    """
    Collateral/debt accounting and liquidation engine.

    Every mutating method takes the calling account first. Amounts are
    integers in base units: collateral in the asset's units, debt and values
    in reference-currency units with 18 decimals.

    Thread Safety:
        Not thread-safe. Entry points are serialized by a reentrancy guard
        that rejects nested calls rather than waiting for them.

    Example:
        engine = StableEngine(registry, oracle, dsc, address="engine")
        dsc.transfer_ownership("deployer", "engine")

        weth.approve("alice", "engine", 10 * 10**18)
        engine.deposit_collateral_and_mint_stable_unit("alice", "WETH", 10 * 10**18, 5_000 * 10**18)
    """

    def __init__(
        self,
        registry: AssetRegistry,
        oracle: PriceOracleAdapter,
        stable_unit: StableUnitLedger,
        address: str = "engine",
        parameters: Optional[EngineParameters] = None,
    ):
        """
        Create an engine.

        Args:
            registry: Fixed set of accepted collateral assets
            oracle: Price adapter valuing the registered assets
            stable_unit: Ledger of the stable unit; its ownership must be
                transferred to address before anything can be minted
            address: Account identity of the engine (custodian of collateral)
            parameters: Solvency and liquidation parameters (default constants)

        Raises:
            ValueError: If a registered feed reports unexpected decimals
        """
        self.address = address
        self.parameters = parameters or EngineParameters()
        self.registry = registry
        self.oracle = oracle
        self.stable_unit = stable_unit
        self._validate_feeds()

        self.events = EventLog()
        self.valuation = ValuationService(registry, oracle, self.parameters)
        self.collateral = CollateralLedger(registry, self.valuation, address, self.events)
        self.debt = DebtLedger(stable_unit, address)
        self.liquidation = LiquidationEngine(
            self.collateral,
            self.debt,
            self.valuation,
            health_factor_of=self.get_health_factor,
            check_health=self._revert_if_health_factor_is_broken,
            parameters=self.parameters,
        )
        self._guard = ReentrancyGuard(address)

    @classmethod
    def from_config(
        cls,
        config: 'EngineConfig',
        tokens: Mapping[str, CollateralAsset],
        feeds: Mapping[str, PriceFeed],
        stable_unit: StableUnitLedger,
        clock: Clock,
        address: Optional[str] = None,
    ) -> StableEngine:
        """
        Build an engine from a loaded configuration.

        Args:
            config: Loaded EngineConfig
            tokens: Mapping from asset id to collateral token
            feeds: Mapping from feed id to price feed
            stable_unit: Ledger of the stable unit
            clock: Time source for the staleness check
            address: Account identity of the engine; defaults to config.address
        """
        registry = AssetRegistry.from_config(config.collateral, tokens)
        oracle = StalenessCheckedOracle(
            feeds, clock, timedelta(seconds=config.oracle.timeout_seconds)
        )
        return cls(registry, oracle, stable_unit, address or config.address, config.parameters)

    def _validate_feeds(self) -> None:
        for entry in self.registry:
            decimals = self.oracle.get_decimals(entry.feed_id)
            if decimals != self.parameters.feed_decimals:
                raise ValueError(
                    f"Feed {entry.feed_id} for {entry.asset_id} reports {decimals} decimals, "
                    f"expected {self.parameters.feed_decimals}"
                )

    # ========================================================================
    # GUARDS
    # ========================================================================

    def _participants(self) -> List[Any]:
        return [self.collateral, self.debt, self.events, self.stable_unit, *self.registry.tokens()]

    @contextmanager
    def _entry_point(self, operation: str) -> Iterator[None]:
        """Hold the reentrancy guard and run the block as one unit of work."""
        with self._guard.hold(operation), atomic(self._participants(), operation):
            yield

    def _revert_if_health_factor_is_broken(self, account: str) -> None:
        health_factor = self.get_health_factor(account)
        if health_factor < self.parameters.min_health_factor:
            raise BreaksHealthFactor(account, health_factor)

    # ========================================================================
    # COLLATERAL
    # ========================================================================

    def deposit_collateral(self, caller: str, asset: str, amount: int) -> None:
        """
        Deposit collateral into engine custody.

        caller must have approved the engine to spend amount of asset.

        Raises:
            NeedsMoreThanZero, TokenNotAllowed: Invalid input
            TransferFailed: The token transfer failed
            BreaksHealthFactor: caller is still below the minimum afterwards
        """
        with self._entry_point("deposit_collateral"):
            self.collateral.deposit(caller, asset, amount)
            self._revert_if_health_factor_is_broken(caller)
        logger.info("%s deposited %d %s", caller, amount, asset)

    def redeem_collateral(self, caller: str, asset: str, amount: int) -> None:
        """
        Withdraw collateral back to caller.

        Raises:
            NeedsMoreThanZero, TokenNotAllowed: Invalid input
            BalanceUnderflow: amount exceeds caller's position
            BreaksHealthFactor: The withdrawal would leave caller undercollateralized
        """
        with self._entry_point("redeem_collateral"):
            self.collateral.redeem(asset, amount, caller, caller)
            self._revert_if_health_factor_is_broken(caller)
        logger.info("%s redeemed %d %s", caller, amount, asset)

    # ========================================================================
    # DEBT
    # ========================================================================

    def mint_stable_unit(self, caller: str, amount: int) -> None:
        """
        Mint stable units against caller's collateral.

        Raises:
            NeedsMoreThanZero: amount <= 0
            BreaksHealthFactor: The new debt exceeds what the collateral supports
            MintFailed: The stable-unit ledger rejected the mint
        """
        with self._entry_point("mint_stable_unit"):
            self.debt.mint(caller, amount, self._revert_if_health_factor_is_broken)
        logger.info("%s minted %d", caller, amount)

    def burn_stable_unit(self, caller: str, amount: int) -> None:
        """
        Repay caller's own debt with caller's stable units.

        caller must have approved the engine to spend amount of the stable unit.

        Raises:
            NeedsMoreThanZero: amount <= 0
            BalanceUnderflow: amount exceeds caller's debt
        """
        with self._entry_point("burn_stable_unit"):
            self.debt.burn(amount, caller, caller)
            self._revert_if_health_factor_is_broken(caller)
        logger.info("%s burned %d", caller, amount)

    # ========================================================================
    # COMPOSITE OPERATIONS
    # ========================================================================

    def deposit_collateral_and_mint_stable_unit(
        self,
        caller: str,
        asset: str,
        collateral_amount: int,
        mint_amount: int,
    ) -> None:
        """
        Deposit collateral and mint against it in one step.

        If the mint fails its health check, the deposit is undone as well.
        """
        require_positive(collateral_amount)
        require_positive(mint_amount)
        self.registry.require(asset)
        with self._entry_point("deposit_collateral_and_mint_stable_unit"):
            self.collateral.deposit(caller, asset, collateral_amount)
            self.debt.mint(caller, mint_amount, self._revert_if_health_factor_is_broken)
        logger.info("%s deposited %d %s and minted %d", caller, collateral_amount, asset, mint_amount)

    def redeem_collateral_for_stable_unit(
        self,
        caller: str,
        asset: str,
        collateral_amount: int,
        debt_amount: int,
    ) -> None:
        """
        Repay debt and withdraw collateral in one step.

        The debt is burned before the collateral is released, so the health
        check sees the reduced debt and the reduced collateral together.
        """
        require_positive(collateral_amount)
        require_positive(debt_amount)
        self.registry.require(asset)
        with self._entry_point("redeem_collateral_for_stable_unit"):
            self.debt.burn(debt_amount, caller, caller)
            self.collateral.redeem(asset, collateral_amount, caller, caller)
            self._revert_if_health_factor_is_broken(caller)
        logger.info("%s burned %d and redeemed %d %s", caller, debt_amount, collateral_amount, asset)

    # ========================================================================
    # LIQUIDATION
    # ========================================================================

    def liquidate(self, caller: str, asset: str, account: str, debt_to_cover: int) -> LiquidationResult:
        """
        Cover part of an undercollateralized account's debt for a share of its collateral.

        caller must hold debt_to_cover stable units and have approved the
        engine to spend them. See liquidation.LiquidationEngine for the
        full sequence and failure modes.
        """
        with self._entry_point("liquidate"):
            return self.liquidation.liquidate(caller, asset, account, debt_to_cover)

    # ========================================================================
    # READ-ONLY QUERIES
    # ========================================================================

    def get_account_information(self, account: str) -> AccountInformation:
        """Debt and collateral value of an account."""
        return AccountInformation(
            total_minted=self.debt.debt_of(account),
            collateral_value=self.collateral.account_collateral_value(account),
        )

    def get_account_collateral_value(self, account: str) -> int:
        return self.collateral.account_collateral_value(account)

    def get_health_factor(self, account: str) -> int:
        info = self.get_account_information(account)
        return calculate_health_factor(info.total_minted, info.collateral_value, self.parameters)

    def calculate_health_factor(self, total_minted: int, collateral_value: int) -> int:
        return calculate_health_factor(total_minted, collateral_value, self.parameters)

    def get_reference_value(self, asset: str, amount: int) -> int:
        """Value of amount of asset, using the staleness-checked price."""
        return self.valuation.to_reference_value(asset, amount)

    def get_asset_amount_from_reference_value(self, asset: str, reference_value: int) -> int:
        """Amount of asset worth reference_value, using the unchecked price."""
        return self.valuation.from_reference_value(asset, reference_value)

    def get_collateral_tokens(self) -> Tuple[str, ...]:
        return self.registry.asset_ids()

    def get_collateral_balance_of_user(self, account: str, asset: str) -> int:
        return self.collateral.balance_of(account, asset)

    def get_collateral_token_price_feed(self, asset: str) -> str:
        return self.registry.feed_id(asset)

    def get_stable_unit(self) -> StableUnitLedger:
        return self.stable_unit

    def get_precision(self) -> int:
        return self.parameters.precision

    def get_additional_feed_precision(self) -> int:
        return self.parameters.additional_feed_precision

    def get_liquidation_threshold(self) -> int:
        return self.parameters.liquidation_threshold

    def get_liquidation_precision(self) -> int:
        return self.parameters.liquidation_precision

    def get_liquidation_bonus(self) -> int:
        return self.parameters.liquidation_bonus

    def get_min_health_factor(self) -> int:
        return self.parameters.min_health_factor

    def verify_custody(self) -> Dict[str, Any]:
        """
        Verify that custody balances match the ledgers.

        For every registered asset the engine's token balance must equal the
        sum of all collateral positions, and the stable unit's total supply
        must equal the sum of all debt (when the ledger reports a supply).

        Returns:
            Dict with keys:
            - 'valid': bool - True if every check holds
            - 'custody': Dict[str, int] - Engine token balance per asset
            - 'discrepancies': List[Dict] - unit, expected, actual for each mismatch
        """
        custody = {}
        discrepancies = []

        for entry in self.registry:
            held = entry.token.balance_of(self.address)
            custody[entry.asset_id] = held
            expected = self.collateral.total_deposited(entry.asset_id)
            if held != expected:
                discrepancies.append({'unit': entry.asset_id, 'expected': expected, 'actual': held})

        total_supply = getattr(self.stable_unit, 'total_supply', None)
        if callable(total_supply):
            supply = total_supply()
            expected = self.debt.total_debt()
            if supply != expected:
                discrepancies.append({'unit': 'stable_unit', 'expected': expected, 'actual': supply})

        return {
            'valid': len(discrepancies) == 0,
            'custody': custody,
            'discrepancies': discrepancies,
        }

    def __repr__(self):
        return f"StableEngine({self.address}, {self.registry!r})"
