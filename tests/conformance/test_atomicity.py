"""
Atomicity Conformance Tests

INVARIANT: Engine entry points are all-or-nothing.

    ∀ entry point E:
        E succeeds ⟹ every ledger, event and token change made by E is kept
        E fails    ⟹ no ledger, event or token change made by E is visible

A failure at any step (input validation, health check, token call, price read)
leaves the engine, its event log and every journaled token exactly as before.
"""

import pytest
from datetime import timedelta
from hypothesis import given, settings
from hypothesis import strategies as st

from stable_engine import EngineError, BreaksHealthFactor, TransferFailed, StalePrice
from tests.engine_setup import E18, DEPLOYER, EngineSetup, funded_setup, operations, run_operation
from tests.fake_tokens import FailingToken, UnjournaledToken


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(st.lists(operations, min_size=1, max_size=25))
    @settings(max_examples=75, deadline=None)
    def test_failed_operations_leave_no_trace(self, ops):
        """
        PROPERTY: For any operation sequence, each failing operation leaves
        the full engine and token state unchanged.
        """
        setup = funded_setup()
        for op in ops:
            before = setup.state()
            try:
                run_operation(setup, op)
            except EngineError:
                assert setup.state() == before, f"{op} failed but changed state"

    @given(st.lists(operations, min_size=1, max_size=25))
    @settings(max_examples=50, deadline=None)
    def test_guard_always_released(self, ops):
        """
        PROPERTY: After every operation, successful or not, the reentrancy
        guard is free.
        """
        setup = funded_setup()
        for op in ops:
            try:
                run_operation(setup, op)
            except EngineError:
                pass
            assert not setup.engine._guard.locked


class TestAtomicityExamples:
    """Explicit atomicity examples."""

    def test_failed_mint_rolls_back_deposit(self, funded):
        before = funded.state()
        with pytest.raises(BreaksHealthFactor):
            funded.engine.deposit_collateral_and_mint_stable_unit("alice", "WETH", E18, 600 * E18)
        assert funded.state() == before

    def test_failed_redeem_rolls_back_burn(self, healthy_position):
        setup = healthy_position
        setup.approve_stable("alice", 50 * E18)
        before = setup.state()
        with pytest.raises(BreaksHealthFactor):
            setup.engine.redeem_collateral_for_stable_unit("alice", "WETH", E18 // 2, 50 * E18)
        assert setup.state() == before
        assert setup.dsc.total_supply() == 400 * E18

    def test_failed_payout_rolls_back_debit(self):
        weth = FailingToken("WETH", "Wrapped Ether", owner=DEPLOYER)
        setup = EngineSetup(weth=weth)
        setup.fund("alice", E18)
        setup.engine.deposit_collateral("alice", "WETH", E18)
        weth.fail_transfer = True
        before = setup.state()
        with pytest.raises(TransferFailed):
            setup.engine.redeem_collateral("alice", "WETH", E18)
        assert setup.state() == before

    def test_stale_price_rolls_back_liquidation(self, liquidatable):
        setup = liquidatable
        setup.clock.advance_by(timedelta(hours=4))
        before = setup.state()
        with pytest.raises(StalePrice):
            setup.engine.liquidate("bob", "WETH", "alice", 200 * E18)
        assert setup.state() == before

    def test_rejected_events_discarded(self, funded):
        funded.engine.deposit_collateral("alice", "WETH", E18)
        with pytest.raises(BreaksHealthFactor):
            funded.engine.deposit_collateral_and_mint_stable_unit("alice", "WETH", E18, 10_000 * E18)
        assert len(funded.engine.events) == 1

    def test_non_journaled_token_not_restored(self):
        """A collateral token without snapshot/restore keeps its own changes."""
        weth = UnjournaledToken()
        setup = EngineSetup(weth=weth)
        weth.balances["alice"] = E18
        with pytest.raises(BreaksHealthFactor):
            setup.engine.deposit_collateral_and_mint_stable_unit("alice", "WETH", E18, 600 * E18)
        assert setup.engine.get_collateral_balance_of_user("alice", "WETH") == 0
        assert weth.balance_of("engine") == E18
