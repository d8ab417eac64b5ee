"""
engine_setup.py - Builders shared by engine tests

The standard setup mirrors the two-asset scenario used throughout the tests:
WETH priced at $1000 and USDC priced at $1, both 8-decimal feeds, with the
stable unit owned by the engine.

Conformance tests drive the engine with hypothesis-generated operation
sequences built from `operations` and applied with `run_operation`.
"""

from datetime import datetime
from typing import Dict, Optional

from hypothesis import strategies as st

from stable_engine import (
    AssetRegistry, RegisteredAsset, StableEngine, StalenessCheckedOracle,
    StaticPriceFeed, TokenLedger, ManualClock, EngineParameters, UNLIMITED_ALLOWANCE,
)

ENGINE = "engine"
DEPLOYER = "deployer"

E18 = 10 ** 18
FEED = 10 ** 8

START = datetime(2025, 1, 1, 9, 0, 0)

WETH_PRICE = 1_000 * FEED
USDC_PRICE = 1 * FEED


class EngineSetup:
    """Engine plus every collaborator a test may want to poke at."""

    def __init__(
        self,
        weth: Optional[TokenLedger] = None,
        usdc: Optional[TokenLedger] = None,
        dsc: Optional[TokenLedger] = None,
        parameters: Optional[EngineParameters] = None,
    ):
        self.clock = ManualClock(START)
        self.weth = weth or TokenLedger("WETH", "Wrapped Ether", owner=DEPLOYER)
        self.usdc = usdc or TokenLedger("USDC", "USD Coin", owner=DEPLOYER)
        self.dsc = dsc or TokenLedger("DSC", "Decentralized Stable Coin", owner=DEPLOYER)
        self.eth_feed = StaticPriceFeed(WETH_PRICE, self.clock)
        self.usdc_feed = StaticPriceFeed(USDC_PRICE, self.clock)
        self.feeds: Dict[str, StaticPriceFeed] = {
            "ETH/USD": self.eth_feed,
            "USDC/USD": self.usdc_feed,
        }
        self.registry = AssetRegistry([
            RegisteredAsset("WETH", "ETH/USD", self.weth),
            RegisteredAsset("USDC", "USDC/USD", self.usdc),
        ])
        self.oracle = StalenessCheckedOracle(self.feeds, self.clock)
        self.engine = StableEngine(
            self.registry, self.oracle, self.dsc, address=ENGINE, parameters=parameters,
        )
        self.dsc.transfer_ownership(DEPLOYER, ENGINE)

    def fund(self, account: str, amount: int, asset: str = "WETH") -> None:
        """Mint collateral to an account and approve the engine for it."""
        token = self.registry.token(asset)
        token.mint(DEPLOYER, account, amount)
        token.approve(account, ENGINE, token.allowance(account, ENGINE) + amount)

    def open_position(self, account: str, collateral: int, debt: int, asset: str = "WETH") -> None:
        """Fund an account, deposit its collateral and mint debt against it."""
        self.fund(account, collateral, asset)
        self.engine.deposit_collateral_and_mint_stable_unit(account, asset, collateral, debt)

    def approve_stable(self, account: str, amount: int) -> None:
        self.dsc.approve(account, ENGINE, amount)

    def set_weth_price(self, price: int) -> None:
        """Publish a new WETH price and refresh USDC so both stay fresh."""
        self.eth_feed.update_answer(price)
        self.usdc_feed.update_answer(USDC_PRICE)

    def state(self) -> dict:
        """Every piece of state an engine operation can touch."""
        return {
            "collateral": self.engine.collateral.snapshot(),
            "debt": self.engine.debt.snapshot(),
            "events": list(self.engine.events),
            "weth": self.weth.snapshot(),
            "usdc": self.usdc.snapshot(),
            "dsc": self.dsc.snapshot(),
        }


# =============================================================================
# RANDOMIZED OPERATION SEQUENCES
# =============================================================================

ACCOUNTS = ("alice", "bob", "carol")


def funded_setup() -> EngineSetup:
    """
    Engine where every account holds 10 WETH and 10,000 USDC approved for the
    engine, and has granted the engine an unlimited stable-unit allowance.
    """
    setup = EngineSetup()
    for account in ACCOUNTS:
        setup.fund(account, 10 * E18, "WETH")
        setup.fund(account, 10_000 * E18, "USDC")
        setup.dsc.approve(account, ENGINE, UNLIMITED_ALLOWANCE)
    return setup


_accounts = st.sampled_from(ACCOUNTS)
_assets = st.sampled_from(("WETH", "USDC"))
_collateral = st.integers(min_value=0, max_value=500).map(lambda x: x * 10 ** 16)
_debt = st.integers(min_value=0, max_value=50_000).map(lambda x: x * 10 ** 17)
_prices = st.integers(min_value=100, max_value=3_000).map(lambda p: p * FEED)

operations = st.one_of(
    st.tuples(st.just("deposit"), _accounts, _assets, _collateral),
    st.tuples(st.just("redeem"), _accounts, _assets, _collateral),
    st.tuples(st.just("mint"), _accounts, _debt),
    st.tuples(st.just("burn"), _accounts, _debt),
    st.tuples(st.just("deposit_and_mint"), _accounts, _assets, _collateral, _debt),
    st.tuples(st.just("redeem_for_stable_unit"), _accounts, _assets, _collateral, _debt),
    st.tuples(st.just("liquidate"), _accounts, _accounts, _debt),
    st.tuples(st.just("price"), _prices),
)


def run_operation(setup: EngineSetup, op: tuple) -> None:
    """Apply one generated operation; engine errors propagate."""
    kind, *args = op
    engine = setup.engine
    if kind == "deposit":
        engine.deposit_collateral(*args)
    elif kind == "redeem":
        engine.redeem_collateral(*args)
    elif kind == "mint":
        engine.mint_stable_unit(*args)
    elif kind == "burn":
        engine.burn_stable_unit(*args)
    elif kind == "deposit_and_mint":
        engine.deposit_collateral_and_mint_stable_unit(*args)
    elif kind == "redeem_for_stable_unit":
        engine.redeem_collateral_for_stable_unit(*args)
    elif kind == "liquidate":
        liquidator, account, amount = args
        engine.liquidate(liquidator, "WETH", account, amount)
    elif kind == "price":
        setup.set_weth_price(args[0])
    else:
        raise ValueError(f"Unknown operation {kind}")
