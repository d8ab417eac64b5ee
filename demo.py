#!/usr/bin/env python3
"""
demo.py - Walkthrough: Collateral, Debt and Liquidation Step by Step

Builds an engine from config.example.yaml and walks one account from a
healthy position into liquidation. Press Enter to advance.

WHAT YOU'LL SEE:
  1: Setup            - Tokens, feeds, registry, engine ownership of the stable unit
  2: Deposit and mint - 1 WETH at $1000, 400 stable units, health factor 1.25
  3: Rejections       - Over-minting fails and leaves no trace
  4: Price drop       - WETH falls to $700, health factor 0.875
  5: Liquidation      - A liquidator covers 200 and receives WETH plus a 10% bonus
  6: Stale prices     - Every health computation stops when a feed goes quiet

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
import sys

from stable_engine import (
    StableEngine, TokenLedger, StaticPriceFeed, ManualClock,
    EngineError, StalePrice,
    load_config, configure_logging,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Amounts used by the walkthrough. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    config_path: Path = Path(__file__).resolve().parent / "config.example.yaml"

    weth_price: int = 1_000 * 10**8
    wbtc_price: int = 30_000 * 10**8
    crashed_weth_price: int = 700 * 10**8

    alice_collateral: int = 1 * 10**18
    alice_mint: int = 400 * 10**18

    liquidator_collateral: int = 10 * 10**18
    liquidator_mint: int = 200 * 10**18
    debt_to_cover: int = 200 * 10**18


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with its objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def fmt(amount: int, decimals: int = 18) -> str:
    """Render a fixed-point integer with its decimals."""
    whole, frac = divmod(amount, 10 ** decimals)
    return f"{whole:,}.{frac:0{decimals}d}"


def show_account(engine: StableEngine, account: str):
    info = engine.get_account_information(account)
    print(f"  {account:<12} debt={fmt(info.total_minted)}  "
          f"collateral value={fmt(info.collateral_value)}  "
          f"health factor={fmt(engine.get_health_factor(account))}")


# ============================================================================
# STEPS
# ============================================================================

def step_01_setup():
    step_header(1, "Setup",
        "Deploy tokens and feeds, build the engine, hand it the stable unit.")

    config = load_config(CONFIG.config_path)
    configure_logging(config.log_level)

    clock = ManualClock(CONFIG.start_time)
    weth = TokenLedger("WETH", "Wrapped Ether", owner="deployer")
    wbtc = TokenLedger("WBTC", "Wrapped Bitcoin", owner="deployer")
    dsc = TokenLedger("DSC", "Decentralized Stable Coin", owner="deployer")
    feeds = {
        "ETH/USD": StaticPriceFeed(CONFIG.weth_price, clock),
        "BTC/USD": StaticPriceFeed(CONFIG.wbtc_price, clock),
    }

    engine = StableEngine.from_config(
        config, {"WETH": weth, "WBTC": wbtc}, feeds, dsc, clock,
    )
    dsc.transfer_ownership("deployer", engine.address)

    for account, amount in (("alice", CONFIG.alice_collateral),
                            ("liquidator", CONFIG.liquidator_collateral)):
        weth.mint("deployer", account, amount)
        weth.approve(account, engine.address, amount)

    print(f"  Collateral:        {engine.get_collateral_tokens()}")
    print(f"  Threshold:         {engine.get_liquidation_threshold()}%")
    print(f"  Liquidation bonus: {engine.get_liquidation_bonus()}%")
    print(f"  Stable unit owner: {dsc.owner}")
    return engine, clock, feeds, weth, dsc


def step_02_deposit_and_mint(engine, dsc):
    step_header(2, "Deposit and Mint",
        "Lock 1 WETH and mint 400 stable units against it.")

    engine.deposit_collateral_and_mint_stable_unit(
        "alice", "WETH", CONFIG.alice_collateral, CONFIG.alice_mint)
    engine.deposit_collateral_and_mint_stable_unit(
        "liquidator", "WETH", CONFIG.liquidator_collateral, CONFIG.liquidator_mint)

    show_account(engine, "alice")
    show_account(engine, "liquidator")
    print(f"\n  DSC supply: {fmt(dsc.total_supply())}")


def step_03_rejections(engine):
    step_header(3, "Rejections",
        "A mint that would break the health factor is rejected as a whole.")

    events_before = len(engine.events)
    try:
        engine.mint_stable_unit("alice", 200 * 10**18)
    except EngineError as exc:
        print(f"  Rejected: {type(exc).__name__}: {exc}")
    show_account(engine, "alice")
    print(f"  Events recorded by the failed call: {len(engine.events) - events_before}")


def step_04_price_drop(engine, feeds):
    step_header(4, "Price Drop",
        "WETH falls to $700 and alice becomes liquidatable.")

    feeds["ETH/USD"].update_answer(CONFIG.crashed_weth_price)
    feeds["BTC/USD"].update_answer(CONFIG.wbtc_price)
    show_account(engine, "alice")


def step_05_liquidation(engine, weth, dsc):
    step_header(5, "Liquidation",
        "Cover 200 of alice's debt and collect WETH worth 220.")

    dsc.approve("liquidator", engine.address, CONFIG.debt_to_cover)
    result = engine.liquidate("liquidator", "WETH", "alice", CONFIG.debt_to_cover)

    print(f"  Debt covered:      {fmt(result.debt_covered)}")
    print(f"  Collateral seized: {fmt(result.collateral_seized)} WETH")
    print(f"  Bonus:             {fmt(result.bonus_collateral)} WETH")
    print(f"  Health factor:     {fmt(result.starting_health_factor)} -> "
          f"{fmt(result.ending_health_factor)}")
    print(f"  Liquidator WETH:   {fmt(weth.balance_of('liquidator'))}")
    show_account(engine, "alice")

    custody = engine.verify_custody()
    print(f"\n  Custody matches ledgers: {custody['valid']}")


def step_06_stale_prices(engine, clock):
    step_header(6, "Stale Prices",
        "Four hours without a price update halts every health computation.")

    clock.advance_by(timedelta(hours=4))
    try:
        engine.get_health_factor("alice")
    except StalePrice as exc:
        print(f"  Rejected: {exc}")


def main():
    """Run the complete walkthrough."""
    print("=" * 70)
    print("       STABLE ENGINE - WALKTHROUGH")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    engine, clock, feeds, weth, dsc = step_01_setup()
    wait_for_enter()

    step_02_deposit_and_mint(engine, dsc)
    wait_for_enter()

    step_03_rejections(engine)
    wait_for_enter()

    step_04_price_drop(engine, feeds)
    wait_for_enter()

    step_05_liquidation(engine, weth, dsc)
    wait_for_enter()

    step_06_stale_prices(engine, clock)

    print("\n" + "=" * 70)
    print("       WALKTHROUGH COMPLETE")
    print("=" * 70)


if __name__ == "__main__":
    main()
