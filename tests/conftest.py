"""
conftest.py - Shared pytest fixtures for engine tests

Provides common fixtures used across unit, conformance and functional tests:
- The standard two-asset engine (WETH at $1000, USDC at $1)
- Funded accounts and open positions
- The liquidatable scenario after WETH falls to $700
"""

import pytest

from stable_engine import EngineParameters
from tests.engine_setup import E18, EngineSetup


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def parameters():
    """Default engine parameters."""
    return EngineParameters()


@pytest.fixture
def setup():
    """Fresh two-asset engine with no positions."""
    return EngineSetup()


@pytest.fixture
def engine(setup):
    return setup.engine


@pytest.fixture
def funded(setup):
    """alice and bob each hold 10 WETH approved for the engine."""
    setup.fund("alice", 10 * E18)
    setup.fund("bob", 10 * E18)
    return setup


# =============================================================================
# POSITION FIXTURES
# =============================================================================

@pytest.fixture
def healthy_position(setup):
    """alice: 1 WETH deposited at $1000, 400 minted (health factor 1.25)."""
    setup.open_position("alice", 1 * E18, 400 * E18)
    return setup


@pytest.fixture
def liquidatable(healthy_position):
    """
    alice's position after WETH falls to $700 (health factor 0.875).

    bob holds 10 WETH of collateral, 200 minted before the drop, and has
    approved the engine to burn his 200 stable units.
    """
    setup = healthy_position
    setup.open_position("bob", 10 * E18, 200 * E18)
    setup.set_weth_price(700 * 10**8)
    setup.approve_stable("bob", 200 * E18)
    return setup
