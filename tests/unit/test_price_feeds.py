"""
test_price_feeds.py - Unit tests for price feeds and the oracle adapter

Tests:
- ManualClock only moves forward
- StaticPriceFeed rounds
- TimeSeriesPriceFeed lookup by time
- StalenessCheckedOracle staleness rules
"""

import pytest
from datetime import datetime, timedelta

from stable_engine import (
    ManualClock, StaticPriceFeed, TimeSeriesPriceFeed, StalenessCheckedOracle,
    RoundData, PriceFeed, PriceOracleAdapter, PriceUnavailable, DEFAULT_TIMEOUT,
)

T0 = datetime(2025, 1, 1, 9, 0)


class TestManualClock:
    """Tests for the logical clock."""

    def test_callable(self):
        clock = ManualClock(T0)
        assert clock() == T0
        assert clock.current_time == T0

    def test_advance(self):
        clock = ManualClock(T0)
        clock.advance_time(T0 + timedelta(hours=1))
        assert clock() == T0 + timedelta(hours=1)

    def test_advance_by(self):
        clock = ManualClock(T0)
        clock.advance_by(timedelta(minutes=5))
        assert clock() == T0 + timedelta(minutes=5)

    def test_cannot_move_backwards(self):
        clock = ManualClock(T0)
        with pytest.raises(ValueError, match="backwards"):
            clock.advance_time(T0 - timedelta(seconds=1))


class TestStaticPriceFeed:
    """Tests for the settable feed."""

    def test_initial_round(self):
        clock = ManualClock(T0)
        feed = StaticPriceFeed(2_000 * 10 ** 8, clock)
        data = feed.latest_round_data()
        assert data.round_id == 1
        assert data.answer == 2_000 * 10 ** 8
        assert data.updated_at == T0
        assert data.answered_in_round == 1
        assert feed.decimals == 8

    def test_update_opens_new_round(self):
        clock = ManualClock(T0)
        feed = StaticPriceFeed(2_000 * 10 ** 8, clock)
        clock.advance_by(timedelta(minutes=10))
        feed.update_answer(1_900 * 10 ** 8)
        data = feed.latest_round_data()
        assert data.round_id == 2
        assert data.answer == 1_900 * 10 ** 8
        assert data.updated_at == T0 + timedelta(minutes=10)

    def test_explicit_timestamp(self):
        clock = ManualClock(T0)
        feed = StaticPriceFeed(1, clock)
        feed.update_answer(2, timestamp=T0 - timedelta(days=1))
        assert feed.latest_round_data().updated_at == T0 - timedelta(days=1)

    def test_satisfies_protocol(self):
        assert isinstance(StaticPriceFeed(1, ManualClock(T0)), PriceFeed)


class TestTimeSeriesPriceFeed:
    """Tests for the historical feed."""

    def test_latest_at_or_before_now(self):
        clock = ManualClock(T0 + timedelta(hours=1, minutes=30))
        feed = TimeSeriesPriceFeed(clock, [
            (T0, 100),
            (T0 + timedelta(hours=1), 110),
            (T0 + timedelta(hours=2), 120),
        ])
        data = feed.latest_round_data()
        assert data.answer == 110
        assert data.round_id == 2
        assert data.updated_at == T0 + timedelta(hours=1)

    def test_no_observation_yet(self):
        clock = ManualClock(T0)
        feed = TimeSeriesPriceFeed(clock, [(T0 + timedelta(hours=1), 100)])
        with pytest.raises(PriceUnavailable):
            feed.latest_round_data()

    def test_add_price_keeps_order(self):
        clock = ManualClock(T0 + timedelta(days=1))
        feed = TimeSeriesPriceFeed(clock)
        feed.add_price(T0 + timedelta(hours=2), 120)
        feed.add_price(T0, 100)
        assert feed.get_all_timestamps() == [T0, T0 + timedelta(hours=2)]
        assert feed.latest_round_data().answer == 120

    def test_follows_clock(self):
        clock = ManualClock(T0)
        feed = TimeSeriesPriceFeed(clock, [(T0, 100), (T0 + timedelta(hours=1), 90)])
        assert feed.latest_round_data().answer == 100
        clock.advance_by(timedelta(hours=1))
        assert feed.latest_round_data().answer == 90


class _FixedFeed:
    decimals = 8

    def __init__(self, data):
        self.data = data

    def latest_round_data(self):
        return self.data


class TestStalenessCheckedOracle:
    """Tests for the staleness rules."""

    def test_fresh_reading(self):
        clock = ManualClock(T0)
        oracle = StalenessCheckedOracle({"ETH/USD": StaticPriceFeed(5, clock)}, clock)
        reading = oracle.get_latest_price("ETH/USD")
        assert reading.price == 5
        assert reading.updated_at == T0
        assert reading.is_stale is False

    def test_stale_after_timeout(self):
        clock = ManualClock(T0)
        oracle = StalenessCheckedOracle({"ETH/USD": StaticPriceFeed(5, clock)}, clock)
        clock.advance_by(DEFAULT_TIMEOUT + timedelta(seconds=1))
        assert oracle.get_latest_price("ETH/USD").is_stale is True

    def test_custom_timeout(self):
        clock = ManualClock(T0)
        oracle = StalenessCheckedOracle(
            {"ETH/USD": StaticPriceFeed(5, clock)}, clock, timeout=timedelta(minutes=1)
        )
        clock.advance_by(timedelta(minutes=2))
        assert oracle.get_latest_price("ETH/USD").is_stale is True

    def test_missing_update_time_is_stale(self):
        clock = ManualClock(T0)
        feed = _FixedFeed(RoundData(1, 5, None, None, 1))
        oracle = StalenessCheckedOracle({"X": feed}, clock)
        assert oracle.get_latest_price("X").is_stale is True

    def test_answered_in_earlier_round_is_stale(self):
        clock = ManualClock(T0)
        feed = _FixedFeed(RoundData(3, 5, T0, T0, 2))
        oracle = StalenessCheckedOracle({"X": feed}, clock)
        assert oracle.get_latest_price("X").is_stale is True

    def test_unknown_feed(self):
        clock = ManualClock(T0)
        oracle = StalenessCheckedOracle({}, clock)
        with pytest.raises(PriceUnavailable):
            oracle.get_latest_price("ETH/USD")

    def test_decimals(self):
        clock = ManualClock(T0)
        oracle = StalenessCheckedOracle({"ETH/USD": StaticPriceFeed(5, clock, decimals=6)}, clock)
        assert oracle.get_decimals("ETH/USD") == 6
        assert oracle.feed_ids() == ["ETH/USD"]

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError):
            StalenessCheckedOracle({}, ManualClock(T0), timeout=timedelta(0))

    def test_satisfies_protocol(self):
        clock = ManualClock(T0)
        assert isinstance(StalenessCheckedOracle({}, clock), PriceOracleAdapter)

    def test_engine_rejects_wrong_decimals(self, setup):
        from stable_engine import AssetRegistry, RegisteredAsset, StableEngine
        clock = ManualClock(T0)
        oracle = StalenessCheckedOracle({"ETH/USD": StaticPriceFeed(5, clock, decimals=6)}, clock)
        registry = AssetRegistry([RegisteredAsset("WETH", "ETH/USD", setup.weth)])
        with pytest.raises(ValueError, match="decimals"):
            StableEngine(registry, oracle, setup.dsc)
