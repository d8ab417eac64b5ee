"""
oracle.py - Price feeds and the staleness-checked oracle adapter

Provides the price infrastructure the engine values collateral with.

Classes:
- RoundData / PriceReading: Immutable feed round and adapter reading
- PriceFeed / PriceOracleAdapter: Protocols for feeds and for the adapter the engine consumes
- ManualClock: Logical clock that only moves forward
- StaticPriceFeed: Single settable answer (each update opens a new round)
- TimeSeriesPriceFeed: Time-varying answers with historical data
- StalenessCheckedOracle: Maps feed ids to feeds and flags stale rounds

All answers are integers with the feed's decimals (8 for USD pairs).
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .core import FEED_DECIMALS, PriceUnavailable

logger = logging.getLogger(__name__)

# Rounds older than this are stale.
DEFAULT_TIMEOUT = timedelta(hours=3)

Clock = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class RoundData:
    """One round reported by a price feed."""
    round_id: int
    answer: int
    started_at: Optional[datetime]
    updated_at: Optional[datetime]
    answered_in_round: int


@dataclass(frozen=True, slots=True)
class PriceReading:
    """
    Result of PriceOracleAdapter.get_latest_price().

    The adapter never refuses a stale round; it flags it and leaves the
    decision to the caller.
    """
    price: int
    updated_at: Optional[datetime]
    is_stale: bool


@runtime_checkable
class PriceFeed(Protocol):
    """Protocol for a single price feed."""
    decimals: int

    def latest_round_data(self) -> RoundData:
        """Return the most recent round."""
        ...


@runtime_checkable
class PriceOracleAdapter(Protocol):
    """
    Protocol for the oracle adapter consumed by the engine.

    Implementations must provide get_latest_price() and get_decimals().
    """

    def get_latest_price(self, feed_id: str) -> PriceReading:
        """Return the latest price for a feed together with its staleness flag."""
        ...

    def get_decimals(self, feed_id: str) -> int:
        """Return the number of decimals the feed reports."""
        ...


class ManualClock:
    """
    Logical clock for feeds and the staleness check.

    Instances are callable and return the current time, so they can be passed
    wherever a Clock is expected. Time can only move forward.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

    def __call__(self) -> datetime:
        return self._current_time

    @property
    def current_time(self) -> datetime:
        """Current logical time."""
        return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the clock to a new time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def advance_by(self, delta: timedelta) -> None:
        """Advance the clock by a non-negative interval."""
        self.advance_time(self._current_time + delta)

    def __repr__(self):
        return f"ManualClock({self._current_time.isoformat()})"


class StaticPriceFeed:
    """
    Price feed with a single settable answer.

    Every update opens a new round stamped with the clock's current time,
    so an answer that is never refreshed eventually goes stale.
    """

    def __init__(self, answer: int, clock: Clock, decimals: int = FEED_DECIMALS):
        """
        Initialize with a starting answer.

        Args:
            answer: Initial price, scaled by 10**decimals
            clock: Source of round timestamps
            decimals: Decimals of the answer
        """
        self.decimals = decimals
        self._clock = clock
        self._round_id = 0
        self._answer = 0
        self._updated_at: Optional[datetime] = None
        self.update_answer(answer)

    def update_answer(self, answer: int, timestamp: Optional[datetime] = None) -> None:
        """Publish a new answer in a new round."""
        self._round_id += 1
        self._answer = answer
        self._updated_at = timestamp or self._clock()
        logger.debug("Feed round %d: answer=%s at %s", self._round_id, answer, self._updated_at)

    def latest_round_data(self) -> RoundData:
        return RoundData(
            round_id=self._round_id,
            answer=self._answer,
            started_at=self._updated_at,
            updated_at=self._updated_at,
            answered_in_round=self._round_id,
        )

    def __repr__(self):
        return f"StaticPriceFeed({self._answer}, decimals={self.decimals}, round={self._round_id})"


class TimeSeriesPriceFeed:
    """
    Price feed with time-varying answers.

    Stores historical observations and reports the most recent observation at
    or before the clock's current time. Each observation is its own round,
    numbered from 1 in chronological order.

    Supports two initialization patterns:
    - Empty initialization for incremental addition via add_price()
    - Batch initialization with a complete price path for simulations
    """

    def __init__(
        self,
        clock: Clock,
        price_path: Optional[List[Tuple[datetime, int]]] = None,
        decimals: int = FEED_DECIMALS,
    ):
        """
        Initialize the feed.

        Args:
            clock: Source of the current time
            price_path: Optional list of (timestamp, answer) tuples
            decimals: Decimals of the answers

        Examples:
            feed = TimeSeriesPriceFeed(clock, [(t0, 2000_00000000), (t1, 1900_00000000)])
        """
        self.decimals = decimals
        self._clock = clock
        self.history: List[Tuple[datetime, int]] = sorted(price_path or [], key=lambda x: x[0])

    def add_price(self, timestamp: datetime, answer: int) -> None:
        """Add an observation, keeping the history in timestamp order."""
        self.history.append((timestamp, answer))
        self.history.sort(key=lambda x: x[0])

    def latest_round_data(self) -> RoundData:
        """
        Report the observation at or before the current time.

        Raises:
            PriceUnavailable: If there is no observation at or before now
        """
        now = self._clock()
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, now)
        if idx == 0:
            raise PriceUnavailable(f"No observation at or before {now}")
        updated_at, answer = self.history[idx - 1]
        return RoundData(
            round_id=idx,
            answer=answer,
            started_at=updated_at,
            updated_at=updated_at,
            answered_in_round=idx,
        )

    def get_all_timestamps(self) -> List[datetime]:
        """Return all observation timestamps in order."""
        return [ts for ts, _ in self.history]

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.history)} observations, decimals={self.decimals})"


class StalenessCheckedOracle:
    """
    Oracle adapter over a fixed set of feeds.

    A round is stale when its age exceeds the timeout, when it has no update
    time, or when it was answered in an earlier round than the one reported.
    """

    def __init__(
        self,
        feeds: Mapping[str, PriceFeed],
        clock: Clock,
        timeout: timedelta = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            feeds: Mapping from feed id to feed
            clock: Source of the current time
            timeout: Maximum age of a fresh round
        """
        if timeout <= timedelta(0):
            raise ValueError(f"timeout must be positive, got {timeout}")
        self._feeds: Dict[str, PriceFeed] = dict(feeds)
        self._clock = clock
        self.timeout = timeout

    def _feed(self, feed_id: str) -> PriceFeed:
        feed = self._feeds.get(feed_id)
        if feed is None:
            raise PriceUnavailable(f"Unknown price feed {feed_id!r}")
        return feed

    def is_stale(self, round_data: RoundData) -> bool:
        """Return True if a round must not be trusted."""
        if round_data.updated_at is None:
            return True
        if round_data.answered_in_round < round_data.round_id:
            return True
        return self._clock() - round_data.updated_at > self.timeout

    def get_latest_price(self, feed_id: str) -> PriceReading:
        round_data = self._feed(feed_id).latest_round_data()
        stale = self.is_stale(round_data)
        if stale:
            logger.debug("Feed %s round %d is stale (updated %s)",
                         feed_id, round_data.round_id, round_data.updated_at)
        return PriceReading(
            price=round_data.answer,
            updated_at=round_data.updated_at,
            is_stale=stale,
        )

    def get_decimals(self, feed_id: str) -> int:
        return self._feed(feed_id).decimals

    def feed_ids(self) -> List[str]:
        """Return the configured feed ids."""
        return list(self._feeds)

    def __repr__(self):
        return f"StalenessCheckedOracle({len(self._feeds)} feeds, timeout={self.timeout})"
