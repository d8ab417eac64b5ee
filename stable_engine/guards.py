"""
guards.py - Reentrancy lock and atomic units of work

ReentrancyGuard: scoped lock held for the whole of an entry point. Acquiring
it yields a GuardToken; release happens on every exit path, including
exceptions. A second acquisition while the lock is held raises ReentrantCall.

atomic(): snapshots every journaled participant on entry and restores all of
them, in reverse order, if the body raises. The exception is re-raised
unchanged. Participants opt in by implementing the Journaled protocol.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
import logging
from typing import Iterable, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from .core import ReentrantCall, Snapshot

logger = logging.getLogger(__name__)


@runtime_checkable
class Journaled(Protocol):
    """Protocol for components whose state can be captured and rolled back."""

    def snapshot(self) -> Snapshot:
        """Capture the current state."""
        ...

    def restore(self, snapshot: Snapshot) -> None:
        """Replace the current state with a captured one."""
        ...


@dataclass(frozen=True, slots=True)
class GuardToken:
    """Proof that the holder acquired a ReentrancyGuard."""
    guard_name: str
    operation: str
    sequence_number: int


class ReentrancyGuard:
    """
    Mutual-exclusion guard scoped to one entry point at a time.

    Example:
        guard = ReentrancyGuard("engine")
        with guard.hold("deposit_collateral") as token:
            ...
    """

    def __init__(self, name: str = "engine"):
        self.name = name
        self._holder: Optional[GuardToken] = None
        self._next_sequence: int = 0

    @property
    def locked(self) -> bool:
        return self._holder is not None

    @property
    def holder(self) -> Optional[GuardToken]:
        """Token of the entry point currently holding the guard, if any."""
        return self._holder

    @contextmanager
    def hold(self, operation: str) -> Iterator[GuardToken]:
        """
        Acquire the guard for the duration of the with-block.

        Raises:
            ReentrantCall: If the guard is already held
        """
        if self._holder is not None:
            raise ReentrantCall(
                f"{operation} re-entered {self.name} while {self._holder.operation} is running"
            )
        self._next_sequence += 1
        token = GuardToken(self.name, operation, self._next_sequence)
        self._holder = token
        try:
            yield token
        finally:
            self._holder = None

    def __repr__(self):
        state = f"held by {self._holder.operation}" if self._holder else "free"
        return f"ReentrancyGuard({self.name}, {state})"


def _distinct(participants: Iterable[object]) -> List[Journaled]:
    seen = set()
    journaled = []
    for participant in participants:
        if id(participant) in seen or not isinstance(participant, Journaled):
            continue
        seen.add(id(participant))
        journaled.append(participant)
    return journaled


@contextmanager
def atomic(participants: Iterable[object], operation: str) -> Iterator[None]:
    """
    Run a block all-or-nothing across several components.

    Participants that do not implement Journaled are skipped; their changes
    cannot be rolled back.

    Args:
        participants: Components touched by the block
        operation: Name used in the rollback log message
    """
    snapshots: List[Tuple[Journaled, Snapshot]] = [
        (participant, participant.snapshot()) for participant in _distinct(participants)
    ]
    try:
        yield
    except BaseException as exc:
        for participant, snapshot in reversed(snapshots):
            participant.restore(snapshot)
        logger.warning("Rolled back %s: %s: %s", operation, type(exc).__name__, exc)
        raise
