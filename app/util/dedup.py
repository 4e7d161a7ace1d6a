"""
Bounded, insertion ordered set.

The modem hands back its whole event log on every poll so we need to remember what we've already
forwarded. Keeping everything forever would grow without bound; this keeps the last `capacity` entries.
"""

from collections import deque
from collections.abc import Hashable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T", bound=Hashable)


class DedupInvariantError(RuntimeError):
    """The membership set and the order queue no longer agree. Not recoverable."""


class FixedSizeDedupSet(Generic[T]):
    """Set with FIFO eviction once `capacity` items are stored.

    Two containers are kept in lock step: `_members` for O(1) membership and `_order` for eviction order.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._members: set[T] = set()
        self._order: deque[T] = deque()

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, item: T) -> bool:
        return self.contains(item)

    def __iter__(self) -> Iterator[T]:
        # oldest first
        return iter(list(self._order))

    def contains(self, item: T) -> bool:
        return item in self._members

    def insert(self, item: T) -> T | None:
        """Store `item`, evicting (and returning) the oldest item if we're already full.

        Inserting something that is already a member moves it to the newest position; nothing is evicted
        since the size doesn't change. That move is a `deque.remove`, so O(capacity) rather than O(1).
        """
        if item in self._members:
            self._order.remove(item)
            self._order.append(item)
            return None

        evicted = None
        if len(self._order) >= self.capacity:
            evicted = self._evict()

        self._members.add(item)
        self._order.append(item)
        self._check()
        return evicted

    def pop_oldest(self) -> T | None:
        if not self._order:
            return None
        oldest = self._evict()
        self._check()
        return oldest

    def _evict(self) -> T:
        oldest = self._order.popleft()
        if oldest not in self._members:
            raise DedupInvariantError(f"evicted item was not a member: {oldest!r}")
        self._members.remove(oldest)
        return oldest

    def _check(self) -> None:
        if len(self._members) != len(self._order) or len(self._order) > self.capacity:
            raise DedupInvariantError(
                f"members={len(self._members)} order={len(self._order)} capacity={self.capacity}"
            )
