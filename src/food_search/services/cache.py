"""Short-lived in-process memo for remote search results."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from food_search.domain.foods import FoodRecord

DEFAULT_TTL_SECONDS = 300

MemoKey = tuple[str, int]


class Memo(Protocol):
    """Memo interface keyed by normalized query and page size."""

    def get(self, key: MemoKey) -> list[FoodRecord] | None:
        """Return memoized results if present and not expired."""

    def set(self, key: MemoKey, value: list[FoodRecord]) -> None:
        """Memoize results for the configured TTL."""

    def clear(self) -> None:
        """Drop every memoized entry."""

    def __len__(self) -> int:
        """Return the number of live entries."""


@dataclass
class _MemoEntry:
    value: list[FoodRecord]
    stored_at: datetime


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SearchMemo(Memo):
    """Time-indexed memo with a sweep of expired entries on every write."""

    ttl_seconds: int = DEFAULT_TTL_SECONDS
    clock: Callable[[], datetime] = _utc_now
    _entries: dict[MemoKey, _MemoEntry] = field(
        default_factory=dict, init=False, repr=False
    )

    def get(self, key: MemoKey) -> list[FoodRecord] | None:
        """Return memoized results if they haven't expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self.clock()):
            self._entries.pop(key, None)
            return None
        return list(entry.value)

    def set(self, key: MemoKey, value: list[FoodRecord]) -> None:
        """Memoize results and sweep anything that has expired."""
        now = self.clock()
        self._entries[key] = _MemoEntry(value=list(value), stored_at=now)
        self.sweep(now)

    def sweep(self, now: datetime | None = None) -> int:
        """Remove expired entries and return how many were dropped."""
        current = now or self.clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if self._is_expired(entry, current)
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        """Drop every memoized entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: _MemoEntry, now: datetime) -> bool:
        return now - entry.stored_at >= timedelta(seconds=self.ttl_seconds)
