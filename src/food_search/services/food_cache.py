"""Persistence interface for the cached food table."""

from typing import Protocol

from food_search.domain.foods import CacheStats, FoodRecord

UPSERT_BATCH_SIZE = 1000


class FoodCacheRepository(Protocol):
    """Typed access to cached food records.

    Read paths fail open and return empty results on backend errors; write
    paths raise ``StoreError`` so callers can choose to swallow or count it.
    """

    def search_cached(self, query: str, limit: int) -> list[FoodRecord]:
        """Search by name and search terms, best matches first."""

    def get_by_barcode(self, barcode: str) -> FoodRecord | None:
        """Return the record with an exact barcode match, if any."""

    def upsert(self, records: list[FoodRecord]) -> int:
        """Insert or replace records keyed by food id; return rows written."""

    def increment_popularity(self, food_id: str) -> None:
        """Atomically add one to a record's popularity score."""

    def get_popular_foods(self, limit: int) -> list[FoodRecord]:
        """Return the most popular records."""

    def get_by_category(self, category: str, limit: int) -> list[FoodRecord]:
        """Return popular records whose category matches."""

    def get_stats(self) -> CacheStats:
        """Return aggregate cache statistics."""


def chunked(records: list[FoodRecord], size: int) -> list[list[FoodRecord]]:
    """Split records into consecutive batches of at most ``size``."""
    if size < 1:
        raise ValueError("batch size must be positive")
    return [records[start : start + size] for start in range(0, len(records), size)]
