"""Supabase implementation of the food cache store."""

import logging
from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from food_search.domain.errors import StoreError
from food_search.domain.foods import (
    DEFAULT_SERVING_SIZE,
    CacheStats,
    DataSource,
    FoodRecord,
)
from food_search.services.food_cache import (
    UPSERT_BATCH_SIZE,
    FoodCacheRepository,
    chunked,
)

TABLE = "cached_foods"

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseFoodCacheRepository(FoodCacheRepository):
    """Supabase-backed repository for cached foods."""

    client: Client
    batch_size: int = UPSERT_BATCH_SIZE

    def search_cached(self, query: str, limit: int) -> list[FoodRecord]:
        """Search via the ``search_cached_foods`` RPC; empty on failure."""
        try:
            response = self.client.rpc(
                "search_cached_foods", {"p_query": query, "p_limit": limit}
            ).execute()
        except Exception:
            _logger.exception("Cache search failed: query=%s", query)
            return []
        return [row_to_food(row) for row in response.data or []][:limit]

    def get_by_barcode(self, barcode: str) -> FoodRecord | None:
        """Return a cached food by exact barcode."""
        try:
            response = (
                self.client.table(TABLE)
                .select("*")
                .eq("barcode", barcode)
                .limit(1)
                .execute()
            )
        except Exception:
            _logger.exception("Cache barcode lookup failed: barcode=%s", barcode)
            return None
        if not response.data:
            return None
        return row_to_food(response.data[0])

    def upsert(self, records: list[FoodRecord]) -> int:
        """Upsert records in bounded batches through ``upsert_cached_foods``."""
        written = 0
        for batch in chunked(records, self.batch_size):
            try:
                response = self.client.rpc(
                    "upsert_cached_foods",
                    {"p_foods": [food_to_row(record) for record in batch]},
                ).execute()
            except Exception as exc:
                raise StoreError(f"Failed to upsert {len(batch)} foods: {exc}") from exc
            written += _affected_rows(response.data, default=len(batch))
        return written

    def increment_popularity(self, food_id: str) -> None:
        """Increment popularity through the atomic RPC."""
        try:
            self.client.rpc(
                "increment_food_popularity", {"p_food_id": food_id}
            ).execute()
        except Exception as exc:
            raise StoreError(
                f"Failed to increment popularity for {food_id}: {exc}"
            ) from exc

    def get_popular_foods(self, limit: int) -> list[FoodRecord]:
        """Return foods ordered by popularity."""
        try:
            response = (
                self.client.table(TABLE)
                .select("*")
                .order("popularity_score", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception:
            _logger.exception("Popular foods lookup failed")
            return []
        return [row_to_food(row) for row in response.data or []]

    def get_by_category(self, category: str, limit: int) -> list[FoodRecord]:
        """Return foods whose category contains the given text."""
        try:
            response = (
                self.client.table(TABLE)
                .select("*")
                .ilike("category", f"%{category}%")
                .order("popularity_score", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception:
            _logger.exception("Category lookup failed: category=%s", category)
            return []
        return [row_to_food(row) for row in response.data or []]

    def get_stats(self) -> CacheStats:
        """Return aggregate stats from the ``cached_food_stats`` RPC."""
        try:
            response = self.client.rpc("cached_food_stats", {}).execute()
        except Exception as exc:
            raise StoreError(f"Failed to load cache stats: {exc}") from exc
        data = response.data
        row = data[0] if isinstance(data, list) and data else data or {}
        return CacheStats(
            count=int(row.get("total_foods") or 0),
            avg_popularity=float(row.get("average_popularity") or 0.0),
            last_update=_parse_datetime(row.get("last_update")),
        )


def food_to_row(food: FoodRecord) -> dict[str, object]:
    """Serialize a record for the upsert RPC.

    Timestamps are owned by the database: ``created_at`` is set on first
    insert only and ``last_updated`` on every write.
    """
    return {
        "food_id": food.food_id,
        "barcode": food.barcode,
        "food_name": food.name,
        "brand": food.brand,
        "category": food.category,
        "calories": food.calories,
        "protein": food.protein,
        "carbs": food.carbs,
        "fat": food.fat,
        "fiber": food.fiber,
        "sugar": food.sugar,
        "sodium": food.sodium,
        "serving_size": food.serving_size,
        "serving_unit": food.serving_unit,
        "data_source": food.data_source.value,
        "data_quality": food.data_quality,
        "popularity_score": food.popularity_score,
        "search_terms": " ".join(food.search_terms),
    }


def row_to_food(row: dict[str, object]) -> FoodRecord:
    """Parse a ``cached_foods`` row into a domain record."""
    search_terms = row.get("search_terms") or ""
    return FoodRecord(
        food_id=str(row["food_id"]),
        barcode=row.get("barcode"),
        name=str(row.get("food_name") or ""),
        brand=row.get("brand"),
        category=row.get("category"),
        calories=int(row.get("calories") or 0),
        protein=float(row.get("protein") or 0.0),
        carbs=float(row.get("carbs") or 0.0),
        fat=float(row.get("fat") or 0.0),
        fiber=float(row.get("fiber") or 0.0),
        sugar=float(row.get("sugar") or 0.0),
        sodium=float(row.get("sodium") or 0.0),
        serving_size=float(row.get("serving_size") or DEFAULT_SERVING_SIZE),
        serving_unit=str(row.get("serving_unit") or "g"),
        data_source=_parse_data_source(row.get("data_source")),
        data_quality=float(row.get("data_quality") or 0.0),
        popularity_score=int(row.get("popularity_score") or 0),
        search_terms=tuple(str(search_terms).split()),
        last_updated=_parse_datetime(row.get("last_updated")),
        created_at=_parse_datetime(row.get("created_at")),
    )


def _parse_data_source(raw: object) -> DataSource:
    try:
        return DataSource(raw)
    except ValueError:
        return DataSource.REMOTE_API


def _parse_datetime(raw: object) -> datetime | None:
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None


def _affected_rows(data: object, default: int) -> int:
    if isinstance(data, int):
        return data
    if isinstance(data, list) and data and isinstance(data[0], int):
        return data[0]
    return default
