"""Hybrid food search combining the cache store with a remote provider."""

import logging
from dataclasses import dataclass, field

from food_search.domain.errors import StoreError, ValidationError
from food_search.domain.foods import (
    BarcodeResult,
    FoodRecord,
    SearchHit,
    SearchResult,
)
from food_search.services.cache import Memo, SearchMemo
from food_search.services.food_cache import FoodCacheRepository
from food_search.services.nutrition import NutritionProvider
from food_search.services.popularity import PopularityQueue

ORIGIN_CACHE = "cache"
ORIGIN_API = "api"

SOURCE_CACHE = "cache"
SOURCE_API = "api"
SOURCE_HYBRID = "hybrid"
SOURCE_CACHE_FALLBACK = "cache_fallback"
SOURCE_NOT_FOUND = "not_found"

WRITE_BACK_POPULARITY = 1

_logger = logging.getLogger(__name__)


@dataclass
class FoodSearchService:
    """Cache-first food search with remote augmentation and write-back.

    This service is the error boundary for live search: provider and store
    failures degrade the result (annotated through ``source`` and ``error``)
    instead of propagating to the caller. Only invalid input raises.
    """

    repository: FoodCacheRepository
    provider: NutritionProvider
    popularity: PopularityQueue
    memo: Memo = field(default_factory=SearchMemo)
    cache_min_results: int = 5
    min_remote_page_size: int = 5
    debug: bool = False

    async def search_foods(
        self, query: str, limit: int = 10, cache_first: bool = True
    ) -> SearchResult:
        """Search foods, preferring cached records over remote calls."""
        text = _normalize_query(query)
        if limit < 1:
            raise ValidationError("limit must be at least 1")

        cache_results: list[FoodRecord] = []
        cache_consulted = False
        try:
            if cache_first:
                cache_results = self.repository.search_cached(text, limit)
                cache_consulted = True
                if len(cache_results) >= min(limit, self.cache_min_results):
                    hits = [SearchHit(food, ORIGIN_CACHE) for food in cache_results[:limit]]
                    self._track_popularity(hits)
                    return SearchResult(
                        results=hits,
                        source=SOURCE_CACHE,
                        cache_hits=len(hits),
                        api_hits=0,
                        total=len(hits),
                    )

            remaining = max(limit - len(cache_results), self.min_remote_page_size)
            try:
                api_results = await self._search_remote(text, remaining)
            except Exception as exc:
                _logger.warning("Remote food search failed: query=%s error=%s", text, exc)
                if not cache_consulted:
                    cache_results = self.repository.search_cached(text, limit)
                return self._fallback(cache_results, limit, exc)

            combined = combine_and_deduplicate_results(cache_results, api_results, limit)
            self._track_popularity(combined)
            if self.debug:
                _logger.info(
                    "Hybrid search: query=%s cache=%s api=%s served=%s",
                    text,
                    len(cache_results),
                    len(api_results),
                    len(combined),
                )
            return SearchResult(
                results=combined,
                source=SOURCE_HYBRID if cache_results else SOURCE_API,
                cache_hits=len(cache_results),
                api_hits=len(api_results),
                total=len(combined),
            )
        except Exception as exc:
            _logger.exception("Hybrid food search failed: query=%s", text)
            return self._fallback(self.repository.search_cached(text, limit), limit, exc)

    async def search_by_barcode(self, barcode: str) -> BarcodeResult:
        """Look up a barcode in the cache first, then the remote provider."""
        code = (barcode or "").strip()
        if not code:
            raise ValidationError("barcode must not be empty")

        cached = self.repository.get_by_barcode(code)
        if cached is not None:
            self._track_popularity([SearchHit(cached, ORIGIN_CACHE)])
            return BarcodeResult(result=cached, source=SOURCE_CACHE)

        try:
            food = await self.provider.get_by_barcode(code)
        except Exception as exc:
            _logger.warning("Remote barcode lookup failed: barcode=%s error=%s", code, exc)
            return BarcodeResult(result=None, source=SOURCE_NOT_FOUND, error=str(exc))
        if food is None:
            return BarcodeResult(result=None, source=SOURCE_NOT_FOUND)

        stored = self._write_back([food])
        return BarcodeResult(result=stored[0], source=SOURCE_API)

    def get_popular_foods(self, limit: int = 20) -> list[FoodRecord]:
        """Return the most popular cached foods."""
        return self.repository.get_popular_foods(limit)

    def get_foods_by_category(self, category: str, limit: int = 20) -> list[FoodRecord]:
        """Return popular cached foods in a category."""
        if not category or not category.strip():
            raise ValidationError("category must not be empty")
        return self.repository.get_by_category(category.strip(), limit)

    def clear_cache(self) -> None:
        """Clear the in-process memo; the persisted cache is untouched."""
        self.memo.clear()

    def get_cache_stats(self) -> dict[str, object] | None:
        """Return store aggregates plus the memo size, or None on failure."""
        try:
            stats = self.repository.get_stats()
        except StoreError:
            _logger.exception("Failed to load cache stats")
            return None
        return {
            "total_foods": stats.count,
            "average_popularity": stats.avg_popularity,
            "last_update": stats.last_update.isoformat() if stats.last_update else None,
            "memory_cache": len(self.memo),
        }

    async def _search_remote(self, text: str, page_size: int) -> list[FoodRecord]:
        """Return provider results, reusing the memo within its TTL."""
        key = (text.lower(), page_size)
        memoized = self.memo.get(key)
        if memoized is not None:
            return memoized
        results = await self.provider.search(text, page_size=page_size)
        self.memo.set(key, results)
        self._write_back(results)
        return results

    def _write_back(self, foods: list[FoodRecord]) -> list[FoodRecord]:
        """Persist freshly fetched foods so later searches hit the cache."""
        records = [food.with_popularity(WRITE_BACK_POPULARITY) for food in foods]
        if not records:
            return records
        try:
            self.repository.upsert(records)
        except StoreError:
            _logger.exception("Failed to cache %s remote foods", len(records))
        return records

    def _track_popularity(self, hits: list[SearchHit]) -> None:
        food_ids = [hit.food.food_id for hit in hits if hit.origin == ORIGIN_CACHE]
        if not food_ids:
            return
        try:
            self.popularity.submit(food_ids)
        except Exception:
            _logger.exception("Failed to queue popularity updates")

    def _fallback(
        self, cache_results: list[FoodRecord], limit: int, exc: Exception
    ) -> SearchResult:
        hits = [SearchHit(food, ORIGIN_CACHE) for food in cache_results[:limit]]
        self._track_popularity(hits)
        return SearchResult(
            results=hits,
            source=SOURCE_CACHE_FALLBACK,
            cache_hits=len(hits),
            api_hits=0,
            total=len(hits),
            error=str(exc),
        )


def combine_and_deduplicate_results(
    cache_results: list[FoodRecord], api_results: list[FoodRecord], limit: int
) -> list[SearchHit]:
    """Merge cache results ahead of API results, unique by food id."""
    seen: set[str] = set()
    combined: list[SearchHit] = []
    for origin, foods in ((ORIGIN_CACHE, cache_results), (ORIGIN_API, api_results)):
        for food in foods:
            if len(combined) >= limit:
                return combined
            if food.food_id in seen:
                continue
            seen.add(food.food_id)
            combined.append(SearchHit(food, origin))
    return combined


def _normalize_query(query: str | None) -> str:
    text = " ".join((query or "").split())
    if not text:
        raise ValidationError("query must not be empty")
    return text
