"""Shared test fixtures."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

import pytest

from food_search.config import Settings
from food_search.containers import AppContainer
from food_search.domain.errors import ProviderError, ProviderErrorKind, StoreError
from food_search.domain.foods import CacheStats, DataSource, FoodRecord
from food_search.services.cache import SearchMemo
from food_search.services.food_cache import FoodCacheRepository, chunked
from food_search.services.ingestion import IngestionEngine
from food_search.services.nutrition import NutritionProvider
from food_search.services.popularity import PopularityQueue
from food_search.services.search import FoodSearchService
from food_search.services.seeding import CacheSeeder


def make_food(food_id: str, name: str | None = None, **overrides) -> FoodRecord:  # type: ignore[no-untyped-def]
    """Build a food record with sensible defaults."""
    values: dict[str, object] = {
        "food_id": food_id,
        "name": name or f"Food {food_id}",
        "barcode": food_id,
        "calories": 100,
        "protein": 5.0,
        "carbs": 10.0,
        "fat": 2.0,
        "data_quality": 0.8,
        "data_source": DataSource.REMOTE_API,
    }
    values.update(overrides)
    return FoodRecord(**values)  # type: ignore[arg-type]


@dataclass
class InMemoryFoodCacheRepository(FoodCacheRepository):
    """In-memory food cache honoring the store's upsert rules."""

    foods: dict[str, FoodRecord] = field(default_factory=dict)
    upserted_batches: list[list[FoodRecord]] = field(default_factory=list)
    search_calls: int = 0
    fail_search: bool = False
    fail_upsert_batches: set[int] = field(default_factory=set)
    fail_increment: bool = False
    batch_size: int = 1000

    def search_cached(self, query: str, limit: int) -> list[FoodRecord]:
        self.search_calls += 1
        if self.fail_search:
            return []
        needle = query.lower()
        matches = [
            food
            for food in self.foods.values()
            if needle in food.name.lower()
            or any(needle in term for term in food.search_terms)
        ]
        matches.sort(
            key=lambda food: (food.name.lower().startswith(needle), food.popularity_score),
            reverse=True,
        )
        return matches[:limit]

    def get_by_barcode(self, barcode: str) -> FoodRecord | None:
        for food in self.foods.values():
            if food.barcode == barcode:
                return food
        return None

    def upsert(self, records: list[FoodRecord]) -> int:
        written = 0
        for batch in chunked(records, self.batch_size):
            index = len(self.upserted_batches)
            self.upserted_batches.append(batch)
            if index in self.fail_upsert_batches:
                raise StoreError(f"batch {index} rejected")
            now = datetime.now(tz=UTC)
            for record in batch:
                existing = self.foods.get(record.food_id)
                self.foods[record.food_id] = replace(
                    record,
                    popularity_score=max(
                        record.popularity_score,
                        existing.popularity_score if existing else 0,
                    ),
                    created_at=existing.created_at if existing else now,
                    last_updated=now,
                )
                written += 1
        return written

    def increment_popularity(self, food_id: str) -> None:
        if self.fail_increment:
            raise StoreError("increment failed")
        food = self.foods.get(food_id)
        if food is not None:
            self.foods[food_id] = replace(
                food, popularity_score=food.popularity_score + 1
            )

    def get_popular_foods(self, limit: int) -> list[FoodRecord]:
        ranked = sorted(
            self.foods.values(), key=lambda food: food.popularity_score, reverse=True
        )
        return ranked[:limit]

    def get_by_category(self, category: str, limit: int) -> list[FoodRecord]:
        needle = category.lower()
        return [
            food
            for food in self.get_popular_foods(len(self.foods))
            if food.category and needle in food.category.lower()
        ][:limit]

    def get_stats(self) -> CacheStats:
        count = len(self.foods)
        total = sum(food.popularity_score for food in self.foods.values())
        last = max(
            (food.last_updated for food in self.foods.values() if food.last_updated),
            default=None,
        )
        return CacheStats(
            count=count, avg_popularity=total / count if count else 0.0, last_update=last
        )


@dataclass
class FakeNutritionProvider(NutritionProvider):
    """Fake provider returning canned foods and counting calls."""

    results: list[FoodRecord] = field(default_factory=list)
    barcode_results: dict[str, FoodRecord] = field(default_factory=dict)
    error: Exception | None = None
    search_calls: list[tuple[str, int]] = field(default_factory=list)
    barcode_calls: int = 0

    async def search(
        self, query: str, page_size: int = 10, page: int = 1
    ) -> list[FoodRecord]:
        self.search_calls.append((query, page_size))
        if self.error is not None:
            raise self.error
        return self.results[:page_size]

    async def get_by_barcode(self, barcode: str) -> FoodRecord | None:
        self.barcode_calls += 1
        if self.error is not None:
            raise self.error
        return self.barcode_results.get(barcode)

    async def get_popular_foods(self, limit: int = 50) -> list[FoodRecord]:
        if self.error is not None:
            raise self.error
        return self.results[:limit]

    async def get_foods_by_category(
        self, category: str, limit: int = 20
    ) -> list[FoodRecord]:
        if self.error is not None:
            raise self.error
        return [food for food in self.results if food.category == category][:limit]


@dataclass
class RecordingPopularityQueue(PopularityQueue):
    """Popularity queue that only records submissions."""

    submitted: list[str] = field(default_factory=list)

    def submit(self, food_ids) -> None:  # type: ignore[no-untyped-def]
        self.submitted.extend(food_ids)


@dataclass
class FakeClock:
    """Manually advanced clock for TTL tests."""

    now: datetime = field(default_factory=lambda: datetime(2024, 1, 1, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now


def provider_down() -> ProviderError:
    return ProviderError(
        ProviderErrorKind.HTTP_ERROR, "GET search returned 503", status=503
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
    )


@pytest.fixture
def repository() -> InMemoryFoodCacheRepository:
    return InMemoryFoodCacheRepository()


@pytest.fixture
def provider() -> FakeNutritionProvider:
    return FakeNutritionProvider()


@pytest.fixture
def popularity() -> RecordingPopularityQueue:
    return RecordingPopularityQueue()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def search_service(
    repository: InMemoryFoodCacheRepository,
    provider: FakeNutritionProvider,
    popularity: RecordingPopularityQueue,
    clock: FakeClock,
) -> FoodSearchService:
    return FoodSearchService(
        repository=repository,
        provider=provider,
        popularity=popularity,
        memo=SearchMemo(clock=clock),
    )


@pytest.fixture
def container(
    settings: Settings,
    repository: InMemoryFoodCacheRepository,
    provider: FakeNutritionProvider,
    search_service: FoodSearchService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        repository=repository,
        provider=provider,
        search_service=search_service,
        ingestion_engine=IngestionEngine(repository),
        seeder=CacheSeeder(provider, repository, delay_seconds=0),
        close_resources=close_resources,
    )
