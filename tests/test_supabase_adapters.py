"""Tests for the Supabase food cache repository."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from food_search.adapters.supabase_food_cache_repository import (
    SupabaseFoodCacheRepository,
    food_to_row,
    row_to_food,
)
from food_search.domain.errors import StoreError
from food_search.domain.foods import DataSource
from tests.conftest import make_food


@dataclass
class FakeResponse:
    data: object


@dataclass
class FakeTable:
    name: str
    response_queue: list[list[dict[str, object]]] = field(default_factory=list)
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    last_order: tuple[str, bool] | None = None
    last_limit: int | None = None
    fail: bool = False

    def queue(self, data: list[dict[str, object]]) -> None:
        self.response_queue.append(data)

    def select(self, *_args) -> "FakeTable":
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def ilike(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeTable":
        self.last_order = (column, desc)
        return self

    def limit(self, count: int) -> "FakeTable":
        self.last_limit = count
        return self

    def execute(self) -> FakeResponse:
        if self.fail:
            raise RuntimeError("connection lost")
        data = self.response_queue.pop(0) if self.response_queue else []
        return FakeResponse(data=data)


@dataclass
class FakeRpc:
    client: "FakeSupabaseClient"
    name: str
    params: dict[str, object]

    def execute(self) -> FakeResponse:
        self.client.rpc_calls.append((self.name, self.params))
        if self.name in self.client.failing_rpcs:
            raise RuntimeError(f"{self.name} failed")
        queue = self.client.rpc_responses.get(self.name, [])
        return FakeResponse(data=queue.pop(0) if queue else None)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    rpc_calls: list[tuple[str, dict[str, object]]] = field(default_factory=list)
    rpc_responses: dict[str, list[object]] = field(default_factory=dict)
    failing_rpcs: set[str] = field(default_factory=set)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]

    def rpc(self, name: str, params: dict[str, object]) -> FakeRpc:
        return FakeRpc(self, name, params)

    def queue_rpc(self, name: str, data: object) -> None:
        self.rpc_responses.setdefault(name, []).append(data)


def _row(food_id: str, **values: object) -> dict[str, object]:
    row: dict[str, object] = {
        "food_id": food_id,
        "barcode": food_id,
        "food_name": f"Food {food_id}",
        "brand": None,
        "category": "Fruits",
        "calories": 52,
        "protein": 0.3,
        "carbs": 14.0,
        "fat": 0.2,
        "fiber": 2.4,
        "sugar": 10.4,
        "sodium": 1.0,
        "serving_size": 100,
        "serving_unit": "g",
        "data_source": "external-dataset",
        "data_quality": 0.9,
        "popularity_score": 12,
        "search_terms": "food fruits",
        "last_updated": "2024-05-01T10:00:00+00:00",
        "created_at": "2024-01-01T00:00:00+00:00",
    }
    row.update(values)
    return row


def test_search_uses_rpc_and_maps_rows() -> None:
    client = FakeSupabaseClient()
    client.queue_rpc("search_cached_foods", [_row("1"), _row("2")])
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    foods = repository.search_cached("food", 5)

    assert [food.food_id for food in foods] == ["1", "2"]
    assert client.rpc_calls == [
        ("search_cached_foods", {"p_query": "food", "p_limit": 5})
    ]
    assert foods[0].search_terms == ("food", "fruits")
    assert foods[0].data_source is DataSource.EXTERNAL_DATASET


def test_search_fails_open() -> None:
    client = FakeSupabaseClient(failing_rpcs={"search_cached_foods"})
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    assert repository.search_cached("food", 5) == []


def test_get_by_barcode() -> None:
    client = FakeSupabaseClient()
    client.table("cached_foods").queue([_row("3017620422003")])
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    food = repository.get_by_barcode("3017620422003")

    assert food is not None
    assert food.food_id == "3017620422003"
    assert client.tables["cached_foods"].last_filters == [
        ("barcode", "3017620422003")
    ]


def test_get_by_barcode_missing_and_failing() -> None:
    client = FakeSupabaseClient()
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    assert repository.get_by_barcode("0000000000000") is None

    client.table("cached_foods").fail = True
    assert repository.get_by_barcode("0000000000000") is None


def test_upsert_sends_batches_and_counts_rows() -> None:
    client = FakeSupabaseClient()
    client.queue_rpc("upsert_cached_foods", 2)
    client.queue_rpc("upsert_cached_foods", [1])
    repository = SupabaseFoodCacheRepository(client, batch_size=2)  # type: ignore[arg-type]

    written = repository.upsert([make_food("1"), make_food("2"), make_food("3")])

    assert written == 3
    assert len(client.rpc_calls) == 2
    first_batch = client.rpc_calls[0][1]["p_foods"]
    assert isinstance(first_batch, list)
    assert [row["food_id"] for row in first_batch] == ["1", "2"]


def test_upsert_without_count_assumes_batch_written() -> None:
    client = FakeSupabaseClient()
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    assert repository.upsert([make_food("1"), make_food("2")]) == 2
    assert repository.upsert([]) == 0


def test_upsert_failure_raises_store_error() -> None:
    client = FakeSupabaseClient(failing_rpcs={"upsert_cached_foods"})
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    with pytest.raises(StoreError):
        repository.upsert([make_food("1")])


def test_increment_popularity() -> None:
    client = FakeSupabaseClient()
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    repository.increment_popularity("1")

    assert client.rpc_calls == [("increment_food_popularity", {"p_food_id": "1"})]

    client.failing_rpcs.add("increment_food_popularity")
    with pytest.raises(StoreError):
        repository.increment_popularity("1")


def test_popular_and_category_queries() -> None:
    client = FakeSupabaseClient()
    table = client.table("cached_foods")
    table.queue([_row("1")])
    table.queue([_row("2")])
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    popular = repository.get_popular_foods(3)
    fruits = repository.get_by_category("fruit", 4)

    assert [food.food_id for food in popular] == ["1"]
    assert [food.food_id for food in fruits] == ["2"]
    assert table.last_order == ("popularity_score", True)
    assert table.last_limit == 4
    assert ("category", "%fruit%") in table.last_filters


def test_popular_fails_open() -> None:
    client = FakeSupabaseClient()
    client.table("cached_foods").fail = True
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    assert repository.get_popular_foods(3) == []
    assert repository.get_by_category("fruit", 3) == []


def test_get_stats() -> None:
    client = FakeSupabaseClient()
    client.queue_rpc(
        "cached_food_stats",
        [
            {
                "total_foods": 120,
                "average_popularity": 4.5,
                "last_update": "2024-05-01T10:00:00+00:00",
            }
        ],
    )
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    stats = repository.get_stats()

    assert stats.count == 120
    assert stats.avg_popularity == 4.5
    assert stats.last_update == datetime(2024, 5, 1, 10, tzinfo=UTC)


def test_get_stats_failure_raises_store_error() -> None:
    client = FakeSupabaseClient(failing_rpcs={"cached_food_stats"})
    repository = SupabaseFoodCacheRepository(client)  # type: ignore[arg-type]

    with pytest.raises(StoreError):
        repository.get_stats()


def test_food_to_row_leaves_timestamps_to_database() -> None:
    row = food_to_row(
        make_food("1", "Apple", search_terms=("apple", "fruits"), popularity_score=3)
    )

    assert row["food_name"] == "Apple"
    assert row["search_terms"] == "apple fruits"
    assert row["data_source"] == "remote-api"
    assert row["popularity_score"] == 3
    assert "created_at" not in row
    assert "last_updated" not in row


def test_row_to_food_defaults() -> None:
    food = row_to_food(
        {"food_id": 7, "food_name": "Water", "data_source": "unknown-source"}
    )

    assert food.food_id == "7"
    assert food.calories == 0
    assert food.serving_size == 100.0
    assert food.data_source is DataSource.REMOTE_API
    assert food.search_terms == ()
    assert food.created_at is None
