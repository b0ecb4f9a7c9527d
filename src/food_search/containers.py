"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from food_search.adapters.fdc_client import HttpxFdcClient
from food_search.adapters.openfoodfacts_client import HttpxOpenFoodFactsClient
from food_search.adapters.supabase_food_cache_repository import (
    SupabaseFoodCacheRepository,
)
from food_search.config import Settings
from food_search.services.cache import SearchMemo
from food_search.services.food_cache import FoodCacheRepository
from food_search.services.ingestion import IngestionEngine
from food_search.services.nutrition import (
    FdcProvider,
    NutritionProvider,
    OpenFoodFactsProvider,
)
from food_search.services.popularity import AsyncioPopularityQueue
from food_search.services.search import FoodSearchService
from food_search.services.seeding import CacheSeeder


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    repository: FoodCacheRepository
    provider: NutritionProvider
    search_service: FoodSearchService
    ingestion_engine: IngestionEngine
    seeder: CacheSeeder
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    repository = SupabaseFoodCacheRepository(
        supabase_client, batch_size=resolved_settings.ingestion_batch_size
    )

    if resolved_settings.nutrition_provider == "fdc":
        http_client: HttpxFdcClient | HttpxOpenFoodFactsClient = HttpxFdcClient.create(
            api_key=resolved_settings.fdc_api_key or "",
            base_url=resolved_settings.fdc_base_url,
            timeout=resolved_settings.http_timeout_seconds,
        )
        provider: NutritionProvider = FdcProvider(
            http_client, debug=resolved_settings.debug
        )
    else:
        http_client = HttpxOpenFoodFactsClient.create(
            base_url=resolved_settings.off_base_url,
            search_url=resolved_settings.off_search_url,
            user_agent=resolved_settings.off_user_agent,
            timeout=resolved_settings.http_timeout_seconds,
        )
        provider = OpenFoodFactsProvider(http_client, debug=resolved_settings.debug)

    popularity_queue = AsyncioPopularityQueue(repository)
    search_service = FoodSearchService(
        repository=repository,
        provider=provider,
        popularity=popularity_queue,
        memo=SearchMemo(ttl_seconds=resolved_settings.memo_ttl_seconds),
        cache_min_results=resolved_settings.cache_min_results,
        debug=resolved_settings.debug,
    )
    ingestion_engine = IngestionEngine(
        repository=repository,
        batch_size=resolved_settings.ingestion_batch_size,
        min_quality=resolved_settings.ingestion_min_quality,
    )
    seeder = CacheSeeder(
        provider=provider,
        repository=repository,
        delay_seconds=resolved_settings.seed_delay_seconds,
    )

    async def close_resources() -> None:
        await popularity_queue.close()
        await http_client.close()

    return AppContainer(
        settings=resolved_settings,
        repository=repository,
        provider=provider,
        search_service=search_service,
        ingestion_engine=ingestion_engine,
        seeder=seeder,
        close_resources=close_resources,
    )
