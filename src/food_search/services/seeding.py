"""Seed the food cache from a remote provider at a fixed request rate."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from food_search.domain.errors import StoreError
from food_search.domain.foods import FoodRecord
from food_search.services.food_cache import FoodCacheRepository
from food_search.services.nutrition import NutritionProvider

COMMON_FOODS = (
    "apple",
    "banana",
    "orange",
    "strawberry",
    "blueberry",
    "grape",
    "broccoli",
    "spinach",
    "carrot",
    "tomato",
    "potato",
    "onion",
    "chicken breast",
    "salmon",
    "tuna",
    "ground beef",
    "pork",
    "eggs",
    "milk",
    "cheese",
    "yogurt",
    "butter",
    "bread",
    "rice",
    "pasta",
    "oats",
    "quinoa",
    "almonds",
    "walnuts",
    "peanuts",
    "olive oil",
    "avocado",
    "black beans",
    "chickpeas",
    "lentils",
    "tofu",
    "water",
    "coffee",
    "tea",
    "orange juice",
)

SEED_CATEGORIES = (
    "fruits",
    "vegetables",
    "meat",
    "fish",
    "dairy",
    "eggs",
    "grains",
    "nuts",
    "legumes",
    "oils",
    "beverages",
    "snacks",
    "bread",
    "cereals",
    "pasta",
    "rice",
    "cheese",
    "yogurt",
    "milk",
    "chicken",
)

SEEDED_POPULARITY = 10
DEFAULT_DELAY_SECONDS = 6.0

_logger = logging.getLogger(__name__)


@dataclass
class SeedReport:
    """Counters for one seeding run."""

    added: int = 0
    skipped: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class CacheSeeder:
    """Populate the cache with common foods, popular foods and categories.

    The provider enforces no rate limit, so every call here is preceded by a
    fixed delay.
    """

    provider: NutritionProvider
    repository: FoodCacheRepository
    delay_seconds: float = DEFAULT_DELAY_SECONDS
    foods_per_term: int = 3
    popular_limit: int = 100
    foods_per_category: int = 10
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def seed(
        self,
        foods: tuple[str, ...] = COMMON_FOODS,
        categories: tuple[str, ...] = SEED_CATEGORIES,
    ) -> SeedReport:
        """Run every seeding step, continuing past individual failures."""
        report = SeedReport()
        for index, term in enumerate(foods, start=1):
            _logger.info("Seeding food '%s' (%s/%s)", term, index, len(foods))
            await self._seed_step(
                term,
                lambda term=term: self.provider.search(
                    term, page_size=self.foods_per_term
                ),
                report,
            )

        _logger.info("Seeding popular foods")
        await self._seed_step(
            "popular",
            lambda: self.provider.get_popular_foods(self.popular_limit),
            report,
        )

        for index, category in enumerate(categories, start=1):
            _logger.info("Seeding category '%s' (%s/%s)", category, index, len(categories))
            await self._seed_step(
                category,
                lambda category=category: self.provider.get_foods_by_category(
                    category, self.foods_per_category
                ),
                report,
            )

        _logger.info(
            "Seeding finished: added=%s skipped=%s errors=%s",
            report.added,
            report.skipped,
            len(report.errors),
        )
        return report

    async def _seed_step(
        self,
        label: str,
        fetch: Callable[[], Awaitable[list[FoodRecord]]],
        report: SeedReport,
    ) -> None:
        await self.sleep(self.delay_seconds)
        try:
            foods = await fetch()
        except Exception as exc:
            _logger.warning("Seeding '%s' failed: %s", label, exc)
            report.errors.append((label, str(exc)))
            return
        if not foods:
            report.skipped += 1
            return
        records = [food.with_popularity(SEEDED_POPULARITY) for food in foods]
        try:
            report.added += self.repository.upsert(records)
        except StoreError as exc:
            _logger.error("Caching seeded foods for '%s' failed: %s", label, exc)
            report.errors.append((label, str(exc)))
