"""Remote nutrition providers mapped onto the canonical food record."""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from food_search.adapters.fdc_client import FdcClient
from food_search.adapters.openfoodfacts_client import OpenFoodFactsClient
from food_search.domain.errors import ProviderError, ProviderErrorKind
from food_search.domain.foods import (
    DEFAULT_SERVING_SIZE,
    DataSource,
    FoodRecord,
    build_search_terms,
    clean_name,
    clean_text,
    first_brand,
    kilojoules_to_kcal,
    main_category,
)
from food_search.domain.scoring import data_quality_score

_NUTRIENT_IDS = {
    "calories": 1008,
    "energy_kj": 1062,
    "protein": 1003,
    "fat": 1004,
    "carbs": 1005,
    "fiber": 1079,
    "sugar": 2000,
    "sodium": 1093,
}

_OFF_NUTRIMENTS = {
    "protein": ("proteins_100g", "proteins"),
    "carbs": ("carbohydrates_100g", "carbohydrates"),
    "fat": ("fat_100g", "fat"),
    "fiber": ("fiber_100g", "fiber"),
    "sugar": ("sugars_100g", "sugars"),
    "sodium": ("sodium_100g", "sodium"),
}
_OFF_KCAL_KEYS = ("energy-kcal_100g", "energy-kcal")
_OFF_KJ_KEYS = ("energy_100g", "energy")

_logger = logging.getLogger(__name__)


class NutritionProvider(Protocol):
    """Remote source of food records; one request per call, no retries."""

    async def search(
        self, query: str, page_size: int = 10, page: int = 1
    ) -> list[FoodRecord]:
        """Search foods by free text."""

    async def get_by_barcode(self, barcode: str) -> FoodRecord | None:
        """Return the food for a barcode, or ``None`` when unknown."""

    async def get_popular_foods(self, limit: int = 50) -> list[FoodRecord]:
        """Return widely used foods for cache seeding."""

    async def get_foods_by_category(
        self, category: str, limit: int = 20
    ) -> list[FoodRecord]:
        """Return foods in a category for cache seeding."""


@dataclass
class OpenFoodFactsProvider(NutritionProvider):
    """Provider backed by the Open Food Facts API."""

    client: OpenFoodFactsClient
    debug: bool = False

    async def search(
        self, query: str, page_size: int = 10, page: int = 1
    ) -> list[FoodRecord]:
        """Search Open Food Facts products."""
        payload = await self.client.search_products(query, page_size=page_size, page=page)
        foods = _map_products(payload)
        if self.debug:
            _logger.info("Open Food Facts search: query=%s results=%s", query, len(foods))
        return foods

    async def get_by_barcode(self, barcode: str) -> FoodRecord | None:
        """Look up a product by barcode."""
        product = await self.client.get_product(barcode)
        if product is None:
            return None
        food = product_to_food(product)
        if food is None:
            raise ProviderError(
                ProviderErrorKind.PARSE_ERROR,
                f"Product {barcode} has no usable identifier or name",
            )
        return food

    async def get_popular_foods(self, limit: int = 50) -> list[FoodRecord]:
        """Return the most scanned products."""
        return _map_products(await self.client.list_popular_products(limit))

    async def get_foods_by_category(
        self, category: str, limit: int = 20
    ) -> list[FoodRecord]:
        """Return products tagged with a category."""
        return _map_products(await self.client.list_category_products(category, limit))


@dataclass
class FdcProvider(NutritionProvider):
    """Provider backed by USDA FoodData Central."""

    fdc_client: FdcClient
    debug: bool = False

    async def search(
        self, query: str, page_size: int = 10, page: int = 1
    ) -> list[FoodRecord]:
        """Search FDC foods; nutrients come from the search payload itself."""
        payload = await self.fdc_client.search_foods(query, page_size=page_size)
        foods = [
            food
            for food in (fdc_food_to_record(item) for item in _list_field(payload, "foods"))
            if food is not None
        ]
        if self.debug:
            _logger.info("Nutrition search FDC: query=%s results=%s", query, len(foods))
        return foods

    async def get_by_barcode(self, barcode: str) -> FoodRecord | None:
        """Find a branded food whose GTIN matches the barcode exactly."""
        payload = await self.fdc_client.search_foods(
            barcode, page_size=5, data_types=["Branded"]
        )
        wanted = barcode.lstrip("0")
        for item in _list_field(payload, "foods"):
            gtin = str(item.get("gtinUpc") or "")
            if gtin and gtin.lstrip("0") == wanted:
                return fdc_food_to_record(item)
        return None

    async def get_popular_foods(self, limit: int = 50) -> list[FoodRecord]:
        """FDC has no popularity ordering to list from."""
        raise ProviderError(
            ProviderErrorKind.NOT_FOUND,
            "FoodData Central does not expose popular foods",
        )

    async def get_foods_by_category(
        self, category: str, limit: int = 20
    ) -> list[FoodRecord]:
        """Approximate a category listing with a search for the category name."""
        return await self.search(category, page_size=limit)


def product_to_food(product: Mapping[str, object]) -> FoodRecord | None:
    """Map an Open Food Facts product onto a food record."""
    code = product.get("code") or product.get("id")
    name = clean_name(_as_str(product.get("product_name")))
    if not code or not name:
        return None

    nutriments = product.get("nutriments")
    if not isinstance(nutriments, Mapping):
        nutriments = {}
    brand = first_brand(_as_str(product.get("brands")))
    category = main_category(_as_str(product.get("categories")))

    kcal = _first_number(nutriments, _OFF_KCAL_KEYS)
    if kcal is None:
        kilojoules = _first_number(nutriments, _OFF_KJ_KEYS)
        kcal = kilojoules_to_kcal(kilojoules) if kilojoules is not None else None

    present = {"name"}
    if product.get("brands"):
        present.add("brand")
    if product.get("categories"):
        present.add("category")
    if kcal is not None:
        present.add("energy")
    values: dict[str, float] = {}
    for field, keys in _OFF_NUTRIMENTS.items():
        value = _first_number(nutriments, keys)
        if value is not None:
            present.add(field)
        values[field] = max(value or 0.0, 0.0)

    return FoodRecord(
        food_id=str(code),
        barcode=_as_str(product.get("code")),
        name=name,
        brand=brand,
        category=category,
        calories=max(round(kcal or 0.0), 0),
        protein=values["protein"],
        carbs=values["carbs"],
        fat=values["fat"],
        fiber=values["fiber"],
        sugar=values["sugar"],
        sodium=values["sodium"] * 1000,
        serving_size=DEFAULT_SERVING_SIZE,
        serving_unit="g",
        data_source=DataSource.REMOTE_API,
        data_quality=data_quality_score(present),
        search_terms=build_search_terms(name, brand, category),
    )


def fdc_food_to_record(food: Mapping[str, object]) -> FoodRecord | None:
    """Map an FDC search hit or food detail payload onto a food record."""
    fdc_id = food.get("fdcId")
    name = clean_name(_as_str(food.get("description")))
    if fdc_id is None or not name:
        return None

    brand = clean_text(_as_str(food.get("brandName") or food.get("brandOwner")))
    category = _fdc_category(food)
    amounts = _extract_nutrients(food.get("foodNutrients"))
    kcal = amounts.get("calories")
    if kcal is None and amounts.get("energy_kj") is not None:
        kcal = kilojoules_to_kcal(amounts["energy_kj"])

    present = {"name"}
    if brand:
        present.add("brand")
    if category:
        present.add("category")
    if kcal is not None:
        present.add("energy")
    present.update(
        field
        for field in ("protein", "carbs", "fat", "fiber", "sugar")
        if field in amounts
    )

    return FoodRecord(
        food_id=f"fdc-{fdc_id}",
        barcode=_as_str(food.get("gtinUpc")),
        name=name,
        brand=brand,
        category=category,
        calories=max(round(kcal or 0.0), 0),
        protein=max(amounts.get("protein", 0.0), 0.0),
        carbs=max(amounts.get("carbs", 0.0), 0.0),
        fat=max(amounts.get("fat", 0.0), 0.0),
        fiber=max(amounts.get("fiber", 0.0), 0.0),
        sugar=max(amounts.get("sugar", 0.0), 0.0),
        sodium=max(amounts.get("sodium", 0.0), 0.0),
        serving_size=DEFAULT_SERVING_SIZE,
        serving_unit="g",
        data_source=DataSource.REMOTE_API,
        data_quality=data_quality_score(present),
        search_terms=build_search_terms(name, brand, category),
    )


def _map_products(payload: Mapping[str, object]) -> list[FoodRecord]:
    foods = []
    for product in _list_field(payload, "products"):
        if not product.get("product_name") or not product.get("nutriments"):
            continue
        food = product_to_food(product)
        if food is not None:
            foods.append(food)
    return foods


def _list_field(payload: Mapping[str, object], key: str) -> list[Mapping[str, object]]:
    """Return a list of objects from a payload, rejecting malformed shapes."""
    items = payload.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ProviderError(
            ProviderErrorKind.PARSE_ERROR, f"Expected '{key}' to be a list"
        )
    return [item for item in items if isinstance(item, Mapping)]


def _extract_nutrients(food_nutrients: object) -> dict[str, float]:
    """Extract known nutrients from FDC search or detail nutrient lists."""
    ids_to_field = {nutrient_id: field for field, nutrient_id in _NUTRIENT_IDS.items()}
    values: dict[str, float] = {}
    if not isinstance(food_nutrients, list):
        return values
    for nutrient in food_nutrients:
        if not isinstance(nutrient, Mapping):
            continue
        nutrient_info = nutrient.get("nutrient") or {}
        nutrient_id = nutrient_info.get("id") or nutrient.get("nutrientId")
        field = ids_to_field.get(nutrient_id)
        amount = _to_float(nutrient.get("amount", nutrient.get("value")))
        if field is not None and amount is not None:
            values[field] = amount
    return values


def _fdc_category(food: Mapping[str, object]) -> str | None:
    category = food.get("foodCategory") or food.get("brandedFoodCategory")
    if isinstance(category, Mapping):
        category = category.get("description")
    return clean_text(_as_str(category), 100) or clean_text(_as_str(food.get("dataType")))


def _first_number(values: Mapping[str, object], keys: tuple[str, ...]) -> float | None:
    for key in keys:
        number = _to_float(values.get(key))
        if number is not None:
            return number
    return None


def _to_float(value: object) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
