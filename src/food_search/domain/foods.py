"""Food domain models."""

import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

NAME_MAX_LENGTH = 255
CATEGORY_MAX_LENGTH = 100
DEFAULT_SERVING_SIZE = 100.0
KJ_PER_KCAL = 4.184
MIN_TOKEN_LENGTH = 2

_WHITESPACE = re.compile(r"\s+")
_TRADEMARKS = re.compile(r"[™®©]")
_TRAILING_DASH = re.compile(r"\s*-\s*$")
_TOKEN_SPLIT = re.compile(r"[^\w]+")


class DataSource(str, Enum):
    """Where a cached food record came from."""

    EXTERNAL_DATASET = "external-dataset"
    REMOTE_API = "remote-api"


class Band(str, Enum):
    """Traffic-light band for a macro metric."""

    GREEN = "green"
    AMBER = "amber"
    RED = "red"


@dataclass(frozen=True)
class MacroScore:
    """A macro metric value with its band."""

    value: float
    band: Band


@dataclass(frozen=True)
class NutritionScores:
    """Macro composition of a serving, banded for display."""

    protein_percent: MacroScore
    carbs_percent: MacroScore
    fat_percent: MacroScore
    calories_per_gram: MacroScore


@dataclass(frozen=True)
class FoodRecord:
    """Canonical nutrition entry shared by the cache store and providers."""

    food_id: str
    name: str
    barcode: str | None = None
    brand: str | None = None
    category: str | None = None
    calories: int = 0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0
    serving_size: float = DEFAULT_SERVING_SIZE
    serving_unit: str = "g"
    data_source: DataSource = DataSource.REMOTE_API
    data_quality: float = 0.0
    popularity_score: int = 0
    search_terms: tuple[str, ...] = ()
    last_updated: datetime | None = None
    created_at: datetime | None = None

    def with_popularity(self, popularity_score: int) -> "FoodRecord":
        """Return a copy with a different popularity score."""
        return replace(self, popularity_score=max(0, popularity_score))

    def nutrition_scores(self) -> NutritionScores:
        """Compute banded macro percentages for one serving."""
        weight = self.serving_size or DEFAULT_SERVING_SIZE
        protein_percent = self.protein / weight * 100
        carbs_percent = self.carbs / weight * 100
        fat_percent = self.fat / weight * 100
        calories_per_gram = self.calories / weight
        return NutritionScores(
            protein_percent=MacroScore(protein_percent, _protein_band(protein_percent)),
            carbs_percent=MacroScore(carbs_percent, _carbs_band(carbs_percent)),
            fat_percent=MacroScore(fat_percent, _fat_band(fat_percent)),
            calories_per_gram=MacroScore(
                calories_per_gram, _calorie_density_band(calories_per_gram)
            ),
        )


@dataclass(frozen=True)
class CacheStats:
    """Aggregate view over the food cache."""

    count: int
    avg_popularity: float
    last_update: datetime | None


@dataclass(frozen=True)
class SearchHit:
    """A food served by a search along with where it came from."""

    food: FoodRecord
    origin: str


@dataclass(frozen=True)
class SearchResult:
    """Outcome of a hybrid food search."""

    results: list[SearchHit]
    source: str
    cache_hits: int
    api_hits: int
    total: int
    error: str | None = None


@dataclass(frozen=True)
class BarcodeResult:
    """Outcome of a barcode lookup."""

    result: FoodRecord | None
    source: str
    error: str | None = None


def clean_name(name: str | None) -> str:
    """Normalize a product name for storage."""
    if not name:
        return ""
    cleaned = _WHITESPACE.sub(" ", name)
    cleaned = _TRADEMARKS.sub("", cleaned)
    cleaned = _TRAILING_DASH.sub("", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:NAME_MAX_LENGTH]


def clean_text(text: str | None, max_length: int = NAME_MAX_LENGTH) -> str | None:
    """Collapse whitespace and cap length; empty values become None."""
    if not text:
        return None
    cleaned = _WHITESPACE.sub(" ", text).strip()
    return cleaned[:max_length] or None


def first_brand(brands: str | None) -> str | None:
    """Return the first brand from a comma separated list."""
    if not brands:
        return None
    return clean_text(brands.split(",")[0])


def main_category(categories: str | None) -> str | None:
    """Return the first category without its language prefix."""
    if not categories:
        return None
    first = categories.split(",")[0].split(":")[-1]
    return clean_text(first, CATEGORY_MAX_LENGTH)


def build_search_terms(
    name: str | None, brand: str | None = None, category: str | None = None
) -> tuple[str, ...]:
    """Build the lowercase token bag used for fuzzy matching."""
    terms: list[str] = []
    seen: set[str] = set()
    for text in (name, brand, category):
        if not text:
            continue
        for token in _TOKEN_SPLIT.split(text.lower()):
            if len(token) > MIN_TOKEN_LENGTH and token not in seen:
                seen.add(token)
                terms.append(token)
    return tuple(terms)


def kilojoules_to_kcal(kilojoules: float) -> float:
    """Convert an energy value in kJ to kcal."""
    return kilojoules / KJ_PER_KCAL


def _protein_band(percent: float) -> Band:
    if percent >= 20:
        return Band.GREEN
    if percent >= 10:
        return Band.AMBER
    return Band.RED


def _carbs_band(percent: float) -> Band:
    if percent >= 60:
        return Band.RED
    if percent >= 30:
        return Band.AMBER
    return Band.GREEN


def _fat_band(percent: float) -> Band:
    if percent >= 40:
        return Band.RED
    if percent >= 20:
        return Band.AMBER
    return Band.GREEN


def _calorie_density_band(calories_per_gram: float) -> Band:
    if calories_per_gram <= 2.0:
        return Band.GREEN
    if calories_per_gram <= 4.0:
        return Band.AMBER
    return Band.RED
