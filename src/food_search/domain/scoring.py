"""Scoring rubrics shared by ingestion and live provider mapping.

The weights here encode product policy: the same rubric must score records
whether they arrive from the bulk dataset or from a live provider call, so
cached entries stay comparable.
"""

import math
import re
from collections.abc import Iterable

QUALITY_WEIGHTS: dict[str, float] = {
    "name": 2.0,
    "brand": 1.0,
    "category": 1.0,
    "energy": 2.0,
    "protein": 1.0,
    "carbs": 1.0,
    "fat": 1.0,
    "fiber": 0.5,
    "sugar": 0.5,
}
QUALITY_MAX_SCORE = 10.0

PRIORITY_WHOLE_FOODS = (
    "apple",
    "banana",
    "orange",
    "strawberry",
    "blueberry",
    "grape",
    "avocado",
    "broccoli",
    "spinach",
    "carrot",
    "tomato",
    "potato",
    "onion",
    "garlic",
    "chicken breast",
    "salmon",
    "tuna",
    "ground beef",
    "eggs",
    "tofu",
    "milk",
    "cheese",
    "yogurt",
    "butter",
    "olive oil",
    "rice",
    "oats",
    "quinoa",
    "bread",
    "pasta",
    "almonds",
    "walnuts",
    "peanuts",
    "black beans",
    "lentils",
)

GOOD_CATEGORIES = (
    "fruits",
    "vegetables",
    "meat",
    "fish",
    "seafood",
    "poultry",
    "dairy",
    "eggs",
    "grains",
    "cereals",
    "nuts",
    "legumes",
    "oils",
)

AVOID_CATEGORIES = (
    "sodas",
    "candy",
    "cookies",
    "chips",
    "ice-cream",
    "chocolate",
    "frozen-meals",
    "ready-meals",
    "fast-food",
)

PRIORITY_FOOD_BONUS = 10
GOOD_CATEGORY_BONUS = 5
AVOID_CATEGORY_PENALTY = -8
NO_TRADEMARK_BONUS = 2

MIN_POPULARITY_WITHOUT_WHOLE_FOOD = 10
MIN_DATA_QUALITY = 0.3

WHOLE_FOOD_WEIGHT = 0.4
POPULARITY_WEIGHT = 0.3
QUALITY_WEIGHT = 0.3

_TRADEMARK = re.compile(r"[®™©]")


def data_quality_score(present_fields: Iterable[str]) -> float:
    """Score record completeness in [0, 1] from the names of present fields."""
    score = sum(QUALITY_WEIGHTS.get(field, 0.0) for field in set(present_fields))
    return min(score / QUALITY_MAX_SCORE, 1.0)


def whole_food_score(name: str, categories: str | None, ingredients: str | None) -> int:
    """Heuristic favoring minimally processed foods; never negative."""
    score = 0
    name_lower = name.lower()
    categories_lower = (categories or "").lower()

    if any(food in name_lower for food in PRIORITY_WHOLE_FOODS):
        score += PRIORITY_FOOD_BONUS
    if any(category in categories_lower for category in GOOD_CATEGORIES):
        score += GOOD_CATEGORY_BONUS
    if any(category in categories_lower for category in AVOID_CATEGORIES):
        score += AVOID_CATEGORY_PENALTY

    score += _name_length_points(len(name.split()))
    if ingredients:
        score += _ingredient_points(len(ingredients.split(",")))
    if not _TRADEMARK.search(name):
        score += NO_TRADEMARK_BONUS

    return max(0, score)


def total_score(whole_food: int, popularity_rank: int, data_quality: float) -> float:
    """Combine the three ingestion scores into one ranking key."""
    return (
        WHOLE_FOOD_WEIGHT * whole_food
        + POPULARITY_WEIGHT * math.log(popularity_rank + 1)
        + QUALITY_WEIGHT * data_quality
    )


def is_acceptable(
    whole_food: int,
    popularity_rank: int,
    data_quality: float,
    min_quality: float = MIN_DATA_QUALITY,
) -> bool:
    """Return whether a candidate meets the minimum record policy."""
    if whole_food == 0 and popularity_rank < MIN_POPULARITY_WITHOUT_WHOLE_FOOD:
        return False
    return data_quality >= min_quality


def _name_length_points(word_count: int) -> int:
    if word_count <= 2:
        return 3
    if word_count <= 4:
        return 1
    return -2


def _ingredient_points(ingredient_count: int) -> int:
    if ingredient_count == 1:
        return 5
    if ingredient_count <= 3:
        return 2
    if ingredient_count <= 5:
        return 0
    return -3
