"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from food_search.api.admin import router as admin_router
from food_search.app_logging import configure_logging
from food_search.containers import AppContainer
from food_search.domain.errors import ValidationError
from food_search.domain.foods import FoodRecord, SearchHit

HTTP_UNPROCESSABLE = 422


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        try:
            await app.state.container.close_resources()
        except Exception:
            logger.exception("Failed to close resources")

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        _request: Request, exc: ValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=HTTP_UNPROCESSABLE,
            content={"detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/foods/search")
    async def search_foods(
        request: Request,
        q: str = Query(default=""),
        limit: int = Query(default=10, ge=1, le=100),
        cache_first: bool = True,
    ) -> dict[str, object]:
        """Hybrid search over the food cache and the remote provider."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.search_service.search_foods(
            q, limit=limit, cache_first=cache_first
        )
        return {
            "results": [_serialize_hit(hit) for hit in result.results],
            "source": result.source,
            "cache_hits": result.cache_hits,
            "api_hits": result.api_hits,
            "total": result.total,
            "error": result.error,
        }

    @app.get("/foods/barcode/{barcode}")
    async def search_by_barcode(barcode: str, request: Request) -> dict[str, object]:
        """Look up a single food by barcode."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.search_service.search_by_barcode(barcode)
        return {
            "result": serialize_food(result.result) if result.result else None,
            "source": result.source,
            "error": result.error,
        }

    @app.get("/foods/popular")
    async def popular_foods(
        request: Request, limit: int = Query(default=20, ge=1, le=100)
    ) -> dict[str, object]:
        """Return the most popular cached foods."""
        state_container: AppContainer = request.app.state.container
        foods = state_container.search_service.get_popular_foods(limit)
        return {"results": [serialize_food(food) for food in foods]}

    @app.get("/foods/category/{category}")
    async def foods_by_category(
        category: str, request: Request, limit: int = Query(default=20, ge=1, le=100)
    ) -> dict[str, object]:
        """Return popular cached foods in a category."""
        state_container: AppContainer = request.app.state.container
        foods = state_container.search_service.get_foods_by_category(category, limit)
        return {"results": [serialize_food(food) for food in foods]}

    return app


def serialize_food(food: FoodRecord) -> dict[str, object]:
    """Serialize a food record for API responses."""
    scores = food.nutrition_scores()
    return {
        "food_id": food.food_id,
        "barcode": food.barcode,
        "name": food.name,
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
        "nutrition_scores": {
            "protein": {
                "percent": scores.protein_percent.value,
                "band": scores.protein_percent.band.value,
            },
            "carbs": {
                "percent": scores.carbs_percent.value,
                "band": scores.carbs_percent.band.value,
            },
            "fat": {
                "percent": scores.fat_percent.value,
                "band": scores.fat_percent.band.value,
            },
            "calories": {
                "per_gram": scores.calories_per_gram.value,
                "band": scores.calories_per_gram.band.value,
            },
        },
        "last_updated": food.last_updated.isoformat() if food.last_updated else None,
    }


def _serialize_hit(hit: SearchHit) -> dict[str, object]:
    return {**serialize_food(hit.food), "source": hit.origin}
