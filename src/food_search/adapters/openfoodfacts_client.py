"""Open Food Facts API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from food_search.adapters.http_json import request_json

SEARCH_FIELDS = (
    "code,product_name,brands,categories,nutriments,serving_size,"
    "serving_quantity,nutrition_grades,nova_group"
)


class OpenFoodFactsClient(Protocol):
    """Interface for Open Food Facts API interactions."""

    async def search_products(
        self, query: str, page_size: int = 10, page: int = 1
    ) -> dict[str, object]:
        """Search products by free text and return raw API data."""

    async def get_product(self, barcode: str) -> dict[str, object] | None:
        """Fetch a product by barcode; ``None`` when it does not exist."""

    async def list_popular_products(self, limit: int = 50) -> dict[str, object]:
        """List products ordered by scan count."""

    async def list_category_products(
        self, category: str, limit: int = 20
    ) -> dict[str, object]:
        """List products tagged with a category."""


@dataclass
class HttpxOpenFoodFactsClient(OpenFoodFactsClient):
    """HTTPX-backed Open Food Facts client."""

    base_url: str
    search_url: str
    user_agent: str
    http_client: httpx.AsyncClient
    timeout: float = 15

    @classmethod
    def create(
        cls, base_url: str, search_url: str, user_agent: str, timeout: float = 15
    ) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url,
            search_url=search_url,
            user_agent=user_agent,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def search_products(
        self, query: str, page_size: int = 10, page: int = 1
    ) -> dict[str, object]:
        """Search products by free text."""
        return await self._search(
            {
                "search_terms": query,
                "search_simple": 1,
                "page_size": page_size,
                "page": page,
            }
        )

    async def get_product(self, barcode: str) -> dict[str, object] | None:
        """Fetch a single product by barcode."""
        payload = await request_json(
            self.http_client,
            "GET",
            f"{self.base_url}/product/{barcode}",
            timeout=self.timeout,
            allow_not_found=True,
            headers=self._headers(),
        )
        if payload is None or payload.get("status") == 0:
            return None
        product = payload.get("product")
        return product if isinstance(product, dict) else None

    async def list_popular_products(self, limit: int = 50) -> dict[str, object]:
        """List the most scanned products."""
        return await self._search({"page_size": limit, "sort_by": "unique_scans_n"})

    async def list_category_products(
        self, category: str, limit: int = 20
    ) -> dict[str, object]:
        """List products in a category."""
        return await self._search(
            {
                "page_size": limit,
                "tagtype_0": "categories",
                "tag_contains_0": "contains",
                "tag_0": category,
            }
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _search(self, params: dict[str, object]) -> dict[str, object]:
        payload = await request_json(
            self.http_client,
            "GET",
            self.search_url,
            timeout=self.timeout,
            params={"action": "process", "json": 1, "fields": SEARCH_FIELDS, **params},
            headers=self._headers(),
        )
        return payload or {}

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent}
