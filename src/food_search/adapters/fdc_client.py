"""USDA FoodData Central API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from food_search.adapters.http_json import request_json


class FdcClient(Protocol):
    """Interface for FoodData Central API interactions."""

    async def search_foods(
        self, query: str, page_size: int = 10, data_types: list[str] | None = None
    ) -> dict[str, object]:
        """Search foods by query and return raw API data."""


@dataclass
class HttpxFdcClient(FdcClient):
    """HTTPX-backed FDC client."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15

    @classmethod
    def create(cls, api_key: str, base_url: str, timeout: float = 15) -> "HttpxFdcClient":
        """Create an FDC client with a managed httpx session."""
        return cls(
            api_key=api_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def search_foods(
        self, query: str, page_size: int = 10, data_types: list[str] | None = None
    ) -> dict[str, object]:
        """Search foods by query."""
        body: dict[str, object] = {"query": query, "pageSize": page_size}
        if data_types:
            body["dataType"] = data_types
        payload = await request_json(
            self.http_client,
            "POST",
            f"{self.base_url}/foods/search",
            timeout=self.timeout,
            params={"api_key": self.api_key},
            json=body,
        )
        return payload or {}

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
