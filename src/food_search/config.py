"""Application configuration."""

import os
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str = ""
    nutrition_provider: Literal["openfoodfacts", "fdc"] = "openfoodfacts"
    off_base_url: str = "https://world.openfoodfacts.org/api/v2"
    off_search_url: str = "https://world.openfoodfacts.org/cgi/search.pl"
    off_user_agent: str = "food-search/0.1 (ops@example.com)"
    fdc_api_key: str | None = None
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    http_timeout_seconds: float = 15
    memo_ttl_seconds: int = 300
    cache_min_results: int = 5
    ingestion_batch_size: int = 1000
    ingestion_min_quality: float = 0.3
    seed_delay_seconds: float = 6.0
    debug: bool = False
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_fdc_key(self) -> "Settings":
        if self.nutrition_provider == "fdc" and not self.fdc_api_key:
            raise ValueError("fdc_api_key is required when nutrition_provider is 'fdc'")
        return self
