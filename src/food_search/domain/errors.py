"""Error taxonomy for food search."""

from enum import Enum


class FoodSearchError(Exception):
    """Base class for food search errors."""


class ValidationError(FoodSearchError):
    """Raised when caller input is missing or invalid."""


class ProviderErrorKind(str, Enum):
    """Failure categories for remote nutrition providers."""

    HTTP_ERROR = "http_error"
    PARSE_ERROR = "parse_error"
    NOT_FOUND = "not_found"


class ProviderError(FoodSearchError):
    """Raised when a remote nutrition provider call fails."""

    def __init__(
        self, kind: ProviderErrorKind, message: str, status: int | None = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status


class StoreError(FoodSearchError):
    """Raised when the food cache store fails."""


class IngestionFatalError(FoodSearchError):
    """Raised when bulk ingestion cannot start at all."""
