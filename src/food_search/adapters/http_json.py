"""Shared JSON request helper for provider HTTP clients."""

import httpx

from food_search.domain.errors import ProviderError, ProviderErrorKind

HTTP_NOT_FOUND = 404


async def request_json(
    http_client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: float,
    allow_not_found: bool = False,
    **kwargs: object,
) -> dict[str, object] | None:
    """Issue one request and decode a JSON object body.

    Returns ``None`` for a 404 when ``allow_not_found`` is set. Every other
    failure is raised as a ``ProviderError``; nothing is retried here.
    """
    try:
        response = await http_client.request(method, url, timeout=timeout, **kwargs)
    except httpx.HTTPError as exc:
        raise ProviderError(
            ProviderErrorKind.HTTP_ERROR, f"{method} {url} failed: {exc}"
        ) from exc

    if response.status_code == HTTP_NOT_FOUND:
        if allow_not_found:
            return None
        raise ProviderError(
            ProviderErrorKind.NOT_FOUND,
            f"{method} {url} returned 404",
            status=HTTP_NOT_FOUND,
        )
    if response.is_error:
        raise ProviderError(
            ProviderErrorKind.HTTP_ERROR,
            f"{method} {url} returned {response.status_code}",
            status=response.status_code,
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderError(
            ProviderErrorKind.PARSE_ERROR, f"{method} {url} returned invalid JSON"
        ) from exc
    if not isinstance(payload, dict):
        raise ProviderError(
            ProviderErrorKind.PARSE_ERROR,
            f"{method} {url} returned {type(payload).__name__}, expected object",
        )
    return payload
