"""Base async REST client for third-party indexers and price APIs."""

from typing import Any

import httpx

from treasury.exceptions import UpstreamError
from treasury.logging import get_logger

logger = get_logger(__name__)


class RestClient:
    """Thin wrapper over a shared httpx.AsyncClient.

    Converts transport errors, non-2xx statuses and unparseable bodies into
    UpstreamError so callers deal with a single failure type.
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient, timeout: float = 15.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    async def get_json(self, path_or_url: str, params: dict | None = None) -> Any:
        url = path_or_url if path_or_url.startswith("http") else f"{self._base_url}{path_or_url}"
        headers = self._headers()
        try:
            response = await self._client.get(
                url, params=params, headers=headers, timeout=self._timeout
            )
        except httpx.HTTPError as e:
            logger.warning("upstream_request_failed", url=url, error=str(e))
            raise UpstreamError(f"Request to {url} failed: {e}") from e

        if not response.is_success:
            logger.warning("upstream_bad_status", url=url, status=response.status_code)
            raise UpstreamError(f"Request to {url} returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Request to {url} returned invalid JSON") from e
