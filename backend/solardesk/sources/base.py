"""Shared HTTP plumbing for the partner data services."""

import logging
from typing import Any

import httpx

from solardesk.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


class BaseSource:
    """JSON-over-HTTP client for one partner service.

    Every failure mode (timeout, connection error, non-200, bad JSON) is
    raised as UpstreamUnavailable so callers have a single thing to catch.
    """

    name = "source"

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._transport = transport

    def _get_headers(self) -> dict[str, str]:
        """Get HTTP headers for API requests."""
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def _get_json(self, path: str, params: dict | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url, params=params, headers=self._get_headers())
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"{self.name} timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            raise UpstreamUnavailable(f"{self.name} connection error: {e}") from e

        if response.status_code != 200:
            raise UpstreamUnavailable(f"{self.name} returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"{self.name} returned invalid JSON") from e

    def _extract_list(self, data: Any, key: str) -> list[dict]:
        """Pull the record list out of an envelope, tolerating a missing key."""
        items = data.get(key) if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.info(f"No {key} in {self.name} response")
            return []
        return [item for item in items if isinstance(item, dict)]
