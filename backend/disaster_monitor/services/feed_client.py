"""
Shared HTTP plumbing for the hazard feed adapters.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from disaster_monitor.config import Settings, get_settings
from disaster_monitor.exceptions import FeedError

logger = logging.getLogger(__name__)


class FeedClient:
    """Base class for stateless clients of one upstream feed."""

    source = "feed"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.timeout = self.settings.external_api_timeout_seconds
        self.transport = transport

    async def _fetch_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """GET a JSON document, raising FeedError on any failure."""
        try:
            return await self._make_request(url, params or {}, timeout or self.timeout)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"{self.source} request to {url} failed: {e}")
            raise FeedError(self.source, str(e)) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        reraise=True,
    )
    async def _make_request(self, url: str, params: Dict[str, Any], timeout: float) -> Any:
        async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()
