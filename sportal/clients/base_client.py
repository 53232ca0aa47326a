from typing import Any, Dict, Optional

import httpx
from loguru import logger

from sportal.config.settings import settings


class UpstreamError(Exception):
    """Base exception for failures talking to the upstream sports API."""

    pass


class UpstreamRequestFailed(UpstreamError):
    """Exception raised when the upstream API answers with a non-success status."""

    def __init__(self, status_code: int, body: str, url: str = ""):
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(f"Upstream API error: {status_code}")


class UpstreamUnreachable(UpstreamError):
    """Exception raised for network-level failures (DNS, connect, timeouts)."""

    pass


class BaseApiClient:
    """Thin async JSON client for a key + tenant authenticated REST API.

    No retries happen here: callers decide whether a failure is fatal or
    recoverable.
    """

    name: str = "upstream"

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or settings.request_timeout_seconds),
            follow_redirects=True,
        )
        self.headers = {"Accept": "application/json", **(headers or {})}

    async def _make_request(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """GETs ``path`` and returns the decoded JSON body."""
        url = f"{self.base_url}{path}"
        params = {k: v for k, v in (params or {}).items() if v is not None}
        logger.debug(f"GET {url} params={params}")
        try:
            response = await self.client.get(url, headers=self.headers, params=params)
        except httpx.RequestError as e:
            logger.error(f"{self.name} request to {url} failed: {e!r}")
            raise UpstreamUnreachable(f"Could not reach {url}: {e}") from e

        if not response.is_success:
            body = response.text
            logger.error(f"{self.name} API error ({response.status_code}) for {url}: {body}")
            raise UpstreamRequestFailed(response.status_code, body, url)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{self.name} returned a non-JSON body for {url}")
            raise UpstreamRequestFailed(response.status_code, response.text, url) from e

    async def close(self):
        """Closes the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()
            logger.debug(f"Closed HTTP client for {self.name}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()
