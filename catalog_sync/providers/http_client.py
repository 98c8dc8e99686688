"""
Authenticated, rate-limited HTTP transport for one commerce backend.
"""
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from catalog_sync.core.errors import ApiError
from catalog_sync.core.rate_limiter import RateLimiter
from catalog_sync.utils.logger import get_logger

logger = get_logger("providers.http_client")


class ExternalCommerceClient:
    """
    Thin async JSON client around ``httpx.AsyncClient``.

    Every call awaits the backend's ``RateLimiter`` first. Subclasses set
    auth headers in ``__init__`` and may rewrite the URL/query in
    ``prepare_request`` (WooCommerce signs the query string).
    """

    provider_label = "Commerce"

    def __init__(
        self,
        base_url: str,
        rate_limiter: RateLimiter,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter
        self.client = httpx.AsyncClient(
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    def prepare_request(
        self, method: str, endpoint: str, params: Optional[Dict[str, Any]]
    ) -> Tuple[str, Optional[Dict[str, Any]]]:
        """Return the absolute URL and query params for ``endpoint``."""
        return f"{self.base_url}{endpoint}", params

    async def request(self, endpoint: str, method: str = "GET", **options) -> Any:
        """Issue a request and return the parsed JSON body."""
        data, _ = await self.request_with_headers(endpoint, method=method, **options)
        return data

    async def request_with_headers(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[Any, Mapping[str, str]]:
        """Issue a request; return the parsed JSON body and the response headers."""
        await self.rate_limiter.check_rate_limit()

        url, query = self.prepare_request(method, endpoint, params)
        try:
            response = await self.client.request(method, url, params=query, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"{self.provider_label} API request failed: {endpoint}: {e}")
            raise ApiError(f"{self.provider_label} API request failed: {e}", status=0) from e

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            logger.error(f"{self.provider_label} API request failed: {endpoint} ({response.status_code})")
            raise ApiError(
                f"{self.provider_label} API error: {response.status_code} {response.reason_phrase} - {response.text}",
                status=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(
                f"{self.provider_label} API returned invalid JSON for {endpoint}",
                status=response.status_code,
                body=response.text,
            ) from e

        logger.debug(f"{self.provider_label} API request successful: {endpoint}")
        return data, response.headers

    async def close(self) -> None:
        await self.client.aclose()
