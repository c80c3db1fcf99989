from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from dtsli.core.errors import BackendStatusError, BackendUnreachableError

logger = structlog.get_logger()

# Transport failures worth another attempt; HTTP statuses are handed back to the caller
RETRYABLE_EXCEPTIONS = (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError)


class BaseHTTPClient:
    """Base HTTP client with bounded retry on transport errors."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._backoff_factor = backoff_factor

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        return {"Content-Type": "application/json"}

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute HTTP request, retrying transport errors a bounded number of times."""
        url = self._url(path)
        req_headers = self._headers()
        if headers:
            req_headers.update(headers)

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
                stop=stop_after_attempt(self._max_retries),
                wait=wait_exponential(multiplier=self._backoff_factor, max=30),
                reraise=True,
            ):
                with attempt:
                    async with httpx.AsyncClient(timeout=self._timeout) as client:
                        return await client.request(
                            method,
                            url,
                            params=params,
                            json=json,
                            headers=req_headers,
                        )
        except RETRYABLE_EXCEPTIONS as exc:
            logger.warning("http_network_error", method=method, url=url, error=str(exc))
            raise BackendUnreachableError(
                f"Dynatrace API at {self._base_url} could not be reached: {exc}",
                {"url": url},
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("http_unexpected_error", method=method, url=url, error=str(exc))
            raise BackendUnreachableError(str(exc), {"url": url}) from exc
        raise AssertionError("unreachable")  # pragma: no cover

    async def get_json(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """GET and decode a JSON object, mapping non-success statuses to BackendStatusError."""
        response = await self._request("GET", path, params=params)
        if not response.is_success:
            raise status_error(response)
        return decode_json(response)


def decode_json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json() if response.content else {}
    except ValueError as exc:
        raise BackendStatusError(
            f"Dynatrace API returned an undecodable body (status {response.status_code})",
            status_code=response.status_code,
        ) from exc
    if not isinstance(data, dict):
        raise BackendStatusError(
            "Dynatrace API returned an unexpected JSON document",
            status_code=response.status_code,
        )
    return data


def status_error(response: httpx.Response) -> BackendStatusError:
    """Build an error from ``{"error": {"code", "message"}}`` or a generic status message."""
    try:
        payload = response.json()
        error = payload["error"]
        code = int(error["code"])
        message = error["message"]
    except (ValueError, KeyError, TypeError):
        logger.error("http_permanent_error", status=response.status_code, url=str(response.url))
        return BackendStatusError(
            f"Dynatrace API returned status code {response.status_code}",
            status_code=response.status_code,
        )
    logger.error(
        "http_permanent_error",
        status=response.status_code,
        url=str(response.url),
        error_code=code,
        error=message,
    )
    return BackendStatusError(
        f"Dynatrace API returned status code {code}: {message}",
        status_code=response.status_code,
        error_code=code,
    )
