"""
Corio Scan API Client

Thin async transport over the DermaAssistAI backend. Every call is a
non-blocking httpx request with one of two timeout classes:

- default: ordinary CRUD reads and writes (API_TIMEOUT)
- extended: AI case analysis and lesion comparison (ANALYSIS_TIMEOUT)

Failures are classified once, here:
- httpx.ConnectTimeout -> ConnectionTimeout (retryable, nothing was sent)
- other httpx.TimeoutException -> RequestTimeout (not retryable)
- other httpx.TransportError -> NetworkError
- HTTP status >= 400 -> ApiError (never retried by the client)
"""

import time
from typing import Any, Dict, Optional

import httpx

from corio_client import config
from corio_client.errors import ApiError, ConnectionTimeout, NetworkError, RequestTimeout
from corio_client.structured_logging import generate_request_id, log_api_call


class ApiClient:
    """Service for talking to the Corio Scan backend."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        analysis_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self.token = token if token is not None else config.API_TOKEN
        self.timeout = timeout if timeout is not None else config.API_TIMEOUT
        self.analysis_timeout = analysis_timeout if analysis_timeout is not None else config.ANALYSIS_TIMEOUT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        extended_timeout: bool = False,
        raw: bool = False,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: API path, e.g. "/api/cases"
            json: Request body
            extended_timeout: Use the long analysis deadline instead of the default
            raw: Return the response bytes instead of decoding JSON

        Returns:
            Decoded JSON ({} for empty/204 responses), or bytes when raw=True
        """
        client = await self._get_client()
        timeout = self.analysis_timeout if extended_timeout else self.timeout
        timeout_class = "extended" if extended_timeout else "default"
        request_id = generate_request_id()
        started = time.perf_counter()

        try:
            response = await client.request(
                method,
                path,
                json=json,
                timeout=timeout,
                headers={"X-Request-ID": request_id},
            )
        except httpx.ConnectTimeout as e:
            log_api_call(method, path, None, (time.perf_counter() - started) * 1000,
                         timeout_class=timeout_class, error=f"connect timeout: {e!r}", http_request_id=request_id)
            raise ConnectionTimeout(f"{method} {path} could not connect within {timeout}s") from e
        except httpx.TimeoutException as e:
            log_api_call(method, path, None, (time.perf_counter() - started) * 1000,
                         timeout_class=timeout_class, error=f"timeout: {e!r}", http_request_id=request_id)
            raise RequestTimeout(f"{method} {path} timed out after {timeout}s") from e
        except httpx.TransportError as e:
            log_api_call(method, path, None, (time.perf_counter() - started) * 1000,
                         timeout_class=timeout_class, error=repr(e), http_request_id=request_id)
            raise NetworkError(f"{method} {path} failed: {e}") from e

        log_api_call(method, path, response.status_code, (time.perf_counter() - started) * 1000,
                     timeout_class=timeout_class, http_request_id=request_id)

        if response.status_code >= 400:
            raise self._to_api_error(response)

        if raw:
            return response.content

        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(response.status_code, f"Invalid JSON in response to {method} {path}") from e

    @staticmethod
    def _to_api_error(response: httpx.Response) -> ApiError:
        """Build an ApiError from the server's {error, message} body when present."""
        payload: Dict[str, Any] = {}
        try:
            body = response.json()
            if isinstance(body, dict):
                payload = body
        except ValueError:
            pass

        message = payload.get("message") or payload.get("error") or response.reason_phrase or "Request failed"
        error_code = payload.get("error") if isinstance(payload.get("error"), str) else None
        return ApiError(response.status_code, message, error_code=error_code, payload=payload)

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, data: Any = None, extended_timeout: bool = False) -> Any:
        return await self.request("POST", path, json=data, extended_timeout=extended_timeout)

    async def patch(self, path: str, data: Any = None) -> Any:
        return await self.request("PATCH", path, json=data)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def post_for_bytes(self, path: str, data: Any = None) -> bytes:
        return await self.request("POST", path, json=data, raw=True)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
