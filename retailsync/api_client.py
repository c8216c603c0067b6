"""
Remote API Client.

Thin synchronous wrapper over :class:`httpx.Client` for the sales-management
REST API.  It owns the transport concerns every repository shares:

- base URL, JSON headers and the bearer token (not sent to login endpoints),
- request/response logging,
- retry with exponential backoff.  GETs are retried on transport errors and
  on retryable HTTP statuses; POSTs only when the connection could not be
  established, since the server may already have applied a POST that timed
  out on the way back.

Failures surface as :class:`NetworkError` (no HTTP response) or
:class:`HttpStatusError` (non-2xx response); repositories translate them
into :class:`~retailsync.models.results.Failure` values.

Usage::

    api = ApiClient.from_config(config, StructuredLogger(name="retailsync.api"))
    payload = api.get("api/customer/download", params={"part_no": 0})
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Optional, Union

import httpx

from retailsync.config import AppConfig
from retailsync.logger import StructuredLogger
from retailsync.utils.string_helpers import JsonValue

__all__ = ["ApiClient", "ApiError", "HttpStatusError", "NetworkError"]

QueryValue = Union[str, int, float, bool, None]


class ApiError(Exception):
    """Base class for remote API failures."""


class NetworkError(ApiError):
    """The request never produced an HTTP response.

    ``reason`` is one of ``"timeout"``, ``"host"`` or ``"connection"``.
    """

    _MESSAGES: dict[str, str] = {
        "timeout": "Connection timed out. Please check your internet connection.",
        "host": "Unable to reach the server. Please check your internet connection.",
        "connection": "Network connection failed. Please check your internet connection.",
    }

    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason: str = reason
        self.detail: str = detail
        super().__init__(self._MESSAGES.get(reason, self._MESSAGES["connection"]))

    @property
    def message(self) -> str:
        return str(self)

    @classmethod
    def from_transport(cls, exc: httpx.TransportError) -> NetworkError:
        if isinstance(exc, httpx.TimeoutException):
            return cls("timeout", str(exc))
        text = str(exc).lower()
        if "name or service" in text or "nodename" in text or "getaddrinfo" in text:
            return cls("host", str(exc))
        return cls("connection", str(exc))


class HttpStatusError(ApiError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code: int = status_code
        self.body: str = body
        super().__init__(f"Server responded with HTTP {status_code}")

    @property
    def code(self) -> str:
        return f"HTTP_{self.status_code}"


class ApiClient:
    """Synchronous JSON client with bearer auth and bounded retries.

    Parameters
    ----------
    base_url:
        API root; endpoint paths passed to :meth:`get` / :meth:`post` are
        relative to it.
    logger:
        Structured logger for request tracing.
    token:
        Bearer token; empty disables the ``Authorization`` header.
    max_retries:
        Extra attempts after the first one.
    retry_delay_s:
        Base delay; attempt *n* waits ``retry_delay_s * 2 ** n``.
    client:
        Pre-built ``httpx.Client`` (tests inject one over
        ``httpx.MockTransport``).  When given, *base_url* and the timeouts
        are taken from it.
    sleep:
        Delay function, replaceable in tests.
    """

    RETRYABLE_STATUSES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})
    UNAUTHENTICATED_ENDPOINTS: frozenset[str] = frozenset({"api/login", "api/register"})

    def __init__(
        self,
        base_url: str,
        logger: StructuredLogger,
        token: str = "",
        connect_timeout_s: float = 10.0,
        read_timeout_s: float = 30.0,
        max_retries: int = 3,
        retry_delay_s: float = 1.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._logger = logger
        self._token = token
        self._max_retries = max(0, max_retries)
        self._retry_delay_s = retry_delay_s
        self._sleep = sleep
        self._owns_client = client is None
        self._client: httpx.Client = client or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(read_timeout_s, connect=connect_timeout_s),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
        )

    @classmethod
    def from_config(cls, config: AppConfig, logger: StructuredLogger) -> ApiClient:
        return cls(
            base_url=config.API_BASE_URL,
            logger=logger,
            token=config.API_TOKEN.get_secret_value(),
            connect_timeout_s=config.API_CONNECT_TIMEOUT_S,
            read_timeout_s=config.API_READ_TIMEOUT_S,
            max_retries=config.API_MAX_RETRIES,
            retry_delay_s=config.API_RETRY_DELAY_S,
        )

    def set_token(self, token: str) -> None:
        self._token = token

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(
        self, endpoint: str, params: Optional[Mapping[str, QueryValue]] = None,
    ) -> JsonValue:
        """GET *endpoint* and return the decoded JSON body.

        Raises:
            NetworkError: No response after all attempts.
            HttpStatusError: Non-2xx response after all attempts.
            ValueError: The body is not valid JSON.
        """
        return self._request("GET", endpoint, params=params)

    def post(self, endpoint: str, json: Optional[JsonValue] = None) -> JsonValue:
        """POST a JSON body to *endpoint* and return the decoded JSON body."""
        return self._request("POST", endpoint, json=json)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _headers(self, endpoint: str) -> dict[str, str]:
        if not self._token or endpoint.strip("/") in self.UNAUTHENTICATED_ENDPOINTS:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def _should_retry_transport(self, method: str, exc: httpx.TransportError) -> bool:
        if method == "GET":
            return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError))
        return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout))

    def _backoff(self, attempt: int, method: str, endpoint: str, reason: str) -> None:
        wait_time = self._retry_delay_s * (2 ** attempt)
        self._logger.warning(
            "%s %s attempt %d/%d failed, retrying in %.1fs: %s",
            method,
            endpoint,
            attempt + 1,
            self._max_retries + 1,
            wait_time,
            reason,
        )
        self._sleep(wait_time)

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Mapping[str, QueryValue]] = None,
        json: Optional[JsonValue] = None,
    ) -> JsonValue:
        query = {k: v for k, v in (params or {}).items() if v is not None}
        attempt = 0
        while True:
            self._logger.debug("%s %s params=%s", method, endpoint, query)
            try:
                response = self._client.request(
                    method,
                    endpoint,
                    params=query or None,
                    json=json,
                    headers=self._headers(endpoint),
                )
            except httpx.TransportError as exc:
                if attempt < self._max_retries and self._should_retry_transport(method, exc):
                    self._backoff(attempt, method, endpoint, repr(exc))
                    attempt += 1
                    continue
                self._logger.warning("%s %s failed: %r", method, endpoint, exc)
                raise NetworkError.from_transport(exc) from exc

            self._logger.debug(
                "%s %s -> HTTP %d", method, endpoint, response.status_code,
            )
            if response.is_success:
                return response.json()

            if (
                method == "GET"
                and response.status_code in self.RETRYABLE_STATUSES
                and attempt < self._max_retries
            ):
                self._backoff(attempt, method, endpoint, f"HTTP {response.status_code}")
                attempt += 1
                continue

            self._logger.warning(
                "%s %s rejected with HTTP %d", method, endpoint, response.status_code,
            )
            raise HttpStatusError(response.status_code, response.text[:500])
