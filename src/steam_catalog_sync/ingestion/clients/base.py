"""
Shared HTTP plumbing for the Steam Store, GeForce NOW and DatoCMS clients.

One error hierarchy for every remote service, status code mapping,
and tenacity-driven retries that only idempotent reads opt into.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from steam_catalog_sync.config import RetryConfig, get_settings
from steam_catalog_sync.logger import get_logger

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0


class ClientError(Exception):
    """A remote call failed; carries where and how."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        endpoint: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.endpoint = endpoint
        self.status_code = status_code
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)


class RateLimitError(ClientError):
    """The service answered 429."""


class APIError(ClientError):
    """The service answered with a 4xx/5xx status."""


class ServerError(APIError):
    """5xx answer; transient, so reads retry it."""


class ValidationError(ClientError):
    """A payload did not match its contract."""


# Faults a read may be repeated for
RETRYABLE_ERRORS: tuple[type[Exception], ...] = (httpx.TransportError, RateLimitError, ServerError)


class ExtractionResult(BaseModel, Generic[T]):
    """
    Outcome of one read against a source API.

    Failures are returned rather than raised so batch callers can keep
    going; the raw body is kept when the caller needs to cache it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: T | None = None
    error_message: str | None = None
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str
    endpoint: str
    duration_ms: float | None = None
    raw_response: dict[str, Any] | None = None


class BaseAPIClient(ABC):
    """
    Base class for the service clients.

    Owns a lazily created httpx.AsyncClient, maps HTTP status codes to
    ClientError subclasses and wraps reads in a tenacity retry loop.
    Subclasses only name their source and build requests.
    """

    def __init__(
        self,
        *,
        retry_config: RetryConfig | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            retry_config: Backoff settings for reads (defaults to settings)
            timeout: Per-request timeout in seconds
            client: Pre-built httpx client to reuse
        """
        self._retry_config = retry_config or get_settings().retry
        self._timeout = timeout or DEFAULT_TIMEOUT_SECONDS
        self._logger = get_logger(
            self.__class__.__name__,
            component="client",
            source=self.source_name,
        )
        self._client: httpx.AsyncClient | None = client

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Identifier of the remote service, used in errors and logs."""
        ...

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            # No auth headers here: signed upload URLs and image hosts share this client
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={"User-Agent": "SteamCatalogSync/1.0"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "BaseAPIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _retrying(self) -> AsyncRetrying:
        """Retry loop for one idempotent request."""
        return AsyncRetrying(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(self._retry_config.max_attempts),
            wait=wait_exponential(
                multiplier=self._retry_config.base_delay_seconds,
                max=self._retry_config.max_delay_seconds,
                exp_base=self._retry_config.exponential_base,
            ),
            before_sleep=self._before_retry,
            reraise=True,
        )

    def _before_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self._logger.warning(
            "Retrying request",
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
            error=str(error) if error else None,
            status_code=getattr(error, "status_code", None),
        )

    def _raise_for_status(self, response: httpx.Response, url: str) -> None:
        status = response.status_code
        if status < 400:
            return

        context: dict[str, Any] = {"source": self.source_name, "endpoint": url, "status_code": status}
        if status == 429:
            retry_after = response.headers.get("Retry-After", "unknown")
            raise RateLimitError(f"Rate limited (Retry-After: {retry_after})", **context)
        if status >= 500:
            raise ServerError(f"API error: {status}", **context)
        raise APIError(f"API error: {status} {response.text[:200]}", **context)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        self._logger.debug("Sending request", method=method, url=url)
        response = await self.client.request(method, url, **kwargs)
        self._raise_for_status(response, url)
        return response

    async def _make_request(
        self,
        method: str,
        url: str,
        *,
        retryable: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send one request and return the successful response.

        Args:
            method: HTTP verb
            url: Absolute URL
            retryable: Retry transport errors, 429 and 5xx; set only for reads
            **kwargs: Passed through to httpx (params, json, content, headers)

        Raises:
            RateLimitError: 429, after retries for reads
            APIError: Any other 4xx/5xx status
            ClientError: Transport failure
        """
        try:
            if not retryable:
                return await self._send(method, url, **kwargs)

            async for attempt in self._retrying():
                with attempt:
                    return await self._send(method, url, **kwargs)
            raise AssertionError("retry loop exited without a result")
        except httpx.HTTPError as e:
            self._logger.error("Request failed", method=method, url=url, error=str(e))
            raise ClientError(
                f"Request failed: {e}",
                source=self.source_name,
                endpoint=url,
                original_error=e,
            ) from e
