"""
HTTP infrastructure layer shared by adapters and the relay.

Provides:
- APIKeyRotator: Round-robin rotation for comma-separated API keys
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async HTTP client raising HTTPClientError on non-success

Adapters use HTTPClient with retries disabled: a failed source is simply
absent until the next aggregation pass. The relay enables retries for its
upstream calls via settings.upstream_max_retries.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

QueryParams = dict[str, Any] | list[tuple[str, Any]]


@dataclass
class APIKeyRotator:
    """
    Round-robin API key rotation from a comma-separated setting.

    Example:
        rotator = APIKeyRotator.from_env_var("key1,key2")
        key = await rotator.get_key()
    """

    keys: list[str]
    _current_index: int = field(default=0, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def from_env_var(cls, value: str | None) -> "APIKeyRotator | None":
        """Create a rotator from a comma-separated value, or None if empty."""
        if not value:
            return None

        keys = [k.strip() for k in value.split(",") if k.strip()]
        if not keys:
            return None

        return cls(keys=keys)

    async def get_key(self) -> str:
        """Get the next API key in round-robin rotation."""
        async with self._lock:
            key = self.keys[self._current_index]
            self._current_index = (self._current_index + 1) % len(self.keys)
            return key

    @property
    def key_count(self) -> int:
        return len(self.keys)


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 0
    max_backoff_seconds: float = 30.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """Backoff duration in seconds for a 0-indexed retry attempt."""
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        """429 and transient 5xx responses are retryable."""
        return status_code in {429, 500, 502, 503, 504}


class HTTPClientError(Exception):
    """Raised for transport failures and non-success responses."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(HTTPClientError):
    """Raised when rate limit is hit and all retries exhausted."""

    pass


class HTTPClient:
    """
    Async HTTP client with optional retry and API key rotation.

    Example:
        async with HTTPClient(timeout=10.0) as client:
            response = await client.get(url, params={"q": "forest"})
            items = response.json()
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._headers = headers or {}
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        self._client = httpx.AsyncClient(timeout=self.timeout, headers=self._headers)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: QueryParams | None = None,
        headers: dict[str, str] | None = None,
        api_key_rotator: APIKeyRotator | None = None,
        api_key_param: str | None = None,
    ) -> httpx.Response:
        """
        Perform GET request.

        Raises:
            HTTPClientError: On transport errors or non-success status
            RateLimitError: When rate limited and retries exhausted
        """
        return await self._request_with_retry(
            "GET",
            url,
            params=params,
            headers=headers,
            api_key_rotator=api_key_rotator,
            api_key_param=api_key_param,
        )

    async def post(
        self,
        url: str,
        json_body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Perform POST request with a JSON body."""
        return await self._request_with_retry(
            "POST",
            url,
            headers=headers,
            json_body=json_body,
        )

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        params: QueryParams | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        api_key_rotator: APIKeyRotator | None = None,
        api_key_param: str | None = None,
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        attempts = self.retry_config.max_retries + 1

        for attempt in range(attempts):
            request_params: list[tuple[str, Any]] = (
                list(params.items()) if isinstance(params, dict) else list(params or [])
            )
            if api_key_rotator and api_key_param:
                request_params.append((api_key_param, await api_key_rotator.get_key()))

            try:
                response = await self._client.request(
                    method,
                    url,
                    params=request_params or None,
                    headers=headers,
                    json=json_body,
                )
            except httpx.TransportError as e:
                if attempt < attempts - 1:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        f"Retryable error {type(e).__name__} for {url}, "
                        f"attempt {attempt + 1}/{attempts}, backing off {backoff:.2f}s"
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise HTTPClientError(f"Request to {url} failed: {e}") from e

            if response.is_success:
                return response

            if self.retry_config.is_retryable_status(response.status_code) and attempt < attempts - 1:
                backoff = self.retry_config.calculate_backoff(attempt)
                logger.warning(
                    f"Retryable status {response.status_code} from {url}, "
                    f"attempt {attempt + 1}/{attempts}, backing off {backoff:.2f}s"
                )
                await asyncio.sleep(backoff)
                continue

            error_cls = RateLimitError if response.status_code == 429 else HTTPClientError
            raise error_cls(
                f"Request to {url} failed with status {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
            )

        # Unreachable: the loop either returns or raises
        raise HTTPClientError(f"Request to {url} failed after {attempts} attempts")
