"""
HTTP client for the collector API.

Sends one JSON request at a time, classifies the response and retries
transient failures with exponential backoff. Batching and background
delivery live in :mod:`activerabbit.helpers.delivery_queue`.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import httpx

from ..errors import (
    APIError,
    ClientError,
    RateLimitError,
    RetriesExhaustedError,
    RetryableError,
    SerializationError,
    ServerError,
)
from ..helpers.logging_config import get_logger
from ..helpers.retry import calculate_backoff_delay

if TYPE_CHECKING:
    from ..core.config import Configuration

logger = get_logger()

RETRYABLE_STATUS_CODES = frozenset({500, 502, 503, 504})
SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE"})


def encode_json(payload: Any) -> bytes:
    """Serialize ``payload`` or raise :class:`SerializationError`."""
    try:
        return json.dumps(payload, default=str, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationError(f"Payload is not JSON serializable: {type(e).__name__}: {e}") from e


def build_httpx_client(config: Configuration, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Create the underlying ``httpx.Client`` with the configured timeouts."""
    timeout = httpx.Timeout(config.timeout, connect=config.open_timeout)
    kwargs: dict[str, Any] = {"base_url": config.api_url, "timeout": timeout}
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.Client(**kwargs)


class HTTPClient:
    """
    Synchronous request executor with response classification and retry.

    ``RetryableError`` (500/502/503/504 and network faults) is retried up to
    ``config.retry_count`` times; every other error is raised immediately.
    """

    def __init__(
        self,
        httpx_client: httpx.Client,
        config: Configuration,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = httpx_client
        self._config = config
        self._sleep = sleep

    @property
    def config(self) -> Configuration:
        return self._config

    def default_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self._config.user_agent,
            "X-Project-Token": self._config.api_key or "",
        }
        if self._config.project_id:
            headers["X-Project-ID"] = str(self._config.project_id)
        return headers

    def request(self, method: str, path: str, json: Any | None = None) -> Any:
        """
        Make a request, retrying transient failures.

        Returns:
            Parsed JSON body, ``{}`` for an empty body, or the raw text for a
            non-JSON body.

        Raises:
            ClientError, RateLimitError, ServerError: non-retryable responses
            RetriesExhaustedError: a retryable failure persisted
            SerializationError: ``json`` cannot be encoded
        """
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        body = encode_json(json) if json is not None and method in ("POST", "PUT") else None
        retry_config = self._config.retry_config
        retries = 0

        while True:
            try:
                response = self._send(method, path, body)
                return self._handle_response(response)
            except RetryableError as e:
                if retries >= retry_config.max_retries:
                    logger.error(
                        f"Request to {path} failed after {retries} retries: {e}",
                        extra={"path": path, "attempts": retries + 1},
                    )
                    raise RetriesExhaustedError(retries, e) from e
                retries += 1
                delay = calculate_backoff_delay(retries, retry_config)
                logger.warning(
                    "Retrying collector request",
                    extra={"path": path, "attempt": retries, "delay_seconds": delay, "error": str(e)},
                )
                self._sleep(delay)

    def _send(self, method: str, path: str, body: bytes | None) -> httpx.Response:
        try:
            return self._client.request(method, path, content=body, headers=self.default_headers())
        except httpx.TransportError as e:
            raise RetryableError(f"Connection failed: {type(e).__name__}: {e}") from e
        except httpx.HTTPError as e:
            raise APIError(f"Request failed: {type(e).__name__}: {e}") from e

    def _handle_response(self, response: httpx.Response) -> Any:
        status = response.status_code

        if 200 <= status < 300:
            text = response.text
            if not text or not text.strip():
                return {}
            try:
                return json.loads(text)
            except ValueError:
                return text

        if status == 429:
            raise RateLimitError()

        message = self._extract_error_message(response)
        if 400 <= status < 500:
            raise ClientError(status, message)
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableError(f"Server error ({status}): {message}", status_code=status)
        if 500 <= status < 600:
            raise ServerError(status, message)
        raise APIError(f"Unexpected response code: {status}")

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> str:
        text = response.text
        if not text:
            return "No error message"
        try:
            parsed = json.loads(text)
        except ValueError:
            return text
        if isinstance(parsed, dict):
            message = parsed.get("error") or parsed.get("message")
            if message:
                return str(message)
        return text

    def close(self) -> None:
        try:
            self._client.close()
        except Exception as e:
            logger.debug(f"Failed to close HTTP client: {type(e).__name__}: {e}")
