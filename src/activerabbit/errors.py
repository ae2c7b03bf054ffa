"""
Exception hierarchy for the ActiveRabbit client.

Tracking calls never let these escape to the host application. Only the
explicit ``flush()`` / ``shutdown()`` entry points surface ``DeliveryError``.
"""

from __future__ import annotations


class ActiveRabbitError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(ActiveRabbitError):
    """Missing credentials or an invalid option."""


class SerializationError(ActiveRabbitError):
    """A payload could not be represented as JSON."""


class APIError(ActiveRabbitError):
    """The collector rejected a request or could not be reached."""


class ClientError(APIError):
    """4xx response other than 429. Never retried."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Client error ({status_code}): {message}")


class RateLimitError(APIError):
    """429 response. Left to the operator, not retried here."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded") -> None:
        super().__init__(message)


class ServerError(APIError):
    """5xx response outside the retryable set."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Server error ({status_code}): {message}")


class RetryableError(APIError):
    """Transient failure: 500/502/503/504 or a network-level fault."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RetriesExhaustedError(APIError):
    """A retryable failure persisted through every attempt."""

    def __init__(self, retries: int, last_error: Exception) -> None:
        self.retries = retries
        self.attempts = retries + 1
        self.last_error = last_error
        super().__init__(f"Request failed after {retries} retries: {last_error}")


class DeliveryError(APIError):
    """A drained batch could not be delivered. The batch is not re-queued."""

    def __init__(self, message: str, dropped: int = 0) -> None:
        self.dropped = dropped
        super().__init__(message)
