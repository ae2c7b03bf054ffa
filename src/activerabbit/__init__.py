"""
Public entrypoint for the ActiveRabbit monitoring client.

Call :func:`configure` once at startup, then report from anywhere with
:func:`track_exception`, :func:`track_event` and :func:`track_performance`.
Tracking calls never raise and are no-ops until a valid configuration
(api_key and api_url) is installed.
"""

from __future__ import annotations

import contextlib
from collections.abc import Mapping
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any

import httpx

from .context import (
    JobContext,
    RequestContext,
    current_job_context,
    current_request_context,
    job_scope,
    request_scope,
)
from .core import (
    ActiveRabbitClient,
    Configuration,
    IgnoreClass,
    IgnoreName,
    IgnorePattern,
    __version__,
)
from .errors import (
    ActiveRabbitError,
    APIError,
    ClientError,
    ConfigurationError,
    DeliveryError,
    RateLimitError,
    RetriesExhaustedError,
    RetryableError,
    SerializationError,
    ServerError,
)
from .helpers import global_state
from .helpers.logging_config import configure_logging, get_logger
from .helpers.pii_scrubber import FILTERED, PIIScrubber
from .instrumentation.decorators import capture_exceptions, timed

logger = get_logger()

__all__ = [
    "configure",
    "is_configured",
    "get_client",
    "track_event",
    "track_exception",
    "capture_exception",
    "track_performance",
    "start_transaction",
    "finish_transaction",
    "measure",
    "test_connection",
    "notify_release",
    "notify_deploy",
    "flush",
    "shutdown",
    "capture_exceptions",
    "timed",
    "ActiveRabbitClient",
    "Configuration",
    "IgnoreClass",
    "IgnoreName",
    "IgnorePattern",
    "RequestContext",
    "JobContext",
    "request_scope",
    "job_scope",
    "PIIScrubber",
    "FILTERED",
    "configure_logging",
    "get_logger",
    "ActiveRabbitError",
    "APIError",
    "ClientError",
    "ConfigurationError",
    "DeliveryError",
    "RateLimitError",
    "RetriesExhaustedError",
    "RetryableError",
    "SerializationError",
    "ServerError",
    "__version__",
]


def configure(
    config: Configuration | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
    start_timer: bool = True,
    **options: Any,
) -> ActiveRabbitClient | None:
    """
    Install the process-wide client.

    Args:
        config: Base configuration; keyword ``options`` override its fields
        transport: Optional custom ``httpx`` transport
        start_timer: Run the periodic background flush
        **options: Any :class:`Configuration` field

    Returns:
        The installed client, or ``None`` if the configuration lacks an
        api_key or api_url (tracking then stays disabled).

    Raises:
        ConfigurationError: unknown option names or out-of-range values
    """
    new_config = Configuration.from_options(config, **options)

    client: ActiveRabbitClient | None = None
    if new_config.is_valid():
        client = ActiveRabbitClient(new_config, transport=transport, start_timer=start_timer)
    else:
        logger.warning("ActiveRabbit not configured: api_key and api_url are required; tracking disabled")

    previous = global_state.set_client(client, new_config)
    if previous is not None and previous is not client:
        try:
            previous.shutdown()
        except Exception as e:
            logger.warning(f"Previous client failed to shut down cleanly: {type(e).__name__}: {e}")
    return client


def is_configured() -> bool:
    client = global_state.get_client()
    config = global_state.get_config()
    return client is not None and not client.closed and config is not None and config.is_valid()


def get_client() -> ActiveRabbitClient | None:
    """Return the installed client, if any."""
    return global_state.get_client()


def _active_client() -> ActiveRabbitClient | None:
    client = global_state.get_client()
    if client is None or client.closed:
        return None
    return client


def track_event(
    name: str,
    properties: Mapping[str, Any] | None = None,
    *,
    user_id: Any | None = None,
    timestamp: datetime | None = None,
    request_context: RequestContext | None = None,
    job_context: JobContext | None = None,
) -> None:
    client = _active_client()
    if client is None:
        return
    try:
        client.track_event(
            name,
            properties,
            user_id=user_id,
            timestamp=timestamp,
            request_context=request_context or current_request_context(),
            job_context=job_context or current_job_context(),
        )
    except Exception as e:
        logger.debug(f"track_event failed (ignored): {type(e).__name__}: {e}")


def track_exception(
    exception: BaseException,
    context: Mapping[str, Any] | None = None,
    *,
    user_id: Any | None = None,
    tags: Mapping[str, Any] | None = None,
    handled: bool | None = None,
    force: bool = False,
    request_context: RequestContext | None = None,
    job_context: JobContext | None = None,
) -> None:
    client = _active_client()
    if client is None:
        return
    try:
        client.track_exception(
            exception,
            context,
            user_id=user_id,
            tags=tags,
            handled=handled,
            force=force,
            request_context=request_context or current_request_context(),
            job_context=job_context or current_job_context(),
        )
        logger.debug(f"Exception tracked: {type(exception).__name__}")
    except Exception as e:
        logger.debug(f"track_exception failed (ignored): {type(e).__name__}: {e}")


def capture_exception(
    exception: BaseException,
    context: Mapping[str, Any] | None = None,
    *,
    user_id: Any | None = None,
    tags: Mapping[str, Any] | None = None,
) -> None:
    """Manual capture for code outside any framework integration."""
    track_exception(exception, context, user_id=user_id, tags=tags, handled=True)


def track_performance(
    name: str,
    duration_ms: float,
    metadata: Mapping[str, Any] | None = None,
    *,
    request_context: RequestContext | None = None,
) -> None:
    client = _active_client()
    if client is None:
        return
    try:
        client.track_performance(
            name,
            duration_ms,
            metadata,
            request_context=request_context or current_request_context(),
        )
    except Exception as e:
        logger.debug(f"track_performance failed (ignored): {type(e).__name__}: {e}")


def start_transaction(name: str, metadata: Mapping[str, Any] | None = None) -> str | None:
    client = _active_client()
    if client is None:
        return None
    try:
        return client.start_transaction(name, metadata, request_context=current_request_context())
    except Exception as e:
        logger.debug(f"start_transaction failed (ignored): {type(e).__name__}: {e}")
        return None


def finish_transaction(transaction_id: str | None, metadata: Mapping[str, Any] | None = None) -> None:
    client = _active_client()
    if client is None:
        return
    try:
        client.finish_transaction(transaction_id, metadata)
    except Exception as e:
        logger.debug(f"finish_transaction failed (ignored): {type(e).__name__}: {e}")


def measure(name: str, metadata: Mapping[str, Any] | None = None) -> AbstractContextManager[dict[str, Any]]:
    """Time a block; the block runs normally even when tracking is disabled."""
    client = _active_client()
    if client is None:
        return contextlib.nullcontext({})
    return client.measure(name, metadata, request_context=current_request_context())


def test_connection() -> dict[str, Any]:
    client = _active_client()
    if client is None:
        return {"success": False, "error": "ActiveRabbit not configured"}
    return client.test_connection()


def notify_release(
    version: str | None = None,
    *,
    environment: str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> Any:
    """
    Tell the collector a release is live; ``None`` when not configured or no version is known.

    Unlike the tracking calls this raises ``APIError`` when the collector
    rejects the notification, so deploy hooks can fail loudly.
    """
    client = _active_client()
    if client is None:
        return None
    return client.notify_release(version, environment=environment, metadata=metadata)


def notify_deploy(
    *,
    project_slug: str,
    status: str,
    user: str,
    version: str,
    started_at: datetime | str | None = None,
    finished_at: datetime | str | None = None,
) -> Any:
    """Record a deploy; ``None`` when not configured. Raises ``APIError`` on rejection."""
    client = _active_client()
    if client is None:
        return None
    return client.notify_deploy(
        project_slug=project_slug,
        status=status,
        user=user,
        version=version,
        started_at=started_at,
        finished_at=finished_at,
    )


def flush() -> int:
    """Deliver everything queued. Raises ``DeliveryError`` on terminal failure."""
    client = _active_client()
    if client is None:
        return 0
    return client.flush()


def shutdown() -> int:
    """Flush and stop the installed client. Safe to call more than once."""
    client = global_state.get_client()
    if client is None:
        return 0
    return client.shutdown()
