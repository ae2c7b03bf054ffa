"""
ActiveRabbit client: wires configuration, transport, queue and trackers.
"""

from __future__ import annotations

import atexit
import threading
import time
from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from ..api.endpoints import CollectorAPI
from ..api.http_client import HTTPClient, build_httpx_client
from ..errors import ConfigurationError
from ..helpers.dedupe import Deduplicator
from ..helpers.logging_config import get_logger
from ..helpers.pii_scrubber import PIIScrubber
from ..models.records import isoformat_ms, snapshot
from ..trackers import EventProcessor, ExceptionTracker, PerformanceMonitor
from .config import Configuration

if TYPE_CHECKING:
    from ..context import JobContext, RequestContext

logger = get_logger()


class ActiveRabbitClient:
    """
    One fully wired client.

    Every collaborator is built from the configuration passed in; nothing is
    read from global state. Trackers are created on first use.

    Args:
        config: Client configuration; must be valid
        transport: Optional ``httpx`` transport (e.g. ``httpx.MockTransport``)
        sleep: Backoff sleep function
        start_timer: Run the periodic flush thread
        register_atexit: Flush and close on interpreter exit
    """

    def __init__(
        self,
        config: Configuration,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        start_timer: bool = True,
        register_atexit: bool = True,
        deduplicator: Deduplicator | None = None,
    ) -> None:
        if not config.is_valid():
            raise ConfigurationError("api_key and api_url are required")

        self._config = config
        self._http = HTTPClient(build_httpx_client(config, transport), config, sleep=sleep)
        self._api = CollectorAPI(
            self._http,
            queue_size=config.queue_size,
            flush_interval=config.flush_interval,
            batch_size=config.batch_size,
            start_timer=start_timer,
        )
        self._scrubber = PIIScrubber(config.pii_fields)
        self._dedupe = deduplicator or Deduplicator(window=config.dedupe_window)

        self._event_processor: EventProcessor | None = None
        self._exception_tracker: ExceptionTracker | None = None
        self._performance_monitor: PerformanceMonitor | None = None
        self._lock = threading.Lock()
        self._closed = False

        if register_atexit:
            atexit.register(self._atexit_shutdown)

    @property
    def config(self) -> Configuration:
        return self._config

    @property
    def api(self) -> CollectorAPI:
        return self._api

    @property
    def deduplicator(self) -> Deduplicator:
        return self._dedupe

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def event_processor(self) -> EventProcessor:
        if self._event_processor is None:
            with self._lock:
                if self._event_processor is None:
                    self._event_processor = EventProcessor(self._config, self._api, self._scrubber)
        return self._event_processor

    @property
    def exception_tracker(self) -> ExceptionTracker:
        if self._exception_tracker is None:
            with self._lock:
                if self._exception_tracker is None:
                    self._exception_tracker = ExceptionTracker(
                        self._config, self._api, self._scrubber, self._dedupe
                    )
        return self._exception_tracker

    @property
    def performance_monitor(self) -> PerformanceMonitor:
        if self._performance_monitor is None:
            with self._lock:
                if self._performance_monitor is None:
                    self._performance_monitor = PerformanceMonitor(self._config, self._api, self._scrubber)
        return self._performance_monitor

    def track_event(
        self,
        name: str,
        properties: Mapping[str, Any] | None = None,
        *,
        user_id: Any | None = None,
        timestamp: datetime | None = None,
        request_context: RequestContext | None = None,
        job_context: JobContext | None = None,
    ) -> dict[str, Any] | None:
        return self.event_processor.track_event(
            name,
            properties,
            user_id=user_id,
            timestamp=timestamp,
            request_context=request_context,
            job_context=job_context,
        )

    def track_exception(
        self,
        exception: BaseException,
        context: Mapping[str, Any] | None = None,
        *,
        user_id: Any | None = None,
        tags: Mapping[str, Any] | None = None,
        handled: bool | None = None,
        force: bool = False,
        request_context: RequestContext | None = None,
        job_context: JobContext | None = None,
    ) -> dict[str, Any] | None:
        return self.exception_tracker.track_exception(
            exception,
            context,
            user_id=user_id,
            tags=tags,
            handled=handled,
            force=force,
            request_context=request_context,
            job_context=job_context,
        )

    def track_performance(
        self,
        name: str,
        duration_ms: float,
        metadata: Mapping[str, Any] | None = None,
        *,
        request_context: RequestContext | None = None,
    ) -> dict[str, Any] | None:
        return self.performance_monitor.track_performance(
            name, duration_ms, metadata, request_context=request_context
        )

    def start_transaction(
        self,
        name: str,
        metadata: Mapping[str, Any] | None = None,
        *,
        request_context: RequestContext | None = None,
    ) -> str | None:
        return self.performance_monitor.start_transaction(name, metadata, request_context=request_context)

    def finish_transaction(
        self,
        transaction_id: str | None,
        metadata: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        return self.performance_monitor.finish_transaction(transaction_id, metadata)

    def measure(
        self,
        name: str,
        metadata: Mapping[str, Any] | None = None,
        *,
        request_context: RequestContext | None = None,
    ) -> AbstractContextManager[dict[str, Any]]:
        return self.performance_monitor.measure(name, metadata, request_context=request_context)

    def test_connection(self) -> dict[str, Any]:
        return self._api.test_connection()

    def notify_release(
        self,
        version: str | None = None,
        *,
        environment: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Tell the collector a release is live.

        ``version`` defaults to the configured release and ``environment`` to
        the configured environment. Nothing is sent when no version is known.
        A release the collector already has counts as success.

        Raises:
            APIError: the collector rejected the notification
        """
        version = version or self._config.release
        if version is None or not str(version).strip():
            logger.debug("No release version available, skipping release notification")
            return None
        return self._api.post_release(
            {
                "version": str(version),
                "environment": environment or self._config.environment,
                "metadata": snapshot(dict(metadata or {})),
            }
        )

    def notify_deploy(
        self,
        *,
        project_slug: str,
        status: str,
        user: str,
        version: str,
        started_at: datetime | str | None = None,
        finished_at: datetime | str | None = None,
    ) -> Any:
        """
        Record a deploy of ``version`` against the configured release and environment.

        Raises:
            APIError: the collector rejected the notification
        """
        return self._api.post_deploy(
            {
                "revision": self._config.release,
                "environment": self._config.environment,
                "project_slug": project_slug,
                "version": version,
                "status": status,
                "user": user,
                "started_at": _deploy_time(started_at),
                "finished_at": _deploy_time(finished_at),
            }
        )

    def flush(self) -> int:
        """Deliver everything queued. Raises ``DeliveryError`` on terminal failure."""
        return self._api.flush()

    def shutdown(self) -> int:
        """
        Stop accepting records, flush once and release the HTTP connection pool.

        Idempotent. Raises ``DeliveryError`` if the final flush fails; the
        connection pool is released either way.
        """
        try:
            return self._api.shutdown()
        finally:
            if not self._closed:
                self._closed = True
                self._http.close()
                try:
                    atexit.unregister(self._atexit_shutdown)
                except Exception:
                    pass

    close = shutdown

    def _atexit_shutdown(self) -> None:
        try:
            self.shutdown()
        except Exception as e:
            logger.debug(f"Shutdown at exit failed: {type(e).__name__}: {e}")


def _deploy_time(moment: datetime | str | None) -> str | None:
    if isinstance(moment, datetime):
        return isoformat_ms(moment)
    return moment
