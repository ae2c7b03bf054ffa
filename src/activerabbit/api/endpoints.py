"""
Collector API endpoints.

Single records are queued for batched delivery; the batch, the connection
test and release/deploy notifications are sent directly.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ..errors import ClientError
from ..helpers.delivery_queue import DeliveryQueue, QueuedRequest
from ..helpers.logging_config import get_logger
from ..version import __version__

if TYPE_CHECKING:
    from .http_client import HTTPClient

logger = get_logger()

EVENTS_PATH = "/api/v1/events"
ERRORS_PATH = "/api/v1/events/errors"
PERFORMANCE_PATH = "/api/v1/events/performance"
BATCH_PATH = "/api/v1/events/batch"
TEST_CONNECTION_PATH = "/api/v1/test/connection"
RELEASES_PATH = "/api/v1/releases"
DEPLOYS_PATH = "/api/v1/deploys"

CONFLICT_STATUS = 409


class CollectorAPI:
    """
    Wire contract with the collector.

    ``post_event``, ``post_exception`` and ``post_performance`` return
    immediately after queueing. The queue calls back into :meth:`post_batch`
    when it flushes.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        *,
        queue_size: int = 1000,
        flush_interval: float = 30.0,
        batch_size: int | None = None,
        start_timer: bool = True,
    ) -> None:
        self._http = http_client
        self._queue = DeliveryQueue(
            self.post_batch,
            capacity=queue_size,
            flush_interval=flush_interval,
            batch_size=batch_size,
            start_timer=start_timer,
        )

    @property
    def queue(self) -> DeliveryQueue:
        return self._queue

    def post_event(self, event_data: dict[str, Any]) -> bool:
        return self._queue.enqueue(EVENTS_PATH, event_data, event_type="event")

    def post_exception(self, exception_data: dict[str, Any]) -> bool:
        payload = {**exception_data, "event_type": "error"}
        return self._queue.enqueue(ERRORS_PATH, payload, event_type="error")

    def post_performance(self, performance_data: dict[str, Any]) -> bool:
        payload = {**performance_data, "event_type": "performance"}
        return self._queue.enqueue(PERFORMANCE_PATH, payload, event_type="performance")

    def post_batch(self, items: Sequence[QueuedRequest]) -> Any:
        events = [item.to_batch_item() for item in items]
        logger.debug("Sending batch", extra={"path": BATCH_PATH, "event_count": len(events)})
        return self._http.request("POST", BATCH_PATH, json={"events": events})

    def test_connection(self) -> dict[str, Any]:
        """Health-check the collector. Never raises."""
        payload = {
            "gem_version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            response = self._http.request("POST", TEST_CONNECTION_PATH, json=payload)
            return {"success": True, "data": response}
        except Exception as e:
            logger.debug(f"test_connection failed: {type(e).__name__}: {e}")
            return {"success": False, "error": str(e)}

    def post_release(self, release_data: dict[str, Any]) -> Any:
        """Announce a release. A 409 (already known) counts as success."""
        return self._post_once(RELEASES_PATH, release_data)

    def post_deploy(self, deploy_data: dict[str, Any]) -> Any:
        """Record a deploy. A 409 (already known) counts as success."""
        return self._post_once(DEPLOYS_PATH, deploy_data)

    def _post_once(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            return self._http.request("POST", path, json=payload)
        except ClientError as e:
            if e.status_code != CONFLICT_STATUS:
                raise
            logger.debug(f"{path} reported a duplicate; treating as success")
            return {"duplicate": True}

    def flush(self) -> int:
        return self._queue.flush()

    def shutdown(self) -> int:
        return self._queue.shutdown()
