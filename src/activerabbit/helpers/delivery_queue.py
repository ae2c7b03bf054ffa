"""
In-memory batching queue for outbound records.

Records are appended under a lock and delivered in batches, either by a
single daemon timer thread every ``flush_interval`` seconds, synchronously
when the queue reaches capacity, or on an explicit ``flush()``/``shutdown()``.
A flush drains the queue atomically; a batch that fails is logged and
dropped, never re-queued.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..api.http_client import encode_json
from ..errors import DeliveryError
from .logging_config import get_logger

logger = get_logger()

BatchSender = Callable[[Sequence["QueuedRequest"]], Any]


@dataclass(slots=True)
class QueuedRequest:
    """One unit of outbound work."""

    path: str
    payload: dict[str, Any]
    event_type: str = "event"
    method: str = "POST"
    enqueued_at: float = field(default_factory=time.time)

    def to_batch_item(self) -> dict[str, Any]:
        return {"type": self.event_type, "data": self.payload}


class _FlushTimer(threading.Thread):
    """Daemon thread invoking ``callback`` every ``interval`` seconds until stopped."""

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        super().__init__(name="activerabbit-flush-timer", daemon=True)
        self._interval = interval
        self._callback = callback
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._callback()
            except Exception as e:
                # Keep the timer alive; the failure was already logged by the flush
                logger.debug(f"Periodic flush failed: {type(e).__name__}: {e}")

    def stop(self, timeout: float | None = None) -> None:
        self._stopped.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)


class DeliveryQueue:
    """
    Thread-safe batching queue.

    Args:
        send_batch: Delivers one batch; raises on terminal failure
        capacity: Pending count that triggers a synchronous flush
        flush_interval: Seconds between periodic flushes
        batch_size: Optional upper bound on items per ``send_batch`` call
        start_timer: Disable to drive flushing manually (tests, forked workers)
    """

    def __init__(
        self,
        send_batch: BatchSender,
        *,
        capacity: int = 1000,
        flush_interval: float = 30.0,
        batch_size: int | None = None,
        start_timer: bool = True,
    ) -> None:
        self._send_batch = send_batch
        self._capacity = max(1, capacity)
        self._flush_interval = flush_interval
        self._batch_size = batch_size
        self._start_timer = start_timer

        self._items: deque[QueuedRequest] = deque()
        self._lock = threading.Lock()
        self._timer: _FlushTimer | None = None
        self._closed = False

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def timer_running(self) -> bool:
        timer = self._timer
        return timer is not None and timer.is_alive()

    def enqueue(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        event_type: str = "event",
        method: str = "POST",
    ) -> bool:
        """
        Append a record. Returns False if the queue is closed.

        Once appended the record belongs to the queue: a failed
        capacity-triggered flush is logged, not raised.

        Raises:
            SerializationError: ``payload`` cannot be encoded as JSON
        """
        if self._closed:
            return False

        encode_json(payload)
        request = QueuedRequest(path=path, payload=payload, event_type=event_type, method=method)

        with self._lock:
            if self._closed:
                return False
            self._items.append(request)
            at_capacity = len(self._items) >= self._capacity
            self._ensure_timer()

        if at_capacity:
            logger.debug(f"Delivery queue reached capacity ({self._capacity}), flushing")
            try:
                self.flush()
            except DeliveryError as e:
                logger.warning(f"Capacity flush dropped {e.dropped} record(s): {e}")
        return True

    def flush(self) -> int:
        """
        Drain and deliver everything queued so far.

        Returns:
            Number of records delivered.

        Raises:
            DeliveryError: a batch could not be delivered (its records are dropped)
        """
        with self._lock:
            if not self._items:
                return 0
            drained = list(self._items)
            self._items.clear()

        delivered = 0
        failure: Exception | None = None
        dropped = 0
        for batch in self._split(drained):
            try:
                self._send_batch(batch)
                delivered += len(batch)
            except Exception as e:
                failure = e
                dropped += len(batch)
                logger.error(
                    f"Failed to send batch of {len(batch)} record(s): {e}",
                    extra={"dropped": len(batch), "error_type": type(e).__name__},
                )

        if failure is not None:
            raise DeliveryError(f"Failed to send batch: {failure}", dropped=dropped) from failure
        return delivered

    def shutdown(self, timeout: float | None = None) -> int:
        """
        Close the queue, stop the timer and flush once. Safe to call repeatedly.

        By default waits for an in-progress periodic flush to finish; that
        wait is bounded by the request timeouts and retry count.
        """
        with self._lock:
            self._closed = True
            timer = self._timer
            self._timer = None
        if timer is not None:
            timer.stop(timeout)
        return self.flush()

    def _split(self, items: list[QueuedRequest]) -> list[list[QueuedRequest]]:
        if not self._batch_size:
            return [items]
        return [items[i : i + self._batch_size] for i in range(0, len(items), self._batch_size)]

    def _ensure_timer(self) -> None:
        # Caller holds self._lock
        if not self._start_timer or self._closed:
            return
        if self._timer is not None and self._timer.is_alive():
            return
        self._timer = _FlushTimer(self._flush_interval, self._periodic_flush)
        self._timer.start()

    def _periodic_flush(self) -> None:
        if self.pending:
            self.flush()
