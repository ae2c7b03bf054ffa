"""
Performance measurements: direct reports, start/finish transactions and
scoped timing.
"""

from __future__ import annotations

import contextlib
import threading
import time
import uuid
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..helpers.logging_config import get_logger
from ..helpers.runtime import performance_context
from ..models.records import PerformanceRecord
from .base import BaseTracker

if TYPE_CHECKING:
    from ..api.endpoints import CollectorAPI
    from ..context import RequestContext
    from ..core.config import Configuration
    from ..helpers.pii_scrubber import PIIScrubber

logger = get_logger()


@dataclass(slots=True)
class _Transaction:
    name: str
    started_at: float
    metadata: dict[str, Any] = field(default_factory=dict)
    request_context: RequestContext | None = None


class PerformanceMonitor(BaseTracker):
    def __init__(
        self,
        config: Configuration,
        api: CollectorAPI,
        scrubber: PIIScrubber,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        super().__init__(config, api, scrubber)
        self._clock = clock
        self._transactions: dict[str, _Transaction] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._config.enable_performance_monitoring

    @property
    def active_transactions(self) -> int:
        with self._lock:
            return len(self._transactions)

    def track_performance(
        self,
        name: str,
        duration_ms: float,
        metadata: Mapping[str, Any] | None = None,
        *,
        request_context: RequestContext | None = None,
    ) -> dict[str, Any] | None:
        """Queue a duration report. Returns the queued payload, or ``None`` when dropped."""
        if not self.enabled:
            return None
        try:
            record = PerformanceRecord(
                name=str(name),
                duration_ms=float(duration_ms),
                metadata=self._scrub(dict(metadata or {})),
                envelope=self._envelope(),
                performance_context=performance_context(),
                request_context=self._scrub(request_context.to_dict()) if request_context else None,
            )
            payload = record.to_payload()
            self._api.post_performance(payload)
            return payload
        except Exception as e:
            logger.debug(f"track_performance failed (ignored): {type(e).__name__}: {e}")
            return None

    def start_transaction(
        self,
        name: str,
        metadata: Mapping[str, Any] | None = None,
        *,
        request_context: RequestContext | None = None,
    ) -> str | None:
        """Begin timing ``name``. Returns an opaque id for :meth:`finish_transaction`."""
        if not self.enabled:
            return None
        transaction_id = str(uuid.uuid4())
        with self._lock:
            self._transactions[transaction_id] = _Transaction(
                name=str(name),
                started_at=self._clock(),
                metadata=dict(metadata or {}),
                request_context=request_context,
            )
        return transaction_id

    def finish_transaction(
        self,
        transaction_id: str | None,
        metadata: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Report the transaction. Unknown ids are ignored."""
        if not self.enabled or transaction_id is None:
            return None
        with self._lock:
            transaction = self._transactions.pop(transaction_id, None)
        if transaction is None:
            return None

        duration_ms = round((self._clock() - transaction.started_at) * 1000, 2)
        return self.track_performance(
            transaction.name,
            duration_ms,
            {**transaction.metadata, **(metadata or {})},
            request_context=transaction.request_context,
        )

    @contextlib.contextmanager
    def measure(
        self,
        name: str,
        metadata: Mapping[str, Any] | None = None,
        *,
        request_context: RequestContext | None = None,
    ) -> Iterator[dict[str, Any]]:
        """
        Time the enclosed block and report it, even when it raises.

        The yielded dict is merged into the reported metadata, so the block
        can attach results. Failures add ``success: False`` and
        ``error_type`` before the original exception propagates.
        """
        extra: dict[str, Any] = {}
        started_at = self._clock()
        outcome: dict[str, Any] = {"success": True}
        try:
            yield extra
        except BaseException as e:
            outcome = {"success": False, "error_type": type(e).__name__}
            raise
        finally:
            if self.enabled:
                duration_ms = round((self._clock() - started_at) * 1000, 2)
                self.track_performance(
                    name,
                    duration_ms,
                    {**(metadata or {}), **extra, **outcome},
                    request_context=request_context,
                )
