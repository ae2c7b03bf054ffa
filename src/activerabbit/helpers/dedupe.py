"""
Short-window suppression of repeated exception reports.

The key is ``type|top frame|correlation id``. Occurrences without a
correlation id share a bucket per type and frame. This is independent of the
long-lived fingerprint used for grouping.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .fingerprint import exception_type_name, format_traceback

if TYPE_CHECKING:
    from ..context import RequestContext

DEFAULT_WINDOW_SECONDS = 300.0

_CORRELATION_KEYS = ("request_id", "requestId", "correlation_id", "trace_id")


def extract_correlation_id(
    context: Mapping[str, Any] | None,
    request_context: RequestContext | None = None,
) -> str | None:
    """Find a request/trace identifier in the snapshot or the caller-supplied context."""
    if request_context is not None and request_context.request_id:
        return str(request_context.request_id)
    if not isinstance(context, Mapping):
        return None

    request = context.get("request")
    if isinstance(request, Mapping):
        for key in ("request_id", "requestId"):
            if request.get(key):
                return str(request[key])

    for key in _CORRELATION_KEYS:
        if context.get(key):
            return str(context[key])
    return None


class Deduplicator:
    """
    Thread-safe "seen within N seconds" table.

    Args:
        window: Default suppression window in seconds; ``0`` disables
        clock: Monotonic time source
    """

    def __init__(
        self,
        window: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window
        self._clock = clock
        self._seen: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def window(self) -> float:
        return self._window

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def build_key(
        self,
        exception: BaseException,
        context: Mapping[str, Any] | None = None,
        request_context: RequestContext | None = None,
    ) -> str:
        frames = format_traceback(exception)
        top = frames[0] if frames else ""
        correlation_id = extract_correlation_id(context, request_context) or ""
        return "|".join((exception_type_name(exception), top, correlation_id))

    def seen_recently(
        self,
        exception: BaseException,
        context: Mapping[str, Any] | None = None,
        window: float | None = None,
        *,
        request_context: RequestContext | None = None,
    ) -> bool:
        """
        Return True if the same occurrence was admitted within the window.

        A suppressed call does not refresh the timestamp. An admitted call
        records the current time against the key.
        """
        window = self._window if window is None else window
        if window <= 0:
            self.clear()
            return False

        key = self.build_key(exception, context, request_context)
        now = self._clock()
        with self._lock:
            self._prune(now, window)
            last = self._seen.get(key)
            if last is not None and now - last < window:
                return True
            self._seen[key] = now
            return False

    def clear(self) -> None:
        with self._lock:
            self._seen.clear()

    def _prune(self, now: float, window: float) -> None:
        cutoff = now - window
        stale = [key for key, seen_at in self._seen.items() if seen_at <= cutoff]
        for key in stale:
            del self._seen[key]
