"""
Custom event tracking.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ..helpers.logging_config import get_logger
from ..helpers.runtime import runtime_context
from ..models.records import EventRecord
from .base import BaseTracker

if TYPE_CHECKING:
    from ..context import JobContext, RequestContext

logger = get_logger()


class EventProcessor(BaseTracker):
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
        """Queue a named event. Returns the queued payload, or ``None`` when dropped."""
        try:
            record = self.build_record(
                name,
                properties,
                user_id=user_id,
                timestamp=timestamp,
                request_context=request_context,
                job_context=job_context,
            )
            payload = self._apply_transform(self._config.before_send_event, record.to_payload(), "Event")
            if payload is None:
                return None
            self._api.post_event(payload)
            return payload
        except Exception as e:
            logger.debug(f"track_event failed (ignored): {type(e).__name__}: {e}")
            return None

    def build_record(
        self,
        name: str,
        properties: Mapping[str, Any] | None = None,
        *,
        user_id: Any | None = None,
        timestamp: datetime | None = None,
        request_context: RequestContext | None = None,
        job_context: JobContext | None = None,
    ) -> EventRecord:
        context: dict[str, Any] = {"runtime": runtime_context()}
        if request_context is not None:
            context["request"] = self._scrub(request_context.to_dict())
        if job_context is not None:
            context["job"] = self._scrub(job_context.to_dict())

        return EventRecord(
            name=str(name),
            properties=self._scrub(dict(properties or {})),
            envelope=self._envelope(timestamp),
            context=context,
            user_id=str(user_id) if user_id is not None else None,
        )
