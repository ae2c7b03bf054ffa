"""
Exception tracking.

Builds an :class:`ExceptionRecord` for an exception, applies the ignore
policy, the short-window dedupe and the ``before_send_exception`` transform,
then queues it. The exception object itself is only read, never modified.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ..helpers.fingerprint import exception_type_name, format_traceback, generate_fingerprint, parse_backtrace
from ..helpers.logging_config import get_logger
from ..helpers.runtime import runtime_context
from ..models.records import ExceptionRecord
from .base import BaseTracker

if TYPE_CHECKING:
    from ..api.endpoints import CollectorAPI
    from ..context import JobContext, RequestContext
    from ..core.config import Configuration
    from ..helpers.dedupe import Deduplicator
    from ..helpers.pii_scrubber import PIIScrubber

logger = get_logger()


class ExceptionTracker(BaseTracker):
    def __init__(
        self,
        config: Configuration,
        api: CollectorAPI,
        scrubber: PIIScrubber,
        deduplicator: Deduplicator,
    ) -> None:
        super().__init__(config, api, scrubber)
        self._dedupe = deduplicator

    def should_ignore(
        self,
        exception: BaseException,
        request_context: RequestContext | None = None,
    ) -> bool:
        if self._config.should_ignore_exception(exception):
            return True
        if request_context is not None and self._config.should_ignore_user_agent(request_context.user_agent):
            return True
        return False

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
        """
        Queue ``exception`` for delivery.

        Returns:
            The queued payload, or ``None`` if the exception was ignored,
            suppressed as a duplicate, vetoed, or could not be queued.
        """
        try:
            if exception is None:
                return None
            if not force and self.should_ignore(exception, request_context):
                logger.debug(f"Ignoring exception {type(exception).__name__}")
                return None

            record = self.build_record(
                exception,
                context=context,
                user_id=user_id,
                tags=tags,
                handled=handled,
                request_context=request_context,
                job_context=job_context,
            )

            window = self._config.dedupe_window
            if self._dedupe.seen_recently(exception, context, window, request_context=request_context):
                logger.debug(f"Suppressing duplicate exception {record.type}")
                return None

            payload = self._apply_transform(self._config.before_send_exception, record.to_payload(), "Exception")
            if payload is None:
                return None

            self._deliver(payload)
            return payload
        except Exception as e:
            logger.debug(f"track_exception failed (ignored): {type(e).__name__}: {e}")
            return None

    def build_record(
        self,
        exception: BaseException,
        *,
        context: Mapping[str, Any] | None = None,
        user_id: Any | None = None,
        tags: Mapping[str, Any] | None = None,
        handled: bool | None = None,
        request_context: RequestContext | None = None,
        job_context: JobContext | None = None,
    ) -> ExceptionRecord:
        raw_frames = format_traceback(exception)
        return ExceptionRecord(
            type=exception_type_name(exception),
            message=self._scrub(str(exception)),
            backtrace=parse_backtrace(raw_frames),
            fingerprint=generate_fingerprint(exception, self._config.project_root, raw_frames),
            envelope=self._envelope(),
            context=self._scrub(dict(context or {})),
            tags=self._scrub(dict(tags or {})),
            runtime_context=runtime_context(),
            user_id=str(user_id) if user_id is not None else None,
            handled=handled,
            request_context=self._scrub(request_context.to_dict()) if request_context else None,
            job_context=self._scrub(job_context.to_dict()) if job_context else None,
        )

    def _deliver(self, payload: dict[str, Any]) -> None:
        try:
            self._api.post_exception(payload)
        except Exception as e:
            logger.warning(
                f"Failed to queue exception, falling back to generic event path: {type(e).__name__}: {e}"
            )
            try:
                self._api.post_event(payload)
            except Exception as fallback_error:
                logger.debug(
                    f"Fallback delivery failed (dropped): {type(fallback_error).__name__}: {fallback_error}"
                )
