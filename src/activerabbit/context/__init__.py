"""
Ambient request / job context snapshots.

Framework glue (middleware, job wrappers) captures what it knows about the
current unit of work into an immutable snapshot and either passes it to the
``track_*`` calls explicitly or binds it for the duration of the work with
:func:`request_scope` / :func:`job_scope`. Trackers only ever see the
snapshot; they never read these variables themselves.
"""

from __future__ import annotations

import contextlib
import contextvars
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


def _freeze(extra: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(extra or {}))


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Snapshot of the web request being served."""

    method: str | None = None
    path: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    request_id: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", _freeze(self.extra))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "method": self.method,
            "path": self.path,
            "user_agent": self.user_agent,
            "ip_address": self.ip_address,
            "request_id": self.request_id,
        }
        data = {key: value for key, value in data.items() if value is not None}
        data.update(self.extra)
        return data


@dataclass(frozen=True, slots=True)
class JobContext:
    """Snapshot of the background job being executed."""

    job_class: str | None = None
    job_id: str | None = None
    queue: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", _freeze(self.extra))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "job_class": self.job_class,
            "job_id": self.job_id,
            "queue": self.queue,
        }
        data = {key: value for key, value in data.items() if value is not None}
        data.update(self.extra)
        return data


_REQUEST_CONTEXT: contextvars.ContextVar[RequestContext | None] = contextvars.ContextVar(
    "activerabbit_request_context",
    default=None,
)
_JOB_CONTEXT: contextvars.ContextVar[JobContext | None] = contextvars.ContextVar(
    "activerabbit_job_context",
    default=None,
)


def current_request_context() -> RequestContext | None:
    """Return the request snapshot bound to the current thread/task, if any."""
    return _REQUEST_CONTEXT.get()


def current_job_context() -> JobContext | None:
    """Return the job snapshot bound to the current thread/task, if any."""
    return _JOB_CONTEXT.get()


@contextlib.contextmanager
def request_scope(context: RequestContext) -> Iterator[RequestContext]:
    """Bind ``context`` as the current request for the duration of the block."""
    token = _REQUEST_CONTEXT.set(context)
    try:
        yield context
    finally:
        _REQUEST_CONTEXT.reset(token)


@contextlib.contextmanager
def job_scope(context: JobContext) -> Iterator[JobContext]:
    """Bind ``context`` as the current job for the duration of the block."""
    token = _JOB_CONTEXT.set(context)
    try:
        yield context
    finally:
        _JOB_CONTEXT.reset(token)


__all__ = [
    "RequestContext",
    "JobContext",
    "current_request_context",
    "current_job_context",
    "request_scope",
    "job_scope",
]
