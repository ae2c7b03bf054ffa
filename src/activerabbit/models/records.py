"""
Wire-ready records built by the trackers.

Records are frozen once built. ``to_payload()`` returns a fresh dict each
time, so transforms and the queue can never alter the record itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def snapshot(value: Any) -> Any:
    """Detached copy of plain containers; leaves that are not JSON scalars become strings."""
    if isinstance(value, Mapping):
        return {str(key) if not isinstance(key, str) else key: snapshot(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [snapshot(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def isoformat_ms(moment: datetime | None = None) -> str:
    """ISO 8601 UTC timestamp with millisecond precision."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")


@dataclass(frozen=True, slots=True)
class RecordEnvelope:
    """Fields every record carries."""

    timestamp: str
    environment: str | None = None
    release: str | None = None
    server_name: str | None = None
    project_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp,
            "environment": self.environment,
            "release": self.release,
            "server_name": self.server_name,
        }
        if self.project_id:
            data["project_id"] = self.project_id
        return data


@dataclass(frozen=True, slots=True)
class ExceptionRecord:
    type: str
    message: str
    backtrace: list[dict[str, Any]]
    fingerprint: str
    envelope: RecordEnvelope
    context: dict[str, Any] = field(default_factory=dict)
    tags: dict[str, Any] = field(default_factory=dict)
    runtime_context: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None
    handled: bool | None = None
    request_context: dict[str, Any] | None = None
    job_context: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "message": self.message,
            "backtrace": self.backtrace,
            "fingerprint": self.fingerprint,
            **self.envelope.to_dict(),
            "context": self.context,
            "tags": self.tags,
            "runtime_context": self.runtime_context,
        }
        if self.user_id is not None:
            data["user_id"] = self.user_id
        if self.handled is not None:
            data["handled"] = self.handled
        if self.request_context:
            data["request_context"] = self.request_context
        if self.job_context:
            data["job_context"] = self.job_context
        return snapshot(data)


@dataclass(frozen=True, slots=True)
class EventRecord:
    name: str
    properties: dict[str, Any]
    envelope: RecordEnvelope
    context: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "properties": self.properties,
            **self.envelope.to_dict(),
            "context": self.context,
        }
        if self.user_id is not None:
            data["user_id"] = self.user_id
        return snapshot(data)


@dataclass(frozen=True, slots=True)
class PerformanceRecord:
    name: str
    duration_ms: float
    metadata: dict[str, Any]
    envelope: RecordEnvelope
    performance_context: dict[str, Any] = field(default_factory=dict)
    request_context: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "duration_ms": self.duration_ms,
            "metadata": self.metadata,
            **self.envelope.to_dict(),
            "performance_context": self.performance_context,
        }
        if self.request_context:
            data["request_context"] = self.request_context
        return snapshot(data)
