"""
Shared plumbing for the trackers.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from ..helpers.logging_config import get_logger
from ..models.records import RecordEnvelope, isoformat_ms, snapshot

if TYPE_CHECKING:
    from ..api.endpoints import CollectorAPI
    from ..core.config import Configuration, RecordTransform
    from ..helpers.pii_scrubber import PIIScrubber

logger = get_logger()


class BaseTracker:
    """Holds the collaborators every tracker needs."""

    def __init__(self, config: Configuration, api: CollectorAPI, scrubber: PIIScrubber) -> None:
        self._config = config
        self._api = api
        self._scrubber = scrubber

    @property
    def config(self) -> Configuration:
        return self._config

    def _envelope(self, timestamp: datetime | None = None) -> RecordEnvelope:
        return RecordEnvelope(
            timestamp=isoformat_ms(timestamp),
            environment=self._config.environment,
            release=self._config.release,
            server_name=self._config.server_name,
            project_id=self._config.project_id,
        )

    def _scrub(self, value: Any) -> Any:
        """Snapshot ``value`` and redact it when scrubbing is enabled."""
        value = snapshot(value)
        if not self._config.enable_pii_scrubbing:
            return value
        return self._scrubber.scrub(value)

    @staticmethod
    def _apply_transform(
        transform: RecordTransform | None,
        payload: dict[str, Any],
        kind: str,
    ) -> dict[str, Any] | None:
        """Run a before-send transform; ``None`` or an empty dict vetoes the record."""
        if transform is None:
            return payload
        result = transform(payload)
        if not result:
            logger.debug(f"{kind} dropped by before_send transform")
            return None
        return result
