"""
Configuration for the ActiveRabbit client.
"""

from __future__ import annotations

import dataclasses
import os
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..errors import ConfigurationError
from ..helpers.pii_scrubber import DEFAULT_PII_FIELDS
from ..helpers.retry import RetryConfig
from ..version import __version__
from .ignore_rules import IgnoreRule, coerce_ignore_rule, is_not_found_error

RecordTransform = Callable[[dict[str, Any]], dict[str, Any] | None]

DEFAULT_API_URL = "https://api.activerabbit.ai"


def _default_ignored_exceptions() -> list[IgnoreRule]:
    return [coerce_ignore_rule(name) for name in ("SystemExit", "KeyboardInterrupt", "GeneratorExit")]


def _default_ignored_user_agents() -> list[str | re.Pattern[str]]:
    return [
        re.compile(r"Googlebot", re.IGNORECASE),
        re.compile(r"bingbot", re.IGNORECASE),
        re.compile(r"facebookexternalhit", re.IGNORECASE),
        re.compile(r"Twitterbot", re.IGNORECASE),
    ]


@dataclass(slots=True)
class Configuration:
    """
    Settings shared by every component of a client.

    Attributes:
        api_key: Project token sent as ``X-Project-Token`` (required)
        api_url: Base URL of the collector (required)
        project_id: Optional project identifier sent as ``X-Project-ID``
        environment: Deployment environment attached to every record
        release: Release/revision attached to every record
        server_name: Host identity attached to every record
        timeout: Read timeout per attempt, in seconds
        open_timeout: Connect timeout per attempt, in seconds
        retry_count: Retries after the first attempt for transient failures
        retry_delay: Base backoff delay in seconds (doubles per retry)
        flush_interval: Seconds between background flushes
        queue_size: Pending items that force a synchronous flush
        batch_size: Max items per batch request; ``None`` sends one request per flush
        enable_performance_monitoring: Report performance measurements
        enable_pii_scrubbing: Scrub user-supplied data before it is queued
        pii_fields: Sensitive key names (substring, case-insensitive) or regexes
        ignored_exceptions: Ignore rules (names, classes or regexes)
        ignored_user_agents: User agents whose requests are never reported
        ignore_404: Skip routing-level "not found" errors
        dedupe_window: Seconds during which repeats are suppressed (0 disables)
        before_send_event: Transform applied to event payloads; ``None`` vetoes
        before_send_exception: Transform applied to exception payloads; ``None`` vetoes
        project_root: Directory whose frames count as application code
        user_agent: User agent sent to the collector
    """

    api_key: str | None = None
    api_url: str = DEFAULT_API_URL
    project_id: str | None = None
    environment: str = "development"
    release: str | None = None
    server_name: str | None = None

    timeout: float = 30.0
    open_timeout: float = 10.0
    retry_count: int = 3
    retry_delay: float = 1.0

    flush_interval: float = 30.0
    queue_size: int = 1000
    batch_size: int | None = None

    enable_performance_monitoring: bool = True
    enable_pii_scrubbing: bool = True
    pii_fields: list[str | re.Pattern[str]] = field(default_factory=lambda: list(DEFAULT_PII_FIELDS))

    ignored_exceptions: list[Any] = field(default_factory=_default_ignored_exceptions)
    ignored_user_agents: list[str | re.Pattern[str]] = field(default_factory=_default_ignored_user_agents)
    ignore_404: bool = True

    dedupe_window: float = 300.0

    before_send_event: RecordTransform | None = None
    before_send_exception: RecordTransform | None = None

    project_root: str | None = field(default_factory=os.getcwd)
    user_agent: str = f"ActiveRabbit-Python/{__version__}"

    def __post_init__(self) -> None:
        self.ignored_exceptions = [coerce_ignore_rule(rule) for rule in self.ignored_exceptions]
        if self.queue_size < 1:
            raise ConfigurationError("queue_size must be at least 1")
        if self.batch_size is not None and self.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1 when set")
        if self.flush_interval <= 0:
            raise ConfigurationError("flush_interval must be positive")
        if self.retry_count < 0:
            raise ConfigurationError("retry_count cannot be negative")
        if self.dedupe_window < 0:
            raise ConfigurationError("dedupe_window cannot be negative")

    @classmethod
    def from_options(cls, base: Configuration | None = None, **options: Any) -> Configuration:
        """Build a configuration from ``base`` with keyword overrides."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration option(s): {', '.join(unknown)}")
        if base is None:
            return cls(**options)
        return dataclasses.replace(base, **options)

    def with_overrides(self, **changes: Any) -> Configuration:
        """Return a new configuration with ``changes`` applied."""
        return self.from_options(self, **changes)

    def is_valid(self) -> bool:
        return bool(self.api_key) and bool(self.api_url)

    @property
    def retry_config(self) -> RetryConfig:
        return RetryConfig(max_retries=self.retry_count, base_delay=self.retry_delay)

    def should_ignore_exception(self, exception: BaseException | None) -> bool:
        if exception is None:
            return False
        if self.ignore_404 and is_not_found_error(exception):
            return True
        return any(rule.matches(exception) for rule in self.ignored_exceptions)

    def should_ignore_user_agent(self, user_agent: str | None) -> bool:
        if not user_agent:
            return False
        for pattern in self.ignored_user_agents:
            if isinstance(pattern, re.Pattern):
                if pattern.search(user_agent):
                    return True
            elif pattern and pattern in user_agent:
                return True
        return False
