"""
Rules deciding which exceptions are never reported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from ..errors import ConfigurationError
from ..helpers.fingerprint import exception_type_name

NOT_FOUND_CLASS_NAMES = frozenset({"NotFound", "Http404", "HTTPNotFound", "RoutingError"})


@dataclass(frozen=True, slots=True)
class IgnoreName:
    """Exact match against the class name or its module-qualified name."""

    name: str

    def matches(self, exception: BaseException) -> bool:
        cls = type(exception)
        return self.name in (cls.__name__, cls.__qualname__, exception_type_name(exception))


@dataclass(frozen=True, slots=True)
class IgnorePattern:
    """Regex searched in the module-qualified class name."""

    pattern: re.Pattern[str]

    def matches(self, exception: BaseException) -> bool:
        return self.pattern.search(exception_type_name(exception)) is not None


@dataclass(frozen=True, slots=True)
class IgnoreClass:
    """Class-hierarchy match."""

    cls: type[BaseException]

    def matches(self, exception: BaseException) -> bool:
        return isinstance(exception, self.cls)


IgnoreRule = IgnoreName | IgnorePattern | IgnoreClass


def coerce_ignore_rule(value: Any) -> IgnoreRule:
    """Turn a string, exception class or compiled regex into an :data:`IgnoreRule`."""
    if isinstance(value, (IgnoreName, IgnorePattern, IgnoreClass)):
        return value
    if isinstance(value, str):
        return IgnoreName(value)
    if isinstance(value, re.Pattern):
        return IgnorePattern(value)
    if isinstance(value, type) and issubclass(value, BaseException):
        return IgnoreClass(value)
    raise ConfigurationError(f"Unsupported ignore rule: {value!r}")


def is_not_found_error(exception: BaseException) -> bool:
    """Routing-level 404s raised by web frameworks."""
    if type(exception).__name__ in NOT_FOUND_CLASS_NAMES:
        return True
    for attr in ("status_code", "code"):
        if getattr(exception, attr, None) == 404:
            return True
    return False
