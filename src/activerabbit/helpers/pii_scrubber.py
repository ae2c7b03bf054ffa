"""
PII scrubbing for outbound payloads.

Mapping keys that look sensitive have their values replaced wholesale;
strings are searched for e-mail addresses, phone numbers, card numbers,
social security numbers and IPv4 addresses. The scrubber never mutates its
input and never raises.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

FILTERED = "[FILTERED]"

DEFAULT_PII_FIELDS: tuple[str, ...] = (
    "password",
    "password_confirmation",
    "token",
    "secret",
    "key",
    "credit_card",
    "ssn",
    "social_security_number",
    "phone",
    "email",
    "first_name",
    "last_name",
    "name",
    "address",
    "city",
    "state",
    "zip",
)

_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

_PHONE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\(\d{3}\)\s?\d{3}[-.]?\d{4}"),  # (123) 456-7890
    re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),  # 123-456-7890, 123.456.7890
    re.compile(r"\+1[-.\s]?\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b"),  # +1-123-456-7890
    re.compile(r"\b\d{3}\s\d{3}\s\d{4}\b"),  # 123 456 7890
)

_CARD_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b\d{4}[-\s]\d{4}[-\s]\d{4}[-\s]\d{4}\b"),
    re.compile(r"\b\d{13,19}\b"),
)

_SSN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b\d{3}[-.\s]?\d{2}[-.\s]?\d{4}\b"),
    re.compile(r"\b\d{9}\b"),
)

_IPV4_RE = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
_NON_DIGIT_RE = re.compile(r"\D")


def luhn_valid(digits: str) -> bool:
    """Return True if ``digits`` passes the Luhn checksum."""
    if not digits or not digits.isdigit():
        return False
    total = 0
    for index, char in enumerate(reversed(digits)):
        value = int(char)
        if index % 2 == 1:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return total % 10 == 0


def _replace_card(match: re.Match[str]) -> str:
    digits = _NON_DIGIT_RE.sub("", match.group(0))
    if 13 <= len(digits) <= 19 and luhn_valid(digits):
        return FILTERED
    return match.group(0)


def _replace_ssn(match: re.Match[str]) -> str:
    digits = _NON_DIGIT_RE.sub("", match.group(0))
    if len(digits) == 9 and len(set(digits)) > 1:
        return FILTERED
    return match.group(0)


def _replace_ip(match: re.Match[str]) -> str:
    octets = match.group(0).split(".")
    if all(int(octet) <= 255 for octet in octets):
        return f"{octets[0]}.xxx.xxx.xxx"
    return match.group(0)


def scrub_string(text: str) -> str:
    """Apply every pattern-based redaction to ``text`` in sequence."""
    text = _EMAIL_RE.sub(FILTERED, text)
    for pattern in _PHONE_PATTERNS:
        text = pattern.sub(FILTERED, text)
    for pattern in _CARD_PATTERNS:
        text = pattern.sub(_replace_card, text)
    for pattern in _SSN_PATTERNS:
        text = pattern.sub(_replace_ssn, text)
    return _IPV4_RE.sub(_replace_ip, text)


class PIIScrubber:
    """
    Recursive redactor for maps, lists and strings.

    Args:
        fields: Sensitive field names (case-insensitive substring match) or
            compiled regexes matched against the lower-cased key
    """

    def __init__(self, fields: Iterable[str | re.Pattern[str]] = DEFAULT_PII_FIELDS) -> None:
        self._substrings: list[str] = []
        self._patterns: list[re.Pattern[str]] = []
        for field in fields:
            if isinstance(field, re.Pattern):
                self._patterns.append(field)
            elif isinstance(field, str) and field:
                self._substrings.append(field.lower())

    def scrub(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return self._scrub_mapping(value)
        if isinstance(value, list):
            return [self.scrub(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.scrub(item) for item in value)
        if isinstance(value, str):
            return scrub_string(value)
        return value

    __call__ = scrub

    def is_sensitive_key(self, key: Any) -> bool:
        if key is None:
            return False
        key_str = str(key).lower()
        if any(field in key_str for field in self._substrings):
            return True
        return any(pattern.search(key_str) for pattern in self._patterns)

    def _scrub_mapping(self, mapping: Mapping[Any, Any]) -> dict[Any, Any]:
        scrubbed: dict[Any, Any] = {}
        for key, value in mapping.items():
            if self.is_sensitive_key(key):
                scrubbed[key] = FILTERED
            else:
                scrubbed[key] = self.scrub(value)
        return scrubbed
