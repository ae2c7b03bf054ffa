"""
Backtrace formatting/parsing and long-lived exception fingerprints.

The fingerprint groups "the same bug" across time: it hashes the exception
type, a message with its volatile parts replaced by placeholders, and up to
three in-application frames with line numbers stripped.
"""

from __future__ import annotations

import hashlib
import os
import re
import traceback
from collections.abc import Iterable, Sequence
from typing import Any

MAX_FINGERPRINT_FRAMES = 3

_FRAME_RE = re.compile(r'^\s*File "(?P<filename>.+?)", line (?P<lineno>\d+)(?:, in (?P<method>.+?))?\s*$')
_LINENO_RE = re.compile(r"(line |:)\d+")

_HEX_RE = re.compile(r"0x[0-9a-f]+", re.IGNORECASE)
_SINGLE_QUOTED_RE = re.compile(r"'[^']+'")
_DOUBLE_QUOTED_RE = re.compile(r'"[^"]+"')
_PATH_RE = re.compile(r"/[^/\s]+/[^/\s]*")
_NUMBER_RE = re.compile(r"\d+")


def exception_type_name(exception: BaseException) -> str:
    """Module-qualified class name, without the module for builtins."""
    cls = type(exception)
    module = cls.__module__
    if module in ("builtins", "__builtin__"):
        return cls.__qualname__
    return f"{module}.{cls.__qualname__}"


def format_traceback(exception: BaseException) -> list[str]:
    """
    Raw frame strings for ``exception``, innermost (raising) frame first.

    Exceptions that were never raised have no traceback and yield ``[]``.
    """
    tb = exception.__traceback__
    if tb is None:
        return []
    frames = traceback.extract_tb(tb)
    return [f'File "{frame.filename}", line {frame.lineno}, in {frame.name}' for frame in reversed(frames)]


def parse_backtrace(lines: Iterable[str]) -> list[dict[str, Any]]:
    """Parse raw frames into filename/lineno/method; unparseable frames keep only ``line``."""
    parsed: list[dict[str, Any]] = []
    for line in lines:
        match = _FRAME_RE.match(line)
        if match:
            parsed.append(
                {
                    "filename": match.group("filename"),
                    "lineno": int(match.group("lineno")),
                    "method": match.group("method"),
                    "line": line,
                }
            )
        else:
            parsed.append({"line": line})
    return parsed


def clean_message(message: str | None) -> str:
    """Replace hex addresses, quoted strings, paths and numbers with placeholders."""
    if not message:
        return ""
    cleaned = _HEX_RE.sub("<hex>", message)
    cleaned = _SINGLE_QUOTED_RE.sub("'<str>'", cleaned)
    cleaned = _DOUBLE_QUOTED_RE.sub('"<str>"', cleaned)
    cleaned = _PATH_RE.sub("<path>", cleaned)
    return _NUMBER_RE.sub("<num>", cleaned)


def _is_app_frame(line: str, project_root: str | None) -> bool:
    if "site-packages" in line or "dist-packages" in line:
        return False
    if not project_root:
        return True
    return project_root in line


def relevant_frames(lines: Sequence[str], project_root: str | None) -> list[str]:
    """First in-application frames with line numbers replaced by ``LINE``."""
    root = os.path.abspath(project_root) if project_root else None
    app_frames = [line for line in lines if _is_app_frame(line, root)]
    return [_LINENO_RE.sub(r"\1LINE", line) for line in app_frames[:MAX_FINGERPRINT_FRAMES]]


def generate_fingerprint(
    exception: BaseException,
    project_root: str | None = None,
    backtrace: Sequence[str] | None = None,
) -> str:
    """SHA-256 hex digest grouping occurrences of the same exception."""
    if backtrace is None:
        backtrace = format_traceback(exception)
    parts = [
        exception_type_name(exception),
        clean_message(str(exception)),
        "|".join(relevant_frames(backtrace, project_root)),
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
