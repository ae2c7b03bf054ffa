"""
Runtime snapshots attached to records.
"""

from __future__ import annotations

import gc
import os
import platform
import sys
import threading
from typing import Any

from ..version import __version__


def runtime_context() -> dict[str, Any]:
    """Interpreter, platform and collector-library versions plus GC counters."""
    context: dict[str, Any] = {
        "python_version": platform.python_version(),
        "python_implementation": platform.python_implementation(),
        "platform": sys.platform,
        "sdk_version": __version__,
    }
    try:
        context["gc_stats"] = {
            "counts": list(gc.get_count()),
            "collections": [generation.get("collections", 0) for generation in gc.get_stats()],
        }
    except Exception:
        pass
    return context


def _max_rss_kb() -> int | None:
    try:
        import resource
    except ImportError:
        return None
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS reports bytes, Linux kilobytes
    return usage // 1024 if sys.platform == "darwin" else usage


def performance_context() -> dict[str, Any]:
    """Process, thread and memory figures at the time of measurement."""
    context: dict[str, Any] = {
        "process": {"pid": os.getpid()},
        "threading": {"active_threads": threading.active_count()},
    }
    memory: dict[str, Any] = {"gc_counts": list(gc.get_count())}
    try:
        max_rss = _max_rss_kb()
        if max_rss is not None:
            memory["max_rss_kb"] = max_rss
    except Exception:
        pass
    context["memory"] = memory
    return context
