"""
Framework-agnostic instrumentation helpers.

Both decorators work on plain functions and coroutines. Reporting failures
never change the behaviour of the wrapped callable: its return value and
its exceptions pass through untouched.
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from typing_extensions import ParamSpec

from ..helpers.logging_config import get_logger

if TYPE_CHECKING:
    from ..core.client import ActiveRabbitClient

P = ParamSpec("P")
R = TypeVar("R")

logger = get_logger()


def _report_exception(
    client: ActiveRabbitClient | None,
    exception: BaseException,
    context: Mapping[str, Any] | None,
    tags: Mapping[str, Any] | None,
) -> None:
    try:
        if client is not None:
            client.track_exception(exception, context, tags=tags, handled=False)
        else:
            from .. import track_exception

            track_exception(exception, context, tags=tags, handled=False)
    except Exception as e:
        logger.debug(f"capture_exceptions failed to report (ignored): {type(e).__name__}: {e}")


def capture_exceptions(
    *,
    client: ActiveRabbitClient | None = None,
    context: Mapping[str, Any] | None = None,
    tags: Mapping[str, Any] | None = None,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator that reports exceptions escaping the wrapped callable, then re-raises them.

    Uses ``client`` when given, otherwise the process-wide client.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        call_context = {"function": getattr(func, "__qualname__", repr(func)), **(context or {})}

        def _wrap(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return func(*args, **kwargs)
            except exceptions as e:
                _report_exception(client, e, call_context, tags)
                raise

        async def _wrap_async(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)  # type: ignore[misc, no-any-return]
            except exceptions as e:
                _report_exception(client, e, call_context, tags)
                raise

        wrapper = functools.wraps(func)(_wrap_async if inspect.iscoroutinefunction(func) else _wrap)
        return wrapper  # type: ignore[return-value]

    return decorator


def timed(
    name: str | None = None,
    *,
    client: ActiveRabbitClient | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator that reports the wrapped callable's duration as a performance record.

    The duration is reported whether the call returns or raises.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        operation = name or getattr(func, "__qualname__", "operation")

        def _measure() -> Any:
            if client is not None:
                return client.measure(operation, metadata)
            from .. import measure

            return measure(operation, metadata)

        def _wrap(*args: P.args, **kwargs: P.kwargs) -> R:
            with _measure():
                return func(*args, **kwargs)

        async def _wrap_async(*args: P.args, **kwargs: P.kwargs) -> R:
            with _measure():
                return await func(*args, **kwargs)  # type: ignore[misc, no-any-return]

        wrapper = functools.wraps(func)(_wrap_async if inspect.iscoroutinefunction(func) else _wrap)
        return wrapper  # type: ignore[return-value]

    return decorator
