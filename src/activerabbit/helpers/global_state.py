"""
Process-wide client holder used by the module-level API.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.client import ActiveRabbitClient
    from ..core.config import Configuration


@dataclass
class _GlobalState:
    client: ActiveRabbitClient | None = None
    config: Configuration | None = None


STATE = _GlobalState()
_STATE_LOCK = threading.Lock()


def set_client(client: ActiveRabbitClient | None, config: Configuration | None) -> ActiveRabbitClient | None:
    """Install ``client``/``config`` and return the previously installed client."""
    with _STATE_LOCK:
        previous = STATE.client
        STATE.client = client
        STATE.config = config
        return previous


def get_client() -> ActiveRabbitClient | None:
    return STATE.client


def get_config() -> Configuration | None:
    return STATE.config


def reset_state() -> ActiveRabbitClient | None:
    """Forget the installed client without shutting it down. Returns it."""
    return set_client(None, None)
