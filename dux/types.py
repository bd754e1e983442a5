"""Core types shared across dux subsystems."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable


class ProcessState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    TERMINATING = "terminating"


class WaitReason(str, Enum):
    """Why a watcher stopped blocking."""

    CHANGED = "changed"
    CANCELLED = "cancelled"
    ELAPSED = "elapsed"


@runtime_checkable
class Closer(Protocol):
    """Anything with a close() method. close() may return an awaitable."""

    def close(self) -> Any: ...
