"""Watcher base — what decides it is time to restart.

A watcher blocks its caller until something worth reacting to happens,
or until the caller's cancellation token fires.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from dux.cancel import CancellationToken
from dux.types import WaitReason


class Watcher(ABC):
    """Abstract trigger source for the supervision loop."""

    @abstractmethod
    async def watch(self, cancel: CancellationToken) -> WaitReason:
        """Block until a trigger occurs or `cancel` fires."""
        ...
