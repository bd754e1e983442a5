"""Timer watcher — restarts on a fixed schedule instead of file changes."""

from __future__ import annotations

from dux.cancel import CancellationToken
from dux.types import WaitReason
from dux.watchers.base import Watcher


class TimeWatcher(Watcher):
    """Unblocks after `delay` seconds, or earlier if cancelled."""

    def __init__(self, delay: float):
        if delay < 0:
            raise ValueError("delay must not be negative")
        self.delay = delay

    async def watch(self, cancel: CancellationToken) -> WaitReason:
        if await cancel.sleep(self.delay):
            return WaitReason.CANCELLED
        return WaitReason.ELAPSED
