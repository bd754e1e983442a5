"""Engines — the supervision loops.

ExecEngine runs a command, waits on a watcher, kills the command's process
group and starts it again, until the top-level token fires.
FuncEngine does the same for an in-process resource with a close() method.
"""

from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable

from dux.cancel import CancellationToken
from dux.process.runner import ProcessRunner
from dux.types import Closer, WaitReason
from dux.watchers.base import Watcher
from dux.watchers.file_watch import FileWatcher

_logger = logging.getLogger(__name__)


class ExecEngine:
    """Keeps one instance of a command alive, restarting it on every trigger."""

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        watcher: Watcher | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        if not command:
            raise ValueError("command is required")
        self.command = command
        self.args = list(args or [])
        self.watcher = watcher or FileWatcher()
        self.runner = runner or ProcessRunner()
        self.restarts = 0

    async def run(self, cancel: CancellationToken) -> None:
        """Run until `cancel` fires.

        CommandStartError from the runner propagates: with no process
        there is nothing to supervise.
        """
        while not cancel.cancelled:
            iteration = cancel.child()
            handle = await self.runner.start(self.command, self.args)
            # Per-run scope only; always cancelled when the iteration ends.
            try:
                # Outer token, not the iteration one.
                reason = await self.watcher.watch(cancel)
            finally:
                await self.runner.stop(handle)
                iteration.cancel()

            if reason == WaitReason.CANCELLED:
                continue
            self.restarts += 1
            _logger.info("restarting %s (%s)", self.command, reason.value)

        _logger.debug("supervision of %s ended after %d restarts", self.command, self.restarts)


class FuncEngine:
    """Calls `func` for a Closer, closes it on every trigger and calls again.

    Both `func` and the Closer's close() may be coroutines.
    """

    def __init__(
        self,
        func: Callable[[], Closer | Awaitable[Closer]],
        watcher: Watcher,
    ) -> None:
        self.func = func
        self.watcher = watcher
        self.runs = 0

    async def run(self, cancel: CancellationToken) -> None:
        while not cancel.cancelled:
            closeable = await _maybe_await(self.func())
            self.runs += 1
            try:
                await self.watcher.watch(cancel)
            finally:
                await _maybe_await(closeable.close())


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value
