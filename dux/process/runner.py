"""ProcessRunner — starts the supervised command and kills its process group.

The command is always launched as the leader of a fresh session (and so
of a fresh process group). Stopping it signals the negated group id, which
reaches every descendant the command spawned, not just the leader.

Killing is never tied to the spawn call itself. If the leader were killed
on its own and the group signalled afterwards, its children would be
reparented before anyone collected their exit status. So start() and
stop() are separate, and stop() always targets the group.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from dataclasses import dataclass, field
from typing import IO, Any

from dux.exceptions import CommandStartError, ProcessStateError
from dux.types import ProcessState

_logger = logging.getLogger(__name__)

# Idle -> Running -> Terminating -> Idle
VALID_TRANSITIONS: dict[ProcessState, set[ProcessState]] = {
    ProcessState.IDLE: {ProcessState.RUNNING},
    ProcessState.RUNNING: {ProcessState.TERMINATING},
    ProcessState.TERMINATING: {ProcessState.IDLE},
}


@dataclass
class ProcessHandle:
    """One run of the supervised command."""

    command: str
    args: list[str]
    pid: int | None = None
    pgid: int | None = None
    state: ProcessState = ProcessState.IDLE
    started_at: float | None = None
    stopped_at: float | None = None
    exit_code: int | None = None
    _reaper: asyncio.Task | None = field(default=None, repr=False)

    def transition(self, target: ProcessState) -> None:
        valid = VALID_TRANSITIONS.get(self.state, set())
        if target not in valid:
            raise ProcessStateError(
                f"Cannot transition process {self.pid} "
                f"from {self.state.value} to {target.value}"
            )
        self.state = target

    @property
    def running(self) -> bool:
        return self.state == ProcessState.RUNNING

    async def wait(self) -> int | None:
        """Wait until the leader's exit status has been collected."""
        if self._reaper is not None:
            await self._reaper
        return self.exit_code


class ProcessRunner:
    """Launches a command in its own process group and kills the group.

    stdout/stderr default to the supervisor's own streams; stdin is
    inherited untouched.
    """

    def __init__(
        self,
        stdout: IO[Any] | int | None = None,
        stderr: IO[Any] | int | None = None,
        kill_signal: int = signal.SIGKILL,
        cwd: str | None = None,
    ) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self._kill_signal = kill_signal
        self._cwd = cwd
        self.starts = 0
        self.stops = 0

    async def start(self, command: str, args: list[str] | None = None) -> ProcessHandle:
        """Launch `command` with `args` as a new process group leader.

        Raises CommandStartError if the executable cannot be run.
        """
        handle = ProcessHandle(command=command, args=list(args or []))
        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *handle.args,
                stdout=self._stdout,
                stderr=self._stderr,
                cwd=self._cwd,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            raise CommandStartError(command, "executable not found") from e
        except PermissionError as e:
            raise CommandStartError(command, "permission denied") from e
        except OSError as e:
            raise CommandStartError(command, str(e)) from e

        handle.pid = proc.pid
        handle.pgid = proc.pid  # session leader == group leader
        handle.started_at = time.time()
        handle.transition(ProcessState.RUNNING)
        handle._reaper = asyncio.create_task(self._reap(handle, proc))
        self.starts += 1

        _logger.info("started %s (pid %d)", " ".join([command, *handle.args]), proc.pid)
        return handle

    async def _reap(self, handle: ProcessHandle, proc: asyncio.subprocess.Process) -> None:
        """Collect the leader's exit status so it never lingers as a zombie."""
        handle.exit_code = await proc.wait()
        _logger.debug("pid %s exited with %s", handle.pid, handle.exit_code)

    async def stop(self, handle: ProcessHandle) -> None:
        """Kill the handle's whole process group.

        A no-op for handles that are not running. A group that has
        already gone away is not an error. Does not wait for reaping.
        """
        if not handle.running:
            return

        handle.transition(ProcessState.TERMINATING)
        try:
            os.killpg(handle.pgid, self._kill_signal)
        except ProcessLookupError:
            pass
        except PermissionError as e:
            _logger.debug("could not signal group %s: %s", handle.pgid, e)

        handle.stopped_at = time.time()
        handle.transition(ProcessState.IDLE)
        self.stops += 1
        _logger.info("stopped process group %s", handle.pgid)
