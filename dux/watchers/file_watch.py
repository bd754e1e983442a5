"""File watcher — polls a directory tree and unblocks on the first change.

One poller task per file. Each poller remembers the modification time it
saw when it started and re-reads it every poll interval. The first poller
to see a different value fires the cycle token, which stops every other
poller; the cycle is over once all of them have returned.

Polling keeps this portable across filesystems. The tree is walked once per
cycle, so files created or deleted during a cycle are not noticed until
the next one.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path

from dux.cancel import CancellationToken
from dux.config import WatchTarget
from dux.types import WaitReason
from dux.watchers.base import Watcher

_logger = logging.getLogger(__name__)


@dataclass
class FileRecord:
    """Last observed state of one watched file."""

    path: Path
    mtime_ns: int


class FileWatcher(Watcher):
    """Blocks until any file under `target.root` is modified.

    Config (from WatchTarget):
        root: directory (or single file) to watch
        patterns: file-name globs to include (default ["*"])
        ignore: path components to skip (default [".git", "__pycache__"])
        poll_interval: seconds between checks (default 1)
    """

    def __init__(self, target: WatchTarget | None = None):
        self.target = target or WatchTarget()
        self.last_change: Path | None = None

    async def watch(self, cancel: CancellationToken) -> WaitReason:
        cycle = cancel.child()
        files = self._snapshot()
        _logger.debug("watching %d files under %s", len(files), self.target.root)

        try:
            fired = await asyncio.gather(*(self._poll(path, cycle) for path in files))
            if any(fired):
                return WaitReason.CHANGED
            # Nothing left to poll: only the caller can end this cycle now.
            await cycle.wait()
            return WaitReason.CANCELLED
        finally:
            cycle.cancel()

    async def _poll(self, path: Path, cycle: CancellationToken) -> bool:
        """Watch one file. Returns True if this poller fired the cycle."""
        try:
            record = FileRecord(path=path, mtime_ns=path.stat().st_mtime_ns)
        except OSError:
            return False

        interval = self.target.poll_interval
        while not await cycle.sleep(interval):
            try:
                mtime_ns = record.path.stat().st_mtime_ns
            except OSError as e:
                _logger.warning("stopped watching %s: %s", record.path, e)
                return False

            if mtime_ns != record.mtime_ns:
                if not cycle.cancel():
                    # A sibling got there first.
                    return False
                self.last_change = record.path
                _logger.info("change detected: %s", record.path)
                return True
            record.mtime_ns = mtime_ns
        return False

    def _snapshot(self) -> list[Path]:
        """List every watched file under the root."""
        root = self.target.root

        if root.is_file():
            return [root]

        if not root.is_dir():
            _logger.warning("watch root %s is not a directory", root)
            return []

        result: list[Path] = []
        for f in root.rglob("*"):
            if self._ignored(f.relative_to(root)):
                continue
            if not any(fnmatch.fnmatch(f.name, p) for p in self.target.patterns):
                continue
            try:
                if f.is_file():
                    result.append(f)
            except OSError:
                pass
        return result

    def _ignored(self, relative: Path) -> bool:
        return any(part in self.target.ignore for part in relative.parts)
