"""Tests for the polling file watcher."""

import asyncio
import logging
import os
import tempfile
from pathlib import Path

import pytest

from dux.cancel import CancellationToken
from dux.config import WatchTarget
from dux.types import WaitReason
from dux.watchers.file_watch import FileWatcher


@pytest.fixture
def watch_dir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


def _touch(path: Path) -> None:
    """Move a file's mtime forward by a full second."""
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000_000))


def _watcher(root: Path, interval: float = 0.05, **kwargs) -> FileWatcher:
    return FileWatcher(WatchTarget(root=root, poll_interval=interval, **kwargs))


def test_snapshot_empty_dir(watch_dir):
    assert _watcher(watch_dir)._snapshot() == []


def test_snapshot_recurses(watch_dir):
    (watch_dir / "a.py").write_text("a")
    (watch_dir / "pkg").mkdir()
    (watch_dir / "pkg" / "b.py").write_text("b")

    files = _watcher(watch_dir)._snapshot()

    assert sorted(f.name for f in files) == ["a.py", "b.py"]


def test_snapshot_pattern_filter(watch_dir):
    (watch_dir / "a.py").write_text("a")
    (watch_dir / "b.txt").write_text("b")

    files = _watcher(watch_dir, patterns=["*.py"])._snapshot()

    assert [f.name for f in files] == ["a.py"]


def test_snapshot_skips_ignored_dirs(watch_dir):
    (watch_dir / ".git").mkdir()
    (watch_dir / ".git" / "HEAD").write_text("ref")
    (watch_dir / "main.py").write_text("x")

    files = _watcher(watch_dir)._snapshot()

    assert [f.name for f in files] == ["main.py"]


def test_snapshot_single_file(watch_dir):
    target = watch_dir / "watched.py"
    target.write_text("x")
    assert _watcher(target)._snapshot() == [target]


def test_snapshot_missing_root(watch_dir):
    assert _watcher(watch_dir / "nope")._snapshot() == []


@pytest.mark.asyncio
async def test_change_unblocks_watch(watch_dir):
    """a.txt and b.txt at 50ms; touching b.txt ends the wait within a few ticks."""
    (watch_dir / "a.txt").write_text("a")
    (watch_dir / "b.txt").write_text("b")
    watcher = _watcher(watch_dir, interval=0.05)
    cancel = CancellationToken()

    task = asyncio.create_task(watcher.watch(cancel))
    await asyncio.sleep(0.12)
    assert not task.done()

    loop = asyncio.get_running_loop()
    touched = loop.time()
    _touch(watch_dir / "b.txt")
    reason = await asyncio.wait_for(task, timeout=1)

    # At most two 50ms ticks, plus 50ms of scheduling slack.
    assert loop.time() - touched < 0.15
    assert reason == WaitReason.CHANGED
    assert watcher.last_change == watch_dir / "b.txt"
    assert not cancel.cancelled


@pytest.mark.asyncio
async def test_single_trigger_with_many_files(watch_dir, caplog):
    for i in range(20):
        (watch_dir / f"f{i}.txt").write_text(str(i))
    watcher = _watcher(watch_dir, interval=0.05)

    with caplog.at_level(logging.INFO, logger="dux.watchers.file_watch"):
        task = asyncio.create_task(watcher.watch(CancellationToken()))
        await asyncio.sleep(0.08)
        _touch(watch_dir / "f7.txt")
        reason = await asyncio.wait_for(task, timeout=1)

    assert reason == WaitReason.CHANGED
    detected = [r for r in caplog.records if "change detected" in r.getMessage()]
    assert len(detected) == 1


@pytest.mark.asyncio
async def test_simultaneous_changes_fire_once(watch_dir, caplog):
    (watch_dir / "a.txt").write_text("a")
    (watch_dir / "b.txt").write_text("b")
    watcher = _watcher(watch_dir, interval=0.05)

    with caplog.at_level(logging.INFO, logger="dux.watchers.file_watch"):
        task = asyncio.create_task(watcher.watch(CancellationToken()))
        await asyncio.sleep(0.08)
        _touch(watch_dir / "a.txt")
        _touch(watch_dir / "b.txt")
        reason = await asyncio.wait_for(task, timeout=1)

    assert reason == WaitReason.CHANGED
    # Either file may win the race.
    assert watcher.last_change in {watch_dir / "a.txt", watch_dir / "b.txt"}
    detected = [r for r in caplog.records if "change detected" in r.getMessage()]
    assert len(detected) == 1


@pytest.mark.asyncio
async def test_zero_files_blocks_until_cancelled(watch_dir):
    watcher = _watcher(watch_dir, interval=0.02)
    cancel = CancellationToken()

    task = asyncio.create_task(watcher.watch(cancel))
    await asyncio.sleep(0.2)
    assert not task.done()

    cancel.cancel()
    assert await asyncio.wait_for(task, timeout=1) == WaitReason.CANCELLED


@pytest.mark.asyncio
async def test_cancel_returns_within_poll_interval(watch_dir):
    (watch_dir / "a.txt").write_text("a")
    watcher = _watcher(watch_dir, interval=0.2)
    cancel = CancellationToken()

    task = asyncio.create_task(watcher.watch(cancel))
    await asyncio.sleep(0.05)
    loop = asyncio.get_running_loop()
    start = loop.time()
    cancel.cancel()
    reason = await asyncio.wait_for(task, timeout=1)

    assert reason == WaitReason.CANCELLED
    assert loop.time() - start < 0.2


@pytest.mark.asyncio
async def test_deleted_file_is_not_a_change(watch_dir):
    (watch_dir / "gone.txt").write_text("x")
    (watch_dir / "kept.txt").write_text("y")
    watcher = _watcher(watch_dir, interval=0.03)
    cancel = CancellationToken()

    task = asyncio.create_task(watcher.watch(cancel))
    await asyncio.sleep(0.05)
    (watch_dir / "gone.txt").unlink()
    await asyncio.sleep(0.15)
    assert not task.done()

    # The remaining file is still watched.
    _touch(watch_dir / "kept.txt")
    assert await asyncio.wait_for(task, timeout=1) == WaitReason.CHANGED


@pytest.mark.asyncio
async def test_every_file_deleted_waits_for_cancel(watch_dir):
    (watch_dir / "only.txt").write_text("x")
    watcher = _watcher(watch_dir, interval=0.03)
    cancel = CancellationToken()

    task = asyncio.create_task(watcher.watch(cancel))
    await asyncio.sleep(0.05)
    (watch_dir / "only.txt").unlink()
    await asyncio.sleep(0.15)
    assert not task.done()

    cancel.cancel()
    assert await asyncio.wait_for(task, timeout=1) == WaitReason.CANCELLED


@pytest.mark.asyncio
async def test_each_watch_starts_fresh(watch_dir):
    (watch_dir / "a.txt").write_text("a")
    watcher = _watcher(watch_dir, interval=0.03)
    cancel = CancellationToken()

    first = asyncio.create_task(watcher.watch(cancel))
    await asyncio.sleep(0.05)
    _touch(watch_dir / "a.txt")
    assert await asyncio.wait_for(first, timeout=1) == WaitReason.CHANGED

    # The new cycle takes the touched mtime as its baseline.
    second = asyncio.create_task(watcher.watch(cancel))
    await asyncio.sleep(0.15)
    assert not second.done()
    cancel.cancel()
    assert await asyncio.wait_for(second, timeout=1) == WaitReason.CANCELLED
