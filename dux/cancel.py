"""Cancellation tokens — one-shot, hierarchical stop signals.

A token moves from live to fired exactly once. Firing a token fires every
descendant derived from it with child(); firing a child leaves its parent
untouched. Every waiter observes the fired state through a shared
asyncio.Event, so there is nothing else to synchronize.

Usage:
    root = CancellationToken()
    cycle = root.child()
    ...
    cycle.cancel()   # stops this watch cycle only
    root.cancel()    # stops everything
"""

from __future__ import annotations

import asyncio
import weakref


class CancellationToken:
    """A one-way signal telling concurrent tasks to stop."""

    def __init__(self, parent: CancellationToken | None = None) -> None:
        self._event = asyncio.Event()
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()
        self._parent = parent

    def child(self) -> CancellationToken:
        """Derive a token that fires whenever this one does."""
        token = CancellationToken(parent=self)
        if self.cancelled:
            token._event.set()
        else:
            self._children.add(token)
        return token

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Fire this token and all of its descendants.

        Returns True for the caller that actually fired it, False if it
        had already fired.
        """
        if self._event.is_set():
            return False
        self._event.set()
        for token in list(self._children):
            token.cancel()
        self._children.clear()
        if self._parent is not None:
            self._parent._children.discard(self)
        return True

    async def wait(self) -> None:
        """Block until the token fires."""
        await self._event.wait()

    async def sleep(self, delay: float) -> bool:
        """Wait up to `delay` seconds. Returns True if the token fired."""
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    def __repr__(self) -> str:
        state = "fired" if self.cancelled else "live"
        return f"<CancellationToken {state} children={len(self._children)}>"
