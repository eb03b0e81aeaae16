import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Iterable


class TabPool:
    """
    Fixed-size pool of browser tabs shared by concurrent page fetches.

    Idle tabs sit in an ``asyncio.Queue``; ``acquire`` waits on the queue until
    one is released, and blocked waiters are woken in the order they queued. The pool
    never creates tabs after ``build``.
    """

    def __init__(self):
        self._idle: asyncio.Queue = asyncio.Queue()
        self._size = 0

    @classmethod
    async def build(cls, size: int, factory: Callable[[], Awaitable[Any]], initial: Iterable[Any] = ()) -> "TabPool":
        """
        Create a pool holding ``size`` tabs.
        Args:
            size (int): Total number of tabs in the pool.
            factory: Coroutine function returning a new tab.
            initial: Tabs that already exist (e.g. one already navigated); they are
                added first and count towards ``size``.
        Returns:
            TabPool: The populated pool.
        """
        pool = cls()
        for tab in initial:
            if pool.size >= size:
                break
            pool._add(tab)
        while pool.size < size:
            pool._add(await factory())
        return pool

    def _add(self, tab) -> None:
        self._idle.put_nowait(tab)
        self._size += 1

    @property
    def size(self) -> int:
        return self._size

    @property
    def available(self) -> int:
        return self._idle.qsize()

    async def acquire(self):
        """Wait until a tab is idle and hand it to the caller."""
        return await self._idle.get()

    def release(self, tab) -> None:
        """Give a tab back to the pool."""
        self._idle.put_nowait(tab)

    @asynccontextmanager
    async def tab(self):
        tab = await self.acquire()
        try:
            yield tab
        finally:
            self.release(tab)

    async def close(self) -> None:
        """Close every idle tab. Checked-out tabs are left to their holders."""
        while not self._idle.empty():
            tab = self._idle.get_nowait()
            try:
                await tab.close()
            except Exception as e:
                print(f"\n⚠️ Failed to close tab: {e}")
