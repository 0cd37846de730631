"""Unbounded, multi-producer event channel.

Producers ``attach`` before sending and ``detach`` when done; once the last
producer detaches the channel closes and consumers see end-of-stream.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Generic, Optional, TypeVar

T = TypeVar("T")

_CLOSED = object()


class EventChannel(Generic[T]):
    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._producers = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self) -> None:
        if self._closed:
            raise RuntimeError("channel closed")
        self._producers += 1

    def detach(self) -> None:
        self._producers -= 1
        if self._producers <= 0:
            self.close()

    def send(self, item: T) -> None:
        if self._closed:
            raise RuntimeError("channel closed")
        self._queue.put_nowait(item)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def qsize(self) -> int:
        return self._queue.qsize() - (1 if self._closed else 0)

    async def recv(self) -> Optional[T]:
        """Next item, or None once the channel is closed and drained."""
        item = await self._queue.get()
        if item is _CLOSED:
            # leave the marker for other consumers
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iter()

    async def _iter(self) -> AsyncIterator[T]:
        while True:
            item = await self.recv()
            if item is None:
                return
            yield item
