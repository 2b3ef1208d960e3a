"""Progress notifications for a running batch.

Each subscriber gets its own unbounded queue, so events reach every
subscriber in publish order and a slow reader never blocks the batch.
"""

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator

from .models import UrlStatus


@dataclass(frozen=True)
class ProgressEvent:
    url: str
    status: UrlStatus
    index: int
    total: int

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "status": self.status.value,
            "index": self.index,
            "total": self.total,
        }


_CLOSED = object()


class ProgressChannel:
    """Fan-out channel of ProgressEvents."""

    def __init__(self):
        self._subscribers: list[asyncio.Queue] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> AsyncIterator[ProgressEvent]:
        """Return an iterator over events published from now on.

        Iteration ends when the channel is closed.
        """
        queue: asyncio.Queue = asyncio.Queue()
        if self._closed:
            queue.put_nowait(_CLOSED)
        else:
            self._subscribers.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue) -> AsyncIterator[ProgressEvent]:
        try:
            while True:
                event = await queue.get()
                if event is _CLOSED:
                    return
                yield event
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    def publish(self, event: ProgressEvent) -> None:
        if self._closed:
            raise RuntimeError("Progress channel is closed")
        for queue in self._subscribers:
            queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(_CLOSED)
