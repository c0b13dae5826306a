"""Multicast delivery of live file-change events to subscribers."""
from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator

from agent_insights import config
from agent_insights.models import FileChangeEvent

logger = logging.getLogger("agent_insights.notifier")


class UpdateBroadcaster:
    """Fan out FileChangeEvents to every subscriber queue.

    Each subscriber owns a bounded asyncio.Queue. ``publish`` never blocks: when
    a subscriber's queue is full its oldest pending event is dropped.
    """

    def __init__(self, queue_size: int | None = None) -> None:
        self._queue_size = max(1, queue_size or config.SUBSCRIBER_QUEUE_SIZE)
        self._lock = threading.Lock()
        self._subscribers: list[asyncio.Queue[FileChangeEvent]] = []

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[FileChangeEvent]:
        queue: asyncio.Queue[FileChangeEvent] = asyncio.Queue(maxsize=self._queue_size)
        with self._lock:
            self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[FileChangeEvent]) -> None:
        with self._lock:
            try:
                self._subscribers.remove(queue)
            except ValueError:
                pass

    @asynccontextmanager
    async def subscription(self) -> AsyncIterator[asyncio.Queue[FileChangeEvent]]:
        queue = self.subscribe()
        try:
            yield queue
        finally:
            self.unsubscribe(queue)

    def publish(self, event: FileChangeEvent) -> int:
        """Deliver ``event`` to all current subscribers; returns the count reached."""
        with self._lock:
            subscribers = list(self._subscribers)

        for queue in subscribers:
            self._offer(queue, event)
        return len(subscribers)

    @staticmethod
    def _offer(queue: asyncio.Queue[FileChangeEvent], event: FileChangeEvent) -> None:
        while True:
            try:
                queue.put_nowait(event)
                return
            except asyncio.QueueFull:
                try:
                    dropped = queue.get_nowait()
                except asyncio.QueueEmpty:
                    continue
                logger.debug("Subscriber queue full, dropped event for %s", dropped.file_path)
