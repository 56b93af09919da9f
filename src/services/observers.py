"""Process-wide relay of pipeline activity to observer consoles.

Each connected console owns a bounded `asyncio.Queue` of pre-serialized SSE
frames. Publishing never blocks and never fails the caller: an observer
whose queue is full simply misses that event.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from functools import lru_cache

from core.config import get_settings
from schemas.observers import ObserverEvent


logger = logging.getLogger(__name__)


@dataclass
class RelayStats:
    published: int = 0
    dropped: int = 0


class ObserverRegistry:
    """Lock-guarded set of observer queues."""

    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = max(1, int(queue_size))
        self._queues: set[asyncio.Queue[str]] = set()
        self._lock = threading.Lock()
        self.stats = RelayStats()

    def __len__(self) -> int:
        with self._lock:
            return len(self._queues)

    def register(self) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._queue_size)
        with self._lock:
            self._queues.add(queue)
            count = len(self._queues)
        logger.info("Observer connected (%d active)", count)
        return queue

    def unregister(self, queue: asyncio.Queue[str]) -> None:
        with self._lock:
            self._queues.discard(queue)
            count = len(self._queues)
        logger.info("Observer disconnected (%d active)", count)

    def publish(self, event: ObserverEvent) -> int:
        """Fan an event out to every observer; returns how many received it."""
        try:
            frame = event.to_sse()
        except ValueError as e:
            logger.warning("Dropping observer event of type %s: %s", event.type, e)
            return 0

        with self._lock:
            snapshot = list(self._queues)

        delivered = 0
        for queue in snapshot:
            try:
                queue.put_nowait(frame)
            except asyncio.QueueFull:
                self.stats.dropped += 1
                logger.warning("Observer queue full; dropping %s event", event.type)
                continue
            delivered += 1
        self.stats.published += 1
        return delivered


@lru_cache
def get_observer_registry() -> ObserverRegistry:
    return ObserverRegistry(queue_size=get_settings().OBSERVER_QUEUE_SIZE)
