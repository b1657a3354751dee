"""
In-memory fan-out broadcaster.

One bounded asyncio.Queue per connected WebSocket client. Route handlers push
events in; each WebSocket handler drains its own queue. A client that stops
draining (queue full) is dropped rather than allowed to hold up the others.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from relay.config import SUBSCRIBER_QUEUE_SIZE
from relay.models import push_event

log = logging.getLogger(__name__)

# Queued on shutdown; tells a connection handler to close its socket
CLOSED = object()


class Broadcaster:
    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._queues: list[asyncio.Queue] = []

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._queues.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        try:
            self._queues.remove(q)
        except ValueError:
            pass

    def send(self, q: asyncio.Queue, event_type: str, data: Any = None) -> bool:
        """Queue one event for a single connection. False if it was dropped."""
        try:
            q.put_nowait(push_event(event_type, data))
        except asyncio.QueueFull:
            log.warning("Subscriber queue full, dropping connection")
            self.unsubscribe(q)
            return False
        return True

    def broadcast(self, event_type: str, data: Any = None) -> int:
        """Queue an event for every connection; returns how many accepted it."""
        delivered = 0
        for q in list(self._queues):
            if self.send(q, event_type, data):
                delivered += 1
        return delivered

    def is_subscribed(self, q: asyncio.Queue) -> bool:
        return q in self._queues

    def subscriber_count(self) -> int:
        return len(self._queues)

    def close(self) -> None:
        """Wake every connection handler with CLOSED and empty the registry."""
        for q in self._queues:
            if q.full():
                # make room; the handler is closing anyway
                q.get_nowait()
            q.put_nowait(CLOSED)
        self._queues.clear()
