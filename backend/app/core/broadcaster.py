"""In-process fan-out of vehicle updates to WebSocket subscribers."""

import asyncio
import logging

import orjson

logger = logging.getLogger(__name__)

QUEUE_SIZE = 10


class Broadcaster:
    """Pushes encoded bus updates to every subscriber queue."""

    def __init__(self) -> None:
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, buses: list[dict]) -> None:
        """Fan out an update frame; subscribers that fall behind are dropped."""
        if not self._subscribers:
            return
        payload = orjson.dumps({"type": "update", "buses": buses})

        dead = set()
        for q in self._subscribers:
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                dead.add(q)
        if dead:
            logger.warning("Dropping %d slow subscribers", len(dead))
        self._subscribers -= dead

    @staticmethod
    def snapshot_frame(buses: list[dict]) -> bytes:
        return orjson.dumps({"type": "snapshot", "buses": buses})

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        self._subscribers.discard(q)
