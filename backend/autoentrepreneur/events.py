"""Diffusion des changements (remplace les listeners temps réel).

Cohérence à terme, dernier écrit gagnant : aucun rejeu, FIFO par abonné.
"""
import asyncio
import json
import logging
from collections import defaultdict

logger = logging.getLogger(__name__)


class ChangeBroker:
    def __init__(self, maxsize: int = 100):
        self.maxsize = maxsize
        self._subscribers: dict[int, set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, owner_id: int) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.maxsize)
        self._subscribers[owner_id].add(queue)
        return queue

    def unsubscribe(self, owner_id: int, queue: asyncio.Queue) -> None:
        subs = self._subscribers.get(owner_id)
        if not subs:
            return
        subs.discard(queue)
        if not subs:
            del self._subscribers[owner_id]

    def subscriber_count(self, owner_id: int) -> int:
        return len(self._subscribers.get(owner_id, ()))

    def publish(self, owner_id: int, event: dict) -> None:
        for queue in list(self._subscribers.get(owner_id, ())):
            if queue.full():
                # abonné trop lent : on jette le plus ancien
                queue.get_nowait()
                logger.debug("dropped oldest event for owner %s", owner_id)
            queue.put_nowait(event)

    async def stream(self, owner_id: int, keepalive: float = 15.0):
        """Générateur SSE (text/event-stream) pour un utilisateur."""
        queue = self.subscribe(owner_id)
        try:
            yield ": connected\n\n"
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=keepalive)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: {event['resource']}\ndata: {json.dumps(event, default=str)}\n\n"
        finally:
            self.unsubscribe(owner_id, queue)


broker = ChangeBroker()
