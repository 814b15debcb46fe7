"""Realtime connection registry — owned by the transport layer.

One instance is created at application startup and handed to the notification
service; nothing in the order or wallet core reaches it directly. A connection
is any async callable accepting one JSON-serialisable message.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

Sender = Callable[[dict[str, Any]], Awaitable[None]]


class ConnectionRegistry:
    def __init__(self) -> None:
        self._connections: dict[str, set[Sender]] = defaultdict(set)

    def register(self, user_id: str, sender: Sender) -> None:
        self._connections[user_id].add(sender)

    def unregister(self, user_id: str, sender: Sender) -> None:
        senders = self._connections.get(user_id)
        if not senders:
            return
        senders.discard(sender)
        if not senders:
            del self._connections[user_id]

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, ()))

    async def send(self, user_id: str, message: dict[str, Any]) -> int:
        """Deliver to every live connection of the user; returns deliveries made.

        A connection that raises is dropped; other connections still receive.
        """
        senders = list(self._connections.get(user_id, ()))
        if not senders:
            return 0
        results = await asyncio.gather(
            *(sender(message) for sender in senders), return_exceptions=True
        )
        delivered = 0
        for sender, result in zip(senders, results):
            if isinstance(result, Exception):
                logger.warning("Dropping dead realtime connection for user %s: %s", user_id, result)
                self.unregister(user_id, sender)
            else:
                delivered += 1
        return delivered
