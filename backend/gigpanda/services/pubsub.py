"""Per-user event channels for the real-time stream.

The in-memory broker only reaches subscribers connected to this process. A
deployment with several workers needs a shared implementation of
:class:`Broker` (Redis pub/sub or similar) installed with :func:`set_broker`.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Set

from ..core.logging import setup_logger

logger = setup_logger("pubsub")

class Subscription:
    def __init__(self, user_id: int, maxsize: int = 100):
        self.user_id = user_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    async def get(self, timeout: float = None) -> Dict[str, Any]:
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout)

class Broker(ABC):
    @abstractmethod
    def subscribe(self, user_id: int) -> Subscription:
        pass

    @abstractmethod
    def unsubscribe(self, subscription: Subscription) -> None:
        pass

    @abstractmethod
    async def publish(self, user_id: int, event: Dict[str, Any]) -> int:
        """Deliver ``event`` to every subscription of ``user_id``; returns how many got it."""
        pass

class InMemoryBroker(Broker):
    def __init__(self):
        self._channels: Dict[int, Set[Subscription]] = {}

    def subscribe(self, user_id: int) -> Subscription:
        subscription = Subscription(user_id)
        self._channels.setdefault(user_id, set()).add(subscription)
        logger.info(f"User {user_id} subscribed ({len(self._channels[user_id])} open)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        channel = self._channels.get(subscription.user_id)
        if not channel:
            return
        channel.discard(subscription)
        if not channel:
            del self._channels[subscription.user_id]
        logger.info(f"User {subscription.user_id} unsubscribed")

    def subscriber_count(self, user_id: int) -> int:
        return len(self._channels.get(user_id, ()))

    async def publish(self, user_id: int, event: Dict[str, Any]) -> int:
        delivered = 0
        for subscription in list(self._channels.get(user_id, ())):
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                # a stalled reader loses events rather than blocking the publisher
                logger.warning(f"Dropping event for user {user_id}: subscriber queue full")
        return delivered

_broker: Broker = InMemoryBroker()

def get_broker() -> Broker:
    return _broker

def set_broker(broker: Broker) -> None:
    global _broker
    _broker = broker
