# voicescribe/core/pubsub.py
"""
PubSub (Publish-Subscribe) module for live dashboard updates.
Provides a simple topic-based broadcast of newly persisted transcriptions
to any number of independent listeners (one per Server-Sent Events connection).
"""
import asyncio
import logging
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)

TRANSCRIPTIONS = "transcriptions"


class Subscription:
    """
    One listener handle. Messages are buffered in its own queue, so a slow
    listener never delays delivery to the others.
    """
    def __init__(self, topic: str, maxsize: int = 100):
        self.topic = topic
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def deliver(self, payload: Any) -> bool:
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> Any:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()


class Channel:
    """
    Simple PubSub channel.

    Architecture:
    - Routers create a subscription per connection and remove it when the connection closes
    - Publishing is synchronous and never fails because of a listener
    - Listeners can attach and detach at any time without affecting the others

    Data structure:
    - _topics: Dict[topic_name, Set[Subscription]]
    """
    def __init__(self):
        # Example: {"transcriptions": {sub1, sub2}}
        self._topics: Dict[str, Set[Subscription]] = {
            TRANSCRIPTIONS: set(),
        }

    # -------- subscribe / unsubscribe --------
    def subscribe(self, topic: str = TRANSCRIPTIONS, maxsize: int = 100) -> Subscription:
        """
        Register a new listener on a topic and return its handle.
        """
        sub = Subscription(topic, maxsize=maxsize)
        self._topics.setdefault(topic, set()).add(sub)
        return sub

    def unsubscribe(self, sub: Subscription):
        """
        Remove a listener. Unknown handles are ignored.
        """
        self._topics.get(sub.topic, set()).discard(sub)

    def subscriber_count(self, topic: str = TRANSCRIPTIONS) -> int:
        return len(self._topics.get(topic, set()))

    # -------- publish --------
    def publish(self, payload: Any, topic: str = TRANSCRIPTIONS) -> int:
        """
        Deliver a payload to every listener of a topic.

        Returns the number of listeners that accepted it. A listener whose
        buffer is full misses this message; the rest are unaffected.
        """
        delivered = 0
        for sub in list(self._topics.get(topic, set())):
            if sub.deliver(payload):
                delivered += 1
            else:
                logger.warning("[pubsub] listener buffer full, dropping message | topic=%s", topic)
        return delivered


# Global channel instance (singleton pattern)
# Import this instance in other modules to publish/subscribe messages
channel = Channel()
