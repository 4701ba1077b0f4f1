"""
Sequential message queue

Inbound webhook messages are appended to an in-memory FIFO and handled one at
a time by a single drain task, in arrival order. Items are not persisted; the
webhook has already been acknowledged, so anything still queued is lost on restart.
"""
import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class QueueItem:
    message: Dict[str, Any]  # Raw message object from the webhook payload
    sender: str  # Sender phone number
    sender_name: str  # Sender profile name
    enqueued_at_ms: int = field(default_factory=_now_ms)


class MessageQueue:
    """
    FIFO with a single worker.

    States: idle (no drain task) -> draining -> idle. `enqueue` never blocks;
    it starts the drain task only when none is running, otherwise the running
    loop picks the item up before it stops. A failing item is logged and the
    loop moves on to the next one.
    """

    def __init__(self, handler: Callable[[QueueItem], Awaitable[None]]):
        self._handler = handler
        self._items: Deque[QueueItem] = deque()
        self._draining = False
        self._task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._items)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def enqueue(self, item: QueueItem) -> None:
        """Append to the tail and make sure the drain task is running. Must be called from the event loop."""
        self._items.append(item)
        logger.info(
            "[queue] enqueued | sender=%s | type=%s | queued=%d",
            item.sender,
            item.message.get("type"),
            len(self._items),
        )
        if not self._draining:
            self._draining = True
            self._task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        try:
            # The length check runs after every item, so anything enqueued meanwhile is handled here
            while self._items:
                item = self._items.popleft()
                try:
                    await self._handler(item)
                except Exception:
                    logger.exception(
                        "[queue] error processing message from %s (%s)", item.sender_name, item.sender
                    )
        finally:
            self._draining = False

    async def join(self) -> None:
        """Wait until the queue is empty and no item is in flight."""
        while self._draining and self._task is not None:
            await asyncio.shield(self._task)
