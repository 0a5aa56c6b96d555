"""
Lifecycle relay — fans sandbox Ready/Error messages out to every
connection of the same session.

The bus itself is synchronous (engine.kernel.messages.MessageBus). Each
WebSocket connection bridges it to asyncio with its own queue.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from engine.kernel.messages import MessageBus
from engine.kernel.types import LifecycleMessage

# Per-connection backlog. A connection that falls this far behind drops
# the oldest messages rather than growing without bound.
QUEUE_SIZE = 100

# Global bus instance
lifecycle_bus = MessageBus()


def subscribe_queue(
    session_id: str,
    bus: MessageBus | None = None,
) -> tuple[asyncio.Queue[LifecycleMessage], Callable[[], None]]:
    """
    Subscribe a bounded asyncio queue to one session.

    Returns:
        (queue, unsubscribe)
    """
    bus = bus or lifecycle_bus
    queue: asyncio.Queue[LifecycleMessage] = asyncio.Queue(maxsize=QUEUE_SIZE)

    def _enqueue(message: LifecycleMessage) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(message)

    return queue, bus.subscribe(session_id, _enqueue)
