"""
WebSocket endpoint for the preview lifecycle relay.

Accepts connections at /ws/preview/{session_id}. Host pages forward the
sandbox's Ready/Error messages here; every connection of the same session
(other tabs, the CLI controller) receives them.
"""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from backend.services.preview_store import preview_store
from backend.services.relay import lifecycle_bus, subscribe_queue
from engine.kernel.messages import parse_message
from engine.kernel.types import LifecycleMessage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


async def _forward(websocket: WebSocket, queue: asyncio.Queue[LifecycleMessage]) -> None:
    """Send queued lifecycle messages to the client until cancelled."""
    while True:
        message = await queue.get()
        await websocket.send_text(json.dumps(message.to_dict()))


def _stored_version(session_id: str) -> int | None:
    entry = preview_store.latest(session_id)
    return entry.version if entry else None


@router.websocket("/ws/preview/{session_id}")
async def preview_websocket(websocket: WebSocket, session_id: str) -> None:
    """
    Relay lifecycle messages for one preview session.

    Protocol:
      Client → Server:  {"type": "Ready", "componentName": "...", "timestamp": "...", "version"?: n}
                        {"type": "Error", "error": {"message": "...", ...}, "version"?: n}
      Server → Client:  the same messages, validated, with sessionId and version

    Messages naming a different sessionId, and anything that is not a
    Ready or Error, are dropped.
    """
    await websocket.accept()
    logger.info("ws: preview relay accepted: session_id=%s", session_id)

    queue, unsubscribe = subscribe_queue(session_id, lifecycle_bus)
    sender = asyncio.create_task(_forward(websocket, queue))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("ws: malformed message from client: %r", raw[:200])
                continue

            message = parse_message(msg, session_id, _stored_version(session_id))
            if message is None:
                logger.warning("ws: dropped invalid lifecycle message for session_id=%s", session_id)
                continue

            delivered = lifecycle_bus.publish(message)
            if message.type == "Error" and message.error is not None:
                logger.info(
                    "ws: Error v%s session_id=%s: %s",
                    message.version,
                    session_id,
                    message.error.message[:200],
                )
            logger.debug("ws: %s delivered to %d subscribers", message.type, delivered)

    except WebSocketDisconnect:
        logger.info("ws: preview relay disconnected: session_id=%s", session_id)
    finally:
        unsubscribe()
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, RuntimeError, WebSocketDisconnect):
            pass
