"""
Live Preview Kernel: Lifecycle Messages

The sandbox talks to its host with exactly two message types:

  {type: "Ready", componentName, timestamp}
  {type: "Error", error: {message, stack?, componentStack?, filename?, lineno?, colno?}}

parse_message() validates untrusted input from the sandbox (or a relay)
into a LifecycleMessage, or returns None. MessageBus delivers messages to
subscribers of one session id only; there is no broadcast.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from engine.kernel.types import ErrorPayload, LifecycleMessage

logger = logging.getLogger(__name__)

MAX_FIELD_LENGTH = 20_000

Subscriber = Callable[[LifecycleMessage], None]


def parse_message(raw: Any, session_id: str, version: int | None = None) -> LifecycleMessage | None:
    """
    Validate a raw message for `session_id`.

    A `sessionId` carried in the message must match. `version` from the
    message wins over the argument when present and an int.
    """
    if not isinstance(raw, dict):
        return None

    carried = raw.get("sessionId")
    if carried is not None and carried != session_id:
        return None

    msg_version = raw.get("version", version)
    if not isinstance(msg_version, int) or isinstance(msg_version, bool):
        msg_version = version

    kind = raw.get("type")
    if kind == "Ready":
        return LifecycleMessage(
            type="Ready",
            session_id=session_id,
            version=msg_version,
            component_name=_text(raw.get("componentName")),
            timestamp=_text(raw.get("timestamp")),
        )

    if kind == "Error":
        error = raw.get("error")
        if isinstance(error, str):
            error = {"message": error}
        if not isinstance(error, dict) or not _text(error.get("message")):
            return None
        return LifecycleMessage(
            type="Error",
            session_id=session_id,
            version=msg_version,
            error=ErrorPayload(
                message=_text(error.get("message")) or "",
                stack=_text(error.get("stack")),
                component_stack=_text(error.get("componentStack")),
                filename=_text(error.get("filename")),
                lineno=_int(error.get("lineno")),
                colno=_int(error.get("colno")),
            ),
        )

    return None


class MessageBus:
    """
    In-process fan-out of lifecycle messages, keyed by session id.

    Subscribers are plain callables invoked synchronously in publish order.
    A subscriber that raises is logged and skipped; the others still run.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, session_id: str, callback: Subscriber) -> Callable[[], None]:
        """Register callback for session_id. Returns an unsubscribe function."""
        self._subscribers[session_id].append(callback)

        def unsubscribe() -> None:
            subs = self._subscribers.get(session_id)
            if subs and callback in subs:
                subs.remove(callback)
                if not subs:
                    del self._subscribers[session_id]

        return unsubscribe

    def publish(self, message: LifecycleMessage) -> int:
        """Deliver to the message's session. Returns the number of subscribers reached."""
        delivered = 0
        for callback in list(self._subscribers.get(message.session_id, ())):
            try:
                callback(message)
                delivered += 1
            except Exception:
                logger.exception("bus: subscriber failed for session %s", message.session_id)
        return delivered

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)[:MAX_FIELD_LENGTH]


def _int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None
