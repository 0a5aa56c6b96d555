"""
Host-side preview controller.

Owns the lifecycle of one preview session:

  idle ─[edit, debounce elapsed]→ requesting ─[200]→ rendering ─[Ready]→ ready
                                  requesting ─[400 / transport]→ errored
                                  rendering  ─[Error / timeout]→ errored
  any ─[refresh]→ requesting (immediate)

Every request gets the next version number. A response or message for
any version but the newest is dropped, so out-of-order completions never
apply a stale document. An Error moves the session to errored at most
once per (session id, version).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from engine.kernel.messages import MessageBus
from engine.kernel.stubs import symbol_from_error
from engine.kernel.types import ErrorKind, LifecycleMessage
from preview_cli.client import TransportError
from preview_cli.surface import PreviewSurface

logger = logging.getLogger(__name__)


class PreviewState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    RENDERING = "rendering"
    READY = "ready"
    ERRORED = "errored"


class PreviewBackend(Protocol):
    async def request_preview(
        self,
        code: str,
        *,
        session_id: str,
        version: int,
        options: dict[str, Any] | None = None,
        collaboration: bool = False,
    ) -> dict[str, Any]: ...


@dataclass(frozen=True)
class PreviewFailure:
    kind: ErrorKind
    message: str
    version: int
    suggestions: tuple[str, ...] = ()


class PreviewController:
    """
    Debounces edits into backend requests and tracks the sandbox lifecycle.

    Args:
        backend: Anything with request_preview(), normally PreviewClient
        session_id: The session this controller owns
        bus: Lifecycle messages arrive here; only session_id is subscribed
        surface: Receives each accepted document
        debounce_ms: Quiet period after the last edit before a request
        max_render_time_ms: Rendering without Ready or Error for this long is errored
        options: Sent with every request (overlay switches)
        on_change: Called with the controller after every state change
        auto_stub: Re-request once with a placeholder when the sandbox
                   reports "X is not defined" for a new X
    """

    def __init__(
        self,
        backend: PreviewBackend,
        session_id: str,
        *,
        bus: MessageBus | None = None,
        surface: PreviewSurface | None = None,
        debounce_ms: int = 1000,
        max_render_time_ms: int = 5000,
        options: dict[str, Any] | None = None,
        on_change: Callable[[PreviewController], None] | None = None,
        auto_stub: bool = True,
    ):
        self.backend = backend
        self.session_id = session_id
        self.surface = surface
        self.debounce_ms = debounce_ms
        self.max_render_time_ms = max_render_time_ms
        self.options = dict(options or {})
        self.on_change = on_change
        self.auto_stub = auto_stub

        self.state = PreviewState.IDLE
        self.version = 0
        self.code: str | None = None
        self.document: str | None = None
        self.metadata: dict[str, Any] = {}
        self.failure: PreviewFailure | None = None
        self.seeded_stubs: list[str] = []
        self.is_fullscreen = False
        self.closed = False

        self._errored_tokens: set[tuple[str, int]] = set()
        self._debounce_task: asyncio.Task | None = None
        self._render_timer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._unsubscribe: Callable[[], None] | None = None
        if bus is not None:
            self._unsubscribe = bus.subscribe(session_id, self.handle_message)

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def edit(self, code: str) -> None:
        """Record new source. The request goes out once edits pause for debounce_ms."""
        if self.closed:
            return
        self.code = code
        _cancel(self._debounce_task)
        self._debounce_task = asyncio.create_task(self._debounced())

    async def refresh(self) -> None:
        """Request now, skipping the debounce window."""
        if self.closed or self.code is None:
            return
        _cancel(self._debounce_task)
        self._debounce_task = None
        await self._request()

    def fullscreen(self) -> None:
        if self.closed:
            return
        self.is_fullscreen = True
        if self.surface is not None:
            self.surface.fullscreen(self.session_id)

    def close(self) -> None:
        """Stop all pending work. Nothing arriving afterwards is applied."""
        if self.closed:
            return
        self.closed = True
        _cancel(self._debounce_task)
        _cancel(self._render_timer)
        for task in list(self._inflight):
            _cancel(task)
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.surface is not None:
            self.surface.close()

    async def wait_idle(self) -> None:
        """Wait for the pending debounce and any follow-up request to finish."""
        while True:
            pending = [t for t in (self._debounce_task, *self._inflight) if t is not None and not t.done()]
            if not pending:
                return
            for task in pending:
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    async def wait_settled(self, poll_seconds: float = 0.05) -> PreviewState:
        """
        Wait for the sandbox's verdict on the current version.

        Settled is READY or ERRORED with nothing pending. An errored render
        that triggered an auto-stub retry is not settled until the retry
        renders and reports.
        """
        while not self.closed:
            await self.wait_idle()
            if self.state in (PreviewState.READY, PreviewState.ERRORED) and not self._inflight:
                return self.state
            await asyncio.sleep(poll_seconds)
        return self.state

    # ------------------------------------------------------------------
    # Lifecycle messages
    # ------------------------------------------------------------------

    def handle_message(self, message: LifecycleMessage) -> None:
        """Apply a Ready or Error from the sandbox this controller owns."""
        if self.closed or message.session_id != self.session_id:
            return
        if message.version is not None and message.version != self.version:
            logger.debug(
                "controller: dropping %s for stale v%s (current v%d)",
                message.type,
                message.version,
                self.version,
            )
            return

        if message.type == "Ready":
            if self.state == PreviewState.RENDERING:
                _cancel(self._render_timer)
                self._render_timer = None
                self._set_state(PreviewState.READY)
            return

        if self.state == PreviewState.IDLE:
            return
        error_text = message.error.message if message.error else "Unknown error"
        self._fail(ErrorKind.RUNTIME, error_text, self.version)
        self._maybe_stub(error_text)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _debounced(self) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        self._spawn_request()

    def _spawn_request(self) -> None:
        task = asyncio.create_task(self._request())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _request(self) -> None:
        if self.code is None:
            return
        self.version += 1
        token = self.version
        code = self.code
        _cancel(self._render_timer)
        self._render_timer = None
        self.failure = None
        self._set_state(PreviewState.REQUESTING)

        options = dict(self.options)
        if self.seeded_stubs:
            options["stubs"] = list(self.seeded_stubs)

        try:
            body = await self.backend.request_preview(
                code,
                session_id=self.session_id,
                version=token,
                options=options,
            )
        except TransportError as e:
            if self._is_current(token):
                self._fail(ErrorKind.TRANSPORT, str(e), token)
            return

        if not self._is_current(token):
            logger.debug("controller: discarding response for v%d (current v%d)", token, self.version)
            return
        if (self.session_id, token) in self._errored_tokens:
            return

        if not body.get("success"):
            kind = _error_kind(body.get("errorKind"))
            self._fail(kind, body.get("error") or "Preview failed", token, tuple(body.get("suggestions") or ()))
            return

        self.document = body.get("previewHTML")
        self.metadata = body.get("metadata") or {}
        self._adopt_limits(self.metadata.get("limits") or {})
        self._set_state(PreviewState.RENDERING)
        if self.surface is not None and self.document is not None:
            self.surface.show(self.session_id, token, self.document)
        self._render_timer = asyncio.create_task(self._render_deadline(token))

    async def _render_deadline(self, token: int) -> None:
        await asyncio.sleep(self.max_render_time_ms / 1000)
        if self._is_current(token) and self.state == PreviewState.RENDERING:
            self._render_timer = None
            self._fail(ErrorKind.RUNTIME, f"Render timed out after {self.max_render_time_ms}ms", token)

    def _is_current(self, token: int) -> bool:
        return not self.closed and token == self.version

    def _fail(self, kind: ErrorKind, message: str, token: int, suggestions: tuple[str, ...] = ()) -> None:
        key = (self.session_id, token)
        if key in self._errored_tokens:
            return
        self._errored_tokens.add(key)
        _cancel(self._render_timer)
        self._render_timer = None
        self.failure = PreviewFailure(kind=kind, message=message, version=token, suggestions=suggestions)
        logger.info("controller: v%d errored (%s): %s", token, kind.value, message[:200])
        self._set_state(PreviewState.ERRORED)

    def _maybe_stub(self, error_text: str) -> None:
        name = symbol_from_error(error_text)
        if not self.auto_stub or name is None or name in self.seeded_stubs:
            return
        self.seeded_stubs.append(name)
        logger.info("controller: stubbing %s and retrying", name)
        self._spawn_request()

    def _adopt_limits(self, limits: dict[str, Any]) -> None:
        render = limits.get("maxRenderTimeMs")
        if isinstance(render, int) and render > 0:
            self.max_render_time_ms = render
        debounce = limits.get("debounceMs")
        if isinstance(debounce, int) and debounce >= 0:
            self.debounce_ms = debounce

    def _set_state(self, state: PreviewState) -> None:
        self.state = state
        if self.on_change is not None:
            self.on_change(self)


def _cancel(task: asyncio.Task | None) -> None:
    if task is not None and not task.done():
        task.cancel()


def _error_kind(value: Any) -> ErrorKind:
    try:
        return ErrorKind(value)
    except ValueError:
        return ErrorKind.INPUT
