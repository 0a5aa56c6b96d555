"""
Tests for the host-side preview controller.

Drives PreviewController against an in-memory backend and a MessageBus:
debouncing, stale-response discard, the Ready/Error lifecycle and
render timeouts.
"""

from __future__ import annotations

import asyncio

import pytest

from engine.kernel.messages import MessageBus
from engine.kernel.types import ErrorKind, ErrorPayload, LifecycleMessage
from preview_cli.client import TransportError
from preview_cli.controller import PreviewController, PreviewState

pytestmark = pytest.mark.asyncio(loop_scope="session")

SESSION = "session_test"


class FakeBackend:
    """Records calls; answers like the real API."""

    def __init__(self):
        self.calls: list[dict] = []
        self.delays: dict[int, float] = {}
        self.fail_with: Exception | None = None

    async def request_preview(self, code, *, session_id, version, options=None, collaboration=False):
        self.calls.append({"code": code, "session_id": session_id, "version": version, "options": options})
        await asyncio.sleep(self.delays.get(version, 0))
        if self.fail_with is not None:
            raise self.fail_with
        if "eval(" in code:
            return {
                "success": False,
                "error": "Code contains potentially unsafe patterns",
                "errorKind": "SecurityError",
                "suggestions": ["Remove eval("],
            }
        return {
            "success": True,
            "previewHTML": f"<html>{code}</html>",
            "metadata": {"sessionId": session_id, "version": version, "stubs": []},
        }


class RecordingSurface:
    def __init__(self):
        self.shown: list[tuple[str, int, str]] = []
        self.fullscreens = 0
        self.closed = False

    def show(self, session_id, version, html):
        self.shown.append((session_id, version, html))

    def fullscreen(self, session_id):
        self.fullscreens += 1

    def close(self):
        self.closed = True


def make_controller(backend=None, **kwargs):
    backend = backend or FakeBackend()
    bus = kwargs.pop("bus", None) or MessageBus()
    states: list[PreviewState] = []
    controller = PreviewController(
        backend,
        SESSION,
        bus=bus,
        surface=kwargs.pop("surface", None) or RecordingSurface(),
        debounce_ms=kwargs.pop("debounce_ms", 50),
        max_render_time_ms=kwargs.pop("max_render_time_ms", 2000),
        on_change=lambda c: states.append(c.state),
        **kwargs,
    )
    return controller, backend, bus, states


def ready(version: int, session_id: str = SESSION) -> LifecycleMessage:
    return LifecycleMessage(type="Ready", session_id=session_id, version=version, component_name="App")


def error(version: int, message: str = "boom") -> LifecycleMessage:
    return LifecycleMessage(type="Error", session_id=SESSION, version=version, error=ErrorPayload(message=message))


# ============================================================================
# Debounce
# ============================================================================


class TestDebounce:
    async def test_rapid_edits_produce_one_request(self):
        """N edits inside the window → exactly one request with the last source."""
        controller, backend, _, _ = make_controller(debounce_ms=50)
        for i in range(5):
            controller.edit(f"v{i}")
            await asyncio.sleep(0.01)
        await controller.wait_idle()

        assert len(backend.calls) == 1
        assert backend.calls[0]["code"] == "v4"
        controller.close()

    async def test_no_request_before_window_elapses(self):
        controller, backend, _, _ = make_controller(debounce_ms=200)
        controller.edit("a")
        await asyncio.sleep(0.05)
        assert backend.calls == []
        await controller.wait_idle()
        assert len(backend.calls) == 1
        controller.close()

    async def test_refresh_bypasses_debounce(self):
        """refresh() requests immediately and drops the pending debounce."""
        controller, backend, _, _ = make_controller(debounce_ms=100)
        controller.edit("a")
        await controller.refresh()
        assert len(backend.calls) == 1

        await asyncio.sleep(0.15)
        assert len(backend.calls) == 1
        controller.close()

    async def test_refresh_without_code_is_noop(self):
        controller, backend, _, _ = make_controller()
        await controller.refresh()
        assert backend.calls == []
        assert controller.state == PreviewState.IDLE


# ============================================================================
# Lifecycle
# ============================================================================


class TestLifecycle:
    async def test_ready_only_after_ready_message(self):
        """A 200 moves to rendering; only Ready reaches ready."""
        controller, _, bus, states = make_controller()
        controller.edit("a")
        await controller.refresh()
        assert controller.state == PreviewState.RENDERING

        bus.publish(ready(controller.version))
        assert controller.state == PreviewState.READY
        assert states == [PreviewState.REQUESTING, PreviewState.RENDERING, PreviewState.READY]
        controller.close()

    async def test_document_shown_on_surface(self):
        surface = RecordingSurface()
        controller, _, _, _ = make_controller(surface=surface)
        controller.edit("a")
        await controller.refresh()
        assert surface.shown == [(SESSION, 1, "<html>a</html>")]
        controller.close()

    async def test_error_message_errors_once_per_token(self):
        """Two Errors for the same version → one transition to errored."""
        controller, _, bus, states = make_controller(auto_stub=False)
        controller.edit("a")
        await controller.refresh()

        bus.publish(error(1, "first"))
        bus.publish(error(1, "second"))

        assert states.count(PreviewState.ERRORED) == 1
        assert controller.failure.kind == ErrorKind.RUNTIME
        assert controller.failure.message == "first"
        controller.close()

    async def test_error_after_ready_still_errors(self):
        controller, _, bus, _ = make_controller(auto_stub=False)
        controller.edit("a")
        await controller.refresh()
        bus.publish(ready(1))
        bus.publish(error(1))
        assert controller.state == PreviewState.ERRORED
        controller.close()

    async def test_error_while_idle_ignored(self):
        controller, _, _, states = make_controller()
        controller.handle_message(error(0))
        assert controller.state == PreviewState.IDLE
        assert states == []

    async def test_messages_for_stale_version_ignored(self):
        controller, _, bus, _ = make_controller()
        controller.edit("a")
        await controller.refresh()
        await controller.refresh()
        assert controller.version == 2

        bus.publish(ready(1))
        assert controller.state == PreviewState.RENDERING
        bus.publish(ready(2))
        assert controller.state == PreviewState.READY
        controller.close()

    async def test_other_session_not_delivered(self):
        """The controller subscribes to its own session only."""
        controller, _, bus, _ = make_controller()
        controller.edit("a")
        await controller.refresh()
        assert bus.publish(ready(1, session_id="someone_else")) == 0
        assert controller.state == PreviewState.RENDERING
        controller.close()

    async def test_render_timeout_errors(self):
        """Neither Ready nor Error within max_render_time_ms → errored."""
        controller, _, _, _ = make_controller(max_render_time_ms=30)
        controller.edit("a")
        await controller.refresh()
        await asyncio.sleep(0.1)

        assert controller.state == PreviewState.ERRORED
        assert "timed out" in controller.failure.message
        controller.close()

    async def test_ready_cancels_render_timeout(self):
        controller, _, bus, _ = make_controller(max_render_time_ms=30)
        controller.edit("a")
        await controller.refresh()
        bus.publish(ready(1))
        await asyncio.sleep(0.1)
        assert controller.state == PreviewState.READY
        controller.close()


# ============================================================================
# Backend verdicts
# ============================================================================


class TestBackendResponses:
    async def test_validation_failure_errors(self):
        controller, _, _, _ = make_controller()
        controller.edit("eval('1')")
        await controller.refresh()

        assert controller.state == PreviewState.ERRORED
        assert controller.failure.kind == ErrorKind.SECURITY
        assert controller.failure.suggestions == ("Remove eval(",)
        assert controller.document is None
        controller.close()

    async def test_transport_error_then_refresh_recovers(self):
        """TransportError → errored; refresh is the retry."""
        backend = FakeBackend()
        backend.fail_with = TransportError("connection refused")
        controller, _, _, _ = make_controller(backend)
        controller.edit("a")
        await controller.refresh()
        assert controller.state == PreviewState.ERRORED
        assert controller.failure.kind == ErrorKind.TRANSPORT

        backend.fail_with = None
        await controller.refresh()
        assert controller.state == PreviewState.RENDERING
        assert controller.failure is None
        controller.close()

    async def test_stale_response_discarded(self):
        """A slow v1 finishing after v2 never replaces v2's document."""
        backend = FakeBackend()
        backend.delays = {1: 0.1}
        controller, _, _, _ = make_controller(backend)

        controller.edit("old")
        slow = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0.01)
        controller.edit("new")
        await controller.refresh()
        await slow

        assert controller.version == 2
        assert controller.document == "<html>new</html>"
        assert controller.state == PreviewState.RENDERING
        controller.close()


# ============================================================================
# Controls
# ============================================================================


class TestControls:
    async def test_close_cancels_pending_debounce(self):
        controller, backend, _, _ = make_controller(debounce_ms=30)
        controller.edit("a")
        controller.close()
        await asyncio.sleep(0.08)
        assert backend.calls == []

    async def test_close_drops_in_flight_response(self):
        backend = FakeBackend()
        backend.delays = {1: 0.05}
        controller, _, _, _ = make_controller(backend)
        controller.edit("a")
        pending = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0.01)
        controller.close()
        await pending

        assert controller.document is None
        assert controller.state == PreviewState.REQUESTING

    async def test_close_unsubscribes(self):
        controller, _, bus, _ = make_controller()
        assert bus.subscriber_count(SESSION) == 1
        controller.close()
        assert bus.subscriber_count(SESSION) == 0

    async def test_fullscreen(self):
        surface = RecordingSurface()
        controller, _, _, _ = make_controller(surface=surface)
        controller.fullscreen()
        assert controller.is_fullscreen
        assert surface.fullscreens == 1
        controller.close()
        assert surface.closed


# ============================================================================
# Unresolved symbols
# ============================================================================


class TestAutoStub:
    async def test_not_defined_error_seeds_stub_and_retries(self):
        """`X is not defined` → one follow-up request seeding X."""
        controller, backend, bus, _ = make_controller()
        controller.edit("a")
        await controller.refresh()

        bus.publish(error(1, "ReferenceError: Header is not defined"))
        await controller.wait_idle()

        assert controller.seeded_stubs == ["Header"]
        assert len(backend.calls) == 2
        assert backend.calls[1]["options"]["stubs"] == ["Header"]
        assert controller.version == 2
        assert controller.state == PreviewState.RENDERING

        bus.publish(error(2, "ReferenceError: Header is not defined"))
        await controller.wait_idle()
        assert len(backend.calls) == 2
        controller.close()

    async def test_wait_settled_waits_out_stub_retry(self):
        """Errored with a retry in flight is not settled; the retry's verdict is."""
        controller, backend, bus, _ = make_controller()
        controller.edit("a")
        await controller.refresh()
        bus.publish(error(1, "ReferenceError: Header is not defined"))
        assert controller.state == PreviewState.ERRORED

        settled = asyncio.create_task(controller.wait_settled(poll_seconds=0.01))
        await asyncio.sleep(0.05)
        assert not settled.done()
        assert controller.state == PreviewState.RENDERING

        bus.publish(ready(2))
        assert await settled == PreviewState.READY
        assert len(backend.calls) == 2
        controller.close()

    async def test_wait_settled_returns_plain_error(self):
        controller, _, bus, _ = make_controller()
        controller.edit("a")
        await controller.refresh()
        bus.publish(error(1, "Cannot read properties of null"))
        assert await controller.wait_settled(poll_seconds=0.01) == PreviewState.ERRORED
        controller.close()

    async def test_auto_stub_disabled(self):
        controller, backend, bus, _ = make_controller(auto_stub=False)
        controller.edit("a")
        await controller.refresh()
        bus.publish(error(1, "Footer is not defined"))
        await controller.wait_idle()
        assert controller.seeded_stubs == []
        assert len(backend.calls) == 1
        controller.close()
