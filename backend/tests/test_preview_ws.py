"""
Integration tests for the preview lifecycle relay.

Tests /ws/preview/{session_id}: validation, per-session fan-out, versioning.
"""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from backend.main import app


@pytest.fixture
def client():
    """TestClient with one shared event loop for all connections."""
    with TestClient(app) as c:
        yield c


def _ready(name: str, **extra) -> str:
    return json.dumps({"type": "Ready", "componentName": name, "timestamp": "2026-01-01T00:00:00.000Z", **extra})


class TestRelayConnect:
    def test_accepts_connection(self, client):
        with client.websocket_connect("/ws/preview/s-connect"):
            pass


class TestRelayFanOut:
    def test_ready_reaches_other_connection(self, client):
        """A Ready sent by one tab reaches every connection of the session."""
        with client.websocket_connect("/ws/preview/s-fan") as viewer:
            with client.websocket_connect("/ws/preview/s-fan") as host:
                host.send_text(_ready("Counter", version=2))
                msg = json.loads(viewer.receive_text())

        assert msg == {
            "type": "Ready",
            "sessionId": "s-fan",
            "version": 2,
            "componentName": "Counter",
            "timestamp": "2026-01-01T00:00:00.000Z",
        }

    def test_sender_receives_own_message(self, client):
        with client.websocket_connect("/ws/preview/s-self") as ws:
            ws.send_text(_ready("Self"))
            msg = json.loads(ws.receive_text())
        assert msg["componentName"] == "Self"

    def test_no_cross_session_delivery(self, client):
        """Messages for session B never reach a session A subscriber."""
        with client.websocket_connect("/ws/preview/s-a") as a:
            with client.websocket_connect("/ws/preview/s-b") as b:
                b.send_text(_ready("FromB"))
                assert json.loads(b.receive_text())["componentName"] == "FromB"
                a.send_text(_ready("FromA"))
                assert json.loads(a.receive_text())["componentName"] == "FromA"

    def test_error_message_relayed(self, client):
        with client.websocket_connect("/ws/preview/s-err") as ws:
            ws.send_text(
                json.dumps(
                    {
                        "type": "Error",
                        "version": 1,
                        "error": {"message": "boom is not defined", "lineno": 3, "colno": 7},
                    }
                )
            )
            msg = json.loads(ws.receive_text())
        assert msg["type"] == "Error"
        assert msg["sessionId"] == "s-err"
        assert msg["error"]["message"] == "boom is not defined"
        assert msg["error"]["lineno"] == 3


class TestRelayValidation:
    def test_malformed_json_skipped(self, client):
        """Bad JSON is logged and ignored; the connection stays usable."""
        with client.websocket_connect("/ws/preview/s-bad") as ws:
            ws.send_text("{not json")
            ws.send_text(_ready("After"))
            msg = json.loads(ws.receive_text())
        assert msg["componentName"] == "After"

    def test_unknown_type_dropped(self, client):
        with client.websocket_connect("/ws/preview/s-type") as ws:
            ws.send_text(json.dumps({"type": "Rendered"}))
            ws.send_text(_ready("Valid"))
            msg = json.loads(ws.receive_text())
        assert msg["componentName"] == "Valid"

    def test_foreign_session_id_dropped(self, client):
        """A message claiming another session is not published."""
        with client.websocket_connect("/ws/preview/s-mine") as ws:
            ws.send_text(_ready("Spoofed", sessionId="s-other"))
            ws.send_text(_ready("Mine"))
            msg = json.loads(ws.receive_text())
        assert msg["componentName"] == "Mine"

    def test_version_defaults_to_stored(self, client):
        """Without a version the relay stamps the session's stored version."""
        code = "export default function Card() { return <div>card</div>; }"
        res = client.post("/api/live-preview", json={"code": code, "sessionId": "s-stamp", "version": 4})
        assert res.status_code == 200

        with client.websocket_connect("/ws/preview/s-stamp") as ws:
            ws.send_text(_ready("Card"))
            msg = json.loads(ws.receive_text())
        assert msg["version"] == 4
