"""
Live Preview Lifecycle Messages — Tests

Two message types, validated from untrusted input, delivered per session.
"""

from engine.kernel.messages import MessageBus, parse_message
from engine.kernel.types import LifecycleMessage


class TestParseMessage:
    def test_ready(self):
        msg = parse_message({"type": "Ready", "componentName": "Counter", "timestamp": "t"}, "s1", 2)
        assert msg.type == "Ready"
        assert msg.session_id == "s1"
        assert msg.version == 2
        assert msg.component_name == "Counter"

    def test_error_with_details(self):
        raw = {
            "type": "Error",
            "error": {"message": "boom", "stack": "at X", "componentStack": "in Y", "lineno": 3, "colno": 7},
        }
        msg = parse_message(raw, "s1")
        assert msg.type == "Error"
        assert msg.error.message == "boom"
        assert msg.error.component_stack == "in Y"
        assert msg.error.lineno == 3
        assert msg.to_dict()["error"] == {
            "message": "boom",
            "stack": "at X",
            "componentStack": "in Y",
            "lineno": 3,
            "colno": 7,
        }

    def test_error_as_string(self):
        assert parse_message({"type": "Error", "error": "boom"}, "s1").error.message == "boom"

    def test_error_without_message_rejected(self):
        assert parse_message({"type": "Error", "error": {}}, "s1") is None

    def test_unknown_type_rejected(self):
        assert parse_message({"type": "Loaded"}, "s1") is None

    def test_non_dict_rejected(self):
        assert parse_message("Ready", "s1") is None
        assert parse_message(None, "s1") is None

    def test_foreign_session_rejected(self):
        assert parse_message({"type": "Ready", "sessionId": "other"}, "s1") is None

    def test_message_version_wins(self):
        assert parse_message({"type": "Ready", "version": 5}, "s1", 2).version == 5

    def test_bad_version_falls_back(self):
        assert parse_message({"type": "Ready", "version": "5"}, "s1", 2).version == 2
        assert parse_message({"type": "Ready", "version": True}, "s1", 2).version == 2

    def test_non_int_line_numbers_dropped(self):
        msg = parse_message({"type": "Error", "error": {"message": "x", "lineno": "3"}}, "s1")
        assert msg.error.lineno is None


class TestMessageBus:
    def test_delivers_to_own_session_only(self):
        bus = MessageBus()
        mine, theirs = [], []
        bus.subscribe("s1", mine.append)
        bus.subscribe("s2", theirs.append)

        delivered = bus.publish(LifecycleMessage(type="Ready", session_id="s1"))

        assert delivered == 1
        assert len(mine) == 1
        assert theirs == []

    def test_unsubscribe(self):
        bus = MessageBus()
        received = []
        unsubscribe = bus.subscribe("s1", received.append)
        unsubscribe()
        unsubscribe()

        assert bus.publish(LifecycleMessage(type="Ready", session_id="s1")) == 0
        assert received == []
        assert bus.subscriber_count("s1") == 0

    def test_failing_subscriber_does_not_block_others(self):
        bus = MessageBus()
        received = []

        def broken(msg):
            raise RuntimeError("subscriber bug")

        bus.subscribe("s1", broken)
        bus.subscribe("s1", received.append)

        assert bus.publish(LifecycleMessage(type="Ready", session_id="s1")) == 1
        assert len(received) == 1
