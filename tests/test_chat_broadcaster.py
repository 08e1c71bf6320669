"""
Tests for the chat event broadcaster.

This module covers the join / chat message / typing / stop typing /
disconnect contracts, including broadcast scope and presence totals.
"""

from datetime import datetime

import pytest

from halotalk.constants import ANONYMOUS_USERNAME
from tests.mocks.websocket_mocks import sent_event_names, sent_events


def parse_timestamp(value: str) -> datetime:
    assert value.endswith("Z")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestJoin:
    """Tests for ChatBroadcaster.join()."""

    @pytest.mark.asyncio
    async def test_join_records_name(self, broadcaster, connect_client):
        """Test join records the display name in the registry."""
        connect_client("c1")

        await broadcaster.join("c1", "Alice")

        assert broadcaster.registry.lookup("c1") == "Alice"

    @pytest.mark.asyncio
    async def test_join_reaches_sender(self, broadcaster, connect_client):
        """Test the joining client receives its own announcement."""
        alice = connect_client("c1")

        await broadcaster.join("c1", "Alice")

        assert sent_events(alice) == [
            {
                "event": "user joined",
                "data": {"username": "Alice", "totalUsers": 1},
            }
        ]

    @pytest.mark.asyncio
    async def test_three_joins_report_growing_totals(
        self, broadcaster, connect_client
    ):
        """Test Alice, Bob and Carol joining report totals 1, 2 and 3."""
        alice = connect_client("alice")
        await broadcaster.join("alice", "Alice")
        bob = connect_client("bob")
        await broadcaster.join("bob", "Bob")
        carol = connect_client("carol")
        await broadcaster.join("carol", "Carol")

        assert [frame["data"] for frame in sent_events(alice)] == [
            {"username": "Alice", "totalUsers": 1},
            {"username": "Bob", "totalUsers": 2},
            {"username": "Carol", "totalUsers": 3},
        ]
        # Later connections only see joins that happened while connected
        assert [frame["data"] for frame in sent_events(bob)] == [
            {"username": "Bob", "totalUsers": 2},
            {"username": "Carol", "totalUsers": 3},
        ]
        assert [frame["data"] for frame in sent_events(carol)] == [
            {"username": "Carol", "totalUsers": 3},
        ]

    @pytest.mark.asyncio
    async def test_rejoin_overwrites_name(self, broadcaster, connect_client):
        """Test joining twice keeps one entry with the latest name."""
        ws = connect_client("c1")

        await broadcaster.join("c1", "A")
        await broadcaster.join("c1", "B")

        assert broadcaster.registry.snapshot() == {"c1": "B"}
        assert sent_events(ws)[-1]["data"] == {"username": "B", "totalUsers": 1}

    @pytest.mark.asyncio
    async def test_join_counts_only_joined_connections(
        self, broadcaster, connect_client
    ):
        """Test connections that never joined are not counted."""
        connect_client("lurker")
        alice = connect_client("alice")

        await broadcaster.join("alice", "Alice")

        assert sent_events(alice)[0]["data"]["totalUsers"] == 1

    @pytest.mark.asyncio
    async def test_join_from_closed_connection_ignored(self, broadcaster):
        """Test a join from an id that is not live does nothing."""
        await broadcaster.join("gone", "Ghost")

        assert broadcaster.registry.size() == 0


class TestChatMessage:
    """Tests for ChatBroadcaster.message()."""

    @pytest.mark.asyncio
    async def test_message_reaches_everyone(self, broadcaster, connect_client):
        """Test Alice's message reaches Alice, Bob and Carol."""
        sockets = {name: connect_client(name) for name in ("Alice", "Bob", "Carol")}
        for name in sockets:
            await broadcaster.join(name, name)

        before = datetime.now().astimezone()
        await broadcaster.message("Alice", "hi")
        after = datetime.now().astimezone()

        for ws in sockets.values():
            frame = sent_events(ws)[-1]
            assert frame["event"] == "chat message"
            assert frame["data"]["username"] == "Alice"
            assert frame["data"]["message"] == "hi"
            stamp = parse_timestamp(frame["data"]["timestamp"])
            # Millisecond precision, so allow truncation below `before`
            assert before.replace(microsecond=0) <= stamp <= after

    @pytest.mark.asyncio
    async def test_message_same_timestamp_for_all_recipients(
        self, broadcaster, connect_client
    ):
        """Test one broadcast carries a single server timestamp."""
        alice = connect_client("alice")
        bob = connect_client("bob")
        await broadcaster.join("alice", "Alice")

        await broadcaster.message("alice", "hi")

        assert (
            sent_events(alice)[-1]["data"]["timestamp"]
            == sent_events(bob)[-1]["data"]["timestamp"]
        )

    @pytest.mark.asyncio
    async def test_message_from_unjoined_connection_is_anonymous(
        self, broadcaster, connect_client
    ):
        """Test a message from a connection that never joined is not dropped."""
        stranger = connect_client("stranger")
        alice = connect_client("alice")
        await broadcaster.join("alice", "Alice")

        await broadcaster.message("stranger", "hello?")

        for ws in (stranger, alice):
            frame = sent_events(ws)[-1]
            assert frame["event"] == "chat message"
            assert frame["data"]["username"] == ANONYMOUS_USERNAME
            assert frame["data"]["message"] == "hello?"

    @pytest.mark.asyncio
    async def test_message_does_not_change_presence(
        self, broadcaster, connect_client
    ):
        """Test sending without joining never creates a registry entry."""
        connect_client("stranger")

        await broadcaster.message("stranger", "hello?")

        assert broadcaster.registry.size() == 0


class TestTyping:
    """Tests for ChatBroadcaster.typing() and stop_typing()."""

    @pytest.mark.asyncio
    async def test_typing_not_echoed_to_sender(self, broadcaster, connect_client):
        """Test typing reaches everyone except the sender."""
        alice = connect_client("alice")
        bob = connect_client("bob")
        carol = connect_client("carol")
        await broadcaster.join("alice", "Alice")
        alice.send_json.reset_mock()

        await broadcaster.typing("alice")

        alice.send_json.assert_not_called()
        for ws in (bob, carol):
            assert sent_events(ws)[-1] == {"event": "typing", "data": "Alice"}

    @pytest.mark.asyncio
    async def test_typing_from_unjoined_connection_forwards_none(
        self, broadcaster, connect_client
    ):
        """Test the missing name is forwarded as-is (null)."""
        connect_client("stranger")
        bob = connect_client("bob")

        await broadcaster.typing("stranger")

        assert sent_events(bob) == [{"event": "typing", "data": None}]

    @pytest.mark.asyncio
    async def test_stop_typing_not_echoed_to_sender(
        self, broadcaster, connect_client
    ):
        """Test stop typing reaches everyone except the sender, no payload."""
        alice = connect_client("alice")
        bob = connect_client("bob")

        await broadcaster.stop_typing("alice")

        alice.send_json.assert_not_called()
        assert sent_events(bob) == [{"event": "stop typing", "data": None}]


class TestDisconnect:
    """Tests for ChatBroadcaster.disconnect()."""

    @pytest.mark.asyncio
    async def test_disconnect_announces_departure(
        self, broadcaster, connect_client
    ):
        """Test a joined connection leaving is announced to the rest."""
        alice = connect_client("alice")
        bob = connect_client("bob")
        await broadcaster.join("alice", "Alice")
        await broadcaster.join("bob", "Bob")

        await broadcaster.disconnect("bob")

        assert sent_events(alice)[-1] == {
            "event": "user left",
            "data": {"username": "Bob", "totalUsers": 1},
        }
        # The leaving connection is already gone
        assert sent_event_names(bob) == ["user joined", "user joined"]

    @pytest.mark.asyncio
    async def test_join_then_disconnect_restores_size(
        self, broadcaster, connect_client
    ):
        """Test size after disconnect equals size before the join."""
        connect_client("alice")
        await broadcaster.join("alice", "Alice")
        before = broadcaster.registry.size()

        connect_client("bob")
        await broadcaster.join("bob", "Bob")
        await broadcaster.disconnect("bob")

        assert broadcaster.registry.size() == before

    @pytest.mark.asyncio
    async def test_double_disconnect_announces_once(
        self, broadcaster, connect_client
    ):
        """Test a repeated disconnect produces at most one "user left"."""
        alice = connect_client("alice")
        connect_client("bob")
        await broadcaster.join("alice", "Alice")
        await broadcaster.join("bob", "Bob")

        await broadcaster.disconnect("bob")
        await broadcaster.disconnect("bob")

        assert sent_event_names(alice).count("user left") == 1

    @pytest.mark.asyncio
    async def test_disconnect_without_join_is_silent(
        self, broadcaster, connect_client
    ):
        """Test Bob leaving without joining emits nothing, size unchanged."""
        alice = connect_client("alice")
        await broadcaster.join("alice", "Alice")
        connect_client("bob")
        alice.send_json.reset_mock()

        await broadcaster.disconnect("bob")

        alice.send_json.assert_not_called()
        assert broadcaster.registry.size() == 1

    @pytest.mark.asyncio
    async def test_events_after_disconnect_ignored(
        self, broadcaster, connect_client
    ):
        """Test a disconnected connection can no longer send events."""
        alice = connect_client("alice")
        connect_client("bob")
        await broadcaster.join("bob", "Bob")
        await broadcaster.disconnect("bob")
        alice.send_json.reset_mock()

        await broadcaster.message("bob", "still here?")
        await broadcaster.typing("bob")
        await broadcaster.join("bob", "Bob")

        alice.send_json.assert_not_called()
        assert broadcaster.registry.size() == 0


class TestDeliveryFailures:
    """Tests for per-recipient failure isolation in the broadcaster."""

    @pytest.mark.asyncio
    async def test_broken_recipient_does_not_block_others(
        self, broadcaster, connect_client
    ):
        """Test one unhealthy client does not stop delivery or later events."""
        connect_client("broken", send_error=RuntimeError("closed"))
        alice = connect_client("alice")

        await broadcaster.join("alice", "Alice")
        await broadcaster.message("alice", "hi")

        assert sent_event_names(alice) == ["user joined", "chat message"]

    @pytest.mark.asyncio
    async def test_failed_recipient_can_still_send(
        self, broadcaster, connect_client
    ):
        """Test a client whose delivery failed once is still heard."""
        flaky = connect_client("flaky", send_error=RuntimeError("closed"))
        await broadcaster.join("flaky", "Flaky")
        alice = connect_client("alice")
        await broadcaster.join("alice", "Alice")
        flaky.send_json.side_effect = None

        await broadcaster.message("flaky", "am I heard?")

        assert broadcaster.is_live("flaky")
        assert broadcaster.registry.size() == 2
        assert sent_events(alice)[-1]["event"] == "chat message"
        assert sent_events(alice)[-1]["data"]["username"] == "Flaky"
        assert sent_events(alice)[-1]["data"]["message"] == "am I heard?"

    @pytest.mark.asyncio
    async def test_failed_recipient_leaves_once(
        self, broadcaster, connect_client
    ):
        """Test a client dropped from fan-out still gets one "user left"."""
        connect_client("flaky", send_error=RuntimeError("closed"))
        await broadcaster.join("flaky", "Flaky")
        alice = connect_client("alice")
        await broadcaster.join("alice", "Alice")

        await broadcaster.disconnect("flaky")
        await broadcaster.disconnect("flaky")

        assert not broadcaster.is_live("flaky")
        assert sent_events(alice)[-1] == {
            "event": "user left",
            "data": {"username": "Flaky", "totalUsers": 1},
        }
        assert sent_event_names(alice).count("user left") == 1
