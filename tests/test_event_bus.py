"""Tests for EventBus."""

import pytest

from dialectic.event_bus import EventBus
from dialectic.models import BROADCAST, BusMessage, MessagePriority, MessageType


class TestEventBusSubscribe:
    """Tests for EventBus subscription."""

    def test_subscribe_agent_counts_one_subscription(self, event_bus):
        """Test an agent subscription covers its channel and broadcasts once."""

        async def handler(msg: BusMessage):
            pass

        event_bus.subscribe_agent("agent-a", handler)
        assert event_bus.subscriber_count() == 1

    def test_unsubscribe_removes_listener(self, event_bus):
        """Test the returned callable removes the subscription."""

        async def handler(msg: BusMessage):
            pass

        unsubscribe = event_bus.subscribe_agent("agent-a", handler)
        unsubscribe()
        unsubscribe()  # idempotent
        assert event_bus.subscriber_count() == 0


class TestEventBusPublish:
    """Tests for EventBus publishing."""

    @pytest.mark.asyncio
    async def test_publish_to_agent(self, event_bus):
        """Test a targeted message reaches only that agent."""
        a_calls, b_calls = [], []

        async def handler_a(msg: BusMessage):
            a_calls.append(msg)

        async def handler_b(msg: BusMessage):
            b_calls.append(msg)

        event_bus.subscribe_agent("agent-a", handler_a)
        event_bus.subscribe_agent("agent-b", handler_b)

        msg = await event_bus.publish(
            "sender", "agent-a", MessageType.DATA_REQUEST, {"test": "data"}
        )

        assert len(a_calls) == 1
        assert b_calls == []
        assert a_calls[0].id == msg.id
        assert a_calls[0].payload == {"test": "data"}
        assert a_calls[0].priority == MessagePriority.MEDIUM

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_agent_once(self, event_bus):
        """Test broadcast delivery to all agent subscribers."""
        calls = []

        def handler(name):
            async def inner(msg: BusMessage):
                calls.append(name)

            return inner

        event_bus.subscribe_agent("agent-a", handler("a"))
        event_bus.subscribe_agent("agent-b", handler("b"))

        msg = await event_bus.publish(
            "sender", BROADCAST, MessageType.INSIGHT_SHARE, {"title": "x"}
        )

        assert calls == ["a", "b"]
        assert msg.is_broadcast

    @pytest.mark.asyncio
    async def test_listeners_invoked_in_registration_order(self, event_bus):
        """Test agent, type and monitor listeners run once each, in order."""
        calls = []

        async def agent_handler(msg):
            calls.append("agent")

        async def type_handler(msg):
            calls.append("type")

        async def monitor(msg):
            calls.append("monitor")

        event_bus.subscribe_agent("agent-a", agent_handler)
        event_bus.subscribe_type(MessageType.TASK_RESULT, type_handler)
        event_bus.subscribe_all(monitor)

        await event_bus.publish("x", "agent-a", MessageType.TASK_RESULT, None)

        assert calls == ["agent", "type", "monitor"]

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_delivery(self, event_bus):
        """Test a failing listener is logged and later listeners still run."""
        calls = []

        async def failing(msg):
            raise RuntimeError("boom")

        async def healthy(msg):
            calls.append(msg.id)

        event_bus.subscribe_agent("agent-a", failing)
        event_bus.subscribe_agent("agent-a", healthy)

        msg = await event_bus.publish("x", "agent-a", MessageType.STATE_SYNC, {})

        assert calls == [msg.id]

    @pytest.mark.asyncio
    async def test_listener_added_during_delivery_waits(self, event_bus):
        """Test subscriptions made mid-delivery only see later publishes."""
        late_calls = []

        async def late(msg):
            late_calls.append(msg.id)

        async def subscriber(msg):
            event_bus.subscribe_agent("agent-a", late)

        event_bus.subscribe_agent("agent-a", subscriber)

        await event_bus.publish("x", "agent-a", MessageType.STATE_SYNC, {})
        assert late_calls == []

        second = await event_bus.publish("x", "agent-a", MessageType.STATE_SYNC, {})
        assert late_calls == [second.id]


class TestEventBusHistory:
    """Tests for EventBus history queries."""

    @pytest.mark.asyncio
    async def test_history_is_bounded_and_newest_first(self):
        """Test history keeps only the most recent messages."""
        bus = EventBus(max_history=3)
        for i in range(5):
            await bus.publish("x", "y", MessageType.STATE_SYNC, {"n": i})

        history = bus.get_history()
        assert [m.payload["n"] for m in history] == [4, 3, 2]

    @pytest.mark.asyncio
    async def test_messages_by_type(self, event_bus):
        """Test filtering history by message type."""
        await event_bus.publish("x", "y", MessageType.STATE_SYNC, 1)
        await event_bus.publish("x", "y", MessageType.TASK_RESULT, 2)
        await event_bus.publish("x", "y", MessageType.STATE_SYNC, 3)

        messages = event_bus.get_messages_by_type(MessageType.STATE_SYNC)
        assert [m.payload for m in messages] == [3, 1]

    @pytest.mark.asyncio
    async def test_messages_for_agent(self, event_bus):
        """Test agent view includes sent, received and broadcast messages."""
        await event_bus.publish("agent-a", "other", MessageType.STATE_SYNC, "sent")
        await event_bus.publish("other", "agent-a", MessageType.STATE_SYNC, "received")
        await event_bus.publish("other", BROADCAST, MessageType.STATE_SYNC, "broadcast")
        await event_bus.publish("other", "agent-b", MessageType.STATE_SYNC, "unrelated")

        payloads = [m.payload for m in event_bus.get_messages_for_agent("agent-a")]
        assert payloads == ["broadcast", "received", "sent"]


class TestMessageSender:
    """Tests for MessageSender helpers."""

    @pytest.mark.asyncio
    async def test_reply_targets_source_with_correlation(self, event_bus):
        """Test reply goes back to the original sender and keeps priority."""
        received = []

        async def handler(msg):
            received.append(msg)

        event_bus.subscribe_agent("requester", handler)

        original = await event_bus.publish(
            "requester", "worker", MessageType.TASK_ASSIGNMENT, {}, MessagePriority.HIGH
        )
        sender = event_bus.create_sender("worker")
        reply = await sender.reply(original, MessageType.TASK_RESULT, {"ok": True})

        assert received == [reply]
        assert reply.target == "requester"
        assert reply.source == "worker"
        assert reply.correlation_id == original.id
        assert reply.priority == MessagePriority.HIGH

    def test_clear_drops_subscriptions(self, event_bus):
        """Test clear removes history and listeners."""

        async def handler(msg):
            pass

        event_bus.subscribe_agent("a", handler)
        event_bus.subscribe_all(handler)
        event_bus.clear()

        assert event_bus.subscriber_count() == 0
        assert event_bus.get_history() == []
