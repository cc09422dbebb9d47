"""EventBus implementation for pub/sub messaging between agents."""

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import BROADCAST, BusMessage, MessagePriority, MessageType

logger = get_logger(__name__)


TopicHandler = Callable[[BusMessage], Awaitable[None]]
Unsubscribe = Callable[[], None]


class _Subscription:
    """One registered listener; may be attached to several channels."""

    __slots__ = ("handler", "name")

    def __init__(self, handler: TopicHandler, name: str):
        self.handler = handler
        self.name = name


class IEventBus(Protocol):
    """In-process pub/sub for exchanging BusMessages."""

    def subscribe_agent(self, agent_id: str, handler: TopicHandler) -> Unsubscribe:
        """Receive messages targeted at agent_id plus broadcasts."""
        ...

    def subscribe_type(self, message_type: MessageType, handler: TopicHandler) -> Unsubscribe:
        """Receive every message of one type."""
        ...

    def subscribe_all(self, handler: TopicHandler) -> Unsubscribe:
        """Receive every message."""
        ...

    async def publish(
        self,
        source: str,
        target: str,
        message_type: MessageType,
        payload: Any,
        priority: MessagePriority = MessagePriority.MEDIUM,
        correlation_id: str | None = None,
    ) -> BusMessage:
        """Stamp id and timestamp, record history, deliver to listeners."""
        ...

    def create_sender(self, agent_id: str) -> "MessageSender":
        """Sending helper bound to one source agent."""
        ...


class EventBus:
    """In-memory pub/sub event bus with bounded history.

    Delivery for a single publish() is sequential: each matching listener
    is awaited once, in registration order, target channel first, then the
    broadcast channel, then the message-type channel, then monitors.
    """

    def __init__(self, max_history: int = 1000):
        self._max_history = max_history
        self._history: deque[BusMessage] = deque(maxlen=max_history)
        self._channels: dict[str, list[_Subscription]] = {}
        self._type_channels: dict[MessageType, list[_Subscription]] = {}
        self._monitors: list[_Subscription] = []

    # Subscriptions
    def subscribe_agent(self, agent_id: str, handler: TopicHandler) -> Unsubscribe:
        """Subscribe a handler to an agent channel and to broadcasts."""
        sub = _Subscription(handler, f"agent:{agent_id}")
        agent_list = self._channels.setdefault(agent_id, [])
        broadcast_list = self._channels.setdefault(BROADCAST, [])
        agent_list.append(sub)
        broadcast_list.append(sub)

        def unsubscribe() -> None:
            _discard(agent_list, sub)
            _discard(broadcast_list, sub)

        return unsubscribe

    def subscribe_type(self, message_type: MessageType, handler: TopicHandler) -> Unsubscribe:
        """Subscribe a handler to one message type."""
        sub = _Subscription(handler, f"type:{message_type.value}")
        type_list = self._type_channels.setdefault(message_type, [])
        type_list.append(sub)
        return lambda: _discard(type_list, sub)

    def subscribe_all(self, handler: TopicHandler) -> Unsubscribe:
        """Subscribe a monitoring handler to every message."""
        sub = _Subscription(handler, "monitor")
        self._monitors.append(sub)
        return lambda: _discard(self._monitors, sub)

    # Publishing
    async def publish(
        self,
        source: str,
        target: str,
        message_type: MessageType,
        payload: Any,
        priority: MessagePriority = MessagePriority.MEDIUM,
        correlation_id: str | None = None,
    ) -> BusMessage:
        """Publish a message and deliver it to every matching listener."""
        message = BusMessage(
            id=str(uuid.uuid4()),
            source=source,
            target=target,
            type=message_type,
            payload=payload,
            priority=priority,
            timestamp=datetime.now(timezone.utc),
            correlation_id=correlation_id,
        )
        self._history.append(message)

        # Snapshot: listeners added during delivery wait for the next publish
        for sub in self._matching(message):
            try:
                await sub.handler(message)
            except Exception as e:
                logger.error(
                    "Error in handler %s for %s message %s: %s",
                    sub.name,
                    message.type.value,
                    message.id,
                    e,
                    exc_info=True,
                )

        return message

    def _matching(self, message: BusMessage) -> list[_Subscription]:
        ordered: list[_Subscription] = []
        seen: set[int] = set()

        # A broadcast target resolves to the broadcast channel itself
        candidates = list(self._channels.get(message.target, []))
        candidates.extend(self._type_channels.get(message.type, []))
        candidates.extend(self._monitors)

        for sub in candidates:
            if id(sub) in seen:
                continue
            seen.add(id(sub))
            ordered.append(sub)
        return ordered

    def create_sender(self, agent_id: str) -> "MessageSender":
        """Create a sending helper for one source agent."""
        return MessageSender(self, agent_id)

    # Observability
    def get_history(self, limit: int = 100) -> list[BusMessage]:
        """Most recent messages, newest first."""
        return _newest_first(self._history, limit)

    def get_messages_by_type(self, message_type: MessageType, limit: int = 50) -> list[BusMessage]:
        """Most recent messages of one type, newest first."""
        return _newest_first(
            (m for m in self._history if m.type == message_type), limit
        )

    def get_messages_for_agent(self, agent_id: str, limit: int = 50) -> list[BusMessage]:
        """Messages sent by, addressed to, or broadcast past an agent."""
        return _newest_first(
            (
                m
                for m in self._history
                if m.source == agent_id or m.target == agent_id or m.is_broadcast
            ),
            limit,
        )

    def subscriber_count(self) -> int:
        """Number of distinct live subscriptions."""
        subs = {id(s) for lst in self._channels.values() for s in lst}
        subs.update(id(s) for lst in self._type_channels.values() for s in lst)
        subs.update(id(s) for s in self._monitors)
        return len(subs)

    def clear(self) -> None:
        """Drop history and every subscription."""
        self._history.clear()
        self._channels.clear()
        self._type_channels.clear()
        self._monitors.clear()


class MessageSender:
    """Publishes on behalf of one agent."""

    def __init__(self, bus: IEventBus, source: str):
        self._bus = bus
        self._source = source

    async def send(
        self,
        target: str,
        message_type: MessageType,
        payload: Any,
        priority: MessagePriority = MessagePriority.MEDIUM,
        correlation_id: str | None = None,
    ) -> BusMessage:
        return await self._bus.publish(
            self._source, target, message_type, payload, priority, correlation_id
        )

    async def broadcast(
        self,
        message_type: MessageType,
        payload: Any,
        priority: MessagePriority = MessagePriority.MEDIUM,
    ) -> BusMessage:
        return await self._bus.publish(
            self._source, BROADCAST, message_type, payload, priority
        )

    async def reply(
        self, original: BusMessage, message_type: MessageType, payload: Any
    ) -> BusMessage:
        """Answer the sender of original, keeping its priority."""
        return await self._bus.publish(
            self._source,
            original.source,
            message_type,
            payload,
            original.priority,
            original.id,
        )


def _discard(subs: list[_Subscription], sub: _Subscription) -> None:
    try:
        subs.remove(sub)
    except ValueError:
        pass


def _newest_first(messages, limit: int) -> list[BusMessage]:
    items = list(messages)
    if limit <= 0:
        return []
    return list(reversed(items[-limit:]))
