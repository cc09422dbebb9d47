"""EventBus module."""

from .event_bus import EventBus, IEventBus, MessageSender, TopicHandler, Unsubscribe

__all__ = ["EventBus", "IEventBus", "MessageSender", "TopicHandler", "Unsubscribe"]
