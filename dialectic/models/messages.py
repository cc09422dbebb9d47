"""Bus message data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

BROADCAST = "broadcast"


class MessageType(str, Enum):
    """Closed set of message types exchanged on the bus."""

    TASK_ASSIGNMENT = "task_assignment"
    TASK_RESULT = "task_result"
    INSIGHT_SHARE = "insight_share"
    COACHING_FEEDBACK = "coaching_feedback"
    LEARNING_UPDATE = "learning_update"
    DATA_REQUEST = "data_request"
    STATE_SYNC = "state_sync"
    USER_FEEDBACK = "user_feedback"
    DEBATE_START = "debate_start"
    DEBATE_THESIS = "debate_thesis"
    DEBATE_ANTITHESIS = "debate_antithesis"
    DEBATE_SYNTHESIS = "debate_synthesis"
    DEBATE_COMPLETE = "debate_complete"
    GOVERNANCE_REVIEW_REQUEST = "governance_review_request"
    GOVERNANCE_REVIEW_RESULT = "governance_review_result"


class MessagePriority(str, Enum):
    """Delivery priority carried with every message."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class BusMessage:
    """A message routed through the EventBus."""

    id: str
    source: str  # agent id of the sender
    target: str  # agent id or BROADCAST
    type: MessageType
    payload: Any
    priority: MessagePriority
    timestamp: datetime
    correlation_id: str | None = None

    @property
    def is_broadcast(self) -> bool:
        return self.target == BROADCAST
