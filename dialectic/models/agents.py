"""Agent-related data models."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .messages import MessagePriority


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (12.5 -> 13)."""
    return math.floor(value + 0.5)


class AgentStatus(str, Enum):
    """Lifecycle status of an agent runtime."""

    IDLE = "idle"
    PROCESSING = "processing"
    ERROR = "error"
    STOPPED = "stopped"


@dataclass
class Task:
    """A unit of work assigned to an agent."""

    id: str
    type: str
    domain: str  # bom, waste, inventory, stocktake, profit, margin, debate
    input: Any = None
    priority: MessagePriority = MessagePriority.MEDIUM
    deadline: datetime | None = None
    payload: dict[str, Any] | None = None


@dataclass
class TaskResult:
    """Outcome of Task processing, replied to the task sender."""

    task_id: str
    agent_id: str
    success: bool
    output: Any = None
    error: str | None = None
    processing_time: float = 0.0  # milliseconds


@dataclass
class AgentState:
    """Snapshot of an agent runtime returned by get_status()."""

    id: str
    status: AgentStatus
    last_activity: datetime
    processed_tasks: int = 0
    successful_tasks: int = 0
    total_processing_time: float = 0.0  # milliseconds
    current_task: Task | None = None
    capabilities: list[str] = field(default_factory=list)

    @property
    def success_rate(self) -> int:
        if self.processed_tasks == 0:
            return 100
        return round_half_up(self.successful_tasks / self.processed_tasks * 100)

    @property
    def avg_processing_time(self) -> int:
        if self.processed_tasks == 0:
            return 0
        return round_half_up(self.total_processing_time / self.processed_tasks)
