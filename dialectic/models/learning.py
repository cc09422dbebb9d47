"""Learning and coaching data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal


class FeedbackType(str, Enum):
    """Human reaction to an insight."""

    HELPFUL = "helpful"
    DISMISSED = "dismissed"
    CORRECTED = "corrected"


class CoachingMetric(str, Enum):
    """Metric a coaching suggestion targets."""

    ACCURACY = "accuracy"
    LATENCY = "latency"
    USER_ACCEPTANCE = "user_acceptance"


@dataclass
class LearningOutput:
    """What the agent produced."""

    type: Literal["reasoning", "prediction", "recommendation"]
    content: Any


@dataclass
class Feedback:
    type: FeedbackType
    timestamp: datetime
    correction: Any = None


@dataclass
class CoachingEntry:
    applied_at: datetime
    adjustments: list[str] = field(default_factory=list)


@dataclass
class LearningRecord:
    """Correlates one agent output with later human feedback."""

    id: str
    agent_id: str
    insight_id: str
    output: LearningOutput
    timestamp: datetime
    feedback: Feedback | None = None
    coaching: CoachingEntry | None = None


@dataclass
class AgentPerformance:
    """Feedback-derived performance of one agent."""

    agent_id: str
    total_insights: int
    helpful_count: int
    dismissed_count: int
    corrected_count: int
    accuracy_score: int
    acceptance_rate: int
    last_updated: datetime


@dataclass
class CoachingExample:
    input: Any
    expected_output: Any
    actual_output: Any


@dataclass
class CoachingFeedback:
    """Improvement suggestion sent to an under-performing agent."""

    metric: CoachingMetric
    score: int
    benchmark: int
    suggestion: str
    examples: list[CoachingExample] = field(default_factory=list)
