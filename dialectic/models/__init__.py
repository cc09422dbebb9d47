"""Core data models for the coordination core."""

from .agents import AgentState, AgentStatus, Task, TaskResult, round_half_up
from .debate import (
    NEXT_PHASE,
    TEAM_AGENT_PREFIX,
    TEAM_TO_DOMAIN,
    CatsCommand,
    DebateContent,
    DebateEvent,
    DebatePhase,
    DebateRecord,
    DebateRound,
    DebateStartRequest,
    DebateStatistics,
    DomainTeam,
    FinalDecision,
    GovernanceIssue,
    GovernanceReview,
    GovernanceRole,
    TrioRole,
)
from .domain import (
    BomDiffItem,
    BomWasteState,
    ChannelProfitData,
    InventorySafetyItem,
    InventoryState,
    OrderSuggestion,
    ProfitabilityState,
    ProfitRankItem,
    StocktakeAnomalyItem,
    WasteTrendData,
)
from .insights import Insight, InsightDomain, InsightLevel
from .learning import (
    AgentPerformance,
    CoachingEntry,
    CoachingExample,
    CoachingFeedback,
    CoachingMetric,
    Feedback,
    FeedbackType,
    LearningOutput,
    LearningRecord,
)
from .messages import BROADCAST, BusMessage, MessagePriority, MessageType

__all__ = [
    # Messages
    "BROADCAST",
    "BusMessage",
    "MessagePriority",
    "MessageType",
    # Agents
    "AgentState",
    "AgentStatus",
    "Task",
    "TaskResult",
    "round_half_up",
    # Insights
    "Insight",
    "InsightDomain",
    "InsightLevel",
    # Learning
    "AgentPerformance",
    "CoachingEntry",
    "CoachingExample",
    "CoachingFeedback",
    "CoachingMetric",
    "Feedback",
    "FeedbackType",
    "LearningOutput",
    "LearningRecord",
    # Debate
    "NEXT_PHASE",
    "TEAM_AGENT_PREFIX",
    "TEAM_TO_DOMAIN",
    "CatsCommand",
    "DebateContent",
    "DebateEvent",
    "DebatePhase",
    "DebateRecord",
    "DebateRound",
    "DebateStartRequest",
    "DebateStatistics",
    "DomainTeam",
    "FinalDecision",
    "GovernanceIssue",
    "GovernanceReview",
    "GovernanceRole",
    "TrioRole",
    # Domain state
    "BomDiffItem",
    "BomWasteState",
    "ChannelProfitData",
    "InventorySafetyItem",
    "InventoryState",
    "OrderSuggestion",
    "ProfitabilityState",
    "ProfitRankItem",
    "StocktakeAnomalyItem",
    "WasteTrendData",
]
