"""Dialectic: multi-agent coordination core."""

from .agents import (
    AgentContext,
    AgentRuntime,
    ChiefOrchestrator,
    ComplianceAuditor,
    IAgent,
    InventoryAgent,
    QASpecialist,
    TrioPersona,
    create_team,
)
from .app import Application, IApplication
from .config import Settings
from .debate import DebateOrchestrator, IDebateOrchestrator
from .event_bus import EventBus, IEventBus
from .learning import ILearningRegistry, LearningRegistry
from .llm import ContentGenerator, IContentGenerator, ILLMProvider, LLMProvider
from .models import (
    BusMessage,
    DebateRecord,
    DebateStartRequest,
    DomainTeam,
    Insight,
    MessagePriority,
    MessageType,
)
from .state import IStateStore, StateStore
from .storage import DebateLog, IDebateLog

__all__ = [
    # Application
    "Application",
    "IApplication",
    "Settings",
    # Models
    "BusMessage",
    "DebateRecord",
    "DebateStartRequest",
    "DomainTeam",
    "Insight",
    "MessagePriority",
    "MessageType",
    # Components
    "IEventBus",
    "EventBus",
    "IStateStore",
    "StateStore",
    "ILearningRegistry",
    "LearningRegistry",
    "IDebateLog",
    "DebateLog",
    "IDebateOrchestrator",
    "DebateOrchestrator",
    "ILLMProvider",
    "LLMProvider",
    "IContentGenerator",
    "ContentGenerator",
    # Agents
    "IAgent",
    "AgentContext",
    "AgentRuntime",
    "TrioPersona",
    "create_team",
    "QASpecialist",
    "ComplianceAuditor",
    "ChiefOrchestrator",
    "InventoryAgent",
]
