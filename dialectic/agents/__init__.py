"""Agents module."""

from .chief import ChiefOrchestrator
from .governance import ComplianceAuditor, ComplianceRule, QASpecialist, default_rules
from .inventory import INVENTORY_AGENT_ID, InventoryAgent
from .personas import CHIEF_ORCHESTRATOR_ID, Team, TrioPersona, create_team
from .runtime import AgentContext, AgentRuntime, IAgent, MessageHandler

__all__ = [
    "AgentContext",
    "AgentRuntime",
    "CHIEF_ORCHESTRATOR_ID",
    "ChiefOrchestrator",
    "ComplianceAuditor",
    "ComplianceRule",
    "IAgent",
    "INVENTORY_AGENT_ID",
    "InventoryAgent",
    "MessageHandler",
    "QASpecialist",
    "Team",
    "TrioPersona",
    "create_team",
    "default_rules",
]
