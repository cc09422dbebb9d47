"""Dialectical debate data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .insights import InsightDomain
from .messages import MessagePriority


class TrioRole(str, Enum):
    """Persona role within a domain team."""

    OPTIMIST = "optimist"
    PESSIMIST = "pessimist"
    MEDIATOR = "mediator"


class DebatePhase(str, Enum):
    """Phases of the thesis -> antithesis -> synthesis -> review protocol."""

    THESIS = "thesis"
    ANTITHESIS = "antithesis"
    SYNTHESIS = "synthesis"
    GOVERNANCE_REVIEW = "governance_review"
    COMPLETE = "complete"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (DebatePhase.COMPLETE, DebatePhase.CANCELLED)


# Round phase -> phase the debate moves to once that round is recorded
NEXT_PHASE: dict[DebatePhase, DebatePhase] = {
    DebatePhase.THESIS: DebatePhase.ANTITHESIS,
    DebatePhase.ANTITHESIS: DebatePhase.SYNTHESIS,
    DebatePhase.SYNTHESIS: DebatePhase.GOVERNANCE_REVIEW,
}


class DomainTeam(str, Enum):
    """Domain teams that run debates."""

    BOM_WASTE = "bom-waste-team"
    INVENTORY = "inventory-team"
    PROFITABILITY = "profitability-team"
    COST_MANAGEMENT = "cost-management-team"
    BUSINESS_STRATEGY = "business-strategy-team"


TEAM_TO_DOMAIN: dict[DomainTeam, InsightDomain] = {
    DomainTeam.BOM_WASTE: InsightDomain.BOM,
    DomainTeam.INVENTORY: InsightDomain.INVENTORY,
    DomainTeam.PROFITABILITY: InsightDomain.PROFITABILITY,
    DomainTeam.COST_MANAGEMENT: InsightDomain.GENERAL,
    DomainTeam.BUSINESS_STRATEGY: InsightDomain.GENERAL,
}

# Agent id prefix of each team's trio, e.g. "inventory-optimist"
TEAM_AGENT_PREFIX: dict[DomainTeam, str] = {
    DomainTeam.BOM_WASTE: "bom-waste",
    DomainTeam.INVENTORY: "inventory",
    DomainTeam.PROFITABILITY: "profitability",
    DomainTeam.COST_MANAGEMENT: "cost",
    DomainTeam.BUSINESS_STRATEGY: "business",
}


class GovernanceRole(str, Enum):
    QA_SPECIALIST = "qa-specialist"
    COMPLIANCE_AUDITOR = "compliance-auditor"


@dataclass
class CatsCommand:
    """Context / Agent role / Task / Success criteria frame for a persona prompt."""

    context: str
    agent_role: TrioRole
    task: str
    success_criteria: str


@dataclass
class DebateContent:
    """Structured position produced by a persona."""

    position: str
    reasoning: str
    evidence: list[Any] = field(default_factory=list)
    confidence: float = 50.0  # 0..100
    suggested_actions: list[str] = field(default_factory=list)


@dataclass
class DebateRound:
    id: str
    debate_id: str
    phase: DebatePhase
    role: TrioRole
    agent_id: str
    content: DebateContent
    timestamp: datetime
    cats_command: CatsCommand | None = None
    responds_to: list[str] = field(default_factory=list)


@dataclass
class GovernanceIssue:
    type: str  # quality, compliance, logic, data, risk
    severity: str  # low, medium, high, critical
    description: str
    affected_round: str | None = None


@dataclass
class GovernanceReview:
    """Verdict of one governance reviewer on a debate."""

    reviewer_id: GovernanceRole
    reviewer_agent_id: str
    approved: bool
    score: float  # 0..100
    timestamp: datetime
    issues: list[GovernanceIssue] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    id: str = ""
    debate_id: str = ""


@dataclass
class FinalDecision:
    recommendation: str
    reasoning: str
    confidence: float
    priority: MessagePriority = MessagePriority.MEDIUM
    actions: list[str] = field(default_factory=list)
    dissent: str | None = None


@dataclass
class DebateRecord:
    """Full state of one debate, active or archived."""

    id: str
    domain: InsightDomain
    team: DomainTeam
    topic: str
    context_data: Any
    current_phase: DebatePhase
    started_at: datetime
    version: int = 1
    priority: MessagePriority = MessagePriority.MEDIUM
    thesis: DebateRound | None = None
    antithesis: DebateRound | None = None
    synthesis: DebateRound | None = None
    governance_reviews: list[GovernanceReview] = field(default_factory=list)
    final_decision: FinalDecision | None = None
    completed_at: datetime | None = None


@dataclass
class DebateStartRequest:
    team: DomainTeam
    topic: str
    context_data: Any = None
    priority: MessagePriority = MessagePriority.MEDIUM
    immediate: bool = False


@dataclass
class DebateEvent:
    """Lifecycle notification emitted by the orchestrator."""

    type: str  # debate_started, round_completed, governance_reviewed, debate_completed, debate_cancelled
    debate_id: str
    data: dict[str, Any]
    timestamp: datetime


@dataclass
class DebateStatistics:
    total_debates: int
    completed_debates: int
    cancelled_debates: int
    average_confidence: float
    average_duration: float  # milliseconds
    governance_approval_rate: float  # 0..1
    by_domain: dict[str, int]
    by_team: dict[str, int]
