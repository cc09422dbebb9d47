"""Optimist / pessimist / mediator personas that run one domain team's debate."""

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..debate import IDebateOrchestrator
from ..errors import NotFoundError, ValidationError
from ..event_bus import IEventBus
from ..learning import ILearningRegistry
from ..llm import IContentGenerator
from ..logging_config import get_logger
from ..models import (
    TEAM_AGENT_PREFIX,
    TEAM_TO_DOMAIN,
    BusMessage,
    CatsCommand,
    CoachingFeedback,
    CoachingMetric,
    DebateContent,
    DebatePhase,
    DebateRound,
    DomainTeam,
    InsightDomain,
    MessageType,
    Task,
    TaskResult,
    TrioRole,
    round_half_up,
)
from ..state import IStateStore
from .runtime import AgentContext, AgentRuntime

logger = get_logger(__name__)

CHIEF_ORCHESTRATOR_ID = "chief-orchestrator"

_VERBOSITY_GUIDE = {
    "concise": "Keep it to the essentials in two or three sentences.",
    "normal": "Give a reasonable level of detail.",
    "detailed": "Analyse every relevant factor in detail.",
}

_ROLE_CAPABILITIES = {
    TrioRole.OPTIMIST: ["opportunity_analysis", "growth_projection", "innovation_proposal"],
    TrioRole.PESSIMIST: ["risk_assessment", "constraint_analysis", "failure_mode_detection"],
    TrioRole.MEDIATOR: ["synthesis_generation", "consensus_building", "action_planning"],
}

_OPPORTUNITIES = {
    InsightDomain.BOM: [
        "Room for material cost reduction",
        "Alternative materials could improve quality",
        "Production efficiency can still be raised",
    ],
    InsightDomain.WASTE: [
        "Lower waste cuts disposal cost",
        "A recycling process can be introduced",
        "Greener production strengthens the brand",
    ],
    InsightDomain.INVENTORY: [
        "Leaner stock frees working capital",
        "A just-in-time supply rhythm is achievable",
        "Tuning safety stock lowers holding cost",
    ],
    InsightDomain.PROFITABILITY: [
        "High-margin channels can be expanded",
        "Pricing can be optimised",
        "New markets are within reach",
    ],
    InsightDomain.GENERAL: [
        "Overall operating efficiency can improve",
        "Digitalisation opportunities exist",
        "Organisational capability can be strengthened",
    ],
}

_RISKS = {
    InsightDomain.BOM: [
        "Raw material price swings may break the budget",
        "Alternative materials may not pass quality checks",
        "Supplier dependence increases",
    ],
    InsightDomain.WASTE: [
        "Disposal costs may be underestimated",
        "Tighter environmental rules add cost",
        "Recycling infrastructure cost is not included",
    ],
    InsightDomain.INVENTORY: [
        "Demand forecasts are uncertain",
        "Storage and depreciation costs are overlooked",
        "Rush orders add cost",
    ],
    InsightDomain.PROFITABILITY: [
        "Competitor pricing squeezes margins",
        "Rising fixed costs erode profit",
        "Market volatility threatens revenue",
    ],
    InsightDomain.GENERAL: [
        "Execution capacity may cause delays",
        "Internal resistance may slow progress",
        "Unexpected external factors may intervene",
    ],
}

_SYNTHESES = {
    InsightDomain.BOM: (
        "Balance cost optimisation with quality and improve in stages.",
        [
            "Validate alternative materials in a pilot",
            "Roll out gradually with a risk mitigation plan",
            "Track quality indicators weekly",
        ],
    ),
    InsightDomain.WASTE: (
        "Set realistic waste targets and execute in steps.",
        [
            "Analyse current waste root causes",
            "Start with the most cost-effective improvements",
            "Monitor the monthly waste rate and adjust targets",
        ],
    ),
    InsightDomain.INVENTORY: (
        "Optimise safety stock from data and keep supply flexible.",
        [
            "Improve demand forecast accuracy",
            "Manage stock by ABC class",
            "Secure an emergency supply route",
        ],
    ),
    InsightDomain.PROFITABILITY: (
        "Pursue profitability gains alongside risk management.",
        [
            "Strengthen high-margin channels first",
            "Monitor market response to price changes",
            "Keep optimising the cost structure",
        ],
    ),
    InsightDomain.GENERAL: (
        "Seize the opportunity while managing the risks.",
        [
            "Execute in priority order",
            "Monitor results periodically and adjust course",
            "Keep stakeholders informed",
        ],
    ),
}


class TrioPersona:
    """One role of a domain team's dialectical trio.

    The optimist answers debate_start with a thesis, the pessimist answers
    the thesis with an antithesis and the mediator answers with a synthesis
    for the chief orchestrator.
    """

    def __init__(
        self,
        context: AgentContext,
        role: TrioRole,
        team: DomainTeam,
        orchestrator: IDebateOrchestrator,
        content_generator: IContentGenerator | None = None,
    ):
        self._context = context
        self._role = TrioRole(role)
        self._team = DomainTeam(team)
        self._domain = TEAM_TO_DOMAIN[self._team]
        self._orchestrator = orchestrator
        self._content = content_generator

        # Tuned by coaching
        self.confidence_adjustment = 0
        self.verbosity = "normal"

    @property
    def role(self) -> TrioRole:
        return self._role

    @property
    def team(self) -> DomainTeam:
        return self._team

    @property
    def domain(self) -> InsightDomain:
        return self._domain

    def message_handlers(self) -> dict:
        handlers = {
            TrioRole.OPTIMIST: (MessageType.DEBATE_START, self._on_debate_start),
            TrioRole.PESSIMIST: (MessageType.DEBATE_THESIS, self._on_thesis),
            TrioRole.MEDIATOR: (MessageType.DEBATE_ANTITHESIS, self._on_antithesis),
        }
        message_type, handler = handlers[self._role]
        return {message_type: handler}

    async def process(self, task: Task) -> TaskResult:
        return TaskResult(
            task_id=task.id,
            agent_id=self._context.agent_id,
            success=True,
            output={"message": f"{self._role.value} persona processed task"},
        )

    def get_capabilities(self) -> list[str]:
        return [
            "dialectical_debate",
            "cats_command_execution",
            f"{self._role.value}_perspective",
            *_ROLE_CAPABILITIES[self._role],
        ]

    async def apply_coaching(self, feedback: CoachingFeedback) -> None:
        if feedback.metric == CoachingMetric.ACCURACY:
            if feedback.score < feedback.benchmark:
                self.confidence_adjustment -= 5
            else:
                self.confidence_adjustment += 2
        elif feedback.metric == CoachingMetric.LATENCY:
            if feedback.score > feedback.benchmark:
                self.verbosity = "concise"
        elif feedback.metric == CoachingMetric.USER_ACCEPTANCE:
            if feedback.score < feedback.benchmark:
                self.verbosity = "detailed"

        self._context.record_coaching(
            [
                f"confidence_adjustment: {self.confidence_adjustment}",
                f"verbosity: {self.verbosity}",
            ]
        )

    def adjusted_confidence(self, base: float) -> float:
        return max(0, min(100, base + self.confidence_adjustment))

    # Debate turns
    async def _on_debate_start(self, message: BusMessage) -> None:
        payload = _require(message.payload, "debate_id", "topic")
        debate_id = payload["debate_id"]
        topic = payload["topic"]
        context_data = payload.get("context_data")

        cats = self._cats(debate_id, f"Analyse the opportunities in: {topic}")
        content = await self._generate(topic, context_data, cats)
        thesis = self._round(debate_id, DebatePhase.THESIS, content, cats)
        await self._orchestrator.record_round(debate_id, thesis)

        await self._context.send(
            self._peer_id(TrioRole.PESSIMIST),
            MessageType.DEBATE_THESIS,
            {"debate_id": debate_id, "thesis": thesis, "context_data": context_data},
            message.priority,
        )

    async def _on_thesis(self, message: BusMessage) -> None:
        payload = _require(message.payload, "debate_id", "thesis")
        debate_id = payload["debate_id"]
        thesis: DebateRound = payload["thesis"]
        context_data = payload.get("context_data")

        cats = self._cats(
            debate_id,
            f"Analyse the risks and constraints of the optimistic view "
            f"({thesis.content.position}).",
        )
        content = await self._generate(
            thesis.content.position, context_data, cats, [thesis]
        )
        antithesis = self._round(
            debate_id, DebatePhase.ANTITHESIS, content, cats, [thesis.id]
        )
        await self._orchestrator.record_round(debate_id, antithesis)

        await self._context.send(
            self._peer_id(TrioRole.MEDIATOR),
            MessageType.DEBATE_ANTITHESIS,
            {
                "debate_id": debate_id,
                "thesis": thesis,
                "antithesis": antithesis,
                "context_data": context_data,
            },
            message.priority,
        )

    async def _on_antithesis(self, message: BusMessage) -> None:
        payload = _require(message.payload, "debate_id", "thesis", "antithesis")
        debate_id = payload["debate_id"]
        thesis: DebateRound = payload["thesis"]
        antithesis: DebateRound = payload["antithesis"]
        context_data = payload.get("context_data")

        cats = self._cats(
            debate_id,
            "Combine the optimistic and pessimistic views into a balanced conclusion.",
        )
        content = await self._generate(
            f"{thesis.content.position} vs {antithesis.content.position}",
            context_data,
            cats,
            [thesis, antithesis],
        )
        synthesis = self._round(
            debate_id,
            DebatePhase.SYNTHESIS,
            content,
            cats,
            [thesis.id, antithesis.id],
        )
        await self._orchestrator.record_round(debate_id, synthesis)

        await self._context.send(
            CHIEF_ORCHESTRATOR_ID,
            MessageType.DEBATE_SYNTHESIS,
            {
                "debate_id": debate_id,
                "thesis": thesis,
                "antithesis": antithesis,
                "synthesis": synthesis,
                "context_data": context_data,
            },
            message.priority,
        )

    # Helpers
    def _peer_id(self, role: TrioRole) -> str:
        return f"{TEAM_AGENT_PREFIX[self._team]}-{role.value}"

    def _cats(self, debate_id: str, task: str) -> CatsCommand:
        debate = self._orchestrator.get_active_debate(debate_id)
        if debate is None:
            raise NotFoundError("Debate", debate_id)
        return self._orchestrator.create_cats_command(
            self._role, f"[{self._team.value}] {task}", debate
        )

    def _round(
        self,
        debate_id: str,
        phase: DebatePhase,
        content: DebateContent,
        cats: CatsCommand,
        responds_to: list[str] | None = None,
    ) -> DebateRound:
        return DebateRound(
            id=str(uuid.uuid4()),
            debate_id=debate_id,
            phase=phase,
            role=self._role,
            agent_id=self._context.agent_id,
            content=content,
            timestamp=datetime.now(timezone.utc),
            cats_command=cats,
            responds_to=list(responds_to or []),
        )

    async def _generate(
        self,
        topic: str,
        context_data: Any,
        cats: CatsCommand,
        prior_rounds: list[DebateRound] | None = None,
    ) -> DebateContent:
        prior_rounds = prior_rounds or []
        if self._content is not None:
            prompt = self._build_prompt(topic, context_data, cats, prior_rounds)
            try:
                content = await self._content.generate_position(self._role, prompt)
                content.confidence = self.adjusted_confidence(content.confidence)
                return content
            except Exception as e:
                logger.warning(
                    "%s content generation failed, using fallback: %s",
                    self._context.agent_id,
                    e,
                )
        return self._fallback(topic, prior_rounds)

    def _build_prompt(
        self,
        topic: str,
        context_data: Any,
        cats: CatsCommand,
        prior_rounds: list[DebateRound],
    ) -> str:
        lines = [
            f"You are the {self._role.value} of the {self._team.value}.",
            "",
            "## CATS command",
            f"- Context: {cats.context}",
            f"- Agent role: {cats.agent_role.value}",
            f"- Task: {cats.task}",
            f"- Success criteria: {cats.success_criteria}",
            "",
            "## Topic",
            topic,
            "",
            "## Background data",
            json.dumps(context_data, ensure_ascii=False, default=str, indent=2),
        ]
        for prior in prior_rounds:
            lines += [
                "",
                f"## {prior.role.value.capitalize()} position",
                prior.content.position,
                prior.content.reasoning,
            ]
        lines += [
            "",
            "## Instructions",
            _VERBOSITY_GUIDE[self.verbosity],
            "",
            'Reply with JSON only: {"position": "...", "reasoning": "...", '
            '"evidence": ["..."], "confidence": 0-100, "suggested_actions": ["..."]}',
        ]
        return "\n".join(lines)

    def _fallback(self, topic: str, prior_rounds: list[DebateRound]) -> DebateContent:
        """Deterministic role-specific position used when generation fails."""
        if self._role == TrioRole.OPTIMIST:
            return DebateContent(
                position=f"Analysis of {topic} shows significant room for improvement.",
                reasoning=(
                    f"A close look at the {self._domain.value} domain reveals growth "
                    "potential that active improvement can turn into results."
                ),
                evidence=list(_OPPORTUNITIES[self._domain]),
                confidence=self.adjusted_confidence(75),
                suggested_actions=[
                    "Run a detailed opportunity analysis",
                    "Plan a pilot project",
                    "Gather stakeholder input",
                ],
            )

        if self._role == TrioRole.PESSIMIST:
            thesis = prior_rounds[0] if prior_rounds else None
            counter = (
                f'The optimistic view "{thesis.content.position}" overlooks these factors: '
                if thesis
                else ""
            )
            return DebateContent(
                position=f"{counter}{topic} calls for a cautious approach.",
                reasoning=(
                    f"Potential risks were identified in the {self._domain.value} domain. "
                    "Without countermeasures they can cause unexpected problems."
                ),
                evidence=list(_RISKS[self._domain]),
                confidence=self.adjusted_confidence(72),
                suggested_actions=[
                    "Build a risk assessment matrix",
                    "Prepare a contingency plan",
                    "Introduce staged verification",
                ],
            )

        position, actions = _SYNTHESES[self._domain]
        confidence = 78
        evidence = []
        if len(prior_rounds) >= 2:
            thesis, antithesis = prior_rounds[0], prior_rounds[1]
            confidence = round_half_up(
                thesis.content.confidence * 0.4 + antithesis.content.confidence * 0.4 + 20
            )
            evidence.append(
                f"Optimist: {_first(thesis.content.evidence, thesis.content.position)}"
            )
            evidence.append(
                f"Pessimist: {_first(antithesis.content.evidence, antithesis.content.position)}"
            )
        evidence.append("Balanced approach combining both perspectives")

        return DebateContent(
            position=position,
            reasoning=(
                "Weighed the optimist's opportunities against the pessimist's risks "
                f"to find a feasible, risk-managed plan for the {self._domain.value} domain."
            ),
            evidence=evidence,
            confidence=self.adjusted_confidence(confidence),
            suggested_actions=list(actions),
        )


@dataclass
class Team:
    """The three persona runtimes of one domain team."""

    team: DomainTeam
    optimist: AgentRuntime
    pessimist: AgentRuntime
    mediator: AgentRuntime

    @property
    def members(self) -> list[AgentRuntime]:
        return [self.optimist, self.pessimist, self.mediator]

    async def start(self) -> None:
        for member in self.members:
            await member.start()
        logger.info("Team %s started", self.team.value)

    async def stop(self) -> None:
        for member in self.members:
            await member.stop()
        logger.info("Team %s stopped", self.team.value)


def create_team(
    team: DomainTeam | str,
    event_bus: IEventBus,
    state_store: IStateStore,
    learning_registry: ILearningRegistry,
    orchestrator: IDebateOrchestrator,
    content_generator: IContentGenerator | None = None,
) -> Team:
    """Build the optimist, pessimist and mediator runtimes of one team."""
    team = DomainTeam(team)
    prefix = TEAM_AGENT_PREFIX[team]

    def build(role: TrioRole) -> AgentRuntime:
        context = AgentContext(
            f"{prefix}-{role.value}", event_bus, state_store, learning_registry
        )
        persona = TrioPersona(context, role, team, orchestrator, content_generator)
        return AgentRuntime(persona, context)

    return Team(
        team=team,
        optimist=build(TrioRole.OPTIMIST),
        pessimist=build(TrioRole.PESSIMIST),
        mediator=build(TrioRole.MEDIATOR),
    )


def _require(payload: Any, *keys: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError("Debate payload must be a mapping")
    missing = [k for k in keys if not payload.get(k)]
    if missing:
        raise ValidationError(f"Debate payload missing: {', '.join(missing)}")
    return payload


def _first(items: list, default: str) -> str:
    return str(items[0]) if items else default
