"""Chief orchestrator agent: kicks off debates, routes governance, coaches."""

import asyncio
from typing import Any

from ..debate import QUEUED, IDebateOrchestrator
from ..errors import ProcessingError, ValidationError
from ..logging_config import get_logger
from ..models import (
    TEAM_AGENT_PREFIX,
    BusMessage,
    CoachingFeedback,
    DebateEvent,
    DebateRecord,
    DebateStartRequest,
    DomainTeam,
    FinalDecision,
    GovernanceRole,
    InsightLevel,
    MessagePriority,
    MessageType,
    Task,
    TaskResult,
    TrioRole,
)
from ..storage.serializer import to_jsonable
from .personas import CHIEF_ORCHESTRATOR_ID
from .runtime import AgentContext

logger = get_logger(__name__)

GOVERNANCE_CONFIDENCE_THRESHOLD = 70

_ALL_TEAMS_TOPICS = [
    (DomainTeam.BOM_WASTE, "BOM variance and waste analysis", "get_bom_waste_state"),
    (DomainTeam.INVENTORY, "Inventory levels and safety stock analysis", "get_inventory_state"),
    (DomainTeam.PROFITABILITY, "Channel profitability analysis", "get_profitability_state"),
    (DomainTeam.COST_MANAGEMENT, "Cost structure analysis", None),
]


class ChiefOrchestrator:
    """Coordinates domain teams and governance reviewers around debates.

    Every debate the orchestrator starts, including ones admitted from the
    queue, is handed to its team's optimist. Syntheses go to governance
    review when the priority is high or the confidence is low; otherwise
    the debate completes right away.
    """

    agent_id = CHIEF_ORCHESTRATOR_ID

    def __init__(
        self,
        context: AgentContext,
        orchestrator: IDebateOrchestrator,
        reviewers: list[str] | None = None,
        coaching_interval: float = 60,
    ):
        self._context = context
        self._orchestrator = orchestrator
        self._reviewers: list[str] = list(
            reviewers
            if reviewers is not None
            else [GovernanceRole.QA_SPECIALIST.value, GovernanceRole.COMPLIANCE_AUDITOR.value]
        )
        self._coaching_interval = coaching_interval

        self._running = False
        self._unsubscribe_events = None
        self._coaching_task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def reviewers(self) -> list[str]:
        return list(self._reviewers)

    def register_reviewers(self, reviewer_ids: list[str]) -> None:
        self._reviewers = list(reviewer_ids)

    # IAgent
    def message_handlers(self) -> dict:
        return {
            MessageType.DEBATE_SYNTHESIS: self._on_synthesis,
            MessageType.GOVERNANCE_REVIEW_RESULT: self._on_review_result,
        }

    async def process(self, task: Task) -> TaskResult:
        data = task.input if isinstance(task.input, dict) else task.payload or {}

        if task.type == "orchestrate_debate":
            debate_id = await self.orchestrate_debate(
                data.get("team"),
                data.get("topic"),
                data.get("context_data"),
                MessagePriority(data.get("priority", MessagePriority.MEDIUM)),
            )
            output: Any = {"debate_id": debate_id}
        elif task.type == "orchestrate_all_teams":
            ids = await self.orchestrate_all_teams(
                MessagePriority(data.get("priority", MessagePriority.MEDIUM))
            )
            output = {"debate_ids": ids}
        elif task.type == "evaluate_coaching":
            output = {"coached": await self.evaluate_and_coach()}
        else:
            raise ProcessingError(f"Unknown task type: {task.type}")

        return TaskResult(
            task_id=task.id, agent_id=self._context.agent_id, success=True, output=output
        )

    def get_capabilities(self) -> list[str]:
        return [
            "debate_orchestration",
            "cross_domain_synthesis",
            "governance_escalation",
            "agent_coaching",
            "priority_management",
        ]

    async def apply_coaching(self, feedback: CoachingFeedback) -> None:
        logger.info("Chief orchestrator does not take coaching (%s)", feedback.metric.value)

    # Lifecycle
    async def start(self) -> None:
        """Follow orchestrator events and begin periodic coaching."""
        if self._running:
            return
        self._running = True
        self._unsubscribe_events = self._orchestrator.on_event(self._on_debate_event)
        if self._coaching_interval and self._coaching_interval > 0:
            self._coaching_task = asyncio.create_task(self._coaching_loop())
        logger.info("Chief orchestrator started (reviewers: %s)", ", ".join(self._reviewers))

    async def stop(self) -> None:
        self._running = False
        if self._unsubscribe_events:
            self._unsubscribe_events()
            self._unsubscribe_events = None
        if self._coaching_task:
            self._coaching_task.cancel()
            try:
                await self._coaching_task
            except asyncio.CancelledError:
                pass
            self._coaching_task = None
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()
        logger.info("Chief orchestrator stopped")

    async def wait_for_pending(self) -> None:
        """Wait until every debate kickoff scheduled so far has run."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Operations
    async def orchestrate_debate(
        self,
        team: DomainTeam | str,
        topic: str,
        context_data: Any = None,
        priority: MessagePriority = MessagePriority.MEDIUM,
    ) -> str:
        """Start a debate; the team is kicked off once it is admitted."""
        try:
            team = DomainTeam(team)
        except ValueError as e:
            raise ValidationError(f"Unknown team: {team!r}") from e

        debate_id = await self._orchestrator.initiate_debate(
            DebateStartRequest(
                team=team, topic=topic, context_data=context_data, priority=priority
            )
        )
        if debate_id == QUEUED:
            logger.info("Debate queued: %s / %s", team.value, topic)
        return debate_id

    async def orchestrate_all_teams(
        self, priority: MessagePriority = MessagePriority.MEDIUM
    ) -> list[str]:
        """Start one debate per team on the current state of its domain."""
        store = self._context.state_store
        results = []
        for team, topic, getter in _ALL_TEAMS_TOPICS:
            context_data = to_jsonable(getattr(store, getter)()) if getter else {}
            try:
                results.append(
                    await self.orchestrate_debate(team, topic, context_data, priority)
                )
            except Exception as e:
                logger.error("Failed to start %s debate: %s", team.value, e)
        logger.info("Started debates for %s teams", len(results))
        return results

    async def evaluate_and_coach(self) -> list[str]:
        """Send coaching feedback to every agent that needs it."""
        registry = self._context.learning_registry
        coached = []
        for performance in registry.get_all_performances():
            agent_id = performance.agent_id
            if agent_id == self._context.agent_id:
                continue
            feedback = registry.generate_coaching_feedback(agent_id)
            if feedback is None:
                continue
            await self._context.send(
                agent_id, MessageType.COACHING_FEEDBACK, {"feedback": feedback}
            )
            coached.append(agent_id)
            logger.info("Coaching sent to %s (%s)", agent_id, feedback.metric.value)
        return coached

    # Debate flow
    async def _on_debate_event(self, event: DebateEvent) -> None:
        if event.type != "debate_started" or not self._running:
            return
        task = asyncio.create_task(self._kick_off(event.debate_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _kick_off(self, debate_id: str) -> None:
        debate = self._orchestrator.get_active_debate(debate_id)
        if debate is None:
            logger.warning("Debate %s is no longer active; not starting it", debate_id)
            return
        optimist_id = f"{TEAM_AGENT_PREFIX[debate.team]}-{TrioRole.OPTIMIST.value}"
        await self._context.send(
            optimist_id,
            MessageType.DEBATE_START,
            {
                "debate_id": debate.id,
                "topic": debate.topic,
                "context_data": debate.context_data,
            },
            debate.priority,
        )
        logger.info("Debate handed to %s: %s", optimist_id, debate.id)

    async def _on_synthesis(self, message: BusMessage) -> None:
        payload = message.payload if isinstance(message.payload, dict) else {}
        debate_id = payload.get("debate_id")
        debate = self._orchestrator.get_active_debate(debate_id) if debate_id else None
        if debate is None or debate.synthesis is None:
            logger.warning("Synthesis for unknown or incomplete debate: %s", debate_id)
            return

        needs_governance = (
            debate.priority in (MessagePriority.HIGH, MessagePriority.CRITICAL)
            or debate.synthesis.content.confidence < GOVERNANCE_CONFIDENCE_THRESHOLD
        )
        if needs_governance and self._reviewers:
            for reviewer_id in self._reviewers:
                await self._context.send(
                    reviewer_id,
                    MessageType.GOVERNANCE_REVIEW_REQUEST,
                    {"debate_id": debate_id, "debate": debate},
                    MessagePriority.HIGH,
                )
            logger.info("Governance review requested for %s", debate_id)
        else:
            await self._complete(debate)

    async def _on_review_result(self, message: BusMessage) -> None:
        payload = message.payload if isinstance(message.payload, dict) else {}
        debate = self._orchestrator.get_active_debate(payload.get("debate_id", ""))
        if debate is None:
            return
        reviewed = {r.reviewer_agent_id for r in debate.governance_reviews}
        if set(self._reviewers) <= reviewed:
            await self._complete(debate)

    async def _complete(self, debate: DebateRecord) -> None:
        synthesis = debate.synthesis.content
        decision = FinalDecision(
            recommendation=synthesis.position,
            reasoning=synthesis.reasoning,
            confidence=synthesis.confidence,
            priority=debate.priority,
            actions=list(synthesis.suggested_actions or []),
        )
        completed = await self._orchestrator.complete_debate(debate.id, decision)
        await self._publish_debate_insight(completed)

    async def _publish_debate_insight(self, debate: DebateRecord) -> None:
        decision = debate.final_decision
        if decision.confidence >= 80:
            level = InsightLevel.INFO
        elif decision.confidence >= 60:
            level = InsightLevel.WARNING
        else:
            level = InsightLevel.CRITICAL

        await self._context.publish_insight(
            debate.domain,
            f"[Debate complete] {debate.topic}",
            decision.recommendation,
            highlight=f"Confidence {decision.confidence}%",
            level=level,
            confidence=decision.confidence / 100,
            data={
                "debate_id": debate.id,
                "team": debate.team.value,
                "thesis_position": debate.thesis.content.position if debate.thesis else None,
                "antithesis_position": (
                    debate.antithesis.content.position if debate.antithesis else None
                ),
                "governance_reviews": [
                    {"reviewer": r.reviewer_id.value, "approved": r.approved, "score": r.score}
                    for r in debate.governance_reviews
                ],
            },
            suggested_actions=decision.actions,
        )

    async def _coaching_loop(self) -> None:
        """Background coaching evaluation."""
        while self._running:
            try:
                await asyncio.sleep(self._coaching_interval)
                await self.evaluate_and_coach()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Coaching evaluation failed: %s", e, exc_info=True)
