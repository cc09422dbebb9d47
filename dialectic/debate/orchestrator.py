"""Dialectical debate orchestrator: phase state machine, admission and queue."""

import asyncio
import inspect
import json
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from ..errors import (
    CapacityExceededError,
    InvalidPhaseError,
    NotFoundError,
    PersistenceWarning,
    ValidationError,
)
from ..logging_config import get_logger
from ..models import (
    NEXT_PHASE,
    TEAM_TO_DOMAIN,
    CatsCommand,
    DebateEvent,
    DebatePhase,
    DebateRecord,
    DebateRound,
    DebateStartRequest,
    DebateStatistics,
    DomainTeam,
    FinalDecision,
    GovernanceReview,
    InsightDomain,
    MessagePriority,
    TrioRole,
)
from ..storage import IDebateLog
from ..storage.serializer import to_jsonable

logger = get_logger(__name__)

QUEUED = "queued"
CONTEXT_PREVIEW_CHARS = 500

DebateEventListener = Callable[[DebateEvent], Awaitable[None] | None]

_ROLE_DESCRIPTIONS = {
    TrioRole.OPTIMIST: "Focus on possibilities, scalability and creative alternatives",
    TrioRole.PESSIMIST: "Analyse constraints, risks and potential failure factors",
    TrioRole.MEDIATOR: "Integrate both perspectives into the best actionable conclusion",
}

_SUCCESS_CRITERIA = {
    TrioRole.OPTIMIST: (
        "JSON with position (claim), reasoning, evidence (list) and confidence (0-100)"
    ),
    TrioRole.PESSIMIST: (
        "JSON with position (rebuttal), reasoning (risk analysis), evidence "
        "(risk factors) and confidence (0-100)"
    ),
    TrioRole.MEDIATOR: (
        "JSON with position (synthesis), reasoning (balanced analysis), "
        "suggested_actions (list) and confidence (0-100)"
    ),
}


class IDebateOrchestrator(Protocol):
    """Runs debates through thesis, antithesis, synthesis and review."""

    async def initiate_debate(self, request: DebateStartRequest) -> str: ...

    async def record_round(self, debate_id: str, round_: DebateRound) -> None: ...

    async def add_governance_review(
        self, debate_id: str, review: GovernanceReview
    ) -> GovernanceReview: ...

    async def complete_debate(
        self, debate_id: str, final_decision: FinalDecision
    ) -> DebateRecord: ...

    async def cancel_debate(self, debate_id: str, reason: str) -> DebateRecord: ...

    def get_active_debate(self, debate_id: str) -> DebateRecord | None: ...

    def create_cats_command(
        self, role: TrioRole, task: str, debate: DebateRecord
    ) -> CatsCommand: ...

    def on_event(self, listener: DebateEventListener) -> Callable[[], None]: ...


class DebateOrchestrator:
    """Owns the active-debate map, the bounded history and the FIFO queue.

    At most max_active debates are active at any time. Flows touching the
    same debate id are serialized with a per-debate lock; durable-log
    failures are logged and never undo an in-memory transition.
    """

    def __init__(
        self,
        debate_log: IDebateLog | None = None,
        max_active: int = 10,
        max_history: int = 100,
        max_queue: int | None = None,
        drain_queue_on_cancel: bool = False,
    ):
        if max_active < 1:
            raise ValueError("max_active must be at least 1")
        self._log = debate_log
        self._max_active = max_active
        self._max_history = max_history
        self._max_queue = max_queue
        self._drain_queue_on_cancel = drain_queue_on_cancel

        self._active: dict[str, DebateRecord] = {}
        self._history: deque[DebateRecord] = deque(maxlen=max_history)
        self._queue: deque[DebateStartRequest] = deque()
        self._locks: dict[str, asyncio.Lock] = {}
        self._listeners: list[DebateEventListener] = []

    @property
    def max_active(self) -> int:
        return self._max_active

    # Lifecycle operations
    async def initiate_debate(self, request: DebateStartRequest) -> str:
        """Start a debate, or queue it when the active cap is reached.

        Returns the new debate id, or QUEUED.
        """
        try:
            team = DomainTeam(request.team)
        except ValueError as e:
            raise ValidationError(f"Unknown team: {request.team!r}") from e
        if not request.topic:
            raise ValidationError("Debate topic is required")

        if len(self._active) >= self._max_active:
            if request.immediate:
                raise CapacityExceededError(self._max_active)
            if self._max_queue is not None and len(self._queue) >= self._max_queue:
                raise CapacityExceededError(self._max_queue, "queued debates")
            self._queue.append(request)
            logger.info(
                "Debate queued (%s waiting): %s / %s",
                len(self._queue),
                team.value,
                request.topic,
            )
            return QUEUED

        debate = self._register(request, team)
        await self._announce(debate)
        return debate.id

    async def record_round(self, debate_id: str, round_: DebateRound) -> None:
        """Store a round for the current phase and advance to the next one."""
        async with self._lock(debate_id):
            debate = self._require_active(debate_id)
            phase = DebatePhase(round_.phase)
            if phase not in NEXT_PHASE or phase != debate.current_phase:
                raise InvalidPhaseError(
                    debate_id, debate.current_phase.value, phase.value
                )

            setattr(debate, phase.value, round_)
            debate.current_phase = NEXT_PHASE[phase]
            await self._persist(debate)

        await self._emit("round_completed", debate)
        logger.info(
            "Round recorded: %s %s -> %s",
            debate_id,
            phase.value,
            debate.current_phase.value,
        )

    async def add_governance_review(
        self, debate_id: str, review: GovernanceReview
    ) -> GovernanceReview:
        """Append a review; the phase does not change."""
        async with self._lock(debate_id):
            debate = self._require_active(debate_id)
            review.id = str(uuid.uuid4())
            review.debate_id = debate_id
            debate.governance_reviews.append(review)
            await self._persist(debate)

        await self._emit("governance_reviewed", debate)
        logger.info(
            "Governance review added: %s by %s (approved=%s, score=%s)",
            debate_id,
            review.reviewer_id.value,
            review.approved,
            review.score,
        )
        return review

    async def complete_debate(
        self, debate_id: str, final_decision: FinalDecision
    ) -> DebateRecord:
        """Archive a debate with its decision and admit one queued request."""
        async with self._lock(debate_id):
            debate = self._require_active(debate_id)
            self._archive(debate, DebatePhase.COMPLETE, final_decision)
            admitted = self._admit_next()
            await self._persist(debate)

        await self._emit("debate_completed", debate)
        logger.info(
            "Debate completed: %s (confidence %s)",
            debate_id,
            final_decision.confidence,
            extra={"context": {"debate_id": debate_id, "team": debate.team.value}},
        )
        if admitted is not None:
            await self._announce(admitted)
        return debate

    async def cancel_debate(self, debate_id: str, reason: str) -> DebateRecord:
        """Archive a debate as cancelled with a zero-confidence decision.

        The queue is left alone unless drain_queue_on_cancel is set, in which
        case the freed slot goes to the next queued request as on completion.
        """
        async with self._lock(debate_id):
            debate = self._require_active(debate_id)
            decision = FinalDecision(
                recommendation="Debate cancelled",
                reasoning=reason,
                confidence=0,
                priority=MessagePriority.LOW,
                actions=[],
            )
            self._archive(debate, DebatePhase.CANCELLED, decision)
            admitted = self._admit_next() if self._drain_queue_on_cancel else None
            await self._persist(debate)

        await self._emit("debate_cancelled", debate)
        logger.info(
            "Debate cancelled: %s - %s",
            debate_id,
            reason,
            extra={"context": {"debate_id": debate_id, "team": debate.team.value}},
        )
        if admitted is not None:
            await self._announce(admitted)
        return debate

    # Queries
    def get_active_debate(self, debate_id: str) -> DebateRecord | None:
        return self._active.get(debate_id)

    def get_debate(self, debate_id: str) -> DebateRecord | None:
        """Active or archived debate by id."""
        debate = self._active.get(debate_id)
        if debate is not None:
            return debate
        return next((d for d in self._history if d.id == debate_id), None)

    def get_all_active_debates(self) -> list[DebateRecord]:
        return list(self._active.values())

    def get_active_debates_by_team(self, team: DomainTeam | str) -> list[DebateRecord]:
        team = DomainTeam(team)
        return [d for d in self._active.values() if d.team == team]

    def get_debate_history(
        self,
        domain: InsightDomain | str | None = None,
        team: DomainTeam | str | None = None,
        limit: int | None = None,
    ) -> list[DebateRecord]:
        """Archived debates, most recent first."""
        results = list(self._history)
        if domain is not None:
            results = [d for d in results if d.domain == InsightDomain(domain)]
        if team is not None:
            results = [d for d in results if d.team == DomainTeam(team)]
        if limit:
            results = results[:limit]
        return results

    def get_queue_status(self) -> dict[str, Any]:
        return {
            "active_count": len(self._active),
            "queued_count": len(self._queue),
            "max_active": self._max_active,
            "max_queue": self._max_queue,
        }

    def get_statistics(self) -> DebateStatistics:
        """Aggregates over archived debates.

        A completed debate counts as governance-approved when every recorded
        review approved it, which holds for debates with no reviews at all.
        """
        archived = list(self._history)
        completed = [d for d in archived if d.current_phase == DebatePhase.COMPLETE]
        cancelled = [d for d in archived if d.current_phase == DebatePhase.CANCELLED]

        total_confidence = sum(
            d.final_decision.confidence for d in completed if d.final_decision
        )
        total_duration = sum(
            (d.completed_at - d.started_at).total_seconds() * 1000
            for d in completed
            if d.completed_at and d.started_at
        )
        approved = [
            d for d in completed if all(r.approved for r in d.governance_reviews)
        ]

        by_domain = {domain.value: 0 for domain in InsightDomain}
        by_team = {team.value: 0 for team in DomainTeam}
        for d in archived:
            by_domain[d.domain.value] += 1
            by_team[d.team.value] += 1

        n = len(completed)
        return DebateStatistics(
            total_debates=len(archived),
            completed_debates=n,
            cancelled_debates=len(cancelled),
            average_confidence=total_confidence / n if n else 0,
            average_duration=total_duration / n if n else 0,
            governance_approval_rate=len(approved) / n if n else 0,
            by_domain=by_domain,
            by_team=by_team,
        )

    def create_cats_command(
        self, role: TrioRole | str, task: str, debate: DebateRecord
    ) -> CatsCommand:
        """Role-specific prompt frame for one persona turn."""
        role = TrioRole(role)
        context_json = json.dumps(
            to_jsonable(debate.context_data), ensure_ascii=False, default=str
        )
        return CatsCommand(
            context=(
                f"[{debate.domain.value}] {debate.topic}\n"
                f"Background data: {context_json[:CONTEXT_PREVIEW_CHARS]}..."
            ),
            agent_role=role,
            task=f"{_ROLE_DESCRIPTIONS[role]}. {task}",
            success_criteria=_SUCCESS_CRITERIA[role],
        )

    # Events
    def on_event(self, listener: DebateEventListener) -> Callable[[], None]:
        """Register a lifecycle listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        """Drop active debates, history and queue (application reset)."""
        self._active.clear()
        self._history.clear()
        self._queue.clear()
        self._locks.clear()

    # Internals
    def _lock(self, debate_id: str) -> asyncio.Lock:
        lock = self._locks.get(debate_id)
        if lock is None:
            self._require_active(debate_id)
            lock = self._locks[debate_id] = asyncio.Lock()
        return lock

    def _require_active(self, debate_id: str) -> DebateRecord:
        debate = self._active.get(debate_id)
        if debate is None:
            raise NotFoundError("Debate", debate_id)
        return debate

    def _archive(
        self, debate: DebateRecord, phase: DebatePhase, decision: FinalDecision
    ) -> None:
        debate.final_decision = decision
        debate.current_phase = phase
        debate.completed_at = datetime.now(timezone.utc)
        del self._active[debate.id]
        self._history.appendleft(debate)
        self._locks.pop(debate.id, None)

    def _admit_next(self) -> DebateRecord | None:
        # Runs before any await so a concurrent initiate cannot take the slot
        if not self._queue or len(self._active) >= self._max_active:
            return None
        request = self._queue.popleft()
        logger.info("Admitting queued debate: %s", request.topic)
        return self._register(request, DomainTeam(request.team))

    def _register(self, request: DebateStartRequest, team: DomainTeam) -> DebateRecord:
        previous = sum(
            1 for d in self._history if d.topic == request.topic and d.team == team
        )
        debate = DebateRecord(
            id=str(uuid.uuid4()),
            domain=TEAM_TO_DOMAIN[team],
            team=team,
            topic=request.topic,
            context_data=request.context_data,
            current_phase=DebatePhase.THESIS,
            started_at=datetime.now(timezone.utc),
            version=previous + 1,
            priority=MessagePriority(request.priority),
        )
        self._active[debate.id] = debate
        return debate

    async def _announce(self, debate: DebateRecord) -> None:
        """Persist a freshly registered debate and emit debate_started."""
        async with self._lock(debate.id):
            await self._persist(debate, created=True)
        await self._emit("debate_started", debate)

        logger.info(
            "Debate started: %s (%s v%s) %s",
            debate.id,
            debate.team.value,
            debate.version,
            debate.topic,
        )

    async def _persist(self, debate: DebateRecord, created: bool = False) -> None:
        if self._log is None:
            return
        try:
            if created:
                await self._log.write_debate_log(debate)
            else:
                await self._log.update_debate_log(debate.id, debate)
        except Exception as e:
            logger.warning(
                "%s: debate log write failed for %s (%s): %s",
                PersistenceWarning.__name__,
                debate.id,
                debate.current_phase.value,
                e,
            )

    async def _emit(self, event_type: str, debate: DebateRecord) -> None:
        event = DebateEvent(
            type=event_type,
            debate_id=debate.id,
            data={
                "id": debate.id,
                "domain": debate.domain.value,
                "team": debate.team.value,
                "topic": debate.topic,
                "current_phase": debate.current_phase.value,
            },
            timestamp=datetime.now(timezone.utc),
        )
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "Debate event listener failed on %s for %s: %s",
                    event_type,
                    debate.id,
                    e,
                    exc_info=True,
                )
