"""DebateRecord <-> JSON-ready dict conversion."""

import dataclasses
from datetime import datetime
from enum import Enum
from typing import Any

from ..models import (
    CatsCommand,
    DebateContent,
    DebatePhase,
    DebateRecord,
    DebateRound,
    DomainTeam,
    FinalDecision,
    GovernanceIssue,
    GovernanceReview,
    GovernanceRole,
    InsightDomain,
    MessagePriority,
    TrioRole,
)


def to_jsonable(value: Any) -> Any:
    """Recursively convert dataclasses, enums and datetimes to JSON types."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    return value


def debate_to_dict(record: DebateRecord) -> dict[str, Any]:
    return to_jsonable(record)


def debate_from_dict(data: dict[str, Any]) -> DebateRecord:
    """Rebuild a DebateRecord from debate_to_dict() output."""
    return DebateRecord(
        id=data["id"],
        domain=InsightDomain(data["domain"]),
        team=DomainTeam(data["team"]),
        topic=data["topic"],
        context_data=data.get("context_data"),
        current_phase=DebatePhase(data["current_phase"]),
        started_at=_parse_dt(data["started_at"]),
        version=data.get("version", 1),
        priority=MessagePriority(data.get("priority", "medium")),
        thesis=_round_from_dict(data.get("thesis")),
        antithesis=_round_from_dict(data.get("antithesis")),
        synthesis=_round_from_dict(data.get("synthesis")),
        governance_reviews=[
            _review_from_dict(r) for r in data.get("governance_reviews") or []
        ],
        final_decision=_decision_from_dict(data.get("final_decision")),
        completed_at=_parse_dt(data.get("completed_at")),
    )


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _round_from_dict(data: dict[str, Any] | None) -> DebateRound | None:
    if not data:
        return None
    content = data["content"]
    cats = data.get("cats_command")
    return DebateRound(
        id=data["id"],
        debate_id=data["debate_id"],
        phase=DebatePhase(data["phase"]),
        role=TrioRole(data["role"]),
        agent_id=data["agent_id"],
        content=DebateContent(
            position=content["position"],
            reasoning=content["reasoning"],
            evidence=list(content.get("evidence") or []),
            confidence=content.get("confidence", 0),
            suggested_actions=list(content.get("suggested_actions") or []),
        ),
        timestamp=_parse_dt(data["timestamp"]),
        cats_command=(
            CatsCommand(
                context=cats["context"],
                agent_role=TrioRole(cats["agent_role"]),
                task=cats["task"],
                success_criteria=cats["success_criteria"],
            )
            if cats
            else None
        ),
        responds_to=list(data.get("responds_to") or []),
    )


def _review_from_dict(data: dict[str, Any]) -> GovernanceReview:
    return GovernanceReview(
        id=data.get("id", ""),
        debate_id=data.get("debate_id", ""),
        reviewer_id=GovernanceRole(data["reviewer_id"]),
        reviewer_agent_id=data["reviewer_agent_id"],
        approved=data["approved"],
        score=data["score"],
        timestamp=_parse_dt(data["timestamp"]),
        issues=[GovernanceIssue(**i) for i in data.get("issues") or []],
        recommendations=list(data.get("recommendations") or []),
    )


def _decision_from_dict(data: dict[str, Any] | None) -> FinalDecision | None:
    if not data:
        return None
    return FinalDecision(
        recommendation=data["recommendation"],
        reasoning=data["reasoning"],
        confidence=data["confidence"],
        priority=MessagePriority(data.get("priority", "medium")),
        actions=list(data.get("actions") or []),
        dissent=data.get("dissent"),
    )
