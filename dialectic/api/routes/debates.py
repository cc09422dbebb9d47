"""Debate API routes."""

from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...debate import QUEUED
from ...errors import CapacityExceededError, NotFoundError, ValidationError
from ...models import DebateStartRequest, DomainTeam, InsightDomain, MessagePriority
from ...storage.serializer import to_jsonable


class StartDebateRequest(BaseModel):
    """Request model for starting a debate."""

    team: DomainTeam
    topic: str = Field(min_length=1)
    context_data: Any = None
    priority: MessagePriority = MessagePriority.MEDIUM
    immediate: bool = False


class StartDebateResponse(BaseModel):
    """Debate id, or "queued" when the active cap is reached."""

    debate_id: str
    queued: bool


class CancelDebateRequest(BaseModel):
    reason: str = "Cancelled by user"


class QueueStatusResponse(BaseModel):
    active_count: int
    queued_count: int
    max_active: int
    max_queue: int | None = None


class StatisticsResponse(BaseModel):
    total_debates: int
    completed_debates: int
    cancelled_debates: int
    average_confidence: float
    average_duration: float
    governance_approval_rate: float
    by_domain: dict[str, int]
    by_team: dict[str, int]


def create_debates_router(app: Application) -> APIRouter:
    """Create debates router."""
    router = APIRouter(prefix="/api/debates", tags=["debates"])

    @router.post("", response_model=StartDebateResponse, status_code=202)
    async def start_debate(request: StartDebateRequest) -> dict:
        """Start a debate; the team picks it up asynchronously."""
        try:
            debate_id = await app.orchestrator.initiate_debate(
                DebateStartRequest(
                    team=request.team,
                    topic=request.topic,
                    context_data=request.context_data,
                    priority=request.priority,
                    immediate=request.immediate,
                )
            )
        except CapacityExceededError as e:
            raise HTTPException(status_code=429, detail=str(e))
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"debate_id": debate_id, "queued": debate_id == QUEUED}

    @router.get("/active")
    async def get_active_debates(team: DomainTeam | None = None) -> list[dict]:
        orchestrator = app.orchestrator
        debates = (
            orchestrator.get_active_debates_by_team(team)
            if team
            else orchestrator.get_all_active_debates()
        )
        return to_jsonable(debates)

    @router.get("/history")
    async def get_debate_history(
        domain: InsightDomain | None = Query(None, description="Filter by insight domain"),
        team: DomainTeam | None = Query(None, description="Filter by team"),
        limit: int = Query(20, ge=1, le=100),
    ) -> list[dict]:
        """Newest completed or cancelled debates."""
        return to_jsonable(
            app.orchestrator.get_debate_history(domain=domain, team=team, limit=limit)
        )

    @router.get("/statistics", response_model=StatisticsResponse)
    async def get_statistics() -> dict:
        return to_jsonable(app.orchestrator.get_statistics())

    @router.get("/queue", response_model=QueueStatusResponse)
    async def get_queue_status() -> dict:
        return app.orchestrator.get_queue_status()

    @router.get("/{debate_id}")
    async def get_debate(debate_id: str) -> dict:
        debate = app.orchestrator.get_debate(debate_id)
        if debate is None:
            debate = await app.debate_log.read_debate_log(debate_id)
        if debate is None:
            raise HTTPException(status_code=404, detail=f"Debate not found: {debate_id}")
        return to_jsonable(debate)

    @router.post("/{debate_id}/cancel")
    async def cancel_debate(debate_id: str, request: CancelDebateRequest | None = None) -> dict:
        reason = request.reason if request else "Cancelled by user"
        try:
            debate = await app.orchestrator.cancel_debate(debate_id, reason)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return to_jsonable(debate)

    return router
