"""Insight, feedback and state API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...models import FeedbackType, InsightDomain
from ...storage.serializer import to_jsonable


class FeedbackRequest(BaseModel):
    """Human feedback on one insight."""

    type: FeedbackType
    correction: Any = None


class FeedbackResponse(BaseModel):
    insight_id: str
    recorded: bool


def create_insights_router(app: Application) -> APIRouter:
    """Create insights router."""
    router = APIRouter(prefix="/api", tags=["insights"])

    @router.get("/insights")
    async def get_insights(
        domain: InsightDomain | None = Query(None, description="Filter by domain"),
        limit: int = Query(20, ge=1, le=100),
    ) -> list[dict]:
        """Newest insights first."""
        return to_jsonable(app.state_store.get_insights(domain=domain, limit=limit))

    @router.post("/insights/{insight_id}/feedback", response_model=FeedbackResponse)
    async def record_feedback(insight_id: str, request: FeedbackRequest) -> dict:
        recorded = app.learning_registry.record_feedback(
            insight_id, request.type, request.correction
        )
        if not recorded:
            raise HTTPException(
                status_code=404, detail=f"No learning record for insight: {insight_id}"
            )
        return {"insight_id": insight_id, "recorded": True}

    @router.get("/state")
    async def get_state() -> dict:
        """Snapshot of every domain slice plus recent insights."""
        return to_jsonable(app.state_store.get_all_state())

    return router
