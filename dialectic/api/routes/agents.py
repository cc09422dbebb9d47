"""Agent status and coaching API routes."""

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application
from ...storage.serializer import to_jsonable


class PerformanceResponse(BaseModel):
    agent_id: str
    total_insights: int
    helpful_count: int
    dismissed_count: int
    corrected_count: int
    accuracy_score: int
    acceptance_rate: int
    needs_coaching: bool


def create_agents_router(app: Application) -> APIRouter:
    """Create agents router."""
    router = APIRouter(prefix="/api/agents", tags=["agents"])

    def require_agent(agent_id: str) -> None:
        if app.get_runtime(agent_id) is None:
            raise HTTPException(status_code=404, detail=f"Agent not found: {agent_id}")

    @router.get("")
    async def get_agents() -> list[dict]:
        """Status and counters of every agent runtime."""
        return to_jsonable(app.get_agent_statuses())

    @router.get("/{agent_id}/performance", response_model=PerformanceResponse)
    async def get_performance(agent_id: str) -> dict:
        require_agent(agent_id)
        registry = app.learning_registry
        performance = to_jsonable(registry.get_agent_performance(agent_id))
        performance["needs_coaching"] = registry.needs_coaching(agent_id)
        return performance

    @router.get("/{agent_id}/coaching")
    async def get_coaching(agent_id: str) -> dict | None:
        """Coaching the registry would give this agent now, or null."""
        require_agent(agent_id)
        return to_jsonable(app.learning_registry.generate_coaching_feedback(agent_id))

    return router
