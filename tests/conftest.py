"""Pytest configuration and fixtures."""

import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dialectic.models import (  # noqa: E402
    DebateContent,
    DebatePhase,
    DebateRound,
    TrioRole,
)


@pytest_asyncio.fixture
async def debate_log():
    """Create in-memory debate log for testing."""
    from dialectic.storage import DebateLog

    log = DebateLog(":memory:")
    await log.init()
    yield log
    await log.close()


@pytest.fixture
def event_bus():
    """Create EventBus with a small history."""
    from dialectic.event_bus import EventBus

    return EventBus(max_history=100)


@pytest.fixture
def state_store():
    from dialectic.state import StateStore

    return StateStore(max_insights=100)


@pytest.fixture
def learning_registry():
    from dialectic.learning import LearningRegistry

    return LearningRegistry(max_records=5000)


@pytest.fixture
def orchestrator(debate_log):
    """Create DebateOrchestrator backed by the in-memory log."""
    from dialectic.debate import DebateOrchestrator

    return DebateOrchestrator(debate_log=debate_log, max_active=10, max_history=100)


@pytest.fixture
def make_context(event_bus, state_store, learning_registry):
    """Factory for AgentContext instances sharing the fixtures above."""
    from dialectic.agents import AgentContext

    def factory(agent_id: str):
        return AgentContext(agent_id, event_bus, state_store, learning_registry)

    return factory


@pytest.fixture
def mock_llm():
    """Create mock LLM provider."""
    llm = Mock()
    llm.complete = AsyncMock(return_value="Test response")
    return llm


@pytest.fixture
def make_round():
    """Factory for debate rounds with sensible defaults."""

    def factory(
        debate_id: str,
        phase: DebatePhase,
        position: str = "Position",
        reasoning: str = "Reasoning about the optimist's opportunities and the risks",
        confidence: float = 75,
        evidence: list | None = None,
        actions: list[str] | None = None,
    ) -> DebateRound:
        role = {
            DebatePhase.THESIS: TrioRole.OPTIMIST,
            DebatePhase.ANTITHESIS: TrioRole.PESSIMIST,
            DebatePhase.SYNTHESIS: TrioRole.MEDIATOR,
        }.get(phase, TrioRole.MEDIATOR)
        return DebateRound(
            id=str(uuid.uuid4()),
            debate_id=debate_id,
            phase=phase,
            role=role,
            agent_id=f"test-{role.value}",
            content=DebateContent(
                position=position,
                reasoning=reasoning,
                evidence=evidence if evidence is not None else ["data point 1", "data point 2"],
                confidence=confidence,
                suggested_actions=actions
                if actions is not None
                else ["Monitor the weekly results and adjust the plan"],
            ),
            timestamp=datetime.now(timezone.utc),
        )

    return factory
