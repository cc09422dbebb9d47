"""Tests for the trio personas and team wiring."""

from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from dialectic.agents import CHIEF_ORCHESTRATOR_ID, create_team
from dialectic.errors import ValidationError
from dialectic.models import (
    TEAM_AGENT_PREFIX,
    CoachingFeedback,
    CoachingMetric,
    DebateContent,
    DebatePhase,
    DebateStartRequest,
    DomainTeam,
    MessageType,
    TrioRole,
)


@pytest_asyncio.fixture
async def team_factory(event_bus, state_store, learning_registry, orchestrator):
    teams = []

    async def factory(team=DomainTeam.INVENTORY, content_generator=None):
        built = create_team(
            team, event_bus, state_store, learning_registry, orchestrator, content_generator
        )
        await built.start()
        teams.append(built)
        return built

    yield factory
    for built in teams:
        await built.stop()


@pytest.fixture
def syntheses(event_bus):
    """Collect synthesis messages addressed to the chief."""
    collected = []

    async def handler(msg):
        collected.append(msg)

    event_bus.subscribe_agent(CHIEF_ORCHESTRATOR_ID, handler)
    return collected


async def start_debate(orchestrator, event_bus, team=DomainTeam.INVENTORY, topic="Stock policy"):
    debate_id = await orchestrator.initiate_debate(DebateStartRequest(team=team, topic=topic))
    await event_bus.publish(
        CHIEF_ORCHESTRATOR_ID,
        f"{TEAM_AGENT_PREFIX[team]}-optimist",
        MessageType.DEBATE_START,
        {"debate_id": debate_id, "topic": topic, "context_data": {"items": 3}},
    )
    return debate_id


class TestCreateTeam:
    """Tests for create_team."""

    def test_agent_ids_use_team_prefix(self, event_bus, state_store, learning_registry, orchestrator):
        """Test member ids follow the team prefix."""
        team = create_team(
            "bom-waste-team", event_bus, state_store, learning_registry, orchestrator
        )

        assert [m.agent_id for m in team.members] == [
            "bom-waste-optimist",
            "bom-waste-pessimist",
            "bom-waste-mediator",
        ]
        assert team.mediator.worker.role == TrioRole.MEDIATOR

    def test_unknown_team_rejected(self, event_bus, state_store, learning_registry, orchestrator):
        """Test an unknown team name raises ValueError."""
        with pytest.raises(ValueError):
            create_team("marketing-team", event_bus, state_store, learning_registry, orchestrator)

    def test_capabilities_per_role(self, event_bus, state_store, learning_registry, orchestrator):
        """Test each role advertises its own capabilities."""
        team = create_team(
            DomainTeam.INVENTORY, event_bus, state_store, learning_registry, orchestrator
        )

        assert "risk_assessment" in team.pessimist.worker.get_capabilities()
        assert "pessimist_perspective" in team.pessimist.worker.get_capabilities()
        assert "opportunity_analysis" not in team.pessimist.worker.get_capabilities()


class TestDebateChain:
    """Tests for the thesis -> antithesis -> synthesis hand-offs."""

    @pytest.mark.asyncio
    async def test_fallback_chain_reaches_chief(
        self, team_factory, orchestrator, event_bus, syntheses
    ):
        """Test a debate_start runs all three rounds without a content generator."""
        await team_factory()

        debate_id = await start_debate(orchestrator, event_bus)

        debate = orchestrator.get_active_debate(debate_id)
        assert debate.current_phase == DebatePhase.GOVERNANCE_REVIEW
        assert debate.thesis.agent_id == "inventory-optimist"
        assert debate.antithesis.responds_to == [debate.thesis.id]
        assert debate.synthesis.responds_to == [debate.thesis.id, debate.antithesis.id]

        assert len(syntheses) == 1
        payload = syntheses[0].payload
        assert payload["debate_id"] == debate_id
        assert payload["synthesis"].id == debate.synthesis.id

    @pytest.mark.asyncio
    async def test_fallback_content(self, team_factory, orchestrator, event_bus, syntheses):
        """Test the rule-based positions and the blended mediator confidence."""
        await team_factory()

        debate = orchestrator.get_active_debate(await start_debate(orchestrator, event_bus))

        assert debate.thesis.content.confidence == 75
        assert len(debate.thesis.content.evidence) == 3
        assert debate.antithesis.content.confidence == 72
        assert "Stock policy" in debate.antithesis.content.position
        # round(75 * 0.4 + 72 * 0.4 + 20)
        assert debate.synthesis.content.confidence == 79
        assert debate.synthesis.content.suggested_actions
        assert debate.synthesis.content.evidence[-1] == "Balanced approach combining both perspectives"

    @pytest.mark.asyncio
    async def test_rounds_carry_cats_commands(self, team_factory, orchestrator, event_bus, syntheses):
        """Test every round records the CATS frame it answered."""
        await team_factory()

        debate = orchestrator.get_active_debate(await start_debate(orchestrator, event_bus))

        assert debate.thesis.cats_command.agent_role == TrioRole.OPTIMIST
        task = debate.thesis.cats_command.task
        assert task.startswith("Focus on possibilities")
        assert "[inventory-team]" in task
        assert debate.synthesis.cats_command.agent_role == TrioRole.MEDIATOR

    @pytest.mark.asyncio
    async def test_generated_content_used(self, team_factory, orchestrator, event_bus, syntheses):
        """Test content from the generator is recorded with the coaching adjustment."""
        generator = Mock()
        generator.generate_position = AsyncMock(
            side_effect=lambda role, prompt: DebateContent(
                position=f"{role.value} view",
                reasoning="Weighs opportunities against risks",
                evidence=["a", "b"],
                confidence=60,
                suggested_actions=["Monitor the trial weekly"],
            )
        )
        team = await team_factory(content_generator=generator)
        team.optimist.worker.confidence_adjustment = 10

        debate = orchestrator.get_active_debate(await start_debate(orchestrator, event_bus))

        assert generator.generate_position.await_count == 3
        assert debate.thesis.content.position == "optimist view"
        assert debate.thesis.content.confidence == 70
        assert debate.synthesis.content.position == "mediator view"

        prompt = generator.generate_position.await_args_list[2].args[1]
        assert "## Optimist position" in prompt
        assert "## Pessimist position" in prompt

    @pytest.mark.asyncio
    async def test_generation_failure_falls_back(
        self, team_factory, orchestrator, event_bus, syntheses
    ):
        """Test a failing generator does not stop the debate."""
        generator = Mock()
        generator.generate_position = AsyncMock(side_effect=ValidationError("bad json"))
        await team_factory(content_generator=generator)

        debate = orchestrator.get_active_debate(await start_debate(orchestrator, event_bus))

        assert debate.synthesis is not None
        assert debate.thesis.content.confidence == 75

    @pytest.mark.asyncio
    async def test_unknown_debate_is_contained(self, team_factory, event_bus, syntheses):
        """Test a start for an unknown debate fails inside the runtime."""
        team = await team_factory()

        await event_bus.publish(
            CHIEF_ORCHESTRATOR_ID,
            "inventory-optimist",
            MessageType.DEBATE_START,
            {"debate_id": "missing", "topic": "x"},
        )

        assert syntheses == []
        assert team.optimist.get_status().successful_tasks == 0
        assert team.optimist.get_status().processed_tasks == 0

    @pytest.mark.asyncio
    async def test_incomplete_payload_rejected(self, team_factory, event_bus, syntheses):
        """Test a start without a topic never reaches the pessimist."""
        team = await team_factory()

        await event_bus.publish(
            CHIEF_ORCHESTRATOR_ID,
            "inventory-optimist",
            MessageType.DEBATE_START,
            {"debate_id": "d1"},
        )

        assert team.pessimist.get_status().processed_tasks == 0


class TestPersonaCoaching:
    """Tests for coaching adjustments."""

    @pytest.mark.asyncio
    async def test_low_accuracy_lowers_confidence(self, team_factory):
        """Test accuracy below benchmark subtracts five points."""
        team = await team_factory()
        persona = team.optimist.worker

        await persona.apply_coaching(
            CoachingFeedback(metric=CoachingMetric.ACCURACY, score=40, benchmark=80, suggestion="")
        )

        assert persona.confidence_adjustment == -5
        assert persona.adjusted_confidence(75) == 70

    @pytest.mark.asyncio
    async def test_good_accuracy_raises_confidence(self, team_factory):
        """Test accuracy at or above benchmark adds two points."""
        persona = (await team_factory()).optimist.worker

        await persona.apply_coaching(
            CoachingFeedback(metric=CoachingMetric.ACCURACY, score=90, benchmark=80, suggestion="")
        )

        assert persona.confidence_adjustment == 2

    @pytest.mark.asyncio
    async def test_verbosity_changes(self, team_factory):
        """Test latency and acceptance feedback change verbosity."""
        persona = (await team_factory()).mediator.worker

        await persona.apply_coaching(
            CoachingFeedback(metric=CoachingMetric.LATENCY, score=90, benchmark=80, suggestion="")
        )
        assert persona.verbosity == "concise"

        await persona.apply_coaching(
            CoachingFeedback(
                metric=CoachingMetric.USER_ACCEPTANCE, score=30, benchmark=80, suggestion=""
            )
        )
        assert persona.verbosity == "detailed"

    def test_adjusted_confidence_is_clamped(
        self, event_bus, state_store, learning_registry, orchestrator
    ):
        """Test adjustments never leave 0-100."""
        persona = create_team(
            DomainTeam.INVENTORY, event_bus, state_store, learning_registry, orchestrator
        ).optimist.worker

        persona.confidence_adjustment = 50
        assert persona.adjusted_confidence(75) == 100
        persona.confidence_adjustment = -90
        assert persona.adjusted_confidence(75) == 0
