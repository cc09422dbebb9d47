"""Tests for ChiefOrchestrator and the end-to-end debate flow."""

import pytest
import pytest_asyncio

from dialectic.agents import (
    CHIEF_ORCHESTRATOR_ID,
    AgentContext,
    AgentRuntime,
    ChiefOrchestrator,
    ComplianceAuditor,
    QASpecialist,
    create_team,
)
from dialectic.debate import QUEUED, DebateOrchestrator
from dialectic.errors import ProcessingError, ValidationError
from dialectic.models import (
    DebatePhase,
    DomainTeam,
    FeedbackType,
    GovernanceRole,
    InsightLevel,
    LearningOutput,
    MessagePriority,
    MessageType,
    Task,
)


class Wiring:
    """Teams, reviewers and the chief on one bus."""

    def __init__(self, event_bus, state_store, learning_registry, orchestrator, teams):
        self.orchestrator = orchestrator
        self.runtimes = []
        self.teams = {}
        for team in teams:
            built = create_team(team, event_bus, state_store, learning_registry, orchestrator)
            self.teams[team] = built
            self.runtimes.extend(built.members)

        def context(agent_id):
            return AgentContext(agent_id, event_bus, state_store, learning_registry)

        qa = context(GovernanceRole.QA_SPECIALIST.value)
        auditor = context(GovernanceRole.COMPLIANCE_AUDITOR.value)
        chief = context(CHIEF_ORCHESTRATOR_ID)
        self.chief = ChiefOrchestrator(chief, orchestrator, coaching_interval=0)
        self.runtimes += [
            AgentRuntime(QASpecialist(qa, orchestrator), qa),
            AgentRuntime(ComplianceAuditor(auditor, orchestrator), auditor),
            AgentRuntime(self.chief, chief),
        ]
        self.chief_runtime = self.runtimes[-1]

    async def start(self):
        for runtime in self.runtimes:
            await runtime.start()
        await self.chief.start()

    async def stop(self):
        await self.chief.stop()
        for runtime in self.runtimes:
            await runtime.stop()


@pytest_asyncio.fixture
async def wire(event_bus, state_store, learning_registry, orchestrator):
    built = []

    async def factory(orchestrator=orchestrator, teams=(DomainTeam.INVENTORY,)):
        wiring = Wiring(event_bus, state_store, learning_registry, orchestrator, teams)
        await wiring.start()
        built.append(wiring)
        return wiring

    yield factory
    for wiring in built:
        await wiring.stop()


def debate_insights(state_store):
    return [i for i in state_store.get_insights() if i.title.startswith("[Debate complete]")]


class TestDebateFlow:
    """Tests for debates run by the chief from start to completion."""

    @pytest.mark.asyncio
    async def test_medium_priority_skips_governance(self, wire, orchestrator, state_store):
        """Test a confident medium-priority synthesis completes right away."""
        wiring = await wire()

        debate_id = await wiring.chief.orchestrate_debate(DomainTeam.INVENTORY, "Stock policy")
        await wiring.chief.wait_for_pending()

        debate = orchestrator.get_debate(debate_id)
        assert debate.current_phase == DebatePhase.COMPLETE
        assert debate.governance_reviews == []
        assert debate.final_decision.confidence == 79
        assert debate.final_decision.recommendation == debate.synthesis.content.position
        assert debate.final_decision.actions == debate.synthesis.content.suggested_actions

        insight = debate_insights(state_store)[0]
        assert insight.title == "[Debate complete] Stock policy"
        assert insight.level == InsightLevel.WARNING
        assert insight.confidence == pytest.approx(0.79)
        assert insight.highlight == "Confidence 79%"
        assert insight.data["debate_id"] == debate_id
        assert insight.data["thesis_position"] == debate.thesis.content.position

    @pytest.mark.asyncio
    async def test_high_priority_goes_to_governance(self, wire, orchestrator, state_store):
        """Test both reviewers report before a high-priority debate completes."""
        wiring = await wire()

        debate_id = await wiring.chief.orchestrate_debate(
            DomainTeam.INVENTORY, "Stock policy", priority=MessagePriority.HIGH
        )
        await wiring.chief.wait_for_pending()

        debate = orchestrator.get_debate(debate_id)
        assert debate.current_phase == DebatePhase.COMPLETE
        assert {r.reviewer_agent_id for r in debate.governance_reviews} == {
            "qa-specialist",
            "compliance-auditor",
        }
        assert debate.final_decision.priority == MessagePriority.HIGH
        reviews = debate_insights(state_store)[0].data["governance_reviews"]
        assert len(reviews) == 2
        assert all(r["approved"] for r in reviews)

    @pytest.mark.asyncio
    async def test_low_confidence_goes_to_governance(self, wire, orchestrator, state_store):
        """Test a synthesis below 70% confidence is reviewed at medium priority."""
        wiring = await wire()
        wiring.teams[DomainTeam.INVENTORY].mediator.worker.confidence_adjustment = -30

        debate_id = await wiring.chief.orchestrate_debate(DomainTeam.INVENTORY, "Stock policy")
        await wiring.chief.wait_for_pending()

        debate = orchestrator.get_debate(debate_id)
        assert debate.final_decision.confidence == 49
        assert len(debate.governance_reviews) == 2
        assert debate_insights(state_store)[0].level == InsightLevel.CRITICAL

    @pytest.mark.asyncio
    async def test_late_messages_do_not_complete_twice(
        self, wire, orchestrator, event_bus, state_store
    ):
        """Test repeated synthesis and review messages after completion are ignored."""
        wiring = await wire()
        debate_id = await wiring.chief.orchestrate_debate(
            DomainTeam.INVENTORY, "Stock policy", priority=MessagePriority.HIGH
        )
        await wiring.chief.wait_for_pending()

        await event_bus.publish(
            "qa-specialist",
            CHIEF_ORCHESTRATOR_ID,
            MessageType.GOVERNANCE_REVIEW_RESULT,
            {"debate_id": debate_id},
        )
        await event_bus.publish(
            "inventory-mediator",
            CHIEF_ORCHESTRATOR_ID,
            MessageType.DEBATE_SYNTHESIS,
            {"debate_id": debate_id},
        )

        assert len(orchestrator.get_debate_history()) == 1
        assert len(debate_insights(state_store)) == 1
        assert orchestrator.get_statistics().completed_debates == 1

    @pytest.mark.asyncio
    async def test_queued_debate_is_kicked_off_when_admitted(self, wire, debate_log):
        """Test a queued debate runs once the active one completes."""
        orchestrator = DebateOrchestrator(debate_log=debate_log, max_active=1)
        wiring = await wire(orchestrator=orchestrator)

        first = await wiring.chief.orchestrate_debate(DomainTeam.INVENTORY, "First")
        second = await wiring.chief.orchestrate_debate(DomainTeam.INVENTORY, "Second")
        assert second == QUEUED
        await wiring.chief.wait_for_pending()

        history = orchestrator.get_debate_history()
        assert [d.topic for d in history] == ["Second", "First"]
        assert history[1].id == first
        assert all(d.current_phase == DebatePhase.COMPLETE for d in history)
        assert orchestrator.get_queue_status()["queued_count"] == 0

    @pytest.mark.asyncio
    async def test_stopped_chief_does_not_kick_off(self, wire, orchestrator):
        """Test debates started after stop() stay at the thesis phase."""
        wiring = await wire()
        await wiring.chief.stop()

        debate_id = await wiring.chief.orchestrate_debate(DomainTeam.INVENTORY, "Stock policy")
        await wiring.chief.wait_for_pending()

        assert orchestrator.get_active_debate(debate_id).current_phase == DebatePhase.THESIS


class TestOrchestration:
    """Tests for the chief's orchestration operations."""

    @pytest.mark.asyncio
    async def test_unknown_team_rejected(self, wire):
        """Test orchestrate_debate validates the team."""
        wiring = await wire()

        with pytest.raises(ValidationError):
            await wiring.chief.orchestrate_debate("marketing-team", "Ads")

    @pytest.mark.asyncio
    async def test_all_teams(self, wire, orchestrator):
        """Test one debate is run for each of the four analysis teams."""
        wiring = await wire(teams=tuple(DomainTeam))

        ids = await wiring.chief.orchestrate_all_teams()
        await wiring.chief.wait_for_pending()

        assert len(ids) == 4
        teams = {d.team for d in orchestrator.get_debate_history()}
        assert teams == {
            DomainTeam.BOM_WASTE,
            DomainTeam.INVENTORY,
            DomainTeam.PROFITABILITY,
            DomainTeam.COST_MANAGEMENT,
        }

    @pytest.mark.asyncio
    async def test_all_teams_sends_domain_state(self, wire, orchestrator):
        """Test the inventory debate carries the inventory slice as context."""
        wiring = await wire()

        ids = await wiring.chief.orchestrate_all_teams()

        inventory = orchestrator.get_debate(ids[1])
        assert inventory.team == DomainTeam.INVENTORY
        assert set(inventory.context_data) >= {"inventory_items", "anomalies"}
        assert orchestrator.get_debate(ids[3]).context_data == {}

    @pytest.mark.asyncio
    async def test_process_orchestrate_task(self, wire, event_bus, orchestrator):
        """Test orchestrate_debate can be assigned as a task."""
        wiring = await wire()

        await event_bus.publish(
            "user",
            CHIEF_ORCHESTRATOR_ID,
            MessageType.TASK_ASSIGNMENT,
            Task(
                id="t1",
                type="orchestrate_debate",
                domain="debate",
                input={"team": "inventory-team", "topic": "Stock policy", "priority": "low"},
            ),
        )
        await wiring.chief.wait_for_pending()

        result = event_bus.get_messages_by_type(MessageType.TASK_RESULT)[0].payload
        assert result.success is True
        debate = orchestrator.get_debate(result.output["debate_id"])
        assert debate.priority == MessagePriority.LOW

    @pytest.mark.asyncio
    async def test_process_unknown_task(self, wire):
        """Test unknown task types raise ProcessingError."""
        wiring = await wire()

        with pytest.raises(ProcessingError):
            await wiring.chief.process(Task(id="t1", type="dance", domain="debate"))


class TestCoaching:
    """Tests for evaluate_and_coach."""

    @pytest.mark.asyncio
    async def test_struggling_agent_is_coached(self, wire, learning_registry):
        """Test an agent with dismissed insights gets acceptance coaching."""
        wiring = await wire()
        for n in range(5):
            learning_registry.record_output(
                "inventory-optimist", f"i{n}", LearningOutput(type="reasoning", content={})
            )
            learning_registry.record_feedback(f"i{n}", FeedbackType.DISMISSED)

        coached = await wiring.chief.evaluate_and_coach()

        assert coached == ["inventory-optimist"]
        assert wiring.teams[DomainTeam.INVENTORY].optimist.worker.verbosity == "detailed"
        record = learning_registry.get_records("inventory-optimist")[-1]
        assert "verbosity: detailed" in record.coaching.adjustments

    @pytest.mark.asyncio
    async def test_chief_never_coaches_itself(self, wire, learning_registry):
        """Test the chief's own insights are not evaluated."""
        wiring = await wire()
        for n in range(5):
            learning_registry.record_output(
                CHIEF_ORCHESTRATOR_ID, f"c{n}", LearningOutput(type="reasoning", content={})
            )
            learning_registry.record_feedback(f"c{n}", FeedbackType.DISMISSED)

        assert await wiring.chief.evaluate_and_coach() == []
