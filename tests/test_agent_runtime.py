"""Tests for AgentRuntime and AgentContext."""

import asyncio

import pytest

from dialectic.agents import AgentRuntime
from dialectic.agents.runtime import coerce_coaching, coerce_task
from dialectic.errors import ProcessingError, ValidationError
from dialectic.models import (
    AgentStatus,
    CoachingFeedback,
    CoachingMetric,
    InsightDomain,
    InsightLevel,
    MessageType,
    Task,
    TaskResult,
)


class EchoWorker:
    """Minimal worker used to exercise the runtime."""

    def __init__(self, agent_id="echo-agent", fail=False):
        self.agent_id = agent_id
        self.fail = fail
        self.coaching = []
        self.seen_status = None
        self.runtime = None

    async def process(self, task: Task) -> TaskResult:
        if self.runtime is not None:
            self.seen_status = self.runtime.get_status()
        if self.fail:
            raise ProcessingError("worker exploded")
        return TaskResult(
            task_id=task.id, agent_id=self.agent_id, success=True, output={"echo": task.input}
        )

    def get_capabilities(self) -> list[str]:
        return ["echo"]

    async def apply_coaching(self, feedback: CoachingFeedback) -> None:
        self.coaching.append(feedback)


@pytest.fixture
async def runtime_factory(make_context):
    runtimes = []

    async def factory(worker):
        runtime = AgentRuntime(worker, make_context(worker.agent_id))
        worker.runtime = runtime
        await runtime.start()
        runtimes.append(runtime)
        return runtime

    yield factory
    for runtime in runtimes:
        await runtime.stop()


@pytest.fixture
def results(event_bus):
    """Collect TASK_RESULT messages."""
    collected = []

    async def handler(msg):
        collected.append(msg)

    event_bus.subscribe_type(MessageType.TASK_RESULT, handler)
    return collected


class TestAgentRuntimeLifecycle:
    """Tests for start/stop and status."""

    @pytest.mark.asyncio
    async def test_start_sets_idle(self, make_context):
        """Test a started runtime is idle and subscribed."""
        worker = EchoWorker()
        runtime = AgentRuntime(worker, make_context(worker.agent_id))
        assert runtime.get_status().status == AgentStatus.STOPPED

        await runtime.start()

        status = runtime.get_status()
        assert status.status == AgentStatus.IDLE
        assert status.capabilities == ["echo"]
        assert runtime.is_running

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, make_context, event_bus, results):
        """Test a stopped runtime no longer receives tasks."""
        worker = EchoWorker()
        runtime = AgentRuntime(worker, make_context(worker.agent_id))
        await runtime.start()
        await runtime.stop()

        await event_bus.publish(
            "tester", "echo-agent", MessageType.TASK_ASSIGNMENT, {"id": "t1", "type": "echo"}
        )

        assert results == []
        assert runtime.get_status().status == AgentStatus.STOPPED


class TestAgentRuntimeTasks:
    """Tests for task assignment handling."""

    @pytest.mark.asyncio
    async def test_task_success_replies_result(self, runtime_factory, event_bus, results):
        """Test a successful task is answered and counted."""
        worker = EchoWorker()
        runtime = await runtime_factory(worker)

        request = await event_bus.publish(
            "tester",
            "echo-agent",
            MessageType.TASK_ASSIGNMENT,
            {"id": "t1", "type": "echo", "domain": "debate", "input": "hello"},
        )

        assert len(results) == 1
        reply = results[0]
        assert reply.target == "tester"
        assert reply.correlation_id == request.id
        assert reply.payload.success is True
        assert reply.payload.output == {"echo": "hello"}

        status = runtime.get_status()
        assert status.processed_tasks == 1
        assert status.successful_tasks == 1
        assert status.status == AgentStatus.IDLE
        assert status.current_task is None

    @pytest.mark.asyncio
    async def test_status_processing_during_task(self, runtime_factory, event_bus):
        """Test the runtime reports PROCESSING while the worker runs."""
        worker = EchoWorker()
        await runtime_factory(worker)

        await event_bus.publish(
            "tester", "echo-agent", MessageType.TASK_ASSIGNMENT, {"id": "t1", "type": "echo"}
        )

        assert worker.seen_status.status == AgentStatus.PROCESSING
        assert worker.seen_status.current_task.id == "t1"

    @pytest.mark.asyncio
    async def test_task_failure_becomes_failed_result(self, runtime_factory, event_bus, results):
        """Test a raising worker yields success=False and the runtime recovers."""
        runtime = await runtime_factory(EchoWorker(fail=True))

        await event_bus.publish(
            "tester", "echo-agent", MessageType.TASK_ASSIGNMENT, {"id": "t1", "type": "echo"}
        )

        result = results[0].payload
        assert result.success is False
        assert result.error == "worker exploded"

        status = runtime.get_status()
        assert status.processed_tasks == 0
        assert status.successful_tasks == 0
        assert status.status == AgentStatus.IDLE

    @pytest.mark.asyncio
    async def test_raised_task_does_not_lower_success_rate(
        self, runtime_factory, event_bus, results
    ):
        """Test only tasks that return a result count toward the success rate."""
        ok = EchoWorker()
        runtime = await runtime_factory(ok)
        await event_bus.publish(
            "tester", "echo-agent", MessageType.TASK_ASSIGNMENT, {"id": "t1", "type": "echo"}
        )
        ok.fail = True
        await event_bus.publish(
            "tester", "echo-agent", MessageType.TASK_ASSIGNMENT, {"id": "t2", "type": "echo"}
        )

        assert [r.payload.success for r in results] == [True, False]
        status = runtime.get_status()
        assert status.processed_tasks == 1
        assert status.success_rate == 100

    @pytest.mark.asyncio
    async def test_malformed_task_rejected(self, runtime_factory, event_bus, results):
        """Test a payload without id/type is answered with a failed result."""
        runtime = await runtime_factory(EchoWorker())

        await event_bus.publish(
            "tester", "echo-agent", MessageType.TASK_ASSIGNMENT, {"id": "t1"}
        )

        assert results[0].payload.success is False
        assert results[0].payload.task_id == "t1"
        assert runtime.get_status().processed_tasks == 0

    @pytest.mark.asyncio
    async def test_concurrent_tasks_all_counted(self, runtime_factory, event_bus, results):
        """Test overlapping deliveries are each processed once."""
        runtime = await runtime_factory(EchoWorker())

        await asyncio.gather(
            *(
                event_bus.publish(
                    "tester",
                    "echo-agent",
                    MessageType.TASK_ASSIGNMENT,
                    {"id": f"t{i}", "type": "echo"},
                )
                for i in range(5)
            )
        )

        assert len(results) == 5
        assert runtime.get_status().processed_tasks == 5


class TestAgentRuntimeCoaching:
    """Tests for coaching delivery."""

    @pytest.mark.asyncio
    async def test_coaching_wrapped_payload(self, runtime_factory, event_bus):
        """Test {"feedback": ...} payloads reach apply_coaching."""
        worker = EchoWorker()
        await runtime_factory(worker)
        feedback = CoachingFeedback(
            metric=CoachingMetric.ACCURACY, score=40, benchmark=80, suggestion="Be careful"
        )

        await event_bus.publish(
            "chief", "echo-agent", MessageType.COACHING_FEEDBACK, {"feedback": feedback}
        )

        assert worker.coaching == [feedback]

    @pytest.mark.asyncio
    async def test_broadcast_insight_ignored(self, runtime_factory, event_bus, results):
        """Test message types without a handler are ignored."""
        worker = EchoWorker()
        runtime = await runtime_factory(worker)

        await event_bus.publish("other", "broadcast", MessageType.INSIGHT_SHARE, {})

        assert results == []
        assert runtime.get_status().processed_tasks == 0


class TestCoercion:
    """Tests for payload coercion helpers."""

    def test_coerce_task_from_dict(self):
        """Test dict payloads become Tasks with defaults."""
        task = coerce_task({"id": "t1", "type": "echo", "priority": "high", "extra": 1})
        assert task.domain == ""
        assert task.priority.value == "high"

    def test_coerce_task_rejects_bad_priority(self):
        """Test an unknown priority is a ValidationError."""
        with pytest.raises(ValidationError):
            coerce_task({"id": "t1", "type": "echo", "priority": "urgent"})

    def test_coerce_coaching_from_dict(self):
        """Test feedback-shaped dicts become CoachingFeedback."""
        feedback = coerce_coaching(
            {"metric": "latency", "score": 90, "benchmark": 80, "suggestion": "faster"}
        )
        assert feedback.metric == CoachingMetric.LATENCY

    def test_coerce_coaching_rejects_garbage(self):
        """Test non-feedback payloads raise ValidationError."""
        with pytest.raises(ValidationError):
            coerce_coaching("nope")


class TestAgentContext:
    """Tests for AgentContext.publish_insight."""

    @pytest.mark.asyncio
    async def test_publish_insight_stores_records_and_broadcasts(
        self, make_context, event_bus, state_store, learning_registry
    ):
        """Test an insight lands in the store, the registry and on the bus."""
        context = make_context("inventory-agent")

        insight = await context.publish_insight(
            InsightDomain.INVENTORY,
            "Low stock",
            "Flour is low",
            level="warning",
            suggested_actions=["Order flour"],
        )

        assert state_store.get_insights()[0].id == insight.id
        assert learning_registry.get_records("inventory-agent")[0].insight_id == insight.id
        shared = event_bus.get_messages_by_type(MessageType.INSIGHT_SHARE)
        assert shared[0].payload.id == insight.id
        assert insight.level == InsightLevel.WARNING

    @pytest.mark.asyncio
    async def test_publish_insight_bad_domain(self, make_context):
        """Test an unknown domain raises ValidationError."""
        with pytest.raises(ValidationError):
            await make_context("x").publish_insight("weather", "t", "d")
