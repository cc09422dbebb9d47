"""Agent contract and the lifecycle wrapper that runs workers on the bus."""

import time
import uuid
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol

from ..errors import ValidationError
from ..event_bus import IEventBus, Unsubscribe
from ..learning import ILearningRegistry
from ..logging_config import get_logger
from ..models import (
    AgentState,
    AgentStatus,
    BusMessage,
    CoachingExample,
    CoachingFeedback,
    CoachingMetric,
    Insight,
    InsightDomain,
    InsightLevel,
    LearningOutput,
    MessagePriority,
    MessageType,
    Task,
    TaskResult,
)
from ..state import IStateStore

logger = get_logger(__name__)

MessageHandler = Callable[[BusMessage], Awaitable[None]]


class IAgent(Protocol):
    """Capability contract implemented by every worker.

    Workers may also define message_handlers() returning a
    {MessageType: handler} mapping to add or override handlers.
    """

    async def process(self, task: Task) -> TaskResult:
        """Process one task."""
        ...

    def get_capabilities(self) -> list[str]:
        """Names of what this worker can do."""
        ...

    async def apply_coaching(self, feedback: CoachingFeedback) -> None:
        """Adjust behaviour in response to coaching."""
        ...


class AgentContext:
    """Collaborators and publishing helpers for one agent id."""

    def __init__(
        self,
        agent_id: str,
        event_bus: IEventBus,
        state_store: IStateStore,
        learning_registry: ILearningRegistry,
    ):
        self._agent_id = agent_id
        self._event_bus = event_bus
        self._state_store = state_store
        self._learning = learning_registry
        self._sender = event_bus.create_sender(agent_id)

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def event_bus(self) -> IEventBus:
        return self._event_bus

    @property
    def state_store(self) -> IStateStore:
        return self._state_store

    @property
    def learning_registry(self) -> ILearningRegistry:
        return self._learning

    async def publish_insight(
        self,
        domain: InsightDomain | str,
        title: str,
        description: str,
        *,
        highlight: str | None = None,
        level: InsightLevel | str = InsightLevel.INFO,
        confidence: float = 0.8,
        data: Any = None,
        actionable: bool = True,
        suggested_actions: list[str] | None = None,
    ) -> Insight:
        """Store an insight, record it for learning and broadcast it."""
        try:
            domain = InsightDomain(domain)
            level = InsightLevel(level)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        insight = Insight(
            id=str(uuid.uuid4()),
            agent_id=self._agent_id,
            domain=domain,
            title=title,
            description=description,
            timestamp=datetime.now(timezone.utc),
            level=level,
            confidence=confidence,
            highlight=highlight,
            data=data,
            actionable=actionable,
            suggested_actions=list(suggested_actions or []),
        )

        self._state_store.add_insight(insight)
        self._learning.record_output(
            self._agent_id,
            insight.id,
            LearningOutput(
                type="reasoning",
                content={"title": title, "description": description},
            ),
        )
        await self._sender.broadcast(MessageType.INSIGHT_SHARE, insight)

        logger.info(
            "Insight published by %s: %s (%s)", self._agent_id, title, level.value
        )
        return insight

    async def send(
        self,
        target: str,
        message_type: MessageType,
        payload: Any,
        priority: MessagePriority = MessagePriority.MEDIUM,
        correlation_id: str | None = None,
    ) -> BusMessage:
        return await self._sender.send(
            target, message_type, payload, priority, correlation_id
        )

    async def reply(
        self, original: BusMessage, message_type: MessageType, payload: Any
    ) -> BusMessage:
        return await self._sender.reply(original, message_type, payload)

    async def broadcast(
        self,
        message_type: MessageType,
        payload: Any,
        priority: MessagePriority = MessagePriority.MEDIUM,
    ) -> BusMessage:
        return await self._sender.broadcast(message_type, payload, priority)

    def record_coaching(
        self, adjustments: list[str], insight_id: str | None = None
    ) -> bool:
        return self._learning.record_coaching(self._agent_id, adjustments, insight_id)


class AgentRuntime:
    """Runs one worker on the bus and keeps its status and counters.

    Worker failures are contained here: they are logged, counted and, for
    task assignments, answered with a failed TaskResult.
    """

    def __init__(self, worker: IAgent, context: AgentContext):
        self._worker = worker
        self._context = context
        self._status = AgentStatus.STOPPED
        self._last_activity = datetime.now(timezone.utc)
        self._processed_tasks = 0
        self._successful_tasks = 0
        self._total_processing_time = 0.0
        self._current_task: Task | None = None
        self._unsubscribe: Unsubscribe | None = None

        extra = getattr(worker, "message_handlers", None)
        self._extra_handlers: dict[MessageType, MessageHandler] = (
            dict(extra()) if callable(extra) else {}
        )

    @property
    def agent_id(self) -> str:
        return self._context.agent_id

    @property
    def worker(self) -> IAgent:
        return self._worker

    @property
    def context(self) -> AgentContext:
        return self._context

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    async def start(self) -> None:
        """Subscribe to the agent channel and broadcasts."""
        if self._unsubscribe is not None:
            return
        self._status = AgentStatus.IDLE
        self._unsubscribe = self._context.event_bus.subscribe_agent(
            self.agent_id, self._on_message
        )
        logger.info("Agent %s started", self.agent_id)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._status = AgentStatus.STOPPED
        logger.info("Agent %s stopped", self.agent_id)

    def get_status(self) -> AgentState:
        return AgentState(
            id=self.agent_id,
            status=self._status,
            last_activity=self._last_activity,
            processed_tasks=self._processed_tasks,
            successful_tasks=self._successful_tasks,
            total_processing_time=self._total_processing_time,
            current_task=self._current_task,
            capabilities=list(self._worker.get_capabilities()),
        )

    async def _on_message(self, message: BusMessage) -> None:
        handler = self._extra_handlers.get(message.type)
        if handler is not None:
            await self._run_handler(handler, message)
        elif message.type == MessageType.TASK_ASSIGNMENT:
            await self._handle_task_assignment(message)
        elif message.type == MessageType.COACHING_FEEDBACK:
            await self._handle_coaching(message)
        # insight_share, data_request and the rest are ignored by default

    async def _handle_task_assignment(self, message: BusMessage) -> None:
        started = time.perf_counter()
        try:
            task = coerce_task(message.payload)
        except ValidationError as e:
            logger.warning("Agent %s got malformed task: %s", self.agent_id, e)
            await self._context.reply(
                message,
                MessageType.TASK_RESULT,
                TaskResult(
                    task_id=_payload_task_id(message.payload),
                    agent_id=self.agent_id,
                    success=False,
                    error=str(e),
                ),
            )
            return

        self._current_task = task
        self._status = AgentStatus.PROCESSING
        self._touch()

        try:
            result = await self._worker.process(task)
            elapsed = _elapsed_ms(started)
            self._processed_tasks += 1
            self._total_processing_time += elapsed
            if result.success:
                self._successful_tasks += 1
        except Exception as e:
            # Raised tasks are not counted as processed
            elapsed = _elapsed_ms(started)
            self._status = AgentStatus.ERROR
            logger.error(
                "Agent %s failed task %s (%s): %s",
                self.agent_id,
                task.id,
                task.type,
                e,
                exc_info=True,
            )
            result = TaskResult(
                task_id=task.id,
                agent_id=self.agent_id,
                success=False,
                error=str(e) or type(e).__name__,
                processing_time=elapsed,
            )
        finally:
            self._current_task = None
            self._settle()

        try:
            await self._context.reply(message, MessageType.TASK_RESULT, result)
        except Exception as e:
            logger.error(
                "Agent %s could not reply to task %s: %s", self.agent_id, task.id, e
            )

    async def _handle_coaching(self, message: BusMessage) -> None:
        try:
            feedback = coerce_coaching(message.payload)
            logger.info(
                "Agent %s received coaching (%s): %s",
                self.agent_id,
                feedback.metric.value,
                feedback.suggestion.splitlines()[0] if feedback.suggestion else "",
            )
            await self._worker.apply_coaching(feedback)
        except Exception as e:
            logger.error(
                "Agent %s failed to apply coaching: %s", self.agent_id, e, exc_info=True
            )
        finally:
            self._touch()

    async def _run_handler(self, handler: MessageHandler, message: BusMessage) -> None:
        """Run a worker-supplied handler with task bookkeeping, without a reply."""
        started = time.perf_counter()
        self._status = AgentStatus.PROCESSING
        self._touch()
        try:
            await handler(message)
            self._processed_tasks += 1
            self._successful_tasks += 1
            self._total_processing_time += _elapsed_ms(started)
        except Exception as e:
            self._status = AgentStatus.ERROR
            logger.error(
                "Agent %s failed handling %s message %s: %s",
                self.agent_id,
                message.type.value,
                message.id,
                e,
                exc_info=True,
            )
        finally:
            self._settle()

    def _settle(self) -> None:
        if self._status != AgentStatus.STOPPED:
            self._status = AgentStatus.IDLE
        self._touch()

    def _touch(self) -> None:
        self._last_activity = datetime.now(timezone.utc)


def coerce_task(payload: Any) -> Task:
    """Accept a Task or a task-shaped dict; anything else is malformed."""
    if isinstance(payload, Task):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError(f"Task payload must be a Task, got {type(payload).__name__}")
    if not payload.get("id") or not payload.get("type"):
        raise ValidationError("Task payload requires 'id' and 'type'")

    known = {f.name for f in fields(Task)}
    data = {k: v for k, v in payload.items() if k in known}
    data.setdefault("domain", "")
    try:
        data["priority"] = MessagePriority(data.get("priority", MessagePriority.MEDIUM))
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return Task(**data)


def coerce_coaching(payload: Any) -> CoachingFeedback:
    """Accept CoachingFeedback, {"feedback": ...} or a feedback-shaped dict."""
    if isinstance(payload, dict) and "feedback" in payload:
        payload = payload["feedback"]
    if isinstance(payload, CoachingFeedback):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError("Coaching payload must carry feedback")
    try:
        return CoachingFeedback(
            metric=CoachingMetric(payload["metric"]),
            score=payload.get("score", 0),
            benchmark=payload.get("benchmark", 0),
            suggestion=payload.get("suggestion", ""),
            examples=[
                e if isinstance(e, CoachingExample) else CoachingExample(**e)
                for e in payload.get("examples") or []
            ],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed coaching feedback: {e}") from e


def _payload_task_id(payload: Any) -> str:
    if isinstance(payload, dict):
        return str(payload.get("id") or "")
    return ""


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
