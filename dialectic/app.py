"""Application bootstrap and lifecycle management."""

from typing import Protocol

from .agents import (
    AgentContext,
    AgentRuntime,
    ChiefOrchestrator,
    ComplianceAuditor,
    InventoryAgent,
    QASpecialist,
    Team,
    create_team,
)
from .config import Settings
from .debate import DebateOrchestrator
from .event_bus import EventBus
from .learning import LearningRegistry
from .llm import ContentGenerator, IContentGenerator, LLMProvider
from .logging_config import get_logger
from .models import AgentState, DomainTeam, GovernanceRole
from .state import StateStore
from .storage import DebateLog, IDebateLog

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Clear debates, insights and learning data."""
        ...


class Application:
    """Owns the bus, stores, orchestrator and every agent runtime."""

    def __init__(
        self,
        settings: Settings | None = None,
        content_generator: IContentGenerator | None = None,
    ):
        self._settings = settings or Settings.from_env()
        self._content = content_generator

        # Components (will be initialized in start())
        self._debate_log: IDebateLog | None = None
        self._event_bus: EventBus | None = None
        self._state_store: StateStore | None = None
        self._learning: LearningRegistry | None = None
        self._orchestrator: DebateOrchestrator | None = None
        self._teams: dict[DomainTeam, Team] = {}
        self._runtimes: dict[str, AgentRuntime] = {}
        self._chief: ChiefOrchestrator | None = None
        self._started = False

    async def start(self) -> None:
        """Initialize components in dependency order."""
        if self._started:
            return
        logger.info("Starting application")
        settings = self._settings

        # 1. Durable log (no dependencies)
        self._debate_log = DebateLog(settings.database_url)
        await self._debate_log.init()
        logger.info("Debate log initialized")

        # 2. Bus and shared stores
        self._event_bus = EventBus(max_history=settings.bus_history_size)
        self._state_store = StateStore(max_insights=settings.max_insights)
        self._learning = LearningRegistry(max_records=settings.max_learning_records)

        # 3. Content generation (optional; personas fall back without it)
        if self._content is None and settings.anthropic_api_key:
            llm = LLMProvider(api_key=settings.anthropic_api_key, model=settings.llm_model)
            self._content = ContentGenerator(llm)
            logger.info("LLM content generator initialized (%s)", settings.llm_model)
        elif self._content is None:
            logger.info("No ANTHROPIC_API_KEY set; using rule-based debate content")

        # 4. Orchestrator (depends on the durable log)
        self._orchestrator = DebateOrchestrator(
            debate_log=self._debate_log,
            max_active=settings.max_active_debates,
            max_history=settings.max_debate_history,
            max_queue=settings.max_debate_queue,
            drain_queue_on_cancel=settings.drain_queue_on_cancel,
        )

        # 5. Agents
        for team in DomainTeam:
            built = create_team(
                team,
                self._event_bus,
                self._state_store,
                self._learning,
                self._orchestrator,
                self._content,
            )
            self._teams[team] = built
            for member in built.members:
                self._runtimes[member.agent_id] = member

        orchestrator = self._orchestrator
        self._register(
            GovernanceRole.QA_SPECIALIST.value,
            lambda context: QASpecialist(context, orchestrator),
        )
        self._register(
            GovernanceRole.COMPLIANCE_AUDITOR.value,
            lambda context: ComplianceAuditor(context, orchestrator),
        )
        self._chief = self._register(
            ChiefOrchestrator.agent_id,
            lambda context: ChiefOrchestrator(
                context,
                orchestrator,
                reviewers=[r.value for r in GovernanceRole],
                coaching_interval=settings.coaching_interval_seconds,
            ),
        ).worker
        self._register(
            InventoryAgent.agent_id,
            lambda context: InventoryAgent(context, self._content),
        )

        await self._start_agents()
        self._started = True
        logger.info("All components initialized (%s agents)", len(self._runtimes))

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if not self._started:
            return
        await self._stop_agents()
        if self._debate_log:
            await self._debate_log.close()
            logger.info("Debate log closed")
        self._started = False

    async def reset(self) -> None:
        """Clear debates, insights and learning data, keeping the agents."""
        self._require_started()

        # 1. Pause agents so nothing is in flight
        await self._stop_agents()

        # 2. Clear stores
        self._orchestrator.clear()
        self._state_store.clear()
        self._learning.clear()
        self._event_bus.clear()
        await self._debate_log.clear()
        logger.info("Stores cleared")

        # 3. Resubscribe
        await self._start_agents()
        logger.info("Reset complete")

    def get_agent_statuses(self) -> list[AgentState]:
        return [runtime.get_status() for runtime in self._runtimes.values()]

    def get_runtime(self, agent_id: str) -> AgentRuntime | None:
        return self._runtimes.get(agent_id)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def event_bus(self) -> EventBus:
        self._require_started()
        return self._event_bus

    @property
    def state_store(self) -> StateStore:
        self._require_started()
        return self._state_store

    @property
    def learning_registry(self) -> LearningRegistry:
        self._require_started()
        return self._learning

    @property
    def orchestrator(self) -> DebateOrchestrator:
        self._require_started()
        return self._orchestrator

    @property
    def debate_log(self) -> IDebateLog:
        self._require_started()
        return self._debate_log

    @property
    def chief(self) -> ChiefOrchestrator:
        self._require_started()
        return self._chief

    @property
    def teams(self) -> dict[DomainTeam, Team]:
        return dict(self._teams)

    def _context(self, agent_id: str) -> AgentContext:
        return AgentContext(agent_id, self._event_bus, self._state_store, self._learning)

    def _register(self, agent_id: str, build) -> AgentRuntime:
        context = self._context(agent_id)
        runtime = AgentRuntime(build(context), context)
        self._runtimes[runtime.agent_id] = runtime
        return runtime

    async def _start_agents(self) -> None:
        for runtime in self._runtimes.values():
            await runtime.start()
        await self._chief.start()

    async def _stop_agents(self) -> None:
        if self._chief:
            await self._chief.stop()
        for runtime in reversed(list(self._runtimes.values())):
            await runtime.stop()

    def _require_started(self) -> None:
        if not self._started:
            raise RuntimeError("Application not started")
