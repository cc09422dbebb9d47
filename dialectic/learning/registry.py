"""Correlates agent outputs with human feedback and derives coaching."""

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Protocol

from ..logging_config import get_logger
from ..models import (
    AgentPerformance,
    CoachingEntry,
    CoachingExample,
    CoachingFeedback,
    CoachingMetric,
    Feedback,
    FeedbackType,
    LearningOutput,
    LearningRecord,
    round_half_up,
)

logger = get_logger(__name__)

COACHING_BENCHMARK = 80
COACHING_MIN_SAMPLES = 5
MAX_COACHING_EXAMPLES = 5

_ACCEPTANCE_SUGGESTION = """Users frequently dismiss these insights. Consider:
1. Make insights more specific and actionable
2. Leave out low-confidence analyses
3. State the context and evidence more clearly"""

_ACCURACY_SUGGESTION = """Analysis accuracy needs improvement. Consider:
1. Analyse data patterns more carefully
2. Separate outliers from normal variation
3. Learn from past feedback cases"""


class ILearningRegistry(Protocol):
    """Feedback-driven learning store."""

    def record_output(self, agent_id: str, insight_id: str, output: LearningOutput) -> str: ...

    def record_feedback(
        self, insight_id: str, feedback_type: FeedbackType, correction: Any = None
    ) -> bool: ...

    def record_coaching(
        self, agent_id: str, adjustments: list[str], insight_id: str | None = None
    ) -> bool: ...

    def get_agent_performance(self, agent_id: str) -> AgentPerformance: ...

    def get_all_performances(self) -> list[AgentPerformance]: ...

    def needs_coaching(self, agent_id: str, threshold: int = 70) -> bool: ...

    def generate_coaching_feedback(self, agent_id: str) -> CoachingFeedback | None: ...


class LearningRegistry:
    """Bounded list of LearningRecords plus a per-agent performance cache."""

    def __init__(self, max_records: int = 5000):
        self._max_records = max_records
        self._records: deque[LearningRecord] = deque(maxlen=max_records)
        self._performance_cache: dict[str, AgentPerformance] = {}

    def record_output(
        self, agent_id: str, insight_id: str, output: LearningOutput
    ) -> str:
        """Append a record for a fresh agent output, returning its id."""
        if len(self._records) == self._max_records and self._records:
            # The oldest record falls off; its agent's cache is now stale
            self._performance_cache.pop(self._records[0].agent_id, None)

        record = LearningRecord(
            id=str(uuid.uuid4()),
            agent_id=agent_id,
            insight_id=insight_id,
            output=output,
            timestamp=datetime.now(timezone.utc),
        )
        self._records.append(record)
        self._performance_cache.pop(agent_id, None)
        return record.id

    def record_feedback(
        self,
        insight_id: str,
        feedback_type: FeedbackType | str,
        correction: Any = None,
    ) -> bool:
        """Attach feedback to the record for insight_id.

        A second feedback event for the same insight replaces the first.
        Returns False when no record matches.
        """
        feedback_type = FeedbackType(feedback_type)
        record = self._find_by_insight(insight_id)
        if record is None:
            logger.warning("No learning record found for insight: %s", insight_id)
            return False

        if record.feedback is not None:
            logger.info(
                "Replacing %s feedback on insight %s with %s",
                record.feedback.type.value,
                insight_id,
                feedback_type.value,
            )

        record.feedback = Feedback(
            type=feedback_type,
            correction=correction,
            timestamp=datetime.now(timezone.utc),
        )
        self._performance_cache[record.agent_id] = self._calculate_performance(
            record.agent_id
        )
        return True

    def record_coaching(
        self, agent_id: str, adjustments: list[str], insight_id: str | None = None
    ) -> bool:
        """Note applied coaching on the agent's record for insight_id.

        Without an insight id the agent's most recent record is used.
        Returns False when the agent has no matching record.
        """
        record = None
        for candidate in reversed(self._records):
            if candidate.agent_id != agent_id:
                continue
            if insight_id is None or candidate.insight_id == insight_id:
                record = candidate
                break

        if record is None:
            logger.debug("No learning record to attach coaching for %s", agent_id)
            return False

        record.coaching = CoachingEntry(
            applied_at=datetime.now(timezone.utc), adjustments=list(adjustments)
        )
        return True

    def get_agent_performance(self, agent_id: str) -> AgentPerformance:
        cached = self._performance_cache.get(agent_id)
        if cached is not None:
            return cached
        performance = self._calculate_performance(agent_id)
        self._performance_cache[agent_id] = performance
        return performance

    def needs_coaching(self, agent_id: str, threshold: int = 70) -> bool:
        """Low acceptance over a large enough sample."""
        performance = self.get_agent_performance(agent_id)
        return (
            performance.acceptance_rate < threshold
            and performance.total_insights >= COACHING_MIN_SAMPLES
        )

    def generate_coaching_feedback(self, agent_id: str) -> CoachingFeedback | None:
        """Build an improvement suggestion, or None if coaching is not needed."""
        if not self.needs_coaching(agent_id):
            return None

        performance = self.get_agent_performance(agent_id)
        failures = [
            r
            for r in self._records
            if r.agent_id == agent_id
            and r.feedback is not None
            and r.feedback.type in (FeedbackType.DISMISSED, FeedbackType.CORRECTED)
        ][-MAX_COACHING_EXAMPLES:]

        examples = [
            CoachingExample(
                input=r.output.content,
                expected_output=(
                    r.feedback.correction if r.feedback.correction is not None else "N/A"
                ),
                actual_output=r.output.content,
            )
            for r in failures
        ]

        if performance.dismissed_count > performance.corrected_count:
            metric = CoachingMetric.USER_ACCEPTANCE
            suggestion = _ACCEPTANCE_SUGGESTION
        else:
            metric = CoachingMetric.ACCURACY
            suggestion = _ACCURACY_SUGGESTION

        return CoachingFeedback(
            metric=metric,
            score=performance.acceptance_rate,
            benchmark=COACHING_BENCHMARK,
            suggestion=suggestion,
            examples=examples,
        )

    def get_records(self, agent_id: str | None = None, limit: int = 100) -> list[LearningRecord]:
        """Most recent records (oldest first within the slice)."""
        records = [r for r in self._records if agent_id is None or r.agent_id == agent_id]
        return records[-limit:] if limit > 0 else []

    def get_records_with_feedback(self, agent_id: str | None = None) -> list[LearningRecord]:
        return [
            r
            for r in self._records
            if r.feedback is not None and (agent_id is None or r.agent_id == agent_id)
        ]

    def get_all_performances(self) -> list[AgentPerformance]:
        """Performance of every agent that has recorded output."""
        agent_ids = list(dict.fromkeys(r.agent_id for r in self._records))
        return [self.get_agent_performance(agent_id) for agent_id in agent_ids]

    def record_count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()
        self._performance_cache.clear()

    def _find_by_insight(self, insight_id: str) -> LearningRecord | None:
        for record in self._records:
            if record.insight_id == insight_id:
                return record
        return None

    def _calculate_performance(self, agent_id: str) -> AgentPerformance:
        agent_records = [r for r in self._records if r.agent_id == agent_id]
        with_feedback = [r for r in agent_records if r.feedback is not None]

        helpful = sum(1 for r in with_feedback if r.feedback.type == FeedbackType.HELPFUL)
        dismissed = sum(1 for r in with_feedback if r.feedback.type == FeedbackType.DISMISSED)
        corrected = sum(1 for r in with_feedback if r.feedback.type == FeedbackType.CORRECTED)

        total = len(with_feedback) or 1

        return AgentPerformance(
            agent_id=agent_id,
            total_insights=len(agent_records),
            helpful_count=helpful,
            dismissed_count=dismissed,
            corrected_count=corrected,
            accuracy_score=round_half_up((helpful + corrected * 0.5) / total * 100),
            acceptance_rate=round_half_up(helpful / total * 100),
            last_updated=datetime.now(timezone.utc),
        )
