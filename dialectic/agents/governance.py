"""Governance reviewers: QA specialist and compliance auditor."""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from ..debate import IDebateOrchestrator
from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import (
    BusMessage,
    CoachingFeedback,
    CoachingMetric,
    DebateRecord,
    DebateRound,
    GovernanceIssue,
    GovernanceReview,
    GovernanceRole,
    InsightLevel,
    MessageType,
    Task,
    TaskResult,
)
from ..storage.serializer import to_jsonable
from .runtime import AgentContext

logger = get_logger(__name__)

APPROVAL_THRESHOLD = 70

_ROUND_NAMES = ("thesis", "antithesis", "synthesis")


class _Reviewer(ABC):
    """Shared governance_review_request handling."""

    role: GovernanceRole

    def __init__(self, context: AgentContext, orchestrator: IDebateOrchestrator):
        self._context = context
        self._orchestrator = orchestrator

    def message_handlers(self) -> dict:
        return {MessageType.GOVERNANCE_REVIEW_REQUEST: self._on_review_request}

    async def process(self, task: Task) -> TaskResult:
        return TaskResult(
            task_id=task.id,
            agent_id=self._context.agent_id,
            success=True,
            output={"message": f"{self.role.value} review processed"},
        )

    @abstractmethod
    def review(self, debate: DebateRecord) -> GovernanceReview: ...

    async def _on_review_request(self, message: BusMessage) -> None:
        payload = message.payload if isinstance(message.payload, dict) else {}
        debate_id = payload.get("debate_id")
        if not debate_id:
            raise ValidationError("Review request requires 'debate_id'")

        debate = self._orchestrator.get_active_debate(debate_id) or payload.get("debate")
        if debate is None:
            raise ValidationError(f"No debate to review for {debate_id}")

        review = self.review(debate)
        await self._orchestrator.add_governance_review(debate_id, review)
        await self._context.reply(
            message,
            MessageType.GOVERNANCE_REVIEW_RESULT,
            {"debate_id": debate_id, "review": review, "review_type": self.role.value},
        )

        if self._should_publish(review):
            await self._publish_review_insight(debate, review)

    def _should_publish(self, review: GovernanceReview) -> bool:
        return not review.approved

    def _insight_level(self, review: GovernanceReview) -> InsightLevel:
        if review.approved:
            return InsightLevel.INFO
        return InsightLevel.WARNING if review.score >= 50 else InsightLevel.CRITICAL

    async def _publish_review_insight(
        self, debate: DebateRecord, review: GovernanceReview
    ) -> None:
        verdict = "approved" if review.approved else "changes required"
        await self._context.publish_insight(
            debate.domain,
            f"[{self.role.value}] {debate.topic}",
            f"Review finished: {verdict} (score {review.score}/100)",
            level=self._insight_level(review),
            confidence=review.score / 100,
            data={
                "debate_id": debate.id,
                "issues": to_jsonable(review.issues),
                "recommendations": review.recommendations,
            },
            actionable=not review.approved,
            suggested_actions=review.recommendations,
        )

    def _verdict(self, issues: list[GovernanceIssue], score: float, blocking: set[str]):
        score = max(0, min(100, score))
        approved = score >= APPROVAL_THRESHOLD and not any(
            i.severity in blocking for i in issues
        )
        return score, approved


class QASpecialist(_Reviewer):
    """Checks structure, logic, confidence, evidence and actionability."""

    role = GovernanceRole.QA_SPECIALIST

    STRUCTURE_PENALTY = 10
    LOGIC_PENALTY = 15
    CONFIDENCE_PENALTY = 5
    EVIDENCE_PENALTY = 10
    ACTIONABILITY_PENALTY = 8

    def __init__(self, context: AgentContext, orchestrator: IDebateOrchestrator):
        super().__init__(context, orchestrator)
        self.min_confidence = 50
        self.min_evidence = 2

    def get_capabilities(self) -> list[str]:
        return [
            "quality_assurance",
            "logic_validation",
            "evidence_verification",
            "actionability_review",
            "governance_approval",
        ]

    async def apply_coaching(self, feedback: CoachingFeedback) -> None:
        if feedback.metric == CoachingMetric.ACCURACY and feedback.score < feedback.benchmark:
            self.min_confidence = min(70, self.min_confidence + 5)
            self.min_evidence = min(5, self.min_evidence + 1)
        self._context.record_coaching(
            [f"min_confidence: {self.min_confidence}", f"min_evidence: {self.min_evidence}"]
        )

    def review(self, debate: DebateRecord) -> GovernanceReview:
        checks = [
            (self._check_structure, self.STRUCTURE_PENALTY),
            (self._check_logic, self.LOGIC_PENALTY),
            (self._check_confidence, self.CONFIDENCE_PENALTY),
            (self._check_evidence, self.EVIDENCE_PENALTY),
            (self._check_actionability, self.ACTIONABILITY_PENALTY),
        ]
        issues: list[GovernanceIssue] = []
        score = 100
        for check, penalty in checks:
            found = check(debate)
            issues.extend(found)
            score -= len(found) * penalty

        score, approved = self._verdict(issues, score, {"critical"})
        return GovernanceReview(
            reviewer_id=self.role,
            reviewer_agent_id=self._context.agent_id,
            approved=approved,
            score=score,
            timestamp=datetime.now(timezone.utc),
            issues=issues,
            recommendations=_qa_recommendations(issues),
        )

    def _should_publish(self, review: GovernanceReview) -> bool:
        return not review.approved or any(i.severity == "critical" for i in review.issues)

    def _check_structure(self, debate: DebateRecord) -> list[GovernanceIssue]:
        return [
            GovernanceIssue(
                type="quality",
                severity="critical",
                description=f"The {name} round is missing.",
                affected_round=name,
            )
            for name in _ROUND_NAMES
            if getattr(debate, name) is None
        ]

    def _check_logic(self, debate: DebateRecord) -> list[GovernanceIssue]:
        issues = []
        if (
            debate.thesis
            and debate.antithesis
            and debate.antithesis.content.position == debate.thesis.content.position
        ):
            issues.append(
                GovernanceIssue(
                    type="logic",
                    severity="high",
                    description="The antithesis repeats the thesis; no real rebuttal was made.",
                    affected_round="antithesis",
                )
            )

        if debate.synthesis:
            text = debate.synthesis.content.reasoning.lower()
            mentions_optimist = any(w in text for w in ("optimis", "opportunit", "positive"))
            mentions_pessimist = any(w in text for w in ("pessimis", "risk", "danger"))
            if not mentions_optimist and not mentions_pessimist:
                issues.append(
                    GovernanceIssue(
                        type="logic",
                        severity="medium",
                        description="The synthesis does not reference either side explicitly.",
                        affected_round="synthesis",
                    )
                )
        return issues

    def _check_confidence(self, debate: DebateRecord) -> list[GovernanceIssue]:
        return [
            GovernanceIssue(
                type="quality",
                severity="medium",
                description=(
                    f"The {name} confidence ({round_.content.confidence}%) is below "
                    f"the {self.min_confidence}% threshold."
                ),
                affected_round=name,
            )
            for name, round_ in _rounds(debate)
            if round_.content.confidence < self.min_confidence
        ]

    def _check_evidence(self, debate: DebateRecord) -> list[GovernanceIssue]:
        return [
            GovernanceIssue(
                type="data",
                severity="low",
                description=(
                    f"The {name} round cites {len(round_.content.evidence)} pieces of "
                    f"evidence; {self.min_evidence} are recommended."
                ),
                affected_round=name,
            )
            for name, round_ in _rounds(debate)
            if len(round_.content.evidence) < self.min_evidence
        ]

    def _check_actionability(self, debate: DebateRecord) -> list[GovernanceIssue]:
        if not debate.synthesis:
            return []
        issues = []
        actions = debate.synthesis.content.suggested_actions or []
        if not actions:
            issues.append(
                GovernanceIssue(
                    type="quality",
                    severity="medium",
                    description="The synthesis has no concrete action items.",
                    affected_round="synthesis",
                )
            )

        vague = [
            a
            for a in actions
            if len(a) < 10 or any(w in a.lower() for w in ("etc", "as needed", "if necessary"))
        ]
        if len(vague) > len(actions) / 2:
            issues.append(
                GovernanceIssue(
                    type="quality",
                    severity="low",
                    description="Some action items are not specific.",
                    affected_round="synthesis",
                )
            )
        return issues


@dataclass
class ComplianceRule:
    id: str
    name: str
    description: str
    category: str  # data_privacy, business_rule, risk_management, regulatory
    severity: str  # low, medium, high, critical
    check: Callable[[DebateRecord], bool]


SEVERITY_PENALTY = {"low": 5, "medium": 10, "high": 20, "critical": 30}

_PII_PATTERNS = [
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    re.compile(r"\b01[0-9]-?\d{3,4}-?\d{4}\b"),
    re.compile(r"\b\d{6}-?[1-4]\d{6}\b"),
]
_FINANCIAL_PATTERN = re.compile(r"[₩$€]\s?\d|\d\s?(?:KRW|USD|EUR)\b")
_RISK_WORDS = ("risk", "concern", "problem", "failure", "threat", "caution")
_MITIGATION_WORDS = ("mitigat", "prevent", "monitor", "manage", "respond", "contingency")
_DOMAIN_WORDS = {
    "bom": ("bom", "material", "production", "manufactur", "component"),
    "waste": ("waste", "loss", "defect", "scrap"),
    "inventory": ("inventory", "stock", "warehouse", "storage", "order"),
    "profitability": ("profit", "margin", "revenue", "sales", "channel"),
    "general": ("cost", "management", "strategy", "operat"),
}


def _debate_text(debate: DebateRecord) -> str:
    return json.dumps(to_jsonable(debate), ensure_ascii=False, default=str)


def _no_pii(debate: DebateRecord) -> bool:
    text = _debate_text(debate)
    return not any(p.search(text) for p in _PII_PATTERNS)


def _financial_figures_have_evidence(debate: DebateRecord) -> bool:
    if not _FINANCIAL_PATTERN.search(_debate_text(debate)):
        return True
    return any(r.content.evidence for _, r in _rounds(debate))


def _risk_assessed(debate: DebateRecord) -> bool:
    if not debate.antithesis:
        return False
    text = (debate.antithesis.content.reasoning + debate.antithesis.content.position).lower()
    return any(w in text for w in _RISK_WORDS)


def _mitigation_present(debate: DebateRecord) -> bool:
    if not debate.synthesis:
        return False
    actions = debate.synthesis.content.suggested_actions or []
    return any(w in a.lower() for a in actions for w in _MITIGATION_WORDS)


def _domain_relevant(debate: DebateRecord) -> bool:
    words = _DOMAIN_WORDS.get(debate.domain.value, _DOMAIN_WORDS["general"])
    text = _debate_text(debate).lower()
    return any(w in text for w in words)


def _conclusion_clear(debate: DebateRecord) -> bool:
    if not debate.synthesis:
        return False
    content = debate.synthesis.content
    return len(content.position) >= 20 and len(content.suggested_actions or []) >= 1


def default_rules() -> list[ComplianceRule]:
    return [
        ComplianceRule(
            "DP001",
            "No personal data",
            "Debate content must not contain personally identifying information.",
            "data_privacy",
            "critical",
            _no_pii,
        ),
        ComplianceRule(
            "BR001",
            "Financial figures are sourced",
            "Financial figures need verifiable evidence.",
            "business_rule",
            "high",
            _financial_figures_have_evidence,
        ),
        ComplianceRule(
            "RM001",
            "Risk assessment present",
            "Every debate must include a risk analysis.",
            "risk_management",
            "medium",
            _risk_assessed,
        ),
        ComplianceRule(
            "RM002",
            "Risk mitigation actions",
            "Identified risks need mitigation actions.",
            "risk_management",
            "medium",
            _mitigation_present,
        ),
        ComplianceRule(
            "RG001",
            "Domain relevance",
            "Debate content must relate to the assigned domain.",
            "regulatory",
            "low",
            _domain_relevant,
        ),
        ComplianceRule(
            "BR002",
            "Clear conclusion",
            "The final conclusion must be clear and actionable.",
            "business_rule",
            "medium",
            _conclusion_clear,
        ),
    ]


_RULE_RECOMMENDATIONS = {
    "DP": "Anonymise or remove sensitive personal data.",
    "BR": "Strengthen the conclusion and its supporting evidence.",
    "RM": "Strengthen risk management and state mitigation actions.",
    "RG": "Keep the debate focused on its assigned domain.",
}


class ComplianceAuditor(_Reviewer):
    """Audits a debate against a table of compliance rules."""

    role = GovernanceRole.COMPLIANCE_AUDITOR

    def __init__(
        self,
        context: AgentContext,
        orchestrator: IDebateOrchestrator,
        rules: list[ComplianceRule] | None = None,
    ):
        super().__init__(context, orchestrator)
        self._rules = list(rules) if rules is not None else default_rules()

    def get_capabilities(self) -> list[str]:
        return [
            "compliance_auditing",
            "data_privacy_review",
            "business_rule_validation",
            "risk_assessment_review",
            "regulatory_compliance",
            "governance_approval",
        ]

    async def apply_coaching(self, feedback: CoachingFeedback) -> None:
        logger.info("Compliance rules are fixed; coaching noted (%s)", feedback.metric.value)

    def add_rule(self, rule: ComplianceRule) -> None:
        self._rules.append(rule)
        logger.info("Compliance rule added: %s - %s", rule.id, rule.name)

    def get_rules(self) -> list[ComplianceRule]:
        return list(self._rules)

    def review(self, debate: DebateRecord) -> GovernanceReview:
        issues: list[GovernanceIssue] = []
        score = 100
        for rule in self._rules:
            try:
                passed = rule.check(debate)
            except Exception as e:
                logger.error("Compliance rule %s failed to run: %s", rule.id, e)
                continue
            if not passed:
                issues.append(
                    GovernanceIssue(
                        type="compliance",
                        severity=rule.severity,
                        description=f"[{rule.id}] {rule.name}: {rule.description}",
                    )
                )
                score -= SEVERITY_PENALTY[rule.severity]

        score, approved = self._verdict(issues, score, {"critical", "high"})

        recommendations = [
            text
            for prefix, text in _RULE_RECOMMENDATIONS.items()
            if any(i.description.startswith(f"[{prefix}") for i in issues)
        ]
        if any(i.severity == "critical" for i in issues):
            recommendations.append("Critical compliance violations need immediate action.")

        return GovernanceReview(
            reviewer_id=self.role,
            reviewer_agent_id=self._context.agent_id,
            approved=approved,
            score=score,
            timestamp=datetime.now(timezone.utc),
            issues=issues,
            recommendations=recommendations,
        )

    def _insight_level(self, review: GovernanceReview) -> InsightLevel:
        if any(i.severity == "critical" for i in review.issues):
            return InsightLevel.CRITICAL
        return InsightLevel.WARNING if review.score < 60 else InsightLevel.INFO


def _rounds(debate: DebateRecord) -> list[tuple[str, DebateRound]]:
    return [
        (name, getattr(debate, name))
        for name in _ROUND_NAMES
        if getattr(debate, name) is not None
    ]


def _qa_recommendations(issues: list[GovernanceIssue]) -> list[str]:
    types = {i.type for i in issues}
    recommendations = []
    if "quality" in types:
        recommendations.append("Deepen the analysis at each debate stage.")
    if "logic" in types:
        recommendations.append("Explicitly rebut or accept the opposing view.")
    if "data" in types:
        recommendations.append("Add supporting evidence to strengthen the claims.")
    if any(i.severity == "critical" for i in issues):
        recommendations.append("Critical quality issues found; rerun the debate.")
    return recommendations
