"""Structured content generation on top of an LLM provider."""

import json
import re
from typing import Any, Protocol

from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import DebateContent, TrioRole
from .llm_provider import ILLMProvider

logger = get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

_POSITION_SYSTEM = (
    "You are one voice in a structured business debate. "
    "Answer with a single JSON object and nothing else."
)

_ROLE_FOCUS = {
    TrioRole.OPTIMIST: "opportunities, growth and creative alternatives",
    TrioRole.PESSIMIST: "constraints, risks and likely failure modes",
    TrioRole.MEDIATOR: "a balanced, actionable conclusion that integrates both views",
}


class IContentGenerator(Protocol):
    """Produces debate positions and predictions from prompts."""

    async def generate_position(self, role: TrioRole, prompt: str) -> DebateContent:
        ...

    async def predict_inventory(
        self,
        material_name: str,
        current_stock: float,
        avg_daily_usage: float,
        recent_trend: str = "stable",
    ) -> dict[str, Any]:
        ...


def extract_json(text: str) -> dict[str, Any]:
    """Pull the outermost JSON object out of free-form completion text."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ValidationError("No JSON object in model output")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Malformed JSON in model output: {e}") from e
    if not isinstance(parsed, dict):
        raise ValidationError("Model output JSON is not an object")
    return parsed


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class ContentGenerator:
    """Turns LLM completions into DebateContent and inventory predictions.

    Malformed model output raises ValidationError; callers decide on a
    fallback.
    """

    def __init__(self, llm_provider: ILLMProvider, max_tokens: int = 1024):
        self._llm = llm_provider
        self._max_tokens = max_tokens

    async def generate_position(self, role: TrioRole, prompt: str) -> DebateContent:
        role = TrioRole(role)
        system = f"{_POSITION_SYSTEM} Focus on {_ROLE_FOCUS[role]}."
        text = await self._llm.complete(
            messages=[{"role": "user", "content": prompt}],
            system=system,
            max_tokens=self._max_tokens,
        )
        parsed = extract_json(text)

        position = parsed.get("position")
        reasoning = parsed.get("reasoning")
        if not position or not reasoning:
            raise ValidationError("Position and reasoning are required")

        try:
            confidence = float(parsed.get("confidence", 70))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid confidence: {parsed.get('confidence')!r}") from e

        evidence = parsed.get("evidence")
        actions = parsed.get("suggested_actions", parsed.get("suggestedActions"))

        return DebateContent(
            position=str(position),
            reasoning=str(reasoning),
            evidence=list(evidence) if isinstance(evidence, list) else [],
            confidence=_clamp(confidence, 0, 100),
            suggested_actions=[str(a) for a in actions] if isinstance(actions, list) else [],
        )

    async def predict_inventory(
        self,
        material_name: str,
        current_stock: float,
        avg_daily_usage: float,
        recent_trend: str = "stable",
    ) -> dict[str, Any]:
        """Ask the model for the expected on-hand quantity of one material."""
        prompt = (
            "You are an inventory forecasting specialist. Estimate the quantity "
            "that should be on hand for this material.\n\n"
            f"Material: {material_name}\n"
            f"Current stock: {current_stock}\n"
            f"Average daily usage: {avg_daily_usage}\n"
            f"Recent trend: {recent_trend}\n\n"
            'Reply with JSON: {"expected_qty": number, "reasoning": "explanation"}'
        )
        text = await self._llm.complete(
            messages=[{"role": "user", "content": prompt}],
            max_tokens=512,
        )
        parsed = extract_json(text)

        raw_qty = parsed.get("expected_qty", parsed.get("expectedQty"))
        try:
            expected_qty = float(raw_qty)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid expected quantity: {raw_qty!r}") from e

        logger.debug("Predicted %s for %s", expected_qty, material_name)
        return {
            "expected_qty": expected_qty,
            "reasoning": str(parsed.get("reasoning") or ""),
        }
