"""Inventory domain worker: safety stock, stocktake anomalies, ordering."""

import dataclasses
from typing import Any

from ..errors import ProcessingError, ValidationError
from ..llm import IContentGenerator
from ..logging_config import get_logger
from ..models import (
    CoachingFeedback,
    CoachingMetric,
    InsightDomain,
    InsightLevel,
    StocktakeAnomalyItem,
    Task,
    TaskResult,
    round_half_up,
)
from ..storage.serializer import to_jsonable
from .runtime import AgentContext

logger = get_logger(__name__)

INVENTORY_AGENT_ID = "inventory-agent"

MAX_PREDICTIONS = 5
HIGH_ANOMALY_SCORE = 70
CRITICAL_ANOMALY_SCORE = 90
FALLBACK_EXPECTED_RATIO = 0.95

_TREND_WORDS = {"up": "increasing", "down": "decreasing"}


class InventoryAgent:
    """Watches the inventory slice and publishes stock insights."""

    agent_id = INVENTORY_AGENT_ID

    def __init__(
        self,
        context: AgentContext,
        content_generator: IContentGenerator | None = None,
    ):
        self._context = context
        self._content = content_generator

        self.anomaly_threshold = 10.0  # percent variance between system and count
        self.prediction_confidence = 0.85

    def get_capabilities(self) -> list[str]:
        return [
            "inventory_monitoring",
            "safety_stock_calculation",
            "stocktake_anomaly_detection",
            "demand_forecasting",
            "order_suggestion",
        ]

    async def process(self, task: Task) -> TaskResult:
        handlers = {
            "analyze_safety_stock": self.analyze_safety_stock,
            "detect_stocktake_anomalies": self.detect_stocktake_anomalies,
            "generate_order_suggestions": self.generate_order_suggestions,
            "generate_insight": self.generate_insight,
        }
        handler = handlers.get(task.type)
        if handler is None:
            raise ProcessingError(f"Unknown task type: {task.type}")

        output = await handler()
        return TaskResult(
            task_id=task.id, agent_id=self._context.agent_id, success=True, output=output
        )

    async def analyze_safety_stock(self) -> dict[str, int]:
        items = self._context.state_store.get_inventory_state().inventory_items
        critical = [i for i in items if i.status == "critical"]
        warning = [i for i in items if i.status == "warning"]

        if critical:
            names = ", ".join(i.material_name for i in critical[:3])
            await self._context.publish_insight(
                InsightDomain.INVENTORY,
                f"Stock shortage: {len(critical)} items",
                f"{names} are below safety stock.",
                highlight=f"Stock runs out in {critical[0].days_remaining} days",
                level=InsightLevel.CRITICAL,
                confidence=0.95,
                data=to_jsonable(critical),
                suggested_actions=[
                    "Place emergency orders",
                    "Review substitute materials",
                    "Adjust the production schedule",
                ],
            )
        elif warning:
            await self._context.publish_insight(
                InsightDomain.INVENTORY,
                f"Stock watch: {len(warning)} items",
                "Some items are close to their safety stock level.",
                level=InsightLevel.WARNING,
                confidence=0.9,
                data=to_jsonable(warning[:5]),
                suggested_actions=["Review the order plan"],
            )

        return {
            "critical_count": len(critical),
            "warning_count": len(warning),
            "normal_count": len(items) - len(critical) - len(warning),
        }

    async def detect_stocktake_anomalies(self) -> dict[str, Any]:
        """Fill in expected quantities for the largest stocktake variances.

        Only anomalies whose variance reaches the anomaly threshold and whose
        material is tracked in inventory are predicted, at most five per run.
        """
        state = self._context.state_store.get_inventory_state()
        if not state.anomalies:
            return {"message": "No anomalies to process"}

        usage = {i.material_code: i for i in state.inventory_items}
        candidates = [
            a
            for a in state.anomalies
            if a.material_code in usage and self._variance_percent(a) >= self.anomaly_threshold
        ][:MAX_PREDICTIONS]

        processed = []
        for anomaly in candidates:
            item = usage[anomaly.material_code]
            expected_qty, reasoning = await self._predict(
                anomaly, item.avg_daily_usage, _TREND_WORDS.get(item.trend, "stable")
            )
            self._context.state_store.update_anomaly(
                anomaly.id, ai_expected_qty=expected_qty, reason=reasoning
            )
            processed.append(
                dataclasses.replace(anomaly, ai_expected_qty=expected_qty, reason=reasoning)
            )

        high = [a for a in processed if a.anomaly_score >= HIGH_ANOMALY_SCORE]
        if high:
            top = high[0]
            await self._context.publish_insight(
                InsightDomain.INVENTORY,
                f"Stocktake anomalies: {len(high)} items",
                "Large gaps were found between system and counted stock.",
                highlight=f"Largest gap: {abs(top.system_qty - top.counted_qty):g} units",
                level=(
                    InsightLevel.CRITICAL
                    if top.anomaly_score >= CRITICAL_ANOMALY_SCORE
                    else InsightLevel.WARNING
                ),
                confidence=self.prediction_confidence,
                data=to_jsonable(high),
                suggested_actions=[
                    "Recount the affected locations",
                    "Review receiving and issue records",
                    "Investigate loss or damage",
                ],
            )

        return {"processed_count": len(processed), "high_anomaly_count": len(high)}

    async def generate_order_suggestions(self) -> dict[str, int]:
        suggestions = self._context.state_store.get_inventory_state().order_suggestions
        urgent = [s for s in suggestions if s.urgency == "high"]

        if urgent:
            total_cost = sum(s.estimated_cost for s in urgent)
            names = ", ".join(s.material_name for s in urgent[:3])
            await self._context.publish_insight(
                InsightDomain.INVENTORY,
                f"Urgent orders needed: {len(urgent)}",
                f"{names} need to be ordered.",
                highlight=f"Estimated order value: {total_cost:,.0f}",
                level=InsightLevel.WARNING,
                confidence=0.9,
                data=to_jsonable(urgent),
                suggested_actions=["Create purchase orders", "Contact suppliers"],
            )

        return {"total_suggestions": len(suggestions), "urgent_count": len(urgent)}

    async def generate_insight(self) -> dict[str, Any]:
        """Overall inventory health; warns when over 10% of items are critical."""
        items = self._context.state_store.get_inventory_state().inventory_items
        count = len(items) or 1
        critical_rate = sum(1 for i in items if i.status == "critical") / count
        avg_days_remaining = sum(i.days_remaining for i in items) / count

        published = critical_rate > 0.1
        if published:
            await self._context.publish_insight(
                InsightDomain.INVENTORY,
                "Inventory health warning",
                f"{round_half_up(critical_rate * 100)}% of items are at a critical level.",
                highlight=f"Average days remaining: {round_half_up(avg_days_remaining)}",
                level=InsightLevel.WARNING,
                confidence=0.85,
                data={"critical_rate": critical_rate, "avg_days_remaining": avg_days_remaining},
                suggested_actions=["Revisit the overall order plan"],
            )

        return {"generated": published, "critical_rate": critical_rate}

    async def apply_coaching(self, feedback: CoachingFeedback) -> None:
        logger.info("Inventory agent applying coaching for %s", feedback.metric.value)

        if feedback.metric == CoachingMetric.ACCURACY:
            self.prediction_confidence = max(self.prediction_confidence * 0.95, 0.6)
            logger.info("Prediction confidence now %.3f", self.prediction_confidence)
        elif feedback.metric == CoachingMetric.USER_ACCEPTANCE:
            self.anomaly_threshold = min(self.anomaly_threshold + 2, 25)
            logger.info("Anomaly threshold now %s%%", self.anomaly_threshold)

        self._context.record_coaching(
            [
                f"prediction_confidence: {self.prediction_confidence}",
                f"anomaly_threshold: {self.anomaly_threshold}",
            ]
        )

    async def _predict(
        self, anomaly: StocktakeAnomalyItem, avg_daily_usage: float, trend: str
    ) -> tuple[float, str]:
        if self._content is not None:
            try:
                prediction = await self._content.predict_inventory(
                    anomaly.material_name, anomaly.system_qty, avg_daily_usage, trend
                )
                return prediction["expected_qty"], prediction["reasoning"]
            except (ValidationError, RuntimeError) as e:
                logger.warning("Prediction failed for %s: %s", anomaly.material_code, e)

        return (
            round_half_up(anomaly.system_qty * FALLBACK_EXPECTED_RATIO),
            "Estimated from the system quantity (no model prediction)",
        )

    @staticmethod
    def _variance_percent(anomaly: StocktakeAnomalyItem) -> float:
        if not anomaly.system_qty:
            return 100.0 if anomaly.counted_qty else 0.0
        return abs(anomaly.system_qty - anomaly.counted_qty) / abs(anomaly.system_qty) * 100
