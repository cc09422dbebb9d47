"""Domain item collections held by the StateStore."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Trend = Literal["up", "down", "stable"]


@dataclass
class BomDiffItem:
    id: str
    sku_code: str
    sku_name: str
    std_qty: float
    actual_qty: float
    diff_percent: float
    anomaly_score: float
    cost_impact: float
    reasoning: str | None = None
    status: Literal["pending", "resolved", "updated"] = "pending"


@dataclass
class WasteTrendData:
    date: str
    waste_percent: float
    target_percent: float


@dataclass
class InventorySafetyItem:
    id: str
    material_code: str
    material_name: str
    current_stock: float
    safety_stock: float
    avg_daily_usage: float
    days_remaining: float
    status: Literal["normal", "warning", "critical"] = "normal"
    trend: Trend = "stable"


@dataclass
class StocktakeAnomalyItem:
    id: str
    material_code: str
    material_name: str
    location: str
    system_qty: float
    counted_qty: float
    ai_expected_qty: float
    anomaly_score: float
    reason: str = ""
    action_status: Literal["none", "adjusted", "recount_requested"] = "none"


@dataclass
class OrderSuggestion:
    id: str
    material_code: str
    material_name: str
    suggested_qty: float
    urgency: Literal["low", "medium", "high"]
    supplier: str
    estimated_cost: float


@dataclass
class ChannelProfitData:
    date: str
    channel: str
    revenue: float
    cost: float
    profit: float
    margin: float


@dataclass
class ProfitRankItem:
    rank: int
    sku_code: str
    sku_name: str
    total_profit: float
    margin: float
    trend: Trend = "stable"


@dataclass
class BomWasteState:
    bom_items: list[BomDiffItem] = field(default_factory=list)
    waste_trend: list[WasteTrendData] = field(default_factory=list)
    last_analysis: datetime | None = None


@dataclass
class InventoryState:
    inventory_items: list[InventorySafetyItem] = field(default_factory=list)
    anomalies: list[StocktakeAnomalyItem] = field(default_factory=list)
    order_suggestions: list[OrderSuggestion] = field(default_factory=list)
    last_analysis: datetime | None = None


@dataclass
class ProfitabilityState:
    profit_trend: list[ChannelProfitData] = field(default_factory=list)
    top_profit_items: list[ProfitRankItem] = field(default_factory=list)
    bottom_profit_items: list[ProfitRankItem] = field(default_factory=list)
    last_analysis: datetime | None = None
