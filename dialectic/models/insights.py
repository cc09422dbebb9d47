"""Insight data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class InsightDomain(str, Enum):
    """Business domain an insight belongs to."""

    BOM = "bom"
    WASTE = "waste"
    INVENTORY = "inventory"
    PROFITABILITY = "profitability"
    GENERAL = "general"


class InsightLevel(str, Enum):
    """Severity of an insight."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class Insight:
    """A structured, agent-produced finding surfaced for human review."""

    id: str
    agent_id: str
    domain: InsightDomain
    title: str
    description: str
    timestamp: datetime
    level: InsightLevel = InsightLevel.INFO
    confidence: float = 0.8  # 0..1
    highlight: str | None = None
    data: Any = None
    actionable: bool = True
    suggested_actions: list[str] = field(default_factory=list)
