"""Process-wide holder of domain collections and the insight ring buffer."""

import copy
import dataclasses
from collections import deque
from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar

from ..errors import ValidationError
from ..logging_config import get_logger
from ..models import (
    BomDiffItem,
    BomWasteState,
    Insight,
    InsightDomain,
    InventoryState,
    ProfitabilityState,
    StocktakeAnomalyItem,
)

logger = get_logger(__name__)

SliceT = TypeVar("SliceT", BomWasteState, InventoryState, ProfitabilityState)


class IStateStore(Protocol):
    """Shared state read and written by agents."""

    def get_bom_waste_state(self) -> BomWasteState: ...

    def get_inventory_state(self) -> InventoryState: ...

    def get_profitability_state(self) -> ProfitabilityState: ...

    def update_inventory_state(self, **fields: Any) -> None: ...

    def update_anomaly(self, anomaly_id: str, **fields: Any) -> None: ...

    def add_insight(self, insight: Insight) -> None: ...

    def get_insights(
        self, domain: InsightDomain | None = None, limit: int = 20
    ) -> list[Insight]: ...


class StateStore:
    """Holds the bom/waste, inventory and profitability slices plus insights.

    Every getter hands out a copy; callers never hold references into the
    store. Each slice is mutated only through the store's methods.
    """

    def __init__(self, max_insights: int = 100):
        self._max_insights = max_insights
        self._bom_waste = BomWasteState()
        self._inventory = InventoryState()
        self._profitability = ProfitabilityState()
        # Newest first; appendleft evicts from the right when full
        self._insights: deque[Insight] = deque(maxlen=max_insights)

    @property
    def max_insights(self) -> int:
        return self._max_insights

    # BOM / waste
    def get_bom_waste_state(self) -> BomWasteState:
        return _copy_slice(self._bom_waste)

    def update_bom_waste_state(self, **fields: Any) -> None:
        self._bom_waste = _merge(self._bom_waste, fields)

    def update_bom_item(self, item_id: str, **fields: Any) -> None:
        """Replace one BOM line by id; unknown ids are ignored."""
        _update_item(self._bom_waste.bom_items, item_id, fields)

    # Inventory
    def get_inventory_state(self) -> InventoryState:
        return _copy_slice(self._inventory)

    def update_inventory_state(self, **fields: Any) -> None:
        self._inventory = _merge(self._inventory, fields)

    def update_anomaly(self, anomaly_id: str, **fields: Any) -> None:
        """Replace one stocktake anomaly by id; unknown ids are ignored."""
        _update_item(self._inventory.anomalies, anomaly_id, fields)

    # Profitability
    def get_profitability_state(self) -> ProfitabilityState:
        return _copy_slice(self._profitability)

    def update_profitability_state(self, **fields: Any) -> None:
        self._profitability = _merge(self._profitability, fields)

    # Insights
    def add_insight(self, insight: Insight) -> None:
        """Insert newest-first, evicting the oldest beyond capacity."""
        self._insights.appendleft(insight)

    def get_insights(
        self, domain: InsightDomain | str | None = None, limit: int = 20
    ) -> list[Insight]:
        """Newest insights, optionally restricted to one domain."""
        if limit <= 0:
            return []
        result = []
        for insight in self._insights:
            if domain is not None and insight.domain != domain:
                continue
            result.append(copy.copy(insight))
            if len(result) >= limit:
                break
        return result

    def get_insight_by_id(self, insight_id: str) -> Insight | None:
        for insight in self._insights:
            if insight.id == insight_id:
                return copy.copy(insight)
        return None

    def insight_count(self) -> int:
        return len(self._insights)

    # Sync
    def get_all_state(self) -> dict[str, Any]:
        """Read-only snapshot of every slice plus the 20 newest insights."""
        return {
            "bom_waste": self.get_bom_waste_state(),
            "inventory": self.get_inventory_state(),
            "profitability": self.get_profitability_state(),
            "insights": self.get_insights(limit=20),
        }

    def load_snapshot(
        self,
        *,
        bom_items: list[BomDiffItem] | None = None,
        waste_trend: list | None = None,
        inventory_items: list | None = None,
        anomalies: list[StocktakeAnomalyItem] | None = None,
        order_suggestions: list | None = None,
        profit_trend: list | None = None,
        top_profit_items: list | None = None,
        bottom_profit_items: list | None = None,
    ) -> None:
        """Bulk-load collections; only slices that receive data are touched."""
        bom = _present(bom_items=bom_items, waste_trend=waste_trend)
        if bom:
            self.update_bom_waste_state(**bom)

        inventory = _present(
            inventory_items=inventory_items,
            anomalies=anomalies,
            order_suggestions=order_suggestions,
        )
        if inventory:
            self.update_inventory_state(**inventory)

        profitability = _present(
            profit_trend=profit_trend,
            top_profit_items=top_profit_items,
            bottom_profit_items=bottom_profit_items,
        )
        if profitability:
            self.update_profitability_state(**profitability)

        logger.info(
            "Loaded state snapshot: %s",
            ", ".join(sorted({**bom, **inventory, **profitability})),
        )

    def clear(self) -> None:
        self._bom_waste = BomWasteState()
        self._inventory = InventoryState()
        self._profitability = ProfitabilityState()
        self._insights.clear()


def _present(**fields: Any) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


def _copy_slice(state: SliceT) -> SliceT:
    """Shallow copy: a new slice object with new lists of the same items."""
    values = {
        f.name: list(getattr(state, f.name))
        if isinstance(getattr(state, f.name), list)
        else getattr(state, f.name)
        for f in dataclasses.fields(state)
    }
    return type(state)(**values)


def _merge(state: SliceT, fields: dict[str, Any]) -> SliceT:
    names = {f.name for f in dataclasses.fields(state)} - {"last_analysis"}
    unknown = set(fields) - names
    if unknown:
        raise ValidationError(
            f"Unknown {type(state).__name__} fields: {', '.join(sorted(unknown))}"
        )
    # Own the incoming lists so later caller mutations do not leak in
    owned = {k: list(v) if isinstance(v, list) else v for k, v in fields.items()}
    return dataclasses.replace(
        state, **owned, last_analysis=datetime.now(timezone.utc)
    )


def _update_item(items: list, item_id: str, fields: dict[str, Any]) -> None:
    for index, item in enumerate(items):
        if item.id == item_id:
            try:
                items[index] = dataclasses.replace(item, **fields)
            except TypeError as e:
                raise ValidationError(str(e)) from e
            return
