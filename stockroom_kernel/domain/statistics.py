"""
Derived Statistics (``stockroom_kernel.domain.statistics``).

Responsibility
--------------
Aggregates recomputed from the currently visible products and transactions:
dashboard counters, ledger totals, per-category analytics, and the cost
analysis series (movement value = quantity x price snapshot).

Architecture
------------
Layer: **Kernel domain** -- pure functions.  Nothing here is persisted;
every value is derived on demand from ``InventoryState`` so it can never
drift from the stores it summarises.

Invariants
----------
- Empty inputs yield zero-valued results; no function raises on an empty set.
- All arithmetic uses ``Decimal``.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence

from stockroom_kernel.domain.models import ZERO, MovementType, Product, Transaction


@dataclass(frozen=True)
class InventoryStats:
    """Dashboard counters for a product subset."""
    total_quantity: Decimal = ZERO
    low_stock_count: int = 0
    total_value: Decimal = ZERO
    category_count: int = 0
    total_received: Decimal = ZERO
    total_issued: Decimal = ZERO
    product_count: int = 0


def compute_stats(products: Sequence[Product]) -> InventoryStats:
    """Recompute dashboard counters from ``products``."""
    return InventoryStats(
        total_quantity=sum((p.quantity for p in products), ZERO),
        low_stock_count=sum(1 for p in products if p.is_low_stock),
        total_value=sum((p.stock_value for p in products), ZERO),
        category_count=len({p.category for p in products}),
        total_received=sum((p.total_received for p in products), ZERO),
        total_issued=sum((p.total_issued for p in products), ZERO),
        product_count=len(products),
    )


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    quantity: Decimal
    value: Decimal


def category_breakdown(products: Iterable[Product]) -> list[CategoryTotal]:
    """Quantity and stock value per category, in first-seen order."""
    totals: dict[str, tuple[Decimal, Decimal]] = {}
    for p in products:
        qty, value = totals.get(p.category, (ZERO, ZERO))
        totals[p.category] = (qty + p.quantity, value + p.stock_value)
    return [CategoryTotal(name, qty, value) for name, (qty, value) in totals.items()]


@dataclass(frozen=True)
class ThresholdPoint:
    name: str
    current: Decimal
    threshold: Decimal


def _short_name(name: str) -> str:
    return name[:8] + ".." if len(name) > 10 else name


def stock_vs_threshold(products: Sequence[Product], limit: int = 15) -> list[ThresholdPoint]:
    """Balance against minimum for the first ``limit`` products."""
    return [
        ThresholdPoint(_short_name(p.name), p.quantity, p.min_stock)
        for p in products[:limit]
    ]


# ---------------------------------------------------------------------------
# Cost analysis
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CostSummary:
    total_in: Decimal = ZERO
    total_out: Decimal = ZERO
    movement_count: int = 0

    @property
    def average_issue_value(self) -> Decimal:
        """Issue value spread over every movement in scope (0 when empty)."""
        if self.movement_count == 0:
            return ZERO
        return self.total_out / self.movement_count


def cost_summary(transactions: Sequence[Transaction]) -> CostSummary:
    return CostSummary(
        total_in=sum((t.value for t in transactions if t.type == MovementType.IN), ZERO),
        total_out=sum((t.value for t in transactions if t.type == MovementType.OUT), ZERO),
        movement_count=len(transactions),
    )


class TrendView(str, Enum):
    MONTHLY = "monthly"  # trailing six months
    YEARLY = "yearly"    # twelve months of the anchor's year
    DAILY = "daily"      # every day of the anchor's month


@dataclass
class CostPoint:
    label: str
    cost_in: Decimal = ZERO
    cost_out: Decimal = ZERO

    def add(self, transaction: Transaction) -> None:
        if transaction.type == MovementType.IN:
            self.cost_in += transaction.value
        else:
            self.cost_out += transaction.value


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def cost_trend(
    transactions: Iterable[Transaction],
    view: TrendView,
    anchor: date,
) -> list[CostPoint]:
    """
    Receipt and issue value bucketed for a chart.

    Args:
        transactions: Movements already filtered to the department/product.
        view: Bucketing scheme.
        anchor: "Today" for MONTHLY; the selected year or month otherwise.
    """
    if view == TrendView.MONTHLY:
        buckets: dict[tuple[int, int], CostPoint] = {}
        for offset in range(-5, 1):
            y, m = _shift_month(anchor.year, anchor.month, offset)
            buckets[(y, m)] = CostPoint(calendar.month_abbr[m])
        for t in transactions:
            point = buckets.get((t.date.year, t.date.month))
            if point is not None:
                point.add(t)
        return list(buckets.values())

    if view == TrendView.YEARLY:
        points = [CostPoint(calendar.month_abbr[m]) for m in range(1, 13)]
        for t in transactions:
            if t.date.year == anchor.year:
                points[t.date.month - 1].add(t)
        return points

    days = calendar.monthrange(anchor.year, anchor.month)[1]
    points = [CostPoint(str(d)) for d in range(1, days + 1)]
    for t in transactions:
        if t.date.year == anchor.year and t.date.month == anchor.month:
            points[t.date.day - 1].add(t)
    return points


@dataclass(frozen=True)
class ConsumptionRank:
    product_id: str
    name: str
    category: str
    value: Decimal
    quantity: Decimal


def top_consumed_products(
    transactions: Iterable[Transaction],
    products: Iterable[Product],
    limit: int = 10,
) -> list[ConsumptionRank]:
    """Products ranked by issued value, highest first."""
    categories = {p.id: p.category for p in products}
    ranks: dict[str, list] = {}
    for t in transactions:
        if t.type != MovementType.OUT:
            continue
        entry = ranks.setdefault(
            t.product_id,
            [t.product_name, categories.get(t.product_id, "General"), ZERO, ZERO],
        )
        entry[2] += t.value
        entry[3] += t.quantity
    ranked = [
        ConsumptionRank(pid, name, category, value, qty)
        for pid, (name, category, value, qty) in ranks.items()
    ]
    ranked.sort(key=lambda r: r.value, reverse=True)
    return ranked[:limit]


def category_spending(
    transactions: Iterable[Transaction],
    products: Iterable[Product],
) -> list[tuple[str, Decimal]]:
    """Issued value per product category, highest first."""
    categories = {p.id: p.category for p in products}
    spend: dict[str, Decimal] = {}
    for t in transactions:
        if t.type != MovementType.OUT:
            continue
        category = categories.get(t.product_id, "Unknown")
        spend[category] = spend.get(category, ZERO) + t.value
    return sorted(spend.items(), key=lambda item: item[1], reverse=True)
