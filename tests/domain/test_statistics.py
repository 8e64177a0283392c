"""
Tests for derived statistics and cost analysis.

Covers:
- Dashboard counters, including the empty set
- Category breakdown and stock-vs-threshold series
- Cost totals, monthly/yearly/daily trend buckets
- Top consumed products and category spending
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from stockroom_kernel.domain.models import MovementType, Product, Transaction, Unit
from stockroom_kernel.domain.statistics import (
    InventoryStats,
    TrendView,
    category_breakdown,
    category_spending,
    compute_stats,
    cost_summary,
    cost_trend,
    stock_vs_threshold,
    top_consumed_products,
)


def _product(pid, category="Tools", quantity="10", price="2", min_stock="0",
             received=None, issued="0", name=None) -> Product:
    return Product(
        id=pid,
        name=name or f"Item {pid}",
        sku=pid,
        category=category,
        department="Store",
        unit=Unit.PIECES,
        price=Decimal(price),
        quantity=Decimal(quantity),
        total_received=Decimal(received or quantity),
        total_issued=Decimal(issued),
        min_stock=Decimal(min_stock),
    )


def _txn(tid, when, movement, qty, price="1", product_id="p1", name="Item p1") -> Transaction:
    return Transaction(
        id=tid,
        date=when,
        product_id=product_id,
        product_name=name,
        type=movement,
        quantity=Decimal(qty),
        department="Store",
        user="tester",
        price_at_time=Decimal(price),
    )


def _at(y, m, d=1) -> datetime:
    return datetime(y, m, d, 10, 0, tzinfo=timezone.utc)


class TestComputeStats:
    def test_empty_set_is_all_zero(self):
        assert compute_stats([]) == InventoryStats()
        stats = compute_stats([])
        assert stats.total_value == 0
        assert stats.low_stock_count == 0

    def test_counters(self):
        products = [
            _product("a", "Tools", quantity="10", price="2.50", min_stock="10", received="15", issued="5"),
            _product("b", "PPE", quantity="4", price="10"),
            _product("c", "Tools", quantity="0", price="99"),
        ]
        stats = compute_stats(products)
        assert stats.total_quantity == Decimal("14")
        assert stats.low_stock_count == 2  # a at its minimum, c at zero
        assert stats.total_value == Decimal("65.00")
        assert stats.category_count == 2
        assert stats.total_received == Decimal("19")
        assert stats.total_issued == Decimal("5")
        assert stats.product_count == 3


class TestAnalytics:
    def test_category_breakdown_first_seen_order(self):
        products = [
            _product("a", "Tools", quantity="2", price="3"),
            _product("b", "PPE", quantity="1", price="5"),
            _product("c", "Tools", quantity="4", price="1"),
        ]
        totals = category_breakdown(products)
        assert [(t.name, t.quantity, t.value) for t in totals] == [
            ("Tools", Decimal("6"), Decimal("10")),
            ("PPE", Decimal("1"), Decimal("5")),
        ]

    def test_stock_vs_threshold_truncates_names_and_limits(self):
        products = [_product(str(n), name="Hydraulic Pump Seal" if n == 0 else "Short") for n in range(20)]
        points = stock_vs_threshold(products)
        assert len(points) == 15
        assert points[0].name == "Hydrauli.."
        assert points[1].name == "Short"

    def test_ten_character_name_kept(self):
        points = stock_vs_threshold([_product("x", name="0123456789")])
        assert points[0].name == "0123456789"


class TestCostSummary:
    def test_in_and_out_values(self):
        txns = [
            _txn("t1", _at(2024, 3), MovementType.IN, "10", price="2"),
            _txn("t2", _at(2024, 3), MovementType.OUT, "3", price="2.5"),
            _txn("t3", _at(2024, 3), MovementType.OUT, "1", price="4"),
        ]
        summary = cost_summary(txns)
        assert summary.total_in == Decimal("20")
        assert summary.total_out == Decimal("11.5")
        assert summary.movement_count == 3

    def test_empty(self):
        summary = cost_summary([])
        assert summary.total_in == summary.total_out == 0
        assert summary.average_issue_value == 0


class TestCostTrend:
    def test_monthly_covers_trailing_six_months_across_year_end(self):
        txns = [
            _txn("old", _at(2023, 9), MovementType.IN, "100"),
            _txn("oct", _at(2023, 10, 5), MovementType.IN, "7", price="3"),
            _txn("feb", _at(2024, 2, 20), MovementType.OUT, "2", price="5"),
        ]
        points = cost_trend(txns, TrendView.MONTHLY, date(2024, 3, 15))
        assert [p.label for p in points] == ["Oct", "Nov", "Dec", "Jan", "Feb", "Mar"]
        assert points[0].cost_in == Decimal("21")
        assert points[4].cost_out == Decimal("10")
        assert sum(p.cost_in for p in points) == Decimal("21")

    def test_yearly_has_twelve_buckets_for_selected_year(self):
        txns = [
            _txn("a", _at(2024, 1), MovementType.IN, "1", price="10"),
            _txn("b", _at(2024, 12, 31), MovementType.OUT, "2", price="10"),
            _txn("c", _at(2023, 12), MovementType.OUT, "9", price="10"),
        ]
        points = cost_trend(txns, TrendView.YEARLY, date(2024, 6, 1))
        assert len(points) == 12
        assert points[0].label == "Jan"
        assert points[0].cost_in == Decimal("10")
        assert points[11].cost_out == Decimal("20")

    def test_daily_uses_days_of_month(self):
        txns = [_txn("a", _at(2024, 2, 29), MovementType.OUT, "1", price="4")]
        points = cost_trend(txns, TrendView.DAILY, date(2024, 2, 1))
        assert len(points) == 29
        assert points[-1].label == "29"
        assert points[-1].cost_out == Decimal("4")


class TestConsumption:
    def test_top_consumed_ranked_by_issue_value(self):
        products = [_product("p1", "Tools"), _product("p2", "PPE")]
        txns = [
            _txn("a", _at(2024, 3), MovementType.OUT, "1", price="5", product_id="p1"),
            _txn("b", _at(2024, 3), MovementType.OUT, "3", price="5", product_id="p2", name="Item p2"),
            _txn("c", _at(2024, 3), MovementType.OUT, "2", price="5", product_id="p1"),
            _txn("d", _at(2024, 3), MovementType.IN, "50", price="5", product_id="p1"),
            _txn("e", _at(2024, 3), MovementType.OUT, "1", price="1", product_id="gone", name="Deleted"),
        ]
        ranks = top_consumed_products(txns, products)
        assert [(r.product_id, r.value, r.quantity) for r in ranks] == [
            ("p1", Decimal("15"), Decimal("3")),
            ("p2", Decimal("15"), Decimal("3")),
            ("gone", Decimal("1"), Decimal("1")),
        ]
        assert ranks[2].category == "General"
        assert len(top_consumed_products(txns, products, limit=1)) == 1

    def test_category_spending(self):
        products = [_product("p1", "Tools"), _product("p2", "PPE")]
        txns = [
            _txn("a", _at(2024, 3), MovementType.OUT, "1", price="5", product_id="p1"),
            _txn("b", _at(2024, 3), MovementType.OUT, "4", price="5", product_id="p2"),
            _txn("c", _at(2024, 3), MovementType.OUT, "1", price="2", product_id="gone"),
        ]
        assert category_spending(txns, products) == [
            ("PPE", Decimal("20")),
            ("Tools", Decimal("5")),
            ("Unknown", Decimal("2")),
        ]
