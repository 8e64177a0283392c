"""
Application wiring.

``open_stockroom()`` is the process entry point: it configures logging,
opens the database, loads (or seeds) the state and hands back every
service bound to that one ``InventoryState``.  The read-side helpers below
combine the visibility filters with the view guards so a denied view
always yields its placeholder text instead of data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from stockroom_config.loader import StockroomDefaults, load_defaults
from stockroom_config.settings import Settings
from stockroom_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from stockroom_kernel.domain.clock import Clock, SystemClock
from stockroom_kernel.domain.models import ALL_DEPARTMENTS, Product, User
from stockroom_kernel.domain.permissions import View, ViewAccess, guard_view
from stockroom_kernel.domain.statistics import (
    CategoryTotal,
    ConsumptionRank,
    CostPoint,
    CostSummary,
    InventoryStats,
    ThresholdPoint,
    TrendView,
    category_breakdown,
    category_spending,
    compute_stats,
    cost_summary,
    cost_trend,
    stock_vs_threshold,
    top_consumed_products,
)
from stockroom_kernel.domain.visibility import (
    effective_department,
    filter_products,
    low_stock_products,
    matches_search,
    visible_products,
    visible_transactions,
)
from stockroom_kernel.logging_config import configure_logging, get_logger
from stockroom_kernel.services import (
    AdminService,
    IndentService,
    LedgerService,
    OverIssuePolicy,
    StateRepository,
    StateStore,
    UserService,
)
from stockroom_kernel.state import InventoryState
from stockroom_services.ai_advisor import InventoryAdvisor

logger = get_logger("app")


@dataclass
class Stockroom:
    state: InventoryState
    repository: StateRepository
    ledger: LedgerService
    indents: IndentService
    users: UserService
    admin: AdminService
    advisor: InventoryAdvisor
    clock: Clock = field(default_factory=SystemClock)


def build_stockroom(
    repository: StateRepository,
    settings: Settings,
    clock: Clock | None = None,
    advisor: InventoryAdvisor | None = None,
) -> Stockroom:
    """Load state through ``repository`` and bind the services to it."""
    clock = clock or SystemClock()
    state = repository.load()
    return Stockroom(
        state=state,
        repository=repository,
        ledger=LedgerService(
            state, repository, clock, OverIssuePolicy(settings.over_issue_policy)
        ),
        indents=IndentService(state, repository, clock),
        users=UserService(state, repository, clock),
        admin=AdminService(state, repository),
        advisor=advisor or InventoryAdvisor(settings),
        clock=clock,
    )


def open_stockroom(
    settings: Settings | None = None,
    defaults: StockroomDefaults | None = None,
    clock: Clock | None = None,
) -> Stockroom:
    settings = settings or Settings.from_env()
    configure_logging(level=settings.log_level)
    init_engine_from_url(settings.database_url)
    create_tables()
    store = StateStore(get_session_factory())
    repository = StateRepository(store, defaults or load_defaults(), clock)
    stockroom = build_stockroom(repository, settings, clock)
    logger.info(
        "stockroom_opened",
        extra={
            "over_issue_policy": settings.over_issue_policy,
            "ai_enabled": settings.ai_enabled,
        },
    )
    return stockroom


# ---------------------------------------------------------------------------
# Read views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DashboardView:
    access: ViewAccess
    department: str = ALL_DEPARTMENTS
    stats: InventoryStats = field(default_factory=InventoryStats)
    low_stock: tuple[Product, ...] = ()


def dashboard(
    state: InventoryState,
    user: User,
    selected_department: str | None = ALL_DEPARTMENTS,
    search: str | None = None,
) -> DashboardView:
    access = guard_view(user, View.DASHBOARD)
    department = effective_department(user, selected_department)
    if not access.allowed:
        return DashboardView(access=access, department=department)
    # Counters ignore the search box; only the low-stock list follows it.
    products = filter_products(state.products, department)
    return DashboardView(
        access=access,
        department=department,
        stats=compute_stats(products),
        low_stock=tuple(low_stock_products([p for p in products if matches_search(p, search)])),
    )


@dataclass(frozen=True)
class AnalyticsView:
    access: ViewAccess
    categories: tuple[CategoryTotal, ...] = ()
    thresholds: tuple[ThresholdPoint, ...] = ()


def analytics(
    state: InventoryState,
    user: User,
    selected_department: str | None = ALL_DEPARTMENTS,
) -> AnalyticsView:
    access = guard_view(user, View.ANALYTICS)
    if not access.allowed:
        return AnalyticsView(access=access)
    products = visible_products(state.products, user, selected_department)
    return AnalyticsView(
        access=access,
        categories=tuple(category_breakdown(products)),
        thresholds=tuple(stock_vs_threshold(products)),
    )


@dataclass(frozen=True)
class CostAnalysisView:
    access: ViewAccess
    summary: CostSummary = field(default_factory=CostSummary)
    trend: tuple[CostPoint, ...] = ()
    top_products: tuple[ConsumptionRank, ...] = ()
    category_spend: tuple[tuple[str, Decimal], ...] = ()


def cost_analysis(
    state: InventoryState,
    user: User,
    view: TrendView,
    anchor: date,
    selected_department: str | None = ALL_DEPARTMENTS,
    product_id: str | None = None,
) -> CostAnalysisView:
    access = guard_view(user, View.COST_ANALYSIS)
    if not access.allowed:
        return CostAnalysisView(access=access)
    transactions = visible_transactions(
        state.transactions, user, selected_department, product_id
    )
    return CostAnalysisView(
        access=access,
        summary=cost_summary(transactions),
        trend=tuple(cost_trend(transactions, view, anchor)),
        top_products=tuple(top_consumed_products(transactions, state.products)),
        category_spend=tuple(category_spending(transactions, state.products)),
    )
