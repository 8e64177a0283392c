"""
Pytest fixtures for the stockroom test suite.

Provides:
- In-memory SQLite engine and a StateStore bound to it
- DeterministicClock
- A seeded InventoryState plus every service bound to it
- Administrator and department-clerk accounts
- Captured structured logs
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from stockroom_config.loader import load_defaults
from stockroom_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from stockroom_kernel.domain.clock import DeterministicClock
from stockroom_kernel.domain.models import Unit, User, UserRole
from stockroom_kernel.domain.permissions import Permission
from stockroom_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stockroom_kernel.services import (
    AdminService,
    IndentService,
    LedgerService,
    StateRepository,
    StateStore,
    UserService,
)

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stockroom_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.apply_movement(...)
            logs = captured_logs()
            assert any(r["message"] == "ledger_movement_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stockroom_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory database per test."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def state_store(db_engine) -> StateStore:
    return StateStore(get_session_factory())


# =============================================================================
# Clock / defaults
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def defaults():
    return load_defaults()


# =============================================================================
# State and services
# =============================================================================


@pytest.fixture
def repository(state_store, defaults, deterministic_clock) -> StateRepository:
    return StateRepository(state_store, defaults, deterministic_clock)


@pytest.fixture
def state(repository):
    """Freshly seeded state: no products, one administrator."""
    return repository.load()


@pytest.fixture
def admin(state) -> User:
    return next(u for u in state.users if u.role == UserRole.ADMIN)


@pytest.fixture
def ledger(state, repository, deterministic_clock) -> LedgerService:
    return LedgerService(state, repository, deterministic_clock)


@pytest.fixture
def indent_service(state, repository, deterministic_clock) -> IndentService:
    return IndentService(state, repository, deterministic_clock)


@pytest.fixture
def user_service(state, repository, deterministic_clock) -> UserService:
    return UserService(state, repository, deterministic_clock)


@pytest.fixture
def admin_service(state, repository) -> AdminService:
    return AdminService(state, repository)


@pytest.fixture
def make_user(state):
    """Factory fixture for accounts that are added to the state directly."""

    def _make(
        username: str = "clerk",
        department: str = "HR",
        permissions=(),
        role: UserRole = UserRole.USER,
    ) -> User:
        user = User(
            id=f"user-{username}",
            username=username,
            password="secret",
            name=username.title(),
            department=department,
            role=role,
            permissions=frozenset(permissions),
        )
        state.users.append(user)
        return user

    return _make


@pytest.fixture
def clerk(make_user) -> User:
    """HR storekeeper: can move stock and raise indents, no global access."""
    return make_user(
        "clerk",
        "HR",
        {
            Permission.INV_VIEW,
            Permission.INV_ADD,
            Permission.STOCK_IN,
            Permission.STOCK_OUT,
            Permission.IND_VIEW,
            Permission.IND_CREATE,
            Permission.DASHBOARD_VIEW,
        },
    )


@pytest.fixture
def register_product(ledger, admin):
    """Factory fixture registering a product through the ledger."""

    def _register(
        name: str = "Bolt M6",
        quantity="100",
        price="2",
        department: str = "Store",
        **kwargs,
    ):
        kwargs.setdefault("sku", f"SKU-{name.upper().replace(' ', '-')}")
        kwargs.setdefault("category", "Spare Parts")
        kwargs.setdefault("unit", Unit.PIECES)
        return ledger.register(
            admin,
            name=name,
            quantity=Decimal(str(quantity)),
            price=Decimal(str(price)),
            department=department,
            **kwargs,
        )

    return _register
