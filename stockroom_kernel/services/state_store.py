"""
StateStore / StateRepository -- durable mirror of ``InventoryState``.

Responsibility:
    ``StateStore`` is a namespaced key/value store over the
    ``stockroom_state`` table.  ``StateRepository`` builds an
    ``InventoryState`` from it (seeding documented defaults for keys that
    were never written) and persists named stores after each mutation.

Architecture position:
    Kernel > Services.  Depends on db/ for the table and session scope and
    on db.codec for record conversion.

Invariants enforced:
    - ``persist(state, *keys)`` writes every requested key inside ONE
      ``session_scope``: either all of them land or none do, so products
      and transactions are never durably out of step with each other.
    - The in-memory state is never rolled back by a failed write.

Failure modes:
    - ``PersistenceError`` wraps any ``SQLAlchemyError`` raised while
      reading or writing.  The caller keeps its in-memory state and may
      call ``persist`` again.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from stockroom_kernel.db import codec
from stockroom_kernel.db.engine import session_scope
from stockroom_kernel.db.models import StateEntry
from stockroom_kernel.domain.clock import Clock, SystemClock
from stockroom_kernel.domain.models import User, UserRole
from stockroom_kernel.domain.permissions import ADMIN_PERMISSIONS
from stockroom_kernel.exceptions import PersistenceError
from stockroom_kernel.logging_config import get_logger
from stockroom_kernel.state import (
    KEY_APP_CONFIG,
    KEY_CURRENT_USER,
    KEY_DEPARTMENTS,
    KEY_FORM_CONFIG,
    KEY_INDENTS,
    KEY_PRODUCTS,
    KEY_TRANSACTIONS,
    KEY_USERS,
    InventoryState,
)

if TYPE_CHECKING:
    from stockroom_config.loader import StockroomDefaults

logger = get_logger("services.state_store")


class StateStore:
    """Key/value access to the ``stockroom_state`` table."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory

    def read(self, key: str) -> Any | None:
        """Decoded JSON value stored under ``key``, or None if absent."""
        try:
            with session_scope(self._session_factory) as session:
                entry = session.get(StateEntry, key)
                text = entry.value if entry is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError([key], str(exc)) from exc
        return codec.loads(text) if text is not None else None

    def keys(self) -> list[str]:
        try:
            with session_scope(self._session_factory) as session:
                return list(session.scalars(select(StateEntry.key).order_by(StateEntry.key)))
        except SQLAlchemyError as exc:
            raise PersistenceError([], str(exc)) from exc

    def write_many(self, values: dict[str, Any]) -> None:
        """Write all ``values`` in one database transaction."""
        keys = list(values)
        try:
            with session_scope(self._session_factory) as session:
                for key, value in values.items():
                    session.merge(StateEntry(key=key, value=codec.dumps(value)))
        except SQLAlchemyError as exc:
            logger.error("state_write_failed", extra={"keys": keys, "error": str(exc)})
            raise PersistenceError(keys, str(exc)) from exc
        logger.debug("state_written", extra={"keys": keys})

    def delete(self, *keys: str) -> None:
        try:
            with session_scope(self._session_factory) as session:
                session.execute(delete(StateEntry).where(StateEntry.key.in_(keys)))
        except SQLAlchemyError as exc:
            raise PersistenceError(list(keys), str(exc)) from exc
        logger.debug("state_deleted", extra={"keys": list(keys)})


# Store key -> (state -> JSON value).
_ENCODERS: dict[str, Callable[[InventoryState], Any]] = {
    KEY_PRODUCTS: lambda s: [codec.product_to_record(p) for p in s.products],
    KEY_TRANSACTIONS: lambda s: [codec.transaction_to_record(t) for t in s.transactions],
    KEY_INDENTS: lambda s: [codec.indent_to_record(i) for i in s.indents],
    KEY_USERS: lambda s: [codec.user_to_record(u) for u in s.users],
    KEY_DEPARTMENTS: lambda s: list(s.departments),
    KEY_FORM_CONFIG: lambda s: codec.form_config_to_record(s.form_config),
    KEY_APP_CONFIG: lambda s: codec.app_config_to_record(s.app_config),
}


class StateRepository:
    """
    Loads and persists ``InventoryState``.

    Contract:
        ``load()`` returns a fully populated state.  Absent keys take the
        documented defaults: empty products/transactions/indents, the
        configured department list, form and app config, and a single
        administrator holding every permission.  Seeded keys are written
        back immediately.
    """

    def __init__(
        self,
        store: StateStore,
        defaults: StockroomDefaults,
        clock: Clock | None = None,
    ):
        self._store = store
        self._defaults = defaults
        self._clock = clock or SystemClock()

    @property
    def store(self) -> StateStore:
        return self._store

    def _seed_admin(self, created_at: datetime) -> User:
        admin = self._defaults.seed_admin
        return User(
            id=admin.id,
            username=admin.username,
            password=admin.password,
            name=admin.name,
            department=admin.department,
            role=UserRole.ADMIN,
            permissions=ADMIN_PERMISSIONS,
            created_at=created_at,
        )

    def load(self) -> InventoryState:
        state = InventoryState()
        seeded: list[str] = []

        def read(key: str, decode: Callable[[Any], Any], default: Callable[[], Any]) -> Any:
            raw = self._store.read(key)
            if raw is None:
                seeded.append(key)
                return default()
            return decode(raw)

        state.products = read(
            KEY_PRODUCTS, lambda raw: [codec.product_from_record(r) for r in raw], list
        )
        state.transactions = read(
            KEY_TRANSACTIONS, lambda raw: [codec.transaction_from_record(r) for r in raw], list
        )
        state.indents = read(
            KEY_INDENTS, lambda raw: [codec.indent_from_record(r) for r in raw], list
        )
        state.users = read(
            KEY_USERS,
            lambda raw: [codec.user_from_record(r) for r in raw],
            lambda: [self._seed_admin(self._clock.now())],
        )
        state.departments = read(
            KEY_DEPARTMENTS, list, lambda: list(self._defaults.departments)
        )
        state.form_config = read(
            KEY_FORM_CONFIG, codec.form_config_from_record, lambda: self._defaults.form_config
        )
        state.app_config = read(
            KEY_APP_CONFIG, codec.app_config_from_record, lambda: self._defaults.app_config
        )
        session_user = self._store.read(KEY_CURRENT_USER)
        state.current_user = (
            codec.user_from_record(session_user) if session_user is not None else None
        )

        if seeded:
            self.persist(state, *seeded)
        logger.info(
            "state_loaded",
            extra={
                "products": len(state.products),
                "transactions": len(state.transactions),
                "indents": len(state.indents),
                "users": len(state.users),
                "seeded_keys": seeded,
            },
        )
        return state

    def persist(self, state: InventoryState, *keys: str) -> None:
        """
        Write the named stores of ``state`` atomically.

        ``KEY_CURRENT_USER`` is written when someone is logged in and
        removed otherwise (in its own transaction, after the others).
        """
        values = {key: _ENCODERS[key](state) for key in keys if key in _ENCODERS}
        if KEY_CURRENT_USER in keys and state.current_user is not None:
            values[KEY_CURRENT_USER] = codec.user_to_record(state.current_user)
        if values:
            self._store.write_many(values)
        if KEY_CURRENT_USER in keys and state.current_user is None:
            self._store.delete(KEY_CURRENT_USER)
