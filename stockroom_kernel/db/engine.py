"""
Module: stockroom_kernel.db.engine
Responsibility: Own the process-wide engine for the stockroom's key/value
    state table and hand out sessions bound to it.
Architecture position: Kernel > DB.  May import from db/base.py and db/models.py.
    MUST NOT import from services/ or domain/.

Invariants enforced:
    - At most one engine is live; re-initialising disposes the old one.
    - Snapshot writes run inside ``session_scope()``: all keys commit or
      none do.
    - ``sqlite:///:memory:`` shares one connection (StaticPool), otherwise
      each session would open its own empty database.

Failure modes:
    - RuntimeError from the accessors before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stockroom_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Stockroom database not opened. Call init_engine_from_url() first."


def _engine_options(database_url: str, echo: bool) -> dict:
    options: dict = {"echo": echo}
    if not database_url.startswith("sqlite"):
        options["pool_pre_ping"] = True
        return options
    options["connect_args"] = {"check_same_thread": False}
    if database_url == "sqlite://" or ":memory:" in database_url:
        options["poolclass"] = StaticPool
    return options


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Open the stockroom database.

    Args:
        database_url: Any SQLAlchemy URL; SQLite file or memory URLs are
            the usual choice (``sqlite:///stockroom.db``).
        echo: Emit SQL to the SQLAlchemy logger.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = create_engine(database_url, **_engine_options(database_url, echo))
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Commit on clean exit, roll back and re-raise otherwise.

    ``factory`` lets a repository hold its own sessionmaker instead of the
    module-level one.
    """
    session = factory() if factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the state table if it does not exist."""
    from stockroom_kernel.db.base import Base
    from stockroom_kernel.db import models  # noqa: F401 - register tables

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    from stockroom_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())
    logger.warning("tables_dropped")


def reset_engine() -> None:
    """Dispose and forget the engine (tests, reopening another database)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
