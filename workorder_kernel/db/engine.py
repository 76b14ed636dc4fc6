"""
Module: workorder_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the entire system.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from workorder_modules (except create_tables, which asks the module
    ORM registry to load every model).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with a pre-pinged QueuePool.  Work
      order number uniqueness is enforced by a unique constraint, not by
      isolation level.
    - SQLite (tests, local tooling) shares a single connection through
      StaticPool so that in-memory databases survive across sessions.

Failure modes:
    - RuntimeError if get_engine/get_session called before
      init_engine_from_url().
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from workorder_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level _engine and _SessionFactory are initialized.
        All subsequent get_engine/get_session calls use this engine.
        A second call overwrites the first.

    Args:
        database_url: SQLAlchemy URL (postgresql+psycopg2://... or sqlite://...).
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        _engine = create_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        _engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "echo": echo,
        },
    )

    return _engine


def _factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    """The current engine.  Raises RuntimeError before initialization."""
    _factory()
    return _engine


def get_session() -> Session:
    """A new session bound to the current engine (``expire_on_commit=False``)."""
    return _factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on normal exit, roll back and re-raise on exception, always close.

    For callers that do not go through a module service, which owns its own
    transaction boundary::

        with session_scope() as session:
            VendorAccessService(session, settings).get_or_create_token(...)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every table registered by the module ORM registry."""
    from workorder_kernel.db.base import Base
    from workorder_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info(
        "tables_created",
        extra={"tables": [t.name for t in Base.metadata.sorted_tables]},
    )


def drop_tables() -> None:
    """Drop every table.  Tests only."""
    from workorder_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
