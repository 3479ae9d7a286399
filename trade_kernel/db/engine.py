"""
Module: trade_kernel.db.engine
Responsibility: Process-wide SQLAlchemy engine for reading the stock ledger,
    plus ``session_scope`` for callers that build a ``StockLedgerSelector``.
Architecture position: Kernel > DB.

Invariants enforced:
    - One engine per process, replaced only through ``init_engine_from_url``
      or ``reset_engine``.
    - ``session_scope`` always closes its session and rolls back on error.

Failure modes:
    - RuntimeError when a session is requested before ``init_engine_from_url``.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from trade_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 5,
    pool_timeout: int = 10,
) -> Engine:
    """Create the ledger engine.

    SQLite gets one shared connection so that an in-memory database is
    visible to every session and preview worker thread.  Other backends use
    a pre-pinged pool; ``pool_timeout`` bounds how long a preview waits for
    a connection before the ledger counts as unavailable.
    """
    global _engine, _sessions

    reset_engine()
    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            pool_timeout=pool_timeout,
            pool_pre_ping=True,
        )

    _engine = engine
    _sessions = sessionmaker(bind=engine, expire_on_commit=False)
    logger.info("ledger_engine_initialized", extra={"backend": backend, "echo": echo})
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Ledger engine not initialized; call init_engine_from_url() first")
    return _engine


def get_session() -> Session:
    if _sessions is None:
        raise RuntimeError("Ledger engine not initialized; call init_engine_from_url() first")
    return _sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for one unit of ledger reads.

    Usage:
        with session_scope() as session:
            ledger = StockLedgerSelector(session)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("ledger_session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the ledger tables (tests and local setup; production schema is the inventory system's)."""
    from trade_kernel.db.base import Base
    from trade_kernel.models import inventory_batch  # noqa: F401

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    from trade_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose of the current engine, if any."""
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None
