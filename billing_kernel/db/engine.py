"""
Module: billing_kernel.db.engine
Responsibility: Owns the process-wide engine and session factory, and the
    commit-or-rollback scope used by callers outside the billing facade.
Architecture position: Kernel > DB.  Imports the models package lazily (in
    create_tables/drop_tables) so every table is registered on Base.metadata.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; correctness comes from explicit
      SELECT ... FOR UPDATE locks taken by the services.
    - On SQLite, pysqlite's implicit transaction handling is switched off and
      BEGIN is emitted by SQLAlchemy, so savepoints nest properly.
    - An in-memory SQLite database is shared through a single connection.

Failure modes:
    - RuntimeError when a session or the engine is requested before
      init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from billing_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_IN_MEMORY_SQLITE = ("sqlite://", "sqlite+pysqlite://")


def _sqlite_engine(url: str, echo: bool) -> Engine:
    options: dict = {"connect_args": {"check_same_thread": False}}
    if url in _IN_MEMORY_SQLITE or ":memory:" in url:
        options["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **options)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):
        dbapi_conn.isolation_level = None
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Build the engine for ``database_url`` and make it current.

    Pool arguments apply to PostgreSQL only.  Calling again replaces the
    previous engine without disposing it; use reset_engine() for that.
    """
    global _engine, _session_factory

    if database_url.startswith("sqlite"):
        engine = _sqlite_engine(database_url, echo)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            isolation_level="READ COMMITTED",
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        )

    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": engine.dialect.name, "echo": echo})
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that open one session per thread."""
    if _session_factory is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first.")
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    One unit of work: commit when the block finishes, roll back if it raises.

        with session_scope() as session:
            billing = build_billing_service(session, directory)
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


def _metadata():
    import billing_kernel.models  # noqa: F401
    from billing_kernel.db.base import Base

    return Base.metadata


def create_tables() -> None:
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    """Drop every billing table. Tests and local tooling only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the current engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
