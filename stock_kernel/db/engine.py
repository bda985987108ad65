"""
Module: stock_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the whole system.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/, selectors/, domain/, or outer layers
    (except create_all(), which imports the kernel models package).

Invariants enforced:
    - The authoritative state defaults to an in-memory SQLite database held
      on ONE shared connection (StaticPool).  Every session therefore runs on
      the same DBAPI connection, so the Database serialises session scopes
      through a connection lock; one connection cannot host two open
      transactions.
    - Any other SQLAlchemy URL gets a normal connection pool with pre-ping.
    - SQLite connections run with foreign keys enabled.

Failure modes:
    - ArgumentError on a malformed database URL.
    - OperationalError if the backend is unreachable.

Audit relevance:
    All ledger and log writes flow through session_scope(), which commits on
    success and rolls back on any exception.  That rollback is what makes a
    rejected movement leave the ledger and the log untouched.
"""

import threading
from contextlib import contextmanager, nullcontext
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_kernel.logging_config import get_logger

logger = get_logger("db.engine")

IN_MEMORY_URL = "sqlite+pysqlite:///:memory:"


def _is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name == "sqlite"


def build_engine(
    database_url: str = IN_MEMORY_URL,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite gets a StaticPool so that every session sees the same
    database; file SQLite and server databases get a regular pool.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        kwargs = {}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            **kwargs,
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
        )

    logger.info(
        "engine_initialized",
        extra={
            "dialect": engine.dialect.name,
            "shared_connection": isinstance(engine.pool, StaticPool),
            "echo": echo,
        },
    )
    return engine


class Database:
    """
    Owned handle on an engine and its session factory.

    Contract:
        Services receive a Database (never a module-level global) and open
        sessions through session_scope() for writes and read_scope() for
        queries.

    Guarantees:
        - session_scope() commits on normal exit and rolls back on exception;
          the exception is re-raised.
        - When the engine shares one connection, at most one scope is open
          at a time (re-entrant for the owning thread).
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._connection_lock = (
            threading.RLock() if self.shares_single_connection else None
        )

    @classmethod
    def from_url(cls, database_url: str = IN_MEMORY_URL, echo: bool = False) -> "Database":
        return cls(build_engine(database_url, echo=echo))

    @property
    def shares_single_connection(self) -> bool:
        return isinstance(self.engine.pool, StaticPool)

    @property
    def supports_row_locks(self) -> bool:
        """True when SELECT ... FOR UPDATE actually locks rows."""
        return not _is_sqlite(self.engine)

    def _serialized(self):
        if self._connection_lock is None:
            return nullcontext()
        return self._connection_lock

    def new_session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Usage:
            with database.session_scope() as session:
                session.add(entity)
                # Commits on successful exit, rolls back on exception
        """
        with self._serialized():
            session = self.new_session()
            logger.debug("transaction_started")
            try:
                yield session
                session.commit()
                logger.debug("transaction_committed")
            except Exception:
                session.rollback()
                logger.debug("transaction_rolled_back")
                raise
            finally:
                session.close()

    @contextmanager
    def read_scope(self) -> Generator[Session, None, None]:
        """Session for read-only queries; always rolled back and closed."""
        with self._serialized():
            session = self.new_session()
            try:
                yield session
            finally:
                session.rollback()
                session.close()

    def create_all(self) -> None:
        """
        Create all kernel tables.

        Outer packages register their own ORM models on Base before calling
        this (see stock_modules._orm_registry).
        """
        import stock_kernel.models  # noqa: F401
        from stock_kernel.db.base import Base

        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables. Use with caution - primarily for testing."""
        from stock_kernel.db.base import Base

        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()
