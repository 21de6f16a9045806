"""
Database utilities and connection management.

WHAT: SQLAlchemy engine and session helpers for the SQL document store
WHY: Persist documents in SQLite with WAL mode, one engine per store instance
HOW: SQLAlchemy sync engine v2 with WAL pragma listener, session scope helper
"""

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from ..storage.base import StoreUnavailableError
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Base for models
Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for database_url.

    WHAT: Engine with SQLite pragmas applied on every new connection
    WHY: WAL gives readers concurrency with the writer; FKs stay enforced
    HOW: create_engine + connect event listener

    Args:
        database_url: SQLAlchemy URL
        echo: Log SQL statements

    Returns:
        Engine
    """
    is_sqlite = database_url.startswith("sqlite")
    in_memory = is_sqlite and ":memory:" in database_url

    if is_sqlite and not in_memory:
        # Ensure data directory exists
        db_path = Path(database_url.replace("sqlite:///", ""))
        db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if is_sqlite else {},  # Worker threads share the engine
        echo=echo,
        future=True,
        # One shared connection, otherwise each connection gets its own empty :memory: db
        **({"poolclass": StaticPool} if in_memory else {})
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable WAL mode for better concurrency."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to engine."""
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False
    )


@contextmanager
def session_scope(factory: sessionmaker):
    """
    Context manager for a database session.

    Usage:
        with session_scope(factory) as db:
            # use db session
            pass

    Commits on success, rolls back on any error. Driver failures are
    re-raised as StoreUnavailableError; everything else propagates unchanged.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database operation failed: {e}")
        raise StoreUnavailableError(str(e)) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
