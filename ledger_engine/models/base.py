"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. Every request gets a session
from get_db().
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from ledger_engine.config import get_settings

settings = get_settings()


def _serialize_sqlite_writers(engine: Engine) -> None:
    """
    Make every SQLite transaction start with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, so two sessions
    can both read a balance and then race to write it. BEGIN
    IMMEDIATE takes the database write lock up front; concurrent
    writers queue on the busy timeout instead of losing updates.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str) -> Engine:
    """
    Create an engine for the given URL.

    pool_pre_ping=True tests connections before using them,
    which handles cases where the database restarted or a
    connection went stale.
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _serialize_sqlite_writers(engine)
        return engine
    return create_engine(url, pool_pre_ping=True)


# --- Engine ---
engine = build_engine(settings.DATABASE_URL)

# --- Session Factory ---
# autocommit=False means we explicitly control when changes
# are saved. Ledger services commit a whole unit of work at
# once or roll it back entirely.
# autoflush=False means SQLAlchemy won't send SQL to the
# database until we explicitly flush or commit.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


# --- Base Model Class ---
class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The try/finally pattern ensures the session is always
    closed, preventing connection leaks.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
