"""SQLAlchemy engine and session setup."""

import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD = 1.0

Base = declarative_base()


def create_db_engine(database_url: str, pool_timeout: int = 30) -> Engine:
    """
    Create a database engine.

    SQLite URLs get ``check_same_thread=False`` since webhook and timer
    threads share the engine; in-memory SQLite also gets a single shared
    connection so every session sees the same database.

    Args:
        database_url: SQLAlchemy database URL
        pool_timeout: Seconds to wait for a pooled connection

    Returns:
        Configured Engine
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": pool_timeout}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)
    else:
        engine = create_engine(
            database_url,
            pool_pre_ping=True,
            pool_recycle=300,
            pool_timeout=pool_timeout,
        )

    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        total = time.time() - conn.info["query_start_time"].pop(-1)
        if total > SLOW_QUERY_THRESHOLD:
            logger.warning(f"Slow query ({total:.2f}s): {statement[:200]}...")

    logger.info(f"Database engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    # Register table classes on Base.metadata
    from . import tables  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
