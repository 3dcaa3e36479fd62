"""
SQLite database connection and schema management using SQLAlchemy async mode.
"""

import os
import logging
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# Import models to register them with Base.metadata
# This must be after Base is defined to avoid circular imports
from pickem.database import models  # noqa: F401, E402


def build_sqlite_url(path: str) -> str:
    """aiosqlite URL for a file path or ':memory:'."""
    return f"sqlite+aiosqlite:///{path}"


def create_engine_for_path(path: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for a SQLite file.

    An in-memory database lives on a single shared connection so every
    session sees the same data.
    """
    kwargs = {"echo": echo, "future": True}
    if path == ":memory:":
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

    engine = create_async_engine(build_sqlite_url(path), **kwargs)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def _patch_missing_columns(conn):
    """Add columns to existing tables that create_all cannot alter.

    Older database files predate some columns. Each entry: (table, column,
    DDL fragment). Only runs ALTER if the table exists but the column does not.
    """
    patches = [
        ("users", "email_verification_token", "TEXT"),
        ("users", "password_reset_token", "TEXT"),
        ("users", "password_reset_expires", "TEXT"),
        ("users", "last_login", "TEXT"),
        ("football_games", "scores_updated_at", "TEXT"),
        ("football_games", "season_type", "INTEGER DEFAULT 2"),
        ("picks", "tiebreaker", "INTEGER"),
        ("game_invitations", "is_admin_invitation", "BOOLEAN DEFAULT 0"),
    ]
    for table, column, ddl in patches:
        result = await conn.execute(text(f"PRAGMA table_info({table})"))
        existing = {row[1] for row in result.fetchall()}
        if not existing:
            continue  # table doesn't exist yet; create_all will handle it
        if column not in existing:
            logger.info(f"Adding missing column {table}.{column}")
            await conn.execute(text(f'ALTER TABLE {table} ADD COLUMN "{column}" {ddl}'))


async def init_database(engine: AsyncEngine):
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await _patch_missing_columns(conn)

        # checkfirst=True means it won't error if tables already exist
        def create_tables(sync_conn):
            Base.metadata.create_all(bind=sync_conn, checkfirst=True)
        await conn.run_sync(create_tables)
