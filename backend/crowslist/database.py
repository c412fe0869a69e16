"""
Crowslist Backend — Persistence Gateway
=========================================

What:  One data-access object per database URL: engine, session factory,
       schema creation and statement execution.
Why:   The service runs on an embedded SQLite file in development and on a
       managed PostgreSQL server in production. Route and service code is
       written once against SQLAlchemy statements; only this module knows
       which backend is behind the URL.
How:   `Database` wraps an async engine (aiosqlite or asyncpg) and an
       `async_sessionmaker`. Callers either take a request-scoped session via
       `session_scope()` or run a single statement through `execute()`.
Who:   Constructed by `create_app()` (or by tests with a temporary SQLite
       file) and stored on `app.state.database`.

Backend differences absorbed here:
    - Pool arguments are only passed to networked backends.
    - SQLite does not enforce FOREIGN KEY constraints unless asked per
      connection; we ask on every connect so both backends reject dangling
      user_id / listing_id references.
    - `INSERT ... ON CONFLICT DO NOTHING` needs the dialect-specific insert
      construct; `insert_ignore()` returns the right one.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional, Union

from sqlalchemy import event, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object between `create_schema_if_absent()` and
    Alembic's autogenerate.
    """
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Async persistence gateway over a single relational store.

    Contract (identical for both backends):
        create_schema_if_absent()    idempotent CREATE TABLE IF NOT EXISTS for all models
        execute(statement, params)   list of row mappings, or affected row count
        session_scope()              commit-on-success / rollback-on-error session
        insert_ignore(table)         INSERT ... ON CONFLICT DO NOTHING
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs: Any):
        self.url = make_url(url)
        self.backend = self.url.get_backend_name()
        self.engine: AsyncEngine = self._build_engine(url, echo, engine_kwargs)
        # expire_on_commit=False: ORM objects stay readable after the
        # request's transaction commits
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"

    def _build_engine(self, url: str, echo: bool, engine_kwargs: Dict[str, Any]) -> AsyncEngine:
        if self.is_sqlite:
            database = self.url.database or ""
            if database in ("", ":memory:"):
                # In-memory SQLite lives as long as its one connection
                engine_kwargs.setdefault("poolclass", StaticPool)
                engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
            engine = create_async_engine(url, echo=echo, **engine_kwargs)
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        else:
            engine = create_async_engine(
                url,
                echo=echo,
                pool_recycle=3600,
                **engine_kwargs,
            )
        logger.info("Database gateway created for %s backend", self.backend)
        return engine

    # ── Schema ────────────────────────────────────────────────────────────
    async def create_schema_if_absent(self) -> None:
        """
        Create every table registered on Base.metadata that does not exist yet.

        Safe to call on every startup: create_all checks for each table first
        and never alters or drops existing ones.
        """
        # Models register themselves with Base.metadata on import
        from crowslist import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
        logger.info("Schema ensured (%d tables)", len(Base.metadata.tables))

    # ── Statement execution ───────────────────────────────────────────────
    async def execute(
        self,
        statement: Any,
        params: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]] = None,
    ) -> Union[List[Dict[str, Any]], int]:
        """
        Run one statement in its own transaction.

        Args:
            statement: A SQLAlchemy construct, or a SQL string with :named
                       bind parameters. User input must go through `params`.
            params:    Bind parameters (a dict, or a list of dicts for executemany).

        Returns:
            A list of row mappings if the statement returns rows,
            otherwise the number of affected rows.
        """
        if isinstance(statement, str):
            statement = text(statement)
        async with self.engine.begin() as conn:
            result = await conn.execute(statement, params)
            if result.returns_rows:
                return [dict(row) for row in result.mappings().all()]
            return result.rowcount

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session that commits if the block succeeds and rolls back if it raises.

        The rollback covers every statement issued in the block, so multi-step
        writes (user row + verification row) land together or not at all.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # ── Dialect helpers ───────────────────────────────────────────────────
    def insert_ignore(self, table: Any):
        """
        Return an INSERT for `table` that skips rows violating a unique constraint.

        Both SQLite (3.24+) and PostgreSQL spell this ON CONFLICT DO NOTHING,
        but SQLAlchemy exposes it through each dialect's own insert().
        """
        dialect_insert = sqlite.insert if self.is_sqlite else postgresql.insert
        return dialect_insert(table).on_conflict_do_nothing()

    # ── Lifecycle ─────────────────────────────────────────────────────────
    async def ping(self) -> bool:
        """SELECT 1 against the store. Returns False instead of raising."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections (application shutdown)."""
        await self.engine.dispose()


def create_database(url: str, echo: bool = False) -> Database:
    """
    Build a Database from configuration.

    Networked backends get the configured pool sizing; SQLite keeps
    SQLAlchemy's defaults.
    """
    from crowslist.config import settings

    kwargs: Dict[str, Any] = {}
    if make_url(url).get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
        )
    return Database(url, echo=echo, **kwargs)
