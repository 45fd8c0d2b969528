"""Database handles: engine/session factories with an explicit lifecycle.

The gateway talks to two independent stores (the login server's database and
the game server's database). Each one is represented by a `Database` handle that
is built once in the application lifespan, passed to the repositories that need
it, and disposed on shutdown. Nothing connects at import time.

Env (read when an engine is built, so tests can monkeypatch them):

    # Pool hints (applied to every non-SQLite backend)
    DB_POOL_SIZE            e.g., "5"
    DB_MAX_OVERFLOW         e.g., "10"
    DB_POOL_RECYCLE         e.g., "1800"
    DB_POOL_TIMEOUT         seconds to wait for a free connection, e.g., "30"

    # Startup wait/retry controls (used by Database.wait_until_ready())
    DB_WAIT_MAX_ATTEMPTS    max connection attempts (default 30)
    DB_WAIT_BACKOFF_START   initial backoff seconds (default 0.5)
    DB_WAIT_BACKOFF_MAX     backoff cap seconds (default 5.0)
"""

from __future__ import annotations

import os
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import MetaData, text, event
from sqlalchemy.engine.url import make_url, URL
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.pool import StaticPool, NullPool

log = logging.getLogger(__name__)

DB_WAIT_MAX_ATTEMPTS = int(os.getenv("DB_WAIT_MAX_ATTEMPTS", "30"))
DB_WAIT_BACKOFF_START = float(os.getenv("DB_WAIT_BACKOFF_START", "0.5"))
DB_WAIT_BACKOFF_MAX = float(os.getenv("DB_WAIT_BACKOFF_MAX", "5.0"))


def _safe_url_parts(url_str: str) -> dict:
    """Parse an SQLAlchemy URL and return non-sensitive parts for logging."""
    try:
        u: URL = make_url(url_str)
    except Exception:
        return {"driver": "unknown", "host": "", "port": "", "database": ""}
    return {
        "driver": u.drivername or "",
        "host": u.host or "",
        "port": u.port or "",
        "database": u.database or "",
    }


def _describe(name: str, url_str: str) -> str:
    """``name=login driver=mysql+aiomysql host=db port=3306 db=l2jls`` (no credentials)."""
    p = _safe_url_parts(url_str)
    return (
        f"name={name} driver={p['driver']} host={p['host']} "
        f"port={p['port']} db={p['database']}"
    )


def _register_engine_listeners(eng, name: str) -> None:
    """Log pool connects and engine disposal; no-op for dummy engines."""
    try:
        sync_eng = eng.sync_engine
    except Exception:
        log.debug("db.listeners skipped name=%s: engine has no sync_engine", name)
        return

    @event.listens_for(sync_eng, "connect")
    def _on_connect(dbapi_conn, conn_record):
        log.info("db.connect %s", _describe(name, str(eng.url)))

    @event.listens_for(sync_eng, "engine_disposed")
    def _on_dispose(engine):
        log.info("db.dispose %s", _describe(name, str(eng.url)))


# env var -> (create_async_engine kwarg, converter); server backends only
_POOL_ENV = (
    ("DB_POOL_SIZE", "pool_size", int),
    ("DB_MAX_OVERFLOW", "max_overflow", int),
    ("DB_POOL_RECYCLE", "pool_recycle", int),
    ("DB_POOL_TIMEOUT", "pool_timeout", float),
)


def _mk_engine(url: str, name: str = "db"):
    """Build an async engine; pooling depends on the backend."""
    kwargs: dict = {"pool_pre_ping": True}

    if url.startswith("sqlite+aiosqlite:///:memory:"):
        # Single shared connection, otherwise every checkout sees an empty DB
        kwargs["poolclass"] = StaticPool
    elif url.startswith("sqlite+aiosqlite://"):
        kwargs["poolclass"] = NullPool
    else:
        for env_name, kwarg, conv in _POOL_ENV:
            raw = os.getenv(env_name)
            if raw is not None:
                kwargs[kwarg] = conv(raw)

    eng = create_async_engine(url, **kwargs)

    try:
        _register_engine_listeners(eng, name)
    except Exception as exc:
        log.debug("db.listeners registration failed name=%s: %r", name, exc)

    log.debug(
        "db.engine_created %s kwargs=%s",
        _describe(name, url),
        {k: kwargs[k] for k in sorted(kwargs)},
    )
    return eng


class Database:
    """One pooled database: engine, session factory, health and lifecycle."""

    def __init__(self, url: str, name: str) -> None:
        self.name = name
        self.engine: AsyncEngine = _mk_engine(url, name)
        self._sessions = async_sessionmaker(
            self.engine, expire_on_commit=False, class_=AsyncSession
        )

    def session(self) -> AsyncSession:
        """Return a new session; use it as ``async with db.session() as s``."""
        return self._sessions()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside BEGIN; commit on exit, roll back on error."""
        async with self._sessions() as session:
            async with session.begin():
                yield session

    async def create_all(self, metadata: MetaData) -> None:
        """Create the tables of `metadata` (dev/test databases only)."""
        log.info(
            "db.create_all %s tables=%s",
            _describe(self.name, str(self.engine.url)),
            sorted(metadata.tables),
        )
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def ping(self) -> bool:
        """Return True if a simple SELECT succeeds."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            log.debug("db.ping failed name=%s: %r", self.name, e)
            return False

    async def wait_until_ready(
        self,
        *,
        max_attempts: int = DB_WAIT_MAX_ATTEMPTS,
        backoff_start: float = DB_WAIT_BACKOFF_START,
        backoff_max: float = DB_WAIT_BACKOFF_MAX,
    ) -> None:
        """Poll until `ping()` returns True or attempts are exhausted."""
        attempt = 0
        delay = backoff_start
        log.info(
            "db.wait start name=%s attempts=%d backoff_start=%.3fs backoff_max=%.3fs",
            self.name,
            max_attempts,
            backoff_start,
            backoff_max,
        )

        while attempt < max_attempts:
            if await self.ping():
                return
            attempt += 1
            if attempt >= max_attempts:
                raise RuntimeError(
                    f"Database {self.name!r} not ready after {max_attempts} attempts"
                )
            await asyncio.sleep(delay)
            delay = min(delay * 2.0, backoff_max)

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()
