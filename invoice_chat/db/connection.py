"""SQLAlchemy engine with a bounded connection pool.

One process-wide engine is created lazily and never drained explicitly.
Every gateway query checks out exactly one connection through
`pooled_connection`, which returns it to the pool on every exit path.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from invoice_chat.core.config import get_settings
from invoice_chat.core.logging import get_logger

logger = get_logger(__name__)

_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the shared SQLAlchemy engine (lazy-created, cached)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            pool_pre_ping=True,
            pool_size=settings.pool_size,
            max_overflow=settings.pool_max_overflow,
            pool_timeout=settings.pool_timeout_s,
            connect_args={
                "sslmode": settings.postgres_sslmode,
                "connect_timeout": settings.connect_timeout_s,
            },
            echo=False,
        )
        logger.info("DB engine created  host=%s  db=%s", settings.postgres_host, settings.postgres_db)
    return _engine


@contextmanager
def pooled_connection(readonly: bool = True) -> Generator[Connection, None, None]:
    """Yield one pooled connection; it goes back to the pool however the block exits.

    On PostgreSQL the transaction is additionally opened READ ONLY.
    """
    engine = get_engine()
    conn = engine.connect()
    try:
        if readonly and conn.dialect.name == "postgresql":
            conn.execute(text("SET TRANSACTION READ ONLY"))
        yield conn
    finally:
        conn.close()
