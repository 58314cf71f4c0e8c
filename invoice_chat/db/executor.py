"""
Pooled SQL executor.

`execute_query` runs one caller-supplied statement and returns its
columns and rows:
  1. Checks out a single connection (READ ONLY on Postgres)
  2. Applies a per-statement timeout (Postgres only)
  3. Converts Decimal/date/datetime to JSON-safe Python types
  4. Re-raises any driver failure as UpstreamQueryError, message untouched
"""
from __future__ import annotations

import decimal
import datetime
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from invoice_chat.core.config import get_settings
from invoice_chat.core.errors import UpstreamQueryError
from invoice_chat.core.logging import get_logger
from invoice_chat.db.connection import pooled_connection

logger = get_logger(__name__)


@dataclass
class QueryResult:
    """Tabular result in the order the database returned it."""
    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0


def _serialise_value(val: Any) -> Any:
    """Convert DB types to JSON-serialisable Python types."""
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime, datetime.time)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    return val


def _driver_message(exc: SQLAlchemyError) -> str:
    """The underlying DBAPI message, without SQLAlchemy's decorations."""
    orig = getattr(exc, "orig", None)
    message = str(orig) if orig is not None else str(exc)
    return message.strip()


def execute_query(sql: str, timeout_ms: int | None = None) -> QueryResult:
    """Execute *sql* on a pooled connection.

    No ordering is imposed on the rows.  Duplicate column names are kept in
    ``columns``; in the row mappings the last one wins.

    Raises
    ------
    UpstreamQueryError
        If the database rejects or fails the statement.
    """
    if timeout_ms is None:
        timeout_ms = get_settings().statement_timeout_ms
    logger.info("Executing SQL (%d chars)", len(sql))

    try:
        with pooled_connection() as conn:
            if conn.dialect.name == "postgresql":
                conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))

            # Raw driver SQL: colons and percent signs are not bind markers
            result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
            if not result.returns_rows:
                return QueryResult(row_count=max(result.rowcount, 0))

            columns = list(result.keys())
            rows = [
                {col: _serialise_value(val) for col, val in zip(columns, row)}
                for row in result.fetchall()
            ]
    except SQLAlchemyError as exc:
        message = _driver_message(exc)
        logger.warning("Query execution error: %s", message)
        raise UpstreamQueryError(message) from exc

    logger.info("Returned %d rows", len(rows))
    return QueryResult(columns=columns, rows=rows, row_count=len(rows))


def ping() -> str:
    """Trivial round-trip; returns the server timestamp as an ISO string."""
    try:
        with pooled_connection(readonly=False) as conn:
            now = conn.execute(text("SELECT CURRENT_TIMESTAMP AS now")).scalar()
    except SQLAlchemyError as exc:
        raise UpstreamQueryError(_driver_message(exc)) from exc
    return str(_serialise_value(now))
