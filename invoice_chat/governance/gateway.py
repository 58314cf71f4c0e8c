"""
Gateway service -- validate -> policy check -> execute.

Stateless per call.  The only persistent state is the connection pool
behind `execute_query`.
"""
from __future__ import annotations

from invoice_chat.core.errors import ValidationError
from invoice_chat.core.logging import get_logger
from invoice_chat.db.executor import QueryResult, execute_query, ping
from invoice_chat.governance.sql_safety import enforce_read_only

logger = get_logger(__name__)


def run_query(sql: str | None, policy: str | None = None) -> QueryResult:
    """Run one caller-supplied statement under the read-only policy.

    Raises
    ------
    ValidationError
        *sql* is missing or blank (the database is never touched).
    PolicyViolation
        The statement is refused (no connection is acquired).
    UpstreamQueryError
        The database failed the statement.
    """
    if sql is None or not sql.strip():
        raise ValidationError("SQL query is required")

    enforce_read_only(sql, policy)
    return execute_query(sql)


def probe() -> str:
    """Health probe; returns the database timestamp."""
    now = ping()
    logger.debug("Health probe ok at %s", now)
    return now
