"""
Deterministic read-only policy for caller-supplied SQL (non-LLM).

Two policies:
  denylist -- upper-case the text and look for the literal substrings
              "DROP ", "DELETE ", "TRUNCATE ", "UPDATE ", "INSERT ".
              A best-effort guard, not a parser: it can trip on words
              inside string literals and miss obfuscated statements.
  strict   -- denylist first, then parse with sqlglot and require exactly
              one statement whose root is a query, with no data-modifying
              node anywhere in the tree.
"""
from __future__ import annotations

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from invoice_chat.core.config import get_settings
from invoice_chat.core.errors import PolicyViolation
from invoice_chat.core.logging import get_logger

logger = get_logger(__name__)

DENYLIST: tuple[str, ...] = ("DROP ", "DELETE ", "TRUNCATE ", "UPDATE ", "INSERT ")

READ_ONLY_MESSAGE = "READ-ONLY MODE: Solo se permiten consultas SELECT por seguridad."

POLICIES = ("denylist", "strict")

_QUERY_ROOTS = (exp.Select, exp.Union, exp.Intersect, exp.Except)
_MUTATING_NODES = (exp.Insert, exp.Update, exp.Delete, exp.Merge)


def find_denied_keyword(sql: str) -> str | None:
    """Return the first denylisted keyword found in *sql*, or None."""
    upper = sql.upper()
    for keyword in DENYLIST:
        if keyword in upper:
            return keyword.strip()
    return None


def check_select_only(sql: str) -> list[str]:
    """Return a list of allow-list violations (empty list = single read-only query)."""
    try:
        statements = [s for s in sqlglot.parse(sql, read="postgres") if s is not None]
    except SqlglotError as exc:
        return [f"SQL could not be parsed: {exc}"]

    if len(statements) != 1:
        return [f"Exactly one statement is allowed (found {len(statements)})."]

    root = statements[0]
    errors: list[str] = []
    if not isinstance(root, _QUERY_ROOTS):
        errors.append(f"Statement must be a SELECT query (found {root.key.upper()}).")

    for node in root.find_all(*_MUTATING_NODES):
        errors.append(f"Data-modifying clause not allowed: {node.key.upper()}.")

    if isinstance(root, exp.Select) and root.args.get("into"):
        errors.append("SELECT ... INTO is not allowed.")

    return errors


def enforce_read_only(sql: str, policy: str | None = None) -> None:
    """Raise PolicyViolation if *sql* is refused by the active policy."""
    policy = (policy or get_settings().sql_policy).strip().lower()
    if policy not in POLICIES:
        raise NotImplementedError(
            f"SQL policy '{policy}' is not supported.  "
            f"Choose from: {', '.join(POLICIES)}"
        )

    keyword = find_denied_keyword(sql)
    if keyword:
        logger.warning("Denylisted keyword '%s' in SQL -- rejected", keyword)
        raise PolicyViolation(READ_ONLY_MESSAGE, detail=f"Denylisted keyword: {keyword}")

    if policy == "strict":
        errors = check_select_only(sql)
        if errors:
            logger.warning("Strict policy violations: %s", errors)
            raise PolicyViolation(READ_ONLY_MESSAGE, detail="; ".join(errors))
