"""
Unit tests -- read-only policy: denylist and strict allow-list.
"""
import pytest

from invoice_chat.core.errors import PolicyViolation
from invoice_chat.governance.sql_safety import (
    READ_ONLY_MESSAGE,
    check_select_only,
    enforce_read_only,
    find_denied_keyword,
)


# ── Denylist ────────────────────────────────────────────

@pytest.mark.parametrize("sql, keyword", [
    ("drop TABLE invoice_raw", "DROP"),
    ("DELETE FROM invoice_raw", "DELETE"),
    ("truncate invoice_raw", "TRUNCATE"),
    ("Update invoice_raw SET amount = 0", "UPDATE"),
    ("insert into invoice_raw VALUES (1)", "INSERT"),
    ("SELECT 1; DROP TABLE invoice_raw", "DROP"),
])
def test_denylisted_keywords_found(sql, keyword):
    assert find_denied_keyword(sql) == keyword


@pytest.mark.parametrize("sql", [
    "SELECT id, amount FROM invoice_raw",
    "SELECT COUNT(*) AS n FROM invoice_raw WHERE status = 'PENDING'",
    "SELECT 1 as x",
])
def test_plain_selects_pass_denylist(sql):
    assert find_denied_keyword(sql) is None
    enforce_read_only(sql, policy="denylist")


def test_keyword_needs_trailing_space():
    # Substring filter: no trailing space, no match
    assert find_denied_keyword("SELECT dropped_at FROM invoice_raw") is None
    assert find_denied_keyword("DROP\tTABLE invoice_raw") is None


def test_denylist_false_positive_inside_literal():
    """Known weakness of substring matching -- documented, not fixed."""
    assert find_denied_keyword("SELECT 'please delete me' AS note") == "DELETE"


def test_violation_carries_read_only_message():
    with pytest.raises(PolicyViolation) as info:
        enforce_read_only("drop TABLE invoice_raw", policy="denylist")
    assert info.value.message == READ_ONLY_MESSAGE
    assert "READ-ONLY" in info.value.message
    assert info.value.status_code == 403


def test_unknown_policy_raises():
    with pytest.raises(NotImplementedError, match="not supported"):
        enforce_read_only("SELECT 1", policy="banana")


# ── Strict allow-list ───────────────────────────────────

def test_strict_accepts_single_select():
    assert check_select_only("SELECT id FROM invoice_raw WHERE amount > 10 LIMIT 5") == []


def test_strict_accepts_cte_and_union():
    assert check_select_only("WITH t AS (SELECT id FROM invoice_raw) SELECT id FROM t") == []
    assert check_select_only("SELECT 1 AS x UNION SELECT 2 AS x") == []


def test_strict_rejects_multiple_statements():
    errors = check_select_only("SELECT 1; SELECT 2")
    assert any("Exactly one statement" in e for e in errors)


def test_strict_rejects_non_query_root():
    errors = check_select_only("ALTER TABLE invoice_raw ADD COLUMN x INT")
    assert errors


def test_strict_rejects_select_into():
    errors = check_select_only("SELECT * INTO copy_table FROM invoice_raw")
    assert any("INTO" in e for e in errors)


def test_strict_policy_runs_denylist_first():
    with pytest.raises(PolicyViolation) as info:
        enforce_read_only("DELETE FROM invoice_raw", policy="strict")
    assert "Denylisted" in info.value.detail


def test_strict_policy_catches_what_denylist_misses():
    # Tab after DELETE slips past the substring filter
    sql = "WITH gone AS (DELETE\tFROM invoice_raw RETURNING id) SELECT id FROM gone"
    enforce_read_only(sql, policy="denylist")
    with pytest.raises(PolicyViolation):
        enforce_read_only(sql, policy="strict")


@pytest.mark.parametrize("policy", ["STRICT", " Strict ", "DenyList"])
def test_policy_name_is_case_insensitive(policy):
    enforce_read_only("SELECT 1", policy=policy)
    with pytest.raises(PolicyViolation):
        enforce_read_only("DROP TABLE invoice_raw", policy=policy)
