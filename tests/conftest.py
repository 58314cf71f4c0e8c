"""
Shared fixtures -- a file-backed SQLite engine stands in for Postgres.
"""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import QueuePool

from invoice_chat.db import connection

_SEED = [
    "CREATE TABLE invoice_raw (id INTEGER PRIMARY KEY, customer_name TEXT, invoice_date TEXT, "
    "amount REAL, currency TEXT, status TEXT, due_date TEXT)",
    "INSERT INTO invoice_raw VALUES (101, 'Acme Corp Ltd.', '2024-02-21', 15200.5, 'USD', 'PENDING', '2024-03-21')",
    "INSERT INTO invoice_raw VALUES (102, 'Acme Corp Ltd.', '2024-02-22', 15351.0, 'USD', 'PAID', '2024-03-22')",
    "INSERT INTO invoice_raw VALUES (103, 'Globex', '2024-02-23', 15501.5, 'EUR', 'PENDING', '2024-03-23')",
]


@pytest.fixture
def sqlite_engine(tmp_path, monkeypatch):
    """Bounded-pool engine seeded with a small invoice_raw table."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'invoices.db'}",
        poolclass=QueuePool,
        pool_size=2,
        max_overflow=0,
        pool_timeout=1,
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        for stmt in _SEED:
            conn.execute(text(stmt))
    monkeypatch.setattr(connection, "_engine", engine)
    yield engine
    engine.dispose()
