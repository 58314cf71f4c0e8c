"""
Unit tests -- model session: mock provider, dispatch, history.
"""
import asyncio

import pytest

from invoice_chat.assistant import llm_client
from invoice_chat.assistant.llm_client import ModelSession, provider_for
from invoice_chat.assistant.prompts import SqlDraft
from invoice_chat.core.config import get_settings
from invoice_chat.core.errors import MalformedResponseError, TransportError


def test_provider_inferred_from_model_id():
    assert provider_for("mock-sql-1") == "mock"
    assert provider_for("gpt-4o-mini") == "openai"
    assert provider_for("claude-3-haiku-20240307") == "anthropic"


def test_unknown_model_falls_back_to_settings():
    assert provider_for("some-local-model") == get_settings().llm_provider.lower()


def test_mock_session_returns_draft():
    session = ModelSession("mock-sql-1")
    draft = asyncio.run(session.send("Muestra las facturas pendientes"))
    assert isinstance(draft, SqlDraft)
    assert "invoice_raw" in draft.sqlQuery
    assert "PENDING" in draft.sqlQuery
    assert draft.explanation


def test_mock_top_n():
    draft = asyncio.run(ModelSession("mock-sql-1").send("Top 10 clientes por monto"))
    assert "LIMIT 10" in draft.sqlQuery
    assert "GROUP BY customer_name" in draft.sqlQuery


def test_mock_answers_are_read_only():
    draft = asyncio.run(ModelSession("mock-sql-1").send("Dame el total de ventas"))
    assert draft.sqlQuery.upper().startswith("SELECT")


def test_history_grows_per_successful_send():
    session = ModelSession("mock-sql-1")
    asyncio.run(session.send("first"))
    asyncio.run(session.send("second"))
    assert [m["role"] for m in session.history] == ["user", "assistant", "user", "assistant"]
    assert session.history[2]["content"] == "second"


def test_malformed_reply_not_added_to_history(monkeypatch):
    async def _garbage(model_id, system, messages):
        return '{"explanation": "missing sql"}'

    session = ModelSession("mock-sql-1")
    monkeypatch.setattr(session, "_call", _garbage)
    with pytest.raises(MalformedResponseError):
        asyncio.run(session.send("hello"))
    assert session.history == []


def test_system_instruction_sent_to_provider(monkeypatch):
    seen = {}

    async def _capture(model_id, system, messages):
        seen.update(model_id=model_id, system=system, messages=messages)
        return '{"sqlQuery": "SELECT 1", "explanation": "x"}'

    session = ModelSession("mock-sql-1", system_instruction="SYSTEM")
    monkeypatch.setattr(session, "_call", _capture)
    asyncio.run(session.send("hi"))
    assert seen["system"] == "SYSTEM"
    assert seen["model_id"] == "mock-sql-1"
    assert seen["messages"] == [{"role": "user", "content": "hi"}]


def test_unknown_provider_raises():
    with pytest.raises(NotImplementedError, match="not supported"):
        ModelSession("whatever", provider="banana")


def test_openai_missing_key_raises(monkeypatch):
    monkeypatch.setattr(get_settings(), "openai_api_key", "")
    with pytest.raises(TransportError, match="openai_api_key"):
        ModelSession("gpt-4o-mini")


def test_anthropic_missing_key_raises(monkeypatch):
    monkeypatch.setattr(get_settings(), "anthropic_api_key", "")
    with pytest.raises(TransportError, match="anthropic_api_key"):
        ModelSession("claude-3-haiku-20240307")


def test_default_provider_is_mock():
    """Settings default to mock -- this should work without any keys."""
    assert get_settings().llm_provider == "mock"
    assert llm_client.provider_for(get_settings().default_model) == "mock"
