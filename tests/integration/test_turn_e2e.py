"""
Integration tests -- full turn: mock model session -> GatewayClient -> FastAPI app -> SQLite pool.
"""
import asyncio

import httpx

from invoice_chat.api.main import app
from invoice_chat.assistant.controller import ConversationController
from invoice_chat.assistant.exchange import Failed, LinkState, Succeeded
from invoice_chat.assistant.gateway_client import GatewayClient
from invoice_chat.assistant.llm_client import ModelSession
from invoice_chat.assistant.prompts import SqlDraft


def _gateway() -> GatewayClient:
    return GatewayClient(base_url="http://gateway", transport=httpx.ASGITransport(app=app))


def test_pending_invoices_turn(sqlite_engine):
    controller = ConversationController(_gateway(), session_factory=ModelSession,
                                        model_id="mock-sql-1", greeting=False)
    asyncio.run(controller.initialize())
    assert controller.model_status.state is LinkState.CONNECTED
    assert controller.db_status.state is LinkState.CONNECTED

    reply = asyncio.run(controller.submit("Muestra las facturas pendientes"))
    assert isinstance(reply.state, Succeeded)
    assert {r["status"] for r in reply.result_set.rows} == {"PENDING"}
    assert len(reply.result_set.rows) == 2
    assert reply.result_set.columns[:2] == ["id", "customer_name"]
    assert sqlite_engine.pool.checkedout() == 0


def test_denylisted_sql_from_model_settles_as_policy_error(sqlite_engine):
    class RogueSession:
        async def send(self, text):
            return SqlDraft(sqlQuery="DELETE FROM invoice_raw", explanation="Borra todo.")

    controller = ConversationController(_gateway(), session_factory=lambda m: RogueSession(), greeting=False)
    controller.select_model("rogue")
    reply = asyncio.run(controller.submit("borra todo"))

    assert isinstance(reply.state, Failed)
    assert reply.state.kind == "policy"
    assert "READ-ONLY" in reply.error_message
    assert sqlite_engine.pool.checkedout() == 0


def test_bad_sql_settles_with_database_message(sqlite_engine):
    class BadSession:
        async def send(self, text):
            return SqlDraft(sqlQuery="SELECT amount FROM invoices", explanation="Tabla equivocada.")

    controller = ConversationController(_gateway(), session_factory=lambda m: BadSession(), greeting=False)
    controller.select_model("bad")
    reply = asyncio.run(controller.submit("x"))
    assert reply.error_message == "no such table: invoices"
    assert reply.state.kind == "query"
