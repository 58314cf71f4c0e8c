"""
Conversation controller -- one turn at a time: submit -> generate -> execute -> settle.

The controller owns the ordered list of exchanges and the two advisory
connection statuses.  Turns run on asyncio; every remote call (model
send, gateway query, health probe) is an await point.  New submissions
are refused while a turn is in flight, so no locking is needed.

The model session is an explicit object: `select_model` builds a new one
and swaps it in.  A turn already running keeps the session it started
with and still writes its outcome into its own exchange by id.
"""
from __future__ import annotations

import itertools
from typing import Any, Callable

from invoice_chat.assistant.exchange import (
    ConnectionStatus,
    Exchange,
    Failed,
    Generated,
    LinkState,
    Pending,
    Role,
    Succeeded,
)
from invoice_chat.assistant.llm_client import ModelSession
from invoice_chat.assistant.schema import load_table_schema
from invoice_chat.core.config import get_settings
from invoice_chat.core.errors import InvoiceChatError, TransportError, ValidationError
from invoice_chat.core.logging import get_logger
from invoice_chat.core.utils import Stopwatch

logger = get_logger(__name__)

GENERATION_APOLOGY = "No se pudo generar la consulta."
UNEXPECTED_ERROR = "Ocurrió un error inesperado."


def _greeting() -> str:
    settings = get_settings()
    return (
        f"Hola. Estoy conectado a {settings.postgres_db} (tabla {load_table_schema().table}). "
        'Pídeme generar reportes, por ejemplo: "Muestra las facturas pendientes de este mes".'
    )


class ConversationController:
    """Drives the per-turn state machine for one conversation.

    Parameters
    ----------
    gateway :
        Object with ``async query(sql) -> ResultSet`` and ``async health()``
        (normally a GatewayClient).
    session_factory :
        Callable ``model_id -> session`` where the session has
        ``async send(text) -> SqlDraft``.  Defaults to ModelSession.
    auto_execute :
        Run the generated SQL immediately.  When False the turn stops at
        Generated and `execute` runs it on demand.
    enable_ratings :
        Allow 1-5 star ratings on model exchanges.
    """

    def __init__(
        self,
        gateway: Any,
        session_factory: Callable[[str], Any] = ModelSession,
        model_id: str | None = None,
        auto_execute: bool | None = None,
        enable_ratings: bool | None = None,
        greeting: bool = True,
    ):
        settings = get_settings()
        self.gateway = gateway
        self._session_factory = session_factory
        self.model_id = model_id or settings.default_model
        self.auto_execute = settings.auto_execute if auto_execute is None else auto_execute
        self.enable_ratings = settings.enable_ratings if enable_ratings is None else enable_ratings

        self.session: Any = None
        self.model_status = ConnectionStatus()
        self.db_status = ConnectionStatus()
        self.exchanges: list[Exchange] = []
        self._in_flight: str | None = None
        self._ids = itertools.count(1)

        if greeting:
            self.exchanges.append(Exchange(id=self._next_id(), role=Role.MODEL, text=_greeting()))

    # ── Lookup ──────────────────────────────────────────

    def _next_id(self) -> str:
        return f"ex-{next(self._ids):06d}"

    @property
    def busy(self) -> bool:
        return self._in_flight is not None

    @property
    def in_flight_id(self) -> str | None:
        return self._in_flight

    def get(self, exchange_id: str) -> Exchange | None:
        for exchange in self.exchanges:
            if exchange.id == exchange_id:
                return exchange
        return None

    def recent_questions(self, limit: int = 5) -> list[Exchange]:
        """Latest user utterances, newest first."""
        users = [e for e in self.exchanges if e.role is Role.USER]
        return list(reversed(users[-limit:])) if limit > 0 else []

    # ── Connections ─────────────────────────────────────

    def select_model(self, model_id: str) -> bool:
        """Tear down the current session and create one for *model_id*."""
        self.model_status = ConnectionStatus(LinkState.CONNECTING, model_id)
        try:
            session = self._session_factory(model_id)
        except (InvoiceChatError, NotImplementedError) as exc:
            logger.warning("Model session init failed  model=%s  error=%s", model_id, exc)
            self.session = None
            self.model_id = model_id
            self.model_status = ConnectionStatus(LinkState.ERROR, str(exc))
            return False

        self.session = session
        self.model_id = model_id
        self.model_status = ConnectionStatus(LinkState.CONNECTED, model_id)
        logger.info("Active model -> %s", model_id)
        return True

    async def check_database(self) -> ConnectionStatus:
        self.db_status = ConnectionStatus(LinkState.CONNECTING)
        try:
            body = await self.gateway.health()
        except InvoiceChatError as exc:
            logger.warning("Gateway health probe failed: %s", exc.message)
            self.db_status = ConnectionStatus(LinkState.ERROR, exc.message)
        else:
            self.db_status = ConnectionStatus(LinkState.CONNECTED, str(body.get("time", "")) or None)
        return self.db_status

    async def initialize(self) -> None:
        """Create the model session and probe the gateway."""
        self.select_model(self.model_id)
        await self.check_database()

    # ── Turn protocol ───────────────────────────────────

    def _settle(self, exchange_id: str, state) -> None:
        """Write *state* into the exchange (last write wins)."""
        exchange = self.get(exchange_id)
        if exchange is None:
            return
        exchange.state = state
        if isinstance(state, Failed):
            exchange.text = state.explanation or state.message
        elif not isinstance(state, Pending):
            exchange.text = state.explanation

    async def submit(self, text: str) -> Exchange | None:
        """Run one full turn.  Returns the model exchange, or None if refused."""
        text = (text or "").strip()
        if not text:
            return None
        if self.busy:
            logger.info("Submit ignored -- turn %s still in flight", self._in_flight)
            return None
        if self.session is None:
            logger.info("Submit ignored -- model session not initialised")
            return None

        session = self.session
        self.exchanges.append(Exchange(id=self._next_id(), role=Role.USER, text=text))
        reply = Exchange(id=self._next_id(), role=Role.MODEL, text="", state=Pending())
        self.exchanges.append(reply)
        self._in_flight = reply.id

        try:
            await self._run_turn(session, reply.id, text)
        finally:
            if self._in_flight == reply.id:
                self._in_flight = None
        return reply

    async def _run_turn(self, session: Any, exchange_id: str, text: str) -> None:
        try:
            draft = await session.send(text)
        except Exception as exc:
            if isinstance(exc, InvoiceChatError):
                logger.warning("Generation failed  kind=%s  %s  detail=%s", exc.kind, exc.message, exc.detail)
                kind, detail = exc.kind, exc.detail or exc.message
            else:
                logger.exception("Unexpected error during generation")
                kind, detail = "error", str(exc)
            if session is self.session:
                self.model_status = ConnectionStatus(LinkState.ERROR, detail)
            self._settle(exchange_id, Failed(message=GENERATION_APOLOGY, kind=kind, detail=detail))
            return

        if session is self.session and self.model_status.state is not LinkState.CONNECTED:
            self.model_status = ConnectionStatus(LinkState.CONNECTED, self.model_id)

        self._settle(exchange_id, Generated(sql=draft.sqlQuery, explanation=draft.explanation))
        if self.auto_execute:
            await self._execute(exchange_id, draft.sqlQuery, draft.explanation)

    async def _execute(self, exchange_id: str, sql: str, explanation: str) -> None:
        self._settle(exchange_id, Generated(sql=sql, explanation=explanation, executing=True))
        watch = Stopwatch()
        try:
            with watch:
                result = await self.gateway.query(sql)
        except InvoiceChatError as exc:
            logger.info("Execution failed  kind=%s  %s", exc.kind, exc.message)
            if isinstance(exc, TransportError):
                self.db_status = ConnectionStatus(LinkState.ERROR, exc.message)
            state = Failed(message=exc.message, kind=exc.kind, detail=exc.detail, sql=sql, explanation=explanation)
        except Exception as exc:
            logger.exception("Unexpected error during execution")
            state = Failed(message=UNEXPECTED_ERROR, detail=str(exc), sql=sql, explanation=explanation)
        else:
            if self.db_status.state is not LinkState.CONNECTED:
                self.db_status = ConnectionStatus(LinkState.CONNECTED)
            logger.info("Turn %s settled  rows=%d  %d ms", exchange_id, len(result.rows), watch.elapsed_ms)
            state = Succeeded(sql=sql, explanation=explanation, result=result, elapsed_ms=watch.elapsed_ms)
        self._settle(exchange_id, state)

    async def execute(self, exchange_id: str) -> Exchange | None:
        """Run the SQL of a Generated exchange (manual "Ejecutar" mode)."""
        exchange = self.get(exchange_id)
        if exchange is None or not isinstance(exchange.state, Generated) or self.busy:
            return None

        generated = exchange.state
        self._in_flight = exchange_id
        try:
            await self._execute(exchange_id, generated.sql, generated.explanation)
        finally:
            if self._in_flight == exchange_id:
                self._in_flight = None
        return exchange

    async def replay(self, exchange_id: str) -> Exchange | None:
        """Re-run an earlier user question as a brand-new turn."""
        exchange = self.get(exchange_id)
        if exchange is None or exchange.role is not Role.USER:
            raise ValidationError(f"No user question with id '{exchange_id}'")
        return await self.submit(exchange.text)

    def rate(self, exchange_id: str, stars: int) -> Exchange:
        """Store a 1-5 rating on a model exchange (overwrites any earlier one)."""
        if not self.enable_ratings:
            raise ValidationError("Ratings are disabled")
        if isinstance(stars, bool) or not isinstance(stars, int) or not 1 <= stars <= 5:
            raise ValidationError("Rating must be an integer from 1 to 5")
        exchange = self.get(exchange_id)
        if exchange is None or exchange.role is not Role.MODEL or exchange.state is None:
            raise ValidationError(f"No model answer with id '{exchange_id}'")
        exchange.rating = stars
        return exchange
