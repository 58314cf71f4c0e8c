"""
Model session -- a stateful, provider-agnostic chat handle.

Supported providers:
  mock      -- deterministic keyword-to-SQL answers (tests / offline dev)
  openai    -- OpenAI Chat Completions with a strict JSON-schema response format
  anthropic -- Anthropic Messages, JSON-only instruction

A session is configured once with the system instruction and keeps the
conversation history.  Each `send` returns a SqlDraft or raises
TransportError / MalformedResponseError.
"""
from __future__ import annotations

import json
import re
from typing import Any

from invoice_chat.assistant.prompts import RESPONSE_SCHEMA, SqlDraft, build_system_instruction, parse_sql_draft
from invoice_chat.assistant.schema import load_table_schema
from invoice_chat.core.config import get_settings
from invoice_chat.core.errors import TransportError
from invoice_chat.core.logging import get_logger

logger = get_logger(__name__)

_MAX_TOKENS = 512

_MODEL_PREFIXES: list[tuple[str, str]] = [
    ("mock", "mock"),
    ("gpt-", "openai"),
    ("o1", "openai"),
    ("claude-", "anthropic"),
]


# ── Mock ─────────────────────────────────────────────────

_STATUS_KEYWORDS: dict[str, list[str]] = {
    "PENDING": ["pendiente", "pending", "unpaid"],
    "OVERDUE": ["vencid", "overdue", "late"],
    "PAID": ["pagad", "paid"],
}


def _mock_answer(question: str) -> dict[str, str]:
    """Deterministic NL -> SQL used when no provider key is configured."""
    table = load_table_schema().table
    q = question.lower()

    status = None
    for value, keywords in _STATUS_KEYWORDS.items():
        if any(kw in q for kw in keywords):
            status = value
            break
    where = f"\nWHERE status = '{status}'" if status else ""

    top = re.search(r"top\s+(\d+)", q)
    if top:
        n = int(top.group(1))
        return {
            "sqlQuery": (
                f"SELECT customer_name, SUM(amount) AS total_amount\nFROM {table}{where}\n"
                f"GROUP BY customer_name\nORDER BY total_amount DESC\nLIMIT {n}"
            ),
            "explanation": f"Los {n} clientes con mayor monto facturado.",
        }

    if any(kw in q for kw in ("total", "ventas", "sales", "revenue", "sum")):
        return {
            "sqlQuery": f"SELECT currency, SUM(amount) AS total_amount\nFROM {table}{where}\nGROUP BY currency",
            "explanation": "Suma del monto facturado agrupada por moneda.",
        }

    return {
        "sqlQuery": (
            f"SELECT id, customer_name, invoice_date, amount, currency, status\n"
            f"FROM {table}{where}\nORDER BY invoice_date DESC\nLIMIT 50"
        ),
        "explanation": "Las facturas más recientes" + (f" con estado {status}." if status else "."),
    }


async def _call_mock(model_id: str, system: str, messages: list[dict[str, str]]) -> str:
    logger.info("LLM mock mode -- keyword answer")
    return json.dumps(_mock_answer(messages[-1]["content"]))


# ── OpenAI ───────────────────────────────────────────────

async def _call_openai(model_id: str, system: str, messages: list[dict[str, str]]) -> str:
    """Call OpenAI Chat Completions with a strict JSON-schema response."""
    try:
        import openai  # type: ignore[import-untyped]
    except ImportError as exc:
        raise TransportError(
            "The 'openai' package is not installed.  "
            "Run: pip install openai"
        ) from exc

    try:
        async with openai.AsyncOpenAI(api_key=get_settings().openai_api_key) as client:
            response = await client.chat.completions.create(
                model=model_id,
                messages=[{"role": "system", "content": system}, *messages],
                temperature=0.0,
                max_tokens=_MAX_TOKENS,
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "sql_draft", "strict": True, "schema": RESPONSE_SCHEMA},
                },
            )
    except openai.APIError as exc:
        raise TransportError("OpenAI request failed", detail=str(exc)) from exc

    text = response.choices[0].message.content or ""
    logger.info("OpenAI response (%d chars)", len(text))
    return text


# ── Anthropic ────────────────────────────────────────────

async def _call_anthropic(model_id: str, system: str, messages: list[dict[str, str]]) -> str:
    """Call Anthropic Messages API."""
    try:
        import anthropic  # type: ignore[import-untyped]
    except ImportError as exc:
        raise TransportError(
            "The 'anthropic' package is not installed.  "
            "Run: pip install anthropic"
        ) from exc

    try:
        async with anthropic.AsyncAnthropic(api_key=get_settings().anthropic_api_key) as client:
            response = await client.messages.create(
                model=model_id,
                max_tokens=_MAX_TOKENS,
                system=system,
                messages=messages,
            )
    except anthropic.APIError as exc:
        raise TransportError("Anthropic request failed", detail=str(exc)) from exc

    text = response.content[0].text if response.content else ""
    logger.info("Anthropic response (%d chars)", len(text))
    return text


_PROVIDERS: dict[str, Any] = {
    "mock": _call_mock,
    "openai": _call_openai,
    "anthropic": _call_anthropic,
}

_KEY_FIELDS: dict[str, str] = {
    "openai": "openai_api_key",
    "anthropic": "anthropic_api_key",
}


def provider_for(model_id: str) -> str:
    """Infer the provider from the model identifier, else use settings."""
    lowered = model_id.lower()
    for prefix, provider in _MODEL_PREFIXES:
        if lowered.startswith(prefix):
            return provider
    return get_settings().llm_provider.lower()


class ModelSession:
    """Conversational handle bound to one model identifier.

    Raises TransportError at construction when the provider cannot be used
    (missing API key), NotImplementedError for an unknown provider.
    """

    def __init__(
        self,
        model_id: str,
        provider: str | None = None,
        system_instruction: str | None = None,
    ):
        self.model_id = model_id
        self.provider = (provider or provider_for(model_id)).lower()

        self._call = _PROVIDERS.get(self.provider)
        if self._call is None:
            raise NotImplementedError(
                f"LLM provider '{self.provider}' is not supported.  "
                f"Choose from: {', '.join(_PROVIDERS)}"
            )

        key_field = _KEY_FIELDS.get(self.provider)
        if key_field and not getattr(get_settings(), key_field):
            raise TransportError(
                f"{key_field} is not set.  "
                f"Set {key_field.upper()} in your .env file or environment."
            )

        self.system_instruction = system_instruction or build_system_instruction(load_table_schema())
        self.history: list[dict[str, str]] = []
        logger.info("Model session created  model=%s  provider=%s", model_id, self.provider)

    async def send(self, text: str) -> SqlDraft:
        """Send one user message; the exchange joins the history only if it parses."""
        message = {"role": "user", "content": text}
        logger.info("Calling LLM provider=%s  model=%s  prompt_len=%d", self.provider, self.model_id, len(text))
        reply = await self._call(self.model_id, self.system_instruction, [*self.history, message])
        draft = parse_sql_draft(reply)
        self.history.extend([message, {"role": "assistant", "content": reply}])
        return draft
