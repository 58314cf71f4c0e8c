"""
HTTP client for the SQL gateway (`POST /query`, `GET /health`).

Maps the gateway's JSON error bodies back onto the error taxonomy:
403 -> PolicyViolation, 400 -> UpstreamQueryError, anything else or an
unreachable / non-JSON answer -> TransportError.
"""
from __future__ import annotations

from typing import Any

import httpx

from invoice_chat.assistant.exchange import ResultSet
from invoice_chat.core.config import get_settings
from invoice_chat.core.errors import PolicyViolation, TransportError, UpstreamQueryError
from invoice_chat.core.logging import get_logger
from invoice_chat.core.utils import clip

logger = get_logger(__name__)


class GatewayClient:
    """Thin async client.  A fresh httpx.AsyncClient is opened per call."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.gateway_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.gateway_timeout_s
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _json(resp: httpx.Response) -> dict[str, Any]:
        content_type = resp.headers.get("content-type", "")
        if "application/json" not in content_type:
            raise TransportError(
                f"Gateway returned non-JSON content ({resp.status_code})",
                detail=clip(resp.text),
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportError(
                f"Gateway returned invalid JSON ({resp.status_code})",
                detail=clip(resp.text),
            ) from exc
        if not isinstance(data, dict):
            raise TransportError(
                f"Gateway returned an unexpected JSON body ({resp.status_code})",
                detail=clip(resp.text),
            )
        return data

    async def query(self, sql: str) -> ResultSet:
        """Execute *sql* through the gateway."""
        try:
            async with self._client() as client:
                resp = await client.post("/query", json={"sql": sql})
        except httpx.HTTPError as exc:
            raise TransportError("Cannot reach the SQL gateway", detail=str(exc)) from exc

        data = self._json(resp)
        if resp.status_code == 403:
            raise PolicyViolation(data.get("error", "READ-ONLY MODE"))
        if resp.status_code == 400:
            raise UpstreamQueryError(data.get("error", "Query failed"))
        if resp.status_code != 200:
            raise TransportError(f"Gateway returned {resp.status_code}", detail=str(data))

        return ResultSet(columns=list(data.get("fields", [])), rows=list(data.get("rows", [])))

    async def health(self) -> dict[str, Any]:
        """Return the probe body; raises TransportError when the database is down."""
        try:
            async with self._client() as client:
                resp = await client.get("/health")
        except httpx.HTTPError as exc:
            raise TransportError("Cannot reach the SQL gateway", detail=str(exc)) from exc

        data = self._json(resp)
        if resp.status_code != 200 or data.get("status") != "connected":
            raise TransportError(data.get("message", f"Gateway returned {resp.status_code}"),
                                 detail=data.get("detail"))
        return data
