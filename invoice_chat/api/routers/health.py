"""GET /health -- database connectivity probe."""
from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from invoice_chat.core.errors import InvoiceChatError
from invoice_chat.governance.gateway import probe
from invoice_chat.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/health")
def health():
    try:
        now = probe()
    except InvoiceChatError as exc:
        logger.error("Database connection error: %s", exc)
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "message": str(exc),
                "detail": "No se pudo conectar al servidor PostgreSQL.",
            },
        )
    return {"status": "connected", "time": now}
