"""POST /query -- run one read-only statement through the gateway."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter

from invoice_chat.governance.gateway import run_query
from invoice_chat.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class QueryRequest(BaseModel):
    # Optional here so a missing field maps to 400, not FastAPI's 422
    sql: str | None = Field(None, description="A single SQL statement")


class QueryResponse(BaseModel):
    rows: list[dict[str, Any]]
    rowCount: int
    fields: list[str]


@router.post("/query", response_model=QueryResponse)
def query_endpoint(req: QueryRequest):
    """Validate -> policy check -> execute.  Errors are mapped by the app's handlers."""
    result = run_query(req.sql)
    return QueryResponse(rows=result.rows, rowCount=result.row_count, fields=result.columns)
