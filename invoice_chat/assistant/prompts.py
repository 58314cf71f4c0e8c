"""
Fixed instruction prompt and structured-output contract for the model session.

The model must answer with exactly two string fields, ``sqlQuery`` and
``explanation``.  `parse_sql_draft` is the only place that contract is
checked.
"""
from __future__ import annotations

import json
import re

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from invoice_chat.assistant.schema import TableSchema
from invoice_chat.core.errors import MalformedResponseError

_SYSTEM_INSTRUCTION = """\
You are an expert PostgreSQL Data Analyst.
Your task is to generate valid PostgreSQL SQL queries based on natural language user requests.
You are working with a specific table named '{table}' ({description}).
Its columns are:
{columns}

Rules:
1. Read-only mode: ONLY generate a single SELECT query. Never DROP, DELETE, TRUNCATE, UPDATE or INSERT.
2. Provide a brief explanation of what the query does.
3. Always output a JSON object with exactly the fields "sqlQuery" and "explanation". \
No markdown, no extra fields."""


class SqlDraft(BaseModel):
    """The two-field structured answer."""

    model_config = ConfigDict(extra="forbid")

    sqlQuery: str
    explanation: str


RESPONSE_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "sqlQuery": {"type": "string", "description": "The executable PostgreSQL query"},
        "explanation": {"type": "string", "description": "A brief explanation of the logic"},
    },
    "required": ["sqlQuery", "explanation"],
    "additionalProperties": False,
}


def build_system_instruction(schema: TableSchema) -> str:
    columns = "\n".join(
        f"  - {c.name} ({c.type}){': ' + c.description if c.description else ''}"
        for c in schema.columns
    )
    return _SYSTEM_INSTRUCTION.format(
        table=schema.table,
        description=schema.description or "invoice data",
        columns=columns,
    )


def parse_sql_draft(text: str) -> SqlDraft:
    """Parse the model's reply into a SqlDraft.

    Raises
    ------
    MalformedResponseError
        Empty reply, invalid JSON, or anything but the two string fields.
    """
    text = (text or "").strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)
    if not text:
        raise MalformedResponseError("Empty model response")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError("Model response is not valid JSON", detail=str(exc)) from exc

    try:
        return SqlDraft.model_validate(data, strict=True)
    except PydanticValidationError as exc:
        raise MalformedResponseError(
            "Model response does not match the {sqlQuery, explanation} contract",
            detail=str(exc),
        ) from exc
