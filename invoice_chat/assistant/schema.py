"""
Loads and caches the target-table description used in the model prompt.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache
from typing import Any

import yaml

_SCHEMA_PATH = Path(__file__).resolve().parents[2] / "semantic_layer" / "invoice_schema.yml"


@dataclass(frozen=True)
class Column:
    name: str
    type: str
    description: str = ""


@dataclass(frozen=True)
class TableSchema:
    table: str
    description: str
    columns: list[Column] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)

    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


def _parse(raw: dict[str, Any]) -> TableSchema:
    return TableSchema(
        table=raw["table"],
        description=raw.get("description", ""),
        columns=[
            Column(name=c["name"], type=c.get("type", "text"), description=c.get("description", ""))
            for c in raw.get("columns", [])
        ],
        examples=list(raw.get("examples", [])),
    )


@lru_cache
def load_table_schema(path: str | None = None) -> TableSchema:
    """Read the schema YAML (default: semantic_layer/invoice_schema.yml)."""
    schema_path = Path(path) if path else _SCHEMA_PATH
    raw = yaml.safe_load(schema_path.read_text(encoding="utf-8"))
    return _parse(raw)
