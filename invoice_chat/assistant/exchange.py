"""
Conversation records.

A model exchange carries exactly one state at a time:

  Pending -> Generated -> Succeeded | Failed

`generated_sql`, `result_set` and `error_message` are read off that state,
so a result and an error can never be set together.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class ResultSet:
    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Generated:
    """SQL is known.  `executing` is set while the gateway call is running."""
    sql: str
    explanation: str
    executing: bool = False


@dataclass(frozen=True)
class Succeeded:
    sql: str
    explanation: str
    result: ResultSet
    elapsed_ms: int = 0


@dataclass(frozen=True)
class Failed:
    message: str
    kind: str = "error"
    detail: str | None = None
    sql: str | None = None
    explanation: str = ""


ExchangeState = Union[Pending, Generated, Succeeded, Failed]


class Role(str, enum.Enum):
    USER = "user"
    MODEL = "model"


@dataclass
class Exchange:
    """One user or model turn.  Only model exchanges carry a state."""

    id: str
    role: Role
    text: str
    state: ExchangeState | None = None
    rating: int | None = None

    @property
    def status(self) -> str:
        if isinstance(self.state, Pending):
            return "thinking"
        if isinstance(self.state, Generated):
            # SQL is shown, but the turn is still thinking until execution settles
            return "thinking" if self.state.executing else "generated"
        if isinstance(self.state, Succeeded):
            return "settled"
        if isinstance(self.state, Failed):
            return "error"
        return "idle"

    @property
    def generated_sql(self) -> str | None:
        return getattr(self.state, "sql", None)

    @property
    def result_set(self) -> ResultSet | None:
        if isinstance(self.state, Succeeded):
            return self.state.result
        return None

    @property
    def error_message(self) -> str | None:
        if isinstance(self.state, Failed):
            return self.state.message
        return None

    @property
    def elapsed_ms(self) -> int | None:
        if isinstance(self.state, Succeeded):
            return self.state.elapsed_ms
        return None


class LinkState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class ConnectionStatus:
    """Advisory status of the model session or the database gateway."""

    state: LinkState = LinkState.UNINITIALIZED
    detail: str | None = None
