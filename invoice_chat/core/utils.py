"""
Helpers shared by the gateway client and the conversation controller.
"""
from __future__ import annotations

import time

DETAIL_LIMIT = 200


class Stopwatch:
    """Wall-clock timer for one execute step.

    Used as a context manager; `elapsed_ms` is frozen when the block exits,
    whether it exits normally or by raising.  Read before exit it gives the
    time so far.
    """

    def __init__(self) -> None:
        self._start: float | None = None
        self._stop: float | None = None

    def __enter__(self) -> "Stopwatch":
        self._start = time.perf_counter()
        self._stop = None
        return self

    def __exit__(self, *exc_info) -> bool:
        self._stop = time.perf_counter()
        return False

    @property
    def elapsed_ms(self) -> int:
        if self._start is None:
            return 0
        end = self._stop if self._stop is not None else time.perf_counter()
        return int((end - self._start) * 1000)


def clip(text: str | None, limit: int = DETAIL_LIMIT) -> str:
    """Shorten a response body for an error detail shown in the UI."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"
