"""Run correlation id carried through a :class:`contextvars.ContextVar`.

The orchestrator binds a fresh id for each run.  Fan-out workers run
inside a copy of the submitting context, so their log records carry
the same id.
"""

from __future__ import annotations

import contextlib
import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

_run_id: ContextVar[str | None] = ContextVar("autocert_run_id", default=None)


def current_run_id() -> str | None:
    return _run_id.get()


@contextlib.contextmanager
def bind_run(run_id: str | None = None) -> Iterator[str]:
    """Bind *run_id* (or a new one) for the duration of the block."""
    value = run_id or uuid.uuid4().hex[:12]
    token = _run_id.set(value)
    try:
        yield value
    finally:
        _run_id.reset(token)
