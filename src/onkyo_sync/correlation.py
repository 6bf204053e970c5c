"""Per-task correlation ids for log lines.

The id lives in a ``ContextVar``, so tasks spawned inside a correlation
scope inherit it. The dispatcher opens one scope per command; the CLI opens
one per invocation.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_current: contextvars.ContextVar[str | None] = contextvars.ContextVar("onkyo_correlation_id", default=None)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    return _current.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _ = _current.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: str | None = None, auto_generate: bool = True) -> Iterator[str | None]:
    """Bind ``correlation_id`` (or a fresh one) for the duration of the block.

    With ``auto_generate=False`` and no id the scope runs without one. The
    enclosing id is restored on exit.
    """
    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()
    token = _current.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _current.reset(token)


def ensure_correlation_id() -> str:
    """Current id, creating one first when the context has none (long-running entry points)."""
    correlation_id = _current.get()
    if correlation_id is None:
        correlation_id = generate_correlation_id()
        _ = _current.set(correlation_id)
    return correlation_id
