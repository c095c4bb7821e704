"""Operation IDs that tie log lines to the client call that caused them.

A public call (``update``, ``execute``, ``start``) opens a scope such as
``execute-3f9a01c2``. Everything it awaits, including a rediscovery, the login
it triggers and the retry, logs under that same ID. Background work (token
refresh, polling, post-rediscovery re-queries) opens a fresh scope so it never
borrows the ID of whatever call happened to spawn the task.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

__all__ = ["correlation_context", "current_correlation_id", "new_correlation_id"]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("kumo_correlation_id", default=None)


def new_correlation_id(operation: str | None = None) -> str:
    suffix = uuid.uuid4().hex[:8]
    return f"{operation}-{suffix}" if operation else suffix


def current_correlation_id() -> str | None:
    return _correlation_id.get()


@contextmanager
def correlation_context(operation: str | None = None, *, fresh: bool = False) -> Iterator[str]:
    """Run a block under an operation ID.

    Joins the active ID when there is one, so nested calls (``set_state`` ->
    ``execute`` -> ``update``) stay under their caller's ID. ``fresh=True``
    always starts a new ID; the previous one is restored on exit.
    """
    active = _correlation_id.get()
    if active is not None and not fresh:
        yield active
        return

    correlation_id = new_correlation_id(operation)
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)
