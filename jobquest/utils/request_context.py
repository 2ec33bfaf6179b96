"""Per-request identifier shared between the middleware, logs and error bodies."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_request_id: ContextVar[str | None] = ContextVar("jobquest_request_id", default=None)


def get_request_id() -> str | None:
    """Identifier of the request being handled, ``None`` outside a request."""

    return _request_id.get()


@contextmanager
def request_id_scope(request_id: str) -> Iterator[str]:
    """Bind ``request_id`` for the duration of the ``with`` block."""

    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


__all__ = ["get_request_id", "request_id_scope"]
