from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from uuid import uuid4

LOGGING_CONTEXT_FIELDS = ("request_id", "endpoint", "command")

_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar(
    "apisign_logging_context", default=MappingProxyType({})
)


def get_logging_context() -> dict[str, str]:
    return dict(_CONTEXT.get())


@contextmanager
def with_logging_context(**context: str | None) -> Iterator[None]:
    """Layer fields onto the current context; unknown names and None are ignored."""
    merged = dict(_CONTEXT.get())
    for key, value in context.items():
        if key in LOGGING_CONTEXT_FIELDS and value is not None:
            merged[key] = value
    token = _CONTEXT.set(MappingProxyType(merged))
    try:
        yield
    finally:
        _CONTEXT.reset(token)


@contextmanager
def request_context(endpoint: str) -> Iterator[str]:
    """Scope one outbound request; yields the request id attached to its log lines."""
    request_id = uuid4().hex
    with with_logging_context(request_id=request_id, endpoint=endpoint):
        yield request_id
