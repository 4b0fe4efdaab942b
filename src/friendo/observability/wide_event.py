"""Wide event context: one structured record per unit of work.

Code along the call chain enriches a key/value accumulator; the enclosing
scope emits the whole accumulator as a single log record when the unit ends,
whatever way it ends, and then discards it.

The accumulator lives in a ContextVar, so every thread (and every asyncio
task) sees its own. A scope always starts from an empty accumulator and
restores the previous one on exit, which keeps pooled worker threads from
carrying state between cycles.

Usage:
    with wide_event_scope("whatsapp.dispatch"):
        enrich("commitmentManagement", CommitmentManagementContext(success=True))
"""

from __future__ import annotations

import functools
import json
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import fields
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping, TypeVar

from .logging import get_logger

logger = get_logger(__name__)

WIDE_EVENT_MESSAGE = "wide event"

M = TypeVar("M", bound="Mergeable")
F = TypeVar("F", bound=Callable[..., Any])

WideEventSink = Callable[[str, Mapping[str, Any]], None]

_context_var: ContextVar[dict[str, Any] | None] = ContextVar(
    "wide_event_context", default=None
)


class Mergeable:
    """Base for dataclass values describing part of one logical event.

    ``merge`` combines two partial views field by field: a field set on
    ``other`` wins, a field left as None on ``other`` keeps this value.
    Subclasses must be dataclasses.
    """

    def merge(self: M, other: M) -> M:
        values: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            new_value = getattr(other, f.name)
            values[f.name] = new_value if new_value is not None else getattr(self, f.name)
        return type(self)(**values)

    def redacted(self: M) -> M:
        """Return a copy safe to write to logs (identity by default)."""
        return self

    def to_log_dict(self) -> dict[str, Any]:
        """Fields that are set, keyed by field name."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)  # type: ignore[arg-type]
            if getattr(self, f.name) is not None
        }


def _current(create: bool) -> dict[str, Any] | None:
    context = _context_var.get()
    if context is None and create:
        context = {}
        _context_var.set(context)
    return context


def enrich(key: str, value: Mergeable) -> None:
    """Merge ``value`` into the entry under ``key``.

    The existing entry is merged only when it has exactly the same type;
    anything else is overwritten.
    """
    context = _current(create=True)
    existing = context.get(key)
    if existing is not None and type(existing) is type(value):
        context[key] = existing.merge(value)
    else:
        context[key] = value


def put(key: str, value: Any) -> None:
    """Store ``value`` under ``key`` without merging."""
    _current(create=True)[key] = value


def get(key: str) -> Any:
    """Return the entry under ``key`` or None."""
    context = _current(create=False)
    if context is None:
        return None
    return context.get(key)


def snapshot() -> Mapping[str, Any]:
    """Read-only copy of the current accumulator."""
    context = _current(create=False)
    return MappingProxyType(dict(context or {}))


def clear() -> None:
    """Discard the accumulator of the calling context."""
    _context_var.set(None)


def _to_loggable(value: Any, redact: bool) -> Any:
    if isinstance(value, Mergeable):
        return (value.redacted() if redact else value).to_log_dict()
    return value


def log_wide_event(operation: str, context: Mapping[str, Any], *, redact: bool = True) -> None:
    """Default sink: a single JSON log record carrying the whole context."""
    payload = {key: _to_loggable(value, redact) for key, value in context.items()}
    try:
        serialized = json.loads(json.dumps(payload, default=str))
    except (TypeError, ValueError):
        logger.exception(
            "failed to serialize wide event context",
            extra={"extra_fields": {"operation": operation}},
        )
        serialized = {key: repr(value) for key, value in payload.items()}

    logger.info(
        WIDE_EVENT_MESSAGE,
        extra={"extra_fields": {"operation": operation, "context": serialized}},
    )


@contextmanager
def wide_event_scope(
    operation: str,
    *,
    sink: WideEventSink | None = None,
    redact: bool = True,
) -> Iterator[None]:
    """Run the block with a fresh accumulator; emit it once and clear it.

    The emit happens in ``finally``: on normal return and when the block
    raises. An empty accumulator emits nothing. The block's exception, if
    any, propagates unchanged.
    """
    token = _context_var.set({})
    try:
        yield
    finally:
        try:
            context = snapshot()
            if context:
                if sink is None:
                    log_wide_event(operation, context, redact=redact)
                else:
                    sink(operation, context)
        finally:
            _context_var.reset(token)


def with_wide_event_logging(operation: str | None = None) -> Callable[[F], F]:
    """Decorator form of wide_event_scope; operation defaults to the qualname."""

    def decorator(func: F) -> F:
        name = operation or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with wide_event_scope(name):
                return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
