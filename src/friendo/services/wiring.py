"""Process-wide component graph built from Settings.

Each builder is cached so every request shares one window store, one
dispatcher and one set of external clients. Routes reach these through their
own ``_get_*`` accessors, which tests replace.
"""

from __future__ import annotations

from functools import lru_cache

from friendo.domain.action_router import ActionRouter
from friendo.domain.dispatch import MessageDispatcher
from friendo.domain.resolver import CommitmentResolver
from friendo.google_calendar.client import GoogleCalendarClient
from friendo.infra.settings import get_settings
from friendo.llm.client import CompletionClient
from friendo.whatsapp.window_store import MessageWindowStore

from .commitment_service import CommitmentService


@lru_cache(maxsize=1)
def build_calendar_client() -> GoogleCalendarClient:
    return GoogleCalendarClient(get_settings().calendar)


@lru_cache(maxsize=1)
def build_completion_client() -> CompletionClient:
    return CompletionClient(get_settings().completion)


@lru_cache(maxsize=1)
def build_window_store() -> MessageWindowStore:
    return MessageWindowStore(get_settings().max_window_size)


@lru_cache(maxsize=1)
def build_dispatcher() -> MessageDispatcher:
    """Dispatcher with the commitment resolver as its only handler."""
    settings = get_settings()
    window_store = build_window_store()
    resolver = CommitmentResolver(
        window_store,
        build_completion_client(),
        ActionRouter(build_calendar_client()),
        time_zone=settings.model_time_zone,
    )
    return MessageDispatcher(
        window_store,
        (resolver,),
        redact_wide_events=settings.redact_wide_events,
    )


@lru_cache(maxsize=1)
def build_commitment_service() -> CommitmentService:
    return CommitmentService(build_calendar_client())


def reset_wiring() -> None:
    """Drop every cached component (for tests)."""
    for builder in (
        build_calendar_client,
        build_completion_client,
        build_window_store,
        build_dispatcher,
        build_commitment_service,
    ):
        builder.cache_clear()
