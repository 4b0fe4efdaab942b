"""Thin wrapper around the Google Calendar v3 API.

Purpose:
- Encapsulate Calendar calls so domain code doesn't import googleapiclient.
- Attach the standard reminder ladder to every event.
- Bound every request by an explicit HTTP timeout; any transport or API
  error becomes CalendarFailure.
- Log only event ids, never summaries or descriptions.
"""

from __future__ import annotations

from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from friendo.domain.errors import CalendarFailure
from friendo.domain.models import CalendarEvent
from friendo.infra.settings import CalendarSettings
from friendo.observability.logging import get_logger
from friendo.observability.redaction import safe_log_context

logger = get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]

# Minutes before start: 30m, 1h, 3h, 12h, 24h
REMINDER_MINUTES = (30, 60, 3 * 60, 12 * 60, 24 * 60)

_GONE_STATUSES = (404, 410)

_TRANSPORT_ERRORS = (
    HttpError,
    GoogleAuthError,
    httplib2.HttpLib2Error,
    OSError,
)


def build_event_body(event: CalendarEvent, time_zone: str) -> dict[str, Any]:
    """Calendar API event resource for ``event``."""
    return {
        "summary": event.summary,
        "description": event.description,
        "start": {"dateTime": event.start_time.isoformat(), "timeZone": time_zone},
        "end": {"dateTime": event.effective_end_time.isoformat(), "timeZone": time_zone},
        "reminders": {
            "useDefault": False,
            "overrides": [{"method": "popup", "minutes": m} for m in REMINDER_MINUTES],
        },
    }


class GoogleCalendarClient:
    """Create, update and delete events in one calendar.

    Usage:
        client = GoogleCalendarClient(get_settings().calendar)
        event_id = client.create_event(event)
    """

    def __init__(self, settings: CalendarSettings, service: Any | None = None) -> None:
        """Initialize the calendar client.

        Args:
            settings: Calendar id, time zone, credentials and timeout.
            service: Prebuilt Calendar API resource (tests).

        Raises:
            RuntimeError: If no credentials are configured and no service is given.
        """
        if service is None and not (settings.service_account_file or settings.token_file):
            raise RuntimeError(
                "Calendar credentials not provided. "
                "Set GOOGLE_CALENDAR_SA_FILE or GOOGLE_CALENDAR_TOKEN_FILE."
            )
        self._settings = settings
        self._service = service

    def _credentials(self) -> Any:
        if self._settings.service_account_file:
            creds = service_account.Credentials.from_service_account_file(
                self._settings.service_account_file, scopes=SCOPES
            )
            if self._settings.delegated_user:
                creds = creds.with_subject(self._settings.delegated_user)
            return creds
        return user_credentials.Credentials.from_authorized_user_file(
            self._settings.token_file, SCOPES
        )

    def _get_service(self) -> Any:
        if self._service is None:
            http = AuthorizedHttp(
                self._credentials(),
                http=httplib2.Http(timeout=self._settings.timeout_seconds),
            )
            self._service = build("calendar", "v3", http=http, cache_discovery=False)
        return self._service

    def create_event(self, event: CalendarEvent) -> str:
        """Insert ``event`` and return the new event id.

        Raises:
            CalendarFailure: On API, auth or transport errors (incl. timeout).
        """
        body = build_event_body(event, self._settings.time_zone)
        try:
            created = (
                self._get_service()
                .events()
                .insert(calendarId=self._settings.calendar_id, body=body)
                .execute()
            )
        except _TRANSPORT_ERRORS as exc:
            self._log_failure("create", None, exc)
            raise CalendarFailure("failed to create calendar event") from exc

        event_id = created["id"]
        logger.info(
            "calendar event created",
            extra={"extra_fields": safe_log_context(event_id=event_id)},
        )
        return event_id

    def update_event(self, event_id: str, event: CalendarEvent) -> str:
        """Overwrite the event's fields and return the (possibly new) event id.

        Raises:
            CalendarFailure: On API, auth or transport errors (incl. timeout).
        """
        try:
            service = self._get_service()
            existing = (
                service.events()
                .get(calendarId=self._settings.calendar_id, eventId=event_id)
                .execute()
            )
            existing.update(build_event_body(event, self._settings.time_zone))
            updated = (
                service.events()
                .update(calendarId=self._settings.calendar_id, eventId=event_id, body=existing)
                .execute()
            )
        except _TRANSPORT_ERRORS as exc:
            self._log_failure("update", event_id, exc)
            raise CalendarFailure(f"failed to update calendar event {event_id}") from exc

        new_event_id = updated["id"]
        logger.info(
            "calendar event updated",
            extra={"extra_fields": safe_log_context(event_id=new_event_id)},
        )
        return new_event_id

    def delete_event(self, event_id: str) -> None:
        """Delete the event. An event that is already gone counts as deleted.

        Raises:
            CalendarFailure: On API, auth or transport errors (incl. timeout).
        """
        try:
            (
                self._get_service()
                .events()
                .delete(calendarId=self._settings.calendar_id, eventId=event_id)
                .execute()
            )
        except HttpError as exc:
            if exc.resp is not None and exc.resp.status in _GONE_STATUSES:
                logger.info(
                    "calendar event already deleted",
                    extra={"extra_fields": safe_log_context(event_id=event_id)},
                )
                return
            self._log_failure("delete", event_id, exc)
            raise CalendarFailure(f"failed to delete calendar event {event_id}") from exc
        except _TRANSPORT_ERRORS as exc:
            self._log_failure("delete", event_id, exc)
            raise CalendarFailure(f"failed to delete calendar event {event_id}") from exc

        logger.info(
            "calendar event deleted",
            extra={"extra_fields": safe_log_context(event_id=event_id)},
        )

    @staticmethod
    def _log_failure(operation: str, event_id: str | None, exc: Exception) -> None:
        logger.error(
            "calendar request failed",
            extra={
                "extra_fields": safe_log_context(
                    operation=operation,
                    event_id=event_id,
                    error_type=type(exc).__name__,
                )
            },
        )
