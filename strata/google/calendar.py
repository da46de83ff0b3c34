"""
Google Calendar API client.
Thin async wrapper around the synchronous google-api-python-client.

Datetimes crossing this boundary are naive and in the user's local zone;
conversion to RFC 3339 happens here.
"""

import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from ..config import settings
from ..models import CalendarEvent, Result
from .base import GoogleAPIError, build_service, require_token, run_google_call

logger = logging.getLogger(__name__)


def to_rfc3339(local: datetime, tz: ZoneInfo) -> str:
    return local.replace(tzinfo=tz).isoformat()


def _parse_boundary(boundary: dict, tz: ZoneInfo) -> datetime | None:
    dt_str = boundary.get("dateTime")
    if dt_str:
        parsed = datetime.fromisoformat(dt_str.replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(tz).replace(tzinfo=None)
        return parsed
    day = boundary.get("date")
    if day:
        return datetime.combine(date.fromisoformat(day), time.min)
    return None


def parse_event(item: dict, tz: ZoneInfo) -> CalendarEvent | None:
    """Convert an API event resource into a CalendarEvent (None if unusable)."""
    try:
        start = _parse_boundary(item.get("start", {}), tz)
        end = _parse_boundary(item.get("end", {}), tz)
    except ValueError as e:
        logger.debug("Skipping event %s with unparseable times: %s", item.get("id"), e)
        return None
    if not item.get("id") or start is None:
        return None
    return CalendarEvent(
        id=item["id"],
        title=item.get("summary", "") or "",
        start=start,
        end=end or start,
        location=item.get("location"),
        notes=item.get("description"),
    )


class CalendarClient:
    """Wraps Google Calendar v3 API calls for the primary calendar."""

    def __init__(self, timezone: str | None = None, calendar_id: str = "primary") -> None:
        self._tz = ZoneInfo(timezone or settings.timezone)
        self._calendar_id = calendar_id

    async def list_events(
        self,
        token: str | None,
        start: datetime,
        end: datetime,
        title_filter: str | None = None,
    ) -> Result[list[CalendarEvent]]:
        """Events overlapping [start, end), optionally narrowed by a title substring."""
        if (missing := require_token(token)) is not None:
            return missing

        def _sync():
            request = build_service("calendar", "v3", token).events().list(
                calendarId=self._calendar_id,
                timeMin=to_rfc3339(start, self._tz),
                timeMax=to_rfc3339(end, self._tz),
                singleEvents=True,
                orderBy="startTime",
                maxResults=250,
                q=title_filter or None,
            )
            return request.execute().get("items", [])

        result = await run_google_call("calendar.list_events", _sync)
        if not result.ok:
            return result
        events = [e for e in (parse_event(item, self._tz) for item in result.value or []) if e]
        if title_filter:
            needle = title_filter.lower()
            events = [e for e in events if needle in e.title.lower()]
        return Result.success(events)

    async def create_event(
        self,
        token: str | None,
        title: str,
        start: datetime,
        end: datetime,
        location: str | None = None,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> Result[str]:
        """
        Insert an event and return its id.

        The idempotency key doubles as the client-chosen event id (hex is valid
        base32hex), so a retried insert that already landed comes back as 409.
        """
        if (missing := require_token(token)) is not None:
            return missing

        body = {
            "summary": title,
            "start": {"dateTime": to_rfc3339(start, self._tz), "timeZone": self._tz.key},
            "end": {"dateTime": to_rfc3339(end, self._tz), "timeZone": self._tz.key},
        }
        if location:
            body["location"] = location
        if notes:
            body["description"] = notes
        if idempotency_key:
            body["id"] = idempotency_key

        def _sync():
            return build_service("calendar", "v3", token).events().insert(
                calendarId=self._calendar_id, body=body
            ).execute()

        result = await run_google_call("calendar.create_event", _sync)
        if not result.ok:
            if idempotency_key and result.status_code == 409:
                logger.info("Event %s already exists; treating retried insert as done", idempotency_key)
                return Result.success(idempotency_key)
            return result
        return Result.success((result.value or {}).get("id", idempotency_key))

    async def update_event(
        self,
        token: str | None,
        event_id: str,
        new_start: datetime | None = None,
        new_end: datetime | None = None,
        new_title: str | None = None,
        new_location: str | None = None,
        new_notes: str | None = None,
    ) -> Result[CalendarEvent]:
        if (missing := require_token(token)) is not None:
            return missing

        body: dict = {}
        if new_title is not None:
            body["summary"] = new_title
        if new_location is not None:
            body["location"] = new_location
        if new_notes is not None:
            body["description"] = new_notes
        if new_start is not None:
            body["start"] = {"dateTime": to_rfc3339(new_start, self._tz), "timeZone": self._tz.key}
        if new_end is not None:
            body["end"] = {"dateTime": to_rfc3339(new_end, self._tz), "timeZone": self._tz.key}

        def _sync():
            return build_service("calendar", "v3", token).events().patch(
                calendarId=self._calendar_id, eventId=event_id, body=body
            ).execute()

        result = await run_google_call("calendar.update_event", _sync)
        if not result.ok:
            return result
        event = parse_event(result.value or {}, self._tz)
        if event is None:
            return Result.failure(GoogleAPIError(f"update of {event_id} returned no usable event"))
        return Result.success(event)

    async def delete_event_by_id(self, token: str | None, event_id: str) -> Result[None]:
        if (missing := require_token(token)) is not None:
            return missing

        def _sync():
            return build_service("calendar", "v3", token).events().delete(
                calendarId=self._calendar_id, eventId=event_id
            ).execute()

        result = await run_google_call("calendar.delete_event", _sync)
        if result.ok or result.status_code == 410:
            # 410: already deleted, e.g. by an earlier attempt of the same mutation
            return Result.success(None)
        return result

    async def delete_events_in_range(
        self,
        token: str | None,
        start: datetime,
        end: datetime,
        title_filter: str | None = None,
        start_time_filter: time | None = None,
    ) -> Result[int]:
        """Delete every event in the window matching the filters. Returns the count."""
        listed = await self.list_events(token, start, end, title_filter)
        if not listed.ok:
            return Result.failure(listed.error)

        targets = listed.value or []
        if start_time_filter is not None:
            targets = [
                e for e in targets
                if (e.start.hour, e.start.minute) == (start_time_filter.hour, start_time_filter.minute)
            ]

        deleted = 0
        for event in targets:
            outcome = await self.delete_event_by_id(token, event.id)
            if not outcome.ok:
                return Result.failure(outcome.error)
            deleted += 1
        return Result.success(deleted)


def day_range(day: date) -> tuple[datetime, datetime]:
    """[00:00, next day 00:00) for ``day``."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)
