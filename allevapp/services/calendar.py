"""Outlook calendar events for maintenance and deadlines."""
import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Dict, Any

from allevapp.config import settings
from allevapp.errors import ValidationError
from allevapp.services.microsoft_graph import GraphClient

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_MINUTES = 15
DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def parse_attendees(raw) -> List[str]:
    """Accept a comma separated string or a list; keep entries that look like e-mail addresses"""
    if not raw:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    attendees = []
    for item in items:
        email = item.strip()
        if email and "@" in email and email not in attendees:
            attendees.append(email)
    return attendees


def event_window(
    start_date: date,
    start_time: Optional[time] = None,
    end_date: Optional[date] = None,
    end_time: Optional[time] = None,
    is_all_day: bool = False
) -> tuple:
    """
    Start/end strings for Graph.

    All-day events run from 00:00:00 on the start date to 23:59:59 on the end
    date (or the start date). Timed events without an end default to one hour.
    """
    if is_all_day:
        start = datetime.combine(start_date, time(0, 0, 0))
        end = datetime.combine(end_date or start_date, time(23, 59, 59))
    else:
        if start_time is None:
            raise ValidationError("Start time is required for events that are not all-day")
        start = datetime.combine(start_date, start_time)
        if end_time is not None:
            end = datetime.combine(end_date or start_date, end_time)
        else:
            end = start + timedelta(hours=1)

    if end < start:
        raise ValidationError("Event end is before its start")
    return start.strftime(DATETIME_FORMAT), end.strftime(DATETIME_FORMAT)


def build_event(
    subject: str,
    description: str,
    start: str,
    end: str,
    location: Optional[str] = None,
    attendees: Optional[List[str]] = None,
    is_all_day: bool = False,
    reminder_minutes: int = DEFAULT_REMINDER_MINUTES
) -> Dict[str, Any]:
    event = {
        "subject": subject,
        "body": {"contentType": "HTML", "content": description or ""},
        "start": {"dateTime": start, "timeZone": settings.calendar_timezone},
        "end": {"dateTime": end, "timeZone": settings.calendar_timezone},
        "attendees": [
            {"emailAddress": {"address": email, "name": email.split("@")[0]}, "type": "required"}
            for email in (attendees or [])
        ],
        "isAllDay": is_all_day,
        "reminderMinutesBeforeStart": reminder_minutes,
        "showAs": "busy",
        "importance": "normal",
    }
    if location:
        event["location"] = {"displayName": location}
    return event


def create_calendar_event(
    subject: str,
    description: str,
    start_date: date,
    start_time: Optional[time] = None,
    end_date: Optional[date] = None,
    end_time: Optional[time] = None,
    location: Optional[str] = None,
    attendees=None,
    is_all_day: bool = False,
    reminder_minutes: int = DEFAULT_REMINDER_MINUTES,
    client: Optional[GraphClient] = None
) -> Dict[str, Any]:
    if not subject:
        raise ValidationError("Event subject is required")

    start, end = event_window(start_date, start_time, end_date, end_time, is_all_day)
    event = build_event(
        subject=subject,
        description=description,
        start=start,
        end=end,
        location=location,
        attendees=parse_attendees(attendees),
        is_all_day=is_all_day,
        reminder_minutes=reminder_minutes
    )
    client = client or GraphClient()
    result = client.create_event(event)
    return {"success": True, **result}
