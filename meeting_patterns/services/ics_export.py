# meeting_patterns/services/ics_export.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from icalendar import Calendar, Event

from meeting_patterns.schemas.occurrence import Occurrence
from meeting_patterns.schemas.pattern import MeetingPattern

PRODID = "-//Division Meetings//Meeting Patterns//EN"


def build_calendar(
    pattern: MeetingPattern,
    occurrences: Iterable[Occurrence],
    duration: timedelta = timedelta(hours=1),
    generated_at: Optional[datetime] = None,
) -> bytes:
    """
    Render a pattern's persisted occurrences as an iCalendar feed.

    Each occurrence becomes one VEVENT at its actual (possibly overridden)
    start, in UTC. Cancelled occurrences are left out.
    """
    stamp = generated_at or datetime.now(timezone.utc)

    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", pattern.name)
    cal.add("x-wr-timezone", pattern.time_zone)

    for occurrence in occurrences:
        if occurrence.is_cancelled:
            continue
        event = Event()
        event.add("uid", f"{occurrence.id}@meeting-patterns")
        event.add("dtstamp", stamp)
        event.add("dtstart", occurrence.actual_scheduled_utc)
        event.add("dtend", occurrence.actual_scheduled_utc + duration)
        event.add("summary", pattern.name)
        if occurrence.override_reason:
            event.add("description", occurrence.override_reason)
        cal.add_component(event)

    return cal.to_ical()
