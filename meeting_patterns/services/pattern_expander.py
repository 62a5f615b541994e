# meeting_patterns/services/pattern_expander.py
from __future__ import annotations

import logging
from datetime import date as date_type, datetime, time as time_type, timedelta, timezone
from typing import Iterator, List, Optional, Tuple
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from meeting_patterns.core.timezones import get_zone
from meeting_patterns.schemas.occurrence import ExpandedOccurrence
from meeting_patterns.schemas.pattern import (
    DayOfMonthRule,
    MeetingPattern,
    NthWeekdayRule,
    RotatingRule,
    SpecificDatesRule,
)
from meeting_patterns.schemas.preview import LookaheadWindow
from meeting_patterns.services.date_rules import PatternDefinitionError, resolve_month_rule

logger = logging.getLogger(__name__)


class PatternExpander:
    """
    Turns a MeetingPattern into the concrete occurrences it implies over a
    date window.

    Rules
    -----
    - Day-of-month / nth-weekday: one candidate per calendar month touching
      the window; months where the rule has no day are skipped.
    - Specific dates: the configured (date, time) pairs inside the window.
      The window is not clamped for these.
    - Rotating: month k of the window (k=0 for the window's first month)
      uses rule `(current_rule_index + k) % len(rules)`. The rotation moves
      once per calendar month whether or not that month yields a date.
    - Inactive patterns yield nothing.

    The expander never mutates the pattern. For rotating patterns use
    `advanced_rule_index` to learn where the rotation stands after the
    window.
    """

    def __init__(self, max_months: int | None = 12) -> None:
        """
        Parameters
        ----------
        max_months:
            Expansion windows of recurring rules are clamped to this many
            months after their start. None disables the cap. Specific-dates
            patterns are finite and never clamped.
        """
        self.max_months = max_months

    def effective_window(self, window_start: date_type, window_end: date_type) -> LookaheadWindow:
        """
        The window recurring rules are actually expanded over.

        Callers that compare an expansion with stored occurrences must filter
        the stored side with this window too.
        """
        if window_end < window_start:
            raise ValueError("window_end must be greater than or equal to window_start")
        if self.max_months is not None:
            limit = window_start + relativedelta(months=self.max_months) - timedelta(days=1)
            window_end = min(window_end, limit)
        return LookaheadWindow(start=window_start, end=window_end)

    def expand(
        self,
        pattern: MeetingPattern,
        window_start: date_type,
        window_end: date_type,
    ) -> List[ExpandedOccurrence]:
        """
        Expand `pattern` over the inclusive window, sorted by UTC instant.
        """
        window_end = self._clamp_end(pattern, window_start, window_end)

        if not pattern.is_active:
            logger.debug("Pattern %s is inactive; nothing to expand", pattern.id)
            return []

        zone = get_zone(pattern.time_zone)
        occurrences = [
            self._build_occurrence(pattern, zone, day, local_time, rule_index)
            for day, local_time, rule_index in self._iter_local_dates(pattern, window_start, window_end)
        ]
        occurrences.sort(key=lambda occ: occ.scheduled_utc)

        logger.debug(
            "Expanded pattern %s (%s) over %s..%s into %d occurrence(s)",
            pattern.id,
            pattern.pattern_type.value,
            window_start,
            window_end,
            len(occurrences),
        )
        return occurrences

    def advanced_rule_index(
        self,
        pattern: MeetingPattern,
        window_start: date_type,
        window_end: date_type,
    ) -> Optional[int]:
        """
        Rotation index for the first month after the window, or None for
        non-rotating patterns.
        """
        if not isinstance(pattern.rule, RotatingRule):
            return None
        window_end = self._clamp_end(pattern, window_start, window_end)
        months = len(list(_iter_months(window_start, window_end)))
        return (pattern.rule.current_rule_index + months) % len(pattern.rule.rules)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _clamp_end(self, pattern: MeetingPattern, window_start: date_type, window_end: date_type) -> date_type:
        window = self.effective_window(window_start, window_end)
        if isinstance(pattern.rule, SpecificDatesRule):
            return window_end
        return window.end

    def _iter_local_dates(
        self,
        pattern: MeetingPattern,
        window_start: date_type,
        window_end: date_type,
    ) -> Iterator[Tuple[date_type, time_type, Optional[int]]]:
        rule = pattern.rule

        if isinstance(rule, SpecificDatesRule):
            for item in rule.dates:
                if window_start <= item.date <= window_end:
                    yield item.date, item.time, None
            return

        if isinstance(rule, (DayOfMonthRule, NthWeekdayRule)):
            for year, month in _iter_months(window_start, window_end):
                day = resolve_month_rule(rule, year, month)
                if day is not None and window_start <= day <= window_end:
                    yield day, pattern.default_time, None
            return

        if isinstance(rule, RotatingRule):
            rule_count = len(rule.rules)
            for months_elapsed, (year, month) in enumerate(_iter_months(window_start, window_end)):
                rule_index = (rule.current_rule_index + months_elapsed) % rule_count
                sub_rule = rule.rules[rule_index]
                day = resolve_month_rule(sub_rule.rule, year, month)
                if day is not None and window_start <= day <= window_end:
                    yield day, sub_rule.time or pattern.default_time, rule_index
            return

        raise PatternDefinitionError(f"Unsupported pattern rule: {type(rule).__name__}")

    def _build_occurrence(
        self,
        pattern: MeetingPattern,
        zone: ZoneInfo,
        day: date_type,
        local_time: time_type,
        rule_index: Optional[int],
    ) -> ExpandedOccurrence:
        scheduled_utc = to_utc_instant(pattern, zone, day, local_time)
        return ExpandedOccurrence(
            date=day,
            local_time=local_time,
            scheduled_utc=scheduled_utc,
            local_start=scheduled_utc.astimezone(zone),
            rule_index=rule_index,
        )


def to_utc_instant(
    pattern: MeetingPattern,
    zone: ZoneInfo,
    day: date_type,
    local_time: time_type,
) -> datetime:
    """
    Convert a local (date, time) to the UTC instant the pattern means.

    adjust_for_dst=True holds the wall clock: the offset is looked up for
    that very date. adjust_for_dst=False holds the UTC instant: the offset
    is the one in force when the pattern was saved, or the zone's standard
    offset when no save time is known.
    """
    local = datetime.combine(day, local_time)
    if pattern.adjust_for_dst:
        return local.replace(tzinfo=zone).astimezone(timezone.utc)

    if pattern.saved_at is not None:
        offset = pattern.saved_at.astimezone(zone).utcoffset()
    else:
        aware = local.replace(tzinfo=zone)
        offset = aware.utcoffset() - (aware.dst() or timedelta(0))
    return (local - offset).replace(tzinfo=timezone.utc)


def _iter_months(window_start: date_type, window_end: date_type) -> Iterator[Tuple[int, int]]:
    year, month = window_start.year, window_start.month
    while (year, month) <= (window_end.year, window_end.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1
