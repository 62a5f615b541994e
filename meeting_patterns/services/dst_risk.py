# meeting_patterns/services/dst_risk.py
from __future__ import annotations

import logging
from datetime import date as date_type, datetime, time as time_type, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from meeting_patterns.core.timezones import get_zone
from meeting_patterns.schemas.preview import DstTransition, DstWarning, TransitionKind

logger = logging.getLogger(__name__)

_SCAN_STEP = timedelta(days=1)
_PRECISION = timedelta(minutes=1)


class LocalTimeIssue(str, Enum):
    NONEXISTENT = "nonexistent"  # skipped by a spring-forward gap
    AMBIGUOUS = "ambiguous"  # occurs twice in a fall-back overlap


class DstRiskAnalyzer:
    """
    Reads UTC offset changes for a zone from the zone database so previews
    can warn that a fixed local meeting time is about to move in UTC terms
    (or vice versa).

    Transitions are located by sampling the zone's offset once a day and
    bisecting any change down to the minute; nothing about *when* zones
    change is assumed here. A missing zone raises TimeZoneDataError rather
    than producing an empty (and misleading) list.
    """

    def __init__(self, zone_provider: Callable[[str], ZoneInfo] = get_zone) -> None:
        self._zone_provider = zone_provider

    def find_upcoming_transitions(
        self,
        time_zone: str,
        from_date: date_type,
        horizon_days: int,
    ) -> List[DstTransition]:
        """
        List offset transitions from local midnight of `from_date` through
        the following `horizon_days` days.
        """
        if horizon_days < 0:
            raise ValueError("horizon_days must be zero or positive")

        zone = self._zone_provider(time_zone)
        start = datetime.combine(from_date, time_type.min, tzinfo=zone).astimezone(timezone.utc)
        end = start + timedelta(days=horizon_days)

        transitions: List[DstTransition] = []
        cursor = start
        cursor_offset = cursor.astimezone(zone).utcoffset()
        while cursor < end:
            step_end = min(cursor + _SCAN_STEP, end)
            step_offset = step_end.astimezone(zone).utcoffset()
            if step_offset != cursor_offset:
                transitions.append(self._locate(zone, cursor, step_end))
            cursor, cursor_offset = step_end, step_offset

        logger.debug(
            "Found %d transition(s) for %s within %d day(s) of %s",
            len(transitions),
            time_zone,
            horizon_days,
            from_date,
        )
        return transitions

    def build_warnings(
        self,
        time_zone: str,
        transitions: List[DstTransition],
        adjust_for_dst: bool,
    ) -> List[DstWarning]:
        """
        Turn transitions into administrator-facing warnings.
        """
        warnings: List[DstWarning] = []
        for transition in transitions:
            label = (
                "Daylight saving time begins"
                if transition.kind is TransitionKind.SPRING_FORWARD
                else "Daylight saving time ends"
            )
            shift = (
                "meetings keep their local time and move in UTC"
                if adjust_for_dst
                else "meetings keep their UTC time and move on the local clock"
            )
            warnings.append(
                DstWarning(
                    date=transition.transition_date,
                    description=(
                        f"{label} on {transition.transition_date.isoformat()} in {time_zone} "
                        f"(UTC{_format_offset(transition.offset_before_minutes)} -> "
                        f"UTC{_format_offset(transition.offset_after_minutes)}); {shift}."
                    ),
                )
            )
        return warnings

    def check_local_time(self, time_zone: str, local: datetime) -> Optional[LocalTimeIssue]:
        """
        Flag a naive local wall time that a DST transition skips or repeats.
        """
        zone = self._zone_provider(time_zone)
        naive = local.replace(tzinfo=None)
        first = naive.replace(tzinfo=zone, fold=0)
        second = naive.replace(tzinfo=zone, fold=1)
        if first.utcoffset() == second.utcoffset():
            return None
        round_trip = first.astimezone(timezone.utc).astimezone(zone).replace(tzinfo=None)
        if round_trip != naive:
            return LocalTimeIssue.NONEXISTENT
        return LocalTimeIssue.AMBIGUOUS

    @staticmethod
    def _locate(zone: ZoneInfo, low: datetime, high: datetime) -> DstTransition:
        before = low.astimezone(zone).utcoffset()
        after = high.astimezone(zone).utcoffset()

        while high - low > _PRECISION:
            middle = low + (high - low) / 2
            if middle.astimezone(zone).utcoffset() == before:
                low = middle
            else:
                high = middle

        instant = high.replace(second=0, microsecond=0)
        if instant.astimezone(zone).utcoffset() != after:
            instant += _PRECISION

        before_minutes = int(before.total_seconds() // 60)
        after_minutes = int(after.total_seconds() // 60)
        return DstTransition(
            transition_date=instant.astimezone(zone).date(),
            kind=TransitionKind.SPRING_FORWARD if after_minutes > before_minutes else TransitionKind.FALL_BACK,
            instant_utc=instant,
            offset_before_minutes=before_minutes,
            offset_after_minutes=after_minutes,
        )


def _format_offset(minutes: int) -> str:
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"
