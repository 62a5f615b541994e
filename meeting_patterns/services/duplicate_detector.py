# meeting_patterns/services/duplicate_detector.py
from __future__ import annotations

from collections import defaultdict
from datetime import date as date_type, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from meeting_patterns.core.timezones import as_utc
from meeting_patterns.schemas.occurrence import Occurrence
from meeting_patterns.schemas.preview import DuplicateHit, DuplicateKind


class DuplicateDetector:
    """
    Guards a division calendar against double-booking.

    Built once over the active bookings the caller fetched for the
    calendar(s) in question; cancelled occurrences are ignored. A booking's
    date is the local date of its *actual* instant in its own zone, since
    that is when the room is really taken.
    """

    def __init__(
        self,
        occurrences: Iterable[Occurrence],
        overlap_window: timedelta = timedelta(hours=1),
    ) -> None:
        self.overlap_window = overlap_window
        self._by_calendar_date: Dict[Tuple[str, date_type], List[Occurrence]] = defaultdict(list)
        for occurrence in occurrences:
            if occurrence.is_cancelled:
                continue
            key = (occurrence.calendar_id, occurrence.actual_local_date)
            self._by_calendar_date[key].append(occurrence)

    def has_conflict(
        self,
        calendar_id: str,
        day: date_type,
        exclude_occurrence_id: Optional[str] = None,
        exclude_pattern_id: Optional[str] = None,
    ) -> bool:
        """
        True if another active booking exists on the same calendar and date.
        """
        return bool(
            self.find_conflicts(
                calendar_id,
                day,
                exclude_occurrence_id=exclude_occurrence_id,
                exclude_pattern_id=exclude_pattern_id,
            )
        )

    def find_conflicts(
        self,
        calendar_id: str,
        day: date_type,
        proposed_utc: Optional[datetime] = None,
        exclude_occurrence_id: Optional[str] = None,
        exclude_pattern_id: Optional[str] = None,
    ) -> List[DuplicateHit]:
        """
        Return every active booking on `calendar_id` for `day`, classified by
        how close it is to `proposed_utc` (SAME_DAY when no time is given).

        `exclude_occurrence_id` skips the occurrence being edited;
        `exclude_pattern_id` skips the pattern being edited, so a pattern
        never conflicts with its own bookings.
        """
        if proposed_utc is not None:
            proposed_utc = as_utc(proposed_utc)

        hits: List[DuplicateHit] = []
        for occurrence in self._by_calendar_date.get((calendar_id, day), []):
            if exclude_occurrence_id is not None and occurrence.id == exclude_occurrence_id:
                continue
            if exclude_pattern_id is not None and occurrence.pattern_id == exclude_pattern_id:
                continue
            hits.append(
                DuplicateHit(
                    occurrence_id=occurrence.id,
                    pattern_id=occurrence.pattern_id,
                    pattern_name=occurrence.pattern_name,
                    date=day,
                    existing_utc=occurrence.actual_scheduled_utc,
                    kind=self._classify(occurrence.actual_scheduled_utc, proposed_utc),
                )
            )
        hits.sort(key=lambda hit: (hit.existing_utc, hit.occurrence_id))
        return hits

    def _classify(self, existing_utc: datetime, proposed_utc: Optional[datetime]) -> DuplicateKind:
        if proposed_utc is None:
            return DuplicateKind.SAME_DAY
        gap = abs(existing_utc - proposed_utc)
        if gap == timedelta(0):
            return DuplicateKind.EXACT_TIME
        if gap < self.overlap_window:
            return DuplicateKind.OVERLAPPING_TIME
        return DuplicateKind.SAME_DAY
