# meeting_patterns/services/occurrence_diff.py
from __future__ import annotations

from collections import defaultdict
from datetime import date as date_type
from typing import Dict, Iterable, List, Sequence

from meeting_patterns.schemas.occurrence import ExpandedOccurrence, Occurrence
from meeting_patterns.schemas.preview import ConflictKind, OccurrenceDiff, PreviewConflict


class OccurrenceDiffEngine:
    """
    Classifies persisted occurrences against the dates a candidate pattern
    implies.

    Rules
    -----
    1) Pinned (overridden or cancelled)      => preserved, always
    2) Plain, date no longer implied         => removal
    3) Plain, date implied at the same time  => kept (not reported)
    4) Plain, date implied at another time   => TIME_CHANGED conflict
                                                (non-blocking, reads as "moved")
    5) Implied date with no occurrence       => addition

    Dates are compared by the local date the pattern originally generated
    each occurrence for. When several plain occurrences share one date, the
    best match is kept (or re-timed) and the rest are removals.
    """

    @staticmethod
    def diff(
        existing_occurrences: Iterable[Occurrence],
        candidate_occurrences: Sequence[ExpandedOccurrence],
    ) -> OccurrenceDiff:
        candidates_by_date: Dict[date_type, ExpandedOccurrence] = {
            candidate.date: candidate for candidate in candidate_occurrences
        }

        preserved: List[Occurrence] = []
        plain_by_date: Dict[date_type, List[Occurrence]] = defaultdict(list)
        for occurrence in existing_occurrences:
            if occurrence.is_pinned:
                preserved.append(occurrence)
            else:
                plain_by_date[occurrence.original_local_date].append(occurrence)

        removals: List[Occurrence] = []
        conflicts: List[PreviewConflict] = []
        matched_dates = {occurrence.original_local_date for occurrence in preserved}

        for day in sorted(plain_by_date):
            plain = plain_by_date[day]
            candidate = candidates_by_date.get(day)
            if candidate is None:
                removals.extend(plain)
                continue

            matched_dates.add(day)
            exact = [occ for occ in plain if occ.original_scheduled_utc == candidate.scheduled_utc]
            keeper = exact[0] if exact else plain[0]
            removals.extend(occ for occ in plain if occ is not keeper)

            if not exact:
                conflicts.append(
                    PreviewConflict(
                        kind=ConflictKind.TIME_CHANGED,
                        date=day,
                        blocking=False,
                        message=(
                            f"Meeting on {day.isoformat()} moves from "
                            f"{keeper.original_scheduled_utc.strftime('%H:%M')} UTC to "
                            f"{candidate.scheduled_utc.strftime('%H:%M')} UTC"
                        ),
                        existing_occurrence_id=keeper.id,
                        existing_utc=keeper.original_scheduled_utc,
                        proposed_utc=candidate.scheduled_utc,
                    )
                )

        additions = [
            candidate
            for candidate in candidate_occurrences
            if candidate.date not in matched_dates
        ]

        removals.sort(key=lambda occ: (occ.original_scheduled_utc, occ.id))
        preserved.sort(key=lambda occ: (occ.original_scheduled_utc, occ.id))

        return OccurrenceDiff(
            additions=additions,
            removals=removals,
            preserved=preserved,
            conflicts=conflicts,
        )
