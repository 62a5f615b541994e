# meeting_patterns/services/change_preview.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from meeting_patterns.schemas.occurrence import ExpandedOccurrence, Occurrence
from meeting_patterns.schemas.pattern import MeetingPattern
from meeting_patterns.schemas.preview import (
    ChangePreview,
    ConflictKind,
    DuplicateHit,
    DuplicateKind,
    LookaheadWindow,
    PreviewConflict,
    PreviewSummary,
)
from meeting_patterns.services.dst_risk import DstRiskAnalyzer, LocalTimeIssue
from meeting_patterns.services.duplicate_detector import DuplicateDetector
from meeting_patterns.services.occurrence_diff import OccurrenceDiffEngine
from meeting_patterns.services.pattern_expander import PatternExpander

logger = logging.getLogger(__name__)

_KIND_LABELS = {
    DuplicateKind.EXACT_TIME: "at exactly the same time as",
    DuplicateKind.OVERLAPPING_TIME: "within the overlap window of",
    DuplicateKind.SAME_DAY: "on the same day as",
}


class ChangePreviewBuilder:
    """
    Orchestrates expansion, diffing, duplicate and DST checks into the
    ChangePreview an administrator confirms before a pattern edit is saved.

    Steps
    -----
    1) Expand the stored and the candidate pattern over the window.
    2) Diff the candidate expansion against the in-window occurrences.
    3) Check every addition and re-timed date against other patterns'
       bookings on the calendar (blocking).
    4) Read DST transitions for the window (warnings only).
    5) Collect errors (blocking) and warnings (everything else).

    The builder holds configuration only. Identical inputs give identical
    previews, and nothing passed in is modified.
    """

    def __init__(
        self,
        expander: Optional[PatternExpander] = None,
        dst_analyzer: Optional[DstRiskAnalyzer] = None,
        overlap_window: timedelta = timedelta(hours=1),
        large_removal_threshold: int = 5,
        large_change_threshold: int = 10,
    ) -> None:
        self.expander = expander or PatternExpander()
        self.dst_analyzer = dst_analyzer or DstRiskAnalyzer()
        self.overlap_window = overlap_window
        self.large_removal_threshold = large_removal_threshold
        self.large_change_threshold = large_change_threshold

    def build_preview(
        self,
        old_pattern: Optional[MeetingPattern],
        candidate_pattern: MeetingPattern,
        existing_occurrences: Iterable[Occurrence],
        lookahead_window: LookaheadWindow,
        calendar_occurrences: Iterable[Occurrence] = (),
    ) -> ChangePreview:
        """
        Build the preview for replacing `old_pattern` with `candidate_pattern`.

        Parameters
        ----------
        old_pattern:
            The stored version, or None when previewing a brand-new pattern.
        lookahead_window:
            Requested window. It is clamped the way the expander clamps
            recurring rules, and the clamped window is what the preview
            reports and diffs over.
        existing_occurrences:
            Persisted occurrences of the pattern being edited. Those outside
            the window are ignored.
        calendar_occurrences:
            Bookings on the same calendar from other patterns, used for
            double-booking checks. Occurrences of the edited pattern are
            skipped automatically.
        """
        window = self.expander.effective_window(lookahead_window.start, lookahead_window.end)
        start, end = window.start, window.end

        current = self.expander.expand(old_pattern, start, end) if old_pattern is not None else []
        candidates = self.expander.expand(candidate_pattern, start, end)

        in_window = [
            occurrence
            for occurrence in existing_occurrences
            if window.contains(occurrence.original_local_date)
        ]
        diff = OccurrenceDiffEngine.diff(in_window, candidates)

        detector = DuplicateDetector(calendar_occurrences, overlap_window=self.overlap_window)
        double_bookings = self._double_bookings(detector, candidate_pattern, diff.additions, diff.conflicts)
        conflicts = sorted(diff.conflicts + double_bookings, key=lambda c: (c.date, c.kind.value))

        transitions = self.dst_analyzer.find_upcoming_transitions(
            candidate_pattern.time_zone,
            start,
            window.days,
        )
        dst_warnings = self.dst_analyzer.build_warnings(
            candidate_pattern.time_zone,
            transitions,
            candidate_pattern.adjust_for_dst,
        )

        errors = [conflict.message for conflict in conflicts if conflict.blocking]
        warnings = [conflict.message for conflict in conflicts if not conflict.blocking]
        warnings.extend(warning.description for warning in dst_warnings)
        warnings.extend(self._wall_clock_warnings(candidate_pattern, diff.additions))

        time_changed = [c for c in diff.conflicts if c.kind is ConflictKind.TIME_CHANGED]
        total_changes = len(diff.additions) + len(diff.removals) + len(time_changed)
        if len(diff.removals) > self.large_removal_threshold:
            warnings.append(f"This change will remove {len(diff.removals)} scheduled meetings")
        if total_changes > self.large_change_threshold:
            warnings.append(f"This change will affect {total_changes} meetings")

        affected_dates = (
            {occ.date for occ in diff.additions}
            | {occ.original_local_date for occ in diff.removals}
            | {conflict.date for conflict in time_changed}
        )
        summary = PreviewSummary(
            total_changes=total_changes,
            affected_dates=len(affected_dates),
            has_conflicts=bool(conflicts),
            has_removals=bool(diff.removals),
        )

        logger.debug(
            "Preview for pattern %s: +%d -%d ~%d, %d blocking",
            candidate_pattern.id,
            len(diff.additions),
            len(diff.removals),
            len(time_changed),
            len(errors),
        )

        return ChangePreview(
            window=window,
            current_occurrences=current,
            candidate_occurrences=candidates,
            additions=diff.additions,
            removals=diff.removals,
            preserved=diff.preserved,
            conflicts=conflicts,
            dst_warnings=dst_warnings,
            advanced_rule_index=self.expander.advanced_rule_index(candidate_pattern, start, end),
            summary=summary,
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
        )

    def _double_bookings(
        self,
        detector: DuplicateDetector,
        pattern: MeetingPattern,
        additions: List[ExpandedOccurrence],
        diff_conflicts: List[PreviewConflict],
    ) -> List[PreviewConflict]:
        proposals = [(occ.date, occ.scheduled_utc) for occ in additions]
        proposals.extend(
            (conflict.date, conflict.proposed_utc)
            for conflict in diff_conflicts
            if conflict.kind is ConflictKind.TIME_CHANGED
        )

        found: List[PreviewConflict] = []
        for day, proposed_utc in sorted(proposals, key=lambda item: item[0]):
            hits = detector.find_conflicts(
                pattern.calendar_id,
                day,
                proposed_utc=proposed_utc,
                exclude_pattern_id=pattern.id,
            )
            if not hits:
                continue
            found.append(
                PreviewConflict(
                    kind=ConflictKind.DOUBLE_BOOKED,
                    date=day,
                    blocking=True,
                    message=_double_booking_message(day.isoformat(), proposed_utc, hits),
                    proposed_utc=proposed_utc,
                    duplicates=hits,
                )
            )
        return found

    def _wall_clock_warnings(
        self,
        pattern: MeetingPattern,
        additions: List[ExpandedOccurrence],
    ) -> List[str]:
        if not pattern.adjust_for_dst:
            return []
        messages: List[str] = []
        for occurrence in additions:
            local = datetime.combine(occurrence.date, occurrence.local_time)
            issue = self.dst_analyzer.check_local_time(pattern.time_zone, local)
            if issue is LocalTimeIssue.NONEXISTENT:
                messages.append(
                    f"{local.strftime('%H:%M')} does not exist on {occurrence.date.isoformat()} "
                    f"in {pattern.time_zone}; the meeting will start at "
                    f"{occurrence.local_start.strftime('%H:%M')}"
                )
            elif issue is LocalTimeIssue.AMBIGUOUS:
                messages.append(
                    f"{local.strftime('%H:%M')} occurs twice on {occurrence.date.isoformat()} "
                    f"in {pattern.time_zone}; the first occurrence is used"
                )
        return messages


def _double_booking_message(day: str, proposed_utc: Optional[datetime], hits: List[DuplicateHit]) -> str:
    parts = [
        f"{_KIND_LABELS[hit.kind]} {hit.pattern_name or hit.pattern_id}"
        for hit in hits
    ]
    when = f"{day} {proposed_utc.strftime('%H:%M')} UTC" if proposed_utc else day
    return f"Meeting on {when} would be scheduled " + "; ".join(parts)
