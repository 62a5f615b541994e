# tests/test_occurrence_diff.py
from datetime import date, datetime, time, timedelta, timezone

from meeting_patterns.schemas.occurrence import Occurrence
from meeting_patterns.schemas.pattern import MeetingPattern, NthWeekdayRule
from meeting_patterns.schemas.preview import ConflictKind
from meeting_patterns.services.occurrence_diff import OccurrenceDiffEngine
from meeting_patterns.services.pattern_expander import PatternExpander

# Second Monday at 19:00 Chicago, Feb-Apr 2025: 10 Feb, 10 Mar, 14 Apr
FEB_10 = datetime(2025, 2, 11, 1, 0, tzinfo=timezone.utc)
MAR_10 = datetime(2025, 3, 11, 0, 0, tzinfo=timezone.utc)
APR_14 = datetime(2025, 4, 15, 0, 0, tzinfo=timezone.utc)

# First Monday at 19:00 Chicago: 3 Feb, 3 Mar, 7 Apr
FEB_3 = datetime(2025, 2, 4, 1, 0, tzinfo=timezone.utc)
MAR_3 = datetime(2025, 3, 4, 1, 0, tzinfo=timezone.utc)
APR_7 = datetime(2025, 4, 8, 0, 0, tzinfo=timezone.utc)


def _candidates():
    pattern = MeetingPattern(
        id="p-1",
        calendar_id="division-185",
        time_zone="America/Chicago",
        default_time=time(19, 0),
        rule=NthWeekdayRule(weekday=1, ordinal=2),
    )
    return PatternExpander().expand(pattern, date(2025, 2, 1), date(2025, 4, 30))


def _occurrence(occurrence_id: str, original: datetime, actual: datetime | None = None, **overrides) -> Occurrence:
    fields = {
        "id": occurrence_id,
        "pattern_id": "p-1",
        "calendar_id": "division-185",
        "time_zone": "America/Chicago",
        "original_scheduled_utc": original,
        "actual_scheduled_utc": actual or original,
    }
    fields.update(overrides)
    return Occurrence(**fields)


def test_unchanged_pattern_produces_empty_diff():
    existing = [_occurrence("a", FEB_10), _occurrence("b", MAR_10), _occurrence("c", APR_14)]
    diff = OccurrenceDiffEngine.diff(existing, _candidates())

    assert diff.additions == []
    assert diff.removals == []
    assert diff.preserved == []
    assert diff.conflicts == []


def test_switching_weeks_removes_and_adds():
    existing = [_occurrence("a", FEB_3), _occurrence("b", MAR_3), _occurrence("c", APR_7)]
    diff = OccurrenceDiffEngine.diff(existing, _candidates())

    assert [occ.id for occ in diff.removals] == ["a", "b", "c"]
    assert [occ.date for occ in diff.additions] == [date(2025, 2, 10), date(2025, 3, 10), date(2025, 4, 14)]
    assert diff.conflicts == []


def test_cancelled_occurrence_is_preserved_and_blocks_its_addition():
    existing = [_occurrence("a", FEB_10), _occurrence("b", MAR_10, is_cancelled=True), _occurrence("c", APR_14)]
    diff = OccurrenceDiffEngine.diff(existing, _candidates())

    assert [occ.id for occ in diff.preserved] == ["b"]
    assert diff.removals == []
    assert diff.additions == []


def test_overridden_occurrence_survives_pattern_change():
    moved = _occurrence("b", MAR_3, actual=MAR_3 + timedelta(days=1), override_reason="Room clash")
    existing = [_occurrence("a", FEB_3), moved, _occurrence("c", APR_7)]
    diff = OccurrenceDiffEngine.diff(existing, _candidates())

    assert [occ.id for occ in diff.preserved] == ["b"]
    assert "b" not in [occ.id for occ in diff.removals]


def test_same_date_new_time_reads_as_moved():
    later = MAR_10 + timedelta(hours=1)  # 20:00 CDT on 10 March
    existing = [_occurrence("a", FEB_10), _occurrence("b", later), _occurrence("c", APR_14)]
    diff = OccurrenceDiffEngine.diff(existing, _candidates())

    assert diff.removals == []
    assert diff.additions == []
    assert len(diff.conflicts) == 1
    conflict = diff.conflicts[0]
    assert conflict.kind is ConflictKind.TIME_CHANGED
    assert conflict.date == date(2025, 3, 10)
    assert conflict.blocking is False
    assert conflict.existing_occurrence_id == "b"
    assert conflict.proposed_utc == MAR_10
    assert conflict.message == "Meeting on 2025-03-10 moves from 01:00 UTC to 00:00 UTC"


def test_duplicate_plain_occurrences_keep_best_match():
    existing = [
        _occurrence("a", FEB_10),
        _occurrence("b-late", MAR_10 + timedelta(hours=1)),
        _occurrence("b-exact", MAR_10),
        _occurrence("c", APR_14),
    ]
    diff = OccurrenceDiffEngine.diff(existing, _candidates())

    assert [occ.id for occ in diff.removals] == ["b-late"]
    assert diff.conflicts == []
    assert diff.additions == []
