# tests/test_change_preview.py
from datetime import date, datetime, time, timedelta, timezone

from meeting_patterns.schemas.occurrence import Occurrence
from meeting_patterns.schemas.pattern import (
    DayOfMonthRule,
    MeetingPattern,
    NthWeekdayRule,
    RotatingRule,
    RotatingSubRule,
    SpecificDate,
    SpecificDatesRule,
)
from meeting_patterns.schemas.preview import ConflictKind, DuplicateKind, LookaheadWindow
from meeting_patterns.services.change_preview import ChangePreviewBuilder
from meeting_patterns.services.pattern_expander import PatternExpander

CALENDAR = "division-185"
FIRST_MONDAY = NthWeekdayRule(weekday=1, ordinal=1)
SECOND_MONDAY = NthWeekdayRule(weekday=1, ordinal=2)
SPRING_WINDOW = LookaheadWindow(start=date(2025, 2, 1), end=date(2025, 4, 30))


def _pattern(rule=SECOND_MONDAY, **overrides) -> MeetingPattern:
    fields = {
        "id": "p-regular",
        "calendar_id": CALENDAR,
        "name": "Regular Meeting",
        "time_zone": "America/Chicago",
        "default_time": time(19, 0),
        "rule": rule,
    }
    fields.update(overrides)
    return MeetingPattern(**fields)


def _materialize(pattern: MeetingPattern, window: LookaheadWindow, prefix: str = "o") -> list[Occurrence]:
    """Persisted occurrences exactly as the pattern would have generated them."""
    expanded = PatternExpander(max_months=None).expand(pattern, window.start, window.end)
    return [
        Occurrence(
            id=f"{prefix}-{idx}",
            pattern_id=pattern.id,
            calendar_id=pattern.calendar_id,
            time_zone=pattern.time_zone,
            original_scheduled_utc=occ.scheduled_utc,
            actual_scheduled_utc=occ.scheduled_utc,
            pattern_name=pattern.name,
        )
        for idx, occ in enumerate(expanded)
    ]


def test_unchanged_pattern_previews_as_no_op():
    pattern = _pattern()
    existing = _materialize(pattern, SPRING_WINDOW)

    preview = ChangePreviewBuilder().build_preview(pattern, pattern, existing, SPRING_WINDOW, existing)

    assert preview.additions == []
    assert preview.removals == []
    assert preview.conflicts == []
    assert preview.is_valid is True
    assert preview.errors == []
    assert preview.summary.total_changes == 0
    assert preview.current_occurrences == preview.candidate_occurrences


def test_identical_inputs_give_identical_previews():
    old = _pattern(FIRST_MONDAY)
    existing = _materialize(old, SPRING_WINDOW)
    builder = ChangePreviewBuilder()

    first = builder.build_preview(old, _pattern(), existing, SPRING_WINDOW)
    second = builder.build_preview(old, _pattern(), existing, SPRING_WINDOW)

    assert first == second
    assert len(existing) == 3


def test_dst_transition_in_window_is_a_warning_only():
    pattern = _pattern()
    preview = ChangePreviewBuilder().build_preview(None, pattern, [], SPRING_WINDOW)

    assert [w.date for w in preview.dst_warnings] == [date(2025, 3, 9)]
    assert any("Daylight saving time begins on 2025-03-09" in w for w in preview.warnings)
    assert preview.is_valid is True


def test_double_booking_against_other_pattern_blocks():
    planning = _pattern(id="p-planning", name="Planning Meeting")
    bookings = _materialize(planning, SPRING_WINDOW, prefix="planning")

    preview = ChangePreviewBuilder().build_preview(None, _pattern(), [], SPRING_WINDOW, bookings)

    assert preview.is_valid is False
    double_booked = [c for c in preview.conflicts if c.kind is ConflictKind.DOUBLE_BOOKED]
    assert [c.date for c in double_booked] == [date(2025, 2, 10), date(2025, 3, 10), date(2025, 4, 14)]
    assert all(c.blocking for c in double_booked)
    assert double_booked[1].duplicates[0].kind is DuplicateKind.EXACT_TIME
    assert "at exactly the same time as Planning Meeting" in preview.errors[1]
    assert preview.summary.has_conflicts is True


def test_same_day_booking_still_blocks():
    planning = _pattern(id="p-planning", name="Planning Meeting", default_time=time(9, 0))
    bookings = _materialize(planning, SPRING_WINDOW, prefix="planning")

    preview = ChangePreviewBuilder().build_preview(None, _pattern(), [], SPRING_WINDOW, bookings)

    assert preview.is_valid is False
    assert all(
        hit.kind is DuplicateKind.SAME_DAY
        for conflict in preview.conflicts
        for hit in conflict.duplicates
    )


def test_own_bookings_never_count_as_double_booking():
    old = _pattern()
    existing = _materialize(old, SPRING_WINDOW)
    candidate = _pattern(default_time=time(20, 0))

    preview = ChangePreviewBuilder().build_preview(old, candidate, existing, SPRING_WINDOW, existing)

    assert preview.is_valid is True
    assert all(c.kind is ConflictKind.TIME_CHANGED for c in preview.conflicts)
    assert len(preview.conflicts) == 3
    assert "Meeting on 2025-03-10 moves from 00:00 UTC to 01:00 UTC" in preview.warnings


def test_large_change_warnings():
    window = LookaheadWindow(start=date(2025, 1, 1), end=date(2025, 12, 31))
    old = _pattern(FIRST_MONDAY)
    existing = _materialize(old, window)

    preview = ChangePreviewBuilder().build_preview(old, _pattern(), existing, window)

    assert len(preview.removals) == 12
    assert len(preview.additions) == 12
    assert "This change will remove 12 scheduled meetings" in preview.warnings
    assert "This change will affect 24 meetings" in preview.warnings
    assert preview.summary.total_changes == 24
    assert preview.summary.affected_dates == 24
    assert preview.summary.has_removals is True


def test_pinned_occurrences_are_preserved_through_edit():
    old = _pattern(FIRST_MONDAY)
    existing = _materialize(old, SPRING_WINDOW)
    moved = existing[1].model_copy(
        update={"actual_scheduled_utc": existing[1].original_scheduled_utc + timedelta(days=1)}
    )
    existing = [existing[0], moved, existing[2]]

    preview = ChangePreviewBuilder().build_preview(old, _pattern(), existing, SPRING_WINDOW)

    assert [occ.id for occ in preview.preserved] == [moved.id]
    assert moved.id not in [occ.id for occ in preview.removals]


def test_occurrences_outside_window_are_ignored():
    pattern = _pattern()
    stale = Occurrence(
        id="old",
        pattern_id=pattern.id,
        calendar_id=CALENDAR,
        time_zone=pattern.time_zone,
        original_scheduled_utc=datetime(2024, 6, 11, 0, 0, tzinfo=timezone.utc),
        actual_scheduled_utc=datetime(2024, 6, 11, 0, 0, tzinfo=timezone.utc),
    )
    existing = _materialize(pattern, SPRING_WINDOW) + [stale]

    preview = ChangePreviewBuilder().build_preview(pattern, pattern, existing, SPRING_WINDOW)

    assert preview.removals == []


def test_wall_clock_gap_warning():
    rule = SpecificDatesRule(dates=[SpecificDate(date=date(2025, 3, 9), time=time(2, 30))])
    preview = ChangePreviewBuilder().build_preview(None, _pattern(rule), [], SPRING_WINDOW)

    assert any("02:30 does not exist on 2025-03-09" in w for w in preview.warnings)
    assert any("will start at 03:30" in w for w in preview.warnings)


def test_rotating_preview_reports_advanced_index():
    rule = RotatingRule(
        rules=[RotatingSubRule(rule=FIRST_MONDAY), RotatingSubRule(rule=SECOND_MONDAY)],
        current_rule_index=0,
    )
    preview = ChangePreviewBuilder().build_preview(None, _pattern(rule), [], SPRING_WINDOW)

    # Feb, Mar, Apr -> indices 0, 1, 0; May would use 1.
    assert [occ.rule_index for occ in preview.candidate_occurrences] == [0, 1, 0]
    assert preview.advanced_rule_index == 1


def test_window_longer_than_cap_keeps_later_occurrences():
    pattern = _pattern(DayOfMonthRule(day_of_month=10))
    long_window = LookaheadWindow(start=date(2025, 1, 1), end=date(2026, 6, 30))
    existing = _materialize(pattern, long_window)

    preview = ChangePreviewBuilder(expander=PatternExpander(max_months=12)).build_preview(
        pattern, pattern, existing, long_window
    )

    assert len(existing) == 18
    assert preview.removals == []
    assert preview.additions == []
    assert preview.summary.total_changes == 0
    assert preview.window == LookaheadWindow(start=date(2025, 1, 1), end=date(2025, 12, 31))
    assert [w.date for w in preview.dst_warnings] == [date(2025, 3, 9), date(2025, 11, 2)]


def test_window_longer_than_cap_only_adds_inside_cap():
    pattern = _pattern(DayOfMonthRule(day_of_month=10))
    long_window = LookaheadWindow(start=date(2025, 1, 1), end=date(2026, 6, 30))

    preview = ChangePreviewBuilder(expander=PatternExpander(max_months=12)).build_preview(
        None, pattern, [], long_window
    )

    assert len(preview.additions) == 12
    assert preview.additions[-1].date == date(2025, 12, 10)
