# tests/test_pattern_expander.py
from datetime import date, datetime, time, timezone

import pytest

from meeting_patterns.core.timezones import TimeZoneDataError
from meeting_patterns.schemas.pattern import (
    DayOfMonthRule,
    MeetingPattern,
    NthWeekdayRule,
    RotatingRule,
    RotatingSubRule,
    SpecificDate,
    SpecificDatesRule,
)
from meeting_patterns.services.pattern_expander import PatternExpander

CHICAGO = "America/Chicago"
SECOND_MONDAY = NthWeekdayRule(weekday=1, ordinal=2)
FOURTH_THURSDAY = NthWeekdayRule(weekday=4, ordinal=4)


def _pattern(rule, **overrides) -> MeetingPattern:
    fields = {
        "id": "p-1",
        "calendar_id": "division-185",
        "time_zone": CHICAGO,
        "default_time": time(19, 0),
        "rule": rule,
    }
    fields.update(overrides)
    return MeetingPattern(**fields)


def test_day_31_skips_short_months():
    result = PatternExpander().expand(
        _pattern(DayOfMonthRule(day_of_month=31)),
        date(2025, 4, 1),
        date(2025, 5, 31),
    )

    assert [occ.date for occ in result] == [date(2025, 5, 31)]


def test_second_monday_keeps_local_time_across_dst():
    result = PatternExpander().expand(_pattern(SECOND_MONDAY), date(2025, 2, 1), date(2025, 3, 31))

    assert [occ.date for occ in result] == [date(2025, 2, 10), date(2025, 3, 10)]
    # CST (UTC-6) in February, CDT (UTC-5) after 9 March
    assert result[0].scheduled_utc == datetime(2025, 2, 11, 1, 0, tzinfo=timezone.utc)
    assert result[1].scheduled_utc == datetime(2025, 3, 11, 0, 0, tzinfo=timezone.utc)
    assert all(occ.local_start.time() == time(19, 0) for occ in result)


def test_fixed_utc_without_save_anchor_uses_standard_offset():
    pattern = _pattern(SECOND_MONDAY, adjust_for_dst=False)
    result = PatternExpander().expand(pattern, date(2025, 3, 1), date(2025, 3, 31))

    assert result[0].scheduled_utc == datetime(2025, 3, 11, 1, 0, tzinfo=timezone.utc)
    # The wall clock drifts to 20:00 CDT.
    assert result[0].local_start.time() == time(20, 0)


def test_fixed_utc_uses_offset_in_force_when_saved():
    pattern = _pattern(
        SECOND_MONDAY,
        adjust_for_dst=False,
        saved_at=datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc),
    )
    result = PatternExpander().expand(pattern, date(2025, 2, 1), date(2025, 2, 28))

    # Saved under CDT (UTC-5); February is CST so the meeting shows 18:00.
    assert result[0].scheduled_utc == datetime(2025, 2, 11, 0, 0, tzinfo=timezone.utc)
    assert result[0].local_start.time() == time(18, 0)


def test_rotation_advances_once_per_month():
    rule = RotatingRule(
        rules=[RotatingSubRule(rule=SECOND_MONDAY), RotatingSubRule(rule=FOURTH_THURSDAY)],
        current_rule_index=0,
    )
    result = PatternExpander().expand(_pattern(rule), date(2025, 1, 1), date(2025, 4, 30))

    assert [occ.rule_index for occ in result] == [0, 1, 0, 1]
    assert [occ.date for occ in result] == [
        date(2025, 1, 13),
        date(2025, 2, 27),
        date(2025, 3, 10),
        date(2025, 4, 24),
    ]


def test_rotation_consumes_months_without_a_date():
    rule = RotatingRule(
        rules=[
            RotatingSubRule(rule=DayOfMonthRule(day_of_month=31)),
            RotatingSubRule(rule=DayOfMonthRule(day_of_month=1), time=time(18, 0)),
        ],
    )
    result = PatternExpander().expand(_pattern(rule), date(2025, 4, 1), date(2025, 6, 30))

    # April and June have no 31st but still use up their turn.
    assert len(result) == 1
    assert result[0].date == date(2025, 5, 1)
    assert result[0].rule_index == 1
    assert result[0].local_time == time(18, 0)


def test_advanced_rule_index_is_reported_not_mutated():
    rule = RotatingRule(
        rules=[RotatingSubRule(rule=SECOND_MONDAY), RotatingSubRule(rule=FOURTH_THURSDAY)],
        current_rule_index=1,
    )
    pattern = _pattern(rule)
    expander = PatternExpander()

    assert expander.advanced_rule_index(pattern, date(2025, 1, 1), date(2025, 3, 31)) == 0
    assert expander.advanced_rule_index(pattern, date(2025, 1, 1), date(2025, 4, 30)) == 1
    assert pattern.rule.current_rule_index == 1
    assert expander.advanced_rule_index(_pattern(SECOND_MONDAY), date(2025, 1, 1), date(2025, 4, 30)) is None


def test_specific_dates_filtered_to_window_and_sorted():
    rule = SpecificDatesRule(
        dates=[
            SpecificDate(date=date(2025, 3, 10), time=time(19, 0)),
            SpecificDate(date=date(2025, 2, 10), time=time(18, 0)),
            SpecificDate(date=date(2025, 3, 10), time=time(19, 0)),
            SpecificDate(date=date(2025, 9, 1), time=time(19, 0)),
        ]
    )
    assert len(rule.dates) == 3

    result = PatternExpander().expand(_pattern(rule), date(2025, 1, 1), date(2025, 6, 30))

    assert [(occ.date, occ.local_time) for occ in result] == [
        (date(2025, 2, 10), time(18, 0)),
        (date(2025, 3, 10), time(19, 0)),
    ]


def test_inactive_pattern_expands_to_nothing():
    pattern = _pattern(SECOND_MONDAY, is_active=False)
    assert PatternExpander().expand(pattern, date(2025, 1, 1), date(2025, 12, 31)) == []


def test_expansion_is_capped():
    pattern = _pattern(DayOfMonthRule(day_of_month=15))

    capped = PatternExpander(max_months=12).expand(pattern, date(2025, 1, 1), date(2027, 12, 31))
    uncapped = PatternExpander(max_months=None).expand(pattern, date(2025, 1, 1), date(2027, 12, 31))

    assert len(capped) == 12
    assert capped[-1].date == date(2025, 12, 15)
    assert len(uncapped) == 36


def test_effective_window_matches_capped_expansion():
    expander = PatternExpander(max_months=12)
    pattern = _pattern(DayOfMonthRule(day_of_month=31))

    window = expander.effective_window(date(2025, 1, 1), date(2026, 6, 30))
    result = expander.expand(pattern, date(2025, 1, 1), date(2026, 6, 30))

    assert (window.start, window.end) == (date(2025, 1, 1), date(2025, 12, 31))
    assert result[-1].date == window.end


def test_effective_window_keeps_short_windows():
    window = PatternExpander(max_months=12).effective_window(date(2025, 1, 1), date(2025, 3, 31))
    assert window.end == date(2025, 3, 31)


def test_specific_dates_are_not_capped():
    rule = SpecificDatesRule(
        dates=[
            SpecificDate(date=date(2025, 1, 15), time=time(19, 0)),
            SpecificDate(date=date(2026, 3, 15), time=time(19, 0)),
        ]
    )

    result = PatternExpander(max_months=12).expand(_pattern(rule), date(2025, 1, 1), date(2026, 12, 31))

    assert [occ.date for occ in result] == [date(2025, 1, 15), date(2026, 3, 15)]


def test_inverted_window_raises():
    with pytest.raises(ValueError):
        PatternExpander().expand(_pattern(SECOND_MONDAY), date(2025, 3, 1), date(2025, 2, 1))


def test_unknown_time_zone_raises():
    pattern = _pattern(SECOND_MONDAY, time_zone="Mars/Olympus_Mons")
    with pytest.raises(TimeZoneDataError):
        PatternExpander().expand(pattern, date(2025, 1, 1), date(2025, 3, 31))


def test_nonexistent_local_time_lands_after_the_gap():
    rule = SpecificDatesRule(dates=[SpecificDate(date=date(2025, 3, 9), time=time(2, 30))])
    result = PatternExpander().expand(_pattern(rule), date(2025, 3, 1), date(2025, 3, 31))

    assert result[0].scheduled_utc == datetime(2025, 3, 9, 8, 30, tzinfo=timezone.utc)
    assert result[0].local_start.time() == time(3, 30)
