# meeting_patterns/services/date_rules.py
"""
Pure date arithmetic for month-based meeting rules.

Every function answers "which day of this month does the rule pick?".
`None` means the month has no such day; that is a normal outcome, not an
error. Weekdays use the Sunday=0 numbering of the pattern definitions.
"""
from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Optional

from meeting_patterns.schemas.pattern import DayOfMonthRule, NthWeekdayRule

LAST_ORDINAL = 5


class PatternDefinitionError(ValueError):
    """
    Raised when a rule carries values outside its domain (e.g. weekday 9).

    Patterns are validated before they reach the engine, so hitting this
    means a caller bypassed validation.
    """


def days_in_month(year: int, month: int) -> int:
    if not 1 <= month <= 12:
        raise PatternDefinitionError(f"month must be 1-12, got {month}")
    return calendar.monthrange(year, month)[1]


def _python_weekday(weekday: int) -> int:
    # Sunday=0 -> Python's Monday=0
    return (weekday - 1) % 7


def resolve_day_of_month(year: int, month: int, day: int) -> Optional[date]:
    """
    Return `day` of the given month, or None when the month is too short.
    """
    if not 1 <= day <= 31:
        raise PatternDefinitionError(f"day_of_month must be 1-31, got {day}")
    if day > days_in_month(year, month):
        return None
    return date(year, month, day)


def resolve_nth_weekday(year: int, month: int, weekday: int, ordinal: int) -> Optional[date]:
    """
    Return the `ordinal`-th `weekday` of the month.

    `ordinal=5` is "last": start from the latest possible fifth occurrence
    and step back a week at a time until it lies inside the month. Every
    weekday occurs at least four times a month, so "last" always resolves.
    """
    if not 0 <= weekday <= 6:
        raise PatternDefinitionError(f"weekday must be 0-6 (Sunday=0), got {weekday}")
    if not 1 <= ordinal <= LAST_ORDINAL:
        raise PatternDefinitionError(f"ordinal must be 1-5, got {ordinal}")

    month_days = days_in_month(year, month)
    first_of_month = date(year, month, 1)
    offset = (_python_weekday(weekday) - first_of_month.weekday()) % 7
    first_match = first_of_month + timedelta(days=offset)

    if ordinal == LAST_ORDINAL:
        last_of_month = date(year, month, month_days)
        candidate = first_match + timedelta(weeks=4)
        while candidate > last_of_month:
            candidate -= timedelta(weeks=1)
        return candidate

    candidate = first_match + timedelta(weeks=ordinal - 1)
    if candidate.month != month:
        return None
    return candidate


def resolve_month_rule(rule: DayOfMonthRule | NthWeekdayRule, year: int, month: int) -> Optional[date]:
    """
    Dispatch a single month rule to the matching resolver.
    """
    if isinstance(rule, DayOfMonthRule):
        return resolve_day_of_month(year, month, rule.day_of_month)
    if isinstance(rule, NthWeekdayRule):
        return resolve_nth_weekday(year, month, rule.weekday, rule.ordinal)
    raise PatternDefinitionError(f"Unsupported month rule: {type(rule).__name__}")
