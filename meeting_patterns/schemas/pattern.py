# meeting_patterns/schemas/pattern.py
from __future__ import annotations

from datetime import date as date_type, datetime, time as time_type
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from meeting_patterns.core.timezones import as_utc


class PatternType(str, Enum):
    """
    The four ways a division can describe when its meetings happen.
    """

    DAY_OF_MONTH = "day_of_month"
    NTH_WEEKDAY_OF_MONTH = "nth_weekday_of_month"
    SPECIFIC_DATES = "specific_dates"
    ROTATING = "rotating"


# --------------------------------------------------------------------------
# Month rules (usable standalone or inside a rotation)
# --------------------------------------------------------------------------

class DayOfMonthRule(BaseModel):
    """
    Meet on a fixed day number every month (e.g. the 15th).

    Months that do not have that day (31 in April) simply have no meeting.
    """

    model_config = ConfigDict(frozen=True)

    pattern_type: Literal["day_of_month"] = "day_of_month"
    day_of_month: int = Field(
        ...,
        ge=1,
        le=31,
        description="Calendar day of the month (1-31).",
        examples=[15],
    )


class NthWeekdayRule(BaseModel):
    """
    Meet on the n-th given weekday of every month (e.g. 2nd Tuesday).

    `ordinal=5` means the *last* such weekday, not strictly the fifth.
    """

    model_config = ConfigDict(frozen=True)

    pattern_type: Literal["nth_weekday_of_month"] = "nth_weekday_of_month"
    weekday: int = Field(
        ...,
        ge=0,
        le=6,
        description="Day of week, 0=Sunday through 6=Saturday.",
        examples=[2],
    )
    ordinal: int = Field(
        ...,
        ge=1,
        le=5,
        description="Which occurrence in the month: 1-4, or 5 for the last one.",
        examples=[2],
    )


MonthRule = Annotated[
    Union[DayOfMonthRule, NthWeekdayRule],
    Field(discriminator="pattern_type"),
]


# --------------------------------------------------------------------------
# Explicit dates
# --------------------------------------------------------------------------

class SpecificDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date_type = Field(..., examples=["2025-03-10"])
    time: time_type = Field(..., examples=["19:00:00"])


class SpecificDatesRule(BaseModel):
    """
    A fully explicit list of meeting dates, each with its own time.
    """

    model_config = ConfigDict(frozen=True)

    pattern_type: Literal["specific_dates"] = "specific_dates"
    dates: list[SpecificDate] = Field(
        ...,
        min_length=1,
        description="Meeting dates; stored sorted and de-duplicated.",
    )

    @field_validator("dates")
    @classmethod
    def _sort_and_dedupe(cls, value: list[SpecificDate]) -> list[SpecificDate]:
        unique = {(item.date, item.time): item for item in value}
        return [unique[key] for key in sorted(unique)]


# --------------------------------------------------------------------------
# Rotation
# --------------------------------------------------------------------------

class RotatingSubRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule: MonthRule
    time: time_type | None = Field(
        None,
        description="Optional wall-clock time overriding the pattern default.",
    )


class RotatingRule(BaseModel):
    """
    Cycle through `rules`, one rule per calendar month.

    `current_rule_index` names the rule applied to the first month of an
    expansion window. It is never advanced in place; expansion reports the
    advanced index and the caller decides whether to persist it.
    """

    model_config = ConfigDict(frozen=True)

    pattern_type: Literal["rotating"] = "rotating"
    rules: list[RotatingSubRule] = Field(..., min_length=1)
    current_rule_index: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _index_in_range(self) -> "RotatingRule":
        if self.current_rule_index >= len(self.rules):
            raise ValueError(
                f"current_rule_index {self.current_rule_index} is out of range "
                f"for {len(self.rules)} rule(s)"
            )
        return self


PatternRule = Annotated[
    Union[DayOfMonthRule, NthWeekdayRule, SpecificDatesRule, RotatingRule],
    Field(discriminator="pattern_type"),
]


# --------------------------------------------------------------------------
# Pattern
# --------------------------------------------------------------------------

class MeetingPattern(BaseModel):
    """
    One version of a division's recurring meeting definition.

    Patterns are immutable value objects: an edit produces a new
    `MeetingPattern` rather than changing this one.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(
        None,
        description="Identifier of the stored pattern; None for an unsaved draft.",
    )
    calendar_id: str = Field(
        ...,
        description="Division calendar that owns this pattern's bookings.",
        examples=["division-185"],
    )
    name: str = Field(
        "Regular Meeting",
        description="Meeting type shown to administrators in conflict messages.",
    )
    time_zone: str = Field(
        ...,
        description="IANA time zone the meeting is held in.",
        examples=["America/Chicago"],
    )
    default_time: time_type = Field(
        ...,
        description="Local wall-clock start time.",
        examples=["19:00:00"],
    )
    adjust_for_dst: bool = Field(
        True,
        description=(
            "True keeps the local wall-clock time fixed across DST transitions; "
            "False keeps the UTC instant fixed and lets the local time drift."
        ),
    )
    is_active: bool = Field(True, description="Inactive patterns generate no occurrences.")
    rule: PatternRule
    saved_at: datetime | None = Field(
        None,
        description=(
            "When this version was saved. Anchors the UTC offset used when "
            "adjust_for_dst is False."
        ),
    )
    version: int = Field(1, ge=1)

    @field_validator("saved_at")
    @classmethod
    def _saved_at_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @property
    def pattern_type(self) -> PatternType:
        return PatternType(self.rule.pattern_type)
