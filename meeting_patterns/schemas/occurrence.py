# meeting_patterns/schemas/occurrence.py
from __future__ import annotations

from datetime import date as date_type, datetime, time as time_type

from pydantic import BaseModel, ConfigDict, Field, field_validator

from meeting_patterns.core.timezones import as_utc, get_zone


class Occurrence(BaseModel):
    """
    A persisted, concrete meeting instance as handed to the engine by the
    persistence layer.

    An occurrence whose actual instant differs from the original one, or
    that is cancelled, is *pinned*: pattern edits must never discard it.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(..., description="Identifier of the stored occurrence.")
    pattern_id: str = Field(..., description="Pattern this occurrence was generated from.")
    calendar_id: str = Field(..., description="Division calendar the booking belongs to.")
    time_zone: str = Field(..., examples=["America/Chicago"])
    original_scheduled_utc: datetime = Field(
        ...,
        description="Instant the pattern generated, before any manual override.",
        examples=["2025-03-11T00:00:00Z"],
    )
    actual_scheduled_utc: datetime = Field(
        ...,
        description="Instant the meeting is actually held.",
        examples=["2025-03-11T00:00:00Z"],
    )
    is_cancelled: bool = False
    override_reason: str | None = None
    pattern_name: str | None = Field(
        None,
        description="Meeting type of the owning pattern, for conflict messages.",
    )

    @field_validator("original_scheduled_utc", "actual_scheduled_utc")
    @classmethod
    def _normalize_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def is_pinned(self) -> bool:
        return self.is_cancelled or self.actual_scheduled_utc != self.original_scheduled_utc

    @property
    def original_local_date(self) -> date_type:
        """Local calendar date the pattern originally generated this for."""
        return self.original_scheduled_utc.astimezone(get_zone(self.time_zone)).date()

    @property
    def actual_local_date(self) -> date_type:
        return self.actual_scheduled_utc.astimezone(get_zone(self.time_zone)).date()


class ExpandedOccurrence(BaseModel):
    """
    One date a pattern implies, resolved to a UTC instant.

    `local_time` is the configured wall-clock time; `local_start` is what
    the wall clock actually reads at `scheduled_utc`. The two differ when
    `adjust_for_dst` is off or the configured time falls in a DST gap.
    """

    model_config = ConfigDict(frozen=True)

    date: date_type
    local_time: time_type
    scheduled_utc: datetime
    local_start: datetime
    rule_index: int | None = Field(
        None,
        description="Index of the rotating sub-rule that produced this date.",
    )


class OccurrenceOverride(BaseModel):
    """
    Manual edit of a single occurrence. Only the fields provided are changed.
    """

    actual_scheduled_utc: datetime | None = Field(
        None,
        description="New start instant; moving a meeting pins it.",
        examples=["2025-03-12T00:00:00Z"],
    )
    is_cancelled: bool | None = None
    override_reason: str | None = Field(None, examples=["Room unavailable"])
