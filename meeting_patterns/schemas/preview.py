# meeting_patterns/schemas/preview.py
from __future__ import annotations

from datetime import date as date_type, datetime, timedelta
from enum import Enum

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field, model_validator

from meeting_patterns.schemas.occurrence import ExpandedOccurrence, Occurrence
from meeting_patterns.schemas.pattern import MeetingPattern


class LookaheadWindow(BaseModel):
    """
    Inclusive date range a preview or expansion covers.
    """

    model_config = ConfigDict(frozen=True)

    start: date_type = Field(..., examples=["2025-03-01"])
    end: date_type = Field(..., examples=["2026-02-28"])

    @model_validator(mode="after")
    def _ordered(self) -> "LookaheadWindow":
        if self.end < self.start:
            raise ValueError("end must be greater than or equal to start")
        return self

    @classmethod
    def months_from(cls, start: date_type, months: int) -> "LookaheadWindow":
        return cls(start=start, end=start + relativedelta(months=months) - timedelta(days=1))

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date_type) -> bool:
        return self.start <= day <= self.end


class TransitionKind(str, Enum):
    SPRING_FORWARD = "spring_forward"
    FALL_BACK = "fall_back"


class DstTransition(BaseModel):
    """
    A UTC offset change read from the zone database.
    """

    transition_date: date_type = Field(..., description="Local date the clocks change.")
    kind: TransitionKind
    instant_utc: datetime = Field(..., description="First instant with the new offset.")
    offset_before_minutes: int
    offset_after_minutes: int


class DstWarning(BaseModel):
    date: date_type
    description: str


class DuplicateKind(str, Enum):
    """
    How close an existing booking is to the proposed one.
    """

    EXACT_TIME = "exact_time"
    OVERLAPPING_TIME = "overlapping_time"
    SAME_DAY = "same_day"


class DuplicateHit(BaseModel):
    occurrence_id: str
    pattern_id: str
    pattern_name: str | None = None
    date: date_type
    existing_utc: datetime
    kind: DuplicateKind


class ConflictKind(str, Enum):
    TIME_CHANGED = "time_changed"
    DOUBLE_BOOKED = "double_booked"


class PreviewConflict(BaseModel):
    """
    A date where the candidate pattern needs administrator attention.

    TIME_CHANGED is a same-pattern re-timing and never blocks; DOUBLE_BOOKED
    collides with another pattern on the calendar and always blocks.
    """

    kind: ConflictKind
    date: date_type
    blocking: bool
    message: str
    existing_occurrence_id: str | None = None
    existing_utc: datetime | None = None
    proposed_utc: datetime | None = None
    duplicates: list[DuplicateHit] = Field(default_factory=list)


class OccurrenceDiff(BaseModel):
    additions: list[ExpandedOccurrence] = Field(default_factory=list)
    removals: list[Occurrence] = Field(default_factory=list)
    preserved: list[Occurrence] = Field(default_factory=list)
    conflicts: list[PreviewConflict] = Field(default_factory=list)


class PreviewSummary(BaseModel):
    total_changes: int = Field(
        ...,
        description="Additions + removals + re-timed occurrences.",
        examples=[4],
    )
    affected_dates: int = Field(
        ...,
        description="Distinct local dates touched by the change.",
        examples=[3],
    )
    has_conflicts: bool
    has_removals: bool


class ChangePreview(BaseModel):
    """
    Everything an administrator needs to confirm or cancel a pattern edit.

    Computed on demand and never persisted.
    """

    window: LookaheadWindow
    current_occurrences: list[ExpandedOccurrence] = Field(
        ...,
        description="What the pattern as stored implies over the window.",
    )
    candidate_occurrences: list[ExpandedOccurrence] = Field(
        ...,
        description="What the edited pattern implies over the window.",
    )
    additions: list[ExpandedOccurrence]
    removals: list[Occurrence]
    preserved: list[Occurrence]
    conflicts: list[PreviewConflict]
    dst_warnings: list[DstWarning]
    advanced_rule_index: int | None = Field(
        None,
        description="Rotation index for the month after the window (rotating patterns only).",
    )
    summary: PreviewSummary
    is_valid: bool
    errors: list[str]
    warnings: list[str]


class PatternChangeRequest(BaseModel):
    """
    Request body for previewing or applying an edit to a stored pattern.
    """

    candidate: MeetingPattern
    start_date: date_type | None = Field(
        None,
        description="First day of the lookahead window. Defaults to today.",
    )
    end_date: date_type | None = Field(
        None,
        description="Last day of the lookahead window. Defaults to LOOKAHEAD_MONTHS out.",
    )


class PatternCreateRequest(BaseModel):
    """
    Request body for storing a new pattern and materializing its occurrences.
    """

    pattern: MeetingPattern
    start_date: date_type | None = None
    end_date: date_type | None = None


class ExpandRequest(BaseModel):
    pattern: MeetingPattern
    start_date: date_type
    end_date: date_type


class PatternChangeResult(BaseModel):
    """
    Outcome of applying a confirmed preview.
    """

    pattern: MeetingPattern
    created: int = Field(..., examples=[2])
    retimed: int = Field(..., examples=[1])
    removed: int = Field(..., examples=[1])
    preserved: int = Field(..., examples=[0])
    advanced_rule_index: int | None = None


class DuplicateCheckRequest(BaseModel):
    calendar_id: str = Field(..., examples=["division-185"])
    date: date_type = Field(..., examples=["2025-03-10"])
    proposed_utc: datetime | None = None
    exclude_occurrence_id: str | None = None
    exclude_pattern_id: str | None = None


class DuplicateCheckResult(BaseModel):
    has_conflict: bool
    duplicates: list[DuplicateHit]
