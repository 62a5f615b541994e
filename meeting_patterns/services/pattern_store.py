# meeting_patterns/services/pattern_store.py
from __future__ import annotations

import logging
import uuid
from datetime import date as date_type, datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from meeting_patterns.core.timezones import as_utc
from meeting_patterns.models.meeting_occurrence import MeetingOccurrenceRecord
from meeting_patterns.models.meeting_pattern import MeetingPatternRecord
from meeting_patterns.schemas.occurrence import Occurrence
from meeting_patterns.schemas.pattern import MeetingPattern
from meeting_patterns.schemas.preview import (
    ChangePreview,
    ConflictKind,
    LookaheadWindow,
    PatternChangeResult,
)
from meeting_patterns.services.change_preview import ChangePreviewBuilder
from meeting_patterns.services.duplicate_detector import DuplicateDetector

logger = logging.getLogger(__name__)


class PreviewBlockedError(ValueError):
    """
    Raised when a change is applied whose preview has blocking conflicts.
    """

    def __init__(self, preview: ChangePreview) -> None:
        super().__init__("; ".join(preview.errors) or "Pattern change is not valid")
        self.preview = preview


class OccurrenceConflictError(ValueError):
    """
    Raised when a manual override would double-book the calendar.
    """


def resolve_window(
    start_date: Optional[date_type],
    end_date: Optional[date_type],
    lookahead_months: int,
) -> LookaheadWindow:
    """
    Build the lookahead window for a request, defaulting to today through
    `lookahead_months` months out.
    """
    start = start_date or date_type.today()
    if end_date is None:
        return LookaheadWindow.months_from(start, lookahead_months)
    return LookaheadWindow(start=start, end=end_date)


# --------------------------------------------------------------------------
# Record <-> schema conversion
# --------------------------------------------------------------------------

def _to_pattern(record: MeetingPatternRecord) -> MeetingPattern:
    return MeetingPattern(
        id=record.id,
        calendar_id=record.calendar_id,
        name=record.name,
        time_zone=record.time_zone,
        default_time=record.default_time,
        adjust_for_dst=record.adjust_for_dst,
        is_active=record.is_active,
        rule=record.rule,
        saved_at=record.saved_at,
        version=record.version,
    )


def _to_occurrence(record: MeetingOccurrenceRecord, pattern_name: Optional[str] = None) -> Occurrence:
    return Occurrence(
        id=record.id,
        pattern_id=record.pattern_id,
        calendar_id=record.calendar_id,
        time_zone=record.time_zone,
        original_scheduled_utc=record.original_scheduled_utc,
        actual_scheduled_utc=record.actual_scheduled_utc,
        is_cancelled=record.is_cancelled,
        override_reason=record.override_reason,
        pattern_name=pattern_name,
    )


def _apply_pattern_fields(record: MeetingPatternRecord, pattern: MeetingPattern) -> None:
    record.calendar_id = pattern.calendar_id
    record.name = pattern.name
    record.time_zone = pattern.time_zone
    record.default_time = pattern.default_time
    record.adjust_for_dst = pattern.adjust_for_dst
    record.is_active = pattern.is_active
    record.rule = pattern.rule.model_dump(mode="json")
    record.saved_at = pattern.saved_at
    record.version = pattern.version


# --------------------------------------------------------------------------
# Reads
# --------------------------------------------------------------------------

async def _get_pattern_record(db: AsyncSession, pattern_id: str) -> MeetingPatternRecord:
    result = await db.execute(select(MeetingPatternRecord).where(MeetingPatternRecord.id == pattern_id))
    record = result.scalar_one_or_none()
    if record is None:
        raise LookupError(f"Meeting pattern with id={pattern_id} not found")
    return record


async def get_pattern(db: AsyncSession, pattern_id: str) -> MeetingPattern:
    return _to_pattern(await _get_pattern_record(db, pattern_id))


async def list_occurrences(
    db: AsyncSession,
    pattern_id: str,
    window: Optional[LookaheadWindow] = None,
) -> List[Occurrence]:
    """
    Persisted occurrences of one pattern, ordered by actual start, optionally
    limited to those whose original local date falls in `window`.
    """
    record = await _get_pattern_record(db, pattern_id)
    stmt = (
        select(MeetingOccurrenceRecord)
        .where(MeetingOccurrenceRecord.pattern_id == pattern_id)
        .order_by(MeetingOccurrenceRecord.actual_scheduled_utc, MeetingOccurrenceRecord.id)
    )
    result = await db.execute(stmt)
    occurrences = [_to_occurrence(row, record.name) for row in result.scalars().all()]
    if window is not None:
        occurrences = [occ for occ in occurrences if window.contains(occ.original_local_date)]
    return occurrences


async def list_calendar_occurrences(
    db: AsyncSession,
    calendar_id: str,
    exclude_pattern_id: Optional[str] = None,
) -> List[Occurrence]:
    """
    Bookings on a calendar from active patterns, used for double-booking
    checks.
    """
    stmt = (
        select(MeetingOccurrenceRecord, MeetingPatternRecord.name)
        .join(MeetingPatternRecord, MeetingOccurrenceRecord.pattern_id == MeetingPatternRecord.id)
        .where(
            MeetingOccurrenceRecord.calendar_id == calendar_id,
            MeetingPatternRecord.is_active.is_(True),
        )
        .order_by(MeetingOccurrenceRecord.actual_scheduled_utc, MeetingOccurrenceRecord.id)
    )
    if exclude_pattern_id is not None:
        stmt = stmt.where(MeetingOccurrenceRecord.pattern_id != exclude_pattern_id)

    result = await db.execute(stmt)
    return [_to_occurrence(row, name) for row, name in result.all()]


# --------------------------------------------------------------------------
# Preview / apply
# --------------------------------------------------------------------------

async def preview_new_pattern(
    db: AsyncSession,
    candidate: MeetingPattern,
    window: LookaheadWindow,
    builder: ChangePreviewBuilder,
) -> ChangePreview:
    calendar_occurrences = await list_calendar_occurrences(db, candidate.calendar_id)
    return builder.build_preview(None, candidate, [], window, calendar_occurrences)


async def preview_pattern_change(
    db: AsyncSession,
    pattern_id: str,
    candidate: MeetingPattern,
    window: LookaheadWindow,
    builder: ChangePreviewBuilder,
) -> ChangePreview:
    """
    Preview replacing the stored pattern with `candidate`. Read-only.
    """
    stored = await get_pattern(db, pattern_id)
    candidate = _as_next_version(stored, candidate)
    existing = await list_occurrences(db, pattern_id)
    calendar_occurrences = await list_calendar_occurrences(
        db, candidate.calendar_id, exclude_pattern_id=pattern_id
    )
    return builder.build_preview(stored, candidate, existing, window, calendar_occurrences)


async def create_pattern(
    db: AsyncSession,
    candidate: MeetingPattern,
    window: LookaheadWindow,
    builder: ChangePreviewBuilder,
) -> PatternChangeResult:
    """
    Store a new pattern and materialize its occurrences over `window`.

    Refused with PreviewBlockedError if any generated date double-books
    the calendar.
    """
    candidate = candidate.model_copy(update={"id": str(uuid.uuid4()), "version": 1})
    preview = await preview_new_pattern(db, candidate, window, builder)
    if not preview.is_valid:
        raise PreviewBlockedError(preview)

    record = MeetingPatternRecord(id=candidate.id)
    _apply_pattern_fields(record, candidate)
    db.add(record)
    await db.flush()

    for addition in preview.additions:
        db.add(_new_occurrence_record(candidate, addition.scheduled_utc))

    await db.commit()
    logger.info(
        "Created pattern %s on calendar %s with %d occurrence(s)",
        candidate.id,
        candidate.calendar_id,
        len(preview.additions),
    )
    return PatternChangeResult(
        pattern=candidate,
        created=len(preview.additions),
        retimed=0,
        removed=0,
        preserved=0,
        advanced_rule_index=preview.advanced_rule_index,
    )


async def apply_pattern_change(
    db: AsyncSession,
    pattern_id: str,
    candidate: MeetingPattern,
    window: LookaheadWindow,
    builder: ChangePreviewBuilder,
) -> PatternChangeResult:
    """
    Recompute the preview and, if valid, persist it in one transaction.

    - pattern row replaced by the candidate, version bumped
    - additions inserted
    - TIME_CHANGED occurrences re-timed in place (history reads "moved")
    - kept and re-timed occurrences take the candidate's zone and calendar
    - removals deleted
    - pinned occurrences left untouched

    The stored rotation index is not advanced here; resetting it is an
    explicit edit of the pattern.
    """
    preview = await preview_pattern_change(db, pattern_id, candidate, window, builder)
    if not preview.is_valid:
        raise PreviewBlockedError(preview)

    record = await _get_pattern_record(db, pattern_id)
    stored = _to_pattern(record)
    candidate = _as_next_version(stored, candidate)

    removal_ids = [occ.id for occ in preview.removals]
    removed = set(removal_ids)
    in_window = await list_occurrences(db, pattern_id, preview.window)
    carried_ids = [occ.id for occ in in_window if not occ.is_pinned and occ.id not in removed]

    try:
        _apply_pattern_fields(record, candidate)

        if removal_ids:
            await db.execute(
                delete(MeetingOccurrenceRecord).where(MeetingOccurrenceRecord.id.in_(removal_ids))
            )

        retimed = [c for c in preview.conflicts if c.kind is ConflictKind.TIME_CHANGED]
        for conflict in retimed:
            await db.execute(
                update(MeetingOccurrenceRecord)
                .where(MeetingOccurrenceRecord.id == conflict.existing_occurrence_id)
                .values(
                    original_scheduled_utc=conflict.proposed_utc,
                    actual_scheduled_utc=conflict.proposed_utc,
                )
            )

        # kept and re-timed rows now belong to the candidate's zone and calendar
        if carried_ids:
            await db.execute(
                update(MeetingOccurrenceRecord)
                .where(MeetingOccurrenceRecord.id.in_(carried_ids))
                .values(time_zone=candidate.time_zone, calendar_id=candidate.calendar_id)
            )

        for addition in preview.additions:
            db.add(_new_occurrence_record(candidate, addition.scheduled_utc))

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Applied pattern %s v%d: +%d ~%d -%d (%d preserved)",
        pattern_id,
        candidate.version,
        len(preview.additions),
        len(retimed),
        len(preview.removals),
        len(preview.preserved),
    )
    return PatternChangeResult(
        pattern=candidate,
        created=len(preview.additions),
        retimed=len(retimed),
        removed=len(preview.removals),
        preserved=len(preview.preserved),
        advanced_rule_index=preview.advanced_rule_index,
    )


async def override_occurrence(
    db: AsyncSession,
    occurrence_id: str,
    actual_scheduled_utc: Optional[datetime] = None,
    is_cancelled: Optional[bool] = None,
    override_reason: Optional[str] = None,
) -> Occurrence:
    """
    Manually move or cancel one occurrence, pinning it against pattern edits.

    Moving a meeting is checked against other bookings on the calendar.
    """
    result = await db.execute(
        select(MeetingOccurrenceRecord).where(MeetingOccurrenceRecord.id == occurrence_id)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise LookupError(f"Meeting occurrence with id={occurrence_id} not found")

    if actual_scheduled_utc is not None:
        moved = _to_occurrence(record).model_copy(
            update={"actual_scheduled_utc": as_utc(actual_scheduled_utc)}
        )
        detector = DuplicateDetector(await list_calendar_occurrences(db, record.calendar_id))
        hits = detector.find_conflicts(
            record.calendar_id,
            moved.actual_local_date,
            proposed_utc=moved.actual_scheduled_utc,
            exclude_occurrence_id=record.id,
        )
        if hits:
            raise OccurrenceConflictError(
                f"Calendar {record.calendar_id} already has a meeting on "
                f"{moved.actual_local_date.isoformat()}"
            )
        record.actual_scheduled_utc = moved.actual_scheduled_utc

    if is_cancelled is not None:
        record.is_cancelled = is_cancelled
    if override_reason is not None:
        record.override_reason = override_reason

    await db.commit()
    await db.refresh(record)
    return _to_occurrence(record)


def _as_next_version(stored: MeetingPattern, candidate: MeetingPattern) -> MeetingPattern:
    # An edit without its own save anchor keeps the stored one, so the
    # preview and the applied change compute the same instants.
    return candidate.model_copy(
        update={
            "id": stored.id,
            "version": stored.version + 1,
            "saved_at": candidate.saved_at or stored.saved_at,
        }
    )


def _new_occurrence_record(pattern: MeetingPattern, scheduled_utc: datetime) -> MeetingOccurrenceRecord:
    return MeetingOccurrenceRecord(
        id=str(uuid.uuid4()),
        pattern_id=pattern.id,
        calendar_id=pattern.calendar_id,
        time_zone=pattern.time_zone,
        original_scheduled_utc=scheduled_utc,
        actual_scheduled_utc=scheduled_utc,
        is_cancelled=False,
    )
