# meeting_patterns/api/routes/occurrences.py
from datetime import timedelta
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from meeting_patterns.core.config import get_settings
from meeting_patterns.core.timezones import TimeZoneDataError
from meeting_patterns.db.session import get_db
from meeting_patterns.schemas.occurrence import Occurrence, OccurrenceOverride
from meeting_patterns.schemas.preview import DuplicateCheckRequest, DuplicateCheckResult
from meeting_patterns.services import pattern_store
from meeting_patterns.services.duplicate_detector import DuplicateDetector

router = APIRouter(prefix="/occurrences", tags=["Occurrences"])


@router.post(
    "/check-duplicate",
    response_model=DuplicateCheckResult,
    summary="Check a calendar date for existing bookings",
    description=(
        "Standalone double-booking check, used before an ad hoc single-date "
        "entry is saved.\n\n"
        "Every active booking on the calendar for `date` is returned, "
        "classified as `exact_time`, `overlapping_time` or `same_day` "
        "relative to `proposed_utc` (all `same_day` when it is omitted)."
    ),
    responses={
        200: {
            "description": "Check completed.",
            "content": {
                "application/json": {
                    "example": {
                        "has_conflict": True,
                        "duplicates": [
                            {
                                "occurrence_id": "0b6a0e1c-6b7f-4d0e-8a8e-5d8f1f7e2c11",
                                "pattern_id": "2f0f3b8e-1d7c-4a52-9d4e-7c61b0f1a9aa",
                                "pattern_name": "Planning Meeting",
                                "date": "2025-03-10",
                                "existing_utc": "2025-03-11T00:00:00Z",
                                "kind": "exact_time",
                            }
                        ],
                    }
                }
            },
        }
    },
)
async def check_duplicate(
    payload: DuplicateCheckRequest,
    db: AsyncSession = Depends(get_db),
) -> DuplicateCheckResult:
    settings = get_settings()
    bookings = await pattern_store.list_calendar_occurrences(db, payload.calendar_id)
    try:
        detector = DuplicateDetector(
            bookings,
            overlap_window=timedelta(minutes=settings.OVERLAP_WINDOW_MINUTES),
        )
        hits = detector.find_conflicts(
            payload.calendar_id,
            payload.date,
            proposed_utc=payload.proposed_utc,
            exclude_occurrence_id=payload.exclude_occurrence_id,
            exclude_pattern_id=payload.exclude_pattern_id,
        )
    except TimeZoneDataError as exc:
        raise HTTPException(status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=str(exc))

    return DuplicateCheckResult(has_conflict=bool(hits), duplicates=hits)


@router.patch(
    "/{occurrence_id}",
    response_model=Occurrence,
    summary="Move or cancel a single occurrence",
    description=(
        "Manually override one occurrence. Moved or cancelled occurrences "
        "are pinned: later pattern edits preserve them as they are.\n\n"
        "A move onto a date already booked on the same calendar is refused "
        "with 409."
    ),
    responses={
        404: {"description": "No occurrence exists with the given ID."},
        409: {"description": "The new date is already booked on this calendar."},
    },
)
async def override_occurrence(
    payload: OccurrenceOverride,
    occurrence_id: str = Path(..., description="Identifier of the stored occurrence."),
    db: AsyncSession = Depends(get_db),
) -> Occurrence:
    try:
        return await pattern_store.override_occurrence(
            db,
            occurrence_id,
            actual_scheduled_utc=payload.actual_scheduled_utc,
            is_cancelled=payload.is_cancelled,
            override_reason=payload.override_reason,
        )
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    except pattern_store.OccurrenceConflictError as exc:
        raise HTTPException(status_code=HTTPStatus.CONFLICT, detail=str(exc))
    except TimeZoneDataError as exc:
        raise HTTPException(status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=str(exc))
