# meeting_patterns/api/routes/patterns.py
from datetime import date as date_type, timedelta
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from meeting_patterns.api.dependencies.engine import get_expander, get_preview_builder
from meeting_patterns.core.config import get_settings
from meeting_patterns.core.timezones import TimeZoneDataError
from meeting_patterns.db.session import get_db
from meeting_patterns.schemas.occurrence import ExpandedOccurrence, Occurrence
from meeting_patterns.schemas.pattern import MeetingPattern
from meeting_patterns.schemas.preview import (
    ChangePreview,
    ExpandRequest,
    LookaheadWindow,
    PatternChangeRequest,
    PatternChangeResult,
    PatternCreateRequest,
)
from meeting_patterns.services import pattern_store
from meeting_patterns.services.change_preview import ChangePreviewBuilder
from meeting_patterns.services.ics_export import build_calendar
from meeting_patterns.services.pattern_expander import PatternExpander

router = APIRouter(prefix="/patterns", tags=["Patterns"])

_PATTERN_ID = Path(..., description="Identifier of the stored pattern.")

_ZONE_UNAVAILABLE = {
    "description": "Time zone data could not be loaded; safe to retry.",
    "content": {
        "application/json": {
            "example": {"detail": "Time zone data unavailable for 'Mars/Olympus': ..."},
        }
    },
}


def _zone_unavailable(exc: TimeZoneDataError) -> HTTPException:
    return HTTPException(status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=str(exc))


def _blocked(exc: pattern_store.PreviewBlockedError) -> HTTPException:
    return HTTPException(
        status_code=HTTPStatus.CONFLICT,
        detail={"message": "Pattern change has blocking conflicts.", "errors": exc.preview.errors},
    )


def _window(start_date: date_type | None, end_date: date_type | None) -> LookaheadWindow:
    try:
        return pattern_store.resolve_window(start_date, end_date, get_settings().LOOKAHEAD_MONTHS)
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))


@router.post(
    "",
    response_model=PatternChangeResult,
    status_code=HTTPStatus.CREATED,
    summary="Create a recurring meeting pattern",
    description=(
        "Store a new pattern for a division calendar and materialize its "
        "occurrences over the lookahead window.\n\n"
        "The request is refused with 409 if any generated date would "
        "double-book the calendar against another pattern."
    ),
    responses={
        409: {"description": "At least one generated date is already booked."},
        503: _ZONE_UNAVAILABLE,
    },
)
async def create_pattern(
    payload: PatternCreateRequest,
    db: AsyncSession = Depends(get_db),
    builder: ChangePreviewBuilder = Depends(get_preview_builder),
) -> PatternChangeResult:
    window = _window(payload.start_date, payload.end_date)
    try:
        return await pattern_store.create_pattern(db, payload.pattern, window, builder)
    except TimeZoneDataError as exc:
        raise _zone_unavailable(exc)
    except pattern_store.PreviewBlockedError as exc:
        raise _blocked(exc)


@router.post(
    "/expand",
    response_model=list[ExpandedOccurrence],
    summary="Expand a pattern without storing it",
    description=(
        "Return the dates and UTC instants a pattern implies over "
        "`[start_date, end_date]`. Nothing is persisted.\n\n"
        "Recurring rules are clamped to MAX_EXPANSION_MONTHS after "
        "`start_date`. Specific-dates patterns return every configured date "
        "in the window."
    ),
    responses={
        400: {"description": "end_date is before start_date."},
        503: _ZONE_UNAVAILABLE,
    },
)
async def expand_pattern(
    payload: ExpandRequest,
    expander: PatternExpander = Depends(get_expander),
) -> list[ExpandedOccurrence]:
    try:
        return expander.expand(payload.pattern, payload.start_date, payload.end_date)
    except TimeZoneDataError as exc:
        raise _zone_unavailable(exc)
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc))


@router.get(
    "/{pattern_id}",
    response_model=MeetingPattern,
    summary="Get a stored pattern",
    responses={
        404: {
            "description": "No pattern exists with the given ID.",
            "content": {
                "application/json": {
                    "example": {"detail": "Meeting pattern with id=42 not found"},
                }
            },
        },
    },
)
async def get_pattern(
    pattern_id: str = _PATTERN_ID,
    db: AsyncSession = Depends(get_db),
) -> MeetingPattern:
    try:
        return await pattern_store.get_pattern(db, pattern_id)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))


@router.get(
    "/{pattern_id}/occurrences",
    response_model=list[Occurrence],
    summary="List persisted occurrences of a pattern",
    description=(
        "Return the stored occurrences of a pattern, including manual "
        "overrides and cancellations.\n\n"
        "- If both dates are omitted, every occurrence is returned.\n"
        "- Otherwise the window defaults to today through LOOKAHEAD_MONTHS "
        "  and filters on the date each occurrence was originally generated for."
    ),
)
async def list_pattern_occurrences(
    pattern_id: str = _PATTERN_ID,
    start_date: date_type | None = Query(
        default=None,
        description="First local date (inclusive), YYYY-MM-DD.",
        examples=["2025-03-01"],
    ),
    end_date: date_type | None = Query(
        default=None,
        description="Last local date (inclusive), YYYY-MM-DD.",
        examples=["2025-05-31"],
    ),
    db: AsyncSession = Depends(get_db),
) -> list[Occurrence]:
    window = None
    if start_date is not None or end_date is not None:
        window = _window(start_date, end_date)
    try:
        return await pattern_store.list_occurrences(db, pattern_id, window)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))


@router.post(
    "/{pattern_id}/preview",
    response_model=ChangePreview,
    summary="Preview an edit to a stored pattern",
    description=(
        "Compute what replacing the stored pattern with `candidate` would do "
        "over the lookahead window: additions, removals, preserved manual "
        "overrides, re-timed meetings, double bookings and DST warnings.\n\n"
        "Read-only. `is_valid` is false when any blocking conflict exists."
    ),
    responses={404: {"description": "No pattern exists with the given ID."}, 503: _ZONE_UNAVAILABLE},
)
async def preview_pattern_change(
    payload: PatternChangeRequest,
    pattern_id: str = _PATTERN_ID,
    db: AsyncSession = Depends(get_db),
    builder: ChangePreviewBuilder = Depends(get_preview_builder),
) -> ChangePreview:
    window = _window(payload.start_date, payload.end_date)
    try:
        return await pattern_store.preview_pattern_change(db, pattern_id, payload.candidate, window, builder)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    except TimeZoneDataError as exc:
        raise _zone_unavailable(exc)


@router.post(
    "/{pattern_id}/apply",
    response_model=PatternChangeResult,
    summary="Apply a confirmed pattern edit",
    description=(
        "Recompute the preview and persist it in one transaction. Pinned "
        "occurrences are never touched.\n\n"
        "Refused with 409 when the preview has blocking conflicts."
    ),
    responses={
        404: {"description": "No pattern exists with the given ID."},
        409: {
            "description": "The change would double-book the calendar.",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "message": "Pattern change has blocking conflicts.",
                            "errors": [
                                "Meeting on 2025-03-10 00:00 UTC would be scheduled "
                                "at exactly the same time as Planning Meeting"
                            ],
                        }
                    }
                }
            },
        },
        503: _ZONE_UNAVAILABLE,
    },
)
async def apply_pattern_change(
    payload: PatternChangeRequest,
    pattern_id: str = _PATTERN_ID,
    db: AsyncSession = Depends(get_db),
    builder: ChangePreviewBuilder = Depends(get_preview_builder),
) -> PatternChangeResult:
    window = _window(payload.start_date, payload.end_date)
    try:
        return await pattern_store.apply_pattern_change(db, pattern_id, payload.candidate, window, builder)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))
    except TimeZoneDataError as exc:
        raise _zone_unavailable(exc)
    except pattern_store.PreviewBlockedError as exc:
        raise _blocked(exc)


@router.get(
    "/{pattern_id}/calendar.ics",
    summary="Export a pattern's occurrences as iCalendar",
    response_class=Response,
    responses={
        200: {"content": {"text/calendar": {}}},
        404: {"description": "No pattern exists with the given ID."},
    },
)
async def export_calendar(
    pattern_id: str = _PATTERN_ID,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """
    Subscribable feed of the persisted, non-cancelled occurrences.
    """
    try:
        pattern = await pattern_store.get_pattern(db, pattern_id)
        occurrences = await pattern_store.list_occurrences(db, pattern_id)
    except LookupError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc))

    duration = timedelta(minutes=get_settings().DEFAULT_MEETING_DURATION_MINUTES)
    return Response(
        content=build_calendar(pattern, occurrences, duration=duration),
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="pattern-{pattern_id}.ics"'},
    )
