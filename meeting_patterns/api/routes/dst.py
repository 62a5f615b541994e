# meeting_patterns/api/routes/dst.py
from datetime import date as date_type
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query

from meeting_patterns.api.dependencies.engine import get_dst_analyzer
from meeting_patterns.core.config import get_settings
from meeting_patterns.core.timezones import TimeZoneDataError
from meeting_patterns.schemas.preview import DstTransition
from meeting_patterns.services.dst_risk import DstRiskAnalyzer

router = APIRouter(tags=["Time zones"])


@router.get(
    "/dst-transitions",
    response_model=list[DstTransition],
    summary="List upcoming UTC offset transitions for a zone",
    description=(
        "Return every UTC offset change for `time_zone` from local midnight "
        "of `from_date` through `horizon_days` days later.\n\n"
        "Zones without daylight saving time return an empty list. An unknown "
        "zone, or missing zone data, returns 503."
    ),
    responses={
        200: {
            "description": "Transitions found (possibly none).",
            "content": {
                "application/json": {
                    "example": [
                        {
                            "transition_date": "2025-03-09",
                            "kind": "spring_forward",
                            "instant_utc": "2025-03-09T08:00:00Z",
                            "offset_before_minutes": -360,
                            "offset_after_minutes": -300,
                        }
                    ]
                }
            },
        },
        503: {"description": "Time zone data could not be loaded."},
    },
)
async def list_dst_transitions(
    time_zone: str = Query(..., description="IANA time zone name.", examples=["America/Chicago"]),
    from_date: date_type | None = Query(
        default=None,
        description="First local date to scan. Defaults to today.",
        examples=["2025-03-01"],
    ),
    horizon_days: int | None = Query(
        default=None,
        ge=0,
        le=3660,
        description="Days to scan. Defaults to DST_WARNING_HORIZON_DAYS.",
        examples=[30],
    ),
    analyzer: DstRiskAnalyzer = Depends(get_dst_analyzer),
) -> list[DstTransition]:
    if horizon_days is None:
        horizon_days = get_settings().DST_WARNING_HORIZON_DAYS
    try:
        return analyzer.find_upcoming_transitions(time_zone, from_date or date_type.today(), horizon_days)
    except TimeZoneDataError as exc:
        raise HTTPException(status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=str(exc))
