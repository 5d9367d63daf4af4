# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: stateless timezone tools and overlap computation.
Thin HTTP layer, delegates ALL logic to the timezone and overlap services.
"""

from fastapi import APIRouter, HTTPException, Query

from collabtime.core.config import settings
from collabtime.metrics.prometheus import OVERLAP_COMPUTATIONS
from collabtime.schemas.workspace import OverlapRequest, overlap_response
from collabtime.services import timezones
from collabtime.services.overlap import compute_overlap_view

router = APIRouter(prefix="/api/v1", tags=["Timezones"])


@router.get("/timezones")
def list_timezones():
    """Common timezones with their current UTC offset labels."""
    return [
        {"name": tz, "label": timezones.format_timezone_label(tz)}
        for tz in timezones.COMMON_TIMEZONES
    ]


@router.get("/timezones/convert")
def convert_hour(
    hour: int = Query(..., ge=0, le=23),
    from_tz: str = Query(..., alias="from"),
    to_tz: str = Query(..., alias="to"),
):
    """Convert an hour of today from one timezone to another."""
    try:
        converted = timezones.convert_hour_to_timezone(hour, from_tz, to_tz)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "hour": hour,
        "from": from_tz,
        "to": to_tz,
        "converted": converted,
        "label": timezones.format_hour(converted),
    }


@router.get("/timezones/availability")
def availability(
    tz: str = Query(...),
    start: int = Query(..., ge=0, le=23),
    end: int = Query(..., ge=0, le=23),
):
    """Is someone with this window working right now, and if not, for how long."""
    try:
        working = timezones.is_currently_working(tz, start, end)
        minutes = timezones.get_minutes_until_available(tz, start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "timezone": tz,
        "working": working,
        "minutesUntilAvailable": minutes,
        "localHour": timezones.local_hour(tz),
        "refreshSeconds": settings.AVAILABILITY_REFRESH_SECONDS,
    }


@router.post("/overlap")
def compute_overlap(payload: OverlapRequest):
    """Overlap view for an arbitrary member list (no team or session needed)."""
    try:
        viewer_tz = timezones.resolve_viewer_timezone(payload.viewer_timezone)
        view = compute_overlap_view(
            payload.members,
            viewer_tz,
            selected_a=payload.selected_a,
            selected_b=payload.selected_b,
            member_ids=payload.member_ids,
            group_ids=payload.group_ids,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    OVERLAP_COMPUTATIONS.inc()
    return overlap_response(view, settings.OVERLAP_REFRESH_SECONDS)
