"""HTTP API exposing the admission engine."""

import hmac
from datetime import datetime, timedelta
from typing import List, Optional

import redis
from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import settings
from .domain import (
    STATUS_PRESENTATION,
    Asset,
    Coordinate,
    DenialReason,
    EvidenceSet,
    GeoCheckResult,
    GeofenceConfig,
    LocationReading,
    LocationState,
    Schedule,
    ScheduleStatus,
    StatusPresentation,
    SubmissionDecision,
)
from .geofence import check, geofence_for_asset
from .positioning import PositionPolicy, classify_reading
from .schedule_status import inspection_window_open, order_schedules, schedule_window
from .submission_guard import evaluate
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="api")

_redis_client = None
if settings.api_key_redis_url:
    try:
        _redis_client = redis.Redis.from_url(settings.api_key_redis_url)
        logger.info("API key checks will use Redis backend", extra={"redis_url": mask_url(settings.api_key_redis_url)})
    except (redis.RedisError, ValueError) as exc:
        logger.warning("Failed to configure Redis for API key checks; falling back to static key",
                       extra={"error": str(exc)})


def require_api_key(x_api_key: str | None = Header(default=None)):
    """
    Validate X-API-Key header against Redis (if configured) or the static api_key setting.
    """
    if not settings.api_key and not _redis_client:
        logger.debug("No API key configured; allowing all requests")
        return

    if not x_api_key:
        logger.debug("No API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if _redis_client:
        try:
            if _redis_client.sismember(settings.api_key_redis_set, x_api_key):
                return
        except redis.RedisError as e:
            logger.warning("Redis API key lookup error; falling back to static key",
                           extra={"error": str(e)})

    if settings.api_key and hmac.compare_digest(str(x_api_key), str(settings.api_key)):
        return

    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


router = APIRouter(dependencies=[Depends(require_api_key)])


class GeofenceCheckRequest(BaseModel):
    """A reading and the geofence to check it against."""
    reading: Coordinate
    geofence: GeofenceConfig


class ClassifyRequest(BaseModel):
    """Schedules to classify; `now` defaults to the server's wall clock."""
    schedules: List[Schedule]
    now: Optional[datetime] = None


class ClassifiedScheduleOut(BaseModel):
    """One classified schedule, in display order."""
    id: int | str
    asset_id: int | str
    status: ScheduleStatus
    presentation: StatusPresentation
    start: datetime
    end: datetime


class ClassifyResponse(BaseModel):
    """Classified schedules plus the instant they were evaluated at."""
    evaluated_at: datetime
    schedules: List[ClassifiedScheduleOut]


class AdmissionRequest(BaseModel):
    """Everything needed to decide whether an inspection may be recorded."""
    asset: Asset
    evidence: EvidenceSet = Field(default_factory=EvidenceSet)
    location: Optional[LocationReading] = None
    schedules: List[Schedule] = Field(default_factory=list)
    now: Optional[datetime] = None


class AdmissionResponse(BaseModel):
    """Decision for an admitted submission."""
    decision: SubmissionDecision
    location_state: LocationState
    geo_check: Optional[GeoCheckResult] = None


def _rejection_body(
    req: AdmissionRequest,
    decision: SubmissionDecision,
    geofence: Optional[GeofenceConfig],
    geo_result: Optional[GeoCheckResult],
    location_state: LocationState,
) -> dict:
    """Build the 422 body the inspection console already understands."""
    if DenialReason.LOCATION_OUT_OF_RADIUS in decision.reasons and geo_result and geofence:
        error = (f"You are {geo_result.distance_meters:.0f} meters from the asset. "
                 f"Maximum is {geofence.radius_meters:g} meters.")
    elif DenialReason.LOCATION_NOT_VALIDATED in decision.reasons:
        error = ("Location reading is stale; acquire a new position."
                 if location_state == LocationState.STALE
                 else "Location coordinates not found. Make sure GPS is enabled.")
    else:
        error = "Required evidence is missing: " + ", ".join(r.value for r in decision.reasons)

    user = req.location.coordinate if req.location else None
    return {
        "message": "Inspection not admitted",
        "error": error,
        "reasons": [r.value for r in decision.reasons],
        "location_valid": geo_result.is_within_radius if geo_result else not geofence,
        "location_state": location_state.value,
        "distance": geo_result.distance_meters if geo_result else None,
        "valid_radius": geofence.radius_meters if geofence else None,
        "apar_location": {"lat": geofence.center.latitude, "lng": geofence.center.longitude} if geofence else None,
        "user_location": {"lat": user.latitude, "lng": user.longitude} if user else None,
    }


@router.post("/geofence/check", response_model=GeoCheckResult)
def geofence_check(req: GeofenceCheckRequest):
    """Check one reading against one geofence."""
    return check(req.reading, req.geofence)


@router.get("/schedules/presentation", response_model=dict[ScheduleStatus, StatusPresentation])
def schedule_presentation():
    """Return the icon/color/label table for every status."""
    return STATUS_PRESENTATION


@router.post("/schedules/classify", response_model=ClassifyResponse)
def classify_schedules(req: ClassifyRequest):
    """Classify and order schedules for display."""
    now = req.now or datetime.now()
    out = []
    for item in order_schedules(req.schedules, now):
        start, end = schedule_window(item.schedule)
        out.append(ClassifiedScheduleOut(
            id=item.schedule.id,
            asset_id=item.schedule.asset_id,
            status=item.status,
            presentation=item.presentation,
            start=start,
            end=end,
        ))
    return ClassifyResponse(evaluated_at=now, schedules=out)


@router.post("/inspections/admission", response_model=AdmissionResponse)
def inspection_admission(req: AdmissionRequest):
    """Server-side admission check mirroring the client's pre-check.

    Stale readings are never judged: they leave the location unvalidated.
    """
    now = req.now or datetime.now()

    window_ok, schedule = inspection_window_open(
        req.schedules, req.asset.id, now, timedelta(hours=settings.inspection_window_grace_hours)
    )
    if not window_ok and schedule is not None:
        start, end = schedule_window(schedule)
        logger.info("Inspection of asset %s outside scheduled window", req.asset.id)
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={
            "message": "Inspection is only allowed during the scheduled window",
            "scheduled_time": start.time().isoformat(),
            "current_time": now.time().replace(microsecond=0).isoformat(),
            "valid_window": f"{start.time().isoformat()} - {end.time().isoformat()}",
        })

    geofence = geofence_for_asset(req.asset, settings.default_valid_radius_meters)
    location_state = classify_reading(req.location, now, PositionPolicy.from_settings(settings))
    geo_result = None
    if geofence is not None and location_state == LocationState.FRESH:
        geo_result = check(req.location.coordinate, geofence)

    decision = evaluate(req.evidence, geofence is not None, geo_result)
    if not decision.allowed:
        logger.info("Admission denied for asset %s: %s", req.asset.id, [r.value for r in decision.reasons])
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_rejection_body(req, decision, geofence, geo_result, location_state),
        )

    return AdmissionResponse(decision=decision, location_state=location_state, geo_check=geo_result)
