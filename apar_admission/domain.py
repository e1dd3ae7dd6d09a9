"""Domain vocabulary and strict schemas for inspection admission control.

This module defines the stable contract shared by the geofence validator, the
schedule classifier, the submission guard and the HTTP layer: enums, denial
codes, the status presentation table and Pydantic models for every value that
flows between them. No decision logic lives here.
"""

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid")


class _FrozenModel(BaseModel):
    """Immutable value type."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class LocationType(str, Enum):
    """Where an asset lives; only static assets are geofenced."""
    STATIC = "static"
    MOBILE = "mobile"


class LocationState(str, Enum):
    """Tri-state outcome of a device positioning query."""
    UNAVAILABLE = "unavailable"
    STALE = "stale"
    FRESH = "fresh"


class Frequency(str, Enum):
    """Recurrence of a scheduled inspection visit."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"


class ScheduleStatus(str, Enum):
    """Lifecycle state of a scheduled visit at a reference instant."""
    INACTIVE = "inactive"
    TODAY_ONGOING = "today_ongoing"
    TODAY_NOT_STARTED = "today_not_started"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"


class DenialReason(str, Enum):
    """Canonical codes for why a submission is not yet admissible."""
    MISSING_PHOTO = "missing_photo"
    MISSING_SELFIE = "missing_selfie"
    LOCATION_NOT_VALIDATED = "location_not_validated"
    LOCATION_OUT_OF_RADIUS = "location_out_of_radius"


class DamageSeverity(str, Enum):
    """Severity recorded against a damage finding."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Coordinate(_FrozenModel):
    """WGS84 position in degrees. Range is not checked."""
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    latitude: float
    longitude: float


class GeofenceConfig(_FrozenModel):
    """Circular boundary attached to a static asset."""
    center: Coordinate
    radius_meters: float = Field(gt=0)


class LocationReading(_FrozenModel):
    """A coordinate produced by the device positioning API."""
    coordinate: Coordinate
    captured_at: datetime


class GeoCheckResult(_FrozenModel):
    """Outcome of one geofence check; recomputed on every reading."""
    distance_meters: float = Field(ge=0)
    bearing_degrees: float = Field(ge=0, lt=360)
    is_within_radius: bool


class Asset(_StrictBaseModel):
    """The slice of an APAR record the admission engine needs."""
    id: int | str
    serial_number: str | None = None
    location_type: LocationType = LocationType.STATIC
    latitude: float | None = None
    longitude: float | None = None
    valid_radius: float | None = Field(default=None, gt=0)


class Schedule(_StrictBaseModel):
    """A scheduled inspection visit, read-only to this engine."""
    id: int | str
    asset_id: int | str
    assigned_user_id: int | str
    scheduled_date: date
    start_time: time
    end_time: time
    frequency: Frequency = Frequency.WEEKLY
    is_active: bool = True
    is_completed: bool = False
    notes: str | None = None

    @field_validator("scheduled_date", mode="before")
    @classmethod
    def keep_calendar_day(cls, value: Any) -> Any:
        """Drop any time-of-day part; only the calendar day is meaningful."""
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            return value.split("T")[0].split(" ")[0]
        return value


class StatusPresentation(_FrozenModel):
    """Icon, color and label rendered for a schedule status."""
    icon: str
    color: str
    label: str


STATUS_PRESENTATION: Dict[ScheduleStatus, StatusPresentation] = {
    ScheduleStatus.INACTIVE: StatusPresentation(icon="x-circle", color="gray", label="Inactive"),
    ScheduleStatus.TODAY_ONGOING: StatusPresentation(icon="clock", color="amber", label="Today (ongoing)"),
    ScheduleStatus.TODAY_NOT_STARTED: StatusPresentation(
        icon="calendar", color="blue", label="Today (not started)"
    ),
    ScheduleStatus.OVERDUE: StatusPresentation(icon="exclamation-triangle", color="red", label="Overdue"),
    ScheduleStatus.UPCOMING: StatusPresentation(icon="check-circle", color="emerald", label="Upcoming"),
}


class DamageRecord(_StrictBaseModel):
    """A damage finding attached to an inspection."""
    category_id: int | str
    severity: DamageSeverity = DamageSeverity.LOW
    notes: str | None = None
    photo_present: bool = False


class EvidenceSet(_StrictBaseModel):
    """Evidence gathered so far and which of it is required."""
    photo_required: bool = False
    photo_present: bool = False
    selfie_required: bool = False
    selfie_present: bool = False
    damage_records: List[DamageRecord] = Field(default_factory=list)


class SubmissionDecision(_StrictBaseModel):
    """Admit/deny outcome for an inspection submission."""
    allowed: bool
    reasons: List[DenialReason] = Field(default_factory=list)
