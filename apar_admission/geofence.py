"""Geofence validation for static assets.

`check` is the client-side pre-check; the inspection backend repeats the same
test and its answer is authoritative. `from_rejection` turns the backend's 422
payload back into a GeoCheckResult so local state follows the server.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from apar_admission.domain import Asset, Coordinate, GeoCheckResult, GeofenceConfig, LocationType
from apar_admission.geo import distance_meters, initial_bearing_degrees
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="geofence")


def check(reading: Coordinate, config: GeofenceConfig) -> GeoCheckResult:
    """Check a reading against a geofence.

    The unrounded distance decides `is_within_radius` (inclusive boundary);
    the reported distance is rounded to the meter for display. The bearing
    points from the reading toward the asset.
    """
    raw_distance = distance_meters(reading, config.center)
    result = GeoCheckResult(
        distance_meters=float(round(raw_distance)),
        bearing_degrees=initial_bearing_degrees(reading, config.center),
        is_within_radius=raw_distance <= config.radius_meters,
    )
    logger.debug(
        "Geofence check: %.2fm against radius %.2fm -> %s",
        raw_distance,
        config.radius_meters,
        "inside" if result.is_within_radius else "outside",
    )
    return result


def geofence_for_asset(asset: Asset, default_radius_meters: float) -> Optional[GeofenceConfig]:
    """Return the asset's geofence, or None when it is not location-gated.

    Mobile assets and static assets without a recorded center are exempt.
    """
    if asset.location_type != LocationType.STATIC:
        return None
    if asset.latitude is None or asset.longitude is None:
        logger.debug("Static asset %s has no center; skipping geofence", asset.id)
        return None
    return GeofenceConfig(
        center=Coordinate(latitude=asset.latitude, longitude=asset.longitude),
        radius_meters=asset.valid_radius or default_radius_meters,
    )


def _coordinate_from(payload: Any) -> Optional[Coordinate]:
    """Parse a {lat, lng} mapping from a rejection payload."""
    if not isinstance(payload, Mapping):
        return None
    lat, lng = payload.get("lat"), payload.get("lng")
    if lat is None or lng is None:
        return None
    try:
        return Coordinate(latitude=float(lat), longitude=float(lng))
    except (TypeError, ValueError):
        return None


def from_rejection(
    payload: Mapping[str, Any],
    previous: Optional[GeoCheckResult] = None,
) -> Optional[GeoCheckResult]:
    """Rebuild geofence state from a backend 422 rejection payload.

    Returns None when the payload carries no distance (e.g. the request was
    sent without coordinates), in which case the location is simply not
    validated. The server only rejects readings outside the radius, so the
    result is always out of radius.
    """
    distance = payload.get("distance")
    if distance is None:
        return None

    bearing = previous.bearing_degrees if previous else 0.0
    user_location = _coordinate_from(payload.get("user_location"))
    asset_location = _coordinate_from(payload.get("apar_location"))
    if user_location and asset_location:
        bearing = initial_bearing_degrees(user_location, asset_location)

    result = GeoCheckResult(
        distance_meters=float(round(float(distance))),
        bearing_degrees=bearing,
        is_within_radius=False,
    )
    logger.info(
        "Backend rejected location: %sm (valid radius %s)",
        result.distance_meters,
        payload.get("valid_radius"),
    )
    return result
