"""Great-circle helpers on a spherical Earth."""

from __future__ import annotations

import math

from apar_admission.domain import Coordinate

EARTH_RADIUS_M = 6_371_000.0


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates, in meters."""

    phi1, phi2 = math.radians(a.latitude), math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def initial_bearing_degrees(frm: Coordinate, to: Coordinate) -> float:
    """Forward azimuth from `frm` to `to`, normalized into [0, 360)."""

    phi1 = math.radians(frm.latitude)
    phi2 = math.radians(to.latitude)
    d_lambda = math.radians(to.longitude - frm.longitude)
    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    theta = math.degrees(math.atan2(y, x))
    return (theta + 360) % 360
