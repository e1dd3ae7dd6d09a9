import math

import pytest

from apar_admission.domain import Coordinate
from apar_admission.geo import EARTH_RADIUS_M, distance_meters, initial_bearing_degrees


def coord(lat, lng):
    return Coordinate(latitude=lat, longitude=lng)


@pytest.mark.parametrize("point", [coord(0.0, 0.0), coord(-6.2, 106.8), coord(89.9, -179.9), coord(120.0, 400.0)])
def test_distance_to_self_is_zero(point):
    assert distance_meters(point, point) == 0


@pytest.mark.parametrize(
    "a,b",
    [
        (coord(0.0, 0.0), coord(0.5, 0.5)),
        (coord(-6.2001, 106.8167), coord(-6.2088, 106.8456)),
        (coord(51.5, -0.12), coord(48.85, 2.35)),
    ],
)
def test_distance_is_symmetric(a, b):
    assert distance_meters(a, b) == pytest.approx(distance_meters(b, a), rel=1e-12)


def test_one_kilometer_along_meridian():
    assert distance_meters(coord(0.0, 0.0), coord(0.0089932, 0.0)) == pytest.approx(1000.0, abs=1.0)
    exact_lat = math.degrees(1000.0 / EARTH_RADIUS_M)
    assert distance_meters(coord(0.0, 0.0), coord(exact_lat, 0.0)) == pytest.approx(1000.0, abs=1e-6)


def test_known_city_pair_distance():
    london, paris = coord(51.5074, -0.1278), coord(48.8566, 2.3522)
    assert distance_meters(london, paris) == pytest.approx(343_500, rel=0.01)


def test_out_of_range_coordinates_are_not_clamped():
    # 360 degrees of longitude wraps to the same point on the sphere
    assert distance_meters(coord(10.0, 20.0), coord(10.0, 380.0)) == pytest.approx(0.0, abs=1e-6)


def test_nan_propagates():
    nan_point = Coordinate.model_construct(latitude=float("nan"), longitude=0.0)
    assert math.isnan(distance_meters(nan_point, coord(0.0, 0.0)))
    assert math.isnan(initial_bearing_degrees(nan_point, coord(0.0, 0.0)))


@pytest.mark.parametrize(
    "target,expected",
    [
        (coord(1.0, 0.0), 0.0),
        (coord(0.0, 1.0), 90.0),
        (coord(-1.0, 0.0), 180.0),
        (coord(0.0, -1.0), 270.0),
    ],
)
def test_cardinal_bearings(target, expected):
    assert initial_bearing_degrees(coord(0.0, 0.0), target) == pytest.approx(expected, abs=1e-9)


def test_bearing_is_normalized():
    origin = coord(-6.2, 106.8)
    for dlat in (-0.3, -0.01, 0.0, 0.02, 0.4):
        for dlng in (-0.5, -0.001, 0.001, 0.7):
            bearing = initial_bearing_degrees(origin, coord(origin.latitude + dlat, origin.longitude + dlng))
            assert 0.0 <= bearing < 360.0
