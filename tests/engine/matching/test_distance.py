"""Tests for great-circle distance."""

from decimal import Decimal

import pytest

from engine.matching.distance import haversine, round_km

BERLIN = (52.52, 13.405)
MUNICH = (48.1351, 11.582)


def test_haversine_same_point_is_zero():
    assert haversine(*BERLIN, *BERLIN) == 0.0


def test_haversine_is_symmetric():
    assert haversine(*BERLIN, *MUNICH) == pytest.approx(haversine(*MUNICH, *BERLIN))


def test_haversine_berlin_munich():
    assert haversine(*BERLIN, *MUNICH) == pytest.approx(504, abs=5)


def test_haversine_one_degree_of_latitude():
    # 6371 * pi / 180
    assert haversine(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)


@pytest.mark.parametrize(
    "coords",
    [
        (None, 13.405, 48.1351, 11.582),
        (52.52, None, 48.1351, 11.582),
        (52.52, 13.405, None, 11.582),
        (52.52, 13.405, 48.1351, None),
    ],
)
def test_haversine_missing_coordinate_is_unknown(coords):
    assert haversine(*coords) is None


def test_haversine_zero_coordinates_are_not_missing():
    assert haversine(0.0, 0.0, 0.0, 0.0) == 0.0


def test_round_km_rounds_half_up():
    assert round_km(12.345) == Decimal("12.35")
    assert round_km(27.0) == Decimal("27.00")


def test_round_km_keeps_unknown():
    assert round_km(None) is None


@pytest.mark.parametrize(
    "coords",
    [
        (-20.7, -178.9, 20.7, 1.0999999999999943),
        (0.0, 0.0, 0.0, 180.0),
        (90.0, 0.0, -90.0, 0.0),
    ],
)
def test_haversine_antipodal_points_give_half_circumference(coords):
    # 6371 * pi
    assert haversine(*coords) == pytest.approx(20015.09, abs=0.01)


def test_haversine_never_exceeds_half_circumference():
    for lat in range(-85, 86, 5):
        for lon in range(-180, 181, 7):
            lat_a, lon_a = lat + 0.3, lon - 0.1
            distance = haversine(lat_a, lon_a, -lat_a, lon_a + 180)
            assert 0 <= distance <= 20015.09 + 1e-6
