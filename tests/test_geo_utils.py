"""
Unit tests for great-circle math helpers.
"""
import math

import pytest
from src.geoindex.geo_utils import (
    EARTH_RADIUS_KM,
    bearing_degrees,
    bounding_box_for_radius,
    distance_km,
    is_valid_coordinate,
    is_valid_latitude,
    is_valid_longitude,
    is_within_radius,
    kilometers_to_meters,
    meters_to_kilometers,
)

LONDON = (51.5074, -0.1278)
PARIS = (48.8566, 2.3522)
ROME = (41.9028, 12.4964)


@pytest.mark.unit
class TestDistance:
    """Test suite for haversine distance."""

    def test_distance_same_point_is_zero(self):
        """Test that a point is 0 km from itself."""
        assert distance_km(*ROME, *ROME) == 0.0

    def test_distance_is_symmetric(self):
        """Test distance(A, B) == distance(B, A)."""
        forward = distance_km(*LONDON, *PARIS)
        backward = distance_km(*PARIS, *LONDON)
        assert forward == pytest.approx(backward, rel=1e-9)

    def test_distance_london_paris(self):
        """Test a well-known city pair (~344 km)."""
        assert distance_km(*LONDON, *PARIS) == pytest.approx(343.5, rel=0.01)

    def test_distance_one_degree_latitude(self):
        """Test that one degree along a meridian is R * pi / 180."""
        expected = EARTH_RADIUS_KM * math.pi / 180
        assert distance_km(10.0, 20.0, 11.0, 20.0) == pytest.approx(expected)

    def test_distance_antipodal(self):
        """Test that antipodal points are half the circumference apart."""
        assert distance_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(EARTH_RADIUS_KM * math.pi)


@pytest.mark.unit
class TestBearing:
    """Test suite for initial bearing."""

    @pytest.mark.parametrize("lat2,lon2,expected", [
        (1.0, 0.0, 0.0),
        (0.0, 1.0, 90.0),
        (-1.0, 0.0, 180.0),
        (0.0, -1.0, 270.0),
    ])
    def test_bearing_cardinal_directions(self, lat2, lon2, expected):
        """Test bearings due N, E, S and W from the origin."""
        assert bearing_degrees(0.0, 0.0, lat2, lon2) == pytest.approx(expected)

    def test_bearing_in_range(self):
        """Test that bearing is always in [0, 360)."""
        for target in (LONDON, PARIS, (-33.8688, 151.2093), (40.7128, -74.0060)):
            bearing = bearing_degrees(*ROME, *target)
            assert 0.0 <= bearing < 360.0

    def test_bearing_rome_to_london_is_north_west(self):
        """Test a real-world bearing lands in the right quadrant."""
        assert 270.0 < bearing_degrees(*ROME, *LONDON) < 360.0


@pytest.mark.unit
class TestRadius:
    """Test suite for radius containment and bounding boxes."""

    def test_within_radius_inclusive(self):
        """Test that a point exactly at the radius is inside."""
        d = distance_km(*LONDON, *PARIS)
        assert is_within_radius(*LONDON, *PARIS, d)

    def test_outside_radius(self):
        """Test that a point beyond the radius is outside."""
        assert not is_within_radius(*LONDON, *PARIS, 300.0)

    def test_bounding_box_at_equator(self):
        """Test box size at the equator (111 km per degree both ways)."""
        box = bounding_box_for_radius(0.0, 0.0, 111.0)

        assert box.min_lat == pytest.approx(-1.0)
        assert box.max_lat == pytest.approx(1.0)
        assert box.min_lon == pytest.approx(-1.0)
        assert box.max_lon == pytest.approx(1.0)

    def test_bounding_box_widens_with_latitude(self):
        """Test that longitude span grows by 1/cos(lat)."""
        box = bounding_box_for_radius(60.0, 10.0, 111.0)

        assert box.height == pytest.approx(2.0)
        assert box.width == pytest.approx(4.0)

    def test_bounding_box_contains_circle_points(self):
        """Test that points on the circle fall inside the estimated box."""
        radius = 5.0
        box = bounding_box_for_radius(*ROME, radius)

        # ~4.99 km north and east of Rome
        assert box.contains(ROME[0] + 4.99 / 111.2, ROME[1])
        assert box.contains(ROME[0], ROME[1] + 4.99 / (111.2 * math.cos(math.radians(ROME[0]))))


@pytest.mark.unit
class TestValidation:
    """Test suite for coordinate validators."""

    @pytest.mark.parametrize("lat,valid", [(-90.0, True), (90.0, True), (0.0, True), (90.01, False), (-91.0, False)])
    def test_latitude(self, lat, valid):
        assert is_valid_latitude(lat) is valid

    @pytest.mark.parametrize("lon,valid", [(-180.0, True), (180.0, True), (0.0, True), (180.01, False), (-200.0, False)])
    def test_longitude(self, lon, valid):
        assert is_valid_longitude(lon) is valid

    def test_coordinate(self):
        assert is_valid_coordinate(*ROME)
        assert not is_valid_coordinate(95.0, 12.0)
        assert not is_valid_coordinate(41.0, 190.0)

    def test_unit_conversions(self):
        assert meters_to_kilometers(1500.0) == 1.5
        assert kilometers_to_meters(1.5) == 1500.0
