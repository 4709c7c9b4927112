"""
Great-circle math on a spherical Earth.

Pure functions: no state, no I/O. Inputs are assumed finite; NaN simply
propagates through the arithmetic.
"""
import math

from src.geoindex.geometry import GeoBounds

EARTH_RADIUS_KM = 6371.0

# Rough length of one degree of latitude, used by the bounding-box estimate
KM_PER_DEGREE = 111.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Haversine distance between two coordinates.

    Args:
        lat1, lon1: First coordinate in degrees
        lat2, lon2: Second coordinate in degrees

    Returns:
        Great-circle distance in kilometers (0.0 for identical points)
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Initial bearing from the first coordinate towards the second.

    Returns:
        Compass bearing in [0, 360), 0 = north, 90 = east
    """
    d_lon = math.radians(lon2 - lon1)
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)

    y = math.sin(d_lon) * math.cos(lat2_rad)
    x = (
        math.cos(lat1_rad) * math.sin(lat2_rad)
        - math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(d_lon)
    )

    return (math.degrees(math.atan2(y, x)) + 360) % 360


def is_within_radius(
    center_lat: float,
    center_lon: float,
    lat: float,
    lon: float,
    radius_km: float
) -> bool:
    """Whether (lat, lon) is at most radius_km from the center."""
    return distance_km(center_lat, center_lon, lat, lon) <= radius_km


def bounding_box_for_radius(center_lat: float, center_lon: float, radius_km: float) -> GeoBounds:
    """
    Approximate square box around a circle.

    Uses 111 km per degree of latitude and scales longitude degrees by
    cos(latitude). Not geodesically exact: post-filter with
    is_within_radius when exact membership matters.

    Args:
        center_lat: Center latitude
        center_lon: Center longitude
        radius_km: Radius in kilometers

    Returns:
        GeoBounds enclosing (approximately) the circle
    """
    lat_diff = radius_km / KM_PER_DEGREE
    lon_diff = radius_km / (KM_PER_DEGREE * math.cos(math.radians(center_lat)))

    return GeoBounds(
        min_lat=center_lat - lat_diff,
        min_lon=center_lon - lon_diff,
        max_lat=center_lat + lat_diff,
        max_lon=center_lon + lon_diff,
    )


def is_valid_latitude(latitude: float) -> bool:
    return -90.0 <= latitude <= 90.0


def is_valid_longitude(longitude: float) -> bool:
    return -180.0 <= longitude <= 180.0


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    return is_valid_latitude(latitude) and is_valid_longitude(longitude)


def meters_to_kilometers(meters: float) -> float:
    return meters / 1000.0


def kilometers_to_meters(kilometers: float) -> float:
    return kilometers * 1000.0
