"""
Geohash codec: coordinates <-> base-32 cell keys.

Each character packs 5 bits of alternating longitude/latitude bisection
(longitude first). Shorter keys denote larger cells.

Approximate cell size per precision (width x height at the equator):
    4 = ~39km x 20km
    5 = ~4.9km x 4.9km
    6 = ~1.2km x 0.6km   <- default
    7 = ~153m x 153m
    8 = ~38m x 19m
"""
import math
from typing import List, Set

from src.geoindex.errors import BoundingBoxTooLarge, InvalidCoordinate, InvalidGeohash
from src.geoindex.geo_utils import is_valid_coordinate
from src.geoindex.geometry import GeoBounds, GeoPoint

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE_MAP = {c: i for i, c in enumerate(BASE32)}

# Bit masks for the 5 bits of one character, most significant first
BITS = (16, 8, 4, 2, 1)

DEFAULT_PRECISION = 6

# Upper bound on the number of cells a bounds query may enumerate
MAX_BOUNDS_CELLS = 1000

# (dx, dy) offsets in the order returned by get_neighbors, after the center
NEIGHBOR_OFFSETS = (
    (0, 1),    # N
    (1, 1),    # NE
    (1, 0),    # E
    (1, -1),   # SE
    (0, -1),   # S
    (-1, -1),  # SW
    (-1, 0),   # W
    (-1, 1),   # NW
)


def encode(latitude: float, longitude: float, precision: int = DEFAULT_PRECISION) -> str:
    """
    Encode a coordinate to a geohash.

    Args:
        latitude: Latitude in [-90, 90]
        longitude: Longitude in [-180, 180]
        precision: Number of output characters

    Returns:
        Geohash string of exactly `precision` characters

    Raises:
        InvalidCoordinate: If the coordinate is out of range
        ValueError: If precision is less than 1
    """
    if not is_valid_coordinate(latitude, longitude):
        raise InvalidCoordinate(latitude, longitude)
    if precision < 1:
        raise ValueError(f"Precision must be at least 1, got {precision}")

    lat_lo, lat_hi = -90.0, 90.0
    lon_lo, lon_hi = -180.0, 180.0

    chars = []
    is_lon = True
    while len(chars) < precision:
        ch = 0
        for mask in BITS:
            if is_lon:
                mid = (lon_lo + lon_hi) / 2
                if longitude > mid:
                    ch |= mask
                    lon_lo = mid
                else:
                    lon_hi = mid
            else:
                mid = (lat_lo + lat_hi) / 2
                if latitude > mid:
                    ch |= mask
                    lat_lo = mid
                else:
                    lat_hi = mid
            is_lon = not is_lon
        chars.append(BASE32[ch])

    return "".join(chars)


def decode(geohash: str) -> GeoBounds:
    """
    Decode a geohash to the rectangle it denotes.

    Raises:
        InvalidGeohash: On empty input or a character outside BASE32
    """
    if not geohash:
        raise InvalidGeohash("Geohash cannot be empty")

    lat_lo, lat_hi = -90.0, 90.0
    lon_lo, lon_hi = -180.0, 180.0

    is_lon = True
    for c in geohash:
        cd = _DECODE_MAP.get(c)
        if cd is None:
            raise InvalidGeohash(f"Invalid geohash character: {c!r}")

        for mask in BITS:
            if is_lon:
                mid = (lon_lo + lon_hi) / 2
                if cd & mask:
                    lon_lo = mid
                else:
                    lon_hi = mid
            else:
                mid = (lat_lo + lat_hi) / 2
                if cd & mask:
                    lat_lo = mid
                else:
                    lat_hi = mid
            is_lon = not is_lon

    return GeoBounds(min_lat=lat_lo, min_lon=lon_lo, max_lat=lat_hi, max_lon=lon_hi)


def decode_to_point(geohash: str) -> GeoPoint:
    """Center of the cell."""
    return decode(geohash).center()


def get_neighbor(geohash: str, dx: int, dy: int) -> str:
    """
    Cell adjacent to `geohash`, dx cells east and dy cells north.

    Latitude is clamped at the poles and longitude wraps at +/-180, so
    near those edges the result may coincide with the cell itself or
    skip a column.
    """
    bounds = decode(geohash)
    center = bounds.center()

    new_lat = center.latitude + dy * bounds.height
    new_lon = center.longitude + dx * bounds.width

    new_lat = max(-90.0, min(90.0, new_lat))
    if new_lon > 180:
        new_lon -= 360
    elif new_lon < -180:
        new_lon += 360

    return encode(new_lat, new_lon, len(geohash))


def get_neighbors(geohash: str) -> List[str]:
    """
    The cell plus its 8 compass neighbors.

    Returns:
        [center, N, NE, E, SE, S, SW, W, NW]. Near the poles or the
        antimeridian some entries may repeat.
    """
    return [geohash] + [get_neighbor(geohash, dx, dy) for dx, dy in NEIGHBOR_OFFSETS]


def _sample_axis(lo: float, hi: float, step: float) -> List[float]:
    samples = []
    i = 0
    value = lo
    while value <= hi:
        samples.append(value)
        i += 1
        value = lo + i * step
    # The walk can stop short of the far edge by up to one step
    if samples and samples[-1] < hi:
        samples.append(hi)
    return samples


def get_geohashes_in_bounds(
    min_lat: float,
    min_lon: float,
    max_lat: float,
    max_lon: float,
    precision: int
) -> Set[str]:
    """
    Cells covering a bounding box, found by walking a sample grid.

    The cell count is estimated from 180 / 2^(precision*2.5) degrees of
    latitude and twice that of longitude, not the exact geohash cell
    dimensions. At odd precisions that longitude estimate is wider than a
    real cell (cells there are square in degrees), so the walk samples
    both axes at half the latitude step to avoid skipping columns of cells.

    Raises:
        ValueError: If any edge is NaN or infinite
        BoundingBoxTooLarge: If the estimated cell count exceeds MAX_BOUNDS_CELLS
    """
    if not all(math.isfinite(v) for v in (min_lat, min_lon, max_lat, max_lon)):
        raise ValueError(f"Bounds must be finite: {min_lat}, {min_lon}, {max_lat}, {max_lon}")

    lat_step = 180.0 / math.pow(2, precision * 2.5)
    lon_step = 360.0 / math.pow(2, precision * 2.5)

    lat_cells = math.ceil((max_lat - min_lat) / lat_step) + 1
    lon_cells = math.ceil((max_lon - min_lon) / lon_step) + 1

    if lat_cells * lon_cells > MAX_BOUNDS_CELLS:
        raise BoundingBoxTooLarge(precision, lat_cells * lon_cells)

    # lat_step never exceeds a real cell side; halving it keeps float drift
    # from stepping over a row or column that lat_step lands on exactly
    sample_step = lat_step / 2

    geohashes = set()
    for lat in _sample_axis(min_lat, max_lat, sample_step):
        for lon in _sample_axis(min_lon, max_lon, sample_step):
            if is_valid_coordinate(lat, lon):
                geohashes.add(encode(lat, lon, precision))

    return geohashes


def get_precision_for_radius(radius_km: float) -> int:
    """Coarse lookup from search radius to a precision whose cells are about that size."""
    if radius_km >= 20:
        return 4  # ~40km cells
    if radius_km >= 5:
        return 5  # ~5km cells
    if radius_km >= 1:
        return 6  # ~1km cells
    if radius_km >= 0.15:
        return 7  # ~150m cells
    return 8  # ~40m cells
