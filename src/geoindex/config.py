"""
Runtime configuration for the query API, read from the environment.

Values may also come from a .env file in the working directory.
"""
import os

from dotenv import load_dotenv

from src.geoindex.geometry import GeoBounds

load_dotenv()

# Geohash characters per cell key (6 = ~1.2km x 0.6km cells)
PRECISION = int(os.getenv("GEOINDEX_PRECISION", "6"))

LOG_LEVEL = os.getenv("GEOINDEX_LOG_LEVEL", "INFO").upper()

WORLD_BOUNDS = GeoBounds(-90.0, -180.0, 90.0, 180.0)


def parse_bounds(value: str) -> GeoBounds:
    """
    Parse "minLat,minLon,maxLat,maxLon" into GeoBounds.

    Raises:
        ValueError: If the string does not hold four numbers or min > max
    """
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 4:
        raise ValueError(f"Expected minLat,minLon,maxLat,maxLon, got {value!r}")

    min_lat, min_lon, max_lat, max_lon = (float(p) for p in parts)
    if min_lat > max_lat or min_lon > max_lon:
        raise ValueError(f"Bounds minimum exceeds maximum: {value!r}")

    return GeoBounds(min_lat, min_lon, max_lat, max_lon)


# Root region of the viewport quad-tree
_bounds_env = os.getenv("GEOINDEX_QUADTREE_BOUNDS")
QUADTREE_BOUNDS = parse_bounds(_bounds_env) if _bounds_env else WORLD_BOUNDS
