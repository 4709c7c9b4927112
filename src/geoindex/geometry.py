"""
Immutable geographic value types shared by the codec, the quad-tree and the index.
"""
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class IndexablePoint(Protocol):
    """
    Anything with a stable coordinate pair.

    Identity (used when removing from an index) is the object's own
    equality and hash.
    """

    @property
    def latitude(self) -> float: ...

    @property
    def longitude(self) -> float: ...


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair. No wrap-around normalization is applied."""
    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"GeoPoint[{self.latitude:f}, {self.longitude:f}]"


@dataclass(frozen=True)
class GeoBounds:
    """
    Axis-aligned lat/lon rectangle, inclusive on every edge.

    Bounds built by decode or subdivision always have min <= max.
    Caller-supplied query bounds are not checked.
    """
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @property
    def width(self) -> float:
        """Longitude span in degrees."""
        return self.max_lon - self.min_lon

    @property
    def height(self) -> float:
        """Latitude span in degrees."""
        return self.max_lat - self.min_lat

    def center(self) -> GeoPoint:
        return GeoPoint(
            (self.min_lat + self.max_lat) / 2,
            (self.min_lon + self.max_lon) / 2,
        )

    def contains(self, lat: float, lon: float) -> bool:
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lon <= lon <= self.max_lon
        )

    def contains_point(self, point: IndexablePoint) -> bool:
        return self.contains(point.latitude, point.longitude)

    def intersects(self, other: "GeoBounds") -> bool:
        # Touching edges count as intersecting
        return not (
            other.max_lat < self.min_lat
            or other.min_lat > self.max_lat
            or other.max_lon < self.min_lon
            or other.min_lon > self.max_lon
        )

    def __str__(self) -> str:
        return (
            f"GeoBounds[({self.min_lat:f},{self.min_lon:f}) "
            f"to ({self.max_lat:f},{self.max_lon:f})]"
        )
