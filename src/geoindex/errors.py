"""
Input-validation errors raised by the geohash codec and the spatial index.

All of them subclass ValueError so callers that already guard numeric
input with ``except ValueError`` keep working.
"""


class GeoIndexError(ValueError):
    """Base class for geospatial indexing errors."""


class InvalidCoordinate(GeoIndexError):
    """Latitude outside [-90, 90] or longitude outside [-180, 180]."""

    def __init__(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude
        super().__init__(f"Invalid coordinates: {latitude}, {longitude}")


class InvalidGeohash(GeoIndexError):
    """Empty geohash or a character outside the base-32 alphabet."""


class BoundingBoxTooLarge(GeoIndexError):
    """A bounds query would enumerate too many cells at the requested precision."""

    def __init__(self, precision: int, cell_count: int):
        self.precision = precision
        self.cell_count = cell_count
        super().__init__(
            f"Bounding box too large for precision {precision} ({cell_count} cells)"
        )
