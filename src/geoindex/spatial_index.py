"""
Geohash-bucketed spatial index.

Points are grouped by the geohash cell of their coordinates at a fixed
precision. Radius queries read the center cell plus its 8 neighbors and
filter by exact haversine distance, so lookups touch O(points in 9 cells)
instead of every indexed point.

Approximation: a radius query only sees the 9-cell neighborhood. If the
radius is larger than about one cell width at the configured precision,
matching points further out are missed. Pick the precision so that
radius <= cell width (see geohash.get_precision_for_radius).

Thread-safe: the bucket map is lock-striped, so a loader thread can
index or remove points while other threads query.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from src.geoindex import geohash
from src.geoindex import metrics
from src.geoindex.errors import BoundingBoxTooLarge
from src.geoindex.geo_utils import distance_km, is_valid_coordinate, is_within_radius
from src.geoindex.geometry import IndexablePoint

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=IndexablePoint)

DEFAULT_PRECISION = 6
MIN_PRECISION = 1
MAX_PRECISION = 12

# k-nearest search: start radius, growth factor and cutoff (km)
KNN_START_RADIUS_KM = 0.5
KNN_RADIUS_GROWTH = 2
KNN_MAX_RADIUS_KM = 50.0

DEFAULT_SHARD_COUNT = 16


@dataclass
class IndexStats:
    """Snapshot of index shape, for introspection only."""
    total_cells: int
    total_points: int
    avg_points_per_cell: float
    precision: int

    def __str__(self) -> str:
        return (
            f"IndexStats[cells={self.total_cells}, points={self.total_points}, "
            f"avg={self.avg_points_per_cell:.2f}, precision={self.precision}]"
        )


class StripedBucketMap(Generic[P]):
    """
    Mapping of cell key -> list of points, split into independently
    locked shards.

    Readers get copies of bucket contents, never the live lists.
    """

    def __init__(self, shard_count: int = DEFAULT_SHARD_COUNT):
        self._locks = [threading.Lock() for _ in range(shard_count)]
        self._shards: List[Dict[str, List[P]]] = [{} for _ in range(shard_count)]

    def _shard(self, cell: str) -> Tuple[threading.Lock, Dict[str, List[P]]]:
        i = hash(cell) % len(self._shards)
        return self._locks[i], self._shards[i]

    def append(self, cell: str, point: P) -> None:
        lock, shard = self._shard(cell)
        with lock:
            shard.setdefault(cell, []).append(point)

    def remove(self, cell: str, point: P) -> bool:
        """Remove one occurrence of `point`; drop the bucket once it is empty."""
        lock, shard = self._shard(cell)
        with lock:
            bucket = shard.get(cell)
            if bucket is None:
                return False
            try:
                bucket.remove(point)
            except ValueError:
                return False
            if not bucket:
                del shard[cell]
            return True

    def get(self, cell: str) -> List[P]:
        lock, shard = self._shard(cell)
        with lock:
            return list(shard.get(cell, ()))

    def cells(self) -> List[str]:
        keys: List[str] = []
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                keys.extend(shard)
        return keys

    def all_points(self) -> List[P]:
        points: List[P] = []
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                for bucket in shard.values():
                    points.extend(bucket)
        return points

    def counts(self) -> Tuple[int, int]:
        """(number of cells, number of points)"""
        cells = points = 0
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                cells += len(shard)
                points += sum(len(bucket) for bucket in shard.values())
        return cells, points

    def clear(self) -> None:
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                shard.clear()


def _skip_reason(point: IndexablePoint) -> Optional[str]:
    """Why a point cannot be indexed, or None if it can."""
    lat, lon = point.latitude, point.longitude
    if not is_valid_coordinate(lat, lon):
        return "invalid"
    # (0, 0) marks a record with missing coordinates
    if lat == 0.0 and lon == 0.0:
        return "null_island"
    return None


class SpatialIndex(Generic[P]):
    """
    Geohash-cell index with radius, bounding-box and k-nearest queries.

    Invalid coordinates and the (0, 0) sentinel are skipped silently on
    insert and remove. A point whose coordinates change must be removed
    and re-indexed by the caller.
    """

    # Safe for concurrent index/remove/query from multiple threads
    thread_safe = True

    def __init__(self, precision: int = DEFAULT_PRECISION):
        self._precision = self._check_precision(precision)
        self._buckets: StripedBucketMap[P] = StripedBucketMap()

    @staticmethod
    def _check_precision(precision: int) -> int:
        if not isinstance(precision, int) or not MIN_PRECISION <= precision <= MAX_PRECISION:
            raise ValueError(
                f"Precision must be an integer in [{MIN_PRECISION}, {MAX_PRECISION}], got {precision!r}"
            )
        return precision

    @property
    def precision(self) -> int:
        return self._precision

    def cell_for(self, latitude: float, longitude: float) -> str:
        """Cell key for a coordinate at this index's precision."""
        return geohash.encode(latitude, longitude, self._precision)

    def index(self, point: Optional[P]) -> bool:
        """
        Add a point to the bucket of its cell.

        Returns:
            True if indexed, False if skipped
        """
        if point is None:
            return False

        reason = _skip_reason(point)
        if reason is not None:
            metrics.points_skipped_total.labels(reason=reason).inc()
            logger.debug("Skipping %s point (%s, %s)", reason, point.latitude, point.longitude)
            return False

        self._buckets.append(self.cell_for(point.latitude, point.longitude), point)
        metrics.points_indexed_total.inc()
        return True

    def index_all(self, points: Iterable[P]) -> int:
        """Index every point; returns how many were actually indexed."""
        return sum(1 for point in points if self.index(point))

    def remove(self, point: Optional[P]) -> bool:
        """
        Remove a point from the bucket of its current cell.

        Returns:
            True if the point was found and removed
        """
        if point is None or _skip_reason(point) is not None:
            return False

        removed = self._buckets.remove(self.cell_for(point.latitude, point.longitude), point)
        if removed:
            metrics.points_removed_total.inc()
        return removed

    def find_nearby(self, latitude: float, longitude: float, radius_km: float) -> List[P]:
        """
        Points within radius_km of the coordinate, searched over the
        center cell and its 8 neighbors. Unordered.

        Returns an empty list for an invalid center coordinate.
        """
        start_time = time.perf_counter()
        metrics.queries_total.labels(query="nearby").inc()

        if not is_valid_coordinate(latitude, longitude):
            return []

        results = [
            point
            for point in self._candidates_around(latitude, longitude)
            if is_within_radius(latitude, longitude, point.latitude, point.longitude, radius_km)
        ]

        metrics.query_duration_seconds.labels(query="nearby").observe(time.perf_counter() - start_time)
        return results

    def _candidates_around(self, latitude: float, longitude: float) -> List[P]:
        center_cell = self.cell_for(latitude, longitude)

        candidates: List[P] = []
        # Neighbors can repeat near the poles and the antimeridian
        for cell in dict.fromkeys(geohash.get_neighbors(center_cell)):
            candidates.extend(self._buckets.get(cell))
        return candidates

    def find_in_bounds(
        self,
        min_lat: float,
        min_lon: float,
        max_lat: float,
        max_lon: float
    ) -> List[P]:
        """
        Points inside the box (edges inclusive). Unordered.

        Covering cells come from geohash.get_geohashes_in_bounds, whose
        sample walk is fine enough at odd and even precisions alike, and
        candidates are filtered by containment. Boxes too large to
        enumerate at this precision are answered by a full scan over every
        indexed point instead of raising.
        """
        start_time = time.perf_counter()
        metrics.queries_total.labels(query="bounds").inc()

        def inside(point: P) -> bool:
            return min_lat <= point.latitude <= max_lat and min_lon <= point.longitude <= max_lon

        try:
            cells = geohash.get_geohashes_in_bounds(
                min_lat, min_lon, max_lat, max_lon, self._precision
            )
        except BoundingBoxTooLarge as e:
            metrics.bounds_fallback_total.inc()
            logger.warning("%s; falling back to a full scan", e)
            results = [point for point in self._buckets.all_points() if inside(point)]
        else:
            results = [
                point
                for cell in cells
                for point in self._buckets.get(cell)
                if inside(point)
            ]

        metrics.query_duration_seconds.labels(query="bounds").observe(time.perf_counter() - start_time)
        return results

    def find_k_nearest(self, latitude: float, longitude: float, k: int) -> List[P]:
        """
        Up to k points closest to the coordinate, nearest first.

        Grows the search radius from 0.5 km, doubling until at least k
        candidates turn up or the radius passes 50 km. May return fewer
        than k points, and with a small precision the neighborhood limit
        of find_nearby still applies.
        """
        if k <= 0:
            return []

        start_time = time.perf_counter()
        metrics.queries_total.labels(query="k_nearest").inc()

        radius = KNN_START_RADIUS_KM
        while True:
            results = self.find_nearby(latitude, longitude, radius)
            if len(results) >= k or radius > KNN_MAX_RADIUS_KM:
                break
            radius *= KNN_RADIUS_GROWTH

        results.sort(key=lambda p: distance_km(latitude, longitude, p.latitude, p.longitude))

        metrics.query_duration_seconds.labels(query="k_nearest").observe(time.perf_counter() - start_time)
        return results[:k]

    def rebuild(self, points: Iterable[P], precision: Optional[int] = None) -> int:
        """
        Clear and re-index from scratch, optionally at a new precision.

        Returns:
            Number of points indexed
        """
        if precision is not None:
            self._precision = self._check_precision(precision)
        self.clear()
        count = self.index_all(points)
        logger.info("Rebuilt spatial index: %d points at precision %d", count, self._precision)
        return count

    def clear(self) -> None:
        self._buckets.clear()

    def cells(self) -> List[str]:
        """Snapshot of the non-empty cell keys."""
        return self._buckets.cells()

    def __len__(self) -> int:
        return self._buckets.counts()[1]

    def get_stats(self) -> IndexStats:
        total_cells, total_points = self._buckets.counts()
        avg = total_points / total_cells if total_cells > 0 else 0.0
        return IndexStats(total_cells, total_points, avg, self._precision)
