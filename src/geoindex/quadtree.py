"""
Adaptive quad-tree over a fixed lat/lon region.

Stores points directly (no hashing). A node holds up to MAX_CAPACITY
points; the next insert splits it into four quadrants at its center and
pushes every held point down into the first quadrant containing it, in
NE -> NW -> SW -> SE order. Points on a split line therefore land in the
earliest matching quadrant. Nodes at MAX_DEPTH never split.

Not thread-safe: callers sharing a tree across threads must serialize
every call (see PlaceCatalog).
"""
import logging
from typing import Generic, List, Optional, TypeVar

from src.geoindex import metrics
from src.geoindex.geometry import GeoBounds, IndexablePoint

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=IndexablePoint)


class QuadTree(Generic[P]):
    MAX_CAPACITY = 10
    MAX_DEPTH = 8

    # Mutation and queries must be confined to one thread or externally locked
    thread_safe = False

    def __init__(
        self,
        bounds: GeoBounds,
        depth: int = 0,
        max_capacity: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> None:
        self.bounds = bounds
        self.depth = depth
        self.max_capacity = max_capacity if max_capacity is not None else self.MAX_CAPACITY
        self.max_depth = max_depth if max_depth is not None else self.MAX_DEPTH
        self.points: List[P] = []
        self.children: Optional[List["QuadTree[P]"]] = None

    @property
    def divided(self) -> bool:
        return self.children is not None

    def insert(self, point: P) -> bool:
        """
        Add a point to the tree.

        Points outside the root bounds are dropped, not rejected with an
        error.

        Returns:
            True if the point was stored, False if it was dropped
        """
        if self._insert(point):
            return True

        metrics.quadtree_dropped_total.inc()
        logger.debug(
            "Dropped point (%s, %s) outside %s",
            point.latitude, point.longitude, self.bounds
        )
        return False

    def _insert(self, point: P) -> bool:
        if not self.bounds.contains_point(point):
            return False

        if self.children is None:
            if len(self.points) < self.max_capacity or self.depth >= self.max_depth:
                self.points.append(point)
                return True
            self._subdivide()

        child = self._child_for(point)
        if child is None:
            return False
        return child._insert(point)

    def _child_for(self, point: P) -> Optional["QuadTree[P]"]:
        for child in self.children or []:
            if child.bounds.contains_point(point):
                return child
        return None

    def _subdivide(self) -> None:
        b = self.bounds
        center = b.center()
        mid_lat, mid_lon = center.latitude, center.longitude

        def make(min_lat, min_lon, max_lat, max_lon):
            return QuadTree(
                GeoBounds(min_lat, min_lon, max_lat, max_lon),
                depth=self.depth + 1,
                max_capacity=self.max_capacity,
                max_depth=self.max_depth,
            )

        self.children = [
            make(mid_lat, mid_lon, b.max_lat, b.max_lon),  # NE
            make(mid_lat, b.min_lon, b.max_lat, mid_lon),  # NW
            make(b.min_lat, b.min_lon, mid_lat, mid_lon),  # SW
            make(b.min_lat, mid_lon, mid_lat, b.max_lon),  # SE
        ]

        held = self.points
        self.points = []
        for point in held:
            child = self._child_for(point)
            if child is None or not child._insert(point):
                # Children partition the parent exactly, so this only
                # happens on floating-point edge cases
                self.points.append(point)

    def query(self, range_bounds: GeoBounds) -> List[P]:
        """
        All points inside `range_bounds` (edges inclusive), in no particular order.
        """
        found: List[P] = []
        self._query(range_bounds, found)
        return found

    def _query(self, range_bounds: GeoBounds, found: List[P]) -> None:
        if not self.bounds.intersects(range_bounds):
            return

        for point in self.points:
            if range_bounds.contains_point(point):
                found.append(point)

        for child in self.children or []:
            child._query(range_bounds, found)

    def size(self) -> int:
        """Total number of points in this subtree."""
        return len(self.points) + sum(child.size() for child in self.children or [])

    def __len__(self) -> int:
        return self.size()

    def max_depth_in_use(self) -> int:
        """Deepest level that currently exists below (and including) this node."""
        if self.children is None:
            return self.depth
        return max(child.max_depth_in_use() for child in self.children)

    def clear(self) -> None:
        """Drop all points and children, back to an empty leaf."""
        self.points = []
        self.children = None
