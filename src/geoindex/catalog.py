"""
Place catalog: owns the point dataset and both spatial structures built over it.

The SpatialIndex is thread-safe on its own; the QuadTree is not, so every
tree access here goes through one lock. The id registry shares that lock.
"""
import logging
import threading
from typing import Dict, Iterable, List, Optional

from src.geoindex import metrics
from src.geoindex.geometry import GeoBounds
from src.geoindex.models import Place
from src.geoindex.quadtree import QuadTree
from src.geoindex.spatial_index import DEFAULT_PRECISION, IndexStats, SpatialIndex

logger = logging.getLogger(__name__)


class PlaceCatalog:
    def __init__(self, precision: int = DEFAULT_PRECISION, tree_bounds: Optional[GeoBounds] = None):
        self.index: SpatialIndex[Place] = SpatialIndex(precision)
        self.tree_bounds = tree_bounds or GeoBounds(-90.0, -180.0, 90.0, 180.0)
        self._tree: QuadTree[Place] = QuadTree(self.tree_bounds)
        self._places: Dict[str, Place] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._places)

    def get(self, place_id: str) -> Optional[Place]:
        with self._lock:
            return self._places.get(place_id)

    def upsert(self, place: Place) -> bool:
        """
        Store a place, replacing any earlier version with the same id.

        Returns:
            True if the place landed in the spatial index, False if its
            coordinates were skipped (invalid or the (0, 0) sentinel)
        """
        return self.upsert_all([place]) == 1

    def upsert_all(self, places: Iterable[Place]) -> int:
        """
        Store every place, replacing earlier versions by id.

        New places go straight into the quad-tree. If any existing place
        changed, the tree is rebuilt once from the registry after the
        whole batch, since it has no removal.

        Returns:
            How many places were indexed
        """
        indexed = 0
        with self._lock:
            added: List[Place] = []
            stale = False
            for place in places:
                previous = self._places.get(place.place_id)
                if previous is not None:
                    self.index.remove(previous)
                self._places[place.place_id] = place
                if self.index.index(place):
                    indexed += 1

                if previous is None:
                    added.append(place)
                elif previous != place:
                    stale = True

            if stale:
                self._rebuild_tree()
            else:
                for place in added:
                    self._tree.insert(place)

        metrics.indexed_cells.set(self.index.get_stats().total_cells)
        return indexed

    def delete(self, place_id: str) -> Optional[Place]:
        """Remove a place by id; returns the removed place or None if unknown."""
        with self._lock:
            place = self._places.pop(place_id, None)
            if place is None:
                return None
            self.index.remove(place)
            self._rebuild_tree()

        metrics.indexed_cells.set(self.index.get_stats().total_cells)
        return place

    def _rebuild_tree(self) -> None:
        # QuadTree has no removal; rebuild it from the registry
        self._tree.clear()
        for place in self._places.values():
            self._tree.insert(place)

    def nearby(self, latitude: float, longitude: float, radius_km: float) -> List[Place]:
        return self.index.find_nearby(latitude, longitude, radius_km)

    def nearest(self, latitude: float, longitude: float, k: int) -> List[Place]:
        return self.index.find_k_nearest(latitude, longitude, k)

    def in_bounds(self, min_lat: float, min_lon: float, max_lat: float, max_lon: float) -> List[Place]:
        return self.index.find_in_bounds(min_lat, min_lon, max_lat, max_lon)

    def in_viewport(self, viewport: GeoBounds) -> List[Place]:
        """Places inside a map viewport, answered by the quad-tree."""
        with self._lock:
            return self._tree.query(viewport)

    def rebuild(self, precision: Optional[int] = None) -> int:
        """Rebuild both structures from the registry, optionally at a new index precision."""
        with self._lock:
            places = list(self._places.values())
            count = self.index.rebuild(places, precision=precision)
            self._rebuild_tree()

        metrics.indexed_cells.set(self.index.get_stats().total_cells)
        return count

    def clear(self) -> None:
        with self._lock:
            self._places.clear()
            self.index.clear()
            self._tree.clear()
        metrics.indexed_cells.set(0)
        logger.info("Cleared place catalog")

    def tree_size(self) -> int:
        with self._lock:
            return self._tree.size()

    def stats(self) -> IndexStats:
        return self.index.get_stats()
