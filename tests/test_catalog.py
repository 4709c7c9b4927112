"""
Unit tests for the place catalog that owns the index and the quad-tree.
"""
import threading
from unittest.mock import patch

import pytest
from src.geoindex.catalog import PlaceCatalog
from src.geoindex.geometry import GeoBounds
from src.geoindex.models import Place

COLOSSEUM = Place(place_id="colosseum", name="Colosseo", latitude=41.8902, longitude=12.4922)
PANTHEON = Place(place_id="pantheon", name="Pantheon", latitude=41.8986, longitude=12.4769)
TREVI = Place(place_id="trevi", name="Fontana di Trevi", latitude=41.9009, longitude=12.4833)


@pytest.fixture
def catalog():
    """Fresh catalog with three landmarks in central Rome."""
    c = PlaceCatalog(precision=6)
    c.upsert_all([COLOSSEUM, PANTHEON, TREVI])
    return c


@pytest.mark.unit
class TestUpsert:
    """Test suite for adding and replacing places."""

    def test_upsert_indexes_both_structures(self, catalog):
        assert len(catalog) == 3
        assert catalog.stats().total_points == 3
        assert catalog.tree_size() == 3

    def test_upsert_same_place_is_idempotent(self, catalog):
        catalog.upsert(PANTHEON)

        assert len(catalog) == 3
        assert catalog.stats().total_points == 3
        assert catalog.tree_size() == 3

    def test_upsert_moves_place(self, catalog):
        """Test that re-upserting an id with new coordinates relocates it."""
        moved = Place(place_id="pantheon", name="Pantheon", latitude=45.4642, longitude=9.1900)
        catalog.upsert(moved)

        assert catalog.get("pantheon") == moved
        assert PANTHEON not in catalog.nearby(41.8986, 12.4769, 0.5)
        assert catalog.nearby(45.4642, 9.1900, 0.1) == [moved]
        assert catalog.stats().total_points == 3
        assert catalog.tree_size() == 3

    def test_null_island_stored_but_not_indexed(self, catalog):
        missing = Place(place_id="unknown", latitude=0.0, longitude=0.0)

        assert catalog.upsert(missing) is False
        assert catalog.get("unknown") == missing
        assert catalog.stats().total_points == 3

    def test_batch_of_moves_rebuilds_tree_once(self, catalog):
        """Test that moving many places in one batch rebuilds the quad-tree a single time."""
        moved = [
            Place(place_id=p.place_id, name=p.name, latitude=p.latitude + 0.01, longitude=p.longitude)
            for p in (COLOSSEUM, PANTHEON, TREVI)
        ]

        with patch.object(catalog, "_rebuild_tree", wraps=catalog._rebuild_tree) as rebuild:
            assert catalog.upsert_all(moved) == 3

        assert rebuild.call_count == 1
        assert catalog.tree_size() == 3
        assert set(catalog.in_viewport(GeoBounds(41.8, 12.4, 42.0, 12.6))) == set(moved)

    def test_batch_of_new_places_skips_rebuild(self, catalog):
        fountain = Place(place_id="barcaccia", latitude=41.9057, longitude=12.4823)

        with patch.object(catalog, "_rebuild_tree", wraps=catalog._rebuild_tree) as rebuild:
            catalog.upsert_all([fountain])

        assert rebuild.call_count == 0
        assert catalog.tree_size() == 4

    def test_same_id_twice_in_batch_keeps_last(self):
        c = PlaceCatalog()
        first = Place(place_id="stop", latitude=41.90, longitude=12.50)
        second = Place(place_id="stop", latitude=41.91, longitude=12.51)

        assert c.upsert_all([first, second]) == 2

        assert c.get("stop") == second
        assert c.stats().total_points == 1
        assert c.tree_size() == 1

    def test_upsert_all_counts_indexed(self):
        c = PlaceCatalog()
        places = [COLOSSEUM, Place(place_id="bad", latitude=120.0, longitude=0.0)]
        assert c.upsert_all(places) == 1


@pytest.mark.unit
class TestDelete:
    """Test suite for removing places."""

    def test_delete_known(self, catalog):
        assert catalog.delete("trevi") == TREVI

        assert catalog.get("trevi") is None
        assert TREVI not in catalog.nearby(41.9009, 12.4833, 1.0)
        assert TREVI not in catalog.in_viewport(GeoBounds(41.8, 12.4, 42.0, 12.6))
        assert catalog.tree_size() == 2

    def test_delete_unknown(self, catalog):
        assert catalog.delete("nope") is None
        assert len(catalog) == 3


@pytest.mark.unit
class TestQueries:
    """Test suite for catalog query pass-through."""

    def test_nearby(self, catalog):
        found = catalog.nearby(41.8995, 12.4800, 0.5)
        assert set(found) == {PANTHEON, TREVI}

    def test_nearest(self, catalog):
        assert catalog.nearest(41.8903, 12.4920, 1) == [COLOSSEUM]

    def test_in_bounds(self, catalog):
        found = catalog.in_bounds(41.895, 12.47, 41.905, 12.49)
        assert set(found) == {PANTHEON, TREVI}

    def test_in_viewport_matches_in_bounds(self, catalog):
        viewport = GeoBounds(41.895, 12.47, 41.905, 12.49)
        assert set(catalog.in_viewport(viewport)) == set(catalog.in_bounds(41.895, 12.47, 41.905, 12.49))

    def test_viewport_respects_tree_bounds(self):
        c = PlaceCatalog(tree_bounds=GeoBounds(41.0, 12.0, 42.0, 13.0))
        milan = Place(place_id="duomo", latitude=45.4642, longitude=9.1900)
        c.upsert_all([COLOSSEUM, milan])

        assert c.tree_size() == 1
        # The geohash index has no root region
        assert c.stats().total_points == 2


@pytest.mark.unit
class TestRebuildAndClear:
    """Test suite for rebuild and clear."""

    def test_rebuild_with_new_precision(self, catalog):
        assert catalog.rebuild(precision=7) == 3

        assert catalog.stats().precision == 7
        assert catalog.tree_size() == 3

    def test_clear(self, catalog):
        catalog.clear()

        assert len(catalog) == 0
        assert catalog.stats().total_points == 0
        assert catalog.tree_size() == 0

    def test_concurrent_upserts(self):
        c = PlaceCatalog()

        def load(offset):
            for i in range(200):
                c.upsert(Place(place_id=f"p{offset}-{i}", latitude=41.88 + i * 0.0001, longitude=12.47 + offset * 0.001))

        threads = [threading.Thread(target=load, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(c) == 800
        assert c.stats().total_points == 800
        assert c.tree_size() == 800
