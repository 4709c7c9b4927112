"""
Geo Index API
FastAPI application exposing geohash-based proximity queries over a place catalog.
"""
import logging
import math
import time
from typing import List, Optional

from fastapi import FastAPI, Response, HTTPException
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from src.geoindex import config
from src.geoindex import geohash
from src.geoindex import metrics
from src.geoindex.catalog import PlaceCatalog
from src.geoindex.errors import GeoIndexError
from src.geoindex.geo_utils import distance_km
from src.geoindex.geometry import GeoBounds
from src.geoindex.models import Place, BatchPlaceRequest, PlaceResult
from src.geoindex.spatial_index import MIN_PRECISION, MAX_PRECISION

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_catalog = PlaceCatalog(precision=config.PRECISION, tree_bounds=config.QUADTREE_BOUNDS)


def get_catalog() -> PlaceCatalog:
    return _catalog


def bad_request(endpoint: str, error: Exception) -> HTTPException:
    """Record a rejected request and build the 400 response for it."""
    metrics.requests_total.labels(endpoint=endpoint, status="bad_request").inc()
    return HTTPException(status_code=400, detail=str(error))


def check_finite(endpoint: str, **values: float) -> None:
    """Reject NaN and infinite query values, which FastAPI parses as floats."""
    for name, value in values.items():
        if not math.isfinite(value):
            raise bad_request(endpoint, ValueError(f"{name} must be a finite number, got {value}"))


def with_distances(places: List[Place], lat: float, lon: float) -> List[dict]:
    return [
        PlaceResult(
            place=place,
            distance_km=round(distance_km(lat, lon, place.latitude, place.longitude), 4)
        ).model_dump()
        for place in places
    ]


# Initialize FastAPI application
app = FastAPI(
    title="Geo Index",
    description="Proximity and bounding-box queries over points of interest using geohash cells",
    version="1.0.0"
)


@app.get("/metrics")
def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns:
        Response: Prometheus-formatted metrics
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
        dict: API status and index size
    """
    catalog = get_catalog()
    stats = catalog.stats()
    return {
        "status": "healthy",
        "places": len(catalog),
        "indexed_points": stats.total_points,
        "precision": stats.precision,
    }


@app.post("/v1/places")
def create_place(place: Place):
    """
    Add or replace a place.

    Places at invalid coordinates or at (0, 0) are stored but not
    indexed, so proximity queries never return them.

    Returns:
        dict: The place id, its geohash cell (None if skipped) and whether it was indexed
    """
    catalog = get_catalog()
    indexed = catalog.upsert(place)

    cell_id = catalog.index.cell_for(place.latitude, place.longitude) if indexed else None
    metrics.requests_total.labels(endpoint="create_place", status="success").inc()

    return {
        "message": "Place stored",
        "place_id": place.place_id,
        "cell_id": cell_id,
        "indexed": indexed,
    }


@app.post("/v1/places/batch")
def create_places_batch(batch: BatchPlaceRequest):
    """
    Add or replace up to 1000 places in one request.

    Returns:
        dict: Counts of stored and indexed places plus processing time
    """
    start_time = time.time()
    catalog = get_catalog()

    indexed = catalog.upsert_all(batch.places)

    metrics.requests_total.labels(endpoint="create_places_batch", status="success").inc()

    return {
        "message": "Batch processed",
        "total_places": len(batch.places),
        "indexed": indexed,
        "skipped": len(batch.places) - indexed,
        "processing_time_ms": round((time.time() - start_time) * 1000, 2)
    }


@app.delete("/v1/places/{place_id}")
def delete_place(place_id: str):
    """
    Remove a place by id.

    Raises:
        HTTPException 404: If no place has this id
    """
    removed = get_catalog().delete(place_id)
    if removed is None:
        metrics.requests_total.labels(endpoint="delete_place", status="not_found").inc()
        raise HTTPException(status_code=404, detail=f"Unknown place: {place_id}")

    metrics.requests_total.labels(endpoint="delete_place", status="success").inc()
    return {"message": "Place removed", "place_id": place_id}


@app.get("/v1/nearby")
def nearby(lat: float, lon: float, radius_km: float = 1.0):
    """
    Places within radius_km of a coordinate, nearest first.

    Only the geohash cell of the coordinate and its 8 neighbors are
    searched, so the radius should not exceed one cell width at the
    configured precision.

    Args:
        lat: Latitude of the center
        lon: Longitude of the center
        radius_km: Search radius in kilometers

    Returns:
        dict: Matching places with their distance from the center
    """
    if radius_km < 0:
        raise bad_request("nearby", ValueError("radius_km must not be negative"))

    places = get_catalog().nearby(lat, lon, radius_km)
    places.sort(key=lambda p: distance_km(lat, lon, p.latitude, p.longitude))

    metrics.requests_total.labels(endpoint="nearby", status="success").inc()

    return {
        "center": {"lat": lat, "lon": lon},
        "radius_km": radius_km,
        "count": len(places),
        "places": with_distances(places, lat, lon),
    }


@app.get("/v1/nearest")
def nearest(lat: float, lon: float, k: int = 5):
    """
    The k places closest to a coordinate, nearest first.

    The search grows from 0.5 km up to 50 km, so fewer than k places
    come back when the catalog is sparse around the coordinate.
    """
    if k < 1:
        raise bad_request("nearest", ValueError("k must be at least 1"))

    places = get_catalog().nearest(lat, lon, k)
    metrics.requests_total.labels(endpoint="nearest", status="success").inc()

    return {
        "center": {"lat": lat, "lon": lon},
        "k": k,
        "count": len(places),
        "places": with_distances(places, lat, lon),
    }


@app.get("/v1/bounds")
def in_bounds(min_lat: float, min_lon: float, max_lat: float, max_lon: float):
    """
    Places inside a bounding box, via the geohash cells covering it.

    Boxes too large to enumerate fall back to a full scan.

    Raises:
        HTTPException 400: If any edge is NaN or infinite
    """
    check_finite("bounds", min_lat=min_lat, min_lon=min_lon, max_lat=max_lat, max_lon=max_lon)

    places = get_catalog().in_bounds(min_lat, min_lon, max_lat, max_lon)
    metrics.requests_total.labels(endpoint="bounds", status="success").inc()

    return {"count": len(places), "places": [p.model_dump() for p in places]}


@app.get("/v1/viewport")
def in_viewport(min_lat: float, min_lon: float, max_lat: float, max_lon: float):
    """
    Places inside a map viewport, via the quad-tree.
    """
    check_finite("viewport", min_lat=min_lat, min_lon=min_lon, max_lat=max_lat, max_lon=max_lon)

    viewport = GeoBounds(min_lat, min_lon, max_lat, max_lon)
    places = get_catalog().in_viewport(viewport)
    metrics.requests_total.labels(endpoint="viewport", status="success").inc()

    return {"count": len(places), "places": [p.model_dump() for p in places]}


@app.get("/v1/geohash")
def encode_geohash(lat: float, lon: float, precision: int = geohash.DEFAULT_PRECISION):
    """
    Geohash of a coordinate, with the cell's bounds and its 8 neighbors.

    Raises:
        HTTPException 400: On out-of-range coordinates or precision
    """
    if not MIN_PRECISION <= precision <= MAX_PRECISION:
        raise bad_request(
            "geohash",
            ValueError(f"Precision must be in [{MIN_PRECISION}, {MAX_PRECISION}], got {precision}")
        )

    # InvalidCoordinate is a ValueError
    try:
        cell_id = geohash.encode(lat, lon, precision)
    except ValueError as e:
        raise bad_request("geohash", e)

    bounds = geohash.decode(cell_id)
    metrics.requests_total.labels(endpoint="geohash", status="success").inc()

    return {
        "cell_id": cell_id,
        "precision": precision,
        "bounds": _bounds_dict(bounds),
        "neighbors": geohash.get_neighbors(cell_id)[1:],
    }


@app.get("/v1/geohash/{cell_id}")
def decode_geohash(cell_id: str):
    """
    Bounds and center of a geohash cell.

    Raises:
        HTTPException 400: On a malformed geohash
    """
    try:
        bounds = geohash.decode(cell_id)
    except GeoIndexError as e:
        raise bad_request("geohash_decode", e)

    center = bounds.center()
    metrics.requests_total.labels(endpoint="geohash_decode", status="success").inc()

    return {
        "cell_id": cell_id,
        "bounds": _bounds_dict(bounds),
        "center": {"lat": center.latitude, "lon": center.longitude},
    }


@app.post("/v1/index/rebuild")
def rebuild_index(precision: Optional[int] = None):
    """
    Rebuild the index from every stored place, optionally at a new precision.

    Raises:
        HTTPException 400: If precision is outside [1, 12]
    """
    try:
        count = get_catalog().rebuild(precision=precision)
    except ValueError as e:
        raise bad_request("rebuild", e)

    stats = get_catalog().stats()
    metrics.requests_total.labels(endpoint="rebuild", status="success").inc()

    return {"message": "Index rebuilt", "indexed": count, "precision": stats.precision}


@app.get("/v1/stats")
def index_stats():
    """
    Shape of the spatial index.

    Returns:
        dict: Cell count, point count, average points per cell and precision
    """
    catalog = get_catalog()
    stats = catalog.stats()

    return {
        "total_cells": stats.total_cells,
        "total_points": stats.total_points,
        "avg_points_per_cell": round(stats.avg_points_per_cell, 2),
        "precision": stats.precision,
        "quadtree_points": catalog.tree_size(),
    }


def _bounds_dict(bounds: GeoBounds) -> dict:
    return {
        "min_lat": bounds.min_lat,
        "min_lon": bounds.min_lon,
        "max_lat": bounds.max_lat,
        "max_lon": bounds.max_lon,
    }
