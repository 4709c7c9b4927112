"""
Prometheus metrics for the spatial index and the query API.
"""
from prometheus_client import Counter, Histogram, Gauge

# Ingestion metrics
points_indexed_total = Counter(
    'geoindex_points_indexed_total',
    'Total number of points added to a spatial index'
)

points_skipped_total = Counter(
    'geoindex_points_skipped_total',
    'Points ignored by the spatial index instead of being indexed',
    ['reason']
)

points_removed_total = Counter(
    'geoindex_points_removed_total',
    'Total number of points removed from a spatial index'
)

quadtree_dropped_total = Counter(
    'geoindex_quadtree_dropped_total',
    'Points the quad-tree could not place (outside root bounds or on no child)'
)

# Query metrics
queries_total = Counter(
    'geoindex_queries_total',
    'Total number of spatial queries',
    ['query']
)

query_duration_seconds = Histogram(
    'geoindex_query_duration_seconds',
    'Spatial query latency in seconds',
    ['query']
)

bounds_fallback_total = Counter(
    'geoindex_bounds_fallback_total',
    'Bounds queries answered by a full scan because the box spanned too many cells'
)

# Index shape
indexed_cells = Gauge(
    'geoindex_cells',
    'Number of non-empty geohash cells in the place catalog index'
)

# API metrics
requests_total = Counter(
    'geoindex_requests_total',
    'Total number of API requests',
    ['endpoint', 'status']
)
