"""Backend package for administrative-boundary ingestion and lookup.

This package turns administrative-boundary polygons (states, districts,
parliamentary and assembly constituencies, wards) delivered as GeoJSON into
repaired, simplified canonical geometries, persists them as region records,
and resolves an arbitrary longitude/latitude to the smallest enclosing region
at each administrative tier.

- Repairs self-intersecting rings with a zero-distance buffer
- Simplifies boundaries with Douglas-Peucker under a configurable tolerance
- Orders overlapping matches by approximate bounding-box area
- Climbs parent references to fill in coarser tiers for a ward match
- Region records live in PostGIS in production and in memory for tests

See module sub-docstrings for details on each stage of the pipeline.
"""
