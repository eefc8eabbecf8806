"""Boundary ingestion, containment and hierarchy services.

Submodules:
    - geometry: ring building, polygon repair and simplification.
    - extent: bounding box and vertex-average centroid of raw input.
    - transcode: canonical geometry to GeoJSON and display simplification.
    - containment: point-in-region queries ordered by size.
    - hierarchy: tier-by-tier resolution with ancestor climbing.
    - importer: batch import of GeoJSON features with per-feature isolation.
    - grievances: grievance intake tagged with the resolved hierarchy.
"""
