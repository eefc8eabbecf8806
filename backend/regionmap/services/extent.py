"""Bounding box and coarse centroid of a raw GeoJSON boundary.

Both values are computed from the wire coordinates as received, before any
repair or simplification, so they describe the input extent independently
of how repair reshapes the boundary.

The centroid is the arithmetic mean of the exterior-ring vertices of every
polygon, counting the closing vertex. It is a cheap map marker, not an
area-weighted centre.

Example:
    >>> from regionmap.services import extent
    >>> square = {
    ...     "type": "Polygon",
    ...     "coordinates": [[[77.1, 12.1], [77.2, 12.1], [77.2, 12.2],
    ...                      [77.1, 12.2], [77.1, 12.1]]],
    ... }
    >>> extent.compute_bbox_centroid(square).bbox
    (77.1, 12.1, 77.2, 12.2)
"""

from __future__ import annotations

from typing import Any, NamedTuple

from regionmap.db import models as db_models
from regionmap.services import geometry


class Extent(NamedTuple):
    bbox: db_models.BBox | None
    centroid: db_models.Centroid | None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def compute_bbox(node: dict[str, Any]) -> db_models.BBox | None:
    """Return (minLon, minLat, maxLon, maxLat) over every ring, holes included.

    Returns:
        The bounding box, or None when the geometry has no coordinates.
    """
    lons: list[float] = []
    lats: list[float] = []
    for entry in geometry.polygon_entries(node):
        for ring in _as_list(entry):
            for raw in _as_list(ring):
                lon, lat = geometry.parse_position(raw)
                lons.append(lon)
                lats.append(lat)

    if not lons:
        return None
    return min(lons), min(lats), max(lons), max(lats)


def compute_centroid(node: dict[str, Any]) -> db_models.Centroid | None:
    """Return the mean (lon, lat) of all exterior-ring vertices.

    Returns:
        The vertex average, or None when there are no exterior vertices.
    """
    sum_lon = 0.0
    sum_lat = 0.0
    count = 0
    for entry in geometry.polygon_entries(node):
        rings = _as_list(entry)
        if not rings:
            continue
        for raw in _as_list(rings[0]):
            lon, lat = geometry.parse_position(raw)
            sum_lon += lon
            sum_lat += lat
            count += 1

    if count == 0:
        return None
    return sum_lon / count, sum_lat / count


def compute_bbox_centroid(node: dict[str, Any]) -> Extent:
    """Compute bbox and centroid of a Polygon/MultiPolygon node.

    Args:
        node: GeoJSON geometry object as received on the wire.

    Returns:
        Extent whose fields are None only for a geometry without coordinates.

    Raises:
        UnsupportedGeometryType: For non-polygonal geometry types.
        MalformedGeometry: If a coordinate cannot be read.
    """
    return Extent(compute_bbox(node), compute_centroid(node))


def extend_bbox(
    bbox: db_models.BBox | None,
    bounds: tuple[float, float, float, float],
) -> db_models.BBox:
    """Grow a bbox so it also covers the given (minx, miny, maxx, maxy).

    Used when the stored boundary can leave the raw input extent, as when
    vertices are snapped onto a precision grid.
    """
    if bbox is None:
        return bounds
    return (
        min(bbox[0], bounds[0]),
        min(bbox[1], bounds[1]),
        max(bbox[2], bounds[2]),
        max(bbox[3], bounds[3]),
    )
