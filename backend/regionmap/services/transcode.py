"""Conversion between canonical geometries and GeoJSON coordinate arrays.

Canonical geometries are shapely MultiPolygons. On the wire they become
GeoJSON Polygon or MultiPolygon objects with every ring kept, exterior and
holes alike.

The read path can simplify a stored geometry again for reduced-payload map
rendering. That path never raises. A stored geometry it cannot interpret is
returned unchanged, so one corrupt record cannot break a listing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from shapely import errors as shapely_errors
from shapely import geometry as shapely_geometry
from shapely.geometry import base as shapely_base

from regionmap.services import geometry

if TYPE_CHECKING:
    from regionmap.core import config

logger = logging.getLogger(__name__)


def _ring_coords(ring: Any) -> list[list[float]]:
    return [[x, y] for x, y, *_ in ring.coords]


def _polygon_coords(polygon: shapely_geometry.Polygon) -> list[Any]:
    return [_ring_coords(polygon.exterior)] + [
        _ring_coords(interior) for interior in polygon.interiors
    ]


def to_wire(geom: shapely_base.BaseGeometry) -> dict[str, Any]:
    """Render a polygonal geometry as a GeoJSON geometry object.

    A single polygon is emitted as a Polygon, anything else as a
    MultiPolygon. Polygon members of a GeometryCollection are flattened
    into the MultiPolygon.

    Args:
        geom: Polygon, MultiPolygon or GeometryCollection.

    Returns:
        Dictionary with "type" and "coordinates".
    """
    polygons = list(geometry.iter_polygons(geom))
    if len(polygons) == 1:
        return {"type": "Polygon", "coordinates": _polygon_coords(polygons[0])}
    return {
        "type": "MultiPolygon",
        "coordinates": [_polygon_coords(p) for p in polygons],
    }


def from_wire(
    node: Any,
    options: config.IngestOptions | None = None,
) -> shapely_geometry.MultiPolygon:
    """Parse, repair and simplify a GeoJSON node into a MultiPolygon."""
    return geometry.ingest_geometry(node, options).geometry


def _polygon_from_rings(rings: list[Any]) -> shapely_geometry.Polygon:
    shell, *holes = rings
    return shapely_geometry.Polygon(
        [geometry.parse_position(raw) for raw in shell],
        [[geometry.parse_position(raw) for raw in hole] for hole in holes],
    )


def simplify_for_display(stored: Any, tolerance: float) -> Any:
    """Simplify a stored geometry for rendering without touching the record.

    Args:
        stored: A GeoJSON Polygon/MultiPolygon object or a shapely geometry.
        tolerance: Douglas-Peucker tolerance chosen by the caller.

    Returns:
        The simplified geometry in the same representation as the input, or
        the input itself when it cannot be interpreted.
    """
    if isinstance(stored, shapely_base.BaseGeometry):
        try:
            return geometry.simplify_geometry(stored, tolerance)
        except shapely_errors.ShapelyError as exc:
            logger.warning("Returning geometry unsimplified: %s", exc)
            return stored

    if not isinstance(stored, dict):
        return stored
    try:
        entries = geometry.polygon_entries(stored)
        polygons = [_polygon_from_rings(rings) for rings in entries]
        if not polygons:
            return stored
        simplified = geometry.simplify_geometry(
            shapely_geometry.MultiPolygon(polygons), tolerance
        )
    except (
        geometry.IngestError,
        shapely_errors.ShapelyError,
        TypeError,
        ValueError,
    ) as exc:
        logger.warning("Returning geometry unsimplified: %s", exc)
        return stored
    return to_wire(simplified)
