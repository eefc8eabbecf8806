"""Boundary geometry ingestion: ring building, repair and simplification.

This module turns the coordinate arrays of a GeoJSON Polygon or
MultiPolygon into a canonical shapely MultiPolygon. Every polygon entry goes
through the same steps:

1. Each ring is deduplicated and closed; rings shorter than four points are
   rejected (a short hole is dropped, a short exterior fails the entry).
2. The polygon is validated and, when invalid, repaired with a
   zero-distance buffer. The repair may split it into several polygons.
3. Each ring is simplified with Douglas-Peucker.
4. The result is validated again and repaired at most once more. Output that
   is still invalid is accepted and logged; only an empty result fails.

Entry failures are collected rather than raised, so one broken polygon of a
MultiPolygon does not discard its siblings. The feature fails only when no
entry survives.

Example:
    Ingest a GeoJSON geometry node:
        >>> from regionmap.core import config
        >>> from regionmap.services import geometry
        >>> node = {
        ...     "type": "Polygon",
        ...     "coordinates": [[[77.1, 12.1], [77.2, 12.1], [77.2, 12.2],
        ...                      [77.1, 12.2]]],
        ... }
        >>> ingested = geometry.ingest_geometry(node, config.IngestOptions())
        >>> ingested.geometry.geom_type
        'MultiPolygon'
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, NamedTuple

import shapely
from shapely import errors as shapely_errors
from shapely import geometry as shapely_geometry

from regionmap.core import config

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from shapely.geometry import base as shapely_base

logger = logging.getLogger(__name__)

Position = tuple[float, float]

MIN_RING_POINTS = 4

_GEOMETRY_TYPES = {"polygon": "Polygon", "multipolygon": "MultiPolygon"}


class IngestError(ValueError):
    """Base class for geometries that cannot be ingested."""


class MalformedGeometry(IngestError):
    """The geometry node or one of its coordinates is not well formed."""


class UnsupportedGeometryType(IngestError):
    """The geometry is neither a Polygon nor a MultiPolygon."""


class RingTooShort(IngestError):
    """A ring has fewer than four points once deduplicated and closed."""


class NoValidPolygon(IngestError):
    """Repair produced nothing usable.

    Attributes:
        causes: Per-entry errors that led to this failure, if any.
    """

    def __init__(
        self,
        message: str,
        causes: Sequence[IngestError] = (),
    ) -> None:
        super().__init__(message)
        self.causes = list(causes)


class IngestedGeometry(NamedTuple):
    geometry: shapely_geometry.MultiPolygon
    skipped: list[IngestError]
    is_valid: bool


def normalize_geometry_type(node: Any) -> str:
    """Return the canonical GeoJSON type name of a polygonal node.

    Raises:
        MalformedGeometry: If node is not a mapping.
        UnsupportedGeometryType: For any type other than Polygon or
            MultiPolygon (matched case-insensitively).
    """
    if not isinstance(node, dict):
        raise MalformedGeometry("Geometry must be a JSON object")
    raw_type = node.get("type")
    geom_type = _GEOMETRY_TYPES.get(str(raw_type).lower())
    if geom_type is None:
        raise UnsupportedGeometryType(f"Unsupported geometry type: {raw_type}")
    return geom_type


def polygon_entries(node: dict[str, Any]) -> list[Any]:
    """Return the per-polygon ring arrays of a Polygon/MultiPolygon node."""
    geom_type = normalize_geometry_type(node)
    coordinates = node.get("coordinates")
    if not isinstance(coordinates, list):
        raise MalformedGeometry("Geometry has no coordinate array")
    if geom_type == "Polygon":
        return [coordinates]
    return coordinates


def parse_position(raw: Any) -> Position:
    """Read the (lon, lat) of a GeoJSON position, ignoring any altitude."""
    try:
        return float(raw[0]), float(raw[1])
    except (TypeError, ValueError, IndexError, KeyError) as exc:
        raise MalformedGeometry(f"Invalid coordinate: {raw!r}") from exc


def build_ring(raw_ring: Any) -> list[Position]:
    """Build a closed ring from a raw coordinate array.

    A point exactly equal to the previously kept point is dropped. The ring
    is closed by repeating its first point when needed.

    Args:
        raw_ring: Sequence of [lon, lat] positions.

    Returns:
        Closed list of (lon, lat) tuples with at least four points.

    Raises:
        RingTooShort: If fewer than four points remain after closing.
        MalformedGeometry: If a position cannot be read.
    """
    if not isinstance(raw_ring, list):
        raise MalformedGeometry("Ring must be a coordinate array")

    ring: list[Position] = []
    for raw in raw_ring:
        position = parse_position(raw)
        if ring and ring[-1] == position:
            continue
        ring.append(position)

    if ring and ring[0] != ring[-1]:
        ring.append(ring[0])

    if len(ring) < MIN_RING_POINTS:
        raise RingTooShort(
            f"Ring has {len(ring)} points after closing, "
            f"needs at least {MIN_RING_POINTS}"
        )
    return ring


def iter_polygons(
    geom: shapely_base.BaseGeometry,
) -> Iterable[shapely_geometry.Polygon]:
    """Yield the non-empty polygons of any geometry, flattening collections."""
    if geom.is_empty:
        return
    if isinstance(geom, shapely_geometry.Polygon):
        yield geom
    elif isinstance(
        geom,
        (shapely_geometry.MultiPolygon, shapely_geometry.GeometryCollection),
    ):
        for member in geom.geoms:
            yield from iter_polygons(member)


def _simplify_ring(
    coords: Sequence[Any],
    tolerance: float,
) -> list[Position] | None:
    """Douglas-Peucker simplify one closed ring, None if it degenerates."""
    line = shapely_geometry.LineString(coords)
    try:
        simplified = line.simplify(tolerance, preserve_topology=False)
    except shapely_errors.GEOSException:
        return None
    if simplified.is_empty:
        return None
    points = [(x, y) for x, y, *_ in simplified.coords]
    if len(points) < MIN_RING_POINTS or points[0] != points[-1]:
        return None
    return points


def _simplify_polygon(
    polygon: shapely_geometry.Polygon,
    tolerance: float,
) -> shapely_geometry.Polygon:
    shell = _simplify_ring(polygon.exterior.coords, tolerance)
    if shell is None:
        return polygon
    holes = [
        _simplify_ring(interior.coords, tolerance) or list(interior.coords)
        for interior in polygon.interiors
    ]
    return shapely_geometry.Polygon(shell, holes)


def simplify_geometry(
    geom: shapely_base.BaseGeometry,
    tolerance: float,
) -> shapely_base.BaseGeometry:
    """Apply Douglas-Peucker to every ring of every polygon.

    Rings keep their closure. A ring that collapses below four points keeps
    its original coordinates, and a geometry that would come out empty is
    returned unchanged.

    Args:
        geom: Polygon, MultiPolygon or a collection containing polygons.
        tolerance: Distance tolerance in the geometry's units.

    Returns:
        Simplified geometry of the same arity as the polygonal input.
    """
    if tolerance <= 0 or geom.is_empty:
        return geom
    if isinstance(geom, shapely_geometry.Polygon):
        return _simplify_polygon(geom, tolerance)

    polygons = [_simplify_polygon(p, tolerance) for p in iter_polygons(geom)]
    if not polygons:
        return geom
    return shapely_geometry.MultiPolygon(polygons)


def _repair(geom: shapely_base.BaseGeometry) -> shapely_base.BaseGeometry:
    repaired = geom.buffer(0)
    if repaired.is_empty:
        raise NoValidPolygon("Zero-distance buffer repair produced nothing")
    logger.debug(
        "Repaired %s into %s", geom.geom_type, repaired.geom_type
    )
    return repaired


def build_polygon_entry(
    rings: Any,
    options: config.IngestOptions,
) -> shapely_base.BaseGeometry:
    """Build, repair and simplify one polygon from its ring arrays.

    The first ring is the exterior, the others are holes. Holes that fail
    ring construction are dropped individually.

    Args:
        rings: Raw ring arrays of one polygon.
        options: Simplification tolerance and precision grid.

    Returns:
        A Polygon, or a MultiPolygon when repair split the input.

    Raises:
        RingTooShort: If the exterior ring is too short.
        NoValidPolygon: If repair leaves an empty geometry.
        MalformedGeometry: If the ring arrays are not well formed.
    """
    if not isinstance(rings, list) or not rings:
        raise MalformedGeometry("Polygon has no rings")

    shell = build_ring(rings[0])
    holes = []
    for index, raw_hole in enumerate(rings[1:], start=1):
        try:
            holes.append(build_ring(raw_hole))
        except RingTooShort as exc:
            logger.debug("Dropping hole %d: %s", index, exc)

    geom: shapely_base.BaseGeometry = shapely_geometry.Polygon(shell, holes)
    if not geom.is_valid:
        geom = _repair(geom)

    geom = simplify_geometry(geom, options.tolerance)

    if not geom.is_valid:
        geom = _repair(geom)
        if not geom.is_valid:
            logger.warning(
                "Geometry still invalid after second repair: %s",
                shapely.is_valid_reason(geom),
            )

    if options.grid_size:
        geom = shapely.set_precision(geom, options.grid_size)
        if geom.is_empty:
            raise NoValidPolygon("Geometry collapsed on the precision grid")
    return geom


def ingest_geometry(
    node: Any,
    options: config.IngestOptions | None = None,
) -> IngestedGeometry:
    """Convert a GeoJSON Polygon/MultiPolygon node to a canonical geometry.

    Args:
        node: GeoJSON geometry object.
        options: Simplification tolerance and precision grid; defaults to
            IngestOptions().

    Returns:
        IngestedGeometry with the MultiPolygon, the per-entry errors that
        were skipped, and whether the final MultiPolygon is valid.

    Raises:
        UnsupportedGeometryType: For non-polygonal geometry types.
        MalformedGeometry: If the node has no coordinate array.
        NoValidPolygon: If no polygon entry survives.
    """
    options = options or config.IngestOptions()
    entries = polygon_entries(node)

    polygons: list[shapely_geometry.Polygon] = []
    skipped: list[IngestError] = []
    for index, rings in enumerate(entries):
        try:
            entry = build_polygon_entry(rings, options)
        except shapely_errors.GEOSException as exc:
            logger.info("Skipping polygon entry %d: %s", index, exc)
            skipped.append(NoValidPolygon(f"Geometry engine error: {exc}"))
            continue
        except IngestError as exc:
            logger.info("Skipping polygon entry %d: %s", index, exc)
            skipped.append(exc)
            continue
        polygons.extend(iter_polygons(entry))

    if not polygons:
        detail = "; ".join(
            f"{type(exc).__name__}: {exc}" for exc in skipped
        )
        raise NoValidPolygon(
            f"No valid polygons in {len(entries)} entries"
            + (f" ({detail})" if detail else ""),
            causes=skipped,
        )

    multipolygon = shapely_geometry.MultiPolygon(polygons)
    return IngestedGeometry(multipolygon, skipped, multipolygon.is_valid)
