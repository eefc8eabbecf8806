"""Data models for administrative regions.

This module defines the core data structures shared by the ingestion
pipeline, the repositories and the resolvers. A Region carries its
canonical boundary as a shapely MultiPolygon together with the bounding box
and vertex-average centroid computed from the raw input coordinates.

Parent references are plain identifiers, never object links. They are
resolved through a repository lookup whenever the hierarchy is climbed.

Example:
    Creating a Region for a ward nested in an assembly constituency:
        >>> from shapely import geometry
        >>> from regionmap.db.models import Region
        >>> ward = Region(
        ...     id="ward-12",
        ...     name="Ward 12",
        ...     type="ward",
        ...     geometry=geometry.MultiPolygon([geometry.box(77.1, 12.1, 77.2, 12.2)]),
        ...     bbox=(77.1, 12.1, 77.2, 12.2),
        ...     centroid=(77.15, 12.15),
        ...     parent_id="ac-151",
        ... )
"""

from __future__ import annotations

import dataclasses
import datetime
from typing import Any, Literal, NamedTuple

from shapely import geometry as shapely_geometry

BBox = tuple[float, float, float, float]
Centroid = tuple[float, float]
RegionType = Literal["state", "district", "pc", "ac", "ward"]

# Most to least specific.
TIERS: tuple[RegionType, ...] = ("ward", "ac", "pc", "district", "state")


class GeoPoint(NamedTuple):
    """Query location as (lon, lat) in WGS84 decimal degrees."""

    lon: float
    lat: float


@dataclasses.dataclass
class Region:
    """An administrative unit with its canonical boundary.

    Attributes:
        id: Unique identifier, also the target of child parent references.
        name: Human-readable region name.
        type: Administrative tier ("state", "district", "pc", "ac", "ward").
        geometry: Repaired and simplified boundary.
        bbox: (minLon, minLat, maxLon, maxLat) of the raw input coordinates.
        centroid: (lon, lat) mean of the raw exterior-ring vertices.
        parent_id: Identifier of the enclosing region, if known.
        code: External code from the source dataset.
        state: State name copied from source properties.
        district: District name copied from source properties.
        source: Free-form source label of the import batch.
        source_year: Year of the source, when the label is a year.
        verified: Whether the boundary has been checked by a person.
        meta: Remaining source properties.
        created_at: Timestamp of the first save.
    """

    id: str
    name: str
    type: RegionType
    geometry: shapely_geometry.MultiPolygon
    bbox: BBox | None = None
    centroid: Centroid | None = None
    parent_id: str | None = None
    code: str | None = None
    state: str | None = None
    district: str | None = None
    source: str | None = None
    source_year: int | None = None
    verified: bool = False
    meta: dict[str, Any] = dataclasses.field(default_factory=dict)
    created_at: datetime.datetime | None = None


@dataclasses.dataclass
class HierarchyAssignment:
    """Region identifiers resolved for a point, one optional field per tier."""

    ward: str | None = None
    ac: str | None = None
    pc: str | None = None
    district: str | None = None
    state: str | None = None


@dataclasses.dataclass
class Grievance:
    """A citizen grievance, tagged with the regions enclosing its location.

    Attributes:
        id: Unique identifier.
        title: Short summary.
        category: Grievance category, used for filtering.
        state: State name as reported.
        district: District name as reported, used for filtering.
        description: Optional free text.
        location: Reported location, if any.
        status: Lifecycle status; new grievances are "open".
        regions: Region identifiers resolved from the location.
        created_at: Timestamp of creation.
    """

    id: str
    title: str
    category: str
    state: str
    district: str
    description: str | None = None
    location: GeoPoint | None = None
    status: str = "open"
    regions: HierarchyAssignment = dataclasses.field(
        default_factory=HierarchyAssignment
    )
    created_at: datetime.datetime | None = None


@dataclasses.dataclass(frozen=True)
class SkipReason:
    index: int
    reason: str


@dataclasses.dataclass
class ImportResult:
    """Outcome of a batch import: saved count plus one entry per skip."""

    imported: int = 0
    skipped: list[SkipReason] = dataclasses.field(default_factory=list)
