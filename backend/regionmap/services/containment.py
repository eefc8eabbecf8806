"""Point containment queries ordered by approximate region size.

Administrative polygons nest and overlap: a ward lies inside its assembly
constituency, which lies inside a district. For a point inside several of
them the smallest enclosing region is taken as the most specific match, so
candidates are ordered by the area of their bounding box.

Regions without a bounding box sort after every region that has one. Ties,
including two regions without a bounding box, keep the order the
repository returned them in. That order is not deterministic for the
PostGIS repository.

Example:
    >>> from regionmap.db import models as db_models
    >>> from regionmap.services import containment
    >>> matches = containment.resolve_containing(
    ...     repo, db_models.GeoPoint(lon=77.15, lat=12.15), "ward"
    ... )
    >>> smallest = matches[0] if matches else None
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from regionmap.db import database
    from regionmap.db import models as db_models


def approx_area(region: db_models.Region) -> float:
    """Return |width * height| of the region's bbox, or +inf without one."""
    if region.bbox is None or len(region.bbox) != 4:
        return math.inf
    min_lon, min_lat, max_lon, max_lat = region.bbox
    return abs((max_lon - min_lon) * (max_lat - min_lat))


def resolve_containing(
    repo: database.RegionRepositoryProtocol,
    point: db_models.GeoPoint,
    region_type: str | None = None,
) -> list[db_models.Region]:
    """Find regions containing the point, smallest first.

    A point on a region boundary counts as contained.

    Args:
        repo: Region repository to query.
        point: Query location.
        region_type: Optional tier filter ("ward", "ac", "pc", ...).

    Returns:
        Matching regions ordered by ascending approximate area. Empty when
        nothing contains the point.
    """
    matches = repo.find_intersecting(point, region_type or None)
    return sorted(matches, key=approx_area)
