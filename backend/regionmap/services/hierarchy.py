"""Administrative hierarchy resolution for a point.

Tiers are tried from most to least specific: ward, ac, pc, district, state.
The first tier with a containing region wins and no further tiers are
queried.

Only a ward match fills in the coarser tiers. For each of pc, ac, district
and state the parent chain of the ward is climbed independently until a
region of that tier is found or the chain ends. A match at any other tier
sets that tier alone. No match at all leaves every field unset.

Parent references come from imported metadata and are not checked for
cycles on import. Each climb keeps a visited set and stops after
max_depth parent lookups.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from regionmap.db import models as db_models
from regionmap.services import containment

if TYPE_CHECKING:
    from regionmap.db import database

logger = logging.getLogger(__name__)

ANCESTOR_TIERS: tuple[db_models.RegionType, ...] = ("pc", "ac", "district", "state")

DEFAULT_MAX_DEPTH = 10


def find_ancestor(
    repo: database.RegionRepositoryProtocol,
    start: db_models.Region,
    region_type: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> db_models.Region | None:
    """Climb parent references from start to the first region of a tier.

    Args:
        repo: Repository used for parent lookups by id.
        start: Region the climb starts from; it is itself a candidate.
        region_type: Tier to look for.
        max_depth: Maximum number of parent lookups.

    Returns:
        The first region of the requested tier on the chain, or None.
    """
    current: db_models.Region | None = start
    visited: set[str] = set()
    lookups = 0
    while current is not None:
        if current.type == region_type:
            return current
        visited.add(current.id)
        parent_id = current.parent_id
        if not parent_id:
            return None
        if parent_id in visited:
            logger.warning(
                "Parent cycle at region %s while looking for %s",
                parent_id,
                region_type,
            )
            return None
        if lookups >= max_depth:
            logger.warning(
                "Stopped climbing from %s after %d lookups looking for %s",
                start.id,
                lookups,
                region_type,
            )
            return None
        lookups += 1
        current = repo.get(parent_id)
    return None


def resolve_hierarchy(
    repo: database.RegionRepositoryProtocol,
    point: db_models.GeoPoint,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> db_models.HierarchyAssignment:
    """Resolve the regions enclosing a point at each administrative tier.

    Args:
        repo: Region repository to query.
        point: Query location.
        max_depth: Cap on parent lookups per ancestor climb.

    Returns:
        HierarchyAssignment with the identifiers that could be resolved.
        Unresolved tiers stay None; this is not an error.
    """
    assignment = db_models.HierarchyAssignment()
    for tier in db_models.TIERS:
        matches = containment.resolve_containing(repo, point, tier)
        if not matches:
            continue

        match = matches[0]
        setattr(assignment, tier, match.id)
        if tier == "ward":
            for ancestor_tier in ANCESTOR_TIERS:
                ancestor = find_ancestor(repo, match, ancestor_tier, max_depth)
                if ancestor is not None:
                    setattr(assignment, ancestor_tier, ancestor.id)
        break

    return assignment
