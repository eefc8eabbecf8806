"""Grievance intake with automatic region assignment.

A new grievance is opened with status "open" and a creation timestamp.
When it carries a location, the enclosing ward, ac, pc, district and state
are resolved with the same hierarchy rules as the /hierarchy endpoint and
stored on the record, so grievances can be routed without a later spatial
query.

Example:
    >>> from regionmap.db import database, models
    >>> from regionmap.services import grievances
    >>> saved = grievances.create_grievance(
    ...     database.InMemoryGrievanceRepository(),
    ...     region_repo,
    ...     models.Grievance(
    ...         id="g-1",
    ...         title="Broken streetlight",
    ...         category="electricity",
    ...         state="KA",
    ...         district="Bengaluru Urban",
    ...         location=models.GeoPoint(lon=77.59, lat=12.97),
    ...     ),
    ... )
    >>> saved.regions.ward
"""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING

from regionmap.services import hierarchy

if TYPE_CHECKING:
    from regionmap.db import database
    from regionmap.db import models as db_models

logger = logging.getLogger(__name__)


def create_grievance(
    grievance_repo: database.GrievanceRepositoryProtocol,
    region_repo: database.RegionRepositoryProtocol,
    grievance: db_models.Grievance,
    *,
    max_depth: int = hierarchy.DEFAULT_MAX_DEPTH,
) -> db_models.Grievance:
    """Open a grievance and tag it with the regions around its location.

    Args:
        grievance_repo: Repository the grievance is saved to.
        region_repo: Region repository used for hierarchy resolution.
        grievance: Grievance to open; status and created_at are overwritten.
        max_depth: Cap on parent lookups per ancestor climb.

    Returns:
        The saved grievance.
    """
    grievance.status = "open"
    grievance.created_at = datetime.datetime.now(tz=datetime.UTC)
    if grievance.location is not None:
        grievance.regions = hierarchy.resolve_hierarchy(
            region_repo, grievance.location, max_depth=max_depth
        )
        logger.debug(
            "Grievance %s assigned to %s", grievance.id, grievance.regions
        )
    return grievance_repo.save(grievance)


def list_grievances(
    repo: database.GrievanceRepositoryProtocol,
    district: str | None = None,
    category: str | None = None,
    page: int = 0,
    size: int = 20,
) -> list[db_models.Grievance]:
    """Return one page of grievances, newest first.

    Args:
        repo: Grievance repository to query.
        district: Optional district filter.
        category: Optional category filter.
        page: Zero-based page number.
        size: Page size.
    """
    return repo.find(district, category, offset=page * size, limit=size)
