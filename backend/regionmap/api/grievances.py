"""Grievance intake and listing API endpoints.

Example:
    File a grievance; its regions are resolved from the coordinates:
        >>> response = client.post(
        ...     "/api/grievances",
        ...     json={
        ...         "title": "Broken streetlight",
        ...         "category": "electricity",
        ...         "state": "KA",
        ...         "district": "Bengaluru Urban",
        ...         "latitude": 12.97,
        ...         "longitude": 77.59,
        ...     },
        ... )
        >>> # Returns 201 with {"id": ..., "status": "open",
        >>> #                   "regions": {"ward": "ward-12", ...}, ...}
"""

from __future__ import annotations

import dataclasses
import uuid
from typing import Annotated, Any

import fastapi
import pydantic

from regionmap.core import config
from regionmap.db import database
from regionmap.db import models as db_models
from regionmap.services import grievances

router = fastapi.APIRouter(prefix="/api/grievances", tags=["grievances"])

NonBlank = Annotated[
    str, pydantic.StringConstraints(strip_whitespace=True, min_length=1)
]


class GrievanceRequest(pydantic.BaseModel):
    """Body of a new grievance."""

    title: NonBlank
    description: str | None = pydantic.Field(None, max_length=2000)
    category: NonBlank
    state: NonBlank
    district: NonBlank
    latitude: float = pydantic.Field(..., ge=-90, le=90)
    longitude: float = pydantic.Field(..., ge=-180, le=180)


def _get_grievance_repo(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> database.GrievanceRepositoryProtocol:
    """Resolve the grievance repository dependency."""
    return database.get_grievance_repository(settings)


def _get_region_repo(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> database.RegionRepositoryProtocol:
    """Resolve the region repository used for region assignment."""
    return database.get_region_repository(settings)


def _grievance_to_dict(grievance: db_models.Grievance) -> dict[str, Any]:
    location = grievance.location
    return {
        "id": grievance.id,
        "title": grievance.title,
        "description": grievance.description,
        "category": grievance.category,
        "state": grievance.state,
        "district": grievance.district,
        "status": grievance.status,
        "latitude": location.lat if location is not None else None,
        "longitude": location.lon if location is not None else None,
        "regions": dataclasses.asdict(grievance.regions),
        "created_at": (
            grievance.created_at.isoformat()
            if grievance.created_at is not None
            else None
        ),
    }


@router.post("", status_code=201)
async def create_grievance(
    request: GrievanceRequest,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    repo: database.GrievanceRepositoryProtocol = fastapi.Depends(_get_grievance_repo),  # noqa: B008
    region_repo: database.RegionRepositoryProtocol = fastapi.Depends(_get_region_repo),  # noqa: B008
) -> dict[str, Any]:
    """Open a grievance and assign it to the regions around its location.

    Args:
        request: Grievance fields and coordinates.
        settings: Application settings (injected via FastAPI Depends).
        repo: Grievance repository (injected via FastAPI Depends).
        region_repo: Region repository (injected via FastAPI Depends).

    Returns:
        The created grievance with its resolved region identifiers.
    """
    grievance = db_models.Grievance(
        id=str(uuid.uuid4()),
        title=request.title,
        description=request.description,
        category=request.category,
        state=request.state,
        district=request.district,
        location=db_models.GeoPoint(lon=request.longitude, lat=request.latitude),
    )
    saved = grievances.create_grievance(
        repo,
        region_repo,
        grievance,
        max_depth=settings.max_ancestor_depth,
    )
    return _grievance_to_dict(saved)


@router.get("")
async def list_grievances(
    district: str | None = None,
    category: str | None = None,
    page: int = fastapi.Query(0, ge=0),  # noqa: B008
    size: int = fastapi.Query(20, ge=1, le=100),  # noqa: B008
    repo: database.GrievanceRepositoryProtocol = fastapi.Depends(_get_grievance_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    """List grievances newest first, filtered by district and/or category."""
    return [
        _grievance_to_dict(grievance)
        for grievance in grievances.list_grievances(
            repo, district, category, page, size
        )
    ]


@router.get("/{grievance_id}")
async def get_grievance(
    grievance_id: str,
    repo: database.GrievanceRepositoryProtocol = fastapi.Depends(_get_grievance_repo),  # noqa: B008
) -> dict[str, Any]:
    """Get one grievance by id.

    Raises:
        HTTPException: If the grievance is not found (404 status code).
    """
    grievance = repo.get(grievance_id)
    if grievance is None:
        raise fastapi.HTTPException(
            status_code=404,
            detail="Grievance not found",
        )
    return _grievance_to_dict(grievance)
