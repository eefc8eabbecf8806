"""Region import, lookup and point-resolution API endpoints.

Example:
    Import a GeoJSON file of wards:
        >>> files = {"file": ("wards.geojson", open("wards.geojson", "rb"))}
        >>> response = client.post(
        ...     "/api/regions/import",
        ...     files=files,
        ...     data={"source": "2024", "type": "ward"},
        ... )
        >>> # Returns: {"imported": 3, "skipped": [{"index": 1, "reason": ...}]}

    Resolve a point to its hierarchy:
        >>> response = client.get(
        ...     "/api/regions/hierarchy", params={"lat": 12.97, "lng": 77.59}
        ... )
        >>> # Returns: {"ward": "ward-12", "ac": "ac-151", "pc": "pc-25",
        >>> #           "district": "blr-urban", "state": "ka"}
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any

import fastapi

from regionmap.core import config
from regionmap.db import database
from regionmap.db import models as db_models
from regionmap.services import (
    containment,
    hierarchy,
    importer,
    transcode,
)

router = fastapi.APIRouter(prefix="/api/regions", tags=["regions"])


def _get_repo(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> database.RegionRepositoryProtocol:
    """Resolve the region repository dependency.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        RegionRepositoryProtocol implementation
            (PostgresRegionRepository in production).
    """
    return database.get_region_repository(settings)


def _read_upload(file: fastapi.UploadFile, max_size: int) -> bytes:
    """Read an uploaded file into memory with size validation.

    Raises:
        HTTPException: If the file exceeds the maximum size limit.
    """
    chunks = []
    size = 0
    for chunk in iter(lambda: file.file.read(1024 * 1024), b""):
        size += len(chunk)
        if size > max_size:
            raise fastapi.HTTPException(
                status_code=413,
                detail="Upload too large",
            )
        chunks.append(chunk)
    return b"".join(chunks)


def _region_to_dict(
    region: db_models.Region,
    tolerance: float | None = None,
) -> dict[str, Any]:
    """Convert a Region to a JSON-ready dictionary.

    The geometry is rendered as GeoJSON and, when a tolerance is given,
    simplified for display. The stored record is left untouched.
    """
    wire = transcode.to_wire(region.geometry)
    if tolerance:
        wire = transcode.simplify_for_display(wire, tolerance)
    return {
        "id": region.id,
        "name": region.name,
        "type": region.type,
        "code": region.code,
        "state": region.state,
        "district": region.district,
        "parent_id": region.parent_id,
        "bbox": list(region.bbox) if region.bbox is not None else None,
        "centroid": (
            list(region.centroid) if region.centroid is not None else None
        ),
        "source": region.source,
        "source_year": region.source_year,
        "verified": region.verified,
        "meta": region.meta,
        "created_at": (
            region.created_at.isoformat()
            if region.created_at is not None
            else None
        ),
        "geometry": wire,
    }


@router.get("")
async def list_regions(
    region_type: db_models.RegionType | None = fastapi.Query(None, alias="type"),  # noqa: B008
    state: str | None = None,
    tolerance: float | None = fastapi.Query(None, ge=0),  # noqa: B008
    repo: database.RegionRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    """List regions, optionally filtered by tier and state.

    Args:
        region_type: Tier filter ("state", "district", "pc", "ac", "ward").
        state: State filter, only applied together with a tier filter.
        tolerance: Optional display simplification tolerance in degrees.
        repo: Region repository (injected via FastAPI Depends).

    Returns:
        List of region dictionaries with GeoJSON geometries.
    """
    if region_type is None:
        regions = list(repo.all())
    else:
        regions = repo.find_by_type(region_type, state)
    return [_region_to_dict(region, tolerance) for region in regions]


@router.get("/search")
async def search_regions(
    q: str = fastapi.Query(..., min_length=1),  # noqa: B008
    repo: database.RegionRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    """Search regions by case-insensitive name substring."""
    return [_region_to_dict(region) for region in repo.search_by_name(q)]


@router.get("/contains")
async def regions_containing(
    lat: float = fastapi.Query(..., ge=-90, le=90),  # noqa: B008
    lng: float = fastapi.Query(..., ge=-180, le=180),  # noqa: B008
    region_type: db_models.RegionType | None = fastapi.Query(None, alias="type"),  # noqa: B008
    repo: database.RegionRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> list[dict[str, Any]]:
    """List regions containing a point, smallest first.

    Args:
        lat: Latitude of the point.
        lng: Longitude of the point.
        region_type: Optional tier filter.
        repo: Region repository (injected via FastAPI Depends).

    Returns:
        Region dictionaries ordered by ascending bounding-box area.
    """
    point = db_models.GeoPoint(lon=lng, lat=lat)
    return [
        _region_to_dict(region)
        for region in containment.resolve_containing(repo, point, region_type)
    ]


@router.get("/hierarchy")
async def region_hierarchy(
    lat: float = fastapi.Query(..., ge=-90, le=90),  # noqa: B008
    lng: float = fastapi.Query(..., ge=-180, le=180),  # noqa: B008
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    repo: database.RegionRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, str | None]:
    """Resolve the ward, ac, pc, district and state enclosing a point.

    Tiers that cannot be resolved are returned as null.
    """
    assignment = hierarchy.resolve_hierarchy(
        repo,
        db_models.GeoPoint(lon=lng, lat=lat),
        max_depth=settings.max_ancestor_depth,
    )
    return dataclasses.asdict(assignment)


@router.post("/import")
async def import_regions(
    file: fastapi.UploadFile,
    source: str | None = fastapi.Form(None),  # noqa: B008
    region_type: db_models.RegionType | None = fastapi.Form(None, alias="type"),  # noqa: B008
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    repo: database.RegionRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Import a GeoJSON FeatureCollection of administrative boundaries.

    Features are imported one at a time; a failing feature is reported in
    ``skipped`` and does not abort the batch.

    Args:
        file: Uploaded GeoJSON file from multipart form data.
        source: Source label, a four-digit year also sets source_year.
        region_type: Default tier for features without a ``type`` property.
        settings: Application settings (injected via FastAPI Depends).
        repo: Region repository (injected via FastAPI Depends).

    Returns:
        Dictionary with the imported count and the skipped features.

    Raises:
        HTTPException: 413 for oversized uploads, 400 when the upload is not
            a GeoJSON FeatureCollection or Feature.
    """
    payload = _read_upload(file, settings.max_upload_size_bytes)
    try:
        document = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise fastapi.HTTPException(
            status_code=400,
            detail=f"Invalid JSON: {exc}",
        ) from exc

    try:
        result = importer.import_features(
            document,
            repo,
            source=source,
            default_type=region_type,
            options=settings.ingest_options(),
        )
    except importer.InvalidFeatureCollection as exc:
        raise fastapi.HTTPException(status_code=400, detail=str(exc)) from exc

    return dataclasses.asdict(result)


@router.get("/{region_id}")
async def get_region(
    region_id: str,
    tolerance: float | None = fastapi.Query(None, ge=0),  # noqa: B008
    repo: database.RegionRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Get one region by id.

    Raises:
        HTTPException: If the region is not found (404 status code).
    """
    region = repo.get(region_id)
    if region is None:
        raise fastapi.HTTPException(
            status_code=404,
            detail="Region not found",
        )
    return _region_to_dict(region, tolerance)


@router.get("/{region_id}/geometry")
async def get_region_geometry(
    region_id: str,
    tolerance: float | None = fastapi.Query(None, ge=0),  # noqa: B008
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    repo: database.RegionRepositoryProtocol = fastapi.Depends(_get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Get a region's boundary simplified for map rendering.

    Uses the configured display tolerance unless one is given; a tolerance
    of 0 returns the stored boundary as-is.

    Raises:
        HTTPException: If the region is not found (404 status code).
    """
    region = repo.get(region_id)
    if region is None:
        raise fastapi.HTTPException(
            status_code=404,
            detail="Region not found",
        )
    if tolerance is None:
        tolerance = settings.display_tolerance
    wire = transcode.to_wire(region.geometry)
    return transcode.simplify_for_display(wire, tolerance)
