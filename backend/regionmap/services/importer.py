"""Batch import of GeoJSON administrative boundaries.

Each feature of a FeatureCollection (or a single Feature) becomes one
Region record. Features are processed one at a time and a failing feature
never aborts the batch: it is recorded in the ImportResult with its index
and reason, and the import carries on with the next feature.

Feature properties map onto the record as follows:

- name: ``name``, ``NAME`` or ``Name``, then ``DISTRICT``, else "unknown"
- type: ``type``, else the batch default type; must be an administrative tier
- parent: ``parent_id`` or ``parentId``
- id: the feature ``id`` or ``properties.id``, else a fresh UUID
- ``code``, ``state`` and ``district`` are copied as-is; the remaining
  properties are kept in ``meta``

Example:
    >>> import json
    >>> from regionmap.db import database
    >>> from regionmap.services import importer
    >>> repo = database.InMemoryRegionRepository()
    >>> with open("wards.geojson", encoding="utf-8") as fh:
    ...     result = importer.import_features(
    ...         json.load(fh), repo, source="2024", default_type="ward"
    ...     )
    >>> result.imported, len(result.skipped)
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import TYPE_CHECKING, Any, cast

from regionmap.core import config
from regionmap.db import models as db_models
from regionmap.services import extent, geometry

if TYPE_CHECKING:
    from regionmap.db import database

logger = logging.getLogger(__name__)

_NAME_KEYS = ("name", "NAME", "Name", "DISTRICT")
_PARENT_KEYS = ("parent_id", "parentId")
_RESERVED_KEYS = {
    *_NAME_KEYS,
    *_PARENT_KEYS,
    "id",
    "type",
    "code",
    "state",
    "district",
}
_YEAR_PATTERN = re.compile(r"\d{4}")


class InvalidFeatureCollection(ValueError):
    """The document is neither a GeoJSON FeatureCollection nor a Feature."""


def _features(document: Any) -> list[Any]:
    if not isinstance(document, dict):
        raise InvalidFeatureCollection("GeoJSON document must be an object")
    if document.get("type") == "Feature":
        return [document]
    features = document.get("features")
    if not isinstance(features, list):
        raise InvalidFeatureCollection("Invalid GeoJSON FeatureCollection")
    return features


def _first_text(properties: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = properties.get(key)
        if value is not None:
            return str(value)
    return None


def _optional_text(value: Any) -> str | None:
    return None if value is None else str(value)


def build_region(
    feature: dict[str, Any],
    *,
    source: str | None,
    default_type: str | None,
    options: config.IngestOptions,
) -> db_models.Region:
    """Build a Region from one GeoJSON feature.

    Args:
        feature: GeoJSON Feature object.
        source: Source label of the batch.
        default_type: Tier used when the feature has no ``type`` property.
        options: Geometry ingestion parameters.

    Returns:
        Region ready to be saved.

    Raises:
        ValueError: If the feature has no geometry or no valid tier.
        IngestError: If the geometry cannot be ingested.
    """
    node = feature.get("geometry")
    if node is None:
        raise ValueError("Feature has no geometry")
    properties = feature.get("properties") or {}
    if not isinstance(properties, dict):
        raise ValueError("Feature properties must be an object")

    region_type = _optional_text(properties.get("type")) or default_type
    if region_type not in db_models.TIERS:
        raise ValueError(f"Unknown region type: {region_type}")

    ingested = geometry.ingest_geometry(node, options)
    if ingested.skipped:
        logger.info(
            "Feature kept %d polygons, skipped %d entries",
            len(ingested.geometry.geoms),
            len(ingested.skipped),
        )
    if not ingested.is_valid:
        logger.warning("Accepting feature with invalid geometry")
    bbox, centroid = extent.compute_bbox_centroid(node)
    if options.grid_size:
        # Snapping can move vertices past the raw extent.
        bbox = extent.extend_bbox(bbox, ingested.geometry.bounds)

    region_id = (
        _optional_text(feature.get("id"))
        or _optional_text(properties.get("id"))
        or str(uuid.uuid4())
    )
    source_year = (
        int(source)
        if source is not None and _YEAR_PATTERN.fullmatch(source)
        else None
    )
    return db_models.Region(
        id=region_id,
        name=_first_text(properties, _NAME_KEYS) or "unknown",
        type=cast(db_models.RegionType, region_type),
        geometry=ingested.geometry,
        bbox=bbox,
        centroid=centroid,
        parent_id=_first_text(properties, _PARENT_KEYS),
        code=_optional_text(properties.get("code")),
        state=_optional_text(properties.get("state")),
        district=_optional_text(properties.get("district")),
        source=source,
        source_year=source_year,
        meta={k: v for k, v in properties.items() if k not in _RESERVED_KEYS},
    )


def import_features(
    document: Any,
    repo: database.RegionRepositoryProtocol,
    *,
    source: str | None = None,
    default_type: str | None = None,
    options: config.IngestOptions | None = None,
) -> db_models.ImportResult:
    """Import every feature of a GeoJSON document into the repository.

    Args:
        document: Parsed GeoJSON FeatureCollection or Feature.
        repo: Repository the regions are saved to.
        source: Source label stored on every region; a four-digit label
            also sets source_year.
        default_type: Tier for features without a ``type`` property.
        options: Geometry ingestion parameters; defaults to IngestOptions().

    Returns:
        ImportResult with the number of saved regions and one SkipReason
        per feature that was not imported.

    Raises:
        InvalidFeatureCollection: If the document has no feature list.
    """
    options = options or config.IngestOptions()
    result = db_models.ImportResult()
    for index, feature in enumerate(_features(document)):
        try:
            if not isinstance(feature, dict):
                raise ValueError("Feature must be an object")
            region = build_region(
                feature,
                source=source,
                default_type=default_type,
                options=options,
            )
        except ValueError as exc:
            reason = f"{type(exc).__name__}: {exc}"
            logger.warning("Skipping feature %d: %s", index, reason)
            result.skipped.append(db_models.SkipReason(index, reason))
            continue

        repo.save(region)
        result.imported += 1

    logger.info(
        "Imported %d regions, skipped %d",
        result.imported,
        len(result.skipped),
    )
    return result
