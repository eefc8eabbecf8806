"""Tests for batch GeoJSON import with per-feature failure isolation."""

from __future__ import annotations

from typing import Any

import pytest

from regionmap.core import config
from regionmap.db import database
from regionmap.services import importer

SQUARE = [[77.1, 12.1], [77.2, 12.1], [77.2, 12.2], [77.1, 12.2], [77.1, 12.1]]
SHORT_RING = [[77.1, 12.1], [77.2, 12.2]]


def _feature(
    ring: list[list[float]],
    **properties: Any,
) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "Polygon", "coordinates": [ring]},
    }


def _collection(*features: dict[str, Any]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


def test_partial_failures_are_counted_not_raised() -> None:
    """Test that 2 of 5 short exteriors are skipped and 3 imported."""
    repo = database.InMemoryRegionRepository()
    document = _collection(
        _feature(SQUARE, name="A"),
        _feature(SHORT_RING, name="B"),
        _feature(SQUARE, name="C"),
        _feature(SHORT_RING, name="D"),
        _feature(SQUARE, name="E"),
    )

    result = importer.import_features(document, repo, default_type="ward")

    assert result.imported == 3
    assert [skip.index for skip in result.skipped] == [1, 3]
    assert all("RingTooShort" in skip.reason for skip in result.skipped)
    assert sorted(region.name for region in repo.all()) == ["A", "C", "E"]


def test_region_fields_from_properties() -> None:
    """Test mapping of feature properties onto the saved region."""
    repo = database.InMemoryRegionRepository()
    feature = _feature(
        SQUARE,
        NAME="Ward 12",
        type="ward",
        code="W12",
        state="Karnataka",
        district="Bengaluru Urban",
        parentId="ac-151",
        population=12345,
    )
    feature["id"] = "ward-12"

    result = importer.import_features(_collection(feature), repo, source="2024")

    assert result.imported == 1
    region = repo.get("ward-12")
    assert region is not None
    assert region.name == "Ward 12"
    assert region.type == "ward"
    assert region.code == "W12"
    assert region.state == "Karnataka"
    assert region.district == "Bengaluru Urban"
    assert region.parent_id == "ac-151"
    assert region.source == "2024"
    assert region.source_year == 2024
    assert region.meta == {"population": 12345}
    assert region.bbox == pytest.approx((77.1, 12.1, 77.2, 12.2))
    assert region.centroid is not None
    assert region.geometry.geom_type == "MultiPolygon"
    assert region.created_at is not None


@pytest.mark.parametrize(
    ("properties", "expected"),
    [
        ({"name": "lower"}, "lower"),
        ({"Name": "title"}, "title"),
        ({"DISTRICT": "Mysuru"}, "Mysuru"),
        ({}, "unknown"),
    ],
)
def test_name_fallbacks(properties: dict[str, str], expected: str) -> None:
    """Test the order of name properties and the final fallback."""
    repo = database.InMemoryRegionRepository()
    importer.import_features(
        _collection(_feature(SQUARE, **properties)),
        repo,
        default_type="district",
    )
    [region] = list(repo.all())
    assert region.name == expected


def test_non_year_source_has_no_source_year() -> None:
    """Test that only a four-digit source label sets the year."""
    repo = database.InMemoryRegionRepository()
    importer.import_features(
        _collection(_feature(SQUARE, name="A")),
        repo,
        source="census-2011",
        default_type="state",
    )
    [region] = list(repo.all())
    assert region.source == "census-2011"
    assert region.source_year is None


def test_unknown_type_is_skipped() -> None:
    """Test that a feature without a valid tier is skipped."""
    repo = database.InMemoryRegionRepository()
    result = importer.import_features(
        _collection(
            _feature(SQUARE, name="A"),
            _feature(SQUARE, name="B", type="county"),
        ),
        repo,
    )
    assert result.imported == 0
    assert len(result.skipped) == 2
    assert "Unknown region type" in result.skipped[1].reason


def test_missing_geometry_and_unsupported_type_are_skipped() -> None:
    """Test that geometry problems are recorded per feature."""
    repo = database.InMemoryRegionRepository()
    document = _collection(
        {"type": "Feature", "properties": {"name": "none"}, "geometry": None},
        {
            "type": "Feature",
            "properties": {"name": "point"},
            "geometry": {"type": "Point", "coordinates": [77.1, 12.1]},
        },
        _feature(SQUARE, name="ok"),
    )
    result = importer.import_features(document, repo, default_type="ac")

    assert result.imported == 1
    assert [skip.index for skip in result.skipped] == [0, 1]
    assert "UnsupportedGeometryType" in result.skipped[1].reason


def test_single_feature_document() -> None:
    """Test that a bare Feature is imported like a one-item collection."""
    repo = database.InMemoryRegionRepository()
    result = importer.import_features(
        _feature(SQUARE, name="solo", type="pc"), repo
    )
    assert result.imported == 1


def test_ids_are_generated_when_missing() -> None:
    """Test that features without an id get distinct generated ids."""
    repo = database.InMemoryRegionRepository()
    importer.import_features(
        _collection(_feature(SQUARE, name="A"), _feature(SQUARE, name="B")),
        repo,
        default_type="ward",
    )
    assert len({region.id for region in repo.all()}) == 2


def test_options_are_applied() -> None:
    """Test that explicit ingestion options reach the geometry pipeline."""
    repo = database.InMemoryRegionRepository()
    wiggly = [[0, 0], [1, 0.002], [2, 0], [2, 2], [0, 2], [0, 0]]
    importer.import_features(
        _collection(_feature(wiggly, name="A", id="a")),
        repo,
        default_type="ward",
        options=config.IngestOptions(tolerance=0.01),
    )
    region = repo.get("a")
    assert region is not None
    assert len(region.geometry.geoms[0].exterior.coords) == 5
    # The bbox still describes the raw input.
    assert region.bbox == (0.0, 0.0, 2.0, 2.0)


def test_bbox_covers_geometry_snapped_to_grid() -> None:
    """Test that the bbox grows to cover vertices moved by the grid."""
    repo = database.InMemoryRegionRepository()
    ring = [[0.04, 0.04], [1.02, 0.04], [1.02, 0.98], [0.04, 0.98]]
    importer.import_features(
        _collection(_feature(ring, name="A", id="a")),
        repo,
        default_type="ward",
        options=config.IngestOptions(grid_size=0.1),
    )
    region = repo.get("a")
    assert region is not None
    assert region.bbox is not None
    min_x, min_y, max_x, max_y = region.geometry.bounds
    assert region.bbox[0] <= min_x
    assert region.bbox[1] <= min_y
    assert region.bbox[2] >= max_x
    assert region.bbox[3] >= max_y
    # Raw coordinates stay covered as well.
    assert region.bbox[2] >= 1.02
    assert region.bbox[3] >= 0.98


@pytest.mark.parametrize(
    "document",
    [[], "text", {"type": "FeatureCollection"}, {"features": "nope"}],
)
def test_invalid_document_raises(document: Any) -> None:
    """Test that a document without a feature list fails the whole import."""
    with pytest.raises(importer.InvalidFeatureCollection):
        importer.import_features(document, database.InMemoryRegionRepository())
