"""Unit tests for regionmap.db.models domain models.

Key coverage:
    - Region defaults for optional metadata and timestamps.
    - HierarchyAssignment starts with every tier unset.
    - Tier ordering from most to least specific.

See Also:
    - backend/regionmap/db/models.py for the model definitions.
"""

from __future__ import annotations

import dataclasses

from shapely import geometry as shapely_geometry

from regionmap.db import models as db_models


def test_region_defaults() -> None:
    """Test creating a Region with only the required fields."""
    region = db_models.Region(
        id="ward-1",
        name="Ward 1",
        type="ward",
        geometry=shapely_geometry.MultiPolygon([shapely_geometry.box(0, 0, 1, 1)]),
    )
    assert region.parent_id is None
    assert region.bbox is None
    assert region.verified is False
    assert region.meta == {}
    assert region.created_at is None


def test_region_meta_is_not_shared() -> None:
    """Test that each Region gets its own meta dictionary."""
    geom = shapely_geometry.MultiPolygon([shapely_geometry.box(0, 0, 1, 1)])
    first = db_models.Region(id="a", name="A", type="ward", geometry=geom)
    second = db_models.Region(id="b", name="B", type="ward", geometry=geom)
    first.meta["k"] = "v"
    assert second.meta == {}


def test_hierarchy_assignment_empty() -> None:
    """Test that an unresolved point has every tier unset."""
    assert dataclasses.asdict(db_models.HierarchyAssignment()) == {
        "ward": None,
        "ac": None,
        "pc": None,
        "district": None,
        "state": None,
    }


def test_tiers_most_specific_first() -> None:
    """Test the tier order used by hierarchy resolution."""
    assert db_models.TIERS == ("ward", "ac", "pc", "district", "state")


def test_import_result_serializes() -> None:
    """Test that ImportResult converts to a plain dictionary."""
    result = db_models.ImportResult(
        imported=2,
        skipped=[db_models.SkipReason(index=1, reason="RingTooShort: x")],
    )
    assert dataclasses.asdict(result) == {
        "imported": 2,
        "skipped": [{"index": 1, "reason": "RingTooShort: x"}],
    }
