"""Tests for grievance intake, listing and the grievance repositories.

Key coverage:
    - create_grievance opens the record and resolves its regions from the
      location using the ward-first hierarchy rules.
    - Listing filters by district and category, newest first, with paging.
    - PostgresGrievanceRepository row conversion helpers.

See Also:
    - backend/regionmap/services/grievances.py for the service.
    - backend/regionmap/db/database.py for the repositories.
"""

from __future__ import annotations

import datetime

import pytest
from shapely import geometry as shapely_geometry

from regionmap.db import database
from regionmap.db import models as db_models
from regionmap.services import grievances


def _region(
    region_id: str,
    region_type: db_models.RegionType,
    bounds: tuple[float, float, float, float],
    parent_id: str | None = None,
) -> db_models.Region:
    return db_models.Region(
        id=region_id,
        name=region_id,
        type=region_type,
        geometry=shapely_geometry.MultiPolygon([shapely_geometry.box(*bounds)]),
        bbox=bounds,
        parent_id=parent_id,
    )


@pytest.fixture
def region_repo() -> database.InMemoryRegionRepository:
    repo = database.InMemoryRegionRepository()
    repo.save(_region("ka", "state", (74.0, 11.0, 79.0, 19.0)))
    repo.save(_region("blr", "district", (77.0, 12.0, 78.0, 13.5), "ka"))
    repo.save(_region("pc-25", "pc", (77.3, 12.8, 77.8, 13.2), "blr"))
    repo.save(_region("ac-151", "ac", (77.5, 12.9, 77.7, 13.1), "pc-25"))
    repo.save(_region("ward-12", "ward", (77.58, 12.96, 77.61, 12.99), "ac-151"))
    return repo


def _grievance(
    grievance_id: str,
    location: db_models.GeoPoint | None = None,
    district: str = "Bengaluru Urban",
    category: str = "roads",
) -> db_models.Grievance:
    return db_models.Grievance(
        id=grievance_id,
        title="Pothole",
        category=category,
        state="KA",
        district=district,
        location=location,
    )


def test_create_grievance_in_ward_assigns_full_hierarchy(
    region_repo: database.InMemoryRegionRepository,
) -> None:
    """Test that a grievance inside a ward gets every tier assigned."""
    repo = database.InMemoryGrievanceRepository()
    grievance = _grievance("g-1", db_models.GeoPoint(lon=77.59, lat=12.97))
    grievance.status = "closed"

    saved = grievances.create_grievance(repo, region_repo, grievance)

    assert saved.status == "open"
    assert saved.created_at is not None
    assert saved.regions == db_models.HierarchyAssignment(
        ward="ward-12",
        ac="ac-151",
        pc="pc-25",
        district="blr",
        state="ka",
    )
    assert repo.get("g-1") is saved


def test_create_grievance_district_only(
    region_repo: database.InMemoryRegionRepository,
) -> None:
    """Test that a point covered only by a district sets that tier alone."""
    saved = grievances.create_grievance(
        database.InMemoryGrievanceRepository(),
        region_repo,
        _grievance("g-1", db_models.GeoPoint(lon=77.1, lat=12.1)),
    )
    assert saved.regions == db_models.HierarchyAssignment(district="blr")


def test_create_grievance_without_location(
    region_repo: database.InMemoryRegionRepository,
) -> None:
    """Test that a grievance without location is saved unassigned."""
    saved = grievances.create_grievance(
        database.InMemoryGrievanceRepository(),
        region_repo,
        _grievance("g-1"),
    )
    assert saved.regions == db_models.HierarchyAssignment()
    assert saved.status == "open"


def test_list_grievances_filters_and_orders_newest_first() -> None:
    """Test district/category filtering and newest-first ordering."""
    repo = database.InMemoryGrievanceRepository()
    base = datetime.datetime(2024, 1, 1, tzinfo=datetime.UTC)
    for offset, (district, category) in enumerate(
        [("A", "roads"), ("B", "roads"), ("A", "water"), ("A", "roads")]
    ):
        grievance = _grievance(f"g-{offset}", district=district, category=category)
        grievance.created_at = base + datetime.timedelta(hours=offset)
        repo.save(grievance)

    assert [g.id for g in grievances.list_grievances(repo)] == [
        "g-3",
        "g-2",
        "g-1",
        "g-0",
    ]
    assert [g.id for g in grievances.list_grievances(repo, district="A")] == [
        "g-3",
        "g-2",
        "g-0",
    ]
    assert [
        g.id for g in grievances.list_grievances(repo, "A", "roads")
    ] == ["g-3", "g-0"]
    assert [g.id for g in grievances.list_grievances(repo, category="water")] == [
        "g-2"
    ]


def test_list_grievances_pages() -> None:
    """Test zero-based paging over the newest-first listing."""
    repo = database.InMemoryGrievanceRepository()
    base = datetime.datetime(2024, 1, 1, tzinfo=datetime.UTC)
    for index in range(5):
        grievance = _grievance(f"g-{index}")
        grievance.created_at = base + datetime.timedelta(minutes=index)
        repo.save(grievance)

    assert [g.id for g in grievances.list_grievances(repo, page=0, size=2)] == [
        "g-4",
        "g-3",
    ]
    assert [g.id for g in grievances.list_grievances(repo, page=2, size=2)] == [
        "g-0"
    ]
    assert grievances.list_grievances(repo, page=3, size=2) == []


def test_postgres_grievance_repository_to_row() -> None:
    """Test converting a Grievance to a database row."""
    grievance = _grievance("g-1", db_models.GeoPoint(lon=77.59, lat=12.97))
    grievance.regions = db_models.HierarchyAssignment(ward="ward-12", state="ka")
    row = database.PostgresGrievanceRepository._to_row(grievance)
    assert row["lon"] == 77.59
    assert row["lat"] == 12.97
    assert row["region_ward_id"] == "ward-12"
    assert row["region_state_id"] == "ka"
    assert row["region_pc_id"] is None


def test_postgres_grievance_repository_to_row_without_location() -> None:
    """Test that a missing location becomes NULL coordinates."""
    row = database.PostgresGrievanceRepository._to_row(_grievance("g-1"))
    assert row["lon"] is None
    assert row["lat"] is None


def test_postgres_grievance_repository_from_row() -> None:
    """Test converting a database row to a Grievance."""
    created = datetime.datetime(2024, 1, 1, tzinfo=datetime.UTC)
    row: dict[str, object] = {
        "id": "g-1",
        "title": "Pothole",
        "description": None,
        "category": "roads",
        "state": "KA",
        "district": "Bengaluru Urban",
        "status": "open",
        "lon": 77.59,
        "lat": 12.97,
        "region_ward_id": "ward-12",
        "region_ac_id": None,
        "region_pc_id": None,
        "region_district_id": "blr",
        "region_state_id": None,
        "created_at": created,
    }
    grievance = database.PostgresGrievanceRepository._from_row(row)
    assert grievance.location == db_models.GeoPoint(lon=77.59, lat=12.97)
    assert grievance.regions == db_models.HierarchyAssignment(
        ward="ward-12", district="blr"
    )
    assert grievance.created_at == created

    row.update(lon=None, lat=None)
    assert database.PostgresGrievanceRepository._from_row(row).location is None


def test_get_grievance_repository_mocked(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test the grievance repository factory without a database."""

    class FakeRepo:
        def __init__(self, settings: object) -> None:
            self.settings = settings

    monkeypatch.setattr(database, "PostgresGrievanceRepository", FakeRepo)
    settings = object()
    repo = database.get_grievance_repository(settings)  # type: ignore[arg-type]
    assert isinstance(repo, FakeRepo)
    assert repo.settings is settings
