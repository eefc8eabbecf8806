"""Database helpers and repositories for region and grievance records."""

from __future__ import annotations

import datetime
import json
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, cast

import psycopg2
import psycopg2.extensions
import psycopg2.extras
from shapely import geometry as shapely_geometry

from regionmap.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterable

    from regionmap.core import config


T = TypeVar("T")


def _cast(value: object, dtype: type[T]) -> T | None:  # type: ignore[misc]
    """Cast a value to a specific type, returning None if value is None."""
    if value is None:
        return None

    return cast(T, value)


def as_multipolygon(
    geom: shapely_geometry.base.BaseGeometry,
) -> shapely_geometry.MultiPolygon:
    """Wrap a Polygon as a one-member MultiPolygon, pass MultiPolygons on."""
    if isinstance(geom, shapely_geometry.MultiPolygon):
        return geom
    if isinstance(geom, shapely_geometry.Polygon):
        return shapely_geometry.MultiPolygon([geom])
    raise ValueError(f"Expected polygonal geometry, got {geom.geom_type}")


class RegionRepositoryProtocol(Protocol):
    """Protocol interface for storing and querying region records.

    Implementations provide persistence for Region objects, supporting both
    in-memory (testing) and PostGIS (production) backends. Reads are
    side-effect free; the store is assumed to be externally synchronized.
    """

    def save(self, region: db_models.Region) -> db_models.Region: ...

    def get(self, region_id: str) -> db_models.Region | None: ...

    def all(self) -> Iterable[db_models.Region]: ...

    def find_by_type(
        self,
        region_type: str,
        state: str | None = None,
    ) -> list[db_models.Region]: ...

    def search_by_name(self, query: str) -> list[db_models.Region]: ...

    def find_intersecting(
        self,
        point: db_models.GeoPoint,
        region_type: str | None = None,
    ) -> list[db_models.Region]: ...


class InMemoryRegionRepository(RegionRepositoryProtocol):
    """Simple in-memory store for tests and local development.

    Regions are kept in insertion order, which is also the order
    find_intersecting reports matches in.
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory repository."""
        self._store: dict[str, db_models.Region] = {}

    def save(self, region: db_models.Region) -> db_models.Region:
        """Add a region or replace the stored record with the same id.

        Args:
            region: Region to store.

        Returns:
            The stored region.
        """
        if region.created_at is None:
            region.created_at = datetime.datetime.now(tz=datetime.UTC)
        self._store[region.id] = region
        return region

    def get(self, region_id: str) -> db_models.Region | None:
        return self._store.get(region_id)

    def all(self) -> Iterable[db_models.Region]:
        return self._store.values()

    def find_by_type(
        self,
        region_type: str,
        state: str | None = None,
    ) -> list[db_models.Region]:
        return [
            region
            for region in self._store.values()
            if region.type == region_type
            and (state is None or region.state == state)
        ]

    def search_by_name(self, query: str) -> list[db_models.Region]:
        needle = query.casefold()
        return [
            region
            for region in self._store.values()
            if needle in region.name.casefold()
        ]

    def find_intersecting(
        self,
        point: db_models.GeoPoint,
        region_type: str | None = None,
    ) -> list[db_models.Region]:
        """Return regions whose boundary contains or touches the point.

        Args:
            point: Query location.
            region_type: Optional tier filter.

        Returns:
            Matching regions in insertion order.
        """
        location = shapely_geometry.Point(point.lon, point.lat)
        return [
            region
            for region in self._store.values()
            if (region_type is None or region.type == region_type)
            and region.geometry.intersects(location)
        ]


class PostgresRegionRepository(RegionRepositoryProtocol):
    """PostgreSQL/PostGIS-backed repository for region records.

    Boundaries are stored as geometry(MultiPolygon, 4326) with a GiST index
    so that point containment runs as an indexed ST_Intersects query.
    Automatically creates the regions table and enables PostGIS on
    initialization.
    """

    CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS regions (
      id TEXT PRIMARY KEY,
      name TEXT NOT NULL,
      type TEXT NOT NULL,
      geom geometry(MultiPolygon, 4326) NOT NULL,
      bbox_minx DOUBLE PRECISION,
      bbox_miny DOUBLE PRECISION,
      bbox_maxx DOUBLE PRECISION,
      bbox_maxy DOUBLE PRECISION,
      centroid_lon DOUBLE PRECISION,
      centroid_lat DOUBLE PRECISION,
      parent_id TEXT,
      code TEXT,
      state TEXT,
      district TEXT,
      source TEXT,
      source_year INTEGER,
      verified BOOLEAN NOT NULL DEFAULT false,
      meta JSONB NOT NULL DEFAULT '{}'::jsonb,
      created_at TIMESTAMPTZ DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS regions_geom_idx ON regions USING GIST (geom);
    CREATE INDEX IF NOT EXISTS regions_type_state_idx ON regions (type, state);
    """

    SELECT_SQL = """
    SELECT id, name, type, ST_AsGeoJSON(geom) AS geojson,
           bbox_minx, bbox_miny, bbox_maxx, bbox_maxy,
           centroid_lon, centroid_lat, parent_id, code, state, district,
           source, source_year, verified, meta, created_at
    FROM regions
    """

    def __init__(self, settings: config.Settings) -> None:
        """Initialize repository with database settings.

        Args:
            settings: Application settings containing database connection URL.
        """
        self.settings = settings
        self._ensure_schema()

    def _connection(self) -> psycopg2.extensions.connection:
        return psycopg2.connect(self.settings.database_url)

    def _ensure_schema(self) -> None:
        """Ensure PostGIS extension and regions table exist."""
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute("CREATE EXTENSION IF NOT EXISTS postgis;")
            cur.execute(self.CREATE_TABLE_SQL)
            conn.commit()

    def _select(
        self,
        where: str,
        params: dict[str, object] | tuple[object, ...],
    ) -> list[db_models.Region]:
        with (
            self._connection() as conn,
            conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur,
        ):
            cur.execute(self.SELECT_SQL + where, params)
            return [
                self._from_row(cast(dict[str, object], row))
                for row in cur.fetchall()
            ]

    def save(self, region: db_models.Region) -> db_models.Region:
        """Insert a region or replace the whole stored record."""
        if region.created_at is None:
            region.created_at = datetime.datetime.now(tz=datetime.UTC)
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO regions (
                    id, name, type, geom,
                    bbox_minx, bbox_miny, bbox_maxx, bbox_maxy,
                    centroid_lon, centroid_lat, parent_id, code, state,
                    district, source, source_year, verified, meta, created_at
                ) VALUES (%(id)s, %(name)s, %(type)s,
                    ST_Multi(ST_SetSRID(ST_GeomFromGeoJSON(%(geojson)s), 4326)),
                    %(bbox_minx)s, %(bbox_miny)s, %(bbox_maxx)s, %(bbox_maxy)s,
                    %(centroid_lon)s, %(centroid_lat)s, %(parent_id)s,
                    %(code)s, %(state)s, %(district)s, %(source)s,
                    %(source_year)s, %(verified)s, %(meta)s, %(created_at)s)
                ON CONFLICT (id) DO UPDATE SET
                    name = EXCLUDED.name,
                    type = EXCLUDED.type,
                    geom = EXCLUDED.geom,
                    bbox_minx = EXCLUDED.bbox_minx,
                    bbox_miny = EXCLUDED.bbox_miny,
                    bbox_maxx = EXCLUDED.bbox_maxx,
                    bbox_maxy = EXCLUDED.bbox_maxy,
                    centroid_lon = EXCLUDED.centroid_lon,
                    centroid_lat = EXCLUDED.centroid_lat,
                    parent_id = EXCLUDED.parent_id,
                    code = EXCLUDED.code,
                    state = EXCLUDED.state,
                    district = EXCLUDED.district,
                    source = EXCLUDED.source,
                    source_year = EXCLUDED.source_year,
                    verified = EXCLUDED.verified,
                    meta = EXCLUDED.meta;
                """,
                self._to_row(region),
            )
            conn.commit()
        return region

    def get(self, region_id: str) -> db_models.Region | None:
        rows = self._select("WHERE id = %s", (region_id,))
        return rows[0] if rows else None

    def all(self) -> Iterable[db_models.Region]:
        return self._select("ORDER BY created_at", ())

    def find_by_type(
        self,
        region_type: str,
        state: str | None = None,
    ) -> list[db_models.Region]:
        if state is None:
            return self._select("WHERE type = %s", (region_type,))
        return self._select(
            "WHERE type = %s AND state = %s",
            (region_type, state),
        )

    def search_by_name(self, query: str) -> list[db_models.Region]:
        escaped = (
            query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        )
        return self._select("WHERE name ILIKE %s", (f"%{escaped}%",))

    def find_intersecting(
        self,
        point: db_models.GeoPoint,
        region_type: str | None = None,
    ) -> list[db_models.Region]:
        return self._select(
            """
            WHERE ST_Intersects(
                geom, ST_SetSRID(ST_MakePoint(%(lon)s, %(lat)s), 4326)
            )
            AND (%(type)s::text IS NULL OR type = %(type)s)
            """,
            {"lon": point.lon, "lat": point.lat, "type": region_type},
        )

    @staticmethod
    def _to_row(region: db_models.Region) -> dict[str, object]:
        """Convert a Region to a parameter dictionary for insertion.

        Args:
            region: Region to convert.

        Returns:
            Dictionary suitable for parameterized SQL insertion.
        """
        bbox = region.bbox or (None, None, None, None)
        centroid = region.centroid or (None, None)
        return {
            "id": region.id,
            "name": region.name,
            "type": region.type,
            "geojson": json.dumps(shapely_geometry.mapping(region.geometry)),
            "bbox_minx": bbox[0],
            "bbox_miny": bbox[1],
            "bbox_maxx": bbox[2],
            "bbox_maxy": bbox[3],
            "centroid_lon": centroid[0],
            "centroid_lat": centroid[1],
            "parent_id": region.parent_id,
            "code": region.code,
            "state": region.state,
            "district": region.district,
            "source": region.source,
            "source_year": region.source_year,
            "verified": region.verified,
            "meta": psycopg2.extras.Json(region.meta),
            "created_at": region.created_at,
        }

    @staticmethod
    def _from_row(row: dict[str, object]) -> db_models.Region:
        """Convert a query result row to a Region.

        Args:
            row: Dictionary from a RealDictCursor query.

        Returns:
            Region with geometry parsed from the ST_AsGeoJSON column.
        """
        bbox = (
            row.get("bbox_minx"),
            row.get("bbox_miny"),
            row.get("bbox_maxx"),
            row.get("bbox_maxy"),
        )
        if any(v is None for v in bbox):
            bbox_tuple = None
        else:
            bbox_tuple = tuple(float(cast(float, v)) for v in bbox)
        centroid = (row.get("centroid_lon"), row.get("centroid_lat"))
        if any(v is None for v in centroid):
            centroid_tuple = None
        else:
            centroid_tuple = tuple(float(cast(float, v)) for v in centroid)

        geojson = row["geojson"]
        if isinstance(geojson, str):
            geojson = json.loads(geojson)
        geometry = as_multipolygon(
            shapely_geometry.shape(cast(dict[str, Any], geojson))
        )
        source_year_value = row.get("source_year")
        source_year = (
            int(cast(int, source_year_value))
            if source_year_value is not None
            else None
        )

        return db_models.Region(
            id=str(row["id"]),
            name=str(row["name"]),
            type=cast(db_models.RegionType, str(row["type"])),
            geometry=geometry,
            bbox=bbox_tuple,  # type: ignore[arg-type]
            centroid=centroid_tuple,  # type: ignore[arg-type]
            parent_id=_cast(row.get("parent_id"), str),
            code=_cast(row.get("code"), str),
            state=_cast(row.get("state"), str),
            district=_cast(row.get("district"), str),
            source=_cast(row.get("source"), str),
            source_year=source_year,
            verified=bool(row.get("verified")),
            meta=_cast(row.get("meta"), dict) or {},
            created_at=_cast(row.get("created_at"), datetime.datetime),
        )


def get_region_repository(
    settings: config.Settings,
) -> RegionRepositoryProtocol:
    """Factory function to create a region repository.

    Args:
        settings: Application settings for database connection.

    Returns:
        PostgresRegionRepository instance for production use.
    """
    return PostgresRegionRepository(settings)


class GrievanceRepositoryProtocol(Protocol):
    """Protocol interface for storing and listing grievances.

    Listings are ordered newest first and paged with offset/limit.
    """

    def save(self, grievance: db_models.Grievance) -> db_models.Grievance: ...

    def get(self, grievance_id: str) -> db_models.Grievance | None: ...

    def find(
        self,
        district: str | None = None,
        category: str | None = None,
        *,
        offset: int = 0,
        limit: int = 20,
    ) -> list[db_models.Grievance]: ...


class InMemoryGrievanceRepository(GrievanceRepositoryProtocol):
    """Simple in-memory grievance store for tests and local development."""

    def __init__(self) -> None:
        """Initialize an empty in-memory repository."""
        self._store: dict[str, db_models.Grievance] = {}

    def save(self, grievance: db_models.Grievance) -> db_models.Grievance:
        if grievance.created_at is None:
            grievance.created_at = datetime.datetime.now(tz=datetime.UTC)
        self._store[grievance.id] = grievance
        return grievance

    def get(self, grievance_id: str) -> db_models.Grievance | None:
        return self._store.get(grievance_id)

    def find(
        self,
        district: str | None = None,
        category: str | None = None,
        *,
        offset: int = 0,
        limit: int = 20,
    ) -> list[db_models.Grievance]:
        """Return matching grievances, newest first.

        Grievances created at the same instant are listed latest-saved first.
        """
        matches = [
            grievance
            for grievance in reversed(self._store.values())
            if (district is None or grievance.district == district)
            and (category is None or grievance.category == category)
        ]
        matches.sort(
            key=lambda g: g.created_at or datetime.datetime.min.replace(
                tzinfo=datetime.UTC
            ),
            reverse=True,
        )
        return matches[offset : offset + limit]


class PostgresGrievanceRepository(GrievanceRepositoryProtocol):
    """PostgreSQL/PostGIS-backed grievance store.

    The location is kept as a geometry(Point, 4326) and the resolved region
    identifiers as plain text columns, so grievances can later be joined
    against the regions table.
    """

    CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS grievances (
      id TEXT PRIMARY KEY,
      title TEXT NOT NULL,
      description TEXT,
      category TEXT NOT NULL,
      state TEXT NOT NULL,
      district TEXT NOT NULL,
      status TEXT NOT NULL DEFAULT 'open',
      location geometry(Point, 4326),
      region_ward_id TEXT,
      region_ac_id TEXT,
      region_pc_id TEXT,
      region_district_id TEXT,
      region_state_id TEXT,
      created_at TIMESTAMPTZ DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS grievances_district_category_idx
      ON grievances (district, category);
    """

    SELECT_SQL = """
    SELECT id, title, description, category, state, district, status,
           ST_X(location) AS lon, ST_Y(location) AS lat,
           region_ward_id, region_ac_id, region_pc_id, region_district_id,
           region_state_id, created_at
    FROM grievances
    """

    def __init__(self, settings: config.Settings) -> None:
        """Initialize repository with database settings.

        Args:
            settings: Application settings containing database connection URL.
        """
        self.settings = settings
        self._ensure_schema()

    def _connection(self) -> psycopg2.extensions.connection:
        return psycopg2.connect(self.settings.database_url)

    def _ensure_schema(self) -> None:
        """Ensure PostGIS extension and grievances table exist."""
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute("CREATE EXTENSION IF NOT EXISTS postgis;")
            cur.execute(self.CREATE_TABLE_SQL)
            conn.commit()

    def _select(
        self,
        where: str,
        params: dict[str, object] | tuple[object, ...],
    ) -> list[db_models.Grievance]:
        with (
            self._connection() as conn,
            conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur,
        ):
            cur.execute(self.SELECT_SQL + where, params)
            return [
                self._from_row(cast(dict[str, object], row))
                for row in cur.fetchall()
            ]

    def save(self, grievance: db_models.Grievance) -> db_models.Grievance:
        """Insert a grievance or replace the stored record with the same id."""
        if grievance.created_at is None:
            grievance.created_at = datetime.datetime.now(tz=datetime.UTC)
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO grievances (
                    id, title, description, category, state, district,
                    status, location, region_ward_id, region_ac_id,
                    region_pc_id, region_district_id, region_state_id,
                    created_at
                ) VALUES (%(id)s, %(title)s, %(description)s, %(category)s,
                    %(state)s, %(district)s, %(status)s,
                    CASE WHEN %(lon)s::double precision IS NULL THEN NULL
                         ELSE ST_SetSRID(ST_MakePoint(%(lon)s, %(lat)s), 4326)
                    END,
                    %(region_ward_id)s, %(region_ac_id)s, %(region_pc_id)s,
                    %(region_district_id)s, %(region_state_id)s,
                    %(created_at)s)
                ON CONFLICT (id) DO UPDATE SET
                    title = EXCLUDED.title,
                    description = EXCLUDED.description,
                    category = EXCLUDED.category,
                    state = EXCLUDED.state,
                    district = EXCLUDED.district,
                    status = EXCLUDED.status,
                    location = EXCLUDED.location,
                    region_ward_id = EXCLUDED.region_ward_id,
                    region_ac_id = EXCLUDED.region_ac_id,
                    region_pc_id = EXCLUDED.region_pc_id,
                    region_district_id = EXCLUDED.region_district_id,
                    region_state_id = EXCLUDED.region_state_id;
                """,
                self._to_row(grievance),
            )
            conn.commit()
        return grievance

    def get(self, grievance_id: str) -> db_models.Grievance | None:
        rows = self._select("WHERE id = %s", (grievance_id,))
        return rows[0] if rows else None

    def find(
        self,
        district: str | None = None,
        category: str | None = None,
        *,
        offset: int = 0,
        limit: int = 20,
    ) -> list[db_models.Grievance]:
        return self._select(
            """
            WHERE (%(district)s::text IS NULL OR district = %(district)s)
            AND (%(category)s::text IS NULL OR category = %(category)s)
            ORDER BY created_at DESC
            LIMIT %(limit)s OFFSET %(offset)s
            """,
            {
                "district": district,
                "category": category,
                "limit": limit,
                "offset": offset,
            },
        )

    @staticmethod
    def _to_row(grievance: db_models.Grievance) -> dict[str, object]:
        """Convert a Grievance to a parameter dictionary for insertion."""
        location = grievance.location
        regions = grievance.regions
        return {
            "id": grievance.id,
            "title": grievance.title,
            "description": grievance.description,
            "category": grievance.category,
            "state": grievance.state,
            "district": grievance.district,
            "status": grievance.status,
            "lon": location.lon if location is not None else None,
            "lat": location.lat if location is not None else None,
            "region_ward_id": regions.ward,
            "region_ac_id": regions.ac,
            "region_pc_id": regions.pc,
            "region_district_id": regions.district,
            "region_state_id": regions.state,
            "created_at": grievance.created_at,
        }

    @staticmethod
    def _from_row(row: dict[str, object]) -> db_models.Grievance:
        """Convert a query result row to a Grievance."""
        lon = row.get("lon")
        lat = row.get("lat")
        location = (
            db_models.GeoPoint(
                lon=float(cast(float, lon)), lat=float(cast(float, lat))
            )
            if lon is not None and lat is not None
            else None
        )
        return db_models.Grievance(
            id=str(row["id"]),
            title=str(row["title"]),
            description=_cast(row.get("description"), str),
            category=str(row["category"]),
            state=str(row["state"]),
            district=str(row["district"]),
            status=str(row.get("status") or "open"),
            location=location,
            regions=db_models.HierarchyAssignment(
                ward=_cast(row.get("region_ward_id"), str),
                ac=_cast(row.get("region_ac_id"), str),
                pc=_cast(row.get("region_pc_id"), str),
                district=_cast(row.get("region_district_id"), str),
                state=_cast(row.get("region_state_id"), str),
            ),
            created_at=_cast(row.get("created_at"), datetime.datetime),
        )


def get_grievance_repository(
    settings: config.Settings,
) -> GrievanceRepositoryProtocol:
    """Factory function to create a grievance repository.

    Args:
        settings: Application settings for database connection.

    Returns:
        PostgresGrievanceRepository instance for production use.
    """
    return PostgresGrievanceRepository(settings)
