"""Pytest configuration and fixtures."""
import math
import os
import shutil
import tempfile
from pathlib import Path

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

from osm_areas.core.duckdb_store import DuckDBStore
from osm_areas.core.engine import AreaEngine
from osm_areas.core.geometry import EARTH_RADIUS_METERS
from osm_areas.core.models import Area, Point


@pytest.fixture
def temp_db():
    """Create temporary DuckDB database."""
    temp_dir = tempfile.mkdtemp()
    db_path = Path(temp_dir) / "test.duckdb"
    db_store = DuckDBStore(db_path)
    yield db_store
    db_store.close()
    shutil.rmtree(temp_dir)


@pytest.fixture
def helsinki():
    return Point(lat=60.1699, lng=24.9384)


@pytest.fixture
def offset_point():
    """Great-circle destination of an origin moved along a bearing."""
    def _offset(origin: Point, bearing: float, distance_meters: float) -> Point:
        angular = distance_meters / EARTH_RADIUS_METERS
        theta = math.radians(bearing)
        lat1 = math.radians(origin.lat)
        lng1 = math.radians(origin.lng)

        lat2 = math.asin(
            math.sin(lat1) * math.cos(angular)
            + math.cos(lat1) * math.sin(angular) * math.cos(theta)
        )
        lng2 = lng1 + math.atan2(
            math.sin(theta) * math.sin(angular) * math.cos(lat1),
            math.cos(angular) - math.sin(lat1) * math.sin(lat2)
        )
        return Point(lat=math.degrees(lat2), lng=math.degrees(lng2))

    return _offset


@pytest.fixture
def make_area():
    """Build a point-only (or polygon) area row with test defaults."""
    def _make(name, center, osm_id, postal_code=None, polygon=None, osm_type="node", **kwargs):
        return Area.create(
            osm_id=osm_id,
            osm_type=osm_type,
            place_type=kwargs.pop("place_type", "suburb"),
            names=kwargs.pop("names", {"default": name}),
            center=center,
            polygon=polygon,
            postal_code=postal_code,
            country_code=kwargs.pop("country_code", "FI"),
            country_name=kwargs.pop("country_name", "Finland"),
            **kwargs
        )

    return _make


@pytest.fixture
def indexed_store(temp_db):
    """Insert areas into the temporary store and build both indexes."""
    def _build(areas):
        temp_db.insert_areas(areas)
        temp_db.build_spatial_index()
        temp_db.build_search_index()
        return temp_db

    return _build


@pytest.fixture
def sample_area_polygons():
    """Sample Helsinki district polygons as a GeoDataFrame."""
    rows = [
        {
            "osm_id": 1001, "osm_type": "relation", "place": "suburb",
            "name": "Kallio", "name:sv": "Berghäll", "postal_code": "00530",
            "country_code": "FI", "country_name": "Finland", "parent_city": "Helsinki",
            "geometry": box(24.940, 60.178, 24.960, 60.190),
        },
        {
            "osm_id": 1001, "osm_type": "relation", "place": "suburb",
            "name": "Kallio", "name:sv": "Berghäll", "postal_code": "00510",
            "country_code": "FI", "country_name": "Finland", "parent_city": "Helsinki",
            "geometry": box(24.940, 60.178, 24.960, 60.190),
        },
        {
            "osm_id": 1002, "osm_type": "relation", "place": "suburb",
            "name": "Kivistö", "name:sv": None, "postal_code": "01700",
            "country_code": "FI", "country_name": "Finland", "parent_city": "Vantaa",
            "geometry": box(24.830, 60.310, 24.866, 60.326),
        },
        {
            "osm_id": 1003, "osm_type": "relation", "place": "neighbourhood",
            "name": "Punavuori", "name:sv": "Rödbergen", "postal_code": "00120",
            "country_code": "FI", "country_name": "Finland", "parent_city": "Helsinki",
            "geometry": box(24.930, 60.155, 24.946, 60.167),
        },
    ]
    return gpd.GeoDataFrame(rows, crs="EPSG:4326")


@pytest.fixture
def sample_places():
    """Sample point-only places."""
    places = [
        {"osm_id": 2001, "name": "Kamppi", "lat": 60.168, "lon": 24.931, "place": "neighbourhood",
         "postal_code": "00100", "country_code": "FI", "country_name": "Finland"},
        {"osm_id": 2002, "name": "Kallhäll", "lat": 59.455, "lon": 17.805, "place": "suburb",
         "postal_code": "17740", "country_code": "SE", "country_name": "Sweden"},
    ]
    return pd.DataFrame(places)


@pytest.fixture
def populated_db(temp_db, sample_area_polygons, sample_places):
    """Create database with sample data and built indexes."""
    temp_db.ingest_geojson(sample_area_polygons)

    temp_csv = tempfile.NamedTemporaryFile(mode="w", suffix=".csv", delete=False)
    temp_csv.close()
    sample_places.to_csv(temp_csv.name, index=False)
    temp_db.ingest_places_csv(Path(temp_csv.name))
    os.unlink(temp_csv.name)

    temp_db.build_spatial_index()
    temp_db.build_search_index()
    return temp_db


@pytest.fixture
def engine(populated_db):
    """Create engine with populated database."""
    return AreaEngine(populated_db)
