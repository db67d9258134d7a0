"""DuckDB storage layer for area data and its indexes."""
import threading
import duckdb
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import geopandas as gpd
import pandas as pd
from osm_areas.core.config import DUCKDB_PATH
from osm_areas.core.geometry import centroid
from osm_areas.core.models import Area, BoundingBox, Point, SearchIndexEntry, geometry_from_shapely
from osm_areas.core.normalization import index_trigrams
from osm_areas.core.spatial_index import SpatialIndex
from osm_areas.utils.logging import log_structured
from osm_areas.utils.timing import time_function

AREA_COLUMNS = [
    "id", "osm_id", "osm_type", "place_type", "name", "names_json",
    "center_lat", "center_lng", "polygon_json", "postal_code",
    "country_code", "country_name", "parent_city", "parent_municipality",
    "bbox_min_lat", "bbox_max_lat", "bbox_min_lng", "bbox_max_lng",
]

# Search index fields carrying trigrams, mapped to their areas_fts column
SEARCH_FIELDS = ("name", "name_normalized", "postal_code", "all_names")


def _clean(value: Any) -> Any:
    """Map pandas missing values to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


class DuckDBStore:
    """DuckDB storage manager for areas, the spatial index and the search index."""

    def __init__(self, db_path: Optional[Path] = None, read_only: bool = False):
        """
        Initialize DuckDB connection.

        Args:
            db_path: Path to DuckDB database file (":memory:" for a scratch store)
            read_only: Open a published database for serving only
        """
        self.db_path = db_path or DUCKDB_PATH
        self.read_only = read_only

        if str(self.db_path) != ":memory:" and not read_only:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = duckdb.connect(str(self.db_path), read_only=read_only)
        if not read_only:
            self._init_schema()
        self._local = threading.local()
        self._cursors = []
        self._cursors_lock = threading.Lock()
        self.spatial_index = SpatialIndex(self.cursor)

    def _init_schema(self):
        """Initialize database schema."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS areas (
                id INTEGER PRIMARY KEY,
                osm_id BIGINT NOT NULL,
                osm_type VARCHAR NOT NULL,
                place_type VARCHAR NOT NULL,
                name VARCHAR NOT NULL,
                names_json TEXT,
                center_lat DOUBLE NOT NULL,
                center_lng DOUBLE NOT NULL,
                polygon_json TEXT,
                postal_code VARCHAR,
                country_code VARCHAR,
                country_name VARCHAR,
                parent_city VARCHAR,
                parent_municipality VARCHAR,
                bbox_min_lat DOUBLE,
                bbox_max_lat DOUBLE,
                bbox_min_lng DOUBLE,
                bbox_max_lng DOUBLE,
                UNIQUE (osm_type, osm_id, postal_code)
            )
        """)

        SpatialIndex.create_table(self.conn)

        # Text search index: one row per area plus its trigrams per field
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS areas_fts (
                area_id INTEGER PRIMARY KEY,
                name VARCHAR,
                name_normalized VARCHAR,
                postal_code VARCHAR,
                all_names VARCHAR
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS areas_trigrams (
                area_id INTEGER NOT NULL,
                field VARCHAR NOT NULL,
                gram VARCHAR NOT NULL
            )
        """)

        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_areas_osm ON areas(osm_type, osm_id)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_areas_country ON areas(country_code)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_trigrams_gram ON areas_trigrams(field, gram)")

    def cursor(self):
        """
        Cursor owned by the calling thread, created on first use.

        A DuckDB connection is not safe to share between threads; each thread
        queries through its own cursor on the shared database.
        """
        cursor = getattr(self._local, "cursor", None)
        if cursor is None:
            with self._cursors_lock:
                cursor = self.conn.cursor()
                self._cursors.append(cursor)
            self._local.cursor = cursor
        return cursor

    # Write path

    def insert_areas(self, areas: Sequence[Area]) -> List[int]:
        """
        Insert area rows, assigning ids after the current maximum.

        Args:
            areas: Areas to insert; their id attribute is set in place

        Returns:
            Assigned ids in input order
        """
        if not areas:
            return []

        next_id = self.cursor().execute("SELECT COALESCE(MAX(id), 0) FROM areas").fetchone()[0] + 1

        rows = []
        for offset, area in enumerate(areas):
            area.id = next_id + offset
            rows.append(tuple(getattr(area, column) for column in AREA_COLUMNS))

        placeholders = ", ".join("?" for _ in AREA_COLUMNS)
        self.cursor().executemany(
            f"INSERT INTO areas ({', '.join(AREA_COLUMNS)}) VALUES ({placeholders})",
            rows
        )

        log_structured("info", "Inserted areas", count=len(rows), first_id=next_id)
        return [area.id for area in areas]

    def ingest_geojson(
        self,
        gdf: gpd.GeoDataFrame,
        name_field: str = "name",
        place_field: str = "place",
        default_place_type: str = "suburb"
    ) -> int:
        """
        Ingest area features from a GeoDataFrame.

        Polygon and MultiPolygon rows keep their geometry; Point rows become
        point-only areas. Columns named name:<lang> become name translations.
        Optional columns: osm_id, osm_type, postal_code, country_code,
        country_name, parent_city, parent_municipality.

        Args:
            gdf: GeoDataFrame to ingest
            name_field: Field name containing feature names
            place_field: Field name containing the place type
            default_place_type: Place type for rows without one

        Returns:
            Number of inserted areas
        """
        # Ensure WGS84
        if gdf.crs is not None and gdf.crs != "EPSG:4326":
            gdf = gdf.to_crs("EPSG:4326")

        translation_fields = [c for c in gdf.columns if str(c).startswith(f"{name_field}:")]

        areas = []
        skipped = 0
        for idx, row in gdf.iterrows():
            geom = row.geometry
            name = _clean(row.get(name_field))
            if geom is None or geom.is_empty or not name:
                skipped += 1
                continue

            names = {"default": str(name)}
            for column in translation_fields:
                value = _clean(row.get(column))
                if value:
                    names[column[len(name_field) + 1:]] = str(value)

            if geom.geom_type in ("Polygon", "MultiPolygon"):
                polygon = geometry_from_shapely(geom)
                center = centroid(polygon)
                default_type = "relation" if geom.geom_type == "MultiPolygon" else "way"
            elif geom.geom_type == "Point":
                polygon = None
                center = Point(lat=geom.y, lng=geom.x)
                default_type = "node"
            else:
                log_structured(
                    "warning",
                    "Skipping feature with unsupported geometry",
                    feature_index=str(idx),
                    geom_type=geom.geom_type,
                )
                skipped += 1
                continue

            osm_id = _clean(row.get("osm_id"))
            areas.append(Area.create(
                osm_id=int(osm_id) if osm_id is not None else int(idx),
                osm_type=_clean(row.get("osm_type")) or default_type,
                place_type=_clean(row.get(place_field)) or default_place_type,
                names=names,
                center=center,
                polygon=polygon,
                postal_code=self._postal_value(row.get("postal_code")),
                country_code=_clean(row.get("country_code")) or "",
                country_name=_clean(row.get("country_name")) or "",
                parent_city=_clean(row.get("parent_city")),
                parent_municipality=_clean(row.get("parent_municipality")),
            ))

        self.insert_areas(areas)
        log_structured("info", "Ingested GeoJSON areas", inserted=len(areas), skipped=skipped)
        return len(areas)

    def ingest_places_csv(
        self,
        csv_path: Path,
        lon_field: str = "lon",
        lat_field: str = "lat",
        name_field: str = "name",
        place_field: str = "place",
        default_place_type: str = "neighbourhood"
    ) -> int:
        """
        Ingest point-only places from a CSV file.

        Args:
            csv_path: Path to CSV file
            lon_field: Longitude field name
            lat_field: Latitude field name
            name_field: Name field name
            place_field: Place type field name
            default_place_type: Place type for rows without one

        Returns:
            Number of inserted areas
        """
        df = pd.read_csv(csv_path, dtype={"postal_code": str})

        areas = []
        for idx, row in df.iterrows():
            name = _clean(row.get(name_field))
            if not name:
                continue

            osm_id = _clean(row.get("osm_id"))
            areas.append(Area.create(
                osm_id=int(osm_id) if osm_id is not None else int(idx),
                osm_type=_clean(row.get("osm_type")) or "node",
                place_type=_clean(row.get(place_field)) or default_place_type,
                names={"default": str(name)},
                center=Point(lat=float(row[lat_field]), lng=float(row[lon_field])),
                postal_code=self._postal_value(row.get("postal_code")),
                country_code=_clean(row.get("country_code")) or "",
                country_name=_clean(row.get("country_name")) or "",
                parent_city=_clean(row.get("parent_city")),
                parent_municipality=_clean(row.get("parent_municipality")),
            ))

        self.insert_areas(areas)
        log_structured("info", "Ingested places CSV", path=str(csv_path), inserted=len(areas))
        return len(areas)

    @staticmethod
    def _postal_value(value: Any) -> Optional[str]:
        value = _clean(value)
        if value is None or value == "":
            return None
        return str(value)

    @time_function
    def build_spatial_index(self) -> int:
        """
        Rebuild the bounding-box index from the areas table.

        Areas without a polygon bbox are indexed by their center point.
        """
        self.spatial_index.clear()

        entries = []
        for area in self.iter_areas():
            bbox = area.bbox or BoundingBox.from_point(area.center)
            entries.append((area.id, bbox))

        self.spatial_index.insert_many(entries)
        log_structured("info", "Built spatial index", entries=len(entries))
        return len(entries)

    @time_function
    def build_search_index(self) -> int:
        """Rebuild the text search index (areas_fts + areas_trigrams)."""
        self.cursor().execute("DELETE FROM areas_trigrams")
        self.cursor().execute("DELETE FROM areas_fts")

        fts_rows = []
        gram_rows = []
        for area in self.iter_areas():
            entry = SearchIndexEntry.from_area(area)
            fts_rows.append((
                entry.area_id,
                entry.name,
                entry.name_normalized,
                entry.postal_code,
                entry.all_names,
            ))
            for field in SEARCH_FIELDS:
                for gram in index_trigrams(getattr(entry, field)):
                    gram_rows.append((entry.area_id, field, gram))

        if fts_rows:
            self.cursor().executemany(
                """
                INSERT INTO areas_fts (area_id, name, name_normalized, postal_code, all_names)
                VALUES (?, ?, ?, ?, ?)
                """,
                fts_rows
            )
        if gram_rows:
            self.cursor().executemany(
                "INSERT INTO areas_trigrams (area_id, field, gram) VALUES (?, ?, ?)",
                gram_rows
            )

        log_structured("info", "Built search index", entries=len(fts_rows), trigrams=len(gram_rows))
        return len(fts_rows)

    # Read path

    @staticmethod
    def _row_to_area(row: Tuple) -> Area:
        return Area(**dict(zip(AREA_COLUMNS, row)))

    def iter_areas(self) -> Iterable[Area]:
        rows = self.cursor().execute(
            f"SELECT {', '.join(AREA_COLUMNS)} FROM areas ORDER BY id"
        ).fetchall()
        for row in rows:
            yield self._row_to_area(row)

    def get_areas(self, ids: Sequence[int]) -> List[Area]:
        """
        Area rows by id, in the order of the given ids.

        Unknown ids are ignored.
        """
        if not ids:
            return []

        placeholders = ", ".join("?" for _ in ids)
        rows = self.cursor().execute(
            f"SELECT {', '.join(AREA_COLUMNS)} FROM areas WHERE id IN ({placeholders})",
            list(ids)
        ).fetchall()
        by_id = {row[0]: self._row_to_area(row) for row in rows}
        return [by_id[i] for i in ids if i in by_id]

    def get_area(self, area_id: int) -> Optional[Area]:
        areas = self.get_areas([area_id])
        return areas[0] if areas else None

    def get_areas_by_feature(self, osm_type: str, osm_id: int) -> List[Area]:
        """All postal-code rows of one physical feature, ordered by id."""
        rows = self.cursor().execute(
            f"""
            SELECT {', '.join(AREA_COLUMNS)} FROM areas
            WHERE osm_type = ? AND osm_id = ?
            ORDER BY id
            """,
            [osm_type, osm_id]
        ).fetchall()
        return [self._row_to_area(row) for row in rows]

    def search_contains(
        self,
        terms: Sequence[Tuple[str, str]],
        limit: int,
        country_code: Optional[str] = None
    ) -> List[Area]:
        """
        Areas whose search-index field contains any of the terms.

        Candidates come from the trigram table (every trigram of the term must
        be present) and are verified with a case-insensitive substring check.

        Args:
            terms: (field, term) pairs; field is one of SEARCH_FIELDS and term
                must have at least 3 characters
            limit: Maximum rows
            country_code: Optional country filter

        Returns:
            Matching areas ordered by id
        """
        subqueries = []
        params: List[Any] = []
        for field, term in terms:
            if field not in SEARCH_FIELDS:
                raise ValueError(f"Unknown search field: {field}")
            grams = sorted(index_trigrams(term))
            if not grams:
                continue

            gram_placeholders = ", ".join("?" for _ in grams)
            subqueries.append(f"""
                SELECT t.area_id
                FROM areas_trigrams t
                JOIN areas_fts f ON f.area_id = t.area_id
                WHERE t.field = ? AND t.gram IN ({gram_placeholders})
                  AND contains(lower(f.{field}), ?)
                GROUP BY t.area_id
                HAVING COUNT(DISTINCT t.gram) = ?
            """)
            params.extend([field, *grams, term.lower(), len(grams)])

        if not subqueries:
            return []

        sql = f"""
            SELECT {', '.join('a.' + c for c in AREA_COLUMNS)}
            FROM areas a
            WHERE a.id IN ({' UNION '.join(subqueries)})
        """
        if country_code:
            sql += " AND a.country_code = ?"
            params.append(country_code)
        sql += " ORDER BY a.id LIMIT ?"
        params.append(limit)

        rows = self.cursor().execute(sql, params).fetchall()
        return [self._row_to_area(row) for row in rows]

    def search_prefix(
        self,
        prefix: str,
        limit: int,
        country_code: Optional[str] = None,
        field: str = "name_normalized"
    ) -> List[Area]:
        """
        Areas whose search-index field starts with the prefix.

        The name field is compared lower-cased.
        """
        if field == "name_normalized":
            column = "f.name_normalized"
        elif field == "name":
            column = "lower(f.name)"
        else:
            raise ValueError(f"Unsupported prefix field: {field}")

        sql = f"""
            SELECT {', '.join('a.' + c for c in AREA_COLUMNS)}
            FROM areas a
            JOIN areas_fts f ON f.area_id = a.id
            WHERE starts_with({column}, ?)
        """
        params: List[Any] = [prefix.lower()]
        if country_code:
            sql += " AND a.country_code = ?"
            params.append(country_code)
        sql += " ORDER BY a.id LIMIT ?"
        params.append(limit)

        rows = self.cursor().execute(sql, params).fetchall()
        return [self._row_to_area(row) for row in rows]

    def countries(self) -> List[str]:
        """Distinct country codes present in the areas table."""
        rows = self.cursor().execute(
            "SELECT DISTINCT country_code FROM areas ORDER BY country_code"
        ).fetchall()
        return [row[0] for row in rows]

    def stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        total = self.cursor().execute("SELECT COUNT(*) FROM areas").fetchone()[0]
        countries = self.cursor().execute(
            "SELECT COUNT(DISTINCT country_code) FROM areas"
        ).fetchone()[0]
        postal_codes = self.cursor().execute(
            "SELECT COUNT(DISTINCT postal_code) FROM areas WHERE postal_code IS NOT NULL"
        ).fetchone()[0]
        cities = self.cursor().execute(
            "SELECT COUNT(DISTINCT parent_city) FROM areas WHERE parent_city IS NOT NULL"
        ).fetchone()[0]

        return {
            "total_areas": total,
            "countries_count": countries,
            "postal_codes_count": postal_codes,
            "cities_count": cities,
        }

    def close(self):
        """Close thread cursors and the database connection."""
        with self._cursors_lock:
            for cursor in self._cursors:
                cursor.close()
            self._cursors.clear()
        self.conn.close()
