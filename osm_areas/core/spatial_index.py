"""Bounding-box range index over DuckDB for candidate area retrieval."""
from typing import Callable, Iterable, List, Set, Tuple

from osm_areas.core.models import BoundingBox, Point

TABLE_NAME = "areas_rtree"


class SpatialIndex:
    """
    Range index of (area id, bounding box) entries.

    Queries return every entry whose box overlaps the query box (inclusive).
    This is a superset filter; callers re-check distance or containment on
    the returned rows. Entries are written once at ingestion time.
    """

    def __init__(self, cursor: Callable):
        """
        Args:
            cursor: Callable returning the DuckDB cursor of the calling thread
                (DuckDBStore.cursor)
        """
        self.cursor = cursor

    @staticmethod
    def create_table(conn):
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                id INTEGER PRIMARY KEY,
                min_lat DOUBLE NOT NULL,
                max_lat DOUBLE NOT NULL,
                min_lng DOUBLE NOT NULL,
                max_lng DOUBLE NOT NULL
            )
        """)
        conn.execute(f"CREATE INDEX IF NOT EXISTS idx_rtree_lat ON {TABLE_NAME}(min_lat, max_lat)")
        conn.execute(f"CREATE INDEX IF NOT EXISTS idx_rtree_lng ON {TABLE_NAME}(min_lng, max_lng)")

    def insert(self, area_id: int, bbox: BoundingBox):
        self.insert_many([(area_id, bbox)])

    def insert_many(self, entries: Iterable[Tuple[int, BoundingBox]]):
        rows = [
            (area_id, bbox.min_lat, bbox.max_lat, bbox.min_lng, bbox.max_lng)
            for area_id, bbox in entries
        ]
        if not rows:
            return
        self.cursor().executemany(
            f"""
            INSERT INTO {TABLE_NAME} (id, min_lat, max_lat, min_lng, max_lng)
            VALUES (?, ?, ?, ?, ?)
            """,
            rows
        )

    def clear(self):
        self.cursor().execute(f"DELETE FROM {TABLE_NAME}")

    def query_ordered(self, bbox: BoundingBox) -> List[int]:
        """Ids of entries overlapping the box, ascending."""
        rows = self.cursor().execute(
            f"""
            SELECT id FROM {TABLE_NAME}
            WHERE max_lat >= ? AND min_lat <= ?
              AND max_lng >= ? AND min_lng <= ?
            ORDER BY id
            """,
            [bbox.min_lat, bbox.max_lat, bbox.min_lng, bbox.max_lng]
        ).fetchall()
        return [row[0] for row in rows]

    def query(self, bbox: BoundingBox) -> Set[int]:
        """Ids of entries overlapping the box."""
        return set(self.query_ordered(bbox))

    def query_point(self, point: Point) -> List[int]:
        """Ids of entries whose box contains the point, ascending."""
        return self.query_ordered(BoundingBox.from_point(point))

    def count(self) -> int:
        return self.cursor().execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0]
