"""Area engine facade: the query interface exposed to API layers and scripts."""
from typing import Any, Dict, List, Optional, Union

from osm_areas.core.config import (
    DEFAULT_ADJACENT_LIMIT,
    DEFAULT_ADJACENT_RADIUS_M,
    DEFAULT_CONTAINING_LIMIT,
    DEFAULT_NEARBY_LIMIT,
    DEFAULT_NEARBY_RADIUS_M,
    DEFAULT_SEARCH_LIMIT,
    PROXIMITY_WEIGHT,
)
from osm_areas.core.duckdb_store import DuckDBStore
from osm_areas.core.models import (
    AdjacentSearchResult,
    AreaResult,
    GroupedAreaResult,
    Point,
    SearchResult,
)
from osm_areas.core.queries import QueryEngine, group_by_area
from osm_areas.core.search import SearchRanker
from osm_areas.utils.logging import log_structured
from osm_areas.utils.timing import Timer


class AreaEngine:
    """Spatial and text queries over a published area database."""

    def __init__(self, store: DuckDBStore):
        """
        Initialize engine.

        Args:
            store: DuckDBStore whose spatial and search indexes are built
        """
        self.store = store
        self.queries = QueryEngine(store)
        self.ranker = SearchRanker(store)

    def nearby(
        self,
        point: Point,
        radius_meters: float = DEFAULT_NEARBY_RADIUS_M,
        limit: int = DEFAULT_NEARBY_LIMIT,
        grouped: bool = False
    ) -> Union[List[AreaResult], List[GroupedAreaResult]]:
        """Areas within radius_meters of a point, nearest first."""
        with Timer("nearby", lat=point.lat, lng=point.lng, radius_meters=radius_meters):
            return self.queries.nearby(point, radius_meters, limit, grouped)

    def containing(
        self,
        point: Point,
        limit: int = DEFAULT_CONTAINING_LIMIT,
        grouped: bool = False
    ) -> Union[List[AreaResult], List[GroupedAreaResult]]:
        """Areas containing a point, closest center first."""
        with Timer("containing", lat=point.lat, lng=point.lng):
            return self.queries.containing(point, limit, grouped)

    def search(
        self,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        country_code: Optional[str] = None,
        bias: Optional[Point] = None,
        proximity_weight: float = PROXIMITY_WEIGHT
    ) -> List[SearchResult]:
        """Fuzzy search by name and/or postal code, best match first."""
        with Timer("search", query=query, country_code=country_code):
            return self.ranker.search(query, limit, country_code, bias, proximity_weight)

    def adjacent(
        self,
        query: Optional[str] = None,
        point: Optional[Point] = None,
        radius_meters: float = DEFAULT_ADJACENT_RADIUS_M,
        limit: int = DEFAULT_ADJACENT_LIMIT,
        country_code: Optional[str] = None
    ) -> AdjacentSearchResult:
        """
        Areas around a center area, by compass direction and level.

        The center is resolved from the query when one is given, otherwise
        from the point.

        Args:
            query: Name of the center area
            point: Coordinates inside or near the center area
            radius_meters: Search radius around the center
            limit: Maximum adjacent areas
            country_code: Country filter for resolving the query

        Returns:
            AdjacentSearchResult; center is None when nothing was resolved

        Raises:
            ValueError: If neither query nor point is given
        """
        if not query and point is None:
            raise ValueError("Either query or point is required")

        with Timer("adjacent", query=query, radius_meters=radius_meters):
            if query:
                center = self._center_from_query(query, country_code)
            else:
                center = self._center_from_point(point, radius_meters)

            if center is None:
                log_structured(
                    "info",
                    "No center area resolved for adjacency query",
                    query=query,
                    lat=point.lat if point else None,
                    lng=point.lng if point else None,
                )
                return AdjacentSearchResult(center=None)

            adjacent = self.queries.adjacent_to(center, radius_meters, limit)
            return AdjacentSearchResult(center=center, adjacent=adjacent)

    def _center_from_query(self, query: str, country_code: Optional[str]) -> Optional[GroupedAreaResult]:
        hits = self.ranker.search(query, 1, country_code)
        if not hits:
            return None

        best = hits[0].area
        rows = [AreaResult(area=best)]
        rows.extend(
            AreaResult(area=area)
            for area in self.store.get_areas_by_feature(best.osm_type, best.osm_id)
            if area.id != best.id
        )
        return group_by_area(rows)[0]

    def _center_from_point(self, point: Point, radius_meters: float) -> Optional[GroupedAreaResult]:
        containing = self.queries.containing(point, 1, grouped=True)
        if containing:
            return containing[0]

        nearby = self.queries.nearby(point, radius_meters, 1, grouped=True)
        return nearby[0] if nearby else None

    def countries(self) -> List[str]:
        return self.store.countries()

    def stats(self) -> Dict[str, Any]:
        """Database statistics plus the available country codes."""
        stats = self.store.stats()
        stats["countries"] = self.countries()
        return stats
