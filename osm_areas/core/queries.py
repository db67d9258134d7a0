"""Spatial queries over stored areas: nearby, containing and adjacent."""
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple, Union

from osm_areas.core.config import (
    CONTAINING_FALLBACK_RADIUS_M,
    CONTAINING_FALLBACK_THRESHOLD_M,
    CONTAINS_CENTER_RADIUS_M,
)
from osm_areas.core.geometry import (
    bearing_to_cardinal,
    bounding_box_from_radius,
    calculate_bearing,
    haversine_distance,
    point_in_polygon,
    round_bearing_to_sector,
)
from osm_areas.core.models import (
    AdjacentArea,
    Area,
    AreaResult,
    GroupedAreaResult,
    Point,
)
from osm_areas.utils.logging import log_structured


def group_by_area(results: Sequence[AreaResult]) -> List[GroupedAreaResult]:
    """
    Collapse per-postal-code rows into one result per physical area.

    Rows are grouped by (osm_type, osm_id). Postal codes are collected without
    duplicates in first-seen order and the minimum distance is kept. Output is
    sorted by that distance, ties keeping first-seen order.
    """
    groups: Dict[Tuple[str, int], GroupedAreaResult] = {}

    for result in results:
        key = result.area.key
        group = groups.get(key)
        if group is None:
            group = GroupedAreaResult(area=result.area, distance_meters=result.distance_meters)
            groups[key] = group
        elif result.distance_meters is not None and (
            group.distance_meters is None or result.distance_meters < group.distance_meters
        ):
            group.distance_meters = result.distance_meters

        postal_code = result.area.postal_code
        if postal_code and postal_code not in group.postal_codes:
            group.postal_codes.append(postal_code)

    return sorted(groups.values(), key=_distance_key)


def _distance_key(result) -> float:
    return result.distance_meters if result.distance_meters is not None else float("inf")


class QueryEngine:
    """
    Read-only spatial queries against a DuckDBStore.

    Candidates come from the store's bounding-box index and are re-checked
    with haversine distance or point-in-polygon before being returned.
    """

    def __init__(
        self,
        store,
        contains_center_radius: float = CONTAINS_CENTER_RADIUS_M,
        fallback_threshold: float = CONTAINING_FALLBACK_THRESHOLD_M,
        fallback_radius: float = CONTAINING_FALLBACK_RADIUS_M
    ):
        """
        Args:
            store: DuckDBStore with a built spatial index
            contains_center_radius: Areas without a polygon contain points
                closer than this to their center (meters)
            fallback_threshold: Containing falls back to nearby when no polygon
                match has its center within this distance (meters)
            fallback_radius: Radius of the nearby fallback (meters)
        """
        self.store = store
        self.contains_center_radius = contains_center_radius
        self.fallback_threshold = fallback_threshold
        self.fallback_radius = fallback_radius

    group_by_area = staticmethod(group_by_area)

    def _areas_in_radius(self, center: Point, radius_meters: float) -> List[AreaResult]:
        bbox = bounding_box_from_radius(center, radius_meters)
        ids = self.store.spatial_index.query_ordered(bbox)

        results = []
        for area in self.store.get_areas(ids):
            distance = haversine_distance(center, area.center)
            if distance <= radius_meters:
                results.append(AreaResult(area=area, distance_meters=distance))

        # list.sort is stable: equal distances keep candidate (id) order
        results.sort(key=_distance_key)
        return results

    def nearby(
        self,
        center: Point,
        radius_meters: float,
        limit: int,
        grouped: bool = False
    ) -> Union[List[AreaResult], List[GroupedAreaResult]]:
        """
        Areas whose center lies within radius_meters of center, nearest first.

        Args:
            center: Query point
            radius_meters: Search radius
            limit: Maximum results
            grouped: Return one row per physical area instead of per postal code

        Returns:
            AreaResult or GroupedAreaResult list sorted by distance
        """
        results = self._areas_in_radius(center, radius_meters)
        if grouped:
            return group_by_area(results)[:limit]
        return results[:limit]

    def _contains(self, area: Area, point: Point, distance: float) -> Optional[bool]:
        """
        Containment check for one candidate.

        Returns None when the stored polygon cannot be decoded.
        """
        try:
            polygon = area.polygon()
        except ValueError as e:
            log_structured(
                "warning",
                "Skipping area with malformed polygon",
                area_id=area.id,
                osm_type=area.osm_type,
                osm_id=area.osm_id,
                error=str(e),
            )
            return None

        if polygon is None:
            return distance < self.contains_center_radius
        return point_in_polygon(point, polygon)

    def containing(
        self,
        point: Point,
        limit: int,
        grouped: bool = False
    ) -> Union[List[AreaResult], List[GroupedAreaResult]]:
        """
        Areas containing a point, sorted by distance from the point to their center.

        Polygon areas use point-in-polygon. Areas without a polygon match when
        the point is near their center. If no polygon match has its center
        within fallback_threshold, a nearby search of fallback_radius is merged
        in so callers still get a best-effort answer.
        """
        # Box wide enough for the center-proximity rule; polygon bboxes
        # containing the point always overlap it
        bbox = bounding_box_from_radius(point, self.contains_center_radius)
        ids = self.store.spatial_index.query_ordered(bbox)

        matches: List[AreaResult] = []
        polygon_match_near = False
        for area in self.store.get_areas(ids):
            distance = haversine_distance(point, area.center)
            contained = self._contains(area, point, distance)
            if not contained:
                continue

            matches.append(AreaResult(area=area, distance_meters=distance))
            if area.polygon_json and distance <= self.fallback_threshold:
                polygon_match_near = True

        if not polygon_match_near:
            seen = {r.area.id for r in matches}
            fallback = [
                r for r in self._areas_in_radius(point, self.fallback_radius)
                if r.area.id not in seen
            ]
            if fallback:
                log_structured(
                    "debug",
                    "Containing query merged nearby fallback",
                    lat=point.lat,
                    lng=point.lng,
                    matches=len(matches),
                    fallback=len(fallback),
                )
            matches.extend(fallback)

        matches.sort(key=_distance_key)
        if grouped:
            return group_by_area(matches)[:limit]
        return matches[:limit]

    def adjacent_to(
        self,
        center_area: Union[Area, GroupedAreaResult],
        radius_meters: float,
        limit: int
    ) -> List[AdjacentArea]:
        """
        Neighbouring areas of a center area, bucketed into 8 compass sectors.

        Within a sector the nearest area is level 1, the next level 2 and so
        on. Output is ordered by (level, sector degrees), so every populated
        direction's level-1 area comes before any level-2 area.

        Args:
            center_area: Area (or grouped area) the neighbours are relative to
            radius_meters: Search radius around the center
            limit: Maximum results

        Returns:
            AdjacentArea list; the center itself is never included
        """
        area = center_area.area if isinstance(center_area, GroupedAreaResult) else center_area
        origin = area.center

        by_sector: Dict[int, List[GroupedAreaResult]] = defaultdict(list)
        for neighbour in group_by_area(self._areas_in_radius(origin, radius_meters)):
            if neighbour.key == area.key:
                continue
            bearing = calculate_bearing(origin, neighbour.area.center)
            by_sector[round_bearing_to_sector(bearing)].append(neighbour)

        adjacent = []
        for sector, neighbours in by_sector.items():
            neighbours.sort(key=_distance_key)
            for level, neighbour in enumerate(neighbours, start=1):
                adjacent.append(AdjacentArea(
                    area=neighbour,
                    distance_meters=neighbour.distance_meters,
                    sector_degrees=sector,
                    direction=bearing_to_cardinal(sector),
                    level=level,
                ))

        adjacent.sort(key=lambda a: (a.level, a.sector_degrees))
        return adjacent[:limit]
