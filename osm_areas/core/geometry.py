"""Planar and spherical geometry primitives over points, boxes and polygons."""
import math
from typing import Iterable, List

from shapely.geometry import LineString

from osm_areas.core.models import (
    BoundingBox,
    Geometry,
    Point,
    Polygon,
    Position,
    Ring,
)

EARTH_RADIUS_METERS = 6371008.8
METERS_PER_DEGREE = 111320.0
COORD_EPSILON = 1e-9
CARDINAL_DIRECTIONS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def haversine_distance(a: Point, b: Point) -> float:
    """
    Calculate great-circle distance between two points using the Haversine formula.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(a.lat)
    lat2_rad = math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlng = math.radians(b.lng - a.lng)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_METERS * c


def calculate_bearing(origin: Point, target: Point) -> float:
    """Initial compass bearing from origin to target in [0, 360), 0 = north."""
    lat1 = math.radians(origin.lat)
    lat2 = math.radians(target.lat)
    dlng = math.radians(target.lng - origin.lng)

    y = math.sin(dlng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlng)

    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def round_bearing_to_sector(bearing: float, sectors: int = 8) -> int:
    """
    Snap a bearing to the nearest compass sector.

    With 8 sectors returns one of 0, 45, ..., 315; each sector is centered on
    its direction so 0 covers [337.5, 22.5).
    """
    sector_size = 360 / sectors
    adjusted = (bearing + sector_size / 2) % 360
    sector_index = math.floor(adjusted / sector_size)
    return int((sector_index * sector_size) % 360)


def bearing_to_cardinal(degrees: float) -> str:
    """Cardinal label (N, NE, ..., NW) for a bearing in degrees."""
    index = int(round(degrees / 45)) % 8
    return CARDINAL_DIRECTIONS[index]


def bounding_box_from_radius(center: Point, radius_meters: float) -> BoundingBox:
    """
    Bounding box enclosing a circle around a point.

    Equirectangular approximation: the longitude span grows with 1/cos(lat) and
    is oversized close to the poles.
    """
    lat_delta = radius_meters / METERS_PER_DEGREE
    lng_delta = radius_meters / (METERS_PER_DEGREE * math.cos(math.radians(center.lat)))

    return BoundingBox(
        min_lat=center.lat - lat_delta,
        max_lat=center.lat + lat_delta,
        min_lng=center.lng - lng_delta,
        max_lng=center.lng + lng_delta,
    )


def bbox_intersects(a: BoundingBox, b: BoundingBox) -> bool:
    return not (
        a.max_lat < b.min_lat
        or a.min_lat > b.max_lat
        or a.max_lng < b.min_lng
        or a.min_lng > b.max_lng
    )


def point_in_bbox(point: Point, bbox: BoundingBox) -> bool:
    return bbox.min_lat <= point.lat <= bbox.max_lat and bbox.min_lng <= point.lng <= bbox.max_lng


def bbox_from_coords(coords: Iterable[Position]) -> BoundingBox:
    """Bounds of a coordinate set; empty input yields an empty (infinite) box."""
    min_lat = min_lng = math.inf
    max_lat = max_lng = -math.inf

    for lng, lat in coords:
        min_lat = min(min_lat, lat)
        max_lat = max(max_lat, lat)
        min_lng = min(min_lng, lng)
        max_lng = max(max_lng, lng)

    return BoundingBox(min_lat, max_lat, min_lng, max_lng)


def bbox_from_polygon(polygon: Geometry) -> BoundingBox:
    """Bounds over every ring, outer and holes, of a Polygon or MultiPolygon."""
    return bbox_from_coords(p for ring in polygon.rings for p in ring)


def centroid(polygon: Geometry) -> Point:
    """
    Mean of the outer-ring vertices, skipping each ring's closing vertex.

    MultiPolygon pools the outer rings of all members. This is a vertex
    average, not an area-weighted centroid.

    Raises:
        ValueError: If the outer rings have no vertices
    """
    sum_lat = 0.0
    sum_lng = 0.0
    count = 0

    for ring in polygon.outer_rings:
        for lng, lat in ring[:-1]:
            sum_lat += lat
            sum_lng += lng
            count += 1

    if count == 0:
        raise ValueError("Polygon has no vertices")

    return Point(lat=sum_lat / count, lng=sum_lng / count)


def coords_centroid(coords: List[Position]) -> Point:
    """Mean of all coordinates of a line string (used for ways)."""
    if not coords:
        raise ValueError("No coordinates")
    return Point(
        lat=sum(lat for _, lat in coords) / len(coords),
        lng=sum(lng for lng, _ in coords) / len(coords),
    )


def coords_equal(a: Position, b: Position) -> bool:
    return abs(a[0] - b[0]) < COORD_EPSILON and abs(a[1] - b[1]) < COORD_EPSILON


def _point_in_ring(x: float, y: float, ring: Ring) -> bool:
    # Even-odd ray casting
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def _point_in_single_polygon(x: float, y: float, polygon: Polygon) -> bool:
    if not _point_in_ring(x, y, polygon.outer):
        return False
    return not any(_point_in_ring(x, y, hole) for hole in polygon.holes)


def point_in_polygon(point: Point, polygon: Geometry) -> bool:
    """True when the point is inside an outer ring and outside that polygon's holes."""
    return any(_point_in_single_polygon(point.lng, point.lat, p) for p in polygon.polygons)


def _rings_cross(ring_a: Ring, ring_b: Ring) -> bool:
    if len(ring_a) < 2 or len(ring_b) < 2:
        return False
    return LineString(ring_a).intersects(LineString(ring_b))


def polygons_intersect(a: Geometry, b: Geometry) -> bool:
    """
    Containment-or-crossing overlap test.

    Rejects on disjoint bounding boxes, accepts when any outer vertex of one
    polygon lies inside the other, then accepts when any pair of outer-ring
    edges cross or touch. Not an exact clipping-area test.
    """
    if not bbox_intersects(bbox_from_polygon(a), bbox_from_polygon(b)):
        return False

    for ring in a.outer_rings:
        for lng, lat in ring:
            if point_in_polygon(Point(lat, lng), b):
                return True

    for ring in b.outer_rings:
        for lng, lat in ring:
            if point_in_polygon(Point(lat, lng), a):
                return True

    for ring_a in a.outer_rings:
        for ring_b in b.outer_rings:
            if _rings_cross(ring_a, ring_b):
                return True

    return False


def polygon_from_bbox(bbox: BoundingBox) -> Polygon:
    """Rectangle polygon for areas without real geometry."""
    return Polygon(
        outer=[
            (bbox.min_lng, bbox.min_lat),
            (bbox.max_lng, bbox.min_lat),
            (bbox.max_lng, bbox.max_lat),
            (bbox.min_lng, bbox.max_lat),
            (bbox.min_lng, bbox.min_lat),
        ]
    )


def circle_polygon(center: Point, radius_meters: float, segments: int = 32) -> Polygon:
    """Closed polygon approximating a circle around a point."""
    cos_lat = math.cos(math.radians(center.lat))
    ring: Ring = []

    for i in range(segments):
        angle = (i / segments) * 2 * math.pi
        lat_delta = radius_meters * math.cos(angle) / METERS_PER_DEGREE
        lng_delta = radius_meters * math.sin(angle) / (METERS_PER_DEGREE * cos_lat)
        ring.append((center.lng + lng_delta, center.lat + lat_delta))

    ring.append(ring[0])
    return Polygon(outer=ring)
