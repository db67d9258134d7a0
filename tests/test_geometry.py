"""Tests for geometry primitives."""
import math

import pytest
from shapely.geometry import Point as ShapelyPoint

from osm_areas.core.geometry import (
    bbox_from_coords,
    bbox_from_polygon,
    bearing_to_cardinal,
    bounding_box_from_radius,
    calculate_bearing,
    centroid,
    circle_polygon,
    haversine_distance,
    point_in_bbox,
    point_in_polygon,
    polygon_from_bbox,
    polygons_intersect,
    round_bearing_to_sector,
)
from osm_areas.core.models import BoundingBox, MultiPolygon, Point, Polygon

SQUARE = Polygon(outer=[(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0), (0.0, 0.0)])
CONCAVE = Polygon(outer=[(0.0, 0.0), (6.0, 0.0), (6.0, 6.0), (3.0, 2.0), (0.0, 6.0), (0.0, 0.0)])


def _rotations(ring):
    vertices = ring[:-1]
    for shift in range(len(vertices)):
        rotated = vertices[shift:] + vertices[:shift]
        yield rotated + [rotated[0]]


def test_haversine_distance_identity_and_symmetry(helsinki):
    """Distance to self is zero and distance is symmetric."""
    other = Point(lat=59.3293, lng=18.0686)

    assert haversine_distance(helsinki, helsinki) == 0
    assert haversine_distance(helsinki, other) == haversine_distance(other, helsinki)


def test_haversine_distance_known_value():
    """One degree of latitude is about 111.2 km."""
    distance = haversine_distance(Point(0.0, 0.0), Point(1.0, 0.0))
    assert distance == pytest.approx(111195, abs=5)


@pytest.mark.parametrize("target,expected", [
    (Point(1.0, 0.0), 0.0),
    (Point(0.0, 1.0), 90.0),
    (Point(-1.0, 0.0), 180.0),
    (Point(0.0, -1.0), 270.0),
])
def test_calculate_bearing_cardinal_points(target, expected):
    assert calculate_bearing(Point(0.0, 0.0), target) == pytest.approx(expected, abs=1e-9)


@pytest.mark.parametrize("bearing,sector", [
    (0, 0), (22.4, 0), (22.5, 45), (44, 45), (46, 45), (67.4, 45),
    (180, 180), (337.4, 315), (337.5, 0), (359.9, 0),
])
def test_round_bearing_to_sector(bearing, sector):
    assert round_bearing_to_sector(bearing) == sector


def test_bearing_to_cardinal():
    labels = [bearing_to_cardinal(d) for d in range(0, 360, 45)]
    assert labels == ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def test_bounding_box_from_radius_contains_circle_points(helsinki, offset_point):
    """Points well inside the radius fall inside the box."""
    bbox = bounding_box_from_radius(helsinki, 1000)
    for bearing in range(0, 360, 30):
        assert point_in_bbox(offset_point(helsinki, bearing, 990), bbox)
    assert not point_in_bbox(offset_point(helsinki, 0, 1100), bbox)


def test_bounding_box_widens_with_latitude():
    equator = bounding_box_from_radius(Point(0.0, 0.0), 1000)
    north = bounding_box_from_radius(Point(60.0, 0.0), 1000)

    assert north.max_lng - north.min_lng > equator.max_lng - equator.min_lng
    assert north.max_lat - north.min_lat == pytest.approx(equator.max_lat - equator.min_lat)


def test_bbox_from_coords_empty_is_empty():
    assert bbox_from_coords([]).is_empty()
    assert not bbox_from_coords([(1.0, 2.0)]).is_empty()


def test_bbox_from_polygon_covers_holes():
    polygon = Polygon(
        outer=[(0.0, 0.0), (4.0, 0.0), (4.0, 4.0), (0.0, 4.0), (0.0, 0.0)],
        holes=[[(1.0, 1.0), (2.0, 1.0), (2.0, 2.0), (1.0, 1.0)]],
    )
    assert bbox_from_polygon(polygon) == BoundingBox(0.0, 4.0, 0.0, 4.0)


def test_centroid_skips_closing_vertex():
    center = centroid(SQUARE)
    assert center == Point(lat=5.0, lng=5.0)


def test_centroid_multipolygon_pools_outer_rings():
    shifted = Polygon(outer=[(20.0, 0.0), (30.0, 0.0), (30.0, 10.0), (20.0, 10.0), (20.0, 0.0)])
    center = centroid(MultiPolygon([SQUARE, shifted]))
    assert center.lng == pytest.approx(15.0)
    assert center.lat == pytest.approx(5.0)


def test_centroid_empty_raises():
    with pytest.raises(ValueError):
        centroid(Polygon(outer=[]))


def test_point_in_polygon():
    assert point_in_polygon(Point(lat=5.0, lng=5.0), SQUARE)
    assert not point_in_polygon(Point(lat=15.0, lng=5.0), SQUARE)
    assert not point_in_polygon(Point(lat=4.0, lng=3.0), CONCAVE)
    assert point_in_polygon(Point(lat=1.0, lng=3.0), CONCAVE)


def test_point_in_polygon_excludes_holes():
    with_hole = Polygon(
        outer=SQUARE.outer,
        holes=[[(4.0, 4.0), (6.0, 4.0), (6.0, 6.0), (4.0, 6.0), (4.0, 4.0)]],
    )
    assert not point_in_polygon(Point(lat=5.0, lng=5.0), with_hole)
    assert point_in_polygon(Point(lat=2.0, lng=2.0), with_hole)


def test_point_in_polygon_multipolygon():
    far = Polygon(outer=[(20.0, 20.0), (21.0, 20.0), (21.0, 21.0), (20.0, 21.0), (20.0, 20.0)])
    multi = MultiPolygon([SQUARE, far])

    assert point_in_polygon(Point(lat=20.5, lng=20.5), multi)
    assert not point_in_polygon(Point(lat=15.0, lng=15.0), multi)


def test_point_in_polygon_agrees_with_shapely():
    """Even-odd ray casting matches shapely away from edges."""
    with_hole = Polygon(
        outer=SQUARE.outer,
        holes=[[(4.0, 4.0), (6.0, 4.0), (6.0, 6.0), (4.0, 6.0), (4.0, 4.0)]],
    )
    far = Polygon(outer=[(20.0, 20.0), (21.0, 20.0), (21.0, 21.0), (20.0, 21.0), (20.0, 20.0)])

    for geometry in (CONCAVE, with_hole, MultiPolygon([with_hole, far])):
        shape = geometry.to_shapely()
        # Half-integer grid never lands on an edge of these shapes
        for x in range(-2, 23):
            for y in range(-2, 23):
                lng, lat = x + 0.5, y + 0.5
                expected = shape.contains(ShapelyPoint(lng, lat))
                assert point_in_polygon(Point(lat=lat, lng=lng), geometry) == expected


@pytest.mark.parametrize("point", [
    Point(lat=1.0, lng=3.0),
    Point(lat=4.0, lng=3.0),
    Point(lat=5.0, lng=5.5),
    Point(lat=-1.0, lng=3.0),
])
def test_point_in_polygon_rotation_invariant(point):
    """The ring's starting vertex does not change the answer."""
    expected = point_in_polygon(point, CONCAVE)
    for ring in _rotations(CONCAVE.outer):
        assert point_in_polygon(point, Polygon(outer=ring)) == expected


def test_polygons_intersect_cases():
    overlapping = Polygon(outer=[(5.0, 5.0), (15.0, 5.0), (15.0, 15.0), (5.0, 15.0), (5.0, 5.0)])
    disjoint = Polygon(outer=[(20.0, 20.0), (30.0, 20.0), (30.0, 30.0), (20.0, 30.0), (20.0, 20.0)])
    # Cross shape: no vertex of either lies inside the other
    horizontal = Polygon(outer=[(-5.0, 4.0), (15.0, 4.0), (15.0, 6.0), (-5.0, 6.0), (-5.0, 4.0)])
    vertical = Polygon(outer=[(4.0, -5.0), (6.0, -5.0), (6.0, 15.0), (4.0, 15.0), (4.0, -5.0)])

    assert polygons_intersect(SQUARE, overlapping)
    assert not polygons_intersect(SQUARE, disjoint)
    assert polygons_intersect(horizontal, vertical)


@pytest.mark.parametrize("other", [
    Polygon(outer=[(5.0, 5.0), (15.0, 5.0), (15.0, 15.0), (5.0, 15.0), (5.0, 5.0)]),
    Polygon(outer=[(20.0, 20.0), (30.0, 20.0), (30.0, 30.0), (20.0, 30.0), (20.0, 20.0)]),
    Polygon(outer=[(2.0, 2.0), (3.0, 2.0), (3.0, 3.0), (2.0, 2.0)]),
    Polygon(outer=[(10.0, -5.0), (12.0, -5.0), (12.0, 15.0), (10.0, 15.0), (10.0, -5.0)]),
])
def test_polygons_intersect_symmetric(other):
    assert polygons_intersect(SQUARE, other) == polygons_intersect(other, SQUARE)


def test_polygon_from_bbox_is_closed_rectangle():
    polygon = polygon_from_bbox(BoundingBox(1.0, 2.0, 3.0, 4.0))
    assert polygon.outer[0] == polygon.outer[-1]
    assert len(polygon.outer) == 5
    assert bbox_from_polygon(polygon) == BoundingBox(1.0, 2.0, 3.0, 4.0)


def test_circle_polygon(helsinki):
    circle = circle_polygon(helsinki, 500, segments=16)

    assert len(circle.outer) == 17
    assert circle.outer[0] == circle.outer[-1]
    assert point_in_polygon(helsinki, circle)
    for lng, lat in circle.outer[:-1]:
        assert haversine_distance(helsinki, Point(lat=lat, lng=lng)) == pytest.approx(500, rel=0.01)
    assert not math.isnan(centroid(circle).lat)
