"""OSM element records and place extraction from a decoded element stream."""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from osm_areas.core.assembler import (
    AssemblyReport,
    build_polygon_from_members,
    build_polygon_from_way,
)
from osm_areas.core.config import PLACE_TYPES
from osm_areas.core.geometry import centroid, coords_centroid
from osm_areas.core.models import Area, Geometry, Point, Ring
from osm_areas.utils.logging import log_structured


@dataclass
class OSMNode:
    id: int
    lat: float
    lon: float
    tags: Dict[str, str] = field(default_factory=dict)

    type = "node"


@dataclass
class OSMWay:
    id: int
    refs: List[int]
    tags: Dict[str, str] = field(default_factory=dict)

    type = "way"


@dataclass
class RelationMember:
    type: str
    ref: int
    role: str = ""


@dataclass
class OSMRelation:
    id: int
    members: List[RelationMember]
    tags: Dict[str, str] = field(default_factory=dict)

    type = "relation"


OSMElement = Union[OSMNode, OSMWay, OSMRelation]


@dataclass
class ParsedPlace:
    """Place feature with resolved center and optional polygon."""
    osm_id: int
    osm_type: str
    place_type: str
    names: Dict[str, str]
    center: Point
    polygon: Optional[Geometry] = None

    def to_area(self, postal_code: Optional[str] = None, **hierarchy) -> Area:
        """
        Area row for one postal code of this place.

        Args:
            postal_code: Resolved postal code (None when unknown)
            **hierarchy: country_code, country_name, parent_city,
                parent_municipality from the hierarchy resolver
        """
        return Area.create(
            osm_id=self.osm_id,
            osm_type=self.osm_type,
            place_type=self.place_type,
            names=self.names,
            center=self.center,
            polygon=self.polygon,
            postal_code=postal_code or None,
            **hierarchy
        )


def collect_node_coords(elements: Iterable[OSMElement]) -> Dict[int, Tuple[float, float]]:
    """Map node id to its (lng, lat) position."""
    return {e.id: (e.lon, e.lat) for e in elements if isinstance(e, OSMNode)}


def collect_way_geometries(
    elements: Iterable[OSMElement],
    node_coords: Dict[int, Tuple[float, float]]
) -> Dict[int, Ring]:
    """
    Resolve way node references into ordered coordinate chains.

    Nodes missing from the source are skipped; ways left with fewer than two
    positions are omitted.
    """
    ways: Dict[int, Ring] = {}
    for element in elements:
        if not isinstance(element, OSMWay):
            continue
        coords = [node_coords[ref] for ref in element.refs if ref in node_coords]
        if len(coords) >= 2:
            ways[element.id] = coords
    return ways


def extract_names(tags: Dict[str, str]) -> Dict[str, str]:
    """
    Extract name translations from tags.

    name becomes "default", name:<lang> becomes <lang>, alt_name and
    official_name become "alt" and "official".
    """
    names: Dict[str, str] = {}

    if tags.get("name"):
        names["default"] = tags["name"]

    for key, value in tags.items():
        if key.startswith("name:"):
            names[key[5:]] = value
        elif key == "alt_name":
            names["alt"] = value
        elif key == "official_name":
            names["official"] = value

    return names


def _member_centroid_fallback(
    relation: OSMRelation,
    way_geometries: Dict[int, Ring]
) -> Optional[Point]:
    centers = [
        coords_centroid(way_geometries[m.ref])
        for m in relation.members
        if m.type == "way" and m.ref in way_geometries
    ]
    if not centers:
        return None
    return Point(
        lat=sum(c.lat for c in centers) / len(centers),
        lng=sum(c.lng for c in centers) / len(centers),
    )


def resolve_relation_geometry(
    relation: OSMRelation,
    way_geometries: Dict[int, Ring],
    report: Optional[AssemblyReport] = None
) -> Tuple[Optional[Point], Optional[Geometry]]:
    """
    Polygon and center for a relation.

    Falls back to averaging the centroids of the available member ways when
    no polygon can be assembled; (None, None) when no member is available.
    """
    members = [
        (m.role, way_geometries.get(m.ref))
        for m in relation.members
        if m.type == "way"
    ]
    polygon = build_polygon_from_members(members, report, feature_id=f"relation/{relation.id}")
    if polygon is not None:
        return centroid(polygon), polygon

    log_structured(
        "warning",
        "Could not build polygon for relation, using member centroid fallback",
        feature_id=f"relation/{relation.id}",
    )
    return _member_centroid_fallback(relation, way_geometries), None


def parse_place(
    element: OSMElement,
    way_geometries: Dict[int, Ring],
    report: Optional[AssemblyReport] = None
) -> Optional[ParsedPlace]:
    """
    Build a place from a node, way or relation tagged with place=*.

    Returns:
        ParsedPlace, or None when the element has no name, is not a place
        type of interest, or yields no usable geometry
    """
    tags = element.tags or {}
    place_type = tags.get("place")
    if place_type not in PLACE_TYPES:
        return None

    names = extract_names(tags)
    if not names:
        return None

    polygon: Optional[Geometry] = None

    if isinstance(element, OSMNode):
        center: Optional[Point] = Point(lat=element.lat, lng=element.lon)
    elif isinstance(element, OSMWay):
        coords = way_geometries.get(element.id)
        if not coords or len(coords) < 2:
            return None
        center = coords_centroid(coords)
        polygon = build_polygon_from_way(coords)
    else:
        center, polygon = resolve_relation_geometry(element, way_geometries, report)

    if center is None:
        return None

    return ParsedPlace(
        osm_id=element.id,
        osm_type=element.type,
        place_type=place_type,
        names=names,
        center=center,
        polygon=polygon,
    )


def extract_places(elements: List[OSMElement]) -> List[ParsedPlace]:
    """
    Extract all places from a fully decoded element list.

    The list is traversed three times like the streaming parser: nodes, then
    way geometries, then places.
    """
    node_coords = collect_node_coords(elements)
    way_geometries = collect_way_geometries(elements, node_coords)
    report = AssemblyReport()

    places = []
    for element in elements:
        place = parse_place(element, way_geometries, report)
        if place is not None:
            places.append(place)

    log_structured(
        "info",
        "Extracted places",
        places=len(places),
        nodes=len(node_coords),
        ways=len(way_geometries),
        missing_members=report.missing_members,
        discarded_chains=report.discarded_chains,
        discarded_rings=report.discarded_rings,
        dropped_inner_rings=report.dropped_inner_rings,
    )
    return places
