"""Data models for areas, geometries and query results."""
import json
import math
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from shapely.geometry import MultiPolygon as ShapelyMultiPolygon
from shapely.geometry import Polygon as ShapelyPolygon

# GeoJSON axis order: (lng, lat)
Position = Tuple[float, float]
Ring = List[Position]


@dataclass(frozen=True)
class Point:
    """WGS84 coordinate in degrees."""
    lat: float
    lng: float


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box in degrees."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @classmethod
    def from_point(cls, point: Point) -> "BoundingBox":
        """Degenerate box covering a single point."""
        return cls(point.lat, point.lat, point.lng, point.lng)

    def is_empty(self) -> bool:
        """True when built from an empty coordinate set (non-finite bounds)."""
        return not all(
            math.isfinite(v) for v in (self.min_lat, self.max_lat, self.min_lng, self.max_lng)
        )


@dataclass
class Polygon:
    """Outer ring plus zero or more hole rings."""
    outer: Ring
    holes: List[Ring] = field(default_factory=list)

    type: ClassVar[str] = "Polygon"

    @property
    def outer_rings(self) -> List[Ring]:
        return [self.outer]

    @property
    def rings(self) -> List[Ring]:
        return [self.outer, *self.holes]

    @property
    def polygons(self) -> List["Polygon"]:
        return [self]

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "coordinates": [[list(p) for p in ring] for ring in self.rings],
        }

    def to_shapely(self) -> ShapelyPolygon:
        return ShapelyPolygon(self.outer, self.holes)


@dataclass
class MultiPolygon:
    """Ordered collection of polygons."""
    members: List[Polygon]

    type: ClassVar[str] = "MultiPolygon"

    @property
    def outer_rings(self) -> List[Ring]:
        return [p.outer for p in self.members]

    @property
    def rings(self) -> List[Ring]:
        return [ring for p in self.members for ring in p.rings]

    @property
    def polygons(self) -> List[Polygon]:
        return self.members

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "coordinates": [p.to_geojson()["coordinates"] for p in self.members],
        }

    def to_shapely(self) -> ShapelyMultiPolygon:
        return ShapelyMultiPolygon([p.to_shapely() for p in self.members])


Geometry = Union[Polygon, MultiPolygon]


def _ring_from_coords(coords: Any) -> Ring:
    ring = []
    for position in coords:
        if len(position) < 2:
            raise ValueError(f"Invalid position: {position!r}")
        ring.append((float(position[0]), float(position[1])))
    return ring


def _polygon_from_coords(coords: Any) -> Polygon:
    if not coords:
        raise ValueError("Polygon has no rings")
    rings = [_ring_from_coords(ring) for ring in coords]
    return Polygon(outer=rings[0], holes=rings[1:])


def geometry_from_geojson(data: Dict[str, Any]) -> Geometry:
    """
    Build a Polygon or MultiPolygon from a GeoJSON geometry dict.

    Raises:
        ValueError: If the payload is not a well-formed Polygon/MultiPolygon
    """
    if not isinstance(data, dict):
        raise ValueError("Geometry payload must be an object")

    geom_type = data.get("type")
    coords = data.get("coordinates")
    if coords is None:
        raise ValueError("Geometry payload has no coordinates")

    try:
        if geom_type == "Polygon":
            return _polygon_from_coords(coords)
        if geom_type == "MultiPolygon":
            return MultiPolygon([_polygon_from_coords(p) for p in coords])
    except TypeError as e:
        raise ValueError(f"Malformed {geom_type} coordinates: {e}") from e

    raise ValueError(f"Unsupported geometry type: {geom_type!r}")


def parse_geometry(text: str) -> Geometry:
    """Decode a stored GeoJSON geometry string."""
    return geometry_from_geojson(json.loads(text))


def geometry_from_shapely(geom) -> Geometry:
    """Convert a shapely Polygon/MultiPolygon into the engine's geometry types."""
    if geom.geom_type == "Polygon":
        return Polygon(
            outer=[(x, y) for x, y, *_ in geom.exterior.coords],
            holes=[[(x, y) for x, y, *_ in ring.coords] for ring in geom.interiors],
        )
    if geom.geom_type == "MultiPolygon":
        return MultiPolygon([geometry_from_shapely(p) for p in geom.geoms])
    raise ValueError(f"Unsupported geometry type: {geom.geom_type}")


@dataclass
class Area:
    """
    One persisted area row: a place feature paired with one postal code.

    Names and polygon are kept as stored JSON text and decoded on access.
    """
    osm_id: int
    osm_type: str
    place_type: str
    name: str
    names_json: str
    center_lat: float
    center_lng: float
    polygon_json: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: str = ""
    country_name: str = ""
    parent_city: Optional[str] = None
    parent_municipality: Optional[str] = None
    bbox_min_lat: Optional[float] = None
    bbox_max_lat: Optional[float] = None
    bbox_min_lng: Optional[float] = None
    bbox_max_lng: Optional[float] = None
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        osm_id: int,
        osm_type: str,
        place_type: str,
        names: Dict[str, str],
        center: Point,
        polygon: Optional[Geometry] = None,
        postal_code: Optional[str] = None,
        country_code: str = "",
        country_name: str = "",
        parent_city: Optional[str] = None,
        parent_municipality: Optional[str] = None,
    ) -> "Area":
        """Build an area row from decoded parts, deriving name and bbox."""
        from osm_areas.core.geometry import bbox_from_polygon

        name = names.get("default") or next(iter(names.values()), "Unknown")
        bbox = bbox_from_polygon(polygon) if polygon is not None else None
        if bbox is not None and bbox.is_empty():
            bbox = None

        return cls(
            osm_id=osm_id,
            osm_type=osm_type,
            place_type=place_type,
            name=name,
            names_json=json.dumps(names, ensure_ascii=False),
            center_lat=center.lat,
            center_lng=center.lng,
            polygon_json=json.dumps(polygon.to_geojson()) if polygon is not None else None,
            postal_code=postal_code,
            country_code=country_code,
            country_name=country_name,
            parent_city=parent_city,
            parent_municipality=parent_municipality,
            bbox_min_lat=bbox.min_lat if bbox else None,
            bbox_max_lat=bbox.max_lat if bbox else None,
            bbox_min_lng=bbox.min_lng if bbox else None,
            bbox_max_lng=bbox.max_lng if bbox else None,
        )

    @property
    def center(self) -> Point:
        return Point(self.center_lat, self.center_lng)

    @property
    def key(self) -> Tuple[str, int]:
        """Identity of the physical feature, shared by all its postal-code rows."""
        return (self.osm_type, self.osm_id)

    @property
    def bbox(self) -> Optional[BoundingBox]:
        if self.bbox_min_lat is None:
            return None
        return BoundingBox(self.bbox_min_lat, self.bbox_max_lat, self.bbox_min_lng, self.bbox_max_lng)

    @cached_property
    def names(self) -> Dict[str, str]:
        try:
            names = json.loads(self.names_json) if self.names_json else {}
        except ValueError:
            names = {}
        if not isinstance(names, dict):
            names = {}
        return names or {"default": self.name}

    def polygon(self) -> Optional[Geometry]:
        """
        Decode the stored polygon.

        Raises:
            ValueError: If the stored payload is malformed
        """
        if not self.polygon_json:
            return None
        return parse_geometry(self.polygon_json)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "osm_id": self.osm_id,
            "osm_type": self.osm_type,
            "place_type": self.place_type,
            "name": self.name,
            "names": self.names,
            "center": {"lat": self.center_lat, "lng": self.center_lng},
            "postal_code": self.postal_code,
            "country_code": self.country_code,
            "country_name": self.country_name,
            "parent_city": self.parent_city,
            "parent_municipality": self.parent_municipality,
        }


def _rounded(distance: Optional[float]) -> Optional[int]:
    return int(round(distance)) if distance is not None else None


@dataclass
class AreaResult:
    """Area row returned by a query, with distance to the query point."""
    area: Area
    distance_meters: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.area.to_dict()
        data["distance_meters"] = _rounded(self.distance_meters)
        return data


@dataclass
class GroupedAreaResult:
    """One physical area with all of its postal codes."""
    area: Area
    postal_codes: List[str] = field(default_factory=list)
    distance_meters: Optional[float] = None

    @property
    def key(self) -> Tuple[str, int]:
        return self.area.key

    def to_dict(self) -> Dict[str, Any]:
        data = self.area.to_dict()
        data.pop("id")
        data.pop("postal_code")
        data["postal_codes"] = list(self.postal_codes)
        data["distance_meters"] = _rounded(self.distance_meters)
        return data


@dataclass
class SearchResult:
    """Area row ranked by a text search."""
    area: Area
    score: float
    distance_meters: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.area.to_dict()
        data["distance_meters"] = _rounded(self.distance_meters)
        data["score"] = self.score
        return data


@dataclass
class AdjacentArea:
    """Neighbouring area with its compass sector and ring level."""
    area: GroupedAreaResult
    distance_meters: float
    sector_degrees: int
    direction: str
    level: int

    def to_dict(self) -> Dict[str, Any]:
        data = self.area.to_dict()
        data["distance_meters"] = _rounded(self.distance_meters)
        data["degrees"] = self.sector_degrees
        data["direction"] = self.direction
        data["level"] = self.level
        return data


@dataclass
class AdjacentSearchResult:
    """Center area plus its neighbours; center is None when nothing resolved."""
    center: Optional[GroupedAreaResult]
    adjacent: List[AdjacentArea] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "center": self.center.to_dict() if self.center else None,
            "adjacent": [a.to_dict() for a in self.adjacent],
        }


@dataclass
class SearchIndexEntry:
    """Row of the text search index derived from an area."""
    area_id: int
    name: str
    name_normalized: str
    postal_code: Optional[str]
    all_names: str

    @classmethod
    def from_area(cls, area: Area) -> "SearchIndexEntry":
        from osm_areas.core.normalization import normalize_text

        return cls(
            area_id=area.id,
            name=area.name,
            name_normalized=normalize_text(area.name),
            postal_code=area.postal_code,
            all_names=" ".join(area.names.values()),
        )


@dataclass
class ParsedQuery:
    """Free-text query split into name and postal-code fragments."""
    full_query: str
    name_part: Optional[str] = None
    postal_part: Optional[str] = None
    is_postal_only: bool = False
