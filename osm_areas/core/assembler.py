"""Polygon assembly from way geometries (ring joining for multi-way features)."""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from osm_areas.core.geometry import coords_equal
from osm_areas.core.models import Geometry, MultiPolygon, Polygon, Ring
from osm_areas.utils.logging import log_structured

MIN_RING_LENGTH = 4
OUTER_ROLES = {"outer", ""}
INNER_ROLES = {"inner"}


@dataclass
class AssemblyReport:
    """Counters for input dropped while assembling one feature."""
    missing_members: int = 0
    discarded_chains: int = 0
    discarded_rings: int = 0
    dropped_inner_rings: int = 0


def ensure_closed(ring: Ring) -> Ring:
    """Return the ring with its first position repeated at the end if needed."""
    if len(ring) < 2:
        return ring
    if not coords_equal(ring[0], ring[-1]):
        return [*ring, ring[0]]
    return ring


def join_ways(chains: Iterable[Ring], report: Optional[AssemblyReport] = None) -> List[Ring]:
    """
    Join line strings that share endpoints into continuous rings.

    Each ring is seeded with the next unprocessed chain and extended at either
    end by any remaining chain whose start or end touches it, reversing the
    chain when its end is the touching point. Chains with fewer than two
    positions are discarded. Returned rings are closed and have at least
    four positions.
    """
    report = report if report is not None else AssemblyReport()
    remaining: List[Ring] = []
    for chain in chains:
        if len(chain) < 2:
            report.discarded_chains += 1
        else:
            remaining.append(list(chain))

    rings: List[Ring] = []
    while remaining:
        ring = remaining.pop(0)

        extended = True
        while extended and remaining:
            extended = False
            ring_start = ring[0]
            ring_end = ring[-1]

            for idx, coords in enumerate(remaining):
                way_start = coords[0]
                way_end = coords[-1]

                if coords_equal(ring_end, way_start):
                    ring = ring + coords[1:]
                elif coords_equal(ring_end, way_end):
                    ring = ring + coords[-2::-1]
                elif coords_equal(ring_start, way_end):
                    ring = coords[:-1] + ring
                elif coords_equal(ring_start, way_start):
                    ring = coords[:0:-1] + ring
                else:
                    continue

                del remaining[idx]
                extended = True
                break

        ring = ensure_closed(ring)
        if len(ring) >= MIN_RING_LENGTH:
            rings.append(ring)
        else:
            report.discarded_rings += 1

    return rings


def assemble_polygon(
    outer_chains: Iterable[Ring],
    inner_chains: Iterable[Ring],
    report: Optional[AssemblyReport] = None,
    feature_id: Optional[str] = None
) -> Optional[Geometry]:
    """
    Combine outer and inner chains into a Polygon or MultiPolygon.

    One outer ring gives a Polygon carrying every inner ring as a hole.
    Several outer rings give a MultiPolygon without holes: matching holes to
    their outer ring would need a containment test per ring, so inner rings
    are dropped and the drop is logged and counted.

    Args:
        outer_chains: Line strings with role outer
        inner_chains: Line strings with role inner
        report: Optional report collecting dropped-input counters
        feature_id: Identifier used in log entries

    Returns:
        Polygon, MultiPolygon, or None when no outer ring could be built
    """
    report = report if report is not None else AssemblyReport()
    outer_rings = join_ways(outer_chains, report)
    inner_rings = join_ways(inner_chains, report)

    if not outer_rings:
        return None

    if len(outer_rings) == 1:
        return Polygon(outer=outer_rings[0], holes=inner_rings)

    if inner_rings:
        report.dropped_inner_rings += len(inner_rings)
        log_structured(
            "warning",
            "Dropping inner rings from multipolygon",
            feature_id=feature_id,
            inner_rings=len(inner_rings),
            outer_rings=len(outer_rings),
        )

    return MultiPolygon([Polygon(outer=ring) for ring in outer_rings])


def build_polygon_from_way(coords: Ring) -> Optional[Polygon]:
    """Polygon from a single closed way; None below four positions."""
    if len(coords) < MIN_RING_LENGTH:
        return None
    return Polygon(outer=ensure_closed(list(coords)))


def build_polygon_from_members(
    members: Iterable[Tuple[str, Optional[Ring]]],
    report: Optional[AssemblyReport] = None,
    feature_id: Optional[str] = None
) -> Optional[Geometry]:
    """
    Build a relation polygon from its way members.

    Args:
        members: (role, geometry) pairs; geometry is None for ways missing
            from the source
        report: Optional report collecting dropped-input counters
        feature_id: Identifier used in log entries
    """
    report = report if report is not None else AssemblyReport()
    outer: List[Ring] = []
    inner: List[Ring] = []

    for role, coords in members:
        if role in OUTER_ROLES:
            target = outer
        elif role in INNER_ROLES:
            target = inner
        else:
            continue

        if coords is None:
            report.missing_members += 1
            continue
        target.append(coords)

    return assemble_polygon(outer, inner, report, feature_id)
