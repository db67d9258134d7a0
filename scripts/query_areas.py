#!/usr/bin/env python3
"""CLI script to run area queries against a published DuckDB database."""
import argparse
import json
import sys
from pathlib import Path
from osm_areas.core.duckdb_store import DuckDBStore
from osm_areas.core.engine import AreaEngine
from osm_areas.core.models import Point
from osm_areas.core.config import (
    DEFAULT_ADJACENT_LIMIT,
    DEFAULT_ADJACENT_RADIUS_M,
    DEFAULT_CONTAINING_LIMIT,
    DEFAULT_NEARBY_LIMIT,
    DEFAULT_NEARBY_RADIUS_M,
    DEFAULT_SEARCH_LIMIT,
    DUCKDB_PATH,
    LOG_LEVEL,
)
from osm_areas.utils.logging import setup_logging


def _point(args):
    if args.lat is None or args.lng is None:
        return None
    if not -90 <= args.lat <= 90 or not -180 <= args.lng <= 180:
        print("Error: lat must be within [-90, 90] and lng within [-180, 180]", file=sys.stderr)
        sys.exit(1)
    return Point(lat=args.lat, lng=args.lng)


def main():
    parser = argparse.ArgumentParser(description="Query areas")
    parser.add_argument("--db-path", type=Path, default=DUCKDB_PATH,
                       help="DuckDB database path")
    subparsers = parser.add_subparsers(dest="command", required=True)

    nearby = subparsers.add_parser("nearby", help="Areas within a radius")
    nearby.add_argument("--lat", type=float, required=True)
    nearby.add_argument("--lng", type=float, required=True)
    nearby.add_argument("--radius", type=float, default=DEFAULT_NEARBY_RADIUS_M)
    nearby.add_argument("--limit", type=int, default=DEFAULT_NEARBY_LIMIT)
    nearby.add_argument("--grouped", action="store_true", help="One row per area")

    containing = subparsers.add_parser("containing", help="Areas containing a point")
    containing.add_argument("--lat", type=float, required=True)
    containing.add_argument("--lng", type=float, required=True)
    containing.add_argument("--limit", type=int, default=DEFAULT_CONTAINING_LIMIT)
    containing.add_argument("--grouped", action="store_true", help="One row per area")

    search = subparsers.add_parser("search", help="Fuzzy search by name or postal code")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=DEFAULT_SEARCH_LIMIT)
    search.add_argument("--country-code")
    search.add_argument("--lat", type=float, help="Bias latitude")
    search.add_argument("--lng", type=float, help="Bias longitude")

    adjacent = subparsers.add_parser("adjacent", help="Areas around a center area")
    adjacent.add_argument("query", nargs="?")
    adjacent.add_argument("--lat", type=float)
    adjacent.add_argument("--lng", type=float)
    adjacent.add_argument("--radius", type=float, default=DEFAULT_ADJACENT_RADIUS_M)
    adjacent.add_argument("--limit", type=int, default=DEFAULT_ADJACENT_LIMIT)
    adjacent.add_argument("--country-code")

    subparsers.add_parser("stats", help="Database statistics")

    args = parser.parse_args()
    setup_logging(LOG_LEVEL)

    if not Path(args.db_path).exists():
        print(f"Error: Database not found: {args.db_path}", file=sys.stderr)
        sys.exit(1)

    db_store = DuckDBStore(args.db_path, read_only=True)
    engine = AreaEngine(db_store)

    if args.command == "nearby":
        results = engine.nearby(_point(args), args.radius, args.limit, args.grouped)
        output = {"areas": [r.to_dict() for r in results], "count": len(results)}
    elif args.command == "containing":
        results = engine.containing(_point(args), args.limit, args.grouped)
        output = {"areas": [r.to_dict() for r in results], "count": len(results)}
    elif args.command == "search":
        results = engine.search(args.query, args.limit, args.country_code, bias=_point(args))
        output = {"areas": [r.to_dict() for r in results], "count": len(results)}
    elif args.command == "adjacent":
        point = _point(args)
        if not args.query and point is None:
            print("Error: provide a query or --lat/--lng", file=sys.stderr)
            sys.exit(1)
        output = engine.adjacent(
            args.query, point, args.radius, args.limit, args.country_code
        ).to_dict()
    else:
        output = engine.stats()

    print(json.dumps(output, ensure_ascii=False, indent=2))
    db_store.close()


if __name__ == "__main__":
    main()
