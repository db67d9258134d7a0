#!/usr/bin/env python3
"""CLI script to ingest area GeoJSON or place CSV files into DuckDB."""
import argparse
import sys
from pathlib import Path
import duckdb
import geopandas as gpd
from osm_areas.core.duckdb_store import DuckDBStore
from osm_areas.core.config import DUCKDB_PATH, LOG_LEVEL
from osm_areas.utils.logging import log_error, setup_logging


def main():
    parser = argparse.ArgumentParser(description="Ingest areas into DuckDB")
    parser.add_argument("file", type=Path, help="GeoJSON file, or CSV with --csv")
    parser.add_argument("--csv", action="store_true",
                       help="Treat the file as a CSV of point places")
    parser.add_argument("--name-field", default="name", help="Name field (default: name)")
    parser.add_argument("--place-field", default="place", help="Place type field (default: place)")
    parser.add_argument("--db-path", type=Path, default=DUCKDB_PATH,
                       help="DuckDB database path")
    parser.add_argument("--skip-index", action="store_true",
                       help="Do not rebuild the spatial and search indexes")

    args = parser.parse_args()
    setup_logging(LOG_LEVEL)

    if not args.file.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        sys.exit(1)

    db_store = DuckDBStore(args.db_path)

    try:
        if args.csv:
            print(f"Ingesting places from {args.file}...")
            count = db_store.ingest_places_csv(
                args.file, name_field=args.name_field, place_field=args.place_field
            )
        else:
            print(f"Loading {args.file}...")
            gdf = gpd.read_file(args.file)
            print(f"Loaded {len(gdf)} features")
            count = db_store.ingest_geojson(gdf, name_field=args.name_field, place_field=args.place_field)
    except (ValueError, KeyError, duckdb.Error) as e:
        log_error(e, {"file": str(args.file)})
        print(f"Error: Ingestion failed: {e}", file=sys.stderr)
        db_store.close()
        sys.exit(1)
    print(f"✅ Ingested {count} areas")

    if not args.skip_index:
        print("Building spatial and search indexes...")
        db_store.build_spatial_index()
        db_store.build_search_index()
        print("✅ Indexes built")

    db_store.close()


if __name__ == "__main__":
    main()
