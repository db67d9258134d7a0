#!/usr/bin/env python3
"""CLI script to build the spatial and search indexes from DuckDB data."""
import argparse
from pathlib import Path
from osm_areas.core.duckdb_store import DuckDBStore
from osm_areas.core.config import DUCKDB_PATH, LOG_LEVEL
from osm_areas.utils.logging import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Build spatial and search indexes")
    parser.add_argument("--db-path", type=Path, default=DUCKDB_PATH,
                       help="DuckDB database path")
    parser.add_argument("--only", choices=["spatial", "search"],
                       help="Build just one of the indexes")

    args = parser.parse_args()
    setup_logging(LOG_LEVEL)

    db_store = DuckDBStore(args.db_path)

    if args.only in (None, "spatial"):
        print("Building spatial index...")
        count = db_store.build_spatial_index()
        print(f"✅ Spatial index built ({count} entries)")

    if args.only in (None, "search"):
        print("Building search index...")
        count = db_store.build_search_index()
        print(f"✅ Search index built ({count} entries)")

    db_store.close()


if __name__ == "__main__":
    main()
