"""Configuration management for the area engine."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", PROJECT_ROOT / "data"))
DUCKDB_PATH = Path(os.getenv("DATABASE_PATH", DATA_DIR / "duckdb" / "areas.duckdb"))

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Containment heuristics (meters)
# Areas without a polygon count as containing a point this close to their center
CONTAINS_CENTER_RADIUS_M: float = float(os.getenv("CONTAINS_CENTER_RADIUS_M", "100"))
# No polygon match with a center this close triggers the nearby fallback
CONTAINING_FALLBACK_THRESHOLD_M: float = float(os.getenv("CONTAINING_FALLBACK_THRESHOLD_M", "500"))
CONTAINING_FALLBACK_RADIUS_M: float = float(os.getenv("CONTAINING_FALLBACK_RADIUS_M", "1000"))

# Search ranking
PROXIMITY_DECAY_RADIUS_M: float = float(os.getenv("PROXIMITY_DECAY_RADIUS_M", "50000"))
PROXIMITY_WEIGHT: float = float(os.getenv("PROXIMITY_WEIGHT", "0.2"))

# Query defaults
DEFAULT_NEARBY_RADIUS_M: float = float(os.getenv("DEFAULT_NEARBY_RADIUS_M", "5000"))
DEFAULT_NEARBY_LIMIT: int = int(os.getenv("DEFAULT_NEARBY_LIMIT", "50"))
DEFAULT_CONTAINING_LIMIT: int = int(os.getenv("DEFAULT_CONTAINING_LIMIT", "10"))
DEFAULT_SEARCH_LIMIT: int = int(os.getenv("DEFAULT_SEARCH_LIMIT", "20"))
DEFAULT_ADJACENT_RADIUS_M: float = float(os.getenv("DEFAULT_ADJACENT_RADIUS_M", "5000"))
DEFAULT_ADJACENT_LIMIT: int = int(os.getenv("DEFAULT_ADJACENT_LIMIT", "20"))

# Place types kept from the element stream
PLACE_TYPES = {"suburb", "city_district", "borough", "neighbourhood", "quarter"}
