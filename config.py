from pathlib import Path
from dotenv import load_dotenv
import os

load_dotenv()

BASE_DIR = Path(__file__).parent

# GTFS static feed: a directory of .txt tables or a GTFS .zip
BUS_DATA: str = os.getenv("BUS_DATA", str(BASE_DIR / "data"))

# All "today" and "already departed" decisions use this zone
# Madison Metro runs on Central time.
LOCAL_TIMEZONE: str = os.getenv("LOCAL_TIMEZONE", "America/Chicago")

# Departures listed when no explicit count is requested
DEFAULT_HOW_MANY: int = int(os.getenv("DEFAULT_HOW_MANY", "10"))

# GTFS-Realtime trip updates: http(s) URL or local file, protobuf or JSON
GTFS_RT_FEED: str = os.getenv("GTFS_RT_FEED", "")
GTFS_RT_API_KEY: str = os.getenv("GTFS_RT_API_KEY", "")  # appended as ?key= on each RT request
GTFS_RT_TIMEOUT_SECONDS: float = float(os.getenv("GTFS_RT_TIMEOUT_SECONDS", "15"))
GTFS_RT_POLL_SECONDS: int = int(os.getenv("GTFS_RT_POLL_SECONDS", "30"))

# API
API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING")
