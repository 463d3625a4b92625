# erlink/config.py
import os

# --- Storage ---
DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/erlink")

# --- Case events (optional) ---
REDIS_URL = os.getenv("REDIS_URL")  # events are only logged when unset
EVENTS_CHANNEL_PREFIX = os.getenv("EVENTS_CHANNEL_PREFIX", "erlink")

# --- Dispatch ---
DEFAULT_BED_CATEGORY = os.getenv("DEFAULT_BED_CATEGORY", "Emergency")
LIMITED_FREE_RATIO = float(os.getenv("LIMITED_FREE_RATIO", "0.2"))  # below this share of free beds -> "limited"
SEARCH_SCORE_CUTOFF = int(os.getenv("SEARCH_SCORE_CUTOFF", "80"))

# --- WebSocket feed ---
WS_POLL_SECONDS = float(os.getenv("WS_POLL_SECONDS", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
