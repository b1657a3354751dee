"""Central configuration: paths, history bounds, server settings."""
from pathlib import Path
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


# ── Filesystem paths ──────────────────────────────────────────────────────────
ROOT = Path(__file__).parent.parent
STATIC_DIR = Path(os.environ.get("RELAY_STATIC_DIR", ROOT / "public"))

# ── Server ────────────────────────────────────────────────────────────────────
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = _env_int("PORT", 3000)
CORS_ORIGINS = [
    o.strip() for o in os.environ.get("RELAY_CORS_ORIGINS", "*").split(",") if o.strip()
]

# ── History bounds ────────────────────────────────────────────────────────────
# 0 means unbounded.
MAX_COORDINATE_HISTORY = _env_int("RELAY_MAX_COORDINATES", 100)
MAX_IMAGE_HISTORY      = _env_int("RELAY_MAX_IMAGES", 0)
MAX_BANNER_HISTORY     = _env_int("RELAY_MAX_BANNERS", 0)

# ── Push channel ──────────────────────────────────────────────────────────────
SUBSCRIBER_QUEUE_SIZE = _env_int("RELAY_QUEUE_SIZE", 256)   # per connection
PING_INTERVAL_S       = float(os.environ.get("RELAY_PING_INTERVAL_S", "60"))

# Event names pushed to listeners
EVENT_COORDINATE_HISTORY = "coordinate-history"
EVENT_NEW_COORDINATE     = "new-coordinate"
EVENT_IMAGE_HISTORY      = "image-history"
EVENT_NEW_IMAGE          = "new-image"
EVENT_COORDINATES_CLEARED = "coordinates-cleared"
EVENT_IMAGES_CLEARED     = "images-cleared"
