# config.py

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

def _get_env_variable(var_name: str, required: bool = True, default: str = None) -> str:
    """
    Internal helper to fetch env variables and handle missing errors.
    """
    value = os.getenv(var_name, default)
    if required and not value:
        raise ValueError(f"CRITICAL ERROR: Environment variable '{var_name}' is missing in .env file.")
    return value

def _get_bool(var_name: str, default: bool) -> bool:
    value = os.getenv(var_name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")

# --- Timezone dataset source ---

# URL (http/https) or local file path of the timezone GeoJSON FeatureCollection
TZ_GEOJSON_SOURCE = _get_env_variable("TZ_GEOJSON_SOURCE", required=False, default="")

# Where uploads are pushed. Defaults to the read source.
TZ_GEOJSON_PUBLISH_URL = _get_env_variable("TZ_GEOJSON_PUBLISH_URL", required=False, default="") or TZ_GEOJSON_SOURCE

# Proxy Configuration (passed straight to aiohttp)
PROXY_URL = os.getenv("PROXY_URL") or None

# --- Durable cache ---

# "sqlite" (default) or "redis"
TZ_CACHE_BACKEND = _get_env_variable("TZ_CACHE_BACKEND", required=False, default="sqlite").lower()
if TZ_CACHE_BACKEND not in ("sqlite", "redis"):
    raise ValueError("TZ_CACHE_BACKEND in .env must be 'sqlite' or 'redis'.")

TZ_CACHE_DB = _get_env_variable("TZ_CACHE_DB", required=False, default="timezone_cache.db")
TZ_CACHE_KEY = _get_env_variable("TZ_CACHE_KEY", required=False, default="timezone-geojson-data")

# --- Redis ---

REDIS_HOST = _get_env_variable("REDIS_HOST", required=False, default="localhost")
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD") or None

try:
    REDIS_PORT = int(_get_env_variable("REDIS_PORT", required=False, default="6379"))
    REDIS_DB = int(_get_env_variable("REDIS_DB", required=False, default="0"))
    REDIS_MAX_CONNECTIONS = int(_get_env_variable("REDIS_MAX_CONNECTIONS", required=False, default="10"))
except (ValueError, TypeError):
    raise ValueError("REDIS_PORT, REDIS_DB and REDIS_MAX_CONNECTIONS in .env must be integers.")

def get_redis_url() -> str:
    """
    Builds the redis:// URL from the individual settings.
    """
    auth = f":{REDIS_PASSWORD}@" if REDIS_PASSWORD else ""
    return f"redis://{auth}{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}"

# --- Rendering ---

# When off, only the magenta border is drawn for each timezone polygon
TZ_FILL_ENABLED = _get_bool("TZ_FILL_ENABLED", True)

# --- Logging ---

LOG_LEVEL = _get_env_variable("LOG_LEVEL", required=False, default="INFO").upper()
