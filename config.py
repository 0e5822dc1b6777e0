# config.py
# Edit these values directly or override them via env
import os


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        parsed = int(val)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _env_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


# Application Insights connection (the key is never logged)
APPINSIGHTS_BASE_URL = os.getenv("APPINSIGHTS_BASE_URL", "https://api.applicationinsights.io")
APPINSIGHTS_APP_ID = os.getenv("APPINSIGHTS_APP_ID", "")
APPINSIGHTS_API_KEY = os.getenv("APPINSIGHTS_API_KEY", "")
QUERY_TIMEOUT = _env_int("QUERY_TIMEOUT_SECONDS", 30)   # seconds

# Queryable tables (exact, case-sensitive names)
ALLOWED_TABLES = [
    "traces",
    "requests",
    "dependencies",
    "exceptions",
    "pageViews",
    "browserTimings",
    "customEvents",
    "customMetrics",
    "performanceCounters",
    "availabilityResults",
]

# Rows appended as "| take N" when the user gave no limit; 0 disables
LOG_FETCH_SIZE = _env_int("LOG_FETCH_SIZE", 50, minimum=0)

# customDimensions flattening bounds
FLATTEN_MAX_DEPTH = _env_int("FLATTEN_MAX_DEPTH", 2, minimum=0)
FLATTEN_MAX_ENTRIES = _env_int("FLATTEN_MAX_ENTRIES", 200, minimum=0)

# Header ranking
RANK_ENABLE = _env_bool("RANK_ENABLE", True)
RANK_SAMPLE_SIZE = _env_int("RANK_SAMPLE_SIZE", 200)
RANK_LEN_THRESHOLD = _env_int("RANK_LEN_THRESHOLD", 120)
RANK_LEN_PENALTY = _env_int("RANK_LEN_PENALTY", 3, minimum=0)
RANK_REGEX = os.getenv("RANK_REGEX", "")      # "pattern=boost;pattern=boost" or JSON object
RANK_PINNED = os.getenv("RANK_PINNED", "")    # comma separated keys shown first

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
