"""Land stats configuration loaded from environment variables."""

import logging
import os
import sys

from pythonjsonlogger import jsonlogger

# ---------------------------------------------------------------------------
# ClickHouse connection
# ---------------------------------------------------------------------------
CLICKHOUSE_HOST = os.environ.get("CLICKHOUSE_HOST", "localhost")
CLICKHOUSE_PORT = int(os.environ.get("CLICKHOUSE_PORT", "8443"))
CLICKHOUSE_USER = os.environ.get("CLICKHOUSE_USER", "default")
CLICKHOUSE_PASSWORD = os.environ.get("CLICKHOUSE_PASSWORD", "")
CLICKHOUSE_DATABASE = os.environ.get("CLICKHOUSE_DATABASE", "landstats")
CLICKHOUSE_SECURE = os.environ.get("CLICKHOUSE_SECURE", "true").lower() == "true"

# ---------------------------------------------------------------------------
# Upstream contribution API
# ---------------------------------------------------------------------------
CONTRIBUTION_API_URL = os.environ.get(
    "CONTRIBUTION_API_URL",
    "https://api-lok-live.leagueofkingdoms.com/api/stat/land/contribution",
)
HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "30.0"))   # httpx timeout in seconds
MAX_FETCH_WINDOW_DAYS = 7

# ---------------------------------------------------------------------------
# Rate limit / retry
# ---------------------------------------------------------------------------
RATE_LIMIT_TOKENS_PER_PERIOD = int(os.environ.get("RATE_LIMIT_TOKENS_PER_PERIOD", "60"))
RATE_LIMIT_PERIOD_SECONDS = float(os.environ.get("RATE_LIMIT_PERIOD_SECONDS", "60"))
RATE_LIMIT_MIN_BUFFER = 0.1      # Seconds added on top of every refill wait
RETRY_MAX_ATTEMPTS = int(os.environ.get("RETRY_MAX_ATTEMPTS", "5"))
RETRY_FORBIDDEN_WAIT_SECONDS = float(os.environ.get("RETRY_FORBIDDEN_WAIT_SECONDS", "60"))

# ---------------------------------------------------------------------------
# Daily sweep
# ---------------------------------------------------------------------------
LAND_ID_START = int(os.environ.get("LAND_ID_START", "132768"))
LAND_ID_END = int(os.environ.get("LAND_ID_END", "165535"))          # inclusive
DAILY_SWEEP_HOUR = 6             # UTC
DAILY_SWEEP_MINUTE = 30
RECOVERY_CHECK_HOURS = "1/8"     # cron hour expression, UTC

# 0 disables automatic quarantine
BAD_LAND_FAILURE_THRESHOLD = int(os.environ.get("BAD_LAND_FAILURE_THRESHOLD", "0"))

# ---------------------------------------------------------------------------
# Writer settings
# ---------------------------------------------------------------------------
WRITER_MAX_RETRIES = 3
WRITER_BASE_BACKOFF = 1.0        # Seconds, doubles per retry

# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
LEADERBOARD_SIZE = 10

# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------
HEALTH_CHECK_PORT = int(os.environ.get("HEALTH_CHECK_PORT", "8080"))

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def setup_logging() -> None:
    """Configure structured JSON logging."""
    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(LOG_LEVEL)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("clickhouse_connect").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
