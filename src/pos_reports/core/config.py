import os

# In a real deployment, set these through the environment
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite://./pos_reports.sqlite3")

# Day boundaries for report date ranges are evaluated in this timezone
REPORT_TIMEZONE: str = os.getenv("REPORT_TIMEZONE", "UTC")

REPORT_DEFAULT_LIMIT: int = int(os.getenv("REPORT_DEFAULT_LIMIT", "10"))
REPORT_MAX_LIMIT: int = int(os.getenv("REPORT_MAX_LIMIT", "100"))
# Zero-filled trends return at most this many buckets (about ten years of days)
REPORT_MAX_TREND_BUCKETS: int = int(os.getenv("REPORT_MAX_TREND_BUCKETS", "3660"))

# Connection provider settings
DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "10"))
DB_ACQUIRE_TIMEOUT_SECONDS: float = float(os.getenv("DB_ACQUIRE_TIMEOUT_SECONDS", "5"))
DB_QUERY_TIMEOUT_SECONDS: float = float(os.getenv("DB_QUERY_TIMEOUT_SECONDS", "15"))
DB_STATUS_CACHE_TTL_SECONDS: float = float(os.getenv("DB_STATUS_CACHE_TTL_SECONDS", "5"))

# Reported back to clients on 503 so a frontend can switch to its offline/demo values
REPORTS_OFFLINE_FALLBACK: bool = os.getenv("REPORTS_OFFLINE_FALLBACK", "False").lower() in ("true", "1", "t")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
# Comma separated logger namespaces to let through, e.g. "pos_reports.features,pos_reports.main"
LOG_NAMESPACES: list[str] = [
    ns.strip() for ns in os.getenv("LOG_NAMESPACES", "").split(",") if ns.strip()
]
