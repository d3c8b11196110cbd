# backend/config.py
# Environment-aware configuration for the ROI backend

import os
from typing import Literal

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT verification (tokens are issued by the auth service)
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
ALGORITHM = "HS256"

# Database configuration
# DATABASE_URL takes precedence (managed Postgres)
# Falls back to SQLite for local development and tests
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()
DATABASE_PATH = os.environ.get("DATABASE_PATH", "roi.db")

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

if IS_STAGING or IS_PROD:
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        CORS_ORIGINS.extend(o.strip() for o in extra_origins.split(",") if o.strip())

# Database type detection
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://"))

# ROI projection defaults
DEFAULT_DURATION_YEARS = float(os.environ.get("ROI_DEFAULT_DURATION_YEARS", "5"))
# Longest holding period a caller may request (the monthly schedule has years * 12 points)
MAX_DURATION_YEARS = float(os.environ.get("ROI_MAX_DURATION_YEARS", "100"))
# Below this annual rate the monthly growth factor (1 + rate/1200) turns negative
MIN_ANNUAL_RATE_PCT = -1200.0
PESSIMISTIC_FACTOR = 0.7
OPTIMISTIC_FACTOR = 1.3
DAYS_PER_YEAR = 365

# Investments in these states never count toward portfolio totals
PORTFOLIO_EXCLUDED_STATUSES = frozenset({"cancelled", "refunded"})

# Earnings chart window (calendar months, current month included)
EARNINGS_CHART_MONTHS = 6

print(f"[CONFIG] Environment: {ENV}")
print(f"[CONFIG] Database: {'PostgreSQL' if IS_POSTGRES else 'SQLite (local dev)'}")
print(f"[CONFIG] Default projection duration: {DEFAULT_DURATION_YEARS} years")
