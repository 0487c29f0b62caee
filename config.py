"""
Station Explorer - Configuration
Central configuration for the upstream weather API, rate limiting and ingestion.
"""

import os as _os
from dataclasses import dataclass
from typing import Optional


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = _os.environ.get(name, "")
    if not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = _os.environ.get(name, "")
    if not raw.strip():
        return default
    return int(raw)


# ============================================================================
# UPSTREAM API
# ============================================================================

UPSTREAM_BASE_URL = _os.environ.get("UPSTREAM_BASE_URL", "https://sfc.windbornesystems.com")

# None disables the timeout entirely; only the observation retry bounds latency.
UPSTREAM_TIMEOUT_SECONDS = _env_float("UPSTREAM_TIMEOUT_SECONDS", None)

STATION_LIST_PATH = "/stations"
OBSERVATION_PATH = "/historical_weather"

# ============================================================================
# RATE LIMITING (token bucket, one per process)
# ============================================================================

RATE_LIMIT_CAPACITY = _env_float("RATE_LIMIT_CAPACITY", 20.0)
RATE_LIMIT_PER_MINUTE = _env_float("RATE_LIMIT_PER_MINUTE", 20.0)
RATE_LIMIT_MESSAGE = "Rate limit: 20/min. Please retry shortly."

# ============================================================================
# CACHE POLICY
# ============================================================================

PUBLIC_CACHE_CONTROL = "public, s-maxage=60, stale-while-revalidate=300"
NO_STORE_CACHE_CONTROL = "no-store"

# ============================================================================
# INGESTION
# ============================================================================

OBSERVATION_RETRY_ATTEMPTS = _env_int("OBSERVATION_RETRY_ATTEMPTS", 2)
OBSERVATION_RETRY_BACKOFF_MS = _env_int("OBSERVATION_RETRY_BACKOFF_MS", 1200)

# Nested objects deeper than this are kept as opaque leaf values.
FLATTEN_MAX_DEPTH = 16

# Outlier annotation
QC_MIN_SAMPLES = 6
QC_Z_THRESHOLD = 3.0

# ============================================================================
# QUESTION FORM
# ============================================================================

QUESTION_URL = _os.environ.get("QUESTION_URL", "https://windbornesystems.com/career_applications.json")


@dataclass
class QuestionFormConfig:
    """Fixed fields of the submission forwarded to the question endpoint."""
    name: str = "ASOS Explorer Question"
    role: str = "Software Engineering Intern Product"
    submission_url: str = "https://example.com"
    portfolio_url: str = "https://example.com"
    resume_url: str = "https://example.com"
    notes_prefix: str = "Question from webapp:\n"


QUESTION_FORM = QuestionFormConfig()
