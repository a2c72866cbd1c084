"""Runtime settings loaded from the environment (.env)."""

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

# Cached explanations containing any of these were produced by an older
# prompt format (or leaked template placeholders) and must be regenerated.
DEFAULT_STALE_MARKERS = [
    "[Nama Materi]",
    "Analogi Sederhana",
    "Mode Offline",
]


class Settings(BaseModel):
    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    max_output_tokens: int = 1000
    temperature: float = 0.7

    generation_timeout_seconds: float = 8.0
    rate_limit_attempts: int = 3
    retry_delay_seconds: float = 5.0

    cooldown_seconds: int = 60
    probe_interval_seconds: float = 600.0

    mastery_threshold: float = 0.8
    stale_cache_markers: List[str] = Field(default_factory=lambda: list(DEFAULT_STALE_MARKERS))

    session_ttl_seconds: float = 3600.0
    max_sessions: int = 1000

    redis_url: Optional[str] = None
    log_level: str = "INFO"


def _split_markers(raw: Optional[str]) -> List[str]:
    if not raw:
        return list(DEFAULT_STALE_MARKERS)
    return [m.strip() for m in raw.split(",") if m.strip()]


def load_settings() -> Settings:
    """Build settings from environment variables, falling back to defaults."""
    defaults = Settings()
    return Settings(
        google_api_key=os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY"),
        gemini_model=os.getenv("GEMINI_MODEL", defaults.gemini_model),
        max_output_tokens=int(os.getenv("MAX_OUTPUT_TOKENS", defaults.max_output_tokens)),
        temperature=float(os.getenv("TEMPERATURE", defaults.temperature)),
        generation_timeout_seconds=float(
            os.getenv("GENERATION_TIMEOUT_SECONDS", defaults.generation_timeout_seconds)
        ),
        rate_limit_attempts=int(os.getenv("RATE_LIMIT_ATTEMPTS", defaults.rate_limit_attempts)),
        retry_delay_seconds=float(os.getenv("RETRY_DELAY_SECONDS", defaults.retry_delay_seconds)),
        cooldown_seconds=int(os.getenv("COOLDOWN_SECONDS", defaults.cooldown_seconds)),
        probe_interval_seconds=float(
            os.getenv("PROBE_INTERVAL_SECONDS", defaults.probe_interval_seconds)
        ),
        mastery_threshold=float(os.getenv("MASTERY_THRESHOLD", defaults.mastery_threshold)),
        stale_cache_markers=_split_markers(os.getenv("STALE_CACHE_MARKERS")),
        session_ttl_seconds=float(os.getenv("SESSION_TTL_SECONDS", defaults.session_ttl_seconds)),
        max_sessions=int(os.getenv("MAX_SESSIONS", defaults.max_sessions)),
        redis_url=os.getenv("REDIS_URL") or None,
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
