"""
Blend Scoring Core - Configuration

All tunables load from environment variables with defaults that match the
module-level constants of each engine. A `.env` file is honoured in development.

Set BLEND_ENV=production to make validation failures fatal at import time
instead of surfacing only when `validate()` is called.
"""
import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

from blend.errors import ConfigurationError

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(name, f"expected an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(name, f"expected a number, got {raw!r}")


class Settings:
    def __init__(self):
        self.ENVIRONMENT = os.getenv("BLEND_ENV", "development")

        # === Taste profile learning ===
        self.TASTE_MIN_SAMPLE_COUNT = _env_int("TASTE_MIN_SAMPLE_COUNT", 5)
        self.TASTE_TARGET_SAMPLE_COUNT = _env_int("TASTE_TARGET_SAMPLE_COUNT", 50)
        self.TASTE_MIN_INTENT_OCCURRENCES = _env_int("TASTE_MIN_INTENT_OCCURRENCES", 2)
        self.SESSION_IDLE_MINUTES = _env_int("SESSION_IDLE_MINUTES", 30)

        # === Compatibility / discovery ===
        self.AGE_BAND_YEARS = _env_int("AGE_BAND_YEARS", 15)
        self.TASTE_MIN_CONFIDENCE = _env_float("TASTE_MIN_CONFIDENCE", 0.3)
        self.TASTE_WEIGHT = _env_float("TASTE_WEIGHT", 0.3)

        # === Rebuild scheduling ===
        self.REBUILD_EVERY_N_EVENTS = _env_int("REBUILD_EVERY_N_EVENTS", 5)
        self.REBUILD_MIN_INTERVAL_SECONDS = _env_int("REBUILD_MIN_INTERVAL_SECONDS", 300)

        # === Event log retention (0 = unbounded) ===
        self.EVENT_RETENTION_LIMIT = _env_int("EVENT_RETENTION_LIMIT", 0)

        if self.is_production:
            self.validate()

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def problems(self) -> List[str]:
        """Return every misconfiguration found (empty when valid)."""
        issues = []
        if self.TASTE_MIN_SAMPLE_COUNT < 1:
            issues.append("TASTE_MIN_SAMPLE_COUNT must be >= 1")
        if self.TASTE_TARGET_SAMPLE_COUNT < self.TASTE_MIN_SAMPLE_COUNT:
            issues.append("TASTE_TARGET_SAMPLE_COUNT must be >= TASTE_MIN_SAMPLE_COUNT")
        if self.TASTE_MIN_INTENT_OCCURRENCES < 1:
            issues.append("TASTE_MIN_INTENT_OCCURRENCES must be >= 1")
        if self.SESSION_IDLE_MINUTES <= 0:
            issues.append("SESSION_IDLE_MINUTES must be > 0")
        if self.AGE_BAND_YEARS <= 0:
            issues.append("AGE_BAND_YEARS must be > 0")
        if not 0 <= self.TASTE_MIN_CONFIDENCE <= 1:
            issues.append("TASTE_MIN_CONFIDENCE must be in [0, 1]")
        if not 0 <= self.TASTE_WEIGHT <= 1:
            issues.append("TASTE_WEIGHT must be in [0, 1]")
        if self.REBUILD_EVERY_N_EVENTS < 1:
            issues.append("REBUILD_EVERY_N_EVENTS must be >= 1")
        if self.REBUILD_MIN_INTERVAL_SECONDS < 0:
            issues.append("REBUILD_MIN_INTERVAL_SECONDS must be >= 0")
        if self.EVENT_RETENTION_LIMIT < 0:
            issues.append("EVENT_RETENTION_LIMIT must be >= 0")
        return issues

    def validate(self) -> "Settings":
        issues = self.problems()
        if issues:
            raise ConfigurationError("settings", "; ".join(issues))
        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()
