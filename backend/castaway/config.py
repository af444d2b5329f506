"""
Runtime settings read from the environment (and a .env file, if present).
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


@dataclass(frozen=True)
class Settings:
    generation_timeout: float = 45.0
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_dir: Path = Path("logs")

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CASTAWAY_CORS_ORIGINS", "*")
        return cls(
            generation_timeout=_float("CASTAWAY_GENERATION_TIMEOUT", 45.0),
            max_attempts=max(1, _int("CASTAWAY_MAX_ATTEMPTS", 3)),
            backoff_seconds=_float("CASTAWAY_BACKOFF_SECONDS", 1.0),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_dir=Path(os.getenv("CASTAWAY_LOG_DIR", "logs")),
        )


@lru_cache
def get_settings() -> Settings:
    """Settings for this process, read once."""
    return Settings.from_env()
