"""Runtime configuration read from the environment.

Every knob has a default so the service starts with an empty environment;
without a Gemini key the gateway answers in offline mode.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"


def _env_str(*names: str, default: str = "") -> str:
    for n in names:
        v = str(os.getenv(n, "")).strip()
        if v:
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = str(os.getenv(name, "")).strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("[config] %s=%r is not an integer, using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = str(os.getenv(name, "")).strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[config] %s=%r is not a number, using %s", name, raw, default)
        return default


def _env_flag(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "")).strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "yes", "y", "on", "enable", "enabled"}


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_MODEL
    gemini_fallback_model: str = ""
    gemini_base_url: str = DEFAULT_BASE_URL
    gemini_timeout_seconds: float = 60.0
    knowledge_cache_size: int = 200
    knowledge_key_chars: int = 200
    dedup_window_seconds: float = 15.0
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"
    llm_metrics: bool = False

    @property
    def gemini_key_present(self) -> bool:
        return bool(self.gemini_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        raw_origins = _env_str("CHATROUTE_CORS_ORIGINS", default="*")
        if raw_origins == "*":
            origins = ["*"]
        else:
            origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

        return cls(
            gemini_api_key=_env_str("GEMINI_API_KEY", "GOOGLE_API_KEY"),
            gemini_model=_env_str("CHATROUTE_GEMINI_MODEL", default=DEFAULT_MODEL),
            gemini_fallback_model=_env_str("GEMINI_FALLBACK_MODEL"),
            gemini_base_url=_env_str("CHATROUTE_GEMINI_BASE_URL", default=DEFAULT_BASE_URL),
            gemini_timeout_seconds=_env_float("CHATROUTE_GEMINI_TIMEOUT", 60.0),
            knowledge_cache_size=max(1, _env_int("CHATROUTE_KNOWLEDGE_CACHE_SIZE", 200)),
            knowledge_key_chars=max(1, _env_int("CHATROUTE_KNOWLEDGE_KEY_CHARS", 200)),
            dedup_window_seconds=_env_float("CHATROUTE_DEDUP_WINDOW_SECONDS", 15.0),
            cors_origins=origins,
            host=_env_str("CHATROUTE_HOST", default="0.0.0.0"),
            port=_env_int("CHATROUTE_PORT", 5000),
            log_level=_env_str("CHATROUTE_LOG_LEVEL", default="INFO").upper(),
            llm_metrics=_env_flag("CHATROUTE_LLM_METRICS"),
        )
