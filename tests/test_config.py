"""Tests for Settings.from_env."""

from __future__ import annotations

from chatroute.config import DEFAULT_BASE_URL, DEFAULT_MODEL, Settings


def test_defaults(clean_env):
    s = Settings.from_env()
    assert s.gemini_api_key == ""
    assert not s.gemini_key_present
    assert s.gemini_model == DEFAULT_MODEL
    assert s.gemini_fallback_model == ""
    assert s.gemini_base_url == DEFAULT_BASE_URL
    assert s.knowledge_cache_size == 200
    assert s.knowledge_key_chars == 200
    assert s.dedup_window_seconds == 15.0
    assert s.cors_origins == ["*"]
    assert s.port == 5000
    assert s.llm_metrics is False


def test_google_key_alias(clean_env):
    clean_env.setenv("GOOGLE_API_KEY", "g-key")
    assert Settings.from_env().gemini_api_key == "g-key"


def test_gemini_key_wins(clean_env):
    clean_env.setenv("GOOGLE_API_KEY", "g-key")
    clean_env.setenv("GEMINI_API_KEY", "  gem-key  ")
    s = Settings.from_env()
    assert s.gemini_api_key == "gem-key"
    assert s.gemini_key_present


def test_overrides(clean_env):
    clean_env.setenv("CHATROUTE_GEMINI_MODEL", "gemini-2.0-flash")
    clean_env.setenv("GEMINI_FALLBACK_MODEL", "gemini-1.5-flash-8b")
    clean_env.setenv("CHATROUTE_KNOWLEDGE_CACHE_SIZE", "50")
    clean_env.setenv("CHATROUTE_DEDUP_WINDOW_SECONDS", "2.5")
    clean_env.setenv("CHATROUTE_CORS_ORIGINS", "http://a.test, http://b.test,")
    clean_env.setenv("CHATROUTE_PORT", "8080")
    clean_env.setenv("CHATROUTE_LOG_LEVEL", "debug")
    clean_env.setenv("CHATROUTE_LLM_METRICS", "yes")
    s = Settings.from_env()
    assert s.gemini_model == "gemini-2.0-flash"
    assert s.gemini_fallback_model == "gemini-1.5-flash-8b"
    assert s.knowledge_cache_size == 50
    assert s.dedup_window_seconds == 2.5
    assert s.cors_origins == ["http://a.test", "http://b.test"]
    assert s.port == 8080
    assert s.log_level == "DEBUG"
    assert s.llm_metrics is True


def test_bad_numbers_fall_back(clean_env):
    clean_env.setenv("CHATROUTE_PORT", "eighty")
    clean_env.setenv("CHATROUTE_GEMINI_TIMEOUT", "soon")
    clean_env.setenv("CHATROUTE_KNOWLEDGE_KEY_CHARS", "0")
    s = Settings.from_env()
    assert s.port == 5000
    assert s.gemini_timeout_seconds == 60.0
    assert s.knowledge_key_chars == 1
