from __future__ import annotations

import json as jsonlib
import logging
import random
import re
import time
from typing import Any, Callable, Optional

import requests

from chatroute.config import DEFAULT_BASE_URL, DEFAULT_MODEL, Settings
from chatroute.llm.base import (
    LLMConnectionError,
    LLMInvalidResponseError,
    LLMModelUnavailableError,
    LLMRateLimitError,
)
from chatroute.llm.gateway_state import GatewayState


logger = logging.getLogger(__name__)
metrics_logger = logging.getLogger("chatroute.llm.metrics")

OFFLINE_NOTE = "(offline model)"
OFFLINE_TEXT = (
    f"{OFFLINE_NOTE} I cannot reach the model right now, "
    "but you can retry after configuring GEMINI_API_KEY."
)
CACHED_MARKER = " \n\n_(cached)_"
FALLBACK_MARKER = "\n\n_(fallback model)_"

# 429: "retryDelay": "17s" or "Please retry in 17.2s"
RATE_LIMIT_DEFAULT_MS = 20_000
# 503: base backoff, bounds for a server-suggested delay, jitter fraction
OVERLOAD_BASE_MS = 8_000
OVERLOAD_MIN_MS = 3_000
OVERLOAD_MAX_MS = 15_000
OVERLOAD_JITTER = 0.25

_KNOWLEDGE_FIRST_LINE_RE = re.compile(r"\b(what is|what are|define|explain|overview of)\b", re.IGNORECASE)
_DEFINITION_MARKER_RE = re.compile(r"Definition\*\*", re.IGNORECASE)
_RETRY_DELAY_RE = re.compile(r"retry.*?(\d+(?:\.\d+)?)s", re.IGNORECASE | re.DOTALL)
_SECONDS_RE = re.compile(r"(\d+(?:\.\d+)?)s")


class GeminiClient:
    """Gemini (Google Generative Language API) gateway.

    Uses the public REST ``generateContent`` endpoint through ``requests``.
    All instances built with the same ``GatewayState`` share one cool-down
    clock and one knowledge cache.

    Behaviour per call:
      - no API key: deterministic offline placeholder, no network
      - knowledge-style prompt already cached: cached answer + marker
      - cool-down armed: ``LLMRateLimitError`` with the remaining ms
      - 429: arm cool-down from the body's retry hint (default 20s)
      - 503: arm cool-down with jittered backoff, try the fallback model once
    """

    def __init__(
        self,
        *,
        api_key: str = "",
        model: str = DEFAULT_MODEL,
        fallback_model: str = "",
        state: Optional[GatewayState] = None,
        timeout_seconds: float = 60.0,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        jitter: Optional[Callable[[], float]] = None,
        metrics: bool = False,
    ):
        self._api_key = (api_key or "").strip()
        self._model = (model or "").strip() or DEFAULT_MODEL
        self._fallback_model = (fallback_model or "").strip()
        self._state = state if state is not None else GatewayState()
        self._timeout_seconds = float(timeout_seconds)
        self._base_url = base_url.rstrip("/")
        self._http = session or requests
        self._jitter = jitter or random.random
        self._metrics = bool(metrics)

    @classmethod
    def from_settings(cls, settings: Settings, state: Optional[GatewayState] = None) -> "GeminiClient":
        if state is None:
            state = GatewayState(
                cache_capacity=settings.knowledge_cache_size,
                key_chars=settings.knowledge_key_chars,
            )
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            fallback_model=settings.gemini_fallback_model,
            state=state,
            timeout_seconds=settings.gemini_timeout_seconds,
            base_url=settings.gemini_base_url,
            metrics=settings.llm_metrics,
        )

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def backend_name(self) -> str:
        return "gemini"

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def key_present(self) -> bool:
        return bool(self._api_key)

    def status(self) -> dict[str, Any]:
        """Diagnostics snapshot: key presence and the cool-down clock."""
        return {
            "geminiKeyPresent": self.key_present,
            "blockedUntil": self._state.blocked_until,
            "now": self._state.now_ms(),
        }

    def call(
        self,
        prompt: str,
        *,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        json: bool = False,
        temperature: float = 0.4,
        max_output_tokens: int = 512,
    ) -> str:
        prompt = str(prompt or "")
        if not self._api_key:
            return _offline_answer(prompt, json)

        model_name = (model or "").strip() or self._model

        knowledge_like = is_knowledge_prompt(prompt)
        if knowledge_like:
            cached = self._state.cache.get(prompt)
            if cached is not None:
                logger.debug("[GEMINI] knowledge cache hit")
                return cached + CACHED_MARKER

        remaining = self._state.remaining_ms()
        if remaining > 0:
            logger.warning("[GEMINI] cool-down active, %dms remaining; skipping call", remaining)
            raise LLMRateLimitError(
                f"Gemini quota_exhausted retry_after_ms={remaining}",
                retry_after_ms=remaining,
            )

        payload = _build_payload(prompt, system_prompt, json, temperature, max_output_tokens)
        r = self._post(model_name, payload)

        if 200 <= r.status_code < 300:
            text_out = _extract_candidate_text(r)
            if knowledge_like:
                self._state.cache.put(prompt, text_out)
            return text_out

        body = _response_text(r)

        if r.status_code == 429:
            delay_ms = parse_rate_limit_delay_ms(body)
            self._state.block_for(delay_ms)
            logger.warning("[GEMINI] rate limited status=429 backoff=%dms", delay_ms)
            raise LLMRateLimitError(
                f"Gemini quota_exhausted retry_after_ms={delay_ms}",
                retry_after_ms=delay_ms,
            )

        if r.status_code == 503:
            delay_ms = overload_backoff_ms(body, self._jitter)
            self._state.block_for(delay_ms)
            logger.warning("[GEMINI] model overloaded status=503 model=%s backoff=%dms", model_name, delay_ms)

            if self._fallback_model and self._fallback_model != model_name:
                alt = self._try_fallback(prompt, payload, knowledge_like)
                if alt is not None:
                    return alt + FALLBACK_MARKER

            raise LLMModelUnavailableError(
                f"Gemini model_unavailable retry_after_ms={delay_ms}",
                retry_after_ms=delay_ms,
            )

        raise LLMInvalidResponseError(
            f"Gemini API error {r.status_code}: {body[:500]}",
            status_code=r.status_code,
        )

    # -----------------------------------------------------------------------
    # HTTP helpers
    # -----------------------------------------------------------------------

    def _post(self, model_name: str, payload: dict) -> requests.Response:
        url = f"{self._base_url}/v1beta/models/{model_name}:generateContent"
        t0 = time.perf_counter()
        try:
            r = self._http.post(
                url,
                params={"key": self._api_key},
                headers={"Content-Type": "application/json"},
                data=jsonlib.dumps(payload, ensure_ascii=False).encode("utf-8"),
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as e:
            elapsed_ms = int((time.perf_counter() - t0) * 1000)
            if self._metrics:
                metrics_logger.info(
                    "llm_call_failed backend=%s model=%s latency_ms=%s reason=%s",
                    self.backend_name,
                    model_name,
                    elapsed_ms,
                    type(e).__name__,
                )
            raise LLMConnectionError(f"Gemini network error: {e}") from e

        if self._metrics:
            metrics_logger.info(
                "llm_call backend=%s model=%s status=%s latency_ms=%s",
                self.backend_name,
                model_name,
                r.status_code,
                int((time.perf_counter() - t0) * 1000),
            )
        return r

    def _try_fallback(self, prompt: str, payload: dict, knowledge_like: bool) -> Optional[str]:
        """One live request against the fallback model; None when it fails."""
        try:
            r = self._post(self._fallback_model, payload)
            if not 200 <= r.status_code < 300:
                raise LLMInvalidResponseError(
                    f"fallback status={r.status_code}", status_code=r.status_code
                )
            text_out = _extract_candidate_text(r)
        except (LLMConnectionError, LLMInvalidResponseError) as exc:
            logger.warning("[GEMINI] fallback model %s failed after 503 primary: %s", self._fallback_model, exc)
            return None

        if knowledge_like:
            self._state.cache.put(prompt, text_out)
        logger.info("[GEMINI] served by fallback model %s", self._fallback_model)
        return text_out


def is_knowledge_prompt(prompt: str) -> bool:
    """Definitional question on the first line, or a definition-format prompt."""
    first_line = (prompt or "").split("\n", 1)[0]
    return bool(_KNOWLEDGE_FIRST_LINE_RE.search(first_line) or _DEFINITION_MARKER_RE.search(prompt or ""))


def parse_rate_limit_delay_ms(body: str) -> int:
    """Retry hint from a 429 body ("retry ... 17s"), default 20s."""
    match = _RETRY_DELAY_RE.search(body or "")
    if not match:
        return RATE_LIMIT_DEFAULT_MS
    return int(float(match.group(1)) * 1000)


def overload_backoff_ms(body: str, jitter: Callable[[], float] = random.random) -> int:
    """Backoff for a 503: 8s, or the body's suggestion clamped to [3s, 15s], ±25% jitter."""
    delay = float(OVERLOAD_BASE_MS)
    try:
        data = jsonlib.loads(body or "")
    except (ValueError, TypeError):
        data = None

    if isinstance(data, dict):
        err = data.get("error")
        message = err.get("message") if isinstance(err, dict) else None
        message = message or data.get("message")
        if isinstance(message, str):
            match = _SECONDS_RE.search(message)
            if match:
                delay = max(OVERLOAD_MIN_MS, min(OVERLOAD_MAX_MS, float(match.group(1)) * 1000))

    spread = delay * (jitter() * (2 * OVERLOAD_JITTER) - OVERLOAD_JITTER)
    return int(round(delay + spread))


def _offline_answer(prompt: str, json_mode: bool) -> str:
    if json_mode:
        snippet = prompt[:80].replace('"', "").replace("\n", " ")
        return jsonlib.dumps({"type": "reply", "text": f"{OFFLINE_NOTE} {snippet}..."})
    return OFFLINE_TEXT


def _build_payload(
    prompt: str,
    system_prompt: Optional[str],
    json_mode: bool,
    temperature: float,
    max_output_tokens: int,
) -> dict:
    contents = []
    if system_prompt:
        contents.append({"role": "user", "parts": [{"text": system_prompt + "\n---"}]})
    contents.append({"role": "user", "parts": [{"text": prompt}]})
    return {
        "contents": contents,
        "generationConfig": {
            "temperature": float(temperature),
            "maxOutputTokens": int(max_output_tokens),
            "responseMimeType": "application/json" if json_mode else "text/plain",
        },
    }


def _extract_candidate_text(r: requests.Response) -> str:
    try:
        data = r.json() or {}
    except ValueError as e:
        raise LLMInvalidResponseError(
            "Gemini parse_error reason=non_json_body", status_code=r.status_code
        ) from e

    candidates = data.get("candidates") or [] if isinstance(data, dict) else []
    if candidates and isinstance(candidates[0], dict):
        content_data = candidates[0].get("content") or {}
        parts = content_data.get("parts") or []
        if parts and isinstance(parts[0], dict):
            return str(parts[0].get("text") or "").strip()
    return ""


def _response_text(r: requests.Response) -> str:
    try:
        return str(r.text or "")
    except Exception:  # noqa: BLE001
        return ""
