"""chatroute HTTP API: FastAPI application.

Endpoints:
    POST /api/agent/routeIntent    classify a chat message into an intent
    POST /api/agent/parseEvent     extract a calendar event from text
    POST /api/gemini/generate      raw model passthrough
    GET  /api/agent/diagnostics    key presence and cool-down clock
    GET  /api/health               liveness

Status mapping:
    400 missing_text        empty input, rejected before any model call
    429 quota_exhausted     upstream 429 or cool-down still armed
    503 model_unavailable   upstream 503 and no fallback succeeded
    500 internal_error      anything unhandled

Router and extractor work is blocking (``requests``), so handlers hand it to
a small thread pool with ``run_in_executor``.

Usage:
    from chatroute.api.server import create_app, run_http_server

    app = create_app()
    run_http_server(port=5000)
"""
from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatroute import __version__
from chatroute.api.models import (
    DiagnosticsResponse,
    ErrorResponse,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    ParseEventRequest,
    RouteIntentRequest,
)
from chatroute.config import Settings
from chatroute.llm.base import LLMRetryableError, ModelGateway
from chatroute.llm.gemini_client import GeminiClient
from chatroute.router.dedup import RecentActionLog
from chatroute.router.engine import IntentRouter
from chatroute.router.event_extractor import EventExtractor

logger = logging.getLogger(__name__)

SERVICE_NAME = "chatroute"


def _error(status_code: int, error: str, retry_after_ms: Optional[int] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, retry_after_ms=retry_after_ms).to_content(),
    )


def _retryable_response(exc: LLMRetryableError) -> JSONResponse:
    status_code = 429 if exc.reason == "quota_exhausted" else 503
    return _error(status_code, exc.reason, exc.retry_after_ms)


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[ModelGateway] = None,
    action_log: Optional[RecentActionLog] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Parameters
    ----------
    settings:
        Runtime configuration. Read from the environment if None.
    gateway:
        Model gateway. A ``GeminiClient`` built from ``settings`` if None.
    action_log:
        Duplicate-action log shared by all route requests.

    Returns
    -------
    FastAPI
        Configured application ready to serve.
    """
    settings = settings or Settings.from_env()
    if gateway is None:
        gateway = GeminiClient.from_settings(settings)
    if action_log is None:
        action_log = RecentActionLog(window_seconds=settings.dedup_window_seconds)

    executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="chatroute")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "[API] started, gemini key %s, docs=/docs",
            "present" if settings.gemini_key_present else "MISSING (offline mode)",
        )
        yield
        executor.shutdown(wait=False)
        logger.info("[API] stopped")

    app = FastAPI(
        title="chatroute API",
        description="Intent routing, event extraction and Gemini passthrough for the chat assistant.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── CORS ────────────────────────────────────────────────────────
    origins = settings.cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── App state ───────────────────────────────────────────────────
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.router = IntentRouter(gateway, action_log=action_log)
    app.state.extractor = EventExtractor(gateway)
    app.state.executor = executor
    app.state.start_time = time.time()

    async def _run(fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, fn, *args)

    # ── Exception handlers ──────────────────────────────────────────
    @app.exception_handler(RequestValidationError)
    async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("[API] invalid request body on %s: %s", request.url.path, exc.errors()[:1])
        return _error(400, "invalid_request")

    @app.exception_handler(Exception)
    async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled API error: %s", exc)
        return _error(500, "internal_error")

    # ── Agent endpoints ─────────────────────────────────────────────

    @app.post(
        "/api/agent/routeIntent",
        responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        summary="Classify a chat message",
        tags=["agent"],
    )
    async def route_intent(body: RouteIntentRequest) -> Any:
        text = (body.text or "").strip()
        if not text:
            return _error(400, "missing_text")

        recent = body.context.recent if body.context else None
        try:
            intent = await _run(app.state.router.route, text, recent)
        except LLMRetryableError as exc:
            logger.warning("[API] routeIntent %s retry_after_ms=%d", exc.reason, exc.retry_after_ms)
            return _retryable_response(exc)
        return {"ok": True, **intent.to_response()}

    @app.post(
        "/api/agent/parseEvent",
        responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        summary="Extract a calendar event",
        tags=["agent"],
    )
    async def parse_event(body: ParseEventRequest) -> Any:
        text = (body.text or "").strip()
        if not text:
            return _error(400, "missing_text")
        try:
            result = await _run(app.state.extractor.extract, text)
        except LLMRetryableError as exc:
            logger.warning("[API] parseEvent %s retry_after_ms=%d", exc.reason, exc.retry_after_ms)
            return _retryable_response(exc)
        return {"ok": True, **result.to_response()}

    @app.get(
        "/api/agent/diagnostics",
        response_model=DiagnosticsResponse,
        summary="Gateway diagnostics",
        tags=["system"],
    )
    async def diagnostics() -> Any:
        status_fn = getattr(app.state.gateway, "status", None)
        if callable(status_fn):
            status = status_fn()
        else:
            status = {"geminiKeyPresent": settings.gemini_key_present, "blockedUntil": 0, "now": int(time.time() * 1000)}
        return DiagnosticsResponse(ok=True, **status)

    # ── Raw generation ──────────────────────────────────────────────

    @app.post(
        "/api/gemini/generate",
        response_model=GenerateResponse,
        responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        summary="Raw model call",
        tags=["gemini"],
    )
    async def generate(body: GenerateRequest) -> Any:
        prompt = body.merged_prompt()
        if not prompt.strip():
            return _error(400, "missing_text")

        def _call() -> str:
            return app.state.gateway.call(prompt, model=body.model)

        try:
            text = await _run(_call)
        except LLMRetryableError as exc:
            return _retryable_response(exc)
        except Exception as exc:
            logger.error("[API] generate failed: %s", exc)
            return _error(500, str(exc) or "internal_error")
        return GenerateResponse(ok=True, text=text)

    # ── System ──────────────────────────────────────────────────────

    @app.get("/api/health", response_model=HealthResponse, summary="Health check", tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(ok=True, service=SERVICE_NAME, ts=int(time.time() * 1000))

    return app


def run_http_server(
    settings: Optional[Settings] = None,
    *,
    host: Optional[str] = None,
    port: Optional[int] = None,
    log_level: Optional[str] = None,
) -> None:
    """Start the HTTP server (blocking).

    This is the entry point for ``chatroute serve``.
    """
    import uvicorn

    settings = settings or Settings.from_env()
    host = host or settings.host
    port = int(port or settings.port)
    app = create_app(settings=settings)

    logger.info("[API] listening on http://%s:%d (docs: /docs)", host, port)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=(log_level or settings.log_level).lower(),
        access_log=True,
    )
