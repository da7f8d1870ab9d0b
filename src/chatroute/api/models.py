"""Pydantic models for the chatroute HTTP API.

Request bodies keep every field optional so that a
missing ``text`` is answered with ``400 missing_text`` by the handler rather
than a framework validation error.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from chatroute.router.schemas import ConversationTurn


# ─────────────────────────────────────────────────────────────
# Agent
# ─────────────────────────────────────────────────────────────

class RouteContext(BaseModel):
    """Recent transcript sent along with a route request."""

    model_config = ConfigDict(extra="ignore")

    recent: Optional[List[ConversationTurn]] = Field(default=None, description="Last turns, oldest first")


class RouteIntentRequest(BaseModel):
    """POST /api/agent/routeIntent request body."""

    model_config = {
        "extra": "ignore",
        "json_schema_extra": {
            "examples": [
                {
                    "text": "open youtube",
                    "context": {"recent": [{"role": "user", "text": "hi"}, {"role": "assistant", "text": "Hello!"}]},
                }
            ]
        },
    }

    text: Optional[str] = Field(default=None, description="User message")
    context: Optional[RouteContext] = None


class ParseEventRequest(BaseModel):
    """POST /api/agent/parseEvent request body."""

    model_config = {"extra": "ignore", "json_schema_extra": {"examples": [{"text": "lunch with Sam on 2025-03-01 at 12"}]}}

    text: Optional[str] = Field(default=None, description="Event description")


# ─────────────────────────────────────────────────────────────
# Raw generation
# ─────────────────────────────────────────────────────────────

class GenerateMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str = "user"
    content: str = ""


class GenerateRequest(BaseModel):
    """POST /api/gemini/generate request body."""

    model_config = ConfigDict(extra="ignore")

    prompt: Optional[str] = None
    messages: Optional[List[GenerateMessage]] = None
    model: Optional[str] = Field(default=None, description="Override the configured model")

    def merged_prompt(self) -> str:
        """Message contents one per line, then the prompt."""
        if self.messages:
            return "\n".join(m.content for m in self.messages) + "\n" + (self.prompt or "")
        return self.prompt or ""


class GenerateResponse(BaseModel):
    ok: bool = True
    text: str = ""


# ─────────────────────────────────────────────────────────────
# System
# ─────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Error body. ``retryAfterMs`` is set for quota_exhausted / model_unavailable."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = Field(default=False)
    error: str = Field(..., description="Error code or message")
    retry_after_ms: Optional[int] = Field(default=None, alias="retryAfterMs")

    def to_content(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class DiagnosticsResponse(BaseModel):
    """GET /api/agent/diagnostics response body."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    gemini_key_present: bool = Field(..., alias="geminiKeyPresent")
    blocked_until: int = Field(..., alias="blockedUntil", description="Epoch ms; 0 when never blocked")
    now: int = Field(..., description="Server clock, epoch ms")


class HealthResponse(BaseModel):
    """GET /api/health response body."""

    ok: bool = True
    service: str = "chatroute"
    ts: int = Field(..., description="Epoch ms")
