"""Pydantic schemas for routed intents.

Model output is untrusted. Everything the router returns goes through
``RoutedIntent`` so that:
- ``type`` is always one of the five known variants
- ``url`` is re-validated on every construction and assignment
  (only http/https with a host survive)
- the response only carries the fields of its own variant
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatroute.llm.json_repair import coerce_int, coerce_str, coerce_str_list

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s")


class IntentType(str, Enum):
    """The five routed intent variants."""
    REPLY = "reply"
    OPEN_TOOL = "open_tool"
    OPEN_URL = "open_url"
    ACTION = "action"
    CLARIFY = "clarify"


class ToolId(str, Enum):
    """Internal tools the UI can open."""
    TASK_SCHEDULER = "task-scheduler"
    TEXT_SUMMARIZER = "text-summarizer"
    CODE_EXPLAINER = "code-explainer"
    IMAGE_CAPTION = "image-caption"
    KNOWLEDGE_AGENT = "knowledge-agent"


TOOL_IDS = frozenset(t.value for t in ToolId)

# Which fields belong to which variant when serialized.
_VARIANT_FIELDS: dict[IntentType, tuple[str, ...]] = {
    IntentType.REPLY: ("text",),
    IntentType.OPEN_TOOL: ("tool_id", "event"),
    IntentType.OPEN_URL: ("url",),
    IntentType.ACTION: ("action", "event"),
    IntentType.CLARIFY: ("question",),
}


def sanitize_url(url: Any) -> Optional[str]:
    """Return ``url`` if it is an absolute http(s) URL with a host, else None.

    ``javascript:``, ``data:``, ``file:`` and relative references are dropped.
    """
    if not isinstance(url, str):
        return None
    candidate = url.strip()
    if not candidate or _WS_RE.search(candidate):
        return None
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return None
    return candidate


class ConversationTurn(BaseModel):
    """One message of the recent transcript sent along with a route request."""

    model_config = ConfigDict(extra="ignore")

    role: str = "user"
    text: str = ""

    @field_validator("text", "role", mode="before")
    @classmethod
    def coerce_to_str(cls, v):
        return "" if v is None else str(v)


class CalendarEvent(BaseModel):
    """Structured event handed to the scheduler tool."""

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    date: Optional[str] = Field(None, description="YYYY-MM-DD")
    time: Optional[str] = Field(None, description="HH:MM (24h)")
    duration_minutes: Optional[int] = Field(None, alias="durationMinutes")
    attendees: list[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @classmethod
    def from_model_output(cls, data: Mapping[str, Any]) -> "CalendarEvent":
        """Coerce an untrusted extraction payload; bad fields become null/empty."""
        return cls(
            title=coerce_str(data.get("title")),
            date=coerce_str(data.get("date")),
            time=coerce_str(data.get("time")),
            duration_minutes=coerce_int(data.get("durationMinutes")),
            attendees=coerce_str_list(data.get("attendees")) if isinstance(data.get("attendees"), list) else [],
            notes=coerce_str(data.get("notes")),
        )

    @property
    def is_viable(self) -> bool:
        return bool(self.title and self.date)


class RoutedIntent(BaseModel):
    """Typed router result (tagged union on ``type``)."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    type: IntentType = IntentType.REPLY
    text: Optional[str] = None
    tool_id: Optional[str] = Field(None, alias="toolId")
    url: Optional[str] = None
    action: Optional[str] = None
    question: Optional[str] = None
    event: Optional[CalendarEvent] = None

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        if isinstance(v, IntentType):
            return v
        try:
            return IntentType(str(v).strip().lower())
        except ValueError:
            logger.debug("[ROUTER] unknown intent type %r, using reply", v)
            return IntentType.REPLY

    @field_validator("url", mode="before")
    @classmethod
    def revalidate_url(cls, v):
        return sanitize_url(v)

    @classmethod
    def reply(cls, text: str) -> "RoutedIntent":
        return cls(type=IntentType.REPLY, text=text)

    @classmethod
    def clarify(cls, question: str) -> "RoutedIntent":
        return cls(type=IntentType.CLARIFY, question=question)

    @classmethod
    def from_model_output(cls, data: Mapping[str, Any]) -> "RoutedIntent":
        """Build from extracted model JSON, coercing every field."""
        event = data.get("event")
        return cls(
            event=CalendarEvent.from_model_output(event) if isinstance(event, Mapping) else None,
            type=data.get("type") or IntentType.REPLY,
            text=coerce_str(data.get("text")),
            tool_id=coerce_str(data.get("toolId")),
            url=data.get("url"),
            action=coerce_str(data.get("action")),
            question=coerce_str(data.get("question")),
        )

    def to_response(self) -> dict[str, Any]:
        """Wire shape: ``type`` plus the populated fields of this variant (camelCase)."""
        keep = {"type", *_VARIANT_FIELDS[self.type]}
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            include=keep,
        )
