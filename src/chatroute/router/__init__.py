"""Intent routing: prompt templates, typed results, guard pipeline."""
from chatroute.router.dedup import RecentActionLog
from chatroute.router.engine import IntentRouter, RouteDraft
from chatroute.router.event_extractor import EventExtractor
from chatroute.router.schemas import (
    CalendarEvent,
    ConversationTurn,
    IntentType,
    RoutedIntent,
    ToolId,
    sanitize_url,
)

__all__ = [
    "RecentActionLog",
    "IntentRouter",
    "RouteDraft",
    "EventExtractor",
    "CalendarEvent",
    "ConversationTurn",
    "IntentType",
    "RoutedIntent",
    "ToolId",
    "sanitize_url",
]
