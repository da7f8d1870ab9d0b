"""Turn free text into a structured calendar event via the model."""

from __future__ import annotations

import logging

from chatroute.llm.base import LLMRetryableError, ModelGateway
from chatroute.llm.json_repair import extract_json_block
from chatroute.router import prompts
from chatroute.router.schemas import CalendarEvent, IntentType, RoutedIntent

logger = logging.getLogger(__name__)

CREATE_EVENT_ACTION = "create_event"
DEFAULT_CLARIFY_QUESTION = "Need more details."
MISSING_FIELDS_QUESTION = "Please provide a title and date."


class EventExtractor:
    """Extract ``{title, date, time, durationMinutes, attendees, notes}``.

    Title and date are mandatory: whatever the model says, a result without
    both is turned into a clarify.
    """

    def __init__(self, gateway: ModelGateway):
        self._gateway = gateway

    def extract(self, text: str) -> RoutedIntent:
        try:
            raw = self._gateway.call(prompts.build_extract_prompt(text), json=True)
        except LLMRetryableError:
            raise
        except Exception as e:
            logger.error("[EVENT] extraction model error: %s", e)
            return RoutedIntent.clarify(MISSING_FIELDS_QUESTION)

        data = extract_json_block(raw) or {}
        if data.get("clarify"):
            question = data.get("question")
            if not isinstance(question, str) or not question.strip():
                question = DEFAULT_CLARIFY_QUESTION
            return RoutedIntent.clarify(question.strip())

        event = CalendarEvent.from_model_output(data)
        if not event.is_viable:
            logger.debug("[EVENT] missing title/date in model output")
            return RoutedIntent.clarify(MISSING_FIELDS_QUESTION)

        return RoutedIntent(type=IntentType.ACTION, action=CREATE_EVENT_ACTION, event=event)
