"""Chat-turn orchestration on top of the router.

``AssistantSession`` is what a chat front end does with one user message:
- respect a local cool-down after quota / overload answers
- try the schedule slot filler before any model call
- expand short follow-ups against the last knowledge topic
- route with the last six transcript turns
- render the routed intent as an assistant message (plus a tool or URL to open)
"""

from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

from chatroute.llm.base import LLMModelUnavailableError, LLMRateLimitError
from chatroute.nlu.knowledge import (
    expand_with_topic,
    extract_topic,
    is_knowledge_question,
    local_fallback_answer,
)
from chatroute.nlu.schedule_flow import ScheduleSlotFiller
from chatroute.router.engine import CONTEXT_TURNS, IntentRouter
from chatroute.router.event_extractor import CREATE_EVENT_ACTION, EventExtractor
from chatroute.router.schemas import CalendarEvent, ConversationTurn, IntentType, RoutedIntent, ToolId

logger = logging.getLogger(__name__)

QUOTA_FALLBACK_MS = 15_000
UNAVAILABLE_FALLBACK_MS = 8_000
EMAIL_TOOL_ID = "email-assistant"

TOOL_NAMES = {
    ToolId.TASK_SCHEDULER.value: "Task Scheduler",
    ToolId.TEXT_SUMMARIZER.value: "Text Summarizer",
    ToolId.CODE_EXPLAINER.value: "Code Explainer",
    ToolId.IMAGE_CAPTION.value: "Image Caption",
    ToolId.KNOWLEDGE_AGENT.value: "Knowledge Agent",
}

_EMAIL_DRAFT_RE = re.compile(r"\b(draft|write|compose) (an? )?email\b", re.IGNORECASE)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _seconds(ms: int) -> int:
    return int(math.ceil(ms / 1000))


@dataclass
class AssistantTurn:
    """Assistant side of one exchange."""

    text: str
    intent: Optional[RoutedIntent] = None
    open_tool: Optional[str] = None
    open_url: Optional[str] = None
    event: Optional[CalendarEvent] = None
    retry_after_ms: int = 0
    blocked: bool = False


class AssistantSession:
    """One conversation: transcript, knowledge topic, slot filler, cool-downs."""

    def __init__(
        self,
        router: IntentRouter,
        extractor: EventExtractor,
        *,
        slot_filler: Optional[ScheduleSlotFiller] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._router = router
        self._extractor = extractor
        self._slots = slot_filler or ScheduleSlotFiller()
        self._clock = clock or _now_ms
        self.transcript: list[ConversationTurn] = []
        self.topic: Optional[str] = None
        self.quota_blocked_until = 0
        self.model_unavailable_until = 0

    @property
    def slot_filler(self) -> ScheduleSlotFiller:
        return self._slots

    def send(self, text: str) -> AssistantTurn:
        text = (text or "").strip()
        if not text:
            return AssistantTurn(text="", blocked=True)

        now = self._clock()
        if now < self.quota_blocked_until:
            wait = self.quota_blocked_until - now
            return AssistantTurn(
                text=f"Please wait {_seconds(wait)}s before trying again.",
                retry_after_ms=wait,
                blocked=True,
            )
        if now < self.model_unavailable_until:
            logger.info("[ASSISTANT] model overloaded, retry in %ds", _seconds(self.model_unavailable_until - now))

        recent = self.transcript[-CONTEXT_TURNS:]
        self.transcript.append(ConversationTurn(role="user", text=text))

        outbound = text if is_knowledge_question(text) else expand_with_topic(text, self.topic)

        step = self._slots.handle(text)
        if step is not None:
            turn = AssistantTurn(text=step.message, intent=step.intent)
            if step.is_handoff:
                turn.open_tool = ToolId.TASK_SCHEDULER.value
                turn.event = step.intent.event
            return self._reply(turn)

        try:
            intent = self._router.route(outbound, recent)
            turn = self._render(text, intent)
        except LLMRateLimitError as e:
            retry_ms = e.retry_after_ms or QUOTA_FALLBACK_MS
            self.quota_blocked_until = now + retry_ms
            logger.warning("[ASSISTANT] quota exhausted, cooling down %dms", retry_ms)
            turn = AssistantTurn(
                text=f"Model quota exhausted. Cooling down for ~{_seconds(retry_ms)}s. I will be ready again shortly.",
                retry_after_ms=retry_ms,
            )
        except LLMModelUnavailableError as e:
            retry_ms = e.retry_after_ms or UNAVAILABLE_FALLBACK_MS
            self.model_unavailable_until = now + retry_ms
            logger.warning("[ASSISTANT] model unavailable, cooling down %dms", retry_ms)
            local = local_fallback_answer(text, _seconds(retry_ms))
            turn = AssistantTurn(
                text=local or f"Model temporarily overloaded. Retry in ~{_seconds(retry_ms)}s or ask a simpler question.",
                retry_after_ms=retry_ms,
            )
        return self._reply(turn)

    def reset(self) -> None:
        self.transcript.clear()
        self.topic = None
        self.quota_blocked_until = 0
        self.model_unavailable_until = 0
        self._slots.abandon()

    def _reply(self, turn: AssistantTurn) -> AssistantTurn:
        self.transcript.append(ConversationTurn(role="assistant", text=turn.text))
        return turn

    def _render(self, text: str, intent: RoutedIntent) -> AssistantTurn:
        knowledge = is_knowledge_question(text)
        turn = AssistantTurn(text="", intent=intent)

        if intent.type is IntentType.REPLY:
            turn.text = intent.text or "..."
            if knowledge:
                self.topic = extract_topic(text)

        elif intent.type is IntentType.OPEN_TOOL:
            name = TOOL_NAMES.get(intent.tool_id or "", "AI Tool")
            turn.text = f"I'll help you with that! Opening the {name} for you."
            turn.open_tool = intent.tool_id

        elif intent.type is IntentType.ACTION:
            if intent.action == CREATE_EVENT_ACTION:
                turn = self._create_event(text, intent)
            else:
                turn.text = f"Performed action: {intent.action or 'unknown_action'}"

        elif intent.type is IntentType.OPEN_URL:
            if intent.url:
                turn.text = f"Opening {intent.url}"
                turn.open_url = intent.url
            else:
                turn.text = "I need a valid URL to open."

        elif intent.type is IntentType.CLARIFY:
            turn.text = intent.question or "Could you clarify?"
            if knowledge and not self.topic:
                self.topic = extract_topic(text)

        if _EMAIL_DRAFT_RE.search(text) and intent.type is not IntentType.OPEN_TOOL:
            turn.open_tool = EMAIL_TOOL_ID
        return turn

    def _create_event(self, text: str, intent: RoutedIntent) -> AssistantTurn:
        """``action create_event`` without an event goes through the extractor first."""
        if intent.event is None:
            intent = self._extractor.extract(text)
        if intent.type is IntentType.CLARIFY or intent.event is None:
            return AssistantTurn(text=intent.question or "Could you clarify?", intent=intent)

        event = intent.event
        at = f" at {event.time}" if event.time else ""
        self._slots.abandon()
        return AssistantTurn(
            text=f"I've created an event: {event.title} on {event.date}{at}",
            intent=intent,
            open_tool=ToolId.TASK_SCHEDULER.value,
            event=event,
        )
