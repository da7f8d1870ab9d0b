"""Intent router: an ordered pipeline of named stages over a route draft.

``IntentRouter.route`` runs ``STAGES`` in order. Each stage reads and
mutates the ``RouteDraft``; a stage may set ``draft.finished`` to skip the
rest. Only ``LLMRateLimitError`` / ``LLMModelUnavailableError`` from the
primary model call escape ``route``; every other failure becomes a
well-formed ``RoutedIntent``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from chatroute.llm.base import LLMRetryableError, ModelGateway
from chatroute.llm.json_repair import extract_json_block
from chatroute.router import heuristics as h
from chatroute.router import prompts
from chatroute.router.dedup import RecentActionLog
from chatroute.router.schemas import (
    TOOL_IDS,
    ConversationTurn,
    IntentType,
    RoutedIntent,
    ToolId,
)

logger = logging.getLogger(__name__)

CONTEXT_TURNS = 6
ROUTE_TEMPERATURE = 0.55
GENERATE_TEMPERATURE = 0.7
ENRICH_TEMPERATURE = 0.65
SOFTEN_TEMPERATURE = 0.55

MODEL_TROUBLE_TEXT = "I had a temporary issue reaching the model. Please rephrase or try again in a moment."
MISSING_URL_QUESTION = "Which URL should I open?"
YOUTUBE_SEARCH_QUESTION = "Do you want me to search that on YouTube?"
FOLLOW_UP_HINT = "\n\nFollow-up suggestions: ask for examples, architecture, or comparisons."
ENRICH_FALLBACK_TEXT = "I am here to help."
SOFTEN_FALLBACK_TEXT = "Here is a concise explanation."

TurnLike = Union[ConversationTurn, Mapping[str, Any]]


@dataclass
class RouteDraft:
    """Mutable state threaded through the router stages."""

    message: str
    recent: Optional[list[ConversationTurn]] = None
    context_snippet: str = ""
    expanded: str = ""
    raw: str = ""
    candidate_url: Optional[str] = None
    intent: RoutedIntent = field(default_factory=RoutedIntent)
    finished: bool = False
    trace: list[str] = field(default_factory=list)

    @property
    def lower(self) -> str:
        return self.message.lower()

    @property
    def knowledge_like(self) -> bool:
        return h.is_knowledge_like(self.message)


def _as_turns(recent: Optional[Iterable[TurnLike]]) -> Optional[list[ConversationTurn]]:
    if recent is None:
        return None
    turns = []
    for item in recent:
        if isinstance(item, ConversationTurn):
            turns.append(item)
        elif isinstance(item, Mapping):
            turns.append(ConversationTurn.model_validate(item))
    return turns


class IntentRouter:
    """Classify a chat message into a ``RoutedIntent``.

    Args:
        gateway: Anything implementing ``ModelGateway.call``.
        action_log: Shared duplicate-action log; a fresh 15s log if omitted.
    """

    STAGES: tuple[str, ...] = (
        "assemble_context",
        "expand_follow_up",
        "call_model",
        "parse_output",
        "sanitize_url",
        "guard_tool_open",
        "guard_missing_url",
        "suppress_duplicates",
        "apply_shortcuts",
        "run_specialized_calls",
        "reclassify_knowledge_links",
        "enrich_reply",
        "soften_clarify",
    )

    def __init__(self, gateway: ModelGateway, action_log: Optional[RecentActionLog] = None):
        self._gateway = gateway
        self._actions = action_log if action_log is not None else RecentActionLog()

    @property
    def action_log(self) -> RecentActionLog:
        return self._actions

    def route(self, text: str, recent: Optional[Iterable[TurnLike]] = None) -> RoutedIntent:
        draft = RouteDraft(message=str(text or ""), recent=_as_turns(recent))
        for name in self.STAGES:
            getattr(self, name)(draft)
            draft.trace.append(name)
            if draft.finished:
                break
        logger.info(
            "[ROUTER] type=%s stages=%d/%d",
            draft.intent.type.value,
            len(draft.trace),
            len(self.STAGES),
        )
        return draft.intent

    # -------------------------------------------------------------------
    # Stages 1-4: prompt, model call, parse
    # -------------------------------------------------------------------

    def assemble_context(self, draft: RouteDraft) -> None:
        """Render the last six turns as a reference transcript."""
        if draft.recent is None:
            return
        lines = [
            f"{'Assistant' if t.role == 'assistant' else 'User'}: {t.text}"
            for t in draft.recent[-CONTEXT_TURNS:]
        ]
        draft.context_snippet = f"{prompts.CONTEXT_HEADER}\n" + "\n".join(lines) + "\n---"

    def expand_follow_up(self, draft: RouteDraft) -> None:
        """Short follow-ups ("and its history?") inherit the previous question."""
        draft.expanded = draft.message
        if not draft.recent:
            return
        user_turns = [t for t in draft.recent if t.role == "user"]
        if len(user_turns) < 2:
            return
        previous = user_turns[-2].text
        words = h.word_count(draft.message.strip().lower())
        if 0 < words <= h.FOLLOW_UP_MAX_WORDS and h.is_follow_up_anchor(previous):
            draft.expanded = (
                f"In the context of: {previous} -> Please elaborate specifically on: {draft.message}"
            )
            logger.debug("[ROUTER] follow-up expanded against %r", previous[:60])

    def call_model(self, draft: RouteDraft) -> None:
        prompt = prompts.build_route_prompt(draft.context_snippet, draft.expanded)
        try:
            draft.raw = self._gateway.call(prompt, json=True, temperature=ROUTE_TEMPERATURE)
        except LLMRetryableError:
            raise
        except Exception as e:
            logger.error("[ROUTER] primary model error: %s", e)
            draft.intent = RoutedIntent.reply(MODEL_TROUBLE_TEXT)
            draft.finished = True

    def parse_output(self, draft: RouteDraft) -> None:
        """Extract JSON; without a ``type`` fall back to url/plain-text inference."""
        data = extract_json_block(draft.raw) or {}
        if not data.get("type"):
            if h.contains_url(draft.raw):
                data = {"type": IntentType.OPEN_URL.value, "url": h.first_url(draft.raw)}
            else:
                data = {"type": IntentType.REPLY.value, "text": draft.raw.strip()}
        draft.candidate_url = data.get("url") if isinstance(data.get("url"), str) else None
        draft.intent = RoutedIntent.from_model_output(data)

    # -------------------------------------------------------------------
    # Stages 5-9: guards and overrides
    # -------------------------------------------------------------------

    def sanitize_url(self, draft: RouteDraft) -> None:
        draft.intent.url = draft.candidate_url
        if draft.candidate_url and draft.intent.url is None:
            logger.warning("[ROUTER] dropped unsafe url %r", draft.candidate_url[:80])

    def guard_tool_open(self, draft: RouteDraft) -> None:
        """open_tool needs an explicit request; definition queries never open the knowledge agent."""
        intent = draft.intent
        if intent.type is not IntentType.OPEN_TOOL:
            return
        tool_id = intent.tool_id or ""
        explicit = tool_id in TOOL_IDS and h.explicitly_requests_tool(draft.lower, tool_id)
        knowledge_tool = tool_id == ToolId.KNOWLEDGE_AGENT.value
        if not explicit or (knowledge_tool and h.is_pure_definition_query(draft.lower)):
            logger.debug("[ROUTER] open_tool %r downgraded to reply", tool_id)
            intent.type = IntentType.REPLY

    def guard_missing_url(self, draft: RouteDraft) -> None:
        intent = draft.intent
        if intent.type is IntentType.OPEN_URL and not intent.url:
            intent.type = IntentType.CLARIFY
            intent.question = MISSING_URL_QUESTION

    def suppress_duplicates(self, draft: RouteDraft) -> None:
        intent = draft.intent
        if intent.type is IntentType.OPEN_URL and intent.url:
            if self._actions.is_duplicate(f"url:{intent.url}"):
                intent.type = IntentType.REPLY
                intent.text = f"Already opened recently. Let me know if you need something else about {intent.url}."
        elif intent.type is IntentType.OPEN_TOOL and intent.tool_id:
            if self._actions.is_duplicate(f"tool:{intent.tool_id}"):
                intent.type = IntentType.REPLY
                intent.text = (
                    f"The {intent.tool_id} is already active recently. "
                    "Ask your question directly or specify another tool."
                )

    def apply_shortcuts(self, draft: RouteDraft) -> None:
        """YouTube shortcuts override whatever the model said."""
        intent = draft.intent
        url = h.youtube_shortcut_url(draft.lower)
        if url:
            intent.type = IntentType.OPEN_URL
            intent.url = url
        elif h.is_vague_youtube_request(draft.lower) and intent.type is IntentType.REPLY:
            intent.type = IntentType.CLARIFY
            intent.question = YOUTUBE_SEARCH_QUESTION

    # -------------------------------------------------------------------
    # Stages 10-13: secondary model calls
    # -------------------------------------------------------------------

    def _secondary_reply(
        self,
        draft: RouteDraft,
        label: str,
        prompt: str,
        empty_text: str,
        failure_text: str,
        temperature: float = 0.4,
    ) -> None:
        try:
            answer = self._gateway.call(prompt, temperature=temperature)
        except Exception as e:
            logger.error("[ROUTER] %s error: %s", label, e)
            answer, empty_text = "", failure_text
        draft.intent.type = IntentType.REPLY
        draft.intent.text = answer or empty_text

    def run_specialized_calls(self, draft: RouteDraft) -> None:
        """Code explanation, summarization and code generation; later matches win."""
        text = draft.message
        if h.wants_code_explanation(text):
            self._secondary_reply(
                draft,
                "code explain",
                prompts.build_explain_code_prompt(h.code_after_explain_marker(text)),
                "Here is an explanation.",
                "I could not explain that code right now.",
            )
        if h.wants_summary(text):
            self._secondary_reply(
                draft,
                "summarizer",
                prompts.build_summarize_prompt(text),
                "Summary unavailable.",
                "I could not summarize that right now.",
            )
        if h.wants_code_generation(text):
            self._secondary_reply(
                draft,
                "code generate",
                prompts.build_generate_code_prompt(text),
                "Here is a minimal example.",
                "I was unable to generate code just now.",
                temperature=GENERATE_TEMPERATURE,
            )

    def reclassify_knowledge_links(self, draft: RouteDraft) -> None:
        """A "what is kubernetes" question wants an explanation, not kubernetes.io."""
        intent = draft.intent
        if draft.knowledge_like and intent.type is IntentType.OPEN_URL and h.is_documentation_site(intent.url):
            intent.type = IntentType.REPLY
            intent.text = None

    def enrich_reply(self, draft: RouteDraft) -> None:
        intent = draft.intent
        if intent.type is not IntentType.REPLY:
            return
        current = (intent.text or "").strip()
        if h.is_low_info(current):
            try:
                enriched = self._gateway.call(
                    prompts.build_enrich_prompt(draft.message, draft.knowledge_like),
                    temperature=ENRICH_TEMPERATURE,
                )
                intent.text = enriched or ENRICH_FALLBACK_TEXT
            except Exception as e:
                logger.error("[ROUTER] enrichment error: %s", e)
                intent.text = intent.text or ENRICH_FALLBACK_TEXT
        elif (
            draft.knowledge_like
            and len(current) < h.SHORT_ANSWER_MAX_CHARS
            and not h.has_key_points(current)
        ):
            intent.text = current + FOLLOW_UP_HINT

    def soften_clarify(self, draft: RouteDraft) -> None:
        """Definition questions get a direct answer instead of a clarify."""
        intent = draft.intent
        if intent.type is not IntentType.CLARIFY or not h.starts_with_definition(draft.message):
            return
        try:
            answer = self._gateway.call(
                prompts.build_direct_explanation_prompt(draft.message),
                temperature=SOFTEN_TEMPERATURE,
            )
            intent.text = answer or SOFTEN_FALLBACK_TEXT
        except Exception as e:
            logger.error("[ROUTER] clarify->reply enrichment error: %s", e)
            intent.text = intent.text or SOFTEN_FALLBACK_TEXT
        intent.type = IntentType.REPLY
        intent.question = None
