"""Regex heuristics used by the intent router.

Everything here is a pure function of the user's message (or a candidate
URL). Patterns that are matched against a lowercased copy are compiled
case-sensitive on purpose; callers pass ``text.lower()``.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote

YOUTUBE_HOME = "https://www.youtube.com"
YOUTUBE_SEARCH = "https://www.youtube.com/results?search_query="

# Previous user turn looked like a question worth elaborating on.
FOLLOW_UP_ANCHOR_RE = re.compile(
    r"(what|who|why|how|when|where|explain|define|difference|overview|tell me about|generation|microprocessors?)",
    re.IGNORECASE,
)
KNOWLEDGE_LIKE_RE = re.compile(
    r"(what|who|why|how|when|where|explain|define|difference|overview|tell me about)\b",
    re.IGNORECASE,
)
_DEFINITION_START_RE = re.compile(r"^(what\s+is|what\s+are|define|explain)\b")
_DEFINITION_START_I_RE = re.compile(r"^(what\s+is|what\s+are|define|explain)\b", re.IGNORECASE)

_ANY_URL_RE = re.compile(r"https?://", re.IGNORECASE)
_FIRST_URL_RE = re.compile(r"https?://\S+")

_OPEN_YOUTUBE_RE = re.compile(r"(open|launch|go to) (youtube|yt)\b")
_SEARCH_YOUTUBE_RE = re.compile(r"^(search|find) (.+) on youtube")
_VAGUE_PREPOSITION_RE = re.compile(r"\b(for|about|regarding)\b")

_EXPLAIN_CODE_RE = re.compile(r"explain code", re.IGNORECASE)
_EXPLAIN_CODE_PREFIX_RE = re.compile(r".*explain code", re.IGNORECASE)
_SUMMARIZE_RE = re.compile(r"summari(s|z)e", re.IGNORECASE)
_CODE_NOUN_RE = re.compile(r"\b(code|program|script)\b", re.IGNORECASE)
_CODE_VERB_RE = re.compile(r"(give|show|write|example)", re.IGNORECASE)
_CODE_LANGUAGE_RE = re.compile(r"( in [a-zA-Z+#]+|javascript|python|c\b|c\+\+|java|rust|go)", re.IGNORECASE)

_DOC_SITE_RE = re.compile(r"^(https?://)?(www\.)?(kubernetes\.io|django(project)?\.com)", re.IGNORECASE)
_DOTS_ONLY_RE = re.compile(r"\.*")
_KEY_POINTS_RE = re.compile(r"\bKey Points:", re.IGNORECASE)

LOW_INFO_MIN_CHARS = 8
SHORT_ANSWER_MAX_CHARS = 400
FOLLOW_UP_MAX_WORDS = 3
PURE_DEFINITION_MAX_WORDS = 6


def word_count(text: str) -> int:
    return len((text or "").split())


def is_follow_up_anchor(previous: str) -> bool:
    return bool(FOLLOW_UP_ANCHOR_RE.search(previous or ""))


def is_knowledge_like(text: str) -> bool:
    """Informational question: question word anywhere, or ends with '?'."""
    text = text or ""
    return bool(KNOWLEDGE_LIKE_RE.search(text) or text.strip().endswith("?"))


def is_pure_definition_query(lower: str) -> bool:
    """Short "what is X" / "define X" query (at most six whitespace-separated tokens)."""
    lower = lower or ""
    return bool(_DEFINITION_START_RE.search(lower)) and len(re.split(r"\s+", lower)) <= PURE_DEFINITION_MAX_WORDS


def starts_with_definition(text: str) -> bool:
    return bool(_DEFINITION_START_I_RE.search((text or "").strip()))


def explicitly_requests_tool(lower: str, tool_id: str) -> bool:
    """True if the message names the tool with an open verb, or contains the id verbatim.

    Hyphens and spaces in the tool id are interchangeable:
    "open the task scheduler" matches ``task-scheduler``.
    """
    if not tool_id:
        return False
    name = "[ -]".join(re.escape(part) for part in tool_id.split("-"))
    verb_phrase = re.compile(rf"(open|launch|use|start|activate) (the )?{name}")
    return bool(verb_phrase.search(lower)) or tool_id in lower


def contains_url(raw: str) -> bool:
    return bool(_ANY_URL_RE.search(raw or ""))


def first_url(raw: str) -> Optional[str]:
    match = _FIRST_URL_RE.search(raw or "")
    return match.group(0) if match else None


def youtube_shortcut_url(lower: str) -> Optional[str]:
    """Direct YouTube target for "open youtube" / "search X on youtube", else None."""
    if _OPEN_YOUTUBE_RE.search(lower) and not is_pure_definition_query(lower):
        return YOUTUBE_HOME
    if _SEARCH_YOUTUBE_RE.search(lower):
        query = re.sub(r"^(search|find) ", "", lower, count=1)
        query = re.sub(r" on youtube.*", "", query, count=1).strip()
        return YOUTUBE_SEARCH + quote(query, safe="!~*'()")
    return None


def is_vague_youtube_request(lower: str) -> bool:
    """Mentions youtube with for/about/regarding but no explicit action."""
    return (
        "youtube" in lower
        and bool(_VAGUE_PREPOSITION_RE.search(lower))
        and not is_pure_definition_query(lower)
    )


def wants_code_explanation(text: str) -> bool:
    return bool(_EXPLAIN_CODE_RE.search(text or ""))


def code_after_explain_marker(text: str) -> str:
    return _EXPLAIN_CODE_PREFIX_RE.sub("", text or "", count=1).strip()


def wants_summary(text: str) -> bool:
    return bool(_SUMMARIZE_RE.search(text or ""))


def wants_code_generation(text: str) -> bool:
    text = text or ""
    return bool(
        _CODE_NOUN_RE.search(text)
        and _CODE_VERB_RE.search(text)
        and _CODE_LANGUAGE_RE.search(text)
    )


def is_documentation_site(url: Optional[str]) -> bool:
    return bool(_DOC_SITE_RE.search(url or ""))


def is_low_info(text: Optional[str]) -> bool:
    stripped = (text or "").strip()
    return not stripped or bool(_DOTS_ONLY_RE.fullmatch(stripped)) or len(stripped) < LOW_INFO_MIN_CHARS


def has_key_points(text: str) -> bool:
    return bool(_KEY_POINTS_RE.search(text or ""))
