# SPDX-License-Identifier: MIT
"""
Knowledge-question heuristics for the chat session.

- is_knowledge_question: informational question, not an operational request
- extract_topic: short topic label used to expand later follow-ups
- expand_with_topic: "and its history" -> "In the context of X, please elaborate on: ..."
- local_fallback_answer: canned answer while the model is overloaded
"""

from __future__ import annotations

import re
from typing import Optional

TOPIC_MAX_WORDS = 8
REFINEMENT_MAX_WORDS = 3

_OPERATIONAL_RE = re.compile(r"\b(schedule|meeting|event|email|open|launch)\b")
_QUESTION_RE = re.compile(r"(what|who|why|how|when|where|explain|define|difference|overview|tell me about)\b")
_TOPIC_PREFIX_RE = re.compile(
    r"^(explain|define|tell me about|what is|what are|give me an overview of)\b",
    re.IGNORECASE,
)
_NOT_REFINEMENT_RE = re.compile(r"^(yes|no|ok|okay|thanks?|thank you)$", re.IGNORECASE)
_CODE_REQUEST_RE = re.compile(r"(example|snippet|code|write|show) (a |an )?(function|loop|class|api|component)")
_JAVASCRIPT_RE = re.compile(r"\bjavascript\b")

LOCAL_CODE_EXAMPLE = """Model temporarily unavailable, providing a local example:

// Debounced search input (JS)
function debounce(fn, delay = 300) {
  let t;
  return (...args) => {
    clearTimeout(t);
    t = setTimeout(() => fn(...args), delay);
  };
}

const input = document.querySelector('#q');
const fetchResults = debounce(async (q) => {
  if(!q) return;
  const res = await fetch('/search?q=' + encodeURIComponent(q));
  const data = await res.json();
  console.log(data);
}, 400);

input.addEventListener('input', e => fetchResults(e.target.value));

Explanation: A debounce utility prevents firing the expensive search call until the user pauses typing."""


def is_knowledge_question(text: str) -> bool:
    lower = (text or "").lower().strip()
    if len(lower) < 3:
        return False
    if _OPERATIONAL_RE.search(lower):
        return False
    return bool(_QUESTION_RE.search(lower)) or lower.endswith("?")


def extract_topic(text: str) -> Optional[str]:
    """Topic label: "what is kubernetes used for?" -> "kubernetes used for"."""
    cleaned = _TOPIC_PREFIX_RE.sub("", text or "", count=1).strip()
    cleaned = re.sub(r"\?.*$", "", cleaned, flags=re.DOTALL).strip()
    words = cleaned.split()
    if len(words) > TOPIC_MAX_WORDS:
        cleaned = " ".join(words[:TOPIC_MAX_WORDS])
    return cleaned or None


def expand_with_topic(raw: str, topic: Optional[str]) -> str:
    """Rewrite a bare one-to-three word refinement against the remembered topic."""
    stripped = (raw or "").strip()
    words = len(stripped.split())
    if not topic or words == 0 or words > REFINEMENT_MAX_WORDS:
        return raw
    if _NOT_REFINEMENT_RE.match(stripped):
        return raw
    return f"In the context of {topic}, please elaborate on: {stripped}."


def local_fallback_answer(raw: str, wait_seconds: int = 5) -> Optional[str]:
    """Offline answer for code or knowledge questions; None when nothing fits."""
    lower = (raw or "").lower()
    if _CODE_REQUEST_RE.search(lower) or _JAVASCRIPT_RE.search(lower):
        return LOCAL_CODE_EXAMPLE
    if is_knowledge_question(raw):
        topic = extract_topic(raw) or "Subject"
        return (
            "The model is overloaded right now. Quick overview (local heuristic):\n"
            f"Topic: {topic}\n"
            "Key Points:\n"
            "- I can't fetch live model details now.\n"
            "- Try again shortly for a richer answer.\n"
            "- You can refine your question for more specifics.\n"
            f"(Waiting ~{wait_seconds or 5}s may help.)"
        )
    return None
