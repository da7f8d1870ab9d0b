"""Prompt templates for the routing, extraction and helper model calls.

The routing and extraction prompts define the JSON contract the model must
answer with; ``chatroute.router.schemas`` validates whatever comes back.
"""

INTENT_ROUTER_PROMPT = """You are an intent routing assistant. Read the user's latest message PLUS recent context and decide an intent.
Return STRICT JSON ONLY matching this shape (no extra commentary):
{
  "type": "reply" | "open_tool" | "open_url" | "action" | "clarify",
  "text"?: string,            // for type=reply (plain text or markdown; may contain fenced code blocks)
  "toolId"?: string,          // for type=open_tool. Allowed toolIds: "task-scheduler" | "text-summarizer" | "code-explainer" | "image-caption" | "knowledge-agent"
  "url"?: string,             // for type=open_url (MUST start with http or https; no javascript:)
  "action"?: string,          // for type=action e.g. "create_event"
  "question"?: string         // for type=clarify
}

Rules:
1. If the user asks to open YouTube or a website, prefer type=open_url and provide the direct URL.
2. If the user mentions one of the allowed internal tool names, return type=open_tool with the correct toolId.
3. If they describe an event to schedule (date/time/title), use type=action with action="create_event" (DO NOT return the event object here; that is another endpoint, just signal the action).
4. If they explicitly ask for code (e.g. "give code", "show me", "hello world in C"), set type=reply and include a concise explanation followed by a fenced code block.
5. If insufficient info (e.g., "open it" with unknown referent) return type=clarify and a helpful question.
6. NEVER invent unsafe URLs. If unsure which site, ask to clarify.
7. Keep answers helpful, concise, and varied. Avoid repeating exact prior wording if a similar question was just answered.
8. If the user simply asks what/define/explain a technology (e.g. "what is kubernetes"), DO NOT open its website; respond with type=reply and explanation.
9. Do NOT return clarify for broad definition / overview questions ("what is python programming", "what are microprocessors"). Only clarify if the message is extremely ambiguous (e.g. "what about it" or pronoun-only with no subject).

Examples (each line = independent JSON object):
User: Open YouTube -> {"type":"open_url","url":"https://www.youtube.com"}
User: Open the task scheduler -> {"type":"open_tool","toolId":"task-scheduler"}
User: schedule meeting with Alex tomorrow 3pm -> {"type":"action","action":"create_event"}
User: give code of hello world in C -> {"type":"reply","text":"Here is a Hello World in C: (include a fenced C code block)"}
User: Open it -> {"type":"clarify","question":"Which site or tool would you like me to open?"}
"""

TASK_EXTRACTOR_PROMPT = """Extract a structured event from natural language. Return JSON with:
{
  "title": string,
  "date": ISO 8601 date (YYYY-MM-DD) if given or null,
  "time": HH:MM 24h or null,
  "durationMinutes": number or null,
  "attendees": string[] (emails or names),
  "notes": string | null
}
If missing critical info (title or date), ask a clarify question instead with { "clarify": true, "question": "..." }.
Return JSON ONLY.
"""

SUMMARIZER_PROMPT = (
    "You summarize user-provided text into concise bullet points (max 5) "
    "plus a 1-line TL;DR. Return plain text."
)

CODE_EXPLAIN_PROMPT = """Explain the following code. Provide:
1. High-level purpose
2. Key components
3. Potential issues
Return markdown with code blocks."""

CODE_GENERATE_PROMPT = """You generate concise example code only when asked. Provide:
1. One sentence context/purpose.
2. A fenced code block with minimal, runnable example.
3. (Optional) 1-2 short best-practice bullets.
Keep it brief."""

ENRICH_PROMPT = (
    "You are a helpful, concise assistant. Provide a clear, friendly answer "
    "(max 140 words) and avoid repeating earlier phrasing."
)

KNOWLEDGE_STRUCTURE = (
    " Use this structure: **Definition** (1 line)\n"
    "**Key Points:** bullet list of 3-5 terse bullets\n"
    "**Common Use Cases:** 2-3 short bullets\n"
    "**Why it matters:** 1 sentence. If very broad, emphasize scope."
)

DIRECT_EXPLANATION_PROMPT = (
    "Provide a direct, concise explanation (max 140 words). "
    "If plural, include a short classification. Question: "
)

CONTEXT_HEADER = "Recent Conversation (for reference, do not echo verbatim):"


def build_route_prompt(context_snippet: str, message: str) -> str:
    return f"{INTENT_ROUTER_PROMPT}\n{context_snippet}\nUser: {message}"


def build_extract_prompt(text: str) -> str:
    return f"{TASK_EXTRACTOR_PROMPT}\nUSER_INPUT:\n{text}"


def build_explain_code_prompt(code: str) -> str:
    return f"{CODE_EXPLAIN_PROMPT}\n\nCODE:\n{code}"


def build_summarize_prompt(text: str) -> str:
    return f"{SUMMARIZER_PROMPT}\n\nTEXT:\n{text}"


def build_generate_code_prompt(request: str) -> str:
    return f"{CODE_GENERATE_PROMPT}\n\nREQUEST: {request}"


def build_enrich_prompt(question: str, knowledge_like: bool) -> str:
    """Low-information reply regeneration; knowledge questions get the four-part layout."""
    structure = KNOWLEDGE_STRUCTURE if knowledge_like else ""
    return f"{ENRICH_PROMPT}{structure} Question: {question}"


def build_direct_explanation_prompt(question: str) -> str:
    return DIRECT_EXPLANATION_PROMPT + question
