"""JSON extraction and field coercion for model output.

Model output is untrusted: it may be fenced in markdown, wrapped in prose, or
carry the wrong types. ``extract_json_block`` never raises; a ``None`` result
means "fall back to heuristics", not "fail the request".
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n(.*?)```", re.DOTALL | re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def extract_json_block(raw: str) -> Optional[dict[str, Any]]:
    """Extract the JSON object from LLM output text.

    Prefers the contents of a fenced code block (labeled ``json`` or not),
    then the greedy outer ``{...}`` span of whatever text was chosen.

    Returns:
        The parsed object, or None if nothing parses to a JSON object.
    """
    text = raw or ""
    fence = _FENCE_RE.search(text)
    if fence:
        text = fence.group(1)

    match = _OBJECT_RE.search(text)
    if match:
        text = match.group(0)

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Could not parse JSON from model output (%d chars)", len(raw or ""))
        return None

    if not isinstance(data, dict):
        logger.debug("Model JSON was %s, not an object", type(data).__name__)
        return None
    return data


def coerce_str(value: Any) -> Optional[str]:
    """Non-empty string or None. Numbers are stringified, containers rejected."""
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def coerce_int(value: Any) -> Optional[int]:
    """Non-zero finite int from an int, float or numeric string; else None.

    Fractions are truncated. Non-finite values give None: ``json.loads``
    accepts ``NaN``, ``Infinity`` and ``1e999``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value) or None


def coerce_str_list(value: Any) -> list[str]:
    """List of non-empty strings. A bare string becomes a one-item list."""
    if value is None:
        return []
    if isinstance(value, str):
        item = value.strip()
        return [item] if item else []
    if isinstance(value, list):
        out: list[str] = []
        for item in value:
            text = coerce_str(item)
            if text:
                out.append(text)
        return out
    return []
