"""Shared gateway state: the cool-down clock and the knowledge cache.

One ``GatewayState`` is built at process start and handed to every
``GeminiClient`` that should share the same upstream budget. Nothing here is
persisted; a restart (or a second process) starts with a clear clock and an
empty cache.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

logger = logging.getLogger(__name__)

__all__ = [
    "GatewayState",
    "KnowledgeCache",
    "normalize_knowledge_key",
    "DEFAULT_CACHE_CAPACITY",
    "DEFAULT_KEY_CHARS",
]

DEFAULT_CACHE_CAPACITY = 200
DEFAULT_KEY_CHARS = 200

_WS_RE = re.compile(r"\s+")


def _now_ms() -> int:
    return int(time.time() * 1000)


def normalize_knowledge_key(prompt: str, max_chars: int = DEFAULT_KEY_CHARS) -> str:
    """Cache key: first ``max_chars`` of the prompt, lowercased, trimmed, single-spaced."""
    return _WS_RE.sub(" ", (prompt or "")[:max_chars].lower().strip())


# ---------------------------------------------------------------------------
# Knowledge cache
# ---------------------------------------------------------------------------


class KnowledgeCache:
    """Bounded prompt -> answer map with insertion-order eviction.

    Reads do not refresh an entry's position, so this is FIFO rather than LRU.
    Near-duplicate prompts collide on purpose (see ``normalize_knowledge_key``).
    """

    def __init__(
        self,
        *,
        capacity: int = DEFAULT_CACHE_CAPACITY,
        key_chars: int = DEFAULT_KEY_CHARS,
    ):
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, str]" = OrderedDict()
        self._capacity = max(1, int(capacity))
        self._key_chars = max(1, int(key_chars))

    @property
    def capacity(self) -> int:
        return self._capacity

    def key_for(self, prompt: str) -> str:
        return normalize_knowledge_key(prompt, self._key_chars)

    def get(self, prompt: str) -> Optional[str]:
        key = self.key_for(prompt)
        with self._lock:
            return self._entries.get(key)

    def put(self, prompt: str, answer: str) -> None:
        key = self.key_for(prompt)
        with self._lock:
            if key in self._entries:
                self._entries[key] = answer
                return
            while len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("[CACHE] evicted oldest entry key=%r", evicted[:40])
            self._entries[key] = answer

    def __contains__(self, prompt: object) -> bool:
        if not isinstance(prompt, str):
            return False
        key = self.key_for(prompt)
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# ---------------------------------------------------------------------------
# Gateway state
# ---------------------------------------------------------------------------


class GatewayState:
    """Cool-down clock plus knowledge cache, shared by all gateway calls.

    ``blocked_until`` is an epoch timestamp in milliseconds. A 429 or 503 from
    upstream pushes it forward; every call checks it before touching the
    network. The lock only covers the scalar read/write, never a request.

    Args:
        cache_capacity: Max cached knowledge answers (default 200).
        key_chars: Prompt prefix length used for cache keys (default 200).
        clock: Returns "now" in epoch milliseconds (injectable for tests).
    """

    def __init__(
        self,
        *,
        cache_capacity: int = DEFAULT_CACHE_CAPACITY,
        key_chars: int = DEFAULT_KEY_CHARS,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._lock = threading.Lock()
        self._clock = clock or _now_ms
        self._blocked_until = 0
        self.cache = KnowledgeCache(capacity=cache_capacity, key_chars=key_chars)

    def now_ms(self) -> int:
        return int(self._clock())

    @property
    def blocked_until(self) -> int:
        with self._lock:
            return self._blocked_until

    def remaining_ms(self) -> int:
        """Milliseconds left on the cool-down clock (0 when calls may proceed)."""
        now = self.now_ms()
        with self._lock:
            return max(0, self._blocked_until - now)

    def block_for(self, delay_ms: int) -> int:
        """Arm the cool-down clock ``delay_ms`` from now. Returns the new deadline."""
        deadline = self.now_ms() + max(0, int(delay_ms))
        with self._lock:
            self._blocked_until = deadline
        logger.info("[COOLDOWN] upstream blocked for %dms", max(0, int(delay_ms)))
        return deadline

    def reset(self) -> None:
        """Clear the clock and the cache."""
        with self._lock:
            self._blocked_until = 0
        self.cache.clear()
