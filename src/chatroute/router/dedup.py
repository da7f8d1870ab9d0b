"""Short-window suppression of repeated open_url / open_tool actions."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 15.0


class RecentActionLog:
    """Remembers action keys (``url:<url>``, ``tool:<id>``) for a short window.

    A repeat inside the window is reported as a duplicate and is *not*
    re-recorded, so the window is measured from the first occurrence.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._window = float(window_seconds)
        self._clock = clock or time.monotonic
        self._entries: list[tuple[str, float]] = []
        self._lock = threading.Lock()

    @property
    def window_seconds(self) -> float:
        return self._window

    def is_duplicate(self, key: str) -> bool:
        """Purge expired entries, then check ``key``; records it when new."""
        now = self._clock()
        with self._lock:
            self._entries = [(k, ts) for k, ts in self._entries if now - ts <= self._window]
            if any(k == key for k, _ in self._entries):
                logger.debug("[DEDUP] suppressing repeat action %s", key)
                return True
            self._entries.append((key, now))
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
