# SPDX-License-Identifier: MIT
"""
Schedule Slot Extraction.

Regex-only extraction of the pieces of a calendar event from chat text:
- date: "2025-09-18", "9/18/2025", "tomorrow"
- time: "3pm", "9:30 am", "14:00" (normalized to 24h HH:MM)
- attendees: names/emails after " with "
- title: only "schedule a meeting with Alex" style phrasings

No model call is involved; anything not recognized is left to the
event extractor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace
from datetime import date as Date
from datetime import timedelta
from typing import List, Optional

from chatroute.router.schemas import CalendarEvent

HANDOFF_DURATION_MINUTES = 30


# ============================================================================
# Partial schedule
# ============================================================================


@dataclass(frozen=True)
class PartialSchedule:
    """Event fields gathered so far; ``None`` means "not mentioned yet"."""

    title: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None  # HH:MM (24h)
    attendees: Optional[List[str]] = None
    notes: Optional[str] = None

    @property
    def is_viable(self) -> bool:
        """Title and date are the minimum for a hand-off."""
        return bool(self.title and self.date)

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def missing(self) -> List[str]:
        out = []
        if not self.title:
            out.append("title")
        if not self.date:
            out.append("date")
        return out

    def to_event(self) -> CalendarEvent:
        return CalendarEvent(
            title=self.title,
            date=self.date,
            time=self.time or "",
            duration_minutes=HANDOFF_DURATION_MINUTES,
            attendees=list(self.attendees or []),
            notes=self.notes or "",
        )


def merge_schedule(base: Optional[PartialSchedule], incoming: PartialSchedule) -> PartialSchedule:
    """Overlay ``incoming`` on ``base``: only non-None incoming fields win."""
    base = base or PartialSchedule()
    updates = {
        f.name: getattr(incoming, f.name)
        for f in fields(incoming)
        if getattr(incoming, f.name) is not None
    }
    return replace(base, **updates)


# ============================================================================
# Date
# ============================================================================

_ISO_DATE_RE = re.compile(r"(20\d{2}-\d{2}-\d{2})")
_US_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(20\d{2})\b")
_TOMORROW_RE = re.compile(r"\btomorrow\b", re.IGNORECASE)


def extract_date(text: str, today: Optional[Date] = None) -> Optional[str]:
    """ISO date, US M/D/YYYY (normalized to ISO) or "tomorrow".

    Args:
        text: User message
        today: Reference date for "tomorrow" (defaults to the local date)
    """
    m = _ISO_DATE_RE.search(text)
    if m:
        return m.group(1)

    m = _US_DATE_RE.search(text)
    if m:
        month, day, year = m.group(1).zfill(2), m.group(2).zfill(2), m.group(3)
        return f"{year}-{month}-{day}"

    if _TOMORROW_RE.search(text):
        base = today or Date.today()
        return (base + timedelta(days=1)).isoformat()

    return None


# ============================================================================
# Time
# ============================================================================

# Digits glued to "-" or "/" belong to a date, not a time.
_TIME_RE = re.compile(r"(?<![\d/-])\b(\d{1,2})(?::(\d{2}))?(\s?(am|pm))?\b(?![/-])", re.IGNORECASE)


def normalize_time(hour: int, minute: int = 0, suffix: Optional[str] = None) -> Optional[str]:
    """12h/24h parts -> "HH:MM"; None for out-of-range values."""
    suffix = (suffix or "").strip().lower()
    if suffix == "pm" and hour < 12:
        hour += 12
    if suffix == "am" and hour == 12:
        hour = 0
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def extract_time(text: str) -> Optional[str]:
    for m in _TIME_RE.finditer(text):
        minute = int(m.group(2)) if m.group(2) else 0
        value = normalize_time(int(m.group(1)), minute, m.group(4))
        if value:
            return value
    return None


# ============================================================================
# Attendees
# ============================================================================

# Where the attendee list ends: sentence end, clause words, date/time words.
_ATTENDEE_STOP_RE = re.compile(
    r"(?:\.(?:\s|$)|;|\n| at | on | tomorrow\b| today\b| next | for |\s\d)",
    re.IGNORECASE,
)
_ATTENDEE_SPLIT_RE = re.compile(r",|\band\b|&", re.IGNORECASE)
_ATTENDEE_CHARS_RE = re.compile(r"[^a-z0-9@._+-]", re.IGNORECASE)


def extract_attendees(text: str) -> Optional[List[str]]:
    """Names or emails after " with ", e.g. "with Alex, bob@x.io and Sam"."""
    idx = text.lower().find(" with ")
    if idx == -1:
        return None
    segment = _ATTENDEE_STOP_RE.split(text[idx + len(" with "):], maxsplit=1)[0]

    attendees = []
    for part in _ATTENDEE_SPLIT_RE.split(segment):
        cleaned = _ATTENDEE_CHARS_RE.sub("", part.strip())
        if len(cleaned) > 1:
            attendees.append(cleaned)
    return attendees or None


# ============================================================================
# Title
# ============================================================================

_TITLE_RE = re.compile(
    r"schedule (?:a |the )?(meeting|call|sync|discussion) with ([^@,\n]+?)(?: at | on | tomorrow| next| for |$)"
)


def extract_title(text: str) -> Optional[str]:
    """Only "schedule a call with dana lee at 3" phrasings -> "Call with Dana lee"."""
    m = _TITLE_RE.search(text.lower())
    if not m:
        return None
    kind = m.group(1)
    person = " ".join(m.group(2).strip().split()[:3])
    if not person:
        return None
    return f"{kind[:1].upper()}{kind[1:]} with {person[:1].upper()}{person[1:]}"


def extract_partial_schedule(text: str, today: Optional[Date] = None) -> PartialSchedule:
    text = text or ""
    return PartialSchedule(
        title=extract_title(text),
        date=extract_date(text, today=today),
        time=extract_time(text),
        attendees=extract_attendees(text),
    )
