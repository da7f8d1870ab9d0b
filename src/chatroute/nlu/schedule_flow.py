# SPDX-License-Identifier: MIT
"""
Multi-turn slot filling for "schedule an event" conversations.

States:
    idle        no pending schedule
    collecting  pending schedule exists, clarify not sent yet
    asked       pending schedule exists, clarify already sent once

A scheduling-like message (or any message while a schedule is pending) is
parsed with the regex extractors and merged over the pending snapshot. Once
title and date are both known, the event is handed to the scheduler tool and
the flow resets. Otherwise a single clarify is sent; later incomplete turns
go to the router untouched while the partial state is kept.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from chatroute.nlu.slots import PartialSchedule, extract_partial_schedule, merge_schedule
from chatroute.router.schemas import IntentType, RoutedIntent, ToolId

logger = logging.getLogger(__name__)

_SCHEDULING_RE = re.compile(r"(schedule|meeting|event)\b")


def is_scheduling_request(text: str) -> bool:
    return bool(_SCHEDULING_RE.search((text or "").lower()))


@dataclass(frozen=True)
class ScheduleStep:
    """What the slot filler decided for one message."""

    intent: RoutedIntent
    message: str

    @property
    def is_handoff(self) -> bool:
        return self.intent.type is IntentType.OPEN_TOOL


def describe_handoff(schedule: PartialSchedule) -> str:
    at = f" at {schedule.time}" if schedule.time else ""
    return f"Opening scheduler with {schedule.title} on {schedule.date}{at}. You can adjust details there."


def describe_missing(schedule: PartialSchedule) -> str:
    have = []
    if schedule.time:
        have.append(f"time {schedule.time}")
    if schedule.attendees:
        plural = "s" if len(schedule.attendees) > 1 else ""
        have.append(f"attendee{plural} {', '.join(schedule.attendees)}")
    have_text = " and ".join(have) if have else "some details"
    return f"I have {have_text}. Please provide the {' and '.join(schedule.missing())} to schedule."


class ScheduleSlotFiller:
    """Per-conversation schedule state machine.

    Args:
        today: Returns the reference date for "tomorrow" (injectable for tests).
    """

    def __init__(self, today: Optional[Callable[[], date]] = None):
        self._today = today or date.today
        self._lock = threading.Lock()
        self._pending: Optional[PartialSchedule] = None
        self._asked = False

    @property
    def pending(self) -> Optional[PartialSchedule]:
        return self._pending

    @property
    def asked(self) -> bool:
        return self._asked

    @property
    def state(self) -> str:
        if self._pending is None:
            return "idle"
        return "asked" if self._asked else "collecting"

    def handle(self, text: str) -> Optional[ScheduleStep]:
        """Advance the flow; None means "not handled here, route normally"."""
        with self._lock:
            if self._pending is None and not is_scheduling_request(text):
                return None

            partial = extract_partial_schedule(text, today=self._today())
            current = merge_schedule(self._pending, partial)

            if current.is_viable:
                self._pending = None
                self._asked = False
                logger.info("[SCHEDULE] hand-off title=%r date=%s", current.title, current.date)
                intent = RoutedIntent(
                    type=IntentType.OPEN_TOOL,
                    tool_id=ToolId.TASK_SCHEDULER.value,
                    event=current.to_event(),
                )
                return ScheduleStep(intent=intent, message=describe_handoff(current))

            self._pending = current
            if self._asked:
                logger.debug("[SCHEDULE] still missing %s, passing through", current.missing())
                return None

            self._asked = True
            question = describe_missing(current)
            return ScheduleStep(intent=RoutedIntent.clarify(question), message=question)

    def abandon(self) -> None:
        with self._lock:
            self._pending = None
            self._asked = False
