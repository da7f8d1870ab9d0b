# SPDX-License-Identifier: MIT
"""Local (model-free) language heuristics: schedule slots and knowledge topics."""

from chatroute.nlu.knowledge import (
    expand_with_topic,
    extract_topic,
    is_knowledge_question,
    local_fallback_answer,
)
from chatroute.nlu.schedule_flow import ScheduleSlotFiller, ScheduleStep, is_scheduling_request
from chatroute.nlu.slots import (
    PartialSchedule,
    extract_attendees,
    extract_date,
    extract_partial_schedule,
    extract_time,
    extract_title,
    merge_schedule,
)

__all__ = [
    "expand_with_topic",
    "extract_topic",
    "is_knowledge_question",
    "local_fallback_answer",
    "ScheduleSlotFiller",
    "ScheduleStep",
    "is_scheduling_request",
    "PartialSchedule",
    "extract_attendees",
    "extract_date",
    "extract_partial_schedule",
    "extract_time",
    "extract_title",
    "merge_schedule",
]
