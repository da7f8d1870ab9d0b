"""Tests for AssistantSession: one chat conversation on top of the router."""

from __future__ import annotations

import json
from datetime import date

import pytest

from chatroute.assistant import AssistantSession
from chatroute.llm.base import LLMModelUnavailableError, LLMRateLimitError
from chatroute.nlu.schedule_flow import ScheduleSlotFiller
from chatroute.router.engine import IntentRouter
from chatroute.router.event_extractor import EventExtractor


def _j(**data) -> str:
    return json.dumps(data)


@pytest.fixture
def clock():
    return {"now": 1_000_000}


@pytest.fixture
def session(gateway, action_log, clock):
    return AssistantSession(
        IntentRouter(gateway, action_log=action_log),
        EventExtractor(gateway),
        slot_filler=ScheduleSlotFiller(today=lambda: date(2025, 1, 1)),
        clock=lambda: clock["now"],
    )


class TestReplies:
    def test_empty_message(self, session, gateway):
        turn = session.send("   ")
        assert turn.blocked
        assert session.transcript == []
        assert gateway.calls == []

    def test_knowledge_reply_sets_topic(self, session, gateway):
        gateway.queue(_j(type="reply", text="Rust is a systems language."))
        turn = session.send("what is rust")
        assert turn.text.startswith("Rust is a systems language.")
        assert session.topic == "rust"
        assert [t.role for t in session.transcript] == ["user", "assistant"]

    def test_follow_up_uses_topic_and_history(self, session, gateway):
        gateway.queue(
            _j(type="reply", text="Rust is a systems language."),
            _j(type="reply", text="Rust started at Mozilla around 2010."),
        )
        session.send("what is rust")
        session.send("its history")

        prompt = gateway.prompts[1]
        assert "User: what is rust" in prompt
        assert prompt.endswith("User: In the context of rust, please elaborate on: its history.")
        # transcript keeps what the user actually typed
        assert session.transcript[2].text == "its history"

    def test_history_window(self, session, gateway):
        gateway.queue(*[_j(type="reply", text=f"answer number {i}") for i in range(5)])
        for i in range(5):
            session.send(f"hello {i}")
        prompt = gateway.prompts[4]
        assert "User: hello 0" not in prompt
        assert "User: hello 1\nAssistant: answer number 1" in prompt
        assert prompt.endswith("Assistant: answer number 3\n---\nUser: hello 4")

    def test_clarify(self, session, gateway):
        gateway.queue(_j(type="clarify", question="Which site or tool would you like me to open?"))
        assert session.send("Open it").text == "Which site or tool would you like me to open?"


class TestOpenings:
    def test_open_tool(self, session, gateway):
        gateway.queue(_j(type="open_tool", toolId="task-scheduler"))
        turn = session.send("open the task scheduler")
        assert turn.text == "I'll help you with that! Opening the Task Scheduler for you."
        assert turn.open_tool == "task-scheduler"

    def test_open_url(self, session, gateway):
        gateway.queue(_j(type="open_url", url="https://example.com"))
        turn = session.send("open example site")
        assert turn.text == "Opening https://example.com"
        assert turn.open_url == "https://example.com"

    def test_email_draft_opens_email_assistant(self, session, gateway):
        gateway.queue(_j(type="reply", text="Sure, here is a short draft for Bob."))
        turn = session.send("draft an email to Bob")
        assert turn.open_tool == "email-assistant"


class TestScheduling:
    def test_slot_filler_handles_without_model(self, session, gateway):
        turn = session.send("schedule a meeting with Alex tomorrow 3pm")
        assert gateway.calls == []
        assert turn.open_tool == "task-scheduler"
        assert turn.event.title == "Meeting with Alex"
        assert turn.event.date == "2025-01-02"
        assert turn.text.startswith("Opening scheduler with Meeting with Alex")

    def test_slot_filler_clarifies_once(self, session, gateway):
        turn = session.send("I need a meeting tomorrow")
        assert turn.text == "I have some details. Please provide the title to schedule."
        assert turn.open_tool is None

        gateway.queue(_j(type="reply", text="It is sunny and warm today."))
        assert session.send("how is the weather").text.startswith("It is sunny")
        assert session.slot_filler.state == "asked"

    def test_create_event_runs_extractor(self, session, gateway):
        gateway.queue(
            _j(type="action", action="create_event"),
            _j(title="Lunch", date="2025-01-02", time="12:00"),
        )
        turn = session.send("put lunch on my calendar")
        assert turn.text == "I've created an event: Lunch on 2025-01-02 at 12:00"
        assert turn.open_tool == "task-scheduler"
        assert turn.event.title == "Lunch"
        assert len(gateway.calls) == 2

    def test_create_event_with_event_skips_extractor(self, session, gateway):
        gateway.queue(_j(type="action", action="create_event", event={"title": "Lunch", "date": "2025-01-02"}))
        turn = session.send("put lunch on my calendar")
        assert turn.text == "I've created an event: Lunch on 2025-01-02"
        assert len(gateway.calls) == 1

    def test_create_event_missing_fields(self, session, gateway):
        gateway.queue(_j(type="action", action="create_event"), _j(title="Lunch"))
        turn = session.send("put lunch on my calendar")
        assert turn.text == "Please provide a title and date."
        assert turn.open_tool is None

    def test_other_action(self, session, gateway):
        gateway.queue(_j(type="action", action="send_report"))
        assert session.send("send the weekly report").text == "Performed action: send_report"


class TestCooldowns:
    def test_quota_blocks_following_messages(self, session, gateway, clock):
        gateway.queue(LLMRateLimitError("quota", retry_after_ms=20_000))
        turn = session.send("hello")
        assert turn.retry_after_ms == 20_000
        assert "Cooling down for ~20s" in turn.text

        clock["now"] += 5_000
        blocked = session.send("hello again")
        assert blocked.blocked
        assert blocked.text == "Please wait 15s before trying again."
        assert len(gateway.calls) == 1

        clock["now"] += 15_000
        gateway.queue(_j(type="reply", text="Welcome back, friend."))
        assert session.send("hello again").text == "Welcome back, friend."

    def test_quota_without_delay_uses_default(self, session, gateway):
        gateway.queue(LLMRateLimitError("quota"))
        assert session.send("hello").retry_after_ms == 15_000

    def test_overload_knowledge_question_gets_local_answer(self, session, gateway):
        gateway.queue(LLMModelUnavailableError("busy", retry_after_ms=8_000))
        turn = session.send("what is rust")
        assert "Topic: rust" in turn.text
        assert turn.text.endswith("(Waiting ~8s may help.)")

    def test_overload_other_message(self, session, gateway):
        gateway.queue(LLMModelUnavailableError("busy"))
        turn = session.send("hello")
        assert turn.text == "Model temporarily overloaded. Retry in ~8s or ask a simpler question."
        assert turn.blocked is False

    def test_extractor_quota_error_is_handled(self, session, gateway):
        gateway.queue(_j(type="action", action="create_event"), LLMRateLimitError("quota", retry_after_ms=3_000))
        turn = session.send("put lunch on my calendar")
        assert turn.retry_after_ms == 3_000
        assert session.quota_blocked_until > 0


def test_reset(session, gateway):
    gateway.queue(_j(type="reply", text="Rust is a systems language."))
    session.send("what is rust")
    session.send("I need a meeting tomorrow")
    session.reset()
    assert session.transcript == []
    assert session.topic is None
    assert session.slot_filler.state == "idle"
