from __future__ import annotations

import os
from typing import Any, Callable, Optional, Union

import pytest

from chatroute.router.dedup import RecentActionLog


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked with @pytest.mark.integration (live Gemini calls).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-integration"):
        return

    deselected: list[pytest.Item] = []
    selected: list[pytest.Item] = []
    for item in items:
        if item.get_closest_marker("integration"):
            deselected.append(item)
        else:
            selected.append(item)

    if deselected:
        config.hook.pytest_deselected(items=deselected)
        items[:] = selected


Reply = Union[str, Exception, Callable[[str], str]]


class ScriptedGateway:
    """ModelGateway fake: answers from a queue, records every call.

    Each queued item is a string (returned), an exception (raised) or a
    callable taking the prompt. When the queue is empty ``default`` is used.
    """

    def __init__(self, *replies: Reply, default: Reply = ""):
        self._replies: list[Reply] = list(replies)
        self._default = default
        self.calls: list[dict[str, Any]] = []

    def queue(self, *replies: Reply) -> "ScriptedGateway":
        self._replies.extend(replies)
        return self

    def call(
        self,
        prompt: str,
        *,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        json: bool = False,
        temperature: float = 0.4,
        max_output_tokens: int = 512,
    ) -> str:
        self.calls.append(
            {"prompt": prompt, "model": model, "json": json, "temperature": temperature}
        )
        reply = self._replies.pop(0) if self._replies else self._default
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply

    @property
    def prompts(self) -> list[str]:
        return [c["prompt"] for c in self.calls]


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def make_gateway() -> Callable[..., ScriptedGateway]:
    return ScriptedGateway


@pytest.fixture
def action_log() -> RecentActionLog:
    """Dedup log on a hand-driven clock (``action_log.clock_state["now"]`` in seconds)."""
    state = {"now": 1000.0}
    log = RecentActionLog(window_seconds=15, clock=lambda: state["now"])
    log.clock_state = state  # type: ignore[attr-defined]
    return log


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Remove chatroute / Gemini variables so Settings.from_env sees defaults."""
    for name in list(os.environ):
        if name.startswith("CHATROUTE_") or name in {"GEMINI_API_KEY", "GOOGLE_API_KEY", "GEMINI_FALLBACK_MODEL"}:
            monkeypatch.delenv(name, raising=False)
    return monkeypatch
