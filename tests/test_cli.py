"""Tests for the chatroute CLI (offline mode, no network)."""

from __future__ import annotations

import json

import pytest

from chatroute.cli import build_parser, main


def _run(capsys, *argv):
    code = main(["--env-file", "does-not-exist.env", *argv])
    return code, capsys.readouterr().out


def test_route_youtube_shortcut(clean_env, capsys):
    code, out = _run(capsys, "route", "open youtube")
    assert code == 0
    assert json.loads(out) == {"ok": True, "type": "open_url", "url": "https://www.youtube.com"}


def test_route_offline_reply(clean_env, capsys):
    code, out = _run(capsys, "route", "hello there")
    data = json.loads(out)
    assert data["type"] == "reply"
    assert data["text"].startswith("(offline model)")


def test_parse_event_offline_clarifies(clean_env, capsys):
    code, out = _run(capsys, "parse-event", "lunch with Sam")
    assert code == 0
    assert json.loads(out) == {"ok": True, "type": "clarify", "question": "Please provide a title and date."}


def test_diagnostics(clean_env, capsys):
    code, out = _run(capsys, "diagnostics")
    data = json.loads(out)
    assert code == 0
    assert data["geminiKeyPresent"] is False
    assert data["blockedUntil"] == 0
    assert data["model"] == "gemini-1.5-flash"


def test_subcommand_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
