"""chatroute CLI.

Modes:
  - HTTP server:      `chatroute serve [--host H] [--port P]`
  - One-shot routing: `chatroute route "open youtube"`
  - Event parsing:    `chatroute parse-event "lunch with Sam on 2025-03-01"`
  - Gateway status:   `chatroute diagnostics`
  - Interactive chat: `chatroute chat`
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from chatroute import __version__
from chatroute.config import Settings
from chatroute.llm.base import LLMRetryableError
from chatroute.llm.gemini_client import GeminiClient
from chatroute.router.dedup import RecentActionLog
from chatroute.router.engine import IntentRouter
from chatroute.router.event_extractor import EventExtractor


# ANSI colors
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    CYAN = "\033[36m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"


def _print_json(data: dict) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def _retryable_payload(exc: LLMRetryableError) -> dict:
    return {"ok": False, "error": exc.reason, "retryAfterMs": exc.retry_after_ms}


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    from chatroute.api.server import run_http_server

    run_http_server(settings, host=args.host, port=args.port, log_level=args.log_level)
    return 0


def _cmd_route(args: argparse.Namespace, settings: Settings) -> int:
    router = IntentRouter(
        GeminiClient.from_settings(settings),
        action_log=RecentActionLog(window_seconds=settings.dedup_window_seconds),
    )
    try:
        intent = router.route(args.text)
    except LLMRetryableError as exc:
        _print_json(_retryable_payload(exc))
        return 2
    _print_json({"ok": True, **intent.to_response()})
    return 0


def _cmd_parse_event(args: argparse.Namespace, settings: Settings) -> int:
    extractor = EventExtractor(GeminiClient.from_settings(settings))
    try:
        result = extractor.extract(args.text)
    except LLMRetryableError as exc:
        _print_json(_retryable_payload(exc))
        return 2
    _print_json({"ok": True, **result.to_response()})
    return 0


def _cmd_diagnostics(args: argparse.Namespace, settings: Settings) -> int:
    client = GeminiClient.from_settings(settings)
    _print_json({"ok": True, **client.status(), "model": client.model_name})
    return 0


def _cmd_chat(args: argparse.Namespace, settings: Settings) -> int:
    from chatroute.assistant import AssistantSession

    gateway = GeminiClient.from_settings(settings)
    session = AssistantSession(
        IntentRouter(gateway, action_log=RecentActionLog(window_seconds=settings.dedup_window_seconds)),
        EventExtractor(gateway),
    )
    if not settings.gemini_key_present:
        print(f"{Colors.YELLOW}GEMINI_API_KEY is not set; answers come from the offline stub.{Colors.RESET}")
    print(f"{Colors.DIM}Type 'exit' to quit, 'reset' to start over.{Colors.RESET}")

    while True:
        try:
            line = input(f"{Colors.CYAN}you>{Colors.RESET} ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return 0
        if not line:
            continue
        if line.lower() in {"exit", "quit"}:
            return 0
        if line.lower() == "reset":
            session.reset()
            print(f"{Colors.DIM}(conversation cleared){Colors.RESET}")
            continue

        turn = session.send(line)
        color = Colors.YELLOW if turn.blocked or turn.retry_after_ms else Colors.GREEN
        print(f"{color}assistant>{Colors.RESET} {turn.text}")
        if turn.open_tool:
            print(f"{Colors.DIM}  [open tool: {turn.open_tool}]{Colors.RESET}")
        if turn.event is not None:
            print(f"{Colors.DIM}  [event: {turn.event.model_dump_json(by_alias=True)}]{Colors.RESET}")
        if turn.open_url:
            print(f"{Colors.DIM}  [open url: {turn.open_url}]{Colors.RESET}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatroute",
        description=f"chatroute v{__version__} - intent routing backend for the chat assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  chatroute serve --port 5000
  chatroute route "what is kubernetes"
  chatroute parse-event "sync with dana on 2025-03-01 at 10am"
  chatroute diagnostics
  chatroute chat
""",
    )
    parser.add_argument("--env-file", default=".env", help="dotenv file to load (default: ./.env)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subs = parser.add_subparsers(dest="command")
    subs.required = True

    serve_p = subs.add_parser("serve", help="Run the HTTP API")
    serve_p.add_argument("--host", default=None, help="Bind address (default: CHATROUTE_HOST or 0.0.0.0)")
    serve_p.add_argument("--port", type=int, default=None, help="Port (default: CHATROUTE_PORT or 5000)")
    serve_p.add_argument("--log-level", default=None, help="Uvicorn log level")
    serve_p.set_defaults(func=_cmd_serve)

    route_p = subs.add_parser("route", help="Route one message and print the intent")
    route_p.add_argument("text")
    route_p.set_defaults(func=_cmd_route)

    event_p = subs.add_parser("parse-event", help="Extract a calendar event from text")
    event_p.add_argument("text")
    event_p.set_defaults(func=_cmd_parse_event)

    diag_p = subs.add_parser("diagnostics", help="Show key presence and cool-down state")
    diag_p.set_defaults(func=_cmd_diagnostics)

    chat_p = subs.add_parser("chat", help="Interactive chat session")
    chat_p.set_defaults(func=_cmd_chat)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.env_file and os.path.isfile(args.env_file):
        load_dotenv(dotenv_path=args.env_file)

    settings = Settings.from_env()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return int(args.func(args, settings) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
