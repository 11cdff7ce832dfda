"""CLI entrypoint for the chat workflow orchestrator."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import uvicorn
from pydantic import ValidationError

from chat_workflow_orchestrator import __version__
from chat_workflow_orchestrator.core.config import OrchestratorConfig
from chat_workflow_orchestrator.core.orchestrator import Orchestrator
from chat_workflow_orchestrator.server import create_app
from chat_workflow_orchestrator.workflows.types import IncomingMessage

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_FAILED = 4
EXIT_NOT_HANDLED = 5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orchestrator",
        description="Route chat messages through trigger-matched workflows",
    )
    parser.add_argument(
        "--version", action="version", version=f"chat-workflow-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    send = subparsers.add_parser("send", help="Process one chat message and print the reply")
    send.add_argument("content", help="Message text")
    send.add_argument("--user", dest="user_id", default="cli", help="Sender user id")
    send.add_argument("--channel", dest="channel_id", default="cli", help="Channel id")
    send.add_argument("--message-id", default="", help="Optional message id")
    send.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON instead of just the message",
    )

    subparsers.add_parser("sweep-state", help="Delete expired follow-up state")
    subparsers.add_parser("dispatch-reminders", help="Send reminders that are due")
    subparsers.add_parser(
        "list-workflows", help="List registered workflows in trigger priority order"
    )

    serve = subparsers.add_parser("serve", help="Run the REST API server")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    serve.add_argument("--port", type=int, default=8000, help="Port to listen on")
    return parser


async def _run(args: argparse.Namespace, config: OrchestratorConfig) -> int:
    orchestrator = Orchestrator(config)
    try:
        if args.command == "send":
            result = await orchestrator.process_message(
                IncomingMessage(
                    content=args.content,
                    user_id=args.user_id,
                    channel_id=args.channel_id,
                    message_id=args.message_id,
                )
            )
            if result is None:
                print("No workflow matched this message.")
                return EXIT_NOT_HANDLED
            if args.json:
                print(json.dumps(result.to_json(), indent=2, ensure_ascii=False, default=str))
            else:
                print(result.message)
            return EXIT_OK if result.success else EXIT_FAILED

        if args.command == "sweep-state":
            removed = await orchestrator.state.sweep_expired()
            print(f"Removed {removed} expired states")
            return EXIT_OK

        if args.command == "dispatch-reminders":
            if orchestrator.reminders is None:
                print("Reminders are disabled")
                return EXIT_OK
            sent = await orchestrator.reminders.dispatch_due()
            print(f"Sent {sent} reminders")
            return EXIT_OK

        if args.command == "list-workflows":
            for definition in orchestrator.registry.all():
                print(f"{definition.id}\t{definition.name}\t{', '.join(definition.triggers)}")
            return EXIT_OK

        return EXIT_CONFIG
    finally:
        await orchestrator.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = OrchestratorConfig()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    config.setup_logging()

    try:
        if args.command == "serve":
            # Logging is already configured; keep uvicorn from replacing it.
            uvicorn.run(create_app(config=config), host=args.host, port=args.port, log_config=None)
            return EXIT_OK
        return asyncio.run(_run(args, config))
    except Exception:
        logger.exception("Command failed")
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
