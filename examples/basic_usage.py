#!/usr/bin/env python3
"""Programmatic message routing example.

This demonstrates using the orchestrator components directly:

* load settings from `.env`
* route one chat message through the registered workflows
* answer a follow-up question (for example picking an event by number)

The conversation identity is passed as arguments (not read from `.env`).
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from chat_workflow_orchestrator.core.config import OrchestratorConfig
from chat_workflow_orchestrator.core.orchestrator import Orchestrator
from chat_workflow_orchestrator.workflows.types import IncomingMessage


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send chat messages (programmatic example).")
    parser.add_argument("message", help='First message, e.g. "明日の予定を削除して"')
    parser.add_argument("--user", default="example-user", help="Sender user id")
    parser.add_argument("--channel", default="example-channel", help="Channel id")
    return parser.parse_args(argv)


async def _converse(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    content = args.message
    while content:
        result = await orchestrator.process_message(
            IncomingMessage(content=content, user_id=args.user, channel_id=args.channel)
        )
        if result is None:
            print("No workflow matched; a chat assistant would answer normally here.")
            return

        print(result.message)
        if not result.require_follow_up:
            return
        content = input("> ").strip()


async def _main(args: argparse.Namespace) -> int:
    config = OrchestratorConfig()
    config.setup_logging()

    orchestrator = Orchestrator(config)
    try:
        await _converse(orchestrator, args)
    finally:
        await orchestrator.aclose()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    return asyncio.run(_main(_parse_args(argv)))


if __name__ == "__main__":
    raise SystemExit(main())
