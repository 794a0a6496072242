"""
Billing assistant entry point.

Runs the conversation core in the terminal, either interactively or by
replaying a scripted scenario. Offline providers are used by default;
``--llm`` switches the classifier and summarizer to an OpenAI-compatible
model (requires OPENAI_API_KEY).

Usage:
    Interactive:      python main.py console
    Scripted:         python main.py scenario balance
    Model-backed:     python main.py --llm console
    Durable sessions: python main.py --db data/sessions.db console
"""

import argparse
import asyncio
import logging

from billing_assistant.config import settings

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    from console_demo import ConsoleSession

    parser = argparse.ArgumentParser(description=f"{settings.business.name} billing assistant")
    parser.add_argument("--llm", action="store_true",
                        help="Use the model-backed classifier and summarizer")
    parser.add_argument("--db", default=None,
                        help="SQLite file for durable sessions (default: in-memory)")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("console", help="Chat interactively")
    scenario = sub.add_parser("scenario", help="Replay a scripted conversation")
    scenario.add_argument("name", choices=list(ConsoleSession.SCENARIOS))
    return parser


async def _run(session, args: argparse.Namespace) -> None:
    try:
        if args.command == "scenario":
            await session.run_scenario(args.name)
        else:
            await session.run()
    finally:
        await session.router.sessions.close()


def main() -> None:
    from console_demo import ConsoleSession, build_router

    args = _build_parser().parse_args()
    router, tickets = build_router(use_llm=args.llm, db_path=args.db)
    session = ConsoleSession(router, tickets)
    logger.info("Starting %s (llm=%s, db=%s)", args.command, args.llm, args.db)
    asyncio.run(_run(session, args))


if __name__ == "__main__":
    main()
