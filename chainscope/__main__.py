"""
Command-line entry point: ``python -m chainscope "<query>"``.

Runs one pipeline in-process and prints the analysis. The time window is
taken from the query text (e.g. "last 6 hours", "all time").
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from chainscope.agent.graph import run_workflow
from chainscope.agent.services import AnalysisServices
from chainscope.config import configure_logging
from chainscope.guardrails.enforcement import GuardrailViolation, validate_query_input


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chainscope",
        description="Analyze Solana on-chain activity from a free-text question.",
    )
    parser.add_argument(
        "query",
        nargs="+",
        help="Question, e.g. 'Analyze wallet <address> for suspicious activity'",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use deterministic mock completions even if an API key is set",
    )
    return parser


async def analyze(query: str, force_mock: bool) -> str:
    services = AnalysisServices.from_settings(force_mock=force_mock)
    try:
        return await run_workflow(query, services=services)
    finally:
        await services.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        query = validate_query_input(" ".join(args.query))
    except GuardrailViolation as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    print(asyncio.run(analyze(query, args.mock)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
