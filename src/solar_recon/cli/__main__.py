"""CLI entry point: python -m solar_recon.cli reconcile"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog

from solar_recon.config.settings import get_settings
from solar_recon.db.session import close_sessions, get_session, get_session_factory
from solar_recon.logging_config import configure_logging
from solar_recon.matching.config import load_reconciliation_config
from solar_recon.worker.orchestrator import run_reconciliation
from solar_recon.worker.persistence import comparison_stats


async def run_reconcile(config_path: Path) -> dict:
    """Run one reconciliation with the policy at ``config_path``."""
    config = load_reconciliation_config(config_path)
    try:
        return await run_reconciliation(get_session_factory(), config)
    finally:
        await close_sessions()


async def run_stats() -> dict:
    """Fetch matched/unmatched counts for both sources."""
    try:
        async with get_session() as session:
            return await comparison_stats(session)
    finally:
        await close_sessions()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="solar_recon.cli",
        description="Solar permit / interconnection reconciliation CLI",
    )
    subparsers = parser.add_subparsers(dest="command")

    reconcile_parser = subparsers.add_parser(
        "reconcile", help="Link unmatched permits to interconnection requests"
    )
    reconcile_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to reconciliation.yaml (default: SOLAR_RECON_RECONCILIATION_CONFIG_PATH)",
    )

    subparsers.add_parser("stats", help="Print matched/unmatched counts")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    settings = get_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level)
    log = structlog.get_logger()

    if args.command == "reconcile":
        config_path = Path(args.config) if args.config else settings.reconciliation_config_path
        summary = asyncio.run(run_reconcile(config_path))
        print(json.dumps(summary, indent=2))
        if summary["status"] == "error":
            log.error("reconcile_failed", error=summary.get("error"))
            return 1
        return 0

    if args.command == "stats":
        print(json.dumps(asyncio.run(run_stats()), indent=2))
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
