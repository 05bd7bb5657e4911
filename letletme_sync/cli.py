"""CLI argument parsing for letletme sync."""

from __future__ import annotations

import argparse

JOB_NAMES = ("entry-info", "entry-results")


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI parser used by the main entrypoint."""
    parser = argparse.ArgumentParser(
        description="letletme sync - FPL data synchronization service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the scheduler (events 06:35, entry info 07:00, entry results 10:30)
  letletme-sync

  # Sync entry info for all known entries once, including retries, then exit
  letletme-sync --once

  # Sync specific entries once
  letletme-sync --once --entry-ids 1,2,3

  # Sync gameweek 5 results for specific entries once
  letletme-sync --once --job entry-results --event-id 5 --entry-ids 1,2,3

  # Enable debug logging for the orchestrator and HTTP client
  letletme-sync --debug-loggers orchestration,infrastructure.http_client

Environment Variables:
  DB_CONNECTION        PostgreSQL connection string (postgresql+asyncpg://...)
  REDIS_URL            Redis URL for the cache
  FPL_BASE_URL         Upstream API base URL
  HTTP_TIMEOUT         DEFAULT, LONG or SHORT
  MAX_RETRY_CYCLES     Retry generations for failed entities (default: 2)
  SYNC_CONCURRENCY     Parallel entity syncs per job (overridden by CLI)
  DEBUG_LOGGERS        Comma-separated letletme_sync loggers for DEBUG logging
        """,
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one sync job (and its retries) instead of the scheduler.",
    )
    parser.add_argument(
        "--job",
        choices=JOB_NAMES,
        default=JOB_NAMES[0],
        help="Job to run with --once (default: entry-info).",
    )
    parser.add_argument(
        "--event-id",
        type=int,
        default=None,
        help="Gameweek for --once (default: the current event).",
    )
    parser.add_argument(
        "--entry-ids",
        type=str,
        default=None,
        help="Comma-separated entry ids for --once (default: all known entries).",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Parallel entity syncs per job.",
    )
    parser.add_argument(
        "--max-retry-cycles",
        type=int,
        default=None,
        help="Retry generations for entities that failed.",
    )
    parser.add_argument(
        "--debug-loggers",
        type=str,
        default=None,
        help="Comma-separated letletme_sync sub-loggers for DEBUG logging.",
    )

    return parser
