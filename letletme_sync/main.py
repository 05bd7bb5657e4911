"""Entry point for letletme sync."""

import os

# Force UTC timezone for entire application
os.environ["TZ"] = "UTC"  # noqa: E402

import asyncio
import logging
import sys

from letletme_sync.bootstrap import bootstrap
from letletme_sync.cli import build_parser
from letletme_sync.logging_setup import configure_debug_logging, configure_logging
from letletme_sync.orchestration import JobState, SyncOutcome, SyncSource
from letletme_sync.runtime import RuntimeConfig, build_runtime_config
from letletme_sync.settings import Settings

logger = logging.getLogger(__name__)


async def run_scheduler(config: RuntimeConfig) -> None:
    """Bootstrap, start the scheduler and consume every entry job queue forever."""
    service = await bootstrap(config)
    try:
        service.scheduler.start()
        logger.info("Scheduler started, waiting for jobs...")
        await asyncio.gather(
            *(orchestrator.serve() for orchestrator in service.orchestrators.values())
        )
    finally:
        await service.close()


async def run_once(config: RuntimeConfig) -> int:
    """Run one entry job plus its retry generations; returns an exit code."""
    service = await bootstrap(config)
    try:
        job = await service.enqueue_entry_sync(
            config.job, config.entry_ids, source=SyncSource.MANUAL, event_id=config.event_id
        )
        if job is None:
            logger.error(f"Nothing to run for {config.job}")
            return 1
        outcomes = await service.orchestrators[config.job].drain()
    finally:
        await service.close()

    return exit_code(outcomes)


def exit_code(outcomes: list[SyncOutcome]) -> int:
    """1 when a job failed outright or entities are still failing after the last retry."""
    crashed = sum(1 for outcome in outcomes if outcome.state == JobState.FAILED)
    # residual failures are the ones no further retry job was scheduled for
    failed = [
        entity_id
        for outcome in outcomes
        if outcome.state == JobState.EXHAUSTED
        for entity_id in outcome.failed_ids
    ]
    logger.info(
        f"One-off sync finished: {len(outcomes)} job(s), {crashed} failed outright, "
        f"{len(failed)} entities still failing"
    )
    return 1 if crashed or failed else 0


def main() -> None:
    """Main entry point for letletme sync."""
    configure_logging()
    args = build_parser().parse_args()

    try:
        config = build_runtime_config(args, Settings())
    except Exception as e:
        sys.exit(f"Configuration error: {e}")

    configure_debug_logging(config.debug_loggers)
    logger.info("Starting letletme sync...")

    try:
        if config.once:
            sys.exit(asyncio.run(run_once(config)))
        asyncio.run(run_scheduler(config))
    except KeyboardInterrupt:
        logger.info("Application stopped by user")
    except Exception as e:
        logger.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
