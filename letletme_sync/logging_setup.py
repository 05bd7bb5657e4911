"""Logging setup helpers for letletme sync startup."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

ROOT_LOGGER = "letletme_sync"


def configure_logging() -> None:
    """Configure base logging and quiet noisy third-party loggers."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def configure_debug_logging(loggers_spec: str | None) -> list[str]:
    """Enable DEBUG logs for the named letletme_sync sub-loggers.

    ``orchestration`` enables ``letletme_sync.orchestration`` and everything
    below it; ``*`` enables the whole package.
    """
    names = [_qualify(name) for name in _parse_csv(loggers_spec)]
    for name in names:
        logging.getLogger(name).setLevel(logging.DEBUG)
    if names:
        logger.info("Enabling DEBUG logging for: %s", names)
    return names


def _qualify(name: str) -> str:
    if name == "*":
        return ROOT_LOGGER
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return name
    return f"{ROOT_LOGGER}.{name}"


def _parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]
