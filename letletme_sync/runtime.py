"""Runtime configuration building for letletme sync startup."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Any

from letletme_sync.infrastructure.http_client import Timeout
from letletme_sync.infrastructure.retry import RetryPolicy
from letletme_sync.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeConfig:
    """Resolved startup configuration after CLI/ENV merge; durations in seconds."""

    db_connection: str
    db_engine_kwargs: dict[str, Any]
    db_session_kwargs: dict[str, Any]
    redis_url: str
    redis_socket_timeout: float
    cache_ttl: int | None
    fpl_base_url: str
    http_timeout: Timeout
    retry_policy: RetryPolicy
    rate_limiter_capacity: int
    rate_limiter_refill_rate: int
    rate_limiter_interval: float
    wait_for_tokens: bool
    max_retry_cycles: int
    concurrency: int
    throttle: float
    chunk_size: int
    retry_base_delay: float
    retry_max_delay: float
    debug_loggers: str | None
    once: bool
    job: str
    event_id: int | None
    entry_ids: list[int] | None


def build_runtime_config(args: argparse.Namespace, settings: Settings) -> RuntimeConfig:
    """Resolve final runtime configuration used by main().

    Raises:
        ValueError: If any resolved option is out of range
    """
    http = settings.http
    sync = settings.sync

    concurrency = args.concurrency if args.concurrency is not None else sync.concurrency
    max_retry_cycles = (
        args.max_retry_cycles if args.max_retry_cycles is not None else sync.max_retry_cycles
    )
    debug_loggers = args.debug_loggers if args.debug_loggers is not None else settings.debug_loggers

    if args.event_id is not None and args.event_id <= 0:
        raise ValueError(f"Invalid event id: {args.event_id}")
    if concurrency < 1:
        raise ValueError("SYNC_CONCURRENCY must be >= 1")
    if max_retry_cycles < 0:
        raise ValueError("MAX_RETRY_CYCLES must be >= 0")
    if sync.chunk_size < 1:
        raise ValueError("SYNC_CHUNK_SIZE must be >= 1")
    if sync.throttle_ms < 0:
        raise ValueError("SYNC_THROTTLE_MS must be >= 0")
    if sync.retry_base_delay_s < 0 or sync.retry_max_delay_s < sync.retry_base_delay_s:
        raise ValueError("RETRY_BASE_DELAY_S must be >= 0 and <= RETRY_MAX_DELAY_S")
    if http.rate_limiter_capacity < 1 or http.rate_limiter_refill_rate < 1:
        raise ValueError("RATE_LIMITER_CAPACITY and RATE_LIMITER_REFILL_RATE must be >= 1")
    if http.rate_limiter_interval_ms <= 0:
        raise ValueError("RATE_LIMITER_INTERVAL_MS must be > 0")
    if http.max_delay_ms < http.base_delay_ms:
        raise ValueError("HTTP_MAX_DELAY_MS must be >= HTTP_BASE_DELAY_MS")
    if settings.redis.cache_ttl is not None and settings.redis.cache_ttl <= 0:
        raise ValueError("CACHE_TTL must be > 0")

    retry_policy = RetryPolicy(
        max_attempts=http.retry_attempts,
        base_delay=http.base_delay_ms / 1000,
        max_delay=http.max_delay_ms / 1000,
        jitter_max=http.jitter_max_ms / 1000,
    )

    return RuntimeConfig(
        db_connection=settings.db_connection,
        db_engine_kwargs=_resolve_engine_kwargs(settings.db.engine_kwargs),
        db_session_kwargs=_resolve_session_kwargs(settings.db.session_kwargs),
        redis_url=settings.redis.url,
        redis_socket_timeout=settings.redis.socket_timeout,
        cache_ttl=settings.redis.cache_ttl,
        fpl_base_url=http.base_url,
        http_timeout=Timeout[http.timeout],
        retry_policy=retry_policy,
        rate_limiter_capacity=http.rate_limiter_capacity,
        rate_limiter_refill_rate=http.rate_limiter_refill_rate,
        rate_limiter_interval=http.rate_limiter_interval_ms / 1000,
        wait_for_tokens=http.wait_for_tokens,
        max_retry_cycles=max_retry_cycles,
        concurrency=concurrency,
        throttle=sync.throttle_ms / 1000,
        chunk_size=sync.chunk_size,
        retry_base_delay=sync.retry_base_delay_s,
        retry_max_delay=sync.retry_max_delay_s,
        debug_loggers=debug_loggers,
        once=bool(args.once),
        job=args.job,
        event_id=args.event_id,
        entry_ids=_parse_entry_ids(args.entry_ids),
    )


def _parse_entry_ids(entry_ids_spec: str | None) -> list[int] | None:
    """Parse comma-separated entry ids; None means all known entries."""
    if not entry_ids_spec:
        return None

    entry_ids = []
    for item in entry_ids_spec.split(","):
        item = item.strip()
        if not item:
            continue
        if not item.isdigit() or int(item) <= 0:
            raise ValueError(f"Invalid entry id: {item!r}")
        entry_ids.append(int(item))

    if not entry_ids:
        return None

    logger.info("Restricted to %s entry id(s)", len(entry_ids))
    return entry_ids


def _resolve_engine_kwargs(service_engine_kwargs: dict[str, Any] | None) -> dict[str, Any]:
    defaults = {
        "echo": False,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
    }
    return {**defaults, **(service_engine_kwargs or {})}


def _resolve_session_kwargs(service_session_kwargs: dict[str, Any] | None) -> dict[str, Any]:
    defaults = {
        "expire_on_commit": False,
    }
    return {**defaults, **(service_session_kwargs or {})}
