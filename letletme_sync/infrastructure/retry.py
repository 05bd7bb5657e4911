"""Retry policy and backoff computation for outbound calls."""

import random
from collections.abc import Callable
from dataclasses import dataclass, field

from tenacity import RetryCallState
from tenacity.wait import wait_base

from letletme_sync.infrastructure.outcome import Failure, FailureKind

RETRYABLE_KINDS = frozenset(
    {
        FailureKind.NETWORK,
        FailureKind.TIMEOUT,
        FailureKind.SERVER_ERROR,
        FailureKind.RATE_LIMITED,
    }
)


def default_is_retryable(failure: Failure) -> bool:
    """4xx is the caller's fault; everything else is worth another attempt."""
    return failure.kind in RETRYABLE_KINDS


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration; delays are in seconds."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter_max: float = 0.1
    is_retryable: Callable[[Failure], bool] = field(default=default_is_retryable)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter_max < 0:
            raise ValueError("delays must be non-negative")


def compute_backoff_delay(
    attempt: int,
    policy: RetryPolicy,
    rng: random.Random,
    rate_limited: bool = False,
) -> float:
    """Delay to wait after failed attempt ``attempt`` (1-indexed).

    Exponential in the attempt number, capped at ``max_delay``, plus uniform
    jitter. A rate-limited failure always waits the full ``max_delay``.
    """
    if attempt < 1:
        raise ValueError("attempt is 1-indexed")

    if rate_limited:
        base = policy.max_delay
    else:
        base = min(policy.max_delay, policy.base_delay * 2 ** (attempt - 1))
    return base + rng.uniform(0, policy.jitter_max)


class wait_backoff(wait_base):  # noqa: N801 - named like tenacity's own strategies
    """Tenacity wait strategy driven by a RetryPolicy and the last outcome."""

    def __init__(self, policy: RetryPolicy, rng: random.Random) -> None:
        self.policy = policy
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        rate_limited = False
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed:
            result = outcome.result()
            rate_limited = (
                isinstance(result, Failure) and result.kind == FailureKind.RATE_LIMITED
            )
        return compute_backoff_delay(
            retry_state.attempt_number, self.policy, self.rng, rate_limited=rate_limited
        )
