"""Error taxonomy for the sync core.

Transient errors (network, timeout, 5xx, throttling) are retried by the HTTP
client before they reach a caller. Everything else is surfaced immediately.
"""

from collections.abc import Sequence


class SyncError(Exception):
    """Base class for all errors raised by letletme_sync."""

    retryable: bool = False


class ValidationError(SyncError):
    """Malformed input or payload; never retried."""


class NetworkError(SyncError):
    """Connection-level failure with no response."""

    retryable = True


class RequestTimeoutError(NetworkError):
    """Request did not complete within its timeout."""


class ClientError(SyncError):
    """Upstream answered with a 4xx status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class EntryNotFoundError(ClientError):
    """Entry does not exist upstream (404)."""


class UpstreamThrottledError(ClientError):
    """Upstream answered 429 Too Many Requests."""

    retryable = True


class ServerError(SyncError):
    """Upstream answered with a 5xx status."""

    retryable = True

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitExceeded(SyncError):
    """Local token bucket has fewer tokens than requested."""

    retryable = True

    def __init__(self, remaining_tokens: float, next_refill_in: float) -> None:
        super().__init__(
            f"Rate limit exceeded: {remaining_tokens:.0f} tokens left, "
            f"next refill in {next_refill_in * 1000:.0f}ms"
        )
        self.remaining_tokens = remaining_tokens
        self.next_refill_in = next_refill_in

    @property
    def next_refill_in_ms(self) -> int:
        return int(self.next_refill_in * 1000)


class RetryExhaustedError(SyncError):
    """All attempts failed; ``last_error`` is the final underlying failure."""

    def __init__(self, attempts: int, last_error: SyncError) -> None:
        super().__init__(f"Retries exhausted after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class CacheOperationError(SyncError):
    """Cache backend failure. Always recovered locally."""


class PartialBatchFailure(SyncError):
    """Some entities of a batch failed; carries the failed id subset."""

    def __init__(self, job_name: str, failed_ids: Sequence[int], retry_count: int) -> None:
        super().__init__(
            f"{job_name}: {len(failed_ids)} entities failed at retry cycle {retry_count}"
        )
        self.job_name = job_name
        self.failed_ids = list(failed_ids)
        self.retry_count = retry_count
