"""Result values returned by the HTTP client.

The client never raises for expected failures; it returns one of
``Success``, ``Failure`` or ``RetryExhausted``. Callers that prefer
exceptions use ``unwrap()``.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from letletme_sync.errors import (
    ClientError,
    NetworkError,
    RequestTimeoutError,
    RetryExhaustedError,
    ServerError,
    SyncError,
    UpstreamThrottledError,
)

# JSON can be any of these types
JsonValue = dict[str, Any] | list[Any] | str | int | float | bool | None


class FailureKind(StrEnum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class Success:
    status: int
    body: JsonValue
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> JsonValue:
        return self.body


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    status: int | None = None
    cause: BaseException | None = None

    @property
    def ok(self) -> bool:
        return False

    def to_error(self) -> SyncError:
        """Map the failure onto the error taxonomy."""
        if isinstance(self.cause, SyncError):
            return self.cause
        match self.kind:
            case FailureKind.CLIENT_ERROR:
                return ClientError(self.message, self.status)
            case FailureKind.SERVER_ERROR:
                return ServerError(self.message, self.status)
            case FailureKind.TIMEOUT:
                return RequestTimeoutError(self.message)
            case FailureKind.RATE_LIMITED:
                # local throttling keeps its RateLimitExceeded cause above
                return UpstreamThrottledError(self.message, self.status)
            case _:
                return NetworkError(self.message)

    def unwrap(self) -> JsonValue:
        error = self.to_error()
        if error is self.cause:
            raise error
        raise error from self.cause


@dataclass(frozen=True)
class RetryExhausted:
    """Terminal result after every allowed attempt failed."""

    last: Failure
    attempts: int

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> FailureKind:
        return self.last.kind

    @property
    def status(self) -> int | None:
        return self.last.status

    def unwrap(self) -> JsonValue:
        raise RetryExhaustedError(self.attempts, self.last.to_error()) from self.last.cause


HTTPResult = Success | Failure | RetryExhausted
