"""Infrastructure layer providing reusable components.

- Token-bucket rate limiter
- Resilient HTTP client with retry, backoff and per-request metrics
- Generic cache-aside store over a Redis backend
"""

from letletme_sync.infrastructure.cache import CacheAsideStore
from letletme_sync.infrastructure.cache_backend import CacheBackend, RedisCacheBackend
from letletme_sync.infrastructure.http_client import ResilientHTTPClient, Timeout
from letletme_sync.infrastructure.rate_limiter import TokenBucketRateLimiter
from letletme_sync.infrastructure.retry import RetryPolicy

__all__ = [
    "CacheAsideStore",
    "CacheBackend",
    "RedisCacheBackend",
    "ResilientHTTPClient",
    "Timeout",
    "TokenBucketRateLimiter",
    "RetryPolicy",
]
