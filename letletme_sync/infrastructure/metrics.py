"""Per-attempt metrics for outbound HTTP calls."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")

upstream_requests_total = Counter(
    "upstream_requests_total",
    "Total upstream HTTP attempts",
    ["method", "path", "status"],
)

upstream_request_duration_seconds = Histogram(
    "upstream_request_duration_seconds",
    "Upstream HTTP attempt latency in seconds",
    ["method", "path"],
)


@dataclass(frozen=True)
class RequestMetric:
    path: str
    method: str
    duration: float  # seconds
    status: int | None
    error: str | None = None


class HTTPMetrics:
    """Records every attempt to prometheus and an optional callback."""

    def __init__(self, on_metric: Callable[[RequestMetric], None] | None = None) -> None:
        self._on_metric = on_metric

    def record(self, metric: RequestMetric) -> None:
        status_label = str(metric.status) if metric.status is not None else metric.error or "none"
        path_label = _NUMERIC_SEGMENT.sub("/{id}", metric.path)
        upstream_requests_total.labels(metric.method, path_label, status_label).inc()
        upstream_request_duration_seconds.labels(metric.method, path_label).observe(
            metric.duration
        )

        logger.debug(
            f"{metric.method} {metric.path} -> {metric.status} "
            f"in {metric.duration * 1000:.0f}ms"
            + (f" ({metric.error})" if metric.error else "")
        )

        if self._on_metric is not None:
            self._on_metric(metric)
