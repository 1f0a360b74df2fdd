"""Prometheus-compatible metrics for the logging and request pipeline.

Each ``ObservabilityMetrics`` owns a private ``CollectorRegistry`` so that
several applications (or tests) in one process never collide on metric names.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

CONTENT_TYPE_LATEST = "text/plain; version=0.0.4; charset=utf-8"


def status_class(status_code: int) -> str:
    """Collapse an HTTP status into its class label (``2xx``, ``4xx``, ...)."""
    return f"{status_code // 100}xx"


class ObservabilityMetrics:
    """Counters and histograms for log sink activity and request outcomes.

    Provides:
    - Counters: log lines, rotations, fallback writes, pruned files, requests
    - Histograms: request duration in milliseconds
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        self.log_lines = Counter(
            "reqtrail_log_lines_total",
            "Log lines appended to log files",
            ["category"],
            registry=self.registry,
        )
        self.log_rotations = Counter(
            "reqtrail_log_rotations_total",
            "Size-based log file rotations",
            ["category"],
            registry=self.registry,
        )
        self.log_fallbacks = Counter(
            "reqtrail_log_fallback_total",
            "Log lines diverted to the console after a file write failure",
            ["category"],
            registry=self.registry,
        )
        self.files_pruned = Counter(
            "reqtrail_log_files_pruned_total",
            "Log files deleted by the retention policy",
            registry=self.registry,
        )
        self.requests = Counter(
            "reqtrail_requests_total",
            "Requests handled by the pipeline",
            ["outcome", "status_class"],
            registry=self.registry,
        )
        self.request_duration_ms = Histogram(
            "reqtrail_request_duration_ms",
            "Request duration in milliseconds",
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
            registry=self.registry,
        )

    def record_request(self, success: bool, status_code: int, duration_ms: float) -> None:
        outcome = "success" if success else "error"
        self.requests.labels(outcome=outcome, status_class=status_class(status_code)).inc()
        self.request_duration_ms.observe(max(duration_ms, 0.0))

    def export(self) -> bytes:
        """Return metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
