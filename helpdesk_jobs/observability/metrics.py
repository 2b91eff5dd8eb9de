"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from helpdesk_jobs.constants import (
    METRIC_DISPATCH_ERRORS,
    METRIC_JOB_DURATION,
    METRIC_JOBS_CLAIMED,
    METRIC_JOBS_COMPLETED,
    METRIC_JOBS_ENQUEUED,
    METRIC_QUEUE_DEPTH,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Queue depth
    - Job enqueues, claims and completions
    - Job execution duration
    - Dispatch loop errors outside handlers
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of PENDING jobs",
            registry=self._registry,
        )

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of jobs enqueued",
            ["job_type"],
            registry=self._registry,
        )

        self.jobs_claimed = Counter(
            METRIC_JOBS_CLAIMED,
            "Total number of jobs claimed by a dispatch loop",
            ["job_type"],
            registry=self._registry,
        )

        self.jobs_completed = Counter(
            METRIC_JOBS_COMPLETED,
            "Total number of jobs that reached a terminal status",
            ["job_type", "status"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job handler duration in seconds",
            ["job_type", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        # stage: claim, payload, mark_terminal
        self.dispatch_errors = Counter(
            METRIC_DISPATCH_ERRORS,
            "Errors raised by the dispatch loop outside of handlers",
            ["stage"],
            registry=self._registry,
        )

    def record_job_enqueued(self, job_type: str) -> None:
        self.jobs_enqueued.labels(job_type=job_type).inc()

    def record_job_claimed(self, job_type: str) -> None:
        self.jobs_claimed.labels(job_type=job_type).inc()

    def record_job_completed(
        self,
        job_type: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a job reaching DONE or FAILED."""
        self.jobs_completed.labels(job_type=job_type, status=status).inc()
        self.job_duration.labels(job_type=job_type, status=status).observe(
            duration_seconds
        )

    def record_dispatch_error(self, stage: str) -> None:
        self.dispatch_errors.labels(stage=stage).inc()

    def update_queue_depth(self, depth: int) -> None:
        self.queue_depth.set(depth)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
