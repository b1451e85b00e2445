"""
Prometheus metrics for cleanup passes
"""

from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

logger = structlog.get_logger(__name__)


class CleanupMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()

        self.pods_deleted = Counter(
            "pod_janitor_pods_deleted_total",
            "Pods deleted by a cleanup rule",
            ["rule"],
            registry=self.registry,
        )
        self.delete_failures = Counter(
            "pod_janitor_delete_failures_total",
            "Pod deletions that failed",
            ["rule"],
            registry=self.registry,
        )
        self.list_failures = Counter(
            "pod_janitor_list_failures_total",
            "Pod listings that failed, abandoning the rule for that pass",
            ["rule"],
            registry=self.registry,
        )
        self.pass_duration = Histogram(
            "pod_janitor_pass_duration_seconds",
            "Duration of a full cleanup pass",
            registry=self.registry,
        )

    def record_deleted(self, rule: str) -> None:
        self.pods_deleted.labels(rule=rule).inc()

    def record_delete_failure(self, rule: str) -> None:
        self.delete_failures.labels(rule=rule).inc()

    def record_list_failure(self, rule: str) -> None:
        self.list_failures.labels(rule=rule).inc()

    def observe_pass(self, seconds: float) -> None:
        self.pass_duration.observe(seconds)

    def serve(self, port: int) -> None:
        """Expose the registry over HTTP on the given port"""
        start_http_server(port, registry=self.registry)
        logger.info("Serving Prometheus metrics", port=port)
