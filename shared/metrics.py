"""
Shared metrics configuration for the access control engine.
"""

import time
from contextlib import contextmanager
from typing import Dict, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram


class AccessControlMetrics:
    """Prometheus metrics for access decisions and filter builds."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up decision metrics."""
        self._metrics["access_control_decisions_total"] = Counter(
            "access_control_decisions_total",
            "Total access decisions",
            ["resource_type", "action", "outcome"],
            registry=self.registry
        )

        self._metrics["access_control_evaluation_seconds"] = Histogram(
            "access_control_evaluation_seconds",
            "Time spent evaluating rules",
            ["operation"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_decision(self, resource_type: str, action: str, allowed: bool):
        """Record an access decision."""
        self._metrics["access_control_decisions_total"].labels(
            resource_type=resource_type,
            action=action,
            outcome="granted" if allowed else "denied"
        ).inc()

    @contextmanager
    def time_operation(self, operation: str):
        """Time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            self._metrics["access_control_evaluation_seconds"].labels(
                operation=operation
            ).observe(time.time() - start_time)
