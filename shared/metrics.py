"""
Shared metrics configuration for the Library System.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional
import time
from contextlib import contextmanager


WORKFLOW_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class MetricsCollector:
    """Prometheus metrics for one service instance."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Each collector owns a registry so several service instances can coexist in one process
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up HTTP, health and error metrics."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics, labelled by route template so IDs do not explode cardinality
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "route", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "route"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "library":
            self._setup_library_metrics()

    def _setup_library_metrics(self):
        """Set up cache and workflow metrics."""
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Cache lookups served from Redis",
            ["cache_type"],
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Cache lookups that fell through to the store",
            ["cache_type"],
            registry=self.registry
        )

        self._metrics["book_requests_created_total"] = Counter(
            "book_requests_created_total",
            "Book requests created, by whether the requestor was new",
            ["requestor"],
            registry=self.registry
        )

        self._metrics["workflow_duration_seconds"] = Histogram(
            "workflow_duration_seconds",
            "Workflow operation duration in seconds",
            ["operation"],
            buckets=WORKFLOW_BUCKETS,
            registry=self.registry
        )

    def render(self) -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, route: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            route=route,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            route=route
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_cache_lookup(self, cache_type: str, hit: bool):
        """Count a cache hit or miss for a key namespace."""
        name = "cache_hits_total" if hit else "cache_misses_total"
        if name in self._metrics:
            self._metrics[name].labels(cache_type=cache_type).inc()

    def record_book_request(self, new_requestor: bool):
        """Count a created book request."""
        if "book_requests_created_total" in self._metrics:
            self._metrics["book_requests_created_total"].labels(
                requestor="new" if new_requestor else "existing"
            ).inc()

    @contextmanager
    def time_workflow(self, operation: str):
        """Time a workflow operation."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            if "workflow_duration_seconds" in self._metrics:
                self._metrics["workflow_duration_seconds"].labels(operation=operation).observe(
                    time.perf_counter() - start_time
                )


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
