"""
Prometheus metrics for Collection Browser services.

Every collector owns its registry unless one is passed in, so several
service instances (e.g. one per test) can coexist in one process.
"""

from typing import Any, Dict, Optional, Sequence, Tuple, Type

from prometheus_client import CollectorRegistry, Counter, Histogram, Info

MetricSpec = Tuple[Type, str, str, Sequence[str]]

HTTP_METRICS: Tuple[MetricSpec, ...] = (
    (Counter, "http_requests_total", "Total HTTP requests", ("method", "endpoint", "status_code")),
    (Histogram, "http_request_duration_seconds", "HTTP request duration in seconds", ("method", "endpoint")),
    (Counter, "health_check_total", "Total health check requests", ("status",)),
    (Counter, "errors_total", "Total errors", ("error_type", "service")),
)

BROWSER_METRICS: Tuple[MetricSpec, ...] = (
    (Counter, "page_fetches_total", "Total remote page fetches", ("collection", "mode", "result")),
    (Histogram, "page_fetch_duration_seconds", "Remote page fetch duration in seconds", ("collection", "mode")),
    (Counter, "token_invalidations_total", "Cached token sets discarded after a parameter change", ("collection",)),
    (Counter, "cache_decode_errors_total", "Cached values that failed to decode", ("key",)),
)

SERVICE_METRICS: Dict[str, Tuple[MetricSpec, ...]] = {
    "browser": BROWSER_METRICS,
}


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None, version: str = "1.0.0"):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        info = Info("service_info", "Service information", registry=self.registry)
        info.info({"service": service_name, "version": version})
        self._metrics["service_info"] = info

        for spec in HTTP_METRICS + SERVICE_METRICS.get(service_name, ()):
            self._register(*spec)

    def _register(self, kind: Type, name: str, documentation: str, labels: Sequence[str]) -> None:
        self._metrics[name] = kind(name, documentation, list(labels), registry=self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self._metrics["http_requests_total"].labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(method=method, endpoint=endpoint).observe(duration)

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        self._metrics["errors_total"].labels(error_type=error_type, service=service or self.service_name).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter; unknown names are ignored."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram; unknown names are ignored."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
