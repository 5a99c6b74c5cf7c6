"""Prometheus metrics for retrieval and access requests."""

from prometheus_client import Counter, Histogram

retrieval_latency_ms = Histogram(
    "retrieval_latency_ms",
    "Tiered retrieval latency in milliseconds",
    ["outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 4000, 8000],
)

retrieval_results_total = Counter(
    "retrieval_results_total",
    "Chunks returned by tiered retrieval",
    ["tier"],
)

access_requests_total = Counter(
    "access_requests_total",
    "Access request lifecycle events",
    ["event"],
)

notification_failures_total = Counter(
    "notification_failures_total",
    "Realtime notification deliveries that failed",
    ["kind"],
)


class PrometheusKnowledgeMetrics:
    """Prometheus-based metrics implementation."""

    def record_retrieval(self, outcome: str, latency_ms: float) -> None:
        """Record retrieval latency."""
        retrieval_latency_ms.labels(outcome=outcome).observe(latency_ms)

    def inc_results(self, tier: str, count: int) -> None:
        """Count chunks returned by a tier."""
        if count:
            retrieval_results_total.labels(tier=tier).inc(count)

    def inc_request_event(self, event: str) -> None:
        """Count an access request transition or rejection."""
        access_requests_total.labels(event=event).inc()

    def inc_notification_failure(self, kind: str) -> None:
        """Count a failed realtime delivery."""
        notification_failures_total.labels(kind=kind).inc()


metrics = PrometheusKnowledgeMetrics()
