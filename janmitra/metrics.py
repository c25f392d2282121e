"""
Prometheus metrics for the civic reporting API.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- Report submission outcome counter (result)
- Chat reply counter (source)
- Outbound model call latency histogram

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

# result: created, invalid_input, db_error, storage_error
reports_submitted_total = Counter(
    "reports_submitted_total",
    "Total issue report submissions by outcome",
    labelnames=["result"]
)

# source: canned, model, model_error, unavailable, invalid_input
chat_replies_total = Counter(
    "chat_replies_total",
    "Total chat requests by reply source",
    labelnames=["source"]
)

model_request_latency_seconds = Histogram(
    "model_request_latency_seconds",
    "Latency of outbound generative model calls in seconds",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0)
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    # Every uploaded image has its own path; fold them into one label
    if path.startswith("/uploads/"):
        normalized_path = "/uploads"
    else:
        normalized_path = path.split("?")[0]

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_report_outcome(result: str) -> None:
    """Record the outcome of a POST /api/report call."""
    reports_submitted_total.labels(result=result).inc()


def record_chat_reply(source: str) -> None:
    """Record where a chat reply came from (or why there was none)."""
    chat_replies_total.labels(source=source).inc()


def observe_model_latency(latency_seconds: float) -> None:
    model_request_latency_seconds.observe(latency_seconds)


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
