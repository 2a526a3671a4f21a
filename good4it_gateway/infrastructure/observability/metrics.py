"""Prometheus metrics for lifecycle transitions, settlements and side effects"""

from prometheus_client import Counter, Histogram

# Lifecycle metrics
transition_counter = Counter(
    "good4it_transition_total",
    "Committed lifecycle transitions",
    ["entity", "action"],  # entity: request | transaction | task | dispute
)

settlement_counter = Counter(
    "good4it_settlement_total",
    "Transactions reaching a terminal state",
    ["outcome"],  # repaid | forgiven
)

side_effect_failure_counter = Counter(
    "good4it_side_effect_failures_total",
    "Best-effort side effects that failed after commit",
    ["effect"],  # score | notification | dispatch
)

# Notification webhook metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_retry_counter = Counter(
    "notification_retries_total",
    "Failed notification delivery attempts that were retried or abandoned",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(entity: str, action: str, status: str | None = None) -> None:
    """Count a committed transition; terminal transaction states also count as a settlement"""
    transition_counter.labels(entity=entity, action=action).inc()
    if entity == "transaction" and status in ("repaid", "forgiven"):
        settlement_counter.labels(outcome=status).inc()
