"""Prometheus metrics for route computations, payments, access denials and store health"""

from prometheus_client import Counter, Histogram

# Route metrics
route_computation_counter = Counter(
    "collector_route_computations_total",
    "Daily route computations",
    ["outcome"],  # ok | not_assigned | invalid_date | store_unavailable
)

worklist_size_histogram = Histogram(
    "collector_worklist_size",
    "Clients per computed worklist",
    buckets=[1, 5, 10, 20, 40, 80],
)

# Payment metrics
payment_counter = Counter(
    "collector_payments_total",
    "Payment submissions",
    ["outcome"],  # recorded | duplicate | rejected
)

payment_amount_histogram = Histogram(
    "collector_payment_amount_cents",
    "Recorded payment amounts in cents",
    buckets=[500, 1000, 2000, 5000, 10_000, 50_000, 100_000],
)

# Access gate
access_denied_counter = Counter(
    "collector_access_denied_total",
    "Requests denied by the access gate",
    ["operation"],
)

# Store adapters
store_failure_counter = Counter(
    "collector_store_failures_total",
    "Failed store calls, counted per attempt",
    ["operation"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment_outcome(outcome: str, amount_cents: int = 0) -> None:
    """Count a payment submission; amounts are only observed for new ledger rows"""
    payment_counter.labels(outcome=outcome).inc()
    if outcome == "recorded":
        payment_amount_histogram.observe(amount_cents)


def record_route_outcome(outcome: str, worklist_size: int = 0) -> None:
    route_computation_counter.labels(outcome=outcome).inc()
    if outcome == "ok":
        worklist_size_histogram.observe(worklist_size)
