"""Prometheus metrics for deal creation, outbox throughput, and ledger write performance"""

from prometheus_client import Counter, Histogram

# Deal metrics
deals_created_counter = Counter(
    "shelterflex_deals_created_total",
    "Deals created",
    ["term_months"],
)

# Outbox metrics
outbox_created_counter = Counter(
    "shelterflex_outbox_items_created_total",
    "Outbox items created (duplicates excluded)",
    ["tx_type"],
)

outbox_send_counter = Counter(
    "shelterflex_outbox_sends_total",
    "Outbox send attempts by outcome",
    ["tx_type", "outcome"],  # sent | failed
)

# Ledger metrics
ledger_latency_histogram = Histogram(
    "ledger_request_latency_seconds",
    "Ledger request response time",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ledger_failure_counter = Counter(
    "ledger_request_failures_total",
    "Failed ledger requests, counted per attempt",
    ["operation"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_deal_created(term_months: int) -> None:
    deals_created_counter.labels(term_months=str(term_months)).inc()


def record_outbox_send(tx_type: str, sent: bool) -> None:
    """Record the outcome of a single outbox send attempt"""
    outcome = "sent" if sent else "failed"
    outbox_send_counter.labels(tx_type=tx_type, outcome=outcome).inc()
