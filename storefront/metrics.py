"""
Prometheus metrics: lifecycle transitions applied and rejected, orders placed, store failures.
"""
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

# Applied writes, by entity (order, delivery, return) and the status written
transitions_applied_total = Counter(
    "transitions_applied_total",
    "Total lifecycle transitions written to the store",
    ["entity", "target"],
)
transitions_rejected_total = Counter(
    "transitions_rejected_total",
    "Total lifecycle transitions rejected (not allowed from the current state, or actor lacks authority)",
    ["entity", "current_state", "attempted"],
)
deliveries_assigned_total = Counter(
    "deliveries_assigned_total",
    "Total deliveries created by assign-delivery",
)
orders_placed_total = Counter(
    "orders_placed_total",
    "Total orders created at checkout",
    ["order_type"],
)
store_failures_total = Counter(
    "store_failures_total",
    "Total requests failed by a store write error (transaction rolled back)",
)


def render_lifecycle_metrics() -> tuple[bytes, str]:
    """Scrape body for the default registry, where the lifecycle counters above register."""
    return generate_latest(), CONTENT_TYPE_LATEST
