"""Prometheus metrics for monitoring charge generation, carry-forward and collections"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

from tuition_ledger.domain.models import BatchResult

# Billing metrics
charges_written_counter = Counter(
    "tuition_charges_written_total",
    "Charge rows upserted",
    ["kind"],  # current | carried_over
)

batch_errors_counter = Counter(
    "tuition_batch_errors_total",
    "Students skipped inside bulk operations",
    ["operation"],  # generate_charges | carry_forward
)

# Collection metrics
payments_counter = Counter(
    "tuition_payments_recorded_total",
    "Payments recorded",
    ["method"],  # Cash | Transfer | POS | Online
)

payments_amount_counter = Counter(
    "tuition_payments_amount_total",
    "Sum of recorded payment amounts",
)

reversals_counter = Counter(
    "tuition_payment_reversals_total",
    "Payments reversed",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_batch(result: BatchResult, kind: str) -> None:
    """Record rows written and per-student skips of a bulk operation"""
    charges_written_counter.labels(kind=kind).inc(result.written)
    if result.errors:
        batch_errors_counter.labels(operation=result.operation).inc(result.error_count)


def record_payment(method: str, amount: Decimal) -> None:
    payments_counter.labels(method=method).inc()
    payments_amount_counter.inc(float(amount))
