"""
Prometheus metrics for reservation writes, the payment ledger and side effects.

Metrics are module-level singletons registered with the default registry and
exposed through the /metrics endpoint.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., registered payments)
    - Histogram: Observations bucketed by value (e.g., store operation time)

Example:
    >>> from stay_ledger.metrics import payments_registered
    >>> payments_registered.labels(method="card").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Reservation Metrics
# =============================================================================

reservation_writes = Counter(
    "stay_ledger_reservation_writes_total",
    "Total reservation writes by operation and outcome",
    ["operation", "status"],
)
"""
Counter for reservation writes.

Labels:
    operation: create, update, update_status, update_amount_paid, delete, status_sweep
    status: success or failure
"""

reconciliation_outcomes = Counter(
    "stay_ledger_reconciliation_outcomes_total",
    "Outcome of reconciling a partial update against the stored reservation",
    ["outcome"],
)
"""
Counter for reconciliation results.

Labels:
    outcome: passthrough, recalculated, retained (inputs not numeric), override
"""

# =============================================================================
# Payment Ledger Metrics
# =============================================================================

payments_registered = Counter(
    "stay_ledger_payments_registered_total",
    "Total payments appended to reservation ledgers",
    ["method"],
)
"""
Counter for registered payments.

Labels:
    method: Payment method (card, cash, transfer, ...)
"""

payment_amounts = Histogram(
    "stay_ledger_payment_amount",
    "Amount of registered payments",
    buckets=(50, 100, 250, 500, 1000, 2500, 5000, 10000, float("inf")),
)
"""Histogram for payment amounts (currency units)."""

# =============================================================================
# Side Effect Metrics
# =============================================================================

side_effect_failures = Counter(
    "stay_ledger_side_effect_failures_total",
    "Document or email side effects that failed after the write committed",
    ["kind"],
)
"""
Counter for failed side effects.

Labels:
    kind: confirmation, status_change, payment_received, invoice, monthly_summary
"""

emails_sent = Counter(
    "stay_ledger_emails_sent_total",
    "Emails handed to the SMTP server",
    ["template"],
)
"""Counter for delivered emails, labelled by template kind."""

# =============================================================================
# Database Metrics
# =============================================================================

store_operation_duration = Histogram(
    "stay_ledger_store_operation_duration_seconds",
    "Duration of store transactions in seconds",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)
"""
Histogram for store transaction duration.

Labels:
    operation: Store operation name (get_reservation, register_payment, ...)

Buckets: 0.01s, 0.05s, 0.1s, 0.25s, 0.5s, 1s, 2.5s, 5s, +Inf
"""
