"""Business metrics for Prometheus monitoring."""
from prometheus_client import Counter

# Payment intent metrics
payment_intents_opened_total = Counter(
    "payment_intents_opened_total",
    "Total payment intents opened",
    labelnames=["purpose"],
)

payment_intent_amount_total = Counter(
    "payment_intent_amount_rsd_total",
    "Total amount of opened payment intents in RSD",
    labelnames=["purpose"],
)

# Reconciliation metrics
payment_reconciliations_total = Counter(
    "payment_reconciliations_total",
    "Reconciliation attempts by outcome",
    labelnames=["outcome"],  # paid, already_paid, amount_mismatch, expired, already_terminal, not_found
)

payment_intents_cancelled_total = Counter(
    "payment_intents_cancelled_total",
    "Total payment intents cancelled",
    labelnames=["purpose"],
)

payment_intents_expired_total = Counter(
    "payment_intents_expired_total",
    "Total payment intents moved to EXPIRED by the sweep",
)

# Fulfillment metrics
payment_fulfillments_total = Counter(
    "payment_fulfillments_total",
    "Paid intents whose purchase was delivered",
    labelnames=["purpose"],
)
