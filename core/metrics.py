"""
Prometheus metrics for the PayPal NVP client.

Counters live in the default registry; exposing them is left to the
embedding application.
"""

from prometheus_client import Counter

nvp_calls_total = Counter(
    "paypal_nvp_calls_total",
    "Total number of PayPal NVP calls",
    ["method", "outcome"],  # outcome: success, rejected, transport_error
)

checkout_payments_total = Counter(
    "paypal_checkout_payments_total",
    "Total number of Express Checkout capture attempts",
    ["outcome"],  # outcome: captured, duplicate, failed
)


def record_nvp_call(method: str, outcome: str):
    nvp_calls_total.labels(method=method, outcome=outcome).inc()


def record_payment(outcome: str):
    checkout_payments_total.labels(outcome=outcome).inc()
