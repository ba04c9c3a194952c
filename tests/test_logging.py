import structlog

from core import logging as core_logging
from core.logging import BusinessEvents, redact_credentials
from payments.errors import DuplicatePaymentError
from tests.test_paypal_express import CAPTURE_RESPONSE, DETAILS_RESPONSE

import pytest


def events_named(name):
    return [entry for entry in core_logging.test_output if entry["event"] == name]


def test_redact_credentials():
    """Test API credentials are masked without touching the input."""
    params = {"USER": "merchant", "PWD": "secret", "SIGNATURE": "sig", "METHOD": "SetExpressCheckout"}

    redacted = redact_credentials(params)

    assert redacted == {"USER": "XXXXXXXX", "PWD": "XXXXXX", "SIGNATURE": "XXX", "METHOD": "SetExpressCheckout"}
    assert params["PWD"] == "secret"


def test_business_event_names():
    assert BusinessEvents.CHECKOUT_INITIATED == "checkout.initiated"
    assert BusinessEvents.PAYMENT_SUCCESS == "payment.success"
    assert BusinessEvents.PAYMENT_DUPLICATE == "payment.duplicate"


def test_test_output_captures_bound_fields():
    log = structlog.get_logger("test")
    log.bind(foo="bar").info("hello world")

    entry = core_logging.test_output[-1]
    assert entry["foo"] == "bar"
    assert entry["event"] == "hello world"
    assert entry["level"] == "info"
    assert "timestamp" in entry


def test_checkout_flow_logs_events(checkout, transport):
    """Test a full checkout emits the business events in order."""
    transport.queue({"ACK": "Success", "TOKEN": "EC-1"}, DETAILS_RESPONSE, CAPTURE_RESPONSE)

    checkout.set_express_checkout_payment({"amount": "30"})
    checkout.get_express_checkout_details("EC-1", do_payment=True)

    assert events_named(BusinessEvents.CHECKOUT_INITIATED)[-1]["token"] == "EC-1"
    assert events_named(BusinessEvents.CHECKOUT_DETAILS_FETCHED)[-1]["step"] == "awaiting_details"
    assert events_named(BusinessEvents.PAYMENT_ATTEMPT)[-1]["amount"] == "30.00"
    success = events_named(BusinessEvents.PAYMENT_SUCCESS)[-1]
    assert success["transaction_id"] == "TX-9"
    assert success["step"] == "done"


def test_duplicate_payment_logged_as_error(checkout, transport):
    """Test a blocked second capture is logged at error level."""
    transport.queue({**DETAILS_RESPONSE, "CHECKOUTSTATUS": "PaymentActionCompleted"})

    with pytest.raises(DuplicatePaymentError):
        checkout.get_express_checkout_details("EC-1", do_payment=True)

    entry = events_named(BusinessEvents.PAYMENT_DUPLICATE)[-1]
    assert entry["level"] == "error"
    assert entry["token"] == "EC-1"
