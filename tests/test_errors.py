"""Tests for the error hierarchy."""

import pytest

from payments.errors import (
    CaptureMismatchError,
    CheckoutError,
    DuplicatePaymentError,
    InvalidAmountError,
    PayPalConfigError,
    PayPalError,
    RemoteRejection,
    TransportConnectionError,
    TransportError,
    TransportStatusError,
    TransportTimeoutError,
)


def test_error_inheritance():
    """Test that every error derives from PayPalError."""
    assert issubclass(PayPalConfigError, PayPalError)
    assert issubclass(TransportTimeoutError, TransportError)
    assert issubclass(TransportConnectionError, TransportError)
    assert issubclass(TransportStatusError, TransportError)
    assert issubclass(TransportError, PayPalError)
    assert issubclass(RemoteRejection, PayPalError)
    assert issubclass(DuplicatePaymentError, PayPalError)
    assert issubclass(CaptureMismatchError, PayPalError)
    assert issubclass(InvalidAmountError, ValueError)
    assert CheckoutError is RemoteRejection


def test_str_includes_code():
    """Test the error code is appended to the message."""
    assert str(PayPalError("boom")) == "boom"
    assert str(PayPalError("boom", code="10001")) == "boom (Error Code: 10001)"


def test_remote_rejection_keeps_response():
    """Test RemoteRejection carries the raw PayPal response."""
    response = {"ACK": "Failure", "L_ERRORCODE0": "10413"}
    error = RemoteRejection("ACK Failure: totals mismatch", "10413", "Failure", response)

    assert error.response is response
    assert error.ack == "Failure"
    with pytest.raises(PayPalError):
        raise error


def test_duplicate_payment_error_message():
    error = DuplicatePaymentError({"CHECKOUTSTATUS": "PaymentActionCompleted"})
    assert str(error) == "Payment is already completed."
    assert error.details["CHECKOUTSTATUS"] == "PaymentActionCompleted"
