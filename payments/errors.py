"""
PayPal NVP error types.

Transport failures, remote rejections and capture guard failures are kept
apart so callers can decide what (if anything) to retry.
"""

from typing import Any


class PayPalError(Exception):
    """Base error for the Express Checkout client."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self):
        if self.code:
            return f"{self.message} (Error Code: {self.code})"
        return self.message


class PayPalConfigError(PayPalError):
    """Raised when credentials or environment settings are unusable."""


class InvalidAmountError(PayPalError, ValueError):
    """Raised when a money value cannot be normalized to two decimals."""


class TransportError(PayPalError):
    """The request never produced a parsed NVP response."""


class TransportTimeoutError(TransportError):
    pass


class TransportConnectionError(TransportError):
    pass


class TransportStatusError(TransportError):
    """Non-2xx HTTP status; the raw body is kept for diagnostics."""

    def __init__(self, status_code: int, body: str):
        super().__init__(
            f"PayPal NVP endpoint returned HTTP {status_code}", code=str(status_code)
        )
        self.status_code = status_code
        self.body = body


class RemoteRejection(PayPalError):
    """PayPal answered, but ACK was not Success."""

    def __init__(
        self,
        message: str,
        code: str | None,
        ack: str | None,
        response: dict[str, Any],
    ):
        super().__init__(message, code)
        self.ack = ack
        self.response = response


# Name used by callers of SetExpressCheckout
CheckoutError = RemoteRejection


class DuplicatePaymentError(PayPalError):
    """The checkout was already paid; capture must not run again."""

    def __init__(self, details: dict[str, Any]):
        super().__init__("Payment is already completed.")
        self.details = details


class CaptureMismatchError(PayPalError):
    """Details were fetched but DoExpressCheckoutPayment did not succeed."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any],
        capture_response: dict[str, Any],
        code: str | None = None,
    ):
        super().__init__(message, code)
        self.details = details
        self.capture_response = capture_response
