"""
PayPal Express Checkout (classic NVP API)

This module drives the three Express Checkout calls:
- SetExpressCheckout: start a checkout and get the buyer redirect URL
- GetExpressCheckoutDetails: read what the buyer approved, optionally
  capturing straight away
- DoExpressCheckoutPayment: capture the payment

One PayPalExpressCheckout instance holds the cart for one checkout at a time.
It is not safe to mutate it while a call is in flight.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import structlog

from core.dependencies import get_settings
from core.logging import BusinessEvents
from core.metrics import record_nvp_call, record_payment
from core.settings import Settings
from core.tracing import get_tracer
from payments.errors import (
    CaptureMismatchError,
    DuplicatePaymentError,
    PayPalConfigError,
    RemoteRejection,
    TransportError,
)
from payments.nvp_params import (
    CALLBACK_RESPONSE_PARAMS,
    ITEM_PARAMS,
    PAYMENT_PARAMS,
    SHIPPING_OPTION_PARAMS,
    map_fields,
    map_indexed,
    normalize_amount,
)
from payments.nvp_transport import DEFAULT_TIMEOUT, NVPTransport

log = structlog.get_logger(__name__)

API_VERSION = "204.0"

API_URLS = {
    "testing": {
        "certificate": "https://api.sandbox.paypal.com/nvp",
        "signature": "https://api-3t.sandbox.paypal.com/nvp",
        "redirect": "https://www.sandbox.paypal.com/cgi-bin/webscr",
    },
    "production": {
        "certificate": "https://api.paypal.com/nvp",
        "signature": "https://api-3t.paypal.com/nvp",
        "redirect": "https://www.paypal.com/cgi-bin/webscr",
    },
}

ACK_SUCCESS = "Success"
CHECKOUT_STATUS_COMPLETED = "PaymentActionCompleted"
DEFAULT_PAYMENT_ACTION = "Sale"
DEFAULT_CALLBACK_TIMEOUT = 3

METHOD_SET_EXPRESS_CHECKOUT = "SetExpressCheckout"
METHOD_GET_EXPRESS_CHECKOUT_DETAILS = "GetExpressCheckoutDetails"
METHOD_DO_EXPRESS_CHECKOUT_PAYMENT = "DoExpressCheckoutPayment"

# Fields of the GetExpressCheckoutDetails response that are sent back on capture
CAPTURE_FIELDS_FROM_DETAILS = (
    "PAYERID",
    "PAYMENTREQUEST_0_AMT",
    "PAYMENTREQUEST_0_CURRENCYCODE",
    "PAYMENTREQUEST_0_ITEMAMT",
)


class Transport(Protocol):
    def send(
        self, endpoint: str, method: str, params: dict[str, str]
    ) -> dict[str, str]: ...


class CheckoutStep(str, Enum):
    AWAITING_DETAILS = "awaiting_details"
    AWAITING_CAPTURE = "awaiting_capture"
    DONE = "done"


@dataclass(frozen=True)
class CheckoutRedirect:
    redirect_url: str
    token: str


def is_success(response: dict[str, Any]) -> bool:
    # SuccessWithWarning counts as a failure too
    return response.get("ACK") == ACK_SUCCESS


def check_ack(response: dict[str, Any]) -> dict[str, Any]:
    """Return ``response`` if ACK is Success, else raise RemoteRejection."""
    if is_success(response):
        return response
    ack = response.get("ACK")
    raise RemoteRejection(
        f"ACK {ack}: {response.get('L_LONGMESSAGE0')}",
        code=response.get("L_ERRORCODE0"),
        ack=ack,
        response=response,
    )


def capture_params_from_details(details: dict[str, Any], token: str) -> dict[str, str]:
    """
    DoExpressCheckoutPayment fields taken from a GetExpressCheckoutDetails
    response. Amounts are PayPal's figures, never recomputed locally.
    """
    params = {"TOKEN": token}
    for field in CAPTURE_FIELDS_FROM_DETAILS:
        if details.get(field) is not None:
            params[field] = details[field]
    return params


class PayPalExpressCheckout:
    """Express Checkout session for one merchant account."""

    def __init__(
        self,
        username: str,
        password: str,
        signature: str | None = None,
        testing: bool = False,
        cert: str | None = None,
        key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Transport | None = None,
    ):
        if not signature and not (cert and key):
            raise PayPalConfigError("signature or key and cert are required")

        self.username = username
        self.password = password
        self.signature = signature or None
        self.testing = testing
        self.cert = cert
        self.key = key

        self.pay_options: dict[str, str] = {}
        self.products: list[dict[str, Any]] = []
        self.shipping_options: list[dict[str, Any]] = []

        urls = API_URLS["testing" if testing else "production"]
        self.uses_certificate = bool(cert and key)
        self.url = urls["certificate" if self.uses_certificate else "signature"]
        self.redirect = urls["redirect"]

        self.transport = transport or NVPTransport(timeout=timeout, cert=cert, key=key)

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, transport: Transport | None = None
    ) -> "PayPalExpressCheckout":
        """Build a session from environment settings."""
        if settings is None:
            settings = get_settings()

        return cls(
            username=settings.PAYPAL_USERNAME,
            password=settings.PAYPAL_PASSWORD,
            signature=settings.PAYPAL_SIGNATURE,
            testing=settings.PAYPAL_TESTING,
            cert=settings.PAYPAL_CERT,
            key=settings.PAYPAL_KEY,
            timeout=settings.PAYPAL_TIMEOUT,
            transport=transport,
        )

    # Parameter building

    def auth_params(self) -> dict[str, str]:
        params = {
            "USER": self.username,
            "PWD": self.password,
            "VERSION": API_VERSION,
        }
        # Certificate auth travels with the TLS handshake instead
        if self.signature and not self.uses_certificate:
            params["SIGNATURE"] = self.signature
        return params

    def get_items_params(
        self, products: list[dict[str, Any]] | None = None
    ) -> dict[str, str]:
        return map_indexed(self.products if products is None else products, ITEM_PARAMS)

    def get_shipping_option_params(
        self, shipping_options: list[dict[str, Any]] | None = None
    ) -> dict[str, str]:
        if shipping_options is None:
            shipping_options = self.shipping_options
        return map_indexed(shipping_options, SHIPPING_OPTION_PARAMS)

    def get_callback_response_params(self, options: dict[str, Any]) -> dict[str, str]:
        """Fields for answering PayPal's instant update (shipping) callback."""
        return map_fields(options, CALLBACK_RESPONSE_PARAMS)

    def get_pay_option_params(self) -> dict[str, str]:
        return dict(self.pay_options)

    # Cart state

    def set_products(self, products: list[dict[str, Any]]) -> "PayPalExpressCheckout":
        self.products = list(products)
        return self

    def set_shipping_options(
        self, shipping_options: list[dict[str, Any]]
    ) -> "PayPalExpressCheckout":
        self.shipping_options = list(shipping_options)
        return self

    def set_pay_options(self, options: dict[str, Any]) -> "PayPalExpressCheckout":
        self.pay_options.update(map_fields(options, PAYMENT_PARAMS))
        return self

    def set_payment_action(self, payment_action: str) -> "PayPalExpressCheckout":
        self.pay_options["PAYMENTREQUEST_0_PAYMENTACTION"] = payment_action
        return self

    def set_shipping_amount(self, amount) -> "PayPalExpressCheckout":
        self.pay_options["PAYMENTREQUEST_0_SHIPPINGAMT"] = normalize_amount(amount)
        return self

    def set_sub_total(self, amount) -> "PayPalExpressCheckout":
        self.pay_options["PAYMENTREQUEST_0_ITEMAMT"] = normalize_amount(amount)
        return self

    def set_tax_amount(self, amount) -> "PayPalExpressCheckout":
        self.pay_options["PAYMENTREQUEST_0_TAXAMT"] = normalize_amount(amount)
        return self

    def set_max_amount(self, amount) -> "PayPalExpressCheckout":
        self.pay_options["MAXAMT"] = normalize_amount(amount)
        return self

    def clear_data(self) -> "PayPalExpressCheckout":
        self.pay_options = {}
        self.products = []
        self.shipping_options = []
        return self

    # Remote calls

    def _call(self, params: dict[str, str]) -> dict[str, str]:
        method = params["METHOD"]
        with get_tracer().start_as_current_span(f"paypal.nvp {method}") as span:
            span.set_attribute("paypal.method", method)
            try:
                response = self.transport.send(self.url, "POST", params)
            except TransportError:
                record_nvp_call(method, "transport_error")
                raise

            ack = response.get("ACK")
            span.set_attribute("paypal.ack", str(ack))
            record_nvp_call(method, "success" if is_success(response) else "rejected")
            log.debug(
                BusinessEvents.NVP_RESPONSE,
                method=method,
                ack=ack,
                correlation_id=response.get("CORRELATIONID"),
            )
            return response

    def set_express_checkout_payment(self, options: dict[str, Any]) -> CheckoutRedirect:
        """
        Start a checkout.

        ``options`` uses PAYMENT_PARAMS names (amount, currency, return_url,
        cancel_url, ...). Cart items, shipping options and pay options set on
        the session are sent along; pay options win on conflicts.
        """
        options = dict(options)
        if options.get("callback_url") and not options.get("callback_timeout"):
            options["callback_timeout"] = DEFAULT_CALLBACK_TIMEOUT

        params = self.auth_params()
        params.update(map_fields(options, PAYMENT_PARAMS))
        params.update(self.get_items_params())
        params.update(self.get_shipping_option_params())
        params.update(self.get_pay_option_params())
        params["METHOD"] = METHOD_SET_EXPRESS_CHECKOUT

        response = self._call(params)
        try:
            check_ack(response)
        except RemoteRejection as e:
            log.error(BusinessEvents.CHECKOUT_REJECTED, code=e.code, error=e.message)
            raise

        token = response.get("TOKEN")
        if not token:
            log.error(BusinessEvents.CHECKOUT_REJECTED, error="missing TOKEN")
            raise RemoteRejection(
                f"ACK {response.get('ACK')}: response carried no TOKEN",
                code=response.get("L_ERRORCODE0"),
                ack=response.get("ACK"),
                response=response,
            )

        log.info(
            BusinessEvents.CHECKOUT_INITIATED,
            token=token,
            amount=params.get("PAYMENTREQUEST_0_AMT"),
        )
        return CheckoutRedirect(
            redirect_url=f"{self.redirect}?cmd=_express-checkout&useraction=commit&token={token}",
            token=token,
        )

    def get_express_checkout_details(
        self, token: str, do_payment: bool = False
    ) -> dict[str, str]:
        """
        Fetch the buyer-approved checkout and, with ``do_payment``, capture it.

        The capture call is built only from the details response, so the
        amount charged is the one PayPal showed the buyer. A checkout whose
        CHECKOUTSTATUS is PaymentActionCompleted is never captured again.
        """
        step = CheckoutStep.AWAITING_DETAILS
        params = self.auth_params()
        params["TOKEN"] = token
        params["METHOD"] = METHOD_GET_EXPRESS_CHECKOUT_DETAILS

        details = check_ack(self._call(params))
        log.info(
            BusinessEvents.CHECKOUT_DETAILS_FETCHED,
            token=token,
            checkout_status=details.get("CHECKOUTSTATUS"),
            step=step.value,
        )

        if not do_payment:
            return details

        if details.get("CHECKOUTSTATUS") == CHECKOUT_STATUS_COMPLETED:
            log.error(BusinessEvents.PAYMENT_DUPLICATE, token=token)
            record_payment("duplicate")
            raise DuplicatePaymentError(details)

        step = CheckoutStep.AWAITING_CAPTURE
        capture_params = self.auth_params()
        capture_params["PAYMENTREQUEST_0_PAYMENTACTION"] = self.pay_options.get(
            "PAYMENTREQUEST_0_PAYMENTACTION", DEFAULT_PAYMENT_ACTION
        )
        capture_params.update(capture_params_from_details(details, token))
        capture_params["METHOD"] = METHOD_DO_EXPRESS_CHECKOUT_PAYMENT

        log.info(
            BusinessEvents.PAYMENT_ATTEMPT,
            token=token,
            amount=capture_params.get("PAYMENTREQUEST_0_AMT"),
            currency=capture_params.get("PAYMENTREQUEST_0_CURRENCYCODE"),
            step=step.value,
        )
        capture = self._call(capture_params)

        # details already passed check_ack above
        if not is_success(capture):
            log.error(
                BusinessEvents.PAYMENT_FAILURE,
                token=token,
                ack=capture.get("ACK"),
                code=capture.get("L_ERRORCODE0"),
                error=capture.get("L_LONGMESSAGE0"),
            )
            record_payment("failed")
            raise CaptureMismatchError(
                f"Error {METHOD_DO_EXPRESS_CHECKOUT_PAYMENT}: ACK {capture.get('ACK')}",
                details=details,
                capture_response=capture,
                code=capture.get("L_ERRORCODE0"),
            )

        step = CheckoutStep.DONE
        log.info(
            BusinessEvents.PAYMENT_SUCCESS,
            token=token,
            transaction_id=capture.get("PAYMENTINFO_0_TRANSACTIONID"),
            step=step.value,
        )
        record_payment("captured")
        return {**details, **capture}

    def do_express_checkout_payment(self, params: dict[str, Any]) -> dict[str, str]:
        """
        Capture with caller-supplied fields, usually the dict returned by
        get_express_checkout_details(token) after the caller inspected it.
        """
        request = self.auth_params()
        request.update(params)
        request["METHOD"] = METHOD_DO_EXPRESS_CHECKOUT_PAYMENT

        response = self._call(request)
        try:
            check_ack(response)
        except RemoteRejection as e:
            log.error(
                BusinessEvents.PAYMENT_FAILURE,
                token=request.get("TOKEN"),
                code=e.code,
                error=e.message,
            )
            record_payment("failed")
            raise

        log.info(
            BusinessEvents.PAYMENT_SUCCESS,
            token=request.get("TOKEN"),
            transaction_id=response.get("PAYMENTINFO_0_TRANSACTIONID"),
        )
        record_payment("captured")
        return response
