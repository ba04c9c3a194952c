"""Test configuration and fixtures."""

import os

# Must be set before core.logging is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DISABLE_TRACING", "1")

import pytest

from core import logging as core_logging
from core.dependencies import clear_settings
from payments.paypal_express import PayPalExpressCheckout

SANDBOX_REDIRECT = "https://www.sandbox.paypal.com/cgi-bin/webscr"


class FakeTransport:
    """Records every send and answers with queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)
        return self

    def send(self, endpoint, method, params):
        self.calls.append({"endpoint": endpoint, "method": method, "params": dict(params)})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return dict(response)

    @property
    def sent_params(self):
        return [call["params"] for call in self.calls]


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    """Reset the settings singleton and captured log events."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    clear_settings()
    core_logging.test_output.clear()
    yield
    clear_settings()


@pytest.fixture
def paypal_env(monkeypatch):
    monkeypatch.setenv("PAYPAL_USERNAME", "merchant_api1.example.com")
    monkeypatch.setenv("PAYPAL_PASSWORD", "S3CR3T")
    monkeypatch.setenv("PAYPAL_SIGNATURE", "sig-abc")
    monkeypatch.setenv("PAYPAL_TESTING", "true")
    monkeypatch.delenv("PAYPAL_CERT", raising=False)
    monkeypatch.delenv("PAYPAL_KEY", raising=False)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def checkout(transport):
    return PayPalExpressCheckout(
        username="merchant_api1.example.com",
        password="S3CR3T",
        signature="sig-abc",
        testing=True,
        transport=transport,
    )
