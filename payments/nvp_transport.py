"""
HTTP transport for the PayPal NVP API.

Sends one form-encoded request and parses the NVP response body into a flat
dict. Nothing here is retried.
"""

from urllib.parse import parse_qsl

import requests
import structlog

from core.logging import BusinessEvents, redact_credentials
from payments.errors import (
    TransportConnectionError,
    TransportStatusError,
    TransportTimeoutError,
)

log = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


def parse_nvp(body: str) -> dict[str, str]:
    """Parse an NVP response body, keeping blank values."""
    return dict(parse_qsl(body, keep_blank_values=True))


class NVPTransport:
    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        cert: str | None = None,
        key: str | None = None,
    ):
        self.timeout = timeout
        # requests expects a (cert, key) pair for client certificates
        self.cert = (cert, key) if cert and key else None

    def send(
        self, endpoint: str, method: str, params: dict[str, str]
    ) -> dict[str, str]:
        """
        Send ``params`` to ``endpoint`` and return the parsed response.

        Raises TransportTimeoutError, TransportConnectionError or
        TransportStatusError (non-2xx, raw body attached).
        """
        log.debug(
            BusinessEvents.NVP_REQUEST,
            endpoint=endpoint,
            http_method=method,
            params=redact_credentials(params),
        )

        try:
            if method.upper() == "GET":
                response = requests.get(
                    endpoint, params=params, timeout=self.timeout, cert=self.cert
                )
            else:
                response = requests.post(
                    endpoint,
                    data=params,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    timeout=self.timeout,
                    cert=self.cert,
                )
        except requests.Timeout as e:
            log.error(
                BusinessEvents.NVP_TRANSPORT_ERROR, endpoint=endpoint, error=str(e)
            )
            raise TransportTimeoutError(
                f"PayPal NVP request timed out after {self.timeout}s"
            ) from e
        except requests.ConnectionError as e:
            log.error(
                BusinessEvents.NVP_TRANSPORT_ERROR, endpoint=endpoint, error=str(e)
            )
            raise TransportConnectionError(
                f"Could not reach PayPal NVP endpoint: {e}"
            ) from e
        except requests.RequestException as e:
            # broken chunked bodies, decoding failures, redirect loops
            log.error(
                BusinessEvents.NVP_TRANSPORT_ERROR, endpoint=endpoint, error=str(e)
            )
            raise TransportConnectionError(
                f"PayPal NVP request failed: {e}"
            ) from e

        if not 200 <= response.status_code < 300:
            log.error(
                BusinessEvents.NVP_TRANSPORT_ERROR,
                endpoint=endpoint,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise TransportStatusError(response.status_code, response.text)

        return parse_nvp(response.text)
