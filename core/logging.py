import logging
import os
import sys

import structlog
from opentelemetry.instrumentation.logging import LoggingInstrumentor

# Global variable to store test output
test_output = []

CREDENTIAL_KEYS = ("USER", "PWD", "SIGNATURE")


def get_log_level():
    """Get log level from environment or default to INFO"""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_renderer():
    """Get log renderer based on environment"""
    env = os.getenv("ENVIRONMENT", "development")
    # Use JSON format for tests and production
    if env in ["test", "production"]:
        return structlog.processors.JSONRenderer()
    # Pretty printing for local development
    return structlog.dev.ConsoleRenderer(colors=True, sort_keys=False)


def test_output_processor(logger, method_name, event_dict):
    """Custom processor that stores output for test assertions"""
    if os.getenv("ENVIRONMENT", "development") == "test":
        test_output.append(event_dict.copy())
    return event_dict


def redact_credentials(params: dict) -> dict:
    """Copy of an NVP parameter set with the API credentials masked."""
    return {
        key: "X" * len(str(value)) if key in CREDENTIAL_KEYS and value else value
        for key, value in params.items()
    }


def configure_logging():
    """Set up structlog + OTEL context injection."""
    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.ExceptionPrettyPrinter(),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            test_output_processor,  # Add our custom processor before rendering
            get_log_renderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    env = os.getenv("ENVIRONMENT", "development")
    if env == "test":
        # In test mode, write to stdout for easier capture
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]  # Replace any existing handlers
    root_logger.setLevel(get_log_level())

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    # Initialize OpenTelemetry logging instrumentation AFTER configuring logging
    LoggingInstrumentor().instrument(set_logging_format=False)


# Business Event Log Names
class BusinessEvents:
    """Standard names for business event logs"""

    NVP_REQUEST = "nvp.request"
    NVP_RESPONSE = "nvp.response"
    NVP_TRANSPORT_ERROR = "nvp.transport_error"
    CHECKOUT_INITIATED = "checkout.initiated"
    CHECKOUT_REJECTED = "checkout.rejected"
    CHECKOUT_DETAILS_FETCHED = "checkout.details_fetched"
    PAYMENT_ATTEMPT = "payment.attempt"
    PAYMENT_SUCCESS = "payment.success"
    PAYMENT_FAILURE = "payment.failure"
    PAYMENT_DUPLICATE = "payment.duplicate"


# Configure logging when module is imported
configure_logging()
