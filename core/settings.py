from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file automatically
load_dotenv()


class Settings(BaseSettings):
    """PayPal NVP client settings loaded from environment variables."""

    # Merchant API credentials
    PAYPAL_USERNAME: str
    PAYPAL_PASSWORD: str
    PAYPAL_SIGNATURE: str | None = None

    # Certificate authentication (paths to PEM files)
    PAYPAL_CERT: str | None = None
    PAYPAL_KEY: str | None = None

    # Sandbox endpoints unless explicitly turned off
    PAYPAL_TESTING: bool = True
    PAYPAL_TIMEOUT: float = 10.0

    # App settings
    ENVIRONMENT: Literal["development", "test", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # Observability (Optional)
    OTEL_SERVICE_NAME: str = "paypal-express-checkout"
    METRICS_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )

    @property
    def uses_certificate(self) -> bool:
        return bool(self.PAYPAL_CERT and self.PAYPAL_KEY)
