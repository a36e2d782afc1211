"""Application settings.

Settings are read from environment variables prefixed with ``MERCHSTREAM_``
(and from a local ``.env`` file when present). ``MERCHSTREAM_ENV`` selects the
runtime environment:

- ``development`` (default): fake gateway unless a MercadoPago token is set,
  unsigned webhooks accepted with a warning, simulated payments enabled
- ``test``: same as development, used by the test-suite
- ``production``: webhook signatures mandatory, simulated payments disabled
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MERCHSTREAM_",
        env_file=".env",
        extra="ignore",
    )

    env: Literal["development", "test", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "sqlite:///./merchstream.db"
    database_echo: bool = False

    # Payment gateway
    mercadopago_access_token: str | None = None
    mercadopago_webhook_secret: str | None = None
    mercadopago_api_url: str = "https://api.mercadopago.com"
    mercadopago_timeout_seconds: float = 10.0
    frontend_url: str = "http://localhost:3000"
    backend_url: str = "http://localhost:8000"

    # Pricing
    currency: str = "PEN"
    shipping_cost: Decimal = Decimal("15.00")
    tax_rate: Decimal = Field(default=Decimal("18"), ge=0, le=100)
    default_platform_fee: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    default_referral_rate: Decimal = Field(default=Decimal("5"), ge=0, le=100)

    # Unpaid holds
    order_hold_minutes: int = Field(default=60, gt=0)
    ticket_hold_minutes: int = Field(default=30, gt=0)
    sweep_interval_seconds: int = Field(default=60, gt=0)
    run_sweeper: bool = False

    # Notifications
    notification_processing: Literal["sync", "async"] = "sync"
    notification_delivery_interval_seconds: int = Field(default=5, gt=0)

    allow_simulated_payments: bool = True

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def simulated_payments_enabled(self) -> bool:
        return self.allow_simulated_payments and not self.is_production


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (read once)."""
    return Settings()
