"""Payment gateway factory.

Selects the adapter from settings:
- MercadoPagoGateway when an access token is configured
- FakeGateway otherwise (development and testing)
"""

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.mercadopago_adapter import MercadoPagoGateway
from payments.gateway.port import PaymentGateway
from shared.config import Settings


def build_gateway(settings: Settings) -> PaymentGateway:
    if settings.mercadopago_access_token:
        return MercadoPagoGateway(
            access_token=settings.mercadopago_access_token,
            base_url=settings.mercadopago_api_url,
            timeout=settings.mercadopago_timeout_seconds,
        )
    if settings.is_production:
        raise RuntimeError("MERCHSTREAM_MERCADOPAGO_ACCESS_TOKEN is required in production")
    return FakeGateway()
