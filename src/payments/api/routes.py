"""FastAPI routes for the Payments domain: checkout preferences and gateway webhooks."""

import structlog
from fastapi import APIRouter, Depends, Header, Query

from payments.api.schemas import (
    ConfigureGatewayRequest,
    OrderPreferenceRequest,
    PreferenceResponse,
    StatusResponse,
    TicketPreferenceRequest,
    WebhookNotification,
    WebhookResponse,
)
from payments.gateway.fake_adapter import FakeGateway
from shared.api import get_services
from shared.container import Services
from shared.exceptions import PermissionDeniedError

logger = structlog.get_logger(__name__)

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=WebhookResponse)
def process_webhook(
    body: WebhookNotification | None = None,
    data_id: str | None = Query(default=None, alias="data.id"),
    notification_type: str | None = Query(default=None, alias="type"),
    x_signature: str | None = Header(default=None),
    x_request_id: str | None = Header(default=None),
    services: Services = Depends(get_services),
) -> WebhookResponse:
    """Process a payment notification from the gateway.

    The signed payment id is the ``data.id`` query parameter; the JSON body
    is used when the query string does not carry it.
    """
    if data_id is None and body is not None and body.data is not None:
        data_id = body.data.id
    if notification_type is None and body is not None:
        notification_type = body.type

    services.signature_verifier.verify(x_signature, x_request_id, data_id)
    result = services.webhooks.process(notification_type, data_id)
    return WebhookResponse(status=result.value)


@payment_router.post("/order/{order_id}/preference", status_code=201, response_model=PreferenceResponse)
def create_order_preference(
    order_id: str,
    body: OrderPreferenceRequest,
    services: Services = Depends(get_services),
) -> PreferenceResponse:
    result = services.checkout.create_for_order(order_id, body.customer_id)
    return PreferenceResponse.model_validate(result)


@payment_router.post("/ticket/{ticket_id}/preference", status_code=201, response_model=PreferenceResponse)
def create_ticket_preference(
    ticket_id: str,
    body: TicketPreferenceRequest,
    services: Services = Depends(get_services),
) -> PreferenceResponse:
    result = services.checkout.create_for_ticket(ticket_id, body.buyer_id)
    return PreferenceResponse.model_validate(result)


@payment_router.post("/gateway/configure", response_model=StatusResponse)
def configure_gateway(
    body: ConfigureGatewayRequest,
    services: Services = Depends(get_services),
) -> StatusResponse:
    """Configure the fake payment gateway (non-production only)."""
    if services.settings.is_production or not isinstance(services.gateway, FakeGateway):
        raise PermissionDeniedError({"gateway": ["Gateway configuration is only available in development"]})

    services.gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    logger.info("Fake gateway configured", should_succeed=body.should_succeed)
    return StatusResponse(status="configured")
