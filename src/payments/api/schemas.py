"""Pydantic request/response schemas for the Payments API."""

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------
class WebhookData(BaseModel):
    model_config = {"coerce_numbers_to_str": True}

    id: str | None = None


class WebhookNotification(BaseModel):
    type: str | None = None
    action: str | None = None
    data: WebhookData | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "type": "payment",
                    "action": "payment.updated",
                    "data": {"id": "1234567890"},
                }
            ]
        }
    }


class WebhookResponse(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Checkout preferences
# ---------------------------------------------------------------------------
class OrderPreferenceRequest(BaseModel):
    customer_id: str


class TicketPreferenceRequest(BaseModel):
    buyer_id: str


class PreferenceResponse(BaseModel):
    model_config = {"from_attributes": True}

    preference_id: str
    init_point: str
    sandbox_init_point: str


# ---------------------------------------------------------------------------
# Gateway (development only)
# ---------------------------------------------------------------------------
class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool
    failure_reason: str = "Gateway unavailable"


class StatusResponse(BaseModel):
    status: str = "ok"
