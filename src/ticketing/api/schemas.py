"""Pydantic request/response schemas for the Ticketing API."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

_ORM = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Shows
# ---------------------------------------------------------------------------
class ScheduleShowRequest(BaseModel):
    artist_id: str
    owner_id: str
    name: str = Field(min_length=1, max_length=255)
    starts_at: datetime
    ticket_price: Decimal = Field(ge=0)
    total_capacity: int | None = Field(default=None, ge=1)
    platform_fee: Decimal | None = Field(default=None, ge=0, le=100)
    venue: str | None = None
    description: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "artist_id": "art-001",
                    "owner_id": "usr-101",
                    "name": "Acoustic Night",
                    "starts_at": "2026-12-01T21:00:00Z",
                    "ticket_price": "50.00",
                    "total_capacity": 200,
                    "venue": "Online",
                }
            ]
        }
    }


class TicketSalesRequest(BaseModel):
    enabled: bool


class CancelShowRequest(BaseModel):
    reason: str | None = None


class ShowResponse(BaseModel):
    model_config = _ORM

    id: str
    artist_id: str
    owner_id: str
    name: str
    venue: str | None
    description: str | None
    starts_at: datetime
    ticket_price: Decimal
    platform_fee: Decimal
    total_capacity: int | None
    active_ticket_count: int
    tickets_enabled: bool
    status: str


class ShowCancellationResponse(BaseModel):
    model_config = _ORM

    show_id: str
    cancelled_tickets: int
    paid_tickets_to_refund: list[str]


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------
class PurchaseTicketRequest(BaseModel):
    buyer_id: str


class AdmitTicketRequest(BaseModel):
    qr_code: str
    show_id: str | None = None


class TicketResponse(BaseModel):
    model_config = _ORM

    id: str
    show_id: str
    buyer_id: str
    qr_code: str
    price: Decimal
    status: str
    payment_id: str | None
    expires_at: datetime | None
    paid_at: datetime | None
    used_at: datetime | None
    created_at: datetime
