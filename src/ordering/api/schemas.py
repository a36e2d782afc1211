"""Pydantic request/response schemas for the Ordering API.

These are external contracts, separate from the ORM models and service
commands they map onto.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

_ORM = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class CustomizationSchema(BaseModel):
    type: str
    price: Decimal = Field(ge=0)
    notes: str | None = None


class AddToCartRequest(BaseModel):
    listing_id: str
    quantity: int = Field(default=1, ge=1)
    selected_variant: dict | None = None
    personalization: str | None = None
    customizations: list[CustomizationSchema] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "listing_id": "lst-001",
                    "quantity": 2,
                    "selected_variant": {"size": "M"},
                    "customizations": [{"type": "AUTOGRAPH", "price": "20.00"}],
                }
            ]
        }
    }


class CartCustomizationResponse(BaseModel):
    model_config = _ORM

    id: str
    type: str
    price: Decimal
    notes: str | None


class CartItemResponse(BaseModel):
    model_config = _ORM

    id: str
    listing_id: str
    quantity: int
    selected_variant: dict | None
    personalization: str | None
    customizations: list[CartCustomizationResponse]


class CartResponse(BaseModel):
    model_config = _ORM

    id: str
    customer_id: str
    items: list[CartItemResponse]


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CreateCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    discount_type: str  # percentage, fixed
    discount_value: Decimal = Field(gt=0)
    description: str | None = None
    min_purchase: Decimal | None = Field(default=None, ge=0)
    max_uses: int | None = Field(default=None, ge=1)
    expires_at: datetime | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "code": "WELCOME10",
                    "discount_type": "percentage",
                    "discount_value": "10",
                    "max_uses": 100,
                }
            ]
        }
    }


class ValidateCouponRequest(BaseModel):
    code: str
    subtotal: Decimal = Field(ge=0)
    customer_id: str | None = None


class CouponResponse(BaseModel):
    model_config = _ORM

    id: str
    code: str
    description: str | None
    discount_type: str
    discount_value: Decimal
    min_purchase: Decimal | None
    max_uses: int | None
    used_count: int
    expires_at: datetime | None
    is_active: bool


class CouponQuoteResponse(BaseModel):
    model_config = _ORM

    coupon_id: str
    code: str
    discount_type: str
    discount_value: Decimal
    discount_amount: Decimal


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------
class CreateReferralRequest(BaseModel):
    owner_id: str
    code: str | None = None
    commission_rate: Decimal | None = Field(default=None, gt=0, le=100)


class TrackClickRequest(BaseModel):
    customer_id: str | None = None


class ReferralResponse(BaseModel):
    model_config = _ORM

    id: str
    code: str
    owner_id: str
    commission_rate: Decimal
    total_clicks: int
    total_orders: int


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    customer_id: str
    shipping_name: str
    shipping_address: str
    shipping_city: str
    shipping_state: str | None = None
    shipping_zip: str
    shipping_phone: str
    invoice_type: str = "BOLETA"
    ruc: str | None = None
    coupon_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "shipping_name": "Ana Torres",
                    "shipping_address": "Av. Larco 123",
                    "shipping_city": "Lima",
                    "shipping_zip": "15074",
                    "shipping_phone": "+51 999 888 777",
                    "invoice_type": "BOLETA",
                }
            ]
        }
    }


class SimulatePaymentRequest(BaseModel):
    customer_id: str


class UpdateStatusRequest(BaseModel):
    status: str
    reason: str | None = None


class ShippingInfoRequest(BaseModel):
    carrier: str = Field(min_length=1)
    tracking_number: str = Field(min_length=1)


class NotesRequest(BaseModel):
    notes: str | None = None


class CustomizationStatusRequest(BaseModel):
    status: str


class ScheduleCustomizationRequest(BaseModel):
    scheduled_at: datetime
    duration_minutes: int = Field(gt=0, le=240)


class OrderCustomizationResponse(BaseModel):
    model_config = _ORM

    id: str
    type: str
    price: Decimal
    notes: str | None
    status: str
    scheduled_at: datetime | None
    duration_minutes: int | None


class OrderItemResponse(BaseModel):
    model_config = _ORM

    id: str
    listing_id: str
    artist_id: str
    artist_name: str
    title: str
    unit_price: Decimal
    quantity: int
    total_price: Decimal
    selected_variant: dict | None
    personalization: str | None
    customizations: list[OrderCustomizationResponse]


class OrderResponse(BaseModel):
    model_config = _ORM

    id: str
    order_number: str
    customer_id: str
    status: str
    subtotal: Decimal
    discount: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    coupon_id: str | None
    payment_id: str | None
    payment_method: str | None
    expires_at: datetime | None
    shipping_name: str
    shipping_address: str
    shipping_city: str
    shipping_state: str | None
    shipping_zip: str
    shipping_phone: str
    invoice_type: str
    ruc: str | None
    carrier: str | None
    tracking_number: str | None
    notes: str | None
    created_at: datetime
    items: list[OrderItemResponse]


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    limit: int


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------
class RequestReturnRequest(BaseModel):
    customer_id: str
    reason: str = Field(min_length=1, max_length=255)
    description: str | None = None


class ReviewReturnRequest(BaseModel):
    admin_notes: str | None = None


class ResolveReturnRequest(BaseModel):
    status: str  # APPROVED, REJECTED
    resolved_by: str
    admin_notes: str | None = None
    refund: bool = False


class ReturnResponse(BaseModel):
    model_config = _ORM

    id: str
    order_id: str
    customer_id: str
    reason: str
    description: str | None
    status: str
    admin_notes: str | None
    resolved_by: str | None
    resolved_at: datetime | None
    refunded: bool
