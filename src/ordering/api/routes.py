"""FastAPI routes for the Ordering domain: carts, coupons, referrals, orders and returns."""

from fastapi import APIRouter, Depends, Query

from ordering.api.schemas import (
    AddToCartRequest,
    CartResponse,
    CouponQuoteResponse,
    CouponResponse,
    CreateCouponRequest,
    CreateOrderRequest,
    CreateReferralRequest,
    CustomizationStatusRequest,
    NotesRequest,
    OrderCustomizationResponse,
    OrderListResponse,
    OrderResponse,
    ReferralResponse,
    RequestReturnRequest,
    ResolveReturnRequest,
    ReturnResponse,
    ReviewReturnRequest,
    ScheduleCustomizationRequest,
    ShippingInfoRequest,
    SimulatePaymentRequest,
    TrackClickRequest,
    UpdateStatusRequest,
    ValidateCouponRequest,
)
from ordering.order.creation import CreateOrder
from shared.api import get_services
from shared.container import Services

# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/{customer_id}", response_model=CartResponse)
def get_cart(customer_id: str, services: Services = Depends(get_services)) -> CartResponse:
    cart = services.carts.get_cart(customer_id)
    return CartResponse.model_validate(cart)


@cart_router.post("/{customer_id}/items", status_code=201, response_model=CartResponse)
def add_cart_item(
    customer_id: str,
    body: AddToCartRequest,
    services: Services = Depends(get_services),
) -> CartResponse:
    cart = services.carts.add_item(
        customer_id=customer_id,
        listing_id=body.listing_id,
        quantity=body.quantity,
        selected_variant=body.selected_variant,
        personalization=body.personalization,
        customizations=[c.model_dump() for c in body.customizations],
    )
    return CartResponse.model_validate(cart)


@cart_router.delete("/{customer_id}/items/{item_id}", response_model=CartResponse)
def remove_cart_item(
    customer_id: str,
    item_id: str,
    services: Services = Depends(get_services),
) -> CartResponse:
    cart = services.carts.remove_item(customer_id, item_id)
    return CartResponse.model_validate(cart)


@cart_router.delete("/{customer_id}", response_model=CartResponse)
def clear_cart(customer_id: str, services: Services = Depends(get_services)) -> CartResponse:
    cart = services.carts.clear(customer_id)
    return CartResponse.model_validate(cart)


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("", status_code=201, response_model=CouponResponse)
def create_coupon(body: CreateCouponRequest, services: Services = Depends(get_services)) -> CouponResponse:
    coupon = services.coupons.create_coupon(
        code=body.code,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        description=body.description,
        min_purchase=body.min_purchase,
        max_uses=body.max_uses,
        expires_at=body.expires_at,
    )
    return CouponResponse.model_validate(coupon)


@coupon_router.get("", response_model=list[CouponResponse])
def list_coupons(services: Services = Depends(get_services)) -> list[CouponResponse]:
    return [CouponResponse.model_validate(c) for c in services.coupons.list_active()]


@coupon_router.post("/validate", response_model=CouponQuoteResponse)
def validate_coupon(
    body: ValidateCouponRequest,
    services: Services = Depends(get_services),
) -> CouponQuoteResponse:
    quote = services.coupons.validate(body.code, body.subtotal, buyer_id=body.customer_id)
    return CouponQuoteResponse.model_validate(quote)


@coupon_router.post("/{coupon_id}/deactivate", response_model=CouponResponse)
def deactivate_coupon(coupon_id: str, services: Services = Depends(get_services)) -> CouponResponse:
    coupon = services.coupons.deactivate(coupon_id)
    return CouponResponse.model_validate(coupon)


# ---------------------------------------------------------------------------
# Referral Router
# ---------------------------------------------------------------------------
referral_router = APIRouter(prefix="/referrals", tags=["referrals"])


@referral_router.post("", status_code=201, response_model=ReferralResponse)
def create_referral(
    body: CreateReferralRequest,
    services: Services = Depends(get_services),
) -> ReferralResponse:
    referral = services.referrals.create_referral(
        owner_id=body.owner_id,
        code=body.code,
        commission_rate=body.commission_rate,
    )
    return ReferralResponse.model_validate(referral)


@referral_router.get("", response_model=list[ReferralResponse])
def list_referrals(owner_id: str, services: Services = Depends(get_services)) -> list[ReferralResponse]:
    return [ReferralResponse.model_validate(r) for r in services.referrals.get_by_owner(owner_id)]


@referral_router.post("/{code}/click", response_model=ReferralResponse)
def track_referral_click(
    code: str,
    body: TrackClickRequest,
    services: Services = Depends(get_services),
) -> ReferralResponse:
    referral = services.referrals.track_click(code, customer_id=body.customer_id)
    return ReferralResponse.model_validate(referral)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
def create_order(body: CreateOrderRequest, services: Services = Depends(get_services)) -> OrderResponse:
    command = CreateOrder(**body.model_dump())
    order = services.order_builder.create_from_cart(command)
    return OrderResponse.model_validate(order)


@order_router.get("", response_model=OrderListResponse)
def list_orders(
    customer_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    services: Services = Depends(get_services),
) -> OrderListResponse:
    orders, total = services.orders.list_orders(customer_id=customer_id, page=page, limit=limit)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    customer_id: str | None = None,
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.orders.get_order(order_id, customer_id=customer_id)
    return OrderResponse.model_validate(order)


@order_router.post("/{order_id}/simulate-payment", response_model=OrderResponse)
def simulate_order_payment(
    order_id: str,
    body: SimulatePaymentRequest,
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.order_payments.simulate_payment(order_id, body.customer_id)
    return OrderResponse.model_validate(order)


@order_router.patch("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: str,
    body: UpdateStatusRequest,
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.fulfillment.update_status(order_id, body.status, reason=body.reason)
    return OrderResponse.model_validate(order)


@order_router.put("/{order_id}/shipping", response_model=OrderResponse)
def record_shipping_info(
    order_id: str,
    body: ShippingInfoRequest,
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.fulfillment.record_shipping_info(order_id, body.carrier, body.tracking_number)
    return OrderResponse.model_validate(order)


@order_router.put("/{order_id}/notes", response_model=OrderResponse)
def update_order_notes(
    order_id: str,
    body: NotesRequest,
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.fulfillment.update_notes(order_id, body.notes)
    return OrderResponse.model_validate(order)


@order_router.post("/{order_id}/returns", status_code=201, response_model=ReturnResponse)
def request_return(
    order_id: str,
    body: RequestReturnRequest,
    services: Services = Depends(get_services),
) -> ReturnResponse:
    request = services.returns.request_return(
        order_id,
        customer_id=body.customer_id,
        reason=body.reason,
        description=body.description,
    )
    return ReturnResponse.model_validate(request)


@order_router.get("/{order_id}/returns", response_model=list[ReturnResponse])
def list_order_returns(order_id: str, services: Services = Depends(get_services)) -> list[ReturnResponse]:
    return [ReturnResponse.model_validate(r) for r in services.returns.list_for_order(order_id)]


@order_router.patch("/customizations/{customization_id}/status", response_model=OrderCustomizationResponse)
def update_customization_status(
    customization_id: str,
    body: CustomizationStatusRequest,
    services: Services = Depends(get_services),
) -> OrderCustomizationResponse:
    customization = services.fulfillment.update_customization_status(customization_id, body.status)
    return OrderCustomizationResponse.model_validate(customization)


@order_router.put("/customizations/{customization_id}/schedule", response_model=OrderCustomizationResponse)
def schedule_customization(
    customization_id: str,
    body: ScheduleCustomizationRequest,
    services: Services = Depends(get_services),
) -> OrderCustomizationResponse:
    customization = services.fulfillment.schedule_customization(
        customization_id,
        scheduled_at=body.scheduled_at,
        duration_minutes=body.duration_minutes,
    )
    return OrderCustomizationResponse.model_validate(customization)


# ---------------------------------------------------------------------------
# Returns Router
# ---------------------------------------------------------------------------
returns_router = APIRouter(prefix="/returns", tags=["returns"])


@returns_router.post("/{return_id}/review", response_model=ReturnResponse)
def start_return_review(
    return_id: str,
    body: ReviewReturnRequest,
    services: Services = Depends(get_services),
) -> ReturnResponse:
    request = services.returns.start_review(return_id, admin_notes=body.admin_notes)
    return ReturnResponse.model_validate(request)


@returns_router.post("/{return_id}/resolve", response_model=ReturnResponse)
def resolve_return(
    return_id: str,
    body: ResolveReturnRequest,
    services: Services = Depends(get_services),
) -> ReturnResponse:
    request = services.returns.resolve_return(
        return_id,
        status=body.status,
        resolved_by=body.resolved_by,
        admin_notes=body.admin_notes,
        refund=body.refund,
    )
    return ReturnResponse.model_validate(request)
