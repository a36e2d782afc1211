"""Order Builder: turns a customer's cart into a PENDING order.

Everything happens in one unit of work: snapshotting the cart, pricing,
coupon validation, stock reservation, coupon consumption, persisting the
order and clearing the cart. Any failure rolls the whole transaction back, so
a failed checkout never leaves a partial order, reserved stock or a consumed
coupon behind.
"""

from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime

import structlog

from inventory.listing.listing import Listing
from inventory.stock.ledger import StockLedger
from ordering.cart.cart import Cart
from ordering.coupon.coupon import Coupon
from ordering.coupon.validation import CouponValidator
from ordering.order.order import InvoiceType, Order, OrderItem, OrderItemCustomization
from ordering.referral.tracking import unrewarded_referral_id
from shared.clock import as_naive_utc, utc_now
from shared.config import Settings
from shared.exceptions import CouponInvalid, EmptyCart, MissingShippingFields, ValidationError
from shared.money import ZERO, round_money

logger = structlog.get_logger(__name__)

_REQUIRED_SHIPPING_FIELDS = (
    "shipping_name",
    "shipping_address",
    "shipping_city",
    "shipping_zip",
    "shipping_phone",
)


@dataclass
class CreateOrder:
    customer_id: str
    shipping_name: str
    shipping_address: str
    shipping_city: str
    shipping_zip: str
    shipping_phone: str
    shipping_state: str | None = None
    invoice_type: str = InvoiceType.BOLETA.value
    ruc: str | None = None
    coupon_id: str | None = None

    def validate(self) -> None:
        missing = {
            field: ["This field is required"]
            for field in _REQUIRED_SHIPPING_FIELDS
            if not (getattr(self, field) or "").strip()
        }
        if missing:
            raise MissingShippingFields(missing)

        try:
            invoice_type = InvoiceType(self.invoice_type)
        except ValueError:
            raise ValidationError({"invoice_type": [f"Unknown invoice type `{self.invoice_type}`"]}) from None

        if invoice_type == InvoiceType.FACTURA and not (self.ruc and self.ruc.isdigit() and len(self.ruc) == 11):
            raise ValidationError({"ruc": ["An 11-digit RUC is required for FACTURA invoices"]})

    def shipping_snapshot(self) -> dict:
        data = asdict(self)
        data.pop("customer_id")
        data.pop("coupon_id")
        return data


class OrderBuilder:
    def __init__(
        self,
        uow_factory,
        stock_ledger: StockLedger,
        coupon_validator: CouponValidator,
        settings: Settings,
    ) -> None:
        self._uow_factory = uow_factory
        self._stock_ledger = stock_ledger
        self._coupon_validator = coupon_validator
        self._settings = settings

    def create_from_cart(self, command: CreateOrder, as_of: datetime | None = None) -> Order:
        command.validate()
        now = as_naive_utc(as_of) if as_of else utc_now()

        with self._uow_factory() as uow:
            cart = uow.repository_for(Cart).find_by(customer_id=command.customer_id)
            if cart is None or cart.is_empty:
                raise EmptyCart({"cart": ["Your cart is empty"]})

            items = [self._snapshot(uow, cart_item) for cart_item in cart.items]
            subtotal = round_money(sum(item.line_total for item in items))

            discount = ZERO
            if command.coupon_id:
                coupon = uow.repository_for(Coupon).find(command.coupon_id)
                if coupon is None or not coupon.is_active:
                    raise CouponInvalid({"coupon": ["Invalid coupon code"]})
                quote = self._coupon_validator.validate(
                    uow, coupon.code, subtotal, buyer_id=command.customer_id, as_of=now
                )
                discount = quote.discount_amount

            order = Order.create(
                customer_id=command.customer_id,
                items=items,
                discount=discount,
                shipping_cost=self._settings.shipping_cost,
                tax_rate=self._settings.tax_rate,
                hold_minutes=self._settings.order_hold_minutes,
                shipping=command.shipping_snapshot(),
                currency=self._settings.currency,
                coupon_id=command.coupon_id,
                referral_id=unrewarded_referral_id(uow, command.customer_id),
                as_of=now,
            )

            # Stable lock order across concurrent checkouts
            quantities = defaultdict(int)
            for item in items:
                quantities[item.listing_id] += item.quantity
            for listing_id in sorted(quantities):
                self._stock_ledger.reserve(uow, listing_id, quantities[listing_id])

            if command.coupon_id:
                self._coupon_validator.consume(uow, command.coupon_id)

            uow.repository_for(Order).add(order)
            cart.clear()

        logger.info(
            "Order created",
            order_id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            total=str(order.total),
        )
        return order

    @staticmethod
    def _snapshot(uow, cart_item) -> OrderItem:
        listing = uow.repository_for(Listing).get(cart_item.listing_id)
        if not listing.is_active:
            raise ValidationError({"listing_id": [f"{listing.title} is no longer available"]})

        customizations = [
            OrderItemCustomization.create(type=c.type, price=c.price, notes=c.notes) for c in cart_item.customizations
        ]
        return OrderItem.from_listing(
            listing,
            quantity=cart_item.quantity,
            selected_variant=cart_item.selected_variant,
            personalization=cart_item.personalization,
            customizations=customizations,
        )
