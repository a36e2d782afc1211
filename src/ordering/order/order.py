"""Order aggregate: the core of the ordering context.

An Order is created PENDING with a hard payment deadline (``expires_at``) and
a frozen snapshot of everything that was bought: listing prices, costs and
commission rates are copied onto each OrderItem so later catalogue changes
never alter a placed order.

State Machine:
    PENDING → PAID → PROCESSING → SHIPPED → DELIVERED → REFUNDED
    PENDING → CANCELLED            (payment rejected or hold expired)
    PAID / PROCESSING → CANCELLED  (admin cancellation)

The PENDING exits are driven by the payment gateway and the expiry sweep and
are applied with conditional UPDATEs (see ``ordering.order.payment`` and
``ordering.order.expiry``). Everything after PAID is admin-driven and goes
through ``_FULFILLMENT_TRANSITIONS``; unlisted pairs are rejected.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.clock import utc_now
from shared.database import Base
from shared.exceptions import InvalidTransition, MissingShippingInfo, ValidationError
from shared.money import percentage_of, round_money


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class InvoiceType(Enum):
    BOLETA = "BOLETA"
    FACTURA = "FACTURA"


class CustomizationType(Enum):
    AUTOGRAPH = "AUTOGRAPH"
    HANDWRITTEN_LETTER = "HANDWRITTEN_LETTER"
    VIDEO_GREETING = "VIDEO_GREETING"
    VIDEO_CALL = "VIDEO_CALL"
    PRODUCT_PERSONALIZATION = "PRODUCT_PERSONALIZATION"


class CustomizationStatus(Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Admin-driven transitions; PENDING exits are payment-driven
_FULFILLMENT_TRANSITIONS = {
    OrderStatus.PENDING: set(),
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

CANCELLABLE_STATUSES = tuple(
    status.value for status, targets in _FULFILLMENT_TRANSITIONS.items() if OrderStatus.CANCELLED in targets
)

_CUSTOMIZATION_TRANSITIONS = {
    CustomizationStatus.PENDING: {CustomizationStatus.IN_PROGRESS, CustomizationStatus.CANCELLED},
    CustomizationStatus.IN_PROGRESS: {CustomizationStatus.COMPLETED, CustomizationStatus.CANCELLED},
    CustomizationStatus.COMPLETED: set(),
    CustomizationStatus.CANCELLED: set(),
}

# Statuses in which customization work may progress
_CUSTOMIZABLE_ORDER_STATES = {OrderStatus.PAID, OrderStatus.PROCESSING}

# Orders that count as "real" purchases (first-order referral eligibility)
QUALIFYING_STATES = {
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
}


def assert_can_transition(table: dict, current: Enum, target: Enum) -> None:
    if target not in table.get(current, set()):
        raise InvalidTransition({"status": [f"Cannot transition from {current.value} to {target.value}"]})


def generate_order_number(as_of: datetime | None = None) -> str:
    as_of = as_of or utc_now()
    return f"ORD-{as_of:%Y%m%d}-{uuid4().hex[:6].upper()}"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
class OrderItemCustomization(Base):
    """A paid add-on service attached to one order item (autograph, video call, ...)."""

    __tablename__ = "order_item_customizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_item_id: Mapped[str] = mapped_column(ForeignKey("order_items.id"), index=True)
    type: Mapped[str] = mapped_column(String(40))
    price: Mapped[Decimal]
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20))
    scheduled_at: Mapped[datetime | None]
    duration_minutes: Mapped[int | None]
    completed_at: Mapped[datetime | None]

    item: Mapped["OrderItem"] = relationship(back_populates="customizations")

    @classmethod
    def create(cls, type: str, price, notes: str | None = None) -> "OrderItemCustomization":
        CustomizationType(type)
        return cls(
            id=str(uuid4()),
            type=type,
            price=round_money(price),
            notes=notes,
            status=CustomizationStatus.PENDING.value,
        )

    @property
    def is_open(self) -> bool:
        return self.status in (CustomizationStatus.PENDING.value, CustomizationStatus.IN_PROGRESS.value)

    def transition_to(self, target: CustomizationStatus, as_of: datetime | None = None) -> None:
        assert_can_transition(_CUSTOMIZATION_TRANSITIONS, CustomizationStatus(self.status), target)
        self.status = target.value
        if target == CustomizationStatus.COMPLETED:
            self.completed_at = as_of or utc_now()

    def cancel(self) -> None:
        """Cancel if still open; completed work is left alone."""
        if self.is_open:
            self.status = CustomizationStatus.CANCELLED.value

    def ends_at(self) -> datetime | None:
        if self.scheduled_at is None:
            return None
        return self.scheduled_at + timedelta(minutes=self.duration_minutes or 0)


class OrderItem(Base):
    """A purchased line: quantity plus a snapshot of the listing at purchase time."""

    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), index=True)
    listing_id: Mapped[str] = mapped_column(ForeignKey("listings.id"))
    artist_id: Mapped[str] = mapped_column(String(36), index=True)
    artist_user_id: Mapped[str] = mapped_column(String(36))
    artist_name: Mapped[str] = mapped_column(String(255))
    title: Mapped[str] = mapped_column(String(255))
    unit_price: Mapped[Decimal]
    manufacturing_cost: Mapped[Decimal]
    artist_commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    quantity: Mapped[int] = mapped_column(Integer)
    total_price: Mapped[Decimal]
    selected_variant: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    personalization: Mapped[str | None] = mapped_column(Text)

    order: Mapped["Order"] = relationship(back_populates="items")
    customizations: Mapped[list[OrderItemCustomization]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @classmethod
    def from_listing(
        cls,
        listing,
        quantity: int,
        selected_variant: dict | None = None,
        personalization: str | None = None,
        customizations: list[OrderItemCustomization] | None = None,
    ) -> "OrderItem":
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        return cls(
            id=str(uuid4()),
            listing_id=listing.id,
            artist_id=listing.artist_id,
            artist_user_id=listing.artist_user_id,
            artist_name=listing.artist_name,
            title=listing.title,
            unit_price=round_money(listing.sale_price),
            manufacturing_cost=round_money(listing.manufacturing_cost),
            artist_commission_rate=listing.artist_commission_rate,
            quantity=quantity,
            total_price=round_money(listing.sale_price * quantity),
            selected_variant=selected_variant,
            personalization=personalization,
            customizations=list(customizations or []),
        )

    @property
    def customizations_total(self) -> Decimal:
        return round_money(sum((c.price for c in self.customizations), Decimal(0)))

    @property
    def line_total(self) -> Decimal:
        """Item price plus its customizations."""
        return self.total_price + self.customizations_total


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(32), unique=True)
    customer_id: Mapped[str] = mapped_column(String(36), index=True)
    status: Mapped[str] = mapped_column(String(20), index=True)

    # Pricing, locked at creation
    subtotal: Mapped[Decimal]
    discount: Mapped[Decimal]
    shipping_cost: Mapped[Decimal]
    tax: Mapped[Decimal]
    total: Mapped[Decimal]
    currency: Mapped[str] = mapped_column(String(3))

    coupon_id: Mapped[str | None] = mapped_column(ForeignKey("coupons.id"), index=True)
    referral_id: Mapped[str | None] = mapped_column(ForeignKey("referrals.id"))

    # Payment
    payment_id: Mapped[str | None] = mapped_column(String(64))
    payment_method: Mapped[str | None] = mapped_column(String(40))
    expires_at: Mapped[datetime | None] = mapped_column(index=True)
    paid_at: Mapped[datetime | None]

    # Shipping snapshot
    shipping_name: Mapped[str] = mapped_column(String(255))
    shipping_address: Mapped[str] = mapped_column(String(500))
    shipping_city: Mapped[str] = mapped_column(String(100))
    shipping_state: Mapped[str | None] = mapped_column(String(100))
    shipping_zip: Mapped[str] = mapped_column(String(20))
    shipping_phone: Mapped[str] = mapped_column(String(40))
    invoice_type: Mapped[str] = mapped_column(String(10))
    ruc: Mapped[str | None] = mapped_column(String(11))

    # Fulfillment
    carrier: Mapped[str | None] = mapped_column(String(100))
    tracking_number: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)
    shipped_at: Mapped[datetime | None]
    delivered_at: Mapped[datetime | None]
    cancelled_at: Mapped[datetime | None]
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))
    refunded_at: Mapped[datetime | None]

    created_at: Mapped[datetime]
    updated_at: Mapped[datetime]

    items: Mapped[list[OrderItem]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @classmethod
    def create(
        cls,
        customer_id: str,
        items: list[OrderItem],
        discount,
        shipping_cost,
        tax_rate,
        hold_minutes: int,
        shipping: dict,
        currency: str = "PEN",
        coupon_id: str | None = None,
        referral_id: str | None = None,
        as_of: datetime | None = None,
    ) -> "Order":
        """Price and build a PENDING order.

        ``tax`` is charged on ``subtotal - discount + shipping``; ``total`` is
        the sum of the four components and is never recomputed afterwards.
        """
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = as_of or utc_now()
        subtotal = round_money(sum((item.line_total for item in items), Decimal(0)))
        discount = round_money(discount)
        shipping_cost = round_money(shipping_cost)
        if discount > subtotal:
            raise ValidationError({"discount": ["Discount cannot exceed the subtotal"]})

        taxable = subtotal - discount + shipping_cost
        tax = percentage_of(taxable, tax_rate)

        return cls(
            id=str(uuid4()),
            order_number=generate_order_number(now),
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            subtotal=subtotal,
            discount=discount,
            shipping_cost=shipping_cost,
            tax=tax,
            total=taxable + tax,
            currency=currency,
            coupon_id=coupon_id,
            referral_id=referral_id,
            expires_at=now + timedelta(minutes=hold_minutes),
            shipping_name=shipping["shipping_name"],
            shipping_address=shipping["shipping_address"],
            shipping_city=shipping["shipping_city"],
            shipping_state=shipping.get("shipping_state"),
            shipping_zip=shipping["shipping_zip"],
            shipping_phone=shipping["shipping_phone"],
            invoice_type=shipping.get("invoice_type") or InvoiceType.BOLETA.value,
            ruc=shipping.get("ruc"),
            created_at=now,
            updated_at=now,
            items=items,
        )

    @property
    def totals_reconcile(self) -> bool:
        return self.total == self.subtotal - self.discount + self.shipping_cost + self.tax

    def is_owned_by(self, customer_id: str) -> bool:
        return self.customer_id == customer_id

    def all_customizations(self) -> list[OrderItemCustomization]:
        return [customization for item in self.items for customization in item.customizations]

    # -------------------------------------------------------------------
    # Admin-driven transitions
    # -------------------------------------------------------------------
    def record_shipping_info(self, carrier: str, tracking_number: str) -> None:
        if OrderStatus(self.status) != OrderStatus.PROCESSING:
            raise InvalidTransition({"status": ["Shipping information can only be set while the order is PROCESSING"]})
        if not carrier or not tracking_number:
            raise ValidationError({"shipping": ["Carrier and tracking number are required"]})
        self.carrier = carrier
        self.tracking_number = tracking_number
        self.updated_at = utc_now()

    def advance_to(self, target: OrderStatus, reason: str | None = None, as_of: datetime | None = None) -> None:
        """Apply an admin transition from the fulfillment table."""
        assert_can_transition(_FULFILLMENT_TRANSITIONS, OrderStatus(self.status), target)

        if target == OrderStatus.SHIPPED and not (self.carrier and self.tracking_number):
            raise MissingShippingInfo({"shipping": ["Carrier and tracking number must be recorded before shipping"]})

        now = as_of or utc_now()
        self.status = target.value
        self.updated_at = now

        if target == OrderStatus.SHIPPED:
            self.shipped_at = now
        elif target == OrderStatus.DELIVERED:
            self.delivered_at = now
        elif target == OrderStatus.CANCELLED:
            self.cancelled_at = now
            self.cancellation_reason = reason or "cancelled_by_admin"
            for customization in self.all_customizations():
                customization.cancel()

    def mark_refunded(self, as_of: datetime | None = None) -> None:
        """Terminal transition taken when an approved return is refunded."""
        if OrderStatus(self.status) != OrderStatus.DELIVERED:
            raise InvalidTransition({"status": [f"Cannot transition from {self.status} to REFUNDED"]})
        now = as_of or utc_now()
        self.status = OrderStatus.REFUNDED.value
        self.refunded_at = now
        self.updated_at = now

    def assert_customizable(self) -> None:
        if OrderStatus(self.status) not in _CUSTOMIZABLE_ORDER_STATES:
            raise InvalidTransition({"status": [f"Customizations cannot be updated while the order is {self.status}"]})
