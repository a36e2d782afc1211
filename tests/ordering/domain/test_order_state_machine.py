"""Domain tests for order pricing and the admin-driven order state machine."""

import re
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from ordering.order.order import (
    CustomizationStatus,
    Order,
    OrderItem,
    OrderItemCustomization,
    OrderStatus,
    generate_order_number,
)
from shared.exceptions import InvalidTransition, MissingShippingInfo, ValidationError

SHIPPING = {
    "shipping_name": "Ana Torres",
    "shipping_address": "Av. Larco 123",
    "shipping_city": "Lima",
    "shipping_zip": "15074",
    "shipping_phone": "+51 999 888 777",
}


def _listing(sale_price="100.00"):
    return SimpleNamespace(
        id="lst-001",
        artist_id="art-001",
        artist_user_id="usr-artist-001",
        artist_name="Los Ecos",
        title="Tour T-Shirt",
        sale_price=Decimal(sale_price),
        manufacturing_cost=Decimal("40.00"),
        artist_commission_rate=Decimal("50"),
    )


def _order(quantity=2, discount="0", customizations=None, status=None):
    item = OrderItem.from_listing(_listing(), quantity=quantity, customizations=customizations)
    order = Order.create(
        customer_id="cust-001",
        items=[item],
        discount=discount,
        shipping_cost="15.00",
        tax_rate="18",
        hold_minutes=60,
        shipping=SHIPPING,
        as_of=datetime(2026, 3, 14, 12, 0),
    )
    if status is not None:
        order.status = status.value
    return order


class TestOrderPricing:
    def test_totals(self):
        order = _order()
        assert order.subtotal == Decimal("200.00")
        assert order.shipping_cost == Decimal("15.00")
        assert order.tax == Decimal("38.70")
        assert order.total == Decimal("253.70")
        assert order.totals_reconcile

    def test_tax_is_charged_after_discount(self):
        order = _order(discount="20.00")
        assert order.tax == Decimal("35.10")
        assert order.total == Decimal("230.10")
        assert order.totals_reconcile

    def test_customizations_are_part_of_subtotal(self):
        autograph = OrderItemCustomization.create(type="AUTOGRAPH", price="20.00")
        order = _order(quantity=1, customizations=[autograph])
        assert order.subtotal == Decimal("120.00")

    def test_discount_cannot_exceed_subtotal(self):
        with pytest.raises(ValidationError):
            _order(discount="500")

    def test_new_order_is_pending_with_hold(self):
        order = _order()
        assert order.status == OrderStatus.PENDING.value
        assert order.expires_at == datetime(2026, 3, 14, 13, 0)
        assert order.payment_id is None

    def test_order_number_format(self):
        number = generate_order_number(datetime(2026, 3, 14))
        assert re.fullmatch(r"ORD-20260314-[0-9A-F]{6}", number)


class TestFulfillmentTransitions:
    def test_paid_to_processing(self):
        order = _order(status=OrderStatus.PAID)
        order.advance_to(OrderStatus.PROCESSING)
        assert order.status == OrderStatus.PROCESSING.value

    def test_shipping_requires_carrier_and_tracking(self):
        order = _order(status=OrderStatus.PROCESSING)
        with pytest.raises(MissingShippingInfo):
            order.advance_to(OrderStatus.SHIPPED)

    def test_full_happy_path(self):
        order = _order(status=OrderStatus.PROCESSING)
        order.record_shipping_info("Olva", "TRK-1")
        order.advance_to(OrderStatus.SHIPPED)
        assert order.shipped_at is not None
        order.advance_to(OrderStatus.DELIVERED)
        assert order.delivered_at is not None

    def test_pending_cannot_be_advanced_by_admin(self):
        with pytest.raises(InvalidTransition):
            _order().advance_to(OrderStatus.PROCESSING)

    def test_skipping_states_is_rejected(self):
        with pytest.raises(InvalidTransition):
            _order(status=OrderStatus.PAID).advance_to(OrderStatus.SHIPPED)

    def test_shipped_cannot_be_cancelled(self):
        with pytest.raises(InvalidTransition):
            _order(status=OrderStatus.SHIPPED).advance_to(OrderStatus.CANCELLED)

    @pytest.mark.parametrize("terminal", [OrderStatus.CANCELLED, OrderStatus.REFUNDED])
    def test_terminal_states_have_no_exits(self, terminal):
        order = _order(status=terminal)
        for target in OrderStatus:
            with pytest.raises(InvalidTransition):
                order.advance_to(target)

    def test_shipping_info_only_while_processing(self):
        with pytest.raises(InvalidTransition):
            _order(status=OrderStatus.PAID).record_shipping_info("Olva", "TRK-1")

    def test_cancel_cancels_open_customizations(self):
        autograph = OrderItemCustomization.create(type="AUTOGRAPH", price="20.00")
        letter = OrderItemCustomization.create(type="HANDWRITTEN_LETTER", price="10.00")
        letter.status = CustomizationStatus.COMPLETED.value
        order = _order(quantity=1, customizations=[autograph, letter], status=OrderStatus.PAID)

        order.advance_to(OrderStatus.CANCELLED, reason="out_of_stock")

        assert order.cancellation_reason == "out_of_stock"
        assert autograph.status == CustomizationStatus.CANCELLED.value
        assert letter.status == CustomizationStatus.COMPLETED.value

    def test_refund_only_from_delivered(self):
        with pytest.raises(InvalidTransition):
            _order(status=OrderStatus.SHIPPED).mark_refunded()

        order = _order(status=OrderStatus.DELIVERED)
        order.mark_refunded()
        assert order.status == OrderStatus.REFUNDED.value
        assert order.refunded_at is not None


class TestCustomizationTransitions:
    def test_progress_to_completed(self):
        customization = OrderItemCustomization.create(type="VIDEO_GREETING", price="30.00")
        customization.transition_to(CustomizationStatus.IN_PROGRESS)
        customization.transition_to(CustomizationStatus.COMPLETED)
        assert customization.completed_at is not None

    def test_completed_is_terminal(self):
        customization = OrderItemCustomization.create(type="VIDEO_GREETING", price="30.00")
        customization.status = CustomizationStatus.COMPLETED.value
        with pytest.raises(InvalidTransition):
            customization.transition_to(CustomizationStatus.CANCELLED)

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValueError):
            OrderItemCustomization.create(type="TATTOO", price="10.00")
