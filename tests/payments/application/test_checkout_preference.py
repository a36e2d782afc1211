"""Application tests for hosted-checkout preferences on orders and ticket holds."""

from datetime import timedelta
from decimal import Decimal

import pytest

from shared.clock import utc_now
from shared.exceptions import (
    ExternalServiceError,
    ObjectNotFoundError,
    OrderAlreadyProcessed,
    PermissionDeniedError,
    ValidationError,
)
from shared.outcome import PaymentOutcome


class TestOrderPreference:
    def test_lines_add_up_to_order_total(self, services, gateway, pending_order):
        order = pending_order()

        result = services.checkout.create_for_order(order.id, "cust-001")

        assert result.preference_id.startswith("fake_pref_")
        request = gateway.preferences[-1]
        assert request.external_reference == order.id
        assert request.currency == "PEN"
        assert request.total == order.total == Decimal("253.70")

    def test_shipping_and_tax_lines(self, services, gateway, pending_order):
        order = pending_order()
        services.checkout.create_for_order(order.id, "cust-001")

        lines = {line.id: line for line in gateway.preferences[-1].items}
        assert lines["shipping"].unit_price == Decimal("15.00")
        assert lines["tax"].title == "IGV"
        assert lines["tax"].unit_price == Decimal("38.70")

    def test_product_line_keeps_quantity_without_discount(self, services, gateway, pending_order):
        order = pending_order(quantity=2)
        services.checkout.create_for_order(order.id, "cust-001")

        product = gateway.preferences[-1].items[0]
        assert product.quantity == 2
        assert product.unit_price == Decimal("100.00")

    def test_coupon_discount_is_spread_over_lines(self, services, gateway, make_coupon, pending_order):
        coupon = make_coupon()
        order = pending_order(coupon_id=coupon.id)
        services.checkout.create_for_order(order.id, "cust-001")

        request = gateway.preferences[-1]
        product = request.items[0]
        assert product.quantity == 1
        assert product.unit_price == Decimal("180.00")
        assert request.total == order.total == Decimal("230.10")

    def test_discount_rounding_remainder_lands_on_last_line(
        self, services, gateway, make_listing, make_coupon, fill_cart, place_order
    ):
        for title in ("Poster", "Sticker", "Pin"):
            fill_cart("cust-001", make_listing(sale_price="10.00", manufacturing_cost="4.00", title=title))
        coupon = make_coupon(code="TENOFF", discount_type="fixed", discount_value="10")
        order = place_order("cust-001", coupon_id=coupon.id)

        services.checkout.create_for_order(order.id, "cust-001")

        request = gateway.preferences[-1]
        products = [line for line in request.items if line.id not in ("shipping", "tax")]
        assert sorted(line.unit_price for line in products) == [Decimal("6.66"), Decimal("6.67"), Decimal("6.67")]
        assert request.total == order.total == Decimal("41.30")

    def test_customization_is_a_separate_line(self, services, gateway, make_listing, fill_cart, place_order):
        listing = make_listing()
        fill_cart("cust-001", listing, customizations=[{"type": "AUTOGRAPH", "price": "20.00"}])
        order = place_order("cust-001")

        services.checkout.create_for_order(order.id, "cust-001")

        request = gateway.preferences[-1]
        assert any(line.unit_price == Decimal("20.00") and "Autograph" in line.title for line in request.items)
        assert request.total == order.total

    def test_other_customer_is_denied(self, services, pending_order):
        order = pending_order()
        with pytest.raises(PermissionDeniedError):
            services.checkout.create_for_order(order.id, "cust-999")

    def test_paid_order_is_rejected(self, services, pending_order):
        order = pending_order()
        services.order_payments.apply_outcome(order.id, PaymentOutcome.APPROVED, "pay-001")
        with pytest.raises(OrderAlreadyProcessed):
            services.checkout.create_for_order(order.id, "cust-001")

    def test_expired_payment_window(self, services, pending_order):
        order = pending_order(as_of=utc_now() - timedelta(hours=2))
        with pytest.raises(ValidationError):
            services.checkout.create_for_order(order.id, "cust-001")

    def test_unknown_order(self, services):
        with pytest.raises(ObjectNotFoundError):
            services.checkout.create_for_order("missing", "cust-001")

    def test_gateway_failure_leaves_order_pending(self, services, gateway, pending_order):
        order = pending_order()
        gateway.configure(should_succeed=False)

        with pytest.raises(ExternalServiceError):
            services.checkout.create_for_order(order.id, "cust-001")

        assert services.orders.get_order(order.id).status == "PENDING"

    def test_every_call_creates_a_new_session(self, services, pending_order):
        order = pending_order()
        first = services.checkout.create_for_order(order.id, "cust-001")
        second = services.checkout.create_for_order(order.id, "cust-001")
        assert first.preference_id != second.preference_id

    def test_back_and_notification_urls(self, services, gateway, pending_order):
        order = pending_order()
        services.checkout.create_for_order(order.id, "cust-001")

        request = gateway.preferences[-1]
        assert request.back_urls["success"] == f"http://localhost:3000/orders/{order.id}?status=success"
        assert request.notification_url == "http://localhost:8000/payments/webhook"


class TestTicketPreference:
    def test_single_line_with_ticket_reference(self, services, gateway, make_show):
        show = make_show()
        ticket = services.ticket_sales.purchase("fan-001", show.id)

        services.checkout.create_for_ticket(ticket.id, "fan-001")

        request = gateway.preferences[-1]
        assert request.external_reference == f"ticket:{ticket.id}"
        assert len(request.items) == 1
        assert request.items[0].unit_price == Decimal("50.00")
        assert request.items[0].title == "Ticket - Acoustic Night"

    def test_other_buyer_is_denied(self, services, make_show):
        ticket = services.ticket_sales.purchase("fan-001", make_show().id)
        with pytest.raises(PermissionDeniedError):
            services.checkout.create_for_ticket(ticket.id, "fan-002")

    def test_paid_ticket_is_rejected(self, services, make_show):
        ticket = services.ticket_sales.purchase("fan-001", make_show().id)
        services.ticket_payments.apply_outcome(ticket.id, PaymentOutcome.APPROVED, "pay-001")
        with pytest.raises(OrderAlreadyProcessed):
            services.checkout.create_for_ticket(ticket.id, "fan-001")

    def test_expired_hold(self, services, make_show):
        show = make_show()
        ticket = services.ticket_sales.purchase("fan-001", show.id, as_of=utc_now() - timedelta(hours=1))
        with pytest.raises(ValidationError):
            services.checkout.create_for_ticket(ticket.id, "fan-001")
