"""Concurrent callers racing for the same order, payment or last unit of stock."""

import pytest

from ordering.order.order import Order, OrderStatus
from payments.webhook.processing import WebhookResult
from shared.exceptions import InsufficientStock, InvalidTransition
from shared.outcome import PaymentOutcome


class TestConcurrentPaymentNotifications:
    def test_simultaneous_deliveries_pay_the_order_once(
        self, services, gateway, channel, make_listing, pending_order, run_concurrently
    ):
        listing = make_listing(stock=10)
        order = pending_order(listing=listing)
        payment = gateway.register_payment(order.id, payment_id="1001")

        results = run_concurrently(
            lambda: services.webhooks.process("payment", payment.id),
            lambda: services.webhooks.process("payment", payment.id),
        )

        assert sorted(results, key=lambda result: result.value) == [WebhookResult.DUPLICATE, WebhookResult.PROCESSED]
        assert services.orders.get_order(order.id).status == OrderStatus.PAID.value
        assert len(services.commissions.list_commissions(order_id=order.id)) == 1
        assert services.listings.get_listing(listing.id).stock == 8
        paid = [m for m in channel.sent_to("cust-001") if m["context"]["type"] == "OrderPaid"]
        assert len(paid) == 1

    def test_approval_racing_rejection_has_one_winner(self, services, make_listing, pending_order, run_concurrently):
        listing = make_listing(stock=10)
        order = pending_order(listing=listing)

        results = run_concurrently(
            lambda: services.order_payments.apply_outcome(order.id, PaymentOutcome.APPROVED, "1001"),
            lambda: services.order_payments.apply_outcome(order.id, PaymentOutcome.REJECTED, "1002"),
        )

        assert sorted(results) == [False, True]
        status = services.orders.get_order(order.id).status
        stock = services.listings.get_listing(listing.id).stock
        if status == OrderStatus.PAID.value:
            assert results == [True, False]
            assert stock == 8
        else:
            assert results == [False, True]
            assert status == OrderStatus.CANCELLED.value
            assert stock == 10


class TestConcurrentCheckout:
    def test_two_checkouts_for_the_last_unit(self, services, make_listing, fill_cart, place_order, run_concurrently):
        listing = make_listing(stock=1)
        fill_cart("cust-001", listing, quantity=1)
        fill_cart("cust-002", listing, quantity=1)

        results = run_concurrently(lambda: place_order("cust-001"), lambda: place_order("cust-002"))

        orders = [result for result in results if isinstance(result, Order)]
        failures = [result for result in results if isinstance(result, InsufficientStock)]
        assert len(orders) == 1
        assert len(failures) == 1
        assert services.listings.get_listing(listing.id).stock == 0


class TestConcurrentAdminCancel:
    def test_double_cancel_restores_stock_once(
        self, services, channel, make_listing, pending_order, run_concurrently
    ):
        listing = make_listing(stock=10)
        order = pending_order(listing=listing)
        services.order_payments.apply_outcome(order.id, PaymentOutcome.APPROVED, "1001")
        assert services.listings.get_listing(listing.id).stock == 8

        results = run_concurrently(
            lambda: services.fulfillment.update_status(order.id, "CANCELLED"),
            lambda: services.fulfillment.update_status(order.id, "CANCELLED"),
        )

        assert len([result for result in results if isinstance(result, Order)]) == 1
        assert len([result for result in results if isinstance(result, InvalidTransition)]) == 1
        assert services.listings.get_listing(listing.id).stock == 10
        statuses = {c.status for c in services.commissions.list_commissions(order_id=order.id)}
        assert statuses == {"CANCELLED"}
        cancelled = [m for m in channel.sent_to("cust-001") if m["context"]["type"] == "OrderCancelled"]
        assert len(cancelled) == 1

    def test_second_cancel_is_rejected(self, services, make_listing, pending_order):
        listing = make_listing(stock=10)
        order = pending_order(listing=listing)
        services.order_payments.apply_outcome(order.id, PaymentOutcome.APPROVED, "1001")
        services.fulfillment.update_status(order.id, "CANCELLED")

        with pytest.raises(InvalidTransition) as exc:
            services.fulfillment.update_status(order.id, "CANCELLED")

        assert exc.value.messages == {"status": ["Cannot transition from CANCELLED to CANCELLED"]}

        assert services.listings.get_listing(listing.id).stock == 10
