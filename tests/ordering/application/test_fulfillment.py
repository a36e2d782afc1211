"""Application tests for admin fulfillment: status changes, shipping and customizations."""

from datetime import datetime

import pytest

from ordering.order.order import OrderStatus
from shared.exceptions import InvalidTransition, MissingShippingInfo, SlotAlreadyBooked, ValidationError
from shared.outcome import PaymentOutcome


@pytest.fixture()
def paid_order(services, pending_order):
    def _paid(**kwargs):
        order = pending_order(**kwargs)
        services.order_payments.apply_outcome(order.id, PaymentOutcome.APPROVED, f"pay-{order.id[:8]}")
        return services.orders.get_order(order.id)

    return _paid


@pytest.fixture()
def paid_customized_order(services, make_listing, fill_cart, place_order):
    def _paid(customer_id="cust-001", customization_type="VIDEO_CALL", listing=None):
        fill_cart(
            customer_id,
            listing or make_listing(),
            customizations=[{"type": customization_type, "price": "50.00"}],
        )
        order = place_order(customer_id)
        services.order_payments.apply_outcome(order.id, PaymentOutcome.APPROVED, f"pay-{order.id[:8]}")
        return services.orders.get_order(order.id)

    return _paid


class TestStatusUpdates:
    def test_full_fulfillment_path(self, services, channel, paid_order):
        order = paid_order()
        services.fulfillment.update_status(order.id, "PROCESSING")
        services.fulfillment.record_shipping_info(order.id, "Olva Courier", "OLV-123")
        shipped = services.fulfillment.update_status(order.id, "SHIPPED")
        assert shipped.shipped_at is not None

        delivered = services.fulfillment.update_status(order.id, "DELIVERED")

        assert delivered.status == OrderStatus.DELIVERED.value
        types = [m["context"]["type"] for m in channel.sent_to("cust-001")]
        assert types == ["OrderPaid", "OrderShipped", "OrderDelivered"]

    def test_ship_without_tracking(self, services, paid_order):
        order = paid_order()
        services.fulfillment.update_status(order.id, "PROCESSING")
        with pytest.raises(MissingShippingInfo):
            services.fulfillment.update_status(order.id, "SHIPPED")

    def test_unknown_status(self, services, paid_order):
        with pytest.raises(ValidationError):
            services.fulfillment.update_status(paid_order().id, "LOST")

    def test_pending_order_cannot_be_processed(self, services, pending_order):
        with pytest.raises(InvalidTransition):
            services.fulfillment.update_status(pending_order().id, "PROCESSING")

    def test_cancel_paid_order_restores_stock_and_commissions(self, services, make_listing, paid_order):
        listing = make_listing(stock=5)
        order = paid_order(listing=listing)

        cancelled = services.fulfillment.update_status(order.id, "CANCELLED", reason="artist unavailable")

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "artist unavailable"
        assert services.listings.get_listing(listing.id).stock == 5
        statuses = {c.status for c in services.commissions.list_commissions(order_id=order.id)}
        assert statuses == {"CANCELLED"}

    def test_notes(self, services, paid_order):
        order = services.fulfillment.update_notes(paid_order().id, "Gift wrap")
        assert order.notes == "Gift wrap"


class TestCustomizations:
    def test_progress_customization(self, services, paid_customized_order):
        customization = paid_customized_order(customization_type="AUTOGRAPH").items[0].customizations[0]

        services.fulfillment.update_customization_status(customization.id, "IN_PROGRESS")
        done = services.fulfillment.update_customization_status(customization.id, "COMPLETED")

        assert done.status == "COMPLETED"
        assert done.completed_at is not None

    def test_customization_of_pending_order_is_locked(self, services, make_listing, fill_cart, place_order):
        fill_cart("cust-001", make_listing(), customizations=[{"type": "AUTOGRAPH", "price": "20.00"}])
        order = place_order("cust-001")
        with pytest.raises(InvalidTransition):
            services.fulfillment.update_customization_status(order.items[0].customizations[0].id, "IN_PROGRESS")

    def test_schedule_video_call(self, services, paid_customized_order):
        call = paid_customized_order().items[0].customizations[0]
        scheduled = services.fulfillment.schedule_customization(call.id, datetime(2026, 12, 1, 15, 0), 30)
        assert scheduled.scheduled_at == datetime(2026, 12, 1, 15, 0)
        assert scheduled.duration_minutes == 30

    def test_overlapping_slots_for_same_artist(self, services, make_listing, paid_customized_order):
        listing = make_listing()
        first = paid_customized_order("cust-001", listing=listing).items[0].customizations[0]
        second = paid_customized_order("cust-002", listing=listing).items[0].customizations[0]
        services.fulfillment.schedule_customization(first.id, datetime(2026, 12, 1, 15, 0), 30)

        with pytest.raises(SlotAlreadyBooked):
            services.fulfillment.schedule_customization(second.id, datetime(2026, 12, 1, 15, 15), 30)

        # Back-to-back is fine
        services.fulfillment.schedule_customization(second.id, datetime(2026, 12, 1, 15, 30), 30)

    def test_only_video_calls_are_scheduled(self, services, paid_customized_order):
        autograph = paid_customized_order(customization_type="AUTOGRAPH").items[0].customizations[0]
        with pytest.raises(ValidationError):
            services.fulfillment.schedule_customization(autograph.id, datetime(2026, 12, 1, 15, 0), 30)
