"""Admin-driven fulfillment: status changes, shipping details and customization work."""

from datetime import datetime, timedelta

import structlog
from sqlalchemy import select, update

from commissions.commission import cancel_pending_commissions
from inventory.stock.ledger import StockLedger
from notifications.notification.dispatch import NotificationDispatcher
from notifications.notification.notification import NotificationEvent, NotificationType
from ordering.order.order import (
    CANCELLABLE_STATUSES,
    CustomizationStatus,
    CustomizationType,
    Order,
    OrderItem,
    OrderItemCustomization,
    OrderStatus,
)
from ordering.order.payment import cancelled_notification, release_order_stock
from shared.clock import as_naive_utc, utc_now
from shared.exceptions import InvalidTransition, SlotAlreadyBooked, ValidationError
from shared.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)


class OrderFulfillmentService:
    def __init__(self, uow_factory, stock_ledger: StockLedger, dispatcher: NotificationDispatcher) -> None:
        self._uow_factory = uow_factory
        self._stock_ledger = stock_ledger
        self._dispatcher = dispatcher

    def update_status(self, order_id: str, status: str, reason: str | None = None) -> Order:
        """Move a paid order along PAID → PROCESSING → SHIPPED → DELIVERED, or cancel it.

        Cancelling a PAID or PROCESSING order returns its stock and cancels the
        commissions that have not been settled yet.
        """
        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status `{status}`"]}) from None

        with self._uow_factory() as uow:
            if target == OrderStatus.CANCELLED:
                order = self._cancel(uow, order_id, reason)
            else:
                order = uow.repository_for(Order).get(order_id)
                order.advance_to(target, reason=reason)

            event = self._status_notification(order, target)
            if event is not None:
                uow.on_commit(lambda: self._dispatcher.dispatch(event))

        logger.info("Order status updated", order_id=order_id, status=target.value)
        return order

    def _cancel(self, uow: UnitOfWork, order_id: str, reason: str | None) -> Order:
        # Only the caller whose update matches a cancellable status releases stock
        now = utc_now()
        result = uow.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status.in_(CANCELLABLE_STATUSES))
            .values(
                status=OrderStatus.CANCELLED.value,
                cancelled_at=now,
                cancellation_reason=reason or "cancelled_by_admin",
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        order = uow.repository_for(Order).get(order_id, refresh=True)
        if result.rowcount != 1:
            raise InvalidTransition({"status": [f"Cannot transition from {order.status} to CANCELLED"]})

        for customization in order.all_customizations():
            customization.cancel()
        release_order_stock(uow, self._stock_ledger, order)
        cancelled = cancel_pending_commissions(uow, order_id=order.id)
        logger.info("Commissions cancelled", order_id=order.id, count=cancelled)
        return order

    def record_shipping_info(self, order_id: str, carrier: str, tracking_number: str) -> Order:
        with self._uow_factory() as uow:
            order = uow.repository_for(Order).get(order_id)
            order.record_shipping_info(carrier, tracking_number)
        logger.info("Shipping info recorded", order_id=order_id, carrier=carrier)
        return order

    def update_notes(self, order_id: str, notes: str | None) -> Order:
        with self._uow_factory() as uow:
            order = uow.repository_for(Order).get(order_id)
            order.notes = notes
        return order

    # -------------------------------------------------------------------
    # Customizations
    # -------------------------------------------------------------------
    def update_customization_status(self, customization_id: str, status: str) -> OrderItemCustomization:
        try:
            target = CustomizationStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown customization status `{status}`"]}) from None

        with self._uow_factory() as uow:
            customization = uow.repository_for(OrderItemCustomization).get(customization_id)
            customization.item.order.assert_customizable()
            customization.transition_to(target)

        logger.info("Customization status updated", customization_id=customization_id, status=target.value)
        return customization

    def schedule_customization(
        self,
        customization_id: str,
        scheduled_at: datetime,
        duration_minutes: int,
    ) -> OrderItemCustomization:
        """Book a time slot for a video call.

        Slots of the same artist may not overlap; cancelled sessions free
        their slot.
        """
        if duration_minutes <= 0:
            raise ValidationError({"duration_minutes": ["Duration must be positive"]})
        start = as_naive_utc(scheduled_at)
        end = start + timedelta(minutes=duration_minutes)

        with self._uow_factory() as uow:
            customization = uow.repository_for(OrderItemCustomization).get(customization_id)
            if customization.type != CustomizationType.VIDEO_CALL.value:
                raise ValidationError({"type": ["Only video calls can be scheduled"]})
            if not customization.is_open:
                raise ValidationError({"status": [f"Cannot schedule a {customization.status} customization"]})
            item = customization.item
            item.order.assert_customizable()

            booked = uow.session.scalars(
                select(OrderItemCustomization)
                .join(OrderItem, OrderItem.id == OrderItemCustomization.order_item_id)
                .where(
                    OrderItem.artist_id == item.artist_id,
                    OrderItemCustomization.id != customization.id,
                    OrderItemCustomization.type == CustomizationType.VIDEO_CALL.value,
                    OrderItemCustomization.scheduled_at.is_not(None),
                    OrderItemCustomization.status != CustomizationStatus.CANCELLED.value,
                )
            ).all()
            for other in booked:
                if start < other.ends_at() and other.scheduled_at < end:
                    raise SlotAlreadyBooked(
                        {"scheduled_at": [f"The artist already has a session at {other.scheduled_at:%Y-%m-%d %H:%M}"]}
                    )

            customization.scheduled_at = start
            customization.duration_minutes = duration_minutes

        logger.info("Customization scheduled", customization_id=customization_id, scheduled_at=start.isoformat())
        return customization

    @staticmethod
    def _status_notification(order: Order, target: OrderStatus) -> NotificationEvent | None:
        if target == OrderStatus.SHIPPED:
            return NotificationEvent(
                type=NotificationType.ORDER_SHIPPED,
                recipient_id=order.customer_id,
                subject=f"Order {order.order_number} shipped",
                body=f"Your order is on its way with {order.carrier} (tracking {order.tracking_number}).",
                context={"order_id": order.id, "tracking_number": order.tracking_number},
            )
        if target == OrderStatus.DELIVERED:
            return NotificationEvent(
                type=NotificationType.ORDER_DELIVERED,
                recipient_id=order.customer_id,
                subject=f"Order {order.order_number} delivered",
                body="Your order has been delivered.",
                context={"order_id": order.id},
            )
        if target == OrderStatus.CANCELLED:
            return cancelled_notification(order, order.cancellation_reason)
        return None
