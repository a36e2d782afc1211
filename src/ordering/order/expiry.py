"""Order expiry: cancels unpaid orders whose payment hold has run out.

Triggered periodically by ``maintenance.sweeper.ExpirySweeper`` (and by the
maintenance API endpoint). Each order is cancelled in its own transaction
with a conditional UPDATE that re-checks "still PENDING, still unpaid, still
expired", so the sweep can never cancel an order whose payment landed after
the candidate query ran.
"""

from datetime import datetime

import structlog
from sqlalchemy import select, update

from inventory.stock.ledger import StockLedger
from notifications.notification.dispatch import NotificationDispatcher
from ordering.order.order import Order, OrderStatus
from ordering.order.payment import cancelled_notification, release_order_stock
from shared.clock import as_naive_utc, utc_now
from shared.exceptions import InvalidOperationError, ValidationError

logger = structlog.get_logger(__name__)


def _expired_unpaid(cutoff: datetime):
    return (
        Order.status == OrderStatus.PENDING.value,
        Order.payment_id.is_(None),
        Order.expires_at.is_not(None),
        Order.expires_at < cutoff,
    )


class OrderExpiry:
    def __init__(self, uow_factory, stock_ledger: StockLedger, dispatcher: NotificationDispatcher) -> None:
        self._uow_factory = uow_factory
        self._stock_ledger = stock_ledger
        self._dispatcher = dispatcher

    def expire_unpaid_orders(self, as_of: datetime | None = None) -> int:
        """Cancel every expired unpaid order; returns how many were cancelled."""
        cutoff = as_naive_utc(as_of) if as_of else utc_now()

        with self._uow_factory() as uow:
            candidates = list(uow.session.scalars(select(Order.id).where(*_expired_unpaid(cutoff))).all())

        if not candidates:
            logger.info("No expired orders found", cutoff=cutoff.isoformat())
            return 0

        expired_count = 0
        for order_id in candidates:
            try:
                if self._expire(order_id, cutoff):
                    expired_count += 1
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning("Failed to expire order", order_id=order_id, error=str(exc))

        logger.info("Order expiry sweep complete", expired_count=expired_count)
        return expired_count

    def _expire(self, order_id: str, cutoff: datetime) -> bool:
        with self._uow_factory() as uow:
            result = uow.session.execute(
                update(Order)
                .where(Order.id == order_id, *_expired_unpaid(cutoff))
                .values(
                    status=OrderStatus.CANCELLED.value,
                    cancelled_at=cutoff,
                    cancellation_reason="payment_expired",
                    updated_at=cutoff,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False

            order = uow.repository_for(Order).get(order_id, refresh=True)
            release_order_stock(uow, self._stock_ledger, order)
            for customization in order.all_customizations():
                customization.cancel()

            event = cancelled_notification(order, "payment window expired")
            uow.on_commit(lambda: self._dispatcher.dispatch(event))

        logger.info("Expired unpaid order", order_id=order_id, order_number=order.order_number)
        return True
