"""Order payment confirmation: the PENDING exit of the Order State Machine.

Gateway callbacks are delivered at least once and possibly out of order, so
``apply_outcome`` is idempotent. The guard is the state change itself: a
conditional ``UPDATE orders SET status = ... WHERE id = :id AND status =
'PENDING'`` issued inside the same transaction as every downstream effect.
Whoever matches the row owns the transition; everyone else (duplicate
webhooks, a late callback after the expiry sweep, a simulated payment racing
a real one) sees zero rows and returns without touching anything.
"""

import structlog
from sqlalchemy import update

from commissions.calculator import calculate_order_commissions
from commissions.commission import record_commissions
from inventory.stock.ledger import StockLedger
from notifications.notification.dispatch import NotificationDispatcher
from notifications.notification.notification import NotificationEvent, NotificationType
from ordering.order.order import Order, OrderStatus
from ordering.referral.tracking import claim_referral_reward
from shared.clock import utc_now
from shared.config import Settings
from shared.exceptions import OrderAlreadyProcessed, PermissionDeniedError
from shared.outcome import PaymentOutcome
from shared.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

SIMULATED_PAYMENT_ID = "SIMULATED"


def release_order_stock(uow: UnitOfWork, stock_ledger: StockLedger, order: Order) -> None:
    for item in order.items:
        stock_ledger.release(uow, item.listing_id, item.quantity)


def cancelled_notification(order: Order, reason: str) -> NotificationEvent:
    return NotificationEvent(
        type=NotificationType.ORDER_CANCELLED,
        recipient_id=order.customer_id,
        subject=f"Order {order.order_number} cancelled",
        body=f"Your order {order.order_number} was cancelled ({reason}).",
        context={"order_id": order.id, "reason": reason},
    )


class OrderPaymentService:
    def __init__(
        self,
        uow_factory,
        stock_ledger: StockLedger,
        dispatcher: NotificationDispatcher,
        settings: Settings,
    ) -> None:
        self._uow_factory = uow_factory
        self._stock_ledger = stock_ledger
        self._dispatcher = dispatcher
        self._settings = settings

    def apply_outcome(
        self,
        order_id: str,
        outcome: PaymentOutcome,
        payment_id: str,
        payment_method: str | None = None,
    ) -> bool:
        """Apply a verified payment outcome. Returns False when it was a no-op."""
        if outcome == PaymentOutcome.APPROVED:
            return self._approve(order_id, payment_id, payment_method)
        return self._reject(order_id, payment_id)

    def simulate_payment(self, order_id: str, customer_id: str) -> Order:
        """Mark a PENDING order as paid without a gateway round-trip (test-only path)."""
        if not self._settings.simulated_payments_enabled:
            raise PermissionDeniedError({"payment": ["Simulated payments are disabled"]})

        with self._uow_factory() as uow:
            order = uow.repository_for(Order).get(order_id)
            if not order.is_owned_by(customer_id):
                raise PermissionDeniedError({"order": ["You do not have access to this order"]})
            if order.status != OrderStatus.PENDING.value:
                raise OrderAlreadyProcessed({"order": [f"Order is already {order.status}"]})

        if not self._approve(order_id, SIMULATED_PAYMENT_ID, "test"):
            raise OrderAlreadyProcessed({"order": ["Order was processed concurrently"]})

        with self._uow_factory() as uow:
            return uow.repository_for(Order).get(order_id)

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def _approve(self, order_id: str, payment_id: str, payment_method: str | None) -> bool:
        with self._uow_factory() as uow:
            now = utc_now()
            won = self._guarded_update(
                uow,
                order_id,
                status=OrderStatus.PAID.value,
                payment_id=payment_id,
                payment_method=payment_method,
                expires_at=None,
                paid_at=now,
                updated_at=now,
            )
            if not won:
                self._log_noop(uow, order_id, payment_id, PaymentOutcome.APPROVED)
                return False

            order = uow.repository_for(Order).get(order_id, refresh=True)
            referral = claim_referral_reward(uow, order)
            drafts = calculate_order_commissions(order, referral)
            record_commissions(uow, drafts, order_id=order.id)

            events = self._paid_notifications(order, referral)
            uow.on_commit(lambda: self._dispatcher.dispatch_all(events))

        logger.info(
            "Order paid",
            order_id=order_id,
            payment_id=payment_id,
            commissions=len(drafts),
        )
        return True

    def _reject(self, order_id: str, payment_id: str) -> bool:
        with self._uow_factory() as uow:
            now = utc_now()
            won = self._guarded_update(
                uow,
                order_id,
                status=OrderStatus.CANCELLED.value,
                payment_id=payment_id,
                cancelled_at=now,
                cancellation_reason="payment_rejected",
                updated_at=now,
            )
            if not won:
                self._log_noop(uow, order_id, payment_id, PaymentOutcome.REJECTED)
                return False

            order = uow.repository_for(Order).get(order_id, refresh=True)
            release_order_stock(uow, self._stock_ledger, order)
            for customization in order.all_customizations():
                customization.cancel()

            event = cancelled_notification(order, "payment rejected")
            uow.on_commit(lambda: self._dispatcher.dispatch(event))

        logger.info("Order payment rejected", order_id=order_id, payment_id=payment_id)
        return True

    @staticmethod
    def _guarded_update(uow: UnitOfWork, order_id: str, **values) -> bool:
        result = uow.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.PENDING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _log_noop(uow: UnitOfWork, order_id: str, payment_id: str, outcome: PaymentOutcome) -> None:
        # Raises ObjectNotFoundError for unknown orders
        order = uow.repository_for(Order).get(order_id)
        late_payment = outcome == PaymentOutcome.APPROVED and order.status == OrderStatus.CANCELLED.value
        log = logger.warning if late_payment else logger.info
        log(
            "Payment outcome ignored; order no longer pending",
            order_id=order_id,
            status=order.status,
            payment_id=payment_id,
            outcome=outcome.value,
        )

    @staticmethod
    def _paid_notifications(order: Order, referral) -> list[NotificationEvent]:
        events = [
            NotificationEvent(
                type=NotificationType.ORDER_PAID,
                recipient_id=order.customer_id,
                subject=f"Payment received for order {order.order_number}",
                body=f"We received your payment of {order.currency} {order.total}.",
                context={"order_id": order.id, "total": str(order.total)},
            )
        ]

        sold_by_artist: dict[str, list[str]] = {}
        for item in order.items:
            sold_by_artist.setdefault(item.artist_user_id, []).append(f"{item.quantity} x {item.title}")
        for artist_user_id, lines in sold_by_artist.items():
            events.append(
                NotificationEvent(
                    type=NotificationType.NEW_SALE,
                    recipient_id=artist_user_id,
                    subject=f"New sale in order {order.order_number}",
                    body="You sold: " + ", ".join(lines),
                    context={"order_id": order.id},
                )
            )

        if referral is not None and referral.owner_id:
            events.append(
                NotificationEvent(
                    type=NotificationType.REFERRAL_EARNED,
                    recipient_id=referral.owner_id,
                    subject="You earned a referral commission",
                    body=f"A customer you referred completed order {order.order_number}.",
                    context={"order_id": order.id, "referral_id": referral.referral_id},
                )
            )
        return events
