"""Ticket payment confirmation.

Same idempotency discipline as orders: the conditional UPDATE
``... WHERE status = 'ACTIVE' AND payment_id IS NULL`` is both the guard and
the transition, so duplicate or late callbacks become no-ops.
"""

import structlog
from sqlalchemy import update

from commissions.calculator import calculate_ticket_commission
from commissions.commission import record_commissions
from notifications.notification.dispatch import NotificationDispatcher
from notifications.notification.notification import NotificationEvent, NotificationType
from shared.clock import utc_now
from shared.outcome import PaymentOutcome
from shared.unit_of_work import UnitOfWork
from ticketing.show.capacity import release_seats
from ticketing.show.show import Show
from ticketing.ticket.ticket import Ticket, TicketStatus

logger = structlog.get_logger(__name__)


class TicketPaymentService:
    def __init__(self, uow_factory, dispatcher: NotificationDispatcher) -> None:
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher

    def apply_outcome(self, ticket_id: str, outcome: PaymentOutcome, payment_id: str) -> bool:
        """Apply a verified payment outcome. Returns False when it was a no-op."""
        with self._uow_factory() as uow:
            now = utc_now()
            if outcome == PaymentOutcome.APPROVED:
                values = {"payment_id": payment_id, "paid_at": now, "expires_at": None}
            else:
                values = {"status": TicketStatus.CANCELLED.value, "cancelled_at": now}

            if not self._guarded_update(uow, ticket_id, **values):
                ticket = uow.repository_for(Ticket).get(ticket_id)
                log = logger.warning if outcome == PaymentOutcome.APPROVED and not ticket.is_paid else logger.info
                log(
                    "Payment outcome ignored; ticket no longer awaiting payment",
                    ticket_id=ticket_id,
                    status=ticket.status,
                    payment_id=payment_id,
                    outcome=outcome.value,
                )
                return False

            ticket = uow.repository_for(Ticket).get(ticket_id, refresh=True)
            show = uow.repository_for(Show).get(ticket.show_id)

            if outcome == PaymentOutcome.APPROVED:
                draft = calculate_ticket_commission(ticket.price, show.platform_fee, show.artist_id)
                if draft is not None:
                    record_commissions(uow, [draft], ticket_id=ticket.id)
                event = NotificationEvent(
                    type=NotificationType.TICKET_CONFIRMED,
                    recipient_id=ticket.buyer_id,
                    subject=f"Your ticket for {show.name}",
                    body=f"Your ticket is confirmed. Show this code at the door: {ticket.qr_code}",
                    context={"ticket_id": ticket.id, "show_id": show.id, "qr_code": ticket.qr_code},
                )
            else:
                release_seats(uow, show.id)
                event = NotificationEvent(
                    type=NotificationType.TICKET_CANCELLED,
                    recipient_id=ticket.buyer_id,
                    subject=f"Ticket for {show.name} cancelled",
                    body="Your payment was rejected and the ticket has been released.",
                    context={"ticket_id": ticket.id, "show_id": show.id},
                )
            uow.on_commit(lambda: self._dispatcher.dispatch(event))

        logger.info("Ticket payment outcome applied", ticket_id=ticket_id, outcome=outcome.value)
        return True

    @staticmethod
    def _guarded_update(uow: UnitOfWork, ticket_id: str, **values) -> bool:
        result = uow.session.execute(
            update(Ticket)
            .where(
                Ticket.id == ticket_id,
                Ticket.status == TicketStatus.ACTIVE.value,
                Ticket.payment_id.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
