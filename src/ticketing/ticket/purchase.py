"""Ticket sales: placing a ticket on hold for a buyer, and the simulated payment path."""

from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from shared.clock import as_naive_utc, utc_now
from shared.config import Settings
from shared.exceptions import (
    AlreadyPurchased,
    PermissionDeniedError,
    SelfPurchaseForbidden,
    ShowUnavailable,
)
from shared.outcome import PaymentOutcome
from ticketing.show.capacity import claim_seat
from ticketing.show.show import Show
from ticketing.ticket.payment import TicketPaymentService
from ticketing.ticket.ticket import Ticket, TicketStatus

logger = structlog.get_logger(__name__)

SIMULATED_PAYMENT_ID = "SIMULATED"
FREE_TICKET_PAYMENT_ID = "FREE"


class TicketSalesService:
    def __init__(self, uow_factory, ticket_payments: TicketPaymentService, settings: Settings) -> None:
        self._uow_factory = uow_factory
        self._ticket_payments = ticket_payments
        self._settings = settings

    def purchase(self, buyer_id: str, show_id: str, as_of: datetime | None = None) -> Ticket:
        """Hold a seat for the buyer until the payment window closes.

        Free shows issue the ticket already paid.
        """
        now = as_naive_utc(as_of) if as_of else utc_now()

        with self._uow_factory() as uow:
            show = uow.repository_for(Show).get(show_id)
            if show.owner_id == buyer_id:
                raise SelfPurchaseForbidden({"show": ["You cannot buy a ticket to your own show"]})
            if not show.is_on_sale:
                raise ShowUnavailable({"show": ["Tickets for this show are not on sale"]})
            if self._active_ticket(uow, show_id, buyer_id) is not None:
                raise AlreadyPurchased({"show": ["You already have a ticket for this show"]})

            claim_seat(uow, show_id)

            ticket = Ticket.hold(show, buyer_id, self._settings.ticket_hold_minutes, as_of=now)
            if show.ticket_price == 0:
                ticket.payment_id = FREE_TICKET_PAYMENT_ID
                ticket.paid_at = now
                ticket.expires_at = None

            uow.repository_for(Ticket).add(ticket)
            try:
                uow.session.flush()
            except IntegrityError:
                raise AlreadyPurchased({"show": ["You already have a ticket for this show"]}) from None

        logger.info("Ticket held", ticket_id=ticket.id, show_id=show_id, buyer_id=buyer_id)
        return ticket

    def simulate_payment(self, buyer_id: str, show_id: str) -> Ticket:
        """Buy and pay for a ticket in one step (test-only path)."""
        if not self._settings.simulated_payments_enabled:
            raise PermissionDeniedError({"payment": ["Simulated payments are disabled"]})

        with self._uow_factory() as uow:
            held = self._active_ticket(uow, show_id, buyer_id)
        if held is not None and held.is_paid:
            raise AlreadyPurchased({"show": ["You already have a ticket for this show"]})

        ticket = held or self.purchase(buyer_id, show_id)
        if not ticket.is_paid:
            self._ticket_payments.apply_outcome(ticket.id, PaymentOutcome.APPROVED, SIMULATED_PAYMENT_ID)

        with self._uow_factory() as uow:
            return uow.repository_for(Ticket).get(ticket.id)

    def tickets_for_buyer(self, buyer_id: str) -> list[Ticket]:
        with self._uow_factory() as uow:
            return list(
                uow.session.scalars(
                    select(Ticket).where(Ticket.buyer_id == buyer_id).order_by(Ticket.created_at.desc())
                ).all()
            )

    @staticmethod
    def _active_ticket(uow, show_id: str, buyer_id: str) -> Ticket | None:
        return uow.repository_for(Ticket).find_by(
            show_id=show_id,
            buyer_id=buyer_id,
            status=TicketStatus.ACTIVE.value,
        )
