"""Door admission: scanning a ticket's QR code marks it USED."""

from datetime import datetime

import structlog
from sqlalchemy import update

from shared.clock import as_naive_utc, utc_now
from shared.exceptions import (
    ObjectNotFoundError,
    TicketAlreadyUsed,
    TicketCancelled,
    TicketUnpaid,
    ValidationError,
)
from ticketing.ticket.ticket import Ticket, TicketStatus

logger = structlog.get_logger(__name__)


class TicketAdmissionService:
    def __init__(self, uow_factory) -> None:
        self._uow_factory = uow_factory

    def admit(self, qr_code: str, show_id: str | None = None, as_of: datetime | None = None) -> Ticket:
        now = as_naive_utc(as_of) if as_of else utc_now()

        with self._uow_factory() as uow:
            repo = uow.repository_for(Ticket)
            ticket = repo.find_by(qr_code=qr_code)
            if ticket is None:
                raise ObjectNotFoundError({"qr_code": ["Unknown ticket"]})
            if show_id is not None and ticket.show_id != show_id:
                raise ValidationError({"qr_code": ["This ticket is for a different show"]})
            if ticket.status == TicketStatus.USED.value:
                raise TicketAlreadyUsed({"qr_code": [f"Ticket already used at {ticket.used_at:%Y-%m-%d %H:%M}"]})
            if ticket.status == TicketStatus.CANCELLED.value:
                raise TicketCancelled({"qr_code": ["Ticket has been cancelled"]})
            if not ticket.is_paid:
                raise TicketUnpaid({"qr_code": ["Ticket has not been paid"]})

            # Two scanners racing on the same code: only one wins
            result = uow.session.execute(
                update(Ticket)
                .where(Ticket.id == ticket.id, Ticket.status == TicketStatus.ACTIVE.value)
                .values(status=TicketStatus.USED.value, used_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise TicketAlreadyUsed({"qr_code": ["Ticket already used"]})
            ticket = repo.get(ticket.id, refresh=True)

        logger.info("Ticket admitted", ticket_id=ticket.id, show_id=ticket.show_id)
        return ticket
