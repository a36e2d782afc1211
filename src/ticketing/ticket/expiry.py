"""Ticket expiry: cancels unpaid ticket holds past their deadline and frees the seat."""

from datetime import datetime

import structlog
from sqlalchemy import select, update

from shared.clock import as_naive_utc, utc_now
from shared.exceptions import InvalidOperationError, ValidationError
from ticketing.show.capacity import release_seats
from ticketing.ticket.ticket import Ticket, TicketStatus

logger = structlog.get_logger(__name__)


def _expired_unpaid(cutoff: datetime):
    return (
        Ticket.status == TicketStatus.ACTIVE.value,
        Ticket.payment_id.is_(None),
        Ticket.expires_at.is_not(None),
        Ticket.expires_at < cutoff,
    )


class TicketExpiry:
    def __init__(self, uow_factory) -> None:
        self._uow_factory = uow_factory

    def expire_unpaid_tickets(self, as_of: datetime | None = None) -> int:
        cutoff = as_naive_utc(as_of) if as_of else utc_now()

        with self._uow_factory() as uow:
            candidates = list(uow.session.scalars(select(Ticket.id).where(*_expired_unpaid(cutoff))).all())

        if not candidates:
            logger.info("No expired tickets found", cutoff=cutoff.isoformat())
            return 0

        expired_count = 0
        for ticket_id in candidates:
            try:
                if self._expire(ticket_id, cutoff):
                    expired_count += 1
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning("Failed to expire ticket", ticket_id=ticket_id, error=str(exc))

        logger.info("Ticket expiry sweep complete", expired_count=expired_count)
        return expired_count

    def _expire(self, ticket_id: str, cutoff: datetime) -> bool:
        with self._uow_factory() as uow:
            result = uow.session.execute(
                update(Ticket)
                .where(Ticket.id == ticket_id, *_expired_unpaid(cutoff))
                .values(status=TicketStatus.CANCELLED.value, cancelled_at=cutoff)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False

            ticket = uow.repository_for(Ticket).get(ticket_id, refresh=True)
            release_seats(uow, ticket.show_id)

        logger.info("Expired unpaid ticket", ticket_id=ticket_id, show_id=ticket.show_id)
        return True
