"""Show scheduling, ticket-sale switches and show cancellation."""

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import select, update

from commissions.commission import cancel_pending_commissions
from notifications.notification.dispatch import NotificationDispatcher
from notifications.notification.notification import NotificationEvent, NotificationType
from shared.clock import as_naive_utc, utc_now
from shared.config import Settings
from shared.exceptions import InvalidTransition
from ticketing.show.show import Show, ShowStatus
from ticketing.ticket.ticket import Ticket, TicketStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ShowCancellation:
    show_id: str
    cancelled_tickets: int
    paid_tickets_to_refund: list[str]


class ShowService:
    def __init__(self, uow_factory, dispatcher: NotificationDispatcher, settings: Settings) -> None:
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher
        self._settings = settings

    def schedule_show(
        self,
        artist_id: str,
        owner_id: str,
        name: str,
        starts_at: datetime,
        ticket_price,
        total_capacity: int | None = None,
        platform_fee=None,
        venue: str | None = None,
        description: str | None = None,
    ) -> Show:
        show = Show.create(
            artist_id=artist_id,
            owner_id=owner_id,
            name=name,
            starts_at=as_naive_utc(starts_at),
            ticket_price=ticket_price,
            platform_fee=platform_fee if platform_fee is not None else self._settings.default_platform_fee,
            total_capacity=total_capacity,
            venue=venue,
            description=description,
        )
        with self._uow_factory() as uow:
            uow.repository_for(Show).add(show)
        logger.info("Show scheduled", show_id=show.id, artist_id=artist_id)
        return show

    def get_show(self, show_id: str) -> Show:
        with self._uow_factory() as uow:
            return uow.repository_for(Show).get(show_id)

    def set_ticket_sales(self, show_id: str, enabled: bool) -> Show:
        with self._uow_factory() as uow:
            show = uow.repository_for(Show).get(show_id)
            if show.status != ShowStatus.SCHEDULED.value:
                raise InvalidTransition({"status": [f"Cannot change ticket sales of a {show.status} show"]})
            show.tickets_enabled = enabled
        return show

    def cancel_show(self, show_id: str, reason: str | None = None) -> ShowCancellation:
        """Cancel a scheduled show and every ACTIVE ticket for it.

        Paid tickets are reported back so they can be refunded; their pending
        commissions are cancelled.
        """
        now = utc_now()

        with self._uow_factory() as uow:
            show = uow.repository_for(Show).get(show_id)
            if show.status != ShowStatus.SCHEDULED.value:
                raise InvalidTransition({"status": [f"Cannot cancel a {show.status} show"]})

            active = list(
                uow.session.scalars(
                    select(Ticket).where(Ticket.show_id == show_id, Ticket.status == TicketStatus.ACTIVE.value)
                ).all()
            )
            paid_ids = [ticket.id for ticket in active if ticket.is_paid]
            holders = sorted({ticket.buyer_id for ticket in active})

            uow.session.execute(
                update(Ticket)
                .where(Ticket.show_id == show_id, Ticket.status == TicketStatus.ACTIVE.value)
                .values(status=TicketStatus.CANCELLED.value, cancelled_at=now)
                .execution_options(synchronize_session=False)
            )
            if paid_ids:
                cancel_pending_commissions(uow, ticket_ids=paid_ids)

            show.status = ShowStatus.CANCELLED.value
            show.tickets_enabled = False
            show.active_ticket_count = 0
            show.cancelled_at = now

            events = [
                NotificationEvent(
                    type=NotificationType.SHOW_CANCELLED,
                    recipient_id=buyer_id,
                    subject=f"{show.name} has been cancelled",
                    body=reason or f"{show.name} has been cancelled. Paid tickets will be refunded.",
                    context={"show_id": show.id},
                )
                for buyer_id in holders
            ]
            uow.on_commit(lambda: self._dispatcher.dispatch_all(events))

        logger.info(
            "Show cancelled",
            show_id=show_id,
            cancelled_tickets=len(active),
            paid_tickets=len(paid_ids),
        )
        return ShowCancellation(show_id=show_id, cancelled_tickets=len(active), paid_tickets_to_refund=paid_ids)
