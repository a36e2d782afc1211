"""Capacity ledger for shows: the ticketing analogue of the Stock Ledger."""

from sqlalchemy import or_, update

from shared.exceptions import SoldOut
from shared.unit_of_work import UnitOfWork
from ticketing.show.show import Show


def claim_seat(uow: UnitOfWork, show_id: str) -> None:
    """Take one seat or raise ``SoldOut``; shows without a capacity always succeed."""
    result = uow.session.execute(
        update(Show)
        .where(
            Show.id == show_id,
            or_(Show.total_capacity.is_(None), Show.active_ticket_count < Show.total_capacity),
        )
        .values(active_ticket_count=Show.active_ticket_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise SoldOut({"show": ["This show is sold out"]})


def release_seats(uow: UnitOfWork, show_id: str, count: int = 1) -> None:
    uow.session.execute(
        update(Show)
        .where(Show.id == show_id, Show.active_ticket_count >= count)
        .values(active_ticket_count=Show.active_ticket_count - count)
        .execution_options(synchronize_session=False)
    )
