"""Read side for commissions."""

from sqlalchemy import select

from commissions.commission import Commission


class CommissionQueries:
    def __init__(self, uow_factory) -> None:
        self._uow_factory = uow_factory

    def list_commissions(
        self,
        artist_id: str | None = None,
        order_id: str | None = None,
        ticket_id: str | None = None,
        status: str | None = None,
    ) -> list[Commission]:
        query = select(Commission)
        if artist_id is not None:
            query = query.where(Commission.artist_id == artist_id)
        if order_id is not None:
            query = query.where(Commission.order_id == order_id)
        if ticket_id is not None:
            query = query.where(Commission.ticket_id == ticket_id)
        if status is not None:
            query = query.where(Commission.status == status)

        with self._uow_factory() as uow:
            return list(uow.session.scalars(query.order_by(Commission.created_at)).all())
