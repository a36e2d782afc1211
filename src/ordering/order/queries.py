"""Read side for orders."""

from sqlalchemy import func, select

from ordering.order.order import Order
from shared.exceptions import PermissionDeniedError


class OrderQueries:
    def __init__(self, uow_factory) -> None:
        self._uow_factory = uow_factory

    def get_order(self, order_id: str, customer_id: str | None = None) -> Order:
        """Load an order; when ``customer_id`` is given the order must belong to them."""
        with self._uow_factory() as uow:
            order = uow.repository_for(Order).get(order_id)
        if customer_id is not None and not order.is_owned_by(customer_id):
            raise PermissionDeniedError({"order": ["You do not have access to this order"]})
        return order

    def list_orders(self, customer_id: str | None = None, page: int = 1, limit: int = 20) -> tuple[list[Order], int]:
        """Return one page of orders, newest first, and the total count."""
        page = max(page, 1)
        limit = min(max(limit, 1), 100)

        query = select(Order)
        count_query = select(func.count()).select_from(Order)
        if customer_id is not None:
            query = query.where(Order.customer_id == customer_id)
            count_query = count_query.where(Order.customer_id == customer_id)

        with self._uow_factory() as uow:
            total = uow.session.scalar(count_query)
            orders = list(
                uow.session.scalars(
                    query.order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit)
                ).all()
            )
        return orders, total
