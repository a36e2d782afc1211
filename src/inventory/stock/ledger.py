"""Stock Ledger: the only writer of ``listings.stock``.

Reservation is a single conditional UPDATE (``... WHERE stock >= :qty``), so
two concurrent checkouts can never both take the last unit: the loser's
statement matches zero rows and surfaces as ``InsufficientStock``. Both
operations run inside the caller's unit of work and commit or roll back with
it.
"""

import structlog
from sqlalchemy import select, update

from inventory.listing.listing import Listing
from shared.exceptions import InsufficientStock, ObjectNotFoundError, ValidationError
from shared.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)


def _check_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise ValidationError({"quantity": ["Quantity must be positive"]})


class StockLedger:
    def reserve(self, uow: UnitOfWork, listing_id: str, quantity: int) -> None:
        """Decrement stock by ``quantity`` or raise ``InsufficientStock``."""
        _check_quantity(quantity)

        result = uow.session.execute(
            update(Listing)
            .where(Listing.id == listing_id, Listing.stock >= quantity)
            .values(stock=Listing.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            available = self.available(uow, listing_id)
            raise InsufficientStock(
                {"stock": [f"Insufficient stock for listing {listing_id}: {available} available, {quantity} requested"]}
            )

        logger.info("Stock reserved", listing_id=listing_id, quantity=quantity)

    def release(self, uow: UnitOfWork, listing_id: str, quantity: int) -> None:
        """Return ``quantity`` units to stock.

        Not idempotent on its own: callers only release after winning a
        status guard (PENDING -> CANCELLED) in the same transaction.
        """
        _check_quantity(quantity)

        result = uow.session.execute(
            update(Listing)
            .where(Listing.id == listing_id)
            .values(stock=Listing.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ObjectNotFoundError({"_entity": [f"Listing with id `{listing_id}` does not exist"]})

        logger.info("Stock released", listing_id=listing_id, quantity=quantity)

    def available(self, uow: UnitOfWork, listing_id: str) -> int:
        stock = uow.session.scalar(select(Listing.stock).where(Listing.id == listing_id))
        if stock is None:
            raise ObjectNotFoundError({"_entity": [f"Listing with id `{listing_id}` does not exist"]})
        return stock
