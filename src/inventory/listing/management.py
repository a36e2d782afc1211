"""Listing registration and restocking.

The catalogue owns products; this service only records what is sold and how
many units are on hand.
"""

import structlog

from inventory.listing.listing import Listing
from inventory.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)


class ListingService:
    def __init__(self, uow_factory, stock_ledger: StockLedger) -> None:
        self._uow_factory = uow_factory
        self._stock_ledger = stock_ledger

    def register_listing(
        self,
        artist_id: str,
        artist_user_id: str,
        artist_name: str,
        title: str,
        sale_price,
        manufacturing_cost,
        artist_commission_rate,
        stock: int,
        product_id: str | None = None,
    ) -> Listing:
        listing = Listing.create(
            artist_id=artist_id,
            artist_user_id=artist_user_id,
            artist_name=artist_name,
            title=title,
            sale_price=sale_price,
            manufacturing_cost=manufacturing_cost,
            artist_commission_rate=artist_commission_rate,
            stock=stock,
            product_id=product_id,
        )
        with self._uow_factory() as uow:
            uow.repository_for(Listing).add(listing)
        logger.info("Listing registered", listing_id=listing.id, artist_id=artist_id, stock=stock)
        return listing

    def restock(self, listing_id: str, quantity: int) -> int:
        """Add units to a listing; returns the new stock level."""
        with self._uow_factory() as uow:
            self._stock_ledger.release(uow, listing_id, quantity)
            return self._stock_ledger.available(uow, listing_id)

    def get_listing(self, listing_id: str) -> Listing:
        with self._uow_factory() as uow:
            return uow.repository_for(Listing).get(listing_id)
