"""Listing: an artist's product offered for sale, with its stock counter.

The catalogue (products, categories, media) lives outside this service; a
Listing holds only what checkout and commission accrual need: the sale price,
the manufacturing cost, the artist's commission rate and the stock counter.
``stock`` is mutated exclusively through ``inventory.stock.ledger.StockLedger``.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import CheckConstraint, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from shared.clock import utc_now
from shared.database import Base
from shared.exceptions import ValidationError
from shared.money import to_decimal


class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_listings_stock_non_negative"),
        CheckConstraint("sale_price >= 0", name="ck_listings_sale_price_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    artist_id: Mapped[str] = mapped_column(String(36), index=True)
    artist_user_id: Mapped[str] = mapped_column(String(36))
    artist_name: Mapped[str] = mapped_column(String(255))
    product_id: Mapped[str] = mapped_column(String(36))
    title: Mapped[str] = mapped_column(String(255))
    sale_price: Mapped[Decimal]
    manufacturing_cost: Mapped[Decimal]
    artist_commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    stock: Mapped[int]
    is_active: Mapped[bool]
    created_at: Mapped[datetime]

    @classmethod
    def create(
        cls,
        artist_id: str,
        artist_user_id: str,
        artist_name: str,
        title: str,
        sale_price,
        manufacturing_cost,
        artist_commission_rate,
        stock: int,
        product_id: str | None = None,
    ) -> "Listing":
        sale_price = to_decimal(sale_price)
        manufacturing_cost = to_decimal(manufacturing_cost)
        artist_commission_rate = to_decimal(artist_commission_rate)

        if sale_price < 0 or manufacturing_cost < 0:
            raise ValidationError({"sale_price": ["Prices cannot be negative"]})
        if not (0 <= artist_commission_rate <= 100):
            raise ValidationError({"artist_commission_rate": ["Commission rate must be between 0 and 100"]})
        if stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

        return cls(
            id=str(uuid4()),
            artist_id=artist_id,
            artist_user_id=artist_user_id,
            artist_name=artist_name,
            product_id=product_id or str(uuid4()),
            title=title,
            sale_price=sale_price,
            manufacturing_cost=manufacturing_cost,
            artist_commission_rate=artist_commission_rate,
            stock=stock,
            is_active=True,
            created_at=utc_now(),
        )
