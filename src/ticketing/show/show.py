"""Show aggregate: a live event an artist sells tickets for.

``active_ticket_count`` is the capacity ledger: it counts every ACTIVE ticket
(paid or still on hold) and is only changed through
``ticketing.show.capacity``, with the same conditional-update discipline the
Stock Ledger uses for listings.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import CheckConstraint, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.clock import utc_now
from shared.database import Base
from shared.exceptions import ValidationError
from shared.money import round_money, to_decimal


class ShowStatus(Enum):
    SCHEDULED = "SCHEDULED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class Show(Base):
    __tablename__ = "shows"
    __table_args__ = (
        CheckConstraint("active_ticket_count >= 0", name="ck_shows_active_tickets_non_negative"),
        CheckConstraint(
            "total_capacity IS NULL OR active_ticket_count <= total_capacity",
            name="ck_shows_within_capacity",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    artist_id: Mapped[str] = mapped_column(String(36), index=True)
    owner_id: Mapped[str] = mapped_column(String(36))
    name: Mapped[str] = mapped_column(String(255))
    venue: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    starts_at: Mapped[datetime]
    ticket_price: Mapped[Decimal]
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    total_capacity: Mapped[int | None]
    active_ticket_count: Mapped[int]
    tickets_enabled: Mapped[bool]
    status: Mapped[str] = mapped_column(String(20))
    cancelled_at: Mapped[datetime | None]
    created_at: Mapped[datetime]

    @classmethod
    def create(
        cls,
        artist_id: str,
        owner_id: str,
        name: str,
        starts_at: datetime,
        ticket_price,
        platform_fee,
        total_capacity: int | None = None,
        venue: str | None = None,
        description: str | None = None,
        tickets_enabled: bool = True,
    ) -> "Show":
        price = to_decimal(ticket_price)
        fee = to_decimal(platform_fee)
        if price < 0:
            raise ValidationError({"ticket_price": ["Ticket price cannot be negative"]})
        if not (0 <= fee <= 100):
            raise ValidationError({"platform_fee": ["Platform fee must be between 0 and 100"]})
        if total_capacity is not None and total_capacity <= 0:
            raise ValidationError({"total_capacity": ["Capacity must be positive"]})

        return cls(
            id=str(uuid4()),
            artist_id=artist_id,
            owner_id=owner_id,
            name=name,
            venue=venue,
            description=description,
            starts_at=starts_at,
            ticket_price=round_money(price),
            platform_fee=fee,
            total_capacity=total_capacity,
            active_ticket_count=0,
            tickets_enabled=tickets_enabled,
            status=ShowStatus.SCHEDULED.value,
            created_at=utc_now(),
        )

    @property
    def is_on_sale(self) -> bool:
        return self.status == ShowStatus.SCHEDULED.value and self.tickets_enabled
