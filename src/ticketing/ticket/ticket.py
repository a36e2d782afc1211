"""Ticket aggregate.

State Machine:
    ACTIVE (unpaid, expires_at set) → ACTIVE (paid, payment_id set) → USED
    ACTIVE (unpaid) → CANCELLED   (payment rejected or hold expired)
    ACTIVE → CANCELLED            (show cancelled)

A buyer holds at most one ACTIVE ticket per show; a partial unique index
backs that rule in the store.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from shared.clock import utc_now
from shared.database import Base


class TicketStatus(Enum):
    ACTIVE = "ACTIVE"
    USED = "USED"
    CANCELLED = "CANCELLED"


def generate_qr_code(show_id: str) -> str:
    return f"TICKET-{show_id}-{uuid4()}"


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        Index(
            "uq_tickets_one_active_per_buyer",
            "show_id",
            "buyer_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    show_id: Mapped[str] = mapped_column(ForeignKey("shows.id"), index=True)
    buyer_id: Mapped[str] = mapped_column(String(36), index=True)
    qr_code: Mapped[str] = mapped_column(String(100), unique=True)
    price: Mapped[Decimal]
    status: Mapped[str] = mapped_column(String(20), index=True)
    payment_id: Mapped[str | None] = mapped_column(String(64))
    expires_at: Mapped[datetime | None] = mapped_column(index=True)
    paid_at: Mapped[datetime | None]
    used_at: Mapped[datetime | None]
    cancelled_at: Mapped[datetime | None]
    created_at: Mapped[datetime]

    @classmethod
    def hold(cls, show, buyer_id: str, hold_minutes: int, as_of: datetime | None = None) -> "Ticket":
        now = as_of or utc_now()
        return cls(
            id=str(uuid4()),
            show_id=show.id,
            buyer_id=buyer_id,
            qr_code=generate_qr_code(show.id),
            price=show.ticket_price,
            status=TicketStatus.ACTIVE.value,
            expires_at=now + timedelta(minutes=hold_minutes),
            created_at=now,
        )

    @property
    def is_paid(self) -> bool:
        return self.payment_id is not None
