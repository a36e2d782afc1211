"""Commission rows: what each beneficiary earns from a paid order or ticket.

Amounts and rates are fixed at creation. Afterwards a commission only moves
between statuses: PENDING -> PAID when the platform settles it, or
PENDING -> CANCELLED when the sale is unwound (admin cancellation, refund,
show cancellation).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, update
from sqlalchemy.orm import Mapped, mapped_column

from shared.clock import utc_now
from shared.database import Base
from shared.unit_of_work import UnitOfWork


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CommissionType(Enum):
    ARTIST = "artist"
    CUSTOMIZATION = "customization"
    REFERRAL = "referral"
    TICKET = "ticket"


class CommissionStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Commission(Base):
    __tablename__ = "commissions"
    __table_args__ = (
        CheckConstraint(
            "(order_id IS NULL) <> (ticket_id IS NULL)",
            name="ck_commissions_single_source",
        ),
        CheckConstraint("amount > 0", name="ck_commissions_amount_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_id: Mapped[str | None] = mapped_column(ForeignKey("orders.id"), index=True)
    ticket_id: Mapped[str | None] = mapped_column(ForeignKey("tickets.id"), index=True)
    type: Mapped[str] = mapped_column(String(20))
    amount: Mapped[Decimal]
    rate: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    status: Mapped[str] = mapped_column(String(20), index=True)
    artist_id: Mapped[str | None] = mapped_column(String(36), index=True)
    referral_id: Mapped[str | None] = mapped_column(ForeignKey("referrals.id"))
    created_at: Mapped[datetime]
    paid_at: Mapped[datetime | None]
    cancelled_at: Mapped[datetime | None]


def record_commissions(uow: UnitOfWork, drafts, order_id: str | None = None, ticket_id: str | None = None) -> list:
    """Persist calculator drafts against exactly one order or ticket."""
    now = utc_now()
    commissions = []
    for draft in drafts:
        commission = Commission(
            id=str(uuid4()),
            order_id=order_id,
            ticket_id=ticket_id,
            type=draft.type.value,
            amount=draft.amount,
            rate=draft.rate,
            status=CommissionStatus.PENDING.value,
            artist_id=draft.artist_id,
            referral_id=draft.referral_id,
            created_at=now,
        )
        uow.repository_for(Commission).add(commission)
        commissions.append(commission)
    return commissions


def cancel_pending_commissions(
    uow: UnitOfWork,
    order_id: str | None = None,
    ticket_ids: list[str] | None = None,
) -> int:
    """Cancel PENDING commissions of an order or a set of tickets; returns the count."""
    condition = Commission.order_id == order_id if order_id is not None else Commission.ticket_id.in_(ticket_ids or [])
    result = uow.session.execute(
        update(Commission)
        .where(condition, Commission.status == CommissionStatus.PENDING.value)
        .values(status=CommissionStatus.CANCELLED.value, cancelled_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
