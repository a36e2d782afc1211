"""Referral programme.

A Referral belongs to a user who shares its code. When another customer
arrives through that code a ReferralAttribution links them to the referral.
The referral owner earns a commission on the referred customer's first
qualifying order only; ``rewarded_order_id`` records which order that was and
is claimed atomically when the order is paid.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from shared.clock import utc_now
from shared.database import Base
from shared.exceptions import ValidationError
from shared.money import to_decimal


def generate_referral_code() -> str:
    return f"REF-{uuid4().hex[:8].upper()}"


class Referral(Base):
    __tablename__ = "referrals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    code: Mapped[str] = mapped_column(String(32), unique=True)
    owner_id: Mapped[str] = mapped_column(String(36), index=True)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    total_clicks: Mapped[int]
    total_orders: Mapped[int]
    is_active: Mapped[bool]
    created_at: Mapped[datetime]

    @classmethod
    def create(cls, owner_id: str, commission_rate, code: str | None = None) -> "Referral":
        rate = to_decimal(commission_rate)
        if not (0 < rate <= 100):
            raise ValidationError({"commission_rate": ["Commission rate must be between 0 and 100"]})
        return cls(
            id=str(uuid4()),
            code=(code or generate_referral_code()).strip().upper(),
            owner_id=owner_id,
            commission_rate=rate,
            total_clicks=0,
            total_orders=0,
            is_active=True,
            created_at=utc_now(),
        )


class ReferralAttribution(Base):
    __tablename__ = "referral_attributions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(36), unique=True)
    referral_id: Mapped[str] = mapped_column(ForeignKey("referrals.id"), index=True)
    rewarded_order_id: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime]

    @classmethod
    def create(cls, customer_id: str, referral_id: str) -> "ReferralAttribution":
        return cls(
            id=str(uuid4()),
            customer_id=customer_id,
            referral_id=referral_id,
            created_at=utc_now(),
        )
