"""Coupon aggregate.

Codes are stored upper-cased and trimmed so lookups are case-insensitive.
``used_count`` only ever grows; it is incremented by
``CouponValidator.consume`` inside the order-creation transaction and the
store enforces ``used_count <= max_uses``.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import CheckConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.clock import utc_now
from shared.database import Base
from shared.exceptions import ValidationError
from shared.money import round_money, to_decimal


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint(
            "max_uses IS NULL OR used_count <= max_uses",
            name="ck_coupons_usage_within_limit",
        ),
        CheckConstraint("used_count >= 0", name="ck_coupons_used_count_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    discount_type: Mapped[str] = mapped_column(String(20))
    discount_value: Mapped[Decimal]
    min_purchase: Mapped[Decimal | None]
    max_uses: Mapped[int | None]
    used_count: Mapped[int]
    expires_at: Mapped[datetime | None]
    is_active: Mapped[bool]
    created_at: Mapped[datetime]

    @classmethod
    def create(
        cls,
        code: str,
        discount_type: str,
        discount_value,
        description: str | None = None,
        min_purchase=None,
        max_uses: int | None = None,
        expires_at: datetime | None = None,
    ) -> "Coupon":
        code = normalize_code(code)
        if not code:
            raise ValidationError({"code": ["Coupon code is required"]})

        try:
            kind = DiscountType(discount_type)
        except ValueError:
            raise ValidationError({"discount_type": [f"Unknown discount type `{discount_type}`"]}) from None

        value = to_decimal(discount_value)
        if value <= 0:
            raise ValidationError({"discount_value": ["Discount value must be positive"]})
        if kind == DiscountType.PERCENTAGE and value > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})
        if max_uses is not None and max_uses <= 0:
            raise ValidationError({"max_uses": ["Max uses must be positive"]})

        return cls(
            id=str(uuid4()),
            code=code,
            description=description,
            discount_type=kind.value,
            discount_value=round_money(value),
            min_purchase=round_money(min_purchase) if min_purchase is not None else None,
            max_uses=max_uses,
            used_count=0,
            expires_at=expires_at,
            is_active=True,
            created_at=utc_now(),
        )

    def discount_for(self, subtotal) -> Decimal:
        subtotal = to_decimal(subtotal)
        if DiscountType(self.discount_type) == DiscountType.PERCENTAGE:
            return round_money(subtotal * self.discount_value / Decimal(100))
        return round_money(min(self.discount_value, subtotal))

    def is_expired(self, as_of: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < as_of

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.used_count >= self.max_uses
