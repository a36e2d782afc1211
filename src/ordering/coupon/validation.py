"""Coupon Validator and coupon administration.

``CouponValidator`` works inside the caller's unit of work so the Order
Builder can validate and consume a coupon in the same transaction that
creates the order. ``CouponService`` wraps it with its own transactions for
the standalone API endpoints.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import or_, select, update

from ordering.coupon.coupon import Coupon, normalize_code
from ordering.order.order import Order, OrderStatus
from shared.clock import as_naive_utc, utc_now
from shared.exceptions import (
    ConflictError,
    CouponAlreadyUsed,
    CouponExhausted,
    CouponExpired,
    CouponInvalid,
    MinPurchaseNotMet,
)
from shared.money import to_decimal
from shared.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

# A buyer's earlier use of a coupon does not count if that order was unwound
_NON_BLOCKING_ORDER_STATES = (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value)


@dataclass(frozen=True)
class CouponQuote:
    coupon_id: str
    code: str
    discount_type: str
    discount_value: Decimal
    discount_amount: Decimal


class CouponValidator:
    def validate(
        self,
        uow: UnitOfWork,
        code: str,
        subtotal,
        buyer_id: str | None = None,
        as_of: datetime | None = None,
    ) -> CouponQuote:
        """Check a coupon against a subtotal and quote its discount.

        Checks run in a fixed order; the first failure wins.
        """
        now = as_naive_utc(as_of) if as_of else utc_now()
        subtotal = to_decimal(subtotal)

        coupon = uow.repository_for(Coupon).find_by(code=normalize_code(code))
        if coupon is None or not coupon.is_active:
            raise CouponInvalid({"coupon": ["Invalid coupon code"]})
        if coupon.is_expired(now):
            raise CouponExpired({"coupon": ["Coupon has expired"]})
        if coupon.is_exhausted:
            raise CouponExhausted({"coupon": ["Coupon usage limit reached"]})
        if coupon.min_purchase is not None and subtotal < coupon.min_purchase:
            raise MinPurchaseNotMet({"coupon": [f"Minimum purchase of {coupon.min_purchase} required"]})
        if buyer_id is not None and self._used_by(uow, coupon.id, buyer_id):
            raise CouponAlreadyUsed({"coupon": ["You have already used this coupon"]})

        return CouponQuote(
            coupon_id=coupon.id,
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            discount_amount=coupon.discount_for(subtotal),
        )

    def consume(self, uow: UnitOfWork, coupon_id: str) -> None:
        """Increment ``used_count``; a lost race for the last use raises ``CouponExhausted``."""
        result = uow.session.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                or_(Coupon.max_uses.is_(None), Coupon.used_count < Coupon.max_uses),
            )
            .values(used_count=Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CouponExhausted({"coupon": ["Coupon usage limit reached"]})
        logger.info("Coupon consumed", coupon_id=coupon_id)

    def _used_by(self, uow: UnitOfWork, coupon_id: str, buyer_id: str) -> bool:
        prior = uow.session.scalar(
            select(Order.id)
            .where(
                Order.customer_id == buyer_id,
                Order.coupon_id == coupon_id,
                Order.status.notin_(_NON_BLOCKING_ORDER_STATES),
            )
            .limit(1)
        )
        return prior is not None


class CouponService:
    def __init__(self, uow_factory, validator: CouponValidator) -> None:
        self._uow_factory = uow_factory
        self._validator = validator

    def create_coupon(
        self,
        code: str,
        discount_type: str,
        discount_value,
        description: str | None = None,
        min_purchase=None,
        max_uses: int | None = None,
        expires_at: datetime | None = None,
    ) -> Coupon:
        coupon = Coupon.create(
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            description=description,
            min_purchase=min_purchase,
            max_uses=max_uses,
            expires_at=as_naive_utc(expires_at) if expires_at else None,
        )
        with self._uow_factory() as uow:
            repo = uow.repository_for(Coupon)
            if repo.find_by(code=coupon.code) is not None:
                raise ConflictError({"code": [f"Coupon `{coupon.code}` already exists"]})
            repo.add(coupon)

        logger.info("Coupon created", coupon_id=coupon.id, code=coupon.code)
        return coupon

    def deactivate(self, coupon_id: str) -> Coupon:
        with self._uow_factory() as uow:
            coupon = uow.repository_for(Coupon).get(coupon_id)
            coupon.is_active = False
        return coupon

    def validate(self, code: str, subtotal, buyer_id: str | None = None) -> CouponQuote:
        with self._uow_factory() as uow:
            return self._validator.validate(uow, code, subtotal, buyer_id)

    def list_active(self) -> list[Coupon]:
        with self._uow_factory() as uow:
            return uow.repository_for(Coupon).filter_by(is_active=True)
