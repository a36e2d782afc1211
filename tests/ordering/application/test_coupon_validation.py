"""Application tests for coupon validation and consumption."""

from datetime import timedelta
from decimal import Decimal

import pytest

from ordering.coupon.coupon import Coupon
from shared.clock import utc_now
from shared.exceptions import (
    ConflictError,
    CouponAlreadyUsed,
    CouponExhausted,
    CouponExpired,
    CouponInvalid,
    MinPurchaseNotMet,
)


class TestValidate:
    def test_quote_for_valid_coupon(self, services, make_coupon):
        make_coupon(code="WELCOME10", discount_value="10")
        quote = services.coupons.validate("welcome10", Decimal("200.00"))
        assert quote.code == "WELCOME10"
        assert quote.discount_amount == Decimal("20.00")

    def test_unknown_code(self, services):
        with pytest.raises(CouponInvalid):
            services.coupons.validate("NOPE", Decimal("100"))

    def test_inactive_coupon_is_invalid(self, services, make_coupon):
        coupon = make_coupon()
        services.coupons.deactivate(coupon.id)
        with pytest.raises(CouponInvalid):
            services.coupons.validate(coupon.code, Decimal("100"))

    def test_expired(self, services, make_coupon):
        make_coupon(code="OLD", expires_at=utc_now() - timedelta(days=1))
        with pytest.raises(CouponExpired):
            services.coupons.validate("OLD", Decimal("100"))

    def test_exhausted(self, services, make_coupon):
        coupon = make_coupon(code="ONCE", max_uses=1)
        with services.unit_of_work() as uow:
            services.coupon_validator.consume(uow, coupon.id)
        with pytest.raises(CouponExhausted):
            services.coupons.validate("ONCE", Decimal("100"))

    def test_min_purchase(self, services, make_coupon):
        make_coupon(code="BIG", min_purchase="150")
        with pytest.raises(MinPurchaseNotMet):
            services.coupons.validate("BIG", Decimal("149.99"))
        assert services.coupons.validate("BIG", Decimal("150")).discount_amount == Decimal("15.00")

    def test_checks_run_in_order(self, services, make_coupon):
        # Expired and below minimum: expiry is reported first
        make_coupon(code="BOTH", min_purchase="500", expires_at=utc_now() - timedelta(days=1))
        with pytest.raises(CouponExpired):
            services.coupons.validate("BOTH", Decimal("10"))

    def test_already_used_by_buyer(self, services, make_coupon, pending_order):
        coupon = make_coupon()
        pending_order("cust-001", coupon_id=coupon.id)
        with pytest.raises(CouponAlreadyUsed):
            services.coupons.validate(coupon.code, Decimal("100"), buyer_id="cust-001")
        # Other buyers are unaffected
        services.coupons.validate(coupon.code, Decimal("100"), buyer_id="cust-002")

    def test_use_on_cancelled_order_does_not_block(self, services, make_coupon, pending_order):
        coupon = make_coupon()
        order = pending_order("cust-001", coupon_id=coupon.id)
        services.order_expiry.expire_unpaid_orders(as_of=order.expires_at + timedelta(minutes=1))
        quote = services.coupons.validate(coupon.code, Decimal("100"), buyer_id="cust-001")
        assert quote.discount_amount == Decimal("10.00")


class TestConsume:
    def test_consume_increments_used_count(self, services, make_coupon):
        coupon = make_coupon(max_uses=2)
        with services.unit_of_work() as uow:
            services.coupon_validator.consume(uow, coupon.id)
        with services.unit_of_work() as uow:
            assert uow.repository_for(Coupon).get(coupon.id).used_count == 1

    def test_consume_past_limit_fails(self, services, make_coupon):
        coupon = make_coupon(max_uses=1)
        with services.unit_of_work() as uow:
            services.coupon_validator.consume(uow, coupon.id)
        with pytest.raises(CouponExhausted):
            with services.unit_of_work() as uow:
                services.coupon_validator.consume(uow, coupon.id)


class TestCouponManagement:
    def test_duplicate_code_rejected(self, make_coupon):
        make_coupon(code="DUP")
        with pytest.raises(ConflictError):
            make_coupon(code="dup")

    def test_list_active(self, services, make_coupon):
        make_coupon(code="A")
        inactive = make_coupon(code="B")
        services.coupons.deactivate(inactive.id)
        assert [c.code for c in services.coupons.list_active()] == ["A"]
