"""Domain tests for coupon creation and discount calculation."""

from datetime import datetime
from decimal import Decimal

import pytest

from ordering.coupon.coupon import Coupon, normalize_code
from shared.exceptions import ValidationError


class TestCouponCreation:
    def test_code_is_normalized(self):
        coupon = Coupon.create(code="  welcome10 ", discount_type="percentage", discount_value="10")
        assert coupon.code == "WELCOME10"
        assert normalize_code(" abc ") == "ABC"

    def test_percentage_above_100_rejected(self):
        with pytest.raises(ValidationError):
            Coupon.create(code="HALF", discount_type="percentage", discount_value="150")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            Coupon.create(code="X", discount_type="bogo", discount_value="10")

    def test_value_must_be_positive(self):
        with pytest.raises(ValidationError):
            Coupon.create(code="X", discount_type="fixed", discount_value="0")


class TestDiscount:
    def test_percentage(self):
        coupon = Coupon.create(code="P10", discount_type="percentage", discount_value="10")
        assert coupon.discount_for(Decimal("200.00")) == Decimal("20.00")

    def test_fixed_is_capped_at_subtotal(self):
        coupon = Coupon.create(code="F50", discount_type="fixed", discount_value="50")
        assert coupon.discount_for(Decimal("30.00")) == Decimal("30.00")
        assert coupon.discount_for(Decimal("80.00")) == Decimal("50.00")

    def test_expiry_and_exhaustion(self):
        coupon = Coupon.create(
            code="LIMITED",
            discount_type="fixed",
            discount_value="5",
            max_uses=1,
            expires_at=datetime(2026, 1, 1),
        )
        assert coupon.is_expired(datetime(2026, 1, 2))
        assert not coupon.is_expired(datetime(2025, 12, 31))
        assert not coupon.is_exhausted
        coupon.used_count = 1
        assert coupon.is_exhausted
