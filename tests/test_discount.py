from datetime import timedelta

import pytest

from conftest import NOW, make_event, make_user, make_user_coupon, make_voucher
from eventhub.exceptions import (
    CouponAlreadyUsed, InsufficientPoints, InvalidOrExpiredCoupon,
    InvalidOrExpiredVoucher, MinimumPurchaseNotMet, VoucherExhausted
)
from eventhub.models.coupon import DiscountType
from eventhub.services.discount import DiscountRequest, DiscountService, compute_discount


def resolve(db, user, event, base_amount, **request):
    return DiscountService.resolve(db, user, event.id, base_amount, DiscountRequest(**request), NOW)


def test_no_instruments(db, customer, event):
    result = resolve(db, customer, event, 100000)

    assert result.points_applied == 0
    assert result.total_discount == 0
    assert result.final_amount == 100000


def test_points_are_capped_at_base_amount(db, customer, event):
    result = resolve(db, customer, event, 20000, points=25000)

    assert result.points_applied == 20000
    assert result.final_amount == 0


def test_points_above_balance_are_rejected(db, customer, event):
    with pytest.raises(InsufficientPoints):
        resolve(db, customer, event, 100000, points=25001)


def test_fixed_coupon(db, customer, event):
    user_coupon = make_user_coupon(db, customer, DiscountType.FIXED, 50000)

    result = resolve(db, customer, event, 299000, user_coupon_id=user_coupon.id)

    assert result.coupon_discount == 50000
    assert result.user_coupon.id == user_coupon.id
    assert result.final_amount == 249000


def test_percentage_coupon_floors_and_caps(db, customer, event):
    user_coupon = make_user_coupon(
        db, customer, DiscountType.PERCENTAGE, 15, code="FIFTEEN", max_discount=40000
    )

    result = resolve(db, customer, event, 299000, user_coupon_id=user_coupon.id)

    # floor(299000 * 15 / 100) = 44850, capped at 40000
    assert result.coupon_discount == 40000


def test_percentage_discount_floors():
    assert compute_discount(99999, DiscountType.PERCENTAGE, 10) == 9999


def test_coupon_of_another_user_is_invalid(db, customer, event):
    other = make_user(db, "other@example.com")
    user_coupon = make_user_coupon(db, other)

    with pytest.raises(InvalidOrExpiredCoupon):
        resolve(db, customer, event, 299000, user_coupon_id=user_coupon.id)


def test_expired_coupon_is_invalid(db, customer, event):
    user_coupon = make_user_coupon(db, customer, code="OLD", valid_until=NOW - timedelta(minutes=1))

    with pytest.raises(InvalidOrExpiredCoupon):
        resolve(db, customer, event, 299000, user_coupon_id=user_coupon.id)


def test_inactive_coupon_is_invalid(db, customer, event):
    user_coupon = make_user_coupon(db, customer, code="OFF", is_active=False)

    with pytest.raises(InvalidOrExpiredCoupon):
        resolve(db, customer, event, 299000, user_coupon_id=user_coupon.id)


def test_used_coupon_is_rejected(db, customer, event):
    user_coupon = make_user_coupon(db, customer)
    user_coupon.is_used = True
    db.commit()

    with pytest.raises(CouponAlreadyUsed):
        resolve(db, customer, event, 299000, user_coupon_id=user_coupon.id)


def test_coupon_minimum_purchase(db, customer, event):
    user_coupon = make_user_coupon(db, customer, min_purchase=500000)

    with pytest.raises(MinimumPurchaseNotMet):
        resolve(db, customer, event, 299000, user_coupon_id=user_coupon.id)


def test_voucher_is_scoped_to_event(db, customer, event, organizer):
    other_event = make_event(db, organizer)
    make_voucher(db, other_event, code="ELSEWHERE")

    with pytest.raises(InvalidOrExpiredVoucher):
        resolve(db, customer, event, 299000, voucher_code="ELSEWHERE")


def test_voucher_percentage(db, customer, event):
    make_voucher(db, event, code="JAZZ10", discount_value=10)

    result = resolve(db, customer, event, 299000, voucher_code="JAZZ10")

    assert result.voucher_discount == 29900
    assert result.final_amount == 269100


def test_exhausted_voucher(db, customer, event):
    make_voucher(db, event, code="GONE", max_uses=5, current_uses=5)

    with pytest.raises(VoucherExhausted):
        resolve(db, customer, event, 299000, voucher_code="GONE")


def test_voucher_minimum_purchase(db, customer, event):
    make_voucher(db, event, code="BIG", min_purchase=1000000)

    with pytest.raises(MinimumPurchaseNotMet):
        resolve(db, customer, event, 299000, voucher_code="BIG")


def test_all_instruments_stack_and_clamp_to_zero(db, customer, event):
    user_coupon = make_user_coupon(db, customer, DiscountType.FIXED, 50000)
    make_voucher(db, event, code="FLAT", discount_type=DiscountType.FIXED, discount_value=40000)

    result = resolve(
        db, customer, event, 60000,
        points=25000, user_coupon_id=user_coupon.id, voucher_code="FLAT"
    )

    assert result.points_applied == 25000
    assert result.coupon_discount == 50000
    assert result.voucher_discount == 40000
    assert result.final_amount == 0
    assert result.total_discount == 60000
