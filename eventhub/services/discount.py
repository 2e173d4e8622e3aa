from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session

from eventhub.exceptions import (
    InsufficientPoints, InvalidOrExpiredCoupon, InvalidOrExpiredVoucher,
    MinimumPurchaseNotMet, CouponAlreadyUsed, VoucherExhausted, ValidationFailed
)
from eventhub.models.coupon import Coupon, UserCoupon, DiscountType
from eventhub.models.user import User
from eventhub.models.voucher import Voucher


@dataclass
class DiscountRequest:
    points: int = 0
    user_coupon_id: Optional[int] = None
    voucher_code: Optional[str] = None


@dataclass
class DiscountResult:
    base_amount: int
    points_applied: int = 0
    coupon_discount: int = 0
    voucher_discount: int = 0
    user_coupon: Optional[UserCoupon] = None
    voucher: Optional[Voucher] = None

    @property
    def total_discount(self) -> int:
        """Discount actually taken off the charge; never more than the base amount."""
        return min(self.base_amount, self.points_applied + self.coupon_discount + self.voucher_discount)

    @property
    def final_amount(self) -> int:
        return max(0, self.base_amount - self.points_applied - self.coupon_discount - self.voucher_discount)


def compute_discount(
    base_amount: int,
    discount_type: DiscountType,
    discount_value: int,
    max_discount: Optional[int] = None
) -> int:
    if discount_type == DiscountType.FIXED:
        return discount_value

    discount = base_amount * discount_value // 100
    if max_discount is not None:
        discount = min(discount, max_discount)
    return discount


class DiscountService:
    @staticmethod
    def resolve(
        db: Session,
        user: User,
        event_id: int,
        base_amount: int,
        request: DiscountRequest,
        now: Optional[datetime] = None
    ) -> DiscountResult:
        """
        Work out what each requested instrument takes off `base_amount`.

        Points, coupon and voucher stack. Each is computed independently from
        the base amount; only the final charge is clamped at zero. Nothing is
        consumed here: the settlement service spends the instruments inside
        its own unit of work.
        """
        now = now or datetime.utcnow()
        result = DiscountResult(base_amount=base_amount)

        if request.points:
            result.points_applied = DiscountService.resolve_points(user, base_amount, request.points)

        if request.user_coupon_id is not None:
            user_coupon = DiscountService.find_user_coupon(db, user.id, request.user_coupon_id, now)
            coupon = user_coupon.coupon
            DiscountService.check_minimum_purchase(base_amount, coupon.min_purchase, "coupon")
            result.user_coupon = user_coupon
            result.coupon_discount = compute_discount(
                base_amount, coupon.discount_type, coupon.discount_value, coupon.max_discount
            )

        if request.voucher_code:
            voucher = DiscountService.find_voucher(db, event_id, request.voucher_code, now)
            DiscountService.check_minimum_purchase(base_amount, voucher.min_purchase, "voucher")
            result.voucher = voucher
            result.voucher_discount = compute_discount(
                base_amount, voucher.discount_type, voucher.discount_value, voucher.max_discount
            )

        return result

    @staticmethod
    def resolve_points(user: User, base_amount: int, requested: int) -> int:
        if requested < 0:
            raise ValidationFailed("Points must not be negative")
        if requested > user.points:
            raise InsufficientPoints()
        return min(requested, user.points, base_amount)

    @staticmethod
    def find_user_coupon(db: Session, user_id: int, user_coupon_id: int, now: datetime) -> UserCoupon:
        user_coupon = db.query(UserCoupon).join(Coupon).filter(
            UserCoupon.id == user_coupon_id,
            UserCoupon.user_id == user_id,
            Coupon.is_active.is_(True),
            Coupon.valid_from <= now,
            Coupon.valid_until >= now
        ).first()

        if not user_coupon:
            raise InvalidOrExpiredCoupon()
        if user_coupon.is_used:
            raise CouponAlreadyUsed()
        return user_coupon

    @staticmethod
    def find_voucher(db: Session, event_id: int, code: str, now: datetime) -> Voucher:
        voucher = db.query(Voucher).filter(
            Voucher.code == code,
            Voucher.event_id == event_id,
            Voucher.is_active.is_(True),
            Voucher.valid_from <= now,
            Voucher.valid_until >= now
        ).first()

        if not voucher:
            raise InvalidOrExpiredVoucher()
        if voucher.is_exhausted:
            raise VoucherExhausted()
        return voucher

    @staticmethod
    def check_minimum_purchase(base_amount: int, min_purchase: Optional[int], instrument: str) -> None:
        if min_purchase and base_amount < min_purchase:
            raise MinimumPurchaseNotMet(f"Minimum purchase {min_purchase} required for this {instrument}")
