from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import logging
import secrets
import string

from sqlalchemy.orm import Session

from eventhub.config import get_settings
from eventhub.exceptions import InvalidReferralCode
from eventhub.models.coupon import Coupon, UserCoupon
from eventhub.models.loyalty import LoyaltyKind
from eventhub.models.user import User
from eventhub.services.loyalty import LoyaltyService, points_expiry

settings = get_settings()
logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class ReferralReward:
    referrer_points: int
    welcome_coupon: Optional[UserCoupon] = None


def generate_referral_code(length: int = 8) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class ReferralService:
    @staticmethod
    def unique_referral_code(db: Session) -> str:
        while True:
            code = generate_referral_code()
            if not db.query(User.id).filter(User.referral_code == code).first():
                return code

    @staticmethod
    def find_referrer(db: Session, code: str) -> User:
        referrer = db.query(User).filter(User.referral_code == code.strip().upper()).first()
        if not referrer:
            raise InvalidReferralCode()
        return referrer

    @staticmethod
    def reward(db: Session, referrer: User, new_user: User, now: datetime) -> ReferralReward:
        """Credit the referrer and grant the welcome coupon, if one is running. Does not commit."""
        points = settings.referral_bonus_points
        LoyaltyService.grant(
            db,
            referrer.id,
            points,
            LoyaltyKind.REFERRAL_EARNED,
            f"Referral bonus from {new_user.name}",
            expires_at=points_expiry(now)
        )

        welcome = db.query(Coupon).filter(
            Coupon.code == settings.welcome_coupon_code,
            Coupon.is_active.is_(True),
            Coupon.valid_from <= now,
            Coupon.valid_until >= now
        ).first()

        user_coupon = None
        if welcome:
            user_coupon = UserCoupon(user_id=new_user.id, coupon_id=welcome.id)
            db.add(user_coupon)
            db.flush()
        else:
            logger.info("No active welcome coupon, skipping grant")

        logger.info(f"Referral: user {referrer.id} earned {points} points for referring user {new_user.id}")
        return ReferralReward(referrer_points=points, welcome_coupon=user_coupon)
