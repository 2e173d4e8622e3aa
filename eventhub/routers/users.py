from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.services.auth import get_current_user_required
from eventhub.services.loyalty import LoyaltyService
from eventhub.models.user import User
from eventhub.models.coupon import UserCoupon
from eventhub.schemas.loyalty import LoyaltyEntryResponse, PointsSummary, UserCouponResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me/points", response_model=PointsSummary)
async def my_points(
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db)
):
    db.refresh(user)
    return PointsSummary(
        balance=user.points,
        entries=[LoyaltyEntryResponse.model_validate(entry) for entry in LoyaltyService.history(db, user.id)]
    )


@router.get("/me/coupons", response_model=list[UserCouponResponse])
async def my_coupons(
    include_used: bool = False,
    user: User = Depends(get_current_user_required),
    db: Session = Depends(get_db)
):
    query = db.query(UserCoupon).filter(UserCoupon.user_id == user.id)
    if not include_used:
        query = query.filter(UserCoupon.is_used.is_(False))
    return query.order_by(UserCoupon.created_at.desc()).all()
