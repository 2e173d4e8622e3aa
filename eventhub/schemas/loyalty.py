from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from eventhub.models.coupon import DiscountType
from eventhub.models.loyalty import LoyaltyKind


class LoyaltyEntryResponse(BaseModel):
    id: int
    points: int
    kind: LoyaltyKind
    description: str
    expires_at: Optional[datetime]
    transaction_id: Optional[int]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class PointsSummary(BaseModel):
    balance: int
    entries: list[LoyaltyEntryResponse]


class CouponInfo(BaseModel):
    code: str
    name: str
    discount_type: DiscountType
    discount_value: int
    min_purchase: Optional[int]
    max_discount: Optional[int]
    valid_until: datetime

    class Config:
        from_attributes = True


class UserCouponResponse(BaseModel):
    id: int
    is_used: bool
    used_at: Optional[datetime]
    coupon: CouponInfo

    class Config:
        from_attributes = True
