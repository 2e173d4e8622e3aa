from eventhub.models.user import User, UserRole
from eventhub.models.event import Event, TicketTier
from eventhub.models.transaction import Transaction, TransactionTicket, TransactionStatus
from eventhub.models.loyalty import LoyaltyEntry, LoyaltyKind
from eventhub.models.coupon import Coupon, UserCoupon, DiscountType
from eventhub.models.voucher import Voucher

__all__ = [
    "User", "UserRole",
    "Event", "TicketTier",
    "Transaction", "TransactionTicket", "TransactionStatus",
    "LoyaltyEntry", "LoyaltyKind",
    "Coupon", "UserCoupon", "DiscountType",
    "Voucher",
]
