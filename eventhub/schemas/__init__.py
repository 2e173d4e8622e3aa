from eventhub.schemas.user import UserCreate, UserLogin, UserResponse, Token, TokenData
from eventhub.schemas.event import TicketTierCreate, EventCreate, EventResponse, EventAvailability
from eventhub.schemas.transaction import (
    CheckoutRequest, PaymentProofSubmit, RejectRequest,
    TransactionResponse, TransactionPage, SettlementResponse
)
from eventhub.schemas.loyalty import LoyaltyEntryResponse, PointsSummary, UserCouponResponse

__all__ = [
    "UserCreate", "UserLogin", "UserResponse", "Token", "TokenData",
    "TicketTierCreate", "EventCreate", "EventResponse", "EventAvailability",
    "CheckoutRequest", "PaymentProofSubmit", "RejectRequest",
    "TransactionResponse", "TransactionPage", "SettlementResponse",
    "LoyaltyEntryResponse", "PointsSummary", "UserCouponResponse"
]
