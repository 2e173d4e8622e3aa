from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from eventhub.models.transaction import TransactionStatus


class CheckoutRequest(BaseModel):
    event_id: int
    ticket_tier_id: int
    quantity: int = Field(ge=1)
    points_used: int = Field(default=0, ge=0)
    coupon_id: Optional[int] = None
    voucher_code: Optional[str] = None


class PaymentProofSubmit(BaseModel):
    payment_proof_ref: str = Field(min_length=1, max_length=500)


class RejectRequest(BaseModel):
    reason: str


class TransactionTicketResponse(BaseModel):
    ticket_tier_id: int
    quantity: int
    unit_price: int
    subtotal: int

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    total_amount: int
    discount_amount: int
    final_amount: int
    points_used: int
    user_coupon_id: Optional[int]
    voucher_id: Optional[int]
    status: TransactionStatus
    payment_deadline: datetime
    payment_proof_ref: Optional[str]
    confirmed_at: Optional[datetime]
    confirmed_by: Optional[int]
    rejection_reason: Optional[str]
    created_at: Optional[datetime]
    tickets: list[TransactionTicketResponse] = []

    class Config:
        from_attributes = True


class TransactionPage(BaseModel):
    transactions: list[TransactionResponse]
    page: int
    total_pages: int
    total: int


class SettlementResponse(BaseModel):
    transaction: TransactionResponse
    points_awarded: int = 0
    points_restored: int = 0
