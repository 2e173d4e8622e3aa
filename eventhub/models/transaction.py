from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eventhub.database import Base
import enum


class TransactionStatus(str, enum.Enum):
    WAITING_PAYMENT = "waiting_payment"
    WAITING_CONFIRMATION = "waiting_confirmation"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS = {
    TransactionStatus.WAITING_PAYMENT: frozenset({
        TransactionStatus.WAITING_CONFIRMATION,
        TransactionStatus.EXPIRED,
        TransactionStatus.CANCELED,
    }),
    TransactionStatus.WAITING_CONFIRMATION: frozenset({
        TransactionStatus.CONFIRMED,
        TransactionStatus.REJECTED,
    }),
    TransactionStatus.CONFIRMED: frozenset(),
    TransactionStatus.REJECTED: frozenset(),
    TransactionStatus.EXPIRED: frozenset(),
    TransactionStatus.CANCELED: frozenset(),
}


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    total_amount = Column(Integer, nullable=False)
    discount_amount = Column(Integer, nullable=False, default=0)
    final_amount = Column(Integer, nullable=False)
    points_used = Column(Integer, nullable=False, default=0)
    user_coupon_id = Column(Integer, ForeignKey("user_coupons.id"), nullable=True, unique=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id"), nullable=True)
    status = Column(Enum(TransactionStatus), nullable=False, default=TransactionStatus.WAITING_PAYMENT, index=True)
    payment_deadline = Column(DateTime, nullable=False)
    payment_proof_ref = Column(String(500), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    confirmed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    settled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="transactions", foreign_keys=[user_id])
    confirmer = relationship("User", foreign_keys=[confirmed_by])
    event = relationship("Event")
    tickets = relationship("TransactionTicket", back_populates="transaction", order_by="TransactionTicket.id")
    loyalty_entries = relationship("LoyaltyEntry", back_populates="transaction", order_by="LoyaltyEntry.id")
    user_coupon = relationship("UserCoupon")
    voucher = relationship("Voucher")


class TransactionTicket(Base):
    __tablename__ = "transaction_tickets"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    ticket_tier_id = Column(Integer, ForeignKey("ticket_tiers.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    # Price snapshot taken at checkout
    unit_price = Column(Integer, nullable=False)

    transaction = relationship("Transaction", back_populates="tickets")
    ticket_tier = relationship("TicketTier")

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity
