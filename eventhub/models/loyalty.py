from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eventhub.database import Base
import enum


class LoyaltyKind(str, enum.Enum):
    REFERRAL_EARNED = "referral_earned"
    PURCHASE_EARNED = "purchase_earned"
    PURCHASE_USED = "purchase_used"
    RESTORED = "restored"


class LoyaltyEntry(Base):
    """Append-only ledger row. Positive points are grants, negative are debits."""

    __tablename__ = "loyalty_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    points = Column(Integer, nullable=False)
    kind = Column(Enum(LoyaltyKind), nullable=False)
    description = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="loyalty_entries")
    transaction = relationship("Transaction", back_populates="loyalty_entries")
