from sqlalchemy import Column, Integer, String, DateTime, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eventhub.database import Base
import enum


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    ORGANIZER = "organizer"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.CUSTOMER)
    # Denormalized balance; the loyalty ledger is the source of truth
    points = Column(Integer, nullable=False, default=0)
    referral_code = Column(String(20), unique=True, index=True, nullable=False)
    referred_by = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    events = relationship("Event", back_populates="organizer")
    transactions = relationship("Transaction", back_populates="user", foreign_keys="Transaction.user_id")
    loyalty_entries = relationship("LoyaltyEntry", back_populates="user", order_by="LoyaltyEntry.id")
    coupons = relationship("UserCoupon", back_populates="user")

    __table_args__ = (
        CheckConstraint("points >= 0", name="check_user_points_non_negative"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
