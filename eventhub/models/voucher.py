from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eventhub.database import Base
from eventhub.models.coupon import DiscountType


class Voucher(Base):
    __tablename__ = "vouchers"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Integer, nullable=False)
    min_purchase = Column(Integer, nullable=True)
    max_discount = Column(Integer, nullable=True)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # NULL means unlimited
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())

    event = relationship("Event", back_populates="vouchers")

    __table_args__ = (
        UniqueConstraint("event_id", "code", name="uniq_voucher_event_code"),
        CheckConstraint("current_uses >= 0", name="check_voucher_uses_non_negative"),
    )

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.current_uses >= self.max_uses
