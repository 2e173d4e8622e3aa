from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eventhub.database import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(String(2000), nullable=True)
    location = Column(String(200), nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    total_seats = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    organizer = relationship("User", back_populates="events")
    tiers = relationship("TicketTier", back_populates="event", order_by="TicketTier.id")
    vouchers = relationship("Voucher", back_populates="event")

    @property
    def available_seats(self) -> int:
        return sum(tier.available for tier in self.tiers)


class TicketTier(Base):
    __tablename__ = "ticket_tiers"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)
    # Ceiling for `available`; fixed when the tier is created
    quantity = Column(Integer, nullable=False)
    available = Column(Integer, nullable=False)

    event = relationship("Event", back_populates="tiers")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_tier_price_non_negative"),
        CheckConstraint("available >= 0", name="check_tier_available_non_negative"),
        CheckConstraint("available <= quantity", name="check_tier_available_lte_quantity"),
    )

    def __repr__(self) -> str:
        return f"<TicketTier(id={self.id}, name={self.name}, available={self.available}/{self.quantity})>"
