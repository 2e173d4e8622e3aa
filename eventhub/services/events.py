from sqlalchemy.orm import Session

from eventhub.database import atomic
from eventhub.exceptions import EventNotFound, ValidationFailed
from eventhub.models.event import Event, TicketTier
from eventhub.models.user import User
from eventhub.schemas.event import EventCreate


class EventService:
    @staticmethod
    def create_event(db: Session, organizer: User, data: EventCreate) -> Event:
        if data.end_date < data.start_date:
            raise ValidationFailed("End date must be after start date")

        tier_total = sum(tier.quantity for tier in data.tiers)
        if tier_total > data.total_seats:
            raise ValidationFailed("Ticket tiers exceed the event's total seats")

        with atomic(db):
            event = Event(
                organizer_id=organizer.id,
                title=data.title,
                description=data.description,
                location=data.location,
                start_date=data.start_date,
                end_date=data.end_date,
                total_seats=data.total_seats
            )
            db.add(event)
            db.flush()

            for tier in data.tiers:
                db.add(TicketTier(
                    event_id=event.id,
                    name=tier.name,
                    price=tier.price,
                    quantity=tier.quantity,
                    available=tier.quantity
                ))

        db.refresh(event)
        return event

    @staticmethod
    def get_event(db: Session, event_id: int) -> Event:
        event = db.query(Event).filter(Event.id == event_id).populate_existing().first()
        if not event:
            raise EventNotFound()
        return event

    @staticmethod
    def availability(db: Session, event_id: int) -> list[TicketTier]:
        """Live remaining quantity per tier, read straight from the database."""
        EventService.get_event(db, event_id)
        return db.query(TicketTier).filter(
            TicketTier.event_id == event_id
        ).order_by(TicketTier.id).populate_existing().all()
