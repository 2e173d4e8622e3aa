from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.services.auth import require_roles
from eventhub.services.events import EventService
from eventhub.models.user import User, UserRole
from eventhub.schemas.event import EventCreate, EventResponse, EventAvailability, TicketTierResponse

router = APIRouter(prefix="/events", tags=["events"])


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    user: User = Depends(require_roles(UserRole.ORGANIZER, UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    return EventService.create_event(db, user, event_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: int, db: Session = Depends(get_db)):
    return EventService.get_event(db, event_id)


@router.get("/{event_id}/availability", response_model=EventAvailability)
async def event_availability(event_id: int, db: Session = Depends(get_db)):
    tiers = EventService.availability(db, event_id)
    return EventAvailability(
        event_id=event_id,
        available_seats=sum(tier.available for tier in tiers),
        tiers=[TicketTierResponse.model_validate(tier) for tier in tiers]
    )
