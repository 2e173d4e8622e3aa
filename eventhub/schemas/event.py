from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class TicketTierCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    price: int = Field(ge=0)
    quantity: int = Field(ge=1)


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = None
    start_date: datetime
    end_date: datetime
    total_seats: int = Field(ge=1)
    tiers: list[TicketTierCreate] = Field(min_length=1)


class TicketTierResponse(BaseModel):
    id: int
    name: str
    price: int
    quantity: int
    available: int

    class Config:
        from_attributes = True


class EventResponse(BaseModel):
    id: int
    organizer_id: int
    title: str
    description: Optional[str]
    location: Optional[str]
    start_date: datetime
    end_date: datetime
    total_seats: int
    available_seats: int
    tiers: list[TicketTierResponse] = []

    class Config:
        from_attributes = True


class EventAvailability(BaseModel):
    event_id: int
    available_seats: int
    tiers: list[TicketTierResponse]
