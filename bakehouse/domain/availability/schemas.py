from datetime import date

from pydantic import BaseModel, Field


class SlotResponse(BaseModel):
    time: str
    available: bool
    remaining: int


class PickupSlotsResponse(BaseModel):
    slots: dict[date, list[SlotResponse]]
    leadTimeDays: int
    minDate: date


class BookingSlotResponse(BaseModel):
    time: str
    available: bool


class MonthAvailabilityResponse(BaseModel):
    bookingTypeId: int
    durationMinutes: int
    dates: dict[date, list[BookingSlotResponse]] = Field(default_factory=dict)
