from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...time_utils import format_time, parse_time


def _normalize_time(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return format_time(parse_time(value))
    except ValueError as e:
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from e


class AvailabilityWindowBase(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday")
    start_time: str
    end_time: str
    is_active: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return _normalize_time(value)

    @model_validator(mode="after")
    def check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityWindowResponse(AvailabilityWindowBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


class AvailabilityWindowsReplace(BaseModel):
    windows: list[AvailabilityWindowBase]


class AvailabilityOverrideUpsert(BaseModel):
    date: date
    is_available: bool = True
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=255)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_times(cls, value):
        return _normalize_time(value)

    @model_validator(mode="after")
    def check_times(self):
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be set together")
        if self.start_time and self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityOverrideResponse(AvailabilityOverrideUpsert):
    model_config = ConfigDict(from_attributes=True)

    id: int


class BlackoutDateCreate(BaseModel):
    date: date
    reason: Optional[str] = Field(None, max_length=255)


class BlackoutDateResponse(BlackoutDateCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int


class SlotCapacityUpsert(BaseModel):
    date: date
    time: str
    capacity: int = Field(..., ge=0)

    @field_validator("time")
    @classmethod
    def normalize_time(cls, value):
        return _normalize_time(value)


class SlotCapacityResponse(SlotCapacityUpsert):
    model_config = ConfigDict(from_attributes=True)

    id: int


class BookingTypeCreate(BaseModel):
    slug: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    duration_minutes: int = Field(60, gt=0, le=24 * 60)
    buffer_after_minutes: int = Field(0, ge=0, le=24 * 60)
    max_bookings_per_day: Optional[int] = Field(None, gt=0)
    requires_approval: bool = False
    is_active: bool = True


class BookingTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    buffer_after_minutes: Optional[int] = Field(None, ge=0, le=24 * 60)
    max_bookings_per_day: Optional[int] = Field(None, gt=0)
    requires_approval: Optional[bool] = None
    is_active: Optional[bool] = None


class BookingTypeResponse(BookingTypeCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
