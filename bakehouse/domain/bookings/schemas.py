"""Booking domain schemas"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..orders.schemas import CustomerInfo


class BookingCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_type_id: int
    booking_date: date = Field(..., alias="date")
    time: str = Field(..., description="Start time, HH:MM")
    customer: CustomerInfo
    notes: Optional[str] = Field(None, max_length=2000)

    # Honeypot
    website: Optional[str] = None


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_type_id: int
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: str
    notes: Optional[str] = None
    confirmation_token: str
