"""Staff calendar management - windows, overrides, blackout dates, slot capacities, booking types"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...auth import StaffContext, get_current_staff
from ...database import get_db
from ...errors import NotFoundError
from .repository import CalendarRepository
from .schemas import (
    AvailabilityOverrideResponse,
    AvailabilityOverrideUpsert,
    AvailabilityWindowResponse,
    AvailabilityWindowsReplace,
    BlackoutDateCreate,
    BlackoutDateResponse,
    BookingTypeCreate,
    BookingTypeResponse,
    BookingTypeUpdate,
    SlotCapacityResponse,
    SlotCapacityUpsert,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/calendar", tags=["Calendar"])


@router.get("/windows", response_model=list[AvailabilityWindowResponse])
async def list_windows(staff: StaffContext = Depends(get_current_staff), db: Session = Depends(get_db)):
    return CalendarRepository.list_windows(db, staff.tenant_id)


@router.put("/windows", response_model=list[AvailabilityWindowResponse])
async def replace_windows(
    data: AvailabilityWindowsReplace,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    windows = CalendarRepository.replace_windows(
        db, staff.tenant_id, [w.model_dump() for w in data.windows]
    )
    logger.info(f"✅ Replaced availability windows for tenant {staff.tenant_id} ({len(windows)} rows)")
    return windows


@router.get("/overrides", response_model=list[AvailabilityOverrideResponse])
async def list_overrides(staff: StaffContext = Depends(get_current_staff), db: Session = Depends(get_db)):
    return CalendarRepository.list_overrides(db, staff.tenant_id)


@router.put("/overrides", response_model=AvailabilityOverrideResponse)
async def upsert_override(
    data: AvailabilityOverrideUpsert,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    return CalendarRepository.upsert_override(db, staff.tenant_id, **data.model_dump())


@router.delete("/overrides/{override_date}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_override(
    override_date: date,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    if not CalendarRepository.delete_override(db, staff.tenant_id, override_date):
        raise NotFoundError("Override not found")


@router.get("/blackout-dates", response_model=list[BlackoutDateResponse])
async def list_blackout_dates(
    staff: StaffContext = Depends(get_current_staff), db: Session = Depends(get_db)
):
    return CalendarRepository.list_blackouts(db, staff.tenant_id)


@router.post("/blackout-dates", response_model=BlackoutDateResponse, status_code=status.HTTP_201_CREATED)
async def add_blackout_date(
    data: BlackoutDateCreate,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    blackout = CalendarRepository.add_blackout(db, staff.tenant_id, data.date, data.reason)
    logger.info(f"📅 Blackout date {data.date} set for tenant {staff.tenant_id}")
    return blackout


@router.delete("/blackout-dates/{blackout_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blackout_date(
    blackout_id: int,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    if not CalendarRepository.delete_blackout(db, staff.tenant_id, blackout_id):
        raise NotFoundError("Blackout date not found")


@router.get("/slot-capacities", response_model=list[SlotCapacityResponse])
async def list_slot_capacities(
    staff: StaffContext = Depends(get_current_staff), db: Session = Depends(get_db)
):
    return CalendarRepository.list_capacities(db, staff.tenant_id)


@router.put("/slot-capacities", response_model=SlotCapacityResponse)
async def upsert_slot_capacity(
    data: SlotCapacityUpsert,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    return CalendarRepository.upsert_capacity(db, staff.tenant_id, data.date, data.time, data.capacity)


@router.delete("/slot-capacities/{capacity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot_capacity(
    capacity_id: int,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    if not CalendarRepository.delete_capacity(db, staff.tenant_id, capacity_id):
        raise NotFoundError("Slot capacity not found")


@router.get("/booking-types", response_model=list[BookingTypeResponse])
async def list_booking_types(
    staff: StaffContext = Depends(get_current_staff), db: Session = Depends(get_db)
):
    return CalendarRepository.list_booking_types(db, staff.tenant_id)


@router.post("/booking-types", response_model=BookingTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_type(
    data: BookingTypeCreate,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    return CalendarRepository.create_booking_type(db, staff.tenant_id, **data.model_dump())


@router.patch("/booking-types/{booking_type_id}", response_model=BookingTypeResponse)
async def update_booking_type(
    booking_type_id: int,
    data: BookingTypeUpdate,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    booking_type = CalendarRepository.get_booking_type(db, staff.tenant_id, booking_type_id)
    if not booking_type:
        raise NotFoundError("Booking type not found")
    return CalendarRepository.update_booking_type(
        db, booking_type, **data.model_dump(exclude_unset=True)
    )


@router.delete("/booking-types/{booking_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_booking_type(
    booking_type_id: int,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    """Booking types are deactivated rather than deleted; existing bookings keep referencing them"""
    booking_type = CalendarRepository.get_booking_type(db, staff.tenant_id, booking_type_id)
    if not booking_type:
        raise NotFoundError("Booking type not found")
    CalendarRepository.update_booking_type(db, booking_type, is_active=False)
