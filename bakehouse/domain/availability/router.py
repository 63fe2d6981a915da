"""Public slot and availability queries, addressed by tenant"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import OrderType
from ..calendar.repository import CalendarRepository
from ..calendar.schemas import BookingTypeResponse
from ..settings.schemas import TenantConfig
from ..settings.service import get_tenant_config
from .schemas import MonthAvailabilityResponse, PickupSlotsResponse
from .service import AvailabilityService, get_availability_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tenants/{tenant_id}", tags=["Availability"])


@router.get("/slots", response_model=PickupSlotsResponse)
async def get_pickup_slots(
    order_type: OrderType = Query(...),
    start: date = Query(...),
    end: Optional[date] = Query(None),
    config: TenantConfig = Depends(get_tenant_config),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Pickup slots per date for a bakery order type"""
    return service.pickup_slots(config, order_type, start, end)


@router.get("/availability", response_model=MonthAvailabilityResponse)
async def get_month_availability(
    booking_type_id: int = Query(...),
    year: int = Query(...),
    month: int = Query(...),
    config: TenantConfig = Depends(get_tenant_config),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Consulting appointment slots for a whole month"""
    return service.month_availability(config, booking_type_id, year, month)


@router.get("/booking-types", response_model=list[BookingTypeResponse])
async def list_active_booking_types(tenant_id: str, db: Session = Depends(get_db)):
    return CalendarRepository.list_booking_types(db, tenant_id, active_only=True)
