"""Public consulting booking endpoint"""

from fastapi import APIRouter, Depends, status

from ..settings.schemas import TenantConfig
from ..settings.service import get_tenant_config
from .schemas import BookingCreate, BookingResponse
from .service import BookingService, get_booking_service

router = APIRouter(prefix="/api/tenants/{tenant_id}/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    config: TenantConfig = Depends(get_tenant_config),
    service: BookingService = Depends(get_booking_service),
):
    return await service.create_booking(config, data)
