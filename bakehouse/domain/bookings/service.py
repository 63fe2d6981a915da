"""
Booking service

Creates consulting appointments. The requested start must be one of the slots the
availability engine offers for that day, recomputed from the store at request time.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...errors import StateConflictError, ValidationError
from ...models import Booking, BookingStatus
from ...services.notification_service import NotificationService, get_notification_service
from ...shared.validators import clean_text, validate_email, validate_us_phone
from ...time_utils import combine, format_time, parse_time
from ..availability.service import AvailabilityService
from ..settings.schemas import TenantConfig
from .repository import BookingRepository
from .schemas import BookingCreate

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.repo = BookingRepository()
        self.availability = AvailabilityService(db)
        self.notifier = notifier

    async def create_booking(
        self, tenant: TenantConfig, data: BookingCreate, today: Optional[date] = None
    ) -> Booking:
        if data.website:
            logger.warning(f"🤖 Honeypot triggered on booking for tenant {tenant.tenant_id}")
            raise ValidationError("Invalid submission")

        booking_type = self.availability.get_active_booking_type(
            tenant.tenant_id, data.booking_type_id
        )

        name = clean_text(data.customer.name, 255)
        if not name or not data.customer.email:
            raise ValidationError("Name and email are required")
        try:
            email = validate_email(data.customer.email)
            phone = validate_us_phone(data.customer.phone)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        try:
            start_time = combine(data.booking_date, format_time(parse_time(data.time)))
        except ValueError as e:
            raise ValidationError("Invalid time") from e

        if not self.availability.is_booking_slot_available(tenant, booking_type, start_time, today):
            raise StateConflictError("Time slot is no longer available")

        status = (
            BookingStatus.PENDING if booking_type.requires_approval else BookingStatus.CONFIRMED
        )
        booking = self.repo.create_booking(
            self.db,
            tenant.tenant_id,
            booking_type_id=booking_type.id,
            customer_name=name,
            customer_email=email,
            customer_phone=phone,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=booking_type.duration_minutes),
            status=status.value,
            notes=clean_text(data.notes),
        )
        logger.info(
            f"📅 Booking {booking.id} ({booking_type.slug}) at {start_time:%Y-%m-%d %H:%M} "
            f"created as {booking.status}"
        )

        await self.notifier.notify_safely(
            tenant,
            "booking_confirmed",
            {
                "customer_name": name,
                "booking_type_name": booking_type.name,
                "booking_status": booking.status,
                "date": data.booking_date.strftime("%A, %B %d, %Y"),
                "time": start_time.strftime("%I:%M %p").lstrip("0"),
            },
            to_email=email,
        )
        return booking


def get_booking_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> BookingService:
    return BookingService(db, notifier)
