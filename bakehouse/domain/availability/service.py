"""Availability service - loads rules and commitments, then runs the slot engine"""

import calendar
import logging
from dataclasses import asdict
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...errors import NotFoundError, ValidationError
from ...models import BookingType, OrderType
from ...time_utils import format_time, tenant_today
from ..calendar.repository import CalendarRepository
from ..settings.schemas import TenantConfig
from .engine import (
    BLACKOUT,
    CLOSED,
    LEAD_TIME,
    ServiceSpec,
    closed_reason,
    compute_slots,
    min_date,
    slots_for_date,
)
from .ledger import CommitmentLedger

logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 14
MAX_RANGE_DAYS = 92

LEAD_TIME_FIELDS = {
    OrderType.COOKIES: "lead_time_small_cookie",
    OrderType.COOKIE_CUPS: "lead_time_small_cookie",
    OrderType.EASTER_COLLECTION: "lead_time_small_cookie",
    OrderType.COOKIES_LARGE: "lead_time_large_cookie",
    OrderType.CAKE: "lead_time_cake",
    OrderType.WEDDING: "lead_time_wedding",
    OrderType.TASTING: "lead_time_tasting",
}


def lead_time_days(config: TenantConfig, order_type: OrderType) -> int:
    return getattr(config, LEAD_TIME_FIELDS[OrderType(order_type)])


def bakery_service(config: TenantConfig, order_type: OrderType) -> ServiceSpec:
    return ServiceSpec(
        kind=OrderType(order_type).value,
        lead_time_days=lead_time_days(config, order_type),
        duration_minutes=config.slot_interval_minutes,
        step_minutes=config.slot_interval_minutes,
        default_capacity=config.default_slot_capacity,
        honors_blackouts=True,
        uses_pickup_hours=True,
        counts_by_overlap=False,
    )


def consulting_service(config: TenantConfig, booking_type: BookingType) -> ServiceSpec:
    return ServiceSpec(
        kind=f"booking:{booking_type.slug}",
        lead_time_days=config.booking_lead_time_days,
        duration_minutes=booking_type.duration_minutes,
        step_minutes=booking_type.duration_minutes + (booking_type.buffer_after_minutes or 0),
        default_capacity=config.booking_slot_capacity,
        honors_blackouts=False,
        uses_pickup_hours=False,
        counts_by_overlap=True,
        max_per_day=booking_type.max_bookings_per_day,
    )


class AvailabilityService:
    def __init__(self, db: Session):
        self.db = db

    def pickup_slots(
        self,
        config: TenantConfig,
        order_type: OrderType,
        start: date,
        end: Optional[date] = None,
        today: Optional[date] = None,
    ) -> dict:
        end = end or start + timedelta(days=DEFAULT_RANGE_DAYS)
        if end < start:
            raise ValidationError("End date must be on or after start date")
        if (end - start).days > MAX_RANGE_DAYS:
            raise ValidationError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")

        today = today or tenant_today(config.timezone)
        service = bakery_service(config, order_type)
        rules = CalendarRepository.load_rules(self.db, config, start, end)
        commitments = CommitmentLedger.pickup_commitments(
            self.db, config.tenant_id, start, end, config.capacity_excluded_statuses
        )
        slots = compute_slots(rules, service, commitments, start, end, today)
        return {
            "slots": {d: [asdict(s) for s in day_slots] for d, day_slots in slots.items()},
            "leadTimeDays": service.lead_time_days,
            "minDate": min_date(service, today),
        }

    def get_active_booking_type(self, tenant_id: str, booking_type_id: int) -> BookingType:
        booking_type = CalendarRepository.get_booking_type(self.db, tenant_id, booking_type_id)
        if not booking_type or not booking_type.is_active:
            raise NotFoundError("Booking type not found")
        return booking_type

    def month_availability(
        self,
        config: TenantConfig,
        booking_type_id: int,
        year: int,
        month: int,
        today: Optional[date] = None,
    ) -> dict:
        if not 1 <= month <= 12 or not 2000 <= year <= 2100:
            raise ValidationError("Invalid year or month")

        booking_type = self.get_active_booking_type(config.tenant_id, booking_type_id)
        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
        today = today or tenant_today(config.timezone)

        service = consulting_service(config, booking_type)
        rules = CalendarRepository.load_rules(self.db, config, start, end)
        commitments = CommitmentLedger.booking_commitments(
            self.db, config.tenant_id, booking_type.id, start, end, config.booking_blocking_statuses
        )
        slots = compute_slots(rules, service, commitments, start, end, today)
        return {
            "bookingTypeId": booking_type.id,
            "durationMinutes": booking_type.duration_minutes,
            "dates": {
                d: [{"time": s.time, "available": s.available} for s in day_slots]
                for d, day_slots in slots.items()
            },
        }

    def validate_requested_date(
        self,
        config: TenantConfig,
        order_type: OrderType,
        requested: date,
        today: Optional[date] = None,
    ) -> None:
        """Reject a pickup/event date the calendar would not offer"""
        today = today or tenant_today(config.timezone)
        service = bakery_service(config, order_type)
        rules = CalendarRepository.load_rules(self.db, config, requested, requested)
        reason = closed_reason(rules, service, requested, today)
        if reason == LEAD_TIME:
            raise ValidationError(
                f"This order requires at least {service.lead_time_days} days notice. "
                f"The earliest available date is {min_date(service, today).isoformat()}."
            )
        if reason == BLACKOUT:
            raise ValidationError("We are not taking orders for the selected date")
        if reason == CLOSED:
            raise ValidationError("We are closed on the selected date")

    def is_booking_slot_available(
        self,
        config: TenantConfig,
        booking_type: BookingType,
        start: datetime,
        today: Optional[date] = None,
    ) -> bool:
        """Recompute the day's slots and check the requested start is offered with room left"""
        today = today or tenant_today(config.timezone)
        day = start.date()
        service = consulting_service(config, booking_type)
        rules = CalendarRepository.load_rules(self.db, config, day, day)
        commitments = CommitmentLedger.booking_commitments(
            self.db, config.tenant_id, booking_type.id, day, day, config.booking_blocking_statuses
        )
        requested = format_time(start.time())
        return any(
            slot.time == requested and slot.available
            for slot in slots_for_date(rules, service, commitments, day, today)
        )


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)
