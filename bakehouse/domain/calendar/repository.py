"""Calendar repository - availability windows, overrides, blackout dates, slot capacities, booking types"""

from collections import defaultdict
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    AvailabilityOverride,
    AvailabilityWindow,
    BlackoutDate,
    BookingType,
    PickupSlotCapacity,
)
from ...time_utils import WEEKDAY_NAMES, minutes_of, parse_time
from ..availability.engine import CalendarRules, OverrideRule, Window
from ..settings.schemas import TenantConfig


def _window(start: str, end: str) -> Optional[Window]:
    start_minutes = minutes_of(parse_time(start))
    end_minutes = minutes_of(parse_time(end))
    if start_minutes >= end_minutes:
        return None
    return Window(start=start_minutes, end=end_minutes)


class CalendarRepository:
    # Availability windows

    @staticmethod
    def list_windows(db: Session, tenant_id: str) -> list[AvailabilityWindow]:
        return (
            db.query(AvailabilityWindow)
            .filter(AvailabilityWindow.tenant_id == tenant_id)
            .order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)
            .all()
        )

    @staticmethod
    def replace_windows(db: Session, tenant_id: str, windows: list[dict]) -> list[AvailabilityWindow]:
        db.query(AvailabilityWindow).filter(AvailabilityWindow.tenant_id == tenant_id).delete()
        for window in windows:
            db.add(AvailabilityWindow(tenant_id=tenant_id, **window))
        db.commit()
        return CalendarRepository.list_windows(db, tenant_id)

    # Overrides

    @staticmethod
    def list_overrides(
        db: Session, tenant_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[AvailabilityOverride]:
        query = db.query(AvailabilityOverride).filter(AvailabilityOverride.tenant_id == tenant_id)
        if start:
            query = query.filter(AvailabilityOverride.date >= start)
        if end:
            query = query.filter(AvailabilityOverride.date <= end)
        return query.order_by(AvailabilityOverride.date).all()

    @staticmethod
    def upsert_override(db: Session, tenant_id: str, **data) -> AvailabilityOverride:
        override = (
            db.query(AvailabilityOverride)
            .filter(
                AvailabilityOverride.tenant_id == tenant_id,
                AvailabilityOverride.date == data["date"],
            )
            .first()
        )
        if override is None:
            override = AvailabilityOverride(tenant_id=tenant_id)
            db.add(override)
        for key, value in data.items():
            setattr(override, key, value)
        db.commit()
        db.refresh(override)
        return override

    @staticmethod
    def delete_override(db: Session, tenant_id: str, override_date: date) -> bool:
        deleted = (
            db.query(AvailabilityOverride)
            .filter(
                AvailabilityOverride.tenant_id == tenant_id,
                AvailabilityOverride.date == override_date,
            )
            .delete()
        )
        db.commit()
        return deleted > 0

    # Blackout dates

    @staticmethod
    def list_blackouts(db: Session, tenant_id: str) -> list[BlackoutDate]:
        return (
            db.query(BlackoutDate)
            .filter(BlackoutDate.tenant_id == tenant_id)
            .order_by(BlackoutDate.date)
            .all()
        )

    @staticmethod
    def add_blackout(
        db: Session, tenant_id: str, blackout_date: date, reason: Optional[str]
    ) -> BlackoutDate:
        blackout = (
            db.query(BlackoutDate)
            .filter(BlackoutDate.tenant_id == tenant_id, BlackoutDate.date == blackout_date)
            .first()
        )
        if blackout is None:
            blackout = BlackoutDate(tenant_id=tenant_id, date=blackout_date)
            db.add(blackout)
        blackout.reason = reason
        db.commit()
        db.refresh(blackout)
        return blackout

    @staticmethod
    def delete_blackout(db: Session, tenant_id: str, blackout_id: int) -> bool:
        deleted = (
            db.query(BlackoutDate)
            .filter(BlackoutDate.tenant_id == tenant_id, BlackoutDate.id == blackout_id)
            .delete()
        )
        db.commit()
        return deleted > 0

    # Slot capacities

    @staticmethod
    def list_capacities(db: Session, tenant_id: str) -> list[PickupSlotCapacity]:
        return (
            db.query(PickupSlotCapacity)
            .filter(PickupSlotCapacity.tenant_id == tenant_id)
            .order_by(PickupSlotCapacity.date, PickupSlotCapacity.time)
            .all()
        )

    @staticmethod
    def upsert_capacity(
        db: Session, tenant_id: str, slot_date: date, slot_time: str, capacity: int
    ) -> PickupSlotCapacity:
        row = (
            db.query(PickupSlotCapacity)
            .filter(
                PickupSlotCapacity.tenant_id == tenant_id,
                PickupSlotCapacity.date == slot_date,
                PickupSlotCapacity.time == slot_time,
            )
            .first()
        )
        if row is None:
            row = PickupSlotCapacity(tenant_id=tenant_id, date=slot_date, time=slot_time)
            db.add(row)
        row.capacity = capacity
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def delete_capacity(db: Session, tenant_id: str, capacity_id: int) -> bool:
        deleted = (
            db.query(PickupSlotCapacity)
            .filter(PickupSlotCapacity.tenant_id == tenant_id, PickupSlotCapacity.id == capacity_id)
            .delete()
        )
        db.commit()
        return deleted > 0

    # Booking types

    @staticmethod
    def list_booking_types(db: Session, tenant_id: str, active_only: bool = False) -> list[BookingType]:
        query = db.query(BookingType).filter(BookingType.tenant_id == tenant_id)
        if active_only:
            query = query.filter(BookingType.is_active.is_(True))
        return query.order_by(BookingType.name).all()

    @staticmethod
    def get_booking_type(db: Session, tenant_id: str, booking_type_id: int) -> Optional[BookingType]:
        return (
            db.query(BookingType)
            .filter(BookingType.tenant_id == tenant_id, BookingType.id == booking_type_id)
            .first()
        )

    @staticmethod
    def create_booking_type(db: Session, tenant_id: str, **data) -> BookingType:
        booking_type = BookingType(tenant_id=tenant_id, **data)
        db.add(booking_type)
        db.commit()
        db.refresh(booking_type)
        return booking_type

    @staticmethod
    def update_booking_type(db: Session, booking_type: BookingType, **updates) -> BookingType:
        for key, value in updates.items():
            setattr(booking_type, key, value)
        db.commit()
        db.refresh(booking_type)
        return booking_type

    # Engine input

    @staticmethod
    def load_rules(db: Session, config: TenantConfig, start: date, end: date) -> CalendarRules:
        """Snapshot every calendar rule that can affect [start, end]"""
        tenant_id = config.tenant_id
        weekly: dict[int, list[Window]] = defaultdict(list)
        for row in CalendarRepository.list_windows(db, tenant_id):
            if not row.is_active:
                continue
            window = _window(row.start_time, row.end_time)
            if window:
                weekly[row.day_of_week].append(window)

        overrides = {}
        for row in CalendarRepository.list_overrides(db, tenant_id, start, end):
            window = None
            if row.start_time and row.end_time:
                window = _window(row.start_time, row.end_time)
            overrides[row.date] = OverrideRule(is_available=row.is_available, window=window)

        blackouts = {
            row.date
            for row in db.query(BlackoutDate)
            .filter(
                BlackoutDate.tenant_id == tenant_id,
                BlackoutDate.date >= start,
                BlackoutDate.date <= end,
            )
            .all()
        }

        capacities = {
            (row.date, row.time): row.capacity
            for row in db.query(PickupSlotCapacity)
            .filter(
                PickupSlotCapacity.tenant_id == tenant_id,
                PickupSlotCapacity.date >= start,
                PickupSlotCapacity.date <= end,
            )
            .all()
        }

        pickup_hours = {}
        for index, name in enumerate(WEEKDAY_NAMES):
            hours = config.pickup_hours.get(name)
            if hours:
                window = _window(hours.start, hours.end)
                if window:
                    pickup_hours[index] = window

        return CalendarRules(
            weekly=dict(weekly),
            overrides=overrides,
            blackouts=blackouts,
            capacities=capacities,
            pickup_hours=pickup_hours,
        )
