"""
Commitment ledger - read-only aggregates over placed orders and bookings.

Counts are always recomputed from the store on each query; nothing is cached
between requests.
"""

from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Booking, Order
from .engine import Commitments


class CommitmentLedger:
    @staticmethod
    def pickup_commitments(
        db: Session,
        tenant_id: str,
        start: date,
        end: date,
        excluded_statuses: Iterable[str],
    ) -> Commitments:
        """Orders per exact (pickup_date, pickup_time), ignoring non-committing statuses"""
        rows = (
            db.query(Order.pickup_date, Order.pickup_time, func.count(Order.id))
            .filter(
                Order.tenant_id == tenant_id,
                Order.pickup_date >= start,
                Order.pickup_date <= end,
                Order.pickup_time.isnot(None),
                Order.status.notin_(list(excluded_statuses)),
            )
            .group_by(Order.pickup_date, Order.pickup_time)
            .all()
        )
        exact = Counter()
        per_day = Counter()
        for pickup_date, pickup_time, count in rows:
            exact[(pickup_date, pickup_time)] += count
            per_day[pickup_date] += count
        return Commitments(exact=exact, per_day=per_day)

    @staticmethod
    def booking_commitments(
        db: Session,
        tenant_id: str,
        booking_type_id: int,
        start: date,
        end: date,
        blocking_statuses: Iterable[str],
    ) -> Commitments:
        """
        Booking intervals that block consulting slots.

        Every booking of the tenant occupies the calendar, whatever its type; the
        per-day count only covers ``booking_type_id`` for its daily maximum.
        """
        range_start = datetime.combine(start, time.min)
        range_end = datetime.combine(end + timedelta(days=1), time.min)
        bookings = (
            db.query(Booking)
            .filter(
                Booking.tenant_id == tenant_id,
                Booking.start_time < range_end,
                Booking.end_time > range_start,
                Booking.status.in_(list(blocking_statuses)),
            )
            .all()
        )
        per_day = Counter(
            b.start_time.date() for b in bookings if b.booking_type_id == booking_type_id
        )
        return Commitments(
            intervals=[(b.start_time, b.end_time) for b in bookings], per_day=per_day
        )
