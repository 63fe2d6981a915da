"""Booking repository"""

from sqlalchemy.orm import Session

from ...models import Booking


class BookingRepository:
    @staticmethod
    def create_booking(db: Session, tenant_id: str, **booking_data) -> Booking:
        booking = Booking(tenant_id=tenant_id, **booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking
