"""Order repository - Database operations for orders"""

from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import Order, OrderNote
from ...time_utils import utcnow


class OrderRepository:
    @staticmethod
    def create_order(db: Session, tenant_id: str, **order_data) -> Order:
        order = Order(tenant_id=tenant_id, **order_data)
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def get_order(db: Session, tenant_id: str, order_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.tenant_id == tenant_id, Order.id == order_id).first()

    @staticmethod
    def get_order_any_tenant(db: Session, order_id: int) -> Optional[Order]:
        """Lookup for gateway callbacks, which identify orders by id only"""
        return db.query(Order).filter(Order.id == order_id).first()

    @staticmethod
    def get_by_checkout_session(db: Session, session_id: str) -> Optional[Order]:
        return db.query(Order).filter(Order.checkout_session_id == session_id).first()

    @staticmethod
    def list_orders(
        db: Session,
        tenant_id: str,
        status: Optional[str] = None,
        order_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Order]:
        query = db.query(Order).filter(Order.tenant_id == tenant_id)
        if status:
            query = query.filter(Order.status == status)
        if order_type:
            query = query.filter(Order.order_type == order_type)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit).all()

    @staticmethod
    def update_order(db: Session, order: Order, **updates) -> Order:
        for key, value in updates.items():
            setattr(order, key, value)
        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def add_note(
        db: Session, order: Order, note: str, created_by: Optional[str] = None
    ) -> OrderNote:
        entry = OrderNote(
            tenant_id=order.tenant_id, order_id=order.id, note=note, created_by=created_by
        )
        db.add(entry)
        db.execute(
            update(Order)
            .where(Order.id == order.id)
            .values(updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(entry)
        return entry

    @staticmethod
    def list_notes(db: Session, order_id: int) -> list[OrderNote]:
        return (
            db.query(OrderNote)
            .filter(OrderNote.order_id == order_id)
            .order_by(OrderNote.created_at.desc(), OrderNote.id.desc())
            .all()
        )

    @staticmethod
    def due_for_reminder(
        db: Session, tenant_id: str, pickup_date: date, statuses: list[str]
    ) -> list[Order]:
        return (
            db.query(Order)
            .filter(
                Order.tenant_id == tenant_id,
                Order.pickup_date == pickup_date,
                Order.status.in_(statuses),
                Order.reminder_sent_at.is_(None),
            )
            .order_by(Order.pickup_time)
            .all()
        )

    @staticmethod
    def tenant_ids(db: Session) -> list[str]:
        return [row[0] for row in db.query(Order.tenant_id).distinct().all()]
