"""Processed payment event log"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import PaymentEvent


class PaymentEventRepository:
    @staticmethod
    def is_processed(db: Session, provider_event_id: str) -> bool:
        return (
            db.query(PaymentEvent.id)
            .filter(PaymentEvent.provider_event_id == provider_event_id)
            .first()
            is not None
        )

    @staticmethod
    def record(
        db: Session,
        provider_event_id: str,
        event_type: str,
        outcome: str,
        order_id: Optional[int] = None,
        tenant_id: Optional[str] = None,
    ) -> PaymentEvent:
        """Add the log row to the current transaction; the caller commits"""
        event = PaymentEvent(
            provider_event_id=provider_event_id,
            event_type=event_type,
            outcome=outcome,
            order_id=order_id,
            tenant_id=tenant_id,
        )
        db.add(event)
        return event
