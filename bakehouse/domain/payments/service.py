"""
Payment event processor

Turns verified Stripe webhook events into order lifecycle events. Deliveries are
at-least-once and can arrive out of order, so every event is first checked against the
processed-event log, and the log row is written in the same commit as the transition.
Lifecycle conflicts are logged outcomes, never errors: the webhook always acknowledges
an event it has looked at.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import get_db
from ...errors import ValidationError
from ...models import Order, QuoteStatus
from ...services.notification_service import NotificationService, get_notification_service
from ...shared.money import format_money
from ...time_utils import utcnow
from ..orders.lifecycle import (
    LifecycleEvent,
    TransitionResult,
    apply_event,
    record_payment_awaiting_contract,
)
from ..orders.repository import OrderRepository
from ..orders.service import order_notification_data
from ..quotes.repository import QuoteRepository
from ..settings.service import load_tenant_config
from .repository import PaymentEventRepository

logger = logging.getLogger(__name__)

OUTCOME_DUPLICATE = "duplicate"
OUTCOME_IGNORED = "ignored"
OUTCOME_NO_ORDER = "order_not_found"
OUTCOME_CONFLICT = "conflict"
OUTCOME_AWAITING_CONTRACT = "awaiting_contract"


@dataclass
class Notification:
    template_key: str
    data: dict[str, Any]
    to_email: Optional[str] = None
    to_phone: Optional[str] = None


@dataclass
class ProcessingResult:
    outcome: str
    order: Optional[Order] = None
    notifications: list[Notification] = field(default_factory=list)


def _outcome(result: TransitionResult) -> str:
    if result.applied:
        return result.to_status
    return OUTCOME_AWAITING_CONTRACT if result.awaiting_contract else OUTCOME_CONFLICT


def _metadata_id(metadata: dict[str, Any], key: str) -> Optional[int]:
    """Integer id from event metadata; None when missing or malformed"""
    value = metadata.get(key)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"⚠️ Webhook metadata has invalid {key} {value!r}")
        return None


class PaymentEventProcessor:
    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.orders = OrderRepository()
        self.events = PaymentEventRepository()
        self.notifier = notifier

    async def process_event(self, event: dict[str, Any]) -> str:
        """Apply one verified provider event and return its outcome label"""
        event_id = event.get("id")
        event_type = event.get("type")
        if not event_id or not event_type:
            raise ValidationError("Malformed webhook event")

        if self.events.is_processed(self.db, event_id):
            logger.info(f"🔁 Webhook event {event_id} ({event_type}) already processed")
            return OUTCOME_DUPLICATE

        obj = (event.get("data") or {}).get("object") or {}
        logger.info(f"📥 Processing webhook event {event_id}: {event_type}")

        handler = {
            "checkout.session.completed": self._checkout_completed,
            "checkout.session.expired": self._checkout_expired,
            "invoice.paid": self._invoice_paid,
            "payment_intent.payment_failed": self._payment_failed,
        }.get(event_type)

        if handler is None:
            logger.info(f"ℹ️ Unhandled webhook event type: {event_type}")
            result = ProcessingResult(OUTCOME_IGNORED)
        else:
            result = handler(obj)

        order = result.order
        self.events.record(
            self.db,
            event_id,
            event_type,
            result.outcome,
            order_id=order.id if order else None,
            tenant_id=order.tenant_id if order else None,
        )
        try:
            self.db.commit()
        except IntegrityError:
            # Another delivery of the same event committed first
            self.db.rollback()
            logger.info(f"🔁 Webhook event {event_id} processed concurrently")
            return OUTCOME_DUPLICATE

        if order is not None and result.notifications:
            tenant = load_tenant_config(self.db, order.tenant_id)
            for note in result.notifications:
                await self.notifier.notify_safely(
                    tenant,
                    note.template_key,
                    note.data,
                    to_email=note.to_email,
                    to_phone=note.to_phone,
                )

        logger.info(f"✅ Webhook event {event_id} ({event_type}) → {result.outcome}")
        return result.outcome

    def _find_order(self, obj: dict[str, Any]) -> Optional[Order]:
        metadata = obj.get("metadata") or {}
        order = None
        order_id = _metadata_id(metadata, "order_id")
        if order_id is not None:
            order = self.orders.get_order_any_tenant(self.db, order_id)
        if order is None and obj.get("object") == "checkout.session" and obj.get("id"):
            order = self.orders.get_by_checkout_session(self.db, obj["id"])

        tenant_id = metadata.get("tenant_id")
        if order is not None and tenant_id and tenant_id != order.tenant_id:
            logger.warning(
                f"⚠️ Webhook tenant {tenant_id} does not own order {order.order_number}"
            )
            return None
        if order is None:
            logger.warning(f"⚠️ No order found for webhook object {obj.get('id')}")
        return order

    def _admin_notification(self, order: Order, amount: Optional[int], kind: str) -> Notification:
        tenant = load_tenant_config(self.db, order.tenant_id)
        return Notification(
            "admin_payment_received",
            order_notification_data(order, amount=format_money(amount), payment_kind=kind),
            to_email=tenant.admin_email,
        )

    def _checkout_completed(self, obj: dict[str, Any]) -> ProcessingResult:
        order = self._find_order(obj)
        if order is None:
            return ProcessingResult(OUTCOME_NO_ORDER)
        if obj.get("payment_status") != "paid":
            logger.info(
                f"⚠️ Checkout for {order.order_number} completed with payment_status "
                f"{obj.get('payment_status')}"
            )
            return ProcessingResult(OUTCOME_IGNORED, order)

        stamps = {"paid_at": utcnow()}
        if obj.get("payment_intent"):
            stamps["payment_intent_id"] = obj["payment_intent"]
        result = apply_event(self.db, order, LifecycleEvent.CHECKOUT_COMPLETED, stamps)
        if not result.applied:
            return ProcessingResult(_outcome(result), order)

        self.db.refresh(order)
        amount = obj.get("amount_total") or order.total_amount
        return ProcessingResult(
            result.to_status,
            order,
            [
                Notification(
                    "order_confirmed",
                    order_notification_data(order),
                    to_email=order.customer_email,
                    to_phone=order.customer_phone,
                ),
                self._admin_notification(order, amount, "full payment"),
            ],
        )

    def _checkout_expired(self, obj: dict[str, Any]) -> ProcessingResult:
        order = self._find_order(obj)
        if order is None:
            return ProcessingResult(OUTCOME_NO_ORDER)
        result = apply_event(
            self.db,
            order,
            LifecycleEvent.CHECKOUT_EXPIRED,
            {"notes": (order.notes or "") + " | Payment session expired"},
        )
        return ProcessingResult(_outcome(result), order)

    def _payment_failed(self, obj: dict[str, Any]) -> ProcessingResult:
        error = (obj.get("last_payment_error") or {}).get("message", "unknown error")
        logger.warning(f"💳 Payment failed for intent {obj.get('id')}: {error}")
        return ProcessingResult(OUTCOME_IGNORED)

    def _confirm_paid(self, order: Order, paid_at) -> TransitionResult:
        """Fire BALANCE_PAID, or record the payment when a contract is still missing"""
        result = apply_event(self.db, order, LifecycleEvent.BALANCE_PAID, {"paid_at": paid_at})
        if result.awaiting_contract:
            record_payment_awaiting_contract(self.db, order, paid_at)
            logger.info(f"📝 Order {order.order_number} paid in full, awaiting signed contract")
        return result

    def _invoice_paid(self, obj: dict[str, Any]) -> ProcessingResult:
        order = self._find_order(obj)
        if order is None:
            return ProcessingResult(OUTCOME_NO_ORDER)

        metadata = obj.get("metadata") or {}
        amount = obj.get("amount_paid")
        now = utcnow()

        if metadata.get("payment_type") == "deposit":
            result = apply_event(
                self.db, order, LifecycleEvent.DEPOSIT_PAID, {"deposit_paid_at": now}
            )
            if not result.applied:
                return ProcessingResult(_outcome(result), order)

            quote_id = _metadata_id(metadata, "quote_id")
            if quote_id is not None:
                converted = QuoteRepository.transition_status(
                    self.db, quote_id, [QuoteStatus.APPROVED.value], QuoteStatus.CONVERTED.value
                )
                if converted:
                    logger.info(f"✅ Quote {quote_id} converted after deposit payment")

            self.db.refresh(order)
            outcome = result.to_status
            # A deposit covering the whole total settles the order too
            if order.total_amount is not None and (order.deposit_amount or 0) >= order.total_amount:
                outcome = _outcome(self._confirm_paid(order, now))
            self.db.refresh(order)
            return ProcessingResult(
                outcome,
                order,
                [
                    Notification(
                        "deposit_received",
                        order_notification_data(order, amount=format_money(amount or order.deposit_amount)),
                        to_email=order.customer_email,
                    ),
                    self._admin_notification(order, amount or order.deposit_amount, "deposit"),
                ],
            )

        result = self._confirm_paid(order, now)
        outcome = _outcome(result)
        if not result.applied and not result.awaiting_contract:
            return ProcessingResult(outcome, order)

        self.db.refresh(order)
        return ProcessingResult(
            outcome,
            order,
            [
                Notification(
                    "payment_received",
                    order_notification_data(order, amount=format_money(amount)),
                    to_email=order.customer_email,
                ),
                self._admin_notification(order, amount, "balance"),
            ],
        )


def get_payment_processor(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> PaymentEventProcessor:
    return PaymentEventProcessor(db, notifier)
