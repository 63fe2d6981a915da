"""Order service - submission, staff actions and balance invoices"""

import logging
from datetime import date
from typing import Any, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ... import config as app_config
from ...database import get_db
from ...errors import NotFoundError, StateConflictError, ValidationError
from ...models import Order, OrderNote, OrderStatus, OrderType, generate_reference
from ...services.notification_service import NotificationService, get_notification_service
from ...services.stripe_service import StripeGateway, get_payment_gateway
from ...shared.money import calculate_deposit, format_money
from ...shared.validators import clean_text, validate_email, validate_us_phone
from ...time_utils import format_time, parse_time, utcnow
from ..availability.service import AvailabilityService
from ..settings.schemas import TenantConfig
from .lifecycle import TERMINAL_STATUSES, LifecycleEvent, TransitionResult, apply_event
from .pricing import (
    CHECKOUT_TYPES,
    ORDER_NUMBER_PREFIXES,
    ORDER_TYPE_LABELS,
    checkout_description,
    price_order,
)
from .repository import OrderRepository
from .schemas import ManualOrderCreate, OrderSubmission

logger = logging.getLogger(__name__)


def order_notification_data(order: Order, **extra: Any) -> dict[str, Any]:
    data = {
        "customer_name": order.customer_name,
        "order_number": order.order_number,
        "order_type_label": ORDER_TYPE_LABELS.get(order.order_type, order.order_type),
        "pickup_date": order.pickup_date.strftime("%A, %B %d, %Y") if order.pickup_date else "",
        "pickup_time": order.pickup_time or "",
        "total": format_money(order.total_amount),
        "deposit": format_money(order.deposit_amount),
    }
    data.update(extra)
    return data


def _normalize_time(value: Optional[str], label: str) -> Optional[str]:
    if not value:
        return None
    try:
        return format_time(parse_time(value))
    except ValueError as e:
        raise ValidationError(f"Invalid {label}") from e


class OrderService:
    def __init__(
        self,
        db: Session,
        gateway: Optional[StripeGateway] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.db = db
        self.repo = OrderRepository()
        self.gateway = gateway
        self.notifier = notifier

    def _validate_customer(
        self, name: Optional[str], email: Optional[str], phone: Optional[str]
    ) -> dict[str, str]:
        name = clean_text(name, 255)
        if not name:
            raise ValidationError("Name is required")
        if not email:
            raise ValidationError("Email is required")
        if not phone:
            raise ValidationError("Phone number is required")
        try:
            email = validate_email(email)
        except ValueError as e:
            raise ValidationError("Invalid email address") from e
        try:
            phone = validate_us_phone(phone)
        except ValueError as e:
            raise ValidationError("Invalid phone number") from e
        return {"customer_name": name, "customer_email": email, "customer_phone": phone}

    def _validate_dates(
        self, tenant: TenantConfig, submission: OrderSubmission, today: Optional[date]
    ) -> date:
        order_type = OrderType(submission.details.order_type)
        if order_type == OrderType.WEDDING:
            if not submission.event_date:
                raise ValidationError("Wedding date is required")
            requested = submission.event_date
        else:
            if not submission.pickup_date or not submission.pickup_time:
                raise ValidationError("Pickup date and time are required")
            requested = submission.pickup_date

        AvailabilityService(self.db).validate_requested_date(tenant, order_type, requested, today)
        return requested

    async def submit_order(
        self, tenant: TenantConfig, submission: OrderSubmission, today: Optional[date] = None
    ) -> tuple[Order, Optional[str]]:
        """
        Validate and persist a customer order.

        Returns the order and, for types paid at submission, the hosted checkout URL. The
        order is committed before the gateway is called; a gateway failure leaves it in
        pending_payment and is raised to the customer.
        """
        if submission.website or submission.company:
            logger.warning(f"🤖 Honeypot triggered on order submission for tenant {tenant.tenant_id}")
            raise ValidationError("Invalid submission")

        info = submission.customer
        customer = self._validate_customer(info.name, info.email, info.phone)
        self._validate_dates(tenant, submission, today)

        details = submission.details
        order_type = details.order_type
        total = price_order(tenant, details)
        payable = order_type in CHECKOUT_TYPES

        order = self.repo.create_order(
            self.db,
            tenant.tenant_id,
            order_number=generate_reference(ORDER_NUMBER_PREFIXES[order_type]),
            order_type=order_type,
            status=(OrderStatus.PENDING_PAYMENT if payable else OrderStatus.INQUIRY).value,
            event_date=submission.event_date,
            pickup_date=submission.pickup_date,
            pickup_time=_normalize_time(submission.pickup_time, "pickup time"),
            backup_date=submission.backup_date,
            backup_time=_normalize_time(submission.backup_time, "backup time"),
            pickup_person_name=clean_text(submission.pickup_person_name, 255),
            total_amount=total,
            deposit_amount=total if payable else None,
            form_data=details.model_dump(mode="json"),
            notes=clean_text(submission.notes),
            **customer,
        )
        logger.info(f"📥 Order {order.order_number} ({order_type}) received as {order.status}")

        if not payable:
            await self.notifier.notify_safely(
                tenant,
                "order_received",
                order_notification_data(order),
                to_email=order.customer_email,
            )
            return order, None

        session = await self.gateway.create_checkout_session(
            amount=total,
            description=checkout_description(details),
            customer_email=order.customer_email,
            metadata={
                "tenant_id": tenant.tenant_id,
                "order_id": order.id,
                "order_number": order.order_number,
                "payment_type": "full",
            },
            success_url=f"{app_config.SITE_URL}/order/success?order={order.order_number}",
            cancel_url=f"{app_config.SITE_URL}/order/cancelled?order={order.order_number}",
        )
        self.repo.update_order(self.db, order, checkout_session_id=session.id)
        return order, session.url

    def get_order(self, tenant_id: str, order_id: int) -> Order:
        order = self.repo.get_order(self.db, tenant_id, order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def list_orders(self, tenant_id: str, **filters) -> list[Order]:
        return self.repo.list_orders(self.db, tenant_id, **filters)

    async def create_manual_order(
        self, tenant: TenantConfig, data: ManualOrderCreate, created_by: Optional[str] = None
    ) -> Order:
        """
        Record an order taken by phone or in person.

        Staff may book any date, so the calendar lead-time rules are not applied. With a
        total the order waits in pending_payment for its deposit (the full amount for
        types paid up front), otherwise it starts as an inquiry to be quoted.
        """
        customer = self._validate_customer(data.customer_name, data.customer_email, data.customer_phone)
        order_type = data.order_type.value
        if order_type == OrderType.WEDDING.value:
            if not data.event_date:
                raise ValidationError("Wedding date is required")
        elif not data.pickup_date or not data.pickup_time:
            raise ValidationError("Pickup date and time are required")

        total = data.total_amount
        deposit = None
        if total is not None:
            deposit = total if order_type in CHECKOUT_TYPES else calculate_deposit(total, tenant.deposit_percentage)
        if data.send_invoice and not deposit:
            raise ValidationError("A total amount is required to send an invoice")

        order = self.repo.create_order(
            self.db,
            tenant.tenant_id,
            order_number=generate_reference(ORDER_NUMBER_PREFIXES[order_type]),
            order_type=order_type,
            status=(OrderStatus.INQUIRY if total is None else OrderStatus.PENDING_PAYMENT).value,
            event_date=data.event_date,
            pickup_date=data.pickup_date,
            pickup_time=_normalize_time(data.pickup_time, "pickup time"),
            total_amount=total,
            deposit_amount=deposit,
            form_data={"manually_created": True},
            notes=clean_text(data.notes),
            **customer,
        )
        logger.info(f"🧾 Manual order {order.order_number} ({order_type}) created by {created_by or 'staff'}")

        if data.send_invoice:
            invoice = await self.gateway.create_invoice(
                amount=deposit,
                description=f"{'Payment' if deposit >= total else 'Deposit'} for order {order.order_number}",
                customer_email=order.customer_email,
                customer_name=order.customer_name,
                metadata={
                    "tenant_id": tenant.tenant_id,
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "payment_type": "deposit",
                },
            )
            self.repo.update_order(self.db, order, invoice_id=invoice.id, invoice_url=invoice.hosted_url)
            logger.info(f"💰 Deposit invoice {invoice.id} ({deposit} cents) for order {order.order_number}")
        return order

    def list_notes(self, tenant_id: str, order_id: int) -> list[OrderNote]:
        order = self.get_order(tenant_id, order_id)
        return self.repo.list_notes(self.db, order.id)

    def add_note(
        self, tenant_id: str, order_id: int, note: Optional[str], created_by: Optional[str] = None
    ) -> OrderNote:
        text = clean_text(note, 5000)
        if not text:
            raise ValidationError("Note text is required")
        order = self.get_order(tenant_id, order_id)
        entry = self.repo.add_note(self.db, order, text, created_by)
        logger.info(f"📝 Note added to order {order.order_number}")
        return entry

    def _staff_transition(
        self,
        tenant_id: str,
        order_id: int,
        event: LifecycleEvent,
        conflict_message: str,
        stamps: Optional[dict] = None,
    ) -> Order:
        order = self.get_order(tenant_id, order_id)
        result: TransitionResult = apply_event(self.db, order, event, stamps)
        if not result.applied:
            self.db.rollback()
            raise StateConflictError(f"{conflict_message} (order is {result.from_status})")
        self.db.commit()
        self.db.refresh(order)
        return order

    def complete_order(self, tenant_id: str, order_id: int) -> Order:
        return self._staff_transition(
            tenant_id,
            order_id,
            LifecycleEvent.MARK_COMPLETED,
            "Only confirmed orders can be completed",
            {"completed_at": utcnow()},
        )

    def cancel_order(self, tenant_id: str, order_id: int) -> Order:
        return self._staff_transition(
            tenant_id, order_id, LifecycleEvent.CANCEL, "Order is already closed"
        )

    async def create_balance_invoice(self, tenant: TenantConfig, order_id: int) -> dict:
        order = self.get_order(tenant.tenant_id, order_id)
        if OrderStatus(order.status) in TERMINAL_STATUSES:
            raise StateConflictError(f"Cannot invoice an order that is {order.status}")
        if not order.total_amount:
            raise ValidationError("Order does not have a total amount set")
        if order.deposit_amount is None:
            raise ValidationError("Order does not have a deposit amount")

        balance = order.total_amount - order.deposit_amount
        if balance <= 0:
            raise ValidationError("No balance remaining")

        invoice = await self.gateway.create_invoice(
            amount=balance,
            description=f"Remaining balance for order {order.order_number}",
            customer_email=order.customer_email,
            customer_name=order.customer_name,
            metadata={
                "tenant_id": tenant.tenant_id,
                "order_id": order.id,
                "order_number": order.order_number,
                "payment_type": "balance",
            },
        )
        self.repo.update_order(
            self.db, order, balance_invoice_id=invoice.id, balance_invoice_url=invoice.hosted_url
        )
        logger.info(f"💰 Balance invoice {invoice.id} ({balance} cents) for order {order.order_number}")
        return {"invoiceId": invoice.id, "invoiceUrl": invoice.hosted_url, "balanceDue": balance}


def get_order_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notification_service),
) -> OrderService:
    return OrderService(db, gateway, notifier)
