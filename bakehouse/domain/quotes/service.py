"""
Quote service

Staff build a quote against an order, send it, and the customer approves it through the
link in the email. Approval creates the deposit invoice in the payment gateway; the
quote is converted once that invoice is paid.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ... import config as app_config
from ...database import get_db
from ...errors import NotFoundError, StateConflictError, ValidationError
from ...models import OrderStatus, Quote, QuoteStatus, generate_reference
from ...services.notification_service import NotificationService, get_notification_service
from ...services.stripe_service import StripeGateway, get_payment_gateway
from ...shared.money import format_money
from ...time_utils import end_of_day_passed, tenant_today, utcnow
from ..orders.lifecycle import TERMINAL_STATUSES, LifecycleEvent, apply_event
from ..orders.repository import OrderRepository
from ..settings.schemas import TenantConfig
from ..settings.service import load_tenant_config
from .repository import QuoteRepository
from .schemas import LineItemCreate, LineItemUpdate, QuoteCreate, QuoteUpdate

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (QuoteStatus.DRAFT.value, QuoteStatus.SENT.value)
LOCKED_STATUSES = (QuoteStatus.APPROVED.value, QuoteStatus.CONVERTED.value)


def quote_url(quote: Quote) -> str:
    return f"{app_config.SITE_URL}/quote/{quote.approval_token}"


class QuoteService:
    def __init__(
        self,
        db: Session,
        gateway: Optional[StripeGateway] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.db = db
        self.repo = QuoteRepository()
        self.gateway = gateway
        self.notifier = notifier

    # Staff operations

    def get_quote(self, tenant_id: str, quote_id: int) -> Quote:
        quote = self.repo.get_quote(self.db, tenant_id, quote_id)
        if not quote:
            raise NotFoundError("Quote not found")
        return quote

    def _get_editable(self, tenant_id: str, quote_id: int) -> Quote:
        quote = self.get_quote(tenant_id, quote_id)
        if quote.status not in EDITABLE_STATUSES:
            raise StateConflictError("Cannot edit quote in this status")
        return quote

    def list_quotes(self, tenant_id: str, order_id: Optional[int] = None) -> list[Quote]:
        return self.repo.list_quotes(self.db, tenant_id, order_id)

    def create_quote(self, tenant: TenantConfig, data: QuoteCreate, today: Optional[date] = None) -> Quote:
        order = OrderRepository.get_order(self.db, tenant.tenant_id, data.order_id)
        if not order:
            raise NotFoundError("Order not found")
        if OrderStatus(order.status) in TERMINAL_STATUSES:
            raise StateConflictError(f"Cannot quote an order that is {order.status}")

        today = today or tenant_today(tenant.timezone)
        valid_days = data.valid_days or tenant.quote_validity_days
        deposit_percentage = (
            data.deposit_percentage
            if data.deposit_percentage is not None
            else tenant.deposit_percentage
        )

        quote = self.repo.create_quote(
            self.db,
            tenant.tenant_id,
            order_id=order.id,
            quote_number=generate_reference("Q"),
            status=QuoteStatus.DRAFT.value,
            deposit_percentage=deposit_percentage,
            valid_until=today + timedelta(days=valid_days),
            notes=data.notes,
            customer_message=data.customer_message,
        )
        for index, item in enumerate(data.line_items):
            self.repo.add_line_item(
                self.db,
                quote.id,
                item.description,
                item.quantity,
                item.unit_price,
                item.sort_order if item.sort_order is not None else index,
            )
        self.repo.recalculate_totals(self.db, quote)
        self.db.commit()
        self.db.refresh(quote)
        logger.info(f"✅ Created quote {quote.quote_number} for order {order.order_number}")
        return quote

    def _save_totals(self, quote: Quote, **fields) -> Quote:
        """Commit pending line item changes with fresh totals, unless the quote left draft/sent meanwhile"""
        if not self.repo.recalculate_totals(self.db, quote, EDITABLE_STATUSES, **fields):
            self.db.rollback()
            raise StateConflictError("Cannot edit quote in this status")
        self.db.commit()
        self.db.refresh(quote)
        return quote

    def update_quote(self, tenant_id: str, quote_id: int, data: QuoteUpdate) -> Quote:
        quote = self._get_editable(tenant_id, quote_id)
        fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        return self._save_totals(quote, **fields)

    def delete_quote(self, tenant_id: str, quote_id: int) -> None:
        quote = self.get_quote(tenant_id, quote_id)
        if quote.status in LOCKED_STATUSES:
            raise StateConflictError("Cannot delete an approved quote")

        quote_number = quote.quote_number
        if not self.repo.delete_unless_locked(self.db, quote.id, LOCKED_STATUSES):
            self.db.rollback()
            raise StateConflictError("Cannot delete an approved quote")
        self.db.expunge(quote)
        self.db.commit()
        logger.info(f"🗑️ Deleted quote {quote_number}")

    def add_line_item(self, tenant_id: str, quote_id: int, data: LineItemCreate) -> Quote:
        quote = self._get_editable(tenant_id, quote_id)
        sort_order = (
            data.sort_order
            if data.sort_order is not None
            else self.repo.next_sort_order(self.db, quote.id)
        )
        self.repo.add_line_item(
            self.db, quote.id, data.description, data.quantity, data.unit_price, sort_order
        )
        return self._save_totals(quote)

    def update_line_item(
        self, tenant_id: str, quote_id: int, item_id: int, data: LineItemUpdate
    ) -> Quote:
        quote = self._get_editable(tenant_id, quote_id)
        item = self.repo.get_line_item(self.db, quote.id, item_id)
        if not item:
            raise NotFoundError("Line item not found")
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(item, key, value)
        item.total_price = item.quantity * item.unit_price
        return self._save_totals(quote)

    def replace_line_items(self, tenant_id: str, quote_id: int, items: list[LineItemCreate]) -> Quote:
        quote = self._get_editable(tenant_id, quote_id)
        self.repo.delete_line_items(self.db, quote.id)
        for index, item in enumerate(items):
            self.repo.add_line_item(
                self.db,
                quote.id,
                item.description,
                item.quantity,
                item.unit_price,
                item.sort_order if item.sort_order is not None else index,
            )
        return self._save_totals(quote)

    def delete_line_item(self, tenant_id: str, quote_id: int, item_id: int) -> Quote:
        quote = self._get_editable(tenant_id, quote_id)
        if not self.repo.delete_line_items(self.db, quote.id, [item_id]):
            raise NotFoundError("Line item not found")
        return self._save_totals(quote)

    async def send_quote(self, tenant: TenantConfig, quote_id: int) -> Quote:
        quote = self.get_quote(tenant.tenant_id, quote_id)
        if quote.status in LOCKED_STATUSES:
            raise StateConflictError("Quote has already been approved")
        if quote.status not in EDITABLE_STATUSES:
            raise StateConflictError("Cannot send quote in this status")
        if self.repo.count_line_items(self.db, quote.id) == 0:
            raise ValidationError("Quote must have at least one line item")

        order = quote.order
        await self.notifier.notify(
            tenant,
            "quote_sent",
            {
                "customer_name": order.customer_name,
                "quote_number": quote.quote_number,
                "customer_message": quote.customer_message or "",
                "total": format_money(quote.total_amount),
                "deposit": format_money(quote.deposit_amount),
                "quote_url": quote_url(quote),
                "valid_until": quote.valid_until.isoformat() if quote.valid_until else "",
            },
            to_email=order.customer_email,
            to_phone=order.customer_phone,
        )

        self.repo.transition_status(
            self.db, quote.id, EDITABLE_STATUSES, QuoteStatus.SENT.value, sent_at=utcnow()
        )
        self.db.commit()
        self.db.refresh(quote)
        logger.info(f"📧 Quote {quote.quote_number} sent to {order.customer_email}")
        return quote

    # Customer operations (by token)

    def _expire_if_past(self, quote: Quote, today: date) -> None:
        if quote.status == QuoteStatus.SENT.value and end_of_day_passed(quote.valid_until, today):
            self.repo.transition_status(
                self.db, quote.id, [QuoteStatus.SENT.value], QuoteStatus.EXPIRED.value
            )
            self.db.commit()
            self.db.refresh(quote)
            logger.info(f"⌛ Quote {quote.quote_number} expired")

    def get_public_quote(self, token: str, today: Optional[date] = None) -> Quote:
        quote = self.repo.get_by_token(self.db, token)
        if not quote or quote.status == QuoteStatus.DRAFT.value:
            raise NotFoundError("Quote not found")
        tenant = load_tenant_config(self.db, quote.tenant_id)
        self._expire_if_past(quote, today or tenant_today(tenant.timezone))
        return quote

    async def approve_quote(self, token: str, today: Optional[date] = None) -> Quote:
        quote = self.repo.get_by_token(self.db, token)
        if not quote:
            raise NotFoundError("Quote not found")

        tenant = load_tenant_config(self.db, quote.tenant_id)
        today = today or tenant_today(tenant.timezone)

        if quote.status in LOCKED_STATUSES:
            raise StateConflictError("This quote has already been approved")
        if quote.status == QuoteStatus.EXPIRED.value:
            raise StateConflictError("This quote has expired")
        if quote.status != QuoteStatus.SENT.value:
            raise StateConflictError("This quote has not been sent yet")
        self._expire_if_past(quote, today)
        if quote.status == QuoteStatus.EXPIRED.value:
            raise StateConflictError("This quote has expired")
        if self.repo.count_line_items(self.db, quote.id) == 0:
            raise ValidationError("Quote has no line items")
        if quote.deposit_amount <= 0:
            raise ValidationError("Quote has no deposit to collect")

        order = quote.order
        if OrderStatus(order.status) in TERMINAL_STATUSES:
            raise StateConflictError(f"Order is {order.status}")

        invoice = await self.gateway.create_invoice(
            amount=quote.deposit_amount,
            description=f"Deposit for quote {quote.quote_number} (order {order.order_number})",
            customer_email=order.customer_email,
            customer_name=order.customer_name,
            metadata={
                "tenant_id": quote.tenant_id,
                "order_id": order.id,
                "order_number": order.order_number,
                "quote_id": quote.id,
                "payment_type": "deposit",
            },
        )

        approved = self.repo.transition_status(
            self.db,
            quote.id,
            [QuoteStatus.SENT.value],
            QuoteStatus.APPROVED.value,
            expected_totals=(quote.total_amount, quote.deposit_amount),
            approved_at=utcnow(),
            invoice_id=invoice.id,
            invoice_url=invoice.hosted_url,
        )
        if not approved:
            self.db.rollback()
            logger.warning(
                f"⚠️ Quote {quote.quote_number} changed during approval; invoice {invoice.id} left unused"
            )
            raise StateConflictError("This quote was changed or approved by another request")

        order.total_amount = quote.total_amount
        order.deposit_amount = quote.deposit_amount
        order.invoice_id = invoice.id
        order.invoice_url = invoice.hosted_url
        apply_event(self.db, order, LifecycleEvent.QUOTE_APPROVED)
        self.db.commit()
        self.db.refresh(quote)
        logger.info(f"✅ Quote {quote.quote_number} approved; deposit invoice {invoice.id}")

        await self.notifier.notify_safely(
            tenant,
            "quote_approved",
            {
                "customer_name": order.customer_name,
                "quote_number": quote.quote_number,
                "deposit": format_money(quote.deposit_amount),
                "invoice_url": invoice.hosted_url or "",
            },
            to_email=order.customer_email,
        )
        return quote


def get_quote_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notification_service),
) -> QuoteService:
    return QuoteService(db, gateway, notifier)
