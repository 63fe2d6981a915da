"""
Pickup reminder sweep

Finds orders picking up ``reminder_days_before`` days from today that have not had a
reminder yet and notifies the customer and the admin. Each order is claimed by a
conditional update of ``reminder_sent_at`` on ``IS NULL`` and committed before anything
is sent, so overlapping or repeated runs never remind twice. A failed customer send
releases the claim for the next run; a crash between claim and send loses that reminder.
"""

import logging
from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...errors import ExternalDependencyError
from ...models import Order, OrderStatus
from ...services.notification_service import NotificationService
from ...time_utils import tenant_today, utcnow
from ..settings.schemas import TenantConfig
from ..settings.service import load_tenant_config
from .repository import OrderRepository
from .service import order_notification_data

logger = logging.getLogger(__name__)

REMINDER_STATUSES = [OrderStatus.CONFIRMED.value, OrderStatus.DEPOSIT_PAID.value]


async def send_pickup_reminders(
    db: Session,
    tenant: TenantConfig,
    notifier: NotificationService,
    today: Optional[date] = None,
) -> dict[str, Any]:
    summary = {"tenant_id": tenant.tenant_id, "sent": 0, "failed": 0, "skipped": False}

    if not tenant.reminder_enabled:
        summary["skipped"] = True
        return summary

    today = today or tenant_today(tenant.timezone)
    target_date = today + timedelta(days=tenant.reminder_days_before)
    orders = OrderRepository.due_for_reminder(db, tenant.tenant_id, target_date, REMINDER_STATUSES)

    for order in orders:
        # Claim the order before sending so a concurrent run skips it
        claimed = db.execute(
            update(Order)
            .where(Order.id == order.id, Order.reminder_sent_at.is_(None))
            .values(reminder_sent_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if not claimed.rowcount:
            continue

        data = order_notification_data(order)
        try:
            await notifier.notify(
                tenant,
                "pickup_reminder",
                data,
                to_email=order.customer_email,
                to_phone=order.customer_phone,
            )
        except ExternalDependencyError as e:
            db.execute(
                update(Order)
                .where(Order.id == order.id)
                .values(reminder_sent_at=None)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            summary["failed"] += 1
            logger.error(f"❌ Reminder for order {order.order_number} failed: {e.message}")
            continue

        summary["sent"] += 1
        if tenant.admin_email:
            await notifier.notify_safely(
                tenant, "admin_pickup_reminder", data, to_email=tenant.admin_email
            )

    if orders:
        logger.info(
            f"⏰ Reminders for tenant {tenant.tenant_id} on {target_date}: "
            f"{summary['sent']} sent, {summary['failed']} failed"
        )
    return summary


async def run_reminder_sweep(
    db: Session, notifier: NotificationService, today: Optional[date] = None
) -> dict[str, int]:
    """Run the reminder sweep for every tenant that has orders"""
    totals = {"tenants": 0, "sent": 0, "failed": 0}
    for tenant_id in OrderRepository.tenant_ids(db):
        tenant = load_tenant_config(db, tenant_id)
        summary = await send_pickup_reminders(db, tenant, notifier, today)
        totals["tenants"] += 1
        totals["sent"] += summary["sent"]
        totals["failed"] += summary["failed"]
    return totals
