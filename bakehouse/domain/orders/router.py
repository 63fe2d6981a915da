"""Order endpoints - public submission, staff management and the reminder trigger"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...auth import StaffContext, get_current_staff, verify_cron_secret
from ...database import get_db
from ...models import OrderStatus, OrderType
from ...services.notification_service import NotificationService, get_notification_service
from ..settings.schemas import TenantConfig
from ..settings.service import get_tenant_config, load_tenant_config
from .reminders import run_reminder_sweep
from .schemas import (
    BalanceInvoiceResponse,
    ManualOrderCreate,
    OrderNoteCreate,
    OrderNoteCreatedResponse,
    OrderNoteResponse,
    OrderNotesResponse,
    OrderResponse,
    OrderSubmission,
    OrderSubmissionResponse,
    ReminderSweepResponse,
)
from .service import OrderService, get_order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tenants/{tenant_id}/orders", tags=["Orders"])
admin_router = APIRouter(prefix="/api/admin/orders", tags=["Orders (staff)"])
cron_router = APIRouter(prefix="/api/cron", tags=["Scheduled jobs"])


@router.post("", response_model=OrderSubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_order(
    submission: OrderSubmission,
    config: TenantConfig = Depends(get_tenant_config),
    service: OrderService = Depends(get_order_service),
):
    order, checkout_url = await service.submit_order(config, submission)
    return OrderSubmissionResponse(
        orderId=order.id,
        orderNumber=order.order_number,
        status=order.status,
        checkoutUrl=checkout_url,
    )


@admin_router.get("", response_model=list[OrderResponse])
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    order_type: Optional[OrderType] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    staff: StaffContext = Depends(get_current_staff),
    service: OrderService = Depends(get_order_service),
):
    return service.list_orders(
        staff.tenant_id,
        status=status_filter.value if status_filter else None,
        order_type=order_type.value if order_type else None,
        limit=limit,
        offset=offset,
    )


@admin_router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_manual_order(
    data: ManualOrderCreate,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
):
    """Enter an order taken by phone or in person"""
    tenant = load_tenant_config(db, staff.tenant_id)
    return await service.create_manual_order(tenant, data, created_by=staff.user_id)


@admin_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    staff: StaffContext = Depends(get_current_staff),
    service: OrderService = Depends(get_order_service),
):
    return service.get_order(staff.tenant_id, order_id)


@admin_router.get("/{order_id}/notes", response_model=OrderNotesResponse)
async def list_order_notes(
    order_id: int,
    staff: StaffContext = Depends(get_current_staff),
    service: OrderService = Depends(get_order_service),
):
    notes = service.list_notes(staff.tenant_id, order_id)
    return OrderNotesResponse(notes=[OrderNoteResponse.model_validate(note) for note in notes])


@admin_router.post(
    "/{order_id}/notes",
    response_model=OrderNoteCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_order_note(
    order_id: int,
    data: OrderNoteCreate,
    staff: StaffContext = Depends(get_current_staff),
    service: OrderService = Depends(get_order_service),
):
    note = service.add_note(staff.tenant_id, order_id, data.note, created_by=staff.user_id)
    return OrderNoteCreatedResponse(noteId=note.id)


@admin_router.post("/{order_id}/complete", response_model=OrderResponse)
async def complete_order(
    order_id: int,
    staff: StaffContext = Depends(get_current_staff),
    service: OrderService = Depends(get_order_service),
):
    return service.complete_order(staff.tenant_id, order_id)


@admin_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: int,
    staff: StaffContext = Depends(get_current_staff),
    service: OrderService = Depends(get_order_service),
):
    return service.cancel_order(staff.tenant_id, order_id)


@admin_router.post("/{order_id}/balance-invoice", response_model=BalanceInvoiceResponse)
async def create_balance_invoice(
    order_id: int,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
    service: OrderService = Depends(get_order_service),
):
    """Invoice the customer for total minus deposit"""
    tenant = load_tenant_config(db, staff.tenant_id)
    return await service.create_balance_invoice(tenant, order_id)


@cron_router.post("/reminders", response_model=ReminderSweepResponse)
async def trigger_reminders(
    _: None = Depends(verify_cron_secret),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    return await run_reminder_sweep(db, notifier)
