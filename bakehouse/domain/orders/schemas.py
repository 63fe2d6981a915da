from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...models import OrderType
from .form_data import OrderDetails


class CustomerInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class OrderSubmission(BaseModel):
    customer: CustomerInfo
    details: OrderDetails
    pickup_date: Optional[date] = None
    pickup_time: Optional[str] = None
    backup_date: Optional[date] = None
    backup_time: Optional[str] = None
    pickup_person_name: Optional[str] = Field(None, max_length=255)
    event_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=2000)

    # Honeypots; real customers never fill these in
    website: Optional[str] = None
    company: Optional[str] = None


class ManualOrderCreate(BaseModel):
    """Order entered by staff for a phone or walk-in customer"""

    order_type: OrderType
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    event_date: Optional[date] = None
    pickup_date: Optional[date] = None
    pickup_time: Optional[str] = None
    total_amount: Optional[int] = Field(None, ge=0, description="Cents")
    notes: Optional[str] = Field(None, max_length=2000)
    send_invoice: bool = False


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    order_type: str
    status: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    event_date: Optional[date] = None
    pickup_date: Optional[date] = None
    pickup_time: Optional[str] = None
    backup_date: Optional[date] = None
    backup_time: Optional[str] = None
    pickup_person_name: Optional[str] = None
    total_amount: Optional[int] = None
    deposit_amount: Optional[int] = None
    form_data: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    invoice_url: Optional[str] = None
    balance_invoice_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    deposit_paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    reminder_sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class OrderSubmissionResponse(BaseModel):
    success: bool = True
    orderId: int
    orderNumber: str
    status: str
    checkoutUrl: Optional[str] = None


class BalanceInvoiceResponse(BaseModel):
    success: bool = True
    invoiceId: str
    invoiceUrl: Optional[str] = None
    balanceDue: int


class OrderNoteCreate(BaseModel):
    note: Optional[str] = None


class OrderNoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    note: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class OrderNotesResponse(BaseModel):
    notes: list[OrderNoteResponse]


class OrderNoteCreatedResponse(BaseModel):
    success: bool = True
    noteId: int


class ReminderSweepResponse(BaseModel):
    tenants: int
    sent: int
    failed: int
