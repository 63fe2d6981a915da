from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LineItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(1, ge=1)
    unit_price: int = Field(..., ge=0, description="Cents")
    sort_order: Optional[int] = None


class LineItemUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    quantity: Optional[int] = Field(None, ge=1)
    unit_price: Optional[int] = Field(None, ge=0)
    sort_order: Optional[int] = None


class LineItemsReplace(BaseModel):
    items: list[LineItemCreate]


class LineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    quantity: int
    unit_price: int
    total_price: int
    sort_order: int


class QuoteCreate(BaseModel):
    order_id: int
    deposit_percentage: Optional[int] = Field(None, ge=0, le=100)
    valid_days: Optional[int] = Field(None, gt=0, le=365)
    notes: Optional[str] = None
    customer_message: Optional[str] = None
    line_items: list[LineItemCreate] = Field(default_factory=list)


class QuoteUpdate(BaseModel):
    deposit_percentage: Optional[int] = Field(None, ge=0, le=100)
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    customer_message: Optional[str] = None


class QuoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    quote_number: str
    status: str
    subtotal: int
    total_amount: int
    deposit_percentage: int
    deposit_amount: int
    notes: Optional[str] = None
    customer_message: Optional[str] = None
    valid_until: Optional[date] = None
    approval_token: str
    approved_at: Optional[datetime] = None
    invoice_id: Optional[str] = None
    invoice_url: Optional[str] = None
    sent_at: Optional[datetime] = None
    line_items: list[LineItemResponse] = Field(default_factory=list)


class PublicQuoteResponse(BaseModel):
    """What the customer sees through the approval link; no internal notes"""

    model_config = ConfigDict(from_attributes=True)

    quote_number: str
    status: str
    subtotal: int
    total_amount: int
    deposit_percentage: int
    deposit_amount: int
    customer_message: Optional[str] = None
    valid_until: Optional[date] = None
    approved_at: Optional[datetime] = None
    invoice_url: Optional[str] = None
    line_items: list[LineItemResponse] = Field(default_factory=list)
    customer_name: str
    order_number: str
    order_type: str


class QuoteApprovalResponse(BaseModel):
    success: bool = True
    status: str
    invoiceUrl: Optional[str] = None
