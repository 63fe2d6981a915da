"""Quote endpoints - staff editing and the customer approval link"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...auth import StaffContext, get_current_staff
from ...database import get_db
from ...models import Quote
from ...rate_limiter import create_rate_limiter
from ..settings.service import load_tenant_config
from .schemas import (
    LineItemCreate,
    LineItemResponse,
    LineItemsReplace,
    LineItemUpdate,
    PublicQuoteResponse,
    QuoteApprovalResponse,
    QuoteCreate,
    QuoteResponse,
    QuoteUpdate,
)
from .service import QuoteService, get_quote_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/quotes", tags=["Quotes"])
public_router = APIRouter(prefix="/api/quotes/token", tags=["Quotes (public)"])

token_rate_limit = create_rate_limiter(limit=30, window_seconds=60, key_prefix="quote_token")


def _public_view(quote: Quote) -> PublicQuoteResponse:
    order = quote.order
    return PublicQuoteResponse(
        quote_number=quote.quote_number,
        status=quote.status,
        subtotal=quote.subtotal,
        total_amount=quote.total_amount,
        deposit_percentage=quote.deposit_percentage,
        deposit_amount=quote.deposit_amount,
        customer_message=quote.customer_message,
        valid_until=quote.valid_until,
        approved_at=quote.approved_at,
        invoice_url=quote.invoice_url,
        line_items=[LineItemResponse.model_validate(item) for item in quote.line_items],
        customer_name=order.customer_name,
        order_number=order.order_number,
        order_type=order.order_type,
    )


@router.get("", response_model=list[QuoteResponse])
async def list_quotes(
    order_id: Optional[int] = Query(None),
    staff: StaffContext = Depends(get_current_staff),
    service: QuoteService = Depends(get_quote_service),
):
    return service.list_quotes(staff.tenant_id, order_id)


@router.post("", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def create_quote(
    data: QuoteCreate,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
    service: QuoteService = Depends(get_quote_service),
):
    return service.create_quote(load_tenant_config(db, staff.tenant_id), data)


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: int,
    staff: StaffContext = Depends(get_current_staff),
    service: QuoteService = Depends(get_quote_service),
):
    return service.get_quote(staff.tenant_id, quote_id)


@router.patch("/{quote_id}", response_model=QuoteResponse)
async def update_quote(
    quote_id: int,
    data: QuoteUpdate,
    staff: StaffContext = Depends(get_current_staff),
    service: QuoteService = Depends(get_quote_service),
):
    return service.update_quote(staff.tenant_id, quote_id, data)


@router.delete("/{quote_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quote(
    quote_id: int,
    staff: StaffContext = Depends(get_current_staff),
    service: QuoteService = Depends(get_quote_service),
):
    service.delete_quote(staff.tenant_id, quote_id)


@router.post("/{quote_id}/items", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def add_line_item(
    quote_id: int,
    data: LineItemCreate,
    staff: StaffContext = Depends(get_current_staff),
    service: QuoteService = Depends(get_quote_service),
):
    return service.add_line_item(staff.tenant_id, quote_id, data)


@router.put("/{quote_id}/items", response_model=QuoteResponse)
async def replace_line_items(
    quote_id: int,
    data: LineItemsReplace,
    staff: StaffContext = Depends(get_current_staff),
    service: QuoteService = Depends(get_quote_service),
):
    return service.replace_line_items(staff.tenant_id, quote_id, data.items)


@router.patch("/{quote_id}/items/{item_id}", response_model=QuoteResponse)
async def update_line_item(
    quote_id: int,
    item_id: int,
    data: LineItemUpdate,
    staff: StaffContext = Depends(get_current_staff),
    service: QuoteService = Depends(get_quote_service),
):
    return service.update_line_item(staff.tenant_id, quote_id, item_id, data)


@router.delete("/{quote_id}/items/{item_id}", response_model=QuoteResponse)
async def delete_line_item(
    quote_id: int,
    item_id: int,
    staff: StaffContext = Depends(get_current_staff),
    service: QuoteService = Depends(get_quote_service),
):
    return service.delete_line_item(staff.tenant_id, quote_id, item_id)


@router.post("/{quote_id}/send", response_model=QuoteResponse)
async def send_quote(
    quote_id: int,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
    service: QuoteService = Depends(get_quote_service),
):
    return await service.send_quote(load_tenant_config(db, staff.tenant_id), quote_id)


@public_router.get("/{token}", response_model=PublicQuoteResponse, dependencies=[Depends(token_rate_limit)])
async def get_quote_by_token(token: str, service: QuoteService = Depends(get_quote_service)):
    return _public_view(service.get_public_quote(token))


@public_router.post(
    "/{token}/approve", response_model=QuoteApprovalResponse, dependencies=[Depends(token_rate_limit)]
)
async def approve_quote(token: str, service: QuoteService = Depends(get_quote_service)):
    quote = await service.approve_quote(token)
    return QuoteApprovalResponse(status=quote.status, invoiceUrl=quote.invoice_url)
