"""Contract endpoints - staff drafting and the customer signing link"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from ...auth import StaffContext, get_current_staff
from ...database import get_db
from ...models import Contract
from ...rate_limiter import create_rate_limiter, get_client_ip
from ..settings.service import load_tenant_config
from .schemas import (
    ContractCreate,
    ContractResponse,
    ContractSignRequest,
    ContractSignResponse,
    ContractUpdate,
    PublicContractResponse,
)
from .service import ContractService, get_contract_service, render_contract_body

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/contracts", tags=["Contracts"])
public_router = APIRouter(prefix="/api/contracts/token", tags=["Contracts (public)"])

token_rate_limit = create_rate_limiter(limit=30, window_seconds=60, key_prefix="contract_token")


def _public_view(contract: Contract) -> PublicContractResponse:
    order = contract.order
    return PublicContractResponse(
        contract_number=contract.contract_number,
        status=contract.status,
        customer_name=order.customer_name,
        order_number=order.order_number,
        event_date=contract.event_date,
        venue_name=contract.venue_name,
        venue_address=contract.venue_address,
        guest_count=contract.guest_count,
        total_amount=contract.total_amount,
        deposit_percentage=contract.deposit_percentage,
        deposit_amount=contract.deposit_amount,
        payment_schedule=contract.payment_schedule,
        rendered_body=render_contract_body(contract),
        valid_until=contract.valid_until,
        signer_name=contract.signer_name,
        signed_at=contract.signed_at,
    )


@router.get("", response_model=list[ContractResponse])
async def list_contracts(
    order_id: Optional[int] = Query(None),
    staff: StaffContext = Depends(get_current_staff),
    service: ContractService = Depends(get_contract_service),
):
    return service.get_contracts(staff.tenant_id, order_id)


@router.post("", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
async def create_contract(
    data: ContractCreate,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
    service: ContractService = Depends(get_contract_service),
):
    return service.create_contract(load_tenant_config(db, staff.tenant_id), data)


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: int,
    staff: StaffContext = Depends(get_current_staff),
    service: ContractService = Depends(get_contract_service),
):
    return service.get_contract(staff.tenant_id, contract_id)


@router.patch("/{contract_id}", response_model=ContractResponse)
async def update_contract(
    contract_id: int,
    data: ContractUpdate,
    staff: StaffContext = Depends(get_current_staff),
    service: ContractService = Depends(get_contract_service),
):
    return service.update_contract(staff.tenant_id, contract_id, data)


@router.delete("/{contract_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contract(
    contract_id: int,
    staff: StaffContext = Depends(get_current_staff),
    service: ContractService = Depends(get_contract_service),
):
    service.delete_contract(staff.tenant_id, contract_id)


@router.post("/{contract_id}/send", response_model=ContractResponse)
async def send_contract(
    contract_id: int,
    staff: StaffContext = Depends(get_current_staff),
    db: Session = Depends(get_db),
    service: ContractService = Depends(get_contract_service),
):
    return await service.send_contract(load_tenant_config(db, staff.tenant_id), contract_id)


@public_router.get(
    "/{token}", response_model=PublicContractResponse, dependencies=[Depends(token_rate_limit)]
)
async def get_contract_by_token(token: str, service: ContractService = Depends(get_contract_service)):
    return _public_view(service.get_public_contract(token))


@public_router.post(
    "/{token}/sign", response_model=ContractSignResponse, dependencies=[Depends(token_rate_limit)]
)
async def sign_contract(
    token: str,
    data: ContractSignRequest,
    request: Request,
    service: ContractService = Depends(get_contract_service),
):
    contract = await service.sign_contract(
        token, data.signer_name, data.agreed, get_client_ip(request)
    )
    return ContractSignResponse(status=contract.status, signed_at=contract.signed_at)
