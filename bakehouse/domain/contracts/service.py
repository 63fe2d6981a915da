"""
Contract service

Wedding contracts are drafted by staff, sent to the customer, and signed through the
link in the email. A signed contract is final: the service refuses edits and deletes,
and the model's flush guard refuses them for any other code path as well.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ... import config as app_config
from ...database import get_db
from ...errors import NotFoundError, StateConflictError, ValidationError
from ...models import Contract, ContractStatus, OrderType, generate_reference
from ...services.notification_service import (
    NotificationService,
    get_notification_service,
    render_template,
)
from ...shared.money import calculate_deposit, format_money
from ...shared.validators import clean_text
from ...time_utils import end_of_day_passed, tenant_today, utcnow
from ..orders.lifecycle import LifecycleEvent, apply_event
from ..orders.repository import OrderRepository
from ..settings.schemas import TenantConfig
from ..settings.service import load_tenant_config
from .repository import ContractRepository
from .schemas import ContractCreate, ContractUpdate

logger = logging.getLogger(__name__)

CONTRACT_ORDER_TYPES = (OrderType.WEDDING.value,)
EDITABLE_STATUSES = (ContractStatus.DRAFT.value, ContractStatus.SENT.value)
DEFAULT_PAYMENT_SCHEDULE = (
    "Deposit due upon signing. Remaining balance due 2 weeks before event."
)
PREFILL_FIELDS = (
    "venue_name",
    "venue_address",
    "guest_count",
    "ceremony_time",
    "reception_time",
)


def contract_url(contract: Contract) -> str:
    return f"{app_config.SITE_URL}/contract/{contract.signing_token}"


def render_contract_body(contract: Contract) -> str:
    """Fill {{placeholders}} in the contract body; missing details read as TBD"""
    order = contract.order
    values = {
        "customer_name": order.customer_name,
        "contract_number": contract.contract_number,
        "order_number": order.order_number,
        "event_date": (
            contract.event_date.strftime("%A, %B %d, %Y").replace(" 0", " ")
            if contract.event_date
            else "TBD"
        ),
        "venue_name": contract.venue_name or "TBD",
        "venue_address": contract.venue_address or "TBD",
        "guest_count": contract.guest_count or "TBD",
        "ceremony_time": contract.ceremony_time or "TBD",
        "reception_time": contract.reception_time or "TBD",
        "services_description": contract.services_description or "TBD",
        "total_amount": format_money(contract.total_amount or 0),
        "deposit_percentage": contract.deposit_percentage,
        "deposit_amount": format_money(contract.deposit_amount or 0),
        "payment_schedule": contract.payment_schedule or "TBD",
    }
    return render_template(contract.contract_body or "", values)


class ContractService:
    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.repo = ContractRepository()
        self.notifier = notifier

    def get_contracts(self, tenant_id: str, order_id: Optional[int] = None) -> list[Contract]:
        return self.repo.get_contracts(self.db, tenant_id, order_id)

    def get_contract(self, tenant_id: str, contract_id: int) -> Contract:
        contract = self.repo.get_contract(self.db, tenant_id, contract_id)
        if not contract:
            raise NotFoundError("Contract not found")
        return contract

    def create_contract(
        self, tenant: TenantConfig, data: ContractCreate, today: Optional[date] = None
    ) -> Contract:
        order = OrderRepository.get_order(self.db, tenant.tenant_id, data.order_id)
        if not order:
            raise NotFoundError("Order not found")
        if order.order_type not in CONTRACT_ORDER_TYPES:
            raise ValidationError("Contracts can only be created for wedding orders")

        form_data = order.form_data or {}
        services = form_data.get("services_needed") or []
        prefill = {field: form_data.get(field) for field in PREFILL_FIELDS}
        prefill["event_date"] = order.event_date
        prefill["services_description"] = ", ".join(services) if services else None

        values = {
            key: value
            for key, value in data.model_dump(exclude={"order_id", "valid_days"}).items()
            if value is not None
        }
        fields = {**{k: v for k, v in prefill.items() if v is not None}, **values}

        deposit_percentage = fields.get("deposit_percentage", tenant.deposit_percentage)
        total = fields.get("total_amount", order.total_amount)
        today = today or tenant_today(tenant.timezone)

        fields.update(
            deposit_percentage=deposit_percentage,
            total_amount=total,
            deposit_amount=calculate_deposit(total, deposit_percentage) if total is not None else None,
            payment_schedule=fields.get("payment_schedule", DEFAULT_PAYMENT_SCHEDULE),
            contract_body=fields.get("contract_body", tenant.default_contract_body or None),
            valid_until=today + timedelta(days=data.valid_days or tenant.contract_validity_days),
        )

        contract = self.repo.create_contract(
            self.db,
            tenant.tenant_id,
            order_id=order.id,
            contract_number=generate_reference("WC"),
            status=ContractStatus.DRAFT.value,
            **fields,
        )
        logger.info(f"✅ Created contract {contract.contract_number} for order {order.order_number}")
        return contract

    def update_contract(self, tenant_id: str, contract_id: int, data: ContractUpdate) -> Contract:
        contract = self.get_contract(tenant_id, contract_id)
        if contract.status not in EDITABLE_STATUSES:
            raise StateConflictError("Cannot edit contract in this status")

        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if "total_amount" in updates or "deposit_percentage" in updates:
            total = updates.get("total_amount", contract.total_amount)
            percentage = updates.get("deposit_percentage", contract.deposit_percentage)
            updates["deposit_amount"] = (
                calculate_deposit(total, percentage) if total is not None else None
            )

        # The status read above may be stale; the write re-checks it in the same statement
        if not self.repo.update_if_status(self.db, contract.id, EDITABLE_STATUSES, **updates):
            self.db.rollback()
            raise StateConflictError("Cannot edit contract in this status")
        self.db.commit()
        self.db.refresh(contract)
        return contract

    def delete_contract(self, tenant_id: str, contract_id: int) -> None:
        contract = self.get_contract(tenant_id, contract_id)
        if contract.status == ContractStatus.SIGNED.value:
            raise StateConflictError("Cannot delete a signed contract")

        contract_number = contract.contract_number
        if not self.repo.delete_unless_signed(self.db, contract.id):
            self.db.rollback()
            raise StateConflictError("Cannot delete a signed contract")
        self.db.expunge(contract)
        self.db.commit()
        logger.info(f"🗑️ Deleted contract {contract_number}")

    async def send_contract(self, tenant: TenantConfig, contract_id: int) -> Contract:
        contract = self.get_contract(tenant.tenant_id, contract_id)
        if contract.status == ContractStatus.SIGNED.value:
            raise StateConflictError("Contract has already been signed")
        if contract.status not in EDITABLE_STATUSES:
            raise StateConflictError("Cannot send contract in this status")
        if not (contract.contract_body or "").strip():
            raise ValidationError("Contract body is required before sending")

        order = contract.order
        await self.notifier.notify(
            tenant,
            "contract_sent",
            {
                "customer_name": order.customer_name,
                "contract_number": contract.contract_number,
                "contract_url": contract_url(contract),
                "valid_until": contract.valid_until.isoformat() if contract.valid_until else "",
            },
            to_email=order.customer_email,
        )

        self.repo.transition_status(
            self.db, contract.id, EDITABLE_STATUSES, ContractStatus.SENT.value, sent_at=utcnow()
        )
        self.db.commit()
        self.db.refresh(contract)
        logger.info(f"📧 Contract {contract.contract_number} sent to {order.customer_email}")
        return contract

    def _expire_if_past(self, contract: Contract, today: date) -> None:
        if contract.status == ContractStatus.SENT.value and end_of_day_passed(
            contract.valid_until, today
        ):
            self.repo.transition_status(
                self.db, contract.id, [ContractStatus.SENT.value], ContractStatus.EXPIRED.value
            )
            self.db.commit()
            self.db.refresh(contract)
            logger.info(f"⌛ Contract {contract.contract_number} expired")

    def get_public_contract(self, token: str, today: Optional[date] = None) -> Contract:
        contract = self.repo.get_by_token(self.db, token)
        if not contract or contract.status == ContractStatus.DRAFT.value:
            raise NotFoundError("Contract not found")
        tenant = load_tenant_config(self.db, contract.tenant_id)
        self._expire_if_past(contract, today or tenant_today(tenant.timezone))
        return contract

    async def sign_contract(
        self,
        token: str,
        signer_name: Optional[str],
        agreed: bool,
        signer_ip: Optional[str],
        today: Optional[date] = None,
    ) -> Contract:
        contract = self.repo.get_by_token(self.db, token)
        if not contract:
            raise NotFoundError("Contract not found")

        if contract.status == ContractStatus.SIGNED.value:
            raise StateConflictError("Contract has already been signed")
        if contract.status == ContractStatus.EXPIRED.value:
            raise StateConflictError("This contract has expired")
        if contract.status != ContractStatus.SENT.value:
            raise StateConflictError("Contract has not been sent yet")

        name = clean_text(signer_name, 255)
        if not name:
            raise ValidationError("Signer name is required")
        if not agreed:
            raise ValidationError("You must agree to the contract terms")

        tenant = load_tenant_config(self.db, contract.tenant_id)
        self._expire_if_past(contract, today or tenant_today(tenant.timezone))
        if contract.status == ContractStatus.EXPIRED.value:
            raise StateConflictError("This contract has expired")

        signed_at = utcnow()
        signed = self.repo.transition_status(
            self.db,
            contract.id,
            [ContractStatus.SENT.value],
            ContractStatus.SIGNED.value,
            signed_at=signed_at,
            signer_name=name,
            signer_ip=signer_ip,
        )
        if not signed:
            self.db.rollback()
            raise StateConflictError("Contract has already been signed")
        self.db.commit()
        self.db.refresh(contract)
        logger.info(f"✍️ Contract {contract.contract_number} signed by {name}")

        # A balance paid before signing can confirm the order now
        order = contract.order
        if apply_event(self.db, order, LifecycleEvent.CONTRACT_SIGNED).applied:
            self.db.commit()

        data = {
            "customer_name": order.customer_name,
            "contract_number": contract.contract_number,
            "signer_name": name,
            "signed_at": signed_at.strftime("%Y-%m-%d %H:%M UTC"),
        }
        await self.notifier.notify_safely(tenant, "contract_signed", data, to_email=order.customer_email)
        if tenant.admin_email:
            await self.notifier.notify_safely(tenant, "contract_signed", data, to_email=tenant.admin_email)
        return contract


def get_contract_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> ContractService:
    return ContractService(db, notifier)
