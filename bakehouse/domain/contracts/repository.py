"""Contract repository - Database operations for contracts"""

from typing import Any, Iterable, Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from ...models import Contract, ContractStatus
from ...time_utils import utcnow


class ContractRepository:
    @staticmethod
    def get_contracts(db: Session, tenant_id: str, order_id: Optional[int] = None) -> list[Contract]:
        query = db.query(Contract).filter(Contract.tenant_id == tenant_id)
        if order_id:
            query = query.filter(Contract.order_id == order_id)
        return query.order_by(Contract.created_at.desc(), Contract.id.desc()).all()

    @staticmethod
    def get_contract(db: Session, tenant_id: str, contract_id: int) -> Optional[Contract]:
        return (
            db.query(Contract)
            .filter(Contract.tenant_id == tenant_id, Contract.id == contract_id)
            .first()
        )

    @staticmethod
    def get_by_token(db: Session, token: str) -> Optional[Contract]:
        return db.query(Contract).filter(Contract.signing_token == token).first()

    @staticmethod
    def create_contract(db: Session, tenant_id: str, **contract_data) -> Contract:
        contract = Contract(tenant_id=tenant_id, **contract_data)
        db.add(contract)
        db.commit()
        db.refresh(contract)
        return contract

    @staticmethod
    def update_if_status(
        db: Session, contract_id: int, statuses: Iterable[str], **updates: Any
    ) -> bool:
        """Apply ``updates`` only while the stored status is in ``statuses``"""
        result = db.execute(
            update(Contract)
            .where(Contract.id == contract_id, Contract.status.in_(list(statuses)))
            .values(updated_at=utcnow(), **updates)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    def delete_unless_signed(db: Session, contract_id: int) -> bool:
        result = db.execute(
            delete(Contract)
            .where(Contract.id == contract_id, Contract.status != ContractStatus.SIGNED.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    def transition_status(
        db: Session, contract_id: int, from_statuses: Iterable[str], to_status: str, **values: Any
    ) -> bool:
        """Single conditional UPDATE; False when the contract was not in ``from_statuses``"""
        result = db.execute(
            update(Contract)
            .where(Contract.id == contract_id, Contract.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0
