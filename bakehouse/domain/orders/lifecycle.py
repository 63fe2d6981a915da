"""
Order lifecycle

``next_status`` is the whole state machine: a pure function of the current status and
an event. It returns the new status, or None when the event does not apply. Applying an
event that does not apply is a logged no-op and never raises, so replayed or reordered
payment events converge.

``apply_event`` persists a transition as a single conditional UPDATE keyed by order id
and guarded by the status the decision was made from. A concurrent writer that got
there first makes the UPDATE match nothing, which is treated like any other conflict.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import Contract, ContractStatus, Order, OrderStatus, OrderType
from ...time_utils import utcnow

logger = logging.getLogger(__name__)


class LifecycleEvent(str, enum.Enum):
    CHECKOUT_COMPLETED = "checkout_completed"
    CHECKOUT_EXPIRED = "checkout_expired"
    DEPOSIT_PAID = "deposit_paid"
    BALANCE_PAID = "balance_paid"
    QUOTE_APPROVED = "quote_approved"
    CONTRACT_SIGNED = "contract_signed"
    MARK_COMPLETED = "mark_completed"
    CANCEL = "cancel"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})
OPEN_STATUSES = frozenset(
    {
        OrderStatus.INQUIRY,
        OrderStatus.PENDING_PAYMENT,
        OrderStatus.DEPOSIT_PAID,
        OrderStatus.CONFIRMED,
    }
)

TRANSITIONS: dict[LifecycleEvent, tuple[frozenset, OrderStatus]] = {
    LifecycleEvent.CHECKOUT_COMPLETED: (
        frozenset({OrderStatus.PENDING_PAYMENT}),
        OrderStatus.CONFIRMED,
    ),
    LifecycleEvent.CHECKOUT_EXPIRED: (
        frozenset({OrderStatus.PENDING_PAYMENT}),
        OrderStatus.CANCELLED,
    ),
    LifecycleEvent.DEPOSIT_PAID: (
        frozenset({OrderStatus.PENDING_PAYMENT, OrderStatus.INQUIRY}),
        OrderStatus.DEPOSIT_PAID,
    ),
    LifecycleEvent.BALANCE_PAID: (frozenset({OrderStatus.DEPOSIT_PAID}), OrderStatus.CONFIRMED),
    LifecycleEvent.QUOTE_APPROVED: (frozenset({OrderStatus.INQUIRY}), OrderStatus.PENDING_PAYMENT),
    LifecycleEvent.CONTRACT_SIGNED: (frozenset({OrderStatus.DEPOSIT_PAID}), OrderStatus.CONFIRMED),
    LifecycleEvent.MARK_COMPLETED: (frozenset({OrderStatus.CONFIRMED}), OrderStatus.COMPLETED),
    LifecycleEvent.CANCEL: (OPEN_STATUSES, OrderStatus.CANCELLED),
}

# Order types that need a signed contract before they can be confirmed
CONTRACT_GATED_TYPES = frozenset({OrderType.WEDDING.value})


def next_status(
    current: str,
    event: LifecycleEvent,
    *,
    requires_contract: bool = False,
    contract_signed: bool = False,
    fully_paid: bool = False,
) -> Optional[OrderStatus]:
    allowed, target = TRANSITIONS[event]
    if OrderStatus(current) not in allowed:
        return None
    if target == OrderStatus.CONFIRMED and requires_contract and not contract_signed:
        return None
    # A signature only confirms an order whose money is already in
    if event == LifecycleEvent.CONTRACT_SIGNED and not fully_paid:
        return None
    return target


@dataclass
class TransitionResult:
    order_id: int
    event: LifecycleEvent
    from_status: str
    to_status: Optional[str]
    awaiting_contract: bool = False

    @property
    def applied(self) -> bool:
        return self.to_status is not None


def has_signed_contract(db: Session, order_id: int) -> bool:
    return (
        db.query(Contract.id)
        .filter(Contract.order_id == order_id, Contract.status == ContractStatus.SIGNED.value)
        .first()
        is not None
    )


def apply_event(
    db: Session,
    order: Order,
    event: LifecycleEvent,
    stamps: Optional[dict[str, Any]] = None,
) -> TransitionResult:
    """
    Decide and persist one lifecycle event; the caller commits.

    ``stamps`` are extra columns written in the same UPDATE, only when the transition
    applies (e.g. ``paid_at``), so a replayed event never re-stamps them.
    """
    db.flush()
    db.refresh(order)
    current = order.status
    requires_contract = order.order_type in CONTRACT_GATED_TYPES
    contract_signed = requires_contract and has_signed_contract(db, order.id)
    target = next_status(
        current,
        event,
        requires_contract=requires_contract,
        contract_signed=contract_signed,
        fully_paid=order.paid_at is not None,
    )

    result = TransitionResult(order_id=order.id, event=event, from_status=current, to_status=None)
    if target is None:
        allowed, goal = TRANSITIONS[event]
        result.awaiting_contract = (
            OrderStatus(current) in allowed
            and goal == OrderStatus.CONFIRMED
            and requires_contract
            and not contract_signed
        )
        reason = "awaiting signed contract" if result.awaiting_contract else "not applicable"
        logger.info(
            f"⚠️ Lifecycle conflict: order {order.order_number} is {current}, "
            f"ignoring {event.value} ({reason})"
        )
        return result

    values = {"status": target.value, "updated_at": utcnow(), **(stamps or {})}
    outcome = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if outcome.rowcount == 0:
        logger.info(
            f"⚠️ Lifecycle conflict: order {order.order_number} changed concurrently, "
            f"ignoring {event.value}"
        )
        return result

    result.to_status = target.value
    logger.info(f"✅ Order {order.order_number}: {current} → {target.value} ({event.value})")
    return result


def record_payment_awaiting_contract(db: Session, order: Order, paid_at) -> bool:
    """Stamp paid_at on a gated order whose balance arrived before the contract was signed"""
    outcome = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.paid_at.is_(None))
        .values(paid_at=paid_at, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return outcome.rowcount > 0
