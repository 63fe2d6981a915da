"""Quote repository - Database operations for quotes and their line items"""

from typing import Any, Iterable, Optional

from sqlalchemy import delete, func, update
from sqlalchemy.orm import Session

from ...models import Quote, QuoteLineItem
from ...shared.money import calculate_deposit
from ...time_utils import utcnow


class QuoteRepository:
    @staticmethod
    def get_quote(db: Session, tenant_id: str, quote_id: int) -> Optional[Quote]:
        return db.query(Quote).filter(Quote.tenant_id == tenant_id, Quote.id == quote_id).first()

    @staticmethod
    def get_by_token(db: Session, token: str) -> Optional[Quote]:
        return db.query(Quote).filter(Quote.approval_token == token).first()

    @staticmethod
    def get_by_id(db: Session, quote_id: int) -> Optional[Quote]:
        return db.query(Quote).filter(Quote.id == quote_id).first()

    @staticmethod
    def list_quotes(db: Session, tenant_id: str, order_id: Optional[int] = None) -> list[Quote]:
        query = db.query(Quote).filter(Quote.tenant_id == tenant_id)
        if order_id:
            query = query.filter(Quote.order_id == order_id)
        return query.order_by(Quote.created_at.desc(), Quote.id.desc()).all()

    @staticmethod
    def create_quote(db: Session, tenant_id: str, **quote_data) -> Quote:
        quote = Quote(tenant_id=tenant_id, **quote_data)
        db.add(quote)
        db.flush()
        return quote

    @staticmethod
    def delete_unless_locked(db: Session, quote_id: int, locked_statuses: Iterable[str]) -> bool:
        """Delete the quote and its line items unless its stored status is locked"""
        db.query(QuoteLineItem).filter(QuoteLineItem.quote_id == quote_id).delete(
            synchronize_session=False
        )
        result = db.execute(
            delete(Quote)
            .where(Quote.id == quote_id, Quote.status.notin_(list(locked_statuses)))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    def next_sort_order(db: Session, quote_id: int) -> int:
        current = (
            db.query(func.max(QuoteLineItem.sort_order))
            .filter(QuoteLineItem.quote_id == quote_id)
            .scalar()
        )
        return 0 if current is None else current + 1

    @staticmethod
    def get_line_item(db: Session, quote_id: int, item_id: int) -> Optional[QuoteLineItem]:
        return (
            db.query(QuoteLineItem)
            .filter(QuoteLineItem.quote_id == quote_id, QuoteLineItem.id == item_id)
            .first()
        )

    @staticmethod
    def add_line_item(
        db: Session,
        quote_id: int,
        description: str,
        quantity: int,
        unit_price: int,
        sort_order: int,
    ) -> QuoteLineItem:
        item = QuoteLineItem(
            quote_id=quote_id,
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            total_price=quantity * unit_price,
            sort_order=sort_order,
        )
        db.add(item)
        db.flush()
        return item

    @staticmethod
    def delete_line_items(db: Session, quote_id: int, item_ids: Optional[Iterable[int]] = None) -> int:
        query = db.query(QuoteLineItem).filter(QuoteLineItem.quote_id == quote_id)
        if item_ids is not None:
            query = query.filter(QuoteLineItem.id.in_(list(item_ids)))
        return query.delete(synchronize_session=False)

    @staticmethod
    def count_line_items(db: Session, quote_id: int) -> int:
        return db.query(func.count(QuoteLineItem.id)).filter(QuoteLineItem.quote_id == quote_id).scalar()

    @staticmethod
    def recalculate_totals(
        db: Session,
        quote: Quote,
        editable_statuses: Optional[Iterable[str]] = None,
        **fields: Any,
    ) -> bool:
        """
        Recompute subtotal, total and deposit from the stored line items.

        The totals and any extra ``fields`` are written in one UPDATE. With
        ``editable_statuses`` the write only lands while the stored status is one of them;
        False means it did not, and the caller must roll back its line item changes.
        """
        db.flush()
        subtotal = int(
            db.query(func.coalesce(func.sum(QuoteLineItem.total_price), 0))
            .filter(QuoteLineItem.quote_id == quote.id)
            .scalar()
        )
        deposit_percentage = fields.get("deposit_percentage", quote.deposit_percentage)

        statement = update(Quote).where(Quote.id == quote.id)
        if editable_statuses is not None:
            statement = statement.where(Quote.status.in_(list(editable_statuses)))
        result = db.execute(
            statement.values(
                subtotal=subtotal,
                total_amount=subtotal,
                deposit_amount=calculate_deposit(subtotal, deposit_percentage),
                updated_at=utcnow(),
                **fields,
            ).execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    def transition_status(
        db: Session,
        quote_id: int,
        from_statuses: Iterable[str],
        to_status: str,
        expected_totals: Optional[tuple[int, int]] = None,
        **values: Any,
    ) -> bool:
        """
        Single conditional UPDATE; False when the quote was not in ``from_statuses``.

        ``expected_totals`` is ``(total_amount, deposit_amount)`` as the caller last read
        them; the update also fails when either has changed since.
        """
        statement = update(Quote).where(Quote.id == quote_id, Quote.status.in_(list(from_statuses)))
        if expected_totals is not None:
            total, deposit = expected_totals
            statement = statement.where(Quote.total_amount == total, Quote.deposit_amount == deposit)
        result = db.execute(
            statement.values(status=to_status, updated_at=utcnow(), **values).execution_options(
                synchronize_session=False
            )
        )
        return result.rowcount > 0
