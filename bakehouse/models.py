import enum
import secrets
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .errors import StateConflictError


def generate_token():
    """Opaque single-use token for customer-facing links"""
    return uuid.uuid4().hex


def generate_reference(prefix: str) -> str:
    return f"{prefix}-{secrets.token_hex(4).upper()}"


class OrderType(str, enum.Enum):
    COOKIES = "cookies"
    COOKIES_LARGE = "cookies_large"
    CAKE = "cake"
    WEDDING = "wedding"
    TASTING = "tasting"
    COOKIE_CUPS = "cookie_cups"
    EASTER_COLLECTION = "easter_collection"


class OrderStatus(str, enum.Enum):
    INQUIRY = "inquiry"
    PENDING_PAYMENT = "pending_payment"
    DEPOSIT_PAID = "deposit_paid"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QuoteStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    EXPIRED = "expired"
    CONVERTED = "converted"


class ContractStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    SIGNED = "signed"
    EXPIRED = "expired"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Setting(Base):
    __tablename__ = "settings"
    __table_args__ = (UniqueConstraint("tenant_id", "key", name="uq_settings_tenant_key"),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    key = Column(String(100), nullable=False)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    order_type = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, index=True)

    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    event_date = Column(Date, nullable=True)
    pickup_date = Column(Date, nullable=True, index=True)
    pickup_time = Column(String(5), nullable=True)  # "HH:MM"
    backup_date = Column(Date, nullable=True)
    backup_time = Column(String(5), nullable=True)
    pickup_person_name = Column(String(255), nullable=True)

    # Amounts in cents
    total_amount = Column(Integer, nullable=True)
    deposit_amount = Column(Integer, nullable=True)

    form_data = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    # Payment gateway correlation
    checkout_session_id = Column(String(255), nullable=True, index=True)
    payment_intent_id = Column(String(255), nullable=True)
    invoice_id = Column(String(255), nullable=True)
    invoice_url = Column(Text, nullable=True)
    balance_invoice_id = Column(String(255), nullable=True)
    balance_invoice_url = Column(Text, nullable=True)

    paid_at = Column(DateTime, nullable=True)
    deposit_paid_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    quotes = relationship("Quote", back_populates="order")
    contracts = relationship("Contract", back_populates="order")
    staff_notes = relationship(
        "OrderNote",
        back_populates="order",
        cascade="all, delete-orphan",
    )


class OrderNote(Base):
    """Internal staff notes on an order, never shown to the customer"""

    __tablename__ = "order_notes"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    note = Column(Text, nullable=False)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="staff_notes")


class Quote(Base):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    quote_number = Column(String(32), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default=QuoteStatus.DRAFT.value)

    subtotal = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False, default=0)
    deposit_percentage = Column(Integer, nullable=False, default=50)
    deposit_amount = Column(Integer, nullable=False, default=0)

    notes = Column(Text, nullable=True)
    customer_message = Column(Text, nullable=True)
    valid_until = Column(Date, nullable=True)
    approval_token = Column(String(64), unique=True, nullable=False, default=generate_token, index=True)
    approved_at = Column(DateTime, nullable=True)
    invoice_id = Column(String(255), nullable=True)
    invoice_url = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order = relationship("Order", back_populates="quotes")
    line_items = relationship(
        "QuoteLineItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteLineItem.sort_order",
    )


class QuoteLineItem(Base):
    __tablename__ = "quote_line_items"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Integer, nullable=False)
    total_price = Column(Integer, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    quote = relationship("Quote", back_populates="line_items")


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    contract_number = Column(String(32), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default=ContractStatus.DRAFT.value)

    # Event details
    event_date = Column(Date, nullable=True)
    venue_name = Column(String(255), nullable=True)
    venue_address = Column(Text, nullable=True)
    guest_count = Column(Integer, nullable=True)
    ceremony_time = Column(String(20), nullable=True)
    reception_time = Column(String(20), nullable=True)
    services_description = Column(Text, nullable=True)

    # Financial terms (cents)
    total_amount = Column(Integer, nullable=True)
    deposit_percentage = Column(Integer, nullable=False, default=50)
    deposit_amount = Column(Integer, nullable=True)
    payment_schedule = Column(Text, nullable=True)

    contract_body = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    valid_until = Column(Date, nullable=True)

    signing_token = Column(String(64), unique=True, nullable=False, default=generate_token, index=True)
    signer_name = Column(String(255), nullable=True)
    signed_at = Column(DateTime, nullable=True)
    signer_ip = Column(String(64), nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order = relationship("Order", back_populates="contracts")


@event.listens_for(Contract, "before_update")
def _reject_signed_contract_update(mapper, connection, target):
    history = inspect(target).attrs.status.history
    persisted = history.deleted[0] if history.deleted else target.status
    if persisted == ContractStatus.SIGNED.value:
        raise StateConflictError("Signed contracts cannot be modified")


@event.listens_for(Contract, "before_delete")
def _reject_signed_contract_delete(mapper, connection, target):
    if target.status == ContractStatus.SIGNED.value:
        raise StateConflictError("Cannot delete a signed contract")


class BookingType(Base):
    __tablename__ = "booking_types"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    slug = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False, default=60)
    buffer_after_minutes = Column(Integer, nullable=False, default=0)
    max_bookings_per_day = Column(Integer, nullable=True)
    requires_approval = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    bookings = relationship("Booking", back_populates="booking_type")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    booking_type_id = Column(Integer, ForeignKey("booking_types.id"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    notes = Column(Text, nullable=True)
    confirmation_token = Column(String(64), unique=True, nullable=False, default=generate_token)
    cancellation_token = Column(String(64), unique=True, nullable=False, default=generate_token)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking_type = relationship("BookingType", back_populates="bookings")


class AvailabilityWindow(Base):
    """Recurring weekly hours (day_of_week: 0 = Sunday)"""

    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


class AvailabilityOverride(Base):
    __tablename__ = "availability_overrides"
    __table_args__ = (UniqueConstraint("tenant_id", "date", name="uq_override_tenant_date"),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    reason = Column(String(255), nullable=True)


class BlackoutDate(Base):
    __tablename__ = "blackout_dates"
    __table_args__ = (UniqueConstraint("tenant_id", "date", name="uq_blackout_tenant_date"),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    reason = Column(String(255), nullable=True)


class PickupSlotCapacity(Base):
    __tablename__ = "pickup_slot_capacities"
    __table_args__ = (
        UniqueConstraint("tenant_id", "date", "time", name="uq_slot_capacity_tenant_date_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)
    capacity = Column(Integer, nullable=False)


class PaymentEvent(Base):
    """Processed payment-provider events, one row per provider event id"""

    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    provider_event_id = Column(String(255), unique=True, nullable=False)
    event_type = Column(String(100), nullable=False)
    order_id = Column(Integer, nullable=True)
    outcome = Column(String(50), nullable=False)
    received_at = Column(DateTime(timezone=True), server_default=func.now())
