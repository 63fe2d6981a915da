"""
Pytest fixtures for the bakehouse API.

Every test gets a fresh in-memory SQLite schema, a fake payment gateway and a
notifier that records instead of delivering.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["CRON_SECRET"] = "cron-test-secret"
os.environ.pop("REDIS_URL", None)

import json  # noqa: E402
import time  # noqa: E402
from datetime import date, datetime, timedelta  # noqa: E402
from itertools import count  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from bakehouse.auth import create_staff_token  # noqa: E402
from bakehouse.database import Base, SessionLocal, engine  # noqa: E402
from bakehouse.errors import ExternalDependencyError  # noqa: E402
from bakehouse.main import app  # noqa: E402
from bakehouse.models import Order, generate_reference  # noqa: E402
from bakehouse.services.notification_service import (  # noqa: E402
    NotificationService,
    get_notification_service,
)
from bakehouse.services.stripe_service import (  # noqa: E402
    CheckoutSession,
    GatewayInvoice,
    get_payment_gateway,
)
from bakehouse.webhook_security import sign_payload  # noqa: E402

TENANT = "sweet-crumbs"
OTHER_TENANT = "rival-bakery"
WEBHOOK_SECRET = "whsec_test_secret"


class FakeGateway:
    """Stands in for Stripe; records every call"""

    def __init__(self):
        self.sessions = []
        self.invoices = []
        self.fail = False
        self._ids = count(1)

    async def create_checkout_session(
        self, amount, description, customer_email, metadata, success_url, cancel_url
    ):
        if self.fail:
            raise ExternalDependencyError("Payment gateway request failed")
        session_id = f"cs_test_{next(self._ids)}"
        self.sessions.append({"id": session_id, "amount": amount, "metadata": metadata})
        return CheckoutSession(id=session_id, url=f"https://checkout.test/{session_id}")

    async def create_invoice(
        self, amount, description, customer_email, customer_name, metadata, days_until_due=7
    ):
        if self.fail:
            raise ExternalDependencyError("Payment gateway request failed")
        invoice_id = f"in_test_{next(self._ids)}"
        self.invoices.append({"id": invoice_id, "amount": amount, "metadata": metadata})
        return GatewayInvoice(id=invoice_id, hosted_url=f"https://invoice.test/{invoice_id}")


class RecordingNotifier(NotificationService):
    """Renders templates like the real service but keeps messages in memory"""

    def __init__(self):
        self.emails = []
        self.sms = []
        self.fail_email = False

    async def send_email(self, to, subject, body):
        if self.fail_email:
            raise ExternalDependencyError("Email delivery failed")
        self.emails.append({"to": to, "subject": subject, "body": body})
        return f"email_{len(self.emails)}"

    async def send_sms(self, to_phone, body):
        self.sms.append({"to": to_phone, "body": body})
        return f"sms_{len(self.sms)}"

    def subjects(self):
        return [email["subject"] for email in self.emails]


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def second_session(db_session):
    """Another session on the same database, for requests that interleave"""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(db_session, gateway, notifier):
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notification_service] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def staff_headers():
    return {"Authorization": f"Bearer {create_staff_token('staff-1', TENANT)}"}


@pytest.fixture
def future_date():
    """A date comfortably past every default lead time"""
    return datetime.utcnow().date() + timedelta(days=45)


@pytest.fixture
def make_order(db_session):
    def _make_order(tenant_id=TENANT, **fields) -> Order:
        values = {
            "order_number": generate_reference("TST"),
            "order_type": "cake",
            "status": "inquiry",
            "customer_name": "Jane Baker",
            "customer_email": "jane@example.com",
            "customer_phone": "+15555550100",
            "pickup_date": date(2026, 3, 14),
            "pickup_time": "10:00",
        }
        values.update(fields)
        order = Order(tenant_id=tenant_id, **values)
        db_session.add(order)
        db_session.commit()
        db_session.refresh(order)
        return order

    return _make_order


def stripe_event(event_id: str, event_type: str, obj: dict) -> dict:
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def post_webhook(client: TestClient, event: dict, secret: str = WEBHOOK_SECRET, timestamp=None):
    payload = json.dumps(event).encode("utf-8")
    header = sign_payload(secret, payload, int(timestamp if timestamp is not None else time.time()))
    return client.post(
        "/api/webhooks/stripe",
        content=payload,
        headers={"Stripe-Signature": header, "Content-Type": "application/json"},
    )
