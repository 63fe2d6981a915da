"""Wedding contracts: drafting, sending, signing"""

import asyncio
from datetime import date, datetime

import pytest

from bakehouse import config
from bakehouse.domain.contracts.schemas import ContractUpdate
from bakehouse.domain.contracts.service import ContractService
from bakehouse.errors import StateConflictError
from bakehouse.models import Contract, Setting

from tests.conftest import TENANT

BODY = (
    "Agreement {{contract_number}} for {{customer_name}} on {{event_date}} at {{venue_name}}. "
    "Total {{total_amount}}, deposit {{deposit_amount}} ({{deposit_percentage}}%). "
    "Guests: {{guest_count}}."
)


@pytest.fixture
def wedding_order(make_order):
    return make_order(
        order_type="wedding",
        status="deposit_paid",
        event_date=date(2026, 9, 12),
        pickup_date=None,
        pickup_time=None,
        total_amount=120000,
        deposit_amount=60000,
        form_data={
            "order_type": "wedding",
            "guest_count": 150,
            "services_needed": ["Wedding cake", "Dessert table"],
            "venue_name": "Rosewood Barn",
        },
    )


def create_contract(client, staff_headers, order_id, **extra):
    payload = {"order_id": order_id, "contract_body": BODY}
    payload.update(extra)
    response = client.post("/api/admin/contracts", json=payload, headers=staff_headers)
    assert response.status_code == 201, response.text
    return response.json()


def sent_contract(client, staff_headers, order_id):
    contract = create_contract(client, staff_headers, order_id)
    response = client.post(f"/api/admin/contracts/{contract['id']}/send", headers=staff_headers)
    assert response.status_code == 200, response.text
    return response.json()


class TestDrafting:
    def test_prefilled_from_wedding_order(self, client, staff_headers, wedding_order):
        contract = create_contract(client, staff_headers, wedding_order.id)

        assert contract["status"] == "draft"
        assert contract["contract_number"].startswith("WC-")
        assert contract["venue_name"] == "Rosewood Barn"
        assert contract["guest_count"] == 150
        assert contract["services_description"] == "Wedding cake, Dessert table"
        assert contract["event_date"] == "2026-09-12"
        assert contract["total_amount"] == 120000
        assert contract["deposit_percentage"] == 50
        assert contract["deposit_amount"] == 60000
        assert contract["payment_schedule"].startswith("Deposit due upon signing")

    def test_default_body_comes_from_settings(self, client, staff_headers, wedding_order, db_session):
        db_session.add(Setting(tenant_id=TENANT, key="default_contract_body", value="Standard terms"))
        db_session.commit()

        response = client.post(
            "/api/admin/contracts", json={"order_id": wedding_order.id}, headers=staff_headers
        )
        assert response.json()["contract_body"] == "Standard terms"

    def test_only_wedding_orders(self, client, staff_headers, make_order):
        order = make_order(order_type="cake")
        response = client.post(
            "/api/admin/contracts", json={"order_id": order.id}, headers=staff_headers
        )
        assert response.status_code == 400

    def test_update_recomputes_deposit(self, client, staff_headers, wedding_order):
        contract = create_contract(client, staff_headers, wedding_order.id)
        response = client.patch(
            f"/api/admin/contracts/{contract['id']}",
            json={"total_amount": 100000, "deposit_percentage": 30},
            headers=staff_headers,
        )
        assert response.json()["deposit_amount"] == 30000

    def test_send_requires_body(self, client, staff_headers, wedding_order):
        contract = create_contract(client, staff_headers, wedding_order.id, contract_body="   ")
        response = client.post(f"/api/admin/contracts/{contract['id']}/send", headers=staff_headers)
        assert response.status_code == 400


class TestCustomerView:
    def test_draft_is_hidden(self, client, staff_headers, wedding_order):
        contract = create_contract(client, staff_headers, wedding_order.id)
        assert client.get(f"/api/contracts/token/{contract['signing_token']}").status_code == 404

    def test_body_is_rendered(self, client, staff_headers, wedding_order, notifier):
        contract = sent_contract(client, staff_headers, wedding_order.id)
        assert any(contract["signing_token"] in email["body"] for email in notifier.emails)

        public = client.get(f"/api/contracts/token/{contract['signing_token']}").json()

        body = public["rendered_body"]
        assert contract["contract_number"] in body
        assert "Jane Baker" in body
        assert "Saturday, September 12, 2026" in body
        assert "Rosewood Barn" in body
        assert "Total $1,200.00, deposit $600.00 (50%)" in body
        assert "Guests: 150." in body

    def test_missing_values_read_tbd(self, client, staff_headers, make_order):
        order = make_order(order_type="wedding", status="inquiry", form_data={})
        contract = create_contract(client, staff_headers, order.id)
        client.post(f"/api/admin/contracts/{contract['id']}/send", headers=staff_headers)

        body = client.get(f"/api/contracts/token/{contract['signing_token']}").json()["rendered_body"]
        assert "at TBD" in body
        assert "Guests: TBD." in body


class TestSigning:
    def test_sign(self, client, staff_headers, wedding_order, db_session, monkeypatch):
        monkeypatch.setattr(config, "TRUSTED_PROXIES", frozenset({"testclient", "10.0.0.1"}))
        contract = sent_contract(client, staff_headers, wedding_order.id)

        response = client.post(
            f"/api/contracts/token/{contract['signing_token']}/sign",
            json={"signer_name": "Jane Baker", "agreed": True},
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "signed"
        signed = db_session.get(Contract, contract["id"])
        db_session.refresh(signed)
        assert signed.signer_name == "Jane Baker"
        assert signed.signer_ip == "203.0.113.7"
        assert signed.signed_at is not None

    def test_forwarded_ip_ignored_from_untrusted_peer(self, client, staff_headers, wedding_order, db_session):
        contract = sent_contract(client, staff_headers, wedding_order.id)

        client.post(
            f"/api/contracts/token/{contract['signing_token']}/sign",
            json={"signer_name": "Jane Baker", "agreed": True},
            headers={"X-Forwarded-For": "203.0.113.7"},
        )

        signed = db_session.get(Contract, contract["id"])
        db_session.refresh(signed)
        assert signed.signer_ip == "testclient"

    def test_signing_twice_is_rejected_without_changes(self, client, staff_headers, wedding_order, db_session):
        contract = sent_contract(client, staff_headers, wedding_order.id)
        url = f"/api/contracts/token/{contract['signing_token']}/sign"
        client.post(url, json={"signer_name": "Jane Baker", "agreed": True})
        first = db_session.get(Contract, contract["id"])
        db_session.refresh(first)
        signed_at = first.signed_at

        response = client.post(url, json={"signer_name": "Someone Else", "agreed": True})

        assert response.status_code == 409
        assert response.json()["detail"] == "Contract has already been signed"
        db_session.expire_all()
        assert first.signer_name == "Jane Baker"
        assert first.signed_at == signed_at

    @pytest.mark.parametrize(
        "payload", [{"signer_name": "  ", "agreed": True}, {"signer_name": "Jane", "agreed": False}]
    )
    def test_name_and_agreement_required(self, client, staff_headers, wedding_order, payload):
        contract = sent_contract(client, staff_headers, wedding_order.id)
        response = client.post(f"/api/contracts/token/{contract['signing_token']}/sign", json=payload)
        assert response.status_code == 400

    def test_unsent_contract_cannot_be_signed(self, client, staff_headers, wedding_order):
        contract = create_contract(client, staff_headers, wedding_order.id)
        response = client.post(
            f"/api/contracts/token/{contract['signing_token']}/sign",
            json={"signer_name": "Jane", "agreed": True},
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Contract has not been sent yet"

    def test_signing_confirms_a_fully_paid_order(self, client, staff_headers, wedding_order, db_session):
        wedding_order.paid_at = datetime(2026, 8, 1, 12, 0)
        db_session.commit()
        contract = sent_contract(client, staff_headers, wedding_order.id)

        client.post(
            f"/api/contracts/token/{contract['signing_token']}/sign",
            json={"signer_name": "Jane Baker", "agreed": True},
        )

        db_session.expire_all()
        assert wedding_order.status == "confirmed"

    def test_signing_leaves_unpaid_order_waiting(self, client, staff_headers, wedding_order, db_session):
        contract = sent_contract(client, staff_headers, wedding_order.id)
        client.post(
            f"/api/contracts/token/{contract['signing_token']}/sign",
            json={"signer_name": "Jane Baker", "agreed": True},
        )
        db_session.expire_all()
        assert wedding_order.status == "deposit_paid"

    def test_past_valid_until_expires(self, db_session, wedding_order, notifier):
        contract = Contract(
            tenant_id=TENANT,
            order_id=wedding_order.id,
            contract_number="WC-EXPIRED1",
            status="sent",
            contract_body=BODY,
            valid_until=date(2026, 5, 1),
        )
        db_session.add(contract)
        db_session.commit()
        service = ContractService(db_session, notifier)

        view = service.get_public_contract(contract.signing_token, today=date(2026, 5, 2))

        assert view.status == "expired"


class TestSignedContractIsFinal:
    def test_signed_contract_cannot_be_edited_or_deleted(self, client, staff_headers, wedding_order):
        contract = sent_contract(client, staff_headers, wedding_order.id)
        client.post(
            f"/api/contracts/token/{contract['signing_token']}/sign",
            json={"signer_name": "Jane Baker", "agreed": True},
        )
        url = f"/api/admin/contracts/{contract['id']}"

        assert client.patch(url, json={"venue_name": "Elsewhere"}, headers=staff_headers).status_code == 409
        assert client.delete(url, headers=staff_headers).status_code == 409
        assert client.post(f"{url}/send", headers=staff_headers).status_code == 409

    def test_orm_guard_blocks_direct_changes(self, db_session, wedding_order):
        contract = Contract(
            tenant_id=TENANT,
            order_id=wedding_order.id,
            contract_number="WC-GUARD001",
            status="signed",
            signer_name="Jane Baker",
        )
        db_session.add(contract)
        db_session.commit()

        contract.signer_name = "Mallory"
        with pytest.raises(StateConflictError):
            db_session.commit()
        db_session.rollback()

        db_session.delete(contract)
        with pytest.raises(StateConflictError):
            db_session.commit()
        db_session.rollback()


class TestInterleavedRequests:
    """Staff changes racing a customer signature"""

    def sign_elsewhere(self, db_session, notifier, contract):
        asyncio.run(
            ContractService(db_session, notifier).sign_contract(
                contract["signing_token"], "Jane Baker", True, "198.51.100.4"
            )
        )

    def test_edit_after_signature_is_rejected(
        self, client, staff_headers, wedding_order, db_session, second_session, notifier
    ):
        contract = sent_contract(client, staff_headers, wedding_order.id)
        staff = ContractService(second_session, notifier)
        assert staff.get_contract(TENANT, contract["id"]).status == "sent"

        self.sign_elsewhere(db_session, notifier, contract)

        with pytest.raises(StateConflictError):
            staff.update_contract(TENANT, contract["id"], ContractUpdate(venue_name="Elsewhere"))

        db_session.expire_all()
        stored = db_session.get(Contract, contract["id"])
        assert stored.status == "signed"
        assert stored.venue_name == "Rosewood Barn"

    def test_delete_after_signature_is_rejected(
        self, client, staff_headers, wedding_order, db_session, second_session, notifier
    ):
        contract = sent_contract(client, staff_headers, wedding_order.id)
        staff = ContractService(second_session, notifier)
        staff.get_contract(TENANT, contract["id"])

        self.sign_elsewhere(db_session, notifier, contract)

        with pytest.raises(StateConflictError):
            staff.delete_contract(TENANT, contract["id"])

        db_session.expire_all()
        assert db_session.get(Contract, contract["id"]).status == "signed"

    def test_unsigned_contract_can_still_be_edited_and_deleted(
        self, client, staff_headers, wedding_order, second_session, notifier
    ):
        contract = sent_contract(client, staff_headers, wedding_order.id)
        staff = ContractService(second_session, notifier)

        updated = staff.update_contract(TENANT, contract["id"], ContractUpdate(guest_count=90))
        assert updated.guest_count == 90
        assert updated.status == "sent"

        staff.delete_contract(TENANT, contract["id"])
        response = client.get(f"/api/admin/contracts/{contract['id']}", headers=staff_headers)
        assert response.status_code == 404
