"""Stripe webhook processing"""

import time

from bakehouse.models import Contract, PaymentEvent, Quote, generate_reference

from tests.conftest import OTHER_TENANT, TENANT, post_webhook, stripe_event


def checkout_completed(event_id, order, **extra):
    obj = {
        "object": "checkout.session",
        "id": order.checkout_session_id or "cs_test_x",
        "payment_status": "paid",
        "payment_intent": "pi_test_1",
        "amount_total": order.total_amount,
        "metadata": {"tenant_id": order.tenant_id, "order_id": str(order.id), "payment_type": "full"},
    }
    obj.update(extra)
    return stripe_event(event_id, "checkout.session.completed", obj)


def invoice_paid(event_id, order, payment_type, amount, quote_id=None):
    metadata = {"tenant_id": order.tenant_id, "order_id": str(order.id), "payment_type": payment_type}
    if quote_id:
        metadata["quote_id"] = str(quote_id)
    return stripe_event(
        event_id,
        "invoice.paid",
        {"object": "invoice", "id": f"in_{event_id}", "amount_paid": amount, "metadata": metadata},
    )


class TestSignature:
    def test_bad_signature_is_rejected(self, client, make_order, db_session):
        order = make_order(status="pending_payment", order_type="cookies", total_amount=4000)
        response = post_webhook(client, checkout_completed("evt_bad", order), secret="whsec_wrong")

        assert response.status_code == 400
        db_session.refresh(order)
        assert order.status == "pending_payment"

    def test_replayed_old_delivery_is_rejected(self, client, make_order):
        order = make_order(status="pending_payment", order_type="cookies", total_amount=4000)
        response = post_webhook(
            client, checkout_completed("evt_old", order), timestamp=time.time() - 3600
        )
        assert response.status_code == 400


class TestCheckout:
    def test_checkout_completed_confirms_order(self, client, make_order, db_session, notifier):
        order = make_order(
            status="pending_payment", order_type="cookies", total_amount=8000, deposit_amount=8000
        )

        response = post_webhook(client, checkout_completed("evt_1", order))

        assert response.status_code == 200
        assert response.json()["received"] is True
        db_session.expire_all()
        assert order.status == "confirmed"
        assert order.paid_at is not None
        assert order.payment_intent_id == "pi_test_1"
        assert any("Order Confirmed" in s for s in notifier.subjects())
        assert notifier.sms and notifier.sms[0]["to"] == "+15555550100"

    def test_duplicate_delivery_is_a_noop(self, client, make_order, db_session, notifier):
        order = make_order(status="pending_payment", order_type="cookies", total_amount=4000)
        event = checkout_completed("evt_dup", order)

        post_webhook(client, event)
        db_session.expire_all()
        paid_at = order.paid_at
        sent = len(notifier.emails)

        second = post_webhook(client, event)

        assert second.status_code == 200
        assert second.json()["outcome"] == "duplicate"
        db_session.expire_all()
        assert order.paid_at == paid_at
        assert len(notifier.emails) == sent
        assert db_session.query(PaymentEvent).filter_by(provider_event_id="evt_dup").count() == 1

    def test_redelivery_with_new_event_id_does_not_restamp(
        self, client, make_order, db_session, notifier
    ):
        order = make_order(status="pending_payment", order_type="cookies", total_amount=4000)
        post_webhook(client, checkout_completed("evt_a", order))
        db_session.expire_all()
        paid_at = order.paid_at
        sent = len(notifier.emails)

        response = post_webhook(client, checkout_completed("evt_b", order, payment_intent="pi_other"))

        assert response.json()["outcome"] == "conflict"
        db_session.expire_all()
        assert order.status == "confirmed"
        assert order.paid_at == paid_at
        assert order.payment_intent_id == "pi_test_1"
        assert len(notifier.emails) == sent

    def test_unpaid_session_does_not_confirm(self, client, make_order, db_session):
        order = make_order(status="pending_payment", order_type="cookies", total_amount=4000)
        post_webhook(client, checkout_completed("evt_u", order, payment_status="unpaid"))
        db_session.expire_all()
        assert order.status == "pending_payment"

    def test_expired_session_cancels_and_notes(self, client, make_order, db_session):
        order = make_order(status="pending_payment", order_type="cookies", notes="Nut free")
        event = stripe_event(
            "evt_exp",
            "checkout.session.expired",
            {"object": "checkout.session", "id": "cs_test_x", "metadata": {"order_id": str(order.id)}},
        )

        assert post_webhook(client, event).status_code == 200

        db_session.expire_all()
        assert order.status == "cancelled"
        assert order.notes == "Nut free | Payment session expired"

    def test_expired_session_after_payment_is_ignored(self, client, make_order, db_session):
        order = make_order(status="confirmed", order_type="cookies")
        event = stripe_event(
            "evt_late",
            "checkout.session.expired",
            {"object": "checkout.session", "id": "cs_1", "metadata": {"order_id": str(order.id)}},
        )
        assert post_webhook(client, event).status_code == 200
        db_session.expire_all()
        assert order.status == "confirmed"

    def test_order_found_by_session_id(self, client, make_order, db_session):
        order = make_order(
            status="pending_payment", order_type="cookies", checkout_session_id="cs_lookup"
        )
        event = stripe_event(
            "evt_s",
            "checkout.session.completed",
            {"object": "checkout.session", "id": "cs_lookup", "payment_status": "paid", "metadata": {}},
        )
        post_webhook(client, event)
        db_session.expire_all()
        assert order.status == "confirmed"

    def test_tenant_mismatch_is_ignored(self, client, make_order, db_session):
        order = make_order(status="pending_payment", order_type="cookies")
        event = checkout_completed("evt_t", order)
        event["data"]["object"]["metadata"]["tenant_id"] = OTHER_TENANT

        response = post_webhook(client, event)

        assert response.json()["outcome"] == "order_not_found"
        db_session.expire_all()
        assert order.status == "pending_payment"


class TestInvoices:
    def test_deposit_converts_quote(self, client, make_order, db_session, notifier):
        order = make_order(status="pending_payment", total_amount=6000, deposit_amount=3000)
        quote = Quote(
            tenant_id=TENANT,
            order_id=order.id,
            quote_number="Q-PAID0001",
            status="approved",
            total_amount=6000,
            deposit_amount=3000,
        )
        db_session.add(quote)
        db_session.commit()

        response = post_webhook(client, invoice_paid("evt_dep", order, "deposit", 3000, quote.id))

        assert response.json()["outcome"] == "deposit_paid"
        db_session.expire_all()
        assert order.status == "deposit_paid"
        assert order.deposit_paid_at is not None
        assert order.paid_at is None
        assert quote.status == "converted"
        assert any("Deposit Received" in s for s in notifier.subjects())

    def test_malformed_quote_id_still_records_deposit(self, client, make_order, db_session):
        order = make_order(status="pending_payment", total_amount=6000, deposit_amount=3000)

        response = post_webhook(
            client, invoice_paid("evt_badquote", order, "deposit", 3000, quote_id="not-a-number")
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "deposit_paid"
        db_session.expire_all()
        assert order.status == "deposit_paid"
        event = db_session.query(PaymentEvent).filter_by(provider_event_id="evt_badquote").one()
        assert event.outcome == "deposit_paid"

    def test_balance_confirms_order(self, client, make_order, db_session):
        order = make_order(status="deposit_paid", total_amount=6000, deposit_amount=3000)
        post_webhook(client, invoice_paid("evt_bal", order, "balance", 3000))
        db_session.expire_all()
        assert order.status == "confirmed"
        assert order.paid_at is not None

    def test_balance_before_deposit_is_a_conflict(self, client, make_order, db_session):
        order = make_order(status="inquiry")
        response = post_webhook(client, invoice_paid("evt_early", order, "balance", 3000))
        assert response.status_code == 200
        assert response.json()["outcome"] == "conflict"
        db_session.expire_all()
        assert order.status == "inquiry"
        assert order.paid_at is None

    def test_deposit_covering_total_confirms(self, client, make_order, db_session):
        order = make_order(status="pending_payment", total_amount=5000, deposit_amount=5000)
        response = post_webhook(client, invoice_paid("evt_full", order, "deposit", 5000))
        assert response.json()["outcome"] == "confirmed"
        db_session.expire_all()
        assert order.status == "confirmed"

    def test_wedding_balance_waits_for_contract(self, client, make_order, db_session):
        order = make_order(
            status="deposit_paid", order_type="wedding", total_amount=90000, deposit_amount=45000
        )

        response = post_webhook(client, invoice_paid("evt_wed", order, "balance", 45000))

        assert response.json()["outcome"] == "awaiting_contract"
        db_session.expire_all()
        assert order.status == "deposit_paid"
        assert order.paid_at is not None

    def test_wedding_balance_after_signing_confirms(self, client, make_order, db_session):
        order = make_order(
            status="deposit_paid", order_type="wedding", total_amount=90000, deposit_amount=45000
        )
        db_session.add(
            Contract(
                tenant_id=TENANT,
                order_id=order.id,
                contract_number=generate_reference("WC"),
                status="signed",
            )
        )
        db_session.commit()

        post_webhook(client, invoice_paid("evt_wed2", order, "balance", 45000))

        db_session.expire_all()
        assert order.status == "confirmed"


class TestOtherEvents:
    def test_unknown_event_is_acknowledged_and_logged(self, client, db_session):
        response = post_webhook(client, stripe_event("evt_other", "customer.created", {"id": "cus_1"}))
        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"
        logged = db_session.query(PaymentEvent).filter_by(provider_event_id="evt_other").one()
        assert logged.event_type == "customer.created"

    def test_payment_failed_changes_nothing(self, client, make_order, db_session):
        order = make_order(status="pending_payment", order_type="cookies")
        event = stripe_event(
            "evt_fail",
            "payment_intent.payment_failed",
            {"id": "pi_1", "last_payment_error": {"message": "Card declined"}},
        )
        assert post_webhook(client, event).status_code == 200
        db_session.expire_all()
        assert order.status == "pending_payment"
