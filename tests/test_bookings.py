"""Consulting booking types, weekly windows and public bookings"""

import pytest

from tests.conftest import OTHER_TENANT, TENANT


@pytest.fixture
def consultation(client, staff_headers):
    windows = [
        {"day_of_week": day, "start_time": "10:00", "end_time": "12:00"} for day in range(7)
    ]
    response = client.put(
        "/api/admin/calendar/windows", json={"windows": windows}, headers=staff_headers
    )
    assert response.status_code == 200, response.text

    response = client.post(
        "/api/admin/calendar/booking-types",
        json={"slug": "wedding-consult", "name": "Wedding Consultation", "duration_minutes": 60},
        headers=staff_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def book(client, booking_type_id, day, time="10:00", tenant=TENANT, **extra):
    payload = {
        "booking_type_id": booking_type_id,
        "date": day.isoformat(),
        "time": time,
        "customer": {"name": "Sam Groom", "email": "sam@example.com", "phone": "555-555-0199"},
    }
    payload.update(extra)
    return client.post(f"/api/tenants/{tenant}/bookings", json=payload)


def test_windows_are_replaced_as_a_set(client, staff_headers):
    first = [{"day_of_week": 1, "start_time": "9:00", "end_time": "17:00"}]
    client.put("/api/admin/calendar/windows", json={"windows": first}, headers=staff_headers)
    second = [{"day_of_week": 3, "start_time": "13:00", "end_time": "15:00"}]
    client.put("/api/admin/calendar/windows", json={"windows": second}, headers=staff_headers)

    windows = client.get("/api/admin/calendar/windows", headers=staff_headers).json()

    assert [(w["day_of_week"], w["start_time"]) for w in windows] == [(3, "13:00")]


def test_window_must_end_after_start(client, staff_headers):
    bad = [{"day_of_week": 1, "start_time": "17:00", "end_time": "09:00"}]
    response = client.put("/api/admin/calendar/windows", json={"windows": bad}, headers=staff_headers)
    assert response.status_code == 422


def test_public_booking_types_lists_active_only(client, staff_headers, consultation):
    client.post(
        "/api/admin/calendar/booking-types",
        json={"slug": "tasting", "name": "Tasting", "is_active": False},
        headers=staff_headers,
    )

    response = client.get(f"/api/tenants/{TENANT}/booking-types")

    assert [t["slug"] for t in response.json()] == ["wedding-consult"]
    assert client.get(f"/api/tenants/{OTHER_TENANT}/booking-types").json() == []


def test_booking_confirmed_and_notified(client, notifier, consultation, future_date):
    response = book(client, consultation["id"], future_date)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["status"] == "confirmed"
    assert body["start_time"].startswith(f"{future_date.isoformat()}T10:00")
    assert body["end_time"].startswith(f"{future_date.isoformat()}T11:00")
    assert body["customer_phone"] == "+15555550199"
    assert body["confirmation_token"]
    assert notifier.emails[0]["to"] == "sam@example.com"
    assert notifier.subjects()[0].startswith("Wedding Consultation on")


def test_approval_required_books_as_pending(client, staff_headers, consultation, future_date):
    client.patch(
        f"/api/admin/calendar/booking-types/{consultation['id']}",
        json={"requires_approval": True},
        headers=staff_headers,
    )
    response = book(client, consultation["id"], future_date)
    assert response.json()["status"] == "pending"


def test_taken_slot_conflicts(client, consultation, future_date):
    assert book(client, consultation["id"], future_date).status_code == 201

    response = book(client, consultation["id"], future_date)

    assert response.status_code == 409
    assert response.json()["detail"] == "Time slot is no longer available"
    assert book(client, consultation["id"], future_date, time="11:00").status_code == 201


def test_time_outside_window_conflicts(client, consultation, future_date):
    response = book(client, consultation["id"], future_date, time="11:30")
    assert response.status_code == 409


def test_unknown_or_inactive_type_not_found(client, staff_headers, consultation, future_date):
    assert book(client, 9999, future_date).status_code == 404

    client.delete(f"/api/admin/calendar/booking-types/{consultation['id']}", headers=staff_headers)
    assert book(client, consultation["id"], future_date).status_code == 404


def test_booking_types_are_tenant_scoped(client, consultation, future_date):
    assert book(client, consultation["id"], future_date, tenant=OTHER_TENANT).status_code == 404


def test_booking_requires_email(client, consultation, future_date):
    response = book(
        client,
        consultation["id"],
        future_date,
        customer={"name": "Sam Groom", "email": None},
    )
    assert response.status_code == 400


def test_honeypot_rejects(client, consultation, future_date):
    response = book(client, consultation["id"], future_date, website="spam")
    assert response.status_code == 400


def test_month_availability_reflects_bookings(client, consultation, future_date):
    book(client, consultation["id"], future_date)

    response = client.get(
        f"/api/tenants/{TENANT}/availability",
        params={
            "booking_type_id": consultation["id"],
            "year": future_date.year,
            "month": future_date.month,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["durationMinutes"] == 60
    assert body["dates"][future_date.isoformat()] == [
        {"time": "10:00", "available": False},
        {"time": "11:00", "available": True},
    ]


def test_month_availability_rejects_bad_month(client, consultation):
    response = client.get(
        f"/api/tenants/{TENANT}/availability",
        params={"booking_type_id": consultation["id"], "year": 2026, "month": 13},
    )
    assert response.status_code == 400
