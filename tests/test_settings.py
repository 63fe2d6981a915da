"""Tenant settings parsing and the staff settings endpoints"""

import json

from bakehouse.domain.settings.schemas import DEFAULT_PICKUP_HOURS
from bakehouse.domain.settings.service import build_tenant_config

from tests.conftest import OTHER_TENANT, TENANT


class TestBuildTenantConfig:
    def test_defaults(self):
        config = build_tenant_config(TENANT, {})

        assert config.tenant_id == TENANT
        assert config.timezone == "UTC"
        assert config.lead_time_small_cookie == 7
        assert config.deposit_percentage == 50
        assert config.pickup_hours == DEFAULT_PICKUP_HOURS
        assert config.templates == {}

    def test_typed_values(self):
        config = build_tenant_config(
            TENANT,
            {
                "lead_time_cake": " 21 ",
                "business_name": "Sweet Crumbs",
                "tasting_prices": json.dumps({"cake": 7500, "cookie": 3500, "both": 10500}),
                "capacity_excluded_statuses": "cancelled, pending_payment, inquiry",
                "reminder_enabled": "Yes",
            },
        )

        assert config.lead_time_cake == 21
        assert config.business_name == "Sweet Crumbs"
        assert config.tasting_prices.both == 10500
        assert config.capacity_excluded_statuses == ("cancelled", "pending_payment", "inquiry")
        assert config.reminder_enabled is True

    def test_bad_values_fall_back_to_defaults(self):
        config = build_tenant_config(
            TENANT,
            {
                "lead_time_cake": "two weeks",
                "deposit_percentage": "-10",
                "easter_prices": "{not json",
                "pickup_hours_monday": json.dumps({"start": "19:00", "end": "09:00"}),
            },
        )

        assert config.lead_time_cake == 14
        assert config.deposit_percentage == 50
        assert config.easter_prices.bento == 4000
        assert config.pickup_hours["monday"] == DEFAULT_PICKUP_HOURS["monday"]

    def test_pickup_hours_override_and_closed_days(self):
        config = build_tenant_config(
            TENANT,
            {
                "pickup_hours_saturday": json.dumps({"start": "08:00", "end": "14:00"}),
                "pickup_hours_sunday": "closed",
            },
        )

        assert config.pickup_hours["saturday"].start == "08:00"
        assert config.pickup_hours["saturday"].end == "14:00"
        assert config.pickup_hours["sunday"] is None
        assert config.pickup_hours["friday"] == DEFAULT_PICKUP_HOURS["friday"]

    def test_templates_collected_by_prefix(self):
        config = build_tenant_config(
            TENANT,
            {
                "template_order_received_subject": "Got it! {{order_number}}",
                "template_order_received_body": "",
            },
        )

        assert config.templates == {"order_received_subject": "Got it! {{order_number}}"}


class TestSettingsEndpoints:
    def test_requires_staff(self, client):
        assert client.get("/api/admin/settings").status_code in (401, 403)

    def test_update_and_list(self, client, staff_headers):
        response = client.put(
            "/api/admin/settings",
            json={"settings": {"lead_time_cake": "21", "business_name": "Sweet Crumbs"}},
            headers=staff_headers,
        )
        assert response.status_code == 200

        client.put(
            "/api/admin/settings",
            json={"settings": {"lead_time_cake": "10"}},
            headers=staff_headers,
        )

        settings = client.get("/api/admin/settings", headers=staff_headers).json()
        assert settings == [
            {"key": "business_name", "value": "Sweet Crumbs"},
            {"key": "lead_time_cake", "value": "10"},
        ]

    def test_settings_drive_public_behaviour(self, client, staff_headers, future_date):
        client.put(
            "/api/admin/settings",
            json={"settings": {"lead_time_small_cookie": "60"}},
            headers=staff_headers,
        )
        payload = {
            "customer": {"name": "Jane Baker", "email": "jane@example.com", "phone": "5555550100"},
            "details": {"order_type": "cookies", "quantity": 1, "flavors": ["Sugar"]},
            "pickup_date": future_date.isoformat(),
            "pickup_time": "10:00",
        }

        assert client.post(f"/api/tenants/{TENANT}/orders", json=payload).status_code == 400
        assert client.post(f"/api/tenants/{OTHER_TENANT}/orders", json=payload).status_code == 201
