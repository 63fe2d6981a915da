"""
Settings service

Turns the loosely typed ``settings`` rows into a ``TenantConfig``. Every field has an
explicit default; a malformed stored value is logged and replaced by that default so a
bad admin edit never takes the storefront down.
"""

import json
import logging
from typing import Optional

from fastapi import Depends, Path
from sqlalchemy.orm import Session

from ...database import get_db
from ...time_utils import WEEKDAY_NAMES, parse_time
from .repository import SettingsRepository
from .schemas import (
    DEFAULT_PICKUP_HOURS,
    CookieCupPrices,
    EasterPrices,
    PickupHours,
    TastingPrices,
    TenantConfig,
)

logger = logging.getLogger(__name__)

INT_KEYS = (
    "lead_time_small_cookie",
    "lead_time_large_cookie",
    "lead_time_cake",
    "lead_time_wedding",
    "lead_time_tasting",
    "booking_lead_time_days",
    "default_slot_capacity",
    "booking_slot_capacity",
    "slot_interval_minutes",
    "cookie_price_per_dozen",
    "deposit_percentage",
    "quote_validity_days",
    "contract_validity_days",
    "reminder_days_before",
)
STR_KEYS = ("timezone", "admin_email", "admin_phone", "business_name", "default_contract_body")
JSON_MODEL_KEYS = {
    "tasting_prices": TastingPrices,
    "cookie_cup_prices": CookieCupPrices,
    "easter_prices": EasterPrices,
}
LIST_KEYS = ("capacity_excluded_statuses", "booking_blocking_statuses")
TEMPLATE_PREFIX = "template_"


def _parse_int(key: str, raw: str) -> Optional[int]:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        logger.warning(f"⚠️ Ignoring non-numeric setting {key}={raw!r}")
        return None
    if value < 0:
        logger.warning(f"⚠️ Ignoring negative setting {key}={raw!r}")
        return None
    return value


def _parse_pickup_hours(key: str, raw: Optional[str]) -> Optional[PickupHours]:
    if raw is None or raw.strip() in ("", "null", "closed"):
        return None
    try:
        hours = PickupHours(**json.loads(raw))
        if parse_time(hours.start) >= parse_time(hours.end):
            raise ValueError("start must be before end")
        return hours
    except (ValueError, TypeError) as e:
        logger.warning(f"⚠️ Invalid pickup hours in {key}: {e}")
        return DEFAULT_PICKUP_HOURS[key.removeprefix("pickup_hours_")]


def build_tenant_config(tenant_id: str, raw: dict[str, Optional[str]]) -> TenantConfig:
    values: dict = {"tenant_id": tenant_id}

    for key in INT_KEYS:
        if raw.get(key) not in (None, ""):
            parsed = _parse_int(key, raw[key])
            if parsed is not None:
                values[key] = parsed

    for key in STR_KEYS:
        if raw.get(key):
            values[key] = raw[key]

    for key, model in JSON_MODEL_KEYS.items():
        if raw.get(key):
            try:
                values[key] = model(**json.loads(raw[key]))
            except (ValueError, TypeError) as e:
                logger.warning(f"⚠️ Invalid JSON setting {key}: {e}")

    for key in LIST_KEYS:
        if raw.get(key):
            values[key] = tuple(s.strip() for s in raw[key].split(",") if s.strip())

    if "reminder_enabled" in raw and raw["reminder_enabled"] is not None:
        values["reminder_enabled"] = raw["reminder_enabled"].strip().lower() in ("true", "1", "yes")

    pickup_hours = dict(DEFAULT_PICKUP_HOURS)
    for name in WEEKDAY_NAMES:
        key = f"pickup_hours_{name}"
        if key in raw:
            pickup_hours[name] = _parse_pickup_hours(key, raw[key])
    values["pickup_hours"] = pickup_hours

    values["templates"] = {
        key[len(TEMPLATE_PREFIX) :]: value
        for key, value in raw.items()
        if key.startswith(TEMPLATE_PREFIX) and value
    }

    return TenantConfig(**values)


def load_tenant_config(db: Session, tenant_id: str) -> TenantConfig:
    return build_tenant_config(tenant_id, SettingsRepository.get_all(db, tenant_id))


def get_tenant_config(
    tenant_id: str = Path(..., min_length=1, max_length=64), db: Session = Depends(get_db)
) -> TenantConfig:
    """Dependency for public routes addressed by /tenants/{tenant_id}/..."""
    return load_tenant_config(db, tenant_id)
