from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PickupHours(BaseModel):
    start: str
    end: str


class TastingPrices(BaseModel):
    cake: int = 7000
    cookie: int = 3000
    both: int = 10000


class CookieCupPrices(BaseModel):
    per_dozen: int = 3000
    chocolate_molds_per_dozen: int = 400
    edible_glitter_per_dozen: int = 200


class EasterPrices(BaseModel):
    bento: int = 4000
    cookie_cake: int = 4000
    cookies_dozen: int = 2600
    bundle_bento: int = 4800
    bundle_cookie_cake: int = 4800


DEFAULT_PICKUP_HOURS = {
    "sunday": PickupHours(start="09:00", end="12:00"),
    "monday": PickupHours(start="09:00", end="19:00"),
    "tuesday": PickupHours(start="09:00", end="12:00"),
    "wednesday": PickupHours(start="09:00", end="12:00"),
    "thursday": PickupHours(start="09:00", end="12:00"),
    "friday": PickupHours(start="09:00", end="19:00"),
    "saturday": PickupHours(start="09:00", end="12:00"),
}


class TenantConfig(BaseModel):
    """Typed snapshot of a tenant's settings, loaded once per request"""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    timezone: str = "UTC"
    admin_email: Optional[str] = None
    admin_phone: Optional[str] = None
    business_name: str = "Bakehouse"

    # Lead times in days, per order type
    lead_time_small_cookie: int = 7
    lead_time_large_cookie: int = 14
    lead_time_cake: int = 14
    lead_time_wedding: int = 30
    lead_time_tasting: int = 14
    booking_lead_time_days: int = 0

    default_slot_capacity: int = 2
    booking_slot_capacity: int = 1
    slot_interval_minutes: int = 30
    pickup_hours: dict[str, Optional[PickupHours]] = Field(
        default_factory=lambda: dict(DEFAULT_PICKUP_HOURS)
    )

    # Which statuses do NOT consume bakery pickup capacity
    capacity_excluded_statuses: tuple[str, ...] = ("cancelled", "pending_payment")
    # Which booking statuses block a consulting slot
    booking_blocking_statuses: tuple[str, ...] = ("pending", "confirmed")

    # Pricing (cents)
    cookie_price_per_dozen: int = 4000
    tasting_prices: TastingPrices = Field(default_factory=TastingPrices)
    cookie_cup_prices: CookieCupPrices = Field(default_factory=CookieCupPrices)
    easter_prices: EasterPrices = Field(default_factory=EasterPrices)

    deposit_percentage: int = 50
    quote_validity_days: int = 7
    contract_validity_days: int = 30
    default_contract_body: str = ""

    reminder_enabled: bool = True
    reminder_days_before: int = 1

    templates: dict[str, str] = Field(default_factory=dict)


class SettingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    value: Optional[str] = None


class SettingsUpdate(BaseModel):
    settings: dict[str, Optional[str]]
