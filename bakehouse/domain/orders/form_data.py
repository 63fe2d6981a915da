"""
Order details per order type.

Submissions carry a ``details`` object whose ``order_type`` selects the variant. The
validated model is stored as JSON in ``Order.form_data``; the lifecycle never reads it.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class _Details(BaseModel):
    allergies: Optional[str] = Field(None, max_length=1000)
    how_did_you_hear: Optional[str] = Field(None, max_length=255)


class CookieDetails(_Details):
    order_type: Literal["cookies"]
    quantity: int = Field(..., ge=1, le=3, description="Dozens")
    flavors: list[str] = Field(..., min_length=1)
    packaging: Optional[str] = None


class LargeCookieDetails(_Details):
    order_type: Literal["cookies_large"]
    quantity: int = Field(..., ge=4, description="Dozens")
    flavors: list[str] = Field(..., min_length=1)
    event_type: Optional[str] = None
    theme: Optional[str] = None
    design_notes: Optional[str] = None


class CakeDetails(_Details):
    order_type: Literal["cake"]
    size: str = Field(..., min_length=1)
    flavor: str = Field(..., min_length=1)
    filling: str = Field(..., min_length=1)
    buttercream: str = Field(..., min_length=1)
    design: str = Field(..., min_length=1)
    message: Optional[str] = None
    occasion: Optional[str] = None


class WeddingDetails(_Details):
    order_type: Literal["wedding"]
    guest_count: int = Field(..., gt=0)
    services_needed: list[str] = Field(..., min_length=1)
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    ceremony_time: Optional[str] = None
    reception_time: Optional[str] = None
    colors: Optional[str] = None
    budget: Optional[str] = None
    vision: Optional[str] = None


class TastingDetails(_Details):
    order_type: Literal["tasting"]
    tasting_type: Literal["cake", "cookie", "both"]
    event_date: Optional[str] = None


class CookieCupDetails(_Details):
    order_type: Literal["cookie_cups"]
    quantity: int = Field(..., ge=1, description="Dozens")
    chocolate_molds: bool = False
    edible_glitter: bool = False
    colors: Optional[str] = None
    design_notes: Optional[str] = None


class EasterDetails(_Details):
    order_type: Literal["easter_collection"]
    selection: Literal["bento", "cookie_cake", "cookies_dozen", "bundle_bento", "bundle_cookie_cake"]
    cake_flavor: Optional[str] = None
    filling: Optional[str] = None
    cake_message: Optional[str] = Field(None, max_length=100)


OrderDetails = Annotated[
    Union[
        CookieDetails,
        LargeCookieDetails,
        CakeDetails,
        WeddingDetails,
        TastingDetails,
        CookieCupDetails,
        EasterDetails,
    ],
    Field(discriminator="order_type"),
]
