"""Fixed pricing for order types that can be paid at submission"""

from typing import Optional

from ...models import OrderType
from ..settings.schemas import TenantConfig
from .form_data import (
    CookieCupDetails,
    CookieDetails,
    EasterDetails,
    OrderDetails,
    TastingDetails,
)

# Paid in full through hosted checkout at submission
CHECKOUT_TYPES = frozenset(
    {OrderType.COOKIES.value, OrderType.TASTING.value, OrderType.EASTER_COLLECTION.value}
)

ORDER_NUMBER_PREFIXES = {
    OrderType.COOKIES.value: "CK",
    OrderType.COOKIES_LARGE.value: "CKL",
    OrderType.CAKE.value: "CAKE",
    OrderType.WEDDING.value: "WED",
    OrderType.TASTING.value: "TST",
    OrderType.COOKIE_CUPS.value: "CUP",
    OrderType.EASTER_COLLECTION.value: "EASTER",
}

ORDER_TYPE_LABELS = {
    OrderType.COOKIES.value: "Cookies",
    OrderType.COOKIES_LARGE.value: "Large Cookie Order",
    OrderType.CAKE.value: "Custom Cake",
    OrderType.WEDDING.value: "Wedding",
    OrderType.TASTING.value: "Tasting Box",
    OrderType.COOKIE_CUPS.value: "Cookie Cups",
    OrderType.EASTER_COLLECTION.value: "Easter Collection",
}


def price_order(config: TenantConfig, details: OrderDetails) -> Optional[int]:
    """Total in cents, or None when staff must price the order by quote"""
    if isinstance(details, CookieDetails):
        return config.cookie_price_per_dozen * details.quantity

    if isinstance(details, TastingDetails):
        return getattr(config.tasting_prices, details.tasting_type)

    if isinstance(details, CookieCupDetails):
        prices = config.cookie_cup_prices
        per_dozen = prices.per_dozen
        if details.chocolate_molds:
            per_dozen += prices.chocolate_molds_per_dozen
        if details.edible_glitter:
            per_dozen += prices.edible_glitter_per_dozen
        return per_dozen * details.quantity

    if isinstance(details, EasterDetails):
        return getattr(config.easter_prices, details.selection)

    return None


def checkout_description(details: OrderDetails) -> str:
    if isinstance(details, CookieDetails):
        return f"{details.quantity} dozen cookies"
    if isinstance(details, TastingDetails):
        return f"{details.tasting_type.title()} tasting box"
    if isinstance(details, EasterDetails):
        return f"Easter collection - {details.selection.replace('_', ' ')}"
    return ORDER_TYPE_LABELS[details.order_type]
