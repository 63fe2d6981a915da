"""Money helpers; amounts are integer cents throughout"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional


def calculate_deposit(total: int, percentage: int) -> int:
    """round(total × percentage / 100), halves rounded up"""
    exact = Decimal(total) * Decimal(percentage) / Decimal(100)
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_money(cents: Optional[int]) -> str:
    if cents is None:
        return "$0.00"
    return f"${cents / 100:,.2f}"
