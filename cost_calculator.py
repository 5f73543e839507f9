from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import Decimal

from config import settings
from schemas import CostBreakdown, LineItem, Money, RateTier
from time_grammar import is_window_active

_UNIT_LENGTH = {
    "hourly": (timedelta(hours=1), "hour", "hr"),
    "daily": (timedelta(days=1), "day", "day"),
    "weekly": (timedelta(weeks=1), "week", "week"),
}


def _format_amount(amount: Decimal, currency: str) -> str:
    return f"{amount:.2f} {currency}"


def _billed_units(duration: timedelta, unit: timedelta) -> int:
    # Partial units are billed in full, the way street meters and garages charge.
    return math.ceil(max(duration, timedelta(0)) / unit)


def select_tier(tiers: list[RateTier], start: datetime) -> RateTier | None:
    """First tier whose applicability window covers ``start``; callers order by specificity."""
    for tier in tiers:
        if tier.applicability is None or is_window_active(tier.applicability, start):
            return tier
    return None


def calculate(tiers: list[RateTier], start: datetime, duration: timedelta) -> CostBreakdown:
    tier = select_tier(tiers, start)
    if tier is None:
        return CostBreakdown(total=Money(amount=Decimal("0"), currency=settings.default_currency))

    if tier.billing in _UNIT_LENGTH:
        unit, singular, per = _UNIT_LENGTH[tier.billing]
        units = _billed_units(duration, unit)
        total = tier.amount * units
        label = singular if units == 1 else f"{singular}s"
        description = f"{units} {label} @ {_format_amount(tier.amount, tier.currency)}/{per}"
    elif tier.billing == "monthly":
        total = tier.amount
        description = tier.description or "Monthly parking"
    else:
        total = tier.amount
        description = tier.description or "Flat rate"

    return CostBreakdown(
        total=Money(amount=total, currency=tier.currency),
        breakdown=[LineItem(description=description, amount=total)],
    )
