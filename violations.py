from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path

from config import settings
from schemas import FineEstimate, ParkingRule

logger = logging.getLogger(__name__)

DEFAULT_FINE_SOURCE = "ParkGuard default fine bands"
SIGN_FINE_SOURCE = "Posted on sign"


@dataclass(frozen=True)
class _FineBand:
    min_fine: Decimal
    max_fine: Decimal
    currency: str
    note: str
    source: str


_FALLBACK_BANDS = {
    "no_parking": _FineBand(Decimal("65"), Decimal("115"), "USD", "No parking violation estimate by zone/time.", DEFAULT_FINE_SOURCE),
    "permit_required": _FineBand(Decimal("50"), Decimal("100"), "USD", "Parking without a valid zone permit.", DEFAULT_FINE_SOURCE),
    "street_cleaning": _FineBand(Decimal("65"), Decimal("150"), "USD", "Street cleaning violation estimate.", DEFAULT_FINE_SOURCE),
    "loading_zone": _FineBand(Decimal("95"), Decimal("115"), "USD", "Loading zone misuse estimate.", DEFAULT_FINE_SOURCE),
}


@lru_cache(maxsize=4)
def _load_fine_bands(catalog_path: str | None) -> dict[str, _FineBand]:
    if not catalog_path:
        return _FALLBACK_BANDS

    try:
        payload = json.loads(Path(catalog_path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning("Fine catalog %s unreadable, using built-in bands", catalog_path)
        return _FALLBACK_BANDS

    if not isinstance(payload, dict):
        return _FALLBACK_BANDS

    source = str(payload.get("source", DEFAULT_FINE_SOURCE))
    rules = payload.get("rules")
    if not isinstance(rules, dict):
        return _FALLBACK_BANDS

    mapped: dict[str, _FineBand] = {}
    for rule_type, entry in rules.items():
        if not isinstance(entry, dict):
            continue
        try:
            mapped[str(rule_type)] = _FineBand(
                min_fine=Decimal(str(entry["min_fine"])),
                max_fine=Decimal(str(entry["max_fine"])),
                currency=str(entry.get("currency", "USD")),
                note=str(entry.get("note", "")),
                source=str(entry.get("source", source)),
            )
        except (KeyError, TypeError, InvalidOperation):
            continue

    return mapped or _FALLBACK_BANDS


def estimate_fine(rule: ParkingRule) -> FineEstimate | None:
    """Fine a driver risks when ``rule`` is the binding restriction.

    A fine printed on the sign wins over the catalog band. Permissive and
    unrecognized rules have no estimate.
    """
    if not rule.is_restrictive:
        return None

    kind = rule.kind
    note = None
    if kind.severity == "tow_away":
        note = "Tow-away zone: towing and storage fees are charged on top of the fine."

    if kind.fine_amount is not None:
        return FineEstimate(
            rule_type=kind.type,
            min_fine=kind.fine_amount,
            max_fine=kind.fine_amount,
            severity=kind.severity,
            source=SIGN_FINE_SOURCE,
            note=note,
        )

    band = _load_fine_bands(settings.fine_catalog_path).get(kind.type)
    if band is None:
        return None

    return FineEstimate(
        rule_type=kind.type,
        min_fine=band.min_fine,
        max_fine=band.max_fine,
        currency=band.currency,
        severity=kind.severity,
        source=band.source,
        note=note or band.note,
    )
