from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import requests
from pydantic import ValidationError

from cache_store import TTLCache
from config import settings
from schemas import RateTier

logger = logging.getLogger(__name__)

pricing_cache = TTLCache(default_ttl_seconds=settings.pricing_cache_ttl_seconds)


def _rows_from_payload(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("rates", "tiers"):
            if isinstance(data.get(key), list):
                return data[key]
    return []


def _parse_tiers(rows: list[Any]) -> list[RateTier]:
    tiers: list[RateTier] = []
    for index, row in enumerate(rows):
        try:
            tiers.append(RateTier.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping invalid rate tier #%d: %s", index, exc.errors()[0]["msg"])
    return tiers


def fetch_rate_tiers(url: str, *, cache: TTLCache | None = None) -> tuple[list[RateTier], dict]:
    """Load caller-ordered rate tiers from a pricing-data endpoint.

    Failures degrade to an empty tier list, which the cost calculator prices
    at zero, so missing pricing data never fails a request.
    """
    store = cache if cache is not None else pricing_cache
    cached = store.lookup(url)
    if cached.hit and isinstance(cached.value, list):
        return cached.value, {
            "status": "cache",
            "cache_hit": True,
            "fetched_at": cached.stored_at,
            "age_seconds": cached.age_seconds,
        }

    try:
        response = requests.get(url, timeout=settings.request_timeout_seconds)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Pricing feed %s unavailable: %s", url, exc)
        return [], {"status": "unavailable", "cache_hit": None, "fetched_at": datetime.now(UTC), "age_seconds": None}

    tiers = _parse_tiers(_rows_from_payload(data))
    store.put(url, tiers)
    return tiers, {"status": "live", "cache_hit": False, "fetched_at": datetime.now(UTC), "age_seconds": 0.0}
