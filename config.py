from __future__ import annotations

import os

from pydantic import BaseModel


class Settings(BaseModel):
    # Sign wall-clock times are interpreted in this zone.
    timezone: str = os.getenv("PARKGUARD_TIMEZONE", "America/New_York")

    warning_lead_minutes: int = int(os.getenv("PARKGUARD_WARNING_LEAD_MINUTES", "10"))

    # Rules below this confidence should be confirmed by the user before acting on them.
    confirmation_threshold: float = float(os.getenv("PARKGUARD_CONFIRMATION_THRESHOLD", "0.8"))

    default_currency: str = os.getenv("PARKGUARD_DEFAULT_CURRENCY", "USD")

    pricing_cache_ttl_seconds: int = int(os.getenv("PARKGUARD_PRICING_CACHE_TTL", "300"))
    request_timeout_seconds: float = float(os.getenv("PARKGUARD_REQUEST_TIMEOUT", "5"))

    # Optional JSON fine catalog; the built-in bands are used when missing.
    fine_catalog_path: str | None = os.getenv("PARKGUARD_FINE_CATALOG")


settings = Settings()
