from __future__ import annotations

import re

from schemas import Metered
from time_grammar import parse_time

METER_DISPLAY_CONFIDENCE = 0.85

_PAID_UNTIL_RE = re.compile(
    r"\b(?:EXPIRES?|EXPIRY|PAID\s+(?:UNTIL|TO|THRU)|VALID\s+(?:UNTIL|TO)|GOOD\s+UNTIL)\b"
    r"\s*(?:AT\b|:)?\s*"
    r"(\d{1,2}(?::\d{2})?(?:\s*[AP]\.?\s*M?\.?)?|NOON|MIDNIGHT)?(?![A-Z0-9])"
)


def parse_meter_display(text: str) -> tuple[Metered, float] | None:
    """Read a paid-until time off a meter or pay-station receipt display.

    Returns a ``Metered`` kind whose ``paid_until`` is set when the printed
    time parses; an unreadable time still yields a plain ``Metered`` kind.
    """
    match = _PAID_UNTIL_RE.search(text.upper())
    if not match:
        return None

    token = match.group(1)
    paid_until = parse_time(token) if token else None
    return Metered(paid_until=paid_until), METER_DISPLAY_CONFIDENCE
