from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, tzinfo

from schemas import TimeWindow

ALL_DAYS = frozenset(range(7))
WEEKDAYS = frozenset(range(5))
WEEKENDS = frozenset({5, 6})

DAY_TO_INDEX = {
    "MON": 0,
    "TUE": 1,
    "WED": 2,
    "THU": 3,
    "FRI": 4,
    "SAT": 5,
    "SUN": 6,
}

_DAY_NAME = (
    r"(?:MON(?:DAY)?|TUE(?:S(?:DAY)?)?|WED(?:S|NESDAY)?|THU(?:R(?:S(?:DAY)?)?)?"
    r"|FRI(?:DAY)?|SAT(?:URDAY)?|SUN(?:DAY)?)"
)
_DAY_RE = re.compile(rf"\b({_DAY_NAME})S?\b")
_DAY_RANGE_RE = re.compile(
    rf"\b({_DAY_NAME})S?\s*(?:-|–|—|THRU|THROUGH|TO)\s*({_DAY_NAME})S?\b"
)
_WEEKDAYS_RE = re.compile(r"\bWEEKDAYS?\b")
_WEEKENDS_RE = re.compile(r"\bWEEKENDS?\b")
_ALL_DAYS_RE = re.compile(r"\b(?:DAILY|EVERY\s*DAY|7\s*DAYS|ALL\s+DAYS)\b")
_DAY_ITEM = (
    rf"(?:\b{_DAY_NAME}S?(?:[ \t]*(?:-|–|—|\bTHRU\b|\bTHROUGH\b|\bTO\b)[ \t]*{_DAY_NAME}S?)?\b"
    r"|\bWEEKDAYS?\b|\bWEEKENDS?\b)"
)
# A qualifier only governs the day list printed right after it on the same line.
_QUALIFIED_DAYS_RE = re.compile(
    rf"\b(EXCEPT|INCLUDING|INCL\.?)(?![A-Z])[ \t]*"
    rf"({_DAY_ITEM}(?:[ \t]*(?:,|&|\bAND\b|\bOR\b)?[ \t]*{_DAY_ITEM})*)"
)

_TIME_TOKEN_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(?:([AP])\.?\s*M?\.?)?$")
_TIME = r"(?:NOON|MIDNIGHT|\d{1,2}(?::\d{2})?(?:[ \t]*[AP]\.?[ \t]*M?\.?)?)(?![A-Z0-9])"
_TIME_RANGE_RE = re.compile(
    rf"(?<![\d:])({_TIME})[ \t]*(?:-|–|—|\bTO\b|\bTHRU\b|\bTHROUGH\b|\bUNTIL\b)[ \t]*({_TIME})"
)
_MERIDIEM_RE = re.compile(r"([AP])\.?\s*M?\.?$")


def parse_time(token: str) -> int | None:
    """Parse a clock token into minutes since midnight.

    Accepts ``H``, ``H:MM``, either optionally followed by ``AM``/``PM``,
    plus ``NOON`` and ``MIDNIGHT``. Out-of-range hours or minutes give None.
    """
    raw = token.strip().upper()
    if raw == "NOON":
        return 12 * 60
    if raw == "MIDNIGHT":
        return 0

    match = _TIME_TOKEN_RE.match(raw)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    meridiem = match.group(3)
    if minute > 59:
        return None

    if meridiem:
        if not 1 <= hour <= 12:
            return None
        if meridiem == "A" and hour == 12:
            hour = 0
        elif meridiem == "P" and hour < 12:
            hour += 12
    elif hour > 23:
        return None

    return hour * 60 + minute


def _meridiem_of(token: str) -> str | None:
    raw = token.strip().upper()
    if raw == "NOON":
        return "P"
    if raw == "MIDNIGHT":
        return "A"
    match = _MERIDIEM_RE.search(raw)
    return match.group(1) if match else None


def _with_meridiem(token: str, meridiem: str) -> int | None:
    return parse_time(f"{token.strip()} {meridiem}M")


def _flip(meridiem: str) -> str:
    return "P" if meridiem == "A" else "A"


def _resolve_range(start_token: str, end_token: str) -> tuple[int, int] | None:
    start_mer = _meridiem_of(start_token)
    end_mer = _meridiem_of(end_token)
    if start_mer is None and end_mer is None and ":" not in start_token + end_token:
        # "5-7" on its own is more likely a zone number or address than a time range.
        return None

    start = parse_time(start_token)
    end = parse_time(end_token)

    if start_mer is None and end_mer is not None and end is not None:
        same = _with_meridiem(start_token, end_mer)
        other = _with_meridiem(start_token, _flip(end_mer))
        if same is not None and (same < end or other is None):
            start = same
        elif other is not None:
            start = other
    elif end_mer is None and start_mer is not None and start is not None:
        same = _with_meridiem(end_token, start_mer)
        other = _with_meridiem(end_token, _flip(start_mer))
        if same is not None and (same > start or other is None):
            end = same
        elif other is not None:
            end = other

    if start is None or end is None:
        return None
    return start, end


def find_time_ranges(text: str) -> list[tuple[int, int]]:
    """Return every ``(start, end)`` clock range found in ``text``, in order.

    A side without AM/PM borrows the other side's meridiem, flipped when that
    would otherwise put the start after the end ("8-6PM" is 08:00-18:00).
    Malformed tokens are skipped.
    """
    ranges: list[tuple[int, int]] = []
    for match in _TIME_RANGE_RE.finditer(text.upper()):
        resolved = _resolve_range(match.group(1), match.group(2))
        if resolved is not None and resolved not in ranges:
            ranges.append(resolved)
    return ranges


def _scan_days(text: str) -> set[int]:
    result: set[int] = set()

    def _take_range(match: re.Match) -> str:
        start_idx = DAY_TO_INDEX[match.group(1)[:3]]
        end_idx = DAY_TO_INDEX[match.group(2)[:3]]
        if start_idx <= end_idx:
            result.update(range(start_idx, end_idx + 1))
        else:
            result.update(range(start_idx, 7))
            result.update(range(0, end_idx + 1))
        return " "

    remainder = _DAY_RANGE_RE.sub(_take_range, text)
    if _ALL_DAYS_RE.search(remainder):
        result.update(ALL_DAYS)
    if _WEEKDAYS_RE.search(remainder):
        result.update(WEEKDAYS)
    if _WEEKENDS_RE.search(remainder):
        result.update(WEEKENDS)
    for match in _DAY_RE.finditer(remainder):
        result.add(DAY_TO_INDEX[match.group(1)[:3]])
    return result


def parse_days(text: str) -> frozenset[int]:
    """Parse day-of-week phrasing into weekday numbers (Monday = 0).

    Handles day names, ``WEEKDAYS``/``WEEKENDS``, ``DAILY``, ranges such as
    ``MON-FRI`` or ``MONDAY THRU FRIDAY``, and ``EXCEPT``/``INCLUDING``
    qualifiers. A qualifier applies only to the days listed right after it,
    so "EXCEPT AUTHORIZED VEHICLES" leaves the other day phrasing alone. An
    empty result means nothing was recognized and the caller should apply
    its default.
    """
    included: set[int] = set()
    excluded: set[int] = set()

    def _take_qualified(match: re.Match) -> str:
        days = _scan_days(match.group(2))
        if match.group(1) == "EXCEPT":
            excluded.update(days)
        else:
            included.update(days)
        return " "

    base = _scan_days(_QUALIFIED_DAYS_RE.sub(_take_qualified, text.upper()))

    if not included and not excluded:
        return frozenset(base)

    result = (set(base) or set(ALL_DAYS)) | included
    result -= excluded
    return frozenset(result or base)


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def is_window_active(window: TimeWindow, at: datetime) -> bool:
    minute = minute_of_day(at)
    weekday = at.weekday()

    if window.start == window.end:
        return weekday in window.days
    if window.start < window.end:
        return weekday in window.days and window.start <= minute < window.end

    # Wrapping window: the tail after midnight belongs to the previous day's entry.
    if minute >= window.start and weekday in window.days:
        return True
    return minute < window.end and (weekday - 1) % 7 in window.days


def _at_minute(day: date, minute: int, tz: tzinfo | None) -> datetime:
    return datetime.combine(day, time(minute // 60, minute % 60), tzinfo=tz)


def window_boundaries(window: TimeWindow, after: datetime, horizon_days: int = 8) -> list[datetime]:
    """Start and end instants of ``window`` strictly after ``after``, sorted."""
    anchor = after.date()
    found: set[datetime] = set()
    for offset in range(-1, horizon_days + 1):
        day = anchor + timedelta(days=offset)
        if day.weekday() not in window.days:
            continue
        if window.start == window.end:
            # All-day windows turn on and off at midnight whatever minute they name.
            start_dt = _at_minute(day, 0, after.tzinfo)
            end_dt = _at_minute(day + timedelta(days=1), 0, after.tzinfo)
        else:
            start_dt = _at_minute(day, window.start, after.tzinfo)
            end_day = day + timedelta(days=1) if window.end < window.start else day
            end_dt = _at_minute(end_day, window.end, after.tzinfo)
        for boundary in (start_dt, end_dt):
            if boundary > after:
                found.add(boundary)
    return sorted(found)


def format_minutes(minutes: int) -> str:
    hours, minute = divmod(minutes, 60)
    return f"{hours:02d}:{minute:02d}"
