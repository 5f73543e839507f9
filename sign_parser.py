from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable

from config import settings
from decision_engine import derive_parking_decision, requires_confirmation
from meter_parser import parse_meter_display
from rule_engine import evaluate, localize
from schemas import (
    Free,
    LoadingZone,
    Metered,
    NoParking,
    RESTRICTIVE_KINDS,
    ParkingRule,
    ParkingRuleKind,
    PermitRequired,
    ScanResult,
    StreetCleaning,
    TimeLimit,
    TimeWindow,
    Unknown,
)
from time_grammar import ALL_DAYS, find_time_ranges, parse_days
from timer_advisor import suggest

logger = logging.getLogger(__name__)

UNKNOWN_CONFIDENCE = 0.5
MAX_EXTRACTED_CONFIDENCE = 0.99

_TIME_LIMIT_RE = re.compile(r"\b(\d{1,3})\s*-?\s*(HOURS?|HRS?|MINUTES?|MINS?)\b")
_LIMIT_PHRASE_RE = re.compile(r"\b(?:PARKING|LIMIT|MAX(?:IMUM)?)\b")
_NO_PARKING_RE = re.compile(r"\bNO\s+PARKING\b")
_NO_STANDING_RE = re.compile(r"\bNO\s+(?:STANDING|STOPPING)\b")
_PERMIT_RE = re.compile(
    r"\bPERMIT\s+(?:PARKING\s+)?ONLY\b|\bPERMIT\s+REQUIRED\b|\bPERMIT\s+HOLDERS\s+ONLY\b|\bRESIDENTS?\s+ONLY\b"
)
_PERMIT_ZONE_RE = re.compile(r"\b(ZONE|AREA|DISTRICT)\s*#?\s*([A-Z]?\d+[A-Z]?|[A-Z])\b")
_METERED_RE = re.compile(
    r"\bMETER(?:ED)?\s+PARKING\b|\bPAY\s+(?:AT\s+|&\s+|AND\s+)?(?:METER|STATION|KIOSK)\b"
    r"|\bPAID\s+PARKING\b|\bPAY\s+TO\s+PARK\b"
)
_FREE_RE = re.compile(r"\bFREE\s+PARKING\b|\bPARKING\s+(?:IS\s+)?FREE\b|\bNO\s+CHARGE\b")
_LOADING_RE = re.compile(r"\bLOADING\s+(?:ZONE|ONLY)\b|\b(?:COMMERCIAL|TRUCK)\s+(?:VEHICLES?\s+)?LOADING\b")
_STREET_CLEANING_RE = re.compile(r"\bSTREET\s+(?:CLEANING|SWEEPING)\b|\bALTERNATE\s+SIDE\b")
_TOW_AWAY_RE = re.compile(r"\bTOW[\s-]*AWAY\b|\bVIOLATORS\s+(?:WILL\s+BE\s+)?TOWED\b")
_FINE_RE = re.compile(r"\$\s*(\d{1,4}(?:\.\d{2})?)\s+FINE\b|\bFINE\s*:?\s*\$\s*(\d{1,4}(?:\.\d{2})?)")

KindMatch = tuple[ParkingRuleKind, float]


def _match_time_limit(text: str) -> KindMatch | None:
    restricted = bool(_NO_PARKING_RE.search(text) or _NO_STANDING_RE.search(text))
    for line in text.splitlines() or [text]:
        match = _TIME_LIMIT_RE.search(line)
        if not match:
            continue
        amount = int(match.group(1))
        minutes = amount * 60 if match.group(2).startswith("H") else amount
        if minutes <= 0:
            continue
        if minutes >= 24 * 60 and restricted:
            # "NO PARKING 24 HOURS" states when, not how long.
            continue
        confidence = 0.9 if _LIMIT_PHRASE_RE.search(line) else 0.75
        return TimeLimit(duration_minutes=minutes), confidence
    return None


def _match_no_parking(text: str) -> KindMatch | None:
    if _NO_PARKING_RE.search(text):
        return NoParking(), 0.95
    if _NO_STANDING_RE.search(text):
        return NoParking(), 0.85
    return None


def _match_permit(text: str) -> KindMatch | None:
    if not _PERMIT_RE.search(text):
        return None
    zone = _PERMIT_ZONE_RE.search(text)
    permit_type = f"{zone.group(1)} {zone.group(2)}" if zone else None
    return PermitRequired(permit_type=permit_type), 0.95


def _match_metered(text: str) -> KindMatch | None:
    display = parse_meter_display(text)
    if _METERED_RE.search(text):
        kind = display[0] if display else Metered()
        return kind, 0.9
    return display


def _match_free(text: str) -> KindMatch | None:
    return (Free(), 0.95) if _FREE_RE.search(text) else None


def _match_loading_zone(text: str) -> KindMatch | None:
    return (LoadingZone(), 0.9) if _LOADING_RE.search(text) else None


def _match_street_cleaning(text: str) -> KindMatch | None:
    return (StreetCleaning(), 0.9) if _STREET_CLEANING_RE.search(text) else None


_MATCHERS: tuple[Callable[[str], KindMatch | None], ...] = (
    _match_time_limit,
    _match_no_parking,
    _match_permit,
    _match_metered,
    _match_free,
    _match_loading_zone,
    _match_street_cleaning,
)


@dataclass
class _Clause:
    source_lines: list[str] = field(default_factory=list)
    has_kind: bool = False
    ranges: list[tuple[int, int]] = field(default_factory=list)
    days: frozenset[int] = frozenset()

    @property
    def text(self) -> str:
        return "\n".join(line.upper() for line in self.source_lines)

    @property
    def raw_text(self) -> str:
        return "\n".join(self.source_lines)

    @property
    def has_time_info(self) -> bool:
        return bool(self.ranges or self.days)

    def add(self, line: str, is_kind_line: bool) -> None:
        self.source_lines.append(line)
        self.has_kind = self.has_kind or is_kind_line
        self.ranges = find_time_ranges(self.text)
        self.days = parse_days(self.text)


def _split_clauses(text: str) -> list[_Clause]:
    """Group sign lines so each restriction keeps the times printed under it."""
    clauses: list[_Clause] = []
    current: _Clause | None = None
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        upper = stripped.upper()
        is_kind_line = any(matcher(upper) is not None for matcher in _MATCHERS)
        if current is None or (is_kind_line and current.has_kind and current.has_time_info):
            current = _Clause()
            clauses.append(current)
        current.add(stripped, is_kind_line)
    return clauses


def _windows_for(ranges: list[tuple[int, int]], days: frozenset[int]) -> list[TimeWindow | None]:
    if ranges:
        return [TimeWindow(start=start, end=end, days=days or ALL_DAYS) for start, end in ranges]
    if days:
        return [TimeWindow(start=0, end=0, days=days)]
    return [None]


def _scaled(confidence: float, ocr_confidence: float | None) -> float:
    if ocr_confidence is not None:
        confidence *= ocr_confidence
    return round(min(confidence, MAX_EXTRACTED_CONFIDENCE), 4)


def _sign_fine(text: str) -> Decimal | None:
    match = _FINE_RE.search(text)
    if not match:
        return None
    return Decimal(match.group(1) or match.group(2))


def extract(text: str, *, ocr_confidence: float | None = None) -> list[ParkingRule]:
    """Turn sign or meter text into candidate parking rules.

    Every matcher runs independently, so one sign can produce several rules,
    including contradictory ones; resolving them is the evaluator's job.
    Text that matches nothing yields a single ``Unknown`` rule at 0.5.
    """
    clauses = _split_clauses(text)
    upper = text.upper()
    tow_away = bool(_TOW_AWAY_RE.search(upper))
    fine = _sign_fine(upper)

    informed = [clause for clause in clauses if clause.has_time_info]
    shared = informed[0] if len(informed) == 1 else None

    rules: list[ParkingRule] = []
    for clause in clauses:
        ranges, days = clause.ranges, clause.days
        if not clause.has_time_info and shared is not None:
            ranges, days = shared.ranges, shared.days

        for matcher in _MATCHERS:
            matched = matcher(clause.text)
            if matched is None:
                continue
            kind, confidence = matched
            if kind.type in RESTRICTIVE_KINDS:
                update: dict = {}
                if tow_away:
                    update["severity"] = "tow_away"
                if fine is not None:
                    update["fine_amount"] = fine
                if update:
                    kind = kind.model_copy(update=update)
            for window in _windows_for(ranges, days):
                rules.append(
                    ParkingRule(
                        kind=kind,
                        window=window,
                        confidence=_scaled(confidence, ocr_confidence),
                        raw_text=clause.raw_text,
                    )
                )

    if tow_away and not any(rule.is_restrictive for rule in rules):
        windows = _windows_for(shared.ranges, shared.days) if shared is not None else [None]
        for window in windows:
            rules.append(
                ParkingRule(
                    kind=NoParking(severity="tow_away", fine_amount=fine),
                    window=window,
                    confidence=_scaled(0.8, ocr_confidence),
                    raw_text=text.strip(),
                )
            )

    if not rules:
        logger.debug("No parking pattern recognized in %r", text)
        return [ParkingRule(kind=Unknown(), confidence=UNKNOWN_CONFIDENCE, raw_text=text)]

    logger.debug("Extracted %d rule(s) from %d clause(s)", len(rules), len(clauses))
    return rules


def confirm_time_limit(rules: list[ParkingRule], duration_minutes: int) -> list[ParkingRule]:
    """Replace the first time limit's duration with a user-confirmed value."""
    confirmed: list[ParkingRule] = []
    replaced = False
    for rule in rules:
        if not replaced and isinstance(rule.kind, TimeLimit):
            rule = rule.model_copy(
                update={
                    "kind": rule.kind.model_copy(update={"duration_minutes": duration_minutes}),
                    "confidence": 1.0,
                    "user_confirmed": True,
                }
            )
            replaced = True
        confirmed.append(rule)

    if not replaced:
        logger.info("No time limit rule to confirm among %d rule(s)", len(rules))
    return confirmed


def scan(
    text: str,
    at: datetime,
    *,
    ocr_confidence: float | None = None,
    timezone_name: str | None = None,
    warning_lead: timedelta | None = None,
) -> ScanResult:
    """Run extraction, evaluation and timer advice for one sign reading."""
    local_at = localize(at, timezone_name)
    rules = extract(text, ocr_confidence=ocr_confidence)
    verdict = evaluate(rules, local_at)
    lead = warning_lead if warning_lead is not None else timedelta(minutes=settings.warning_lead_minutes)
    timer = suggest(verdict, rules, local_at, warning_lead=lead)

    return ScanResult(
        text=text,
        rules=rules,
        verdict=verdict,
        timer=timer,
        requires_confirmation=requires_confirmation(rules, settings.confirmation_threshold),
        decision=derive_parking_decision(verdict),
    )
