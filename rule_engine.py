from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from schemas import SEVERITY_RANK, LegalityVerdict, ParkingRule
from time_grammar import is_window_active, window_boundaries

# Every weekly window has a boundary within seven days; one extra covers wraps.
SCAN_HORIZON_DAYS = 8


def localize(at: datetime, timezone_name: str | None) -> datetime:
    """Express ``at`` in the sign's zone; naive instants are taken as local wall-clock."""
    if timezone_name is None:
        return at
    tz = ZoneInfo(timezone_name)
    return at.astimezone(tz) if at.tzinfo else at.replace(tzinfo=tz)


def is_rule_active(rule: ParkingRule, at: datetime) -> bool:
    if rule.window is None:
        return True
    return is_window_active(rule.window, at)


def _pick_binding_rule(active: list[ParkingRule]) -> ParkingRule | None:
    binding: ParkingRule | None = None
    for rule in active:
        if not rule.is_restrictive:
            continue
        # Strictly greater keeps the earliest-extracted rule on severity ties.
        if binding is None or SEVERITY_RANK[rule.kind.severity] > SEVERITY_RANK[binding.kind.severity]:
            binding = rule
    return binding


def next_state_change(rules: list[ParkingRule], at: datetime) -> datetime | None:
    """Nearest window boundary after ``at`` where some rule turns on or off.

    Boundaries that do not flip anything (e.g. midnight between two
    consecutive all-day windows) are skipped.
    """
    candidates: set[datetime] = set()
    for rule in rules:
        if rule.window is not None:
            candidates.update(window_boundaries(rule.window, at, SCAN_HORIZON_DAYS))

    for boundary in sorted(candidates):
        just_before = boundary - timedelta(minutes=1)
        for rule in rules:
            if rule.window is None:
                continue
            if is_window_active(rule.window, boundary) != is_window_active(rule.window, just_before):
                return boundary
    return None


def evaluate(
    rules: list[ParkingRule],
    at: datetime,
    *,
    timezone_name: str | None = None,
) -> LegalityVerdict:
    local_at = localize(at, timezone_name)

    active = [rule for rule in rules if is_rule_active(rule, local_at)]
    binding = _pick_binding_rule(active)

    return LegalityVerdict(
        allowed=binding is None,
        binding_rule=binding,
        next_change_at=next_state_change(rules, local_at),
        active_rules=active,
    )
