from __future__ import annotations

from datetime import datetime, time, timedelta

from rule_engine import SCAN_HORIZON_DAYS, evaluate, is_rule_active, next_state_change
from schemas import LegalityVerdict, Metered, ParkingRule, TimeLimit, TimerSuggestion

DEFAULT_WARNING_LEAD = timedelta(minutes=10)


def _next_occurrence(at: datetime, minute: int) -> datetime:
    candidate = datetime.combine(at.date(), time(minute // 60, minute % 60), tzinfo=at.tzinfo)
    if candidate <= at:
        candidate += timedelta(days=1)
    return candidate


def _next_restriction(rules: list[ParkingRule], at: datetime) -> datetime | None:
    """First state change after ``at`` at which parking stops being allowed."""
    if not any(rule.is_restrictive for rule in rules):
        return None

    horizon = at + timedelta(days=SCAN_HORIZON_DAYS)
    moment = at
    while True:
        change = next_state_change(rules, moment)
        if change is None or change > horizon:
            return None
        if not evaluate(rules, change).allowed:
            return change
        moment = change


def _build(at: datetime, expires_at: datetime, warning_lead: timedelta, reason: str) -> TimerSuggestion:
    return TimerSuggestion(
        expires_at=expires_at,
        warn_at=max(expires_at - warning_lead, at),
        duration_minutes=int((expires_at - at).total_seconds() // 60),
        reason=reason,
    )


def _bounded(
    at: datetime,
    expires_at: datetime,
    restriction_at: datetime | None,
    warning_lead: timedelta,
    reason: str,
) -> TimerSuggestion:
    if restriction_at is not None and restriction_at < expires_at:
        return _build(at, restriction_at, warning_lead, "restriction_start")
    return _build(at, expires_at, warning_lead, reason)


def suggest(
    verdict: LegalityVerdict,
    rules: list[ParkingRule],
    at: datetime,
    *,
    warning_lead: timedelta = DEFAULT_WARNING_LEAD,
) -> TimerSuggestion | None:
    """Propose when a parking session ends and when to warn about it.

    Preference order: an active time limit, then a paid-until time read off
    a meter display, then the start of the next restriction. A restriction
    that begins before the limit or meter runs out ends the session early.
    Returns None when parking is not allowed now or nothing bounds the stay.
    """
    if not verdict.allowed:
        return None

    active = [rule for rule in rules if is_rule_active(rule, at)]
    restriction_at = _next_restriction(rules, at)

    for rule in active:
        if isinstance(rule.kind, TimeLimit):
            expires_at = at + timedelta(minutes=rule.kind.duration_minutes)
            return _bounded(at, expires_at, restriction_at, warning_lead, "time_limit")

    for rule in active:
        if isinstance(rule.kind, Metered) and rule.kind.paid_until is not None:
            expires_at = _next_occurrence(at, rule.kind.paid_until)
            return _bounded(at, expires_at, restriction_at, warning_lead, "meter_expiry")

    if restriction_at is not None:
        return _build(at, restriction_at, warning_lead, "restriction_start")

    return None
