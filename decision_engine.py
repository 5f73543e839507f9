from __future__ import annotations

from schemas import LegalityVerdict, ParkingDecision, ParkingRule, TimeWindow
from time_grammar import ALL_DAYS, WEEKDAYS, WEEKENDS, format_minutes
from violations import estimate_fine

_DAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_KIND_LABELS = {
    "time_limit": "Time limit",
    "no_parking": "No parking",
    "permit_required": "Permit required",
    "metered": "Metered parking",
    "free": "Free parking",
    "loading_zone": "Loading zone",
    "street_cleaning": "Street cleaning",
    "unknown": "Unrecognized sign",
}

_RISK_BY_SEVERITY = {"warning": 70, "ticket": 90, "tow_away": 97}


def _describe_days(days: frozenset[int]) -> str:
    if days == ALL_DAYS:
        return "daily"
    if days == WEEKDAYS:
        return "Mon-Fri"
    if days == WEEKENDS:
        return "Sat-Sun"
    return ", ".join(_DAY_LABELS[day] for day in sorted(days))


def describe_window(window: TimeWindow | None) -> str:
    if window is None:
        return "at all times"
    days = _describe_days(window.days)
    if window.start == window.end:
        return f"all day {days}"
    return f"{format_minutes(window.start)}-{format_minutes(window.end)} {days}"


def describe_rule(rule: ParkingRule) -> str:
    kind = rule.kind
    label = _KIND_LABELS[kind.type]
    if kind.type == "time_limit":
        label = f"{kind.duration_minutes} minute limit"
    elif kind.type == "permit_required" and kind.permit_type:
        label = f"Permit required ({kind.permit_type})"
    return f"{label} {describe_window(rule.window)}"


def requires_confirmation(rules: list[ParkingRule], threshold: float) -> bool:
    """Whether a person should confirm the extracted rules before acting on them."""
    return any(
        rule.kind.type == "unknown" or (rule.confidence < threshold and not rule.user_confirmed)
        for rule in rules
    )


def derive_parking_decision(verdict: LegalityVerdict) -> ParkingDecision:
    if not verdict.allowed and verdict.binding_rule is not None:
        binding = verdict.binding_rule
        return ParkingDecision(
            status="blocked",
            risk_score=_RISK_BY_SEVERITY[binding.kind.severity],
            primary_reason=describe_rule(binding),
            recommended_action="Do not park here. Move to another spot.",
            fine_estimate=estimate_fine(binding),
        )

    caution_reasons: list[str] = []
    risk_score = 10
    for rule in verdict.active_rules:
        if rule.kind.type == "unknown":
            caution_reasons.append("Sign text not recognized. Check the sign manually.")
            risk_score = max(risk_score, 50)
        elif rule.kind.type == "time_limit":
            caution_reasons.append(describe_rule(rule))
            risk_score = max(risk_score, 40)
        elif rule.kind.type == "metered":
            caution_reasons.append("Meter payment required")
            risk_score = max(risk_score, 30)

    if caution_reasons:
        return ParkingDecision(
            status="caution",
            risk_score=risk_score,
            primary_reason=caution_reasons[0],
            recommended_action="Parking is allowed now, but conditions apply.",
        )

    return ParkingDecision(
        status="safe",
        risk_score=10,
        primary_reason="No active restrictions detected in current rule set.",
        recommended_action="Proceed to park, then verify on-street signage.",
    )
