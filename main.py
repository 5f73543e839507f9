import logging
from datetime import UTC, datetime, timedelta
from typing import Optional

from fastapi import FastAPI

from config import settings
from cost_calculator import calculate
from decision_engine import requires_confirmation
from pricing_feed import fetch_rate_tiers, pricing_cache
from rule_engine import evaluate, localize
from schemas import (
    ConfirmRequest,
    CostBreakdown,
    CostRequest,
    EvaluateRequest,
    ExtractRequest,
    ExtractResponse,
    HealthResponse,
    LegalityVerdict,
    ParkingRule,
    ScanRequest,
    ScanResult,
    TimerSuggestion,
)
from sign_parser import confirm_time_limit, extract, scan
from timer_advisor import suggest

logger = logging.getLogger(__name__)

app = FastAPI(
    title="ParkGuard Sign Engine",
    description="Parking sign and meter text interpretation: legality, cost and reminder timing",
    version="0.2.0",
)


def _warning_lead() -> timedelta:
    return timedelta(minutes=settings.warning_lead_minutes)


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@app.get("/system-health")
def system_health() -> dict:
    return {
        "status": "ok",
        "service": app.title,
        "version": app.version,
        "timestamp": datetime.now(UTC),
        "timezone": settings.timezone,
        "pricing_cache": pricing_cache.stats(),
    }


@app.post("/rules/extract", response_model=ExtractResponse)
def extract_rules(request: ExtractRequest) -> ExtractResponse:
    rules = extract(request.text, ocr_confidence=request.ocr_confidence)
    return ExtractResponse(
        rules=rules,
        requires_confirmation=requires_confirmation(rules, settings.confirmation_threshold),
    )


@app.post("/rules/confirm", response_model=list[ParkingRule])
def confirm_rules(request: ConfirmRequest) -> list[ParkingRule]:
    return confirm_time_limit(request.rules, request.duration_minutes)


@app.post("/rules/evaluate", response_model=LegalityVerdict)
def evaluate_rules(request: EvaluateRequest) -> LegalityVerdict:
    return evaluate(request.rules, request.at, timezone_name=settings.timezone)


@app.post("/timer", response_model=Optional[TimerSuggestion])
def suggest_timer(request: EvaluateRequest) -> Optional[TimerSuggestion]:
    at = localize(request.at, settings.timezone)
    verdict = evaluate(request.rules, at)
    return suggest(verdict, request.rules, at, warning_lead=_warning_lead())


@app.post("/cost", response_model=CostBreakdown)
def parking_cost(request: CostRequest) -> CostBreakdown:
    tiers = request.tiers
    if not tiers and request.pricing_url:
        tiers, freshness = fetch_rate_tiers(request.pricing_url)
        logger.info("Pricing feed status %s (%d tiers)", freshness["status"], len(tiers))
    start = localize(request.start, settings.timezone)
    return calculate(tiers, start, timedelta(minutes=request.duration_minutes))


@app.post("/scan", response_model=ScanResult)
def scan_sign(request: ScanRequest) -> ScanResult:
    return scan(
        request.text,
        request.at,
        ocr_confidence=request.ocr_confidence,
        timezone_name=settings.timezone,
        warning_lead=_warning_lead(),
    )
