from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Severity = Literal["warning", "ticket", "tow_away"]
BillingKind = Literal["hourly", "daily", "weekly", "monthly", "flat"]

SEVERITY_RANK: dict[str, int] = {"warning": 0, "ticket": 1, "tow_away": 2}

TimeOfDay = Annotated[int, Field(ge=0, le=1439, description="Minutes since midnight")]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class HealthResponse(BaseModel):
    status: str = Field(..., examples=["ok"])


class TimeWindow(_Frozen):
    """Active during ``[start, end)`` on each of ``days``.

    ``start > end`` wraps past midnight into the following calendar day and
    ``start == end`` covers the whole day. Days use ``datetime.weekday()``
    numbering (Monday = 0).
    """

    start: TimeOfDay
    end: TimeOfDay
    days: frozenset[int] = Field(default_factory=lambda: frozenset(range(7)))

    @field_validator("days")
    @classmethod
    def _check_days(cls, value: frozenset[int]) -> frozenset[int]:
        if not value:
            raise ValueError("days must not be empty")
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("days must be weekday numbers 0-6")
        return value

    @property
    def wraps_midnight(self) -> bool:
        return self.start > self.end


class _RuleKindBase(_Frozen):
    severity: Severity = "ticket"
    fine_amount: Optional[Decimal] = Field(None, ge=0)


class TimeLimit(_RuleKindBase):
    type: Literal["time_limit"] = "time_limit"
    duration_minutes: int = Field(..., gt=0)


class NoParking(_RuleKindBase):
    type: Literal["no_parking"] = "no_parking"


class PermitRequired(_RuleKindBase):
    type: Literal["permit_required"] = "permit_required"
    permit_type: Optional[str] = None


class Metered(_RuleKindBase):
    type: Literal["metered"] = "metered"
    paid_until: Optional[TimeOfDay] = None


class Free(_RuleKindBase):
    type: Literal["free"] = "free"
    severity: Severity = "warning"


class LoadingZone(_RuleKindBase):
    type: Literal["loading_zone"] = "loading_zone"


class StreetCleaning(_RuleKindBase):
    type: Literal["street_cleaning"] = "street_cleaning"


class Unknown(_RuleKindBase):
    type: Literal["unknown"] = "unknown"
    severity: Severity = "warning"


ParkingRuleKind = Annotated[
    Union[TimeLimit, NoParking, PermitRequired, Metered, Free, LoadingZone, StreetCleaning, Unknown],
    Field(discriminator="type"),
]

RESTRICTIVE_KINDS = frozenset({"no_parking", "permit_required", "street_cleaning", "loading_zone"})
PERMISSIVE_KINDS = frozenset({"time_limit", "metered", "free"})


class ParkingRule(_Frozen):
    kind: ParkingRuleKind
    window: Optional[TimeWindow] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    raw_text: str
    user_confirmed: bool = False

    @model_validator(mode="after")
    def _confidence_needs_confirmation(self) -> "ParkingRule":
        if self.confidence >= 1.0 and not self.user_confirmed:
            raise ValueError("confidence 1.0 is reserved for user-confirmed rules")
        return self

    @property
    def is_restrictive(self) -> bool:
        return self.kind.type in RESTRICTIVE_KINDS


class RateTier(_Frozen):
    amount: Decimal = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    applicability: Optional[TimeWindow] = None
    billing: BillingKind
    description: Optional[str] = None


class Money(_Frozen):
    amount: Decimal
    currency: str


class LineItem(_Frozen):
    description: str
    amount: Decimal


class CostBreakdown(_Frozen):
    total: Money
    breakdown: list[LineItem] = Field(default_factory=list)


class LegalityVerdict(_Frozen):
    allowed: bool
    binding_rule: Optional[ParkingRule] = None
    next_change_at: Optional[datetime] = None
    active_rules: list[ParkingRule] = Field(default_factory=list)


class TimerSuggestion(_Frozen):
    expires_at: datetime
    warn_at: datetime
    duration_minutes: int
    reason: str = Field(..., description="time_limit | meter_expiry | restriction_start")


class FineEstimate(BaseModel):
    rule_type: str
    min_fine: Decimal
    max_fine: Decimal
    currency: str = "USD"
    severity: Severity
    source: str
    note: Optional[str] = None


class ParkingDecision(BaseModel):
    status: str = Field(..., description="safe | caution | blocked")
    risk_score: int = Field(..., ge=0, le=100)
    primary_reason: str
    recommended_action: str
    fine_estimate: Optional[FineEstimate] = None


class ScanResult(BaseModel):
    text: str
    rules: list[ParkingRule]
    verdict: LegalityVerdict
    timer: Optional[TimerSuggestion] = None
    requires_confirmation: bool
    decision: ParkingDecision


class ExtractRequest(BaseModel):
    text: str
    ocr_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class ExtractResponse(BaseModel):
    rules: list[ParkingRule]
    requires_confirmation: bool


class ConfirmRequest(BaseModel):
    rules: list[ParkingRule]
    duration_minutes: int = Field(..., gt=0)


class EvaluateRequest(BaseModel):
    rules: list[ParkingRule]
    at: datetime


class CostRequest(BaseModel):
    tiers: list[RateTier] = Field(default_factory=list)
    pricing_url: Optional[str] = None
    start: datetime
    duration_minutes: int = Field(..., ge=0)


class ScanRequest(ExtractRequest):
    at: datetime
