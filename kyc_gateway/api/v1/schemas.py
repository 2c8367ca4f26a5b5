"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, List, Optional

from kyc_gateway.domain.models import (
    BehavioralPattern,
    Decision,
    Industry,
    MouseMovement,
    NavigationPattern,
    RiskThresholds,
    Severity,
    TimeBasedMetrics,
    TypingPattern,
)
from kyc_gateway.domain.serialization import fraud_alert_to_dict


class TypingSchema(BaseModel):
    average_speed: float = Field(..., ge=0)
    error_rate: float = Field(..., ge=0)
    key_press_intervals: List[float] = []


class MouseSchema(BaseModel):
    average_speed: float = Field(..., ge=0)
    curvature: float = Field(..., ge=0)
    acceleration: float = 0.0


class NavigationSchema(BaseModel):
    click_sequence: List[str] = []
    page_visit_duration: List[float] = []
    scroll_behavior: List[float] = []


class TimingSchema(BaseModel):
    session_duration: float = Field(..., ge=0, description="Session length in seconds")
    active_hours: List[int] = []
    interaction_frequency: float = 0.0


class BehavioralPatternSchema(BaseModel):
    """Session telemetry captured by the client SDK"""

    session_id: str = Field(..., min_length=1)
    device_fingerprint: str = Field(..., min_length=1)
    typing: TypingSchema
    mouse: MouseSchema
    navigation: NavigationSchema = NavigationSchema()
    timing: TimingSchema
    captured_at: Optional[datetime] = None

    def to_domain(self, user_id: str) -> BehavioralPattern:
        pattern = BehavioralPattern(
            user_id=user_id,
            session_id=self.session_id,
            device_fingerprint=self.device_fingerprint,
            typing=TypingPattern(**self.typing.model_dump()),
            mouse=MouseMovement(**self.mouse.model_dump()),
            navigation=NavigationPattern(**self.navigation.model_dump()),
            timing=TimeBasedMetrics(**self.timing.model_dump()),
        )
        if self.captured_at is not None:
            pattern.captured_at = self.captured_at
        return pattern


class VerificationRequest(BaseModel):
    """Request body for POST /v1/verifications"""

    tenant_id: str = Field(..., min_length=1, description="Tenant whose policy applies")
    user_id: str = Field(..., min_length=1, description="User identifier")
    verification_id: Optional[str] = Field(None, description="Client-supplied id; replays return the stored decision")
    document_capture_id: str = Field(..., min_length=1)
    selfie_capture_id: str = Field(..., min_length=1)
    fingerprint_capture_id: Optional[str] = None
    palm_vein_capture_id: Optional[str] = None
    voice_capture_id: Optional[str] = None
    behavioral: Optional[BehavioralPatternSchema] = None


class FraudAlertSchema(BaseModel):
    alert_id: str
    user_id: str
    verification_id: str
    severity: str
    alert_type: str
    category: str
    description: str
    indicators: List[str]
    requires_action: bool
    timestamp: str


class VerificationResponse(BaseModel):
    """Response for POST /v1/verifications and GET /v1/verifications/{id}"""

    verification_id: str
    user_id: str
    tenant_id: str
    outcome: str
    trust_score: int
    risk_tier: str
    breakdown: Dict[str, int]
    weights: Dict[str, float]
    recommendations: List[str]
    missing_checks: List[str]
    below_auto_reject: bool
    fraud_alerts: List[FraudAlertSchema]
    timestamp: str

    @classmethod
    def from_decision(cls, decision: Decision) -> "VerificationResponse":
        score = decision.risk_score
        return cls(
            verification_id=decision.verification_id,
            user_id=decision.user_id,
            tenant_id=decision.policy.tenant_id,
            outcome=decision.outcome.value,
            trust_score=score.trust_score,
            risk_tier=score.risk_tier.value,
            breakdown={category.value: value for category, value in score.breakdown.items()},
            weights={component.value: weight for component, weight in score.weights.items()},
            recommendations=list(score.recommendations),
            missing_checks=[c.value for c in decision.missing_checks],
            below_auto_reject=decision.below_auto_reject,
            fraud_alerts=[FraudAlertSchema(**fraud_alert_to_dict(a)) for a in decision.fraud_alerts],
            timestamp=decision.timestamp.isoformat(),
        )


class HistoryItem(BaseModel):
    """Single decision in history"""

    verification_id: str
    outcome: str
    trust_score: int
    risk_tier: str
    fraud_alert_count: int
    timestamp: str


class HistoryResponse(BaseModel):
    """Response for GET /v1/verifications/history"""

    user_id: str
    decisions: List[HistoryItem]


class AlertItem(BaseModel):
    """Stored fraud alert with review state"""

    alert_id: str
    user_id: str
    verification_id: str
    severity: str
    alert_type: str
    category: str
    description: str
    indicators: List[str]
    requires_action: bool
    resolved: bool
    resolved_by: Optional[str] = None
    raised_at: str


class AlertListResponse(BaseModel):
    alerts: List[AlertItem]


class ResolveAlertRequest(BaseModel):
    resolved_by: str = Field(..., min_length=1, description="Reviewer identifier")


class IntegrityResponse(BaseModel):
    """Response for GET /v1/audit/integrity"""

    is_valid: bool
    length: int
    corrupted_indices: List[int]
    corrupted_record_ids: List[str]


class AuditRecordSchema(BaseModel):
    index: int
    record_id: str
    verification_id: str
    kind: str
    timestamp: str
    data_hash: str
    previous_hash: str
    block_hash: str


class AuditHistoryResponse(BaseModel):
    user_id: str
    records: List[AuditRecordSchema]


class ThresholdsSchema(BaseModel):
    auto_approve: float = Field(..., ge=0, le=100)
    manual_review: float = Field(..., ge=0, le=100)
    auto_reject: float = Field(..., ge=0, le=100)

    def to_domain(self) -> RiskThresholds:
        return RiskThresholds(
            auto_approve=self.auto_approve,
            manual_review=self.manual_review,
            auto_reject=self.auto_reject,
        )


class PolicyUpdateRequest(BaseModel):
    """Request body for PUT /v1/tenants/{tenant_id}/policy"""

    industry: Industry
    thresholds: Optional[ThresholdsSchema] = Field(None, description="Overrides the industry preset")


class PolicyResponse(BaseModel):
    tenant_id: str
    industry: Industry
    required_checks: List[str]
    thresholds: ThresholdsSchema
    fraud_alert_severities: List[Severity]
    retention_days: int
    reverification_period_days: int
    compliance_flags: List[str]
    verification_levels: List[str]
    external_checks: List[str]
