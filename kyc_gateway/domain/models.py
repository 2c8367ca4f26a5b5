"""Domain models - pure Python dataclasses representing verification entities"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple


class SignalCategory(str, Enum):
    """Evidence categories produced for a verification attempt"""

    DOCUMENT = "document"
    FACE = "face"
    FINGERPRINT = "fingerprint"
    PALM_VEIN = "palm_vein"
    VOICE = "voice"
    BEHAVIORAL = "behavioral"
    HISTORICAL = "historical"
    SYNTHETIC_IDENTITY = "synthetic_identity"  # screening only, never weighted


class WeightComponent(str, Enum):
    """Buckets the trust score is weighted over"""

    DOCUMENT = "document"
    BIOMETRIC = "biometric"
    BEHAVIORAL = "behavioral"
    HISTORICAL = "historical"


BIOMETRIC_CATEGORIES: Tuple[SignalCategory, ...] = (
    SignalCategory.FACE,
    SignalCategory.FINGERPRINT,
    SignalCategory.PALM_VEIN,
    SignalCategory.VOICE,
)

CATEGORY_COMPONENT: Dict[SignalCategory, WeightComponent] = {
    SignalCategory.DOCUMENT: WeightComponent.DOCUMENT,
    SignalCategory.FACE: WeightComponent.BIOMETRIC,
    SignalCategory.FINGERPRINT: WeightComponent.BIOMETRIC,
    SignalCategory.PALM_VEIN: WeightComponent.BIOMETRIC,
    SignalCategory.VOICE: WeightComponent.BIOMETRIC,
    SignalCategory.BEHAVIORAL: WeightComponent.BEHAVIORAL,
    SignalCategory.HISTORICAL: WeightComponent.HISTORICAL,
}

Weights = Dict[WeightComponent, float]


class RiskTier(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Outcome(str, Enum):
    APPROVED = "APPROVED"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    REJECTED = "REJECTED"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Industry(str, Enum):
    BANKING = "BANKING"
    FINTECH = "FINTECH"
    CRYPTOCURRENCY = "CRYPTOCURRENCY"
    GOVERNMENT = "GOVERNMENT"
    HEALTHCARE = "HEALTHCARE"
    ECOMMERCE = "ECOMMERCE"


# ---------------------------------------------------------------------------
# Raw analysis results returned by external signal producers
# ---------------------------------------------------------------------------


@dataclass
class ExtractedDocumentData:
    """Fields read off the document by OCR"""

    document_type: Optional[str] = None
    document_number: Optional[str] = None
    name: Optional[str] = None
    date_of_birth: Optional[str] = None
    issue_date: Optional[str] = None
    expiry_date: Optional[str] = None
    address: Optional[str] = None


@dataclass
class SecurityFeatures:
    """Security feature detections on the document image"""

    hologram_detected: bool = False
    watermark_detected: bool = False
    microtext_detected: bool = False
    uv_features_detected: bool = False
    tampered_detected: bool = False
    ai_tampering_score: float = 0.0  # 0-100, generative tampering likelihood


@dataclass
class DocumentAnalysis:
    """Document producer output"""

    is_valid: bool
    confidence: float  # OCR confidence 0-100
    extracted_data: ExtractedDocumentData = field(default_factory=ExtractedDocumentData)
    security_features: SecurityFeatures = field(default_factory=SecurityFeatures)
    fraud_score: Optional[float] = None  # 0-100, derived by the scorer when absent


@dataclass
class FaceAnalysis:
    """Face match / liveness producer output"""

    is_match: bool
    confidence: float  # match confidence 0-100
    liveness_score: float  # 0-100
    is_live: bool
    anti_spoofing_passed: bool


@dataclass
class FingerprintAnalysis:
    is_match: bool
    confidence: float
    quality: float
    minutiae_count: int
    spoofing_detected: bool


@dataclass
class PalmVeinAnalysis:
    is_match: bool
    confidence: float
    vein_pattern_quality: float
    is_live: bool


@dataclass
class VoiceAnalysis:
    is_match: bool
    confidence: float
    voiceprint_quality: float
    is_live: bool
    spoofing_detected: bool


@dataclass
class DeepfakeAnalysis:
    """Generative-model check on the selfie"""

    is_ai_generated: bool = False
    is_deepfake: bool = False
    confidence: float = 0.0


@dataclass
class TypingPattern:
    average_speed: float
    error_rate: float
    key_press_intervals: List[float] = field(default_factory=list)


@dataclass
class MouseMovement:
    average_speed: float
    curvature: float
    acceleration: float = 0.0


@dataclass
class NavigationPattern:
    click_sequence: List[str] = field(default_factory=list)
    page_visit_duration: List[float] = field(default_factory=list)
    scroll_behavior: List[float] = field(default_factory=list)


@dataclass
class TimeBasedMetrics:
    session_duration: float  # seconds
    active_hours: List[int] = field(default_factory=list)
    interaction_frequency: float = 0.0


@dataclass
class BehavioralPattern:
    """One session of behavioral telemetry"""

    user_id: str
    session_id: str
    device_fingerprint: str
    typing: TypingPattern
    mouse: MouseMovement
    navigation: NavigationPattern
    timing: TimeBasedMetrics
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class HistoricalData:
    """Prior verification outcomes for a user"""

    previous_verifications: int = 0
    fraud_attempts: int = 0
    successful_verifications: int = 0


@dataclass
class BehavioralAnalysisResult:
    is_anomalous: bool
    trust_score: float
    risk_factors: List[str]
    confidence: float
    similarity_to_baseline: float


@dataclass
class SyntheticIdentityResult:
    is_synthetic: bool
    confidence: float
    indicators: List[str]
    risk_score: float
    ai_generated: bool = False
    deepfake_detected: bool = False
    inconsistent_data: bool = False
    suspicious_patterns: bool = False


# ---------------------------------------------------------------------------
# Engine types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SignalResult:
    """Normalized output of one per-signal scorer"""

    category: SignalCategory
    normalized_score: float  # 0-100
    confidence: float  # 0-1
    flags: FrozenSet[str] = frozenset()
    raw_confidence: Optional[float] = None
    metrics: Mapping[str, float] = field(default_factory=dict)
    indicators: Tuple[str, ...] = ()

    def has_flag(self, flag: str) -> bool:
        return flag in self.flags


@dataclass(frozen=True)
class RiskFactors:
    """Aggregation input: one optional SignalResult per category"""

    document: Optional[SignalResult] = None
    face: Optional[SignalResult] = None
    fingerprint: Optional[SignalResult] = None
    palm_vein: Optional[SignalResult] = None
    voice: Optional[SignalResult] = None
    behavioral: Optional[SignalResult] = None
    historical: Optional[SignalResult] = None
    synthetic_identity: Optional[SignalResult] = None

    def get(self, category: SignalCategory) -> Optional[SignalResult]:
        return getattr(self, category.value)

    def present(self) -> Dict[SignalCategory, SignalResult]:
        """Supplied signals keyed by category, in declaration order"""
        return {
            category: result
            for category in SignalCategory
            if (result := self.get(category)) is not None
        }

    @classmethod
    def from_mapping(cls, signals: Mapping[SignalCategory, Optional[SignalResult]]) -> "RiskFactors":
        return cls(**{SignalCategory(category).value: result for category, result in signals.items()})


@dataclass(frozen=True)
class RiskScoreResult:
    """Output of risk aggregation"""

    trust_score: int
    risk_tier: RiskTier
    breakdown: Mapping[SignalCategory, int]
    weights: Mapping[WeightComponent, float]
    recommendations: Tuple[str, ...]


@dataclass(frozen=True)
class RiskThresholds:
    auto_approve: float
    manual_review: float
    auto_reject: float  # reporting only, see policy.decide


@dataclass(frozen=True)
class IndustryPolicy:
    """Tenant KYC configuration, immutable for the duration of a decision"""

    tenant_id: str
    industry: Industry
    required_checks: FrozenSet[SignalCategory]
    thresholds: RiskThresholds
    fraud_alert_severities: FrozenSet[Severity]
    retention_days: int
    reverification_period_days: int
    compliance_flags: FrozenSet[str] = frozenset()
    verification_levels: FrozenSet[str] = frozenset()
    external_checks: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class FraudAlert:
    alert_id: str
    user_id: str
    verification_id: str
    severity: Severity
    alert_type: str
    category: SignalCategory
    description: str
    indicators: Tuple[str, ...]
    requires_action: bool
    timestamp: datetime


@dataclass(frozen=True)
class Decision:
    """Final, write-once outcome of a verification attempt"""

    verification_id: str
    user_id: str
    outcome: Outcome
    risk_score: RiskScoreResult
    policy: IndustryPolicy
    timestamp: datetime
    missing_checks: Tuple[SignalCategory, ...] = ()
    fraud_alerts: Tuple[FraudAlert, ...] = ()
    below_auto_reject: bool = False


@dataclass(frozen=True)
class LedgerRecord:
    """One block of the audit hash chain"""

    index: int
    record_id: str
    user_id: str
    verification_id: str
    kind: str  # "VERIFICATION" | "FRAUD_ALERT"
    timestamp: str  # ISO-8601, hashed verbatim
    payload: Mapping[str, object]
    data_hash: str
    previous_hash: str
    block_hash: str


@dataclass(frozen=True)
class ChainIntegrityReport:
    is_valid: bool
    corrupted_indices: Tuple[int, ...]
    corrupted_record_ids: Tuple[str, ...]
    length: int
