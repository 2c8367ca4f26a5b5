"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from kyc_gateway.api.main import create_app
from kyc_gateway.infrastructure.database.models import Base
from kyc_gateway.infrastructure.database.session import get_db
from kyc_gateway.domain.models import (
    BehavioralPattern,
    DocumentAnalysis,
    ExtractedDocumentData,
    FaceAnalysis,
    Industry,
    IndustryPolicy,
    MouseMovement,
    NavigationPattern,
    RiskThresholds,
    SecurityFeatures,
    Severity,
    SignalCategory,
    TimeBasedMetrics,
    TypingPattern,
)


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TODAY = date(2025, 6, 1)
NOW = datetime(2025, 6, 1, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def good_document() -> DocumentAnalysis:
    """Clean, high-confidence passport scan"""
    return DocumentAnalysis(
        is_valid=True,
        confidence=95,
        extracted_data=ExtractedDocumentData(
            document_type="passport",
            document_number="P84721935",
            name="Jane Example",
            date_of_birth="1988-04-12",
            issue_date="2020-01-15",
            expiry_date="2030-01-15",
            address="12 High Street, Springfield",
        ),
        security_features=SecurityFeatures(
            hologram_detected=True,
            watermark_detected=True,
            microtext_detected=True,
            uv_features_detected=True,
        ),
        fraud_score=10,
    )


@pytest.fixture
def good_face() -> FaceAnalysis:
    """Matching selfie with strong liveness"""
    return FaceAnalysis(
        is_match=True,
        confidence=92,
        liveness_score=95,
        is_live=True,
        anti_spoofing_passed=True,
    )


@pytest.fixture
def make_pattern() -> Callable[..., BehavioralPattern]:
    """Factory for behavioral sessions; keyword overrides replace defaults"""

    def _make(
        user_id: str = "user_1",
        session_id: str = "sess_1",
        device_fingerprint: str = "device-abc",
        typing_speed: float = 60.0,
        error_rate: float = 0.05,
        mouse_speed: float = 3.0,
        curvature: float = 0.4,
        clicks=("home", "profile", "verify"),
        durations=(20.0, 30.0, 40.0),
        session_duration: float = 300.0,
        active_hours=(14,),
        captured_at: datetime = NOW,
    ) -> BehavioralPattern:
        return BehavioralPattern(
            user_id=user_id,
            session_id=session_id,
            device_fingerprint=device_fingerprint,
            typing=TypingPattern(average_speed=typing_speed, error_rate=error_rate),
            mouse=MouseMovement(average_speed=mouse_speed, curvature=curvature),
            navigation=NavigationPattern(click_sequence=list(clicks), page_visit_duration=list(durations)),
            timing=TimeBasedMetrics(session_duration=session_duration, active_hours=list(active_hours)),
            captured_at=captured_at,
        )

    return _make


@pytest.fixture
def basic_policy() -> IndustryPolicy:
    """Policy requiring only document and face evidence"""
    return IndustryPolicy(
        tenant_id="tenant_basic",
        industry=Industry.FINTECH,
        required_checks=frozenset({SignalCategory.DOCUMENT, SignalCategory.FACE}),
        thresholds=RiskThresholds(auto_approve=85, manual_review=65, auto_reject=45),
        fraud_alert_severities=frozenset({Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL}),
        retention_days=2555,
        reverification_period_days=365,
    )
