"""Integration tests for API endpoints"""

import pytest
from dataclasses import replace
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from kyc_gateway.domain.exceptions import SignalUnavailableError
from kyc_gateway.domain.models import DeepfakeAnalysis
from kyc_gateway.infrastructure.clients.signals import parse_document_analysis

SIGNALS = "kyc_gateway.infrastructure.clients.signals.SignalProducerClient"
WEBHOOK = "kyc_gateway.infrastructure.clients.compliance.ComplianceWebhookClient.send_fraud_alert"
ADMIN = {"X-Role": "admin"}


@pytest.fixture
def banking_tenant(client: TestClient) -> str:
    """Configure a banking tenant through the API"""
    response = client.put("/v1/tenants/bank_1/policy", json={"industry": "BANKING"}, headers=ADMIN)
    assert response.status_code == 200
    return "bank_1"


@pytest.fixture
def producer(good_document, good_face):
    """Patch every signal producer call with clean analyses"""
    with patch(f"{SIGNALS}.get_document_analysis", new_callable=AsyncMock) as document, \
            patch(f"{SIGNALS}.get_face_analysis", new_callable=AsyncMock) as face, \
            patch(f"{SIGNALS}.get_deepfake_analysis", new_callable=AsyncMock) as deepfake:
        document.return_value = good_document
        face.return_value = good_face
        deepfake.return_value = DeepfakeAnalysis()
        yield {"document": document, "face": face, "deepfake": deepfake}


def verification_body(tenant_id: str, **overrides) -> dict:
    body = {
        "tenant_id": tenant_id,
        "user_id": "user_good",
        "document_capture_id": "doc_1",
        "selfie_capture_id": "selfie_1",
        "behavioral": {
            "session_id": "sess_1",
            "device_fingerprint": "device-abc",
            "typing": {"average_speed": 60, "error_rate": 0.05},
            "mouse": {"average_speed": 3, "curvature": 0.4},
            "navigation": {"click_sequence": ["home", "verify"], "page_visit_duration": [20, 40]},
            "timing": {"session_duration": 300, "active_hours": [14]},
        },
    }
    body.update(overrides)
    return body


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "kyc_decision_total" in response.text


@patch(WEBHOOK, new_callable=AsyncMock)
def test_verification_approved(mock_webhook: AsyncMock, client: TestClient, banking_tenant: str, producer):
    """Test POST /v1/verifications with strong evidence"""
    response = client.post("/v1/verifications", json=verification_body(banking_tenant))

    assert response.status_code == 200
    data = response.json()
    assert data["outcome"] == "APPROVED"
    assert data["trust_score"] == 100
    assert data["risk_tier"] == "LOW"
    assert data["missing_checks"] == []
    assert data["fraud_alerts"] == []
    assert abs(sum(data["weights"].values()) - 1.0) < 1e-9
    assert "X-Request-ID" in response.headers
    mock_webhook.assert_not_called()


@patch(WEBHOOK, new_callable=AsyncMock)
def test_verification_liveness_failure_alerts_compliance(
    mock_webhook: AsyncMock, client: TestClient, banking_tenant: str, producer, good_face
):
    """Test low liveness raises a HIGH alert and notifies compliance"""
    producer["face"].return_value = replace(good_face, liveness_score=40, is_live=False)

    response = client.post("/v1/verifications", json=verification_body(banking_tenant))

    assert response.status_code == 200
    data = response.json()
    assert data["outcome"] == "MANUAL_REVIEW"
    assert "Liveness verification failed - possible spoofing attempt" in data["recommendations"]
    assert [(a["alert_type"], a["severity"]) for a in data["fraud_alerts"]] == [("LIVENESS_FAILURE", "HIGH")]

    mock_webhook.assert_called_once()
    payload = mock_webhook.call_args.args[0]
    assert payload["event"] == "FRAUD_ALERT"
    assert payload["tenant_id"] == "bank_1"

    alerts = client.get("/v1/alerts", params={"user_id": "user_good"}, headers={"X-Role": "reviewer"}).json()["alerts"]
    assert len(alerts) == 1
    assert alerts[0]["resolved"] is False


@patch(WEBHOOK, new_callable=AsyncMock)
def test_unavailable_document_goes_to_review(
    mock_webhook: AsyncMock, client: TestClient, banking_tenant: str, producer
):
    """Test a failed document producer degrades to manual review instead of erroring"""
    producer["document"].side_effect = SignalUnavailableError("document", "HTTP 503")

    response = client.post("/v1/verifications", json=verification_body(banking_tenant))

    assert response.status_code == 200
    data = response.json()
    assert data["outcome"] == "MANUAL_REVIEW"
    assert "document" in data["missing_checks"]
    assert "document" not in data["breakdown"]


@patch(WEBHOOK, new_callable=AsyncMock)
def test_verification_replay_is_idempotent(
    mock_webhook: AsyncMock, client: TestClient, banking_tenant: str, producer
):
    """Test reposting a verification id returns the stored decision without a new audit entry"""
    body = verification_body(banking_tenant, verification_id="VER-client-1")

    first = client.post("/v1/verifications", json=body)
    second = client.post("/v1/verifications", json=body)

    assert first.status_code == second.status_code == 200
    assert second.json() == first.json()
    assert producer["document"].await_count == 1

    integrity = client.get("/v1/audit/integrity", headers=ADMIN).json()
    assert integrity["is_valid"] is True
    assert integrity["length"] == 1


def test_unknown_tenant_returns_404(client: TestClient, producer):
    """Test verification against an unconfigured tenant"""
    response = client.post("/v1/verifications", json=verification_body("nobody"))

    assert response.status_code == 404


@patch("kyc_gateway.infrastructure.database.repositories.LedgerRepository.add")
def test_ledger_failure_returns_503(mock_add, client: TestClient, banking_tenant: str, producer):
    """Test audit write failure rolls back and returns 503"""
    mock_add.side_effect = RuntimeError("ledger offline")

    response = client.post("/v1/verifications", json=verification_body(banking_tenant))

    assert response.status_code == 503
    history = client.get("/v1/verifications/history", params={"user_id": "user_good"}).json()
    assert history["decisions"] == []


@patch(WEBHOOK, new_callable=AsyncMock)
def test_get_verification_and_history(mock_webhook: AsyncMock, client: TestClient, banking_tenant: str, producer):
    """Test stored decisions are readable by id and in user history"""
    created = client.post("/v1/verifications", json=verification_body(banking_tenant)).json()

    fetched = client.get(f"/v1/verifications/{created['verification_id']}")
    assert fetched.status_code == 200
    assert fetched.json() == created

    history = client.get("/v1/verifications/history", params={"user_id": "user_good"}).json()
    assert [d["verification_id"] for d in history["decisions"]] == [created["verification_id"]]

    assert client.get("/v1/verifications/VER-missing").status_code == 404


@patch(WEBHOOK, new_callable=AsyncMock)
def test_resolve_alert_requires_permission(
    mock_webhook: AsyncMock, client: TestClient, banking_tenant: str, producer, good_face
):
    """Test only roles with manage_fraud_alerts can resolve"""
    producer["face"].return_value = replace(good_face, liveness_score=40)
    alert_id = client.post("/v1/verifications", json=verification_body(banking_tenant)).json()["fraud_alerts"][0][
        "alert_id"
    ]

    denied = client.post(f"/v1/alerts/{alert_id}/resolve", json={"resolved_by": "rev_1"}, headers={"X-Role": "reviewer"})
    assert denied.status_code == 403

    resolved = client.post(f"/v1/alerts/{alert_id}/resolve", json={"resolved_by": "admin_1"}, headers=ADMIN)
    assert resolved.status_code == 200
    assert resolved.json()["resolved"] is True
    assert resolved.json()["resolved_by"] == "admin_1"

    missing = client.post("/v1/alerts/ALT-unknown/resolve", json={"resolved_by": "admin_1"}, headers=ADMIN)
    assert missing.status_code == 404


def test_audit_requires_role(client: TestClient):
    """Test audit endpoints need view_blockchain_audit"""
    assert client.get("/v1/audit/integrity").status_code == 401
    assert client.get("/v1/audit/integrity", headers={"X-Role": "viewer"}).status_code == 403
    assert client.get("/v1/audit/integrity", headers={"X-Role": "wizard"}).status_code == 403

    response = client.get("/v1/audit/integrity", headers=ADMIN)
    assert response.status_code == 200
    assert response.json() == {"is_valid": True, "length": 0, "corrupted_indices": [], "corrupted_record_ids": []}


@patch(WEBHOOK, new_callable=AsyncMock)
def test_audit_history_for_user(mock_webhook: AsyncMock, client: TestClient, banking_tenant: str, producer, good_face):
    """Test per-user audit trail lists decision then alert records"""
    producer["face"].return_value = replace(good_face, liveness_score=40)
    client.post("/v1/verifications", json=verification_body(banking_tenant))

    response = client.get("/v1/audit/history", params={"user_id": "user_good"}, headers={"X-Role": "super_admin"})

    assert response.status_code == 200
    assert [r["kind"] for r in response.json()["records"]] == ["VERIFICATION", "FRAUD_ALERT"]


def test_tenant_policy_configuration(client: TestClient):
    """Test policy read, override, validation, and permissions"""
    assert client.get("/v1/tenants/fin_1/policy").status_code == 404

    response = client.put(
        "/v1/tenants/fin_1/policy",
        json={"industry": "FINTECH", "thresholds": {"auto_approve": 88, "manual_review": 60, "auto_reject": 40}},
        headers=ADMIN,
    )
    assert response.status_code == 200
    assert response.json()["thresholds"] == {"auto_approve": 88, "manual_review": 60, "auto_reject": 40}

    policy = client.get("/v1/tenants/fin_1/policy").json()
    assert policy["industry"] == "FINTECH"
    assert "face" in policy["required_checks"]

    invalid = client.put(
        "/v1/tenants/fin_1/policy",
        json={"industry": "FINTECH", "thresholds": {"auto_approve": 50, "manual_review": 60, "auto_reject": 40}},
        headers=ADMIN,
    )
    assert invalid.status_code == 422

    forbidden = client.put("/v1/tenants/fin_1/policy", json={"industry": "BANKING"}, headers={"X-Role": "viewer"})
    assert forbidden.status_code == 403

    unknown = client.put("/v1/tenants/fin_1/policy", json={"industry": "CASINO"}, headers=ADMIN)
    assert unknown.status_code == 422


@patch(WEBHOOK, new_callable=AsyncMock)
def test_malformed_tampered_document_is_scored_not_dropped(
    mock_webhook: AsyncMock, client: TestClient, banking_tenant: str, producer
):
    """Test a tampered document with null confidence degrades the decision and raises an alert"""
    producer["document"].return_value = parse_document_analysis(
        {"confidence": None, "fraud_score": 95, "security_features": {"tampered_detected": True}}
    )

    response = client.post("/v1/verifications", json=verification_body(banking_tenant))

    assert response.status_code == 200
    data = response.json()
    assert data["outcome"] != "APPROVED"
    assert data["breakdown"]["document"] == 0
    assert "document" not in data["missing_checks"]
    assert "DOCUMENT_TAMPERING" in [a["alert_type"] for a in data["fraud_alerts"]]


def test_all_producers_down_returns_503(client: TestClient, banking_tenant: str, producer):
    """Test a full producer outage is a 503 and writes nothing"""
    for mock in producer.values():
        mock.side_effect = SignalUnavailableError("document", "HTTP 503")
    body = verification_body(banking_tenant)
    del body["behavioral"]

    response = client.post("/v1/verifications", json=body)

    assert response.status_code == 503
    assert client.get("/v1/audit/integrity", headers=ADMIN).json()["length"] == 0


def test_list_alerts_requires_role(client: TestClient):
    """Test alert listing needs view_fraud_alerts"""
    assert client.get("/v1/alerts").status_code == 401
    assert client.get("/v1/alerts", headers={"X-Role": "viewer"}).status_code == 403
    assert client.get("/v1/alerts", headers={"X-Role": "reviewer"}).json() == {"alerts": []}
