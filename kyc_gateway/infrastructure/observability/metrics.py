"""Prometheus metrics for decision outcomes, fraud alerts, signal availability, and webhooks"""

from typing import Iterable
from prometheus_client import Counter, Histogram

from kyc_gateway.domain.models import FraudAlert

# Decision metrics
decision_counter = Counter(
    "kyc_decision_total",
    "Total verification decisions made",
    ["outcome"],  # APPROVED | MANUAL_REVIEW | REJECTED
)

risk_tier_counter = Counter(
    "kyc_risk_tier_total",
    "Decisions by risk tier",
    ["tier"],
)

trust_score_histogram = Histogram(
    "kyc_trust_score",
    "Distribution of aggregated trust scores",
    buckets=[10, 20, 30, 40, 50, 60, 65, 70, 80, 85, 90, 95, 100],
)

fraud_alert_counter = Counter(
    "kyc_fraud_alerts_total",
    "Fraud alerts raised",
    ["severity", "alert_type"],
)

# Signal producer metrics
signal_unavailable_counter = Counter(
    "kyc_signal_unavailable_total",
    "Signals dropped after producer failure or timeout",
    ["category"],
)

ledger_write_failures_counter = Counter(
    "kyc_ledger_write_failures_total",
    "Decisions aborted because the audit write failed",
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Compliance webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_decision(outcome: str, risk_tier: str, trust_score: int, alerts: Iterable[FraudAlert]) -> None:
    """Record decision metrics for monitoring approval rates and alert volume"""
    decision_counter.labels(outcome=outcome).inc()
    risk_tier_counter.labels(tier=risk_tier).inc()
    trust_score_histogram.observe(trust_score)

    for alert in alerts:
        fraud_alert_counter.labels(severity=alert.severity.value, alert_type=alert.alert_type).inc()
