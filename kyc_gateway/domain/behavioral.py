"""Behavioral analytics - compare a session's telemetry against the user's baseline"""

import threading
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence

from kyc_gateway.domain.models import (
    BehavioralAnalysisResult,
    BehavioralPattern,
    NavigationPattern,
    SignalCategory,
    SignalResult,
)
from kyc_gateway.domain.scorers import clamp

BEHAVIORAL_ANOMALY = "BEHAVIORAL_ANOMALY"
UNUSUAL_TYPING = "UNUSUAL_TYPING"
UNUSUAL_MOUSE = "UNUSUAL_MOUSE"
UNUSUAL_NAVIGATION = "UNUSUAL_NAVIGATION"
UNUSUAL_TIMING = "UNUSUAL_TIMING"
NEW_DEVICE = "NEW_DEVICE"

# Deduction per unit of axis severity
TYPING_PENALTY = 15
MOUSE_PENALTY = 12
NAVIGATION_PENALTY = 10
TIMING_PENALTY = 8
NEW_DEVICE_PENALTY = 20

ANOMALY_TRUST_THRESHOLD = 60
ANOMALY_FLAG_LIMIT = 2
COMMON_HOUR_SHARE = 0.3


class BaselineStore(Protocol):
    """Per-user behavioral history; append-only"""

    def history(self, user_id: str) -> List[BehavioralPattern]:
        ...

    def append(self, user_id: str, pattern: BehavioralPattern) -> None:
        ...


class InMemoryBaselineStore:
    """Process-local baseline store, used in tests and single-node deployments"""

    def __init__(self, seed: Dict[str, Sequence[BehavioralPattern]] | None = None):
        self._patterns: Dict[str, List[BehavioralPattern]] = defaultdict(list)
        self._lock = threading.Lock()
        for user_id, patterns in (seed or {}).items():
            self._patterns[user_id].extend(patterns)

    def history(self, user_id: str) -> List[BehavioralPattern]:
        with self._lock:
            return list(self._patterns.get(user_id, []))

    def append(self, user_id: str, pattern: BehavioralPattern) -> None:
        with self._lock:
            self._patterns[user_id].append(pattern)


@dataclass
class AxisResult:
    is_anomalous: bool
    severity: float


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def relative_deviation(current: float, baseline_mean: float) -> float:
    """|current - mean| / mean, falling back to |current - mean| when mean is 0"""
    if baseline_mean == 0:
        return abs(current - baseline_mean)
    return abs(current - baseline_mean) / abs(baseline_mean)


def analyze_typing(current: BehavioralPattern, baseline: Sequence[BehavioralPattern]) -> AxisResult:
    if not baseline:
        return AxisResult(False, 0.0)

    speed_dev = relative_deviation(
        current.typing.average_speed, _mean([p.typing.average_speed for p in baseline])
    )
    error_dev = relative_deviation(
        current.typing.error_rate, _mean([p.typing.error_rate for p in baseline])
    )
    return AxisResult(
        is_anomalous=speed_dev > 0.5 or error_dev > 0.3,
        severity=min(1.0, (speed_dev + error_dev) / 2),
    )


def analyze_mouse(current: BehavioralPattern, baseline: Sequence[BehavioralPattern]) -> AxisResult:
    if not baseline:
        return AxisResult(False, 0.0)

    speed_dev = relative_deviation(
        current.mouse.average_speed, _mean([p.mouse.average_speed for p in baseline])
    )
    curvature_dev = relative_deviation(
        current.mouse.curvature, _mean([p.mouse.curvature for p in baseline])
    )
    return AxisResult(
        is_anomalous=speed_dev > 0.6 or curvature_dev > 0.5,
        severity=min(1.0, (speed_dev + curvature_dev) / 2),
    )


def sequence_matches_baseline(current: Sequence[str], baseline_sequences: Sequence[Sequence[str]]) -> bool:
    """True when more than half of the current clicks appear in some baseline sequence"""
    if not current:
        return True
    for baseline_sequence in baseline_sequences:
        known = set(baseline_sequence)
        matches = sum(1 for click in current if click in known)
        if matches / len(current) > 0.5:
            return True
    return False


def analyze_navigation(current: BehavioralPattern, baseline: Sequence[BehavioralPattern]) -> AxisResult:
    if not baseline:
        return AxisResult(False, 0.0)

    matches_common = sequence_matches_baseline(
        current.navigation.click_sequence,
        [p.navigation.click_sequence for p in baseline],
    )
    duration_dev = relative_deviation(
        _mean(current.navigation.page_visit_duration),
        _mean([_mean(p.navigation.page_visit_duration) for p in baseline]),
    )
    return AxisResult(
        is_anomalous=not matches_common or duration_dev > 0.7,
        severity=min(1.0, duration_dev),
    )


def common_active_hours(baseline: Sequence[BehavioralPattern]) -> List[int]:
    """Hours seen in at least 30% of baseline sessions"""
    counts = Counter(hour for p in baseline for hour in set(p.timing.active_hours))
    threshold = len(baseline) * COMMON_HOUR_SHARE
    return sorted(hour for hour, count in counts.items() if count >= threshold)


def analyze_timing(current: BehavioralPattern, baseline: Sequence[BehavioralPattern]) -> AxisResult:
    if not baseline:
        return AxisResult(False, 0.0)

    unusual_hour = current.captured_at.hour not in common_active_hours(baseline)
    duration_dev = relative_deviation(
        current.timing.session_duration, _mean([p.timing.session_duration for p in baseline])
    )
    return AxisResult(
        is_anomalous=unusual_hour or duration_dev > 1.0,
        severity=min(1.0, duration_dev),
    )


def is_new_device(current: BehavioralPattern, baseline: Sequence[BehavioralPattern]) -> bool:
    if not baseline:
        return False
    return current.device_fingerprint not in {p.device_fingerprint for p in baseline}


def _navigation_similarity(a: NavigationPattern, b: NavigationPattern) -> float:
    longest = max(len(a.click_sequence), len(b.click_sequence))
    if longest == 0:
        return 1.0
    overlap = sum(1 for click in a.click_sequence if click in b.click_sequence)
    return overlap / longest


def similarity_to_baseline(current: BehavioralPattern, baseline: Sequence[BehavioralPattern]) -> float:
    """Weighted 0-1 similarity averaged over every baseline session"""
    if not baseline:
        return 0.5

    total = 0.0
    for sample in baseline:
        typing_sim = 1 - min(1.0, abs(current.typing.average_speed - sample.typing.average_speed) / 100)
        mouse_sim = 1 - min(1.0, abs(current.mouse.average_speed - sample.mouse.average_speed) / 10)
        nav_sim = _navigation_similarity(current.navigation, sample.navigation)
        time_sim = 1 - min(1.0, abs(current.timing.session_duration - sample.timing.session_duration) / 3600)
        total += typing_sim * 0.25 + mouse_sim * 0.25 + nav_sim * 0.30 + time_sim * 0.20
    return total / len(baseline)


def analyze_behavior(current: BehavioralPattern, baseline: Sequence[BehavioralPattern]) -> BehavioralAnalysisResult:
    """
    Score one session against the user's history.

    Each anomalous axis deducts severity * axis penalty from 100; an unseen
    device always deducts a flat 20. The session is anomalous when trust
    drops below 60 or more than two risk factors fire.
    """
    trust_score = 100.0
    risk_factors: List[str] = []

    axes = (
        (analyze_typing, TYPING_PENALTY, "Unusual typing pattern detected"),
        (analyze_mouse, MOUSE_PENALTY, "Unusual mouse movement detected"),
        (analyze_navigation, NAVIGATION_PENALTY, "Unusual navigation behavior"),
        (analyze_timing, TIMING_PENALTY, "Unusual session timing"),
    )
    for analyzer, penalty, description in axes:
        axis = analyzer(current, baseline)
        if axis.is_anomalous:
            risk_factors.append(description)
            trust_score -= axis.severity * penalty

    if is_new_device(current, baseline):
        risk_factors.append("New or suspicious device detected")
        trust_score -= NEW_DEVICE_PENALTY

    return BehavioralAnalysisResult(
        is_anomalous=trust_score < ANOMALY_TRUST_THRESHOLD or len(risk_factors) > ANOMALY_FLAG_LIMIT,
        trust_score=clamp(trust_score),
        risk_factors=risk_factors,
        confidence=0.9 if len(baseline) > 5 else 0.6,
        similarity_to_baseline=similarity_to_baseline(current, baseline),
    )


_FACTOR_FLAGS = {
    "Unusual typing pattern detected": UNUSUAL_TYPING,
    "Unusual mouse movement detected": UNUSUAL_MOUSE,
    "Unusual navigation behavior": UNUSUAL_NAVIGATION,
    "Unusual session timing": UNUSUAL_TIMING,
    "New or suspicious device detected": NEW_DEVICE,
}


def score_behavioral(pattern: BehavioralPattern, baseline_store: BaselineStore) -> SignalResult:
    """Read the user's baseline from the injected store and score the session"""
    baseline = baseline_store.history(pattern.user_id)
    result = analyze_behavior(pattern, baseline)

    flags = {_FACTOR_FLAGS[factor] for factor in result.risk_factors}
    if result.is_anomalous:
        flags.add(BEHAVIORAL_ANOMALY)

    return SignalResult(
        category=SignalCategory.BEHAVIORAL,
        normalized_score=result.trust_score,
        confidence=result.confidence,
        flags=frozenset(flags),
        metrics={
            "similarity_to_baseline": result.similarity_to_baseline,
            "baseline_size": float(len(baseline)),
        },
        indicators=tuple(result.risk_factors),
    )
