"""Async verification pipeline - collect producer signals, score them, then evaluate"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Awaitable, Callable, List, Optional, Protocol, TypeVar

from kyc_gateway.domain.audit import HashChainLedger
from kyc_gateway.domain.behavioral import BaselineStore, score_behavioral
from kyc_gateway.domain.engine import DecisionStore, evaluate
from kyc_gateway.domain.exceptions import SignalUnavailableError
from kyc_gateway.domain.models import (
    BehavioralPattern,
    DeepfakeAnalysis,
    Decision,
    DocumentAnalysis,
    FaceAnalysis,
    FingerprintAnalysis,
    HistoricalData,
    IndustryPolicy,
    PalmVeinAnalysis,
    RiskFactors,
    SignalCategory,
    VoiceAnalysis,
)
from kyc_gateway.domain.scorers import (
    score_document,
    score_face,
    score_fingerprint,
    score_historical,
    score_palm_vein,
    score_voice,
)
from kyc_gateway.domain.synthetic import detect_synthetic_identity, score_synthetic_identity
from kyc_gateway.domain.weighting import present_components

T = TypeVar("T")


class SignalProducer(Protocol):
    """External analysis services; any implementation quality, same result shapes"""

    async def get_document_analysis(self, capture_id: str) -> DocumentAnalysis:
        ...

    async def get_face_analysis(self, selfie_capture_id: str, document_capture_id: str) -> FaceAnalysis:
        ...

    async def get_fingerprint_analysis(self, capture_id: str) -> FingerprintAnalysis:
        ...

    async def get_palm_vein_analysis(self, capture_id: str) -> PalmVeinAnalysis:
        ...

    async def get_voice_analysis(self, capture_id: str) -> VoiceAnalysis:
        ...

    async def get_deepfake_analysis(self, selfie_capture_id: str) -> DeepfakeAnalysis:
        ...


@dataclass
class VerificationCaptures:
    """References to the raw captures submitted for one attempt"""

    document_capture_id: str
    selfie_capture_id: str
    fingerprint_capture_id: Optional[str] = None
    palm_vein_capture_id: Optional[str] = None
    voice_capture_id: Optional[str] = None
    behavioral_pattern: Optional[BehavioralPattern] = None


@dataclass
class RawSignals:
    """Producer outputs; None means absent or unavailable"""

    document: Optional[DocumentAnalysis] = None
    face: Optional[FaceAnalysis] = None
    fingerprint: Optional[FingerprintAnalysis] = None
    palm_vein: Optional[PalmVeinAnalysis] = None
    voice: Optional[VoiceAnalysis] = None
    deepfake: Optional[DeepfakeAnalysis] = None
    behavioral: Optional[BehavioralPattern] = None
    unavailable: List[SignalCategory] = field(default_factory=list)


async def _fetch(
    category: SignalCategory,
    call: Callable[[], Awaitable[T]],
    timeout: float,
    unavailable: List[SignalCategory],
) -> Optional[T]:
    """Await one producer call; timeouts and producer failures become an absent signal"""
    try:
        return await asyncio.wait_for(call(), timeout=timeout)
    except asyncio.TimeoutError:
        logging.warning(
            f"{category.value} signal timed out after {timeout}s",
            extra={"step": "collect_signals", "category": category.value},
        )
    except SignalUnavailableError as e:
        logging.warning(
            f"{category.value} signal unavailable: {e.reason}",
            extra={"step": "collect_signals", "category": category.value},
        )
    unavailable.append(category)
    return None


async def _none() -> None:
    return None


async def collect_signals(
    captures: VerificationCaptures,
    producer: SignalProducer,
    timeout: float,
) -> RawSignals:
    """Call every relevant producer concurrently, each under its own timeout"""
    unavailable: List[SignalCategory] = []

    def optional(category: SignalCategory, capture_id: Optional[str], fetch: Callable[[str], Awaitable[T]]):
        if capture_id is None:
            return _none()
        return _fetch(category, lambda: fetch(capture_id), timeout, unavailable)

    document, face, fingerprint, palm_vein, voice, deepfake = await asyncio.gather(
        _fetch(
            SignalCategory.DOCUMENT,
            lambda: producer.get_document_analysis(captures.document_capture_id),
            timeout,
            unavailable,
        ),
        _fetch(
            SignalCategory.FACE,
            lambda: producer.get_face_analysis(captures.selfie_capture_id, captures.document_capture_id),
            timeout,
            unavailable,
        ),
        optional(SignalCategory.FINGERPRINT, captures.fingerprint_capture_id, producer.get_fingerprint_analysis),
        optional(SignalCategory.PALM_VEIN, captures.palm_vein_capture_id, producer.get_palm_vein_analysis),
        optional(SignalCategory.VOICE, captures.voice_capture_id, producer.get_voice_analysis),
        _fetch(
            SignalCategory.SYNTHETIC_IDENTITY,
            lambda: producer.get_deepfake_analysis(captures.selfie_capture_id),
            timeout,
            unavailable,
        ),
    )

    return RawSignals(
        document=document,
        face=face,
        fingerprint=fingerprint,
        palm_vein=palm_vein,
        voice=voice,
        deepfake=deepfake,
        behavioral=captures.behavioral_pattern,
        unavailable=sorted(unavailable, key=list(SignalCategory).index),
    )


def score_signals(
    raw: RawSignals,
    baseline_store: BaselineStore,
    historical: Optional[HistoricalData] = None,
    today: Optional[date] = None,
) -> RiskFactors:
    """Normalize every available raw signal into the aggregation bundle"""
    synthetic = None
    if raw.document is not None or raw.deepfake is not None:
        synthetic = score_synthetic_identity(
            detect_synthetic_identity(
                raw.document.extracted_data if raw.document is not None else None,
                raw.deepfake,
                raw.behavioral,
                today=today,
            )
        )

    return RiskFactors(
        document=score_document(raw.document, today=today) if raw.document is not None else None,
        face=score_face(raw.face) if raw.face is not None else None,
        fingerprint=score_fingerprint(raw.fingerprint) if raw.fingerprint is not None else None,
        palm_vein=score_palm_vein(raw.palm_vein) if raw.palm_vein is not None else None,
        voice=score_voice(raw.voice) if raw.voice is not None else None,
        behavioral=score_behavioral(raw.behavioral, baseline_store) if raw.behavioral is not None else None,
        historical=score_historical(historical) if historical is not None else None,
        synthetic_identity=synthetic,
    )


async def run_verification(
    user_id: str,
    captures: VerificationCaptures,
    policy: IndustryPolicy,
    *,
    producer: SignalProducer,
    ledger: HashChainLedger,
    decisions: DecisionStore,
    baseline_store: BaselineStore,
    historical: Optional[HistoricalData] = None,
    verification_id: Optional[str] = None,
    timeout: float = 10.0,
    now: Optional[datetime] = None,
    on_unavailable: Optional[Callable[[SignalCategory], None]] = None,
) -> Decision:
    """
    Full verification: collect -> score -> evaluate -> extend baseline.

    Cancellation while collecting leaves no trace; the decision is only
    written by evaluate once every signal has been scored.

    Raises:
        SignalUnavailableError: every weighted signal was unavailable
    """
    if verification_id is not None:
        existing = decisions.get(verification_id)
        if existing is not None:
            return existing

    raw = await collect_signals(captures, producer, timeout)
    if on_unavailable is not None:
        for category in raw.unavailable:
            on_unavailable(category)

    factors = score_signals(raw, baseline_store, historical, today=now.date() if now else None)
    if not present_components(factors):
        unavailable = ", ".join(c.value for c in raw.unavailable) or "none requested"
        raise SignalUnavailableError("all", f"no weighted evidence collected (unavailable: {unavailable})")

    decision = evaluate(
        user_id,
        factors,
        policy,
        ledger=ledger,
        decisions=decisions,
        verification_id=verification_id,
        now=now,
    )

    if raw.behavioral is not None:
        baseline_store.append(user_id, raw.behavioral)

    return decision
