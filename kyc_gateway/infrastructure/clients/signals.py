"""Signal producer HTTP client for document, biometric, and deepfake analyses"""

import httpx
from typing import Any, Dict, Optional
from kyc_gateway.domain.models import (
    DeepfakeAnalysis,
    DocumentAnalysis,
    ExtractedDocumentData,
    FaceAnalysis,
    FingerprintAnalysis,
    PalmVeinAnalysis,
    SecurityFeatures,
    SignalCategory,
    VoiceAnalysis,
)
from kyc_gateway.domain.exceptions import SignalUnavailableError
from kyc_gateway.domain.scorers import as_float
from kyc_gateway.config import settings


def _object(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _optional_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def parse_document_analysis(data: Dict[str, Any]) -> DocumentAnalysis:
    """
    Map the document producer's JSON onto DocumentAnalysis.

    Missing or malformed fields fall back to the least favourable value so the
    scorer degrades the document instead of the signal being dropped.
    """
    extracted = _object(data.get("extracted_data"))
    security = _object(data.get("security_features"))
    fraud_score = data.get("fraud_score")
    return DocumentAnalysis(
        is_valid=bool(data.get("is_valid", False)),
        confidence=as_float(data.get("confidence")),
        extracted_data=ExtractedDocumentData(
            document_type=_optional_text(extracted.get("document_type")),
            document_number=_optional_text(extracted.get("document_number")),
            name=_optional_text(extracted.get("name")),
            date_of_birth=_optional_text(extracted.get("date_of_birth")),
            issue_date=_optional_text(extracted.get("issue_date")),
            expiry_date=_optional_text(extracted.get("expiry_date")),
            address=_optional_text(extracted.get("address")),
        ),
        security_features=SecurityFeatures(
            hologram_detected=bool(security.get("hologram_detected", False)),
            watermark_detected=bool(security.get("watermark_detected", False)),
            microtext_detected=bool(security.get("microtext_detected", False)),
            uv_features_detected=bool(security.get("uv_features_detected", False)),
            tampered_detected=bool(security.get("tampered_detected", False)),
            ai_tampering_score=as_float(security.get("ai_tampering_score")),
        ),
        # An unreadable fraud score counts as maximal fraud
        fraud_score=None if fraud_score is None else as_float(fraud_score, default=100.0),
    )


def parse_face_analysis(data: Dict[str, Any]) -> FaceAnalysis:
    return FaceAnalysis(
        is_match=bool(data.get("is_match", False)),
        confidence=as_float(data.get("confidence")),
        liveness_score=as_float(data.get("liveness_score")),
        is_live=bool(data.get("is_live", False)),
        anti_spoofing_passed=bool(data.get("anti_spoofing_passed", False)),
    )


def parse_fingerprint_analysis(data: Dict[str, Any]) -> FingerprintAnalysis:
    return FingerprintAnalysis(
        is_match=bool(data.get("is_match", False)),
        confidence=as_float(data.get("confidence")),
        quality=as_float(data.get("quality")),
        minutiae_count=int(as_float(data.get("minutiae_count"))),
        spoofing_detected=bool(data.get("spoofing_detected", False)),
    )


def parse_palm_vein_analysis(data: Dict[str, Any]) -> PalmVeinAnalysis:
    return PalmVeinAnalysis(
        is_match=bool(data.get("is_match", False)),
        confidence=as_float(data.get("confidence")),
        vein_pattern_quality=as_float(data.get("vein_pattern_quality")),
        is_live=bool(data.get("is_live", False)),
    )


def parse_voice_analysis(data: Dict[str, Any]) -> VoiceAnalysis:
    return VoiceAnalysis(
        is_match=bool(data.get("is_match", False)),
        confidence=as_float(data.get("confidence")),
        voiceprint_quality=as_float(data.get("voiceprint_quality")),
        is_live=bool(data.get("is_live", False)),
        spoofing_detected=bool(data.get("spoofing_detected", False)),
    )


def parse_deepfake_analysis(data: Dict[str, Any]) -> DeepfakeAnalysis:
    return DeepfakeAnalysis(
        is_ai_generated=bool(data.get("is_ai_generated", False)),
        is_deepfake=bool(data.get("is_deepfake", False)),
        confidence=as_float(data.get("confidence")),
    )


class SignalProducerClient:
    """Client for the external document, biometric, and fraud analysis services"""

    def __init__(
        self,
        document_base_url: str | None = None,
        biometric_base_url: str | None = None,
        fraud_base_url: str | None = None,
        timeout: float | None = None,
    ):
        self.document_base_url = document_base_url or settings.document_service_base
        self.biometric_base_url = biometric_base_url or settings.biometric_service_base
        self.fraud_base_url = fraud_base_url or settings.fraud_service_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def _get_json(
        self,
        category: SignalCategory,
        url: str,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Fetch one analysis document.

        Raises:
            SignalUnavailableError: On timeout, HTTP errors, or a body that is not a JSON object
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(url, params=params)
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException as e:
                raise SignalUnavailableError(category.value, f"timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise SignalUnavailableError(category.value, f"HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise SignalUnavailableError(category.value, f"request failed: {e}") from e
            except ValueError as e:
                raise SignalUnavailableError(category.value, f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SignalUnavailableError(category.value, f"expected a JSON object, got {type(data).__name__}")
        return data

    async def get_document_analysis(self, capture_id: str) -> DocumentAnalysis:
        data = await self._get_json(
            SignalCategory.DOCUMENT, f"{self.document_base_url}/analyses/document/{capture_id}"
        )
        return parse_document_analysis(data)

    async def get_face_analysis(self, selfie_capture_id: str, document_capture_id: str) -> FaceAnalysis:
        data = await self._get_json(
            SignalCategory.FACE,
            f"{self.biometric_base_url}/analyses/face",
            params={"selfie_id": selfie_capture_id, "document_id": document_capture_id},
        )
        return parse_face_analysis(data)

    async def get_fingerprint_analysis(self, capture_id: str) -> FingerprintAnalysis:
        data = await self._get_json(
            SignalCategory.FINGERPRINT, f"{self.biometric_base_url}/analyses/fingerprint/{capture_id}"
        )
        return parse_fingerprint_analysis(data)

    async def get_palm_vein_analysis(self, capture_id: str) -> PalmVeinAnalysis:
        data = await self._get_json(
            SignalCategory.PALM_VEIN, f"{self.biometric_base_url}/analyses/palm-vein/{capture_id}"
        )
        return parse_palm_vein_analysis(data)

    async def get_voice_analysis(self, capture_id: str) -> VoiceAnalysis:
        data = await self._get_json(
            SignalCategory.VOICE, f"{self.biometric_base_url}/analyses/voice/{capture_id}"
        )
        return parse_voice_analysis(data)

    async def get_deepfake_analysis(self, selfie_capture_id: str) -> DeepfakeAnalysis:
        data = await self._get_json(
            SignalCategory.SYNTHETIC_IDENTITY, f"{self.fraud_base_url}/analyses/deepfake/{selfie_capture_id}"
        )
        return parse_deepfake_analysis(data)
