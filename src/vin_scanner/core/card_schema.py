"""
Vehicle Card Record
===================

Structured record returned by the card field-extraction service, plus the
sanitizer applied to whatever the service sends back.

The service itself (a hosted vision model) is an external collaborator; this
module only fixes the contract around it:

- ``CarCardData``: fourteen string fields, a confidence per field, raw text
- ``normalize_car_card_data``: coerce types, clamp confidences to [0, 1],
  zero the confidence of any empty field
- ``validate_upload``: media type and size checks applied before extraction
- ``EXTRACTION_PROMPT``: the instruction sent alongside the image
"""

import math
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Mapping, Optional, Tuple

from .exceptions import UploadValidationError

logger = logging.getLogger(__name__)


CONFIDENCE_KEYS: Tuple[str, ...] = (
    "plate_number",
    "vin",
    "make",
    "model",
    "year",
    "color",
    "engine_number",
    "owner_name",
    "registration_date",
    "expiry_date",
    "country",
    # back-card fields
    "vehicle_type",
    "fuel",
    "capacity",
)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})


def _empty_confidence() -> Dict[str, float]:
    return {key: 0.0 for key in CONFIDENCE_KEYS}


@dataclass
class CarCardData:
    """Vehicle registration card fields with per-field confidence."""
    plate_number: str = ""
    vin: str = ""
    make: str = ""
    model: str = ""
    year: str = ""
    color: str = ""
    engine_number: str = ""
    owner_name: str = ""
    registration_date: str = ""
    expiry_date: str = ""
    country: str = ""
    vehicle_type: str = ""
    fuel: str = ""
    capacity: str = ""  # kept as printed, e.g. "5 نفر"
    confidence: Dict[str, float] = field(default_factory=_empty_confidence)
    raw_text: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def _clamp_confidence(value: Any) -> float:
    """Coerce a confidence value to a float in [0, 1]; unusable values become 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        number = float(value)
    elif isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0.0
        try:
            number = float(stripped)
        except ValueError:
            return 0.0
    else:
        return 0.0

    if not math.isfinite(number):
        return 0.0
    return min(1.0, max(0.0, number))


def normalize_car_card_data(payload: Any) -> CarCardData:
    """
    Sanitize an extraction payload into a ``CarCardData``.

    Non-string fields become empty strings, unknown keys are dropped and
    confidences are clamped to [0, 1]. A field that is empty (after
    stripping whitespace) always has confidence 0.

    Args:
        payload: Parsed JSON from the extraction service

    Returns:
        A fully populated CarCardData
    """
    if not payload or not isinstance(payload, Mapping):
        return CarCardData()

    values = {
        key: payload.get(key) if isinstance(payload.get(key), str) else ""
        for key in CONFIDENCE_KEYS
    }
    raw_text = payload.get("raw_text")
    record = CarCardData(**values, raw_text=raw_text if isinstance(raw_text, str) else "")

    confidence = payload.get("confidence")
    if not isinstance(confidence, Mapping):
        confidence = {}

    for key in CONFIDENCE_KEYS:
        if values[key].strip() == "":
            record.confidence[key] = 0.0
        else:
            record.confidence[key] = _clamp_confidence(confidence.get(key))

    return record


def extract_success(data: CarCardData) -> Dict[str, Any]:
    """Response envelope for a successful extraction."""
    return {"ok": True, "data": data.to_dict()}


def extract_failure(message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    """Response envelope for a failed extraction."""
    error: Dict[str, Any] = {"message": message}
    if details is not None:
        error["details"] = details
    return {"ok": False, "error": error}


def validate_upload(content_type: Optional[str], size: Optional[int]) -> None:
    """
    Check an uploaded image before it is processed.

    Raises:
        UploadValidationError: If the image is missing, of an unsupported
            type, or larger than MAX_UPLOAD_BYTES
    """
    if content_type is None or size is None:
        raise UploadValidationError("Image is required")
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise UploadValidationError("Unsupported file type", content_type=content_type, size=size)
    if size > MAX_UPLOAD_BYTES:
        raise UploadValidationError("File too large", content_type=content_type, size=size)


EXTRACTION_PROMPT = """You are an OCR + information extraction engine.

Goal: Extract vehicle-card details from the provided image and return ONLY a single valid JSON object that matches the provided schema exactly.

Important:
- The card can be Persian/Farsi (right-to-left). Read ALL visible text, including Persian digits (۰۱۲۳۴۵۶۷۸۹) and Latin letters.
- Convert Persian/Arabic digits to Western digits (e.g., ۱۳۹۸ -> 1398).
- Use exact strings as seen on the card (after digit normalization). Do not invent values.
- If a field is not present on THIS side of the card, return an empty string "" and confidence 0.
- Do not include any extra keys. Do not wrap in markdown. Output JSON only.

Field mapping hints for Iranian/Persian back-card:
- vin: value next to label "شاسی" (often a long alphanumeric like NAAM...).
- engine_number: value next to label "موتور".
- make: value next to label "سیستم" (e.g., پژو => "Peugeot" OR keep Persian "پژو" if unclear; prefer English transliteration when obvious).
- model: value next to label "تیپ" (e.g., 405GLX-XU7-CNG). If "تیپ" missing, use the closest vehicle model/type line.
- year: value next to label "مدل" (e.g., 1398). Keep as string.
- color: value next to label "رنگ".
- vehicle_type: value next to label "نوع".
- fuel: value next to label "سوخت".
- capacity: value next to label "ظرفیت" (e.g., "5 نفر").
- plate_number: usually NOT on the back side. Only fill if clearly visible.
- owner_name, registration_date, expiry_date: often NOT on the back side. Only fill if clearly visible.
- country: if the card is Persian and shows Iranian model year format (13xx), set "Iran". Otherwise infer from explicit text; else "".

raw_text:
- Put a best-effort plain text transcription of all readable lines (both Persian and English), separated by newlines.

confidence:
- Provide per-field confidence between 0 and 1.
- Use high confidence (0.85–1.0) only when the value is clearly printed and explicitly labeled.
- Medium (0.5–0.85) if readable but slightly uncertain.
- Low (0–0.5) if guessed/inferred. If empty string, confidence must be 0.

Return ONLY the JSON object."""
