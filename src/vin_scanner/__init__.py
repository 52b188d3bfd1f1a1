"""
VIN Scanner
===========

Vehicle registration card VIN scanner.

Package Structure:
    vin_scanner/
    ├── core/           # Raster image, VIN matching, card record, errors
    ├── preprocessing/  # VIN band crop, brightness/contrast enhancement
    ├── providers/      # OCR engine adapters (PaddleOCR, Tesseract)
    ├── pipeline/       # Scan orchestrator with stage fallbacks
    ├── config.py       # Settings with environment overrides
    └── cli.py          # Command line entry point

Quick Start:
    from vin_scanner import scan_vin

    result = scan_vin("card.jpg", provider="tesseract")
    print(result.outcome, result.vin)
    print(result.transcription)

    # Card record sanitizer
    from vin_scanner import normalize_car_card_data
    record = normalize_car_card_data({"vin": "NAAM...", "confidence": {"vin": 1.2}})
    print(record.confidence["vin"])  # 1.0

Version: 1.0.0
"""

__version__ = "1.0.0"

# Core exports (lightweight, always available)
from .core import (
    RasterImage,
    VinMatch,
    match_vin,
    extract_vin_from_text,
    CarCardData,
    normalize_car_card_data,
    validate_upload,
    PipelineError,
    InvalidGeometry,
    EmptyImage,
    ImageLoadError,
    NoImageProvided,
    ExtractionFailed,
)

__all__ = [
    "__version__",
    # Core
    "RasterImage",
    "VinMatch",
    "match_vin",
    "extract_vin_from_text",
    "CarCardData",
    "normalize_car_card_data",
    "validate_upload",
    "PipelineError",
    "InvalidGeometry",
    "EmptyImage",
    "ImageLoadError",
    "NoImageProvided",
    "ExtractionFailed",
    # Pipeline (lazy)
    "VINScanPipeline",
    "ScanResult",
    "ScanOutcome",
    "scan_vin",
]


# Lazy imports for the pipeline (pulls in OCR providers)
def __getattr__(name: str):
    """Lazy import for pipeline modules."""
    if name in ("VINScanPipeline", "ScanResult", "ScanOutcome", "scan_vin"):
        from . import pipeline
        return getattr(pipeline, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
