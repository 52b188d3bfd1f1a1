"""
VIN Scanner Core Module
=======================

Image container, VIN matching, card record contract and error types.
"""

from .exceptions import (
    PipelineError,
    InvalidGeometry,
    EmptyImage,
    ImageLoadError,
    NoImageProvided,
    ExtractionFailed,
    ConfigurationError,
    UploadValidationError,
)
from .raster import RasterImage
from .vin_utils import (
    VINConstants,
    VIN_LENGTH,
    VIN_PATTERN,
    VinMatch,
    match_vin,
    extract_vin_from_text,
)
from .card_schema import (
    CONFIDENCE_KEYS,
    CarCardData,
    normalize_car_card_data,
    extract_success,
    extract_failure,
    validate_upload,
    EXTRACTION_PROMPT,
)

__all__ = [
    # Errors
    "PipelineError",
    "InvalidGeometry",
    "EmptyImage",
    "ImageLoadError",
    "NoImageProvided",
    "ExtractionFailed",
    "ConfigurationError",
    "UploadValidationError",
    # Image
    "RasterImage",
    # VIN
    "VINConstants",
    "VIN_LENGTH",
    "VIN_PATTERN",
    "VinMatch",
    "match_vin",
    "extract_vin_from_text",
    # Card record
    "CONFIDENCE_KEYS",
    "CarCardData",
    "normalize_car_card_data",
    "extract_success",
    "extract_failure",
    "validate_upload",
    "EXTRACTION_PROMPT",
]
