"""
Scanner Exceptions
==================

Structured error types shared by the preprocessing stages, the OCR
providers and the pipeline. Every error carries an ``error_code`` and a
``context`` dict for programmatic handling.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """
    Base exception for pipeline errors.

    Provides structured error information with error codes for programmatic handling.
    """

    def __init__(self, message: str, error_code: str = "PIPELINE_ERROR", context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class InvalidGeometry(PipelineError):
    """Raised when a crop region collapses to zero width or height."""

    def __init__(self, width: int, height: int, region: Optional[Dict[str, int]] = None):
        super().__init__(
            message=f"Crop region is empty for a {width}x{height} image",
            error_code="INVALID_GEOMETRY",
            context={"width": width, "height": height, "region": region},
        )
        self.width = width
        self.height = height


class EmptyImage(PipelineError):
    """Raised when statistics are requested for an image with no pixels."""

    def __init__(self, width: int = 0, height: int = 0):
        super().__init__(
            message=f"Image has no pixels ({width}x{height})",
            error_code="EMPTY_IMAGE",
            context={"width": width, "height": height},
        )


class ImageLoadError(PipelineError):
    """Raised when image cannot be loaded."""

    def __init__(self, file_path: str, reason: str = "Unknown error"):
        super().__init__(
            message=f"Failed to load image: {file_path}. Reason: {reason}",
            error_code="IMAGE_LOAD_ERROR",
            context={"file_path": file_path, "reason": reason}
        )
        self.file_path = file_path
        self.reason = reason


class NoImageProvided(PipelineError):
    """Raised when a scan is requested without an input image."""

    def __init__(self):
        super().__init__(
            message="Please upload an image first",
            error_code="NO_IMAGE",
        )


class ExtractionFailed(PipelineError):
    """Raised when text recognition fails; wraps the engine error."""

    def __init__(self, cause: BaseException, provider: Optional[str] = None):
        message = getattr(cause, "message", None) or str(cause) or "Failed to process image"
        super().__init__(
            message=message,
            error_code="EXTRACTION_FAILED",
            context={"provider": provider, "cause": type(cause).__name__},
        )
        self.cause = cause


class ConfigurationError(PipelineError):
    """Raised when the scanner is misconfigured."""

    def __init__(self, message: str, config_key: Optional[str] = None, expected: Optional[str] = None):
        super().__init__(
            message=f"Configuration error: {message}",
            error_code="CONFIG_ERROR",
            context={"config_key": config_key, "expected": expected}
        )
        self.config_key = config_key
        self.expected = expected


class UploadValidationError(PipelineError):
    """Raised when an uploaded image is missing, too large or of the wrong type."""

    def __init__(self, message: str, content_type: Optional[str] = None, size: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="UPLOAD_INVALID",
            context={"content_type": content_type, "size": size},
        )
