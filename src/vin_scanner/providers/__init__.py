"""
VIN Scanner OCR Providers Module
================================

OCR engine adapters behind one interface.

Supported providers:
- PaddleOCR (PP-OCRv3)
- Tesseract (via pytesseract)

Usage:
    from vin_scanner.providers import OCRProviderFactory

    provider = OCRProviderFactory.create("paddleocr")
    result = provider.recognize(image, language="eng")
    print(result.text)
"""

from .ocr_providers import (
    OCRProviderType,
    OCRResult,
    OCRProvider,
    OCRProviderError,
    PaddleOCRProvider,
    TesseractOCRProvider,
    OCRProviderFactory,
    ProviderConfig,
    PaddleOCRConfig,
    TesseractConfig,
    get_default_provider,
)

__all__ = [
    # Providers
    "OCRProviderType",
    "OCRResult",
    "OCRProvider",
    "OCRProviderError",
    "PaddleOCRProvider",
    "TesseractOCRProvider",
    "OCRProviderFactory",
    "get_default_provider",
    # Configs
    "ProviderConfig",
    "PaddleOCRConfig",
    "TesseractConfig",
]
