"""
VIN Image Preprocessing Module
==============================

Crop, analyze and enhance a card image before OCR.

Usage:
    from vin_scanner.preprocessing import VINPreprocessor

    preprocessor = VINPreprocessor()
    processed = preprocessor.process(image)
"""

from .vin_preprocessor import (
    VINPreprocessor,
    PreprocessStrategy,
    CropRegion,
    ImageStatistics,
    EnhancementPlan,
    compute_crop_region,
    crop_to_vin_region,
    analyze_image,
    plan_enhancement,
    apply_enhancement,
)

__all__ = [
    'VINPreprocessor',
    'PreprocessStrategy',
    'CropRegion',
    'ImageStatistics',
    'EnhancementPlan',
    'compute_crop_region',
    'crop_to_vin_region',
    'analyze_image',
    'plan_enhancement',
    'apply_enhancement',
]
