"""
VIN Image Preprocessor
======================

Client-side preprocessing that runs before the OCR engine sees an image.

Steps:
- CROP: cut the band where the VIN sits on a registration card
  (90% of the width, centered; 55% to 90% of the height)
- ANALYZE: mean luminance (brightness) and luminance standard deviation
  (contrast), both normalized to [0, 1]
- ENHANCE: linear brightness shift and/or linear contrast stretch, only
  when the statistics fall below fixed thresholds

All steps take a RasterImage and return a new one; inputs are never
modified in place.

Thresholds and gains are empirical and are kept at their reference values:
brightness < 0.4 → shift by (0.5 - brightness) * 1.5;
contrast < 0.2 → stretch by (0.3 - contrast) * 2.
"""

import math
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

from ..config import PreprocessingConfig
from ..core.exceptions import EmptyImage, InvalidGeometry
from ..core.raster import RasterImage

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)

# Absorbs float error such as 0.55 * 100 == 55.00000000000001 before flooring
_PIXEL_EPSILON = 1e-9


class PreprocessStrategy(str, Enum):
    """Preprocessing strategy enumeration."""
    NONE = 'none'
    CROP = 'crop'
    ADAPTIVE = 'adaptive'


@dataclass(frozen=True)
class CropRegion:
    """Pixel rectangle inside a source image."""
    x: int
    y: int
    width: int
    height: int

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class ImageStatistics:
    """Normalized luminance statistics of an image."""
    brightness: float
    contrast: float


@dataclass(frozen=True)
class EnhancementPlan:
    """Per-dimension adjustment factors; 0 disables that adjustment."""
    brightness_factor: float = 0.0
    contrast_factor: float = 0.0

    @property
    def is_noop(self) -> bool:
        return self.brightness_factor <= 0 and self.contrast_factor <= 0


def _floor_px(value: float) -> int:
    return int(math.floor(value + _PIXEL_EPSILON))


def compute_crop_region(
    width: int,
    height: int,
    config: Optional[PreprocessingConfig] = None,
) -> CropRegion:
    """
    Compute the VIN band for an image of the given size.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        config: Crop ratios (defaults if None)

    Returns:
        CropRegion fully contained in the source

    Raises:
        InvalidGeometry: If the region has zero width or height
    """
    config = config or PreprocessingConfig()

    band_w = width * config.crop_width_ratio
    crop_w = _floor_px(band_w)
    crop_h = _floor_px(height * config.crop_height_ratio)
    # Left edge of the unfloored band, floored on its own
    x = max(0, _floor_px((width - band_w) / 2))
    y = max(0, _floor_px(height * config.crop_top_ratio))

    crop_w = min(crop_w, width - x)
    crop_h = min(crop_h, height - y)

    if crop_w <= 0 or crop_h <= 0:
        raise InvalidGeometry(
            width,
            height,
            region={"x": x, "y": y, "width": crop_w, "height": crop_h},
        )

    return CropRegion(x=x, y=y, width=crop_w, height=crop_h)


def crop_to_vin_region(
    image: RasterImage,
    config: Optional[PreprocessingConfig] = None,
) -> RasterImage:
    """Return a new image containing only the VIN band of ``image``."""
    region = compute_crop_region(image.width, image.height, config)
    band = image.data[region.y:region.y + region.height, region.x:region.x + region.width]
    logger.debug(f"Cropped {image.width}x{image.height} to {region}")
    return RasterImage(band.copy())


def analyze_image(image: RasterImage) -> ImageStatistics:
    """
    Compute brightness (mean luma / 255) and contrast (luma std / 255).

    The variance comes from running sums, E[L^2] - E[L]^2, so no per-pixel
    luminance array is kept beyond the weighted sum.

    Raises:
        EmptyImage: If the image has no pixels
    """
    count = image.pixel_count
    if count == 0:
        raise EmptyImage(image.width, image.height)

    rgb = image.channel_data.reshape(-1, 4)[:, :3]
    luma = rgb @ LUMA_WEIGHTS

    mean = float(luma.sum()) / count
    mean_sq = float(np.dot(luma, luma)) / count
    variance = max(0.0, mean_sq - mean * mean)

    brightness = min(1.0, max(0.0, mean / 255.0))
    contrast = min(1.0, max(0.0, math.sqrt(variance) / 255.0))
    return ImageStatistics(brightness=brightness, contrast=contrast)


def plan_enhancement(
    stats: ImageStatistics,
    config: Optional[PreprocessingConfig] = None,
) -> EnhancementPlan:
    """Derive the adjustment factors for an image from its statistics."""
    config = config or PreprocessingConfig()

    brightness_factor = 0.0
    if stats.brightness < config.brightness_threshold:
        brightness_factor = (config.brightness_target - stats.brightness) * config.brightness_gain

    contrast_factor = 0.0
    if stats.contrast < config.contrast_threshold:
        contrast_factor = (config.contrast_target - stats.contrast) * config.contrast_gain

    return EnhancementPlan(
        brightness_factor=max(0.0, brightness_factor),
        contrast_factor=max(0.0, contrast_factor),
    )


def apply_enhancement(image: RasterImage, plan: EnhancementPlan) -> RasterImage:
    """
    Apply a brightness shift then a contrast stretch to R, G and B.

    Each step is rounded back to whole channel values before the next one
    reads it. Alpha is copied unchanged. Returns a copy when the plan is a
    no-op.
    """
    if plan.is_noop:
        return image.copy()

    out = image.data.copy()
    pixels = out.reshape(-1, 4)
    rgb = pixels[:, :3].astype(np.float64)

    if plan.brightness_factor > 0:
        np.minimum(rgb + plan.brightness_factor * 255.0, 255.0, out=rgb)
        np.rint(rgb, out=rgb)

    if plan.contrast_factor > 0:
        factor = 1.0 + plan.contrast_factor
        intercept = 128.0 * (1.0 - factor)
        np.clip(rgb * factor + intercept, 0.0, 255.0, out=rgb)

    pixels[:, :3] = np.rint(rgb).astype(np.uint8)
    return RasterImage(out)


class VINPreprocessor:
    """
    VIN band preprocessor.

    Example:
        preprocessor = VINPreprocessor()
        processed = preprocessor.process(image)

        # Inspect the decisions without touching pixels
        report = preprocessor.describe(image)
    """

    def __init__(
        self,
        strategy: PreprocessStrategy = PreprocessStrategy.ADAPTIVE,
        config: Optional[PreprocessingConfig] = None,
    ):
        """
        Initialize the VIN preprocessor.

        Args:
            strategy: Which steps ``process`` runs
            config: Crop ratios and enhancement constants (defaults if None)
        """
        self.strategy = PreprocessStrategy(strategy)
        self.config = config or PreprocessingConfig()

        logger.debug(f"VINPreprocessor initialized with strategy={self.strategy.value}")

    @property
    def crops(self) -> bool:
        return self.strategy in (PreprocessStrategy.CROP, PreprocessStrategy.ADAPTIVE)

    @property
    def enhances(self) -> bool:
        return self.strategy == PreprocessStrategy.ADAPTIVE

    def crop(self, image: RasterImage) -> RasterImage:
        return crop_to_vin_region(image, self.config)

    def analyze(self, image: RasterImage) -> ImageStatistics:
        return analyze_image(image)

    def plan(self, stats: ImageStatistics) -> EnhancementPlan:
        return plan_enhancement(stats, self.config)

    def enhance(self, image: RasterImage) -> RasterImage:
        """Analyze ``image`` and apply whatever enhancement it needs."""
        stats = self.analyze(image)
        plan = self.plan(stats)
        logger.debug(
            f"Image analysis: brightness={stats.brightness:.3f}, contrast={stats.contrast:.3f}, "
            f"plan=({plan.brightness_factor:.3f}, {plan.contrast_factor:.3f})"
        )
        return apply_enhancement(image, plan)

    def process(self, image: RasterImage) -> RasterImage:
        """
        Run the configured steps without fallbacks.

        Raises:
            InvalidGeometry: If cropping is enabled and the image is too small
            EmptyImage: If enhancement is enabled and the image has no pixels
        """
        result = image.copy()
        if self.crops:
            result = self.crop(result)
        if self.enhances:
            result = self.enhance(result)
        return result

    def describe(self, image: RasterImage) -> Dict[str, Any]:
        """
        Report crop region, statistics and enhancement plan for debugging/tuning.

        Statistics are taken on the cropped band when it exists, as the
        pipeline does.
        """
        report: Dict[str, Any] = {
            "width": image.width,
            "height": image.height,
            "crop_region": None,
            "brightness": None,
            "contrast": None,
            "brightness_factor": 0.0,
            "contrast_factor": 0.0,
        }

        target = image
        try:
            region = compute_crop_region(image.width, image.height, self.config)
            report["crop_region"] = region.to_dict()
            target = self.crop(image)
        except InvalidGeometry as e:
            report["crop_error"] = e.message

        try:
            stats = self.analyze(target)
        except EmptyImage as e:
            report["analysis_error"] = e.message
            return report

        plan = self.plan(stats)
        report.update(
            brightness=stats.brightness,
            contrast=stats.contrast,
            brightness_factor=plan.brightness_factor,
            contrast_factor=plan.contrast_factor,
        )
        return report
