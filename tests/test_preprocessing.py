"""
Tests for VIN Image Preprocessing
=================================

Crop geometry, luminance statistics and adaptive enhancement.

Run with: pytest tests/test_preprocessing.py -v
"""

import numpy as np
import pytest

from vin_scanner.config import PreprocessingConfig
from vin_scanner.core import EmptyImage, InvalidGeometry, RasterImage
from vin_scanner.preprocessing import (
    CropRegion,
    EnhancementPlan,
    ImageStatistics,
    PreprocessStrategy,
    VINPreprocessor,
    analyze_image,
    apply_enhancement,
    compute_crop_region,
    crop_to_vin_region,
    plan_enhancement,
)


# =============================================================================
# TEST FIXTURES
# =============================================================================

def _two_level_image(low: int, high: int, width: int = 40, height: int = 20, alpha: int = 255) -> RasterImage:
    """Left half ``low``, right half ``high`` on all colour channels."""
    data = np.empty((height, width, 4), dtype=np.uint8)
    data[:, : width // 2, :3] = low
    data[:, width // 2:, :3] = high
    data[:, :, 3] = alpha
    return RasterImage(data)


@pytest.fixture
def gradient_image():
    """A 200x100 image whose pixels encode their own coordinates."""
    ys, xs = np.mgrid[0:100, 0:200]
    data = np.zeros((100, 200, 4), dtype=np.uint8)
    data[:, :, 0] = xs % 256
    data[:, :, 1] = ys % 256
    data[:, :, 2] = (xs + ys) % 256
    data[:, :, 3] = 255
    return RasterImage(data)


@pytest.fixture
def random_image():
    rng = np.random.default_rng(42)
    return RasterImage(rng.integers(0, 256, (60, 80, 4), dtype=np.uint8))


# =============================================================================
# CROP TESTS
# =============================================================================

class TestCropRegion:
    """Tests for the VIN band geometry."""

    def test_reference_geometry(self):
        """Test the band for a 200x100 image."""
        assert compute_crop_region(200, 100) == CropRegion(x=10, y=55, width=180, height=35)

    @pytest.mark.parametrize("width,height,expected", [
        (100, 100, CropRegion(5, 55, 90, 35)),
        (640, 480, CropRegion(32, 264, 576, 168)),
        (1920, 1080, CropRegion(96, 594, 1728, 378)),
        (1000, 20, CropRegion(50, 11, 900, 7)),
    ])
    def test_common_sizes(self, width, height, expected):
        """Test x=0.05W, y=0.55H, width=0.9W, height=0.35H on common sizes."""
        assert compute_crop_region(width, height) == expected

    @pytest.mark.parametrize("width,expected", [
        (15, CropRegion(0, 55, 13, 35)),
        (19, CropRegion(0, 55, 17, 35)),
        (39, CropRegion(1, 55, 35, 35)),
        (59, CropRegion(2, 55, 53, 35)),
        (99, CropRegion(4, 55, 89, 35)),
        (119, CropRegion(5, 55, 107, 35)),
    ])
    def test_odd_widths(self, width, expected):
        """Test the left edge is floor(0.05W), not the centre of the floored width."""
        region = compute_crop_region(width, 100)
        assert region == expected
        assert region.x == int(0.05 * width)

    @pytest.mark.parametrize("width,height", [(37, 53), (3, 3), (101, 7), (4000, 3000)])
    def test_region_inside_source(self, width, height):
        """Test the region never leaves the source image."""
        region = compute_crop_region(width, height)
        assert region.x >= 0 and region.y >= 0
        assert region.x + region.width <= width
        assert region.y + region.height <= height
        assert region.width > 0 and region.height > 0

    def test_independent_of_content(self, gradient_image):
        """Test the region depends only on dimensions."""
        blank = RasterImage.blank(200, 100)
        cropped_a = crop_to_vin_region(gradient_image)
        cropped_b = crop_to_vin_region(blank)
        assert cropped_a.size == cropped_b.size == (180, 35)

    @pytest.mark.parametrize("width,height", [(1, 1), (10, 2), (1, 100), (0, 0)])
    def test_degenerate_image_raises(self, width, height):
        """Test zero-sized regions raise InvalidGeometry."""
        with pytest.raises(InvalidGeometry) as exc_info:
            compute_crop_region(width, height)
        assert exc_info.value.error_code == "INVALID_GEOMETRY"

    def test_crop_copies_band(self, gradient_image):
        """Test the cropped pixels are exactly the source band."""
        cropped = crop_to_vin_region(gradient_image)
        np.testing.assert_array_equal(cropped.data, gradient_image.data[55:90, 10:190])

    def test_crop_does_not_alias_input(self, gradient_image):
        """Test the cropped image owns its buffer."""
        before = gradient_image.data.copy()
        cropped = crop_to_vin_region(gradient_image)
        cropped.data[...] = 0
        np.testing.assert_array_equal(gradient_image.data, before)

    def test_custom_ratios(self):
        """Test crop ratios come from config."""
        config = PreprocessingConfig(crop_width_ratio=0.5, crop_height_ratio=0.5, crop_top_ratio=0.25)
        assert compute_crop_region(100, 100, config) == CropRegion(25, 25, 50, 50)


# =============================================================================
# ANALYZER TESTS
# =============================================================================

class TestAnalyzeImage:
    """Tests for brightness/contrast statistics."""

    def test_black_image(self):
        stats = analyze_image(RasterImage.blank(10, 10, (0, 0, 0, 255)))
        assert stats.brightness == pytest.approx(0.0)
        assert stats.contrast == pytest.approx(0.0)

    def test_white_image(self):
        stats = analyze_image(RasterImage.blank(10, 10, (255, 255, 255, 255)))
        assert stats.brightness == pytest.approx(1.0)
        assert stats.contrast == pytest.approx(0.0, abs=1e-6)

    def test_uniform_gray(self):
        stats = analyze_image(RasterImage.blank(8, 8, (128, 128, 128, 255)))
        assert stats.brightness == pytest.approx(128 / 255)
        assert stats.contrast == pytest.approx(0.0, abs=1e-6)

    def test_half_black_half_white(self):
        """Test mean and population standard deviation."""
        stats = analyze_image(_two_level_image(0, 255))
        assert stats.brightness == pytest.approx(0.5)
        assert stats.contrast == pytest.approx(0.5)

    def test_luma_weights(self):
        """Test pure channels use 0.299/0.587/0.114."""
        assert analyze_image(RasterImage.blank(2, 2, (255, 0, 0, 255))).brightness == pytest.approx(0.299)
        assert analyze_image(RasterImage.blank(2, 2, (0, 255, 0, 255))).brightness == pytest.approx(0.587)
        assert analyze_image(RasterImage.blank(2, 2, (0, 0, 255, 255))).brightness == pytest.approx(0.114)

    def test_alpha_ignored(self):
        opaque = analyze_image(_two_level_image(30, 90, alpha=255))
        transparent = analyze_image(_two_level_image(30, 90, alpha=0))
        assert opaque == transparent

    def test_statistics_in_range(self, random_image):
        stats = analyze_image(random_image)
        assert 0.0 <= stats.brightness <= 1.0
        assert 0.0 <= stats.contrast <= 1.0

    def test_empty_image_raises(self):
        with pytest.raises(EmptyImage):
            analyze_image(RasterImage(np.zeros((0, 0, 4), dtype=np.uint8)))

    def test_input_not_modified(self, random_image):
        before = random_image.data.copy()
        analyze_image(random_image)
        np.testing.assert_array_equal(random_image.data, before)


# =============================================================================
# ENHANCEMENT PLAN TESTS
# =============================================================================

class TestPlanEnhancement:
    """Tests for threshold decisions."""

    def test_dark_and_flat(self):
        plan = plan_enhancement(ImageStatistics(brightness=0.2, contrast=0.1))
        assert plan.brightness_factor == pytest.approx(0.45)
        assert plan.contrast_factor == pytest.approx(0.4)

    def test_thresholds_are_exclusive(self):
        """Test values exactly at the thresholds need no adjustment."""
        plan = plan_enhancement(ImageStatistics(brightness=0.4, contrast=0.2))
        assert plan.is_noop

    def test_dark_only(self):
        plan = plan_enhancement(ImageStatistics(brightness=0.1, contrast=0.5))
        assert plan.brightness_factor == pytest.approx(0.6)
        assert plan.contrast_factor == 0.0

    def test_flat_only(self):
        plan = plan_enhancement(ImageStatistics(brightness=0.7, contrast=0.0))
        assert plan.brightness_factor == 0.0
        assert plan.contrast_factor == pytest.approx(0.6)

    def test_factors_positive_below_threshold(self):
        plan = plan_enhancement(ImageStatistics(brightness=0.3999, contrast=0.1999))
        assert plan.brightness_factor > 0
        assert plan.contrast_factor > 0


# =============================================================================
# ENHANCER TESTS
# =============================================================================

class TestApplyEnhancement:
    """Tests for the per-pixel transforms."""

    def test_well_lit_image_unchanged(self):
        """Test images above both thresholds come back identical."""
        image = _two_level_image(50, 200)
        stats = analyze_image(image)
        assert stats.brightness >= 0.4 and stats.contrast >= 0.2

        enhanced = VINPreprocessor().enhance(image)

        np.testing.assert_array_equal(enhanced.data, image.data)
        assert not np.shares_memory(enhanced.data, image.data)

    def test_noop_plan_returns_copy(self, random_image):
        result = apply_enhancement(random_image, EnhancementPlan())
        np.testing.assert_array_equal(result.data, random_image.data)
        assert result is not random_image

    def test_dark_image_never_darker(self):
        """Test brightening only raises channel values."""
        image = _two_level_image(0, 110)
        stats = analyze_image(image)
        assert stats.brightness < 0.4 and stats.contrast >= 0.2

        enhanced = VINPreprocessor().enhance(image)

        assert np.all(enhanced.data[:, :, :3] >= image.data[:, :, :3])
        assert np.any(enhanced.data[:, :, :3] > image.data[:, :, :3])

    def test_brightness_shift_values(self):
        image = _two_level_image(0, 110)
        plan = plan_enhancement(analyze_image(image))
        shift = plan.brightness_factor * 255

        enhanced = apply_enhancement(image, plan)

        assert enhanced.data[0, 0, 0] == int(np.rint(min(255.0, 0 + shift)))
        assert enhanced.data[0, -1, 0] == int(np.rint(min(255.0, 110 + shift)))

    def test_brightness_saturates(self):
        image = _two_level_image(0, 250)
        enhanced = apply_enhancement(image, EnhancementPlan(brightness_factor=0.5))
        assert enhanced.data[0, -1, 0] == 255

    def test_contrast_stretch_around_midpoint(self):
        """Test the stretch pushes values away from 128."""
        image = _two_level_image(120, 136)
        plan = plan_enhancement(analyze_image(image))
        assert plan.brightness_factor == 0 and plan.contrast_factor > 0

        enhanced = apply_enhancement(image, plan)

        factor = 1 + plan.contrast_factor
        intercept = 128 * (1 - factor)
        assert enhanced.data[0, 0, 0] == int(np.rint(120 * factor + intercept))
        assert enhanced.data[0, -1, 0] == int(np.rint(136 * factor + intercept))
        assert enhanced.data[0, 0, 0] < 120
        assert enhanced.data[0, -1, 0] > 136

    def test_brightness_then_contrast(self):
        """Test both transforms, in order, against the scalar formula."""
        image = _two_level_image(10, 20)
        plan = EnhancementPlan(brightness_factor=0.3, contrast_factor=0.4)

        enhanced = apply_enhancement(image, plan)

        factor = 1 + 0.4
        for source, pixel in ((10, enhanced.data[0, 0]), (20, enhanced.data[0, -1])):
            shifted = np.rint(min(255.0, source + 0.3 * 255))
            stretched = min(255.0, max(0.0, shifted * factor + 128 * (1 - factor)))
            assert list(pixel[:3]) == [int(np.rint(stretched))] * 3

    def test_brightness_rounded_before_contrast(self):
        """Test the stretch reads whole channel values: 10 -> 86.5 -> 86 -> 69."""
        image = _two_level_image(10, 20)
        enhanced = apply_enhancement(image, EnhancementPlan(brightness_factor=0.3, contrast_factor=0.4))
        assert enhanced.data[0, 0, 0] == 69
        assert enhanced.data[0, -1, 0] == 83

    def test_contrast_clamps_to_zero(self):
        image = _two_level_image(0, 255)
        enhanced = apply_enhancement(image, EnhancementPlan(contrast_factor=0.6))
        assert enhanced.data[0, 0, 0] == 0
        assert enhanced.data[0, -1, 0] == 255

    def test_alpha_untouched(self):
        image = _two_level_image(5, 15, alpha=77)
        enhanced = apply_enhancement(image, EnhancementPlan(brightness_factor=0.4, contrast_factor=0.5))
        assert np.all(enhanced.data[:, :, 3] == 77)

    def test_dimensions_preserved(self, random_image):
        enhanced = apply_enhancement(random_image, EnhancementPlan(brightness_factor=0.2, contrast_factor=0.2))
        assert enhanced.size == random_image.size
        assert enhanced.channel_data.size == random_image.width * random_image.height * 4

    def test_input_not_modified(self):
        image = _two_level_image(0, 40)
        before = image.data.copy()
        apply_enhancement(image, EnhancementPlan(brightness_factor=0.5, contrast_factor=0.5))
        np.testing.assert_array_equal(image.data, before)


# =============================================================================
# PREPROCESSOR TESTS
# =============================================================================

class TestVINPreprocessor:
    """Tests for the strategy wrapper."""

    def test_default_strategy(self):
        preprocessor = VINPreprocessor()
        assert preprocessor.strategy == PreprocessStrategy.ADAPTIVE
        assert preprocessor.crops and preprocessor.enhances

    def test_strategy_from_string(self):
        preprocessor = VINPreprocessor(strategy="crop")
        assert preprocessor.crops
        assert not preprocessor.enhances

    def test_none_strategy_returns_copy(self, random_image):
        result = VINPreprocessor(strategy=PreprocessStrategy.NONE).process(random_image)
        np.testing.assert_array_equal(result.data, random_image.data)
        assert not np.shares_memory(result.data, random_image.data)

    def test_process_crops_then_enhances(self, gradient_image):
        result = VINPreprocessor().process(gradient_image)
        assert result.size == (180, 35)

    def test_process_raises_on_degenerate_image(self):
        with pytest.raises(InvalidGeometry):
            VINPreprocessor().process(RasterImage.blank(1, 1))

    def test_describe(self, gradient_image):
        report = VINPreprocessor().describe(gradient_image)
        assert report["crop_region"] == {"x": 10, "y": 55, "width": 180, "height": 35}
        assert 0.0 <= report["brightness"] <= 1.0
        assert 0.0 <= report["contrast"] <= 1.0

    def test_describe_degenerate_image(self):
        report = VINPreprocessor().describe(RasterImage.blank(1, 1, (0, 0, 0, 255)))
        assert report["crop_region"] is None
        assert "crop_error" in report
        assert report["brightness"] == pytest.approx(0.0)
        assert report["brightness_factor"] == pytest.approx(0.75)
