"""
Scanner Configuration - Centralized Settings
============================================

All configurable parameters in one place.
Supports environment variable overrides.

Usage:
    from vin_scanner.config import get_config
    config = get_config()
    print(config.preprocessing.brightness_threshold)

Environment Variables:
    VIN_SCAN_PREPROCESS=false
    VIN_SCAN_OCR_PROVIDER=tesseract
    VIN_SCAN_OCR_LANG=eng
    VIN_SCAN_USE_GPU=true
    VIN_SCAN_DET_BOX_THRESH=0.3
    VIN_SCAN_TESSERACT_CMD=/usr/bin/tesseract
    VIN_SCAN_LOG_LEVEL=DEBUG
    VIN_SCAN_LOG_FILE=/tmp/vin_scanner.log
"""

import os
import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, Any

from .core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _get_env_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid float for {key}: {value}, using default {default}")
    return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get bool from environment variable."""
    value = os.environ.get(key)
    if value is not None:
        return value.lower() in ('true', '1', 'yes', 'on')
    return default


def _get_env_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


@dataclass
class PreprocessingConfig:
    """Crop and enhancement configuration."""

    enabled: bool = field(
        default_factory=lambda: _get_env_bool('VIN_SCAN_PREPROCESS', True)
    )

    # VIN band, as fractions of the source image
    crop_width_ratio: float = 0.9
    crop_height_ratio: float = 0.35
    crop_top_ratio: float = 0.55

    # Enhancement thresholds (normalized statistics)
    brightness_threshold: float = 0.4
    contrast_threshold: float = 0.2

    # Enhancement scaling
    brightness_target: float = 0.5
    brightness_gain: float = 1.5
    contrast_target: float = 0.3
    contrast_gain: float = 2.0


@dataclass
class OCRConfig:
    """OCR engine configuration."""

    provider: str = field(
        default_factory=lambda: _get_env_str('VIN_SCAN_OCR_PROVIDER', 'paddleocr')
    )
    language: str = field(
        default_factory=lambda: _get_env_str('VIN_SCAN_OCR_LANG', 'eng')
    )

    # PaddleOCR
    ocr_version: str = 'PP-OCRv3'
    det_db_box_thresh: float = field(
        default_factory=lambda: _get_env_float('VIN_SCAN_DET_BOX_THRESH', 0.3)
    )
    use_doc_orientation_classify: bool = False
    use_doc_unwarping: bool = False
    use_textline_orientation: bool = False
    use_gpu: bool = field(
        default_factory=lambda: _get_env_bool('VIN_SCAN_USE_GPU', False)
    )

    # Tesseract
    tesseract_cmd: Optional[str] = field(
        default_factory=lambda: os.environ.get('VIN_SCAN_TESSERACT_CMD')
    )
    tesseract_config: str = '--oem 3 --psm 6'


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(
        default_factory=lambda: _get_env_str('VIN_SCAN_LOG_LEVEL', 'INFO')
    )
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    date_format: str = '%Y-%m-%d %H:%M:%S'

    # File logging (optional)
    log_file: Optional[str] = field(
        default_factory=lambda: os.environ.get('VIN_SCAN_LOG_FILE')
    )


@dataclass
class ScannerConfig:
    """Complete scanner configuration."""

    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def save(self, path: Path):
        """Save configuration to JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> 'ScannerConfig':
        """
        Load configuration from JSON file.

        Raises:
            ConfigurationError: If the file or one of its sections is not a JSON object
        """
        with open(path) as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a JSON object", expected="object")

        config = cls()

        for section in ('preprocessing', 'ocr', 'logging'):
            target = getattr(config, section)
            values = data.get(section, {})
            if not isinstance(values, dict):
                raise ConfigurationError(f"'{section}' must be an object", config_key=section, expected="object")
            for key, value in values.items():
                if hasattr(target, key):
                    setattr(target, key, value)
                else:
                    logger.warning(f"Ignoring unknown {section} setting: {key}")

        return config


# Global configuration instance (singleton pattern)
_config: Optional[ScannerConfig] = None


def get_config() -> ScannerConfig:
    """
    Get the global configuration instance.

    Creates a new instance on first call, returns cached instance thereafter.
    """
    global _config
    if _config is None:
        _config = ScannerConfig()
        _setup_logging(_config.logging)
    return _config


def reset_config():
    """Reset configuration to defaults (useful for testing)."""
    global _config
    _config = None


def _setup_logging(config: LoggingConfig):
    """Configure logging based on settings."""
    level = getattr(logging, config.level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]

    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=level,
        format=config.format,
        datefmt=config.date_format,
        handlers=handlers,
    )
