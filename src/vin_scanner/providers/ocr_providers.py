"""
OCR Providers - Engine Adapter Layer
====================================

Provides a unified interface for the text recognition engines the scanner
can delegate to:
- PaddleOCR (default, local)
- Tesseract (local, via pytesseract)

Each recognition call opens a fresh engine session and releases it when the
call finishes, whether it succeeded or failed. No session outlives a call
and none is shared between calls.

Usage:
    from vin_scanner.providers import OCRProviderFactory

    provider = OCRProviderFactory.create("tesseract")
    result = provider.recognize(image, language="eng")
    print(result.text)
"""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type, Union

import numpy as np

from ..config import get_config
from ..core.raster import RasterImage

logger = logging.getLogger(__name__)

# Guards pytesseract's module-level binary path
_TESSERACT_CMD_LOCK = threading.Lock()


# =============================================================================
# ENUMS AND DATA CLASSES
# =============================================================================

class OCRProviderType(str, Enum):
    """
    Built-in OCR provider types.

    Additional engines can be added by subclassing OCRProvider and
    registering with the factory.
    """
    PADDLEOCR = "paddleocr"
    TESSERACT = "tesseract"


@dataclass
class OCRResult:
    """
    Standardized OCR result across all providers.

    Attributes:
        text: Full transcription (may be empty, may span several lines)
        confidence: Confidence score (0.0 to 1.0), 0.0 when the engine reports none
        raw_response: Provider-specific raw response for debugging
        provider: Name of the OCR provider used
        metadata: Additional provider-specific metadata
    """
    text: str
    confidence: float = 0.0
    raw_response: Any = None
    provider: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "text": self.text,
            "confidence": self.confidence,
            "provider": self.provider,
            "metadata": self.metadata,
        }


@dataclass
class ProviderConfig:
    """Base configuration for OCR providers."""
    language: str = "eng"


@dataclass
class PaddleOCRConfig(ProviderConfig):
    """PaddleOCR-specific configuration."""
    use_gpu: bool = False
    det_db_box_thresh: float = 0.3
    use_doc_orientation_classify: bool = False
    use_doc_unwarping: bool = False
    use_textline_orientation: bool = False
    ocr_version: str = "PP-OCRv3"  # PP-OCRv3 works better for VIN plates


@dataclass
class TesseractConfig(ProviderConfig):
    """Tesseract-specific configuration."""
    tesseract_cmd: Optional[str] = None
    tesseract_config: str = "--oem 3 --psm 6"


class OCRProviderError(Exception):
    """Base exception for OCR provider errors."""

    def __init__(
        self,
        message: str,
        provider: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.provider = provider
        self.details = details or {}
        super().__init__(f"[{provider}] {message}")


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class OCRProvider(ABC):
    """
    Abstract base class for OCR providers.

    Subclasses implement ``_open_session`` / ``_close_session`` (engine
    lifetime) and ``_recognize`` (one recognition call against an open
    session). ``recognize`` pairs them through ``engine_session`` so the
    release runs on every exit path.

    Thread Safety: providers hold no per-call state; concurrent calls
    each get their own session.
    """

    def __init__(self, config: Optional[ProviderConfig] = None):
        self.config = config or ProviderConfig()

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name."""
        ...

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the engine is installed."""
        ...

    @abstractmethod
    def _open_session(self, language: str) -> Any:
        """
        Start an engine session for one call.

        Raises:
            OCRProviderError: If the engine cannot be initialized
        """
        ...

    def _close_session(self, session: Any) -> None:
        """Release an engine session. Default: nothing to release."""

    @abstractmethod
    def _recognize(self, session: Any, image: RasterImage) -> Tuple[str, float, Any]:
        """Run recognition; return (text, confidence, raw_response)."""
        ...

    def engine_language(self, language: str) -> str:
        """Map a language hint to the engine's language code."""
        return language

    @contextmanager
    def engine_session(self, language: Optional[str] = None) -> Iterator[Any]:
        """
        Scoped engine session: opened on entry, always released on exit.

        Raises:
            OCRProviderError: If the engine cannot be initialized
        """
        lang = self.engine_language(language or self.config.language)
        try:
            session = self._open_session(lang)
        except OCRProviderError:
            raise
        except Exception as e:
            raise OCRProviderError(
                f"Failed to initialize {self.name}: {e}",
                provider=self.name,
                details={"error": str(e), "language": lang}
            ) from e

        logger.debug(f"{self.name} session opened (lang={lang})")
        try:
            yield session
        finally:
            try:
                self._close_session(session)
            except Exception:
                logger.exception(f"Failed to release {self.name} session")
            else:
                logger.debug(f"{self.name} session released")

    def recognize(self, image: RasterImage, language: Optional[str] = None) -> OCRResult:
        """
        Recognize text from an image.

        Args:
            image: RGBA raster image
            language: Language hint (provider default if None)

        Returns:
            OCRResult with the full transcription

        Raises:
            OCRProviderError: If the engine is unavailable or recognition fails
        """
        if image is None:
            raise OCRProviderError("No image to recognize", provider=self.name)

        lang = language or self.config.language
        with self.engine_session(lang) as session:
            try:
                text, confidence, raw = self._recognize(session, image)
            except OCRProviderError:
                raise
            except Exception as e:
                raise OCRProviderError(
                    f"OCR prediction failed: {e}",
                    provider=self.name,
                    details={"error": str(e)}
                ) from e

        return OCRResult(
            text=text or "",
            confidence=confidence,
            raw_response=raw,
            provider=self.name,
            metadata={"lang": lang, "width": image.width, "height": image.height},
        )


# =============================================================================
# PADDLEOCR PROVIDER
# =============================================================================

class PaddleOCRProvider(OCRProvider):
    """
    PaddleOCR-based text recognition provider.

    Uses PaddleOCR v3.x with PP-OCRv3 models. A PaddleOCR instance is built
    per call and dropped afterwards.
    """

    # Tesseract-style hints accepted by the scanner -> PaddleOCR codes
    LANGUAGE_CODES: Dict[str, str] = {
        "eng": "en",
        "fas": "fa",
        "per": "fa",
        "ara": "ar",
    }

    def __init__(self, config: Optional[PaddleOCRConfig] = None):
        """
        Initialize PaddleOCR provider.

        Args:
            config: PaddleOCR configuration (uses defaults if None)
        """
        super().__init__(config or PaddleOCRConfig())

    @property
    def name(self) -> str:
        return "PaddleOCR"

    @property
    def is_available(self) -> bool:
        """Check if PaddleOCR is installed."""
        try:
            from paddleocr import PaddleOCR  # noqa: F401
            return True
        except ImportError:
            return False

    def engine_language(self, language: str) -> str:
        return self.LANGUAGE_CODES.get(language.lower(), language.lower())

    def _open_session(self, language: str) -> Any:
        if not self.is_available:
            raise OCRProviderError(
                "PaddleOCR is not installed. Run: pip install paddleocr",
                provider=self.name
            )

        from paddleocr import PaddleOCR

        device = self._select_device()
        logger.info(f"Initializing PaddleOCR with {self.config.ocr_version} (lang={language}, device={device})...")
        return PaddleOCR(
            lang=language,
            ocr_version=self.config.ocr_version,
            use_doc_orientation_classify=self.config.use_doc_orientation_classify,
            use_doc_unwarping=self.config.use_doc_unwarping,
            use_textline_orientation=self.config.use_textline_orientation,
            text_det_box_thresh=self.config.det_db_box_thresh,
            device=device,
        )

    def _select_device(self) -> str:
        """
        Pick 'gpu' or 'cpu' for this session.

        The device is passed to the PaddleOCR instance; Paddle's global
        device setting is left alone.
        """
        if not self.config.use_gpu:
            return 'cpu'

        try:
            import paddle
        except ImportError:
            logger.warning("GPU requested but paddle is not importable, using CPU")
            return 'cpu'

        if paddle.device.is_compiled_with_cuda():
            return 'gpu'
        logger.warning("GPU requested but CUDA not available, using CPU")
        return 'cpu'

    def _recognize(self, session: Any, image: RasterImage) -> Tuple[str, float, Any]:
        result = session.predict(image.to_bgr())
        text, confidence = self._parse_result(result)
        return text, confidence, result

    def _parse_result(self, result: Any) -> Tuple[str, float]:
        """Parse PaddleOCR result format into one text block, one line per region."""
        if not result:
            return "", 0.0

        # PaddleOCR v3.x returns a list of dicts
        if isinstance(result, list):
            result = result[0]

        if isinstance(result, dict):
            texts = [str(t) for t in result.get('rec_texts', [])]
            scores = list(result.get('rec_scores', []))

            if texts:
                avg_score = float(np.mean(scores)) if scores else 0.0
                return "\n".join(texts), avg_score

        return "", 0.0


# =============================================================================
# TESSERACT PROVIDER
# =============================================================================

class TesseractOCRProvider(OCRProvider):
    """
    Tesseract text recognition through pytesseract.

    The session is a checked handle on the tesseract binary; each call runs
    its own tesseract process, which exits when the call completes.
    """

    def __init__(self, config: Optional[TesseractConfig] = None):
        super().__init__(config or TesseractConfig())

    @property
    def name(self) -> str:
        return "Tesseract"

    @property
    def is_available(self) -> bool:
        """Check if pytesseract is installed."""
        try:
            import pytesseract  # noqa: F401
            return True
        except ImportError:
            return False

    def _open_session(self, language: str) -> Any:
        if not self.is_available:
            raise OCRProviderError(
                "pytesseract is not installed. Run: pip install pytesseract",
                provider=self.name
            )

        import pytesseract

        # Fails fast with TesseractNotFoundError when the binary is missing
        with self._binary(pytesseract):
            version = pytesseract.get_tesseract_version()
        logger.debug(f"Using tesseract {version}")
        return {"engine": pytesseract, "lang": language}

    @contextmanager
    def _binary(self, engine: Any) -> Iterator[None]:
        """
        Run a block against the configured tesseract binary.

        pytesseract reads its binary path from a module global, so a custom
        path is swapped in under a process-wide lock and restored on exit.
        Without a custom path nothing is touched.
        """
        if not self.config.tesseract_cmd:
            yield
            return

        with _TESSERACT_CMD_LOCK:
            previous = engine.pytesseract.tesseract_cmd
            engine.pytesseract.tesseract_cmd = self.config.tesseract_cmd
            try:
                yield
            finally:
                engine.pytesseract.tesseract_cmd = previous

    def _recognize(self, session: Any, image: RasterImage) -> Tuple[str, float, Any]:
        engine = session["engine"]
        with self._binary(engine):
            text = engine.image_to_string(
                image.to_rgb(),
                lang=session["lang"],
                config=self.config.tesseract_config,
            )
        return text, 0.0, None


# =============================================================================
# PROVIDER FACTORY
# =============================================================================

class OCRProviderFactory:
    """
    Factory for creating OCR provider instances.

    Usage:
        provider = OCRProviderFactory.create(OCRProviderType.PADDLEOCR)
        provider = OCRProviderFactory.create("tesseract", tesseract_cmd="/usr/bin/tesseract")
    """

    # Registry of available providers, keyed by provider name
    _providers: Dict[str, Type[OCRProvider]] = {
        OCRProviderType.PADDLEOCR.value: PaddleOCRProvider,
        OCRProviderType.TESSERACT.value: TesseractOCRProvider,
    }

    @classmethod
    def create(
        cls,
        provider_type: Union[str, OCRProviderType],
        **kwargs
    ) -> OCRProvider:
        """
        Create an OCR provider instance.

        Args:
            provider_type: Type of provider to create
            **kwargs: Provider-specific configuration options

        Returns:
            Configured OCRProvider instance

        Raises:
            ValueError: If provider type is not supported
        """
        key = provider_type.value if isinstance(provider_type, OCRProviderType) else str(provider_type).lower()

        provider_class = cls._providers.get(key)
        if provider_class is None:
            raise ValueError(
                f"Unknown provider type: '{provider_type}'. "
                f"Available: {cls.list_available()}"
            )

        config = cls._create_config(key, **kwargs)
        if config is None:
            return provider_class()
        return provider_class(config=config)

    @classmethod
    def _create_config(cls, key: str, **kwargs) -> Optional[ProviderConfig]:
        """Create provider-specific config from kwargs and global settings."""
        config = get_config()
        language = kwargs.get('language', config.ocr.language)

        if key == OCRProviderType.PADDLEOCR.value:
            return PaddleOCRConfig(
                language=language,
                use_gpu=kwargs.get('use_gpu', config.ocr.use_gpu),
                det_db_box_thresh=kwargs.get('det_db_box_thresh', config.ocr.det_db_box_thresh),
                use_doc_orientation_classify=config.ocr.use_doc_orientation_classify,
                use_doc_unwarping=config.ocr.use_doc_unwarping,
                use_textline_orientation=config.ocr.use_textline_orientation,
                ocr_version=kwargs.get('ocr_version', config.ocr.ocr_version),
            )
        if key == OCRProviderType.TESSERACT.value:
            return TesseractConfig(
                language=language,
                tesseract_cmd=kwargs.get('tesseract_cmd', config.ocr.tesseract_cmd),
                tesseract_config=kwargs.get('tesseract_config', config.ocr.tesseract_config),
            )
        # Registered third-party providers build their own default config
        return None

    @classmethod
    def list_available(cls) -> List[str]:
        """List all registered provider types."""
        return list(cls._providers.keys())

    @classmethod
    def register(
        cls,
        provider_type: Union[str, OCRProviderType],
        provider_class: type
    ) -> None:
        """
        Register a new provider type.

        Args:
            provider_type: Name the provider is created under
            provider_class: The provider class to register
        """
        if not isinstance(provider_class, type) or not issubclass(provider_class, OCRProvider):
            raise TypeError(
                f"Provider class must inherit from OCRProvider, "
                f"got {getattr(provider_class, '__name__', provider_class)!r}"
            )
        key = provider_type.value if isinstance(provider_type, OCRProviderType) else str(provider_type).lower()
        cls._providers[key] = provider_class
        logger.info(f"Registered OCR provider: {key}")


def get_default_provider() -> OCRProvider:
    """Get the provider named in the global configuration."""
    return OCRProviderFactory.create(get_config().ocr.provider)
