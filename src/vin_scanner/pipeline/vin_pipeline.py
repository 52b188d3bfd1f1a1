"""
VIN Scan Pipeline
=================

Runs one scan: crop → analyze/enhance → OCR → VIN match.

Fallback policy:
- crop fails      → continue with the original image
- enhance fails   → continue with the cropped (or original) image
- OCR fails       → the scan FAILS, carrying the engine's message
- no VIN in text  → the scan succeeds as NOT_MATCHED, transcription included

Each preprocessing stage returns a ``StageResult`` holding either an image
or a ``StageFailure``; the pipeline inspects it and picks the previous
stage's image when the stage failed.

Usage:
    from vin_scanner.pipeline import VINScanPipeline

    pipeline = VINScanPipeline(provider="tesseract")
    result = pipeline.scan_file("card.jpg")
    print(result.outcome, result.vin)
    print(result.transcription)

    # From a coroutine; the OCR call runs in a worker thread
    result = await pipeline.scan_async(image)
"""

import asyncio
import functools
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..config import get_config
from ..core.exceptions import (
    ExtractionFailed,
    ImageLoadError,
    NoImageProvided,
    PipelineError,
)
from ..core.raster import RasterImage
from ..core.vin_utils import match_vin
from ..preprocessing import PreprocessStrategy, VINPreprocessor
from ..providers import OCRProvider, OCRProviderFactory, OCRResult

logger = logging.getLogger(__name__)

NO_VIN_FOUND_MESSAGE = "No VIN found in the image. Please ensure the VIN is clearly visible."


class ScanState(str, Enum):
    """Per-scan state machine."""
    IDLE = "idle"
    CROPPING = "cropping"
    ENHANCING = "enhancing"
    RECOGNIZING = "recognizing"
    MATCHING = "matching"
    MATCHED = "matched"
    NOT_MATCHED = "not_matched"
    FAILED = "failed"


class ScanOutcome(str, Enum):
    """Terminal outcome of a scan."""
    MATCHED = "matched"
    NOT_MATCHED = "not_matched"
    FAILED = "failed"


@dataclass(frozen=True)
class StageFailure:
    """Why a preprocessing stage was skipped."""
    stage: str
    error_code: str
    message: str

    @classmethod
    def from_exception(cls, stage: str, exc: BaseException) -> "StageFailure":
        if isinstance(exc, PipelineError):
            return cls(stage=stage, error_code=exc.error_code, message=exc.message)
        return cls(stage=stage, error_code=type(exc).__name__, message=str(exc))

    def to_dict(self) -> Dict[str, str]:
        return {"stage": self.stage, "error_code": self.error_code, "message": self.message}


@dataclass(frozen=True)
class StageResult:
    """Either the stage's output image or the reason it failed."""
    image: Optional[RasterImage] = None
    failure: Optional[StageFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, image: RasterImage) -> "StageResult":
        return cls(image=image)

    @classmethod
    def failed(cls, failure: StageFailure) -> "StageResult":
        return cls(failure=failure)


@dataclass
class ScanResult:
    """Structured scan result."""
    outcome: ScanOutcome
    transcription: str = ""
    vin: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    stage_failures: List[StageFailure] = field(default_factory=list)
    states: List[ScanState] = field(default_factory=list)
    processing_time_ms: float = 0.0
    provider: str = ""

    @property
    def state(self) -> ScanState:
        return self.states[-1] if self.states else ScanState.IDLE

    @property
    def found(self) -> bool:
        return self.outcome == ScanOutcome.MATCHED

    @property
    def notice(self) -> Optional[str]:
        """User-facing message for the outcome, None when a VIN was found."""
        if self.outcome == ScanOutcome.NOT_MATCHED:
            return NO_VIN_FOUND_MESSAGE
        return self.error

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'outcome': self.outcome.value,
            'vin': self.vin,
            'transcription': self.transcription,
            'error': self.error,
            'error_code': self.error_code,
            'notice': self.notice,
            'stage_failures': [f.to_dict() for f in self.stage_failures],
            'states': [s.value for s in self.states],
            'processing_time_ms': self.processing_time_ms,
            'provider': self.provider,
        }


@dataclass
class _ScanTrace:
    """Bookkeeping for one scan invocation."""
    states: List[ScanState] = field(default_factory=lambda: [ScanState.IDLE])
    failures: List[StageFailure] = field(default_factory=list)

    def enter(self, state: ScanState) -> None:
        logger.debug(f"Scan state: {self.states[-1].value} -> {state.value}")
        self.states.append(state)


@contextmanager
def _timer():
    """Context manager for timing operations."""
    start = time.perf_counter()
    elapsed = {'ms': 0.0}
    try:
        yield elapsed
    finally:
        elapsed['ms'] = (time.perf_counter() - start) * 1000


class VINScanPipeline:
    """
    Complete VIN scan pipeline.

    Combines:
    - VIN band crop and adaptive brightness/contrast enhancement
    - An OCR provider (PaddleOCR or Tesseract)
    - VIN pattern matching on the transcription

    The pipeline holds configuration only; every scan allocates its own
    images and engine session, so concurrent scans need no coordination.

    Example:
        pipeline = VINScanPipeline()
        result = pipeline.scan(RasterImage.from_file('card.jpg'))
        print(result.vin)  # "NAAM01CA7KE123456"
    """

    def __init__(
        self,
        provider: Optional[Union[str, OCRProvider]] = None,
        preprocessor: Optional[VINPreprocessor] = None,
        language: Optional[str] = None,
        preprocess: Optional[bool] = None,
    ):
        """
        Initialize the VIN scan pipeline.

        Args:
            provider: Provider name or instance (config default if None)
            preprocessor: Preprocessor to use (built from config if None)
            language: OCR language hint (config default if None)
            preprocess: Enable crop/enhance (config default if None)

        Raises:
            ValueError: If the provider name is not registered
        """
        config = get_config()

        if provider is None:
            provider = config.ocr.provider
        if isinstance(provider, str):
            provider = OCRProviderFactory.create(provider)
        self.provider = provider

        if preprocessor is None:
            enabled = config.preprocessing.enabled if preprocess is None else preprocess
            strategy = PreprocessStrategy.ADAPTIVE if enabled else PreprocessStrategy.NONE
            preprocessor = VINPreprocessor(strategy=strategy, config=config.preprocessing)
        self.preprocessor = preprocessor

        self.language = language or config.ocr.language

        logger.info(
            f"Pipeline initialized (provider={self.provider.name}, "
            f"preprocess={self.preprocessor.strategy.value}, lang={self.language})"
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def crop_stage(self, image: RasterImage) -> StageResult:
        """Cut the VIN band; returns the input untouched when cropping is off."""
        if not self.preprocessor.crops:
            return StageResult.success(image)
        try:
            return StageResult.success(self.preprocessor.crop(image))
        except Exception as e:
            return StageResult.failed(StageFailure.from_exception("crop", e))

    def enhance_stage(self, image: RasterImage) -> StageResult:
        """Analyze and enhance; returns the input untouched when enhancement is off."""
        if not self.preprocessor.enhances:
            return StageResult.success(image)
        try:
            return StageResult.success(self.preprocessor.enhance(image))
        except Exception as e:
            return StageResult.failed(StageFailure.from_exception("enhance", e))

    def _take(self, trace: _ScanTrace, result: StageResult, fallback: RasterImage) -> RasterImage:
        if result.ok:
            return result.image
        failure = result.failure
        logger.warning(
            f"{failure.stage} stage failed ({failure.error_code}: {failure.message}), "
            f"using previous image"
        )
        trace.failures.append(failure)
        return fallback

    def _preprocess(self, image: RasterImage, trace: _ScanTrace) -> RasterImage:
        trace.enter(ScanState.CROPPING)
        cropped = self._take(trace, self.crop_stage(image), fallback=image)

        trace.enter(ScanState.ENHANCING)
        return self._take(trace, self.enhance_stage(cropped), fallback=cropped)

    def _failed(self, error: PipelineError, trace: _ScanTrace, transcription: str = "") -> ScanResult:
        trace.enter(ScanState.FAILED)
        return ScanResult(
            outcome=ScanOutcome.FAILED,
            transcription=transcription,
            error=error.message,
            error_code=error.error_code,
            stage_failures=list(trace.failures),
            states=list(trace.states),
            provider=self.provider.name,
        )

    def _ocr_failed(self, exc: Exception, trace: _ScanTrace) -> ScanResult:
        logger.error(f"OCR failed with {self.provider.name}: {exc}")
        return self._failed(ExtractionFailed(exc, provider=self.provider.name), trace)

    def _match(self, ocr: OCRResult, trace: _ScanTrace) -> ScanResult:
        trace.enter(ScanState.MATCHING)
        match = match_vin(ocr.text)

        if match.found:
            trace.enter(ScanState.MATCHED)
            outcome = ScanOutcome.MATCHED
            logger.info(f"VIN found: {match.vin}")
        else:
            trace.enter(ScanState.NOT_MATCHED)
            outcome = ScanOutcome.NOT_MATCHED
            logger.info("No VIN found in transcription")

        return ScanResult(
            outcome=outcome,
            transcription=ocr.text,
            vin=match.vin,
            stage_failures=list(trace.failures),
            states=list(trace.states),
            provider=ocr.provider or self.provider.name,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def scan(self, image: Optional[RasterImage], language: Optional[str] = None) -> ScanResult:
        """
        Scan an image for a VIN.

        Args:
            image: Card image (None fails the scan immediately)
            language: OCR language hint (pipeline default if None)

        Returns:
            ScanResult; never raises for stage or OCR failures
        """
        trace = _ScanTrace()
        with _timer() as elapsed:
            if image is None:
                result = self._failed(NoImageProvided(), trace)
            else:
                prepared = self._preprocess(image, trace)
                trace.enter(ScanState.RECOGNIZING)
                try:
                    ocr = self.provider.recognize(prepared, language or self.language)
                except Exception as e:
                    result = self._ocr_failed(e, trace)
                else:
                    result = self._match(ocr, trace)

        result.processing_time_ms = elapsed['ms']
        return result

    async def scan_async(self, image: Optional[RasterImage], language: Optional[str] = None) -> ScanResult:
        """
        Coroutine version of ``scan``.

        The OCR call runs in the loop's default executor, so the event loop
        keeps serving other scans while the engine works. If the awaiting
        task is cancelled the engine call still completes in its thread and
        releases its session.
        """
        trace = _ScanTrace()
        with _timer() as elapsed:
            if image is None:
                result = self._failed(NoImageProvided(), trace)
            else:
                prepared = self._preprocess(image, trace)
                trace.enter(ScanState.RECOGNIZING)
                loop = asyncio.get_running_loop()
                try:
                    ocr = await loop.run_in_executor(
                        None,
                        functools.partial(self.provider.recognize, prepared, language or self.language),
                    )
                except Exception as e:
                    result = self._ocr_failed(e, trace)
                else:
                    result = self._match(ocr, trace)

        result.processing_time_ms = elapsed['ms']
        return result

    def load(self, source: Union[str, Path, bytes, RasterImage, None]) -> Optional[RasterImage]:
        """
        Decode a path or encoded bytes into a RasterImage.

        Raises:
            ImageLoadError: If the source cannot be decoded
        """
        if source is None or isinstance(source, RasterImage):
            return source
        if isinstance(source, (bytes, bytearray)):
            return RasterImage.from_bytes(bytes(source))
        return RasterImage.from_file(source)

    def scan_file(
        self,
        source: Union[str, Path, bytes, RasterImage, None],
        language: Optional[str] = None,
    ) -> ScanResult:
        """Load ``source`` then scan it; load errors produce a FAILED result."""
        try:
            image = self.load(source)
        except ImageLoadError as e:
            logger.error(e.message)
            return self._failed(e, _ScanTrace())
        return self.scan(image, language)

    async def scan_file_async(
        self,
        source: Union[str, Path, bytes, RasterImage, None],
        language: Optional[str] = None,
    ) -> ScanResult:
        """Coroutine version of ``scan_file``."""
        try:
            image = self.load(source)
        except ImageLoadError as e:
            logger.error(e.message)
            return self._failed(e, _ScanTrace())
        return await self.scan_async(image, language)


def scan_vin(
    source: Union[str, Path, bytes, RasterImage],
    provider: Optional[Union[str, OCRProvider]] = None,
    language: Optional[str] = None,
) -> ScanResult:
    """
    Convenience function to scan one image for a VIN.

    Example:
        result = scan_vin("card.jpg", provider="tesseract")
    """
    return VINScanPipeline(provider=provider, language=language).scan_file(source)
