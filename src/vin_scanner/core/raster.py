"""
Raster Image Container
======================

RGBA pixel buffer passed between pipeline stages.

The buffer is a contiguous ``uint8`` array of shape ``(height, width, 4)``,
so ``channel_data`` is always ``width * height * 4`` values long. Stages
never mutate an image they receive; they return a new ``RasterImage``.

Decoding and encoding go through OpenCV, which works in BGR order; the
conversions live here so the rest of the package only sees RGBA.
"""

import logging
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np

from .exceptions import ImageLoadError

logger = logging.getLogger(__name__)

CHANNELS = 4


class RasterImage:
    """
    RGBA image with integer width and height.

    Example:
        image = RasterImage.from_file("card.jpg")
        print(image.width, image.height)
        bgr = image.to_bgr()
    """

    __slots__ = ("_data",)

    def __init__(self, data: np.ndarray):
        """
        Wrap an RGBA array.

        Args:
            data: Array of shape (height, width, 4)

        Raises:
            ValueError: If the array is not an RGBA grid
        """
        array = np.asarray(data)
        if array.ndim != 3 or array.shape[2] != CHANNELS:
            raise ValueError(f"Expected an RGBA array of shape (H, W, 4), got {array.shape}")
        self._data = np.ascontiguousarray(array, dtype=np.uint8)

    @property
    def data(self) -> np.ndarray:
        """Pixel grid, shape (height, width, 4)."""
        return self._data

    @property
    def channel_data(self) -> np.ndarray:
        """Flat RGBA view of the pixel grid."""
        return self._data.reshape(-1)

    @property
    def width(self) -> int:
        return int(self._data.shape[1])

    @property
    def height(self) -> int:
        return int(self._data.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def copy(self) -> "RasterImage":
        return RasterImage(self._data.copy())

    def __repr__(self) -> str:
        return f"RasterImage(width={self.width}, height={self.height})"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def blank(
        cls,
        width: int,
        height: int,
        color: Tuple[int, int, int, int] = (0, 0, 0, 255),
    ) -> "RasterImage":
        """Create an image filled with a single RGBA colour."""
        data = np.empty((height, width, CHANNELS), dtype=np.uint8)
        data[...] = np.asarray(color, dtype=np.uint8)
        return cls(data)

    @classmethod
    def from_cv2(cls, image: np.ndarray) -> "RasterImage":
        """
        Convert an OpenCV array (grayscale, BGR or BGRA) to RGBA.

        Raises:
            ValueError: If the array layout is not recognised
        """
        if image is None:
            raise ValueError("Input image is None")

        if image.dtype != np.uint8:
            image = np.clip(image, 0, 255).astype(np.uint8)

        if image.size == 0:
            return cls(np.zeros(image.shape[:2] + (CHANNELS,), dtype=np.uint8))

        if image.ndim == 2:
            rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
        elif image.ndim == 3 and image.shape[2] == 1:
            rgba = cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2RGBA)
        elif image.ndim == 3 and image.shape[2] == 3:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
        elif image.ndim == 3 and image.shape[2] == 4:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        else:
            raise ValueError(f"Unsupported image shape: {image.shape}")
        return cls(rgba)

    @classmethod
    def from_bytes(cls, buffer: bytes, source: str = "<bytes>") -> "RasterImage":
        """
        Decode an encoded image (JPEG, PNG, WebP, ...).

        Raises:
            ImageLoadError: If the buffer is empty or cannot be decoded
        """
        if not buffer:
            raise ImageLoadError(source, "empty buffer")

        encoded = np.frombuffer(buffer, dtype=np.uint8)
        image = cv2.imdecode(encoded, cv2.IMREAD_UNCHANGED)
        if image is None:
            raise ImageLoadError(
                source,
                "could not decode image; verify it's a valid image format (jpg, png, webp)",
            )
        logger.debug(f"Decoded image from {source}, shape={image.shape}")
        return cls.from_cv2(image)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RasterImage":
        """
        Load an image from disk.

        Raises:
            ImageLoadError: If the file is missing or cannot be decoded
        """
        path = Path(path)
        if not path.exists():
            raise ImageLoadError(str(path), "file not found")

        # np.fromfile + imdecode handles unicode paths that cv2.imread rejects
        try:
            buffer = np.fromfile(str(path), dtype=np.uint8)
        except OSError as e:
            raise ImageLoadError(str(path), str(e)) from e

        return cls.from_bytes(buffer.tobytes(), source=str(path))

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def to_bgr(self) -> np.ndarray:
        """Return a BGR copy for OpenCV based engines."""
        if self._data.size == 0:
            return np.zeros((self.height, self.width, 3), dtype=np.uint8)
        return cv2.cvtColor(self._data, cv2.COLOR_RGBA2BGR)

    def to_rgb(self) -> np.ndarray:
        """Return an RGB copy."""
        return self._data[:, :, :3].copy()

    def encode(self, ext: str = ".png") -> bytes:
        """
        Encode to an image file format.

        Raises:
            ValueError: If the image is empty or encoding fails
        """
        if self._data.size == 0:
            raise ValueError("Cannot encode an empty image")
        if not ext.startswith("."):
            ext = f".{ext}"
        # JPEG has no alpha channel
        if ext.lower() in (".jpg", ".jpeg"):
            pixels = self.to_bgr()
        else:
            pixels = cv2.cvtColor(self._data, cv2.COLOR_RGBA2BGRA)
        ok, buffer = cv2.imencode(ext, pixels)
        if not ok:
            raise ValueError(f"Failed to encode image as {ext}")
        return buffer.tobytes()
