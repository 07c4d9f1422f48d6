"""
Bitmap Module
RGBA pixel buffers, PNG decoding/encoding and canvas normalization.
"""

import io
import logging
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np
from PIL import Image

from .settings import WHITE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bitmap:
    """Row-major RGBA image held as a ``(height, width, 4)`` uint8 array."""
    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self):
        expected = (self.height, self.width, 4)
        if self.pixels.shape != expected or self.pixels.dtype != np.uint8:
            raise ValueError(
                f"pixel array must be uint8 with shape {expected}, "
                f"got {self.pixels.dtype} {self.pixels.shape}"
            )

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> 'Bitmap':
        """Wrap an ``(h, w, 3|4)`` array, adding an opaque alpha channel when missing."""
        arr = np.asarray(pixels, dtype=np.uint8)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError(f"expected an (h, w, 3|4) array, got shape {arr.shape}")
        if arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=2)
        return cls(width=arr.shape[1], height=arr.shape[0], pixels=np.ascontiguousarray(arr))

    @classmethod
    def blank(cls, width: int, height: int, fill: Tuple[int, int, int, int] = WHITE) -> 'Bitmap':
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:] = fill
        return cls(width=width, height=height, pixels=pixels)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def tobytes(self) -> bytes:
        """Raw RGBA buffer; its length is always ``width * height * 4``."""
        return self.pixels.tobytes()

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels, mode='RGBA')


def decode_png(data: bytes) -> Bitmap:
    """Decode PNG (or any Pillow-readable) bytes into an RGBA bitmap."""
    with Image.open(io.BytesIO(data)) as img:
        rgba = img.convert('RGBA')
        pixels = np.array(rgba, dtype=np.uint8)
    logger.debug(f"Decoded image {pixels.shape[1]}x{pixels.shape[0]}")
    return Bitmap(width=pixels.shape[1], height=pixels.shape[0], pixels=pixels)


def encode_png(bitmap: Bitmap) -> bytes:
    buffer = io.BytesIO()
    bitmap.to_image().save(buffer, format='PNG')
    return buffer.getvalue()


def pad_to_size(bitmap: Bitmap, width: int, height: int) -> Bitmap:
    """Place ``bitmap`` at the top-left of a white canvas of the given size.

    The result never shares memory with the input, even when no padding is needed.
    """
    if bitmap.width > width or bitmap.height > height:
        raise ValueError(
            f"cannot pad {bitmap.width}x{bitmap.height} down to {width}x{height}"
        )
    if bitmap.is_empty:
        return Bitmap.blank(width, height)
    if bitmap.size == (width, height):
        return Bitmap(width=width, height=height, pixels=bitmap.pixels.copy())
    padded = cv2.copyMakeBorder(
        bitmap.pixels,
        0, height - bitmap.height,
        0, width - bitmap.width,
        cv2.BORDER_CONSTANT,
        value=WHITE,
    )
    return Bitmap(width=width, height=height, pixels=padded)


def normalize_pair(first: Bitmap, second: Bitmap) -> Tuple[Bitmap, Bitmap]:
    """Pad both bitmaps to the union of their dimensions."""
    max_width = max(first.width, second.width)
    max_height = max(first.height, second.height)
    if first.size != second.size:
        logger.debug(
            f"Padding {first.width}x{first.height} and {second.width}x{second.height} "
            f"to {max_width}x{max_height}"
        )
    return pad_to_size(first, max_width, max_height), pad_to_size(second, max_width, max_height)
