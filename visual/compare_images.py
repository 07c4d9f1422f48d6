"""
Image Comparison Module
Per-pixel comparison of two aligned strips in YIQ colour space, with
anti-aliasing detection and a rendered diff overlay.

The colour metric and the anti-aliasing heuristic follow pixelmatch:
a pixel counts as changed when its YIQ distance exceeds
``35215 * threshold ** 2``; a changed pixel is treated as anti-aliasing
noise when its brightest and darkest neighbours both sit in flat regions
of both images.
"""

import logging
from typing import Tuple

import numpy as np

from core.settings import DEFAULT_SETTINGS, DiffSettings

logger = logging.getLogger(__name__)

MAX_YIQ_DELTA = 35215.0

# dx outer, dy inner; this order decides which neighbour wins a brightness tie
NEIGHBOUR_OFFSETS = tuple(
    (dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)
)


def _blend_white(rgba: np.ndarray) -> np.ndarray:
    """Composite RGBA over white, returning float RGB."""
    rgb = rgba[..., :3].astype(np.float64)
    alpha = rgba[..., 3:4].astype(np.float64) / 255.0
    return 255.0 + (rgb - 255.0) * alpha


def _rgb2y(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.29889531 + rgb[..., 1] * 0.58662247 + rgb[..., 2] * 0.11448223


def _rgb2i(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.59597799 - rgb[..., 1] * 0.27417610 - rgb[..., 2] * 0.32180189


def _rgb2q(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.21147017 - rgb[..., 1] * 0.52261711 + rgb[..., 2] * 0.31114694


def _overlap(d: int, size: int) -> Tuple[slice, slice]:
    """Slices (source, neighbour) along one axis for a neighbour at offset ``d``."""
    return slice(max(0, -d), size - max(0, d)), slice(max(0, d), size + min(0, d))


class StripComparator:
    def __init__(self, settings: DiffSettings = DEFAULT_SETTINGS):
        self.threshold = settings.threshold
        self.include_aa = settings.include_aa
        self.diff_color = settings.diff_color
        self.aa_color = settings.aa_color
        self.alpha = settings.alpha
        self.max_delta = MAX_YIQ_DELTA * self.threshold * self.threshold

    def color_delta(self, first: np.ndarray, second: np.ndarray) -> np.ndarray:
        """Signed YIQ distance per pixel; negative where ``first`` is brighter."""
        rgb1 = _blend_white(first)
        rgb2 = _blend_white(second)
        y1 = _rgb2y(rgb1)
        y2 = _rgb2y(rgb2)
        y = y1 - y2
        i = _rgb2i(rgb1) - _rgb2i(rgb2)
        q = _rgb2q(rgb1) - _rgb2q(rgb2)
        delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
        delta = np.where(y1 > y2, -delta, delta)
        identical = np.all(first == second, axis=2)
        return np.where(identical, 0.0, delta)

    def _gray_background(self, pixels: np.ndarray) -> np.ndarray:
        """Faded grayscale copy of ``pixels`` used behind the highlights."""
        luma = _rgb2y(pixels[..., :3].astype(np.float64))
        alpha = self.alpha * pixels[..., 3].astype(np.float64) / 255.0
        gray = np.clip(255.0 + (luma - 255.0) * alpha, 0, 255).astype(np.uint8)
        out = np.empty_like(pixels)
        out[..., 0] = gray
        out[..., 1] = gray
        out[..., 2] = gray
        out[..., 3] = 255
        return out

    @staticmethod
    def has_many_siblings(pixels: np.ndarray) -> np.ndarray:
        """Boolean map: more than two identical neighbours (image edges count as one)."""
        height, width = pixels.shape[:2]
        count = np.zeros((height, width), dtype=np.int8)
        count[0, :] = 1
        count[-1, :] = 1
        count[:, 0] = 1
        count[:, -1] = 1
        for dx, dy in NEIGHBOUR_OFFSETS:
            src_y, nb_y = _overlap(dy, height)
            src_x, nb_x = _overlap(dx, width)
            same = np.all(pixels[src_y, src_x] == pixels[nb_y, nb_x], axis=2)
            count[src_y, src_x] += same
        return count > 2

    def antialiased(self, pixels: np.ndarray, other: np.ndarray,
                    ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
        """Anti-aliasing verdict for the pixels at (ys, xs) of ``pixels``."""
        height, width = pixels.shape[:2]
        brightness = _rgb2y(_blend_white(pixels))
        centre_rgba = pixels[ys, xs]
        centre_y = brightness[ys, xs]

        zeroes = ((xs == 0) | (xs == width - 1) | (ys == 0) | (ys == height - 1)).astype(np.int16)
        deltas = np.zeros((ys.size, len(NEIGHBOUR_OFFSETS)))
        for k, (dx, dy) in enumerate(NEIGHBOUR_OFFSETS):
            nx = xs + dx
            ny = ys + dy
            valid = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
            nx = np.clip(nx, 0, width - 1)
            ny = np.clip(ny, 0, height - 1)
            same = np.all(pixels[ny, nx] == centre_rgba, axis=1)
            delta = np.where(same | ~valid, 0.0, centre_y - brightness[ny, nx])
            zeroes += valid & (delta == 0)
            deltas[:, k] = delta

        min_idx = np.argmin(deltas, axis=1)
        max_idx = np.argmax(deltas, axis=1)
        rows = np.arange(ys.size)
        verdict = (zeroes <= 2) & (deltas[rows, min_idx] < 0) & (deltas[rows, max_idx] > 0)
        if not verdict.any():
            return verdict

        offsets = np.array(NEIGHBOUR_OFFSETS)
        siblings = self.has_many_siblings(pixels)
        other_siblings = self.has_many_siblings(other)
        min_x = np.clip(xs + offsets[min_idx, 0], 0, width - 1)
        min_y = np.clip(ys + offsets[min_idx, 1], 0, height - 1)
        max_x = np.clip(xs + offsets[max_idx, 0], 0, width - 1)
        max_y = np.clip(ys + offsets[max_idx, 1], 0, height - 1)
        flat_darkest = siblings[min_y, min_x] & other_siblings[min_y, min_x]
        flat_brightest = siblings[max_y, max_x] & other_siblings[max_y, max_x]
        return verdict & (flat_darkest | flat_brightest)

    def compare(self, first: np.ndarray, second: np.ndarray) -> Tuple[int, np.ndarray]:
        """Compare two equally sized ``(h, w, 4)`` strips.

        Returns the changed-pixel count and the rendered diff strip.
        """
        if first.shape != second.shape:
            raise ValueError(f"strip shapes differ: {first.shape} vs {second.shape}")
        output = self._gray_background(first)
        if first.size == 0:
            return 0, output

        delta = self.color_delta(first, second)
        ys, xs = np.nonzero(np.abs(delta) > self.max_delta)
        if ys.size == 0:
            return 0, output

        if self.include_aa:
            noise = np.zeros(ys.size, dtype=bool)
        else:
            noise = self.antialiased(first, second, ys, xs) | self.antialiased(second, first, ys, xs)
        output[ys[noise], xs[noise], :3] = self.aa_color
        changed = ~noise
        output[ys[changed], xs[changed], :3] = self.diff_color
        logger.debug(f"Strip compare: {int(changed.sum())} changed, {int(noise.sum())} anti-aliased")
        return int(changed.sum()), output
