"""
Visual Diff Module
Shift-tolerant pixel diff of two full-page screenshots.
"""

import logging
from dataclasses import dataclass
from typing import Dict

import numpy as np

from visual.compare_images import StripComparator
from visual.strip_aligner import StripAligner
from .bitmap import Bitmap, normalize_pair
from .settings import DEFAULT_SETTINGS, DiffSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffResult:
    total_pixels: int
    changed_pixels: int
    percent_changed: float
    diff_image: Bitmap
    before_width: int
    before_height: int
    after_width: int
    after_height: int

    @property
    def height_mismatch(self) -> bool:
        return self.before_height != self.after_height

    def to_dict(self) -> Dict:
        return {
            'total_pixels': self.total_pixels,
            'changed_pixels': self.changed_pixels,
            'percent_changed': self.percent_changed,
            'before_width': self.before_width,
            'before_height': self.before_height,
            'after_width': self.after_width,
            'after_height': self.after_height,
            'height_mismatch': self.height_mismatch,
        }


class PixelDiff:
    def __init__(self, settings: DiffSettings = DEFAULT_SETTINGS):
        self.settings = settings
        self.aligner = StripAligner(settings)
        self.comparator = StripComparator(settings)

    def compare(self, before: Bitmap, after: Bitmap) -> DiffResult:
        """Diff ``after`` against ``before``, strip by strip, top to bottom."""
        padded_before, padded_after = normalize_pair(before, after)
        width, height = padded_before.size
        total_pixels = width * height
        diff = Bitmap.blank(width, height)

        if total_pixels == 0:
            logger.info("Zero-area screenshots, nothing to compare")
            return DiffResult(
                total_pixels=0,
                changed_pixels=0,
                percent_changed=0.0,
                diff_image=diff,
                before_width=before.width,
                before_height=before.height,
                after_width=after.width,
                after_height=after.height,
            )

        if self.settings.alignment_enabled:
            offsets = self.aligner.align(padded_before.pixels, padded_after.pixels)
        else:
            offsets = [0] * len(self.aligner.strip_starts(height))

        changed = 0
        for (strip_y, strip_height), offset in zip(self.aligner.strip_starts(height), offsets):
            aligned_y = max(0, min(height - strip_height, strip_y + offset))
            before_strip = padded_before.pixels[strip_y:strip_y + strip_height]
            after_strip = padded_after.pixels[aligned_y:aligned_y + strip_height]
            strip_changed, diff_strip = self.comparator.compare(before_strip, after_strip)
            diff.pixels[strip_y:strip_y + strip_height] = diff_strip
            changed += strip_changed

        percent = changed / total_pixels * 100
        logger.info(f"Pixel diff: {changed}/{total_pixels} pixels changed ({percent:.2f}%)")
        return DiffResult(
            total_pixels=total_pixels,
            changed_pixels=changed,
            percent_changed=percent,
            diff_image=diff,
            before_width=before.width,
            before_height=before.height,
            after_width=after.width,
            after_height=after.height,
        )


def compare_arrays(before: np.ndarray, after: np.ndarray,
                   settings: DiffSettings = DEFAULT_SETTINGS) -> DiffResult:
    """Convenience wrapper for raw ``(h, w, 3|4)`` arrays."""
    return PixelDiff(settings).compare(Bitmap.from_array(before), Bitmap.from_array(after))
