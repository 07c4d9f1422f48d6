"""
Strip Aligner Module
Finds the vertical offset that best lines up each horizontal strip of the
reference screenshot with the other screenshot.

A small change near the top of a page (an added banner, extra padding)
pushes everything below it down. Matching every strip independently against
a window of candidate offsets keeps those displaced sections from being
reported as changed pixel-for-pixel.
"""

import logging
from typing import Iterator, List, Optional, Tuple

import numpy as np

from core.settings import DEFAULT_SETTINGS, DiffSettings

logger = logging.getLogger(__name__)


class StripAligner:
    def __init__(self, settings: DiffSettings = DEFAULT_SETTINGS):
        self.strip_height = settings.strip_height
        self.max_shift = settings.max_shift
        self.coarse_x = settings.coarse_x
        self.coarse_y = settings.coarse_y

    def strip_starts(self, height: int) -> List[Tuple[int, int]]:
        """(start row, strip height) pairs covering ``height`` rows; the last strip may be short."""
        return [
            (y, min(self.strip_height, height - y))
            for y in range(0, height, self.strip_height)
        ]

    def candidate_offsets(self) -> Iterator[int]:
        """Offsets ordered 0, -1, 1, -2, 2, ... so smaller shifts win ties."""
        yield 0
        for magnitude in range(1, self.max_shift + 1):
            yield -magnitude
            yield magnitude

    def _sample_columns(self, pixels: np.ndarray, width: int) -> np.ndarray:
        return pixels[:, :width:self.coarse_x, :3].astype(np.int16)

    def score(self, reference: np.ndarray, candidate: np.ndarray,
              ref_y: int, cand_y: int, strip_height: int) -> float:
        """Mean absolute RGB difference between two strips on a coarse grid.

        Both arrays are expected to be pre-sampled by column (see ``_sample_columns``).
        """
        common_height = min(reference.shape[0], candidate.shape[0])
        actual = min(strip_height, common_height - ref_y, common_height - cand_y)
        if actual <= 0:
            return float('inf')
        a = reference[ref_y:ref_y + actual:self.coarse_y]
        b = candidate[cand_y:cand_y + actual:self.coarse_y]
        if a.size == 0:
            return float('inf')
        return float(np.abs(a - b).mean())

    def _best_offset(self, reference: np.ndarray, candidate: np.ndarray,
                     y: int, strip_height: int) -> int:
        cand_height = candidate.shape[0]
        best_offset = 0
        best_score: Optional[float] = None
        # nearest-first rather than ascending: on equal scores the smaller shift is kept
        for offset in self.candidate_offsets():
            cand_y = y + offset
            if cand_y < 0 or cand_y + strip_height > cand_height:
                continue
            score = self.score(reference, candidate, y, cand_y, strip_height)
            if best_score is None or score < best_score:
                best_score = score
                best_offset = offset
                if score == 0.0:
                    break
        return best_offset

    def find_offset(self, reference: np.ndarray, candidate: np.ndarray, y: int) -> int:
        """Best vertical offset into ``candidate`` for the strip of ``reference`` starting at row ``y``.

        Arrays are ``(h, w, 4)`` pixel buffers. Returns 0 when no offset keeps
        the strip inside ``candidate``.
        """
        height = reference.shape[0]
        if y < 0 or y >= height:
            return 0
        width = min(reference.shape[1], candidate.shape[1])
        strip_height = min(self.strip_height, height - y)
        return self._best_offset(
            self._sample_columns(reference, width),
            self._sample_columns(candidate, width),
            y, strip_height,
        )

    def align(self, reference: np.ndarray, candidate: np.ndarray) -> List[int]:
        """One offset per strip of ``reference``, top to bottom."""
        width = min(reference.shape[1], candidate.shape[1])
        ref_sampled = self._sample_columns(reference, width)
        cand_sampled = self._sample_columns(candidate, width)
        offsets = []
        for y, strip_height in self.strip_starts(reference.shape[0]):
            offset = self._best_offset(ref_sampled, cand_sampled, y, strip_height)
            if offset:
                logger.debug(f"Strip at y={y} aligned with offset {offset}")
            offsets.append(offset)
        return offsets
