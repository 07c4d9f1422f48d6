"""
Page Analyzer Module
Runs the pixel and structural comparison for every captured viewport.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from comparator.structure_diff import StructuralAnalysis, StructureDiff
from visual.generate_screenshots import PageCapture
from .bitmap import decode_png
from .settings import DEFAULT_SETTINGS, DiffSettings
from .visual_diff import DiffResult, PixelDiff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewportResult:
    viewport: str
    before: PageCapture
    after: PageCapture
    pixel: DiffResult
    structural: StructuralAnalysis

    @property
    def has_changes(self) -> bool:
        return (
            self.pixel.changed_pixels > 0
            or self.structural.total_changes > 0
            or self.structural.confirms_visual_findings
        )

    def to_dict(self) -> Dict:
        return {
            'viewport': self.viewport,
            'has_changes': self.has_changes,
            'pixel': self.pixel.to_dict(),
            'structural': self.structural.to_dict(),
        }


def compare_viewport(before: PageCapture, after: PageCapture,
                     settings: DiffSettings = DEFAULT_SETTINGS) -> ViewportResult:
    """Pixel and structural comparison of one viewport's captures."""
    if before.viewport != after.viewport:
        raise ValueError(f"viewport mismatch: {before.viewport} vs {after.viewport}")
    try:
        bitmap_before = decode_png(before.screenshot)
        bitmap_after = decode_png(after.screenshot)
    except OSError as e:
        raise ValueError(f"could not decode screenshot for viewport {before.viewport}: {e}") from e

    pixel = PixelDiff(settings).compare(bitmap_before, bitmap_after)
    structural = StructureDiff(settings).analyze(before.html, before.css_text, after.html, after.css_text)
    return ViewportResult(
        viewport=before.viewport,
        before=before,
        after=after,
        pixel=pixel,
        structural=structural,
    )


class PageAnalyzer:
    def __init__(self, settings: DiffSettings = DEFAULT_SETTINGS, workers: Optional[int] = None):
        self.settings = settings
        self.workers = workers

    def compare_viewports(self, before: Sequence[PageCapture],
                          after: Sequence[PageCapture]) -> List[ViewportResult]:
        """One result per viewport of ``before``, in the same order.

        Viewports are independent, so they are compared in separate processes
        unless ``workers`` is 1.
        """
        after_by_viewport = {capture.viewport: capture for capture in after}
        pairs = []
        for capture in before:
            other = after_by_viewport.get(capture.viewport)
            if other is None:
                raise ValueError(f"no capture of viewport {capture.viewport} for the second page")
            pairs.append((capture, other))

        if self.workers == 1 or len(pairs) <= 1:
            return [compare_viewport(b, a, self.settings) for b, a in pairs]

        results: Dict[str, ViewportResult] = {}
        with ProcessPoolExecutor(max_workers=self.workers) as executor:
            futures = {
                executor.submit(compare_viewport, b, a, self.settings): b.viewport
                for b, a in pairs
            }
            for future in as_completed(futures):
                viewport = futures[future]
                results[viewport] = future.result()
                logger.info(f"Compared viewport {viewport}")
        return [results[b.viewport] for b, _ in pairs]
