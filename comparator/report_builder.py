"""
Report Builder Module
Aggregates per-viewport results and renders JSON and HTML reports using Jinja2 templates.
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.page_analyzer import ViewportResult

logger = logging.getLogger(__name__)

VERSION = '0.1.0'
TEMPLATES_DIR = Path(__file__).parent / 'templates'


@dataclass
class CompareReport:
    url1: str
    url2: str
    viewports: List[ViewportResult]
    overall_summary: str
    duration_ms: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    version: str = VERSION

    @property
    def total_changed_pixels(self) -> int:
        return sum(vr.pixel.changed_pixels for vr in self.viewports)

    @property
    def total_structural_changes(self) -> int:
        return sum(vr.structural.total_changes for vr in self.viewports)

    @property
    def has_changes(self) -> bool:
        return any(vr.has_changes for vr in self.viewports)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'created_at': self.created_at,
            'url1': self.url1,
            'url2': self.url2,
            'version': self.version,
            'duration_ms': self.duration_ms,
            'overall_summary': self.overall_summary,
            'total_changed_pixels': self.total_changed_pixels,
            'total_structural_changes': self.total_structural_changes,
            'has_changes': self.has_changes,
            'viewports': [vr.to_dict() for vr in self.viewports],
        }


def url_label(url: str, max_len: int = 45) -> str:
    """Hostname plus path, without scheme or query."""
    parsed = urlparse(url)
    if not parsed.netloc:
        return url[:max_len]
    label = parsed.netloc + ('' if parsed.path in ('', '/') else parsed.path)
    return label if len(label) <= max_len else label[:max_len - 1] + '…'


def percent_color(percent: float) -> str:
    if percent > 20:
        return '#dc2626'
    if percent > 5:
        return '#d97706'
    return '#16a34a'


class ReportBuilder:
    def __init__(self, templates_dir: Path = TEMPLATES_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(['html']),
        )
        self.env.filters['url_label'] = url_label
        self.env.filters['percent_color'] = percent_color
        self.template = self.env.get_template('report.html')

    def summarize(self, viewports: Sequence[ViewportResult]) -> str:
        """Plain-language summary of the pixel and structural findings."""
        if not viewports:
            return 'No viewports were compared.'
        affected = [vr for vr in viewports if vr.pixel.changed_pixels > 0]
        structural = sum(vr.structural.total_changes for vr in viewports)
        if not affected and structural == 0:
            return 'No visual or structural differences detected between the two URLs across all viewports.'

        parts = []
        if affected:
            average = sum(vr.pixel.percent_changed for vr in viewports) / len(viewports)
            worst = max(viewports, key=lambda vr: vr.pixel.percent_changed)
            parts.append(
                f"Pixel diffing detected changes in {len(affected)} of {len(viewports)} viewport(s), "
                f"averaging {average:.1f}% pixels changed."
            )
            parts.append(f"The most affected viewport is {worst.viewport} at {worst.pixel.percent_changed:.1f}%.")
        if structural:
            parts.append(f"The structural diff found {structural} changes across all viewports.")
        return ' '.join(parts)

    def build(self, url1: str, url2: str, viewports: Sequence[ViewportResult],
              started_at: float, summary: Optional[str] = None) -> CompareReport:
        report = CompareReport(
            url1=url1,
            url2=url2,
            viewports=list(viewports),
            overall_summary=summary if summary is not None else self.summarize(viewports),
            duration_ms=int((time.time() - started_at) * 1000),
        )
        logger.info(
            f"Report {report.id}: {report.total_changed_pixels} changed pixels, "
            f"{report.total_structural_changes} structural changes"
        )
        return report

    def render_html(self, report: CompareReport, image_paths: Dict[str, str]) -> str:
        return self.template.render(report=report, images=image_paths)

    def render_json(self, report: CompareReport) -> str:
        return json.dumps(report.to_dict(), indent=2)
