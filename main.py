#!/usr/bin/env python3
"""
Page Comparison Tool
Main entry point: captures two URLs, diffs them per viewport and writes a report.
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from comparator.report_builder import ReportBuilder
from core.page_analyzer import PageAnalyzer
from core.settings import VIEWPORTS, DiffSettings
from utils import file_utils
from visual.generate_screenshots import ScreenshotGenerator

logger = logging.getLogger(__name__)


def parse_viewports(value: str) -> List[str]:
    names = [name.strip() for name in value.split(',') if name.strip()]
    unknown = [name for name in names if name not in VIEWPORTS]
    if unknown or not names:
        raise argparse.ArgumentTypeError(
            f"invalid viewport(s) {', '.join(unknown) or value!r}; choose from {', '.join(VIEWPORTS)}"
        )
    return names


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compare two renderings of a web page.")
    subparsers = parser.add_subparsers(dest='command', required=True)

    compare = subparsers.add_parser('compare', help="Capture and diff two URLs")
    compare.add_argument('url1', help="Reference URL")
    compare.add_argument('url2', help="URL to compare against the reference")
    compare.add_argument('-o', '--output', type=Path, help="Output directory (default: ~/ohsee/<timestamp>--<slug>)")
    compare.add_argument('--viewports', type=parse_viewports, default=list(VIEWPORTS),
                         help=f"Comma-separated viewports ({', '.join(VIEWPORTS)})")
    compare.add_argument('--wait', type=int, default=0, help="Extra wait after page load, in ms")
    compare.add_argument('--threshold', type=float, default=DiffSettings.threshold,
                         help="Per-pixel colour difference threshold, 0-1")
    compare.add_argument('--no-align', action='store_true', help="Compare strips in place without shift search")
    compare.add_argument('--workers', type=int, default=None, help="Worker processes for viewport comparisons")
    compare.add_argument('--no-open', action='store_true', help="Do not open the report in a browser")
    compare.add_argument('--debug', action='store_true', help="Verbose logging")
    return parser


def run_compare(args: argparse.Namespace) -> Path:
    started_at = time.time()
    settings = DiffSettings(threshold=args.threshold, max_shift=0 if args.no_align else DiffSettings.max_shift)

    generator = ScreenshotGenerator(wait_ms=args.wait)
    logger.info(f"Capturing {args.url1}")
    before = generator.capture(args.url1, args.viewports)
    logger.info(f"Capturing {args.url2}")
    after = generator.capture(args.url2, args.viewports)

    results = PageAnalyzer(settings, workers=args.workers).compare_viewports(before, after)

    builder = ReportBuilder()
    report = builder.build(args.url1, args.url2, results, started_at)
    output_dir = args.output or file_utils.resolve_output_dir(args.url1)
    images = file_utils.write_images(report, output_dir)
    file_utils.write_report(builder.render_json(report), output_dir, 'report.json')
    report_path = file_utils.write_report(builder.render_html(report, images), output_dir)

    logger.info(f"Report written to {report_path}")
    logger.info(f"Changed pixels (total): {report.total_changed_pixels:,}")
    logger.info(f"Structural changes: {report.total_structural_changes}")
    logger.info(f"Duration: {report.duration_ms / 1000:.1f}s")

    if not args.no_open:
        file_utils.open_in_browser(report_path)
    return report_path


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    if args.command == 'compare':
        run_compare(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
