"""
File Utilities Module
Output directory naming and writing of screenshots, diff images and reports.
"""

import logging
import re
import webbrowser
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse

from core.bitmap import encode_png

logger = logging.getLogger(__name__)

UNSAFE_CHARS_RE = re.compile(r'[^a-zA-Z0-9\-_.]')
SLUG_MAX = 60


def url_to_slug(url: str) -> str:
    """Filesystem-safe slug: hostname without ``www.`` plus the path joined by dashes."""
    parsed = urlparse(url)
    if not parsed.netloc:
        return UNSAFE_CHARS_RE.sub('-', url)[:SLUG_MAX]
    host = re.sub(r'^www\.', '', parsed.hostname or parsed.netloc)
    path_slug = UNSAFE_CHARS_RE.sub('', parsed.path.strip('/').replace('/', '-'))[:SLUG_MAX]
    return f"{host}-{path_slug}" if path_slug else host


def resolve_output_dir(url: str, base: Optional[Path] = None, now: Optional[datetime] = None) -> Path:
    """``<base>/YYYYMMDD-HHMMSS--<slug>``, ``base`` defaulting to ``~/ohsee``."""
    base = base or Path.home() / 'ohsee'
    now = now or datetime.now()
    return base / f"{now:%Y%m%d-%H%M%S}--{url_to_slug(url)}"


def ensure_directory(directory: Path) -> None:
    """Ensure directory exists, create if necessary."""
    directory.mkdir(parents=True, exist_ok=True)


def write_images(report, output_dir: Path) -> Dict[str, str]:
    """Write before/after screenshots and diff images of every viewport.

    Returns image keys (``before-<viewport>``, ``after-<viewport>``,
    ``diff-<viewport>``) mapped to file names relative to ``output_dir``.
    """
    ensure_directory(output_dir)
    paths = {}
    for vr in report.viewports:
        vp = vr.viewport
        files = {
            f"before-{vp}": (f"{vp}-before.png", vr.before.screenshot),
            f"after-{vp}": (f"{vp}-after.png", vr.after.screenshot),
            f"diff-{vp}": (f"{vp}-diff.png", encode_png(vr.pixel.diff_image) if not vr.pixel.diff_image.is_empty else None),
        }
        for key, (name, data) in files.items():
            if data is None:
                continue
            (output_dir / name).write_bytes(data)
            paths[key] = name
    logger.debug(f"Wrote {len(paths)} images to {output_dir}")
    return paths


def write_report(content: str, output_dir: Path, name: str = 'report.html') -> Path:
    ensure_directory(output_dir)
    path = output_dir / name
    path.write_text(content, encoding='utf-8')
    return path


def open_in_browser(file_path: Path) -> bool:
    """Open a local file in the default browser; failures are logged, not raised."""
    uri = Path(file_path).resolve().as_uri()
    try:
        opened = webbrowser.open(uri)
    except webbrowser.Error as e:
        logger.warning(f"Could not auto-open browser: {e}")
        return False
    if not opened:
        logger.warning(f"Could not auto-open browser for {uri}")
    return opened
