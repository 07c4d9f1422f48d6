"""
Screenshot Generator Module
Captures full-page screenshots, HTML and stylesheet text of a URL using Playwright.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Sequence

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from core.settings import VIEWPORTS

logger = logging.getLogger(__name__)

LAUNCH_ARGS = ['--hide-scrollbars', '--force-device-scale-factor=1', '--disable-cache']

# Runs in the page: external stylesheet URLs plus the text of every inline <style>
STYLESHEETS_SCRIPT = """() => ({
    sheetUrls: Array.from(document.styleSheets).map((s) => s.href).filter(Boolean),
    inlineStyleText: Array.from(document.querySelectorAll('style'))
        .map((s) => s.textContent || '')
        .join('\\n'),
})"""


@dataclass(frozen=True)
class PageCapture:
    viewport: str
    url: str
    screenshot: bytes
    html: str
    css_text: str
    captured_at: str = ''


class ScreenshotGenerator:
    def __init__(self, wait_ms: int = 0, timeout_ms: int = 60_000):
        self.wait_ms = wait_ms
        self.timeout_ms = timeout_ms

    def capture(self, url: str, viewport_names: Sequence[str]) -> List[PageCapture]:
        """Capture ``url`` once per viewport preset."""
        unknown = [name for name in viewport_names if name not in VIEWPORTS]
        if unknown:
            raise ValueError(f"unknown viewport(s): {', '.join(unknown)}")

        with sync_playwright() as p:
            browser = p.chromium.launch(args=LAUNCH_ARGS)
            try:
                return [self.capture_viewport(browser, url, name) for name in viewport_names]
            finally:
                browser.close()

    def capture_viewport(self, browser, url: str, viewport: str) -> PageCapture:
        width, height = VIEWPORTS[viewport]
        logger.info(f"Capturing {url} at {viewport} ({width}x{height})")
        context = browser.new_context(viewport={'width': width, 'height': height}, device_scale_factor=1)
        try:
            page = context.new_page()
            page.goto(url, wait_until='networkidle', timeout=self.timeout_ms)
            if self.wait_ms > 0:
                page.wait_for_timeout(self.wait_ms)
            screenshot = page.screenshot(full_page=True, type='png')
            html = page.content()
            sheets = page.evaluate(STYLESHEETS_SCRIPT)
            css_text = self.collect_stylesheets(
                context, sheets.get('inlineStyleText', ''), sheets.get('sheetUrls', []))
        finally:
            context.close()
        return PageCapture(
            viewport=viewport,
            url=url,
            screenshot=screenshot,
            html=html,
            css_text=css_text,
            captured_at=datetime.now(timezone.utc).isoformat(),
        )

    def collect_stylesheets(self, context, inline_text: str, sheet_urls: Iterable[str]) -> str:
        """Inline style text followed by every external stylesheet that could be fetched."""
        texts = [inline_text]
        for sheet_url in sheet_urls:
            try:
                response = context.request.get(sheet_url, timeout=self.timeout_ms)
            except PlaywrightError as e:
                logger.warning(f"Skipping stylesheet {sheet_url}: {e}")
                continue
            if not response.ok:
                logger.warning(f"Skipping stylesheet {sheet_url}: HTTP {response.status}")
                continue
            texts.append(response.text())
        return '\n'.join(texts)
