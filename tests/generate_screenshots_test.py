import sys
import os
from unittest import mock
import pytest
from playwright.sync_api import Error as PlaywrightError
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from visual.generate_screenshots import ScreenshotGenerator


def fake_browser(evaluate_result=None):
    page = mock.Mock()
    page.screenshot.return_value = b'png-bytes'
    page.content.return_value = '<html><body>Hi</body></html>'
    page.evaluate.return_value = evaluate_result or {'inlineStyleText': '.a { color: red; }', 'sheetUrls': []}
    context = mock.Mock()
    context.new_page.return_value = page
    browser = mock.Mock()
    browser.new_context.return_value = context
    return browser, context, page


def test_capture_viewport():
    browser, context, page = fake_browser()
    capture = ScreenshotGenerator(wait_ms=250).capture_viewport(browser, 'https://example.com', 'tablet')

    browser.new_context.assert_called_once_with(viewport={'width': 768, 'height': 1024}, device_scale_factor=1)
    assert page.goto.call_args.kwargs['wait_until'] == 'networkidle'
    page.wait_for_timeout.assert_called_once_with(250)
    page.screenshot.assert_called_once_with(full_page=True, type='png')
    context.close.assert_called_once()
    assert capture.viewport == 'tablet'
    assert capture.screenshot == b'png-bytes'
    assert capture.html.startswith('<html>')
    assert capture.css_text == '.a { color: red; }'
    assert capture.captured_at


def test_capture_viewport_without_wait():
    browser, _, page = fake_browser()
    ScreenshotGenerator().capture_viewport(browser, 'https://example.com', 'mobile')
    page.wait_for_timeout.assert_not_called()


def test_context_closed_on_navigation_error():
    browser, context, page = fake_browser()
    page.goto.side_effect = PlaywrightError('net::ERR_NAME_NOT_RESOLVED')
    with pytest.raises(PlaywrightError):
        ScreenshotGenerator().capture_viewport(browser, 'https://nowhere.invalid', 'mobile')
    context.close.assert_called_once()


def test_collect_stylesheets_skips_failures():
    ok = mock.Mock(ok=True, status=200)
    ok.text.return_value = '.b { gap: 1px; }'
    missing = mock.Mock(ok=False, status=404)

    def get(url, timeout):
        if url.endswith('down.css'):
            raise PlaywrightError('connection refused')
        return ok if url.endswith('ok.css') else missing

    context = mock.Mock()
    context.request.get.side_effect = get
    text = ScreenshotGenerator().collect_stylesheets(
        context, '.a { color: red; }', ['https://x/ok.css', 'https://x/down.css', 'https://x/missing.css'])
    assert text == '.a { color: red; }\n.b { gap: 1px; }'
    assert context.request.get.call_count == 3


def test_unknown_viewport_is_rejected():
    with mock.patch('visual.generate_screenshots.sync_playwright') as playwright:
        with pytest.raises(ValueError):
            ScreenshotGenerator().capture('https://example.com', ['watch'])
        playwright.assert_not_called()


def test_capture_launches_once_for_all_viewports():
    browser, _, _ = fake_browser()
    with mock.patch('visual.generate_screenshots.sync_playwright') as playwright:
        p = playwright.return_value.__enter__.return_value
        p.chromium.launch.return_value = browser
        captures = ScreenshotGenerator().capture('https://example.com', ['mobile', 'desktop'])
    p.chromium.launch.assert_called_once()
    browser.close.assert_called_once()
    assert [c.viewport for c in captures] == ['mobile', 'desktop']
    assert browser.new_context.call_count == 2
