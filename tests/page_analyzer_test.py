import sys
import os
import numpy as np
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from core.bitmap import Bitmap, encode_png
from core.page_analyzer import PageAnalyzer, compare_viewport
from core.settings import DiffSettings
from visual.generate_screenshots import PageCapture

HTML = '<body><h1 class="title">Hello</h1></body>'
CSS = '.title { color: #000; }'


def png(width, height, value=255):
    pixels = np.full((height, width, 3), value, dtype=np.uint8)
    return encode_png(Bitmap.from_array(pixels))


def capture(viewport, screenshot, html=HTML, css=CSS, url='https://example.com/'):
    return PageCapture(viewport=viewport, url=url, screenshot=screenshot, html=html, css_text=css)


def test_identical_captures():
    result = compare_viewport(capture('mobile', png(20, 30)), capture('mobile', png(20, 30)))
    assert result.viewport == 'mobile'
    assert result.pixel.changed_pixels == 0
    assert result.structural.total_changes == 0
    assert result.structural.html_changed_lines == 0
    assert not result.has_changes


def test_changed_capture():
    after = capture('mobile', png(20, 30, 0), html=HTML.replace('Hello', 'Hi'), css='.title { color: #fff; }')
    result = compare_viewport(capture('mobile', png(20, 30)), after)
    assert result.pixel.changed_pixels == 600
    assert len(result.structural.content_changes) == 1
    assert len(result.structural.css_class_changes) == 1
    assert result.has_changes
    data = result.to_dict()
    assert data['viewport'] == 'mobile'
    assert data['has_changes'] is True


def test_viewport_mismatch_raises():
    with pytest.raises(ValueError):
        compare_viewport(capture('mobile', png(2, 2)), capture('tablet', png(2, 2)))


def test_undecodable_screenshot_raises():
    with pytest.raises(ValueError):
        compare_viewport(capture('mobile', b'not a png'), capture('mobile', png(2, 2)))


def test_compare_viewports_keeps_order():
    before = [capture('tablet', png(8, 8)), capture('mobile', png(4, 4))]
    after = [capture('mobile', png(4, 4, 0)), capture('tablet', png(8, 8))]
    results = PageAnalyzer(DiffSettings(), workers=1).compare_viewports(before, after)
    assert [r.viewport for r in results] == ['tablet', 'mobile']
    assert results[0].pixel.changed_pixels == 0
    assert results[1].pixel.changed_pixels == 16


def test_compare_viewports_missing_capture():
    with pytest.raises(ValueError):
        PageAnalyzer(workers=1).compare_viewports([capture('mobile', png(2, 2))], [])


def test_inline_style_change_alone_counts_as_change():
    styled = '<body><h1 class="title" style="color: red">Hello</h1></body>'
    restyled = '<body><h1 class="title" style="color: blue">Hello</h1></body>'
    result = compare_viewport(capture('mobile', png(4, 4), html=styled), capture('mobile', png(4, 4), html=restyled))
    assert result.pixel.changed_pixels == 0
    assert result.structural.total_changes == 0
    assert result.structural.css_changed_lines == 2
    assert result.has_changes
    assert result.to_dict()['structural']['css_changed_lines'] == 2
