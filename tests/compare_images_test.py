import sys
import os
import numpy as np
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from core.settings import DiffSettings
from visual.compare_images import StripComparator


def rgba(height, width, value=255):
    pixels = np.full((height, width, 4), value, dtype=np.uint8)
    pixels[..., 3] = 255
    return pixels


def hard_edge():
    """Black on the left, white from column 3 on."""
    pixels = rgba(5, 6)
    pixels[:, :3, :3] = 0
    return pixels


def test_identical_strips():
    comparator = StripComparator()
    pixels = rgba(4, 4, 120)
    changed, output = comparator.compare(pixels, pixels.copy())
    assert changed == 0
    assert output.shape == pixels.shape
    assert (output[..., 3] == 255).all()


def test_single_changed_pixel_uses_diff_color():
    comparator = StripComparator()
    first = rgba(5, 5)
    second = first.copy()
    second[2, 2, :3] = 0
    changed, output = comparator.compare(first, second)
    assert changed == 1
    assert tuple(output[2, 2, :3]) == (255, 0, 100)
    assert tuple(output[0, 0, :3]) != (255, 0, 100)


def test_threshold_ignores_small_differences():
    first = rgba(3, 3, 255)
    second = rgba(3, 3, 253)
    assert StripComparator().compare(first, second)[0] == 0
    assert StripComparator(DiffSettings(threshold=0.0)).compare(first, second)[0] == 9


def test_anti_aliased_edge_is_not_counted():
    first = hard_edge()
    second = first.copy()
    second[:, 3, :3] = 128
    changed, output = StripComparator().compare(first, second)
    assert changed == 0
    assert (output[:, 3, :3] == (255, 255, 0)).all()


def test_include_aa_counts_edge_pixels():
    first = hard_edge()
    second = first.copy()
    second[:, 3, :3] = 128
    changed, output = StripComparator(DiffSettings(include_aa=True)).compare(first, second)
    assert changed == 5
    assert (output[:, 3, :3] == (255, 0, 100)).all()


def test_unchanged_pixels_render_faded_gray():
    changed, output = StripComparator().compare(rgba(2, 2, 0), rgba(2, 2, 0))
    assert changed == 0
    gray = output[0, 0, :3]
    assert gray[0] == gray[1] == gray[2]
    assert gray[0] > 150


def test_shape_mismatch_raises():
    with pytest.raises(ValueError):
        StripComparator().compare(rgba(2, 2), rgba(3, 2))


def test_empty_strip():
    empty = np.zeros((0, 5, 4), dtype=np.uint8)
    changed, output = StripComparator().compare(empty, empty)
    assert changed == 0
    assert output.shape == (0, 5, 4)


def test_has_many_siblings_flat_region():
    siblings = StripComparator.has_many_siblings(rgba(4, 4))
    assert siblings.all()
    lone = rgba(3, 3)
    lone[1, 1, :3] = 0
    assert not StripComparator.has_many_siblings(lone)[1, 1]
