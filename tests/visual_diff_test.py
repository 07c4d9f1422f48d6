import sys
import os
import numpy as np
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from core.bitmap import Bitmap
from core.settings import DiffSettings
from core.visual_diff import PixelDiff, compare_arrays


def noise(height, width, seed=0):
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return pixels


def with_banner(pixels, rows):
    """Copy of ``pixels`` pushed down by ``rows`` white rows."""
    banner = np.full((rows,) + pixels.shape[1:], 255, dtype=np.uint8)
    return np.concatenate([banner, pixels], axis=0)


@pytest.mark.parametrize('settings', [
    DiffSettings(),
    DiffSettings(strip_height=7, max_shift=3),
    DiffSettings(max_shift=0),
])
def test_identical_images_have_no_changes(settings):
    pixels = noise(120, 48)
    result = compare_arrays(pixels, pixels.copy(), settings)
    assert result.changed_pixels == 0
    assert result.percent_changed == 0
    assert result.total_pixels == 120 * 48
    assert result.diff_image.size == (48, 120)


def test_zero_area_inputs():
    empty = np.zeros((0, 0, 4), dtype=np.uint8)
    result = compare_arrays(empty, empty)
    assert result.total_pixels == 0
    assert result.changed_pixels == 0
    assert result.percent_changed == 0.0
    assert result.diff_image.is_empty


def test_banner_shift_is_compensated():
    content = noise(800, 64)
    shifted = with_banner(content, 40)
    aligned = compare_arrays(content, shifted)
    unaligned = compare_arrays(content, shifted, DiffSettings(max_shift=0))
    assert aligned.height_mismatch
    assert aligned.diff_image.size == (64, 840)
    assert aligned.changed_pixels <= 40 * 64
    assert unaligned.changed_pixels > 10 * aligned.changed_pixels
    assert aligned.percent_changed < unaligned.percent_changed


def test_height_mismatch_pads_shorter_image():
    top = np.full((30, 10, 4), 255, dtype=np.uint8)
    longer = np.full((50, 10, 4), 255, dtype=np.uint8)
    result = compare_arrays(top, longer, DiffSettings(max_shift=0))
    assert result.height_mismatch
    assert (result.before_height, result.after_height) == (30, 50)
    assert result.changed_pixels == 0
    assert result.total_pixels == 500


def test_percent_changed():
    before = np.full((10, 10, 4), 255, dtype=np.uint8)
    after = before.copy()
    after[0:5, 0:2, :3] = 0
    result = PixelDiff(DiffSettings(max_shift=0, include_aa=True)).compare(
        Bitmap.from_array(before), Bitmap.from_array(after))
    assert result.changed_pixels == 10
    assert result.percent_changed == pytest.approx(10.0)


def test_to_dict_excludes_image():
    result = compare_arrays(noise(8, 8), noise(8, 8))
    data = result.to_dict()
    assert 'diff_image' not in data
    assert data['height_mismatch'] is False
    assert data['total_pixels'] == 64


@pytest.mark.parametrize('kwargs', [
    {'strip_height': 0},
    {'max_shift': -1},
    {'coarse_x': 0},
    {'threshold': 1.5},
    {'alpha': -0.1},
    {'class_change_cap': -1},
])
def test_invalid_settings(kwargs):
    with pytest.raises(ValueError):
        DiffSettings(**kwargs)
