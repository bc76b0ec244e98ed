"""Tests for image-type preprocessing modes."""

import numpy as np
import pytest

from numberpaint.modes import IMAGE_MODES, MAX_DETAIL, MIN_DETAIL, process_image
from numberpaint.raster import RasterBuffer

from conftest import square_buffer


def colors_of(buf):
    return {tuple(c) for c in buf.rgb.reshape(-1, 3)}


@pytest.mark.parametrize("mode", sorted(IMAGE_MODES))
@pytest.mark.parametrize("level", [MIN_DETAIL, 4, MAX_DETAIL])
def test_modes_keep_size_and_alpha(noisy_buffer, mode, level):
    out = process_image(noisy_buffer, mode, level)
    assert (out.width, out.height) == (noisy_buffer.width, noisy_buffer.height)
    assert np.array_equal(out.alpha, noisy_buffer.alpha)


@pytest.mark.parametrize("mode", ["drawing", "stroked"])
def test_black_and_white_modes(noisy_buffer, mode):
    assert colors_of(process_image(noisy_buffer, mode, 4)) <= {(0, 0, 0), (255, 255, 255)}


@pytest.mark.parametrize("mode", ["sketch", "filled"])
def test_gray_modes(noisy_buffer, mode):
    rgb = process_image(noisy_buffer, mode, 5).rgb
    assert np.array_equal(rgb[..., 0], rgb[..., 1])
    assert np.array_equal(rgb[..., 1], rgb[..., 2])


def test_filled_layer_count_follows_level(noisy_buffer):
    assert len(colors_of(process_image(noisy_buffer, "filled", 1))) <= 2
    assert len(colors_of(process_image(noisy_buffer, "filled", 7))) <= 8


def test_clipart_color_budget(noisy_buffer):
    assert len(colors_of(process_image(noisy_buffer, "clipart", 1))) <= 4


def test_drawing_inks_dark_areas(red_square):
    out = process_image(red_square, "drawing", 1)
    assert tuple(out.rgb[50, 50]) == (0, 0, 0)
    assert tuple(out.rgb[5, 5]) == (255, 255, 255)


def test_stroked_marks_red_channel_edges():
    black_square = square_buffer(color=(0, 0, 0))
    out = process_image(black_square, "stroked", 1)
    assert tuple(out.rgb[30, 30]) == (0, 0, 0)
    assert tuple(out.rgb[50, 50]) == (255, 255, 255)
    assert tuple(out.rgb[5, 5]) == (255, 255, 255)


def test_photo_mode_level_one_is_near_identity(red_square):
    out = process_image(red_square, "photo", 1)
    assert out == red_square


def test_invalid_arguments(gray_buffer):
    with pytest.raises(ValueError):
        process_image(gray_buffer, "watercolor")
    with pytest.raises(ValueError):
        process_image(gray_buffer, "photo", 0)
    with pytest.raises(ValueError):
        process_image(gray_buffer, "photo", 8)
    assert process_image(RasterBuffer(0, 0), "sketch").is_empty
