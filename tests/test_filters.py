"""Tests for the enhancement filters."""

import numpy as np
import pytest

from numberpaint import filters
from numberpaint.filters import (
    FILTER_PRESETS,
    anti_alias,
    bilateral_filter,
    detect_edges,
    enhance,
    enhance_outlines,
    get_preset,
    hysteresis,
    non_maximum_suppression,
    reduce_noise,
    sharpen,
    upscale,
)
from numberpaint.raster import RasterBuffer

from conftest import solid_rgb, square_buffer


def test_off_levels_return_identical_copies(noisy_buffer):
    for out in (
        anti_alias(noisy_buffer, "off"),
        reduce_noise(noisy_buffer, "off"),
        upscale(noisy_buffer, "off"),
        enhance(noisy_buffer),
    ):
        assert out is not noisy_buffer
        assert out.to_bytes() == noisy_buffer.to_bytes()


@pytest.mark.parametrize(
    "call",
    [
        lambda b: anti_alias(b, "max"),
        lambda b: reduce_noise(b, "extreme"),
        lambda b: upscale(b, "300%"),
        lambda b: upscale(b, 3),
    ],
)
def test_unknown_levels_raise(gray_buffer, call):
    with pytest.raises(ValueError):
        call(gray_buffer)


def test_presets():
    assert set(FILTER_PRESETS) == {"v1", "v2"}
    assert get_preset("v2") is FILTER_PRESETS["v2"]
    assert get_preset(FILTER_PRESETS["v1"]) is FILTER_PRESETS["v1"]
    with pytest.raises(ValueError):
        get_preset("v3")


def test_detect_edges(red_square):
    edges = detect_edges(red_square)
    assert edges[30, 30]
    assert edges[29, 40]
    assert not edges[50, 50]
    assert not edges[0, :].any()
    assert not edges[:, -1].any()


@pytest.mark.parametrize("level", ["smart", "mid"])
@pytest.mark.parametrize("preset", ["v1", "v2"])
def test_anti_alias_keeps_flat_areas_and_alpha(gray_buffer, red_square, level, preset):
    assert anti_alias(gray_buffer, level, preset) == gray_buffer
    out = anti_alias(red_square, level, preset)
    assert np.array_equal(out.alpha, red_square.alpha)
    assert np.array_equal(out.rgb[5, 5], red_square.rgb[5, 5])


def test_smart_anti_alias_only_touches_edges(red_square):
    out = anti_alias(red_square, "smart")
    changed = np.any(out.rgb != red_square.rgb, axis=2)
    assert changed.any()
    assert not np.any(changed & ~detect_edges(red_square))


def test_low_noise_removes_salt_pixel(gray_buffer):
    rgb = gray_buffer.rgb.copy()
    rgb[20, 20] = (255, 255, 255)
    out = reduce_noise(RasterBuffer.from_rgb(rgb), "low")
    assert out == gray_buffer


@pytest.mark.parametrize("preset", ["v1", "v2"])
def test_high_noise_reduction(gray_buffer, noisy_buffer, preset):
    assert reduce_noise(gray_buffer, "high", preset) == gray_buffer
    out = reduce_noise(noisy_buffer, "high", preset)
    assert (out.width, out.height) == (noisy_buffer.width, noisy_buffer.height)
    assert np.array_equal(out.alpha, noisy_buffer.alpha)


def test_v1_noise_reduction_smooths_random_noise(noisy_buffer):
    out = reduce_noise(noisy_buffer, "high", "v1")
    before = np.abs(np.diff(noisy_buffer.rgb.astype(int), axis=1)).mean()
    after = np.abs(np.diff(out.rgb.astype(int), axis=1)).mean()
    assert after < before


def test_bilateral_filter_keeps_constant_image():
    rgb = np.full((8, 8, 3), 77.0)
    for circular in (True, False):
        for per_channel in (True, False):
            out = bilateral_filter(rgb, 3.0, 25.0, 2, circular=circular, per_channel=per_channel)
            assert np.allclose(out, 77.0)


def test_sharpen(gray_buffer, noisy_buffer):
    assert sharpen(noisy_buffer, 0) == noisy_buffer
    assert sharpen(gray_buffer, 0.5) == gray_buffer
    out = sharpen(noisy_buffer, 0.5)
    assert np.array_equal(out.rgb[0], noisy_buffer.rgb[0])
    assert np.array_equal(out.rgb[:, -1], noisy_buffer.rgb[:, -1])
    assert np.array_equal(out.alpha, noisy_buffer.alpha)


def test_sharpen_increases_step_contrast():
    rgb = solid_rgb(6, 6, (100, 100, 100))
    rgb[:, 3:] = (150, 150, 150)
    out = sharpen(RasterBuffer.from_rgb(rgb), 0.5)
    assert out.rgb[2, 2, 0] < 100
    assert out.rgb[2, 3, 0] > 150


def test_non_maximum_suppression_thins_ridge():
    magnitude = np.tile(np.array([1.0, 2.0, 3.0, 2.0, 1.0]), (5, 1))
    gx = np.ones_like(magnitude)
    gy = np.zeros_like(magnitude)
    thin = non_maximum_suppression(magnitude, gx, gy)
    assert np.array_equal(np.nonzero(thin.any(axis=0))[0], [2])


def test_hysteresis_keeps_weak_edges_touching_strong():
    magnitude = np.array([[0.0, 60.0, 30.0, 30.0, 0.0, 30.0]])
    assert hysteresis(magnitude, 50.0, 20.0).tolist() == [[False, True, True, True, False, False]]
    assert not hysteresis(np.zeros((3, 3)), 50.0, 20.0).any()


def test_enhance_outlines_only_darkens(red_square):
    out = enhance_outlines(red_square)
    assert np.all(out.rgb <= red_square.rgb)
    assert np.any(out.rgb < red_square.rgb)


@pytest.mark.parametrize("preset", ["v1", "v2"])
@pytest.mark.parametrize("level, factor", [("200%", 2), ("400%", 4)])
def test_upscale_sizes(preset, level, factor):
    small = square_buffer(size=20, x0=5, side=10)
    out = upscale(small, level, preset)
    assert (out.width, out.height) == (20 * factor, 20 * factor)


def test_enhance_chains_steps():
    small = square_buffer(size=16, x0=4, side=8)
    out = enhance(small, anti_aliasing="smart", noise_reduction="low", upscaling="200%")
    assert (out.width, out.height) == (32, 32)


def test_empty_buffer_passes_every_filter():
    empty = RasterBuffer(0, 0)
    assert enhance(empty, "mid", "high", "400%").is_empty
    assert filters.median_denoise(empty).is_empty
