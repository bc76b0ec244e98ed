"""Shared synthetic rasters for the test suite."""

import numpy as np
import pytest

from numberpaint.models import Region
from numberpaint.raster import RasterBuffer

RED = (255, 0, 0)
WHITE = (255, 255, 255)


def solid_rgb(width: int, height: int, color) -> np.ndarray:
    rgb = np.empty((height, width, 3), dtype=np.uint8)
    rgb[...] = color
    return rgb


def square_buffer(size=100, x0=30, side=40, color=RED, background=WHITE) -> RasterBuffer:
    rgb = solid_rgb(size, size, background)
    rgb[x0 : x0 + side, x0 : x0 + side] = color
    return RasterBuffer.from_rgb(rgb)


def disk_mask(size: int, cx: float, cy: float, radius: float) -> np.ndarray:
    """Pixels whose centers lie within radius of (cx, cy) in corner coordinates."""
    ys, xs = np.mgrid[0:size, 0:size] + 0.5
    return (xs - cx) ** 2 + (ys - cy) ** 2 <= radius**2


def region_from_mask(mask: np.ndarray, region_id: int = 1, color=RED) -> Region:
    return Region(region_id, color, np.flatnonzero(mask), mask.shape[1])


@pytest.fixture
def red_square() -> RasterBuffer:
    """100x100 white image with a 40x40 red square at (30, 30)."""
    return square_buffer()


@pytest.fixture
def gray_buffer() -> RasterBuffer:
    return RasterBuffer.from_rgb(solid_rgb(50, 50, (128, 128, 128)))


@pytest.fixture
def noisy_buffer() -> RasterBuffer:
    rng = np.random.default_rng(1234)
    rgb = rng.integers(0, 256, size=(40, 60, 3), dtype=np.uint8)
    alpha = np.where(rng.random((40, 60)) < 0.2, 0, 255).astype(np.uint8)
    return RasterBuffer.from_rgb(rgb, alpha)


@pytest.fixture
def disk_buffer() -> RasterBuffer:
    """80x80 white image with a blue disk of radius 15 centered at (40, 40)."""
    rgb = solid_rgb(80, 80, WHITE)
    rgb[disk_mask(80, 40, 40, 15)] = (0, 0, 255)
    return RasterBuffer.from_rgb(rgb)
