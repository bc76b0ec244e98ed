"""Plain data records shared by the numberpaint engine."""

from dataclasses import dataclass, field

import numpy as np

RGB = tuple[int, int, int]


@dataclass(frozen=True)
class Point:
    """A position in pixel space."""

    x: float
    y: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class Bounds:
    """Inclusive axis-aligned pixel bounding box."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1


@dataclass
class Region:
    """A connected set of like-colored pixels.

    Attributes:
        id: Unique id >= 1, assigned in discovery order.
        color: Representative RGB color of the region.
        pixels: 1D int64 array of pixel indices (``y * width + x``).
        width: Width of the image the pixel indices refer to.
        center: Rounded centroid of the pixels.
        bounds: Bounding box of the pixels.
    """

    id: int
    color: RGB
    pixels: np.ndarray
    width: int
    center: Point = field(init=False)
    bounds: Bounds = field(init=False)

    def __post_init__(self) -> None:
        self.pixels = np.asarray(self.pixels, dtype=np.int64)
        self.refresh()

    @property
    def area(self) -> int:
        return int(self.pixels.size)

    def xs(self) -> np.ndarray:
        return self.pixels % self.width

    def ys(self) -> np.ndarray:
        return self.pixels // self.width

    def refresh(self) -> None:
        """Recompute center and bounds from the current pixel array."""
        if self.pixels.size == 0:
            self.center = Point(0.0, 0.0)
            self.bounds = Bounds(0, 0, -1, -1)
            return
        xs = self.xs()
        ys = self.ys()
        # Half-up rounding of the mean
        self.center = Point(
            float(np.floor(xs.mean() + 0.5)), float(np.floor(ys.mean() + 0.5))
        )
        self.bounds = Bounds(
            int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max())
        )

    def absorb(self, pixels: np.ndarray) -> None:
        """Move extra pixels into this region and refresh its stats."""
        self.pixels = np.concatenate([self.pixels, np.asarray(pixels, dtype=np.int64)])
        self.refresh()


@dataclass(frozen=True)
class ProgressEvent:
    """Coarse progress milestone reported by the pipeline."""

    stage: str
    progress: float
