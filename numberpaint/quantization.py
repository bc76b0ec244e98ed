"""Color quantization: median-cut over a 5-bit histogram and a frequency
bucket quantizer for the simpler layer and image-type modes."""

import logging
from dataclasses import dataclass

import numpy as np

from .models import RGB
from .raster import RasterBuffer

logger = logging.getLogger(__name__)

HIST_BITS = 5
HIST_LEVELS = 1 << HIST_BITS  # 32 levels per axis
HIST_SHIFT = 8 - HIST_BITS


@dataclass
class ColorBox:
    """Inclusive range over the reduced (5-bit) color histogram."""

    r1: int
    r2: int
    g1: int
    g2: int
    b1: int
    b2: int
    population: int = 0

    @property
    def volume(self) -> int:
        return (self.r2 - self.r1 + 1) * (self.g2 - self.g1 + 1) * (self.b2 - self.b1 + 1)

    @property
    def slices(self) -> tuple[slice, slice, slice]:
        return (
            slice(self.r1, self.r2 + 1),
            slice(self.g1, self.g2 + 1),
            slice(self.b1, self.b2 + 1),
        )

    def longest_axis(self) -> int:
        lengths = (self.r2 - self.r1, self.g2 - self.g1, self.b2 - self.b1)
        return lengths.index(max(lengths))


def _shrink(box: ColorBox, hist: np.ndarray) -> ColorBox:
    """Tighten a box to the extent of its populated cells."""
    sub = hist[box.slices]
    population = int(sub.sum())
    if population == 0:
        return ColorBox(box.r1, box.r2, box.g1, box.g2, box.b1, box.b2, 0)
    bounds = []
    for axis, lo in ((0, box.r1), (1, box.g1), (2, box.b1)):
        others = tuple(a for a in range(3) if a != axis)
        occupied = np.nonzero(sub.sum(axis=others))[0]
        bounds.append((lo + int(occupied[0]), lo + int(occupied[-1])))
    (r1, r2), (g1, g2), (b1, b2) = bounds
    return ColorBox(r1, r2, g1, g2, b1, b2, population)


def _split(box: ColorBox, hist: np.ndarray) -> tuple[ColorBox, ColorBox]:
    """Split a shrunk box at the population median of its longest axis."""
    axis = box.longest_axis()
    sub = hist[box.slices]
    others = tuple(a for a in range(3) if a != axis)
    cumulative = np.cumsum(sub.sum(axis=others))
    cut = int(np.searchsorted(cumulative, cumulative[-1] / 2.0))
    # Both halves keep a populated end slab
    cut = min(cut, len(cumulative) - 2)

    lo = [box.r1, box.r2, box.g1, box.g2, box.b1, box.b2]
    hi = list(lo)
    start = lo[axis * 2]
    lo[axis * 2 + 1] = start + cut
    hi[axis * 2] = start + cut + 1
    return _shrink(ColorBox(*lo), hist), _shrink(ColorBox(*hi), hist)


def nearest_color_indices(
    colors: np.ndarray, palette: np.ndarray, chunk: int = 65536
) -> np.ndarray:
    """Index of the nearest palette entry for each color.

    Euclidean distance in RGB; ties go to the lowest palette index.

    Args:
        colors: ``(N, 3)`` array of colors.
        palette: ``(K, 3)`` array of candidate colors.
        chunk: Rows processed per batch.

    Returns:
        ``(N,)`` int array of palette indices.
    """
    colors = np.asarray(colors, dtype=np.float64)
    palette = np.asarray(palette, dtype=np.float64)
    out = np.empty(len(colors), dtype=np.int64)
    for start in range(0, len(colors), chunk):
        block = colors[start : start + chunk]
        dist = ((block[:, np.newaxis, :] - palette[np.newaxis, :, :]) ** 2).sum(axis=2)
        out[start : start + chunk] = np.argmin(dist, axis=1)
    return out


class ColorQuantizer:
    """Median-cut quantizer over a 32x32x32 histogram.

    After :meth:`quantize` the final ``boxes`` and their representative
    ``palette`` colors are available for inspection.
    """

    def __init__(self, num_colors: int) -> None:
        if num_colors < 1:
            raise ValueError(f"num_colors must be >= 1, got {num_colors}")
        self.num_colors = num_colors
        self.boxes: list[ColorBox] = []
        self.palette: list[RGB] = []

    def quantize(self, buffer: RasterBuffer) -> RasterBuffer:
        """Reduce a buffer to at most ``num_colors`` colors.

        Opaque pixels build the histogram (all pixels when none are
        opaque); every pixel is remapped and alpha passes through.

        Args:
            buffer: Source raster.

        Returns:
            New quantized raster of the same size.
        """
        self.boxes = []
        self.palette = []
        if buffer.is_empty:
            return buffer.copy()

        rgb = buffer.rgb.reshape(-1, 3).astype(np.int64)
        cells = self._cell_index(rgb)
        sample = buffer.opaque_mask.ravel()
        if not sample.any():
            sample = np.ones_like(sample)

        n_cells = HIST_LEVELS**3
        hist = np.bincount(cells[sample], minlength=n_cells)
        sums = np.stack(
            [
                np.bincount(cells[sample], weights=rgb[sample, c], minlength=n_cells)
                for c in range(3)
            ],
            axis=-1,
        )
        hist = hist.reshape(HIST_LEVELS, HIST_LEVELS, HIST_LEVELS)
        sums = sums.reshape(HIST_LEVELS, HIST_LEVELS, HIST_LEVELS, 3)

        self.boxes = self._median_cut(hist)
        self.palette = [self._box_color(box, sums) for box in self.boxes]

        lut = np.full(hist.shape, -1, dtype=np.int64)
        for i, box in enumerate(self.boxes):
            lut[box.slices] = i
        assignment = lut.ravel()[cells]

        missing = assignment < 0
        if missing.any():
            # Cells outside every box: nearest box mean in reduced space
            reduced = np.array(
                [[c >> HIST_SHIFT for c in color] for color in self.palette]
            )
            assignment[missing] = nearest_color_indices(rgb[missing] >> HIST_SHIFT, reduced)

        palette = np.array(self.palette, dtype=np.uint8)
        out = palette[assignment].reshape(buffer.height, buffer.width, 3)
        logger.info(
            "Median cut produced %d colors (requested %d)", len(self.palette), self.num_colors
        )
        return RasterBuffer.from_rgb(out, buffer.alpha)

    @staticmethod
    def _cell_index(rgb: np.ndarray) -> np.ndarray:
        reduced = rgb >> HIST_SHIFT
        return (reduced[:, 0] * HIST_LEVELS + reduced[:, 1]) * HIST_LEVELS + reduced[:, 2]

    def _median_cut(self, hist: np.ndarray) -> list[ColorBox]:
        top = HIST_LEVELS - 1
        boxes = [_shrink(ColorBox(0, top, 0, top, 0, top), hist)]
        while len(boxes) < self.num_colors:
            splittable = [i for i, box in enumerate(boxes) if box.volume > 1]
            if not splittable:
                # Fewer populated cells than requested colors
                break
            idx = max(splittable, key=lambda i: boxes[i].volume)
            boxes[idx : idx + 1] = _split(boxes[idx], hist)
        return boxes

    @staticmethod
    def _box_color(box: ColorBox, sums: np.ndarray) -> RGB:
        if box.population == 0:
            return (0, 0, 0)
        total = sums[box.slices].reshape(-1, 3).sum(axis=0)
        mean = np.floor(total / box.population + 0.5).astype(int)
        return (int(mean[0]), int(mean[1]), int(mean[2]))


def frequency_quantize(
    buffer: RasterBuffer, step: float = 32, max_colors: int = 32
) -> tuple[RasterBuffer, list[RGB]]:
    """Bucket colors to multiples of ``step`` and keep the most frequent.

    Groups are ranked by pixel count; ties keep first-encountered order.
    Every pixel is then mapped to the nearest kept color.

    Args:
        buffer: Source raster.
        step: Bucket size per channel.
        max_colors: Number of buckets kept.

    Returns:
        Tuple of (quantized raster, kept colors in rank order).
    """
    if max_colors < 1:
        raise ValueError(f"max_colors must be >= 1, got {max_colors}")
    if buffer.is_empty:
        return buffer.copy(), []

    rgb = buffer.rgb.reshape(-1, 3)
    sample = buffer.opaque_mask.ravel()
    if not sample.any():
        sample = np.ones_like(sample)

    buckets = np.clip(np.floor(rgb / step + 0.5) * step, 0, 255).astype(np.int64)
    keys = (buckets[:, 0] << 16) | (buckets[:, 1] << 8) | buckets[:, 2]
    uniq, first, counts = np.unique(keys[sample], return_index=True, return_counts=True)
    order = np.lexsort((first, -counts))[:max_colors]
    kept = uniq[order]
    palette = np.stack([(kept >> 16) & 255, (kept >> 8) & 255, kept & 255], axis=1)

    colors, inverse = np.unique(rgb, axis=0, return_inverse=True)
    mapped = nearest_color_indices(colors, palette)[inverse.ravel()]
    out = palette[mapped].reshape(buffer.height, buffer.width, 3).astype(np.uint8)
    kept_colors = [(int(r), int(g), int(b)) for r, g, b in palette]
    return RasterBuffer.from_rgb(out, buffer.alpha), kept_colors


def posterize_levels(buffer: RasterBuffer, levels: int) -> tuple[RasterBuffer, list[RGB]]:
    """Posterize to roughly ``levels`` colors with bucket size ``256 / levels``."""
    if levels < 1:
        raise ValueError(f"levels must be >= 1, got {levels}")
    return frequency_quantize(buffer, step=256 / levels, max_colors=levels)
