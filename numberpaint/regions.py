"""Connected-region detection, small-region merging and region graph queries."""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

from .models import Region, RGB
from .progress import CancellationToken, check_cancelled
from .raster import RasterBuffer

logger = logging.getLogger(__name__)

# Max per-channel difference from the seed pixel for a fill to spread
COLOR_TOLERANCE = 5

# Regions under this fraction of the image area are merged away
MIN_REGION_FRACTION = 0.001


@dataclass
class RegionMap:
    """Regions of one image plus a dense label array.

    Attributes:
        width: Image width.
        height: Image height.
        labels: ``(height, width)`` int32 array of region ids, 0 where the
            source pixel is transparent.
        regions: Regions in processing order, largest first.
        min_size: Area threshold that was used for merging.
    """

    width: int
    height: int
    labels: np.ndarray
    regions: list[Region] = field(default_factory=list)
    min_size: int = 0

    def __post_init__(self) -> None:
        self._by_id = {r.id: r for r in self.regions}

    def __len__(self) -> int:
        return len(self.regions)

    def __iter__(self):
        return iter(self.regions)

    def get(self, region_id: int) -> Region | None:
        return self._by_id.get(region_id)

    def region_at(self, x: int, y: int) -> Region | None:
        return region_at(self, x, y)


def color_distance(a: RGB, b: RGB) -> float:
    return math.sqrt((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 + (a[2] - b[2]) ** 2)


class RegionDetector:
    """Flood-fill region labeller with small-region merging.

    A fill spreads 4-connected over opaque pixels whose channels are each
    within ``tolerance`` of the seed pixel. Regions smaller than
    ``floor(width * height * min_fraction)`` are folded into the accepted
    region of nearest color, largest regions first.
    """

    def __init__(
        self,
        tolerance: int = COLOR_TOLERANCE,
        min_fraction: float = MIN_REGION_FRACTION,
        min_size: int | None = None,
        row_chunk: int = 16,
    ) -> None:
        self.tolerance = tolerance
        self.min_fraction = min_fraction
        self.min_size = min_size
        self.row_chunk = max(1, row_chunk)

    def detect(
        self,
        buffer: RasterBuffer | None,
        on_rows: Callable[[float], None] | None = None,
        cancel: CancellationToken | None = None,
    ) -> RegionMap:
        """Label and merge regions.

        Args:
            buffer: Quantized raster (any raster is treated as quantized).
            on_rows: Called with the scanned fraction (0-1) after each row chunk.
            cancel: Checked between row chunks.

        Returns:
            RegionMap; empty for a missing or zero-area buffer.

        Raises:
            PipelineCancelled: If ``cancel`` fires mid-scan.
        """
        if buffer is None or buffer.is_empty:
            w = buffer.width if buffer is not None else 0
            h = buffer.height if buffer is not None else 0
            return RegionMap(w, h, np.zeros((h, w), dtype=np.int32))

        w, h = buffer.width, buffer.height
        labels, regions = self._flood_fill(buffer, on_rows, cancel)
        logger.info("Found %d raw regions", len(regions))

        min_size = self._min_size(w, h)
        regions = merge_small_regions(regions, labels, min_size)
        logger.info("%d regions after merging (min size %d)", len(regions), min_size)

        return RegionMap(
            w, h, labels.reshape(h, w).astype(np.int32), regions, min_size
        )

    def _min_size(self, width: int, height: int) -> int:
        if self.min_size is not None:
            return self.min_size
        return int(math.floor(width * height * self.min_fraction))

    def _flood_fill(
        self,
        buffer: RasterBuffer,
        on_rows: Callable[[float], None] | None,
        cancel: CancellationToken | None,
    ) -> tuple[np.ndarray, list[Region]]:
        w, h = buffer.width, buffer.height
        n = w * h
        tol = self.tolerance
        flat = buffer.data.reshape(-1, 4)
        red = flat[:, 0].tolist()
        green = flat[:, 1].tolist()
        blue = flat[:, 2].tolist()
        opaque = (flat[:, 3] > 0).tolist()

        label = [0] * n
        regions: list[Region] = []
        next_id = 0

        for y in range(h):
            if y % self.row_chunk == 0:
                check_cancelled(cancel)
                if on_rows is not None:
                    on_rows(y / h)
            row = y * w
            for i in range(row, row + w):
                if label[i] or not opaque[i]:
                    continue
                next_id += 1
                sr, sg, sb = red[i], green[i], blue[i]
                label[i] = next_id
                stack = [i]
                members = []
                while stack:
                    p = stack.pop()
                    members.append(p)
                    px = p % w
                    for q in (
                        p - 1 if px > 0 else -1,
                        p + 1 if px < w - 1 else -1,
                        p - w,
                        p + w if p + w < n else -1,
                    ):
                        if (
                            q >= 0
                            and not label[q]
                            and opaque[q]
                            and abs(red[q] - sr) <= tol
                            and abs(green[q] - sg) <= tol
                            and abs(blue[q] - sb) <= tol
                        ):
                            label[q] = next_id
                            stack.append(q)
                members.sort()
                regions.append(Region(next_id, (sr, sg, sb), np.array(members), w))

        if on_rows is not None:
            on_rows(1.0)
        return np.array(label, dtype=np.int32), regions


def merge_small_regions(
    regions: list[Region], labels: np.ndarray, min_size: int
) -> list[Region]:
    """Fold undersized regions into the nearest-colored accepted region.

    Regions are visited largest first (discovery order on ties). A region
    at or above ``min_size`` is accepted; a smaller one moves all of its
    pixels into the accepted region of nearest color. An undersized region
    with nothing accepted yet is kept.

    Args:
        regions: Regions from one detection pass.
        labels: Flat or 2D label array, updated in place.
        min_size: Minimum accepted area.

    Returns:
        Accepted regions in processing order.
    """
    flat_labels = labels.reshape(-1)
    accepted: list[Region] = []
    merged = 0
    for region in sorted(regions, key=lambda r: -r.area):
        if region.area >= min_size or not accepted:
            accepted.append(region)
            continue
        target = min(accepted, key=lambda r: color_distance(r.color, region.color))
        target.absorb(region.pixels)
        flat_labels[region.pixels] = target.id
        merged += 1
    if merged:
        logger.debug("Merged %d undersized regions", merged)
    return accepted


def region_adjacency(labels: np.ndarray) -> dict[int, set[int]]:
    """Build the 4-neighbour adjacency graph of a label array.

    Transparent pixels (label 0) do not connect anything.

    Args:
        labels: 2D array of region ids.

    Returns:
        Dict where adj[region_id] = set of neighboring region ids.
    """
    adj: dict[int, set[int]] = {int(i): set() for i in np.unique(labels) if i != 0}

    pairs = []
    # Horizontal neighbours
    a, b = labels[:, :-1].ravel(), labels[:, 1:].ravel()
    pairs.append(np.stack([a, b], axis=1))
    # Vertical neighbours
    a, b = labels[:-1, :].ravel(), labels[1:, :].ravel()
    pairs.append(np.stack([a, b], axis=1))

    edges = np.concatenate(pairs)
    edges = edges[(edges[:, 0] != edges[:, 1]) & (edges[:, 0] > 0) & (edges[:, 1] > 0)]
    if len(edges) == 0:
        return adj
    for r1, r2 in np.unique(edges, axis=0):
        adj[int(r1)].add(int(r2))
        adj[int(r2)].add(int(r1))
    return adj


def region_at(region_map: RegionMap, x: int, y: int) -> Region | None:
    """Return the region covering pixel (x, y), or None."""
    if not (0 <= x < region_map.width and 0 <= y < region_map.height):
        return None
    return region_map.get(int(region_map.labels[y, x]))
