"""Filled and stroked layer modes.

These are standalone raster transforms kept next to the region pipeline.
Filled modes stack or merge flat color layers; stroked modes keep only
edge pixels and make everything else transparent.
"""

import logging

import numpy as np

from .filters import sobel_gradients
from .quantization import frequency_quantize, nearest_color_indices
from .raster import RasterBuffer

logger = logging.getLogger(__name__)

MAX_LAYERS = 32
OVERLAP_TOLERANCE = 30
MERGE_TOLERANCE = 60
NO_OVERLAP_MIN_SIZE = 100
STROKE_TOLERANCE = 30
MEDIUM_STROKE_RADIUS = 2
THIN_STROKE_THRESHOLD = 20

# (dx1, dy1, dx2, dy2): a gap pixel between two edge pixels gets filled
_GAP_PAIRS = (
    (-1, 0, 1, 0),
    (0, -1, 0, 1),
    (-1, -1, 1, 1),
    (1, -1, -1, 1),
)

_THIN_GAP_PAIRS = (
    (-2, 0, -1, 0),
    (-1, 0, 1, 0),
    (1, 0, 2, 0),
    (0, -2, 0, -1),
    (0, -1, 0, 1),
    (0, 1, 0, 2),
    (-2, -2, -1, -1),
    (-1, -1, 1, 1),
    (1, 1, 2, 2),
    (-2, 2, -1, 1),
    (-1, 1, 1, -1),
    (1, -1, 2, -2),
)


def _shift(arr: np.ndarray, dx: int, dy: int, fill=0) -> np.ndarray:
    """Array whose value at (y, x) is ``arr[y + dy, x + dx]``, ``fill`` outside."""
    h, w = arr.shape[:2]
    out = np.full_like(arr, fill)
    ys_dst = slice(max(0, -dy), min(h, h - dy))
    xs_dst = slice(max(0, -dx), min(w, w - dx))
    ys_src = slice(max(0, dy), min(h, h + dy))
    xs_src = slice(max(0, dx), min(w, w + dx))
    out[ys_dst, xs_dst] = arr[ys_src, xs_src]
    return out


def _interior(h: int, w: int, margin: int) -> np.ndarray:
    mask = np.zeros((h, w), dtype=bool)
    if h > 2 * margin and w > 2 * margin:
        mask[margin : h - margin, margin : w - margin] = True
    return mask


def _ranked_colors(rgb: np.ndarray, limit: int = MAX_LAYERS) -> np.ndarray:
    """Exact colors by descending frequency, first-encountered on ties."""
    flat = rgb.reshape(-1, 3).astype(np.int64)
    keys = (flat[:, 0] << 16) | (flat[:, 1] << 8) | flat[:, 2]
    uniq, first, counts = np.unique(keys, return_index=True, return_counts=True)
    kept = uniq[np.lexsort((first, -counts))[:limit]]
    return np.stack([(kept >> 16) & 255, (kept >> 8) & 255, kept & 255], axis=1)


def _bucketed(rgb: np.ndarray, step: int = 32) -> np.ndarray:
    return np.clip(np.floor(rgb / step + 0.5) * step, 0, 255).astype(np.int64)


def _matches(rgb: np.ndarray, color: np.ndarray, tolerance: int) -> np.ndarray:
    return np.all(np.abs(rgb.astype(np.int64) - color) < tolerance, axis=2)


def _stacked_layers(buffer: RasterBuffer, tolerance: int) -> RasterBuffer:
    rgb = buffer.rgb
    out = np.zeros((buffer.height, buffer.width, 4), dtype=np.uint8)
    for color in _ranked_colors(rgb):
        mask = _matches(rgb, color, tolerance)
        out[mask, :3] = color
        out[mask, 3] = 255
    return RasterBuffer(buffer.width, buffer.height, out)


def overlap_mode(buffer: RasterBuffer) -> RasterBuffer:
    """Stack the 32 most frequent colors, each claiming pixels within 30 per channel."""
    return _stacked_layers(buffer, OVERLAP_TOLERANCE)


def merge_mode(buffer: RasterBuffer) -> RasterBuffer:
    """Like overlap mode with a tolerance of 60 so similar colors merge."""
    return _stacked_layers(buffer, MERGE_TOLERANCE)


def no_overlap_mode(buffer: RasterBuffer, min_size: int = NO_OVERLAP_MIN_SIZE) -> RasterBuffer:
    """Group pixels by 32-step color buckets; small groups join the nearest large group.

    Groups are visited in first-encountered order. A group smaller than
    ``min_size`` is recolored with the nearest group accepted so far; with
    none accepted yet its pixels stay transparent. Output is opaque
    elsewhere.
    """
    buckets = _bucketed(buffer.rgb.reshape(-1, 3))
    keys = (buckets[:, 0] << 16) | (buckets[:, 1] << 8) | buckets[:, 2]
    uniq, first, inverse, counts = np.unique(
        keys, return_index=True, return_inverse=True, return_counts=True
    )
    inverse = inverse.ravel()
    colors = np.stack([(uniq >> 16) & 255, (uniq >> 8) & 255, uniq & 255], axis=1)

    target = np.full(len(uniq), -1, dtype=np.int64)
    accepted: list[int] = []
    for g in np.argsort(first, kind="stable"):
        if counts[g] >= min_size:
            accepted.append(int(g))
            target[g] = g
        elif accepted:
            nearest = nearest_color_indices(colors[g : g + 1], colors[accepted])[0]
            target[g] = accepted[nearest]

    out = np.zeros((buffer.pixel_count, 4), dtype=np.uint8)
    assigned = target[inverse]
    ok = assigned >= 0
    out[ok, :3] = colors[assigned[ok]]
    out[ok, 3] = 255
    return RasterBuffer(buffer.width, buffer.height, out.reshape(buffer.height, buffer.width, 4))


def single_mode(buffer: RasterBuffer) -> RasterBuffer:
    """Frequency-quantize to 32 colors with every pixel opaque."""
    quantized, _ = frequency_quantize(RasterBuffer.from_rgb(buffer.rgb))
    return quantized


def _fill_gaps(
    edges: np.ndarray, pairs: tuple[tuple[int, int, int, int], ...], region: np.ndarray
) -> list[tuple[np.ndarray, tuple[int, int, int, int]]]:
    """Find non-edge pixels lying between two edge pixels.

    Returns:
        ``(mask, pair)`` per pair, each pixel claimed by its first pair only.
    """
    claimed = edges.copy()
    fills = []
    for pair in pairs:
        dx1, dy1, dx2, dy2 = pair
        gap = region & ~claimed & _shift(edges, dx1, dy1, False) & _shift(edges, dx2, dy2, False)
        if gap.any():
            fills.append((gap, pair))
            claimed |= gap
    return fills


def _averaged_gaps(
    rgb: np.ndarray, out: np.ndarray, edges: np.ndarray, pairs, region: np.ndarray
) -> None:
    src = rgb.astype(np.int64)
    for gap, (dx1, dy1, dx2, dy2) in _fill_gaps(edges, pairs, region):
        avg = np.floor((_shift(src, dx1, dy1) + _shift(src, dx2, dy2)) / 2 + 0.5)
        out[gap, :3] = avg[gap]
        out[gap, 3] = 255


def heavy_stroke_mode(buffer: RasterBuffer) -> RasterBuffer:
    """Outline each dominant color's areas in that color, bridging one-pixel gaps."""
    h, w = buffer.height, buffer.width
    rgb = buffer.rgb
    out = np.zeros((h, w, 4), dtype=np.uint8)
    interior = _interior(h, w, 1)
    for color in _ranked_colors(_bucketed(rgb)):
        match = _matches(rgb, color, STROKE_TOLERANCE)
        outside = np.zeros_like(match)
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if dx or dy:
                    outside |= ~_shift(match, dx, dy, False)
        edges = match & outside & interior
        layer = edges.copy()
        for gap, _ in _fill_gaps(edges, _GAP_PAIRS, interior):
            layer |= gap
        out[layer, :3] = color
        out[layer, 3] = 255
    return RasterBuffer(w, h, out)


def medium_stroke_mode(buffer: RasterBuffer) -> RasterBuffer:
    """Keep source-colored pixels that differ by more than 30 from anything within 2 px."""
    h, w = buffer.height, buffer.width
    r = MEDIUM_STROKE_RADIUS
    src = buffer.rgb.astype(np.int64)
    interior = _interior(h, w, r)
    edges = np.zeros((h, w), dtype=bool)
    for dy in range(-r, r + 1):
        for dx in range(-r, r + 1):
            if dx or dy:
                edges |= np.abs(src - _shift(src, dx, dy)).sum(axis=2) > STROKE_TOLERANCE
    edges &= interior

    out = np.zeros((h, w, 4), dtype=np.uint8)
    out[edges, :3] = buffer.rgb[edges]
    out[edges, 3] = 255
    _averaged_gaps(buffer.rgb, out, edges, _GAP_PAIRS, interior)
    return RasterBuffer(w, h, out)


def thin_stroke_mode(buffer: RasterBuffer) -> RasterBuffer:
    """Keep pixels whose Sobel magnitude exceeds 20, bridging gaps of up to 2 px."""
    h, w = buffer.height, buffer.width
    interior = _interior(h, w, 1)
    gx, gy = sobel_gradients(buffer.rgb.astype(np.float64).mean(axis=2))
    edges = (np.hypot(gx, gy) > THIN_STROKE_THRESHOLD) & interior

    out = np.zeros((h, w, 4), dtype=np.uint8)
    out[edges, :3] = buffer.rgb[edges]
    out[edges, 3] = 255
    _averaged_gaps(buffer.rgb, out, edges, _THIN_GAP_PAIRS, interior)
    return RasterBuffer(w, h, out)


def centerline_mode(buffer: RasterBuffer, color_count: int = MAX_LAYERS) -> RasterBuffer:
    """Black one-pixel borders between quantized color areas on white."""
    h, w = buffer.height, buffer.width
    quantized, palette = frequency_quantize(
        RasterBuffer.from_rgb(buffer.rgb), max_colors=min(color_count, MAX_LAYERS)
    )
    q = quantized.rgb.astype(np.int64)
    keys = (q[..., 0] << 16) | (q[..., 1] << 8) | q[..., 2]
    border = np.zeros((h, w), dtype=bool)
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dx or dy:
                border |= keys != _shift(keys, dx, dy, -1)
    border &= _interior(h, w, 1)

    out = np.full((h, w, 4), 255, dtype=np.uint8)
    out[border, :3] = 0
    logger.debug("Centerline mode: %d colors, %d border pixels", len(palette), int(border.sum()))
    return RasterBuffer(w, h, out)


FILLED_MODES = {
    "overlap": {"function": overlap_mode, "description": "Stack colors in order of frequency"},
    "merge": {"function": merge_mode, "description": "Combine similar colors with a wider tolerance"},
    "no_overlap": {"function": no_overlap_mode, "description": "Non-overlapping flat color areas"},
    "single": {"function": single_mode, "description": "Each pixel mapped to one of 32 colors"},
}

STROKED_MODES = {
    "heavy": {"function": heavy_stroke_mode, "description": "Thick colored outlines"},
    "medium": {"function": medium_stroke_mode, "description": "Medium-weight colored outlines"},
    "thin": {"function": thin_stroke_mode, "description": "Fine colored outlines"},
    "centerline": {"function": centerline_mode, "description": "Black region borders on white"},
}

LAYER_MODES = {"filled": FILLED_MODES, "stroked": STROKED_MODES}


def apply_layer_mode(kind: str, name: str, buffer: RasterBuffer) -> RasterBuffer:
    """Run a layer mode by kind (``"filled"``/``"stroked"``) and name.

    Raises:
        ValueError: If kind or name is not recognized.
    """
    if kind not in LAYER_MODES:
        raise ValueError(f"Unknown layer kind: {kind!r}. Available: {list(LAYER_MODES)}")
    modes = LAYER_MODES[kind]
    if name not in modes:
        raise ValueError(f"Unknown {kind} mode: {name!r}. Available: {list(modes)}")
    if buffer.is_empty:
        return buffer.copy()
    return modes[name]["function"](buffer)
