"""Pixel filters for pre- and post-enhancement.

Every filter takes a :class:`RasterBuffer` and returns a new one; the
``"off"`` level of each enhancement returns an identical copy. Alpha is
left alone except where the output size changes (upscaling).
"""

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image
from scipy import ndimage

from .raster import RasterBuffer

logger = logging.getLogger(__name__)

ANTI_ALIAS_LEVELS = ("off", "smart", "mid")
NOISE_LEVELS = ("off", "low", "high")
UPSCALE_LEVELS = {"off": 1, "200%": 2, "400%": 4}

_NEIGHBORS_8 = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))


@dataclass(frozen=True)
class FilterPreset:
    """Numeric constants for one generation of the enhancement filters."""

    edge_threshold: int = 30
    mid_blur_sigma: float = 0.5
    mid_sharpen: float = 0.3
    # Noise reduction
    pre_blur_sigma: float = 0.5
    bilateral_spatial_sigma: float = 3.5
    bilateral_color_sigma: float = 25.0
    bilateral_radius: int = 3  # flat areas
    bilateral_edge_radius: int = 2  # edge pixels
    circular_kernel: bool = True
    per_channel_color_weight: bool = False
    selective_sharpen: float = 0.3
    # Upscaling
    enhanced_upscale: bool = True
    edge_push: float = 0.5
    detail_boost: float = 0.5
    detail_softness: float = 100.0
    canny_blur_sigma: float = 0.5
    canny_high: float = 50.0
    canny_low: float = 20.0
    outline_darken: int = 40
    final_sharpen: float = 0.5
    sharpen_cap: float = 32.0


FILTER_PRESETS: dict[str, FilterPreset] = {
    "v1": FilterPreset(
        pre_blur_sigma=1.0,
        bilateral_spatial_sigma=3.0,
        bilateral_color_sigma=30.0,
        bilateral_radius=2,
        bilateral_edge_radius=2,
        circular_kernel=False,
        per_channel_color_weight=True,
        selective_sharpen=0.0,
        enhanced_upscale=False,
    ),
    "v2": FilterPreset(),
}
DEFAULT_PRESET = "v2"


def get_preset(name: str | FilterPreset) -> FilterPreset:
    """Resolve a preset name.

    Raises:
        ValueError: If the name is unknown.
    """
    if isinstance(name, FilterPreset):
        return name
    if name not in FILTER_PRESETS:
        raise ValueError(f"Unknown filter preset: {name!r}. Available: {list(FILTER_PRESETS)}")
    return FILTER_PRESETS[name]


def _rgb_float(buffer: RasterBuffer) -> np.ndarray:
    return buffer.rgb.astype(np.float64)


def _gray(rgb: np.ndarray) -> np.ndarray:
    return rgb.mean(axis=2)


def detect_edges(buffer: RasterBuffer, threshold: int = 30) -> np.ndarray:
    """Flag interior pixels whose summed RGB difference to any 8-neighbour exceeds threshold.

    Returns:
        ``(height, width)`` bool mask; the outermost ring is always False.
    """
    h, w = buffer.height, buffer.width
    edges = np.zeros((h, w), dtype=bool)
    if h < 3 or w < 3:
        return edges
    rgb = buffer.rgb.astype(np.int32)
    center = rgb[1:-1, 1:-1]
    inner = edges[1:-1, 1:-1]
    for dy, dx in _NEIGHBORS_8:
        neighbor = rgb[1 + dy : h - 1 + dy, 1 + dx : w - 1 + dx]
        inner |= np.abs(center - neighbor).sum(axis=2) > threshold
    return edges


def box_blur(rgb: np.ndarray) -> np.ndarray:
    return ndimage.uniform_filter(rgb, size=(3, 3, 1), mode="nearest")


def gaussian_blur(rgb: np.ndarray, sigma: float) -> np.ndarray:
    return ndimage.gaussian_filter(rgb, sigma=(sigma, sigma, 0), mode="nearest")


def sharpen(buffer: RasterBuffer, strength: float) -> RasterBuffer:
    """Unsharp mask with kernel ``[-s]*4 + [1 + 8s] + [-s]*4`` on interior pixels.

    Border pixels are copied unchanged.
    """
    if buffer.is_empty or strength == 0:
        return buffer.copy()
    return buffer.with_rgb(_sharpen_rgb(_rgb_float(buffer), strength))


def _sharpen_rgb(rgb: np.ndarray, strength: float) -> np.ndarray:
    kernel = np.full((3, 3, 1), -strength)
    kernel[1, 1, 0] = 1 + 8 * strength
    out = rgb.copy()
    if rgb.shape[0] >= 3 and rgb.shape[1] >= 3:
        convolved = ndimage.convolve(rgb, kernel, mode="nearest")
        out[1:-1, 1:-1] = convolved[1:-1, 1:-1]
    return np.clip(out, 0, 255)


def anti_alias(buffer: RasterBuffer, level: str = "off", preset: str | FilterPreset = DEFAULT_PRESET) -> RasterBuffer:
    """Soften jagged color steps.

    ``"smart"`` box-blurs only edge pixels; ``"mid"`` blurs everything
    lightly and restores detail with a light unsharp mask.
    """
    if level not in ANTI_ALIAS_LEVELS:
        raise ValueError(f"Unknown anti-aliasing level: {level!r}. Available: {list(ANTI_ALIAS_LEVELS)}")
    if level == "off" or buffer.is_empty:
        return buffer.copy()
    p = get_preset(preset)
    rgb = _rgb_float(buffer)
    if level == "smart":
        edges = detect_edges(buffer, p.edge_threshold)
        out = rgb.copy()
        out[edges] = box_blur(rgb)[edges]
        return buffer.with_rgb(out)
    blurred = gaussian_blur(rgb, p.mid_blur_sigma)
    return buffer.with_rgb(_sharpen_rgb(blurred, p.mid_sharpen))


def median_denoise(buffer: RasterBuffer, size: int = 3) -> RasterBuffer:
    """Per-channel median filter with clamped edges."""
    if buffer.is_empty:
        return buffer.copy()
    rgb = ndimage.median_filter(buffer.rgb, size=(size, size, 1), mode="nearest")
    return buffer.with_rgb(rgb)


def bilateral_filter(
    rgb: np.ndarray,
    spatial_sigma: float,
    color_sigma: float,
    radius: int,
    edge_mask: np.ndarray | None = None,
    edge_radius: int | None = None,
    circular: bool = True,
    per_channel: bool = False,
) -> np.ndarray:
    """Edge-preserving smoothing.

    Each neighbour within ``radius`` is weighted by
    ``exp(-d^2 / 2 spatial_sigma^2)`` times a color similarity term. With
    ``per_channel`` every channel uses its own absolute difference over
    ``2 color_sigma^2``; otherwise the squared Euclidean RGB distance over
    ``2 color_sigma^2`` is shared by all channels. Pixels flagged in
    ``edge_mask`` only sample neighbours within ``edge_radius``.

    Args:
        rgb: ``(H, W, 3)`` float array.
        spatial_sigma: Spatial falloff.
        color_sigma: Color falloff.
        radius: Sampling radius for unflagged pixels.
        edge_mask: Optional bool mask of pixels using the smaller radius.
        edge_radius: Radius for flagged pixels; defaults to ``radius``.
        circular: Sample a disk instead of a square.
        per_channel: Use per-channel absolute color distance.

    Returns:
        Filtered ``(H, W, 3)`` float array.
    """
    h, w = rgb.shape[:2]
    if edge_radius is None:
        edge_radius = radius
    padded = np.pad(rgb, ((radius, radius), (radius, radius), (0, 0)), mode="edge")
    total = np.zeros_like(rgb)
    weights = np.zeros_like(rgb) if per_channel else np.zeros((h, w, 1))
    outer_ok = None if edge_mask is None else ~edge_mask[..., np.newaxis]

    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            d2 = dx * dx + dy * dy
            if circular and d2 > radius * radius:
                continue
            neighbor = padded[radius + dy : radius + dy + h, radius + dx : radius + dx + w]
            spatial = np.exp(-d2 / (2 * spatial_sigma**2))
            diff = neighbor - rgb
            if per_channel:
                weight = spatial * np.exp(-np.abs(diff) / (2 * color_sigma**2))
            else:
                dist2 = (diff**2).sum(axis=2, keepdims=True)
                weight = spatial * np.exp(-dist2 / (2 * color_sigma**2))
            beyond = d2 > edge_radius**2 if circular else max(abs(dx), abs(dy)) > edge_radius
            if outer_ok is not None and beyond:
                weight = weight * outer_ok
            total += neighbor * weight
            weights += weight
    return total / np.maximum(weights, 1e-12)


def reduce_noise(
    buffer: RasterBuffer, level: str = "off", preset: str | FilterPreset = DEFAULT_PRESET
) -> RasterBuffer:
    """Median filter (``"low"``) or blur plus bilateral filter (``"high"``)."""
    if level not in NOISE_LEVELS:
        raise ValueError(f"Unknown noise reduction level: {level!r}. Available: {list(NOISE_LEVELS)}")
    if level == "off" or buffer.is_empty:
        return buffer.copy()
    if level == "low":
        return median_denoise(buffer)

    p = get_preset(preset)
    edges = detect_edges(buffer, p.edge_threshold)
    blurred = gaussian_blur(_rgb_float(buffer), p.pre_blur_sigma)
    smoothed = bilateral_filter(
        blurred,
        p.bilateral_spatial_sigma,
        p.bilateral_color_sigma,
        p.bilateral_radius,
        edge_mask=edges,
        edge_radius=p.bilateral_edge_radius,
        circular=p.circular_kernel,
        per_channel=p.per_channel_color_weight,
    )
    if p.selective_sharpen > 0:
        sharpened = _sharpen_rgb(smoothed, p.selective_sharpen)
        smoothed[edges] = sharpened[edges]
    return buffer.with_rgb(np.clip(smoothed, 0, 255))


def sobel_gradients(gray: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Horizontal and vertical Sobel responses of a 2D array."""
    gx = ndimage.sobel(gray, axis=1, mode="nearest")
    gy = ndimage.sobel(gray, axis=0, mode="nearest")
    return gx, gy


def _normalized_magnitude(rgb: np.ndarray) -> np.ndarray:
    gx, gy = sobel_gradients(_gray(rgb))
    mag = np.hypot(gx, gy)
    peak = mag.max()
    return mag / peak if peak > 0 else mag


def enhance_edges(buffer: RasterBuffer, amount: float = 0.5) -> RasterBuffer:
    """Push pixels away from their 3x3 mean in proportion to gradient strength."""
    if buffer.is_empty:
        return buffer.copy()
    rgb = _rgb_float(buffer)
    push = amount * _normalized_magnitude(rgb)[..., np.newaxis]
    return buffer.with_rgb(np.clip(rgb + push * (rgb - box_blur(rgb)), 0, 255))


def enhance_details(buffer: RasterBuffer, boost: float = 0.5, softness: float = 100.0) -> RasterBuffer:
    """Raise local contrast where the 3x3 luminance variance is high."""
    if buffer.is_empty:
        return buffer.copy()
    rgb = _rgb_float(buffer)
    gray = _gray(rgb)
    mean = ndimage.uniform_filter(gray, size=3, mode="nearest")
    variance = np.maximum(ndimage.uniform_filter(gray**2, size=3, mode="nearest") - mean**2, 0)
    gain = 1 + boost * variance / (variance + softness)
    local = box_blur(rgb)
    return buffer.with_rgb(np.clip(local + (rgb - local) * gain[..., np.newaxis], 0, 255))


def non_maximum_suppression(magnitude: np.ndarray, gx: np.ndarray, gy: np.ndarray) -> np.ndarray:
    """Zero out pixels that are not a local maximum along the gradient.

    Directions are binned to 0, 45, 90 and 135 degrees in image space
    (y grows downward).
    """
    h, w = magnitude.shape
    padded = np.pad(magnitude, 1)
    direction = (np.rint(np.arctan2(gy, gx) * 4 / np.pi).astype(int) + 4) % 4
    # (dy, dx) of one neighbour per bin; the other is mirrored
    steps = {0: (0, 1), 1: (1, 1), 2: (1, 0), 3: (1, -1)}
    keep = np.zeros((h, w), dtype=bool)
    for bin_id, (dy, dx) in steps.items():
        ahead = padded[1 + dy : 1 + dy + h, 1 + dx : 1 + dx + w]
        behind = padded[1 - dy : 1 - dy + h, 1 - dx : 1 - dx + w]
        keep |= (direction == bin_id) & (magnitude >= ahead) & (magnitude >= behind)
    return np.where(keep, magnitude, 0.0)


def hysteresis(magnitude: np.ndarray, high: float, low: float) -> np.ndarray:
    """Keep weak edges only when 8-connected to a strong edge."""
    weak = magnitude >= low
    strong = magnitude >= high
    labels, count = ndimage.label(weak, structure=np.ones((3, 3), dtype=bool))
    if count == 0:
        return np.zeros_like(weak)
    connected = np.unique(labels[strong])
    connected = connected[connected > 0]
    return np.isin(labels, connected)


def outline_mask(buffer: RasterBuffer, preset: str | FilterPreset = DEFAULT_PRESET) -> np.ndarray:
    """Canny-like edge mask: blur, Sobel, non-maximum suppression, hysteresis."""
    p = get_preset(preset)
    gray = _gray(gaussian_blur(_rgb_float(buffer), p.canny_blur_sigma))
    gx, gy = sobel_gradients(gray)
    thin = non_maximum_suppression(np.hypot(gx, gy), gx, gy)
    return hysteresis(thin, p.canny_high, p.canny_low)


def enhance_outlines(buffer: RasterBuffer, preset: str | FilterPreset = DEFAULT_PRESET) -> RasterBuffer:
    """Darken Canny-like edge pixels to draw visible outlines."""
    if buffer.is_empty:
        return buffer.copy()
    p = get_preset(preset)
    edges = outline_mask(buffer, p)
    rgb = buffer.rgb.astype(np.int32)
    rgb[edges] = np.maximum(rgb[edges] - p.outline_darken, 0)
    logger.debug("Darkened %d outline pixels", int(edges.sum()))
    return buffer.with_rgb(rgb.astype(np.uint8))


def edge_aware_sharpen(buffer: RasterBuffer, strength: float = 0.5, cap: float = 32.0) -> RasterBuffer:
    """Unsharp mask scaled by local edge magnitude with a capped contribution."""
    if buffer.is_empty:
        return buffer.copy()
    rgb = _rgb_float(buffer)
    local = strength * _normalized_magnitude(rgb)[..., np.newaxis]
    detail = np.clip(9 * local * (rgb - box_blur(rgb)), -cap, cap)
    return buffer.with_rgb(np.clip(rgb + detail, 0, 255))


def resize(buffer: RasterBuffer, factor: int) -> RasterBuffer:
    """LANCZOS resample by an integer factor."""
    img = buffer.to_image().resize(
        (buffer.width * factor, buffer.height * factor), Image.Resampling.LANCZOS
    )
    return RasterBuffer.from_image(img)


def upscale(
    buffer: RasterBuffer, level: str | int = "off", preset: str | FilterPreset = DEFAULT_PRESET
) -> RasterBuffer:
    """Upscale by 2x or 4x.

    With an enhancing preset: Sobel edge push, 2x LANCZOS, (for 4x) a
    detail boost and a second 2x step, Canny-like outline darkening and an
    edge-aware sharpen. Otherwise a plain resample and a 0.5 sharpen.

    Args:
        buffer: Source raster.
        level: ``"off"``, ``"200%"``, ``"400%"`` or a factor of 1, 2 or 4.
        preset: Filter preset name.

    Returns:
        New raster, ``factor`` times larger on each side.
    """
    factor = level if isinstance(level, int) else UPSCALE_LEVELS.get(level)
    if factor not in UPSCALE_LEVELS.values():
        raise ValueError(f"Unknown upscaling level: {level!r}. Available: {list(UPSCALE_LEVELS)}")
    if factor == 1 or buffer.is_empty:
        return buffer.copy()

    p = get_preset(preset)
    if not p.enhanced_upscale:
        return sharpen(resize(buffer, factor), p.final_sharpen)

    out = enhance_edges(buffer, p.edge_push)
    out = resize(out, 2)
    if factor == 4:
        out = enhance_details(out, p.detail_boost, p.detail_softness)
        out = resize(out, 2)
    out = enhance_outlines(out, p)
    out = edge_aware_sharpen(out, p.final_sharpen, p.sharpen_cap)
    logger.info("Upscaled %dx%d -> %dx%d", buffer.width, buffer.height, out.width, out.height)
    return out


def enhance(
    buffer: RasterBuffer,
    anti_aliasing: str = "off",
    noise_reduction: str = "off",
    upscaling: str = "off",
    preset: str | FilterPreset = DEFAULT_PRESET,
) -> RasterBuffer:
    """Apply noise reduction, anti-aliasing and upscaling in that order."""
    out = reduce_noise(buffer, noise_reduction, preset)
    out = anti_alias(out, anti_aliasing, preset)
    return upscale(out, upscaling, preset)
