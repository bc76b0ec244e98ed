"""Number label placement and badge rendering."""

import logging

import numpy as np
from PIL import Image, ImageDraw, ImageFont
from scipy.spatial import cKDTree

from .boundary import boundary_pixels
from .models import Point, Region, RGB

logger = logging.getLogger(__name__)

NUMBER_STYLES = ("plain", "circle", "square", "outline", "bubble")

DEFAULT_FONT = "DejaVuSans.ttf"
DEFAULT_BOLD_FONT = "DejaVuSans-Bold.ttf"

MAX_SAMPLES = 100
CIRCLE_SCALE = 0.8  # badge radius / font size
SQUARE_SCALE = 1.6  # badge side / font size
TEXT_STROKE = 3
BUBBLE_INNER = (255, 255, 255, 204)
BUBBLE_OUTER = (200, 200, 200, 51)


def load_font(family: str, size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    """Load a TrueType font, falling back to Pillow's built-in font."""
    try:
        return ImageFont.truetype(family, size)
    except OSError:
        logger.debug("Font %r not found, using default font", family)
        return ImageFont.load_default(size=size)


def find_anchor(region: Region, max_samples: int = MAX_SAMPLES) -> Point:
    """Pick an approximately most-interior pixel of a region.

    Every ``max(1, area // max_samples)``-th region pixel in raster order
    is sampled, so the whole region is covered; the sample farthest
    from its nearest boundary pixel wins (first on ties). The centroid is
    used when the region has no boundary pixels or every sample lies on
    the boundary.

    Args:
        region: Region to label.
        max_samples: Target sample count; the stride rounds down, so up to
            twice as many pixels can be sampled.

    Returns:
        Anchor in pixel coordinates.
    """
    if region.area == 0:
        return region.center
    boundary = boundary_pixels(region)
    if len(boundary) == 0:
        logger.debug("Region %d has no boundary pixels, using centroid", region.id)
        return region.center

    pixels = np.sort(region.pixels)
    stride = max(1, pixels.size // max_samples)
    picks = pixels[::stride]
    samples = np.stack([picks % region.width, picks // region.width], axis=1)

    dists, _ = cKDTree(boundary).query(samples)
    best = int(np.argmax(dists))
    if dists[best] <= 0:
        return region.center
    return Point(float(samples[best, 0]), float(samples[best, 1]))


def badge_geometry(style: str, anchor: Point, font_size: int) -> tuple[float, float, float, float] | None:
    """Bounding box of the badge shape behind a number, or None for text-only styles."""
    cx, cy = anchor.x + 0.5, anchor.y + 0.5
    if style in ("circle", "bubble"):
        r = CIRCLE_SCALE * font_size
        return (cx - r, cy - r, cx + r, cy + r)
    if style == "square":
        half = SQUARE_SCALE * font_size / 2
        return (cx - half, cy - half, cx + half, cy + half)
    return None


def _bubble_layer(box: tuple[float, float, float, float]) -> tuple[Image.Image, tuple[int, int]]:
    x0, y0, x1, y1 = (int(np.floor(box[0])), int(np.floor(box[1])), int(np.ceil(box[2])), int(np.ceil(box[3])))
    r = (box[2] - box[0]) / 2
    cx, cy = (box[0] + box[2]) / 2, (box[1] + box[3]) / 2
    ys, xs = np.mgrid[y0:y1, x0:x1] + 0.5
    inside = (xs - cx) ** 2 + (ys - cy) ** 2 <= r * r
    # Highlight centered up-left of the badge
    t = np.clip(np.hypot(xs - (cx - r / 3), ys - (cy - r / 3)) / r, 0.0, 1.0)[..., np.newaxis]
    inner = np.array(BUBBLE_INNER, dtype=np.float64)
    outer = np.array(BUBBLE_OUTER, dtype=np.float64)
    rgba = inner * (1 - t) + outer * t
    rgba[..., 3] *= inside
    layer = Image.fromarray(np.rint(rgba).astype(np.uint8))
    return layer, (x0, y0)


def _composite(image: Image.Image, layer: Image.Image, origin: tuple[int, int]) -> None:
    """Alpha-composite a layer onto an RGBA image, clipped to its bounds."""
    x0, y0 = origin
    left, top = max(0, -x0), max(0, -y0)
    right = min(layer.width, image.width - x0)
    bottom = min(layer.height, image.height - y0)
    if right <= left or bottom <= top:
        return
    image.alpha_composite(layer.crop((left, top, right, bottom)), (x0 + left, y0 + top))


class NumberPlacer:
    """Places and draws region numbers.

    Args:
        style: One of ``NUMBER_STYLES``.
        font_size: Font size in pixels; badge size scales from it.
        font_family: TrueType font for regular text.
        font_color: Text and badge stroke color.
        bold_font_family: TrueType font for the ``plain`` style.
    """

    def __init__(
        self,
        style: str = "plain",
        font_size: int = 12,
        font_family: str = DEFAULT_FONT,
        font_color: RGB = (0, 0, 0),
        bold_font_family: str = DEFAULT_BOLD_FONT,
    ) -> None:
        if style not in NUMBER_STYLES:
            raise ValueError(f"Unknown number style: {style!r}. Available: {list(NUMBER_STYLES)}")
        self.style = style
        self.font_size = font_size
        self.font_color = tuple(font_color)
        self.font = load_font(font_family, font_size)
        self.bold_font = load_font(bold_font_family, font_size) if style == "plain" else self.font

    def find_anchor(self, region: Region) -> Point:
        return find_anchor(region)

    def draw(self, image: Image.Image, anchor: Point, number: int) -> None:
        """Draw one numbered badge centered on a pixel anchor."""
        draw = ImageDraw.Draw(image)
        box = badge_geometry(self.style, anchor, self.font_size)
        color = self.font_color

        if self.style == "circle":
            draw.ellipse(box, fill=(255, 255, 255), outline=color, width=1)
        elif self.style == "square":
            draw.rectangle(box, fill=(255, 255, 255), outline=color, width=1)
        elif self.style == "bubble":
            draw.ellipse(box, fill=(255, 255, 255))
            _composite(image, *_bubble_layer(box))
            draw = ImageDraw.Draw(image)
            draw.ellipse(box, outline=color, width=1)

        text = str(number)
        font = self.bold_font if self.style == "plain" else self.font
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        x = anchor.x + 0.5 - (left + right) / 2
        y = anchor.y + 0.5 - (top + bottom) / 2
        if self.style in ("plain", "outline"):
            draw.text((x, y), text, fill=color, font=font, stroke_width=TEXT_STROKE, stroke_fill=(255, 255, 255))
        else:
            draw.text((x, y), text, fill=color, font=font)

    def place(self, image: Image.Image, region: Region, number: int) -> Point:
        """Find the anchor for a region, draw its number and return the anchor."""
        anchor = self.find_anchor(region)
        self.draw(image, anchor, number)
        return anchor
