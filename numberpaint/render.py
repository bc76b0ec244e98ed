"""Rasterizing outlines with Pillow: contour strokes and filled shapes."""

import logging
import math

from PIL import Image, ImageDraw

from .boundary import RegionOutline, polygon_area
from .models import Point, RGB

logger = logging.getLogger(__name__)

CONTOUR_STYLES = ("solid", "dashed", "dotted", "double", "thick")

# (on, off) lengths in pixels
DASH_PATTERNS = {"dashed": (5.0, 5.0), "dotted": (2.0, 2.0)}


def _closed(points: list[Point]) -> list[tuple[float, float]]:
    coords = [(p.x, p.y) for p in points]
    if coords and coords[0] != coords[-1]:
        coords.append(coords[0])
    return coords


def dash_segments(
    points: list[Point], pattern: tuple[float, float]
) -> list[list[tuple[float, float]]]:
    """Split a closed polyline into the "on" pieces of a dash pattern."""
    on, off = pattern
    coords = _closed(points)
    pieces: list[list[tuple[float, float]]] = []
    current: list[tuple[float, float]] = []
    drawing = True
    remaining = on

    for (x0, y0), (x1, y1) in zip(coords, coords[1:]):
        seg_len = math.hypot(x1 - x0, y1 - y0)
        pos = 0.0
        if drawing and not current:
            current = [(x0, y0)]
        while seg_len - pos > remaining:
            pos += remaining
            t = pos / seg_len
            point = (x0 + (x1 - x0) * t, y0 + (y1 - y0) * t)
            if drawing:
                current.append(point)
                pieces.append(current)
                current = []
            else:
                current = [point]
            drawing = not drawing
            remaining = on if drawing else off
        remaining -= seg_len - pos
        if drawing:
            current.append((x1, y1))
    if drawing and len(current) > 1:
        pieces.append(current)
    return pieces


def _stroke(draw: ImageDraw.ImageDraw, outline: RegionOutline, color, width: int) -> None:
    if outline.circle is not None:
        c = outline.circle
        draw.ellipse(
            (c.center.x - c.radius, c.center.y - c.radius, c.center.x + c.radius, c.center.y + c.radius),
            outline=color,
            width=width,
        )
        return
    draw.line(_closed(outline.points), fill=color, width=width, joint="curve")


def draw_outline(
    draw: ImageDraw.ImageDraw,
    outline: RegionOutline,
    style: str = "solid",
    color: RGB = (0, 0, 0),
    width: int = 1,
) -> None:
    """Stroke one region outline in the given contour style."""
    if len(outline.points) < 2 and outline.circle is None:
        return
    if style == "thick":
        _stroke(draw, outline, color, width * 2)
    elif style == "double":
        _stroke(draw, outline, (255, 255, 255), width * 2)
        _stroke(draw, outline, color, width)
    elif style in DASH_PATTERNS:
        points = outline.circle.polygon() if outline.circle is not None else outline.points
        for piece in dash_segments(points, DASH_PATTERNS[style]):
            draw.line(piece, fill=color, width=width)
    else:
        _stroke(draw, outline, color, width)


def draw_contours(
    image: Image.Image,
    outlines: list[RegionOutline],
    style: str = "solid",
    color: RGB = (0, 0, 0),
    width: int = 1,
) -> None:
    """Stroke every outline onto an image in place.

    Raises:
        ValueError: If the style is unknown.
    """
    if style not in CONTOUR_STYLES:
        raise ValueError(f"Unknown contour style: {style!r}. Available: {list(CONTOUR_STYLES)}")
    draw = ImageDraw.Draw(image)
    for outline in outlines:
        draw_outline(draw, outline, style, tuple(color), width)


def fill_outline(draw: ImageDraw.ImageDraw, outline: RegionOutline, color: RGB) -> bool:
    """Fill one outline; returns False when it is not fillable."""
    if not outline.fillable:
        logger.debug("Skipping non-fillable outline of region %d", outline.region_id)
        return False
    if outline.circle is not None:
        c = outline.circle
        draw.ellipse(
            (c.center.x - c.radius, c.center.y - c.radius, c.center.x + c.radius, c.center.y + c.radius),
            fill=tuple(color),
        )
    else:
        draw.polygon([(p.x, p.y) for p in outline.points], fill=tuple(color))
    return True


def enclosed_area(outline: RegionOutline) -> float:
    if outline.circle is not None:
        return math.pi * outline.circle.radius**2
    return polygon_area(outline.points)


def render_shapes(
    width: int,
    height: int,
    outlines: list[RegionOutline],
    colors: dict[int, RGB],
    background: tuple[int, int, int, int] = (255, 255, 255, 255),
) -> Image.Image:
    """Draw every outline filled with its region color.

    An outer trace also covers the holes of its region, so shapes are filled
    from the largest enclosed area down and anything nested inside a region
    lands on top of it. Equal areas keep their given order.
    """
    image = Image.new("RGBA", (width, height), background)
    draw = ImageDraw.Draw(image)
    for outline in sorted(outlines, key=lambda o: -enclosed_area(o)):
        fill_outline(draw, outline, colors[outline.region_id])
    return image
