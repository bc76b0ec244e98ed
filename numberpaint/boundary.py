"""Region boundary extraction, simplification, smoothing and shape fitting.

Boundaries are walked along the pixel-corner lattice: vertex ``(x, y)`` is
the top-left corner of pixel ``(x, y)``, so a traced outline encloses
exactly the region's pixel squares.
"""

import logging
import math
from dataclasses import dataclass, field

import numpy as np
from scipy.ndimage import binary_erosion, label

from .models import Point, Region

logger = logging.getLogger(__name__)

ROUNDNESS_LEVELS = ("sharp", "medium", "round")
CURVE_KINDS = ("bezier", "catmull_rom")

DEFAULT_TOLERANCE = 1.0
DEFAULT_TENSION = 0.3

# Circle classification
MIN_CIRCLE_POINTS = 8
MAX_MEAN_DEVIATION = 0.1
MAX_RADIAL_DEVIATION = 0.2

# Headings in image space (y grows downward): E, S, W, N
_MOVES = ((1, 0), (0, 1), (-1, 0), (0, -1))


@dataclass(frozen=True)
class Circle:
    """A fitted circle and its relative mean absolute radial deviation."""

    center: Point
    radius: float
    deviation: float

    def polygon(self, segments: int = 64) -> list[Point]:
        angles = np.linspace(0.0, 2.0 * math.pi, segments, endpoint=False)
        return [
            Point(self.center.x + self.radius * math.cos(a), self.center.y + self.radius * math.sin(a))
            for a in angles
        ]


@dataclass
class RegionOutline:
    """Drawable outline of one region.

    Attributes:
        region_id: Id of the outlined region.
        boundary: Raw traced corner polyline.
        points: Polyline to draw or fill (simplified, smoothed or flattened).
        kind: ``"polygon"``, ``"curve"`` or ``"circle"``.
        circle: Fitted circle when ``kind == "circle"``.
        controls: Bezier control pairs for ``"curve"`` outlines.
    """

    region_id: int
    boundary: list[Point]
    points: list[Point]
    kind: str = "polygon"
    circle: Circle | None = None
    controls: list[tuple[Point, Point]] = field(default_factory=list)

    @property
    def fillable(self) -> bool:
        return self.circle is not None or len(self.points) >= 3


def region_mask(region: Region) -> tuple[np.ndarray, int, int]:
    """Rasterize a region into a cropped mask with a one-pixel empty border.

    Returns:
        Tuple of (bool mask, x offset, y offset); mask cell ``(row, col)``
        is image pixel ``(col + x offset, row + y offset)``.
    """
    b = region.bounds
    ox, oy = b.min_x - 1, b.min_y - 1
    mask = np.zeros((b.height + 2, b.width + 2), dtype=bool)
    mask[region.ys() - oy, region.xs() - ox] = True
    return mask, ox, oy


def boundary_pixels(region: Region) -> np.ndarray:
    """Pixels of the region with at least one 8-neighbour outside it.

    Pixels outside the image count as outside the region.

    Returns:
        ``(N, 2)`` int array of ``(x, y)`` pixel coordinates in raster order.
    """
    if region.area == 0:
        return np.zeros((0, 2), dtype=np.int64)
    mask, ox, oy = region_mask(region)
    interior = binary_erosion(mask, structure=np.ones((3, 3), dtype=bool), border_value=0)
    rows, cols = np.nonzero(mask & ~interior)
    return np.stack([cols + ox, rows + oy], axis=1)


def _edge_ok(m: list[list[bool]], x: int, y: int, heading: int) -> bool:
    # Region pixel on the right of the edge, outside pixel on the left
    if heading == 0:
        return m[y][x] and not m[y - 1][x]
    if heading == 1:
        return m[y][x - 1] and not m[y][x]
    if heading == 2:
        return m[y - 1][x - 1] and not m[y][x - 1]
    return m[y - 1][x] and not m[y - 1][x - 1]


def _start_pixel(mask: np.ndarray) -> tuple[int, int]:
    """Mask column and row of the top-left pixel of the largest 4-connected part."""
    components, count = label(mask)
    if count > 1:
        sizes = np.bincount(components.ravel())[1:]
        mask = components == int(np.argmax(sizes)) + 1
    row, col = np.unravel_index(int(np.argmax(mask)), mask.shape)
    return int(col), int(row)


def trace_boundary(region: Region) -> list[Point]:
    """Walk the outer boundary of a region clockwise.

    Starts heading east at the top-left corner of the first pixel, in raster
    order, of the region's largest 4-connected part; pixels merged in from
    detached fragments are left out of the walk. At each vertex the walk
    tries a right turn, then straight ahead, then a left turn, so diagonal
    pinches split the way 4-connectivity does. The walk stops on returning
    to the start vertex; if it cannot continue, or exceeds its step guard,
    the partial walk is returned.

    Args:
        region: Region to trace.

    Returns:
        Ordered corner vertices (the start vertex is not repeated).
    """
    if region.area == 0:
        return []
    mask, ox, oy = region_mask(region)
    m = mask.tolist()
    sx, sy = _start_pixel(mask)

    x, y, heading = sx, sy, 0
    points = [Point(float(sx + ox), float(sy + oy))]
    for _ in range(4 * region.area + 4):
        for candidate in ((heading + 1) % 4, heading, (heading + 3) % 4):
            if _edge_ok(m, x, y, candidate):
                break
        else:
            logger.debug("Open contour for region %d after %d points", region.id, len(points))
            return points
        dx, dy = _MOVES[candidate]
        x += dx
        y += dy
        heading = candidate
        if x == sx and y == sy:
            return points
        points.append(Point(float(x + ox), float(y + oy)))

    logger.debug("Trace step guard hit for region %d", region.id)
    return points


def _as_array(points: list[Point]) -> np.ndarray:
    return np.array([(p.x, p.y) for p in points], dtype=np.float64).reshape(-1, 2)


def _as_points(arr: np.ndarray) -> list[Point]:
    return [Point(float(x), float(y)) for x, y in arr]


def perpendicular_distances(pts: np.ndarray, start: np.ndarray, end: np.ndarray) -> np.ndarray:
    """Distance of each point to the line through start and end."""
    chord = end - start
    length = math.hypot(chord[0], chord[1])
    rel = pts - start
    if length == 0:
        return np.hypot(rel[:, 0], rel[:, 1])
    return np.abs(chord[0] * rel[:, 1] - chord[1] * rel[:, 0]) / length


def simplify(points: list[Point], tolerance: float = DEFAULT_TOLERANCE) -> list[Point]:
    """Ramer-Douglas-Peucker simplification.

    The farthest point from the chord between the current endpoints is kept
    when its distance exceeds ``tolerance``, and both halves are simplified
    again; otherwise the span collapses to its endpoints.
    """
    if len(points) < 3:
        return list(points)
    pts = _as_array(points)
    keep = np.zeros(len(pts), dtype=bool)
    keep[0] = keep[-1] = True
    stack = [(0, len(pts) - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        dists = perpendicular_distances(pts[first + 1 : last], pts[first], pts[last])
        idx = int(np.argmax(dists))
        if dists[idx] > tolerance:
            split = first + 1 + idx
            keep[split] = True
            stack.append((split, last))
            stack.append((first, split))
    return [p for p, k in zip(points, keep) if k]


def catmull_rom(points: list[Point], samples: int = 10) -> list[Point]:
    """Closed Catmull-Rom spline through ``points``.

    Each segment is sampled at ``t = 0, 1/samples, ..., (samples-1)/samples``;
    the next segment supplies ``t = 1``.
    """
    n = len(points)
    if n < 3:
        return list(points)
    pts = _as_array(points)
    p0 = np.roll(pts, 1, axis=0)
    p1 = pts
    p2 = np.roll(pts, -1, axis=0)
    p3 = np.roll(pts, -2, axis=0)
    t = (np.arange(samples) / samples)[np.newaxis, :, np.newaxis]
    a = 2 * p1
    b = p2 - p0
    c = 2 * p0 - 5 * p1 + 4 * p2 - p3
    d = -p0 + 3 * p1 - 3 * p2 + p3
    curve = 0.5 * (
        a[:, np.newaxis] + b[:, np.newaxis] * t + c[:, np.newaxis] * t**2 + d[:, np.newaxis] * t**3
    )
    return _as_points(curve.reshape(-1, 2))


def bezier_controls(points: list[Point], tension: float = DEFAULT_TENSION) -> list[tuple[Point, Point]]:
    """Cubic Bezier control pairs for a closed polyline.

    For vertex ``i``: ``cp1 = P[i] + (P[i+1] - P[i-1]) * tension`` and
    ``cp2 = P[i+1] - (P[i+2] - P[i]) * tension``. Segment ``i`` runs from
    ``P[i]`` to ``P[i+1]`` through ``cp1`` and ``cp2``.
    """
    if len(points) < 3:
        return []
    pts = _as_array(points)
    prev = np.roll(pts, 1, axis=0)
    nxt = np.roll(pts, -1, axis=0)
    nxt2 = np.roll(pts, -2, axis=0)
    cp1 = pts + (nxt - prev) * tension
    cp2 = nxt - (nxt2 - pts) * tension
    return list(zip(_as_points(cp1), _as_points(cp2)))


def flatten_bezier(
    points: list[Point], controls: list[tuple[Point, Point]], steps: int = 8
) -> list[Point]:
    """Sample closed cubic Bezier segments into a polyline."""
    if len(points) < 3 or len(controls) != len(points):
        return list(points)
    pts = _as_array(points)
    p0 = pts
    p3 = np.roll(pts, -1, axis=0)
    c1 = _as_array([c[0] for c in controls])
    c2 = _as_array([c[1] for c in controls])
    t = (np.arange(steps) / steps)[np.newaxis, :, np.newaxis]
    u = 1 - t
    curve = (
        u**3 * p0[:, np.newaxis]
        + 3 * u**2 * t * c1[:, np.newaxis]
        + 3 * u * t**2 * c2[:, np.newaxis]
        + t**3 * p3[:, np.newaxis]
    )
    return _as_points(curve.reshape(-1, 2))


def polygon_area(points: list[Point]) -> float:
    """Unsigned shoelace area of a closed polygon."""
    if len(points) < 3:
        return 0.0
    pts = _as_array(points)
    x, y = pts[:, 0], pts[:, 1]
    return abs(float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))) / 2.0


def fit_circle(points: list[Point]) -> Circle | None:
    """Fit a circle by centroid and mean distance."""
    if not points:
        return None
    pts = _as_array(points)
    center = pts.mean(axis=0)
    dists = np.hypot(pts[:, 0] - center[0], pts[:, 1] - center[1])
    radius = float(dists.mean())
    if radius <= 0:
        return None
    deviation = float(np.abs(dists - radius).mean()) / radius
    return Circle(Point(float(center[0]), float(center[1])), radius, deviation)


def detect_circle(points: list[Point]) -> Circle | None:
    """Return the fitted circle if the boundary is round enough, else None.

    Round enough means at least 8 points, a mean absolute radial deviation
    under 10% of the radius, and no single point off by more than 20%.
    """
    if len(points) < MIN_CIRCLE_POINTS:
        return None
    circle = fit_circle(points)
    if circle is None or circle.deviation >= MAX_MEAN_DEVIATION:
        return None
    pts = _as_array(points)
    dists = np.hypot(pts[:, 0] - circle.center.x, pts[:, 1] - circle.center.y)
    if float(np.abs(dists - circle.radius).max()) >= MAX_RADIAL_DEVIATION * circle.radius:
        return None
    return circle


class BoundaryTracer:
    """Turns regions into drawable outlines.

    Args:
        roundness: ``"sharp"`` draws the raw trace, ``"medium"`` the RDP
            simplified trace, ``"round"`` a smooth curve through the
            simplified trace.
        min_area: Regions with fewer pixels are dropped.
        detect_circles: Replace round boundaries with a fitted circle.
        tolerance: RDP tolerance in pixels.
        tension: Bezier tension for round outlines.
        curve: ``"bezier"`` or ``"catmull_rom"`` smoothing for round outlines.
    """

    def __init__(
        self,
        roundness: str = "sharp",
        min_area: int = 0,
        detect_circles: bool = False,
        tolerance: float = DEFAULT_TOLERANCE,
        tension: float = DEFAULT_TENSION,
        curve: str = "bezier",
    ) -> None:
        if roundness not in ROUNDNESS_LEVELS:
            raise ValueError(f"Unknown roundness: {roundness!r}. Available: {list(ROUNDNESS_LEVELS)}")
        if curve not in CURVE_KINDS:
            raise ValueError(f"Unknown curve: {curve!r}. Available: {list(CURVE_KINDS)}")
        self.roundness = roundness
        self.min_area = min_area
        self.detect_circles = detect_circles
        self.tolerance = tolerance
        self.tension = tension
        self.curve = curve

    def trace(self, region: Region) -> list[Point]:
        return trace_boundary(region)

    def outline(self, region: Region) -> RegionOutline | None:
        """Build the outline for one region, or None if it is filtered out."""
        if region.area < self.min_area:
            return None
        boundary = trace_boundary(region)

        if self.detect_circles:
            circle = detect_circle(boundary)
            if circle is not None:
                return RegionOutline(region.id, boundary, circle.polygon(), "circle", circle)

        if self.roundness == "sharp":
            return RegionOutline(region.id, boundary, boundary)

        simplified = simplify(boundary, self.tolerance)
        if self.roundness == "medium" or len(simplified) < 3:
            return RegionOutline(region.id, boundary, simplified)

        if self.curve == "catmull_rom":
            return RegionOutline(region.id, boundary, catmull_rom(simplified), "curve")
        controls = bezier_controls(simplified, self.tension)
        return RegionOutline(
            region.id, boundary, flatten_bezier(simplified, controls), "curve", controls=controls
        )

    def outlines(self, regions: list[Region]) -> list[RegionOutline]:
        result = []
        for region in regions:
            outline = self.outline(region)
            if outline is not None:
                result.append(outline)
        dropped = len(regions) - len(result)
        if dropped:
            logger.debug("Dropped %d regions below %d px", dropped, self.min_area)
        return result
