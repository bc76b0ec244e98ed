"""Tests for boundary tracing, simplification and shape fitting."""

import numpy as np
import pytest

from numberpaint.boundary import (
    BoundaryTracer,
    Circle,
    bezier_controls,
    boundary_pixels,
    catmull_rom,
    detect_circle,
    flatten_bezier,
    polygon_area,
    simplify,
    trace_boundary,
)
from numberpaint.models import Point, Region

from conftest import disk_mask, region_from_mask


def rect_mask(size, x0, y0, w, h):
    mask = np.zeros((size, size), dtype=bool)
    mask[y0 : y0 + h, x0 : x0 + w] = True
    return mask


@pytest.fixture
def square_region():
    return region_from_mask(rect_mask(100, 30, 30, 40, 40))


def test_single_pixel_trace():
    region = region_from_mask(rect_mask(5, 2, 1, 1, 1))
    points = trace_boundary(region)
    assert [p.as_tuple() for p in points] == [(2, 1), (3, 1), (3, 2), (2, 2)]
    assert polygon_area(points) == 1.0


def test_rectangle_trace_walks_every_lattice_step():
    region = region_from_mask(rect_mask(10, 1, 2, 5, 3))
    points = trace_boundary(region)
    assert len(points) == 2 * (5 + 3)
    assert points[0] == Point(1.0, 2.0)
    assert points[1] == Point(2.0, 2.0)
    closed = points + points[:1]
    for a, b in zip(closed, closed[1:]):
        assert abs(a.x - b.x) + abs(a.y - b.y) == 1
    assert polygon_area(points) == 15.0


def test_l_shape_area_matches_pixel_count():
    mask = rect_mask(12, 2, 2, 6, 2) | rect_mask(12, 2, 2, 2, 7)
    region = region_from_mask(mask)
    assert polygon_area(trace_boundary(region)) == region.area


def test_region_touching_image_corner():
    region = region_from_mask(rect_mask(4, 0, 0, 4, 4))
    points = trace_boundary(region)
    assert points[0] == Point(0.0, 0.0)
    assert polygon_area(points) == 16.0


def test_diagonal_pinch_stays_on_first_pixel():
    mask = np.zeros((4, 4), dtype=bool)
    mask[1, 1] = mask[2, 2] = True
    points = trace_boundary(region_from_mask(mask))
    assert len(points) == 4
    assert polygon_area(points) == 1.0


def test_trace_skips_detached_merged_pixel():
    mask = rect_mask(100, 30, 30, 40, 40)
    mask[0, 0] = True
    points = trace_boundary(region_from_mask(mask))
    assert points[0] == Point(30.0, 30.0)
    assert polygon_area(points) == 1600.0


def test_trace_includes_merged_pixel_touching_the_body():
    mask = rect_mask(20, 5, 5, 4, 4)
    mask[4, 7] = True
    points = trace_boundary(region_from_mask(mask))
    assert points[0] == Point(7.0, 4.0)
    assert polygon_area(points) == 17.0


def test_empty_region_has_no_boundary():
    region = Region(1, (0, 0, 0), np.array([], dtype=np.int64), 10)
    assert trace_boundary(region) == []
    assert len(boundary_pixels(region)) == 0


def test_square_simplifies_to_corners(square_region):
    raw = trace_boundary(square_region)
    assert len(raw) == 160
    simplified = simplify(raw, 1.0)
    assert 4 <= len(simplified) <= 8
    for corner in (Point(30.0, 30.0), Point(70.0, 30.0), Point(70.0, 70.0), Point(30.0, 70.0)):
        assert corner in simplified
    assert polygon_area(simplified) == pytest.approx(1600, rel=0.05)


def test_simplify_keeps_endpoints_of_collinear_run():
    line = [Point(float(x), 0.0) for x in range(10)]
    assert simplify(line) == [line[0], line[-1]]
    assert simplify(line[:2]) == line[:2]


def test_simplify_respects_tolerance():
    bump = [Point(0.0, 0.0), Point(5.0, 0.5), Point(10.0, 0.0)]
    assert len(simplify(bump, 1.0)) == 2
    assert len(simplify(bump, 0.25)) == 3


def test_disk_is_detected_as_circle():
    mask = disk_mask(60, 30, 30, 12)
    circle = detect_circle(trace_boundary(region_from_mask(mask)))
    assert isinstance(circle, Circle)
    assert circle.radius == pytest.approx(12, rel=0.05)
    assert circle.center.x == pytest.approx(30, abs=0.5)
    assert circle.center.y == pytest.approx(30, abs=0.5)
    assert circle.deviation < 0.1


def test_square_is_not_a_circle(square_region):
    assert detect_circle(trace_boundary(square_region)) is None


def test_too_few_points_is_not_a_circle():
    assert detect_circle(Circle(Point(0.0, 0.0), 5.0, 0.0).polygon(7)) is None
    assert detect_circle(Circle(Point(0.0, 0.0), 5.0, 0.0).polygon(8)) is not None


def test_catmull_rom_passes_through_vertices():
    pts = [Point(0.0, 0.0), Point(10.0, 0.0), Point(10.0, 10.0), Point(0.0, 10.0)]
    curve = catmull_rom(pts, samples=10)
    assert len(curve) == 40
    for k, p in enumerate(pts):
        assert curve[k * 10].x == pytest.approx(p.x)
        assert curve[k * 10].y == pytest.approx(p.y)


def test_bezier_controls_and_flattening():
    pts = [Point(0.0, 0.0), Point(10.0, 0.0), Point(10.0, 10.0), Point(0.0, 10.0)]
    controls = bezier_controls(pts, tension=0.3)
    cp1, cp2 = controls[0]
    assert cp1.as_tuple() == pytest.approx((3.0, -3.0))
    assert cp2.as_tuple() == pytest.approx((7.0, -3.0))

    flat = flatten_bezier(pts, controls, steps=8)
    assert len(flat) == 32
    assert flat[8].as_tuple() == pytest.approx((10.0, 0.0))
    assert bezier_controls(pts[:2]) == []


def test_boundary_pixels_of_square():
    region = region_from_mask(rect_mask(10, 2, 2, 5, 5))
    pixels = boundary_pixels(region)
    assert len(pixels) == 16
    assert not any((x, y) == (4, 4) for x, y in pixels)


def test_boundary_pixels_of_thin_line():
    region = region_from_mask(rect_mask(10, 1, 4, 8, 1))
    assert len(boundary_pixels(region)) == 8


def test_tracer_roundness_levels(square_region):
    sharp = BoundaryTracer("sharp").outline(square_region)
    assert sharp.kind == "polygon"
    assert len(sharp.points) == 160

    medium = BoundaryTracer("medium").outline(square_region)
    assert medium.kind == "polygon"
    assert len(medium.points) == len(simplify(sharp.boundary))

    rounded = BoundaryTracer("round").outline(square_region)
    assert rounded.kind == "curve"
    assert len(rounded.controls) == len(medium.points)
    assert rounded.fillable

    spline = BoundaryTracer("round", curve="catmull_rom").outline(square_region)
    assert spline.kind == "curve"
    assert len(spline.points) == 10 * len(medium.points)


def test_tracer_min_area_and_circles(square_region):
    disk = region_from_mask(disk_mask(60, 30, 30, 12), region_id=2)
    tracer = BoundaryTracer(min_area=500, detect_circles=True)
    outlines = tracer.outlines([square_region, disk])
    assert [o.region_id for o in outlines] == [1]
    assert outlines[0].kind == "polygon"

    circle = BoundaryTracer(detect_circles=True).outline(disk)
    assert circle.kind == "circle"
    assert circle.circle is not None
    assert len(circle.points) == 64


def test_tracer_rejects_unknown_options():
    with pytest.raises(ValueError):
        BoundaryTracer("jagged")
    with pytest.raises(ValueError):
        BoundaryTracer(curve="spline")
