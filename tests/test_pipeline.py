"""End-to-end tests for PaintByNumbersPipeline."""

import json
import threading

import numpy as np
import pytest

from numberpaint.boundary import polygon_area
from numberpaint.config import PipelineConfig
from numberpaint.models import ProgressEvent
from numberpaint.pipeline import PaintByNumbersPipeline
from numberpaint.progress import CancellationToken, PipelineCancelled
from numberpaint.raster import RasterBuffer

from conftest import RED, WHITE, solid_rgb


@pytest.fixture
def two_squares() -> RasterBuffer:
    rgb = solid_rgb(100, 100, WHITE)
    rgb[10:30, 10:30] = RED
    rgb[60:80, 60:80] = RED
    return RasterBuffer.from_rgb(rgb)


def test_red_square_end_to_end(red_square):
    result = PaintByNumbersPipeline(PipelineConfig(color_count=2)).run(red_square)

    assert (result.width, result.height) == (100, 100)
    assert len(result.regions) == 2
    assert sorted(r.area for r in result.regions) == [1600, 8400]
    assert result.palette == [WHITE, RED]
    assert [label.number for label in result.labels] == [1, 2]
    assert len(result.outlines) == 2

    square_label = result.labels[1]
    assert square_label.color == RED
    assert 30 <= square_label.anchor.x <= 69
    assert 30 <= square_label.anchor.y <= 69

    assert result.preview.size == (100, 100)
    assert result.colored.getpixel((50, 50)) == (*RED, 255)
    assert result.colored.getpixel((5, 5)) == (*WHITE, 255)


def test_stray_pixel_keeps_square_outline(red_square):
    red_square.data[0, 0, :3] = (200, 0, 0)
    result = PaintByNumbersPipeline(PipelineConfig(color_count=2)).run(red_square)
    red = next(r for r in result.regions if r.color == RED)
    outline = next(o for o in result.outlines if o.region_id == red.id)
    assert polygon_area(outline.boundary) == 1600.0
    assert result.colored.getpixel((50, 50)) == (*RED, 255)


def test_frame_does_not_cover_its_interior():
    rgb = solid_rgb(60, 60, (0, 0, 0))
    rgb[2:58, 2:58] = (0, 0, 255)
    result = PaintByNumbersPipeline(PipelineConfig(color_count=2)).run(RasterBuffer.from_rgb(rgb))
    assert sorted(r.area for r in result.regions) == [464, 3136]
    assert result.colored.getpixel((30, 30)) == (0, 0, 255, 255)
    assert result.colored.getpixel((0, 30)) == (0, 0, 0, 255)


def test_progress_milestones(red_square):
    events: list[ProgressEvent] = []
    PaintByNumbersPipeline(PipelineConfig(color_count=2)).run(red_square, on_progress=events.append)

    assert events[0] == ProgressEvent("Color quantization", 30)
    assert events[-1] == ProgressEvent("Completed", 100)
    values = [e.progress for e in events]
    assert values == sorted(values)
    stages = [e.stage for e in events]
    assert "Region detection" in stages
    assert ProgressEvent("Region processing", 70) in events
    assert stages.index("Region processing") < stages.index("Numbering")
    detection = [e.progress for e in events if e.stage == "Region detection"]
    assert min(detection) >= 30
    assert max(detection) <= 70


def test_cancel_before_start(red_square):
    token = CancellationToken()
    token.cancel()
    with pytest.raises(PipelineCancelled):
        PaintByNumbersPipeline().run(red_square, cancel=token)


def test_cancel_during_region_detection(red_square):
    token = CancellationToken()
    stages = []

    def on_progress(event):
        stages.append(event.stage)
        if event.stage == "Region detection":
            token.cancel()

    with pytest.raises(PipelineCancelled):
        PaintByNumbersPipeline().run(red_square, on_progress=on_progress, cancel=token)
    assert "Completed" not in stages


@pytest.mark.parametrize("buffer", [None, RasterBuffer(0, 0)])
def test_empty_input(buffer):
    events = []
    result = PaintByNumbersPipeline().run(buffer, on_progress=events.append)
    assert result.regions == []
    assert result.labels == []
    assert events == [ProgressEvent("Completed", 100)]


def test_numbering_by_color(two_squares):
    by_region = PaintByNumbersPipeline(PipelineConfig(color_count=2)).run(two_squares)
    by_color = PaintByNumbersPipeline(PipelineConfig(color_count=2, numbering="color")).run(two_squares)
    assert [label.number for label in by_region.labels] == [1, 2, 3]
    assert [label.number for label in by_color.labels] == [1, 2, 2]
    assert [label.color_index for label in by_color.labels] == [1, 2, 2]


def test_min_area_drops_small_outlines(red_square):
    result = PaintByNumbersPipeline(PipelineConfig(color_count=2, min_area=2000)).run(red_square)
    assert len(result.regions) == 2
    assert len(result.outlines) == 1
    assert [label.region_id for label in result.labels] == [result.regions[0].id]


def test_detected_circle(disk_buffer):
    result = PaintByNumbersPipeline(PipelineConfig(color_count=2, detect_circles=True)).run(disk_buffer)
    kinds = sorted(o.kind for o in result.outlines)
    assert kinds == ["circle", "polygon"]


def test_frequency_quantization(red_square):
    config = PipelineConfig(color_count=2, quantization="frequency", render_preview=False)
    result = PaintByNumbersPipeline(config).run(red_square)
    assert len(result.regions) == 2
    assert result.preview is None
    assert result.colored is None


def test_upscaling_changes_working_size():
    small = RasterBuffer.from_rgb(solid_rgb(24, 24, (30, 60, 200)))
    config = PipelineConfig(color_count=2, upscaling="200%", noise_reduction="low")
    result = PaintByNumbersPipeline(config).run(small)
    assert (result.width, result.height) == (48, 48)
    assert result.quantized.width == 48


def test_regions_partition_opaque_pixels(noisy_buffer):
    result = PaintByNumbersPipeline(PipelineConfig(color_count=4, render_preview=False)).run(noisy_buffer)
    seen = np.zeros(noisy_buffer.pixel_count, dtype=int)
    for region in result.regions:
        seen[region.pixels] += 1
    opaque = noisy_buffer.opaque_mask.ravel()
    assert np.all(seen[opaque] == 1)
    assert np.all(seen[~opaque] == 0)


def test_legend_is_json_ready(red_square):
    result = PaintByNumbersPipeline(PipelineConfig(color_count=2)).run(red_square)
    legend = json.loads(json.dumps(result.legend()))
    assert legend["palette"] == [
        {"number": 1, "color": "#ffffff"},
        {"number": 2, "color": "#ff0000"},
    ]
    assert [r["area"] for r in legend["regions"]] == [8400, 1600]


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        PaintByNumbersPipeline(PipelineConfig(number_style="star"))


def test_concurrent_runs_are_independent(red_square, two_squares):
    pipeline = PaintByNumbersPipeline(PipelineConfig(color_count=2, render_preview=False))
    results = {}

    def work(name, buffer):
        results[name] = pipeline.run(buffer)

    threads = [
        threading.Thread(target=work, args=("one", red_square)),
        threading.Thread(target=work, args=("two", two_squares)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(results["one"].regions) == 2
    assert len(results["two"].regions) == 3
