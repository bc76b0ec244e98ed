"""The paint-by-numbers pipeline: quantize, detect regions, outline, number."""

import logging
from dataclasses import dataclass, field

from PIL import Image

from .boundary import BoundaryTracer, RegionOutline
from .config import PipelineConfig
from .filters import enhance
from .models import Point, RGB
from .numbering import NumberPlacer
from .progress import CancellationToken, ProgressCallback, check_cancelled, report
from .quantization import ColorQuantizer, frequency_quantize
from .raster import RasterBuffer
from .regions import RegionDetector, RegionMap
from .render import draw_contours, render_shapes

logger = logging.getLogger(__name__)


@dataclass
class NumberLabel:
    """A number to paint and where it goes.

    Attributes:
        number: Printed number.
        region_id: Labelled region.
        anchor: Pixel the badge is centered on.
        color: Color to paint the region with.
        color_index: 1-based position of ``color`` in the result palette.
    """

    number: int
    region_id: int
    anchor: Point
    color: RGB
    color_index: int


@dataclass
class PaintByNumbersResult:
    """Everything one pipeline run produces."""

    width: int
    height: int
    quantized: RasterBuffer
    region_map: RegionMap
    outlines: list[RegionOutline] = field(default_factory=list)
    labels: list[NumberLabel] = field(default_factory=list)
    palette: list[RGB] = field(default_factory=list)
    preview: Image.Image | None = None
    colored: Image.Image | None = None

    @property
    def regions(self):
        return self.region_map.regions

    def legend(self) -> dict:
        """JSON-ready summary of the palette and region numbering."""
        return {
            "width": self.width,
            "height": self.height,
            "palette": [
                {"number": i + 1, "color": "#{:02x}{:02x}{:02x}".format(*c)}
                for i, c in enumerate(self.palette)
            ],
            "regions": [
                {
                    "number": label.number,
                    "region_id": label.region_id,
                    "color_index": label.color_index,
                    "anchor": [label.anchor.x, label.anchor.y],
                    "area": self.region_map.get(label.region_id).area,
                }
                for label in self.labels
            ],
        }


class PaintByNumbersPipeline:
    """Runs the full engine over one raster.

    Instances hold only their configuration, so one pipeline may be reused
    and separate instances may run concurrently on separate buffers.
    """

    def __init__(self, config: PipelineConfig | None = None) -> None:
        self.config = config or PipelineConfig()
        self.config.validate()

    def run(
        self,
        buffer: RasterBuffer | None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> PaintByNumbersResult:
        """Convert a raster into a paint-by-numbers result.

        Args:
            buffer: Source raster; None or zero-area gives an empty result.
            on_progress: Receives ProgressEvent milestones.
            cancel: Checked between work chunks.

        Returns:
            PaintByNumbersResult.

        Raises:
            PipelineCancelled: If ``cancel`` fires before completion.
        """
        cfg = self.config
        if buffer is None or buffer.is_empty:
            w = buffer.width if buffer is not None else 0
            h = buffer.height if buffer is not None else 0
            empty = buffer.copy() if buffer is not None else RasterBuffer(0, 0)
            report(on_progress, "Completed", 100)
            return PaintByNumbersResult(w, h, empty, RegionDetector().detect(empty))

        check_cancelled(cancel)
        source = buffer
        if cfg.enhances:
            source = enhance(
                buffer, cfg.anti_aliasing, cfg.noise_reduction, cfg.upscaling, cfg.filter_preset
            )

        quantized = self._quantize(source)
        report(on_progress, "Color quantization", 30)
        check_cancelled(cancel)

        detector = RegionDetector(min_size=cfg.min_region_size, row_chunk=cfg.progress_rows)
        region_map = detector.detect(
            quantized,
            on_rows=lambda fraction: report(on_progress, "Region detection", 30 + 40 * fraction),
            cancel=cancel,
        )
        report(on_progress, "Region processing", 70)

        palette: list[RGB] = []
        for region in region_map.regions:
            if region.color not in palette:
                palette.append(region.color)

        tracer = BoundaryTracer(
            roundness=cfg.roundness,
            min_area=cfg.min_area,
            detect_circles=cfg.detect_circles,
            tolerance=cfg.simplify_tolerance,
        )
        placer = NumberPlacer(
            cfg.number_style, cfg.font_size, cfg.font_family, cfg.font_color, cfg.bold_font_family
        )

        outlines: list[RegionOutline] = []
        labels: list[NumberLabel] = []
        total = len(region_map.regions)
        for i, region in enumerate(region_map.regions):
            check_cancelled(cancel)
            outline = tracer.outline(region)
            if outline is not None:
                outlines.append(outline)
                color_index = palette.index(region.color) + 1
                number = color_index if cfg.numbering == "color" else i + 1
                labels.append(
                    NumberLabel(number, region.id, placer.find_anchor(region), region.color, color_index)
                )
            report(on_progress, "Numbering", 70 + 30 * (i + 1) / total)

        result = PaintByNumbersResult(
            source.width, source.height, quantized, region_map, outlines, labels, palette
        )
        if cfg.render_preview:
            result.preview = self.render_template(result, placer)
            colors = {r.id: r.color for r in region_map.regions}
            result.colored = render_shapes(source.width, source.height, outlines, colors)

        logger.info(
            "Paint-by-numbers done: %d regions, %d outlines, %d colors",
            total,
            len(outlines),
            len(palette),
        )
        report(on_progress, "Completed", 100)
        return result

    def _quantize(self, source: RasterBuffer) -> RasterBuffer:
        cfg = self.config
        if cfg.quantization == "frequency":
            quantized, _ = frequency_quantize(source, max_colors=cfg.color_count)
            return quantized
        return ColorQuantizer(cfg.color_count).quantize(source)

    def render_template(
        self, result: PaintByNumbersResult, placer: NumberPlacer | None = None
    ) -> Image.Image:
        """Draw contours and numbered badges on a white canvas."""
        cfg = self.config
        if placer is None:
            placer = NumberPlacer(
                cfg.number_style, cfg.font_size, cfg.font_family, cfg.font_color, cfg.bold_font_family
            )
        image = Image.new("RGBA", (result.width, result.height), (255, 255, 255, 255))
        draw_contours(image, result.outlines, cfg.contour_style, cfg.contour_color, cfg.contour_width)
        for label in result.labels:
            placer.draw(image, label.anchor, label.number)
        return image
