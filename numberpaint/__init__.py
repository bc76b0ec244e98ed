"""Paint-by-numbers engine.

Turns a raster image into flat color regions with traced outlines and a
placed number per region.

Main entry points:
- PaintByNumbersPipeline: quantize, detect regions, outline and number
- ColorQuantizer / frequency_quantize: palette reduction
- RegionDetector: connected regions with small-region merging
- BoundaryTracer: outline tracing, simplification and shape fitting
- NumberPlacer: label anchors and badge drawing
- filters: anti-aliasing, noise reduction, sharpening and upscaling
"""

from .boundary import BoundaryTracer, Circle, RegionOutline, detect_circle, simplify, trace_boundary
from .config import PipelineConfig, load_config, save_config
from .filters import FILTER_PRESETS, FilterPreset, anti_alias, enhance, reduce_noise, sharpen, upscale
from .layers import FILLED_MODES, STROKED_MODES, apply_layer_mode
from .models import Bounds, Point, ProgressEvent, Region
from .modes import IMAGE_MODES, process_image
from .numbering import NUMBER_STYLES, NumberPlacer, find_anchor
from .palettes import PALETTE_NAMES, Palette, PaletteHistory, get_palette
from .pipeline import NumberLabel, PaintByNumbersPipeline, PaintByNumbersResult
from .progress import CancellationToken, PipelineCancelled
from .quantization import ColorQuantizer, frequency_quantize, posterize_levels
from .raster import RasterBuffer
from .regions import RegionDetector, RegionMap, region_adjacency, region_at

__version__ = "0.1.0"

__all__ = [
    # Data
    "RasterBuffer",
    "Point",
    "Bounds",
    "Region",
    "ProgressEvent",
    # Quantization
    "ColorQuantizer",
    "frequency_quantize",
    "posterize_levels",
    # Regions
    "RegionDetector",
    "RegionMap",
    "region_adjacency",
    "region_at",
    # Outlines
    "BoundaryTracer",
    "RegionOutline",
    "Circle",
    "trace_boundary",
    "simplify",
    "detect_circle",
    # Numbers
    "NumberPlacer",
    "NUMBER_STYLES",
    "find_anchor",
    # Filters
    "FilterPreset",
    "FILTER_PRESETS",
    "anti_alias",
    "reduce_noise",
    "sharpen",
    "upscale",
    "enhance",
    # Modes
    "FILLED_MODES",
    "STROKED_MODES",
    "apply_layer_mode",
    "IMAGE_MODES",
    "process_image",
    # Palettes
    "Palette",
    "PaletteHistory",
    "PALETTE_NAMES",
    "get_palette",
    # Pipeline
    "PipelineConfig",
    "load_config",
    "save_config",
    "PaintByNumbersPipeline",
    "PaintByNumbersResult",
    "NumberLabel",
    "CancellationToken",
    "PipelineCancelled",
]
