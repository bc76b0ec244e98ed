"""Convert an image into a paint-by-numbers template.

Writes preview.png (outlines and numbers), colored.png (filled shapes),
quantized.png and legend.json into the output directory.

Usage:
    numberpaint photo.jpg
    numberpaint photo.jpg out/ --colors 16 --size 1024 --number-style circle
"""

import argparse
import json
import logging
import os
from pathlib import Path

from PIL import Image

from .boundary import ROUNDNESS_LEVELS
from .config import COLOR_OPTIONS, PipelineConfig, load_config, save_config
from .filters import ANTI_ALIAS_LEVELS, FILTER_PRESETS, NOISE_LEVELS, UPSCALE_LEVELS
from .models import ProgressEvent
from .numbering import NUMBER_STYLES
from .pipeline import PaintByNumbersPipeline, PaintByNumbersResult
from .raster import RasterBuffer
from .render import CONTOUR_STYLES


def load_and_resize(path: str, max_edge: int) -> Image.Image:
    """Load an image and shrink it so the longest edge is at most max_edge.

    Args:
        path: Path to the input image.
        max_edge: Longest allowed edge in pixels; 0 keeps the original size.

    Returns:
        RGBA PIL Image.
    """
    img = Image.open(path).convert("RGBA")
    w, h = img.size
    if max_edge <= 0 or max(w, h) <= max_edge:
        return img
    scale = max_edge / max(w, h)
    new_w = max(1, round(w * scale))
    new_h = max(1, round(h * scale))
    return img.resize((new_w, new_h), Image.Resampling.LANCZOS)


def export_result(result: PaintByNumbersResult, output_dir: Path, source_path: str) -> None:
    """Write the rendered images and legend.json.

    Args:
        result: Pipeline output.
        output_dir: Directory to write into (created if needed).
        source_path: Original image path, recorded in the legend.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    result.quantized.to_image().save(output_dir / "quantized.png")
    if result.preview is not None:
        result.preview.save(output_dir / "preview.png")
    if result.colored is not None:
        result.colored.save(output_dir / "colored.png")

    legend = result.legend()
    legend["source"] = os.path.basename(source_path)
    with open(output_dir / "legend.json", "w") as f:
        json.dump(legend, f, indent=2)

    print(f"Exported paint-by-numbers to {output_dir}")
    print(f"  Source: {os.path.basename(source_path)}")
    print(f"  Size: {result.width}x{result.height}")
    print(f"  Regions: {len(result.regions)}")
    print(f"  Colors: {len(result.palette)}")


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Merge an optional JSON config with command-line overrides."""
    config = load_config(args.config) if args.config else PipelineConfig()
    overrides = {
        "color_count": args.colors,
        "number_style": args.number_style,
        "numbering": args.numbering,
        "contour_style": args.contour_style,
        "roundness": args.roundness,
        "min_area": args.min_area,
        "font_size": args.font_size,
        "anti_aliasing": args.anti_alias,
        "noise_reduction": args.noise,
        "upscaling": args.upscale,
        "filter_preset": args.preset,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    if args.circles:
        config.detect_circles = True
    return config


def print_progress(event: ProgressEvent) -> None:
    print(f"  [{event.progress:5.1f}%] {event.stage}", end="\r" if event.progress < 100 else "\n")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the paint-by-numbers CLI."""
    parser = argparse.ArgumentParser(
        description="Convert an image into a paint-by-numbers template",
    )
    parser.add_argument(
        "image_path",
        help="Input image (PNG, JPG, etc.)",
    )
    parser.add_argument(
        "output_dir",
        nargs="?",
        type=Path,
        default=Path("output"),
        help="Output directory (default: output)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON pipeline configuration; command-line options override it",
    )
    parser.add_argument(
        "--save-config",
        type=Path,
        default=None,
        help="Write the effective configuration to this JSON file",
    )
    parser.add_argument(
        "--colors",
        type=int,
        default=None,
        choices=COLOR_OPTIONS,
        help="Palette size (default: 8)",
    )
    parser.add_argument(
        "--size",
        type=int,
        default=768,
        help="Max size of the longest edge in pixels, 0 to keep (default: 768)",
    )
    parser.add_argument("--number-style", choices=NUMBER_STYLES, default=None)
    parser.add_argument(
        "--numbering",
        choices=("region", "color"),
        default=None,
        help="Number each region, or print the palette index (default: region)",
    )
    parser.add_argument("--contour-style", choices=CONTOUR_STYLES, default=None)
    parser.add_argument("--roundness", choices=ROUNDNESS_LEVELS, default=None)
    parser.add_argument(
        "--min-area",
        type=int,
        default=None,
        help="Drop regions smaller than this many pixels from the output (default: 0)",
    )
    parser.add_argument("--font-size", type=int, default=None)
    parser.add_argument(
        "--circles",
        action="store_true",
        help="Draw round regions as fitted circles",
    )
    parser.add_argument("--anti-alias", choices=ANTI_ALIAS_LEVELS, default=None)
    parser.add_argument("--noise", choices=NOISE_LEVELS, default=None)
    parser.add_argument("--upscale", choices=list(UPSCALE_LEVELS), default=None)
    parser.add_argument("--preset", choices=list(FILTER_PRESETS), default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline details")

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    config = build_config(args)
    if args.save_config:
        save_config(config, args.save_config)
        print(f"Saved configuration to {args.save_config}")

    print(f"Loading {args.image_path}...")
    img = load_and_resize(args.image_path, args.size)
    print(f"  Working size {img.size[0]}x{img.size[1]}")

    print(f"Building paint-by-numbers with {config.color_count} colors...")
    pipeline = PaintByNumbersPipeline(config)
    result = pipeline.run(RasterBuffer.from_image(img), on_progress=print_progress)

    export_result(result, args.output_dir, args.image_path)
    print("\nDone!")


if __name__ == "__main__":
    main()
