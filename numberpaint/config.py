"""Pipeline configuration record, option presets and JSON persistence."""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from .boundary import ROUNDNESS_LEVELS
from .filters import ANTI_ALIAS_LEVELS, FILTER_PRESETS, NOISE_LEVELS, UPSCALE_LEVELS
from .models import RGB
from .numbering import DEFAULT_BOLD_FONT, DEFAULT_FONT, NUMBER_STYLES
from .render import CONTOUR_STYLES

logger = logging.getLogger(__name__)

QUANTIZATION_MODES = ("median_cut", "frequency")
NUMBERING_MODES = ("region", "color")

# Color count options
COLOR_OPTIONS = [2, 4, 6, 8, 12, 16, 24, 32]

# Minimum drawn region area: label -> pixels
MIN_AREA_PRESETS = {"0px²": 0, "5px²": 5, "90px²": 90}

# Outline width: label -> pixels
OUTLINE_WIDTH_PRESETS = {"Thin": 1, "Medium": 2, "Thick": 3}


@dataclass
class PipelineConfig:
    """Every knob of the paint-by-numbers pipeline."""

    color_count: int = 8
    quantization: str = "median_cut"
    # Merge threshold in pixels; None means 0.1% of the image area
    min_region_size: int | None = None
    number_style: str = "plain"
    numbering: str = "region"
    font_family: str = DEFAULT_FONT
    bold_font_family: str = DEFAULT_BOLD_FONT
    font_size: int = 12
    font_color: RGB = (0, 0, 0)
    contour_style: str = "solid"
    contour_color: RGB = (0, 0, 0)
    contour_width: int = 1
    roundness: str = "sharp"
    min_area: int = 0
    detect_circles: bool = False
    simplify_tolerance: float = 1.0
    anti_aliasing: str = "off"
    noise_reduction: str = "off"
    upscaling: str = "off"
    filter_preset: str = "v2"
    progress_rows: int = 16
    render_preview: bool = True

    def __post_init__(self) -> None:
        self.font_color = tuple(self.font_color)
        self.contour_color = tuple(self.contour_color)

    def validate(self) -> None:
        """Check every enumerated option.

        Raises:
            ValueError: On the first invalid option, listing valid choices.
        """
        if self.color_count < 1:
            raise ValueError(f"color_count must be >= 1, got {self.color_count}")
        choices = {
            "quantization": QUANTIZATION_MODES,
            "number_style": NUMBER_STYLES,
            "numbering": NUMBERING_MODES,
            "contour_style": CONTOUR_STYLES,
            "roundness": ROUNDNESS_LEVELS,
            "anti_aliasing": ANTI_ALIAS_LEVELS,
            "noise_reduction": NOISE_LEVELS,
            "upscaling": tuple(UPSCALE_LEVELS),
            "filter_preset": tuple(FILTER_PRESETS),
        }
        for name, valid in choices.items():
            value = getattr(self, name)
            if value not in valid:
                raise ValueError(f"Invalid {name}: {value!r}. Available: {list(valid)}")

    @property
    def enhances(self) -> bool:
        return (self.anti_aliasing, self.noise_reduction, self.upscaling) != ("off", "off", "off")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PipelineConfig":
        """Build a config from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_config(path: str | Path) -> PipelineConfig:
    """Load a PipelineConfig from JSON; missing keys take their defaults."""
    with open(path) as f:
        data = json.load(f)
    config = PipelineConfig.from_dict(data)
    logger.info("Loaded configuration from %s", path)
    return config


def save_config(config: PipelineConfig, path: str | Path) -> None:
    """Write a PipelineConfig as indented JSON."""
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
