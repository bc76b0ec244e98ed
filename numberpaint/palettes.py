"""Named color palettes, color harmonies and accessibility helpers.

Each predefined palette is ordered so that any prefix stays easy to tell
apart. Colors are RGB tuples throughout; hex strings only at the edges.
"""

import colorsys
import random
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import RGB


@dataclass
class Palette:
    """An ordered list of colors with a display name."""

    name: str
    colors: list[RGB] = field(default_factory=list)
    accessible: bool = False

    def hex_colors(self) -> list[str]:
        return [rgb_to_hex(c) for c in self.colors]


def hex_to_rgb(value: str) -> RGB:
    """Parse ``#rrggbb`` (leading ``#`` optional).

    Raises:
        ValueError: If the string is not a six-digit hex color.
    """
    text = value.lstrip("#")
    if len(text) != 6:
        raise ValueError(f"Not a hex color: {value!r}")
    return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))


def rgb_to_hex(color: RGB) -> str:
    return "#{:02x}{:02x}{:02x}".format(*color)


def rgb_to_hsl(color: RGB) -> tuple[float, float, float]:
    """RGB to (hue degrees, saturation %, lightness %)."""
    h, l, s = colorsys.rgb_to_hls(*(c / 255 for c in color))
    return (h * 360, s * 100, l * 100)


def hsl_to_rgb(hue: float, saturation: float, lightness: float) -> RGB:
    r, g, b = colorsys.hls_to_rgb((hue % 360) / 360, lightness / 100, saturation / 100)
    return (round(r * 255), round(g * 255), round(b * 255))


PALETTES: OrderedDict[str, list[RGB]] = OrderedDict()

PALETTES["Basic"] = [
    (255, 0, 0),      # Red
    (0, 255, 0),      # Green
    (0, 0, 255),      # Blue
    (255, 255, 0),    # Yellow
    (255, 0, 255),    # Magenta
    (0, 255, 255),    # Cyan
    (255, 165, 0),    # Orange
    (128, 0, 128),    # Purple
]

PALETTES["Pastel"] = [
    (255, 179, 186),  # Pink
    (186, 255, 201),  # Mint
    (186, 225, 255),  # Baby blue
    (255, 255, 186),  # Cream
    (255, 179, 255),  # Lilac
]

PALETTES["Earth Tones"] = [
    (139, 69, 19),    # Saddle brown
    (107, 142, 35),   # Olive drab
    (160, 82, 45),    # Sienna
    (85, 107, 47),    # Dark olive
    (139, 115, 85),   # Taupe
]

PALETTES["Grayscale"] = [
    (0, 0, 0),
    (255, 255, 255),
    (128, 128, 128),
    (64, 64, 64),
    (192, 192, 192),
]

PALETTES["Vintage"] = [
    (141, 85, 36),    # Umber
    (241, 194, 125),  # Sand
    (198, 134, 66),   # Caramel
    (255, 224, 189),  # Bisque
    (224, 172, 105),  # Tan
]

# Wong (2011), Nature Methods 8:441
WONG_COLORS: list[RGB] = [
    (0, 0, 0),        # Black
    (230, 159, 0),    # Orange
    (86, 180, 233),   # Sky blue
    (0, 158, 115),    # Bluish green
    (240, 228, 66),   # Yellow
    (0, 114, 178),    # Blue
    (213, 94, 0),     # Vermillion
    (204, 121, 167),  # Reddish purple
]

PALETTE_NAMES: list[str] = list(PALETTES.keys())


def get_palette(name: str, num_colors: int) -> list[RGB]:
    """Return the first num_colors colors from the named palette.

    Args:
        name: Palette name, or "Random" to pick one at random.
        num_colors: How many colors to return.

    Returns:
        List of RGB tuples, at most the palette's length.

    Raises:
        ValueError: If name is not recognized and is not "Random".
    """
    if name == "Random":
        name = random.choice(PALETTE_NAMES)

    if name not in PALETTES:
        raise ValueError(f"Unknown palette: {name!r}. Available: {PALETTE_NAMES}")

    return PALETTES[name][:num_colors]


def harmonies(base: RGB) -> dict[str, list[RGB]]:
    """Complementary, triadic and analogous harmonies of a base color."""
    h, s, l = rgb_to_hsl(base)
    return {
        "Complementary": [base, hsl_to_rgb(h + 180, s, l)],
        "Triadic": [base, hsl_to_rgb(h + 120, s, l), hsl_to_rgb(h + 240, s, l)],
        "Analogous": [hsl_to_rgb(h - 30, s, l), base, hsl_to_rgb(h + 30, s, l)],
    }


def color_blind_palette(num_colors: int) -> Palette:
    """Wong palette, extended with darker variants when more colors are needed."""
    colors = list(WONG_COLORS)
    while len(colors) < num_colors:
        h, s, l = rgb_to_hsl(WONG_COLORS[len(colors) % len(WONG_COLORS)])
        colors.append(hsl_to_rgb(h, s, max(20.0, l - 20)))
    return Palette("Color Blind Friendly", colors[:num_colors], accessible=True)


def relative_luminance(color: RGB) -> float:
    """WCAG 2 relative luminance."""
    channels = []
    for c in color:
        c = c / 255
        channels.append(c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4)
    r, g, b = channels
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(a: RGB, b: RGB) -> float:
    la, lb = relative_luminance(a), relative_luminance(b)
    return (max(la, lb) + 0.05) / (min(la, lb) + 0.05)


def has_good_contrast(a: RGB, b: RGB, minimum: float = 3.0) -> bool:
    return contrast_ratio(a, b) >= minimum


def adjust_for_contrast(color: RGB, neighbors: Iterable[RGB], attempts: int = 10) -> RGB:
    """Shift lightness in 5-point steps until the color contrasts with all neighbors.

    Lighter candidates are tried before darker ones at each step. The
    original color is returned when no step works.
    """
    neighbors = list(neighbors)
    h, s, l = rgb_to_hsl(color)
    for i in range(attempts):
        lighter = hsl_to_rgb(h, s, min(95.0, l + i * 5))
        if all(has_good_contrast(lighter, n) for n in neighbors):
            return lighter
        darker = hsl_to_rgb(h, s, max(5.0, l - i * 5))
        if all(has_good_contrast(darker, n) for n in neighbors):
            return darker
    return color


def accessible_palette(colors: list[RGB]) -> Palette:
    """Adjust each color that lacks contrast with its cyclic neighbours."""
    result = []
    n = len(colors)
    for i, color in enumerate(colors):
        prev_color, next_color = colors[i - 1], colors[(i + 1) % n]
        if has_good_contrast(color, prev_color) and has_good_contrast(color, next_color):
            result.append(color)
        else:
            result.append(adjust_for_contrast(color, [prev_color, next_color]))
    return Palette("Accessible Palette", result, accessible=True)


class PaletteHistory:
    """Undo/redo stack of palettes."""

    def __init__(self, initial: Palette | None = None) -> None:
        self._history: list[Palette] = []
        self._index = -1
        self.push(initial or Palette("Default", list(PALETTES["Basic"])))

    @property
    def current(self) -> Palette:
        return self._history[self._index]

    def push(self, palette: Palette) -> None:
        """Make palette current, discarding any redo entries."""
        del self._history[self._index + 1 :]
        self._history.append(palette)
        self._index = len(self._history) - 1

    def undo(self) -> Palette | None:
        if self._index > 0:
            self._index -= 1
            return self.current
        return None

    def redo(self) -> Palette | None:
        if self._index < len(self._history) - 1:
            self._index += 1
            return self.current
        return None
