"""In-memory RGBA raster buffers."""

from collections.abc import Sequence

import numpy as np
from PIL import Image


class RasterBuffer:
    """A width x height RGBA image stored as an ``H x W x 4`` uint8 array.

    The engine never mutates a buffer it was handed; every filter and
    quantizer returns a new instance.
    """

    def __init__(self, width: int, height: int, data: np.ndarray | None = None) -> None:
        """Wrap an RGBA array.

        Args:
            width: Image width in pixels.
            height: Image height in pixels.
            data: ``(height, width, 4)`` uint8 array, or None for a
                transparent image.

        Raises:
            ValueError: If the dimensions are negative or the array shape
                does not match them.
        """
        if width < 0 or height < 0:
            raise ValueError(f"Invalid raster size {width}x{height}")
        if data is None:
            data = np.zeros((height, width, 4), dtype=np.uint8)
        data = np.asarray(data)
        if data.shape != (height, width, 4):
            raise ValueError(
                f"Expected RGBA data of shape {(height, width, 4)}, got {data.shape}"
            )
        self.width = width
        self.height = height
        self.data = data.astype(np.uint8, copy=False)

    @classmethod
    def from_bytes(cls, width: int, height: int, samples: bytes | Sequence[int]) -> "RasterBuffer":
        """Build a buffer from a flat row-major RGBA byte sequence."""
        arr = np.frombuffer(bytes(samples), dtype=np.uint8)
        if arr.size != width * height * 4:
            raise ValueError(
                f"Expected {width * height * 4} RGBA samples, got {arr.size}"
            )
        return cls(width, height, arr.reshape(height, width, 4).copy())

    @classmethod
    def from_image(cls, img: Image.Image) -> "RasterBuffer":
        """Build a buffer from a PIL image of any mode."""
        rgba = np.array(img.convert("RGBA"), dtype=np.uint8)
        w, h = img.size
        return cls(w, h, rgba.reshape(h, w, 4))

    @classmethod
    def from_rgb(cls, rgb: np.ndarray, alpha: np.ndarray | None = None) -> "RasterBuffer":
        """Build a buffer from an ``H x W x 3`` array and optional alpha plane."""
        rgb = np.asarray(rgb)
        h, w = rgb.shape[:2]
        data = np.empty((h, w, 4), dtype=np.uint8)
        data[..., :3] = np.clip(np.rint(rgb), 0, 255) if rgb.dtype.kind == "f" else rgb
        data[..., 3] = 255 if alpha is None else alpha
        return cls(w, h, data)

    @classmethod
    def blank(
        cls, width: int, height: int, rgba: tuple[int, int, int, int] = (255, 255, 255, 255)
    ) -> "RasterBuffer":
        data = np.empty((height, width, 4), dtype=np.uint8)
        data[...] = rgba
        return cls(width, height, data)

    def to_image(self) -> Image.Image:
        if self.is_empty:
            return Image.new("RGBA", (self.width, self.height))
        return Image.fromarray(np.ascontiguousarray(self.data))

    def to_bytes(self) -> bytes:
        return self.data.tobytes()

    def copy(self) -> "RasterBuffer":
        return RasterBuffer(self.width, self.height, self.data.copy())

    def with_rgb(self, rgb: np.ndarray) -> "RasterBuffer":
        """Return a new buffer with replaced RGB channels and this alpha."""
        return RasterBuffer.from_rgb(rgb, self.alpha)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def rgb(self) -> np.ndarray:
        return self.data[..., :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.data[..., 3]

    @property
    def opaque_mask(self) -> np.ndarray:
        return self.data[..., 3] > 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RasterBuffer):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and np.array_equal(self.data, other.data)
        )

    def __repr__(self) -> str:
        return f"RasterBuffer({self.width}x{self.height})"
