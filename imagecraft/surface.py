"""
Drawing surfaces
================

The watermark compositor only needs a handful of 2D drawing operations. They
are collected in DrawingSurface so the compositor does not care what does the
drawing; PillowSurface is the implementation used by the service.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO

from PIL import Image, ImageDraw, ImageFilter, ImageFont

# Bold sans fonts across Linux and macOS, Pillow's bundled font as last resort
FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",            # Debian/Ubuntu
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",                         # Arch
    "/usr/share/fonts/dejavu-sans-fonts/DejaVuSans-Bold.ttf",           # Fedora
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",                # macOS
    "DejaVuSans-Bold.ttf",
]


class RenderingUnavailable(RuntimeError):
    """No drawing surface could be created for the image."""


@dataclass(frozen=True)
class Box:
    x: int
    y: int
    width: int
    height: int

    @property
    def bounds(self) -> tuple[int, int, int, int]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@lru_cache(maxsize=64)
def load_font(size: int) -> ImageFont.FreeTypeFont:
    for fp in FONT_PATHS:
        try:
            return ImageFont.truetype(fp, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default(size=size)


class DrawingSurface(ABC):
    """A raster the compositor can draw on."""

    width: int
    height: int

    @abstractmethod
    def measure_text(self, text: str, size: int) -> float:
        """Rendered width of ``text`` in the bold label font at ``size`` px."""

    @abstractmethod
    def blur_into(self, source: Box, clip: Box, radius: float, corner_radius: int) -> None:
        """Blur the ``source`` region and draw it back inside the rounded ``clip``."""

    @abstractmethod
    def fill_rounded(self, clip: Box, corner_radius: int, rgba: tuple[int, int, int, int]) -> None:
        ...

    @abstractmethod
    def draw_text_centered(
        self,
        text: str,
        clip: Box,
        corner_radius: int,
        size: int,
        fill: tuple[int, int, int, int],
        shadow: tuple[int, int, int, int],
        shadow_blur: float,
    ) -> None:
        ...

    @abstractmethod
    def encode_png(self) -> bytes:
        ...


class PillowSurface(DrawingSurface):

    def __init__(self, image: Image.Image):
        try:
            if image.width <= 0 or image.height <= 0:
                raise ValueError("image has no pixels")
            self._has_alpha = "A" in image.getbands()
            self.image = image.convert("RGBA")
        except (OSError, ValueError) as e:
            raise RenderingUnavailable(f"Cannot draw on image: {e}") from e
        self.width, self.height = self.image.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "PillowSurface":
        try:
            img = Image.open(BytesIO(data))
            img.load()
        except (OSError, ValueError) as e:
            raise RenderingUnavailable(f"Cannot decode image: {e}") from e
        return cls(img)

    def _mask(self, clip: Box, corner_radius: int) -> Image.Image:
        mask = Image.new("L", (clip.width, clip.height), 0)
        ImageDraw.Draw(mask).rounded_rectangle(
            (0, 0, clip.width - 1, clip.height - 1), radius=corner_radius, fill=255,
        )
        return mask

    def measure_text(self, text: str, size: int) -> float:
        return load_font(size).getlength(text)

    def blur_into(self, source: Box, clip: Box, radius: float, corner_radius: int) -> None:
        blurred = self.image.crop(source.bounds).filter(ImageFilter.GaussianBlur(radius=radius))
        ox, oy = clip.x - source.x, clip.y - source.y
        patch = blurred.crop((ox, oy, ox + clip.width, oy + clip.height))
        self.image.paste(patch, (clip.x, clip.y), self._mask(clip, corner_radius))

    def fill_rounded(self, clip: Box, corner_radius: int, rgba: tuple[int, int, int, int]) -> None:
        region = self.image.crop(clip.bounds)
        overlay = Image.new("RGBA", region.size, rgba)
        self.image.paste(Image.alpha_composite(region, overlay), (clip.x, clip.y), self._mask(clip, corner_radius))

    def draw_text_centered(self, text, clip, corner_radius, size, fill, shadow, shadow_blur):
        font = load_font(size)
        center = (clip.width / 2, clip.height / 2)

        # Canvas-style shadow: same glyphs, no offset, blurred underneath
        shadow_layer = Image.new("RGBA", (clip.width, clip.height), (0, 0, 0, 0))
        ImageDraw.Draw(shadow_layer).text(center, text, font=font, fill=shadow, anchor="mm")
        shadow_layer = shadow_layer.filter(ImageFilter.GaussianBlur(radius=shadow_blur / 2))

        region = Image.alpha_composite(self.image.crop(clip.bounds), shadow_layer)
        ImageDraw.Draw(region).text(center, text, font=font, fill=fill, anchor="mm")
        self.image.paste(region, (clip.x, clip.y), self._mask(clip, corner_radius))

    def to_image(self) -> Image.Image:
        return self.image if self._has_alpha else self.image.convert("RGB")

    def encode_png(self) -> bytes:
        buf = BytesIO()
        self.to_image().save(buf, format="PNG")
        return buf.getvalue()
