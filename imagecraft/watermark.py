"""
Watermark compositor
====================

Stamp the product mark over the bottom-right corner of an image.

The corner is first re-drawn blurred so any mark the provider left there is
smeared out, then covered with a translucent rounded box carrying the label.
Faint ghosting of a previous mark can survive the blur.

Usage:
    from imagecraft.watermark import watermark_png

    png_bytes = watermark_png(raw_bytes)
"""

import math
from dataclasses import dataclass
from typing import Callable

from PIL import Image

from imagecraft.surface import Box, DrawingSurface, PillowSurface

LABEL = "ARABISH IMAGE CRAFT"

MIN_FONT_SIZE = 10
ERASE_BLUR_RADIUS = 12
BASE_RGBA = (0, 0, 0, round(255 * 0.65))
SHADOW_RGBA = (0, 0, 0, round(255 * 0.35))
TEXT_RGBA = (255, 255, 255, 255)


@dataclass(frozen=True)
class WatermarkRegion:
    x: int
    y: int
    width: int
    height: int
    radius: int
    pad: int

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)


def _round(value: float) -> int:
    # JavaScript-style rounding, halves go up
    return math.floor(value + 0.5)


def compute_region(w: int, h: int) -> WatermarkRegion:
    """Mark rectangle for a w x h image, proportional to its size."""
    if w <= 0 or h <= 0:
        raise ValueError(f"Image dimensions must be positive, got {w}x{h}")
    pad = _round(min(w, h) * 0.02)
    # Rounded down so the box never exceeds its fraction of the image
    rect_w = math.floor(min(w * 0.38, 480))
    rect_h = math.floor(min(h * 0.12, 140))
    radius = max(6, _round(min(rect_w, rect_h) * 0.12))
    return WatermarkRegion(
        x=w - rect_w - pad,
        y=h - rect_h - pad,
        width=rect_w,
        height=rect_h,
        radius=radius,
        pad=pad,
    )


def erase_box(region: WatermarkRegion, w: int, h: int) -> Box:
    """The mark rectangle grown by 15% of its shorter side, clamped to the image."""
    expand = _round(min(region.width, region.height) * 0.15)
    sx = max(0, region.x - expand)
    sy = max(0, region.y - expand)
    sw = min(w - sx, region.width + expand * 2)
    sh = min(h - sy, region.height + expand * 2)
    return Box(sx, sy, sw, sh)


def fit_font_size(
    label: str,
    rect_w: int,
    rect_h: int,
    pad: int,
    measure: Callable[[str, int], float],
) -> int:
    """
    Largest font size, counting down from 45% of the box height, whose
    rendered label fits in ``rect_w - pad * 1.5``. Never below MIN_FONT_SIZE.
    """
    limit = rect_w - pad * 1.5
    size = math.floor(rect_h * 0.45)
    while size > MIN_FONT_SIZE and measure(label, size) > limit:
        size -= 1
    return max(size, MIN_FONT_SIZE)


def shadow_blur_for(font_size: int) -> int:
    return max(2, math.floor(font_size * 0.1))


def composite(surface: DrawingSurface, label: str = LABEL) -> DrawingSurface:
    """Draw the mark onto a surface in place."""
    region = compute_region(surface.width, surface.height)
    if region.width <= 0 or region.height <= 0:
        return surface

    clip = region.box
    surface.blur_into(erase_box(region, surface.width, surface.height), clip, ERASE_BLUR_RADIUS, region.radius)
    surface.fill_rounded(clip, region.radius, BASE_RGBA)

    size = fit_font_size(label, region.width, region.height, region.pad, surface.measure_text)
    surface.draw_text_centered(label, clip, region.radius, size, TEXT_RGBA, SHADOW_RGBA, shadow_blur_for(size))
    return surface


def apply_watermark(image: Image.Image) -> Image.Image:
    """Return a watermarked copy of ``image`` with the same dimensions."""
    surface = PillowSurface(image)
    composite(surface)
    return surface.to_image()


def watermark_png(data: bytes) -> bytes:
    """
    Watermark encoded image bytes.

    Raises:
        RenderingUnavailable: If the bytes cannot be decoded onto a surface.
    """
    surface = PillowSurface.from_bytes(data)
    composite(surface)
    return surface.encode_png()
