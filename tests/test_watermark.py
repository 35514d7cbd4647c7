from io import BytesIO

import pytest
from PIL import Image

from imagecraft.surface import PillowSurface, RenderingUnavailable
from imagecraft.watermark import (
    LABEL,
    MIN_FONT_SIZE,
    apply_watermark,
    compute_region,
    erase_box,
    fit_font_size,
    shadow_blur_for,
    watermark_png,
)

SIZES = [(64, 64), (100, 300), (333, 77), (512, 512), (1024, 768), (1536, 1024), (4096, 4096), (4096, 64)]


def approx_measure(text, size):
    return len(text) * size * 0.6


@pytest.mark.parametrize("w,h", SIZES)
def test_region_is_bounded_and_inside_image(w, h):
    region = compute_region(w, h)

    assert 0 < region.width <= min(w * 0.38, 480)
    assert 0 < region.height <= min(h * 0.12, 140)
    assert region.x >= 0 and region.y >= 0
    assert region.x + region.width <= w
    assert region.y + region.height <= h
    assert region.radius >= 6


def test_region_is_anchored_bottom_right_with_padding():
    region = compute_region(1024, 1024)

    assert region.pad == 20
    assert (region.width, region.height) == (389, 122)
    assert region.x == 1024 - 389 - 20
    assert region.y == 1024 - 122 - 20
    assert region.radius == 15


def test_region_caps_on_large_images():
    region = compute_region(8000, 6000)

    assert region.width == 480
    assert region.height == 140


def test_region_rejects_empty_image():
    with pytest.raises(ValueError):
        compute_region(0, 10)


def test_erase_box_grows_and_clamps():
    region = compute_region(1024, 1024)
    box = erase_box(region, 1024, 1024)

    assert box.x < region.x and box.y < region.y
    assert box.x + box.width <= 1024
    assert box.y + box.height <= 1024


@pytest.mark.parametrize("rect_w", range(40, 481, 20))
def test_font_size_never_below_floor_and_fits_when_possible(rect_w):
    pad = 20
    size = fit_font_size(LABEL, rect_w, 140, pad, approx_measure)
    limit = rect_w - pad * 1.5

    assert size >= MIN_FONT_SIZE
    if size > MIN_FONT_SIZE or approx_measure(LABEL, MIN_FONT_SIZE) <= limit:
        assert approx_measure(LABEL, size) <= limit


def test_font_size_starts_at_45_percent_of_height():
    assert fit_font_size(LABEL, 10_000, 140, 0, approx_measure) == 63


def test_font_size_for_tiny_box_is_floor():
    assert fit_font_size(LABEL, 24, 7, 1, approx_measure) == MIN_FONT_SIZE


def test_font_size_fits_with_real_font():
    surface = PillowSurface(Image.new("RGB", (1024, 1024), "white"))
    region = compute_region(1024, 1024)
    size = fit_font_size(LABEL, region.width, region.height, region.pad, surface.measure_text)

    assert size >= MIN_FONT_SIZE
    assert surface.measure_text(LABEL, size) <= region.width - region.pad * 1.5


def test_shadow_blur_has_minimum():
    assert shadow_blur_for(10) == 2
    assert shadow_blur_for(54) == 5


@pytest.mark.parametrize("w,h", SIZES)
def test_watermark_keeps_dimensions(w, h):
    out = apply_watermark(Image.new("RGB", (w, h), (30, 160, 220)))

    assert out.size == (w, h)


def test_watermark_darkens_corner_only():
    src = Image.new("RGB", (1024, 1024), "white")
    out = apply_watermark(src)
    region = compute_region(1024, 1024)

    # Top edge of the mark box, away from the centered text
    r, g, b = out.getpixel((region.x + region.radius, region.y + 3))
    assert r < 120 and g < 120 and b < 120
    assert out.getpixel((10, 10)) == (255, 255, 255)
    assert out.getpixel((region.x - 2, region.y - 2)) == (255, 255, 255)


def test_watermark_png_roundtrip(png_factory):
    data = watermark_png(png_factory(640, 480))
    img = Image.open(BytesIO(data))

    assert img.format == "PNG"
    assert img.size == (640, 480)


def test_watermark_keeps_alpha_channel():
    out = apply_watermark(Image.new("RGBA", (200, 200), (0, 0, 0, 0)))

    assert out.mode == "RGBA"


def test_watermark_png_rejects_garbage():
    with pytest.raises(RenderingUnavailable):
        watermark_png(b"definitely not an image")
