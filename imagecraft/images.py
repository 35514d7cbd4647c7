"""
Image Loading Utilities
=======================

Fetch generated images from the provider and decode them with Pillow.

A failed load (non-2xx status or bytes Pillow cannot decode) is retried once
with a cache-busting query parameter before giving up.

Usage:
    from imagecraft.images import load_image, load_all

    image = load_image(url)

    results = load_all(requests, on_loaded=lambda req, img: history.add(...))
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from io import BytesIO
from typing import Callable
from urllib.parse import quote

import requests
from PIL import Image, UnidentifiedImageError

from imagecraft.config import get_config

logger = logging.getLogger(__name__)

# Provider generations routinely take tens of seconds
DEFAULT_TIMEOUT = 120


class ImageLoadError(RuntimeError):
    """The image could not be fetched or decoded, even after a retry."""


def provider_url(prompt: str, width: int = 1024, height: int = 1024) -> str:
    """Direct generation URL without the provider's own logo."""
    base = get_config()["pollinations_base"]
    return f"{base}{quote(prompt, safe='')}?width={width}&height={height}&nologo=true"


def cache_busted(url: str) -> str:
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}cb={int(time.time() * 1000)}"


def decode_image(data: bytes) -> Image.Image:
    """Decode raw bytes into a loaded Pillow image."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageLoadError(f"Could not decode image: {e}") from e
    if img.width <= 0 or img.height <= 0:
        raise ImageLoadError("Decoded image has no pixels")
    return img


def _get_once(url: str, timeout: int) -> bytes:
    try:
        r = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise ImageLoadError(f"Failed to download image: {e}") from e
    if not 200 <= r.status_code < 300:
        raise ImageLoadError(f"Failed to download image: {r.status_code}")
    return r.content


def _fetch_once(url: str, timeout: int) -> tuple[bytes, Image.Image]:
    data = _get_once(url, timeout)
    return data, decode_image(data)


def fetch_image(url: str, timeout: int = DEFAULT_TIMEOUT) -> tuple[bytes, Image.Image]:
    """
    Download and decode an image, retrying once with a cache-busting parameter.

    Returns:
        Tuple of (raw bytes, decoded image).

    Raises:
        ImageLoadError: If both attempts fail.
    """
    try:
        return _fetch_once(url, timeout)
    except ImageLoadError as first:
        logger.info("Image load failed (%s), retrying with cache buster", first)
    return _fetch_once(cache_busted(url), timeout)


def fetch_image_bytes(url: str, timeout: int = DEFAULT_TIMEOUT) -> bytes:
    """
    Download the raw image payload without decoding it.

    Only transport failures and non-2xx responses are retried. Bytes Pillow
    cannot read are returned as-is for the caller to deal with.
    """
    try:
        return _get_once(url, timeout)
    except ImageLoadError as first:
        logger.info("Image download failed (%s), retrying with cache buster", first)
    return _get_once(cache_busted(url), timeout)


def load_image(url: str, timeout: int = DEFAULT_TIMEOUT) -> Image.Image:
    return fetch_image(url, timeout)[1]


@dataclass
class LoadResult:
    request: object
    loaded: bool
    error: str | None = None


def load_all(
    items: list,
    on_loaded: Callable[[object, Image.Image], None],
    url_of: Callable[[object], str] = lambda item: item.url,
    max_workers: int = 8,
    timeout: int = DEFAULT_TIMEOUT,
) -> list[LoadResult]:
    """
    Load every item's image in parallel.

    ``on_loaded`` runs once per successful decode, as soon as that image is
    ready. Results come back in the order of ``items``.
    """
    if not items:
        return []

    results: dict[int, LoadResult] = {}
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as executor:
        futures = {
            executor.submit(load_image, url_of(item), timeout): i
            for i, item in enumerate(items)
        }
        for future in as_completed(futures):
            i = futures[future]
            item = items[i]
            try:
                img = future.result()
            except ImageLoadError as e:
                logger.warning("Giving up on image %s: %s", url_of(item), e)
                results[i] = LoadResult(item, False, str(e))
                continue
            on_loaded(item, img)
            results[i] = LoadResult(item, True)

    return [results[i] for i in range(len(items))]
