"""
Arabish Image Craft
===================

Utilities behind the image craft service: turn a description (usually Arabic)
into styled generations, watermark downloads, and export short clips.

Available modules:
    - config: Settings discovery and environment overrides
    - i18n: Arabic/English interface strings and the per-request language context
    - styles: The style preset table and single/multi selection
    - prompts: Prompt + style assembly into generation URLs
    - translate: MyMemory translation with silent fallback
    - images: Image download/decode with one cache-busting retry
    - surface: Drawing surface used by the watermark compositor
    - watermark: Bottom-right product mark
    - video: Ken Burns clip export through ffmpeg
    - history: Per-device history of generated images
    - keys: API key issuance, lookup and rate limiting
    - share, stats, install: Share links, display counters, install prompts

Quick Start:
    from imagecraft.translate import translate
    from imagecraft.styles import StyleSelection
    from imagecraft.prompts import assemble_requests

    english = translate("قطة تلعب في الحديقة")
    requests = assemble_requests(english, StyleSelection().resolve())

    from imagecraft.images import fetch_image_bytes
    from imagecraft.watermark import watermark_png
    png = watermark_png(fetch_image_bytes(requests[0].url))

    from imagecraft.images import load_image
    from imagecraft.video import export_video
    clip = export_video(load_image(requests[0].url))
"""

from imagecraft.config import get_config
