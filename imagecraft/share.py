"""Shareable links that carry the image description inside the URL."""

import base64
import binascii
import json
import time


def encode_share(url: str, prompt: str = "", style: str = "", timestamp: int | None = None) -> str:
    payload = {
        "url": url,
        "prompt": prompt or "",
        "style": style or "",
        "timestamp": timestamp if timestamp is not None else int(time.time() * 1000),
    }
    raw = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_share(share_id: str) -> dict | None:
    """Payload of a share id, or None when it is not one of ours."""
    padded = share_id + "=" * (-len(share_id) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    if not isinstance(data, dict) or not isinstance(data.get("url"), str):
        return None
    return data


def share_path(share_id: str) -> str:
    return f"/image/{share_id}"
