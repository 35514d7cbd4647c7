"""
Prompt assembly
===============

Combine a translated prompt with the selected styles into generation requests.
Every request gets its own seed so identical prompts still differ.
"""

import random
import time
import uuid
from dataclasses import dataclass, asdict
from urllib.parse import quote

from imagecraft.config import get_config
from imagecraft.styles import Style


@dataclass
class GeneratedImage:
    id: str
    url: str
    prompt: str
    style_id: str
    style: str
    seed: str
    moving: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_prompt(english: str, style: Style) -> str:
    return f"{english}, {style.en_suffix}"


def build_url(prompt: str, seed: str | None = None) -> str:
    """Pollinations URL with cache-busting timestamp and random id."""
    base = get_config()["pollinations_base"]
    qp = f"?t={_now_ms()}&r={uuid.uuid4()}"
    if seed:
        qp += f"&seed={seed}"
    return f"{base}{quote(prompt, safe='')}{qp}"


def assemble_requests(
    english: str,
    styles: list[Style],
    language: str = "ar",
    rng: random.Random | None = None,
) -> list[GeneratedImage]:
    """One generation request per style, each with an independent seed."""
    rng = rng or random.Random()
    now = _now_ms()
    requests_ = []
    used = set()
    for i, style in enumerate(styles):
        value = now + i + rng.randint(0, 999)
        while value in used:
            value += 1
        used.add(value)
        seed = str(value)
        prompt = build_prompt(english, style)
        requests_.append(GeneratedImage(
            id=str(uuid.uuid4()),
            url=build_url(prompt, seed),
            prompt=prompt,
            style_id=style.id,
            style=style.label(language),
            seed=seed,
        ))
    return requests_
