"""
Translation
===========

Translate the user's description through the MyMemory API.

Translation is best effort: any failure returns the original text unchanged.

Usage:
    from imagecraft.translate import translate
    english = translate("قطة تلعب في الحديقة")
"""

import logging

import requests

from imagecraft.config import get_config

logger = logging.getLogger(__name__)


def translate(text: str, source: str = "ar", target: str = "en", timeout: int = 15) -> str:
    """
    Translate text, falling back to the input on any error or empty result.

    Args:
        text:    Text to translate.
        source:  Source language code.
        target:  Target language code.
        timeout: Request timeout in seconds.

    Returns:
        The translated text, or ``text`` itself.
    """
    if not text.strip() or source == target:
        return text

    try:
        r = requests.get(
            get_config()["mymemory_url"],
            params={"q": text, "langpair": f"{source}|{target}"},
            timeout=timeout,
        )
        if r.status_code != 200:
            raise RuntimeError(f"Translation failed ({r.status_code}): {r.text[:300]}")
        data = r.json()
    except (requests.RequestException, RuntimeError, ValueError) as e:
        logger.warning("Translation failed, using original text: %s", e)
        return text

    response_data = data.get("responseData") if isinstance(data, dict) else None
    translated = response_data.get("translatedText") if isinstance(response_data, dict) else None
    if isinstance(translated, str) and translated.strip():
        return translated
    return text
