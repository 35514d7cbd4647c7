from unittest.mock import patch

import pytest
import requests

from imagecraft.images import (
    ImageLoadError,
    cache_busted,
    fetch_image,
    fetch_image_bytes,
    load_all,
    provider_url,
)
from imagecraft.prompts import GeneratedImage
from imagecraft.translate import translate


# ---------------------------------------------------------------------------
# translate
# ---------------------------------------------------------------------------

def test_translate_returns_translation(fake_response):
    payload = {"responseData": {"translatedText": "A cat playing in the garden"}}
    with patch("imagecraft.translate.requests.get", return_value=fake_response(200, payload=payload)) as get:
        assert translate("قطة تلعب في الحديقة") == "A cat playing in the garden"

    assert get.call_args.kwargs["params"] == {"q": "قطة تلعب في الحديقة", "langpair": "ar|en"}


@pytest.mark.parametrize("response", [
    {"status_code": 500, "payload": {"responseData": {"translatedText": "x"}}},
    {"status_code": 200, "payload": {"responseData": {"translatedText": ""}}},
    {"status_code": 200, "payload": {"responseData": None}},
    {"status_code": 200, "payload": ["not", "a", "dict"]},
    {"status_code": 200, "payload": None},
])
def test_translate_falls_back_to_input(fake_response, response):
    with patch("imagecraft.translate.requests.get", return_value=fake_response(**response)):
        assert translate("قطة") == "قطة"


def test_translate_falls_back_on_network_error():
    with patch("imagecraft.translate.requests.get", side_effect=requests.ConnectionError("offline")):
        assert translate("قطة") == "قطة"


def test_translate_skips_same_language():
    with patch("imagecraft.translate.requests.get") as get:
        assert translate("hello", source="en", target="en") == "hello"
    get.assert_not_called()


# ---------------------------------------------------------------------------
# images
# ---------------------------------------------------------------------------

def test_provider_url_disables_logo():
    url = provider_url("a red fox", 512, 768)

    assert url.endswith("a%20red%20fox?width=512&height=768&nologo=true")


def test_cache_busted_separator():
    assert "?cb=" in cache_busted("https://x/img")
    assert "&cb=" in cache_busted("https://x/img?seed=1")


def test_fetch_retries_once_with_cache_buster(fake_response, png_factory):
    responses = [fake_response(500), fake_response(200, content=png_factory(32, 16))]
    with patch("imagecraft.images.requests.get", side_effect=responses) as get:
        data, img = fetch_image("https://img.example/prompt/cat?seed=4")

    assert img.size == (32, 16)
    assert data.startswith(b"\x89PNG")
    urls = [c.args[0] for c in get.call_args_list]
    assert urls[0] == "https://img.example/prompt/cat?seed=4"
    assert urls[1].startswith("https://img.example/prompt/cat?seed=4&cb=")


def test_fetch_gives_up_after_retry(fake_response):
    with patch("imagecraft.images.requests.get", return_value=fake_response(200, content=b"<html>busy</html>")) as get:
        with pytest.raises(ImageLoadError):
            fetch_image("https://img.example/prompt/cat")

    assert get.call_count == 2


def test_fetch_bytes_returns_undecodable_payload(fake_response):
    with patch("imagecraft.images.requests.get", return_value=fake_response(200, content=b"\x89PNG-but-truncated")) as get:
        assert fetch_image_bytes("https://img.example/prompt/cat") == b"\x89PNG-but-truncated"

    assert get.call_count == 1


def test_fetch_bytes_retries_failed_status(fake_response):
    responses = [fake_response(429), fake_response(200, content=b"raw")]
    with patch("imagecraft.images.requests.get", side_effect=responses) as get:
        assert fetch_image_bytes("https://img.example/prompt/cat") == b"raw"

    assert "?cb=" in get.call_args_list[1].args[0]


def test_fetch_bytes_gives_up_after_retry():
    with patch("imagecraft.images.requests.get", side_effect=requests.Timeout("slow")) as get:
        with pytest.raises(ImageLoadError):
            fetch_image_bytes("https://img.example/prompt/cat")

    assert get.call_count == 2


def test_load_all_reports_each_item(png_factory):
    items = [
        GeneratedImage("a", "https://img/a", "p", "anime", "Anime", "1"),
        GeneratedImage("b", "https://img/b", "p", "neon", "Neon", "2"),
    ]
    loaded = []

    def fake_load(url, timeout):
        if url.endswith("/b"):
            raise ImageLoadError("boom")
        return "image"

    with patch("imagecraft.images.load_image", side_effect=fake_load):
        results = load_all(items, on_loaded=lambda item, img: loaded.append(item.id))

    assert loaded == ["a"]
    assert [r.loaded for r in results] == [True, False]
    assert results[1].error == "boom"
    assert [r.request.id for r in results] == ["a", "b"]


def test_load_all_empty():
    assert load_all([], on_loaded=lambda item, img: None) == []
