"""
Image Craft Backend
===================
FastAPI backend for translated, styled image generation with watermarked
downloads, Ken Burns video export, per-device history and API keys.
"""

import base64
import os
import sys
import time
from pathlib import Path
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

# Add project root to path so we can import imagecraft
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from imagecraft.config import get_config
from imagecraft.history import HistoryEntry, HistoryStore
from imagecraft.i18n import LanguageContext, resolve_language
from imagecraft.images import ImageLoadError, fetch_image_bytes, load_all, load_image, provider_url
from imagecraft.install import manual_instructions
from imagecraft.keys import KeyStore, KeyStoreError, RateLimiter
from imagecraft.logging_setup import configure_logging
from imagecraft.prompts import GeneratedImage, assemble_requests
from imagecraft.share import decode_share, encode_share, share_path
from imagecraft.stats import user_stats
from imagecraft.styles import SINGLE, STYLES, StyleSelection
from imagecraft.surface import RenderingUnavailable
from imagecraft.translate import translate
from imagecraft.video import RecordingUnsupported, export_video
from imagecraft.watermark import watermark_png

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

CONFIG = get_config()
logger = configure_logging("imagecraft", level=CONFIG["log_level"], log_file=CONFIG["log_file"] or None)

MAX_PROXY_SIZE = 1536
DEFAULT_PROXY_SIZE = 1024
WARNING_HEADER = "X-Imagecraft-Warning"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-device-id, x-api-key",
}

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(title="Arabish Image Craft API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[WARNING_HEADER, "Content-Disposition"],
)

key_store = KeyStore()
rate_limiter = RateLimiter()

# ---------------------------------------------------------------------------
# Request context helpers
# ---------------------------------------------------------------------------

def language_for(lang: str | None, accept_language: str | None) -> LanguageContext:
    return resolve_language(lang, accept_language)


def device_of(x_device_id: str | None) -> str:
    return (x_device_id or "").strip() or "anonymous"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _checked_source(url: str) -> str:
    """Only generation URLs may be fetched on the caller's behalf."""
    if not url.startswith(get_config()["pollinations_base"]):
        raise HTTPException(400, "URL must point to the image provider")
    return url


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    prompt: str = Field(default="", max_length=2000)
    mode: str = Field(default=SINGLE)
    style_ids: list[str] = Field(default_factory=lambda: [STYLES[0].id])
    load: bool = Field(default=True)

class RegenerateRequest(BaseModel):
    prompt_en: str = Field(..., min_length=1, max_length=2000)
    prompt: str = Field(default="", max_length=2000)
    mode: str = Field(default=SINGLE)
    style_ids: list[str] = Field(default_factory=lambda: [STYLES[0].id])
    load: bool = Field(default=True)

class ToggleStyleRequest(BaseModel):
    mode: str = Field(default=SINGLE)
    selected_ids: list[str] = Field(default_factory=list)
    style_id: str
    max_multi: int = Field(default=8, ge=1, le=8)

class ExportRequest(BaseModel):
    url: str = Field(..., min_length=1)

class ShareRequest(BaseModel):
    url: str = Field(..., min_length=1)
    prompt: str = Field(default="")
    style: str = Field(default="")

# ---------------------------------------------------------------------------
# Generation helpers
# ---------------------------------------------------------------------------

def _selection(mode: str, style_ids: list[str], max_multi: int = 8) -> StyleSelection:
    try:
        return StyleSelection(mode=mode, selected_ids=style_ids, max_multi=max_multi)
    except ValueError as e:
        raise HTTPException(400, str(e))


def _generate(prompt_ar: str, prompt_en: str, selection: StyleSelection, lang: LanguageContext,
              device_id: str, load: bool) -> dict:
    """Build one request per style, then load them and record the ones that decode."""
    images = assemble_requests(prompt_en, selection.resolve(), lang.language)
    payload = {
        "prompt": prompt_ar,
        "prompt_en": prompt_en,
        "images": [img.to_dict() for img in images],
        "notices": [],
    }
    if not load:
        return payload

    store = HistoryStore.for_device(device_id)

    def on_loaded(img: GeneratedImage, _decoded) -> None:
        store.add(HistoryEntry(
            id=img.id,
            url=img.url,
            prompt_ar=prompt_ar,
            prompt_en=prompt_en,
            style=img.style,
            created_at=_now_ms(),
        ))

    results = load_all(images, on_loaded)
    for record, result in zip(payload["images"], results):
        record["loaded"] = result.loaded
        record["error"] = None if result.loaded else lang.t("toast.image.load.error")
    if not all(r.loaded for r in results):
        payload["notices"].append({
            "title": lang.t("toast.image.error"),
            "description": lang.t("toast.image.load.error"),
        })
    return payload

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.get("/api/styles")
async def list_styles(lang: str = Query(default=None), accept_language: str = Header(default=None)):
    ctx = language_for(lang, accept_language)
    return {
        "styles": [
            {"id": s.id, "name": s.label(ctx.language), "suffix": s.en_suffix, "description": s.description}
            for s in STYLES
        ],
        "max_multi": 8,
    }


@app.post("/api/styles/toggle")
async def toggle_style(req: ToggleStyleRequest, lang: str = Query(default=None),
                       accept_language: str = Header(default=None)):
    ctx = language_for(lang, accept_language)
    selection = _selection(req.mode, req.selected_ids, req.max_multi)
    try:
        warning = selection.toggle(req.style_id, ctx)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"mode": selection.mode, "selected_ids": selection.selected_ids, "warning": warning}


@app.post("/api/generate")
def generate(req: GenerateRequest, lang: str = Query(default=None),
             accept_language: str = Header(default=None), x_device_id: str = Header(default=None)):
    ctx = language_for(lang, accept_language)
    description = req.prompt.strip()
    if not description:
        raise HTTPException(400, ctx.t("toast.empty"))

    selection = _selection(req.mode, req.style_ids)
    english = translate(description)
    return _generate(description, english, selection, ctx, device_of(x_device_id), req.load)


@app.post("/api/regenerate")
def regenerate(req: RegenerateRequest, lang: str = Query(default=None),
               accept_language: str = Header(default=None), x_device_id: str = Header(default=None)):
    ctx = language_for(lang, accept_language)
    selection = _selection(req.mode, req.style_ids)
    return _generate(req.prompt.strip(), req.prompt_en.strip(), selection, ctx, device_of(x_device_id), req.load)


@app.post("/api/download")
def download(req: ExportRequest, lang: str = Query(default=None), accept_language: str = Header(default=None)):
    ctx = language_for(lang, accept_language)
    try:
        raw = fetch_image_bytes(_checked_source(req.url))
    except ImageLoadError as e:
        logger.warning("Download failed for %s: %s", req.url, e)
        raise HTTPException(502, ctx.t("toast.image.load.error"))

    try:
        png = watermark_png(raw)
    except RenderingUnavailable as e:
        logger.warning("Watermarking unavailable, sending original: %s", e)
        headers = _attachment(f"pollinations-{_now_ms()}.png")
        headers[WARNING_HEADER] = quote(ctx.t("toast.download.fallback"))
        return Response(content=raw, media_type="image/png", headers=headers)

    return Response(content=png, media_type="image/png",
                    headers=_attachment(f"arabish-image-craft-{_now_ms()}.png"))


@app.post("/api/video")
def video(req: ExportRequest, lang: str = Query(default=None), accept_language: str = Header(default=None)):
    ctx = language_for(lang, accept_language)
    try:
        image = load_image(_checked_source(req.url))
    except ImageLoadError as e:
        logger.warning("Video source failed to load for %s: %s", req.url, e)
        raise HTTPException(502, ctx.t("toast.image.load.error"))

    try:
        clip = export_video(image)
    except RecordingUnsupported as e:
        logger.error("Video export unavailable: %s", e)
        raise HTTPException(422, ctx.t("toast.video.error"))

    return Response(content=clip.data, media_type=clip.mime_type,
                    headers=_attachment(f"arabish-image-craft-{_now_ms()}.{clip.extension}"))

# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

@app.get("/api/history")
async def list_history(x_device_id: str = Header(default=None), limit: int = Query(default=100, ge=1, le=100)):
    items = HistoryStore.for_device(device_of(x_device_id)).items()
    return {"items": [e.to_dict() for e in items[:limit]], "total": len(items)}


@app.delete("/api/history/{entry_id}")
async def remove_history(entry_id: str, x_device_id: str = Header(default=None)):
    items = HistoryStore.for_device(device_of(x_device_id)).remove(entry_id)
    return {"id": entry_id, "removed": True, "total": len(items)}


@app.delete("/api/history")
async def clear_history(x_device_id: str = Header(default=None)):
    HistoryStore.for_device(device_of(x_device_id)).clear()
    return {"cleared": True}

# ---------------------------------------------------------------------------
# Share, stats, install
# ---------------------------------------------------------------------------

@app.post("/api/share")
async def create_share(req: ShareRequest, request: Request):
    share_id = encode_share(req.url, req.prompt, req.style)
    path = share_path(share_id)
    return {"id": share_id, "path": path, "url": str(request.base_url).rstrip("/") + path}


@app.get("/api/share/{share_id}")
async def get_share(share_id: str):
    data = decode_share(share_id)
    if not data:
        raise HTTPException(404, "Image not found")
    return data


@app.get("/api/stats")
async def stats():
    return user_stats()


@app.get("/api/install")
async def install_instructions(lang: str = Query(default=None), accept_language: str = Header(default=None),
                               user_agent: str = Header(default="")):
    ctx = language_for(lang, accept_language)
    return {"instructions": manual_instructions(user_agent, ctx)}

# ---------------------------------------------------------------------------
# Backend functions: API keys and proxied generation
# ---------------------------------------------------------------------------

FUNCTION_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _json(body: dict, status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers=CORS_HEADERS)


async def _body(request: Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _bearer(authorization: str) -> str:
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return authorization.strip()


@app.api_route("/functions/create_api_key", methods=FUNCTION_METHODS)
async def create_api_key(request: Request):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    if request.method != "POST":
        return _json({"error": "Method not allowed"}, 405)

    device_id = request.headers.get("x-device-id", "").strip()
    if not device_id:
        return _json({"error": "x-device-id header is required"}, 400)

    name = (await _body(request)).get("name")
    try:
        api_key, record = await run_in_threadpool(key_store.create, device_id, name)
    except KeyStoreError as e:
        logger.error("Insert api_key error: %s", e)
        return _json({"error": str(e)}, 400)

    return _json({"apiKey": api_key, "prefix": record["key_prefix"], "created_at": record["created_at"]})


def _proxy_generate(prompt: str, width: int, height: int) -> bytes:
    raw = fetch_image_bytes(provider_url(prompt, width, height))
    return watermark_png(raw)


@app.api_route("/functions/generate_image", methods=FUNCTION_METHODS)
async def generate_image_function(request: Request):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    if request.method != "POST":
        return _json({"error": "Method not allowed"}, 405)

    api_key = _bearer(request.headers.get("authorization", ""))
    if not api_key:
        return _json({"error": "Missing Authorization: Bearer <API_KEY>"}, 401)

    body = await _body(request)
    prompt = body.get("prompt")
    if not prompt or not isinstance(prompt, str):
        return _json({"error": "Missing prompt"}, 400)
    try:
        width = min(int(body.get("width") or DEFAULT_PROXY_SIZE), MAX_PROXY_SIZE)
        height = min(int(body.get("height") or DEFAULT_PROXY_SIZE), MAX_PROXY_SIZE)
    except (TypeError, ValueError):
        return _json({"error": "width and height must be integers"}, 400)
    if width <= 0 or height <= 0:
        return _json({"error": "width and height must be positive"}, 400)

    try:
        record = await run_in_threadpool(key_store.lookup, api_key)
    except KeyStoreError as e:
        logger.error("Key validation error: %s", e)
        return _json({"error": "Unauthorized"}, 401)
    if not record or not record.get("enabled", False):
        return _json({"error": "Unauthorized"}, 401)
    if not rate_limiter.allow(record["id"], record.get("rate_limit_per_minute")):
        return _json({"error": "Rate limit exceeded"}, 429)

    try:
        png = await run_in_threadpool(_proxy_generate, prompt, width, height)
    except (ImageLoadError, RenderingUnavailable) as e:
        logger.error("generate_image error: %s", e)
        return _json({"error": str(e)}, 500)

    return _json({"image": "data:image/png;base64," + base64.b64encode(png).decode("ascii")})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
