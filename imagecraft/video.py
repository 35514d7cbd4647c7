"""
Video Export
============

Turn one still image into a short Ken Burns clip: the image is cover-fitted to
a 1280x720 frame, then slowly zoomed to 112% while panning toward the upper
left.

Frames are produced on a fixed-interval timer and pushed to a frame recorder.
The recorder picks the best codec the local ffmpeg build can create:

    1. libvpx-vp9 (webm)
    2. libvpx     (webm)
    3. libx264    (mp4)
    4. mpeg4      (mp4)
    5. ffmpeg's default for mp4

Exactly ``fps * duration`` frames are recorded, however slowly the encoder
runs. A safety timeout ends the export early when a single frame stalls the
recorder for ``duration + 400ms``.

Usage:
    from imagecraft.video import export_video

    clip = export_video(image)
    Path(f"clip.{clip.extension}").write_bytes(clip.data)
"""

import logging
import shutil
import subprocess
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import imageio.v2 as iio
import imageio_ffmpeg
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

WIDTH = 1280
HEIGHT = 720
FPS = 30
DURATION_MS = 6000
SAFETY_MARGIN_MS = 400

ZOOM = 0.12
PAN = -0.2


class RecordingUnsupported(RuntimeError):
    """No frame recorder could be constructed on this host."""


@dataclass(frozen=True)
class CodecProfile:
    codec: str | None
    extension: str
    mime_type: str
    bitrate: str | None = None


# Best first. codec=None lets ffmpeg choose its default encoder.
CODEC_PROFILES = [
    CodecProfile("libvpx-vp9", "webm", "video/webm", "2M"),
    CodecProfile("libvpx", "webm", "video/webm", "2M"),
    CodecProfile("libx264", "mp4", "video/mp4"),
    CodecProfile("mpeg4", "mp4", "video/mp4", "4M"),
]
DEFAULT_PROFILE = CodecProfile(None, "mp4", "video/mp4")


@dataclass
class VideoClip:
    data: bytes
    mime_type: str
    extension: str
    frames: int
    fps: int

    @property
    def duration_ms(self) -> float:
        return self.frames * 1000 / self.fps


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def cover_fit(src_w: int, src_h: int, dst_w: int, dst_h: int) -> tuple[float, float, float, float]:
    """Placement (dx, dy, dw, dh) that fills the destination without distortion."""
    img_aspect = src_w / src_h
    dst_aspect = dst_w / dst_h
    if img_aspect > dst_aspect:
        # Wider than the frame: match height, crop the sides
        dh = dst_h
        dw = dh * img_aspect
        return (dst_w - dw) / 2, 0.0, dw, dh
    dw = dst_w
    dh = dw / img_aspect
    return 0.0, (dst_h - dh) / 2, dw, dh


def frame_transform(frame_index: int, total_frames: int, width: int = WIDTH, height: int = HEIGHT) -> tuple[float, float, float]:
    """(scale, pan_x, pan_y) for a frame; progress runs 0..1 over the clip."""
    t = min(1.0, frame_index / max(1, total_frames - 1))
    scale = 1 + ZOOM * t
    return scale, PAN * width * (scale - 1), PAN * height * (scale - 1)


# ---------------------------------------------------------------------------
# Export job
# ---------------------------------------------------------------------------

@dataclass
class VideoExportJob:
    width: int = WIDTH
    height: int = HEIGHT
    fps: int = FPS
    duration_ms: int = DURATION_MS
    frame_index: int = 0
    stopped: bool = False
    stop_reason: str | None = None
    recorder: "FrameRecorder | None" = field(default=None, repr=False)

    @property
    def total_frames(self) -> int:
        return round(self.fps * self.duration_ms / 1000)

    @property
    def interval_ms(self) -> int:
        return max(4, round(1000 / self.fps))

    @property
    def safety_timeout_ms(self) -> int:
        return self.duration_ms + SAFETY_MARGIN_MS

    def stop(self, reason: str) -> None:
        if not self.stopped:
            self.stopped = True
            self.stop_reason = reason


def render_frame(image: Image.Image, job: VideoExportJob) -> Image.Image:
    """Draw the image for the job's current frame onto a black canvas."""
    dx, dy, dw, dh = cover_fit(image.width, image.height, job.width, job.height)
    scale, pan_x, pan_y = frame_transform(job.frame_index, job.total_frames, job.width, job.height)

    # Canvas point X maps back to source x = (X - left) * a
    left = pan_x + scale * dx
    top = pan_y + scale * dy
    a = image.width / (scale * dw)
    e = image.height / (scale * dh)
    return image.transform(
        (job.width, job.height),
        Image.Transform.AFFINE,
        (a, 0, -left * a, 0, e, -top * e),
        resample=Image.Resampling.BILINEAR,
        fillcolor=(0, 0, 0),
    )


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------

class Clock:
    """Wall clock in milliseconds."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000

    def sleep_ms(self, ms: float) -> None:
        time.sleep(ms / 1000)


# ---------------------------------------------------------------------------
# Frame recorders
# ---------------------------------------------------------------------------

class FrameRecorder(ABC):
    mime_type: str = "video/mp4"
    extension: str = "mp4"

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def push_frame(self, frame: Image.Image) -> None:
        ...

    @abstractmethod
    def stop(self) -> bytes:
        """Finish encoding and return the clip bytes."""

    def abort(self) -> None:
        """Discard whatever was recorded."""


def available_encoders(ffmpeg_exe: str, timeout: int = 10) -> set[str]:
    """Names of the video encoders compiled into an ffmpeg binary."""
    proc = subprocess.run(
        [ffmpeg_exe, "-hide_banner", "-encoders"],
        stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, timeout=timeout,
    )
    encoders = set()
    for line in proc.stdout.splitlines():
        parts = line.split()
        # Encoder rows look like " V....D libx264  H.264 ..."
        if len(parts) >= 2 and parts[0].startswith("V") and len(parts[0]) == 6:
            encoders.add(parts[1])
    return encoders


def choose_profile(encoders: set[str]) -> CodecProfile:
    for profile in CODEC_PROFILES:
        if profile.codec in encoders:
            return profile
    return DEFAULT_PROFILE


class FfmpegFrameRecorder(FrameRecorder):
    """Encode frames through imageio's ffmpeg writer into a temporary file."""

    def __init__(self, fps: int, profile: CodecProfile):
        self.fps = fps
        self.profile = profile
        self.mime_type = profile.mime_type
        self.extension = profile.extension
        self._tmp_dir: Path | None = None
        self._path: Path | None = None
        self._writer = None

    def start(self) -> None:
        self._tmp_dir = Path(tempfile.mkdtemp(prefix="imagecraft-video-"))
        self._path = self._tmp_dir / f"clip.{self.extension}"
        try:
            self._writer = iio.get_writer(
                str(self._path),
                format="FFMPEG",
                mode="I",
                fps=self.fps,
                codec=self.profile.codec,
                bitrate=self.profile.bitrate,
                quality=None if self.profile.bitrate else 7,
                macro_block_size=None,
                ffmpeg_log_level="error",
            )
        except (RuntimeError, OSError, ValueError) as e:
            self._cleanup()
            raise RecordingUnsupported(f"Could not open video writer: {e}") from e

    def push_frame(self, frame: Image.Image) -> None:
        self._writer.append_data(np.asarray(frame.convert("RGB"), dtype=np.uint8))

    def stop(self) -> bytes:
        try:
            self._writer.close()
            return self._path.read_bytes()
        finally:
            self._cleanup()

    def abort(self) -> None:
        if self._writer is not None:
            try:
                self._writer.close()
            except (RuntimeError, OSError) as e:
                logger.debug("Ignoring writer close error on abort: %s", e)
        self._cleanup()

    def _cleanup(self) -> None:
        self._writer = None
        if self._tmp_dir is not None:
            shutil.rmtree(self._tmp_dir, ignore_errors=True)
            self._tmp_dir = None


def create_recorder(job: VideoExportJob) -> FrameRecorder:
    """
    Build a recorder for the best codec this host supports.

    Raises:
        RecordingUnsupported: If no ffmpeg binary is available.
    """
    try:
        ffmpeg_exe = imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError as e:
        raise RecordingUnsupported(f"ffmpeg is not available: {e}") from e

    try:
        profile = choose_profile(available_encoders(ffmpeg_exe))
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("Could not list ffmpeg encoders, using default codec: %s", e)
        profile = DEFAULT_PROFILE

    logger.info("Recording with codec %s (%s)", profile.codec or "default", profile.extension)
    return FfmpegFrameRecorder(job.fps, profile)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def run_frame_loop(image: Image.Image, job: VideoExportJob, clock: Clock) -> None:
    """
    Push ``total_frames`` frames, paced by the fixed interval.

    The interval only delays frames while the recorder keeps up. A slow
    encoder gets every frame late instead of fewer frames, since the clip
    length is frames / fps. The safety timeout guards against a stalled
    recorder: a single frame taking ``duration + 400ms`` ends the export.
    """
    recorder = job.recorder
    next_tick = clock.now_ms() + job.interval_ms

    while not job.stopped:
        wait = next_tick - clock.now_ms()
        if wait > 0:
            clock.sleep_ms(wait)

        pushed_at = clock.now_ms()
        recorder.push_frame(render_frame(image, job))
        job.frame_index += 1
        done_at = clock.now_ms()

        if job.frame_index >= job.total_frames:
            job.stop("complete")
        elif done_at - pushed_at >= job.safety_timeout_ms:
            logger.warning("Video recorder stalled for %d ms on frame %d, stopping",
                           done_at - pushed_at, job.frame_index)
            job.stop("timeout")
        # Behind schedule: carry on from now rather than bursting to catch up
        next_tick = max(next_tick + job.interval_ms, done_at)


def export_video(
    image: Image.Image,
    recorder_factory: Callable[[VideoExportJob], FrameRecorder] = create_recorder,
    clock: Clock | None = None,
    job: VideoExportJob | None = None,
) -> VideoClip:
    """
    Record a panning/zooming clip of ``image``.

    Args:
        image:            Decoded source image.
        recorder_factory: Builds the frame recorder for the job.
        clock:            Timer source; the wall clock by default.
        job:              Export parameters; 1280x720, 30fps, 6s by default.

    Returns:
        The encoded clip.

    Raises:
        RecordingUnsupported: If no recorder can be constructed or started.
    """
    job = job or VideoExportJob()
    clock = clock or Clock()
    source = image.convert("RGB")

    job.recorder = recorder_factory(job)
    job.recorder.start()
    try:
        run_frame_loop(source, job, clock)
        data = job.recorder.stop()
    except Exception:
        job.recorder.abort()
        raise
    finally:
        recorder, job.recorder = job.recorder, None

    logger.info("Exported %d frames (%s) in %s", job.frame_index, job.stop_reason, recorder.extension)
    return VideoClip(
        data=data,
        mime_type=recorder.mime_type,
        extension=recorder.extension,
        frames=job.frame_index,
        fps=job.fps,
    )
