import subprocess
from unittest.mock import patch

import imageio_ffmpeg
import pytest
from PIL import Image

from imagecraft.video import (
    CODEC_PROFILES,
    DEFAULT_PROFILE,
    FfmpegFrameRecorder,
    RecordingUnsupported,
    VideoExportJob,
    available_encoders,
    choose_profile,
    cover_fit,
    create_recorder,
    export_video,
    frame_transform,
    render_frame,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def now_ms(self):
        return self.now

    def sleep_ms(self, ms):
        self.now += ms


class FakeRecorder:
    mime_type = "video/webm"
    extension = "webm"

    def __init__(self, clock=None, cost_ms=0, fail_at=None, stall_at=None, stall_ms=0):
        self.clock = clock
        self.cost_ms = cost_ms
        self.fail_at = fail_at
        self.stall_at = stall_at
        self.stall_ms = stall_ms
        self.frames = []
        self.started = False
        self.aborted = False

    def start(self):
        self.started = True

    def push_frame(self, frame):
        if self.fail_at is not None and len(self.frames) == self.fail_at:
            raise OSError("encoder died")
        if self.clock is not None:
            self.clock.now += self.stall_ms if len(self.frames) == self.stall_at else self.cost_ms
        self.frames.append(frame.size)

    def stop(self):
        return b"clip-bytes"

    def abort(self):
        self.aborted = True


def test_cover_fit_wide_image_crops_sides():
    dx, dy, dw, dh = cover_fit(2000, 500, 1280, 720)

    assert dh == 720
    assert dw == pytest.approx(2880)
    assert dx == pytest.approx(-800)
    assert dy == 0


def test_cover_fit_tall_image_crops_top_and_bottom():
    dx, dy, dw, dh = cover_fit(500, 1000, 1280, 720)

    assert dw == 1280
    assert dh == pytest.approx(2560)
    assert dx == 0
    assert dy == pytest.approx((720 - 2560) / 2)


def test_frame_transform_runs_from_identity_to_full_zoom():
    assert frame_transform(0, 180) == (1.0, 0.0, 0.0)

    scale, pan_x, pan_y = frame_transform(179, 180)
    assert scale == pytest.approx(1.12)
    assert pan_x == pytest.approx(-0.2 * 1280 * 0.12)
    assert pan_y == pytest.approx(-0.2 * 720 * 0.12)
    assert frame_transform(500, 180)[0] == pytest.approx(1.12)


def test_job_defaults():
    job = VideoExportJob()

    assert job.total_frames == 180
    assert job.interval_ms == 33
    assert job.safety_timeout_ms == 6400


def test_render_frame_covers_canvas():
    job = VideoExportJob()
    src = Image.new("RGB", (640, 360), (255, 0, 0))

    for index in (0, job.total_frames - 1):
        job.frame_index = index
        frame = render_frame(src, job)
        assert frame.size == (1280, 720)
        assert frame.getpixel((2, 2)) == (255, 0, 0)
        assert frame.getpixel((1277, 717)) == (255, 0, 0)


def test_export_records_six_seconds():
    clock = FakeClock()
    recorder = FakeRecorder()
    src = Image.new("RGB", (1024, 1024), (10, 20, 30))

    clip = export_video(src, recorder_factory=lambda job: recorder, clock=clock)

    assert recorder.started
    assert clip.frames == 180
    assert all(size == (1280, 720) for size in recorder.frames)
    assert 0.9 * 6000 <= clip.duration_ms <= 1.2 * 6000
    assert clip.data == b"clip-bytes"
    assert clip.extension == "webm"
    assert clip.mime_type == "video/webm"


def test_slow_encoder_still_records_every_frame():
    clock = FakeClock()
    # 100ms per frame is three times slower than real time
    recorder = FakeRecorder(clock=clock, cost_ms=100)
    job = VideoExportJob(width=160, height=90)

    clip = export_video(Image.new("RGB", (64, 64)), recorder_factory=lambda j: recorder, clock=clock, job=job)

    assert job.stop_reason == "complete"
    assert clip.frames == job.total_frames == 180
    assert clock.now > job.safety_timeout_ms
    assert 0.9 * 6000 <= clip.duration_ms <= 1.2 * 6000


def test_stalled_recorder_stops_at_safety_timeout():
    clock = FakeClock()
    recorder = FakeRecorder(clock=clock, stall_at=5, stall_ms=7000)
    job = VideoExportJob(width=160, height=90)

    clip = export_video(Image.new("RGB", (64, 64)), recorder_factory=lambda j: recorder, clock=clock, job=job)

    assert job.stop_reason == "timeout"
    assert clip.frames == 6
    assert len(recorder.frames) == 6


def test_completed_export_reason():
    job = VideoExportJob(width=160, height=90)

    export_video(Image.new("RGB", (64, 64)), recorder_factory=lambda j: FakeRecorder(), clock=FakeClock(), job=job)

    assert job.stop_reason == "complete"
    assert job.recorder is None


def test_unsupported_recording_propagates():
    def factory(job):
        raise RecordingUnsupported("no encoder")

    with pytest.raises(RecordingUnsupported):
        export_video(Image.new("RGB", (64, 64)), recorder_factory=factory, clock=FakeClock())


def test_encoder_failure_aborts_recorder():
    recorder = FakeRecorder(fail_at=3)
    job = VideoExportJob(width=160, height=90)

    with pytest.raises(OSError):
        export_video(Image.new("RGB", (64, 64)), recorder_factory=lambda j: recorder, clock=FakeClock(), job=job)

    assert recorder.aborted
    assert len(recorder.frames) == 3


ENCODERS_OUTPUT = """Encoders:
 V..... = Video
 A..... = Audio
 ------
 V....D libx264              libx264 H.264 / AVC / MPEG-4 AVC
 V....D libvpx-vp9           libvpx VP9 (codec vp9)
 V....D mpeg4                MPEG-4 part 2
 A....D aac                  AAC (Advanced Audio Coding)
"""


def test_available_encoders_parses_video_rows():
    done = subprocess.CompletedProcess(args=[], returncode=0, stdout=ENCODERS_OUTPUT, stderr="")
    with patch("imagecraft.video.subprocess.run", return_value=done):
        encoders = available_encoders("ffmpeg")

    assert {"libx264", "libvpx-vp9", "mpeg4"} <= encoders
    assert "aac" not in encoders


def test_choose_profile_prefers_webm():
    assert choose_profile({"libx264", "libvpx-vp9"}).codec == "libvpx-vp9"
    assert choose_profile({"libx264", "mpeg4"}).extension == "mp4"
    assert choose_profile({"libvpx"}).extension == "webm"
    assert choose_profile(set()) is DEFAULT_PROFILE


def test_create_recorder_without_ffmpeg():
    with patch("imagecraft.video.imageio_ffmpeg.get_ffmpeg_exe", side_effect=RuntimeError("missing")):
        with pytest.raises(RecordingUnsupported):
            create_recorder(VideoExportJob())


def test_create_recorder_falls_back_when_listing_fails():
    with patch("imagecraft.video.imageio_ffmpeg.get_ffmpeg_exe", return_value="ffmpeg"), \
            patch("imagecraft.video.subprocess.run", side_effect=OSError("no exec")):
        recorder = create_recorder(VideoExportJob())

    assert recorder.profile is DEFAULT_PROFILE
    assert recorder.extension == "mp4"


def _ffmpeg_available():
    try:
        imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError:
        return False
    return True


requires_ffmpeg = pytest.mark.skipif(not _ffmpeg_available(), reason="ffmpeg binary not available")


@requires_ffmpeg
def test_real_recorder_encodes_small_clip():
    job = VideoExportJob(width=160, height=90, fps=10, duration_ms=1000)
    src = Image.new("RGB", (320, 240), (200, 60, 20))

    clip = export_video(src, job=job)

    assert job.stop_reason == "complete"
    assert clip.frames == 10
    assert clip.duration_ms == 1000
    assert len(clip.data) > 0
    assert clip.extension in ("webm", "mp4")


@requires_ffmpeg
@pytest.mark.parametrize("profile", CODEC_PROFILES[2:] + [DEFAULT_PROFILE], ids=lambda p: p.codec or "default")
def test_mp4_profiles_write_frames(profile):
    if profile.codec and profile.codec not in available_encoders(imageio_ffmpeg.get_ffmpeg_exe()):
        pytest.skip(f"{profile.codec} not compiled into ffmpeg")
    recorder = FfmpegFrameRecorder(10, profile)
    job = VideoExportJob(width=160, height=90)

    recorder.start()
    for index in range(5):
        job.frame_index = index
        recorder.push_frame(render_frame(Image.new("RGB", (64, 64), (0, 120, 255)), job))
    data = recorder.stop()

    assert len(data) > 0
    assert recorder._tmp_dir is None
