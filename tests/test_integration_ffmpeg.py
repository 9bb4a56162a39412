"""
Integration tests against real ffmpeg / ffprobe binaries.

Skipped when either binary is missing. Clips are generated with lavfi
sources so no media fixtures are checked in.
"""

import base64
import os
import shutil
import subprocess

import cv2
import numpy as np
import pytest

from app.services.errors import JoinVideoError
from app.services.ffmpeg_runner import FFmpegRunner
from app.services.job_workspace import InputStager, JoinVideoRequest, MediaInput, WatermarkInput
from app.services.join_video_pipeline import JoinVideoPipeline

pytestmark = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not installed",
)


def make_clip(path: str, duration: float, audio: bool = True, size: str = "1080x1920") -> str:
    cmd = ["ffmpeg", "-y", "-v", "error", "-f", "lavfi", "-i", f"testsrc=size={size}:rate=30:duration={duration}"]
    if audio:
        cmd += ["-f", "lavfi", "-i", f"sine=frequency=440:duration={duration}", "-c:a", "aac"]
    else:
        cmd += ["-an"]
    cmd += ["-c:v", "libx264", "-preset", "ultrafast", "-pix_fmt", "yuv420p", "-shortest", path]
    subprocess.run(cmd, check=True, capture_output=True)
    return path


def as_input(path: str) -> MediaInput:
    with open(path, "rb") as f:
        return MediaInput(data=base64.b64encode(f.read()).decode("ascii"), name=os.path.basename(path))


def probe_output(path: str) -> dict:
    duration = subprocess.run(
        ["ffprobe", "-v", "error", "-show_entries", "format=duration",
         "-of", "default=noprint_wrappers=1:nokey=1", path],
        check=True, capture_output=True, text=True,
    ).stdout.strip()
    streams = subprocess.run(
        ["ffprobe", "-v", "error", "-show_entries", "stream=codec_type,codec_name,width,height",
         "-of", "csv=p=0", path],
        check=True, capture_output=True, text=True,
    ).stdout.split()
    return {"duration": float(duration), "streams": streams}


def read_frame(path: str, seconds: float) -> np.ndarray:
    capture = cv2.VideoCapture(path)
    try:
        capture.set(cv2.CAP_PROP_POS_MSEC, seconds * 1000)
        ok, frame = capture.read()
    finally:
        capture.release()
    assert ok, f"Could not read frame at {seconds}s from {path}"
    return frame


@pytest.fixture(scope="module")
def media_dir(tmp_path_factory):
    root = tmp_path_factory.mktemp("media")
    make_clip(str(root / "a.mp4"), 5.0)
    make_clip(str(root / "b.mp4"), 5.0)
    make_clip(str(root / "c.mp4"), 5.0)
    make_clip(str(root / "silent_long.mp4"), 12.0, audio=False)
    make_clip(str(root / "landscape.mp4"), 3.0, size="1280x720")

    logo = np.zeros((80, 80, 4), dtype=np.uint8)
    logo[:, :] = (0, 0, 255, 255)
    cv2.imwrite(str(root / "logo.png"), logo)
    return root


@pytest.fixture
def pipeline(workspace_root):
    return JoinVideoPipeline(runner=FFmpegRunner(), stager=InputStager(workspace_root=workspace_root))


async def join_to_file(pipeline, request, output_path) -> str:
    result = await pipeline.join(request)
    with open(output_path, "wb") as f:
        f.write(base64.b64decode(result.video_base64))
    return str(output_path)


class TestRealJoin:
    """Joins run through the installed ffmpeg."""

    async def test_three_clips_duration(self, pipeline, media_dir, tmp_path, workspace_root):
        request = JoinVideoRequest(
            videos=[as_input(str(media_dir / name)) for name in ("a.mp4", "b.mp4", "c.mp4")],
            transition_duration=0.5,
        )

        output = await join_to_file(pipeline, request, tmp_path / "out.mp4")
        info = probe_output(output)

        assert info["duration"] == pytest.approx(14.0, abs=0.25)
        assert any(s.startswith("h264,video,720,1280") for s in info["streams"])
        assert any(s.startswith("aac,audio") for s in info["streams"])
        assert os.listdir(workspace_root) == []

    async def test_long_silent_clip_not_truncated(self, pipeline, media_dir, tmp_path):
        """Test a 12s clip without audio keeps its length after patching."""
        request = JoinVideoRequest(
            videos=[as_input(str(media_dir / "a.mp4")), as_input(str(media_dir / "silent_long.mp4"))],
            transition_duration=1.0,
        )

        output = await join_to_file(pipeline, request, tmp_path / "out.mp4")

        assert probe_output(output)["duration"] == pytest.approx(16.0, abs=0.25)

    async def test_landscape_clip_is_padded(self, pipeline, media_dir, tmp_path):
        request = JoinVideoRequest(videos=[as_input(str(media_dir / "landscape.mp4"))])

        output = await join_to_file(pipeline, request, tmp_path / "out.mp4")
        frame = read_frame(output, 1.0)

        assert frame.shape[:2] == (1280, 720)
        # Fit-and-pad leaves black bars above and below a landscape source
        assert frame[:100].mean() < 5
        assert frame[-100:].mean() < 5

    async def test_zero_opacity_watermark_is_invisible(self, pipeline, media_dir, tmp_path):
        """Test opacity 0 renders like no watermark while opacity 100 shows it."""
        videos = [as_input(str(media_dir / "a.mp4"))]
        logo = as_input(str(media_dir / "logo.png"))

        def watermark(opacity):
            return WatermarkInput(data=logo.data, name="logo.png", position="top_left", opacity=opacity, width=100)

        plain = await join_to_file(pipeline, JoinVideoRequest(videos=videos), tmp_path / "plain.mp4")
        hidden = await join_to_file(
            pipeline, JoinVideoRequest(videos=videos, watermark=watermark(0)), tmp_path / "hidden.mp4"
        )
        shown = await join_to_file(
            pipeline, JoinVideoRequest(videos=videos, watermark=watermark(100)), tmp_path / "shown.mp4"
        )

        region = (slice(20, 120), slice(20, 120))
        plain_frame = read_frame(plain, 2.0).astype(np.int16)
        hidden_frame = read_frame(hidden, 2.0).astype(np.int16)
        shown_frame = read_frame(shown, 2.0).astype(np.int16)

        assert np.abs(plain_frame[region] - hidden_frame[region]).mean() < 3
        assert np.abs(plain_frame[region] - shown_frame[region]).mean() > 30

    async def test_corrupt_clip_fails_and_cleans_up(self, pipeline, media_dir, workspace_root):
        request = JoinVideoRequest(
            videos=[
                as_input(str(media_dir / "a.mp4")),
                MediaInput(data=base64.b64encode(b"definitely not a video").decode(), name="bad.mp4"),
            ],
        )

        with pytest.raises(JoinVideoError):
            await pipeline.join(request)

        assert os.listdir(workspace_root) == []
