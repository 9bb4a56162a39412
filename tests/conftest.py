"""
Pytest configuration and fixtures.
"""

import asyncio
import base64
import os
import sys

import pytest

# Add app directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.services.ffmpeg_runner import CommandResult  # noqa: E402
from app.services.job_workspace import InputStager, JoinVideoRequest, MediaInput  # noqa: E402


def make_clip_bytes(duration: float, audio: bool) -> bytes:
    """Content understood by FakeRunner in place of a real MP4."""
    return f"FAKECLIP duration={duration} audio={int(audio)}".encode()


def b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def clip_input(duration: float = 5.0, audio: bool = True, name: str = "clip.mp4") -> MediaInput:
    return MediaInput(data=b64(make_clip_bytes(duration, audio)), name=name)


def _read_props(path: str) -> dict | None:
    try:
        with open(path, "rb") as f:
            text = f.read().decode(errors="replace")
    except OSError:
        return None
    if not text.startswith("FAKECLIP"):
        return None
    props = dict(part.split("=", 1) for part in text.split()[1:])
    return {"duration": float(props["duration"]), "audio": props["audio"] == "1"}


class FakeRunner:
    """
    Scripted stand-in for FFmpegRunner.

    Staged clip files carry their own properties (see make_clip_bytes), so
    inspection, patching and duration probing behave like the real tools
    on those files. `fail_on` forces failures per stage:
    "silence", "patch", "encode", "inspect_launch".
    """

    def __init__(self, fail_on: set[str] | None = None, delay: float = 0.0):
        self.fail_on = fail_on or set()
        self.delay = delay
        self.calls: list[tuple[str, list[str]]] = []
        self.active = 0
        self.peak_active = 0
        self.ffmpeg_path = "ffmpeg"
        self.ffprobe_path = "ffprobe"

    def tools_available(self) -> dict[str, bool]:
        return {"ffmpeg": True, "ffprobe": True}

    def calls_matching(self, marker: str) -> list[list[str]]:
        return [args for _, args in self.calls if marker in args]

    @property
    def encode_args(self) -> list[str]:
        return self.calls_matching("-filter_complex")[-1]

    @property
    def filter_complex(self) -> str:
        args = self.encode_args
        return args[args.index("-filter_complex") + 1]

    async def ffmpeg(self, args: list[str]) -> CommandResult:
        self.calls.append(("ffmpeg", list(args)))

        if "-filter_complex" in args:
            return self._encode(args)
        if any("anullsrc" in arg for arg in args):
            return self._silence(args)
        if "-stream_loop" in args:
            return self._patch(args)
        if "-hide_banner" in args:
            return await self._inspect(args)
        return CommandResult(returncode=1, stdout="", stderr="unexpected command")

    async def ffprobe(self, args: list[str]) -> CommandResult:
        self.calls.append(("ffprobe", list(args)))
        props = _read_props(args[-1])
        if props is None:
            return CommandResult(returncode=1, stdout="", stderr=f"{args[-1]}: Invalid data found when processing input")
        return CommandResult(returncode=0, stdout=f"{props['duration']:.6f}\n", stderr="")

    async def _inspect(self, args: list[str]) -> CommandResult:
        if "inspect_launch" in self.fail_on:
            raise OSError("No such file or directory: 'ffmpeg'")

        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.active -= 1

        path = args[args.index("-i") + 1]
        props = _read_props(path)
        if props is None:
            return CommandResult(returncode=1, stdout="", stderr=f"{path}: Invalid data found when processing input")

        listing = (
            f"Input #0, mov,mp4,m4a,3gp,3g2,mj2, from '{path}':\n"
            f"  Duration: 00:00:{props['duration']:05.2f}, start: 0.000000, bitrate: 512 kb/s\n"
            "  Stream #0:0[0x1](und): Video: h264 (High) (avc1 / 0x31637661), yuv420p, 1080x1920, 30 fps\n"
        )
        if props["audio"]:
            listing += "  Stream #0:1[0x2](und): Audio: aac (LC) (mp4a / 0x6134706D), 44100 Hz, stereo, fltp\n"
        listing += "At least one output file must be specified\n"
        return CommandResult(returncode=1, stdout="", stderr=listing)

    def _silence(self, args: list[str]) -> CommandResult:
        if "silence" in self.fail_on:
            return CommandResult(returncode=1, stdout="", stderr="Unknown input format: 'lavfi'")
        with open(args[-1], "wb") as f:
            f.write(b"SILENCE")
        return CommandResult(returncode=0, stdout="", stderr="")

    def _patch(self, args: list[str]) -> CommandResult:
        source = args[args.index("-i") + 1]
        props = _read_props(source)
        if "patch" in self.fail_on or props is None:
            return CommandResult(returncode=1, stdout="", stderr=f"{source}: Invalid data found when processing input")
        # Looped silence never ends first: output keeps the video length
        with open(args[-1], "wb") as f:
            f.write(make_clip_bytes(props["duration"], True))
        return CommandResult(returncode=0, stdout="", stderr="")

    def _encode(self, args: list[str]) -> CommandResult:
        if "encode" in self.fail_on:
            return CommandResult(
                returncode=234,
                stdout="",
                stderr="[AVFilterGraph @ 0x55d] No such filter: 'xfade'\nError initializing complex filters.\n",
            )
        with open(args[-1], "wb") as f:
            f.write(b"FAKE-MP4-OUTPUT")
        return CommandResult(returncode=0, stdout="", stderr="")


@pytest.fixture
def fake_runner():
    """Scripted ffmpeg/ffprobe runner."""
    return FakeRunner()


@pytest.fixture
def workspace_root(tmp_path):
    """Isolated workspace root for job directories."""
    root = tmp_path / "workspaces"
    return str(root)


@pytest.fixture
def stager(workspace_root):
    return InputStager(workspace_root=workspace_root)


@pytest.fixture
def three_clip_request():
    """Three 5 second clips with audio, 0.5 s transitions."""
    return JoinVideoRequest(
        videos=[clip_input(5.0, True, f"clip{i}.mp4") for i in range(3)],
        transition_duration=0.5,
    )
