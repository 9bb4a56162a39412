"""
Media probing - audio stream presence and exact duration of staged clips.
"""

import logging
import re
from typing import Optional

from app.config import get_settings
from app.services.errors import ProbeError
from app.services.ffmpeg_runner import FFmpegRunner

logger = logging.getLogger(__name__)


# Stream listing lines printed by `ffmpeg -i`, e.g.
#   Stream #0:1[0x2](und): Audio: aac (LC) (mp4a / 0x6134706D), 44100 Hz, stereo
STREAM_PATTERN = re.compile(r"Stream #\d+:\d+")
AUDIO_STREAM_PATTERN = re.compile(r"Stream #\d+:\d+.*Audio:")


def parse_has_audio(inspection_output: str) -> bool:
    """
    Decide whether an `ffmpeg -i` stream listing contains an audio stream.

    Raises:
        ProbeError: If the output holds no stream listing at all
    """
    if not STREAM_PATTERN.search(inspection_output):
        raise ProbeError("Inspection output contains no stream listing", stderr=inspection_output[-1000:])
    return AUDIO_STREAM_PATTERN.search(inspection_output) is not None


def parse_duration(probe_output: str) -> float:
    """
    Parse the bare `format=duration` value printed by ffprobe.

    Raises:
        ProbeError: If the value is missing, not a number, or not positive
    """
    value = probe_output.strip().splitlines()[0].strip() if probe_output.strip() else ""
    try:
        duration = float(value)
    except ValueError:
        raise ProbeError(f"Could not parse duration from ffprobe output: {value!r}")

    if duration <= 0:
        raise ProbeError(f"Non-positive duration reported: {duration}")

    return duration


class AudioPresenceProber:
    """
    Checks whether a clip carries an audio stream.

    Inspection failures default to "no audio": adding a silence track to a
    clip that already has audio is harmless, while a missing audio stream
    breaks the cross-fade stage. With strict probing the ProbeError is
    raised instead.
    """

    def __init__(self, runner: FFmpegRunner, strict: Optional[bool] = None):
        self.runner = runner
        self.strict = get_settings().strict_audio_probe if strict is None else strict

    async def has_audio(self, path: str) -> bool:
        """Return True when the file has at least one audio stream."""
        try:
            return await self._inspect(path)
        except ProbeError as e:
            if self.strict:
                raise
            logger.warning(f"Audio probe failed for {path}, assuming no audio: {e.message}")
            return False

    async def _inspect(self, path: str) -> bool:
        try:
            # ffmpeg exits non-zero without an output file; only the listing matters
            result = await self.runner.ffmpeg(["-hide_banner", "-i", path])
        except OSError as e:
            raise ProbeError(f"Failed to launch ffmpeg for inspection: {e}")

        return parse_has_audio(result.stderr or result.stdout)


class DurationProber:
    """Measures the exact container duration of a clip with ffprobe."""

    def __init__(self, runner: FFmpegRunner):
        self.runner = runner

    async def get_duration(self, path: str) -> float:
        """
        Get duration in seconds.

        Raises:
            ProbeError: If ffprobe fails or reports no usable duration
        """
        cmd = [
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            path,
        ]
        try:
            result = await self.runner.ffprobe(cmd)
        except OSError as e:
            raise ProbeError(f"Failed to launch ffprobe: {e}")

        if not result.ok:
            raise ProbeError(f"ffprobe failed for {path}", stderr=result.stderr)

        return parse_duration(result.stdout)
