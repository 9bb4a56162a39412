"""
FFmpeg Runner - subprocess seam for ffmpeg and ffprobe invocations.

All media tools are invoked through this class so services never call
subprocess directly and tests can substitute a scripted runner.
"""

import asyncio
import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Optional

from app.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Completed tool invocation."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class FFmpegRunner:
    """
    Runs ffmpeg / ffprobe commands without blocking the event loop.

    Commands run through run_in_executor so the service keeps serving
    requests while a long transcode is in progress.
    """

    def __init__(self, ffmpeg_path: Optional[str] = None, ffprobe_path: Optional[str] = None):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.ffprobe_path = ffprobe_path or settings.ffprobe_path

    def tools_available(self) -> dict[str, bool]:
        """Check that both binaries resolve on PATH (or as absolute paths)."""
        return {
            "ffmpeg": shutil.which(self.ffmpeg_path) is not None,
            "ffprobe": shutil.which(self.ffprobe_path) is not None,
        }

    async def ffmpeg(self, args: list[str]) -> CommandResult:
        """Run ffmpeg with the given arguments."""
        return await self.run([self.ffmpeg_path, *args])

    async def ffprobe(self, args: list[str]) -> CommandResult:
        """Run ffprobe with the given arguments."""
        return await self.run([self.ffprobe_path, *args])

    async def run(self, cmd: list[str]) -> CommandResult:
        """
        Run a command asynchronously.

        Raises:
            OSError: If the binary cannot be launched
        """
        logger.debug(f"Running: {' '.join(cmd)}")

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            lambda: subprocess.run(cmd, capture_output=True)
        )

        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout.decode(errors="replace") if result.stdout else "",
            stderr=result.stderr.decode(errors="replace") if result.stderr else "",
        )
