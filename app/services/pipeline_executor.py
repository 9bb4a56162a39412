"""
Pipeline Executor - runs the final ffmpeg encode for a composition graph.
"""

import base64
import logging
import os
from dataclasses import dataclass

from app.config import get_settings
from app.services.composition_builder import CompositionGraph
from app.services.errors import EncodeError
from app.services.ffmpeg_runner import FFmpegRunner

logger = logging.getLogger(__name__)


OUTPUT_FILENAME = "output_final.mp4"


@dataclass
class EncodeResult:
    """Encoded output, read back into memory."""

    video_base64: str
    file_size_bytes: int


class PipelineExecutor:
    """
    Submits a composition graph to ffmpeg as one monolithic invocation.

    Output: MP4 / H.264 / AAC, yuv420p, ending with the shorter mapped stream.
    """

    def __init__(self, runner: FFmpegRunner):
        self.runner = runner
        self.settings = get_settings()

    def build_args(self, composition: CompositionGraph, output_path: str) -> list[str]:
        """Build the full ffmpeg argument list (without the binary)."""
        return [
            "-y",
            *composition.graph.to_args(composition.output_pins),
            "-c:v", self.settings.video_codec,
            "-preset", self.settings.ffmpeg_preset,
            "-pix_fmt", self.settings.pixel_format,
            "-c:a", self.settings.audio_codec,
            "-shortest",
            "-movflags", "+faststart",
            output_path,
        ]

    async def execute(self, composition: CompositionGraph, output_path: str) -> EncodeResult:
        """
        Encode and read the result.

        Raises:
            EncodeError: If ffmpeg fails or produces no output; carries ffmpeg's stderr verbatim
        """
        args = self.build_args(composition, output_path)
        logger.info(f"FFmpeg join started: {len(composition.graph.inputs)} inputs -> {output_path}")
        logger.debug(f"filter_complex: {composition.graph.serialize()}")

        try:
            result = await self.runner.ffmpeg(args)
        except OSError as e:
            raise EncodeError(f"Failed to launch ffmpeg: {e}")

        if not result.ok:
            logger.error(f"FFmpeg join failed (exit {result.returncode})")
            raise EncodeError(f"FFmpeg join failed with exit code {result.returncode}", stderr=result.stderr)

        if not os.path.isfile(output_path) or os.path.getsize(output_path) == 0:
            raise EncodeError(f"FFmpeg finished but produced no output at {output_path}", stderr=result.stderr)

        with open(output_path, "rb") as f:
            data = f.read()

        logger.info(f"FFmpeg join finished: {len(data) / 1024 / 1024:.1f} MB")
        return EncodeResult(
            video_base64=base64.b64encode(data).decode("ascii"),
            file_size_bytes=len(data),
        )
