"""
Audio topology repair - silence synthesis and muxing silence into audio-less clips.

Every clip must present one video and one audio stream before the
cross-fade stage, so clips without audio get a synthesized silent track.
"""

import logging
import os
from typing import Optional

from app.config import get_settings
from app.services.errors import PatchError, SynthesisError
from app.services.ffmpeg_runner import FFmpegRunner
from app.services.job_workspace import Job, StagedClip

logger = logging.getLogger(__name__)


SILENCE_FILENAME = "silence_source.m4a"


class SilenceSynthesizer:
    """Generates the canonical silent AAC asset for a job."""

    def __init__(self, runner: FFmpegRunner, duration_seconds: Optional[float] = None):
        self.runner = runner
        self.settings = get_settings()
        self.duration_seconds = duration_seconds or self.settings.silence_duration

    async def synthesize(self, job: Job) -> str:
        """
        Write a stereo silent track into the job workspace.

        Returns:
            Path to the silence asset

        Raises:
            SynthesisError: If ffmpeg cannot produce the file
        """
        output_path = job.path(SILENCE_FILENAME)
        args = [
            "-y",
            "-f", "lavfi",
            "-i", f"anullsrc=channel_layout=stereo:sample_rate={self.settings.audio_sample_rate}",
            "-t", f"{self.duration_seconds:g}",
            "-c:a", self.settings.audio_codec,
            output_path,
        ]

        try:
            result = await self.runner.ffmpeg(args)
        except OSError as e:
            raise SynthesisError(f"Failed to launch ffmpeg for silence generation: {e}")

        if not result.ok:
            logger.error(f"Silence generation failed: {result.stderr[-500:]}")
            raise SynthesisError("Failed to initialize audio generator", stderr=result.stderr)

        if not os.path.isfile(output_path):
            raise SynthesisError(f"Silence generation produced no file at {output_path}")

        logger.info(f"Silence asset ready ({self.duration_seconds:g}s): {output_path}")
        return output_path


class AudioPatcher:
    """
    Muxes the silence asset into clips that have no audio stream.

    The video stream is copied untouched and only the audio is encoded.
    The silence input loops, so the output always ends with the video and
    clips longer than the silence asset keep their full length.
    """

    def __init__(self, runner: FFmpegRunner, strict: Optional[bool] = None):
        self.runner = runner
        self.settings = get_settings()
        self.strict = self.settings.strict_audio_patch if strict is None else strict

    async def patch(self, job: Job, clip: StagedClip, silence_path: str) -> StagedClip:
        """
        Ensure the clip has audio, patching it in place on the StagedClip.

        Raises:
            PatchError: If patching fails and strict patching is enabled
        """
        if clip.has_audio:
            return clip

        fixed_path = job.path(f"clip_{clip.index:02d}_fixed.mp4")
        args = [
            "-y",
            "-i", clip.path,
            "-stream_loop", "-1",
            "-i", silence_path,
            "-map", "0:v",
            "-map", "1:a",
            "-c:v", "copy",
            "-c:a", self.settings.audio_codec,
            "-shortest",
            fixed_path,
        ]

        logger.info(f"Video {clip.index} has no audio, adding silence")
        try:
            result = await self.runner.ffmpeg(args)
            if not result.ok:
                raise PatchError(
                    f"Failed to add silence to video {clip.index}",
                    clip_index=clip.index,
                    stderr=result.stderr,
                )
        except (OSError, PatchError) as e:
            if self.strict:
                if isinstance(e, PatchError):
                    raise
                raise PatchError(f"Failed to launch ffmpeg for video {clip.index}: {e}", clip_index=clip.index)
            logger.warning(f"Failed to fix audio for video {clip.index}, keeping original: {e}")
            return clip

        clip.path = fixed_path
        clip.has_audio = True
        return clip
