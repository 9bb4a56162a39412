"""
Join Video Pipeline - orchestrator for the video composition workflow.

This service runs one join job end to end:
1. Input staging into an isolated workspace
2. Audio presence probing (bounded parallel, per clip)
3. Silence synthesis and audio patching for clips without audio
4. Duration probing of the patched clips
5. Filter graph construction (normalize, cross-fade, watermark, mix)
6. Final encode and read-back as base64

The workspace is removed on every exit path.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from app.config import get_settings
from app.services.audio_patcher import AudioPatcher, SilenceSynthesizer
from app.services.composition_builder import CompositionBuilder
from app.services.errors import FatalError, JoinVideoError
from app.services.ffmpeg_runner import FFmpegRunner
from app.services.job_workspace import InputStager, Job, JoinVideoRequest, StagedClip
from app.services.media_probe import AudioPresenceProber, DurationProber
from app.services.pipeline_executor import OUTPUT_FILENAME, PipelineExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class JoinVideoResult:
    """Final result of a join job."""

    job_id: str
    video_base64: str
    file_size_bytes: int
    clip_count: int
    expected_duration_seconds: float
    processing_time_seconds: float = 0


class JoinVideoPipeline:
    """
    Unified pipeline for joining clips into one video.

    Per-clip probing and patching run concurrently, bounded by
    max_workers; the offset math only starts once every clip is measured.
    The final encode is a single ffmpeg invocation.
    """

    def __init__(
        self,
        runner: Optional[FFmpegRunner] = None,
        stager: Optional[InputStager] = None,
        max_workers: Optional[int] = None,
    ):
        self.settings = get_settings()
        self.runner = runner or FFmpegRunner()
        self.stager = stager or InputStager()
        self.max_workers = max(1, max_workers or self.settings.max_probe_workers)

        # Initialize stages
        self.audio_prober = AudioPresenceProber(self.runner)
        self.duration_prober = DurationProber(self.runner)
        self.silence_synthesizer = SilenceSynthesizer(self.runner)
        self.audio_patcher = AudioPatcher(self.runner)
        self.composition_builder = CompositionBuilder(self.settings)
        self.executor = PipelineExecutor(self.runner)

    async def join(self, request: JoinVideoRequest) -> JoinVideoResult:
        """
        Join the requested clips into one base64-encoded MP4.

        Raises:
            JoinVideoError: Any failure, already classified (ValidationError,
                SynthesisError, PatchError, ProbeError, EncodeError, ...)
        """
        start_time = time.time()
        job_id = request.job_id
        logger.info(f"Starting join job {job_id}: {len(request.videos)} videos")

        try:
            with self.stager.open_job(request) as job:
                result = await self._run(job)
        except JoinVideoError as e:
            logger.error(f"Join job {job_id} failed: {e.message}")
            raise
        except Exception as e:
            logger.exception(f"Join job {job_id} failed unexpectedly: {e}")
            raise FatalError(f"Unexpected failure in join job {job_id}: {e}") from e

        result.processing_time_seconds = time.time() - start_time
        logger.info(
            f"Join job {job_id} completed in {result.processing_time_seconds:.1f}s "
            f"({result.clip_count} clips, {result.file_size_bytes / 1024 / 1024:.1f} MB)"
        )
        return result

    async def _run(self, job: Job) -> JoinVideoResult:
        # 1. Audio presence
        await self._for_each_clip(job.clips, self._probe_audio)

        # 2. Silence patching (only when needed, fatal if silence cannot be made)
        silent_clips = [clip for clip in job.clips if not clip.has_audio]
        if silent_clips:
            logger.info(f"{len(silent_clips)} of {len(job.clips)} videos have no audio")
            silence_path = await self.silence_synthesizer.synthesize(job)

            async def patch(clip: StagedClip) -> StagedClip:
                return await self.audio_patcher.patch(job, clip, silence_path)

            await self._for_each_clip(silent_clips, patch)

        # 3. Durations after patching
        await self._for_each_clip(job.clips, self._measure_duration)

        # 4. Graph
        composition = self.composition_builder.build(job)

        # 5. Encode
        encoded = await self.executor.execute(composition, job.path(OUTPUT_FILENAME))

        return JoinVideoResult(
            job_id=job.job_id,
            video_base64=encoded.video_base64,
            file_size_bytes=encoded.file_size_bytes,
            clip_count=len(job.clips),
            expected_duration_seconds=composition.expected_duration,
        )

    async def _probe_audio(self, clip: StagedClip) -> StagedClip:
        clip.has_audio = await self.audio_prober.has_audio(clip.path)
        logger.info(f"Video {clip.index} ({clip.name}): audio={'yes' if clip.has_audio else 'no'}")
        return clip

    async def _measure_duration(self, clip: StagedClip) -> StagedClip:
        clip.duration_seconds = await self.duration_prober.get_duration(clip.path)
        logger.info(f"Video {clip.index} duration: {clip.duration_seconds:.3f}s")
        return clip

    async def _for_each_clip(
        self,
        clips: list[StagedClip],
        operation: Callable[[StagedClip], Awaitable[T]],
    ) -> list[T]:
        """
        Run an operation on every clip with bounded concurrency.

        Waits for all clips to settle before raising the first failure, so
        no subprocess is still writing into the workspace when it is removed.
        """
        semaphore = asyncio.Semaphore(self.max_workers)

        async def bounded(clip: StagedClip) -> T:
            async with semaphore:
                return await operation(clip)

        results = await asyncio.gather(*(bounded(clip) for clip in clips), return_exceptions=True)

        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results
