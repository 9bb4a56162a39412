"""
Services for the video join worker.

Includes:
- Input staging and workspace lifecycle
- Media probing and audio repair (ffmpeg / ffprobe)
- Filter graph construction and the final encode
"""

from app.services.audio_patcher import AudioPatcher, SilenceSynthesizer
from app.services.composition_builder import CompositionBuilder, plan_transitions
from app.services.ffmpeg_runner import FFmpegRunner
from app.services.filter_graph import FilterGraph
from app.services.job_workspace import InputStager
from app.services.join_video_pipeline import JoinVideoPipeline
from app.services.media_probe import AudioPresenceProber, DurationProber
from app.services.pipeline_executor import PipelineExecutor
from app.services.usage_meter import UsageRecorder

__all__ = [
    # Staging
    "InputStager",
    # Probing and repair
    "FFmpegRunner",
    "AudioPresenceProber",
    "DurationProber",
    "SilenceSynthesizer",
    "AudioPatcher",
    # Composition
    "FilterGraph",
    "CompositionBuilder",
    "plan_transitions",
    "PipelineExecutor",
    "JoinVideoPipeline",
    # Metering
    "UsageRecorder",
]
