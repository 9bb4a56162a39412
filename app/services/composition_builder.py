"""
Composition Builder - turns a prepared job into a validated ffmpeg filter graph.

Stages, in graph order:
1. Normalization: every clip is fit-and-padded into the canonical portrait
   frame at a constant frame rate; audio is resampled to one format.
2. Transitions: a pairwise fold of xfade / acrossfade over the clips.
3. Watermark: optional image overlay at one of five anchors.
4. Audio mix: optional narration and background music mixed under the
   joined clip audio.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from app.config import Settings, get_anchor_expression, get_settings
from app.services.errors import GraphValidationError
from app.services.filter_graph import FilterGraph, GraphValidationReport
from app.services.job_workspace import Job, StagedClip, WatermarkSpec

logger = logging.getLogger(__name__)


FINAL_AUDIO_PIN = "final_audio"


@dataclass(frozen=True)
class Transition:
    """Cross-fade into clip `clip_index`, placed on the running timeline."""

    clip_index: int
    offset_seconds: float
    duration_seconds: float


def plan_transitions(durations: Sequence[float], blend_duration: float) -> list[Transition]:
    """
    Compute cross-fade offsets from measured clip durations.

    Each completed transition shortens the running timeline by one blend,
    so the offset into clip i is sum(durations[:i]) - i * blend. Offsets are
    clamped so they never go below zero or below the previous offset.
    """
    transitions: list[Transition] = []
    elapsed = 0.0
    previous_offset = 0.0

    for i in range(1, len(durations)):
        elapsed += durations[i - 1]
        offset = elapsed - i * blend_duration

        if offset < previous_offset:
            logger.warning(
                f"Clip {i - 1} ({durations[i - 1]:.3f}s) is shorter than the "
                f"{blend_duration:.3f}s transition, clamping offset {offset:.3f}s"
            )
            offset = previous_offset

        offset = max(offset, 0.0)
        transitions.append(Transition(clip_index=i, offset_seconds=offset, duration_seconds=blend_duration))
        previous_offset = offset

    return transitions


def expected_output_duration(
    durations: Sequence[float],
    blend_duration: float,
    transitions: Optional[Sequence[Transition]] = None,
) -> float:
    """
    Length of the joined timeline.

    The last cross-fade starts at its (possibly clamped) offset and the last
    clip plays in full from there. Without clamping this equals
    sum(durations) - (N - 1) * blend.
    """
    if not durations:
        return 0.0
    if transitions is None:
        transitions = plan_transitions(durations, blend_duration)
    if not transitions:
        return durations[0]
    return transitions[-1].offset_seconds + durations[-1]


@dataclass
class CompositionGraph:
    """A validated graph plus the pins to map to the output file."""

    graph: FilterGraph
    video_pin: str
    audio_pin: str
    transitions: list[Transition]
    expected_duration: float
    report: GraphValidationReport

    @property
    def output_pins(self) -> list[str]:
        return [self.video_pin, self.audio_pin]


class CompositionBuilder:
    """
    Builds the single filter graph used for the final encode.

    Clip audio must already be patched and durations measured.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def build(self, job: Job) -> CompositionGraph:
        """
        Build and validate the composition graph for a job.

        Raises:
            GraphValidationError: If a clip was never measured or the graph is miswired
        """
        if not job.clips:
            raise GraphValidationError("Cannot build a composition without clips")

        durations = []
        for clip in job.clips:
            if clip.duration_seconds is None:
                raise GraphValidationError(f"Video {clip.index} has no measured duration")
            if not clip.has_audio:
                logger.warning(f"Video {clip.index} still has no audio; the encode will likely fail")
            durations.append(clip.duration_seconds)

        graph = FilterGraph()

        # --- A. Normalize inputs ---
        pins = [self._normalize(graph, clip) for clip in job.clips]

        # --- B. Cross-fade fold ---
        transitions = plan_transitions(durations, job.transition_duration)
        video_pin, audio_pin = pins[0]
        for transition in transitions:
            next_video, next_audio = pins[transition.clip_index]
            video_pin, audio_pin = self._add_transition(
                graph, transition, (video_pin, audio_pin), (next_video, next_audio)
            )

        # --- C. Watermark ---
        if job.watermark:
            video_pin = self._add_watermark(graph, video_pin, job.watermark)

        # --- D. Mix extra audio ---
        audio_pin = self._mix_audio(graph, audio_pin, job)

        report = graph.validate([video_pin, audio_pin])
        expected = expected_output_duration(durations, job.transition_duration, transitions)

        logger.info(
            f"Composition graph: {len(graph.inputs)} inputs, {len(graph.nodes)} filters, "
            f"{len(transitions)} transitions, expected duration {expected:.2f}s"
        )

        return CompositionGraph(
            graph=graph,
            video_pin=video_pin,
            audio_pin=audio_pin,
            transitions=transitions,
            expected_duration=expected,
            report=report,
        )

    def _normalize(self, graph: FilterGraph, clip: StagedClip) -> tuple[str, str]:
        """Scale/pad video into the canonical frame and resample audio."""
        width = self.settings.target_output_width
        height = self.settings.target_output_height
        source = graph.add_input(clip.path)

        video_pin = graph.chain(
            source.video,
            [
                ("scale", {"w": width, "h": height, "force_original_aspect_ratio": "decrease"}),
                ("pad", {"w": width, "h": height, "x": "(ow-iw)/2", "y": "(oh-ih)/2"}),
                ("setsar", {"sar": 1}),
                # No timestamp filter after fps, xfade needs a constant frame rate
                ("setpts", {"expr": "PTS-STARTPTS"}),
                ("fps", {"fps": self.settings.target_fps}),
                ("format", {"pix_fmts": self.settings.pixel_format}),
            ],
            f"v{clip.index}",
            kind="normalize",
        )

        audio_pin = graph.chain(
            source.audio,
            [
                ("aresample", {"osr": self.settings.audio_sample_rate}),
                ("aformat", {"sample_fmts": "fltp", "channel_layouts": "stereo"}),
                ("asetpts", {"expr": "PTS-STARTPTS"}),
            ],
            f"a{clip.index}",
            kind="normalize",
        )

        return video_pin, audio_pin

    def _add_transition(
        self,
        graph: FilterGraph,
        transition: Transition,
        running: tuple[str, str],
        incoming: tuple[str, str],
    ) -> tuple[str, str]:
        i = transition.clip_index
        video_out = f"vx{i}"
        audio_out = f"ax{i}"

        graph.add(
            "xfade",
            [running[0], incoming[0]],
            [video_out],
            {
                "transition": "fade",
                "duration": transition.duration_seconds,
                "offset": transition.offset_seconds,
            },
            kind="transition",
        )
        graph.add(
            "acrossfade",
            [running[1], incoming[1]],
            [audio_out],
            {"d": transition.duration_seconds, "c1": "tri", "c2": "tri"},
            kind="transition",
        )
        return video_out, audio_out

    def _add_watermark(self, graph: FilterGraph, video_pin: str, watermark: WatermarkSpec) -> str:
        """Scale the image, apply opacity to its alpha channel and overlay it."""
        image = graph.add_input(watermark.image_path)
        alpha = watermark.opacity / 100

        watermark_pin = graph.chain(
            image.video,
            [
                ("scale", {"w": watermark.width, "h": -1, "flags": "lanczos"}),
                ("format", {"pix_fmts": "rgba"}),
                ("colorchannelmixer", {"aa": alpha}),
            ],
            "wm",
            kind="watermark",
        )

        x, y = get_anchor_expression(watermark.position, self.settings.watermark_margin)
        graph.add("overlay", [video_pin, watermark_pin], ["vwm"], {"x": x, "y": y}, kind="watermark")

        logger.info(f"Watermark: {watermark.position}, opacity {watermark.opacity}%, width {watermark.width}px")
        return "vwm"

    def _mix_audio(self, graph: FilterGraph, audio_pin: str, job: Job) -> str:
        """Mix narration and background music under the clip audio."""
        mix_inputs = [audio_pin]

        if job.voice:
            voice = graph.add_input(job.voice.path)
            graph.add("volume", [voice.audio], ["voice_norm"], {"volume": self.settings.voice_gain}, kind="mix")
            mix_inputs.append("voice_norm")

        if job.backsound_enabled:
            backsound = graph.add_input(job.backsound.path)
            graph.add("volume", [backsound.audio], ["bgm_norm"], {"volume": self.settings.backsound_gain}, kind="mix")
            mix_inputs.append("bgm_norm")

        if len(mix_inputs) > 1:
            # The joined clip audio is listed first and sets the output length
            graph.add(
                "amix",
                mix_inputs,
                [FINAL_AUDIO_PIN],
                {
                    "inputs": len(mix_inputs),
                    "duration": "first",
                    "dropout_transition": self.settings.mix_dropout_transition,
                },
                kind="mix",
            )
        else:
            graph.add("volume", [audio_pin], [FINAL_AUDIO_PIN], {"volume": 1.0}, kind="mix")

        return FINAL_AUDIO_PIN
