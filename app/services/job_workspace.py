"""
Job Workspace - request model, per-job data model and the input stager.

A join job owns one uniquely named temp directory for its whole lifetime.
The stager validates and decodes the incoming base64 payloads first, then
creates the directory and writes every asset into it. The directory is
removed when the job scope exits, whether the job succeeded or not.
"""

import base64
import binascii
import logging
import os
import re
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from app.config import WATERMARK_ANCHORS, get_settings
from app.services.errors import FatalError, ValidationError

logger = logging.getLogger(__name__)


MAX_TRANSITION_DURATION = 5.0

_EXTENSION_PATTERN = re.compile(r"^\.[a-z0-9]{1,5}$")


# ============================================================================
# Request model (what the caller hands to the pipeline)
# ============================================================================


@dataclass
class MediaInput:
    """One base64-encoded media payload."""

    data: str
    name: str = ""


@dataclass
class WatermarkInput:
    """Base64-encoded watermark image plus placement options."""

    data: str
    name: str = "watermark.png"
    position: str = "bottom_right"
    opacity: int = 100  # Percent, 0-100
    width: Optional[int] = None  # Target pixel width (settings default when unset)


@dataclass
class JoinVideoRequest:
    """Request to join clips into one video."""

    videos: list[MediaInput]
    voice: Optional[MediaInput] = None
    backsound: Optional[MediaInput] = None
    use_backsound: bool = False
    watermark: Optional[WatermarkInput] = None
    transition_duration: Optional[float] = None
    job_id: Optional[str] = None

    def __post_init__(self):
        if self.job_id is None:
            self.job_id = str(uuid.uuid4())


# ============================================================================
# Job model (what the pipeline stages operate on)
# ============================================================================


@dataclass
class StagedClip:
    """One input clip written to the workspace."""

    index: int
    name: str
    path: str
    has_audio: bool = False
    duration_seconds: Optional[float] = None


@dataclass
class AudioTrack:
    """An extra audio track (narration or background music)."""

    name: str
    path: str


@dataclass(frozen=True)
class WatermarkSpec:
    """Staged watermark image with placement. Immutable once staged."""

    image_path: str
    opacity: int
    position: str
    width: int


@dataclass
class Job:
    """One composition request with its workspace and staged assets."""

    job_id: str
    workspace: str
    clips: list[StagedClip]
    transition_duration: float
    voice: Optional[AudioTrack] = None
    backsound: Optional[AudioTrack] = None
    use_backsound: bool = False
    watermark: Optional[WatermarkSpec] = None

    @property
    def backsound_enabled(self) -> bool:
        return self.use_backsound and self.backsound is not None

    def path(self, filename: str) -> str:
        """Absolute path for a file inside the job workspace."""
        return os.path.join(self.workspace, filename)


@dataclass
class _DecodedRequest:
    job_id: str
    videos: list[tuple[str, bytes]]
    transition_duration: float
    voice: Optional[tuple[str, bytes]] = None
    backsound: Optional[tuple[str, bytes]] = None
    use_backsound: bool = False
    watermark: Optional[tuple[WatermarkInput, bytes, int]] = None


# ============================================================================
# Helpers
# ============================================================================


def decode_base64_payload(data: Optional[str], label: str) -> bytes:
    """
    Decode a base64 payload, accepting an optional data URL prefix.

    Raises:
        ValidationError: If the payload is empty or not valid base64
    """
    if not data:
        raise ValidationError(f"{label} has no data")

    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]

    compact = "".join(data.split())
    try:
        raw = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"{label} is not valid base64: {e}")

    if not raw:
        raise ValidationError(f"{label} decoded to zero bytes")

    return raw


def _extension_for(name: str, default: str) -> str:
    ext = os.path.splitext(name or "")[1].lower()
    return ext if _EXTENSION_PATTERN.match(ext) else default


# ============================================================================
# Input Stager
# ============================================================================


class InputStager:
    """
    Persists incoming payloads into an isolated job workspace.

    Usage:
        with stager.open_job(request) as job:
            ...  # workspace exists here and is removed afterwards
    """

    def __init__(self, workspace_root: Optional[str] = None):
        self.settings = get_settings()
        self.workspace_root = workspace_root or self.settings.workspace_root

    @contextmanager
    def open_job(self, request: JoinVideoRequest) -> Iterator[Job]:
        """
        Validate the request, stage it, and remove the workspace on exit.

        Raises:
            ValidationError: Before any directory is created
            FatalError: If the workspace cannot be created or written
        """
        decoded = self.validate(request)
        workspace = self._create_workspace(decoded.job_id)
        try:
            yield self._write(decoded, workspace)
        finally:
            self._remove_workspace(workspace)

    def validate(self, request: JoinVideoRequest) -> _DecodedRequest:
        """Decode and validate every payload without touching the filesystem."""
        if not request.videos:
            raise ValidationError("No videos were sent")

        transition = request.transition_duration
        if transition is None:
            transition = self.settings.transition_duration
        if transition <= 0 or transition > MAX_TRANSITION_DURATION:
            raise ValidationError(
                f"Transition duration must be in (0, {MAX_TRANSITION_DURATION}] seconds, got {transition}"
            )

        videos = [
            (video.name, decode_base64_payload(video.data, f"Video {i}"))
            for i, video in enumerate(request.videos)
        ]

        decoded = _DecodedRequest(
            job_id=request.job_id,
            videos=videos,
            transition_duration=float(transition),
            use_backsound=request.use_backsound,
        )

        if request.voice and request.voice.data:
            decoded.voice = (request.voice.name, decode_base64_payload(request.voice.data, "Voice"))

        # Backsound is only staged when the caller asked for it
        if request.use_backsound and request.backsound and request.backsound.data:
            decoded.backsound = (
                request.backsound.name,
                decode_base64_payload(request.backsound.data, "Backsound"),
            )

        if request.watermark and request.watermark.data:
            decoded.watermark = self._validate_watermark(request.watermark)

        return decoded

    def _validate_watermark(self, watermark: WatermarkInput) -> tuple[WatermarkInput, bytes, int]:
        if watermark.position not in WATERMARK_ANCHORS:
            raise ValidationError(
                f"Unknown watermark position: {watermark.position}. "
                f"Valid positions: {list(WATERMARK_ANCHORS)}"
            )
        if not 0 <= watermark.opacity <= 100:
            raise ValidationError(f"Watermark opacity must be 0-100, got {watermark.opacity}")

        width = watermark.width if watermark.width is not None else self.settings.default_watermark_width
        if width <= 0:
            raise ValidationError(f"Watermark width must be positive, got {width}")

        return watermark, decode_base64_payload(watermark.data, "Watermark"), width

    def _create_workspace(self, job_id: str) -> str:
        try:
            os.makedirs(self.workspace_root, exist_ok=True)
            workspace = tempfile.mkdtemp(prefix=f"join-{job_id[:8]}-", dir=self.workspace_root)
        except OSError as e:
            raise FatalError(f"Failed to create job workspace under {self.workspace_root}: {e}")

        logger.info(f"Job {job_id} workspace: {workspace}")
        return workspace

    def _remove_workspace(self, workspace: str) -> None:
        if not os.path.isdir(workspace):
            return
        try:
            shutil.rmtree(workspace)
            logger.debug(f"Removed workspace {workspace}")
        except OSError as e:
            logger.warning(f"Failed to cleanup workspace {workspace}: {e}")

    def _write(self, decoded: _DecodedRequest, workspace: str) -> Job:
        job = Job(
            job_id=decoded.job_id,
            workspace=workspace,
            clips=[],
            transition_duration=decoded.transition_duration,
            use_backsound=decoded.use_backsound,
        )

        try:
            for i, (name, raw) in enumerate(decoded.videos):
                path = job.path(f"clip_{i:02d}_orig.mp4")
                _write_bytes(path, raw)
                job.clips.append(StagedClip(index=i, name=name or f"video_{i}", path=path))

            if decoded.voice:
                name, raw = decoded.voice
                path = job.path(f"voice{_extension_for(name, '.mp3')}")
                _write_bytes(path, raw)
                job.voice = AudioTrack(name=name, path=path)

            if decoded.backsound:
                name, raw = decoded.backsound
                path = job.path(f"backsound{_extension_for(name, '.mp3')}")
                _write_bytes(path, raw)
                job.backsound = AudioTrack(name=name, path=path)

            if decoded.watermark:
                watermark, raw, width = decoded.watermark
                path = job.path(f"watermark{_extension_for(watermark.name, '.png')}")
                _write_bytes(path, raw)
                job.watermark = WatermarkSpec(
                    image_path=path,
                    opacity=watermark.opacity,
                    position=watermark.position,
                    width=width,
                )
        except OSError as e:
            raise FatalError(f"Failed to stage inputs in {workspace}: {e}")

        logger.info(
            f"Staged {len(job.clips)} clips "
            f"(voice={'yes' if job.voice else 'no'}, "
            f"backsound={'yes' if job.backsound_enabled else 'no'}, "
            f"watermark={'yes' if job.watermark else 'no'})"
        )
        return job


def _write_bytes(path: str, raw: bytes) -> None:
    with open(path, "wb") as f:
        f.write(raw)
