"""
Configuration module using Pydantic Settings for environment variable management.

Only essential environment variables are exposed. Rendering constants are hardcoded
so every job produces the same canonical output format.
"""

import os
import tempfile
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


# ============================================================
# WATERMARK ANCHORS
# ============================================================

WatermarkPosition = Literal["top_left", "top_right", "bottom_left", "bottom_right", "center"]


class WatermarkAnchor:
    """
    Available watermark placement presets.

    Four corners plus center. Corner anchors keep a fixed margin from the frame edges.
    """
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"
    CENTER = "center"


WATERMARK_ANCHORS = (
    WatermarkAnchor.TOP_LEFT,
    WatermarkAnchor.TOP_RIGHT,
    WatermarkAnchor.BOTTOM_LEFT,
    WatermarkAnchor.BOTTOM_RIGHT,
    WatermarkAnchor.CENTER,
)


def get_anchor_expression(position: str, margin: int) -> tuple[str, str]:
    """
    Get overlay x/y expressions for a watermark anchor.

    Args:
        position: One of the WatermarkAnchor constants
        margin: Distance in pixels from the nearest edges

    Returns:
        (x, y) overlay expressions (W/H = main frame, w/h = watermark)

    Raises:
        ValueError: If position is not recognized
    """
    anchors = {
        WatermarkAnchor.TOP_LEFT: (f"{margin}", f"{margin}"),
        WatermarkAnchor.TOP_RIGHT: (f"W-w-{margin}", f"{margin}"),
        WatermarkAnchor.BOTTOM_LEFT: (f"{margin}", f"H-h-{margin}"),
        WatermarkAnchor.BOTTOM_RIGHT: (f"W-w-{margin}", f"H-h-{margin}"),
        WatermarkAnchor.CENTER: ("(W-w)/2", "(H-h)/2"),
    }

    if position not in anchors:
        raise ValueError(f"Unknown watermark position: {position}. Valid positions: {list(anchors)}")

    return anchors[position]


class Settings(BaseSettings):
    """
    Application settings.

    Only essential configuration is loaded from environment variables.
    Output format settings are hardcoded for consistency.
    """

    # ============================================================
    # ENVIRONMENT VARIABLES (minimal set)
    # ============================================================

    # Application
    app_name: str = "video-join-service"
    debug: bool = False
    log_level: str = "INFO"

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Workspace root for per-job temp directories
    workspace_root: str = os.path.join(tempfile.gettempdir(), "video-join")

    # Performance tuning
    max_probe_workers: int = os.cpu_count() or 2  # Bound for per-clip probe/patch tasks

    # Composition
    transition_duration: float = 1.0  # Cross-fade length in seconds
    silence_duration: float = 10.0  # Length of the synthesized silence asset

    # Failure policy
    strict_audio_probe: bool = False  # Fail the job when audio inspection fails
    strict_audio_patch: bool = True  # Fail the job when a clip cannot be patched

    # ============================================================
    # HARDCODED SETTINGS (not configurable via env vars)
    # ============================================================

    # Canonical output frame (portrait)
    @property
    def target_output_width(self) -> int:
        return 720

    @property
    def target_output_height(self) -> int:
        return 1280

    @property
    def target_fps(self) -> int:
        return 30

    @property
    def pixel_format(self) -> str:
        return "yuv420p"

    @property
    def audio_sample_rate(self) -> int:
        return 44100

    # Encoding
    @property
    def video_codec(self) -> str:
        return "libx264"

    @property
    def ffmpeg_preset(self) -> str:
        return "ultrafast"

    @property
    def audio_codec(self) -> str:
        return "aac"

    # Watermark
    @property
    def watermark_margin(self) -> int:
        return 20

    @property
    def default_watermark_width(self) -> int:
        return 150

    # Audio mixing
    @property
    def voice_gain(self) -> float:
        return 1.5

    @property
    def backsound_gain(self) -> float:
        return 0.15

    @property
    def mix_dropout_transition(self) -> float:
        return 2.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
