"""
Request schemas for the join video API.
"""

from typing import Optional

from pydantic import BaseModel, Field

from app.config import WatermarkPosition


class MediaPayload(BaseModel):
    """A base64-encoded media file."""

    name: str = Field(default="", description="Original file name (used for the file extension)")
    data: str = Field(..., description="Base64-encoded file content (data URL prefix allowed)")


class WatermarkPayload(BaseModel):
    """Watermark image and placement."""

    name: str = Field(default="watermark.png", description="Original file name")
    data: str = Field(..., description="Base64-encoded image (PNG with alpha recommended)")
    position: WatermarkPosition = Field(default="bottom_right", description="Anchor preset")
    opacity: int = Field(default=100, ge=0, le=100, description="Opacity in percent")
    width: Optional[int] = Field(
        default=None,
        gt=0,
        le=2000,
        description="Target watermark width in pixels (service default when omitted)",
    )


class JoinVideoRequestBody(BaseModel):
    """Request body for POST /api/join-video."""

    videos: list[MediaPayload] = Field(default_factory=list, description="Ordered clips to join")
    voice: Optional[MediaPayload] = Field(default=None, description="Optional narration track")
    backsound: Optional[MediaPayload] = Field(default=None, description="Optional background music")
    use_backsound: bool = Field(
        default=False,
        alias="useBacksound",
        description="Mix the background music (ignored when no backsound is sent)",
    )
    watermark: Optional[WatermarkPayload] = Field(default=None, description="Optional watermark")
    transition_duration: Optional[float] = Field(
        default=None,
        gt=0,
        le=5,
        alias="transitionDuration",
        description="Cross-fade length in seconds (service default when omitted)",
    )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "videos": [
                    {"name": "clip1.mp4", "data": "<base64>"},
                    {"name": "clip2.mp4", "data": "<base64>"},
                ],
                "voice": {"name": "voice.mp3", "data": "<base64>"},
                "backsound": {"name": "music.mp3", "data": "<base64>"},
                "useBacksound": True,
                "watermark": {
                    "name": "logo.png",
                    "data": "<base64>",
                    "position": "bottom_right",
                    "opacity": 80,
                    "width": 150,
                },
            }
        }
