"""
Error taxonomy for the video join pipeline.

Every failure inside a join job surfaces as one of these exceptions at the
job boundary. The HTTP layer maps ValidationError to 400 and everything
else to 500.
"""

from typing import Optional


class JoinVideoError(Exception):
    """Base exception for all join pipeline failures."""

    def __init__(self, message: str, stderr: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stderr = stderr

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.message}\n{self.stderr}"
        return self.message


class ValidationError(JoinVideoError):
    """Request payload is unusable. Raised before any workspace exists."""
    pass


class FatalError(JoinVideoError):
    """Environment failure that cannot be recovered within the job."""
    pass


class ProbeError(JoinVideoError):
    """Media inspection (ffmpeg -i / ffprobe) failed."""
    pass


class SynthesisError(FatalError):
    """The silent audio asset could not be generated."""
    pass


class PatchError(JoinVideoError):
    """A clip without audio could not be muxed with silence."""

    def __init__(self, message: str, clip_index: int, stderr: Optional[str] = None):
        super().__init__(message, stderr=stderr)
        self.clip_index = clip_index


class GraphValidationError(JoinVideoError):
    """The filter graph is miswired (unknown, duplicate or reused pins)."""
    pass


class EncodeError(JoinVideoError):
    """The final ffmpeg transcode failed."""
    pass
