# video_sampler/errors.py
from __future__ import annotations


class UserFacingError(Exception):
    """
    An error the UI shows as a short title/description pair.

    Raised before any state is mutated; callers can simply report and return.
    """
    title = "Error"

    def __init__(self, description: str, title: str = ""):
        super().__init__(description)
        self.description = description
        if title:
            self.title = title

    def __str__(self) -> str:
        return f"{self.title}: {self.description}"


class MediaUnavailableError(UserFacingError):
    title = "No video loaded"


class SelectionUnavailableError(UserFacingError):
    title = "No selection"


class NoFramesError(UserFacingError):
    title = "No frames"


class SurfaceUnavailableError(UserFacingError):
    title = "Canvas error"


class PlaybackRejectedError(UserFacingError):
    title = "Cannot play"


class UploadConfigurationError(UserFacingError):
    title = "Upload not configured"
