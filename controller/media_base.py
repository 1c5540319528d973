from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional

from PIL import Image

from controller.health import HealthCode


class FacingMode(Enum):
    FRONT = "user"
    BACK = "environment"

    def flipped(self) -> "FacingMode":
        return FacingMode.BACK if self is FacingMode.FRONT else FacingMode.FRONT


class CameraError(Exception):
    """Base class for stream acquisition failures."""

    code = HealthCode.PERMISSION_OR_DEVICE_FAILURE
    default_message = "Unable to access camera."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class InsecureContextError(CameraError):
    code = HealthCode.INSECURE_CONTEXT
    default_message = "Camera access requires HTTPS (or localhost)."


class PermissionOrDeviceError(CameraError):
    code = HealthCode.PERMISSION_OR_DEVICE_FAILURE


class NoVideoTrackError(CameraError):
    code = HealthCode.NO_VIDEO_TRACK
    default_message = "No video track found."


class InvalidSourceError(CameraError):
    code = HealthCode.INVALID_SOURCE
    default_message = "Invalid source detected (screen/display instead of camera)."


class MediaTrack(ABC):
    """A single track of a media stream."""

    kind: str = "video"

    @property
    @abstractmethod
    def label(self) -> str:
        """Human-readable device label."""
        pass

    @property
    @abstractmethod
    def ended(self) -> bool:
        pass

    @abstractmethod
    def stop(self) -> None:
        """Release the underlying device. Must be safe to call twice."""
        pass


class MediaStream(ABC):
    """
    Live media stream handed out by a MediaDevices implementation.

    The holder owns the stream and must call stop() when done with it.
    """

    @abstractmethod
    def get_tracks(self) -> List[MediaTrack]:
        pass

    def get_video_tracks(self) -> List[MediaTrack]:
        return [t for t in self.get_tracks() if t.kind == "video"]

    @property
    def active(self) -> bool:
        return any(not t.ended for t in self.get_tracks())

    def stop(self) -> None:
        for track in self.get_tracks():
            track.stop()

    @abstractmethod
    def read_frame(self) -> Optional[Image.Image]:
        """Return the current video frame at native resolution, or None."""
        pass


class MediaDevices(ABC):
    """
    Camera device access.

    Implementations raise PermissionOrDeviceError when a stream cannot be opened.
    """

    @abstractmethod
    def get_user_media(self, facing: FacingMode) -> MediaStream:
        """Open a video-only stream for the given facing preference."""
        pass
