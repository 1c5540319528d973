"""
OpenCV-backed media devices for locally attached (V4L2/UVC) cameras.
"""
import threading
from pathlib import Path
from typing import List, Optional

import cv2
from PIL import Image

from controller.media_base import (
    FacingMode,
    MediaDevices,
    MediaStream,
    MediaTrack,
    PermissionOrDeviceError,
)

V4L2_SYSFS = Path("/sys/class/video4linux")


class OpenCVVideoTrack(MediaTrack):
    def __init__(self, capture: "cv2.VideoCapture", label: str):
        self._capture = capture
        self._label = label
        self._ended = False
        self._io_lock = threading.Lock()

    @property
    def label(self) -> str:
        return self._label

    @property
    def ended(self) -> bool:
        return self._ended

    def stop(self) -> None:
        with self._io_lock:
            if self._ended:
                return
            self._ended = True
            self._capture.release()

    def read(self) -> Optional[Image.Image]:
        with self._io_lock:
            if self._ended:
                return None
            ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        # OpenCV hands out BGR arrays
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))


class OpenCVMediaStream(MediaStream):
    def __init__(self, track: OpenCVVideoTrack):
        self._track = track

    def get_tracks(self) -> List[MediaTrack]:
        return [self._track]

    def read_frame(self) -> Optional[Image.Image]:
        return self._track.read()


class OpenCVMediaDevices(MediaDevices):
    """
    Maps facing modes onto device indexes (front -> /dev/video0 by default).
    """

    def __init__(self, front_index: int = 0, back_index: int = 1, sysfs_root: Path = V4L2_SYSFS):
        self.indexes = {FacingMode.FRONT: front_index, FacingMode.BACK: back_index}
        self.sysfs_root = sysfs_root

    def get_user_media(self, facing: FacingMode) -> MediaStream:
        index = self.indexes[facing]

        try:
            capture = cv2.VideoCapture(index)
        except cv2.error as e:
            raise PermissionOrDeviceError(f"Unable to access camera {index}: {e}") from e

        if not capture.isOpened():
            capture.release()
            raise PermissionOrDeviceError(f"Unable to access camera {index}.")

        return OpenCVMediaStream(OpenCVVideoTrack(capture, self._label_for(index, capture)))

    def _label_for(self, index: int, capture: "cv2.VideoCapture") -> str:
        # Virtual devices (v4l2loopback, screen grabbers) advertise themselves here
        name_file = self.sysfs_root / f"video{index}" / "name"
        try:
            name = name_file.read_text().strip()
        except OSError:
            name = ""
        if name:
            return name
        return f"{capture.getBackendName()} camera {index}"
