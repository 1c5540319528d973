"""
Camera capture controller

Single authoritative owner of the camera stream for a tap-to-countdown capture widget.

Goals:
- At most one media stream is open at any instant (the old one is stopped before a new request)
- Every exit path (capture, flip, failure, unmount) releases the stream it held
- A pending countdown tick is cancelled whenever the controller leaves COUNTING
- Acquisition failures surface as a message; nothing is retried automatically
"""

import logging
import threading
from enum import Enum, auto
from typing import Callable, Optional

from controller.health import HealthStatus
from controller.media_base import (
    CameraError,
    FacingMode,
    InsecureContextError,
    InvalidSourceError,
    MediaDevices,
    MediaStream,
    NoVideoTrackError,
)
from controller.scheduler import Scheduler, ThreadingScheduler, TimerHandle
from imaging.frame_surface import FrameSurface, SurfaceError

logger = logging.getLogger(__name__)

COUNTDOWN_SECONDS = 4
JPEG_QUALITY = 0.9

# Track labels that indicate a screen share or virtual display rather than a camera
BLOCKED_LABEL_WORDS = ("screen", "display")


class CaptureState(Enum):
    IDLE = auto()
    COUNTING = auto()
    CAPTURED = auto()
    ERROR = auto()


class CaptureController:
    TICK_INTERVAL = 1.0  # seconds

    def __init__(
            self,
            media_devices: MediaDevices,
            on_capture: Callable[[str], None],
            *,
            surface: Optional[FrameSurface] = None,
            scheduler: Optional[Scheduler] = None,
            countdown_seconds: int = COUNTDOWN_SECONDS,
            jpeg_quality: float = JPEG_QUALITY,
    ):
        self._state_lock = threading.RLock()

        self.media_devices = media_devices
        self.on_capture = on_capture
        self.surface = surface
        self.scheduler = scheduler or ThreadingScheduler()
        self.countdown_seconds = countdown_seconds
        self.jpeg_quality = jpeg_quality

        # Session state
        self.state = CaptureState.IDLE
        self.facing = FacingMode.FRONT
        self.countdown_remaining: Optional[int] = None
        self.captured_image: Optional[str] = None
        self.error: Optional[str] = None

        self._stream: Optional[MediaStream] = None
        self._timer: Optional[TimerHandle] = None
        self._tick_token: Optional[object] = None
        self._mounted = False
        self._secure_context = True
        self._health_status = HealthStatus.ok()

    # ---------- Lifecycle ----------

    def mount(self, secure_context: bool = True) -> bool:
        with self._state_lock:
            self._mounted = True
            self._secure_context = secure_context
            return self.acquire_stream(self.facing)

    def unmount(self) -> None:
        with self._state_lock:
            self._mounted = False
            self._cancel_countdown()
            self._release_stream()

    # ---------- Public API ----------

    @property
    def stream(self) -> Optional[MediaStream]:
        return self._stream

    def get_status(self) -> dict:
        with self._state_lock:
            return {
                "state": self.state.name,
                "facing": self.facing.value,
                "countdown_remaining": self.countdown_remaining,
                "error": self.error,
                "has_image": self.captured_image is not None,
                "streaming": self._stream is not None,
            }

    def get_health(self) -> HealthStatus:
        with self._state_lock:
            return self._health_status

    def acquire_stream(self, facing: FacingMode) -> bool:
        """Open a stream for `facing`, replacing any stream already held."""
        with self._state_lock:
            self._cancel_countdown()
            try:
                stream = self._open_stream(facing)
            except CameraError as e:
                self._release_stream()
                self._fail(e)
                return False

            self._stream = stream
            self.captured_image = None
            self.error = None
            self._health_status = HealthStatus.ok()
            self.state = CaptureState.IDLE
            return True

    def on_tap(self) -> bool:
        """Start the countdown. Returns False when the tap was ignored."""
        with self._state_lock:
            if not self._mounted or self.state != CaptureState.IDLE:
                return False
            if self.captured_image is not None or self.countdown_remaining is not None:
                return False
            if self._stream is None:
                return False

            self.state = CaptureState.COUNTING
            self.countdown_remaining = self.countdown_seconds
            self._schedule_tick()
            return True

    def countdown_tick(self) -> None:
        with self._state_lock:
            image = self._advance_countdown()
        if image is not None:
            self.on_capture(image)

    def capture(self) -> Optional[str]:
        """Grab the current frame, release the stream and notify on_capture."""
        with self._state_lock:
            image = self._capture_frame()
        if image is not None:
            self.on_capture(image)
        return image

    def retake(self) -> bool:
        with self._state_lock:
            if not self._mounted:
                return False
            self.captured_image = None
            self._cancel_countdown()
            return self.acquire_stream(self.facing)

    def flip(self) -> bool:
        with self._state_lock:
            if not self._mounted or self.state == CaptureState.CAPTURED:
                return False
            self._cancel_countdown()
            self.facing = self.facing.flipped()
            return self.acquire_stream(self.facing)

    # ---------- Internal helpers ----------

    def _open_stream(self, facing: FacingMode) -> MediaStream:
        if not self._secure_context:
            raise InsecureContextError()

        # one stream at a time: stop the old one before asking for a new one
        self._release_stream()

        stream = self.media_devices.get_user_media(facing)

        tracks = stream.get_video_tracks()
        if not tracks:
            stream.stop()
            raise NoVideoTrackError()

        track = tracks[0]
        label = track.label.lower()
        if any(word in label for word in BLOCKED_LABEL_WORDS):
            stream.stop()
            raise InvalidSourceError()

        logger.info("Using camera: %s (%s)", track.label, facing.value)
        return stream

    def _capture_frame(self) -> Optional[str]:
        if self._stream is None or self.surface is None:
            return None

        frame = self._stream.read_frame()
        if frame is None:
            logger.warning("Camera returned no frame; capture skipped")
            return None

        self.surface.draw(frame)
        image = self.surface.to_data_url(self.jpeg_quality)

        self.captured_image = image
        self.state = CaptureState.CAPTURED
        self._cancel_timer()
        self._release_stream()
        logger.info("Captured %dx%d still image", *frame.size)
        return image

    def _fail(self, error: CameraError) -> None:
        logger.error("Camera error: %s", error)
        self._cancel_timer()
        self.countdown_remaining = None
        self.error = str(error)
        self._health_status = HealthStatus.error(code=error.code, message=str(error))
        self.state = CaptureState.ERROR

    def _on_timer(self, token: object) -> None:
        with self._state_lock:
            if token is not self._tick_token:
                # fired after its countdown was cancelled or replaced
                return
            image = self._advance_countdown()
        if image is not None:
            self.on_capture(image)

    def _advance_countdown(self) -> Optional[str]:
        if not self._mounted or self.state != CaptureState.COUNTING:
            return None
        self._timer = None
        self._tick_token = None
        self.countdown_remaining = max(0, self.countdown_remaining - 1)
        if self.countdown_remaining > 0:
            self._schedule_tick()
            return None

        try:
            image = self._capture_frame()
        except SurfaceError as e:
            logger.error("Failed to encode captured frame: %s", e)
            image = None
        if image is None:
            # nothing was captured; let the user tap again
            self.countdown_remaining = None
            self.state = CaptureState.IDLE
        return image

    def _schedule_tick(self) -> None:
        token = object()
        self._tick_token = token
        self._timer = self.scheduler.call_later(self.TICK_INTERVAL, lambda: self._on_timer(token))

    def _cancel_timer(self) -> None:
        self._tick_token = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_countdown(self) -> None:
        self._cancel_timer()
        self.countdown_remaining = None
        if self.state == CaptureState.COUNTING:
            self.state = CaptureState.IDLE

    def _release_stream(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream = None
