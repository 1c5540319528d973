import base64
import io

import pytest
from PIL import Image

from controller.capture_controller import CaptureController, CaptureState
from controller.health import HealthCode, HealthLevel
from controller.media_base import FacingMode
from imaging.frame_surface import FrameSurface
from tests.fakes.fake_media import FakeMediaDevices, PERMISSION_DENIED
from tests.fakes.fake_scheduler import FakeScheduler


def make_controller(devices=None, surface=True, **kwargs):
    devices = devices or FakeMediaDevices()
    scheduler = FakeScheduler()
    captures = []
    controller = CaptureController(
        media_devices=devices,
        on_capture=captures.append,
        surface=FrameSurface() if surface else None,
        scheduler=scheduler,
        **kwargs,
    )
    return controller, devices, scheduler, captures


def decode_data_url(data_url: str) -> Image.Image:
    header, encoded = data_url.split(",", 1)
    assert header == "data:image/jpeg;base64"
    return Image.open(io.BytesIO(base64.b64decode(encoded)))


def test_mount_acquires_front_camera():
    controller, devices, _, _ = make_controller()

    assert controller.mount() is True

    assert devices.requests == [FacingMode.FRONT]
    assert controller.state == CaptureState.IDLE
    assert controller.stream is devices.streams[0]
    assert controller.get_status()["streaming"] is True
    assert controller.get_health().level == HealthLevel.OK


def test_flipping_never_leaves_two_streams_open():
    controller, devices, _, _ = make_controller()
    controller.mount()

    for _ in range(5):
        controller.flip()
        assert len(devices.open_streams) == 1

    assert devices.max_open == 1
    assert devices.requests == [
        FacingMode.FRONT,
        FacingMode.BACK,
        FacingMode.FRONT,
        FacingMode.BACK,
        FacingMode.FRONT,
        FacingMode.BACK,
    ]
    assert controller.facing == FacingMode.BACK


def test_tap_starts_four_second_countdown():
    controller, _, scheduler, _ = make_controller()
    controller.mount()

    assert controller.on_tap() is True

    assert controller.state == CaptureState.COUNTING
    assert controller.countdown_remaining == 4
    assert len(scheduler.pending) == 1
    assert scheduler.pending[0].delay == 1.0


def test_tap_while_counting_is_ignored():
    controller, _, scheduler, _ = make_controller()
    controller.mount()
    controller.on_tap()
    scheduler.fire_next()

    assert controller.on_tap() is False

    assert controller.countdown_remaining == 3
    assert len(scheduler.pending) == 1


def test_countdown_captures_exactly_once_and_stops():
    controller, devices, scheduler, captures = make_controller()
    controller.mount()
    controller.on_tap()

    seen = []
    while scheduler.pending:
        scheduler.fire_next()
        seen.append(controller.countdown_remaining)

    assert seen == [3, 2, 1, 0]
    assert len(captures) == 1
    assert controller.state == CaptureState.CAPTURED
    assert scheduler.pending == []
    assert captures[0] == controller.captured_image


def test_capture_releases_stream_and_keeps_native_resolution():
    devices = FakeMediaDevices(frame_size=(1280, 720))
    controller, _, scheduler, captures = make_controller(devices)
    controller.mount()
    controller.on_tap()
    scheduler.run_all()

    assert devices.open_streams == []
    assert controller.stream is None

    still = decode_data_url(captures[0])
    assert still.format == "JPEG"
    assert still.size == (1280, 720)


def test_tap_after_capture_is_ignored():
    controller, _, scheduler, captures = make_controller()
    controller.mount()
    controller.on_tap()
    scheduler.run_all()

    assert controller.on_tap() is False

    assert controller.state == CaptureState.CAPTURED
    assert scheduler.pending == []
    assert len(captures) == 1


def test_capture_without_surface_is_silent_noop():
    controller, devices, scheduler, captures = make_controller(surface=False)
    controller.mount()

    assert controller.capture() is None
    assert captures == []
    assert len(devices.open_streams) == 1


def test_countdown_without_surface_returns_to_idle():
    controller, devices, scheduler, captures = make_controller(surface=False)
    controller.mount()
    controller.on_tap()
    scheduler.run_all()

    assert captures == []
    assert controller.state == CaptureState.IDLE
    assert controller.countdown_remaining is None
    assert controller.on_tap() is True


def test_retake_reacquires_current_facing_mode():
    controller, devices, scheduler, captures = make_controller()
    controller.mount()
    controller.flip()
    controller.on_tap()
    scheduler.run_all()

    assert controller.retake() is True

    assert controller.captured_image is None
    assert controller.countdown_remaining is None
    assert controller.state == CaptureState.IDLE
    assert devices.requests[-1] == FacingMode.BACK
    assert len(devices.open_streams) == 1


def test_flip_is_ignored_once_captured():
    controller, devices, scheduler, _ = make_controller()
    controller.mount()
    controller.on_tap()
    scheduler.run_all()
    requests = list(devices.requests)

    assert controller.flip() is False

    assert devices.requests == requests
    assert controller.facing == FacingMode.FRONT


def test_flip_during_countdown_cancels_pending_tick():
    controller, _, scheduler, captures = make_controller()
    controller.mount()
    controller.on_tap()
    timer = scheduler.pending[0]

    controller.flip()

    assert timer.cancelled is True
    assert controller.state == CaptureState.IDLE
    assert controller.countdown_remaining is None

    # a tick that slipped through the cancel must not resurrect the countdown
    timer.callback()
    assert controller.countdown_remaining is None
    assert captures == []


def test_late_tick_does_not_touch_a_new_countdown():
    controller, _, scheduler, captures = make_controller()
    controller.mount()
    controller.on_tap()
    old_timer = scheduler.pending[0]

    controller.flip()
    controller.on_tap()
    old_timer.callback()

    assert controller.countdown_remaining == 4
    assert len(scheduler.pending) == 1
    assert scheduler.pending[0] is not old_timer

    scheduler.run_all()
    assert len(captures) == 1


@pytest.mark.parametrize("state", ["idle", "counting", "captured", "error"])
def test_unmount_releases_stream_in_every_state(state):
    controller, devices, scheduler, _ = make_controller()
    controller.mount()

    if state == "counting":
        controller.on_tap()
        scheduler.fire_next()
    elif state == "captured":
        controller.on_tap()
        scheduler.run_all()
    elif state == "error":
        devices.labels[FacingMode.BACK] = "Display Capture"
        controller.flip()

    controller.unmount()

    assert devices.open_streams == []
    assert controller.stream is None
    assert scheduler.pending == []


def test_ticks_after_unmount_do_nothing():
    controller, _, scheduler, captures = make_controller()
    controller.mount()
    controller.on_tap()
    timer = scheduler.pending[0]

    controller.unmount()
    timer.callback()

    assert captures == []
    assert controller.on_tap() is False


def test_screen_capture_label_is_rejected():
    devices = FakeMediaDevices()
    devices.labels[FacingMode.FRONT] = "screen capture"
    controller, _, _, _ = make_controller(devices)

    assert controller.mount() is False

    assert controller.state == CaptureState.ERROR
    assert controller.error == "Invalid source detected (screen/display instead of camera)."
    assert controller.get_health().code == HealthCode.INVALID_SOURCE
    assert devices.open_streams == []
    assert controller.stream is None


def test_insecure_context_never_touches_device():
    controller, devices, _, _ = make_controller()

    assert controller.mount(secure_context=False) is False

    assert devices.requests == []
    assert controller.state == CaptureState.ERROR
    assert controller.error == "Camera access requires HTTPS (or localhost)."
    assert controller.get_health().code == HealthCode.INSECURE_CONTEXT


def test_permission_denied_surfaces_message_without_retry():
    devices = FakeMediaDevices()
    devices.denied = True
    controller, _, scheduler, _ = make_controller(devices)

    controller.mount()

    assert controller.state == CaptureState.ERROR
    assert controller.error == PERMISSION_DENIED
    assert controller.get_health().code == HealthCode.PERMISSION_OR_DEVICE_FAILURE
    assert devices.requests == [FacingMode.FRONT]
    assert scheduler.pending == []
    assert controller.on_tap() is False


def test_stream_without_video_track_is_stopped():
    devices = FakeMediaDevices()
    devices.no_video = True
    controller, _, _, _ = make_controller(devices)

    controller.mount()

    assert controller.error == "No video track found."
    assert controller.get_health().code == HealthCode.NO_VIDEO_TRACK
    assert devices.open_streams == []


def test_failed_flip_releases_previous_stream():
    controller, devices, _, _ = make_controller()
    controller.mount()
    devices.denied = True

    controller.flip()

    assert controller.state == CaptureState.ERROR
    assert devices.open_streams == []


def test_flip_recovers_from_error():
    devices = FakeMediaDevices()
    devices.labels[FacingMode.FRONT] = "Screen Share"
    controller, _, _, _ = make_controller(devices)
    controller.mount()

    assert controller.flip() is True

    assert controller.state == CaptureState.IDLE
    assert controller.error is None
    assert controller.get_health().level == HealthLevel.OK


def test_status_reports_countdown():
    controller, _, _, _ = make_controller()
    controller.mount()
    controller.on_tap()

    assert controller.get_status() == {
        "state": "COUNTING",
        "facing": "user",
        "countdown_remaining": 4,
        "error": None,
        "has_image": False,
        "streaming": True,
    }


def test_encode_failure_at_end_of_countdown_returns_to_idle():
    controller, devices, scheduler, captures = make_controller(jpeg_quality=1.5)
    controller.mount()
    controller.on_tap()

    scheduler.run_all()

    assert captures == []
    assert controller.state == CaptureState.IDLE
    assert controller.countdown_remaining is None
    assert len(devices.open_streams) == 1
    assert controller.on_tap() is True
