import threading

from controller.scheduler import ThreadingScheduler
from tests.helpers import wait_for


def test_call_later_fires_callback():
    fired = threading.Event()

    ThreadingScheduler().call_later(0.01, fired.set)

    wait_for(fired.is_set, timeout=2.0)


def test_cancelled_timer_never_fires():
    fired = threading.Event()

    timer = ThreadingScheduler().call_later(0.2, fired.set)
    timer.cancel()

    assert fired.wait(0.5) is False


def test_timer_threads_are_daemons():
    timer = ThreadingScheduler().call_later(10, lambda: None)
    try:
        assert timer.daemon is True
    finally:
        timer.cancel()
