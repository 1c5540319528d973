# tests/fakes/fake_scheduler.py

from typing import Callable, List


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Collects scheduled callbacks; tests fire them by hand."""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_next(self) -> None:
        timer = self.pending[0]
        timer.fired = True
        timer.callback()

    def run_all(self, limit: int = 100) -> int:
        fired = 0
        while self.pending:
            if fired >= limit:
                raise AssertionError("Timers kept rescheduling")
            self.fire_next()
            fired += 1
        return fired
