"""Shared fakes for the LoadTimer tests.

Importing this module first points LOADTIMER_HOME at a throwaway folder, so the logger and default paths never
touch a real profile.
"""

import os
import tempfile

os.environ.setdefault("LOADTIMER_HOME", tempfile.mkdtemp(prefix="loadtimer-tests-"))

from lt.core.clock import ClockSource, ScheduledCall  # noqa: E402


class FakeCall(ScheduledCall):

    def __init__(self, clock, seconds, callback):
        self.clock = clock
        self.seconds = seconds
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


# Manual clock. Nothing fires until the test calls tick() or run_pending().
class FakeClock(ClockSource):

    def __init__(self):
        self._callback = None
        self.calls = []
        self.shut_down = False

    @property
    def armed(self):
        return self._callback is not None

    def arm(self, callback):
        self._callback = callback

    def disarm(self):
        self._callback = None

    def call_later(self, seconds, callback):
        call = FakeCall(self, seconds, callback)
        self.calls.append(call)
        return call

    def shutdown(self):
        self.shut_down = True
        self.disarm()
        for call in self.calls:
            call.cancel()

    def tick(self, times=1):
        for _ in range(times):
            if self._callback is not None:
                self._callback()

    @property
    def pending(self):
        return [c for c in self.calls if not c.cancelled]

    # Fires every delayed call that is still scheduled, in order. Calls scheduled while running wait for the next
    # run_pending().
    def run_pending(self):
        due = self.pending
        for call in due:
            call.cancelled = True
            call.callback()
        return [c.seconds for c in due]


class FakeCue:

    def __init__(self):
        self.plays = 0

    def play(self):
        self.plays += 1
        return True
