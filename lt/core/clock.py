"""Tick sources.

The table controller only ever talks to a ClockSource, so the Qt event loop can be swapped for a manual clock in
tests. Tick callbacks are given no arguments, which keeps them from closing over state that might be stale by the
time they fire.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from PySide6.QtCore import QObject, QTimer
from lt.common.logger import log

TICK_INTERVAL_MS = 1000


class ScheduledCall(ABC):
    @abstractmethod
    def cancel(self) -> None: ...


class ClockSource(ABC):

    # Starts emitting one callback per second. Re-arming replaces the callback and restarts the period.
    @abstractmethod
    def arm(self, callback: Callable[[], None]) -> None: ...

    # Stops ticking immediately; a tick that was due but hasn't fired yet never fires.
    @abstractmethod
    def disarm(self) -> None: ...

    @property
    @abstractmethod
    def armed(self) -> bool: ...

    # One-shot delayed call, used for retry backoff so waiting never blocks the ticks.
    @abstractmethod
    def call_later(self, seconds: float, callback: Callable[[], None]) -> ScheduledCall: ...

    def shutdown(self) -> None:
        self.disarm()


class _QtScheduledCall(ScheduledCall):

    def __init__(self, timer: QTimer, pending: set):
        self._timer = timer
        self._pending = pending
        self.done = False

    def cancel(self):
        if self.done:
            return
        self.done = True
        self._timer.stop()
        self._pending.discard(self)
        self._timer.deleteLater()


# QTimer-backed clock. Needs a running Qt event loop (QApplication/QCoreApplication) to actually fire.
class QtClock(ClockSource):

    def __init__(self, parent: QObject | None = None):
        self._parent = parent
        self._callback = None
        self._timer = QTimer(parent)
        self._timer.setInterval(TICK_INTERVAL_MS)
        self._timer.timeout.connect(self._fire)
        self._pending = set()

    @property
    def armed(self):
        return self._timer.isActive()

    def arm(self, callback):
        self._callback = callback
        self._timer.start()
        log.debug("Clock armed")

    def disarm(self):
        if self._timer.isActive():
            log.debug("Clock disarmed")
        self._timer.stop()
        self._callback = None

    def _fire(self):
        # Re-read the callback every time, disarm() may have cleared it between scheduling and firing
        callback = self._callback
        if callback is not None:
            callback()

    def call_later(self, seconds, callback):
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        handle = _QtScheduledCall(timer, self._pending)

        def _run():
            handle.done = True
            self._pending.discard(handle)
            timer.deleteLater()
            callback()

        timer.timeout.connect(_run)
        self._pending.add(handle)
        timer.start(max(0, int(seconds * 1000)))
        return handle

    # Cancels everything, including pending delayed calls. Used when the table view goes away.
    def shutdown(self):
        self.disarm()
        for handle in list(self._pending):
            handle.cancel()
