import time
from dataclasses import dataclass
from lt.common.logger import log


# The single armed slot. Exactly one of these exists while a set is being timed, none while idle.
@dataclass
class ArmedTimer:
    exercise_name: str
    previous_duration: int = 0
    elapsed: int = 0
    started_at: float = 0.0   # monotonic instant of start()

    # Seconds left to beat the previous set. Zero or negative once it's tied or beaten.
    @property
    def remaining(self):
        return self.previous_duration - self.elapsed


# Result of stopping a running timer, handed to the caller to turn into a session.
@dataclass(frozen=True)
class FinishedRun:
    exercise_name: str
    elapsed: int


# This object handles time tracking for whichever single exercise is currently armed. Each tick() moves elapsed on by
# one whole second, and never leaves it behind the monotonic time since start(). A tick that arrives late because the
# event loop was busy catches up instead of losing the seconds it missed.
class TimerEngine:

    def __init__(self, monotonic=time.monotonic):
        self._monotonic = monotonic
        self.armed: ArmedTimer | None = None

    def _wall_seconds(self):
        return max(0, int(self._monotonic() - self.armed.started_at))

    @property
    def running(self):
        return self.armed is not None

    @property
    def elapsed(self):
        return self.armed.elapsed if self.armed is not None else 0

    def is_armed_for(self, exercise_name):
        return self.armed is not None and self.armed.exercise_name == exercise_name

    # Arms the timer for the given exercise, starting from zero. Whatever was running before is discarded, not
    # finished.
    def start(self, exercise_name, previous_duration=0):
        if not exercise_name:
            log.debug("Ignored timer start with an empty exercise name")
            return None
        if self.armed is not None:
            log.debug(f"Discarding run for '{self.armed.exercise_name}' at {self.armed.elapsed}s to start '{exercise_name}'")
        if not isinstance(previous_duration, int) or isinstance(previous_duration, bool) or previous_duration < 0:
            previous_duration = 0
        self.armed = ArmedTimer(
            exercise_name=exercise_name,
            previous_duration=previous_duration,
            started_at=self._monotonic(),
        )
        log.debug(f"Started timer '{exercise_name}' racing previous duration {previous_duration}s")
        return self.armed

    # Advances one second and reports whether a countdown cue is due for this second. A no-op while idle, so a stray
    # callback after stop() can't resurrect anything.
    def tick(self, sound_enabled=False, countdown_threshold=0):
        if self.armed is None:
            return False
        self.armed.elapsed = max(self.armed.elapsed + 1, self._wall_seconds())
        remaining = self.armed.remaining
        return bool(sound_enabled) and 0 < remaining <= countdown_threshold

    # Finishes the current run, returning it for persistence. Returns None when idle (double-clicked stop).
    def stop(self):
        if self.armed is None:
            return None
        elapsed = max(self.armed.elapsed, self._wall_seconds())
        run = FinishedRun(exercise_name=self.armed.exercise_name, elapsed=elapsed)
        self.armed = None
        log.debug(f"Stopped timer '{run.exercise_name}' at {run.elapsed}s")
        return run

    # Drops the current run without producing anything.
    def cancel(self):
        if self.armed is not None:
            log.debug(f"Cancelled timer '{self.armed.exercise_name}' at {self.armed.elapsed}s")
        self.armed = None
