"""Exercise table logic: a single timer slot shared by the whole table, plus weight inputs and session persistence.

Pure logic, no widgets. The Qt window calls the ``on_*`` handlers and redraws when a subscribed listener is told
something changed. All state transitions go through this class; the tick callback reads the live armed timer and
settings every time it fires instead of holding on to copies.
"""

import math
from dataclasses import replace
from lt.common.errors import (
    DuplicateExercise,
    InvalidExerciseName,
    InvalidSetting,
    RetryPolicy,
    StorageError,
)
from lt.common.logger import log
from lt.core.audio import AudioCue
from lt.core.clock import ClockSource
from lt.core.config import Preferences
from lt.core.models import COUNTDOWN_CHOICES, DEFAULT_EXERCISES, Exercise, OwnerContext, Session, merge_sessions
from lt.core.timer_state import TimerEngine
from lt.store.base import ExerciseStore
from lt.util import now_iso

# Events passed to listeners
EVENT_TICK = "tick"
EVENT_CUE = "cue"
EVENT_TIMER = "timer"
EVENT_EXERCISES = "exercises"
EVENT_SETTINGS = "settings"
EVENT_WARNING = "warning"

_SAVE = "save"
_REMOVE = "remove"


class ExerciseTableController:

    def __init__(self,
                 store: ExerciseStore,
                 owner: OwnerContext,
                 preferences: Preferences,
                 clock: ClockSource,
                 cue: AudioCue,
                 retry_policy: RetryPolicy | None = None,
                 seed_defaults=True):
        self.store = store
        self.owner = owner
        self.preferences = preferences
        self.clock = clock
        self.cue = cue
        self.retry_policy = retry_policy or RetryPolicy()
        self.seed_defaults = seed_defaults

        self.engine = TimerEngine()
        self.settings = preferences.load_timer_settings()
        self.weight_unit = preferences.load_weight_unit()

        self.exercises = {}   # name -> Exercise
        self.weights = {}     # name -> float | None (None means the input is blank)
        self.sync_warning = None

        self._pending = {}    # name -> ScheduledCall for a write waiting on backoff
        self._listeners = []

    # ------------------------------------------------------------------ #
    #  Listeners and read-only views                                       #
    # ------------------------------------------------------------------ #

    def subscribe(self, callback):
        self._listeners.append(callback)

    def _notify(self, event):
        for callback in list(self._listeners):
            callback(event)

    @property
    def rows(self):
        return [self.exercises[name] for name in sorted(self.exercises)]

    @property
    def armed_name(self):
        return self.engine.armed.exercise_name if self.engine.armed is not None else None

    # Seconds left to beat the previous set, but only while inside the countdown window.
    @property
    def countdown_remaining(self):
        armed = self.engine.armed
        if armed is None:
            return None
        remaining = armed.remaining
        if 0 < remaining <= self.settings.countdown_threshold:
            return remaining
        return None

    # ------------------------------------------------------------------ #
    #  Loading                                                             #
    # ------------------------------------------------------------------ #

    def load(self):
        try:
            exercises = self.store.list_all(self.owner)
        except StorageError as e:
            log.error(f"Could not load exercises for '{self.owner.user_id}'", exc_info=True)
            self._set_warning(e.user_message)
            exercises = []
        else:
            if not exercises and self.seed_defaults and not self.preferences.has_seen_onboarding:
                exercises = self._seed_defaults()
            if not self.preferences.has_seen_onboarding:
                self.preferences.mark_onboarding_seen()

        self.exercises = {e.name: e for e in exercises}
        self.weights = {}
        for exercise in exercises:
            last = exercise.last_session
            self.weights[exercise.name] = last.weight if last is not None and last.weight else None
        log.info(f"Loaded {len(self.exercises)} exercises into the table")
        self._notify(EVENT_EXERCISES)
        return self.rows

    def _seed_defaults(self):
        seeded = []
        for name in DEFAULT_EXERCISES:
            exercise = Exercise(name=name, owner_id=self.owner.user_id)
            try:
                seeded.append(self.store.upsert(exercise, self.owner))
            except StorageError as e:
                log.warning(f"Could not seed default exercise '{name}'", exc_info=True)
                self._set_warning(e.user_message)
                seeded.append(exercise)
        log.info(f"Seeded {len(seeded)} default exercises")
        return seeded

    # ------------------------------------------------------------------ #
    #  Timer control                                                       #
    # ------------------------------------------------------------------ #

    # Start/Stop button for a row. Returns the recorded Session when this press finished a set, else None.
    def on_start_stop(self, name):
        if name not in self.exercises:
            log.debug(f"Ignored start/stop for unknown exercise '{name}'")
            return None
        if self.engine.is_armed_for(name):
            return self._finish_run()

        # Starting anywhere else discards whatever was running
        self.engine.start(name, self.exercises[name].previous_duration)
        self.clock.arm(self._on_tick)
        self._notify(EVENT_TIMER)
        return None

    def _on_tick(self):
        armed = self.engine.armed
        if armed is None:
            self.clock.disarm()
            return
        if armed.exercise_name not in self.exercises:
            self.engine.cancel()
            self.clock.disarm()
            self._notify(EVENT_TIMER)
            return

        settings = self.settings
        if self.engine.tick(settings.sound_enabled, settings.countdown_threshold):
            self.cue.play()
            self._notify(EVENT_CUE)
        self._notify(EVENT_TICK)

    def _finish_run(self):
        run = self.engine.stop()
        self.clock.disarm()
        self._notify(EVENT_TIMER)
        if run is None:
            return None
        if run.elapsed <= 0:
            log.info(f"Discarded zero-length run for '{run.exercise_name}'")
            return None

        # Weight is whatever the input holds right now; blank counts as zero
        weight = self.weights.get(run.exercise_name)
        session = Session(
            weight=weight if weight is not None else 0,
            time_under_load=run.elapsed,
            timestamp=now_iso(),
        )
        self.exercises[run.exercise_name] = self.exercises[run.exercise_name].with_session(session)
        log.info(f"Recorded {session.weight} x {session.time_under_load}s for '{run.exercise_name}'")
        self._notify(EVENT_EXERCISES)
        self._save(run.exercise_name)
        return session

    # ------------------------------------------------------------------ #
    #  Row edits                                                           #
    # ------------------------------------------------------------------ #

    # Returns True if the raw input was accepted. Blank clears the weight; non-numbers and negatives are ignored.
    def on_weight_change(self, name, raw_value):
        if name not in self.exercises:
            return False
        if isinstance(raw_value, bool):
            return False
        if isinstance(raw_value, (int, float)):
            value = float(raw_value)
        else:
            text = (raw_value or "").strip()
            if text == "":
                self.weights[name] = None
                return True
            try:
                value = float(text)
            except ValueError:
                return False
        if not math.isfinite(value) or value < 0:
            return False
        self.weights[name] = int(value) if value.is_integer() else value
        return True

    def on_add_exercise(self, name):
        cleaned = (name or "").strip()
        if not cleaned:
            raise InvalidExerciseName("Exercise name cannot be empty")
        if cleaned in self.exercises:
            raise DuplicateExercise(f"Exercise '{cleaned}' already exists")

        exercise = Exercise(name=cleaned, owner_id=self.owner.user_id)
        self.exercises[cleaned] = exercise
        self.weights[cleaned] = None
        log.info(f"Added exercise '{cleaned}'")
        self._notify(EVENT_EXERCISES)
        self._save(cleaned)
        return exercise

    def on_delete_exercise(self, name):
        if self.engine.is_armed_for(name):
            # Deleting mid-set throws the set away
            self.engine.cancel()
            self.clock.disarm()
            self._notify(EVENT_TIMER)
        existed = self.exercises.pop(name, None) is not None
        self.weights.pop(name, None)
        if existed:
            log.info(f"Deleted exercise '{name}'")
            self._notify(EVENT_EXERCISES)
        self._remove(name)

    # ------------------------------------------------------------------ #
    #  Settings                                                            #
    # ------------------------------------------------------------------ #

    def set_sound_enabled(self, enabled):
        was_enabled = self.settings.sound_enabled
        self.settings = replace(self.settings, sound_enabled=bool(enabled))
        self.preferences.save_timer_settings(self.settings)
        self._notify(EVENT_SETTINGS)
        # Let the user hear what they just switched on
        if enabled and not was_enabled:
            self.cue.play()

    def set_countdown_threshold(self, seconds):
        if isinstance(seconds, bool) or seconds not in COUNTDOWN_CHOICES:
            raise InvalidSetting(f"Countdown must be one of {', '.join(str(c) for c in COUNTDOWN_CHOICES)} seconds")
        self.settings = replace(self.settings, countdown_threshold=int(seconds))
        self.preferences.save_timer_settings(self.settings)
        self._notify(EVENT_SETTINGS)

    def set_weight_unit(self, unit):
        self.preferences.save_weight_unit(unit)
        self.weight_unit = unit
        self._notify(EVENT_SETTINGS)

    # ------------------------------------------------------------------ #
    #  Persistence with retry                                              #
    # ------------------------------------------------------------------ #

    def _save(self, name, attempt=0):
        self._cancel_pending(name)
        exercise = self.exercises.get(name)
        if exercise is None:
            return False
        try:
            # Re-fetch and merge so a session written elsewhere since our last load isn't overwritten
            latest = self.store.get(name, self.owner)
            if latest is not None:
                exercise = exercise.with_sessions(merge_sessions(latest.sessions, exercise.sessions))
            stored = self.store.upsert(exercise, self.owner)
        except StorageError as e:
            self._write_failed(name, _SAVE, e, attempt)
            return False

        # The exercise may have been deleted while the write was in flight
        if name in self.exercises:
            self.exercises[name] = stored
            self._notify(EVENT_EXERCISES)
        self._clear_warning()
        return True

    def _remove(self, name, attempt=0):
        self._cancel_pending(name)
        try:
            self.store.remove(name, self.owner)
        except StorageError as e:
            self._write_failed(name, _REMOVE, e, attempt)
            return False
        self._clear_warning()
        return True

    def _write_failed(self, name, operation, error, attempt):
        next_attempt = attempt + 1
        if self.retry_policy.should_retry(next_attempt, error):
            delay = self.retry_policy.delay(next_attempt, error)
            log.warning(f"Failed to {operation} '{name}' ({error}), retry {next_attempt}/{self.retry_policy.max_retries} in {delay}s")
            retry = self._save if operation == _SAVE else self._remove
            self._pending[name] = self.clock.call_later(delay, lambda: retry(name, next_attempt))
            return
        log.error(f"Giving up on {operation} for '{name}' after {attempt + 1} attempts: {error}")
        self._set_warning(error.user_message)

    def _cancel_pending(self, name):
        handle = self._pending.pop(name, None)
        if handle is not None:
            handle.cancel()

    @property
    def pending_writes(self):
        return sorted(self._pending)

    def _set_warning(self, message):
        self.sync_warning = message
        self._notify(EVENT_WARNING)

    def _clear_warning(self):
        if self.sync_warning is not None:
            self.sync_warning = None
            self._notify(EVENT_WARNING)

    # ------------------------------------------------------------------ #
    #  Teardown                                                            #
    # ------------------------------------------------------------------ #

    # The table is going away. Any running set is dropped, ticks stop, and writes still waiting on backoff get one
    # last immediate attempt.
    def shutdown(self):
        self.engine.cancel()
        self.clock.shutdown()
        for name in list(self._pending):
            self._cancel_pending(name)
            if name in self.exercises:
                self._flush_once(self._save, name)
            else:
                self._flush_once(self._remove, name)

    def _flush_once(self, operation, name):
        # Attempt number past the limit, so a failure here warns instead of scheduling another retry
        operation(name, self.retry_policy.max_retries)
        self._cancel_pending(name)
