"""Tests for the exercise table controller, mostly driven by a manual clock, plus one run on a real QtClock.

Covers: lt.core.table
"""

import shutil
import tempfile
import time
import unittest
from pathlib import Path

from helpers import FakeClock, FakeCue
from PySide6.QtCore import QCoreApplication, QTimer
from lt.common.errors import (
    AuthExpired,
    DuplicateExercise,
    InvalidExerciseName,
    InvalidSetting,
    NetworkUnavailable,
    RateLimited,
    RetryPolicy,
)
from lt.core.clock import QtClock
from lt.core.config import LocalStorage, Preferences
from lt.core.models import DEFAULT_EXERCISES, LOCAL_OWNER, Exercise, Session
from lt.core.table import EVENT_CUE, EVENT_WARNING, ExerciseTableController
from lt.store.base import ExerciseStore
from lt.store.local import LocalExerciseStore


# Wraps a real local store and fails the next N writes with a given error.
class FlakyStore(ExerciseStore):

    def __init__(self, inner):
        self.inner = inner
        self.failures = []
        self.upserts = 0

    def fail_next(self, *errors):
        self.failures.extend(errors)

    def _maybe_fail(self):
        if self.failures:
            raise self.failures.pop(0)

    def list_all(self, owner):
        return self.inner.list_all(owner)

    def get(self, name, owner):
        return self.inner.get(name, owner)

    def upsert(self, exercise, owner):
        self.upserts += 1
        self._maybe_fail()
        return self.inner.upsert(exercise, owner)

    def remove(self, name, owner):
        self._maybe_fail()
        return self.inner.remove(name, owner)


class ControllerTestBase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.storage = LocalStorage(Path(self.tmpdir) / "storage.json")
        self.store = FlakyStore(LocalExerciseStore(self.storage))
        self.clock = FakeClock()
        self.cue = FakeCue()
        self.events = []

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def make_controller(self, seed_defaults=False):
        controller = ExerciseTableController(
            store=self.store,
            owner=LOCAL_OWNER,
            preferences=Preferences(self.storage),
            clock=self.clock,
            cue=self.cue,
            seed_defaults=seed_defaults,
        )
        controller.subscribe(self.events.append)
        controller.load()
        return controller

    def seed(self, name, *sessions):
        self.store.inner.upsert(Exercise(name=name, sessions=tuple(sessions)), LOCAL_OWNER)


class TestLoading(ControllerTestBase):

    def test_first_run_seeds_defaults_once(self):
        c = self.make_controller(seed_defaults=True)
        self.assertEqual([e.name for e in c.rows], DEFAULT_EXERCISES)
        self.assertTrue(Preferences(self.storage).has_seen_onboarding)

        # Deleting everything and reloading doesn't bring them back
        for name in list(c.exercises):
            c.on_delete_exercise(name)
        self.assertEqual(self.make_controller(seed_defaults=True).rows, [])

    def test_weights_start_from_last_session(self):
        self.seed("Leg Press", Session(200, 120, "2025-01-01T10:00:00+00:00"))
        self.seed("Rowing")
        c = self.make_controller()
        self.assertEqual(c.weights["Leg Press"], 200)
        self.assertIsNone(c.weights["Rowing"])

    def test_store_failure_while_loading_warns_with_empty_table(self):
        class DownStore(FlakyStore):
            def list_all(self, owner):
                raise NetworkUnavailable("offline")

        self.store = DownStore(self.store.inner)
        c = self.make_controller()
        self.assertEqual(c.rows, [])
        self.assertEqual(c.sync_warning, NetworkUnavailable.user_message)
        self.assertIn(EVENT_WARNING, self.events)


class TestTimerFlow(ControllerTestBase):

    def test_leg_press_scenario(self):
        self.seed("Leg Press", Session(200, 120, "2025-01-01T10:00:00+00:00"))
        c = self.make_controller()
        c.on_weight_change("Leg Press", "210")

        c.on_start_stop("Leg Press")
        self.assertTrue(self.clock.armed)
        self.clock.tick(109)
        self.assertEqual(self.cue.plays, 0)
        self.assertIsNone(c.countdown_remaining)
        self.clock.tick()
        self.assertEqual(self.cue.plays, 1)
        self.assertEqual(c.countdown_remaining, 10)
        self.clock.tick(10)
        self.assertEqual(self.cue.plays, 10)
        self.clock.tick(5)
        self.assertEqual(self.cue.plays, 10)

        session = c.on_start_stop("Leg Press")
        self.assertFalse(self.clock.armed)
        self.assertEqual((session.weight, session.time_under_load), (210, 125))

        stored = self.store.get("Leg Press", LOCAL_OWNER)
        self.assertEqual(len(stored.sessions), 2)
        self.assertEqual(stored.previous_duration, 125)
        self.assertEqual(c.exercises["Leg Press"].previous_duration, 125)
        self.assertEqual(self.events.count(EVENT_CUE), 10)

    def test_switching_exercise_discards_running_set(self):
        self.seed("Chest Press")
        self.seed("Seated Row")
        c = self.make_controller()
        c.on_start_stop("Chest Press")
        self.clock.tick(20)
        c.on_start_stop("Seated Row")
        self.assertEqual(c.armed_name, "Seated Row")
        self.assertEqual(c.engine.elapsed, 0)
        self.assertEqual(self.store.get("Chest Press", LOCAL_OWNER).sessions, ())

    def test_blank_weight_records_zero(self):
        self.seed("Rowing")
        c = self.make_controller()
        c.on_start_stop("Rowing")
        self.clock.tick(3)
        session = c.on_start_stop("Rowing")
        self.assertEqual(session.weight, 0)

    def test_zero_length_run_is_not_recorded(self):
        self.seed("Rowing")
        c = self.make_controller()
        c.on_start_stop("Rowing")
        self.assertIsNone(c.on_start_stop("Rowing"))
        self.assertEqual(self.store.get("Rowing", LOCAL_OWNER).sessions, ())
        self.assertEqual(self.store.upserts, 0)

    def test_stray_tick_after_stop_does_nothing(self):
        self.seed("Rowing")
        c = self.make_controller()
        c.on_start_stop("Rowing")
        tick = self.clock._callback
        self.clock.tick(2)
        c.on_start_stop("Rowing")
        tick()
        self.assertFalse(c.engine.running)
        self.assertEqual(len(self.store.get("Rowing", LOCAL_OWNER).sessions), 1)

    def test_settings_change_applies_to_running_timer(self):
        self.seed("Row", Session(50, 30, "2025-01-01T10:00:00+00:00"))
        c = self.make_controller()
        c.set_sound_enabled(False)
        c.on_start_stop("Row")
        self.clock.tick(20)
        self.assertEqual(self.cue.plays, 0)
        c.set_sound_enabled(True)        # test cue
        c.set_countdown_threshold(5)
        self.clock.tick(4)               # remaining 6
        self.assertEqual(self.cue.plays, 1)
        self.clock.tick()                # remaining 5
        self.assertEqual(self.cue.plays, 2)

    def test_unknown_exercise_is_ignored(self):
        c = self.make_controller()
        self.assertIsNone(c.on_start_stop("Nope"))
        self.assertFalse(self.clock.armed)


class TestRowEdits(ControllerTestBase):

    def test_weight_input_rules(self):
        self.seed("Row")
        c = self.make_controller()
        self.assertTrue(c.on_weight_change("Row", "135"))
        self.assertEqual(c.weights["Row"], 135)
        self.assertTrue(c.on_weight_change("Row", "52.5"))
        self.assertEqual(c.weights["Row"], 52.5)
        self.assertFalse(c.on_weight_change("Row", "abc"))
        self.assertFalse(c.on_weight_change("Row", "-10"))
        self.assertFalse(c.on_weight_change("Row", "nan"))
        self.assertEqual(c.weights["Row"], 52.5)
        self.assertTrue(c.on_weight_change("Row", "  "))
        self.assertIsNone(c.weights["Row"])
        self.assertFalse(c.on_weight_change("Missing", "10"))

    def test_add_then_delete(self):
        c = self.make_controller()
        c.on_add_exercise("  Rowing ")
        self.assertIn("Rowing", c.exercises)
        self.assertEqual(self.store.get("Rowing", LOCAL_OWNER).sessions, ())

        c.on_delete_exercise("Rowing")
        self.assertNotIn("Rowing", c.exercises)
        self.assertIsNone(self.store.get("Rowing", LOCAL_OWNER))
        self.assertEqual([k for k in self.storage.keys() if "Rowing" in k], [])

    def test_add_rejects_empty_and_duplicates(self):
        self.seed("Rowing")
        c = self.make_controller()
        with self.assertRaises(InvalidExerciseName):
            c.on_add_exercise("   ")
        with self.assertRaises(DuplicateExercise):
            c.on_add_exercise("Rowing")
        with self.assertRaises(ValueError):
            c.on_add_exercise("")

    def test_delete_running_exercise_cancels_without_saving(self):
        self.seed("Rowing")
        c = self.make_controller()
        c.on_start_stop("Rowing")
        self.clock.tick(30)
        c.on_delete_exercise("Rowing")
        self.assertFalse(self.clock.armed)
        self.assertIsNone(c.armed_name)
        self.assertEqual(self.store.upserts, 0)

    def test_invalid_countdown_rejected(self):
        c = self.make_controller()
        with self.assertRaises(InvalidSetting):
            c.set_countdown_threshold(7)
        self.assertEqual(c.settings.countdown_threshold, 10)

    def test_settings_persist(self):
        c = self.make_controller()
        c.set_countdown_threshold(30)
        c.set_weight_unit("kg")
        prefs = Preferences(LocalStorage(self.storage.path))
        self.assertEqual(prefs.load_timer_settings().countdown_threshold, 30)
        self.assertEqual(prefs.load_weight_unit(), "kg")


class TestPersistenceRetry(ControllerTestBase):

    def _record_set(self, c, name="Rowing", seconds=5):
        c.on_start_stop(name)
        self.clock.tick(seconds)
        return c.on_start_stop(name)

    def test_transient_failure_retries_with_backoff(self):
        self.seed("Rowing")
        c = self.make_controller()
        self.store.fail_next(NetworkUnavailable("down"), NetworkUnavailable("down"))
        self._record_set(c)
        self.assertEqual(c.pending_writes, ["Rowing"])

        self.assertEqual(self.clock.run_pending(), [1.0])
        self.assertEqual(self.clock.run_pending(), [2.0])
        self.assertEqual(c.pending_writes, [])
        self.assertIsNone(c.sync_warning)
        self.assertEqual(len(self.store.get("Rowing", LOCAL_OWNER).sessions), 1)

    def test_exhausted_retries_warn_but_keep_ui_state(self):
        self.seed("Rowing")
        c = self.make_controller()
        self.store.fail_next(*[NetworkUnavailable("down")] * 4)
        self._record_set(c)
        delays = []
        for _ in range(3):
            delays += self.clock.run_pending()
        self.assertEqual(delays, [1.0, 2.0, 4.0])
        self.assertEqual(c.sync_warning, NetworkUnavailable.user_message)
        self.assertEqual(len(c.exercises["Rowing"].sessions), 1)
        self.assertEqual(self.store.get("Rowing", LOCAL_OWNER).sessions, ())

        # Next successful write clears the warning and carries the unsaved set along
        self._record_set(c, seconds=7)
        self.assertIsNone(c.sync_warning)
        self.assertEqual(len(self.store.get("Rowing", LOCAL_OWNER).sessions), 2)

    def test_rate_limited_uses_longer_base_delay(self):
        self.seed("Rowing")
        c = self.make_controller()
        self.store.fail_next(RateLimited("slow down"))
        self._record_set(c)
        self.assertEqual(self.clock.run_pending(), [5.0])

    def test_auth_expiry_is_not_retried(self):
        self.seed("Rowing")
        c = self.make_controller()
        self.store.fail_next(AuthExpired("jwt expired"))
        self._record_set(c)
        self.assertEqual(self.clock.pending, [])
        self.assertEqual(c.sync_warning, AuthExpired.user_message)

    def test_save_merges_sessions_written_elsewhere(self):
        self.seed("Rowing")
        c = self.make_controller()
        # Another device records a set after we loaded
        self.store.inner.upsert(
            Exercise(name="Rowing", sessions=(Session(80, 40, "2020-01-01T00:00:00+00:00"),)), LOCAL_OWNER)
        self._record_set(c)
        stored = self.store.get("Rowing", LOCAL_OWNER)
        self.assertEqual([s.time_under_load for s in stored.sessions], [40, 5])

    def test_shutdown_stops_ticks_and_flushes_pending(self):
        self.seed("Rowing")
        c = self.make_controller()
        self.store.fail_next(NetworkUnavailable("down"))
        self._record_set(c)
        c.on_start_stop("Rowing")
        c.shutdown()
        self.assertTrue(self.clock.shut_down)
        self.assertFalse(c.engine.running)
        self.assertEqual(c.pending_writes, [])
        self.assertEqual(len(self.store.get("Rowing", LOCAL_OWNER).sessions), 1)

# First read after arm_slow() stalls for `delay` seconds, then fails like a dropped connection.
class StallingStore(FlakyStore):

    def __init__(self, inner, delay):
        super().__init__(inner)
        self.delay = delay
        self.stall_next = False

    def arm_slow(self):
        self.stall_next = True

    def get(self, name, owner):
        if self.stall_next:
            self.stall_next = False
            time.sleep(self.delay)
            raise NetworkUnavailable("timed out")
        return super().get(name, owner)


class TestQtClockTiming(ControllerTestBase):

    @classmethod
    def setUpClass(cls):
        cls.app = QCoreApplication.instance() or QCoreApplication([])

    def setUp(self):
        super().setUp()
        self.store = StallingStore(self.store.inner, delay=2.5)
        self.clock = QtClock()

    def tearDown(self):
        self.clock.shutdown()
        super().tearDown()

    def _run_loop(self, seconds):
        QTimer.singleShot(int(seconds * 1000), self.app.quit)
        self.app.exec()

    def test_slow_retry_does_not_shorten_running_set(self):
        self.seed("Leg Press")
        c = ExerciseTableController(
            store=self.store,
            owner=LOCAL_OWNER,
            preferences=Preferences(self.storage),
            clock=self.clock,
            cue=self.cue,
            retry_policy=RetryPolicy(base_delay=0.5),
        )
        c.load()

        # Adding fails once, so a retry is scheduled for half a second from now. That retry hangs the loop.
        self.store.fail_next(NetworkUnavailable("down"))
        c.on_add_exercise("Rowing")
        self.assertEqual(c.pending_writes, ["Rowing"])
        self.store.arm_slow()

        c.on_start_stop("Leg Press")
        self._run_loop(4.5)
        session = c.on_start_stop("Leg Press")

        self.assertIsNotNone(session)
        self.assertGreaterEqual(session.time_under_load, 4)
        self.assertFalse(self.store.stall_next)



if __name__ == "__main__":
    unittest.main()
