"""Tests for the single-slot timer engine.

Covers: lt.core.timer_state
"""

import unittest

import helpers  # noqa: F401
from lt.core.timer_state import TimerEngine


class TestTimerEngine(unittest.TestCase):

    def setUp(self):
        self.engine = TimerEngine()

    def test_ticks_become_time_under_load(self):
        self.engine.start("Leg Press", 0)
        for _ in range(42):
            self.engine.tick()
        run = self.engine.stop()
        self.assertEqual(run.exercise_name, "Leg Press")
        self.assertEqual(run.elapsed, 42)
        self.assertFalse(self.engine.running)

    def test_stop_while_idle_is_noop(self):
        self.assertIsNone(self.engine.stop())
        self.engine.start("Seated Row")
        self.engine.stop()
        self.assertIsNone(self.engine.stop())

    def test_tick_while_idle_does_nothing(self):
        self.assertFalse(self.engine.tick(True, 30))
        self.assertEqual(self.engine.elapsed, 0)
        self.assertIsNone(self.engine.armed)

    def test_empty_name_does_not_start(self):
        self.assertIsNone(self.engine.start(""))
        self.assertFalse(self.engine.running)

    def test_starting_another_exercise_discards_current_run(self):
        self.engine.start("Chest Press", 60)
        for _ in range(15):
            self.engine.tick()
        self.engine.start("Lat Pull Down", 30)
        self.assertTrue(self.engine.is_armed_for("Lat Pull Down"))
        self.assertFalse(self.engine.is_armed_for("Chest Press"))
        self.assertEqual(self.engine.elapsed, 0)
        self.assertEqual(self.engine.armed.previous_duration, 30)

    def test_cancel_produces_nothing(self):
        self.engine.start("Leg Press", 100)
        self.engine.tick()
        self.engine.cancel()
        self.assertFalse(self.engine.running)
        self.assertIsNone(self.engine.stop())

    def test_malformed_previous_duration_means_no_cues(self):
        for bad in (None, -5, "120", 12.5, True):
            self.engine.start("Leg Press", bad)
            self.assertEqual(self.engine.armed.previous_duration, 0)
            self.assertFalse(self.engine.tick(True, 30))

    def test_cue_window_boundaries(self):
        # previous 20, threshold 5: remaining 6 no, 5..1 yes, 0 no
        self.engine.start("Shoulder Press", 20)
        cues = [self.engine.tick(True, 5) for _ in range(22)]
        fired = [i + 1 for i, cue in enumerate(cues) if cue]
        self.assertEqual(fired, [15, 16, 17, 18, 19])

    def test_sound_disabled_never_cues(self):
        self.engine.start("Shoulder Press", 10)
        self.assertFalse(any(self.engine.tick(False, 10) for _ in range(12)))

    def test_settings_are_read_at_tick_time(self):
        self.engine.start("Seated Row", 30)
        for _ in range(15):
            self.engine.tick(True, 10)
        # remaining 14, outside a 10s window but inside a 15s one
        self.assertTrue(self.engine.tick(True, 15))
        # remaining 13
        self.assertFalse(self.engine.tick(True, 10))

    def test_leg_press_scenario(self):
        self.engine.start("Leg Press", 120)
        cues = {}
        for second in range(1, 126):
            cues[second] = self.engine.tick(True, 10)
        self.assertFalse(cues[109])
        self.assertTrue(cues[110])
        self.assertTrue(cues[119])
        self.assertFalse(cues[120])
        self.assertFalse(cues[125])
        run = self.engine.stop()
        self.assertEqual(run.elapsed, 125)


# Monotonic source the test moves by hand, standing in for wall time passing between ticks.
class ManualMonotonic:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestLateTicks(unittest.TestCase):

    def setUp(self):
        self.time = ManualMonotonic()
        self.engine = TimerEngine(monotonic=self.time)

    def test_late_tick_catches_up_to_wall_time(self):
        self.engine.start("Leg Press", 120)
        self.time.now += 1
        self.engine.tick()
        # Event loop blocked for 3.5s, the two ticks that were due got coalesced into one
        self.time.now += 3.5
        self.engine.tick()
        self.assertEqual(self.engine.elapsed, 4)
        self.time.now += 1
        self.engine.tick()
        self.assertEqual(self.engine.elapsed, 5)

    def test_stop_reports_wall_time_even_without_ticks(self):
        self.engine.start("Seated Row")
        self.time.now += 6.2
        run = self.engine.stop()
        self.assertEqual(run.elapsed, 6)

    def test_early_ticks_still_count_whole_seconds(self):
        self.engine.start("Seated Row")
        for _ in range(3):
            self.engine.tick()
        self.assertEqual(self.engine.elapsed, 3)
        self.assertEqual(self.engine.stop().elapsed, 3)

    def test_cue_fires_for_caught_up_second(self):
        self.engine.start("Shoulder Press", 20)
        self.time.now += 14.5
        # Lands on elapsed 14, remaining 6, outside a 5s window
        self.assertFalse(self.engine.tick(True, 5))
        self.time.now += 1
        self.assertTrue(self.engine.tick(True, 5))
        self.assertEqual(self.engine.armed.remaining, 5)


if __name__ == "__main__":
    unittest.main()
