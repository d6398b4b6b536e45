import unittest

from tuner import (
    IDLE_MESSAGE,
    RUNNING_MESSAGE,
    TunerReading,
    TunerState,
    TuningResult,
    TuningStatus,
)
from ui_wiring import (
    COLOR_CLOSE,
    COLOR_IN_TUNE,
    COLOR_OFF,
    NO_NOTE_TEXT,
    beat_indicator_states,
    indicator_color,
    indicator_position,
    metronome_button_text,
    note_text,
    tuner_buttons_state,
    tuner_status_line,
)


class TestTunerWiring(unittest.TestCase):
    def test_buttons_follow_state(self):
        idle = tuner_buttons_state(TunerState.IDLE)
        self.assertTrue(idle.start_enabled)
        self.assertFalse(idle.stop_enabled)
        self.assertFalse(idle.mic_active)

        running = tuner_buttons_state(TunerState.RUNNING)
        self.assertFalse(running.start_enabled)
        self.assertTrue(running.stop_enabled)
        self.assertTrue(running.mic_active)

        error = tuner_buttons_state(TunerState.ERROR)
        self.assertTrue(error.start_enabled)
        self.assertFalse(error.stop_enabled)

        stopping = tuner_buttons_state(TunerState.STOPPING)
        self.assertFalse(stopping.start_enabled)
        self.assertFalse(stopping.stop_enabled)

    def test_status_line(self):
        self.assertEqual(tuner_status_line(TunerReading()), IDLE_MESSAGE)
        running = TunerReading(state=TunerState.RUNNING, message=RUNNING_MESSAGE)
        self.assertEqual(tuner_status_line(running), "Pluck a string!")
        sharp = TunerReading(state=TunerState.RUNNING,
                             result=TuningResult("A", 12.0, TuningStatus.SHARP))
        self.assertEqual(tuner_status_line(sharp), "Too sharp!")

    def test_note_text(self):
        self.assertEqual(note_text(TunerReading()), NO_NOTE_TEXT)
        reading = TunerReading(state=TunerState.RUNNING,
                               result=TuningResult("E", 1.0, TuningStatus.IN_TUNE))
        self.assertEqual(note_text(reading), "E")

    def test_indicator_position_is_clamped(self):
        self.assertEqual(indicator_position(42.0), 42.0)
        self.assertEqual(indicator_position(250.0), 100.0)
        self.assertEqual(indicator_position(-250.0), -100.0)

    def test_indicator_color_bands(self):
        self.assertEqual(indicator_color(-4.9), COLOR_IN_TUNE)
        self.assertEqual(indicator_color(5.0), COLOR_CLOSE)
        self.assertEqual(indicator_color(-19.9), COLOR_CLOSE)
        self.assertEqual(indicator_color(20.0), COLOR_OFF)


class TestMetronomeWiring(unittest.TestCase):
    def test_button_text(self):
        self.assertIn("Pause", metronome_button_text(True))
        self.assertIn("Start", metronome_button_text(False))

    def test_beat_lamps(self):
        self.assertEqual(beat_indicator_states(0), [False, False, False, False])
        self.assertEqual(beat_indicator_states(3), [False, False, True, False])


if __name__ == "__main__":
    unittest.main()
