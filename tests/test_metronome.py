import unittest

from audio_devices import DeviceError
from config import ClickConfig, MetronomeConfig
from metronome import Metronome
from fakes import FakePlayback, ManualTimerHost


def make_metronome(bpm=100, fail_after=None):
    host = ManualTimerHost()
    playback = FakePlayback(host, fail_after=fail_after)
    readings = []
    metronome = Metronome(playback, MetronomeConfig(bpm=bpm), ClickConfig(), host,
                          on_change=readings.append)
    return metronome, host, playback, readings


class TestMetronomeTempo(unittest.TestCase):
    def test_defaults(self):
        metronome, _, _, _ = make_metronome()
        self.assertEqual(metronome.bpm, 100)
        self.assertFalse(metronome.running)
        self.assertEqual(metronome.reading.current_beat_index, 0)

    def test_set_bpm_clamps(self):
        metronome, _, _, _ = make_metronome()
        self.assertEqual(metronome.set_bpm(300), 240)
        self.assertEqual(metronome.bpm, 240)
        self.assertEqual(metronome.set_bpm(5), 40)
        self.assertEqual(metronome.bpm, 40)
        self.assertEqual(metronome.set_bpm(97.6), 98)

    def test_set_bpm_rejects_non_numeric(self):
        metronome, _, _, _ = make_metronome()
        with self.assertRaises(ValueError):
            metronome.set_bpm("fast")
        self.assertEqual(metronome.bpm, 100)

    def test_set_bpm_infinite_clamps_and_nan_rejected(self):
        metronome, _, _, _ = make_metronome()
        self.assertEqual(metronome.set_bpm(float("inf")), 240)
        self.assertEqual(metronome.set_bpm(float("-inf")), 40)
        with self.assertRaises(ValueError):
            metronome.set_bpm(float("nan"))
        self.assertEqual(metronome.bpm, 40)

    def test_adjust_bpm_uses_step(self):
        metronome, _, _, _ = make_metronome()
        self.assertEqual(metronome.adjust_bpm(1), 105)
        self.assertEqual(metronome.adjust_bpm(-3), 90)
        metronome.set_bpm(238)
        self.assertEqual(metronome.adjust_bpm(1), 240)

    def test_constructor_clamps_config(self):
        metronome, _, _, _ = make_metronome(bpm=500)
        self.assertEqual(metronome.bpm, 240)


class TestMetronomeRunning(unittest.TestCase):
    def test_start_and_beats(self):
        metronome, host, playback, readings = make_metronome(bpm=120)
        metronome.start()
        self.assertTrue(metronome.running)
        self.assertEqual(metronome.reading.current_beat_index, 1)
        host.advance(1.45)
        self.assertEqual(metronome.reading.current_beat_index, 4)
        self.assertEqual(playback.start_times, [0.0, 0.5, 1.0, 1.5])
        self.assertTrue(all(r.bpm == 120 for r in readings))

    def test_stop_resets_beat_index(self):
        metronome, host, playback, _ = make_metronome()
        metronome.start()
        host.advance(1.0)
        metronome.stop()
        self.assertFalse(metronome.running)
        self.assertEqual(metronome.reading.current_beat_index, 0)
        self.assertEqual(playback.cancel_calls, 1)
        self.assertEqual(host.pending, [])

    def test_toggle(self):
        metronome, _, _, readings = make_metronome()
        metronome.toggle()
        self.assertTrue(metronome.running)
        metronome.toggle()
        self.assertFalse(metronome.running)
        self.assertFalse(readings[-1].running)

    def test_bpm_change_while_running_restarts(self):
        metronome, host, playback, _ = make_metronome(bpm=120)
        metronome.start()
        first = metronome.scheduler
        host.advance(0.8)
        metronome.set_bpm(60)
        self.assertTrue(metronome.running)
        self.assertIsNot(metronome.scheduler, first)
        self.assertFalse(first.running)
        self.assertEqual(metronome.reading.current_beat_index, 1)
        self.assertAlmostEqual(metronome.scheduler.state.origin, 0.8)
        self.assertAlmostEqual(metronome.scheduler.state.seconds_per_beat, 1.0)

    def test_bpm_change_while_stopped_does_not_start(self):
        metronome, _, playback, _ = make_metronome()
        metronome.set_bpm(150)
        self.assertFalse(metronome.running)
        self.assertEqual(playback.scheduled, [])

    def test_accent_applies_on_restart(self):
        metronome, host, playback, _ = make_metronome()
        metronome.start()
        metronome.set_accent(True)
        self.assertTrue(metronome.click.accent_downbeat)
        scheduler = metronome.scheduler
        self.assertIsNot(scheduler.accent_click, scheduler.normal_click)

    def test_start_failure_raises_and_records_error(self):
        metronome, host, _, readings = make_metronome(fail_after=0)
        with self.assertRaises(DeviceError):
            metronome.start()
        self.assertFalse(metronome.running)
        self.assertIsNotNone(metronome.reading.error)
        self.assertIsNotNone(readings[-1].error)
        self.assertEqual(host.pending, [])

    def test_playback_failure_while_running_stops(self):
        metronome, host, _, readings = make_metronome(bpm=120, fail_after=3)
        metronome.start()
        host.advance(3.0)
        self.assertFalse(metronome.running)
        self.assertIn("output device lost", metronome.reading.error)
        self.assertFalse(readings[-1].running)
        self.assertEqual(host.pending, [])

    def test_restart_clears_error(self):
        metronome, host, playback, _ = make_metronome(fail_after=0)
        with self.assertRaises(DeviceError):
            metronome.start()
        playback.fail_after = None
        metronome.start()
        self.assertTrue(metronome.running)
        self.assertIsNone(metronome.reading.error)


if __name__ == "__main__":
    unittest.main()
