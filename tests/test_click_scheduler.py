import unittest

import numpy as np

from audio_devices import DeviceError
from click_scheduler import ClickScheduler
from config import ClickConfig, MetronomeConfig
from fakes import FakePlayback, ManualTimerHost


def make_scheduler(bpm=120, fail_after=None, click=None):
    host = ManualTimerHost()
    playback = FakePlayback(host, fail_after=fail_after)
    beats = []
    errors = []
    scheduler = ClickScheduler(playback, MetronomeConfig(bpm=bpm), click, host,
                               on_beat=beats.append, on_error=errors.append)
    return scheduler, host, playback, beats, errors


class TestClickScheduler(unittest.TestCase):
    def test_ten_seconds_at_120_bpm(self):
        scheduler, host, playback, beats, _ = make_scheduler(bpm=120)
        scheduler.start()
        host.advance(10.0)
        scheduler.stop()

        self.assertTrue(19 <= len(playback.scheduled) <= 21, len(playback.scheduled))
        times = playback.start_times
        for earlier, later in zip(times, times[1:]):
            self.assertAlmostEqual(later - earlier, 0.5, places=9)
        self.assertEqual([b.beat_index for b in beats[:6]], [1, 2, 3, 4, 1, 2])

    def test_first_beat_at_start_time(self):
        scheduler, host, playback, _, _ = make_scheduler()
        host.advance(3.0)
        scheduler.start()
        self.assertEqual(playback.start_times, [3.0])
        self.assertEqual(scheduler.state.beat_index, 1)

    def test_beats_queued_ahead_within_lookahead(self):
        scheduler, host, playback, _, _ = make_scheduler(bpm=90)
        scheduler.start()
        host.advance(5.0)
        for start_at, _, queued_at in playback.scheduled:
            self.assertLess(start_at, queued_at + scheduler.lookahead_s)
            # Wake interval is shorter than lookahead, so nothing is queued late
            self.assertGreaterEqual(start_at, queued_at - 1e-9)

    def test_late_wake_emits_missed_beats(self):
        scheduler, host, playback, beats, _ = make_scheduler(bpm=120)
        scheduler.start()
        playback.offset = 1.6
        scheduler.tick()
        self.assertEqual(playback.start_times, [0.0, 0.5, 1.0, 1.5])
        self.assertEqual([b.beat_index for b in beats], [1, 2, 3, 4])

    def test_stop_cancels_wake_and_pending(self):
        scheduler, host, playback, _, _ = make_scheduler()
        scheduler.start()
        host.advance(1.0)
        scheduler.stop()
        scheduler.stop()
        self.assertFalse(scheduler.running)
        self.assertEqual(playback.cancel_calls, 1)
        self.assertEqual(host.pending, [])
        count = len(playback.scheduled)
        host.advance(5.0)
        self.assertEqual(len(playback.scheduled), count)

    def test_restart_resets_origin(self):
        scheduler, host, playback, beats, _ = make_scheduler(bpm=120)
        scheduler.start()
        host.advance(0.7)
        scheduler.stop()
        host.advance(2.0)
        del beats[:]
        scheduler.start()
        self.assertEqual(beats[0].beat_index, 1)
        self.assertAlmostEqual(beats[0].time, 2.7)

    def test_failure_on_start_raises(self):
        scheduler, host, playback, _, errors = make_scheduler(fail_after=0)
        with self.assertRaises(DeviceError):
            scheduler.start()
        self.assertFalse(scheduler.running)
        self.assertIsInstance(scheduler.error, DeviceError)
        self.assertEqual(host.pending, [])
        self.assertEqual(errors, [])

    def test_failure_during_wake_reports_error(self):
        scheduler, host, playback, _, errors = make_scheduler(bpm=120, fail_after=2)
        scheduler.start()
        host.advance(2.0)
        self.assertFalse(scheduler.running)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], DeviceError)
        self.assertEqual(len(playback.scheduled), 2)
        self.assertEqual(host.pending, [])

    def test_accented_downbeat_buffer(self):
        scheduler, host, playback, _, _ = make_scheduler(click=ClickConfig(accent_downbeat=True))
        scheduler.start()
        host.advance(2.0)
        buffers = [s[1] for s in playback.scheduled]
        self.assertIs(buffers[0], scheduler.accent_click)
        self.assertIs(buffers[1], scheduler.normal_click)
        self.assertIs(buffers[4], scheduler.accent_click)
        self.assertFalse(np.array_equal(buffers[0], buffers[1]))


if __name__ == "__main__":
    unittest.main()
