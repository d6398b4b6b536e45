import math
import unittest

import numpy as np

from capture_session import AudioFrame
from config import TunerConfig
from note_mapper import NoteMapper
from pitch_detector import (
    PitchDetector,
    autocorrelation,
    bandpass,
    frame_rms,
    parabolic_interpolation,
    period_range,
)
from fakes import sine


class TestPitchDetectorHelpers(unittest.TestCase):
    def test_period_range_covers_band(self):
        self.assertEqual(period_range(44100, 200.0, 600.0), (73, 221))
        self.assertEqual(period_range(48000, 200.0, 600.0), (80, 240))

    def test_frame_rms(self):
        self.assertEqual(frame_rms(np.zeros(0)), 0.0)
        self.assertAlmostEqual(frame_rms(np.full(64, 0.5)), 0.5, places=6)

    def test_autocorrelation_peaks_at_period(self):
        samples = sine(441.0, 44100, 2048).astype(np.float64)
        corr = autocorrelation(samples, 50, 150)
        self.assertEqual(50 + int(np.argmax(corr)), 100)

    def test_parabolic_interpolation_symmetric_peak(self):
        y = np.array([0.0, 1.0, 2.0, 1.0, 0.0])
        self.assertAlmostEqual(parabolic_interpolation(y, 2), 2.0)

    def test_parabolic_interpolation_shifts_towards_larger_neighbour(self):
        y = np.array([0.0, 1.0, 2.0, 1.5, 0.0])
        refined = parabolic_interpolation(y, 2)
        self.assertGreater(refined, 2.0)
        self.assertLessEqual(refined, 2.5)

    def test_parabolic_interpolation_edges_unchanged(self):
        y = np.array([3.0, 2.0, 1.0])
        self.assertEqual(parabolic_interpolation(y, 0), 0.0)
        self.assertEqual(parabolic_interpolation(y, 2), 2.0)

    def test_bandpass_attenuates_out_of_band(self):
        low = sine(50.0, 44100, 4096)
        filtered = bandpass(low, 44100, 140.0, 850.0)
        self.assertEqual(filtered.dtype, np.float32)
        self.assertLess(frame_rms(filtered), 0.2 * frame_rms(low))


class TestPitchDetector(unittest.TestCase):
    def setUp(self):
        self.detector = PitchDetector()

    def test_silence_gives_no_pitch(self):
        for rate in (8000, 44100, 48000):
            self.assertIsNone(self.detector.detect_samples(np.zeros(2048, dtype=np.float32), rate))

    def test_quiet_noise_is_gated(self):
        rng = np.random.default_rng(7)
        noise = (0.001 * rng.standard_normal(2048)).astype(np.float32)
        self.assertIsNone(self.detector.detect_samples(noise, 44100))

    def test_g_string_detected_within_one_hz(self):
        for rate in (44100, 48000):
            frequency = self.detector.detect_samples(sine(392.0, rate), rate)
            self.assertIsNotNone(frequency)
            self.assertLess(abs(frequency - 392.0), 1.0, f"rate={rate} got {frequency}")

    def test_g_string_maps_in_tune(self):
        frequency = self.detector.detect_samples(sine(392.0, 44100), 44100)
        match = NoteMapper().match(frequency)
        self.assertEqual(match.label, "G")
        self.assertLess(abs(match.cents), 5.0)

    def test_between_strings_tone_is_unmatched(self):
        frequency = self.detector.detect_samples(sine(293.0, 44100), 44100)
        self.assertLess(abs(frequency - 293.0), 2.0)
        self.assertIsNone(NoteMapper().match(frequency))

    def test_other_strings_detected(self):
        for label, target in (("C", 261.63), ("E", 329.63), ("A", 440.0)):
            frequency = self.detector.detect_samples(sine(target, 44100), 44100)
            self.assertLess(abs(frequency - target), 2.0, label)
            self.assertEqual(NoteMapper().match(frequency).label, label)

    def test_detect_reads_audio_frame(self):
        frame = AudioFrame.from_samples(sine(440.0, 48000), 48000)
        self.assertLess(abs(self.detector.detect(frame) - 440.0), 2.0)

    def test_without_refinement_result_is_integer_period(self):
        detector = PitchDetector(refine_peak=False)
        frequency = detector.detect_samples(sine(392.0, 44100), 44100)
        period = 44100 / frequency
        self.assertAlmostEqual(period, round(period), places=6)

    def test_bandpass_path_still_detects(self):
        detector = PitchDetector(bandpass_enabled=True)
        frequency = detector.detect_samples(sine(329.63, 44100, 4096), 44100)
        self.assertLess(abs(frequency - 329.63), 2.0)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            PitchDetector(min_freq=600.0, max_freq=200.0)
        with self.assertRaises(ValueError):
            self.detector.detect_samples(sine(392.0), 0)

    def test_from_config(self):
        cfg = TunerConfig(silence_rms=0.2, refine_peak=False)
        detector = PitchDetector.from_config(cfg)
        self.assertEqual(detector.silence_rms, 0.2)
        self.assertFalse(detector.refine_peak)
        # Amplitude 0.25 sine has RMS ~0.177, below the raised gate
        self.assertIsNone(detector.detect_samples(sine(392.0, amplitude=0.25), 44100))

    def test_result_is_finite(self):
        frequency = self.detector.detect_samples(sine(261.63, 44100), 44100)
        self.assertTrue(math.isfinite(frequency))


if __name__ == "__main__":
    unittest.main()
