"""
ukutools - Pitch detection
Gated time-domain autocorrelation over the narrow band a ukulele's open
strings occupy.
"""

import math
from typing import Optional

import numpy as np
from scipy.signal import butter, sosfiltfilt

from capture_session import AudioFrame
from config import TunerConfig


def frame_rms(samples: np.ndarray) -> float:
    if len(samples) == 0:
        return 0.0
    data = np.asarray(samples, dtype=np.float64)
    return float(np.sqrt(np.mean(data * data)))


def period_range(sample_rate: float, min_freq: float, max_freq: float) -> tuple[int, int]:
    """Integer lag bounds [floor(sr/max_freq), ceil(sr/min_freq)]."""
    return int(math.floor(sample_rate / max_freq)), int(math.ceil(sample_rate / min_freq))


def autocorrelation(samples: np.ndarray, min_period: int, max_period: int) -> np.ndarray:
    """Unnormalized autocorrelation sum(x[i] * x[i + p]) for p in [min_period, max_period]."""
    n = len(samples)
    corr = np.zeros(max_period - min_period + 1, dtype=np.float64)
    for k, period in enumerate(range(min_period, max_period + 1)):
        if period >= n:
            break
        corr[k] = np.dot(samples[:n - period], samples[period:])
    return corr


def parabolic_interpolation(y: np.ndarray, x: int) -> float:
    """Refine peak position using a parabola through y[x-1], y[x], y[x+1]."""
    if x <= 0 or x >= len(y) - 1:
        return float(x)
    y0, y1, y2 = y[x - 1], y[x], y[x + 1]
    denom = y0 - 2.0 * y1 + y2
    if denom >= 0:
        # Not a local maximum
        return float(x)
    delta = 0.5 * (y0 - y2) / denom
    return float(x) + float(np.clip(delta, -0.5, 0.5))


def bandpass(samples: np.ndarray, sample_rate: int, low_hz: float, high_hz: float,
             order: int = 4) -> np.ndarray:
    """Zero-phase Butterworth band-pass of a single frame."""
    nyquist = sample_rate / 2.0
    low_norm = max(0.001, min(0.99, low_hz / nyquist))
    high_norm = max(low_norm + 0.01, min(0.999, high_hz / nyquist))
    sos = butter(order, [low_norm, high_norm], btype='band', output='sos')
    return sosfiltfilt(sos, samples).astype(np.float32)


class PitchDetector:
    """
    Estimates the dominant frequency of one frame, or None.

    Frames quieter than ``silence_rms`` are rejected before correlating so
    the noise floor cannot produce spurious peaks. The search is restricted
    to periods for [min_freq, max_freq]; brute-force correlation is cheap
    because that band is narrow.
    """

    def __init__(self, silence_rms: float = 0.01, min_freq: float = 200.0,
                 max_freq: float = 600.0, refine_peak: bool = True,
                 bandpass_enabled: bool = False, bandpass_order: int = 4):
        if min_freq <= 0 or max_freq <= min_freq:
            raise ValueError(f"invalid search band {min_freq}-{max_freq} Hz")
        self.silence_rms = silence_rms
        self.min_freq = min_freq
        self.max_freq = max_freq
        self.refine_peak = refine_peak
        self.bandpass_enabled = bandpass_enabled
        self.bandpass_order = bandpass_order

    @classmethod
    def from_config(cls, config: TunerConfig) -> "PitchDetector":
        return cls(
            silence_rms=config.silence_rms,
            min_freq=config.min_freq,
            max_freq=config.max_freq,
            refine_peak=config.refine_peak,
            bandpass_enabled=config.bandpass_enabled,
            bandpass_order=config.bandpass_order,
        )

    def detect(self, frame: AudioFrame) -> Optional[float]:
        return self.detect_samples(frame.samples, frame.sample_rate)

    def detect_samples(self, samples: np.ndarray, sample_rate: int) -> Optional[float]:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        data = np.asarray(samples, dtype=np.float64)

        if frame_rms(data) < self.silence_rms:
            return None

        if self.bandpass_enabled:
            # Half an octave of margin either side of the search band
            data = bandpass(data, sample_rate, self.min_freq / 1.414, self.max_freq * 1.414,
                            self.bandpass_order).astype(np.float64)

        min_period, max_period = period_range(sample_rate, self.min_freq, self.max_freq)
        min_period = max(1, min_period)
        max_period = min(len(data) - 1, max_period)
        if max_period < min_period:
            return None

        corr = autocorrelation(data, min_period, max_period)
        best = int(np.argmax(corr))
        if corr[best] <= 0.0:
            return None

        period = float(min_period + best)
        if self.refine_peak:
            period = min_period + parabolic_interpolation(corr, best)
        return sample_rate / period
