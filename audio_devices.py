"""
ukutools - Audio device contracts
Capture and playback interfaces shared by the tuner and the metronome,
plus the sample-accurate mixer that backs every playback device.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Protocol

import numpy as np


class DeviceError(Exception):
    """Audio device could not be opened, or failed while in use."""


SamplesCallback = Callable[[np.ndarray], None]
ErrorCallback = Callable[[DeviceError], None]


class CaptureDevice(Protocol):
    def open(self, on_samples: SamplesCallback, on_error: ErrorCallback) -> int:
        """Start delivering float32 sample blocks (frames x channels or 1-D).

        Returns the negotiated sample rate. Raises DeviceError on
        permission denial or missing device.
        """
        ...

    def close(self) -> None:
        ...


class PlaybackDevice(Protocol):
    sample_rate: int

    def now(self) -> float:
        """Monotonic audio clock in seconds."""
        ...

    def schedule_buffer(self, buffer: np.ndarray, start_at: float) -> None:
        """Queue a mono buffer to start at or after ``start_at`` on the audio clock."""
        ...

    def cancel_pending(self) -> None:
        """Drop queued buffers that have not started yet."""
        ...


@dataclass
class _Voice:
    start_sample: int
    buffer: np.ndarray


class ScheduledMixer:
    """
    Mixes buffers into an output stream at exact sample positions.

    The clock is the number of samples rendered so far, so ``now()`` only
    advances when the device pulls audio and a buffer scheduled for time t
    always begins at sample round(t * sample_rate). Buffers scheduled in the
    past start at the next rendered sample.
    """

    def __init__(self, sample_rate: int):
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = int(sample_rate)
        self._rendered = 0
        self._voices: list[_Voice] = []
        self._lock = threading.Lock()

    @property
    def rendered_samples(self) -> int:
        return self._rendered

    def now(self) -> float:
        return self._rendered / self.sample_rate

    def schedule_buffer(self, buffer: np.ndarray, start_at: float) -> None:
        data = np.asarray(buffer, dtype=np.float32).reshape(-1)
        if data.size == 0:
            return
        start_sample = int(round(start_at * self.sample_rate))
        with self._lock:
            start_sample = max(start_sample, self._rendered)
            self._voices.append(_Voice(start_sample, data))

    def cancel_pending(self) -> None:
        """Drop voices that have not started; voices already sounding finish."""
        with self._lock:
            self._voices = [v for v in self._voices if v.start_sample < self._rendered]

    def clear(self) -> None:
        with self._lock:
            self._voices.clear()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._voices)

    def render(self, frames: int) -> np.ndarray:
        """Produce the next ``frames`` mono samples and advance the clock."""
        out = np.zeros(frames, dtype=np.float32)
        with self._lock:
            block_start = self._rendered
            block_end = block_start + frames
            remaining = []
            for voice in self._voices:
                voice_end = voice.start_sample + len(voice.buffer)
                if voice.start_sample >= block_end:
                    remaining.append(voice)
                    continue
                src_from = max(0, block_start - voice.start_sample)
                dst_from = max(0, voice.start_sample - block_start)
                count = min(frames - dst_from, len(voice.buffer) - src_from)
                if count > 0:
                    out[dst_from:dst_from + count] += voice.buffer[src_from:src_from + count]
                if voice_end > block_end:
                    remaining.append(voice)
            self._voices = remaining
            self._rendered = block_end
        return out


def to_mono(block: np.ndarray) -> np.ndarray:
    """Average a (frames, channels) block to 1-D float32."""
    data = np.asarray(block, dtype=np.float32)
    if data.ndim == 1:
        return data
    if data.shape[1] == 1:
        return data[:, 0]
    return np.mean(data, axis=1, dtype=np.float32)
