"""
ukutools - Audio capture session
Owns the capture device for one tuner run and keeps the latest
fixed-size analysis frame available for snapshot reads.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from audio_devices import CaptureDevice, DeviceError, to_mono
from config import is_power_of_two
from logging_utils import log_event


@dataclass(frozen=True)
class AudioFrame:
    """One analysis frame of mono samples. ``samples`` is read-only."""
    samples: np.ndarray
    sample_rate: int

    def __len__(self) -> int:
        return len(self.samples)

    @classmethod
    def from_samples(cls, samples, sample_rate: int) -> "AudioFrame":
        data = np.array(samples, dtype=np.float32).reshape(-1)
        data.setflags(write=False)
        return cls(samples=data, sample_rate=int(sample_rate))


class CaptureState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ERROR = "error"


class AudioCaptureSession:
    """
    Frames are assembled from whatever block size the device delivers into a
    rolling window of ``frame_size`` samples. Once the window is full, every
    incoming block publishes the newest ``frame_size`` samples as the latest
    frame, overwriting the previous one.
    """

    def __init__(self, device: CaptureDevice, frame_size: int = 2048):
        if not is_power_of_two(frame_size):
            raise ValueError(f"frame_size must be a power of two, got {frame_size}")
        self.device = device
        self.frame_size = frame_size
        self.state = CaptureState.IDLE
        self.sample_rate: Optional[int] = None
        self.error: Optional[DeviceError] = None
        self.frames_published = 0

        self._lock = threading.Lock()
        self._window = np.zeros(0, dtype=np.float32)
        self._latest: Optional[AudioFrame] = None
        self._device_open = False

    def start(self) -> None:
        """Open the device. Raises DeviceError and enters ERROR on failure."""
        if self.state == CaptureState.ACTIVE:
            return
        self.error = None
        with self._lock:
            self._window = np.zeros(0, dtype=np.float32)
            self._latest = None
        try:
            self.sample_rate = int(self.device.open(self._on_samples, self._on_device_error))
        except DeviceError as e:
            self.state = CaptureState.ERROR
            self.error = e
            log_event("ERROR", "Capture", "Failed to open capture device", error=e)
            raise
        self._device_open = True
        self.state = CaptureState.ACTIVE
        log_event("INFO", "Capture", "Capture started",
                  sample_rate=self.sample_rate, frame_size=self.frame_size)

    def _on_samples(self, block: np.ndarray) -> None:
        if self.state != CaptureState.ACTIVE or self.sample_rate is None:
            return
        mono = to_mono(block)
        if mono.size == 0:
            return
        with self._lock:
            window = np.concatenate((self._window, mono))[-self.frame_size:]
            self._window = window
            if len(window) == self.frame_size:
                self._latest = AudioFrame.from_samples(window, self.sample_rate)
                self.frames_published += 1

    def _on_device_error(self, error: DeviceError) -> None:
        if self.state != CaptureState.ACTIVE:
            return
        log_event("ERROR", "Capture", "Capture device failed", error=error)
        self.error = error
        self.state = CaptureState.ERROR

    def latest_frame(self) -> Optional[AudioFrame]:
        """Most recent complete frame, or None before the first one arrives."""
        with self._lock:
            return self._latest

    def stop(self) -> None:
        """Release the device. Idempotent from any state."""
        if self._device_open:
            self._device_open = False
            try:
                self.device.close()
            finally:
                log_event("INFO", "Capture", "Capture stopped", frames=self.frames_published)
        with self._lock:
            self._window = np.zeros(0, dtype=np.float32)
            self._latest = None
        self.state = CaptureState.IDLE
