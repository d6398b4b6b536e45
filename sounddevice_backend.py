"""
ukutools - sounddevice backends
Microphone capture and scheduled click playback over PortAudio.
"""

import threading
from typing import Optional

import numpy as np
import sounddevice as sd

from audio_devices import DeviceError, ErrorCallback, SamplesCallback, ScheduledMixer
from logging_utils import log_event, log_event_throttled, reset_throttle


def list_devices() -> list[dict]:
    """Return a summary of every PortAudio device."""
    try:
        found = sd.query_devices()
    except sd.PortAudioError as e:
        raise DeviceError(f"Could not query audio devices: {e}") from e
    devices = []
    for i, d in enumerate(found):
        devices.append({
            'index': i,
            'name': d['name'],
            'inputs': d['max_input_channels'],
            'outputs': d['max_output_channels'],
            'default_samplerate': d['default_samplerate'],
        })
    return devices


class SoundDeviceCapture:
    """Microphone input via ``sd.InputStream``."""

    def __init__(self, device_index: Optional[int] = None, sample_rate: Optional[int] = None,
                 block_size: int = 512, channels: int = 1):
        self.device_index = device_index
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.channels = channels
        self.stream: Optional[sd.InputStream] = None
        self._on_samples: Optional[SamplesCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._closing = False

    def open(self, on_samples: SamplesCallback, on_error: ErrorCallback) -> int:
        if self.stream is not None:
            raise DeviceError("Capture device already open")
        self._on_samples = on_samples
        self._on_error = on_error
        self._closing = False
        reset_throttle("capture-status")
        try:
            info = sd.query_devices(self.device_index, 'input')
            rate = int(self.sample_rate or info['default_samplerate'])
            channels = max(1, min(self.channels, int(info['max_input_channels'])))
            log_event("INFO", "Capture", "Using input device", device=info['name'], sample_rate=rate)
            self.stream = sd.InputStream(
                device=self.device_index,
                channels=channels,
                samplerate=rate,
                blocksize=self.block_size,
                dtype='float32',
                callback=self._callback,
                finished_callback=self._finished,
            )
            self.stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._discard_stream()
            raise DeviceError(f"Microphone unavailable: {e}") from e
        return rate

    def _callback(self, indata, frames, time_info, status):
        if status:
            log_event_throttled("WARNING", "Capture", "Input stream status",
                                key="capture-status", status=status)
        if self._on_samples is not None:
            self._on_samples(indata.copy())

    def _finished(self):
        # PortAudio ended the stream without close() being called
        if not self._closing and self._on_error is not None:
            self._on_error(DeviceError("Microphone stream ended unexpectedly"))

    def _discard_stream(self):
        if self.stream is not None:
            try:
                self.stream.close(ignore_errors=True)
            finally:
                self.stream = None

    def close(self) -> None:
        self._closing = True
        if self.stream is None:
            return
        try:
            self.stream.stop()
            self.stream.close()
        except sd.PortAudioError as e:
            log_event("WARNING", "Capture", "Error while closing input stream", error=e)
        finally:
            self.stream = None
            self._on_samples = None
            self._on_error = None


class SoundDevicePlayback:
    """
    Output stream that renders a ScheduledMixer.

    The mixer's rendered-sample count is the audio clock, so scheduled
    buffers start on exact sample boundaries regardless of when the
    scheduler thread woke up.
    """

    def __init__(self, device_index: Optional[int] = None, sample_rate: int = 44100,
                 block_size: int = 256):
        self.device_index = device_index
        self.sample_rate = int(sample_rate)
        self.block_size = block_size
        self.stream: Optional[sd.OutputStream] = None
        self.mixer = ScheduledMixer(self.sample_rate)
        self._lock = threading.Lock()

    def open(self) -> None:
        with self._lock:
            if self.stream is not None:
                return
            reset_throttle("playback-status")
            try:
                self.stream = sd.OutputStream(
                    device=self.device_index,
                    channels=1,
                    samplerate=self.sample_rate,
                    blocksize=self.block_size,
                    dtype='float32',
                    callback=self._callback,
                )
                self.stream.start()
            except (sd.PortAudioError, ValueError) as e:
                self.stream = None
                raise DeviceError(f"Audio output unavailable: {e}") from e
        log_event("INFO", "Playback", "Output stream started", sample_rate=self.sample_rate)

    def _callback(self, outdata, frames, time_info, status):
        if status:
            log_event_throttled("WARNING", "Playback", "Output stream status",
                                key="playback-status", status=status)
        outdata[:, 0] = self.mixer.render(frames)

    def _require_active(self) -> None:
        stream = self.stream
        if stream is None or not stream.active:
            raise DeviceError("Audio output is not running")

    def now(self) -> float:
        return self.mixer.now()

    def schedule_buffer(self, buffer: np.ndarray, start_at: float) -> None:
        self._require_active()
        self.mixer.schedule_buffer(buffer, start_at)

    def cancel_pending(self) -> None:
        self.mixer.cancel_pending()

    def close(self) -> None:
        with self._lock:
            if self.stream is None:
                return
            dropped = self.mixer.pending_count
            played_s = self.mixer.rendered_samples / self.sample_rate
            try:
                self.stream.stop()
                self.stream.close()
            except sd.PortAudioError as e:
                log_event("WARNING", "Playback", "Error while closing output stream", error=e)
            finally:
                self.stream = None
                self.mixer.clear()
        log_event("INFO", "Playback", "Output stream closed",
                  played_s=round(played_s, 3), dropped=dropped)
