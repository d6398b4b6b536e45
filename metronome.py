"""
ukutools - Metronome
User-facing metronome: tempo control, start/stop and an observable
reading. Each run gets a fresh ClickScheduler; tempo changes while running
restart it rather than retiming beats already queued on the device.
"""

import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional

from audio_devices import DeviceError, PlaybackDevice
from beat_sequencer import BeatEvent
from click_scheduler import ClickScheduler
from config import ClickConfig, MetronomeConfig, clamp_bpm
from logging_utils import log_event
from periodic_task import TimerHost


@dataclass(frozen=True)
class MetronomeReading:
    bpm: int
    current_beat_index: int = 0   # 0 while stopped or before the first beat
    running: bool = False
    error: Optional[str] = None


class Metronome:
    def __init__(self, playback: PlaybackDevice, config: Optional[MetronomeConfig] = None,
                 click: Optional[ClickConfig] = None, timer_host: Optional[TimerHost] = None,
                 on_change: Optional[Callable[[MetronomeReading], None]] = None):
        self.playback = playback
        self.config = replace(config) if config is not None else MetronomeConfig()
        self.config.bpm = clamp_bpm(self.config.bpm)
        self.click = click or ClickConfig()
        self.timer_host = timer_host
        self.on_change = on_change

        self._lock = threading.RLock()
        self._scheduler: Optional[ClickScheduler] = None
        self._error: Optional[str] = None

    @property
    def bpm(self) -> int:
        return self.config.bpm

    @property
    def running(self) -> bool:
        scheduler = self._scheduler
        return scheduler is not None and scheduler.running

    @property
    def scheduler(self) -> Optional[ClickScheduler]:
        return self._scheduler

    @property
    def reading(self) -> MetronomeReading:
        scheduler = self._scheduler
        if scheduler is None or not scheduler.running:
            return MetronomeReading(bpm=self.bpm, error=self._error)
        return MetronomeReading(bpm=self.bpm, current_beat_index=scheduler.state.beat_index,
                                running=True, error=self._error)

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.reading)

    def set_bpm(self, bpm) -> int:
        """Set tempo (clamped to 40-240). A running metronome restarts from beat 1."""
        with self._lock:
            new_bpm = clamp_bpm(bpm)
            if new_bpm == self.config.bpm:
                return new_bpm
            self.config = replace(self.config, bpm=new_bpm)
            log_event("INFO", "Metronome", "Tempo changed", bpm=new_bpm)
            if self.running:
                self.stop()
                self.start()
            else:
                self._notify()
            return new_bpm

    def adjust_bpm(self, delta_steps: int) -> int:
        return self.set_bpm(self.config.bpm + delta_steps * self.config.bpm_step)

    def set_accent(self, enabled: bool) -> None:
        """Accent beat 1. Takes effect on the next start."""
        with self._lock:
            self.click = replace(self.click, accent_downbeat=bool(enabled))
            if self.running:
                self.stop()
                self.start()

    def start(self) -> None:
        """Start clicking. Raises DeviceError if the playback device fails."""
        with self._lock:
            if self.running:
                return
            self._error = None
            self._scheduler = ClickScheduler(
                self.playback, replace(self.config), self.click, self.timer_host,
                on_beat=self._on_beat, on_error=self._on_error,
            )
            try:
                self._scheduler.start()
            except DeviceError as e:
                self._scheduler = None
                self._error = str(e)
                self._notify()
                raise
            self._notify()

    def stop(self) -> None:
        with self._lock:
            scheduler, self._scheduler = self._scheduler, None
            if scheduler is not None:
                scheduler.stop()
            self._notify()

    def toggle(self) -> None:
        if self.running:
            self.stop()
        else:
            self.start()

    def _on_beat(self, event: BeatEvent) -> None:
        self._notify()

    def _on_error(self, error: DeviceError) -> None:
        with self._lock:
            if self.running:
                # A newer run replaced the scheduler that failed
                return
            log_event("ERROR", "Metronome", "Stopped after playback failure", error=error)
            self._scheduler = None
            self._error = str(error)
            self._notify()
