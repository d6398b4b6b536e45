"""
ukutools - Click scheduler
Lookahead beat scheduling: a coarse periodic wake-up queues every beat due
within the lookahead window on the playback device with an explicit start
time. Wake-up jitter only changes when a beat is queued, never when it sounds.
"""

import threading
from enum import Enum
from typing import Callable, Optional

from audio_devices import DeviceError, PlaybackDevice
from beat_sequencer import BeatEvent, BeatSequencer, SchedulerState
from config import ClickConfig, MetronomeConfig
from logging_utils import log_event
from periodic_task import PeriodicTask, TimerHost
from tone_synth import clicks_from_config


class SchedulerRunState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class ClickScheduler:
    def __init__(self, playback: PlaybackDevice, config: MetronomeConfig,
                 click: Optional[ClickConfig] = None, timer_host: Optional[TimerHost] = None,
                 on_beat: Optional[Callable[[BeatEvent], None]] = None,
                 on_error: Optional[Callable[[DeviceError], None]] = None):
        self.playback = playback
        self.config = config
        self.click = click or ClickConfig()
        self.timer_host = timer_host
        self.on_beat = on_beat
        self.on_error = on_error

        self.run_state = SchedulerRunState.STOPPED
        self.error: Optional[DeviceError] = None
        self.sequencer = BeatSequencer(config)
        # Clicks are rendered once per scheduler and reused for every beat
        self.normal_click, self.accent_click = clicks_from_config(self.click, playback.sample_rate)

        self._lock = threading.RLock()
        self._task: Optional[PeriodicTask] = None

    @property
    def running(self) -> bool:
        return self.run_state == SchedulerRunState.RUNNING

    @property
    def state(self) -> SchedulerState:
        return self.sequencer.state

    @property
    def lookahead_s(self) -> float:
        return self.config.lookahead_ms / 1000.0

    def start(self) -> None:
        """Anchor beat 1 at the current audio time and begin scheduling.

        Raises DeviceError if the first scheduling pass fails.
        """
        with self._lock:
            if self.running:
                return
            self.error = None
            self.sequencer.reset(self.playback.now())
            self.run_state = SchedulerRunState.RUNNING
            self._task = PeriodicTask(self.config.wake_interval_ms / 1000.0, self._on_wake,
                                      self.timer_host, name="click-scheduler")
            log_event("INFO", "Scheduler", "Started", bpm=self.sequencer.bpm,
                      lookahead_ms=self.config.lookahead_ms)
            self.tick()
            self._task.start()

    def tick(self) -> list[BeatEvent]:
        """Run one scheduling pass. Stops the scheduler and re-raises on DeviceError."""
        with self._lock:
            if not self.running:
                return []
            try:
                events = self.sequencer.events_until(self.playback.now(), self.lookahead_s)
                for event in events:
                    buffer = self.accent_click if event.is_downbeat else self.normal_click
                    self.playback.schedule_buffer(buffer, event.time)
                    if self.on_beat is not None:
                        self.on_beat(event)
            except DeviceError as e:
                self.error = e
                log_event("ERROR", "Scheduler", "Playback failed, stopping", error=e)
                self.stop()
                raise
            return events

    def _on_wake(self) -> None:
        try:
            self.tick()
        except DeviceError as e:
            if self.on_error is not None:
                self.on_error(e)

    def stop(self) -> None:
        """Cancel the pending wake-up and any queued clicks. Idempotent."""
        with self._lock:
            task, self._task = self._task, None
            if task is not None:
                task.stop()
            if not self.running:
                return
            self.run_state = SchedulerRunState.STOPPED
            try:
                self.playback.cancel_pending()
            except DeviceError as e:
                log_event("WARNING", "Scheduler", "Could not cancel queued clicks", error=e)
            log_event("INFO", "Scheduler", "Stopped", beats=self.state.beats_scheduled)
