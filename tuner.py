"""
ukutools - Tuner
Drives capture -> pitch detection -> note matching on a fixed polling
cadence and exposes the current tuning reading.
"""

import threading
from collections import Counter
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from audio_devices import CaptureDevice, DeviceError
from capture_session import AudioCaptureSession, CaptureState
from config import TunerConfig
from logging_utils import log_event
from note_mapper import NoteMapper, NoteMatch
from periodic_task import PeriodicTask, TimerHost
from pitch_detector import PitchDetector


class TunerState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


class TuningStatus(Enum):
    IN_TUNE = "in-tune"
    SHARP = "sharp"
    FLAT = "flat"
    NO_SIGNAL = "no-signal"


STATUS_TEXT = {
    TuningStatus.NO_SIGNAL: "Pluck a string",
    TuningStatus.IN_TUNE: "In tune",
    TuningStatus.SHARP: "Too sharp",
    TuningStatus.FLAT: "Too flat",
}

IDLE_MESSAGE = 'Click "Start Tuner" to begin.'
STARTING_MESSAGE = "Requesting microphone access..."
RUNNING_MESSAGE = "Tuner active. Pluck a string!"
STOPPED_MESSAGE = "Tuner stopped."
ERROR_MESSAGE = "Error: Microphone access needed."
DEVICE_ERROR_TEXT = ("Microphone access denied or not available. "
                     "Please allow microphone access in your system settings.")


@dataclass(frozen=True)
class TuningResult:
    note: Optional[str] = None
    cents: float = 0.0
    status: TuningStatus = TuningStatus.NO_SIGNAL

    @property
    def status_text(self) -> str:
        return STATUS_TEXT[self.status]


NO_SIGNAL = TuningResult()


def classify(match: Optional[NoteMatch], in_tune_cents: float = 5.0) -> TuningResult:
    if match is None:
        return NO_SIGNAL
    if abs(match.cents) < in_tune_cents:
        status = TuningStatus.IN_TUNE
    elif match.cents > 0:
        status = TuningStatus.SHARP
    else:
        status = TuningStatus.FLAT
    return TuningResult(note=match.label, cents=match.cents, status=status)


@dataclass(frozen=True)
class TunerReading:
    """Snapshot of everything the UI shows for the tuner."""
    state: TunerState = TunerState.IDLE
    result: TuningResult = NO_SIGNAL
    message: str = IDLE_MESSAGE
    error: Optional[str] = None

    @property
    def note(self) -> Optional[str]:
        return self.result.note

    @property
    def cents(self) -> float:
        return self.result.cents

    @property
    def status(self) -> TuningStatus:
        return self.result.status


class TunerStateMachine:
    def __init__(self, device: CaptureDevice, config: Optional[TunerConfig] = None,
                 frame_size: int = 2048, timer_host: Optional[TimerHost] = None,
                 on_update: Optional[Callable[[TunerReading], None]] = None):
        self.device = device
        self.config = config or TunerConfig()
        self.frame_size = frame_size
        self.timer_host = timer_host
        self.on_update = on_update
        self.detector = PitchDetector.from_config(self.config)
        self.mapper = NoteMapper.from_config(self.config)

        self._lock = threading.RLock()
        self._reading = TunerReading()
        self._session: Optional[AudioCaptureSession] = None
        self._poll: Optional[PeriodicTask] = None
        self._frames_analysed = 0
        self._matches: Counter = Counter()

    @property
    def state(self) -> TunerState:
        return self._reading.state

    @property
    def reading(self) -> TunerReading:
        return self._reading

    @property
    def session(self) -> Optional[AudioCaptureSession]:
        return self._session

    def _publish(self, reading: TunerReading) -> None:
        self._reading = reading
        if self.on_update is not None:
            self.on_update(reading)

    def start(self) -> None:
        """Open the microphone and begin polling. Raises DeviceError on failure."""
        with self._lock:
            if self.state in (TunerState.RUNNING, TunerState.STARTING):
                return
            self._publish(TunerReading(state=TunerState.STARTING, message=STARTING_MESSAGE))
            log_event("INFO", "Tuner", "Starting")

            session = AudioCaptureSession(self.device, self.frame_size)
            try:
                session.start()
            except DeviceError as e:
                session.stop()
                self._publish(TunerReading(state=TunerState.ERROR, message=ERROR_MESSAGE,
                                           error=DEVICE_ERROR_TEXT))
                log_event("ERROR", "Tuner", "Microphone unavailable", error=e)
                raise

            self._session = session
            self._frames_analysed = 0
            self._matches.clear()
            self._poll = PeriodicTask(self.config.poll_interval_ms / 1000.0, self.poll,
                                      self.timer_host, name="tuner-poll")
            self._publish(TunerReading(state=TunerState.RUNNING, message=RUNNING_MESSAGE))
            self._poll.start()
            log_event("INFO", "Tuner", "Running", poll_ms=self.config.poll_interval_ms)

    def poll(self) -> None:
        """Analyse the most recent frame once. Called by the periodic task."""
        with self._lock:
            session = self._session
            if self.state != TunerState.RUNNING or session is None:
                return

            if session.state == CaptureState.ERROR:
                self._fail(session.error)
                return

            frame = session.latest_frame()
            if frame is None:
                result = NO_SIGNAL
            else:
                frequency = self.detector.detect(frame)
                result = classify(self.mapper.match(frequency), self.config.in_tune_cents)
                self._frames_analysed += 1
                if result.note is not None:
                    self._matches[result.note] += 1

            self._publish(replace(self._reading, result=result))

    def _fail(self, error: Optional[DeviceError]) -> None:
        log_event("ERROR", "Tuner", "Capture failed while running", error=error)
        self._teardown()
        self._publish(TunerReading(state=TunerState.ERROR, message=ERROR_MESSAGE,
                                   error=DEVICE_ERROR_TEXT))

    def _teardown(self) -> None:
        poll, self._poll = self._poll, None
        if poll is not None:
            poll.stop()
        session, self._session = self._session, None
        if session is not None:
            session.stop()

    def stop(self) -> None:
        """Cancel polling, release the microphone and return to IDLE. Idempotent."""
        with self._lock:
            if self.state == TunerState.IDLE:
                return
            was_running = self.state == TunerState.RUNNING
            self._publish(replace(self._reading, state=TunerState.STOPPING))
            try:
                self._teardown()
            finally:
                if was_running:
                    self._log_session_summary()
                self._publish(TunerReading(state=TunerState.IDLE, message=STOPPED_MESSAGE))
                log_event("INFO", "Tuner", "Stopped")

    def _log_session_summary(self) -> None:
        if self._frames_analysed == 0:
            return
        matched = sum(self._matches.values())
        fields = {f"note_{label}": count for label, count in sorted(self._matches.items())}
        log_event("INFO", "Tuner", "Session summary",
                  frames=self._frames_analysed, matched=matched, **fields)
