from dataclasses import dataclass

from tuner import TunerReading, TunerState

CENTS_METER_RANGE = 100.0
NO_NOTE_TEXT = "—"

# Meter colours by |cents|
COLOR_IN_TUNE = "#39FF14"
COLOR_CLOSE = "#FFE600"
COLOR_OFF = "#FF00C8"


@dataclass(frozen=True)
class TunerButtonsState:
    start_enabled: bool
    stop_enabled: bool
    mic_active: bool


def tuner_buttons_state(state: TunerState) -> TunerButtonsState:
    """Start is offered whenever the tuner is not running (including after an error)."""
    active = state in (TunerState.STARTING, TunerState.RUNNING)
    return TunerButtonsState(
        start_enabled=not active and state != TunerState.STOPPING,
        stop_enabled=active,
        mic_active=state == TunerState.RUNNING,
    )


def tuner_status_line(reading: TunerReading) -> str:
    """Lifecycle message while not running; the tuning verdict while running."""
    if reading.state != TunerState.RUNNING:
        return reading.message
    return f"{reading.result.status_text}!"


def note_text(reading: TunerReading) -> str:
    return reading.note if reading.note is not None else NO_NOTE_TEXT


def indicator_position(cents: float) -> float:
    """Meter needle position, cents clamped to +/-100."""
    return max(-CENTS_METER_RANGE, min(CENTS_METER_RANGE, cents))


def indicator_color(cents: float) -> str:
    magnitude = abs(cents)
    if magnitude < 5:
        return COLOR_IN_TUNE
    if magnitude < 20:
        return COLOR_CLOSE
    return COLOR_OFF


def metronome_button_text(is_running: bool) -> str:
    return "⏸ Pause" if is_running else "▶ Start"


def beat_indicator_states(current_beat_index: int, beats_per_bar: int = 4) -> list[bool]:
    """One flag per beat lamp, lit for the current beat (none when 0)."""
    return [current_beat_index == beat for beat in range(1, beats_per_bar + 1)]
