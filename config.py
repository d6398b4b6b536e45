# ukutools Configuration
# All default values and constants

import math
from dataclasses import dataclass, field, is_dataclass

from logging_utils import log_event


CURRENT_CONFIG_VERSION = 1

# Standard GCEA (re-entrant) ukulele tuning, in string order
STANDARD_UKULELE_TUNING = {
    'G': 392.00,
    'C': 261.63,
    'E': 329.63,
    'A': 440.00,
}

BPM_MIN = 40
BPM_MAX = 240
BEATS_PER_BAR = 4

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def clamp_bpm(bpm) -> int:
    """Clamp a tempo to the supported range. Fractional input is rounded.

    Infinite values clamp to the nearest bound; NaN and non-numeric input
    raise ValueError (TypeError for None).
    """
    try:
        value = float(bpm)
    except OverflowError:
        # Integers too large for a float
        value = math.inf if bpm > 0 else -math.inf
    if math.isnan(value):
        raise ValueError("bpm must be a number, got NaN")
    return int(round(max(BPM_MIN, min(BPM_MAX, value))))


def is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


@dataclass
class AudioConfig:
    """Audio device settings"""
    sample_rate: int = 44100
    frame_size: int = 2048            # Samples per analysis frame (power of two)
    input_device_index: int | None = None   # None means system default
    output_device_index: int | None = None
    input_block_size: int = 512       # Capture callback block size (frames)
    output_block_size: int = 256      # Playback callback block size (frames)


@dataclass
class TunerConfig:
    """Pitch detection and note matching parameters"""
    silence_rms: float = 0.01         # RMS below this = no pitch (unit-normalized samples)
    min_freq: float = 200.0           # Lowest frequency searched (Hz)
    max_freq: float = 600.0           # Highest frequency searched (Hz)
    refine_peak: bool = True          # Parabolic refinement of the winning period
    bandpass_enabled: bool = False    # Butterworth band-pass before detection
    bandpass_order: int = 4
    match_tolerance_cents: float = 70.0  # |cents| at or above this = no match
    in_tune_cents: float = 5.0        # |cents| below this = in tune
    poll_interval_ms: float = 16.0    # Detection cadence (~one display refresh)
    target_notes: dict[str, float] = field(default_factory=lambda: dict(STANDARD_UKULELE_TUNING))


@dataclass
class MetronomeConfig:
    """Metronome tempo and scheduling parameters"""
    bpm: int = 100
    beats_per_bar: int = BEATS_PER_BAR
    bpm_step: int = 5                 # Increment for the -/+ controls
    wake_interval_ms: float = 25.0    # Scheduler wake-up interval
    lookahead_ms: float = 100.0       # How far ahead beats are queued on the device

    @property
    def seconds_per_beat(self) -> float:
        return 60.0 / self.bpm


@dataclass
class ClickConfig:
    """Metronome click sound"""
    frequency: float = 880.0          # A5
    duration_ms: float = 100.0
    gain: float = 0.5
    release_ms: float = 5.0           # Linear fade at the end of the click
    accent_downbeat: bool = False     # Use accent_frequency on beat 1
    accent_frequency: float = 1320.0


@dataclass
class Config:
    """Master configuration"""
    version: int = 1                  # Schema version for persisted configs
    audio: AudioConfig = field(default_factory=AudioConfig)
    tuner: TunerConfig = field(default_factory=TunerConfig)
    metronome: MetronomeConfig = field(default_factory=MetronomeConfig)
    click: ClickConfig = field(default_factory=ClickConfig)
    log_level: str = "INFO"           # Logging level (DEBUG/INFO/WARNING/ERROR)


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; a section that is not a dict keeps its defaults."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current):
            if isinstance(value, dict):
                apply_dict_to_dataclass(current, value)
            else:
                log_event("WARNING", "Config", "Ignoring malformed section", section=key)
            continue

        setattr(target, key, value)


def _float_or(value, default: float) -> float:
    """Finite float from a loaded value, or ``default``."""
    if isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return result if math.isfinite(result) else default


def _positive_int_or(value, default: int) -> int:
    result = _float_or(value, 0.0)
    if result < 1.0 or result != int(result):
        return default
    return int(result)


def _device_index_or_none(value):
    if value is None or isinstance(value, bool):
        return None
    result = _float_or(value, -1.0)
    return int(result) if result >= 0 and result == int(result) else None


def _valid_targets(notes) -> dict[str, float]:
    """Keep target notes with a positive frequency; fall back to GCEA if none survive."""
    if not isinstance(notes, dict):
        return dict(STANDARD_UKULELE_TUNING)
    valid = {}
    for label, freq in notes.items():
        value = _float_or(freq, 0.0)
        if value > 0.0:
            valid[str(label)] = value
        else:
            log_event("WARNING", "Config", "Dropping invalid target note", note=label, freq=freq)
    return valid or dict(STANDARD_UKULELE_TUNING)


def migrate_config(config: Config, loaded_version) -> None:
    """Upgrade older config structures to the current schema.
    Fills defaults for missing/None/non-finite fields, clamps ranges and bumps version."""
    version = int(_float_or(loaded_version, 0.0))

    defaults = Config()

    if version < 1:
        # Pre-versioned files had no accent option
        if getattr(config.click, 'accent_downbeat', None) is None:
            config.click.accent_downbeat = False
        if getattr(config.click, 'accent_frequency', None) is None:
            config.click.accent_frequency = defaults.click.accent_frequency

    try:
        config.metronome.bpm = clamp_bpm(config.metronome.bpm)
    except (TypeError, ValueError, OverflowError):
        config.metronome.bpm = defaults.metronome.bpm

    # Only 4/4 is supported
    config.metronome.beats_per_bar = BEATS_PER_BAR

    config.metronome.bpm_step = max(1, int(_float_or(config.metronome.bpm_step, 5)))
    config.metronome.wake_interval_ms = max(1.0, _float_or(config.metronome.wake_interval_ms, 25.0))
    # Lookahead must cover at least one wake interval or beats can arrive late
    config.metronome.lookahead_ms = max(
        config.metronome.wake_interval_ms,
        _float_or(config.metronome.lookahead_ms, 100.0),
    )

    audio = config.audio
    if not isinstance(audio.frame_size, int) or not is_power_of_two(audio.frame_size):
        log_event("WARNING", "Config", "Invalid frame size, using default",
                  frame_size=audio.frame_size)
        audio.frame_size = defaults.audio.frame_size
    audio.sample_rate = _positive_int_or(audio.sample_rate, defaults.audio.sample_rate)
    audio.input_block_size = _positive_int_or(audio.input_block_size, defaults.audio.input_block_size)
    audio.output_block_size = _positive_int_or(audio.output_block_size, defaults.audio.output_block_size)
    audio.input_device_index = _device_index_or_none(audio.input_device_index)
    audio.output_device_index = _device_index_or_none(audio.output_device_index)

    tuner = config.tuner
    tuner.silence_rms = max(0.0, _float_or(tuner.silence_rms, defaults.tuner.silence_rms))
    tuner.match_tolerance_cents = max(0.0, _float_or(tuner.match_tolerance_cents, 70.0))
    tuner.in_tune_cents = max(0.0, _float_or(tuner.in_tune_cents, 5.0))
    tuner.poll_interval_ms = max(1.0, _float_or(tuner.poll_interval_ms, 16.0))
    tuner.bandpass_order = _positive_int_or(tuner.bandpass_order, defaults.tuner.bandpass_order)
    min_freq = _float_or(tuner.min_freq, 0.0)
    max_freq = _float_or(tuner.max_freq, 0.0)
    if min_freq <= 0.0 or max_freq <= min_freq:
        min_freq, max_freq = defaults.tuner.min_freq, defaults.tuner.max_freq
    tuner.min_freq, tuner.max_freq = min_freq, max_freq
    tuner.target_notes = _valid_targets(tuner.target_notes)

    click = config.click
    click.frequency = _float_or(click.frequency, 0.0)
    if click.frequency <= 0.0:
        click.frequency = defaults.click.frequency
    click.accent_frequency = _float_or(click.accent_frequency, 0.0)
    if click.accent_frequency <= 0.0:
        click.accent_frequency = defaults.click.accent_frequency
    # Clicks longer than one beat at the fastest tempo would overlap
    click.duration_ms = min(250.0, max(1.0, _float_or(click.duration_ms, defaults.click.duration_ms)))
    click.release_ms = min(click.duration_ms, max(0.0, _float_or(click.release_ms, defaults.click.release_ms)))
    click.gain = min(1.0, max(0.0, _float_or(click.gain, defaults.click.gain)))

    level = config.log_level.upper() if isinstance(config.log_level, str) else ""
    config.log_level = level if level in LOG_LEVELS else "INFO"

    config.version = CURRENT_CONFIG_VERSION
