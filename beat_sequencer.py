from dataclasses import dataclass

from config import BEATS_PER_BAR, MetronomeConfig, clamp_bpm


@dataclass(frozen=True)
class BeatEvent:
    time: float         # Absolute audio-clock time (seconds)
    beat_index: int     # 1..beats_per_bar

    @property
    def is_downbeat(self) -> bool:
        return self.beat_index == 1


@dataclass
class SchedulerState:
    """
    Scheduling progress for one metronome run.

    Beat n (0-based) sounds at ``origin + n * seconds_per_beat``; computing
    each time from the origin keeps rounding error from accumulating.
    """
    origin: float
    seconds_per_beat: float
    beats_per_bar: int = BEATS_PER_BAR
    beats_scheduled: int = 0

    @property
    def next_beat_time(self) -> float:
        return self.origin + self.beats_scheduled * self.seconds_per_beat

    @property
    def beat_index(self) -> int:
        """Index of the most recently produced beat; 0 before the first one."""
        if self.beats_scheduled == 0:
            return 0
        return (self.beats_scheduled - 1) % self.beats_per_bar + 1

    @property
    def next_beat_index(self) -> int:
        return self.beats_scheduled % self.beats_per_bar + 1


class BeatSequencer:
    def __init__(self, config: MetronomeConfig, origin: float = 0.0):
        self.bpm = clamp_bpm(config.bpm)
        self.beats_per_bar = max(1, int(config.beats_per_bar))
        self.seconds_per_beat = 60.0 / self.bpm
        self.state = SchedulerState(origin, self.seconds_per_beat, self.beats_per_bar)

    def reset(self, origin: float) -> None:
        self.state = SchedulerState(origin, self.seconds_per_beat, self.beats_per_bar)

    def events_until(self, now: float, horizon: float) -> list[BeatEvent]:
        """
        Produce every pending beat due before ``now + horizon``.

        Beats already behind ``now`` (a late wake-up) are still produced so
        the cycle never skips an index; the device starts them as soon as it
        can.
        """
        deadline = now + horizon
        events = []
        state = self.state
        while state.next_beat_time < deadline:
            events.append(BeatEvent(state.next_beat_time, state.next_beat_index))
            state.beats_scheduled += 1
        return events
