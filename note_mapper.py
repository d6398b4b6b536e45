import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from config import STANDARD_UKULELE_TUNING, TunerConfig


@dataclass(frozen=True)
class TargetNote:
    label: str
    frequency: float


@dataclass(frozen=True)
class NoteMatch:
    label: str
    cents: float      # Signed; positive = sharp
    target: TargetNote


def cents_between(frequency: float, reference: float) -> float:
    return 1200.0 * math.log2(frequency / reference)


def targets_from_mapping(notes: Mapping[str, float]) -> tuple[TargetNote, ...]:
    return tuple(TargetNote(label, float(freq)) for label, freq in notes.items())


UKULELE_GCEA = targets_from_mapping(STANDARD_UKULELE_TUNING)


class NoteMapper:
    """Maps a frequency to the nearest target note within ``tolerance_cents``."""

    def __init__(self, targets: Iterable[TargetNote] = UKULELE_GCEA, tolerance_cents: float = 70.0):
        self.targets = tuple(targets)
        if not self.targets:
            raise ValueError("at least one target note is required")
        for target in self.targets:
            if target.frequency <= 0:
                raise ValueError(f"target {target.label} has non-positive frequency")
        self.tolerance_cents = tolerance_cents

    @classmethod
    def from_config(cls, config: TunerConfig) -> "NoteMapper":
        return cls(targets_from_mapping(config.target_notes), config.match_tolerance_cents)

    def match(self, frequency: Optional[float]) -> Optional[NoteMatch]:
        """Nearest target and signed deviation, or None for no pitch / out of tolerance."""
        if frequency is None or not frequency > 0 or math.isinf(frequency):
            return None

        best: Optional[TargetNote] = None
        best_cents = math.inf
        for target in self.targets:
            cents = cents_between(frequency, target.frequency)
            if abs(cents) < abs(best_cents):
                best = target
                best_cents = cents

        if best is None or abs(best_cents) >= self.tolerance_cents:
            return None
        return NoteMatch(label=best.label, cents=best_cents, target=best)
