import numpy as np

from config import ClickConfig


def generate_click(
    frequency: float = 880.0,
    duration_s: float = 0.1,
    sample_rate: int = 44100,
    gain: float = 0.5,
    release_s: float = 0.0,
) -> np.ndarray:
    """Generate a sine click as float32. Same arguments always give the same buffer."""
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}")
    num_samples = max(0, int(sample_rate * duration_s))
    t = np.arange(num_samples, dtype=np.float64) / sample_rate
    wave = gain * np.sin(2.0 * np.pi * frequency * t)

    release_samples = min(num_samples, int(sample_rate * max(0.0, release_s)))
    if release_samples > 0:
        wave[num_samples - release_samples:] *= np.linspace(1.0, 0.0, release_samples)

    return wave.astype(np.float32)


def clicks_from_config(config: ClickConfig, sample_rate: int) -> tuple[np.ndarray, np.ndarray]:
    """Return (normal, downbeat) click buffers. Both are the same unless accenting."""
    normal = generate_click(config.frequency, config.duration_ms / 1000.0, sample_rate,
                            config.gain, config.release_ms / 1000.0)
    if not config.accent_downbeat:
        return normal, normal
    accent = generate_click(config.accent_frequency, config.duration_ms / 1000.0, sample_rate,
                            config.gain, config.release_ms / 1000.0)
    return normal, accent
