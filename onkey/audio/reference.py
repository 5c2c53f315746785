"""Reference tone generation."""

from typing import ClassVar

import numpy as np

from ..logger import get_logger
from ..core.interfaces import IAudioSink

logger = get_logger(__name__)


class ReferenceTone:
    """Pure sine reference tones with short linear fades to avoid clicks."""

    AMPLITUDE: ClassVar[float] = 0.5
    FADE_SECONDS: ClassVar[float] = 0.01

    def __init__(self, sample_rate: int = 44100):
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate

    def generate(self, frequency: float, duration: float) -> np.ndarray:
        """Sine wave at ``frequency`` Hz lasting ``duration`` seconds."""
        if frequency <= 0:
            raise ValueError(f"Frequency must be positive, got {frequency}")
        if duration < 0:
            raise ValueError(f"Duration must not be negative, got {duration}")

        count = int(self.sample_rate * duration)
        t = np.arange(count) / self.sample_rate
        samples = self.AMPLITUDE * np.sin(2 * np.pi * frequency * t)

        fade = min(int(self.sample_rate * self.FADE_SECONDS), count // 2)
        if fade > 0:
            ramp = np.linspace(0.0, 1.0, fade)
            samples[:fade] *= ramp
            samples[-fade:] *= ramp[::-1]
        return samples.astype(np.float32)

    def play(self, sink: IAudioSink, frequency: float, duration: float) -> None:
        """Write a tone to ``sink`` at the sink's sample rate."""
        tone = ReferenceTone(sink.sample_rate) if sink.sample_rate != self.sample_rate else self
        logger.debug(f"Playing reference {frequency:.2f}Hz for {duration:.1f}s")
        sink.write_samples(tone.generate(frequency, duration))
