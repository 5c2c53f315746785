"""Type definitions shared by the audio and tuning layers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PitchResult:
    """A single monophonic pitch estimate."""

    frequency: float  # Frequency in Hz
    confidence: float  # Detection confidence (0-1)

    def __str__(self):
        return f"{self.frequency:.2f}Hz ({self.confidence:.2f})"
